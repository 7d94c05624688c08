'''test_codec.py: Contains the set of tests for the field codec and conversion helpers'''


import datetime
import logging
import math
import struct

import pytest

from trackswap_fit import fit as FIT
from trackswap_fit import util
from trackswap_fit.codec import decode_base_value, decode_field, encode_field
from trackswap_fit.errors import FramingError
from trackswap_fit.field_types import lookup


class TestEncodeField:
    '''Set of tests for encoding semantic values into field bytes.'''

    def test_string_is_utf8_with_terminator(self):
        data = encode_field(lookup('string'), 'café')
        assert data == bytes([0x63, 0x61, 0x66, 0xC3, 0xA9, 0x00])
        assert len(data) == 6

    def test_empty_string(self):
        assert encode_field(lookup('string'), '') == b'\x00'

    def test_long_string_is_truncated(self, caplog):
        '''Tests that an oversized string loses whole code points and the cut is logged'''
        with caplog.at_level(logging.WARNING, logger='trackswap_fit.util'):
            data = encode_field(lookup('string'), 'é' * 200)
        assert "Truncating a 400 byte string to 254 bytes" in caplog.text
        assert len(data) == 255
        assert data.endswith(b'\x00')
        assert data[:-1].decode('utf-8') == 'é' * 127

    def test_truncation_backs_off_to_code_point(self):
        data = encode_field(lookup('string'), 'a' + '€' * 100)
        assert len(data) == 254
        assert data[:-1].decode('utf-8') == 'a' + '€' * 84

    def test_very_long_string(self):
        assert util.fit_string('x' * 100000) == 'x' * 254

    def test_string_at_limit_is_kept(self, caplog):
        with caplog.at_level(logging.WARNING, logger='trackswap_fit.util'):
            assert util.fit_string('x' * 254) == 'x' * 254
        assert caplog.text == ''

    def test_semicircles(self):
        '''Tests that 45 degrees is a quarter of the half turn'''
        assert encode_field(lookup('semicircles'), 45) == (536870912).to_bytes(4, 'little', signed=True)

    def test_negative_semicircles(self):
        assert encode_field(lookup('semicircles'), -90) == (-1073741824).to_bytes(4, 'little', signed=True)

    @pytest.mark.parametrize("value", [1700000000, 1700000000000, 1700000000.9])
    def test_unix_timestamps(self, value):
        '''Tests that seconds and milliseconds since 1970 both land on the same FIT time'''
        assert encode_field(lookup('date_time'), value) == (1068934400).to_bytes(4, 'little')

    def test_fit_relative_timestamp_passes_through(self):
        assert encode_field(lookup('date_time'), 1000) == (1000).to_bytes(4, 'little')

    def test_datetime_timestamp(self):
        value = datetime.datetime(2023, 11, 14, 22, 13, 20, tzinfo=datetime.timezone.utc)
        assert encode_field(lookup('date_time'), value) == (1068934400).to_bytes(4, 'little')

    def test_unknown_sport_is_sentinel(self):
        assert encode_field(lookup('enum_sport'), 'underwater_hockey') == b'\xFE'

    def test_manufacturer_is_two_bytes(self):
        assert encode_field(lookup('enum_manufacturer'), 'garmin') == b'\x01\x00'

    @pytest.mark.parametrize("type_name,value,expected", [
        ('uint8', 300, b'\xFF'),
        ('uint8', -1, b'\xFF'),
        ('sint8', 200, b'\x7F'),
        ('speed', 1000, b'\xFF\xFF'),
        ('altitude', -600, b'\xFF\xFF'),
        ('distance', math.nan, b'\xFF\xFF\xFF\xFF'),
        ('uint16', math.inf, b'\xFF\xFF'),
    ])
    def test_unrepresentable_values_are_invalid(self, type_name, value, expected):
        '''Tests that values outside the base type are written as the invalid value'''
        assert encode_field(lookup(type_name), value) == expected

    def test_scaled_rounding_is_half_away_from_zero(self):
        assert encode_field(lookup('speed'), 0.125) == (13).to_bytes(2, 'little')
        assert encode_field(lookup('sint8'), -2.5) == (-3).to_bytes(1, 'little', signed=True)


class TestDecodeField:
    '''Set of tests for decoding field bytes back into semantic values.'''

    @pytest.mark.parametrize("type_name,value", [
        ('distance', 1234.5),
        ('speed', 5.25),
        ('seconds', 3600.5),
        ('uint16', 4321),
        ('sint8', -12),
        ('enum_sport', 'running'),
        ('enum_manufacturer', 'strava'),
        ('string', 'Morning ride'),
    ])
    def test_round_trip(self, type_name, value):
        descriptor = lookup(type_name)
        assert decode_field(descriptor, encode_field(descriptor, value)) == value

    def test_altitude_round_trip(self):
        descriptor = lookup('altitude')
        assert decode_field(descriptor, encode_field(descriptor, 100.2)) == pytest.approx(100.2)

    def test_round_trip_to_resolution(self):
        '''Tests that values finer than the scale come back rounded to it'''
        descriptor = lookup('distance')
        assert decode_field(descriptor, encode_field(descriptor, 12.3456)) == pytest.approx(12.346)

    def test_semicircles_round_trip(self):
        descriptor = lookup('semicircles')
        assert decode_field(descriptor, encode_field(descriptor, 51.5)) == pytest.approx(51.5, abs=1e-7)

    def test_date_time_decodes_to_aware_datetime(self):
        descriptor = lookup('date_time')
        value = decode_field(descriptor, encode_field(descriptor, 1700000000))
        assert value == datetime.datetime(2023, 11, 14, 22, 13, 20, tzinfo=datetime.timezone.utc)

    def test_invalid_value_is_absent(self):
        assert decode_field(lookup('uint8'), b'\xFF') is None
        assert decode_field(lookup('uint32z'), b'\x00\x00\x00\x00') is None
        assert decode_field(lookup('string'), b'\x00') is None

    def test_unnamed_enum_code_is_returned_raw(self):
        assert decode_field(lookup('enum_sport'), b'\xC8') == 200

    def test_big_endian(self):
        assert decode_field(lookup('uint16'), b'\x01\x2C', '>') == 300

    def test_short_data_raises(self):
        with pytest.raises(FramingError):
            decode_field(lookup('uint32'), b'\x01\x02')


class TestBaseValues:
    '''Set of tests for fields without a registered type.'''

    def test_array(self):
        assert decode_base_value(FIT.BASE_TYPE['UINT16'], b'\x01\x00\xFF\xFF\x03\x00') == [1, None, 3]

    def test_all_invalid_is_absent(self):
        assert decode_base_value(FIT.BASE_TYPE['UINT8'], b'\xFF\xFF') is None

    def test_float(self):
        assert decode_base_value(FIT.BASE_TYPE['FLOAT32'], struct.pack('<f', 1.5)) == 1.5

    def test_layout_mismatch_returns_bytes(self):
        assert decode_base_value(FIT.BASE_TYPE['UINT32'], b'\x01\x02\x03') == b'\x01\x02\x03'


class TestUtil:
    '''Set of tests for the conversion helpers.'''

    def test_round_half_away(self):
        assert util.round_half_away(2.5) == 3
        assert util.round_half_away(-2.5) == -3
        assert util.round_half_away(2.4) == 2

    def test_iso_string_timestamp(self):
        assert util.convert_to_fit_timestamp('2023-11-14T22:13:20Z') == 1068934400

    def test_naive_datetime_is_utc(self):
        assert util.convert_to_fit_timestamp(datetime.datetime(2023, 11, 14, 22, 13, 20)) == 1068934400

    def test_fractional_fit_timestamp_is_floored(self):
        assert util.convert_to_fit_timestamp(500.7) == 500

    def test_fit_epoch(self):
        assert util.convert_timestamp_to_datetime(0) == datetime.datetime(1989, 12, 31, tzinfo=datetime.timezone.utc)

    def test_decode_string_stops_at_null(self):
        assert util.decode_string(b'abc\x00def') == 'abc'

    def test_encode_utf8_matches_codec(self):
        text = 'Zürich → 東京 🚴'
        assert bytes(util.encode_utf8(text)) == text.encode('utf-8')
