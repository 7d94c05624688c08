'''test_roundtrip.py: Contains interoperability tests against the Garmin FIT SDK decoder'''


from io import BytesIO

import garmin_fit_sdk
import pytest

from trackswap_fit import Encoder, Message, encode
from trackswap_fit.builder import encode_activity, encode_course

START = 1700000000


def garmin_read(data):
    '''Decodes data with the Garmin SDK, checking header and CRC on the way.'''
    stream = garmin_fit_sdk.Stream.from_bytes_io(BytesIO(bytes(data)))
    decoder = garmin_fit_sdk.Decoder(stream)

    stream.reset()
    assert decoder.is_fit()
    stream.reset()
    assert decoder.check_integrity()
    stream.reset()
    messages, errors = decoder.read()

    assert len(errors) == 0, f"Decoding errors: {errors}"
    return messages


def make_activity() -> dict:
    records = [
        {
            'timestamp': START + i,
            'position_lat': 45.0,
            'position_long': 6.0 + i / 10000,
            'altitude': 100.0 + i,
            'heart_rate': 120 + i,
            'cadence': 85,
            'power': 200 + i,
        }
        for i in range(10)
    ]
    return {
        'file_id_mesgs': [{'manufacturer': 'development', 'product': 1}],
        'session_mesgs': [{
            'start_time': START,
            'timestamp': START + 10,
            'total_elapsed_time': 10,
            'total_timer_time': 10,
            'sport': 'running',
            'lap_mesgs': [{
                'start_time': START,
                'timestamp': START + 10,
                'total_elapsed_time': 10,
                'total_timer_time': 10,
                'record_mesgs': records,
            }],
        }],
    }


class TestGarminInterop:
    '''Set of tests verifying that the Garmin SDK reads what the encoder writes.'''

    def test_activity(self):
        messages = garmin_read(encode_activity(make_activity()))

        assert messages['file_id_mesgs'][0]['type'] == 'activity'
        assert len(messages['record_mesgs']) == 10
        assert len(messages['lap_mesgs']) == 1
        assert len(messages['session_mesgs']) == 1
        assert len(messages['event_mesgs']) == 2
        assert len(messages['activity_mesgs']) == 1
        assert messages['session_mesgs'][0]['sport'] == 'running'

    def test_record_values(self):
        record = garmin_read(encode_activity(make_activity()))['record_mesgs'][3]

        assert record['heart_rate'] == 123
        assert record['cadence'] == 85
        assert record['power'] == 203
        assert record['position_lat'] == 536870912
        assert record['altitude'] == pytest.approx(103.0)

    def test_event_types(self):
        events = garmin_read(encode_activity(make_activity()))['event_mesgs']
        assert [event['event_type'] for event in events] == ['start', 'stop_all']

    def test_course(self):
        messages = garmin_read(encode_course(make_activity(), course_name='Loop'))

        assert messages['file_id_mesgs'][0]['type'] == 'course'
        assert messages['course_mesgs'][0]['name'] == 'Loop'
        assert len(messages['record_mesgs']) == 10

    def test_twelve_byte_header(self):
        data = encode('activity', [Message('record', {'timestamp': START, 'heart_rate': 99})], header_size=12)
        messages = garmin_read(data)

        assert messages['record_mesgs'][0]['heart_rate'] == 99

    def test_encoder_strings(self):
        '''Tests that multi-byte UTF-8 names survive the Garmin decoder'''
        data = Encoder({'course_mesgs': [{'name': 'Col de l’Iseran – été'}]}, file_type='course').write_to_bytes()
        messages = garmin_read(data)

        assert messages['course_mesgs'][0]['name'] == 'Col de l’Iseran – été'

    def test_many_definitions(self):
        '''Tests that slot rebinds on shape changes are read correctly'''
        records = []
        for i in range(20):
            fields = {'timestamp': START + i, 'heart_rate': 100 + i}
            if i % 3 == 0:
                fields['power'] = 250
            records.append(Message('record', fields))
        messages = garmin_read(encode('activity', records))

        assert [record['heart_rate'] for record in messages['record_mesgs']] == [100 + i for i in range(20)]
        assert [('power' in record) for record in messages['record_mesgs']] == [i % 3 == 0 for i in range(20)]
