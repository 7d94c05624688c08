'''util.py: Contains conversion helpers shared by the field types and the codec.'''

import datetime
import logging
import math

from garmin_fit_sdk.util import FIT_EPOCH_S, convert_timestamp_to_datetime

logger = logging.getLogger(__name__)

# Numbers above this are taken to be millisecond Unix timestamps
MILLISECOND_TIMESTAMP_THRESHOLD = 9999999999

SEMICIRCLES_PER_HALF_TURN = 2 ** 31

# Field sizes are a single byte
MAX_STRING_SIZE = 255


def round_half_away(value: float) -> int:
    '''Rounds to the nearest integer, with ties going away from zero.'''
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def degrees_to_semicircles(degrees: float) -> int:
    return round_half_away(degrees / 180 * SEMICIRCLES_PER_HALF_TURN)


def semicircles_to_degrees(semicircles: int) -> float:
    return semicircles * 180 / SEMICIRCLES_PER_HALF_TURN


def parse_iso_datetime(value: str) -> datetime.datetime:
    '''Parses an ISO-8601 string, accepting a trailing Z.'''
    value = value.strip()
    if value.endswith(('Z', 'z')):
        value = value[:-1] + '+00:00'
    return datetime.datetime.fromisoformat(value)


def datetime_to_unix(value) -> float:
    '''Unix seconds for a date or datetime; naive values are treated as UTC.'''
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.timestamp()


def convert_to_fit_timestamp(value) -> int:
    '''
    Converts a calendar value or a number to seconds since the FIT epoch.

    Numbers below the FIT epoch offset are assumed to be FIT-relative already
    and are only floored. Numbers above 9,999,999,999 are Unix milliseconds.
    Anything else is Unix seconds. A FIT-relative value that happens to be
    larger than 631065600 (any instant after 2009-12-29) cannot be told apart
    from a Unix timestamp and is converted as one.

    Args:
        value: datetime, date, ISO-8601 string, or int/float.

    Returns:
        int: The FIT timestamp.
    '''
    if isinstance(value, str):
        value = parse_iso_datetime(value)
    if isinstance(value, (datetime.datetime, datetime.date)):
        return math.floor(datetime_to_unix(value)) - FIT_EPOCH_S

    if value < FIT_EPOCH_S:
        return math.floor(value)
    if value > MILLISECOND_TIMESTAMP_THRESHOLD:
        return math.floor(value / 1000) - FIT_EPOCH_S
    return math.floor(value) - FIT_EPOCH_S


def encode_utf8(value: str) -> bytearray:
    '''
    UTF-8 encodes value code point by code point (RFC 3629 byte patterns).

    Lone surrogates are written with the 3-byte pattern rather than rejected,
    so every str has an encoding. No terminator is appended.
    '''
    encoded = bytearray()
    for char in value:
        code_point = ord(char)
        if code_point < 0x80:
            encoded.append(code_point)
        elif code_point < 0x800:
            encoded.append(0xC0 | (code_point >> 6))
            encoded.append(0x80 | (code_point & 0x3F))
        elif code_point < 0x10000:
            encoded.append(0xE0 | (code_point >> 12))
            encoded.append(0x80 | ((code_point >> 6) & 0x3F))
            encoded.append(0x80 | (code_point & 0x3F))
        else:
            encoded.append(0xF0 | (code_point >> 18))
            encoded.append(0x80 | ((code_point >> 12) & 0x3F))
            encoded.append(0x80 | ((code_point >> 6) & 0x3F))
            encoded.append(0x80 | (code_point & 0x3F))
    return encoded


def encode_string(value: str) -> bytes:
    '''The FIT wire form of a string: UTF-8 bytes plus a null terminator.'''
    return bytes(encode_utf8(value) + b'\x00')


def encoded_strlen(value: str) -> int:
    '''Byte length of the FIT wire form of value, terminator included.'''
    return len(encode_utf8(value)) + 1


def fit_string(value) -> str:
    '''
    value as a str short enough for a one-byte field size.

    Longer values lose whole code points from the end until the encoded form,
    terminator included, fits in MAX_STRING_SIZE bytes; a warning is logged.
    '''
    value = str(value)
    encoded = encode_utf8(value)
    if len(encoded) < MAX_STRING_SIZE:
        return value

    cut = MAX_STRING_SIZE - 1
    while cut > 0 and encoded[cut] & 0xC0 == 0x80:
        cut -= 1
    kept = sum(1 for byte in encoded[:cut] if byte & 0xC0 != 0x80)
    logger.warning("Truncating a %d byte string to %d bytes: %r...", len(encoded), cut, value[:20])
    return value[:kept]


def decode_string(data: bytes) -> str:
    '''Decodes a FIT string field, stopping at the first null byte.'''
    end = data.find(b'\x00')
    if end != -1:
        data = data[:end]
    return bytes(data).decode('utf-8', errors='replace')
