'''encoder.py: Contains the encoder class which is used to encode fit files.'''

import logging
import struct

from garmin_fit_sdk import CrcCalculator

from . import fit as FIT
from . import profile as profiles
from .errors import FramingError, HeaderError
from .framer import Message, MessageWriter

logger = logging.getLogger(__name__)

def create_header(data_size: int, header_size: int = FIT.HEADER_WITH_CRC_SIZE,
                  protocol_version: int = FIT.PROTOCOL_VERSION,
                  profile_version: int = FIT.PROFILE_VERSION) -> bytes:
    '''
    Creates the FIT file header.

    Args:
        data_size: Byte length of the record stream.
        header_size: 14 to append a header CRC, 12 to omit it.

    Raises:
        HeaderError: Unsupported header size.
        FramingError: The record stream is too long for the data size field.
    '''
    if header_size not in (FIT.HEADER_WITH_CRC_SIZE, FIT.HEADER_WITHOUT_CRC_SIZE):
        raise HeaderError(f"FIT Runtime Error header size must be 12 or 14, got {header_size}")
    if data_size > 0xFFFFFFFF:
        raise FramingError(f"FIT Runtime Error record stream of {data_size} bytes is too long")

    header = bytearray()
    header.append(header_size)
    header.append(protocol_version)
    header.extend(struct.pack('<H', profile_version))
    header.extend(struct.pack('<I', data_size))
    header.extend(FIT.FIT_DATA_TYPE)
    if header_size == FIT.HEADER_WITH_CRC_SIZE:
        header.extend(struct.pack('<H', CrcCalculator.calculate_crc(header, 0, 12)))
    return bytes(header)


def _as_message(message) -> Message:
    if isinstance(message, Message):
        return message
    mesg, fields = message
    return Message(mesg, fields)


def _with_file_id(file_type, messages: list, profile: dict) -> list:
    '''Puts a file_id message carrying file_type at the front.'''
    for index, message in enumerate(messages):
        if profiles.get_message(message.mesg, profile)['num'] == profiles.MESG_NUM['FILE_ID']:
            fields = message.fields
            if fields.get('type') is None:
                fields = dict(fields, type=file_type)
            return [Message(message.mesg, fields)] + messages[:index] + messages[index + 1:]
    return [Message('file_id', {'type': file_type})] + messages


def encode(file_type, ordered_messages, header_size: int = FIT.HEADER_WITH_CRC_SIZE,
           protocol_version: int = FIT.PROTOCOL_VERSION,
           profile_version: int = FIT.PROFILE_VERSION, profile: dict = None) -> bytes:
    '''
    Encodes messages into a complete FIT file.

    Each message kind gets its own local slot in order of first appearance;
    past 16 kinds the slots wrap around and are redefined as needed.

    Args:
        file_type: Value for file_id.type (e.g. 'activity'), or None to leave
            the messages untouched.
        ordered_messages: Message instances or (mesg, fields) pairs, written
            in this order.
        header_size: 14 (with header CRC) or 12.
        profile: Message profile, the module Profile by default.

    Returns:
        bytes: Header, record stream and trailing CRC.

    Raises:
        UnknownTypeError: Unknown message, field or field type.
        FramingError: The record stream cannot be framed.
    '''
    if profile is None:
        profile = profiles.Profile
    messages = [_as_message(message) for message in ordered_messages]
    if file_type is not None:
        messages = _with_file_id(file_type, messages, profile)

    writer = MessageWriter(profile)
    local_nums = {}
    for message in messages:
        mesg_num = profiles.get_message(message.mesg, profile)['num']
        local_num = local_nums.get(mesg_num)
        if local_num is None:
            local_num = len(local_nums) % FIT.MAX_LOCAL_MESGS
            if len(local_nums) >= FIT.MAX_LOCAL_MESGS:
                logger.warning("More than %d message kinds, reusing local message %d for global %d",
                               FIT.MAX_LOCAL_MESGS, local_num, mesg_num)
            local_nums[mesg_num] = local_num
        writer.write_message(local_num, mesg_num, message.fields)

    header = create_header(writer.data_size, header_size, protocol_version, profile_version)
    data = writer.buffer
    crc_calculator = CrcCalculator()
    crc_calculator.add_bytes(header, 0, len(header))
    crc_calculator.add_bytes(data, 0, len(data))

    logger.debug("Encoded %d definition and %d data records, %d bytes",
                 writer.definitions_written, writer.records_written, writer.data_size)
    return header + data + struct.pack('<H', crc_calculator.get_crc())


class Encoder:
    '''
    A class for encoding messages into a FIT file format.

    Attributes:
        _messages: The messages to be encoded, keyed like 'record_mesgs'.
    '''

    def __init__(self, messages: dict, file_type=None, header_size: int = FIT.HEADER_WITH_CRC_SIZE,
                 protocol_version: int = FIT.PROTOCOL_VERSION,
                 profile_version: int = FIT.PROFILE_VERSION, profile: dict = None):
        '''Initialize encoder with messages to encode.

        Args:
            messages: dict mapping message keys ('record_mesgs', a message name
                or a global number) to lists of field dicts
            file_type: file_id type to enforce, if any
        '''
        if messages is None:
            raise RuntimeError("FIT Runtime Error messages parameter is None.")

        self._messages = messages
        self._file_type = file_type
        self._header_size = header_size
        self._protocol_version = protocol_version
        self._profile_version = profile_version
        self._profile = profiles.Profile if profile is None else profile

    def _mesg_for_key(self, key):
        if isinstance(key, str) and key.isdigit():
            key = int(key)
        return profiles.get_message(key, self._profile)['num']

    def ordered_messages(self) -> list:
        '''file_id messages first, then every other key in insertion order.'''
        file_id = profiles.MESG_NUM['FILE_ID']
        keys = sorted(self._messages, key=lambda key: self._mesg_for_key(key) != file_id)
        ordered = []
        for key in keys:
            mesg_num = self._mesg_for_key(key)
            ordered.extend(Message(mesg_num, fields) for fields in self._messages[key])
        return ordered

    def write_to_bytes(self) -> bytearray:
        '''
        Writes the messages to a bytearray in FIT format.

        Returns:
            bytearray: The encoded FIT data
        '''
        return bytearray(encode(self._file_type, self.ordered_messages(),
                                header_size=self._header_size,
                                protocol_version=self._protocol_version,
                                profile_version=self._profile_version,
                                profile=self._profile))

    def write_to_file(self, filename: str) -> bool:
        '''
        Writes the messages to a FIT file.

        The whole file is encoded before it is opened, so a failed encode
        leaves nothing behind.

        Args:
            filename: The path where the FIT file should be written

        Returns:
            bool: True once the file is written
        '''
        data = self.write_to_bytes()
        with open(filename, 'wb') as f:
            f.write(data)
        return True
