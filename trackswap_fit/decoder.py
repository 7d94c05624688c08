'''decoder.py: Contains the decoder class which is used to decode fit files.'''

import logging
import struct
from typing import NamedTuple

from garmin_fit_sdk import CrcCalculator, Stream

from . import fit as FIT
from .errors import ChecksumMismatchError, HeaderError, SizeMismatchError, TruncatedFileError
from .framer import Message, MessageReader

logger = logging.getLogger(__name__)


class FileHeader(NamedTuple):
    header_size: int
    protocol_version: int
    profile_version: int
    data_size: int
    data_type: bytes
    crc: int = None

    @property
    def file_size(self) -> int:
        '''Bytes of header, record stream and trailing CRC.'''
        return self.header_size + self.data_size + FIT.CRC_SIZE


class FitFile(NamedTuple):
    header: FileHeader
    messages: list
    crc: int

    def messages_by_key(self) -> dict:
        return group_messages(self.messages)


def group_messages(messages) -> dict:
    '''
    Groups messages into lists keyed like 'record_mesgs', in file order.

    Messages missing from the profile are keyed by their global number.
    '''
    grouped = {}
    for message in messages:
        key = f'{message.name}_mesgs' if message.name else message.mesg
        grouped.setdefault(key, []).append(message.fields)
    return grouped


def _parse_header(buffer) -> FileHeader:
    header_size, protocol_version, profile_version, data_size, data_type = \
        struct.unpack_from('<BBHI4s', buffer, 0)
    crc = None
    if header_size >= FIT.HEADER_WITH_CRC_SIZE and len(buffer) >= FIT.HEADER_WITH_CRC_SIZE:
        crc = struct.unpack_from('<H', buffer, 12)[0]
    return FileHeader(header_size, protocol_version, profile_version, data_size, data_type, crc)


def _header_problem(header: FileHeader, buffer):
    '''(error class, message) describing what is wrong with the header, or None.'''
    if header.header_size not in (FIT.HEADER_WITH_CRC_SIZE, FIT.HEADER_WITHOUT_CRC_SIZE):
        return HeaderError, f"FIT Runtime Error header size {header.header_size} is not 12 or 14"
    if header.data_type != FIT.FIT_DATA_TYPE:
        return HeaderError, f"FIT Runtime Error data type {header.data_type!r} is not '.FIT'"
    if header.crc:
        computed = CrcCalculator.calculate_crc(buffer, 0, FIT.HEADER_WITHOUT_CRC_SIZE)
        if computed != header.crc:
            return ChecksumMismatchError, \
                f"FIT Runtime Error header CRC 0x{header.crc:04X} does not match 0x{computed:04X}"
    return None


class Decoder:
    '''
    A class for decoding a FIT file from a garmin_fit_sdk Stream.

    Attributes:
        _stream: The stream holding the file bytes.
        _buffer: Every byte of the stream, read on first use.
        _profile: Message profile used to name and decode fields.
        _plugins: Optional PluginRegistry applied by read_messages.
    '''

    def __init__(self, stream: Stream, profile: dict = None, plugins=None):
        if stream is None:
            raise RuntimeError("FIT Runtime Error stream parameter is None.")
        self._stream = stream
        self._buffer = None
        self._profile = profile
        self._plugins = plugins

    @property
    def buffer(self) -> bytes:
        if self._buffer is None:
            self._stream.reset()
            self._buffer = bytes(self._stream.read_bytes(self._stream.get_length()))
            self._stream.reset()
        return self._buffer

    def is_fit(self) -> bool:
        '''True when the stream starts with a well-formed FIT header.'''
        buffer = self.buffer
        if len(buffer) < FIT.HEADER_WITHOUT_CRC_SIZE:
            return False
        header = _parse_header(buffer)
        return header.header_size in (FIT.HEADER_WITH_CRC_SIZE, FIT.HEADER_WITHOUT_CRC_SIZE) \
            and header.data_type == FIT.FIT_DATA_TYPE

    def read_header(self) -> FileHeader:
        '''
        Parses and validates the header without checking the file CRC.

        Raises:
            TruncatedFileError: Too few bytes for a header.
            HeaderError: Malformed header.
            ChecksumMismatchError: Header CRC does not match.
        '''
        buffer = self.buffer
        if len(buffer) < FIT.HEADER_WITHOUT_CRC_SIZE:
            raise TruncatedFileError(f"FIT Runtime Error {len(buffer)} bytes is too short for a header")
        header = _parse_header(buffer)
        problem = _header_problem(header, buffer)
        if problem is not None:
            error_class, message = problem
            raise error_class(message)
        return header

    def check_integrity(self) -> FileHeader:
        '''
        Validates the declared sizes and both CRCs before any record is read.

        With a 14-byte header, any single corrupted byte surfaces as a
        ChecksumMismatchError: the header CRC guards the size fields.

        Returns:
            FileHeader: The validated header.

        Raises:
            TruncatedFileError: Fewer bytes than the header declares.
            SizeMismatchError: More bytes than the header declares.
            ChecksumMismatchError: The trailing or header CRC does not match.
            HeaderError: The header is malformed.
        '''
        buffer = self.buffer
        if len(buffer) < FIT.HEADER_WITHOUT_CRC_SIZE + FIT.CRC_SIZE:
            raise TruncatedFileError(f"FIT Runtime Error {len(buffer)} bytes is too short for a FIT file")

        header = _parse_header(buffer)
        problem = _header_problem(header, buffer)
        if problem is None:
            if len(buffer) < header.file_size:
                raise TruncatedFileError(
                    f"FIT Runtime Error file is {len(buffer)} bytes, header declares {header.file_size}")
            if len(buffer) > header.file_size:
                raise SizeMismatchError(
                    f"FIT Runtime Error file is {len(buffer)} bytes, header declares {header.file_size}")

        end = len(buffer) - FIT.CRC_SIZE
        computed = CrcCalculator.calculate_crc(buffer, 0, end)
        expected = struct.unpack_from('<H', buffer, end)[0]
        if computed != expected:
            raise ChecksumMismatchError(
                f"FIT Runtime Error file CRC 0x{expected:04X} does not match 0x{computed:04X}",
                expected=expected, actual=computed)

        if problem is not None:
            error_class, message = problem
            raise error_class(message)
        return header

    def read(self) -> FitFile:
        '''
        Decodes the whole file.

        Returns:
            FitFile: The header, the messages in file order and the file CRC.

        Raises:
            IntegrityError: See check_integrity; nothing is decoded then.
            FramingError: The record stream is malformed.
        '''
        header = self.check_integrity()
        logger.debug("Reading FIT file: header %d bytes, protocol 0x%02X, profile %d, %d data bytes",
                     header.header_size, header.protocol_version, header.profile_version, header.data_size)

        end = header.header_size + header.data_size
        records = Stream.from_byte_array(self.buffer, end)
        records.seek(header.header_size)
        reader = MessageReader(records, self._profile)

        messages = []
        while reader.remaining():
            record = reader.read_record()
            if isinstance(record, Message):
                messages.append(record)

        crc = struct.unpack_from('<H', self.buffer, end)[0]
        return FitFile(header, messages, crc)

    def read_messages(self, context: dict = None) -> dict:
        '''
        Decodes the file into lists keyed like 'record_mesgs'.

        Registered plugins run over the grouped messages before they are returned.
        '''
        messages = self.read().messages_by_key()
        if self._plugins is not None:
            messages = self._plugins.apply(messages, context)
        return messages


def decode(buffer, profile: dict = None) -> FitFile:
    '''
    Decodes a FIT file held in memory.

    Raises:
        IntegrityError: The file is truncated, oversized or fails a CRC.
        FramingError: The header or record stream is malformed.
    '''
    return Decoder(Stream.from_byte_array(buffer), profile=profile).read()
