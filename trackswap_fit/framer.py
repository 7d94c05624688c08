'''framer.py: Contains the writer and reader for FIT definition and data records.'''

import logging
import struct
from typing import NamedTuple, Optional

from garmin_fit_sdk import Stream

from . import field_types
from . import fit as FIT
from . import profile as profiles
from . import util
from .codec import decode_base_value, decode_field, encode_field
from .errors import FramingError

logger = logging.getLogger(__name__)

TIMESTAMP_FIELD_NUM = 253
COMPRESSED_TIME_MASK = 0x1F
COMPRESSED_LOCAL_MESGS = 4


class FieldDefinition(NamedTuple):
    num: int
    size: int
    base_type: int


class DeveloperFieldDefinition(NamedTuple):
    num: int
    size: int
    developer_data_index: int


class MessageDefinition(NamedTuple):
    '''Layout bound to a local message slot until the slot is redefined.'''
    local_num: int
    mesg_num: int
    architecture: int
    field_definitions: tuple
    developer_field_definitions: tuple = ()

    @property
    def byte_order(self) -> str:
        return FIT.BYTE_ORDER[self.architecture]

    @property
    def data_size(self) -> int:
        return (sum(field.size for field in self.field_definitions)
                + sum(field.size for field in self.developer_field_definitions))


class DataRecord(NamedTuple):
    local_num: int
    values: tuple


class Message(NamedTuple):
    '''
    One message instance.

    Attributes:
        mesg: Global message number, or a message name when encoding.
        fields: Field name -> semantic value, only fields that are present.
        name: Profile name of the message, None when the profile lacks it.
    '''
    mesg: object
    fields: dict
    name: Optional[str] = None


def _check_local_num(local_num: int):
    if not 0 <= local_num < FIT.MAX_LOCAL_MESGS:
        raise FramingError(f"FIT Runtime Error local message number {local_num} outside 0-15")


class MessageWriter:
    '''
    Writes definition and data records for one file.

    A definition record is emitted the first time a local slot is used and
    again whenever a message of a different shape is written to it.

    Attributes:
        _buffer: The record stream written so far.
        _local_mesg_defs: Definition bound to each of the 16 local slots.
    '''

    def __init__(self, profile: dict = None):
        self._profile = profiles.Profile if profile is None else profile
        self._buffer = bytearray()
        self._local_mesg_defs = [None] * FIT.MAX_LOCAL_MESGS
        self.definitions_written = 0
        self.records_written = 0

    @property
    def buffer(self) -> bytes:
        return bytes(self._buffer)

    @property
    def data_size(self) -> int:
        return len(self._buffer)

    def local_definition(self, local_num: int) -> Optional[MessageDefinition]:
        return self._local_mesg_defs[local_num]

    def _append(self, data):
        self._buffer.extend(data)

    def _present_fields(self, message: dict, values: dict) -> list:
        '''(field profile, descriptor, value) of supplied fields, in profile order.'''
        for field_name in values:
            if field_name != 'mesg_num':
                profiles.get_field(message, field_name)

        present = []
        for field in message['fields'].values():
            value = values.get(field['name'])
            if value is None:
                continue
            descriptor = field_types.lookup(field['type'])
            if descriptor.is_string:
                # truncated once here so the size and the bytes agree
                value = descriptor.to_wire(value)
            present.append((field, descriptor, value))
        return present

    def build_definition(self, local_num: int, message: dict, present: list) -> MessageDefinition:
        field_definitions = tuple(
            FieldDefinition(field['num'], descriptor.wire_size(value), descriptor.base_type)
            for field, descriptor, value in present
        )
        return MessageDefinition(local_num, message['num'], FIT.ARCH_LITTLE_ENDIAN, field_definitions)

    def write_definition(self, definition: MessageDefinition):
        _check_local_num(definition.local_num)
        record = bytearray()
        record.append(FIT.RECORD_HEADER_DEFINITION_MASK | definition.local_num)
        record.append(0)  # reserved
        record.append(definition.architecture)
        record.extend(struct.pack('<H', definition.mesg_num))
        record.append(len(definition.field_definitions))
        for field in definition.field_definitions:
            record.append(field.num)
            record.append(field.size)
            record.append(field.base_type)
        self._append(record)

        self._local_mesg_defs[definition.local_num] = definition
        self.definitions_written += 1
        logger.debug("Bound local message %d to global %d with %d fields",
                     definition.local_num, definition.mesg_num, len(definition.field_definitions))

    def write_data(self, record: DataRecord):
        definition = self._local_mesg_defs[record.local_num]
        if definition is None:
            raise FramingError(f"FIT Runtime Error local message {record.local_num} has no definition")
        self._append(bytes([record.local_num]) + b''.join(record.values))
        self.records_written += 1

    def write_message(self, local_num: int, mesg, values: dict) -> Optional[DataRecord]:
        '''
        Writes one message, preceded by a definition record when needed.

        Args:
            local_num: Local slot 0-15.
            mesg: Global message number or message name.
            values: Field name -> semantic value; None values are skipped.

        Returns:
            DataRecord: The written record, or None if no field was present.

        Raises:
            UnknownTypeError: Unknown message or field name.
            FramingError: local_num outside 0-15.
        '''
        _check_local_num(local_num)
        message = profiles.get_message(mesg, self._profile)
        present = self._present_fields(message, values)
        if not present:
            logger.debug("Skipping '%s' message with no fields present", message['name'])
            return None

        definition = self.build_definition(local_num, message, present)
        if self._local_mesg_defs[local_num] != definition:
            self.write_definition(definition)

        record = DataRecord(local_num, tuple(
            encode_field(descriptor, value) for _, descriptor, value in present
        ))
        self.write_data(record)
        return record


class MessageReader:
    '''
    Reads records from a stream positioned at the start of the record stream.

    The stream length bounds the record stream; a record running past it is
    a framing error.

    Attributes:
        _stream: garmin_fit_sdk Stream the records are read from.
        _local_mesg_defs: Definition bound to each of the 16 local slots.
        _last_timestamp: Last full FIT timestamp, for compressed headers.
    '''

    def __init__(self, stream: Stream, profile: dict = None):
        self._stream = stream
        self._profile = profiles.Profile if profile is None else profile
        self._local_mesg_defs = [None] * FIT.MAX_LOCAL_MESGS
        self._last_timestamp = None

    def local_definition(self, local_num: int) -> Optional[MessageDefinition]:
        return self._local_mesg_defs[local_num]

    def remaining(self) -> int:
        return self._stream.get_length() - self._stream.position()

    def _read_bytes(self, size: int) -> bytes:
        if size > self.remaining():
            raise FramingError(f"FIT Runtime Error record runs past the end of the data at byte {self._stream.position()}")
        return self._stream.read_bytes(size)

    def _read_byte(self) -> int:
        return self._read_bytes(1)[0]

    def read_record(self):
        '''
        Reads the next record.

        Returns:
            MessageDefinition for a definition record, Message for a data record.

        Raises:
            FramingError: Malformed record header, a record running past the end of the data
                or a data record for an unbound slot.
        '''
        position = self._stream.position()
        header = self._read_byte()

        if header & FIT.RECORD_HEADER_COMPRESSED_MASK:
            local_num = (header >> 5) & (COMPRESSED_LOCAL_MESGS - 1)
            return self._read_data(local_num, time_offset=header & COMPRESSED_TIME_MASK)

        if header & FIT.RECORD_HEADER_RESERVED_MASK:
            raise FramingError(f"FIT Runtime Error malformed record header 0x{header:02X} at byte {position}")

        local_num = header & FIT.RECORD_HEADER_LOCAL_MESG_NUM_MASK
        if header & FIT.RECORD_HEADER_DEFINITION_MASK:
            return self._read_definition(local_num, bool(header & FIT.RECORD_HEADER_DEV_DATA_MASK))
        return self._read_data(local_num)

    def _read_definition(self, local_num: int, has_developer_data: bool) -> MessageDefinition:
        self._read_byte()  # reserved
        architecture = self._read_byte()
        if architecture not in FIT.BYTE_ORDER:
            raise FramingError(f"FIT Runtime Error unknown architecture {architecture}")
        byte_order = FIT.BYTE_ORDER[architecture]
        mesg_num = struct.unpack(byte_order + 'H', self._read_bytes(2))[0]

        field_definitions = []
        for _ in range(self._read_byte()):
            num, size, base_type = self._read_bytes(3)
            field_definitions.append(FieldDefinition(num, size, self._normalize_base_type(base_type, size)))

        developer_field_definitions = []
        if has_developer_data:
            for _ in range(self._read_byte()):
                developer_field_definitions.append(DeveloperFieldDefinition(*self._read_bytes(3)))

        definition = MessageDefinition(local_num, mesg_num, architecture,
                                       tuple(field_definitions), tuple(developer_field_definitions))
        self._local_mesg_defs[local_num] = definition
        logger.debug("Read definition of local message %d: global %d, %d fields",
                     local_num, mesg_num, len(field_definitions))
        return definition

    @staticmethod
    def _normalize_base_type(base_type: int, size: int) -> int:
        if size == 0:
            raise FramingError("FIT Runtime Error field definition with size 0")
        if base_type in FIT.BASE_TYPE_DEFINITIONS:
            return base_type
        tag = FIT.BASE_TYPE_NUMBER_TO_TAG.get(base_type & 0x1F)
        if tag is None:
            raise FramingError(f"FIT Runtime Error unknown base type 0x{base_type:02X}")
        return tag

    def _read_data(self, local_num: int, time_offset: int = None) -> Message:
        definition = self._local_mesg_defs[local_num]
        if definition is None:
            raise FramingError(f"FIT Runtime Error data record for undefined local message {local_num}")

        message = profiles.find_message(definition.mesg_num, self._profile)
        byte_order = definition.byte_order
        fields = {}

        for field_definition in definition.field_definitions:
            data = self._read_bytes(field_definition.size)
            name, value = self._decode_field(message, field_definition, data, byte_order)
            if field_definition.num == TIMESTAMP_FIELD_NUM:
                self._track_timestamp(field_definition, data, byte_order)
            if value is not None:
                fields[name] = value

        if definition.developer_field_definitions:
            developer_fields = {}
            for developer_field in definition.developer_field_definitions:
                developer_fields[(developer_field.developer_data_index, developer_field.num)] = \
                    self._read_bytes(developer_field.size)
            fields['developer_fields'] = developer_fields

        if time_offset is not None:
            fields['timestamp'] = util.convert_timestamp_to_datetime(self._expand_timestamp(time_offset))

        return Message(definition.mesg_num, fields, message['name'] if message else None)

    @staticmethod
    def _decode_field(message: Optional[dict], field_definition: FieldDefinition, data, byte_order: str):
        field = message['fields'].get(field_definition.num) if message else None
        if field is None:
            return f'field_{field_definition.num}', decode_base_value(field_definition.base_type, data, byte_order)

        descriptor = field_types.lookup(field['type'])
        wire_size = FIT.BASE_TYPE_DEFINITIONS[field_definition.base_type]['size']
        if descriptor.is_string:
            matches = field_definition.base_type == FIT.BASE_TYPE['STRING']
        else:
            matches = field_definition.size == descriptor.size == wire_size
        if matches:
            return field['name'], decode_field(descriptor, data, byte_order)
        return field['name'], decode_base_value(field_definition.base_type, data, byte_order)

    def _track_timestamp(self, field_definition: FieldDefinition, data, byte_order: str):
        if field_definition.size != 4:
            return
        raw = struct.unpack(byte_order + 'I', data)[0]
        if raw != FIT.BASE_TYPE_DEFINITIONS[FIT.BASE_TYPE['UINT32']]['invalid']:
            self._last_timestamp = raw

    def _expand_timestamp(self, time_offset: int) -> int:
        if self._last_timestamp is None:
            raise FramingError("FIT Runtime Error compressed timestamp before any full timestamp")
        timestamp = (self._last_timestamp & ~COMPRESSED_TIME_MASK) + time_offset
        if time_offset < (self._last_timestamp & COMPRESSED_TIME_MASK):
            timestamp += COMPRESSED_TIME_MASK + 1
        self._last_timestamp = timestamp
        return timestamp
