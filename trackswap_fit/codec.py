'''codec.py: Contains the field codec mapping semantic values to FIT field bytes.'''

import logging
import math
import struct

from . import fit as FIT
from . import util
from .errors import FramingError
from .field_types import FieldTypeDescriptor

logger = logging.getLogger(__name__)

_FLOAT_TYPE_CODES = ('f', 'd')


def _in_range(base_type_def: dict, wire_value) -> bool:
    if base_type_def['min'] is None:
        return True
    return base_type_def['min'] <= wire_value <= base_type_def['max']


def _is_non_finite(value) -> bool:
    return isinstance(value, float) and not math.isfinite(value)


def encode_field(descriptor: FieldTypeDescriptor, value) -> bytes:
    '''
    Encodes a semantic value into the bytes of one field.

    Values the base type cannot hold (out of range, NaN) are written as the
    base type's invalid value, which decodes back to an absent field.

    Args:
        descriptor: The field type from the registry.
        value: The semantic value, e.g. meters for 'distance'.

    Returns:
        bytes: Exactly descriptor.wire_size(value) bytes.
    '''
    if descriptor.is_string:
        return descriptor.write(descriptor.to_wire(value))

    if _is_non_finite(value):
        wire_value = descriptor.invalid
    else:
        wire_value = descriptor.to_wire(value)
        if not _in_range(descriptor.base_type_definition, wire_value):
            logger.debug("Value %r of type '%s' does not fit the wire, writing invalid",
                         value, descriptor.name)
            wire_value = descriptor.invalid

    return descriptor.write(wire_value)


def decode_field(descriptor: FieldTypeDescriptor, data, byte_order: str = '<'):
    '''
    Decodes the bytes of one field back into a semantic value.

    Args:
        descriptor: The field type from the registry.
        data: The field bytes; strings are read up to their terminator.
        byte_order: struct prefix of the defining message's architecture.

    Returns:
        The semantic value, or None when the field holds the invalid value.

    Raises:
        FramingError: Fewer bytes than the field type needs.
    '''
    if descriptor.is_string:
        text = descriptor.read(data)
        return descriptor.from_wire(text) if text else None

    if len(data) < descriptor.size:
        raise FramingError(
            f"FIT Runtime Error field of type '{descriptor.name}' needs {descriptor.size} bytes, "
            f"got {len(data)}")

    raw = descriptor.read(data[:descriptor.size], byte_order)
    if raw == descriptor.invalid:
        return None
    return descriptor.from_wire(raw)


def decode_base_value(base_type: int, data, byte_order: str = '<'):
    '''
    Decodes bytes against a base type alone, without scale or enum names.

    A field wider than its base type is an array and decodes to a list.
    Invalid elements come back as None; an all-invalid field as None.
    '''
    base_type_def = FIT.BASE_TYPE_DEFINITIONS[base_type]
    if base_type == FIT.BASE_TYPE['STRING']:
        return util.decode_string(data) or None

    size = base_type_def['size']
    if not data or len(data) % size:
        # Layout disagrees with the base type, hand back the bytes
        return bytes(data)

    type_code = base_type_def['type_code']
    values = []
    for start in range(0, len(data), size):
        chunk = bytes(data[start:start + size])
        if type_code in _FLOAT_TYPE_CODES:
            invalid = chunk == b'\xFF' * size
            value = struct.unpack(byte_order + type_code, chunk)[0]
        else:
            value = struct.unpack(byte_order + type_code, chunk)[0]
            invalid = value == base_type_def['invalid']
        values.append(None if invalid else value)

    if all(value is None for value in values):
        return None
    return values[0] if len(values) == 1 else values
