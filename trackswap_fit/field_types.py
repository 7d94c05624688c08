'''field_types.py: Contains the closed registry of field types and enum tables.'''

import struct
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Optional

from . import fit as FIT
from . import util
from .errors import UnknownTypeError


@dataclass(frozen=True)
class FieldTypeDescriptor:
    '''
    Wire layout and value transform of one field type.

    Attributes:
        name: Registry key, e.g. 'distance'.
        size: Wire size in bytes, 0 for variable-length strings.
        base_type: FIT base type tag written in definition records.
        to_wire: Maps a semantic value to the integer (or str) stored on the wire.
        from_wire: Inverse of to_wire.
        write: Packs a wire value into bytes.
        read: Unpacks bytes into a wire value, honouring a byte order.
        byte_order: struct prefix used when writing, always little-endian.
        enum_table: Name of the backing enum table, if any.
        scale: Multiplier applied by to_wire.
        offset: Added before scaling by to_wire.
    '''
    name: str
    size: int
    base_type: int
    to_wire: Callable
    from_wire: Callable
    write: Callable
    read: Callable
    byte_order: str = '<'
    enum_table: Optional[str] = None
    scale: float = 1
    offset: float = 0

    @property
    def base_type_definition(self) -> dict:
        return FIT.BASE_TYPE_DEFINITIONS[self.base_type]

    @property
    def invalid(self):
        return self.base_type_definition['invalid']

    @property
    def is_string(self) -> bool:
        return self.base_type == FIT.BASE_TYPE['STRING']

    def wire_size(self, value) -> int:
        '''Size this value takes on the wire; strings size themselves.'''
        if self.is_string:
            return util.encoded_strlen(self.to_wire(value))
        return self.size


ENUM_TABLES = MappingProxyType({
    'file': MappingProxyType({
        'device': 1,
        'settings': 2,
        'sport': 3,
        'activity': 4,
        'workout': 5,
        'course': 6,
        'schedules': 7,
        'weight': 9,
        'totals': 10,
        'goals': 11,
        'blood_pressure': 14,
        'monitoring_a': 15,
        'activity_summary': 20,
        'monitoring_daily': 28,
        'monitoring_b': 32,
        'segment_list': 35,
        'exd_configuration': 40,
    }),
    'sport': MappingProxyType({
        'generic': 0,
        'running': 1,
        'cycling': 2,
        'transition': 3,
        'fitness_equipment': 4,
        'swimming': 5,
        'basketball': 6,
        'soccer': 7,
        'tennis': 8,
        'american_football': 9,
        'training': 10,
        'walking': 11,
        'cross_country_skiing': 12,
        'alpine_skiing': 13,
        'snowboarding': 14,
        'rowing': 15,
        'mountaineering': 16,
        'hiking': 17,
        'multisport': 18,
        'paddling': 19,
        'invalid': 254,
    }),
    'sub_sport': MappingProxyType({
        'generic': 0,
        'treadmill': 1,
        'street': 2,
        'trail': 3,
        'track': 4,
        'spin': 5,
        'indoor_cycling': 6,
        'road': 7,
        'mountain': 8,
        'downhill': 9,
        'recumbent': 10,
        'cyclocross': 11,
        'hand_cycling': 12,
        'track_cycling': 13,
        'indoor_rowing': 14,
        'elliptical': 15,
        'stair_climbing': 16,
        'lap_swimming': 17,
        'open_water': 18,
        'virtual_activity': 58,
    }),
    'event': MappingProxyType({
        'timer': 0,
        'workout': 3,
        'workout_step': 4,
        'power_down': 5,
        'power_up': 6,
        'off_course': 7,
        'session': 8,
        'lap': 9,
        'course_point': 10,
        'battery': 11,
        'virtual_partner_pace': 12,
        'hr_high_alert': 13,
        'hr_low_alert': 14,
        'speed_high_alert': 15,
        'speed_low_alert': 16,
        'cad_high_alert': 17,
        'cad_low_alert': 18,
        'power_high_alert': 19,
        'power_low_alert': 20,
        'recovery_hr': 21,
        'battery_low': 22,
        'time_duration_alert': 23,
        'distance_duration_alert': 24,
        'calorie_duration_alert': 25,
        'activity': 26,
        'fitness_equipment': 27,
        'length': 28,
        'user_marker': 32,
        'sport_point': 33,
        'calibration': 36,
        'front_gear_change': 42,
        'rear_gear_change': 43,
        'rider_position_change': 44,
        'elev_high_alert': 45,
        'elev_low_alert': 46,
        'comm_timeout': 47,
    }),
    'event_type': MappingProxyType({
        'start': 0,
        'stop': 1,
        'consecutive_depreciated': 2,
        'marker': 3,
        'stop_all': 4,
        'begin_depreciated': 5,
        'end_depreciated': 6,
        'end_all_depreciated': 7,
        'stop_disable': 8,
        'stop_disable_all': 9,
    }),
    'course_point': MappingProxyType({
        'generic': 0,
        'summit': 1,
        'valley': 2,
        'water': 3,
        'food': 4,
        'danger': 5,
        'left': 6,
        'right': 7,
        'straight': 8,
        'first_aid': 9,
        'fourth_category': 10,
        'third_category': 11,
        'second_category': 12,
        'first_category': 13,
        'hors_category': 14,
        'sprint': 15,
        'left_fork': 16,
        'right_fork': 17,
        'middle_fork': 18,
        'slight_left': 19,
        'sharp_left': 20,
        'slight_right': 21,
        'sharp_right': 22,
        'u_turn': 23,
        'segment_start': 24,
        'segment_end': 25,
    }),
    'activity': MappingProxyType({
        'manual': 0,
        'auto_multi_sport': 1,
    }),
    'lap_trigger': MappingProxyType({
        'manual': 0,
        'time': 1,
        'distance': 2,
        'position_start': 3,
        'position_lap': 4,
        'position_waypoint': 5,
        'position_marked': 6,
        'session_end': 7,
        'fitness_equipment': 8,
    }),
    'manufacturer': MappingProxyType({
        'garmin': 1,
        'dynastream': 15,
        'suunto': 23,
        'wahoo_fitness': 32,
        'development': 255,
        'zwift': 260,
        'strava': 265,
        'coros': 294,
    }),
})

# Backing base type of each enum table, ENUM unless stated
_ENUM_BASE_TYPES = {
    'manufacturer': FIT.BASE_TYPE['UINT16'],
}

_REVERSE_ENUM_TABLES = MappingProxyType({
    table_name: MappingProxyType({code: name for name, code in table.items()})
    for table_name, table in ENUM_TABLES.items()
})


def _enum_table(table_name: str):
    try:
        return ENUM_TABLES[table_name]
    except KeyError:
        raise UnknownTypeError(f"FIT Runtime Error unknown enum table '{table_name}'") from None


def enum_sentinel(table_name: str) -> int:
    '''The code an unknown symbolic name resolves to.'''
    table = _enum_table(table_name)
    if 'invalid' in table:
        return table['invalid']
    base_type = _ENUM_BASE_TYPES.get(table_name, FIT.BASE_TYPE['ENUM'])
    return FIT.BASE_TYPE_DEFINITIONS[base_type]['invalid']


def enum_lookup(table_name: str, value):
    '''
    Resolves a symbolic enum name to its code.

    Strings go through the named table and fall back to the table's invalid
    sentinel; numbers are returned unchanged as pre-resolved codes.

    Raises:
        UnknownTypeError: table_name is not a known enum table.
    '''
    table = _enum_table(table_name)
    if isinstance(value, str):
        return table.get(value, enum_sentinel(table_name))
    return value


def enum_name(table_name: str, code: int):
    '''Reverse of enum_lookup: the symbolic name, or the code when unnamed.'''
    _enum_table(table_name)
    return _REVERSE_ENUM_TABLES[table_name].get(code, code)


def _to_int(value) -> int:
    if isinstance(value, float):
        return util.round_half_away(value)
    return int(value)


def _identity(value):
    return value


def _packer(type_code: str):
    def write(wire_value) -> bytes:
        return struct.pack('<' + type_code, wire_value)
    return write


def _unpacker(type_code: str):
    def read(data, byte_order: str = '<'):
        return struct.unpack(byte_order + type_code, bytes(data))[0]
    return read


def _read_string(data, byte_order: str = '<') -> str:
    return util.decode_string(data)


def _integer(name: str, base_type_name: str) -> FieldTypeDescriptor:
    base_type = FIT.BASE_TYPE[base_type_name]
    base_type_def = FIT.BASE_TYPE_DEFINITIONS[base_type]
    return FieldTypeDescriptor(
        name=name,
        size=base_type_def['size'],
        base_type=base_type,
        to_wire=_to_int,
        from_wire=_identity,
        write=_packer(base_type_def['type_code']),
        read=_unpacker(base_type_def['type_code']),
    )


def _scaled(name: str, base_type_name: str, scale: float, offset: float = 0) -> FieldTypeDescriptor:
    base_type = FIT.BASE_TYPE[base_type_name]
    base_type_def = FIT.BASE_TYPE_DEFINITIONS[base_type]

    def to_wire(value) -> int:
        return util.round_half_away((value + offset) * scale)

    def from_wire(raw) -> float:
        return raw / scale - offset

    return FieldTypeDescriptor(
        name=name,
        size=base_type_def['size'],
        base_type=base_type,
        to_wire=to_wire,
        from_wire=from_wire,
        write=_packer(base_type_def['type_code']),
        read=_unpacker(base_type_def['type_code']),
        scale=scale,
        offset=offset,
    )


def _enum(table_name: str) -> FieldTypeDescriptor:
    base_type = _ENUM_BASE_TYPES.get(table_name, FIT.BASE_TYPE['ENUM'])
    base_type_def = FIT.BASE_TYPE_DEFINITIONS[base_type]

    def to_wire(value) -> int:
        return _to_int(enum_lookup(table_name, value))

    def from_wire(raw):
        return enum_name(table_name, raw)

    return FieldTypeDescriptor(
        name=f'enum_{table_name}',
        size=base_type_def['size'],
        base_type=base_type,
        to_wire=to_wire,
        from_wire=from_wire,
        write=_packer(base_type_def['type_code']),
        read=_unpacker(base_type_def['type_code']),
        enum_table=table_name,
    )


def _string() -> FieldTypeDescriptor:
    return FieldTypeDescriptor(
        name='string',
        size=0,
        base_type=FIT.BASE_TYPE['STRING'],
        to_wire=util.fit_string,
        from_wire=_identity,
        write=util.encode_string,
        read=_read_string,
    )


def _date_time() -> FieldTypeDescriptor:
    return FieldTypeDescriptor(
        name='date_time',
        size=4,
        base_type=FIT.BASE_TYPE['UINT32'],
        to_wire=util.convert_to_fit_timestamp,
        from_wire=util.convert_timestamp_to_datetime,
        write=_packer('I'),
        read=_unpacker('I'),
    )


def _semicircles() -> FieldTypeDescriptor:
    return FieldTypeDescriptor(
        name='semicircles',
        size=4,
        base_type=FIT.BASE_TYPE['SINT32'],
        to_wire=util.degrees_to_semicircles,
        from_wire=util.semicircles_to_degrees,
        write=_packer('i'),
        read=_unpacker('i'),
        scale=util.SEMICIRCLES_PER_HALF_TURN / 180,
    )


TYPES = MappingProxyType({
    descriptor.name: descriptor for descriptor in (
        _integer('uint8', 'UINT8'),
        _integer('sint8', 'SINT8'),
        _integer('uint16', 'UINT16'),
        _integer('sint16', 'SINT16'),
        _integer('uint32', 'UINT32'),
        _integer('sint32', 'SINT32'),
        _integer('uint32z', 'UINT32Z'),
        _string(),
        _enum('file'),
        _enum('sport'),
        _enum('sub_sport'),
        _enum('event'),
        _enum('event_type'),
        _enum('course_point'),
        _enum('activity'),
        _enum('lap_trigger'),
        _enum('manufacturer'),
        _scaled('distance', 'UINT32', 1000),
        _scaled('speed', 'UINT16', 100),
        _scaled('altitude', 'UINT16', 5, 500),
        _scaled('seconds', 'UINT32', 1000),
        _semicircles(),
        _date_time(),
    )
})


def lookup(type_name: str) -> FieldTypeDescriptor:
    '''
    Returns the descriptor registered under type_name.

    Raises:
        UnknownTypeError: type_name is not in the registry.
    '''
    try:
        return TYPES[type_name]
    except KeyError:
        raise UnknownTypeError(f"FIT Runtime Error unknown field type '{type_name}'") from None
