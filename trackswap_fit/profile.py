'''profile.py: Contains the FIT message profile consulted by the encoder and decoder.

Only the messages an activity or course file needs are described. Further
messages can be added at start-up with register_message.
'''

import copy
import logging

from . import field_types
from .errors import UnknownTypeError

logger = logging.getLogger(__name__)

MESG_NUM = {
    'FILE_ID': 0,
    'SESSION': 18,
    'LAP': 19,
    'RECORD': 20,
    'EVENT': 21,
    'COURSE': 31,
    'COURSE_POINT': 32,
    'ACTIVITY': 34,
    'FILE_CREATOR': 49,
}


def messages_key(name: str) -> str:
    return f'{name}_mesgs'


def _message(num: int, name: str, fields) -> dict:
    '''Builds a message profile from (field_num, field_name, field_type) tuples.'''
    for _, _, field_type in fields:
        field_types.lookup(field_type)
    field_map = {
        field_num: {'num': field_num, 'name': field_name, 'type': field_type}
        for field_num, field_name, field_type in fields
    }
    if len(field_map) != len(fields):
        raise ValueError(f"FIT Runtime Error message '{name}' repeats a field number")
    return {
        'num': num,
        'name': name,
        'messages_key': messages_key(name),
        'fields': field_map,
        'field_names': {field['name']: field_num for field_num, field in field_map.items()},
    }


_BUILTIN_MESSAGES = [
    _message(MESG_NUM['FILE_ID'], 'file_id', [
        (0, 'type', 'enum_file'),
        (1, 'manufacturer', 'enum_manufacturer'),
        (2, 'product', 'uint16'),
        (3, 'serial_number', 'uint32z'),
        (4, 'time_created', 'date_time'),
    ]),
    _message(MESG_NUM['FILE_CREATOR'], 'file_creator', [
        (0, 'software_version', 'uint16'),
        (1, 'hardware_version', 'uint8'),
    ]),
    _message(MESG_NUM['SESSION'], 'session', [
        (253, 'timestamp', 'date_time'),
        (254, 'message_index', 'uint16'),
        (0, 'event', 'enum_event'),
        (1, 'event_type', 'enum_event_type'),
        (2, 'start_time', 'date_time'),
        (3, 'start_position_lat', 'semicircles'),
        (4, 'start_position_long', 'semicircles'),
        (5, 'sport', 'enum_sport'),
        (6, 'sub_sport', 'enum_sub_sport'),
        (7, 'total_elapsed_time', 'seconds'),
        (8, 'total_timer_time', 'seconds'),
        (9, 'total_distance', 'distance'),
        (10, 'total_cycles', 'uint32'),
        (11, 'total_calories', 'uint16'),
        (16, 'avg_heart_rate', 'uint8'),
        (17, 'max_heart_rate', 'uint8'),
        (18, 'avg_cadence', 'uint8'),
        (19, 'max_cadence', 'uint8'),
        (20, 'avg_power', 'uint16'),
        (21, 'max_power', 'uint16'),
        (22, 'total_ascent', 'uint16'),
        (23, 'total_descent', 'uint16'),
        (25, 'first_lap_index', 'uint16'),
        (26, 'num_laps', 'uint16'),
    ]),
    _message(MESG_NUM['LAP'], 'lap', [
        (253, 'timestamp', 'date_time'),
        (254, 'message_index', 'uint16'),
        (0, 'event', 'enum_event'),
        (1, 'event_type', 'enum_event_type'),
        (2, 'start_time', 'date_time'),
        (3, 'start_position_lat', 'semicircles'),
        (4, 'start_position_long', 'semicircles'),
        (5, 'end_position_lat', 'semicircles'),
        (6, 'end_position_long', 'semicircles'),
        (7, 'total_elapsed_time', 'seconds'),
        (8, 'total_timer_time', 'seconds'),
        (9, 'total_distance', 'distance'),
        (10, 'total_cycles', 'uint32'),
        (11, 'total_calories', 'uint16'),
        (15, 'avg_heart_rate', 'uint8'),
        (16, 'max_heart_rate', 'uint8'),
        (17, 'avg_cadence', 'uint8'),
        (18, 'max_cadence', 'uint8'),
        (19, 'avg_power', 'uint16'),
        (20, 'max_power', 'uint16'),
        (21, 'total_ascent', 'uint16'),
        (22, 'total_descent', 'uint16'),
        (24, 'lap_trigger', 'enum_lap_trigger'),
        (25, 'sport', 'enum_sport'),
    ]),
    _message(MESG_NUM['RECORD'], 'record', [
        (253, 'timestamp', 'date_time'),
        (0, 'position_lat', 'semicircles'),
        (1, 'position_long', 'semicircles'),
        (2, 'altitude', 'altitude'),
        (3, 'heart_rate', 'uint8'),
        (4, 'cadence', 'uint8'),
        (5, 'distance', 'distance'),
        (6, 'speed', 'speed'),
        (7, 'power', 'uint16'),
        (13, 'temperature', 'sint8'),
    ]),
    _message(MESG_NUM['EVENT'], 'event', [
        (253, 'timestamp', 'date_time'),
        (0, 'event', 'enum_event'),
        (1, 'event_type', 'enum_event_type'),
        (3, 'data', 'uint32'),
        (4, 'event_group', 'uint8'),
    ]),
    _message(MESG_NUM['COURSE'], 'course', [
        (4, 'sport', 'enum_sport'),
        (5, 'name', 'string'),
        (7, 'sub_sport', 'enum_sub_sport'),
    ]),
    _message(MESG_NUM['COURSE_POINT'], 'course_point', [
        (254, 'message_index', 'uint16'),
        (1, 'timestamp', 'date_time'),
        (2, 'position_lat', 'semicircles'),
        (3, 'position_long', 'semicircles'),
        (4, 'distance', 'distance'),
        (5, 'type', 'enum_course_point'),
        (6, 'name', 'string'),
    ]),
    _message(MESG_NUM['ACTIVITY'], 'activity', [
        (253, 'timestamp', 'date_time'),
        (0, 'total_timer_time', 'seconds'),
        (1, 'num_sessions', 'uint16'),
        (2, 'type', 'enum_activity'),
        (3, 'event', 'enum_event'),
        (4, 'event_type', 'enum_event_type'),
        (5, 'local_timestamp', 'date_time'),
        (6, 'event_group', 'uint8'),
    ]),
]

Profile = {
    'version': {'major': 20, 'minor': 78},
    'messages': {message['num']: message for message in _BUILTIN_MESSAGES},
}


def new_profile() -> dict:
    '''A private copy of the built-in profile, for callers that register their own messages.'''
    return copy.deepcopy(Profile)


def register_message(name: str, num: int, fields, profile: dict = None) -> dict:
    '''
    Adds (or replaces) a message layout so the encoder and decoder treat it
    like a built-in one.

    Args:
        name: Message name; messages are keyed by '<name>_mesgs'.
        num: Global message number.
        fields: Iterable of (field_num, field_name, field_type) tuples, in
            the order fields should be laid out.
        profile: Profile to extend, the module Profile by default.

    Returns:
        dict: The registered message profile.

    Raises:
        UnknownTypeError: A field type is not in the type registry.
    '''
    if profile is None:
        profile = Profile
    message = _message(num, name, list(fields))
    if num in profile['messages']:
        logger.debug("Replacing profile for message %d ('%s')", num, name)
    profile['messages'][num] = message
    return message


def get_message(mesg, profile: dict = None) -> dict:
    '''
    Finds a message profile by global number, name or messages key.

    Raises:
        UnknownTypeError: No message matches.
    '''
    if profile is None:
        profile = Profile
    messages = profile['messages']
    if isinstance(mesg, int):
        if mesg in messages:
            return messages[mesg]
    else:
        for message in messages.values():
            if mesg in (message['name'], message['messages_key']):
                return message
    raise UnknownTypeError(f"FIT Runtime Error message '{mesg}' not known")


def find_message(mesg_num: int, profile: dict = None):
    '''Like get_message for a global number, but None when unknown.'''
    if profile is None:
        profile = Profile
    return profile['messages'].get(mesg_num)


def get_field(message: dict, field_name: str) -> dict:
    '''
    Raises:
        UnknownTypeError: The message has no field by that name.
    '''
    try:
        return message['fields'][message['field_names'][field_name]]
    except KeyError:
        raise UnknownTypeError(
            f"FIT Runtime Error message '{message['name']}' has no field definitions named "
            f"'{field_name}'") from None
