'''builder.py: Turns a nested activity tree into ordered FIT messages.

The tree is keyed like the decoder output: 'session_mesgs' holding sessions,
each with 'lap_mesgs', each lap with 'record_mesgs'. Positions are degrees
and times are anything the date_time field type accepts.
'''

import logging

from . import util
from .encoder import encode
from .framer import Message

logger = logging.getLogger(__name__)

DEFAULT_SPORT = 'cycling'
DEFAULT_SUB_SPORT = 'generic'
DEFAULT_COURSE_NAME = 'course'


def _position(degrees):
    # 0 means "no fix" in the source trees
    return degrees if degrees else None


def _first(*values):
    '''The first value that is not None; zero counts as a value.'''
    for value in values:
        if value is not None:
            return value
    return None


def _sessions(fit_data: dict) -> list:
    sessions = fit_data.get('session_mesgs') or []
    if not sessions:
        raise ValueError("FIT Runtime Error an activity needs at least one session")
    return sessions


def build_file_id(fit_data: dict, file_type: str) -> Message:
    file_id = (fit_data.get('file_id_mesgs') or [{}])[0]
    return Message('file_id', {
        'type': file_type,
        'time_created': file_id.get('time_created'),
        'manufacturer': file_id.get('manufacturer'),
        'product': file_id.get('product'),
        'serial_number': file_id.get('serial_number'),
    })


def build_record(record: dict) -> Message:
    return Message('record', {
        'timestamp': record.get('timestamp'),
        'position_lat': _position(record.get('position_lat')),
        'position_long': _position(record.get('position_long')),
        'altitude': _first(record.get('enhanced_altitude'), record.get('altitude')),
        'distance': record.get('distance'),
        'heart_rate': record.get('heart_rate'),
        'cadence': record.get('cadence'),
        'speed': _first(record.get('enhanced_speed'), record.get('speed')),
        'power': record.get('power'),
        'temperature': record.get('temperature'),
    })


def build_lap(lap: dict) -> Message:
    return Message('lap', {
        'timestamp': lap.get('timestamp'),
        'start_time': lap.get('start_time'),
        'start_position_lat': _position(lap.get('start_position_lat')),
        'start_position_long': _position(lap.get('start_position_long')),
        'end_position_lat': _position(lap.get('end_position_lat')),
        'end_position_long': _position(lap.get('end_position_long')),
        'total_elapsed_time': lap.get('total_elapsed_time'),
        'total_timer_time': lap.get('total_timer_time'),
        'total_distance': lap.get('total_distance'),
        'total_ascent': lap.get('total_ascent'),
        'total_descent': lap.get('total_descent'),
    })


def build_session(session: dict, default_sport: str = DEFAULT_SPORT,
                  default_sub_sport: str = DEFAULT_SUB_SPORT) -> Message:
    laps = session.get('lap_mesgs') or []
    return Message('session', {
        'timestamp': session.get('timestamp'),
        'start_time': session.get('start_time'),
        'total_elapsed_time': session.get('total_elapsed_time'),
        'total_timer_time': session.get('total_timer_time'),
        'start_position_lat': _position(session.get('start_position_lat')),
        'start_position_long': _position(session.get('start_position_long')),
        'total_distance': session.get('total_distance'),
        'total_ascent': session.get('total_ascent'),
        'total_descent': session.get('total_descent'),
        'sport': session.get('sport') or default_sport,
        'sub_sport': session.get('sub_sport') or default_sub_sport,
        'first_lap_index': session.get('first_lap_index') or 0,
        'num_laps': session.get('num_laps') or len(laps) or 1,
    })


def build_timer_event(timestamp, event_type: str, event_group: int = 0) -> Message:
    return Message('event', {
        'timestamp': timestamp,
        'event': 'timer',
        'event_type': event_type,
        'event_group': event_group,
    })


def build_lap_events(laps: list) -> list:
    '''A timer start per lap and a stop per lap, stop_all for the last one.'''
    events = []
    for index, lap in enumerate(laps):
        if lap.get('start_time'):
            events.append(build_timer_event(lap['start_time'], 'start', index))
        if lap.get('timestamp'):
            event_type = 'stop_all' if index == len(laps) - 1 else 'stop'
            events.append(build_timer_event(lap['timestamp'], event_type, index))
    return events


def build_activity_summary(session: dict) -> Message:
    return Message('activity', {
        'timestamp': session.get('timestamp'),
        'total_timer_time': session.get('total_timer_time'),
        'num_sessions': 1,
        'type': 'manual',
        'event': 'activity',
        'event_type': 'stop',
        'event_group': 0,
    })


def build_activity(fit_data: dict, default_sport: str = DEFAULT_SPORT,
                   default_sub_sport: str = DEFAULT_SUB_SPORT) -> list:
    '''
    Lays out an activity file.

    The file_id comes first, then for each session its records, laps and the
    session itself. The lap timer events of every session follow, and one
    activity message per session closes the file.

    Args:
        fit_data: The nested activity tree.
        default_sport: Sport for sessions that carry none.
        default_sub_sport: Sub sport for sessions that carry none.

    Returns:
        list: Message instances in file order.

    Raises:
        ValueError: fit_data holds no session.
    '''
    sessions = _sessions(fit_data)

    messages = [build_file_id(fit_data, 'activity')]
    events = []
    summaries = []
    for session in sessions:
        laps = session.get('lap_mesgs') or []
        events.extend(build_lap_events(laps))
        for lap in laps:
            messages.extend(build_record(record) for record in lap.get('record_mesgs') or [])
        messages.extend(build_lap(lap) for lap in laps)
        messages.append(build_session(session, default_sport, default_sub_sport))
        summaries.append(build_activity_summary(session))

    messages.extend(events)
    messages.extend(summaries)
    logger.debug("Built activity with %d sessions and %d messages", len(sessions), len(messages))
    return messages


def _record_sort_key(record: dict):
    timestamp = record.get('timestamp')
    if timestamp is not None:
        return (0, util.convert_to_fit_timestamp(timestamp))
    return (1, record.get('distance') or 0)


def build_course(fit_data: dict, default_sport: str = DEFAULT_SPORT,
                 course_name: str = DEFAULT_COURSE_NAME) -> list:
    '''
    Lays out a course file from the first session of the tree.

    Records are merged across laps and sorted by time, falling back to
    distance for records without one. A timer start event precedes them and
    a stop_all event at the last record follows; the laps come last.

    Raises:
        ValueError: fit_data holds no session.
    '''
    session = _sessions(fit_data)[0]
    laps = session.get('lap_mesgs') or []

    messages = [
        build_file_id(fit_data, 'course'),
        Message('course', {'name': course_name, 'sport': session.get('sport') or default_sport}),
    ]

    records = [record for lap in laps for record in lap.get('record_mesgs') or []]
    records.sort(key=_record_sort_key)

    if session.get('start_time'):
        messages.append(build_timer_event(session['start_time'], 'start'))
    messages.extend(build_record(record) for record in records)
    if records and records[-1].get('timestamp'):
        messages.append(build_timer_event(records[-1]['timestamp'], 'stop_all'))
    messages.extend(build_lap(lap) for lap in laps)
    return messages


def encode_activity(fit_data: dict, default_sport: str = DEFAULT_SPORT,
                    default_sub_sport: str = DEFAULT_SUB_SPORT, **options) -> bytes:
    return encode('activity', build_activity(fit_data, default_sport, default_sub_sport), **options)


def encode_course(fit_data: dict, default_sport: str = DEFAULT_SPORT,
                  course_name: str = DEFAULT_COURSE_NAME, **options) -> bytes:
    return encode('course', build_course(fit_data, default_sport, course_name), **options)
