'''structure.py: Rebuilds the nested activity tree from flat decoded messages.'''

import datetime
import logging

from .plugins import PluginRegistry, StructurePlugin

logger = logging.getLogger(__name__)

# Course lap bounds are not exact, records this close to them still belong
COURSE_TIME_TOLERANCE = datetime.timedelta(seconds=2)


def _elapsed(message: dict) -> datetime.timedelta:
    return datetime.timedelta(seconds=message.get('total_elapsed_time') or 0)


def _within(record: dict, start, end) -> bool:
    timestamp = record.get('timestamp')
    return timestamp is not None and start <= timestamp < end


def structure_sessions(messages: dict) -> list:
    '''
    Nests laps into sessions and records into laps by time.

    A lap belongs to a session when it lies entirely inside the session's
    [start_time, start_time + total_elapsed_time] span. A record belongs to a
    lap when its timestamp falls in [start_time, start_time + total_elapsed_time).

    Args:
        messages: Decoded messages keyed like 'session_mesgs'.

    Returns:
        list: Session dicts, each with 'lap_mesgs', each lap with 'record_mesgs'.
    '''
    sessions = messages.get('session_mesgs') or []
    if not sessions:
        logger.warning("No session messages, cannot structure the activity")
        return []

    laps = messages.get('lap_mesgs') or []
    records = messages.get('record_mesgs') or []

    structured = []
    for session in sessions:
        session_start = session.get('start_time')
        session_laps = []
        for lap in laps:
            lap_start = lap.get('start_time')
            if session_start is None or lap_start is None:
                continue
            lap_end = lap_start + _elapsed(lap)
            if lap_start < session_start or lap_end > session_start + _elapsed(session):
                continue
            session_laps.append(dict(lap, record_mesgs=[
                record for record in records if _within(record, lap_start, lap_end)
            ]))
        structured.append(dict(session, lap_mesgs=session_laps))
    return structured


def structure_courses(messages: dict) -> list:
    '''
    Nests laps into courses, with each lap holding the records recorded
    between its start_time and timestamp, give or take two seconds.
    '''
    courses = messages.get('course_mesgs') or []
    laps = messages.get('lap_mesgs') or []
    records = messages.get('record_mesgs') or []

    course_laps = []
    for lap in laps:
        start, end = lap.get('start_time'), lap.get('timestamp')
        if start is None or end is None:
            lap_records = []
        else:
            lap_records = [
                record for record in records
                if record.get('timestamp') is not None
                and start - COURSE_TIME_TOLERANCE <= record['timestamp'] <= end + COURSE_TIME_TOLERANCE
            ]
        course_laps.append(dict(lap, record_mesgs=lap_records))

    return [dict(course, lap_mesgs=course_laps) for course in courses]


def file_header_info(messages: dict):
    '''type, manufacturer and product of the first file_id message, or None.'''
    file_ids = messages.get('file_id_mesgs') or []
    if not file_ids:
        return None
    file_id = file_ids[0]
    return {
        'type': file_id.get('type'),
        'manufacturer': file_id.get('manufacturer'),
        'product': file_id.get('product'),
    }


class FileHeaderPlugin(StructurePlugin):
    '''Stores the file_id summary in context['file_header'].'''
    name = 'FileHeaderPlugin'
    priority = 1

    def structure(self, messages: dict, context: dict) -> dict:
        info = file_header_info(messages)
        if info is not None:
            context['file_header'] = info
        return {}


class SessionStructurePlugin(StructurePlugin):
    '''Replaces 'session_mesgs' with sessions holding their laps and records.'''
    name = 'SessionStructurePlugin'
    priority = 10

    def structure(self, messages: dict, context: dict) -> dict:
        if not messages.get('session_mesgs'):
            return {}
        return {'session_mesgs': structure_sessions(messages)}


class CourseStructurePlugin(StructurePlugin):
    '''Replaces 'course_mesgs' with courses holding their laps and records.'''
    name = 'CourseStructurePlugin'
    priority = 10

    def structure(self, messages: dict, context: dict) -> dict:
        courses = structure_courses(messages)
        return {'course_mesgs': courses} if courses else {}


def default_plugins() -> PluginRegistry:
    '''A registry holding the file header, session and course structure plugins.'''
    return PluginRegistry([FileHeaderPlugin(), SessionStructurePlugin(), CourseStructurePlugin()])
