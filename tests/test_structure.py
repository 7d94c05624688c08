'''test_structure.py: Contains the set of tests for rebuilding the nested activity tree'''


import datetime

from trackswap_fit import decode
from trackswap_fit.builder import encode_activity
from trackswap_fit.structure import (CourseStructurePlugin, FileHeaderPlugin, SessionStructurePlugin,
                                     default_plugins, file_header_info, structure_courses, structure_sessions)

T0 = datetime.datetime(2023, 11, 14, 22, 13, 20, tzinfo=datetime.timezone.utc)


def at(seconds):
    return T0 + datetime.timedelta(seconds=seconds)


def make_tree() -> dict:
    return {
        'file_id_mesgs': [{'manufacturer': 'garmin', 'product': 1234}],
        'session_mesgs': [{
            'start_time': T0,
            'timestamp': at(40),
            'total_elapsed_time': 40,
            'lap_mesgs': [
                {
                    'start_time': at(start),
                    'timestamp': at(start + 20),
                    'total_elapsed_time': 20,
                    'record_mesgs': [{'timestamp': at(start + offset), 'heart_rate': 130 + start + offset}
                                     for offset in (0, 10)],
                }
                for start in (0, 20)
            ],
        }],
    }


class TestStructureSessions:
    '''Set of tests for nesting decoded activity messages.'''

    def test_round_trip_through_encoding(self):
        messages = decode(encode_activity(make_tree())).messages_by_key()

        sessions = structure_sessions(messages)

        assert len(sessions) == 1
        laps = sessions[0]['lap_mesgs']
        assert len(laps) == 2
        assert [record['heart_rate'] for record in laps[0]['record_mesgs']] == [130, 140]
        assert [record['heart_rate'] for record in laps[1]['record_mesgs']] == [150, 160]

    def test_record_at_lap_end_belongs_to_next_lap(self):
        messages = {
            'session_mesgs': [{'start_time': T0, 'total_elapsed_time': 40}],
            'lap_mesgs': [
                {'start_time': T0, 'total_elapsed_time': 20},
                {'start_time': at(20), 'total_elapsed_time': 20},
            ],
            'record_mesgs': [{'timestamp': at(20)}],
        }

        laps = structure_sessions(messages)[0]['lap_mesgs']
        assert laps[0]['record_mesgs'] == []
        assert laps[1]['record_mesgs'] == [{'timestamp': at(20)}]

    def test_lap_outside_session_is_dropped(self):
        messages = {
            'session_mesgs': [{'start_time': T0, 'total_elapsed_time': 10}],
            'lap_mesgs': [{'start_time': at(5), 'total_elapsed_time': 20}],
        }

        assert structure_sessions(messages)[0]['lap_mesgs'] == []

    def test_no_sessions(self):
        assert structure_sessions({'record_mesgs': [{'timestamp': T0}]}) == []

    def test_input_is_not_modified(self):
        session = {'start_time': T0, 'total_elapsed_time': 10}
        structure_sessions({'session_mesgs': [session]})
        assert 'lap_mesgs' not in session


class TestStructureCourses:
    '''Set of tests for nesting decoded course messages.'''

    def test_records_within_tolerance(self):
        messages = {
            'course_mesgs': [{'name': 'Alpe', 'sport': 'cycling'}],
            'lap_mesgs': [{'start_time': at(10), 'timestamp': at(20)}],
            'record_mesgs': [{'timestamp': at(seconds)} for seconds in (7, 8, 15, 22, 23)],
        }

        courses = structure_courses(messages)

        assert courses[0]['name'] == 'Alpe'
        assert courses[0]['lap_mesgs'][0]['record_mesgs'] == \
            [{'timestamp': at(8)}, {'timestamp': at(15)}, {'timestamp': at(22)}]

    def test_no_courses(self):
        assert structure_courses({'lap_mesgs': [{'start_time': T0, 'timestamp': at(1)}]}) == []


class TestFileHeaderInfo:
    '''Set of tests for extracting the file_id summary.'''

    def test_decoded_activity(self):
        messages = decode(encode_activity(make_tree())).messages_by_key()
        assert file_header_info(messages) == {'type': 'activity', 'manufacturer': 'garmin', 'product': 1234}

    def test_without_file_id(self):
        assert file_header_info({}) is None


class TestStructurePlugins:
    '''Set of tests for the structure plugins run after decoding.'''

    def test_file_header_plugin_writes_context(self):
        context = {}
        result = FileHeaderPlugin().structure({'file_id_mesgs': [{'type': 'course', 'product': 7}]}, context)

        assert result == {}
        assert context['file_header'] == {'type': 'course', 'manufacturer': None, 'product': 7}

    def test_file_header_plugin_runs_first(self):
        assert [plugin.name for plugin in default_plugins().plugins] == \
            ['FileHeaderPlugin', 'SessionStructurePlugin', 'CourseStructurePlugin']

    def test_session_plugin_skips_files_without_sessions(self):
        assert SessionStructurePlugin().structure({'course_mesgs': [{'name': 'Alpe'}]}, {}) == {}

    def test_course_plugin(self):
        messages = {
            'course_mesgs': [{'name': 'Alpe'}],
            'lap_mesgs': [{'start_time': T0, 'timestamp': at(10)}],
            'record_mesgs': [{'timestamp': at(5)}],
        }

        courses = CourseStructurePlugin().structure(messages, {})['course_mesgs']
        assert courses[0]['lap_mesgs'][0]['record_mesgs'] == [{'timestamp': at(5)}]

    def test_registry_replaces_structured_keys(self):
        messages = decode(encode_activity(make_tree())).messages_by_key()
        context = {}

        structured = default_plugins().apply(messages, context)

        assert len(structured['session_mesgs'][0]['lap_mesgs']) == 2
        assert structured['lap_mesgs'] == messages['lap_mesgs']
        assert 'course_mesgs' not in structured
        assert context['file_header']['manufacturer'] == 'garmin'
