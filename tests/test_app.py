"""Tests for the dashboard data helpers and app wiring."""

from datetime import datetime, timezone
from unittest.mock import Mock, patch

import dash
import pytest

import app as dashboard
import student_list
from backend_client import BackendError, InvalidStatusError
from generate_data import DemoBackend
from settings import Settings
from dash_helpers import callback_for, fake_ctx, find_by_id, text_of

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def students():
    return [
        {'id': 'a', 'name': 'A', 'status': 'engaged', 'riskLevel': 'high', 'createdAt': '2026-10-18T12:00:00Z'},
        {'id': 'b', 'name': 'B', 'status': 'counselor_required', 'riskLevel': 'low',
         'createdAt': '2026-10-10T12:00:00Z',
         'lastCallAnalysis': {'emotion': 'anxious', 'requiresCounselorFollowUp': True}},
        {'id': 'c', 'name': 'C', 'status': 'engaged', 'createdAt': '2026-08-01T08:15:30.250Z'},
    ]


@pytest.fixture
def settings():
    return Settings(api_base_url='', api_timeout=5, api_token=None, refresh_interval_ms=30000,
                    demo_student_count=5, demo_seed=7, log_level='INFO', debug=False,
                    host='127.0.0.1', port=8050)


def test_filter_students_by_status_and_risk(students):
    assert [s['id'] for s in dashboard.filter_students(students, 'engaged', 'all')] == ['a', 'c']
    assert [s['id'] for s in dashboard.filter_students(students, 'all', 'high')] == ['a']
    assert [s['id'] for s in dashboard.filter_students(students, 'engaged', 'low')] == []


def test_filter_students_by_date_range(students):
    assert [s['id'] for s in dashboard.filter_students(students, date_range='1', now=NOW)] == ['a']
    assert [s['id'] for s in dashboard.filter_students(students, date_range='30', now=NOW)] == ['a', 'b']
    assert [s['id'] for s in dashboard.filter_students(students, date_range='90', now=NOW)] == ['a', 'b', 'c']


def test_filter_students_returns_original_records(students):
    filtered = dashboard.filter_students(students)
    assert filtered[2] is students[2]
    assert 'riskLevel' not in filtered[2]


def test_filter_students_empty():
    assert dashboard.filter_students([], 'engaged') == []
    assert dashboard.filter_students(None) == []


def test_compute_kpis(students):
    kpis = dashboard.compute_kpis(students, {'totalCalls': 9, 'callSuccessRate': 80})
    assert kpis['total'] == 3
    assert kpis['high_risk'] == 1
    assert kpis['counselor_required'] == 1
    assert kpis['follow_up'] == 1
    assert kpis['total_calls'] == 9
    assert kpis['call_success_rate'] == 80

    assert dashboard.compute_kpis(students, {'totalStudents': 152})['total'] == 152


def test_calls_table_rows():
    rows = dashboard.calls_table_rows([
        {'id': '1', 'studentName': 'A', 'startTime': '2026-10-19T15:45:00Z', 'duration': 125000,
         'status': 'completed', 'analysis': {'emotion': 'positive', 'requiresCounselorFollowUp': True}},
        {'id': '2', 'status': 'failed'},
    ])
    assert rows[0] == {'student': 'A', 'date': 'Oct 19, 2026, 03:45 PM', 'duration': '125s',
                       'status': 'completed', 'emotion': 'positive', 'action': 'Counselor Follow-up'}
    assert rows[1]['student'] == 'Unknown'
    assert rows[1]['duration'] == 'N/A'
    assert rows[1]['emotion'] == 'Not analyzed'
    assert rows[1]['action'] == 'None'


def test_build_handlers_reports_success_and_failure():
    backend = Mock()
    backend.trigger_voice_call.return_value = {'success': True}
    backend.send_whatsapp_message.side_effect = BackendError('timeout')
    backend.update_student_status.side_effect = InvalidStatusError('bad status')
    handlers = dashboard.build_handlers(backend)

    assert handlers.trigger_voice_call('s1') == {'ok': True, 'message': 'Voice call initiated successfully!'}
    backend.trigger_voice_call.assert_called_once_with('s1')

    result = handlers.send_whatsapp_message('s1', 'followUp')
    assert result['ok'] is False
    assert 'timeout' in result['message']

    assert handlers.update_student_status('s1', 'nope')['ok'] is False


def test_handlers_with_student_list_dispatch(students):
    backend = DemoBackend(students, calls=[])
    handlers = dashboard.build_handlers(backend)

    record = student_list.dispatch_action(
        {'type': student_list.CARD_STATUS, 'index': 'a'}, 'documents_pending', students, handlers)

    assert record['result']['ok'] is True
    assert backend.students[0]['status'] == 'documents_pending'


def test_create_app_demo_mode(settings):
    dash_app = dashboard.create_app(settings)
    layout = dash_app.layout

    assert find_by_id(layout, dashboard.STUDENTS_STORE) is not None
    assert find_by_id(layout, student_list.SELECTED_STORE) is not None
    assert find_by_id(layout, 'calls-table') is not None
    assert find_by_id(layout, 'refresh-interval').interval == 30000


def test_build_backend_picks_client(settings):
    assert isinstance(dashboard.build_backend(settings), DemoBackend)
    client = dashboard.build_backend(settings._replace(api_base_url='http://api.test'))
    assert client.base_url == 'http://api.test'


# --- Callbacks ---

@pytest.fixture
def backend(students):
    backend = Mock()
    backend.get_students.return_value = students
    backend.get_analytics.return_value = {'totalCalls': 2}
    backend.get_calls.return_value = []
    return backend


def test_refresh_failure_keeps_snapshot(settings, backend):
    backend.get_students.side_effect = BackendError('connection refused')
    refresh = callback_for(dashboard.create_app(settings, backend), 'feedback-banner.children')

    with patch.object(dash, 'ctx', fake_ctx('refresh-button', 1)):
        result = refresh(0, 1, None, '7')

    assert result[:3] == (dash.no_update, dash.no_update, dash.no_update)
    assert 'Could not refresh dashboard data: connection refused' in text_of(result[3])


def test_refresh_after_action_shows_outcome(settings, backend, students):
    refresh = callback_for(dashboard.create_app(settings, backend), 'feedback-banner.children')
    record = {'action': 'voice_call', 'studentId': 'a', 'value': 1,
              'result': {'ok': True, 'message': 'Voice call initiated successfully!'}}

    with patch.object(dash, 'ctx', fake_ctx(student_list.ACTION_STORE, record, prop='data')):
        fetched, analytics, calls, banner = refresh(0, 0, record, '30')

    assert fetched == students
    assert analytics == {'totalCalls': 2}
    backend.get_analytics.assert_called_once_with('30')
    assert text_of(banner) == 'Voice call initiated successfully!'


def test_refresh_failure_after_action_shows_both(settings, backend):
    backend.get_calls.side_effect = BackendError('timeout')
    refresh = callback_for(dashboard.create_app(settings, backend), 'feedback-banner.children')
    record = {'action': 'status_update', 'studentId': 'a', 'value': 'engaged',
              'result': {'ok': True, 'message': 'Student status updated successfully!'}}

    with patch.object(dash, 'ctx', fake_ctx(student_list.ACTION_STORE, record, prop='data')):
        banner = refresh(0, 0, record, '7')[3]

    text = text_of(banner)
    assert 'Student status updated successfully!' in text
    assert 'Could not refresh dashboard data: timeout' in text


def test_interval_refresh_leaves_banner(settings, backend):
    refresh = callback_for(dashboard.create_app(settings, backend), 'feedback-banner.children')
    with patch.object(dash, 'ctx', fake_ctx('refresh-interval', 3, prop='n_intervals')):
        assert refresh(3, 0, None, '7')[3] is dash.no_update


def test_apply_filters_callback(settings, backend, students):
    apply_filters = callback_for(dashboard.create_app(settings, backend), f'{dashboard.STUDENTS_STORE}.data')
    assert [s['id'] for s in apply_filters(students, 'engaged', 'all', None)] == ['a', 'c']


def test_selection_closes_when_student_filtered_out(settings, backend, students):
    update_selection = callback_for(dashboard.create_app(settings, backend), f'{student_list.SELECTED_STORE}.data')
    card = {'type': student_list.CARD, 'index': 'a'}

    with patch.object(dash, 'ctx', fake_ctx(card, 1)):
        selected = update_selection([1, 0, 0], [], students, None)
    assert selected == 'a'

    with patch.object(dash, 'ctx', fake_ctx(dashboard.STUDENTS_STORE, [], prop='data')):
        assert update_selection([], [], [], selected) is None

    # Restoring the list later does not reopen the modal
    with patch.object(dash, 'ctx', fake_ctx(dashboard.STUDENTS_STORE, students, prop='data')):
        assert update_selection([0, 0, 0], [], students, None) is dash.no_update


def test_selection_survives_refresh_with_student_present(settings, backend, students):
    update_selection = callback_for(dashboard.create_app(settings, backend), f'{student_list.SELECTED_STORE}.data')
    with patch.object(dash, 'ctx', fake_ctx(dashboard.STUDENTS_STORE, students, prop='data')):
        assert update_selection([0, 0, 0], [], students, 'b') is dash.no_update


def test_fire_action_status_revert(settings, students):
    backend = DemoBackend(students, calls=[])
    fire_action = callback_for(dashboard.create_app(settings, backend), f'{student_list.ACTION_STORE}.data')
    status = {'type': student_list.CARD_STATUS, 'index': 'a'}

    with patch.object(dash, 'ctx', fake_ctx(status, 'dropout_risk', prop='value')):
        record, dispatched = fire_action([], [], ['dropout_risk'], [], [], students, {})
    assert record['result']['ok'] is True
    assert dispatched == {'a': 'dropout_risk'}
    assert backend.students[0]['status'] == 'dropout_risk'

    # Reverting before the snapshot catches up still reaches the backend
    with patch.object(dash, 'ctx', fake_ctx(status, 'engaged', prop='value')):
        record, dispatched = fire_action([], [], ['engaged'], [], [], students, dispatched)
    assert record['value'] == 'engaged'
    assert dispatched == {'a': 'engaged'}
    assert backend.students[0]['status'] == 'engaged'


def test_fire_action_ignores_mount(settings, backend, students):
    fire_action = callback_for(dashboard.create_app(settings, backend), f'{student_list.ACTION_STORE}.data')
    with patch.object(dash, 'ctx', fake_ctx(None, None)):
        assert fire_action([0], [0], ['engaged'], [], [], students, {}) == (dash.no_update, dash.no_update)
    backend.trigger_voice_call.assert_not_called()


def test_demo_backend_is_reproducible(settings):
    assert dashboard.build_backend(settings).get_calls() == dashboard.build_backend(settings).get_calls()
