from datetime import datetime, timedelta, timezone as dt_timezone

import pytest

from scheduling.services import derived
from scheduling.services.derived import (
    DEFAULT_COLOR,
    build_view,
    calendar_events,
    effective_end,
    filter_appointments,
    matches_search,
    status_color,
    summary_stats,
    to_calendar_event,
)
from .fakes import T0, rec

NOW = datetime(2030, 5, 14, 8, 0, tzinfo=dt_timezone.utc)


@pytest.mark.parametrize('status,color', [
    ('confirmed', '#10b981'),
    ('pending', '#f59e0b'),
    ('cancelled', '#ef4444'),
    ('completed', '#3b82f6'),
    ('no-show', DEFAULT_COLOR),
    ('', DEFAULT_COLOR),
    (None, DEFAULT_COLOR),
])
def test_status_color_depends_only_on_status(status, color):
    assert status_color(status) == color
    assert derived.event_style(status)['backgroundColor'] == color


def test_search_is_case_insensitive_over_names_and_notes():
    a = rec(1, patient_name='Jane Doe', doctor_name='Dr. Who', notes='Allergic to PENICILLIN')
    assert matches_search(a, 'jane')
    assert matches_search(a, 'WHO')
    assert matches_search(a, 'penicillin')
    assert not matches_search(a, 'smith')
    assert matches_search(a, '')


def test_search_treats_missing_fields_as_empty():
    a = rec(1, patient_name='', doctor_name='', notes='')
    assert not matches_search(a, 'x')
    assert matches_search(a, None)


def test_filtered_list_is_subset_satisfying_both_predicates():
    items = [
        rec(1, 'pending', patient_name='Ann'),
        rec(2, 'confirmed', patient_name='Ann'),
        rec(3, 'confirmed', patient_name='Bob'),
        rec(4, 'cancelled', patient_name='Annabel'),
    ]
    out = filter_appointments(items, 'ann', 'confirmed')
    assert [a.id for a in out] == [2]
    assert all(a in items for a in out)
    assert [a.id for a in filter_appointments(items, 'ann', 'all')] == [1, 2, 4]
    assert [a.id for a in filter_appointments(items, '', 'all')] == [1, 2, 3, 4]


def test_status_filter_scenario_and_upcoming_count():
    items = [rec(1, 'pending', T0), rec(2, 'confirmed', T0 + timedelta(days=1))]
    assert [a.id for a in filter_appointments(items, '', 'confirmed')] == [2]
    assert summary_stats(items, NOW)['upcoming'] == 1
    # once the confirmed appointment has started it is no longer upcoming
    assert summary_stats(items, T0 + timedelta(days=2))['upcoming'] == 0


def test_summary_stats_counts_unfiltered_collection():
    items = [
        rec(1, 'pending', NOW + timedelta(hours=1)),
        rec(2, 'confirmed', NOW + timedelta(hours=2)),
        rec(3, 'confirmed', NOW - timedelta(hours=1)),
        rec(4, 'completed', NOW - timedelta(days=1)),
        rec(5, 'cancelled', NOW + timedelta(days=3)),
    ]
    stats = summary_stats(items, NOW)
    assert stats == {
        'total': 5,
        'today': 3,
        'pending': 1,
        'confirmed': 2,
        'completed': 1,
        'cancelled': 1,
        'upcoming': 1,
    }


def test_missing_end_defaults_to_one_hour():
    a = rec(1, date=T0)
    assert effective_end(a) == T0 + timedelta(hours=1)
    b = rec(2, date=T0, end_time=T0 + timedelta(minutes=20))
    assert effective_end(b) == T0 + timedelta(minutes=20)


def test_default_end_crosses_day_boundary():
    late = datetime(2030, 5, 14, 23, 30, tzinfo=dt_timezone.utc)
    event = to_calendar_event(rec(1, date=late))
    assert event['start'] == late.isoformat()
    assert event['end'] == datetime(2030, 5, 15, 0, 30, tzinfo=dt_timezone.utc).isoformat()


def test_calendar_event_projection():
    a = rec(7, 'confirmed', patient_name='Jane Doe', doctor_name='Dr. Lee', notes='follow-up')
    event = to_calendar_event(a)
    assert event['id'] == 7
    assert event['title'] == 'Jane Doe - Dr. Lee'
    assert event['status'] == 'confirmed'
    assert event['allDay'] is False
    assert event['patientName'] == 'Jane Doe'
    assert event['doctorName'] == 'Dr. Lee'
    assert event['notes'] == 'follow-up'
    assert event['type'] == 'checkup'
    assert event['resource']['notes'] == 'follow-up'
    assert event['style']['backgroundColor'] == '#10b981'


def test_calendar_events_follow_filters():
    items = [rec(1, 'pending'), rec(2, 'confirmed')]
    assert [e['id'] for e in calendar_events(items, '', 'pending')] == [1]


def test_build_view_bundles_everything():
    items = [rec(1, 'pending'), rec(2, 'confirmed', notes='knee')]
    view = build_view(items, now=NOW, search_term='knee', view_mode='month')
    assert view['stats']['total'] == 2
    assert [a['id'] for a in view['appointments']] == [2]
    assert [e['id'] for e in view['events']] == [2]
    assert view['filters'] == {'searchTerm': 'knee', 'filterStatus': 'all'}
    assert view['viewMode'] == 'month'
