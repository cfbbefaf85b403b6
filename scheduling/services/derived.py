"""
Derived views of the appointment collection.

Everything here is a pure function of the appointments, the filter and
search state and an explicit ``now``: statistics, the filtered list and
the calendar event projection.  Nothing reads the clock or the database.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from django.conf import settings
from django.utils import timezone

from scheduling.services.records import AppointmentRecord, STATUSES, format_instant

FILTER_ALL = 'all'
VIEW_MODES = ('month', 'week', 'day', 'agenda')
DEFAULT_VIEW_MODE = 'week'

STATUS_COLORS = {
    'confirmed': '#10b981',  # green
    'pending': '#f59e0b',    # amber
    'cancelled': '#ef4444',  # red
    'completed': '#3b82f6',  # blue
}
DEFAULT_COLOR = '#6b7280'  # gray


def default_duration() -> timedelta:
    return timedelta(minutes=settings.SCHEDULING_DEFAULT_DURATION_MINUTES)


def effective_end(record: AppointmentRecord) -> datetime:
    """End of the appointment, falling back to the default duration."""
    if record.end_time is not None:
        return record.end_time
    return record.date + default_duration()


def matches_search(record: AppointmentRecord, term: Optional[str]) -> bool:
    if not term:
        return True
    needle = term.lower()
    return any(
        needle in (value or '').lower()
        for value in (record.patient_name, record.doctor_name, record.notes)
    )


def matches_status(record: AppointmentRecord, filter_status: Optional[str]) -> bool:
    return not filter_status or filter_status == FILTER_ALL or record.status == filter_status


def filter_appointments(appointments: Iterable[AppointmentRecord], search_term: Optional[str] = '',
                        filter_status: Optional[str] = FILTER_ALL) -> list[AppointmentRecord]:
    return [
        a for a in appointments
        if matches_search(a, search_term) and matches_status(a, filter_status)
    ]


def summary_stats(appointments: Iterable[AppointmentRecord], now: datetime) -> dict:
    """Counts over the unfiltered collection.

    ``today`` compares local calendar days; ``upcoming`` counts confirmed
    appointments that start strictly after ``now``.
    """
    appointments = list(appointments)
    today = timezone.localtime(now).date()
    counts = {status: 0 for status in STATUSES}
    for a in appointments:
        if a.status in counts:
            counts[a.status] += 1
    return {
        'total': len(appointments),
        'today': sum(1 for a in appointments if timezone.localtime(a.date).date() == today),
        **counts,
        'upcoming': sum(1 for a in appointments if a.status == 'confirmed' and a.date > now),
    }


def status_color(status: Optional[str]) -> str:
    return STATUS_COLORS.get(status or '', DEFAULT_COLOR)


def event_style(status: Optional[str]) -> dict:
    color = status_color(status)
    return {
        'backgroundColor': color,
        'borderColor': color,
        'color': '#ffffff',
        'borderRadius': '4px',
        'opacity': 0.6 if status == 'cancelled' else 0.9,
    }


def to_calendar_event(record: AppointmentRecord) -> dict:
    """Calendar event: the appointment fields plus title, time range and style."""
    payload = record.to_payload()
    return {
        **payload,
        'id': record.id,
        'title': f'{record.patient_name} - {record.doctor_name}',
        'start': format_instant(record.date),
        'end': format_instant(effective_end(record)),
        'status': record.status,
        'allDay': False,
        'style': event_style(record.status),
        'resource': payload,
    }


def calendar_events(appointments: Iterable[AppointmentRecord], search_term: Optional[str] = '',
                    filter_status: Optional[str] = FILTER_ALL) -> list[dict]:
    return [to_calendar_event(a) for a in filter_appointments(appointments, search_term, filter_status)]


def build_view(appointments: Iterable[AppointmentRecord], *, now: datetime, search_term: Optional[str] = '',
               filter_status: Optional[str] = FILTER_ALL, view_mode: str = DEFAULT_VIEW_MODE) -> dict:
    """Everything the dashboard renders, computed in one pass."""
    appointments = list(appointments)
    filtered = filter_appointments(appointments, search_term, filter_status)
    return {
        'stats': summary_stats(appointments, now),
        'appointments': [a.to_payload() for a in filtered],
        'events': [to_calendar_event(a) for a in filtered],
        'filters': {'searchTerm': search_term or '', 'filterStatus': filter_status or FILTER_ALL},
        'viewMode': view_mode,
        'generatedAt': format_instant(now),
    }
