"""
Calendar gestures that change appointment times.

Dragging an event moves it while keeping its duration; selecting an
empty slot produces an unsaved draft for the edit form.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from scheduling.services.derived import effective_end
from scheduling.services.notifications import NotificationLog
from scheduling.services.records import AppointmentRecord, DEFAULT_STATUS, format_instant
from scheduling.services.store import AppointmentStore, StoreError

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = 'Appointment rescheduled successfully'
FAILURE_MESSAGE = 'Failed to reschedule appointment'
REVERTED_MESSAGE = 'Appointment moved back to its original time'


class InvalidTimeRange(ValueError):
    pass


@dataclass(frozen=True)
class PendingIntent:
    """A move shown on the calendar but not yet confirmed by the store."""
    appointment_id: object
    previous_start: datetime
    previous_end: Optional[datetime]
    start: datetime
    end: datetime

    def apply(self, record: AppointmentRecord) -> AppointmentRecord:
        return record.with_times(self.start, self.end)


def shift_preserving_duration(record: AppointmentRecord, new_start: datetime) -> tuple[datetime, datetime]:
    return new_start, new_start + (effective_end(record) - record.date)


def check_range(start: datetime, end: datetime) -> None:
    if end <= start:
        raise InvalidTimeRange('end must be after start')


def draft_from_slot(start: datetime, end: datetime, **fields) -> dict:
    """Unsaved appointment for an empty calendar slot selection."""
    check_range(start, end)
    return {
        'id': None,
        'patientId': fields.get('patientId'),
        'patientName': fields.get('patientName', ''),
        'doctorId': fields.get('doctorId'),
        'doctorName': fields.get('doctorName', ''),
        'date': format_instant(start),
        'endTime': format_instant(end),
        'status': DEFAULT_STATUS,
        'notes': fields.get('notes', ''),
        'type': fields.get('type', 'checkup'),
    }


class Rescheduler:
    def __init__(self, store: AppointmentStore, log: NotificationLog):
        self.store = store
        self.log = log

    async def reschedule(self, appointment_id, new_start: datetime,
                         new_end: datetime) -> Optional[AppointmentRecord]:
        """Persist a new time range; returns ``None`` when the store refuses it."""
        check_range(new_start, new_end)
        try:
            record = await self.store.update(appointment_id, {'date': new_start, 'endTime': new_end})
        except StoreError as exc:
            logger.warning("failed to reschedule appointment %s: %s", appointment_id, exc)
            self.log.error(FAILURE_MESSAGE)
            return None
        self.log.success(SUCCESS_MESSAGE)
        return record
