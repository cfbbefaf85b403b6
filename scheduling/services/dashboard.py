"""
Scheduling dashboard session.

A :class:`SchedulingDashboard` is owned by exactly one client session
(one WebSocket connection).  It keeps the cached appointment collection,
the filter and search state, moves that are still waiting for the store,
and the notification log.  The cache only changes after a store call has
returned; a drag on the calendar is shown through a :class:`PendingIntent`
overlay until then.

Concurrent mutations of one appointment are ordered by the ``version``
the store returns: a completion carrying a lower version than the cached
record is dropped, so the cache ends on the same state the store ended
on, whatever order the completions arrive in.  Stores that do not report
versions fall back to last-completed wins.

A refresh replaces the collection, except for appointments changed in
this session after the refresh was issued: those keep their local state
(including deletion) unless the fetched record carries a higher version.
"""
from __future__ import annotations

import itertools
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from django.utils import timezone

from scheduling.services.derived import DEFAULT_VIEW_MODE, FILTER_ALL, VIEW_MODES, build_view
from scheduling.services.notifications import NotificationLog
from scheduling.services.records import AppointmentRecord, STATUSES
from scheduling.services.reschedule import (
    FAILURE_MESSAGE as RESCHEDULE_FAILURE,
    REVERTED_MESSAGE,
    PendingIntent,
    Rescheduler,
    check_range,
    draft_from_slot,
    shift_preserving_duration,
)
from scheduling.services.store import AppointmentStore, StoreError
from scheduling.services.workflow import ActionOutcome, StatusWorkflow

logger = logging.getLogger(__name__)

LOAD_FAILED = 'Failed to load appointments'


class SchedulingDashboard:
    def __init__(self, store: AppointmentStore, log: Optional[NotificationLog] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.log = log or NotificationLog()
        self.clock = clock or timezone.now
        self.appointments: dict[str, AppointmentRecord] = {}
        self.search_term = ''
        self.filter_status = FILTER_ALL
        self.view_mode = DEFAULT_VIEW_MODE
        self.pending: dict[str, PendingIntent] = {}
        self.workflow = StatusWorkflow(store, self.log)
        self.rescheduler = Rescheduler(store, self.log)
        self._seq = itertools.count(1)
        self._applied: dict[str, int] = {}

    # -- collection bookkeeping ---------------------------------------------

    def get(self, appointment_id) -> Optional[AppointmentRecord]:
        return self.appointments.get(str(appointment_id))

    def _issue(self) -> int:
        return next(self._seq)

    def _commit(self, key: str, record: Optional[AppointmentRecord]) -> bool:
        """Apply a store completion to the cache; older versions are dropped."""
        current = self.appointments.get(key)
        if record is not None and current is not None and record.version < current.version:
            logger.info("dropping stale completion v%s for appointment %s (cached v%s)",
                        record.version, key, current.version)
            return False
        self._applied[key] = self._issue()
        if record is None:
            self.appointments.pop(key, None)
        else:
            self.appointments[key] = record
        return True

    async def refresh(self) -> bool:
        issued = self._issue()
        try:
            records = await self.store.fetch_all()
        except StoreError as exc:
            logger.warning("failed to load appointments: %s", exc)
            self.log.error(LOAD_FAILED)
            return False
        fetched = {str(r.id): r for r in records}
        for key, applied in self._applied.items():
            if applied < issued:
                continue
            local = self.appointments.get(key)
            if local is None:
                fetched.pop(key, None)
            elif key not in fetched or fetched[key].version <= local.version:
                fetched[key] = local
        self.appointments = fetched
        return True

    # -- filter / search state ------------------------------------------------

    def set_search(self, term: Optional[str]) -> None:
        self.search_term = (term or '').strip()

    def set_filter(self, status: Optional[str]) -> None:
        status = status or FILTER_ALL
        if status != FILTER_ALL and status not in STATUSES:
            raise ValueError(f'invalid status filter: {status}')
        self.filter_status = status

    def set_view_mode(self, mode: str) -> None:
        if mode not in VIEW_MODES:
            raise ValueError(f'invalid view mode: {mode}')
        self.view_mode = mode

    def view(self, now: Optional[datetime] = None) -> dict:
        shown = [
            self.pending[key].apply(record) if key in self.pending else record
            for key, record in self.appointments.items()
        ]
        data = build_view(
            shown,
            now=now or self.clock(),
            search_term=self.search_term,
            filter_status=self.filter_status,
            view_mode=self.view_mode,
        )
        data['pending'] = [intent.appointment_id for intent in self.pending.values()]
        data['notifications'] = self.log.to_payload()
        return data

    # -- mutations --------------------------------------------------------------

    async def apply_action(self, appointment_id, action: str) -> ActionOutcome:
        key = str(appointment_id)
        current = self.get(key)
        outcome = await self.workflow.apply_action(
            appointment_id, action, current_status=current.status if current else None
        )
        if outcome.ok:
            self._commit(key, outcome.appointment)
        return outcome

    async def move(self, appointment_id, new_start: datetime, new_end: Optional[datetime] = None,
                   on_pending: Optional[Callable[[], Awaitable[None]]] = None) -> Optional[AppointmentRecord]:
        """Drag-and-drop reschedule.

        Without ``new_end`` the original duration is kept.  The move is
        shown as pending while the store call runs and is dropped again
        (with a notification) when the store refuses it.
        ``on_pending`` is awaited once the pending move is visible in
        :meth:`view`.
        """
        key = str(appointment_id)
        record = self.get(key)
        if new_end is None:
            if record is None:
                logger.warning("cannot move unknown appointment %s", key)
                self.log.error(RESCHEDULE_FAILURE)
                return None
            new_start, new_end = shift_preserving_duration(record, new_start)
        check_range(new_start, new_end)
        intent = None
        if record is not None:
            intent = PendingIntent(record.id, record.date, record.end_time, new_start, new_end)
            self.pending[key] = intent
        try:
            if on_pending is not None:
                await on_pending()
            updated = await self.rescheduler.reschedule(appointment_id, new_start, new_end)
        finally:
            if intent is not None and self.pending.get(key) is intent:
                del self.pending[key]
        if updated is None:
            if intent is not None:
                self.log.error(REVERTED_MESSAGE)
            return None
        self._commit(key, updated)
        return updated

    def select_slot(self, start: datetime, end: datetime, **fields) -> dict:
        return draft_from_slot(start, end, **fields)

    async def save(self, form: dict) -> Optional[AppointmentRecord]:
        """Submit of the edit form: update when it carries an id, else create."""
        fields = dict(form)
        appointment_id = fields.pop('id', None)
        creating = appointment_id in (None, '')
        verb = 'create' if creating else 'update'
        try:
            if creating:
                record = await self.store.create(fields)
            else:
                record = await self.store.update(appointment_id, fields)
        except StoreError as exc:
            logger.warning("failed to %s appointment %s: %s", verb, appointment_id, exc)
            self.log.error(f'Failed to {verb} appointment')
            return None
        self._commit(str(record.id), record)
        self.log.success(f'Appointment {verb}d successfully')
        return record

    async def delete(self, appointment_id) -> bool:
        key = str(appointment_id)
        try:
            await self.store.delete(appointment_id)
        except StoreError as exc:
            logger.warning("failed to delete appointment %s: %s", appointment_id, exc)
            self.log.error('Failed to delete appointment')
            return False
        self._commit(key, None)
        self.pending.pop(key, None)
        self.log.success('Appointment deleted successfully')
        return True
