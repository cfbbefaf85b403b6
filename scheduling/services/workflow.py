"""
Appointment status workflow.

Named actions move an appointment to a new status through the store.
By default any action is accepted from any current status, matching how
the front desk has always worked; with ``SCHEDULING_STRICT_TRANSITIONS``
enabled the :data:`TRANSITIONS` table is enforced instead.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings

from scheduling.services.notifications import NotificationLog
from scheduling.services.records import AppointmentRecord
from scheduling.services.store import AppointmentStore, StoreError

logger = logging.getLogger(__name__)

ACTIONS = {
    'confirm': 'confirmed',
    'cancel': 'cancelled',
    'complete': 'completed',
}

SUCCESS_MESSAGES = {
    'confirm': 'Appointment confirmed successfully',
    'cancel': 'Appointment cancelled',
    'complete': 'Appointment marked as completed',
}

# Only consulted in strict mode.  Re-applying the current status is
# always allowed so that repeated actions stay idempotent.
TRANSITIONS = {
    'pending': {'confirmed', 'cancelled'},
    'confirmed': {'completed', 'cancelled'},
    'completed': set(),
    'cancelled': set(),
}


class UnknownAction(ValueError):
    pass


@dataclass(frozen=True)
class ActionOutcome:
    ok: bool
    action: str
    status: Optional[str]
    message: str
    appointment: Optional[AppointmentRecord] = None

    def to_payload(self) -> dict:
        return {
            'ok': self.ok,
            'action': self.action,
            'status': self.status,
            'message': self.message,
            'appointment': self.appointment.to_payload() if self.appointment else None,
        }


def failure_message(action: str) -> str:
    return f'Failed to {action} appointment'


def target_status(action: str) -> str:
    try:
        return ACTIONS[action]
    except KeyError:
        raise UnknownAction(f'unknown action: {action}')


def can_transition(current: Optional[str], new: str, strict: Optional[bool] = None) -> bool:
    """Return True if an appointment may move from ``current`` to ``new``."""
    if strict is None:
        strict = settings.SCHEDULING_STRICT_TRANSITIONS
    if not strict or current == new:
        return True
    return new in TRANSITIONS.get(current or '', set())


class StatusWorkflow:
    """Applies named status actions and records their outcome."""

    def __init__(self, store: AppointmentStore, log: NotificationLog):
        self.store = store
        self.log = log

    async def apply_action(self, appointment_id, action: str,
                           current_status: Optional[str] = None) -> ActionOutcome:
        """Persist the status behind ``action`` for one appointment.

        ``current_status`` is only needed for strict transition checks.
        Store failures are reported in the outcome and the notification
        log; they are never raised.
        """
        status = target_status(action)
        if current_status is not None and not can_transition(current_status, status):
            logger.info("rejected %s on appointment %s in status %s", action, appointment_id, current_status)
            message = failure_message(action)
            self.log.error(message)
            return ActionOutcome(False, action, current_status, message)
        try:
            record = await self.store.update(appointment_id, {'status': status})
        except StoreError as exc:
            logger.warning("failed to %s appointment %s: %s", action, appointment_id, exc)
            message = failure_message(action)
            self.log.error(message)
            return ActionOutcome(False, action, current_status, message)
        message = SUCCESS_MESSAGES[action]
        self.log.success(message)
        return ActionOutcome(True, action, record.status, message, record)
