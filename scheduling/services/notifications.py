"""
Bounded log of recent user-facing outcomes.

The log lives as long as the dashboard session that owns it; the toast
renderer on the client reads it but never writes back.
"""
from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.utils import timezone

SUCCESS = 'success'
ERROR = 'error'


@dataclass
class Notification:
    id: int
    type: str
    message: str
    timestamp: datetime
    read: bool = False

    def to_payload(self) -> dict:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data


class NotificationLog:
    """Newest-first ring buffer of :class:`Notification` entries."""

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity or settings.SCHEDULING_NOTIFICATION_CAPACITY
        self._entries: deque[Notification] = deque(maxlen=self.capacity)
        self._last_id = 0

    def _next_id(self) -> int:
        # clock-derived but strictly increasing, even within one clock tick
        self._last_id = max(time.monotonic_ns(), self._last_id + 1)
        return self._last_id

    def push(self, type: str, message: str) -> Notification:
        entry = Notification(id=self._next_id(), type=type, message=message, timestamp=timezone.now())
        # appendleft on a full deque drops the oldest entry from the right
        self._entries.appendleft(entry)
        return entry

    def success(self, message: str) -> Notification:
        return self.push(SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self.push(ERROR, message)

    def mark_read(self, notification_id: int) -> bool:
        for entry in self._entries:
            if entry.id == notification_id:
                entry.read = True
                return True
        return False

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> list[Notification]:
        return list(self._entries)

    def latest(self) -> Optional[Notification]:
        return self._entries[0] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def to_payload(self) -> list[dict]:
        return [e.to_payload() for e in self._entries]
