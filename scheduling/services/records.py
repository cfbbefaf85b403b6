"""
In-memory appointment records.

The dashboard never holds model instances: everything it caches or
projects is an immutable :class:`AppointmentRecord`.  Records convert to
and from the camelCase payloads used on the wire by both the REST API
and the WebSocket dashboard.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

STATUSES = ('pending', 'confirmed', 'completed', 'cancelled')
DEFAULT_STATUS = 'pending'

# wire name -> record attribute, for the fields a caller may change
WRITABLE_FIELDS = {
    'patientId': 'patient_id',
    'patientName': 'patient_name',
    'doctorId': 'doctor_id',
    'doctorName': 'doctor_name',
    'date': 'date',
    'endTime': 'end_time',
    'status': 'status',
    'notes': 'notes',
    'type': 'type',
}


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 (or ``yyyy-MM-dd HH:mm``) value into an aware datetime.

    Naive values are interpreted in the current time zone.  Raises
    ``ValueError`` for strings that are not datetimes.
    """
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = parse_datetime(str(value).strip())
        if dt is None:
            raise ValueError(f'invalid datetime: {value!r}')
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt)
    return dt


def format_instant(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _name_from(data: dict, flat_key: str, nested_key: str) -> str:
    if data.get(flat_key):
        return str(data[flat_key])
    nested = data.get(nested_key)
    if isinstance(nested, dict):
        return str(nested.get('name') or nested.get('fullName') or '')
    if isinstance(nested, str):
        return nested
    return ''


@dataclass(frozen=True)
class AppointmentRecord:
    id: Any
    date: datetime
    patient_id: Any = None
    patient_name: str = ''
    doctor_id: Any = None
    doctor_name: str = ''
    end_time: Optional[datetime] = None
    status: str = DEFAULT_STATUS
    notes: str = ''
    type: str = 'checkup'
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1
    extra: dict = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, data: dict) -> 'AppointmentRecord':
        """Build a record from an API payload.

        Absent names and notes default to empty strings and a missing
        status defaults to ``pending``.  ``appointmentDate`` is accepted
        as an alias of ``date``.
        """
        known = {
            'id', '_id', 'patientId', 'patientName', 'patient', 'doctorId', 'doctorName',
            'doctor', 'date', 'appointmentDate', 'endTime', 'status', 'notes', 'description',
            'type', 'createdAt', 'updatedAt', 'version',
        }
        start = parse_instant(data.get('date') or data.get('appointmentDate'))
        if start is None:
            raise ValueError('appointment date is required')
        patient = data.get('patient')
        doctor = data.get('doctor')
        return cls(
            id=data.get('id', data.get('_id')),
            date=start,
            patient_id=data.get('patientId', patient.get('id') if isinstance(patient, dict) else None),
            patient_name=_name_from(data, 'patientName', 'patient'),
            doctor_id=data.get('doctorId', doctor.get('id') if isinstance(doctor, dict) else None),
            doctor_name=_name_from(data, 'doctorName', 'doctor'),
            end_time=parse_instant(data.get('endTime')),
            status=str(data.get('status') or DEFAULT_STATUS).lower(),
            notes=data.get('notes') or data.get('description') or '',
            type=data.get('type') or 'checkup',
            created_at=parse_instant(data.get('createdAt')),
            updated_at=parse_instant(data.get('updatedAt')),
            version=int(data.get('version') or 1),
            extra={k: v for k, v in data.items() if k not in known},
        )

    @classmethod
    def from_model(cls, obj) -> 'AppointmentRecord':
        return cls(
            id=obj.id,
            date=obj.date,
            patient_id=obj.patient_id,
            patient_name=obj.patient_name,
            doctor_id=obj.doctor_id,
            doctor_name=obj.doctor_name,
            end_time=obj.end_time,
            status=obj.status,
            notes=obj.notes,
            type=obj.type,
            created_at=obj.created_at,
            updated_at=obj.updated_at,
            version=obj.version,
        )

    def to_payload(self) -> dict:
        return {
            **self.extra,
            'id': self.id,
            'patientId': self.patient_id,
            'patientName': self.patient_name,
            'doctorId': self.doctor_id,
            'doctorName': self.doctor_name,
            'date': format_instant(self.date),
            'endTime': format_instant(self.end_time),
            'status': self.status,
            'notes': self.notes,
            'type': self.type,
            'createdAt': format_instant(self.created_at),
            'updatedAt': format_instant(self.updated_at),
            'version': self.version,
        }

    def with_times(self, start: datetime, end: Optional[datetime]) -> 'AppointmentRecord':
        return replace(self, date=start, end_time=end)


def normalize_fields(fields: dict) -> dict:
    """Map a camelCase partial update onto record attribute names.

    Unknown keys are dropped.  Datetime fields are parsed and the status
    is lower-cased, so the result can be handed to any store backend.
    """
    out: dict = {}
    for key, value in fields.items():
        attr = WRITABLE_FIELDS.get(key) or (key if key in WRITABLE_FIELDS.values() else None)
        if key == 'appointmentDate':
            attr = 'date'
        if attr is None:
            continue
        if attr in ('date', 'end_time'):
            value = parse_instant(value)
        elif attr == 'status' and value is not None:
            value = str(value).lower()
        elif attr in ('patient_name', 'doctor_name', 'notes', 'type') and value is None:
            value = ''
        out[attr] = value
    return out


def to_wire(fields: dict) -> dict:
    """Inverse of :func:`normalize_fields` for outbound requests."""
    reverse = {v: k for k, v in WRITABLE_FIELDS.items()}
    out = {}
    for attr, value in fields.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        out[reverse.get(attr, attr)] = value
    return out
