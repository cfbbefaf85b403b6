"""
Appointment store adapters.

A store is the only way the scheduling core reads or writes
appointments.  Stores hold no cache and never retry: every failure is
raised as a :class:`StoreError` and it is up to the caller to turn it
into a user-facing outcome.

Two backends exist.  :class:`OrmAppointmentStore` persists to the local
database through the Django ORM; :class:`HttpAppointmentStore` talks to
a remote appointments API of the same shape as ``/api/appointments``.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

import requests
from asgiref.sync import sync_to_async
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F

from scheduling.models import Appointment
from scheduling.services.records import (
    AppointmentRecord,
    STATUSES,
    normalize_fields,
    to_wire,
)

logger = logging.getLogger(__name__)

User = get_user_model()


class StoreError(Exception):
    """Any failure of the appointment store (network, validation, not found)."""


class StoreNotFound(StoreError):
    pass


class StoreValidationError(StoreError):
    pass


class StoreUnavailable(StoreError):
    pass


class AppointmentStore:
    """Interface shared by all store backends.  Every method is a coroutine."""

    async def fetch_all(self) -> list[AppointmentRecord]:
        raise NotImplementedError

    async def update(self, appointment_id, fields: dict) -> AppointmentRecord:
        raise NotImplementedError

    async def create(self, fields: dict) -> AppointmentRecord:
        raise NotImplementedError

    async def delete(self, appointment_id) -> None:
        raise NotImplementedError


def _check_fields(fields: dict) -> dict:
    try:
        clean = normalize_fields(fields)
    except ValueError as exc:
        raise StoreValidationError(str(exc)) from exc
    status = clean.get('status')
    if status is not None and status not in STATUSES:
        raise StoreValidationError(f'invalid status: {status}')
    return clean


# ---------------------------------------------------------------------------
# Django ORM backend
# ---------------------------------------------------------------------------

class OrmAppointmentStore(AppointmentStore):
    """Store backed by the :class:`~scheduling.models.Appointment` table.

    ORM work runs in asgiref's thread-sensitive executor so that awaiting
    a store call only suspends the calling coroutine.
    """

    async def fetch_all(self) -> list[AppointmentRecord]:
        return await sync_to_async(self.query)()

    async def update(self, appointment_id, fields: dict) -> AppointmentRecord:
        return await sync_to_async(self.update_sync)(appointment_id, fields)

    async def create(self, fields: dict) -> AppointmentRecord:
        return await sync_to_async(self.create_sync)(fields)

    async def delete(self, appointment_id) -> None:
        await sync_to_async(self.delete_sync)(appointment_id)

    # -- synchronous API, used directly by the REST views -------------------

    def query(self, **filters) -> list[AppointmentRecord]:
        qs = Appointment.objects.filter(**filters).order_by('date', 'id')
        return [AppointmentRecord.from_model(a) for a in qs]

    def get(self, appointment_id) -> AppointmentRecord:
        return AppointmentRecord.from_model(self._get_model(appointment_id))

    def for_doctor(self, doctor_id) -> list[AppointmentRecord]:
        return self.query(doctor_id=doctor_id)

    def for_patient(self, patient_id) -> list[AppointmentRecord]:
        return self.query(patient_id=patient_id)

    def doctor_schedule(self, doctor_id, start: datetime, end: datetime) -> list[AppointmentRecord]:
        """Appointments of a doctor whose start falls within ``[start, end]``."""
        return self.query(doctor_id=doctor_id, date__gte=start, date__lte=end)

    def update_sync(self, appointment_id, fields: dict) -> AppointmentRecord:
        clean = _check_fields(fields)
        # the patient of an existing appointment never changes
        clean.pop('patient_id', None)
        clean.pop('patient_name', None)
        with transaction.atomic():
            obj = self._get_model(appointment_id, for_update=True)
            doctor_id = clean.pop('doctor_id', obj.doctor_id)
            changed = False
            if doctor_id is None and obj.doctor_id is not None:
                obj.doctor = None
                clean.setdefault('doctor_name', '')
                changed = True
            elif doctor_id is not None and str(doctor_id) != str(obj.doctor_id):
                doctor = self._get_user(doctor_id, 'doctor')
                obj.doctor = doctor
                clean.setdefault('doctor_name', doctor.display_name)
                changed = True
            for attr, value in clean.items():
                if getattr(obj, attr) != value:
                    setattr(obj, attr, value)
                    changed = True
            self._validate(obj)
            # identical repeated updates leave the row (and its version) alone
            if changed:
                obj.version = F('version') + 1
                obj.save()
                obj.refresh_from_db()
        return AppointmentRecord.from_model(obj)

    def create_sync(self, fields: dict) -> AppointmentRecord:
        clean = _check_fields(fields)
        if clean.get('date') is None:
            raise StoreValidationError('appointment date is required')
        patient = self._get_user(clean.pop('patient_id'), 'patient') if clean.get('patient_id') else None
        doctor = self._get_user(clean.pop('doctor_id'), 'doctor') if clean.get('doctor_id') else None
        clean.pop('patient_id', None)
        clean.pop('doctor_id', None)
        if patient and not clean.get('patient_name'):
            clean['patient_name'] = patient.display_name
        if doctor and not clean.get('doctor_name'):
            clean['doctor_name'] = doctor.display_name
        clean['status'] = clean.get('status') or Appointment.STATUS_PENDING
        obj = Appointment(patient=patient, doctor=doctor, **clean)
        self._validate(obj)
        obj.save()
        return AppointmentRecord.from_model(obj)

    def delete_sync(self, appointment_id) -> None:
        try:
            deleted, _ = Appointment.objects.filter(pk=appointment_id).delete()
        except (ValueError, TypeError):
            deleted = 0
        if not deleted:
            raise StoreNotFound(f'appointment {appointment_id} not found')

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def _get_model(appointment_id, for_update: bool = False) -> Appointment:
        qs = Appointment.objects.select_for_update() if for_update else Appointment.objects
        try:
            return qs.get(pk=appointment_id)
        except (Appointment.DoesNotExist, ValueError, TypeError):
            raise StoreNotFound(f'appointment {appointment_id} not found')

    @staticmethod
    def _get_user(user_id, role: str):
        try:
            return User.objects.get(pk=user_id)
        except (User.DoesNotExist, ValueError, TypeError):
            raise StoreValidationError(f'{role} {user_id} not found')

    @staticmethod
    def _validate(obj: Appointment) -> None:
        try:
            obj.clean()
        except ValidationError as exc:
            raise StoreValidationError('; '.join(exc.messages)) from exc


# ---------------------------------------------------------------------------
# Remote HTTP backend
# ---------------------------------------------------------------------------

def _unwrap(data: Any, key: str) -> Any:
    """Accept both bare payloads and ``{"<key>": ...}`` envelopes."""
    if isinstance(data, dict) and key in data:
        return data[key]
    return data


class HttpAppointmentStore(AppointmentStore):
    """Store backed by a remote appointments REST API."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or settings.SCHEDULING_REMOTE_API_URL).rstrip('/')
        self.token = token if token is not None else settings.SCHEDULING_REMOTE_TOKEN
        self.timeout = timeout or settings.SCHEDULING_REMOTE_TIMEOUT
        self.session = session or requests.Session()

    def _request(self, method: str, path: str = '', payload: Optional[dict] = None) -> Any:
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        url = f'{self.base_url}{path}'
        try:
            r = self.session.request(method, url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("appointment store request %s %s failed: %s", method, url, exc)
            raise StoreUnavailable(f'{method} {url} failed: {exc}') from exc
        if r.status_code == 404:
            raise StoreNotFound(f'{method} {url}: not found')
        if r.status_code in (400, 422):
            raise StoreValidationError(self._message(r))
        if not r.ok:
            raise StoreError(f'{method} {url}: HTTP {r.status_code} {self._message(r)}')
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as exc:
            raise StoreError(f'{method} {url}: invalid JSON response') from exc

    @staticmethod
    def _message(r: requests.Response) -> str:
        try:
            data = r.json()
        except ValueError:
            return r.text[:200]
        if isinstance(data, dict):
            err = data.get('error')
            if isinstance(err, dict):
                return str(err.get('message'))
            return str(data.get('message') or data.get('detail') or data)
        return str(data)

    @staticmethod
    def _record(data: Any) -> AppointmentRecord:
        data = _unwrap(data, 'appointment')
        if not isinstance(data, dict):
            raise StoreError('unexpected appointment payload')
        try:
            return AppointmentRecord.from_payload(data)
        except ValueError as exc:
            raise StoreError(str(exc)) from exc

    def fetch_all_sync(self) -> list[AppointmentRecord]:
        data = _unwrap(self._request('GET'), 'appointments')
        if isinstance(data, dict):
            data = [data]
        return [self._record(item) for item in data or []]

    def update_sync(self, appointment_id, fields: dict) -> AppointmentRecord:
        body = to_wire(_check_fields(fields))
        return self._record(self._request('PUT', f'/{appointment_id}', body))

    def create_sync(self, fields: dict) -> AppointmentRecord:
        body = to_wire(_check_fields(fields))
        return self._record(self._request('POST', '', body))

    def delete_sync(self, appointment_id) -> None:
        self._request('DELETE', f'/{appointment_id}')

    async def fetch_all(self) -> list[AppointmentRecord]:
        return await sync_to_async(self.fetch_all_sync, thread_sensitive=False)()

    async def update(self, appointment_id, fields: dict) -> AppointmentRecord:
        return await sync_to_async(self.update_sync, thread_sensitive=False)(appointment_id, fields)

    async def create(self, fields: dict) -> AppointmentRecord:
        return await sync_to_async(self.create_sync, thread_sensitive=False)(fields)

    async def delete(self, appointment_id) -> None:
        await sync_to_async(self.delete_sync, thread_sensitive=False)(appointment_id)


def get_store() -> AppointmentStore:
    """Return the store backend selected by ``SCHEDULING_STORE_BACKEND``."""
    if settings.SCHEDULING_STORE_BACKEND == 'http':
        return HttpAppointmentStore()
    return OrmAppointmentStore()
