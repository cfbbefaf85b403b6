"""
Appointment endpoints.

These endpoints are the appointment data service used by the clinic
front end and by remote dashboards configured with the ``http`` store
backend: list, create, read, update and delete, plus doctor and patient
listings.  Responses use the ``{"ok": ..., "appointments": [...]}``
envelope the front end already understands.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from ..permissions import CanManageSchedule
from ..serializers.appointment import AppointmentWriteSerializer, ScheduleQuerySerializer
from ..services.audit import log_action, recent_actions
from ..services.store import OrmAppointmentStore

store = OrmAppointmentStore()


def _payloads(records) -> list[dict]:
    return [r.to_payload() for r in records]


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, CanManageSchedule])
def appointments(request):
    """List all appointments (GET) or book a new one (POST).

    A new appointment starts as ``pending`` unless a status is given.
    Patient and doctor names are filled in from the referenced users
    when the request only carries their ids.
    """
    if request.method == 'GET':
        return Response({'ok': True, 'appointments': _payloads(store.query())})
    s = AppointmentWriteSerializer(data=request.data, context={'creating': True})
    s.is_valid(raise_exception=True)
    record = store.create_sync(dict(s.validated_data))
    log_action(user=request.user, action='appointment_create', object_type='appointment',
               object_id=record.id, detail={'status': record.status})
    return Response({'ok': True, 'appointment': record.to_payload()}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, CanManageSchedule])
def appointment_detail(request, pk: int):
    if request.method == 'GET':
        record = store.get(pk)
        return Response({'ok': True, 'appointment': record.to_payload(),
                         'history': recent_actions('appointment', pk)})
    if request.method == 'DELETE':
        store.delete_sync(pk)
        log_action(user=request.user, action='appointment_delete', object_type='appointment', object_id=pk)
        return Response({'ok': True, 'message': 'Appointment deleted successfully'})
    s = AppointmentWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    fields = dict(s.validated_data)
    record = store.update_sync(pk, fields)
    log_action(user=request.user, action='appointment_update', object_type='appointment',
               object_id=pk, detail={'fields': sorted(fields)})
    return Response({'ok': True, 'appointment': record.to_payload()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanManageSchedule])
def doctor_appointments(request, doctor_id: int):
    return Response({'ok': True, 'appointments': _payloads(store.for_doctor(doctor_id))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanManageSchedule])
def patient_appointments(request, patient_id: int):
    return Response({'ok': True, 'appointments': _payloads(store.for_patient(patient_id))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanManageSchedule])
def doctor_schedule(request, doctor_id: int):
    """Appointments of one doctor starting between ``start`` and ``end``."""
    q = ScheduleQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    records = store.doctor_schedule(doctor_id, q.validated_data['start'], q.validated_data['end'])
    return Response({'ok': True, 'schedule': _payloads(records)})
