"""
Stateless scheduling dashboard endpoints.

The live dashboard runs over a WebSocket (see ``scheduling.realtime``).
These endpoints expose the same derived view and the same status and
reschedule operations to clients that only speak HTTP.  Each request
gets its own notification log; the outcome message is returned inline.
"""
from __future__ import annotations

from asgiref.sync import async_to_sync
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from ..permissions import CanManageSchedule
from ..serializers.appointment import ActionSerializer, DashboardQuerySerializer, RescheduleSerializer
from ..services.audit import log_action
from ..services.derived import DEFAULT_VIEW_MODE, FILTER_ALL, build_view
from ..services.notifications import NotificationLog
from ..services.reschedule import Rescheduler, check_range, shift_preserving_duration
from ..services.store import OrmAppointmentStore
from ..services.workflow import StatusWorkflow

store = OrmAppointmentStore()


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanManageSchedule])
def dashboard(request):
    """Statistics, filtered list and calendar events at the server's ``now``."""
    q = DashboardQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = build_view(
        store.query(),
        now=timezone.now(),
        search_term=q.validated_data.get('q', ''),
        filter_status=q.validated_data.get('status', FILTER_ALL),
        view_mode=q.validated_data.get('viewMode', DEFAULT_VIEW_MODE),
    )
    return Response({'ok': True, **data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanManageSchedule])
def appointment_action(request, pk: int):
    """Apply ``confirm``, ``cancel`` or ``complete`` to one appointment."""
    s = ActionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    current = store.get(pk)
    log = NotificationLog()
    outcome = async_to_sync(StatusWorkflow(store, log).apply_action)(
        pk, s.validated_data['action'], current_status=current.status
    )
    if outcome.ok:
        log_action(user=request.user, action=f"appointment_{outcome.action}", object_type='appointment',
                   object_id=pk, detail={'from': current.status, 'to': outcome.status})
    return Response(outcome.to_payload(), status=status.HTTP_200_OK if outcome.ok else status.HTTP_409_CONFLICT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanManageSchedule])
def appointment_reschedule(request, pk: int):
    """Move an appointment; without ``end`` its current duration is kept."""
    s = RescheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    current = store.get(pk)
    start = s.validated_data['start']
    end = s.validated_data.get('end')
    if end is None:
        start, end = shift_preserving_duration(current, start)
    check_range(start, end)
    log = NotificationLog()
    record = async_to_sync(Rescheduler(store, log).reschedule)(pk, start, end)
    message = log.latest().message
    if record is None:
        return Response({'ok': False, 'message': message}, status=status.HTTP_409_CONFLICT)
    log_action(user=request.user, action='appointment_reschedule', object_type='appointment', object_id=pk,
               detail={'from': current.date.isoformat(), 'to': record.date.isoformat()})
    return Response({'ok': True, 'message': message, 'appointment': record.to_payload()})
