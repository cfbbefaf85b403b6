from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

from scheduling.services.reschedule import InvalidTimeRange
from scheduling.services.store import StoreError, StoreNotFound, StoreValidationError
from scheduling.services.workflow import UnknownAction


def _error(code, message, status):
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=status)


def api_exception_handler(exc, context):
    # store and scheduling errors map onto HTTP statuses before DRF sees them
    if isinstance(exc, StoreNotFound):
        return _error('not_found', str(exc), 404)
    if isinstance(exc, (StoreValidationError, InvalidTimeRange, UnknownAction)):
        return _error('invalid', str(exc), 400)
    if isinstance(exc, StoreError):
        return _error('store_error', str(exc), 502)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return _error('server_error', str(exc), 500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return _error('api_error', detail, resp.status_code)
