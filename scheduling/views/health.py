import logging

from django.conf import settings
from django.db import DatabaseError, connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    """Liveness probe: database round trip plus the configured appointment store."""
    backend = settings.SCHEDULING_STORE_BACKEND
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
    except DatabaseError as e:
        logger.error("health check failed: %s", e)
        return JsonResponse({'ok': False, 'store': backend, 'error': str(e)}, status=500)
    return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1), 'store': backend})
