"""Liveness probe used by the load balancer."""
import logging

from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    checks = {'db': False, 'cache': False}
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        checks['db'] = bool(row and row[0] == 1)
    except DatabaseError:
        logger.exception('healthz: database check failed')
    try:
        cache.set('healthz:ping', 1, 5)
        checks['cache'] = cache.get('healthz:ping') == 1
    except Exception:
        logger.exception('healthz: cache check failed')
    ok = all(checks.values())
    return JsonResponse({'ok': ok, **checks}, status=200 if ok else 503)
