import logging

from django.core.cache import cache
from django.db import connections
from django.http import JsonResponse
from django.utils import timezone

logger = logging.getLogger(__name__)


def healthz(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
    except Exception as e:
        logger.error("Health check database query failed: %s", e)
        return JsonResponse({'ok': False, 'db': False, 'error': str(e)}, status=503)
    try:
        cache.set('healthz', 1, 5)
        cache_ok = cache.get('healthz') == 1
    except Exception:
        logger.warning("Health check cache round trip failed", exc_info=True)
        cache_ok = False
    return JsonResponse({
        'ok': True,
        'db': bool(row and row[0] == 1),
        'cache': cache_ok,
        'time': timezone.now().isoformat(),
    })
