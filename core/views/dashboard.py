from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from core.permissions import ModuleAccess
from core.services import dashboard as svc
from core.views.common import ok


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess.of('dashboard')])
def dashboard_summary(request):
    """Scoped counters; ``?refresh=1`` bypasses the cache."""
    refresh = request.query_params.get('refresh') in ('1', 'true')
    return ok(svc.summary(request.user, refresh=refresh))
