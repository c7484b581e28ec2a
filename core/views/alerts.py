from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated

from core.models import SystemAlert
from core.serializers.resources import AlertQuerySerializer
from core.services import alerts as svc
from core.services.common import get_or_404
from core.views.common import ok, paged, validated


def _alert(request, pk) -> SystemAlert:
    alert = get_or_404(SystemAlert, pk, message='Alert not found')
    if not svc.scoped_alerts(request.user).filter(pk=alert.pk).exists():
        raise PermissionDenied('You do not have access to this alert')
    return alert


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def alert_list(request):
    q = validated(AlertQuerySerializer, request.query_params)
    qs = svc.scoped_alerts(request.user)
    if q.get('status'):
        qs = qs.filter(status=q['status'])
    if q.get('severity'):
        qs = qs.filter(severity=q['severity'])
    if q.get('hospitalId'):
        qs = qs.filter(hospital_id=q['hospitalId'])
    return paged(qs.order_by('-created_at'), request.query_params, svc.format_alert)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def alert_acknowledge(request, pk: int):
    alert = svc.acknowledge(_alert(request, pk), request.user, request=request)
    return ok(svc.format_alert(alert))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def alert_resolve(request, pk: int):
    alert = svc.resolve(_alert(request, pk), request.user, request=request)
    return ok(svc.format_alert(alert))
