from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from core.permissions import ModuleAccess
from core.serializers.claims import ClaimSerializer, ClaimUpdateSerializer, ClaimTransitionSerializer
from core.services import claims as svc
from core.views.common import ok, paged, validated


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('claims')])
def claim_list(request):
    if request.method == 'GET':
        return paged(svc.list_claims(request.user, request.query_params), request.query_params, svc.format_claim)
    data = validated(ClaimSerializer, request.data)
    c = svc.create_claim(data, user=request.user, request=request)
    return ok(svc.format_claim(c), status=201)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess.of('claims')])
def claim_detail(request, pk: int):
    c = svc.get_claim(request.user, pk)
    if request.method == 'GET':
        return ok(svc.format_claim(c))
    data = validated(ClaimUpdateSerializer, request.data, partial=True)
    c = svc.update_claim(c, data, user=request.user, request=request)
    return ok(svc.format_claim(c))


@api_view(['POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('claims')])
def claim_transition(request, pk: int):
    c = svc.get_claim(request.user, pk)
    data = validated(ClaimTransitionSerializer, request.data)
    c = svc.transition_claim(c, data, user=request.user, request=request)
    return ok(svc.format_claim(c))
