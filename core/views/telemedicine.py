"""Telemedicine scheduling and video room tokens."""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from core.permissions import ModuleAccess
from core.serializers.telemedicine import SessionSerializer, SessionUpdateSerializer, TokenRequestSerializer
from core.services import telemedicine as svc
from core.views.common import ok, paged, validated


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('telemedicine')])
def session_list(request):
    if request.method == 'GET':
        qs = svc.list_sessions(request.user, request.query_params)
        return paged(qs, request.query_params, svc.format_session)
    data = validated(SessionSerializer, request.data)
    s = svc.create_session(data, user=request.user, request=request)
    return ok(svc.format_session(s), status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, ModuleAccess.of('telemedicine')])
def session_detail(request, pk: int):
    s = svc.get_session(request.user, pk)
    if request.method == 'GET':
        return ok(svc.format_session(s))
    if request.method == 'DELETE':
        s = svc.cancel_session(s, user=request.user, request=request)
        return ok(svc.format_session(s))
    data = validated(SessionUpdateSerializer, request.data, partial=True)
    s = svc.update_session(s, data, user=request.user, request=request)
    return ok(svc.format_session(s))


@api_view(['POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('telemedicine')])
def session_token(request):
    data = validated(TokenRequestSerializer, request.data)
    return ok(svc.issue_room_token(request.user, data['sessionId'], request=request))
