"""Emergency incidents and hospital responses."""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated

from core.permissions import ModuleAccess, is_super
from core.serializers.emergencies import (
    EmergencySerializer, EmergencyUpdateSerializer, BulkStatusSerializer, ResponseSerializer,
    ResponseUpdateSerializer,
)
from core.services import emergencies as svc
from core.views.common import ok, paged, validated

RESPONSE_REMOVER_ROLES = ('HOSPITAL_ADMIN', 'COUNTY_ADMIN')


@api_view(['GET', 'POST', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess.of('emergencies')])
def emergency_list(request):
    if request.method == 'GET':
        qs = svc.list_emergencies(request.user, request.query_params)
        return paged(qs, request.query_params, svc.format_emergency)
    if request.method == 'PATCH':
        data = validated(BulkStatusSerializer, request.data)
        return ok(svc.bulk_update_status(request.user, data['ids'], data['status'], request=request))
    data = validated(EmergencySerializer, request.data)
    e, notified = svc.create_emergency(data, user=request.user, request=request)
    return ok(svc.format_emergency(e, detail=True), status=201, hospitalsNotified=notified)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, ModuleAccess.of('emergencies')])
def emergency_detail(request, pk: int):
    e = svc.get_emergency(request.user, pk)
    if request.method == 'GET':
        return ok(svc.format_emergency(e, detail=True))
    if request.method == 'DELETE':
        e = svc.archive_emergency(e, user=request.user, request=request)
        return ok(svc.format_emergency(e))
    data = validated(EmergencyUpdateSerializer, request.data, partial=True)
    e = svc.update_emergency(e, data, user=request.user, request=request)
    return ok(svc.format_emergency(e, detail=True))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('emergencies')])
def response_list(request, pk: int):
    e = svc.get_emergency(request.user, pk)
    if request.method == 'GET':
        return ok([svc.format_response(r) for r in e.responses.select_related('hospital', 'ambulance')])
    data = validated(ResponseSerializer, request.data)
    r = svc.create_response(e, data, user=request.user, request=request)
    return ok(svc.format_response(r), status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, ModuleAccess.of('emergencies')])
def response_detail(request, pk: int, response_id: int):
    e = svc.get_emergency(request.user, pk)
    r = svc.get_response(e, response_id)
    if request.method == 'GET':
        return ok(svc.format_response(r))
    if request.method == 'DELETE':
        if not (is_super(request.user) or request.user.role in RESPONSE_REMOVER_ROLES):
            raise PermissionDenied('Only administrators can remove a response')
        svc.delete_response(r, user=request.user, request=request)
        return ok({'id': response_id, 'deleted': True})
    data = validated(ResponseUpdateSerializer, request.data, partial=True)
    r = svc.update_response(r, data, user=request.user, request=request)
    return ok(svc.format_response(r))
