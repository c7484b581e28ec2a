"""Inventory, bed availability and critical shortage views."""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated

from core.permissions import ModuleAccess, has_permission
from core.serializers.resources import ResourceSerializer, BedAvailabilitySerializer, ShortageAckSerializer
from core.services import resources as svc
from core.services.alerts import format_alert
from core.views.common import ok, paged, validated

BED_READ_PERMS = ('resources.read', 'resources.write', 'triage.read', 'transfers.read', 'hospitals.read')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('resources')])
def resource_list(request):
    if request.method == 'GET':
        qs = svc.list_resources(request.user, request.query_params)
        return paged(qs, request.query_params, svc.format_resource)
    data = validated(ResourceSerializer, request.data)
    r = svc.create_resource(data, user=request.user, request=request)
    return ok(svc.format_resource(r), status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, ModuleAccess.of('resources')])
def resource_detail(request, pk: int):
    r = svc.get_resource(request.user, pk)
    if request.method == 'GET':
        return ok(svc.format_resource(r))
    if request.method == 'DELETE':
        svc.delete_resource(r, user=request.user, request=request)
        return ok({'id': pk, 'deleted': True})
    data = validated(ResourceSerializer, request.data, partial=True)
    data.pop('hospital_id', None)
    r = svc.update_resource(r, data, user=request.user, request=request)
    return ok(svc.format_resource(r))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def bed_availability(request):
    user = request.user
    if request.method == 'GET':
        if not any(has_permission(user, p) for p in BED_READ_PERMS):
            raise PermissionDenied('You do not have access to bed availability')
        hospital_id = request.query_params.get('hospitalId')
        return ok(svc.bed_availability(user, int(hospital_id) if hospital_id and hospital_id.isdigit() else None,
                                       request.query_params.get('departmentType') or None))
    if not has_permission(user, 'resources.write'):
        raise PermissionDenied('You cannot update bed availability')
    data = validated(BedAvailabilitySerializer, request.data)
    r = svc.update_bed_availability(data.pop('resourceId'), data, user=user, request=request)
    return ok(svc.format_resource(r))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('resources')])
def critical_shortages(request):
    if request.method == 'GET':
        hospital_id = request.query_params.get('hospitalId')
        return ok(svc.critical_shortages(
            request.user,
            severity=(request.query_params.get('severity') or '').upper() or None,
            hospital_id=int(hospital_id) if hospital_id and hospital_id.isdigit() else None,
        ))
    data = validated(ShortageAckSerializer, request.data)
    alert = svc.acknowledge_shortage(data['resourceId'], data.get('note', ''), user=request.user, request=request)
    return ok(format_alert(alert), status=201)
