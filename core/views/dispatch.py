"""
Dispatch board, nearest-unit lookup and the ambulance fleet.

Dispatch records are read with ``dispatch.read``; updates are limited to
dispatchers (checked again in the service).  Fleet changes need
``ambulances.write`` except location pings, which the crew's driver may
send.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated, SAFE_METHODS

from core.permissions import ModuleAccess, has_permission
from core.serializers.dispatch import (
    DispatchSerializer, DispatchUpdateSerializer, NearestQuerySerializer, AmbulanceSerializer,
    LocationSerializer, MaintenanceSerializer,
)
from core.services import dispatch as svc
from core.views.common import ok, paged, validated

LOCATION_ROLES = ('AMBULANCE_DRIVER', 'DISPATCHER')


def _check_fleet_access(request) -> None:
    user = request.user
    if request.method in SAFE_METHODS:
        allowed = has_permission(user, 'ambulances.read') or has_permission(user, 'dispatch.read')
    else:
        allowed = has_permission(user, 'ambulances.write')
    if not allowed:
        raise PermissionDenied('You do not have access to the ambulance fleet')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('dispatch')])
def dispatch_list(request):
    if request.method == 'GET':
        return ok(svc.overview(request.user))
    data = validated(DispatchSerializer, request.data)
    d = svc.create_dispatch(data, user=request.user, request=request)
    return ok(svc.format_dispatch(d), status=201)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess.of('dispatch')])
def dispatch_detail(request, pk: int):
    if request.method == 'GET':
        return ok(svc.format_dispatch(svc.get_dispatch(request.user, pk)))
    data = validated(DispatchUpdateSerializer, request.data, partial=True)
    d = svc.update_dispatch(pk, data, user=request.user, request=request)
    return ok(svc.format_dispatch(d))


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess.of('dispatch')])
def dispatch_nearest(request):
    q = validated(NearestQuerySerializer, request.query_params)
    return ok(svc.nearest(
        q['lat'], q['lng'],
        emergency_type=q.get('emergencyType'),
        severity=q.get('severity'),
        require_equipment=q.get('requireEquipment', False),
        county_id=q.get('countyId'),
    ))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def ambulance_list(request):
    _check_fleet_access(request)
    if request.method == 'GET':
        qs = svc.list_ambulances(request.user, request.query_params)
        return paged(qs, request.query_params, svc.format_ambulance)
    data = validated(AmbulanceSerializer, request.data)
    a = svc.create_ambulance(data, user=request.user, request=request)
    return ok(svc.format_ambulance(a), status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def ambulance_detail(request, pk: int):
    _check_fleet_access(request)
    a = svc.get_ambulance(request.user, pk)
    if request.method == 'GET':
        data = svc.format_ambulance(a)
        data['recentDispatches'] = [svc.format_dispatch(d) for d in a.dispatches.order_by('-call_received')[:10]]
        return ok(data)
    if request.method == 'DELETE':
        svc.delete_ambulance(a, user=request.user, request=request)
        return ok({'id': pk, 'deleted': True})
    data = validated(AmbulanceSerializer, request.data, partial=True)
    if 'registration_number' in data and data['registration_number'] != a.registration_number:
        raise ValidationError({'registrationNumber': 'Registration numbers cannot be changed'})
    a = svc.update_ambulance(a, data, user=request.user, request=request)
    return ok(svc.format_ambulance(a))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def ambulance_location(request, pk: int):
    user = request.user
    if not (has_permission(user, 'ambulances.write') or user.role in LOCATION_ROLES):
        raise PermissionDenied('You cannot report ambulance locations')
    a = svc.get_ambulance(user, pk)
    data = validated(LocationSerializer, request.data)
    a = svc.update_location(a, data['latitude'], data['longitude'], user=user,
                            fuel_level=data.get('fuelLevel'), request=request)
    return ok(svc.format_ambulance(a))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def ambulance_maintenance(request, pk: int):
    _check_fleet_access(request)
    a = svc.get_ambulance(request.user, pk)
    if request.method == 'GET':
        return ok([svc.format_maintenance(m) for m in a.maintenance_records.all()])
    data = validated(MaintenanceSerializer, request.data)
    m = svc.record_maintenance(a, data, user=request.user, request=request)
    return ok(svc.format_maintenance(m), status=201)
