"""Facility registry, live capacity and operational status."""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated

from core.models import Hospital, Department
from core.permissions import (
    has_permission, is_super, ensure_hospital_access, scope_queryset, COUNTY_ROLES,
)
from core.serializers.hospitals import HospitalSerializer, CapacitySerializer, HospitalStatusSerializer
from core.services import hospitals as svc
from core.services.common import get_or_404
from core.views.common import ok, paged, validated

CAPACITY_ROLES = ('HOSPITAL_ADMIN', 'DOCTOR', 'NURSE')


def _hospital(request, pk) -> Hospital:
    h = get_or_404(Hospital, pk, select_related=('county',), message='Hospital not found')
    ensure_hospital_access(request.user, h)
    return h


def _can_edit(user, h: Hospital) -> bool:
    if is_super(user):
        return True
    if user.role in COUNTY_ROLES:
        return bool(user.county_id) and user.county_id == h.county_id
    return user.role == 'HOSPITAL_ADMIN' and user.hospital_id == h.id


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def hospital_list(request):
    if request.method == 'GET':
        if not has_permission(request.user, 'hospitals.read') and not request.user.hospital_id:
            raise PermissionDenied('You do not have access to hospitals')
        qs = svc.list_hospitals(request.user, request.query_params)
        return paged(qs, request.query_params, svc.format_hospital)

    if not (is_super(request.user) or request.user.role in COUNTY_ROLES):
        raise PermissionDenied('Only super or county administrators can register hospitals')
    data = validated(HospitalSerializer, request.data)
    if not is_super(request.user) and data['county_id'] != request.user.county_id:
        raise PermissionDenied('Hospitals can only be registered in your county')
    h = svc.create_hospital(data, user=request.user, request=request)
    return ok(svc.format_hospital(h, detail=True), status=201)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def hospital_detail(request, pk: int):
    h = _hospital(request, pk)
    if request.method == 'GET':
        return ok(svc.format_hospital(h, detail=True))
    if not _can_edit(request.user, h):
        raise PermissionDenied('You cannot edit this hospital')
    data = validated(HospitalSerializer, request.data, partial=True)
    if 'county_id' in data and not is_super(request.user):
        raise PermissionDenied('Only super administrators can move a hospital to another county')
    h = svc.update_hospital(h, data, user=request.user, request=request)
    return ok(svc.format_hospital(h, detail=True))


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def hospital_capacity(request, pk: int):
    h = _hospital(request, pk)
    if request.method == 'GET':
        return ok(svc.capacity_snapshot(h))
    user = request.user
    allowed = has_permission(user, 'hospitals.write') or (user.role in CAPACITY_ROLES and user.hospital_id == h.id)
    if not allowed:
        raise PermissionDenied('You cannot update capacity for this hospital')
    data = validated(CapacitySerializer, request.data)
    return ok(svc.update_capacity(h, data, user=user, request=request))


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def hospital_status(request, pk: int):
    h = _hospital(request, pk)
    if request.method == 'GET':
        return ok(svc.status_snapshot(h))
    user = request.user
    if not (has_permission(user, 'hospitals.write') or (user.role == 'HOSPITAL_ADMIN' and user.hospital_id == h.id)):
        raise PermissionDenied('You cannot change the status of this hospital')
    data = validated(HospitalStatusSerializer, request.data, partial=True)
    return ok(svc.update_status(h, data, user=user, request=request))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def department_list(request):
    qs = scope_queryset(Department.objects.select_related('hospital'), request.user)
    hospital_id = request.query_params.get('hospitalId')
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    if request.query_params.get('type'):
        qs = qs.filter(type=request.query_params['type'])
    return ok([svc.format_department(d) for d in qs])
