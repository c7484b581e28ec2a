"""Staff directory and shift roster views."""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated, SAFE_METHODS

from core.permissions import ModuleAccess, has_permission
from core.serializers.staff import StaffSerializer, ScheduleSerializer
from core.services import staff as svc
from core.views.common import ok, paged, validated


def _check_staff_access(request, pk) -> None:
    """Everyone may read their own record; the rest needs the staff module."""
    user = request.user
    perm = 'staff.read' if request.method in SAFE_METHODS else 'staff.write'
    if int(pk) == user.id and request.method in SAFE_METHODS:
        return
    if not (has_permission(user, perm) or has_permission(user, 'staff.write')):
        raise PermissionDenied('You do not have access to staff records')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('staff')])
def staff_list(request):
    if request.method == 'GET':
        qs = svc.list_staff(request.user, request.query_params)
        return paged(qs, request.query_params, svc.format_staff, stats=svc.role_stats(qs))
    data = validated(StaffSerializer, request.data)
    u, password = svc.create_staff(data, user=request.user, request=request)
    payload = svc.format_staff(u, detail=True)
    payload['temporaryPassword'] = password
    return ok(payload, status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def staff_detail(request, pk: int):
    _check_staff_access(request, pk)
    u = svc.get_staff(request.user, pk)
    if request.method == 'GET':
        return ok(svc.format_staff(u, detail=True))
    if request.method == 'DELETE':
        u = svc.deactivate_staff(u, user=request.user, request=request)
        return ok(svc.format_staff(u))
    data = validated(StaffSerializer, request.data, partial=True)
    data.pop('password', None)
    u = svc.update_staff(u, data, user=request.user, request=request)
    return ok(svc.format_staff(u, detail=True))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def staff_schedule(request, pk: int):
    _check_staff_access(request, pk)
    u = svc.get_staff(request.user, pk)
    if request.method == 'GET':
        return ok([svc.format_schedule(s) for s in svc.list_schedules(u, request.query_params)])
    data = validated(ScheduleSerializer, request.data)
    s = svc.create_schedule(u, data, user=request.user, request=request)
    return ok(svc.format_schedule(s), status=201)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def staff_schedule_detail(request, pk: int, schedule_id: int):
    _check_staff_access(request, pk)
    u = svc.get_staff(request.user, pk)
    s = svc.cancel_schedule(u, schedule_id, user=request.user, request=request)
    return ok(svc.format_schedule(s))
