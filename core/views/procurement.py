"""
Supply requests and procurement records.

Approval is role driven (HOD, ADMIN, COUNTY) and checked in the service,
so the approve action only requires an authenticated caller; the other
request actions need ``procurement.write``.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated

from core.permissions import ModuleAccess, has_permission
from core.serializers.procurement import (
    SupplyRequestSerializer, ApproveSerializer, RejectSerializer, OrderSerializer, DeliverSerializer,
    ProcurementSerializer, ProcurementUpdateSerializer,
)
from core.services import procurement as svc
from core.views.common import ok, paged, validated


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('procurement')])
def supply_request_list(request):
    if request.method == 'GET':
        qs = svc.list_requests(request.user, request.query_params)
        return paged(qs, request.query_params, svc.format_request)
    data = validated(SupplyRequestSerializer, request.data)
    r = svc.create_request(data, user=request.user, request=request)
    return ok(svc.format_request(r), status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def supply_request_detail(request, pk: int):
    return ok(svc.format_request(svc.get_request(request.user, pk)))


def _approve(request, pk):
    data = validated(ApproveSerializer, request.data)
    return svc.approve_request(pk, data['approverType'], user=request.user, request=request)


def _reject(request, pk):
    data = validated(RejectSerializer, request.data)
    return svc.reject_request(pk, data['reason'], user=request.user, request=request)


def _order(request, pk):
    return svc.order_request(pk, validated(OrderSerializer, request.data), user=request.user, request=request)


def _deliver(request, pk):
    return svc.deliver_request(pk, validated(DeliverSerializer, request.data), user=request.user, request=request)


def _cancel(request, pk):
    return svc.cancel_request(pk, user=request.user, request=request)


ACTIONS = {
    'approve': _approve,
    'reject': _reject,
    'order': _order,
    'deliver': _deliver,
    'cancel': _cancel,
}


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def supply_request_action(request, pk: int, action: str):
    handler = ACTIONS.get(action)
    if handler is None:
        raise NotFound(f'Unknown action {action}')
    if action != 'approve' and not has_permission(request.user, 'procurement.write'):
        raise PermissionDenied('You cannot manage supply requests')
    return ok(svc.format_request(handler(request, pk)))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('procurement')])
def procurement_list(request):
    if request.method == 'GET':
        qs = svc.list_procurements(request.user, request.query_params)
        return paged(qs, request.query_params, svc.format_procurement)
    data = validated(ProcurementSerializer, request.data)
    p = svc.create_procurement(data, user=request.user, request=request)
    return ok(svc.format_procurement(p), status=201)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess.of('procurement')])
def procurement_detail(request, pk: int):
    p = svc.get_procurement(request.user, pk)
    if request.method == 'GET':
        return ok(svc.format_procurement(p))
    data = validated(ProcurementUpdateSerializer, request.data, partial=True)
    p = svc.update_procurement(p, data, user=request.user, request=request)
    return ok(svc.format_procurement(p))
