"""Inter-facility patient transfers."""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated

from core.models import Hospital
from core.permissions import ModuleAccess
from core.serializers.transfers import (
    TransferSerializer, TransferUpdateSerializer, ApproveTransferSerializer, RejectTransferSerializer,
)
from core.services import transfers as svc
from core.services.common import get_or_404
from core.views.common import ok, paged, validated


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('transfers')])
def transfer_list(request):
    if request.method == 'GET':
        qs = svc.list_transfers(request.user, request.query_params)
        return paged(qs, request.query_params, svc.format_transfer)
    data = validated(TransferSerializer, request.data)
    t = svc.create_transfer(data, user=request.user, request=request)
    return ok(svc.format_transfer(t), status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, ModuleAccess.of('transfers')])
def transfer_detail(request, pk: int):
    t = svc.get_transfer(request.user, pk)
    if request.method == 'GET':
        return ok(svc.format_transfer(t))
    if request.method == 'DELETE':
        t = svc.cancel_transfer(t, user=request.user, request=request)
        return ok(svc.format_transfer(t))
    data = validated(TransferUpdateSerializer, request.data, partial=True)
    t = svc.update_transfer(t, data, user=request.user, request=request)
    return ok(svc.format_transfer(t))


@api_view(['POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('transfers')])
def transfer_approve(request, pk: int):
    t = svc.get_transfer(request.user, pk)
    data = validated(ApproveTransferSerializer, request.data)
    t = svc.approve_transfer(t, data, user=request.user, request=request)
    return ok(svc.format_transfer(t))


@api_view(['POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('transfers')])
def transfer_reject(request, pk: int):
    t = svc.get_transfer(request.user, pk)
    data = validated(RejectTransferSerializer, request.data)
    t = svc.reject_transfer(t, data['rejection_reason'], user=request.user, request=request)
    return ok(svc.format_transfer(t))


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess.of('transfers')])
def transfer_available_beds(request):
    hospital_id = request.query_params.get('hospitalId')
    if not hospital_id or not hospital_id.isdigit():
        raise ValidationError({'hospitalId': 'A numeric hospitalId is required'})
    return ok(svc.available_beds(get_or_404(Hospital, hospital_id, message='Hospital not found')))
