"""
Supply requests and procurement records.

A supply request needs the head of department and the hospital
administrator to sign off; requests above the county threshold also need
the county.  Procurement records move along a linear tendering pipeline.
"""
from decimal import Decimal
from typing import Any, Dict

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError, NotFound, PermissionDenied

from core.exceptions import InvalidTransition
from core.models import SupplyRequest, Procurement, Hospital, Resource
from core.permissions import scope_queryset, ensure_hospital_access, is_super
from core.realtime.broadcast import broadcast_update
from core.services.audit import log_action, diff
from core.services.common import next_number, yearly_prefix, check_transition, iso, get_or_404

APPROVER_ROLES = {
    'HOD': {'DOCTOR', 'HOSPITAL_ADMIN'},
    'ADMIN': {'HOSPITAL_ADMIN'},
    'COUNTY': {'COUNTY_ADMIN'},
}
APPROVAL_FLAGS = {'HOD': 'approved_by_hod', 'ADMIN': 'approved_by_admin', 'COUNTY': 'approved_by_county'}

PROCUREMENT_FLOW = ('INITIATED', 'TENDER_ISSUED', 'EVALUATION', 'AWARDED', 'CONTRACTED', 'COMPLETED')
PROCUREMENT_TRANSITIONS = {
    s: (PROCUREMENT_FLOW[i + 1], 'CANCELLED') for i, s in enumerate(PROCUREMENT_FLOW[:-1])
}
# direct and emergency purchases skip tendering
FAST_TRACK_TYPES = ('DIRECT', 'EMERGENCY')


def county_threshold() -> Decimal:
    return Decimal(str(getattr(settings, 'SUPPLY_COUNTY_APPROVAL_THRESHOLD', 100000)))


def items_total(items) -> Decimal:
    total = Decimal('0')
    for item in items:
        total += Decimal(str(item.get('quantity', 0))) * Decimal(str(item.get('estimatedUnitCost', 0)))
    return total.quantize(Decimal('0.01'))


def needs_county_approval(req: SupplyRequest) -> bool:
    return req.total_estimated_cost > county_threshold()


def format_request(r: SupplyRequest) -> Dict[str, Any]:
    return {
        'id': r.id,
        'requestNumber': r.request_number,
        'hospitalId': r.hospital_id,
        'departmentId': r.department_id,
        'resourceId': r.resource_id,
        'items': r.items,
        'totalEstimatedCost': str(r.total_estimated_cost),
        'justification': r.justification,
        'priority': r.priority,
        'requestedBy': r.requested_by_id,
        'approvals': {
            'hod': r.approved_by_hod,
            'admin': r.approved_by_admin,
            'county': r.approved_by_county,
            'countyRequired': needs_county_approval(r),
        },
        'status': r.status,
        'approvedAt': iso(r.approved_at),
        'rejectedAt': iso(r.rejected_at),
        'rejectionReason': r.rejection_reason,
        'orderedAt': iso(r.ordered_at),
        'deliveredAt': iso(r.delivered_at),
        'purchaseOrderNumber': r.purchase_order_number,
        'supplierSelected': r.supplier_selected,
        'actualCost': str(r.actual_cost) if r.actual_cost is not None else None,
        'createdAt': iso(r.created_at),
    }


def list_requests(user, params):
    qs = scope_queryset(SupplyRequest.objects.select_related('hospital'), user)
    for param, field in (('status', 'status'), ('priority', 'priority'),
                         ('hospitalId', 'hospital_id'), ('departmentId', 'department_id')):
        if params.get(param):
            qs = qs.filter(**{field: params[param]})
    return qs


def get_request(user, request_id, *, for_update: bool = False) -> SupplyRequest:
    qs = SupplyRequest.objects.select_related('hospital')
    if for_update:
        qs = qs.select_for_update()
    try:
        r = qs.get(pk=request_id)
    except (SupplyRequest.DoesNotExist, ValueError):
        raise NotFound('Supply request not found')
    ensure_hospital_access(user, r.hospital)
    return r


@transaction.atomic
def create_request(data: Dict[str, Any], *, user, request=None) -> SupplyRequest:
    hospital = get_or_404(Hospital, data.pop('hospital_id', None) or user.hospital_id)
    ensure_hospital_access(user, hospital)
    resource_id = data.pop('resource_id', None)
    if resource_id and not Resource.objects.filter(pk=resource_id, hospital=hospital).exists():
        raise ValidationError({'resourceId': 'Resource does not belong to this hospital'})
    r = SupplyRequest.objects.create(
        request_number=next_number(SupplyRequest, 'request_number', yearly_prefix('REQ')),
        hospital=hospital,
        resource_id=resource_id,
        total_estimated_cost=items_total(data['items']),
        requested_by=user,
        **data,
    )
    log_action(user=user, action='CREATE', entity_type='SupplyRequest', entity_id=r.id,
               description=f'Supply request {r.request_number} ({r.priority}, {r.total_estimated_cost})',
               request=request, hospital_id=hospital.id)
    return r


def _require_pending(r: SupplyRequest) -> None:
    if r.status != 'PENDING':
        raise InvalidTransition(f'Supply request is {r.status}')


@transaction.atomic
def approve_request(request_id, approver_type: str, *, user, request=None) -> SupplyRequest:
    r = get_request(user, request_id, for_update=True)
    _require_pending(r)
    if not is_super(user) and user.role not in APPROVER_ROLES[approver_type]:
        raise PermissionDenied(f'Your role cannot give {approver_type} approval')
    if approver_type == 'COUNTY' and not needs_county_approval(r):
        raise ValidationError({'approverType': 'County approval is not required for this request'})
    flag = APPROVAL_FLAGS[approver_type]
    if getattr(r, flag):
        raise InvalidTransition(f'{approver_type} approval already given')
    setattr(r, flag, True)
    if r.approved_by_hod and r.approved_by_admin and (r.approved_by_county or not needs_county_approval(r)):
        r.status = 'APPROVED'
        r.approved_at = timezone.now()
    r.save()
    log_action(user=user, action='APPROVE', entity_type='SupplyRequest', entity_id=r.id,
               description=f'{approver_type} approval for {r.request_number}',
               changes={'approverType': approver_type, 'status': r.status},
               request=request, hospital_id=r.hospital_id)
    broadcast_update('procurement', 'approved', r.id, status=r.status)
    return r


@transaction.atomic
def reject_request(request_id, reason: str, *, user, request=None) -> SupplyRequest:
    r = get_request(user, request_id, for_update=True)
    _require_pending(r)
    r.status = 'REJECTED'
    r.rejected_at = timezone.now()
    r.rejection_reason = reason
    r.save()
    log_action(user=user, action='REJECT', entity_type='SupplyRequest', entity_id=r.id,
               description=f'Rejected {r.request_number}: {reason}', request=request, hospital_id=r.hospital_id)
    return r


@transaction.atomic
def order_request(request_id, data: Dict[str, Any], *, user, request=None) -> SupplyRequest:
    r = get_request(user, request_id, for_update=True)
    if r.status != 'APPROVED':
        raise InvalidTransition('Only approved requests can be ordered')
    r.status = 'ORDERED'
    r.ordered_at = timezone.now()
    r.purchase_order_number = data['purchase_order_number']
    r.supplier_selected = data.get('supplier_selected', '')
    r.save()
    log_action(user=user, action='UPDATE', entity_type='SupplyRequest', entity_id=r.id,
               description=f'Ordered {r.request_number} (PO {r.purchase_order_number})',
               request=request, hospital_id=r.hospital_id)
    return r


@transaction.atomic
def deliver_request(request_id, data: Dict[str, Any], *, user, request=None) -> SupplyRequest:
    """Mark delivered; a linked resource is restocked by ``quantityReceived``."""
    r = get_request(user, request_id, for_update=True)
    if r.status != 'ORDERED':
        raise InvalidTransition('Only ordered requests can be delivered')
    now = timezone.now()
    r.status = 'DELIVERED'
    r.delivered_at = now
    r.actual_cost = data.get('actual_cost')
    r.save()
    restocked = None
    qty = data.get('quantity_received') or 0
    if r.resource_id and qty:
        res = Resource.objects.select_for_update().get(pk=r.resource_id)
        room = res.total_capacity - res.available_capacity - res.in_use_capacity - res.reserved_capacity
        if qty > room:
            res.total_capacity += qty - room
        res.available_capacity += qty
        res.last_restock = now
        res.save()
        restocked = {'resourceId': res.id, 'quantity': qty, 'available': res.available_capacity}
    log_action(user=user, action='UPDATE', entity_type='SupplyRequest', entity_id=r.id,
               description=f'Delivered {r.request_number}',
               changes={'actualCost': str(r.actual_cost) if r.actual_cost is not None else None, 'restock': restocked},
               request=request, hospital_id=r.hospital_id)
    return r


@transaction.atomic
def cancel_request(request_id, *, user, request=None) -> SupplyRequest:
    r = get_request(user, request_id, for_update=True)
    if r.status not in ('PENDING', 'APPROVED'):
        raise InvalidTransition(f'Cannot cancel a {r.status} request')
    r.status = 'CANCELLED'
    r.save()
    log_action(user=user, action='CANCEL', entity_type='SupplyRequest', entity_id=r.id,
               description=f'Cancelled {r.request_number}', request=request, hospital_id=r.hospital_id)
    return r


# ---------------------------------------------------------------------------
# Procurement records
# ---------------------------------------------------------------------------
def format_procurement(p: Procurement) -> Dict[str, Any]:
    return {
        'id': p.id,
        'procurementNumber': p.procurement_number,
        'hospitalId': p.hospital_id,
        'supplyRequestId': p.supply_request_id,
        'procurementType': p.procurement_type,
        'items': p.items,
        'totalValue': str(p.total_value),
        'supplierName': p.supplier_name,
        'supplierContact': p.supplier_contact,
        'tenderNumber': p.tender_number,
        'contractNumber': p.contract_number,
        'status': p.status,
        'deliveryStatus': p.delivery_status,
        'paymentStatus': p.payment_status,
        'paymentAmount': str(p.payment_amount) if p.payment_amount is not None else None,
        'expectedDeliveryDate': iso(p.expected_delivery_date),
        'actualDeliveryDate': iso(p.actual_delivery_date),
        'notes': p.notes,
        'createdAt': iso(p.created_at),
    }


def list_procurements(user, params):
    qs = scope_queryset(Procurement.objects.select_related('hospital'), user)
    for param, field in (('status', 'status'), ('procurementType', 'procurement_type'),
                         ('deliveryStatus', 'delivery_status'), ('hospitalId', 'hospital_id')):
        if params.get(param):
            qs = qs.filter(**{field: params[param]})
    return qs


def get_procurement(user, pk) -> Procurement:
    try:
        p = Procurement.objects.select_related('hospital').get(pk=pk)
    except (Procurement.DoesNotExist, ValueError):
        raise NotFound('Procurement not found')
    ensure_hospital_access(user, p.hospital)
    return p


@transaction.atomic
def create_procurement(data: Dict[str, Any], *, user, request=None) -> Procurement:
    supply_request = None
    if data.get('supply_request_id'):
        supply_request = get_request(user, data.pop('supply_request_id'))
        if supply_request.status not in ('APPROVED', 'ORDERED'):
            raise ValidationError({'supplyRequestId': 'Supply request must be approved first'})
        data.setdefault('hospital_id', supply_request.hospital_id)
        data.setdefault('items', supply_request.items)
    else:
        data.pop('supply_request_id', None)
    hospital = get_or_404(Hospital, data.pop('hospital_id', None) or user.hospital_id)
    ensure_hospital_access(user, hospital)
    if not data.get('total_value'):
        data['total_value'] = items_total(data.get('items') or [])
    p = Procurement.objects.create(
        procurement_number=next_number(Procurement, 'procurement_number', yearly_prefix('PROC')),
        hospital=hospital, supply_request=supply_request, created_by=user, **data,
    )
    log_action(user=user, action='CREATE', entity_type='Procurement', entity_id=p.id,
               description=f'Procurement {p.procurement_number} ({p.procurement_type})',
               request=request, hospital_id=hospital.id)
    return p


@transaction.atomic
def update_procurement(p: Procurement, data: Dict[str, Any], *, user, request=None) -> Procurement:
    before = format_procurement(p)
    target = data.pop('status', None)
    for k, v in data.items():
        setattr(p, k, v)
    if target and target != p.status:
        allowed = dict(PROCUREMENT_TRANSITIONS)
        if p.procurement_type in FAST_TRACK_TYPES and p.status == 'INITIATED':
            allowed['INITIATED'] = ('TENDER_ISSUED', 'AWARDED', 'CANCELLED')
        check_transition(allowed, p.status, target)
        if target == 'AWARDED':
            p.approved_by = user
        if target == 'COMPLETED' and p.delivery_status != 'DELIVERED':
            raise ValidationError({'status': 'Cannot complete before delivery'})
        p.status = target
    if data.get('delivery_status') == 'DELIVERED' and not p.actual_delivery_date:
        p.actual_delivery_date = timezone.localdate()
    p.save()
    action = 'APPROVE' if target == 'AWARDED' else ('CANCEL' if target == 'CANCELLED' else 'UPDATE')
    log_action(user=user, action=action, entity_type='Procurement', entity_id=p.id,
               description=f'Updated procurement {p.procurement_number}',
               changes=diff(before, format_procurement(p)), request=request, hospital_id=p.hospital_id)
    return p
