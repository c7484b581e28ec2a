"""SHA claim lifecycle."""
from decimal import Decimal
from typing import Any, Dict

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError, NotFound

from core.exceptions import InvalidTransition
from core.models import ShaClaim, Patient, Hospital
from core.permissions import scope_queryset, ensure_hospital_access
from core.services.audit import log_action, diff
from core.services.common import next_number, yearly_prefix, check_transition, iso, get_or_404

TRANSITIONS = {
    'DRAFT': ('SUBMITTED',),
    'SUBMITTED': ('IN_REVIEW',),
    'IN_REVIEW': ('APPROVED', 'REJECTED'),
    'REJECTED': ('RESUBMITTED',),
    'RESUBMITTED': ('IN_REVIEW',),
    'APPROVED': ('PAID',),
}
EDITABLE_STATUSES = ('DRAFT', 'REJECTED')
STATUS_ACTIONS = {
    'SUBMITTED': 'SUBMIT_CLAIM',
    'RESUBMITTED': 'SUBMIT_CLAIM',
    'APPROVED': 'APPROVE',
    'REJECTED': 'REJECT',
}


def _money(v: Decimal) -> str:
    return str(v.quantize(Decimal('0.01'))) if v is not None else None


def format_claim(c: ShaClaim) -> Dict[str, Any]:
    return {
        'id': c.id,
        'claimNumber': c.claim_number,
        'patientId': c.patient_id,
        'patientName': c.patient.full_name,
        'shaNumber': c.patient.sha_number,
        'hospitalId': c.hospital_id,
        'serviceDate': iso(c.service_date),
        'serviceType': c.service_type,
        'visitType': c.visit_type,
        'diagnosis': c.diagnosis,
        'icd10Codes': c.icd10_codes,
        'totalAmount': _money(c.total_amount),
        'shaApprovedAmount': _money(c.sha_approved_amount),
        'patientCopay': _money(c.patient_copay),
        'patientPaidAmount': _money(c.patient_paid_amount),
        'outstandingBalance': _money(c.outstanding_balance),
        'status': c.status,
        'submittedAt': iso(c.submitted_at),
        'approvedAt': iso(c.approved_at),
        'paidAt': iso(c.paid_at),
        'rejectionReason': c.rejection_reason,
        'createdAt': iso(c.created_at),
    }


def list_claims(user, params):
    qs = scope_queryset(ShaClaim.objects.select_related('patient', 'hospital'), user)
    for param, field in (('status', 'status'), ('visitType', 'visit_type'),
                         ('patientId', 'patient_id'), ('hospitalId', 'hospital_id')):
        if params.get(param):
            qs = qs.filter(**{field: params[param]})
    return qs


def get_claim(user, claim_id) -> ShaClaim:
    try:
        c = ShaClaim.objects.select_related('patient', 'hospital').get(pk=claim_id)
    except (ShaClaim.DoesNotExist, ValueError):
        raise NotFound('Claim not found')
    ensure_hospital_access(user, c.hospital)
    return c


def _check_amounts(c: ShaClaim) -> None:
    if c.sha_approved_amount > c.total_amount:
        raise ValidationError({'shaApprovedAmount': 'Cannot exceed the claimed total'})
    if c.patient_copay > c.total_amount:
        raise ValidationError({'patientCopay': 'Cannot exceed the claimed total'})


@transaction.atomic
def create_claim(data: Dict[str, Any], *, user, request=None) -> ShaClaim:
    patient = get_or_404(Patient, data.pop('patient_id'))
    if not patient.sha_number:
        raise ValidationError({'patientId': 'Patient has no SHA number'})
    hospital = get_or_404(Hospital, data.pop('hospital_id', None) or user.hospital_id)
    ensure_hospital_access(user, hospital)
    submit = data.pop('submit', False)
    c = ShaClaim(
        claim_number=next_number(ShaClaim, 'claim_number', yearly_prefix('CLM')),
        patient=patient, hospital=hospital, created_by=user, **data,
    )
    _check_amounts(c)
    if submit:
        c.status = 'SUBMITTED'
        c.submitted_at = timezone.now()
    c.save()
    log_action(user=user, action='SUBMIT_CLAIM' if submit else 'CREATE', entity_type='ShaClaim', entity_id=c.id,
               description=f'Claim {c.claim_number} for {patient.patient_number} ({c.total_amount})',
               request=request, hospital_id=hospital.id)
    return c


@transaction.atomic
def update_claim(c: ShaClaim, data: Dict[str, Any], *, user, request=None) -> ShaClaim:
    if c.status not in EDITABLE_STATUSES:
        raise ValidationError({'status': f'Claim in status {c.status} cannot be edited'})
    before = format_claim(c)
    for k, v in data.items():
        setattr(c, k, v)
    _check_amounts(c)
    c.save()
    log_action(user=user, action='UPDATE', entity_type='ShaClaim', entity_id=c.id,
               description=f'Updated claim {c.claim_number}', changes=diff(before, format_claim(c)),
               request=request, hospital_id=c.hospital_id)
    return c


@transaction.atomic
def transition_claim(c: ShaClaim, data: Dict[str, Any], *, user, request=None) -> ShaClaim:
    target = data['status']
    if target == c.status:
        raise InvalidTransition(f'Claim is already {target}')
    check_transition(TRANSITIONS, c.status, target)
    now = timezone.now()
    if target in ('SUBMITTED', 'RESUBMITTED'):
        c.submitted_at = now
        c.rejection_reason = '' if target == 'RESUBMITTED' else c.rejection_reason
    elif target == 'APPROVED':
        approved = data.get('sha_approved_amount')
        if approved is None:
            raise ValidationError({'shaApprovedAmount': 'Required to approve a claim'})
        c.sha_approved_amount = approved
        if data.get('patient_copay') is not None:
            c.patient_copay = data['patient_copay']
        c.approved_at = now
    elif target == 'REJECTED':
        if not data.get('rejection_reason'):
            raise ValidationError({'rejectionReason': 'Required to reject a claim'})
        c.rejection_reason = data['rejection_reason']
        c.sha_approved_amount = Decimal('0')
    elif target == 'PAID':
        c.paid_at = now
    if data.get('patient_paid_amount') is not None:
        c.patient_paid_amount = data['patient_paid_amount']
    _check_amounts(c)
    previous = c.status
    c.status = target
    c.save()
    log_action(user=user, action=STATUS_ACTIONS.get(target, 'UPDATE'), entity_type='ShaClaim', entity_id=c.id,
               description=f'Claim {c.claim_number} {previous} -> {target}',
               changes={'status': {'from': previous, 'to': target},
                        'shaApprovedAmount': _money(c.sha_approved_amount)},
               request=request, hospital_id=c.hospital_id)
    return c
