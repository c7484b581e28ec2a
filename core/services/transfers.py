"""Inter-facility patient transfers."""
import logging
from typing import Any, Dict, Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError, NotFound, PermissionDenied

from core.exceptions import InvalidTransition
from core.models import Transfer, Hospital, Patient, Ambulance, Resource, BED_RESOURCE_TYPES
from core.permissions import is_super, COUNTY_ROLES, ensure_hospital_access
from core.realtime.broadcast import broadcast_update
from core.services.audit import log_action
from core.services.common import next_number, yearly_prefix, iso, percent, get_or_404, check_transition

logger = logging.getLogger(__name__)

TRANSITIONS = {
    'REQUESTED': ('APPROVED', 'REJECTED', 'CANCELLED'),
    'APPROVED': ('IN_TRANSIT', 'CANCELLED'),
    'IN_TRANSIT': ('COMPLETED',),
}
EDITABLE_STATUSES = ('REQUESTED', 'APPROVED')
EDITABLE_FIELDS = (
    'reason', 'urgency', 'diagnosis', 'vital_signs', 'transport_mode', 'ambulance_id',
    'required_resources', 'special_needs', 'notes', 'bed_number',
)


def format_transfer(t: Transfer) -> Dict[str, Any]:
    return {
        'id': t.id,
        'transferNumber': t.transfer_number,
        'patient': {'id': t.patient_id, 'name': t.patient.full_name, 'patientNumber': t.patient.patient_number},
        'originHospital': {'id': t.origin_hospital_id, 'name': t.origin_hospital.name},
        'destinationHospital': {'id': t.destination_hospital_id, 'name': t.destination_hospital.name},
        'reason': t.reason,
        'urgency': t.urgency,
        'diagnosis': t.diagnosis,
        'vitalSigns': t.vital_signs,
        'transportMode': t.transport_mode,
        'ambulanceId': t.ambulance_id,
        'requiredResources': t.required_resources,
        'specialNeeds': t.special_needs,
        'status': t.status,
        'requestedAt': iso(t.requested_at),
        'approvedAt': iso(t.approved_at),
        'rejectedAt': iso(t.rejected_at),
        'departedAt': iso(t.departed_at),
        'arrivedAt': iso(t.arrived_at),
        'bedReserved': t.bed_reserved,
        'bedNumber': t.bed_number,
        'acceptedBy': t.accepted_by.full_name if t.accepted_by_id else None,
        'rejectionReason': t.rejection_reason,
        'requestedBy': t.requested_by_id,
        'notes': t.notes,
    }


def scoped_transfers(user):
    qs = Transfer.objects.select_related('patient', 'origin_hospital', 'destination_hospital', 'accepted_by')
    if is_super(user):
        return qs
    if user.role in COUNTY_ROLES or not user.hospital_id:
        if not user.county_id:
            return qs.none()
        return qs.filter(Q(origin_hospital__county_id=user.county_id)
                         | Q(destination_hospital__county_id=user.county_id))
    return qs.filter(Q(origin_hospital_id=user.hospital_id) | Q(destination_hospital_id=user.hospital_id))


def list_transfers(user, params):
    qs = scoped_transfers(user)
    direction = params.get('direction')
    if direction and user.hospital_id:
        if direction == 'incoming':
            qs = qs.filter(destination_hospital_id=user.hospital_id)
        elif direction == 'outgoing':
            qs = qs.filter(origin_hospital_id=user.hospital_id)
    if params.get('status'):
        qs = qs.filter(status__in=params['status'].split(','))
    if params.get('urgency'):
        qs = qs.filter(urgency=params['urgency'])
    if params.get('patientId'):
        qs = qs.filter(patient_id=params['patientId'])
    return qs


def get_transfer(user, pk) -> Transfer:
    try:
        return scoped_transfers(user).get(pk=pk)
    except (Transfer.DoesNotExist, ValueError):
        raise NotFound('Transfer not found')


def _check_ambulance(ambulance_id) -> Optional[Ambulance]:
    if not ambulance_id:
        return None
    try:
        return Ambulance.objects.get(pk=ambulance_id, is_operational=True)
    except (Ambulance.DoesNotExist, ValueError):
        raise ValidationError({'ambulanceId': 'Ambulance not found or not operational'})


@transaction.atomic
def create_transfer(data: Dict[str, Any], *, user, request=None) -> Transfer:
    patient = get_or_404(Patient, data.pop('patient_id'))
    origin = get_or_404(Hospital, data.pop('origin_hospital_id', None) or user.hospital_id,
                        message='Origin hospital not found')
    destination = get_or_404(Hospital, data.pop('destination_hospital_id'), message='Destination hospital not found')
    ensure_hospital_access(user, origin)
    if origin.id == destination.id:
        raise ValidationError({'destinationHospitalId': 'Destination must differ from the origin hospital'})
    if patient.current_hospital_id != origin.id:
        raise ValidationError({'patientId': 'Patient is not currently at the origin hospital'})
    if not destination.accepting_patients:
        logger.warning("Transfer requested to %s which is not accepting patients", destination.code)
    ambulance = _check_ambulance(data.pop('ambulance_id', None))

    t = Transfer.objects.create(
        transfer_number=next_number(Transfer, 'transfer_number', yearly_prefix('TRF')),
        patient=patient,
        origin_hospital=origin,
        destination_hospital=destination,
        ambulance=ambulance,
        requested_by=user,
        **data,
    )
    log_action(user=user, action='CREATE', entity_type='Transfer', entity_id=t.id,
               description=f'Requested transfer {t.transfer_number} from {origin.name} to {destination.name}',
               request=request, hospital_id=origin.id)
    broadcast_update('transfers', 'created', t.id, destinationHospitalId=destination.id, urgency=t.urgency)
    return t


@transaction.atomic
def update_transfer(t: Transfer, data: Dict[str, Any], *, user, request=None) -> Transfer:
    t = Transfer.objects.select_for_update().get(pk=t.pk)
    target = data.pop('status', None)
    if data and t.status not in EDITABLE_STATUSES:
        raise InvalidTransition(f'Transfer cannot be edited while {t.status}')
    if 'ambulance_id' in data:
        data['ambulance_id'] = getattr(_check_ambulance(data['ambulance_id']), 'id', None)
    for k, v in data.items():
        if k in EDITABLE_FIELDS:
            setattr(t, k, v)

    previous = t.status
    if target and target != t.status:
        if target not in ('IN_TRANSIT', 'COMPLETED'):
            raise ValidationError({'status': 'Use the approve, reject or cancel actions for this status'})
        check_transition(TRANSITIONS, t.status, target)
        now = timezone.now()
        t.status = target
        if target == 'IN_TRANSIT':
            t.departed_at = now
        else:
            t.arrived_at = now
            Patient.objects.filter(pk=t.patient_id).update(
                current_status='ADMITTED', current_hospital_id=t.destination_hospital_id, updated_at=now,
            )
    t.save()
    action = 'TRANSFER' if target == 'COMPLETED' else 'UPDATE'
    log_action(user=user, action=action, entity_type='Transfer', entity_id=t.id,
               description=f'Transfer {t.transfer_number} updated',
               changes={'status': {'from': previous, 'to': t.status}, 'fields': sorted(data)},
               request=request, hospital_id=t.origin_hospital_id)
    broadcast_update('transfers', 'updated', t.id, status=t.status)
    return t


@transaction.atomic
def approve_transfer(t: Transfer, data: Dict[str, Any], *, user, request=None) -> Transfer:
    t = Transfer.objects.select_for_update().get(pk=t.pk)
    if not is_super(user) and user.hospital_id != t.destination_hospital_id:
        raise PermissionDenied('Only the destination hospital can approve this transfer')
    if t.status != 'REQUESTED':
        raise InvalidTransition('Transfer cannot be approved in its current status')
    t.status = 'APPROVED'
    t.approved_at = timezone.now()
    t.accepted_by = user
    t.bed_reserved = bool(data.get('bed_reserved'))
    t.bed_number = data.get('bed_number') or ''
    if data.get('notes'):
        t.notes = data['notes']
    t.save()
    Patient.objects.filter(pk=t.patient_id).update(
        current_hospital_id=t.destination_hospital_id, current_status='IN_TRANSFER', updated_at=t.approved_at,
    )
    log_action(user=user, action='APPROVE', entity_type='Transfer', entity_id=t.id,
               description=f'Approved transfer {t.transfer_number} from {t.origin_hospital.name} '
                           f'to {t.destination_hospital.name}',
               changes={'bedReserved': t.bed_reserved, 'bedNumber': t.bed_number},
               request=request, hospital_id=t.destination_hospital_id)
    broadcast_update('transfers', 'approved', t.id)
    return t


@transaction.atomic
def reject_transfer(t: Transfer, reason: str, *, user, request=None) -> Transfer:
    t = Transfer.objects.select_for_update().get(pk=t.pk)
    if not is_super(user) and user.hospital_id != t.destination_hospital_id:
        raise PermissionDenied('Only the destination hospital can reject this transfer')
    if t.status != 'REQUESTED':
        raise InvalidTransition('Transfer cannot be rejected in its current status')
    t.status = 'REJECTED'
    t.rejected_at = timezone.now()
    t.rejection_reason = reason
    t.save(update_fields=['status', 'rejected_at', 'rejection_reason', 'updated_at'])
    log_action(user=user, action='REJECT', entity_type='Transfer', entity_id=t.id,
               description=f'Rejected transfer {t.transfer_number}: {reason}',
               request=request, hospital_id=t.destination_hospital_id)
    broadcast_update('transfers', 'rejected', t.id)
    return t


@transaction.atomic
def cancel_transfer(t: Transfer, *, user, request=None) -> Transfer:
    t = Transfer.objects.select_for_update().get(pk=t.pk)
    if t.status != 'REQUESTED':
        raise InvalidTransition('Only requested transfers can be cancelled')
    t.status = 'CANCELLED'
    t.save(update_fields=['status', 'updated_at'])
    log_action(user=user, action='CANCEL', entity_type='Transfer', entity_id=t.id,
               description=f'Cancelled transfer {t.transfer_number}',
               request=request, hospital_id=t.origin_hospital_id)
    broadcast_update('transfers', 'cancelled', t.id)
    return t


def available_beds(hospital: Hospital) -> Dict[str, Any]:
    beds = Resource.objects.filter(hospital=hospital, type__in=BED_RESOURCE_TYPES, status='AVAILABLE',
                                   available_capacity__gt=0).select_related('department')
    return {
        'hospitalId': hospital.id,
        'hospitalName': hospital.name,
        'acceptingPatients': hospital.accepting_patients,
        'general': {'available': hospital.available_beds, 'total': hospital.total_beds},
        'icu': {'available': hospital.available_icu_beds, 'total': hospital.icu_beds},
        'emergency': {'available': hospital.available_emergency_beds, 'total': hospital.emergency_beds},
        'totalAvailable': hospital.available_beds + hospital.available_icu_beds + hospital.available_emergency_beds,
        'occupancyRate': percent(hospital.total_beds - hospital.available_beds, hospital.total_beds),
        'bedResources': [
            {
                'id': r.id,
                'name': r.name,
                'type': r.type,
                'department': r.department.name if r.department_id else None,
                'available': r.available_capacity,
                'total': r.total_capacity,
            }
            for r in beds
        ],
    }
