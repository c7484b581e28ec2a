"""
Emergency incidents and the hospital responses deployed to them.

Incident status only moves forward along
REPORTED -> CONFIRMED -> RESPONDING -> ON_SCENE -> UNDER_CONTROL -> RESOLVED -> ARCHIVED.
"""
import logging
from typing import Any, Dict, Iterable

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError, NotFound

from core.exceptions import Conflict, InvalidTransition
from core.models import Emergency, EmergencyResponse, Hospital, Ambulance, County
from core.permissions import is_super, COUNTY_ROLES, ensure_county_access, ensure_hospital_access
from core.realtime.broadcast import broadcast_update
from core.services import alerts as alert_service
from core.services.audit import log_action
from core.services.common import random_suffix, check_transition, iso, get_or_404

User = get_user_model()
logger = logging.getLogger(__name__)

STATUS_FLOW = ('REPORTED', 'CONFIRMED', 'RESPONDING', 'ON_SCENE', 'UNDER_CONTROL', 'RESOLVED', 'ARCHIVED')
TRANSITIONS = {s: STATUS_FLOW[i + 1:] for i, s in enumerate(STATUS_FLOW[:-1])}
CLOSED_STATUSES = ('RESOLVED', 'ARCHIVED')

RESPONSE_FLOW = ('DISPATCHED', 'EN_ROUTE', 'ON_SCENE', 'TREATING', 'TRANSPORTING', 'COMPLETED')
RESPONSE_TRANSITIONS = {
    s: RESPONSE_FLOW[i + 1:] + ('CANCELLED',) for i, s in enumerate(RESPONSE_FLOW[:-1])
}
RESPONSE_CLOSED = ('COMPLETED', 'CANCELLED')

ALERT_SEVERITY = {
    'MINOR': 'LOW', 'MODERATE': 'MEDIUM', 'SEVERE': 'HIGH', 'MAJOR': 'CRITICAL', 'CATASTROPHIC': 'CRITICAL',
}


def emergency_number(now=None) -> str:
    now = now or timezone.now()
    stamp = _base36(int(now.timestamp() * 1000))
    return f'EMG-{stamp}-{random_suffix(4)}'.upper()


def _base36(n: int) -> str:
    digits = '0123456789abcdefghijklmnopqrstuvwxyz'
    out = ''
    while n:
        n, r = divmod(n, 36)
        out = digits[r] + out
    return out or '0'


# ---------------------------------------------------------------------------
# Formatting & scoping
# ---------------------------------------------------------------------------
def format_response(r: EmergencyResponse) -> Dict[str, Any]:
    return {
        'id': r.id,
        'emergencyId': r.emergency_id,
        'hospitalId': r.hospital_id,
        'hospitalName': r.hospital.name,
        'ambulanceId': r.ambulance_id,
        'staffDeployed': [{'id': u.id, 'name': u.full_name, 'role': u.role} for u in r.staff_deployed.all()],
        'equipmentDeployed': r.equipment_deployed,
        'suppliesDeployed': r.supplies_deployed,
        'status': r.status,
        'dispatchedAt': iso(r.dispatched_at),
        'arrivedAt': iso(r.arrived_at),
        'departedAt': iso(r.departed_at),
        'completedAt': iso(r.completed_at),
        'patientsTreated': r.patients_treated,
        'patientsTransported': r.patients_transported,
        'notes': r.notes,
    }


def format_emergency(e: Emergency, detail: bool = False) -> Dict[str, Any]:
    data = {
        'id': e.id,
        'emergencyNumber': e.emergency_number,
        'type': e.type,
        'severity': e.severity,
        'countyId': e.county_id,
        'countyName': e.county.name,
        'location': e.location,
        'latitude': e.latitude,
        'longitude': e.longitude,
        'description': e.description,
        'estimatedCasualties': e.estimated_casualties,
        'reportedBy': e.reported_by,
        'reporterPhone': e.reporter_phone,
        'status': e.status,
        'reportedAt': iso(e.reported_at),
        'resolvedAt': iso(e.resolved_at),
        'responseCount': e.responses.count(),
    }
    if detail:
        data['responses'] = [format_response(r) for r in e.responses.select_related('hospital')]
    return data


def scoped_emergencies(user):
    qs = Emergency.objects.select_related('county')
    if is_super(user):
        return qs
    county_id = user.county_id or (user.hospital.county_id if user.hospital_id else None)
    if user.role in COUNTY_ROLES or user.role == 'DISPATCHER' or not user.hospital_id:
        return qs.filter(county_id=county_id) if county_id else qs.none()
    # hospital staff see incidents in their county plus those their hospital responds to
    return (qs.filter(county_id=county_id) | qs.filter(responses__hospital_id=user.hospital_id)).distinct()


def get_emergency(user, pk) -> Emergency:
    try:
        return scoped_emergencies(user).get(pk=pk)
    except (Emergency.DoesNotExist, ValueError):
        raise NotFound('Emergency not found')


def list_emergencies(user, params):
    qs = scoped_emergencies(user)
    if params.get('status'):
        qs = qs.filter(status__in=params['status'].split(','))
    elif params.get('includeArchived') not in ('1', 'true'):
        qs = qs.exclude(status='ARCHIVED')
    for param, field in (('type', 'type'), ('severity', 'severity'), ('countyId', 'county_id')):
        if params.get(param):
            qs = qs.filter(**{field: params[param]})
    return qs


# ---------------------------------------------------------------------------
# Incidents
# ---------------------------------------------------------------------------
def notify_hospitals(e: Emergency, user=None) -> int:
    hospitals = Hospital.objects.filter(county_id=e.county_id, is_active=True, accepting_patients=True)
    n = 0
    for h in hospitals:
        alert_service.raise_alert(
            alert_type='EMERGENCY',
            severity=ALERT_SEVERITY.get(e.severity, 'HIGH'),
            title=f'{e.severity.title()} {e.type.replace("_", " ").lower()} emergency',
            message=f'{e.emergency_number} at {e.location}: {e.description[:200]}',
            source_type='Emergency', source_id=e.id, hospital=h, user=user,
        )
        n += 1
    return n


@transaction.atomic
def create_emergency(data: Dict[str, Any], *, user, request=None) -> tuple[Emergency, int]:
    county = get_or_404(County, data.pop('county_id', None) or user.county_id
                        or (user.hospital.county_id if user.hospital_id else None))
    ensure_county_access(user, county.id)
    e = Emergency.objects.create(emergency_number=emergency_number(), county=county, created_by=user, **data)
    notified = notify_hospitals(e, user)
    log_action(user=user, action='CREATE', entity_type='Emergency', entity_id=e.id,
               description=f'{e.severity} {e.type} emergency reported at {e.location}',
               changes={'hospitalsNotified': notified}, request=request)
    logger.info("Emergency %s reported; %s hospitals notified", e.emergency_number, notified)
    broadcast_update('emergencies', 'created', e.id, severity=e.severity)
    return e, notified


def _apply_status(e: Emergency, target: str) -> None:
    check_transition(TRANSITIONS, e.status, target)
    if target == 'ARCHIVED' and e.responses.exclude(status__in=RESPONSE_CLOSED).exists():
        raise Conflict('Emergency still has active responses')
    e.status = target
    if target in CLOSED_STATUSES and not e.resolved_at:
        e.resolved_at = timezone.now()


@transaction.atomic
def update_emergency(e: Emergency, data: Dict[str, Any], *, user, request=None) -> Emergency:
    e = Emergency.objects.select_for_update().get(pk=e.pk)
    if e.status == 'ARCHIVED':
        raise InvalidTransition('Archived emergencies cannot be modified')
    before_status = e.status
    target = data.pop('status', None)
    for k, v in data.items():
        setattr(e, k, v)
    if target and target != e.status:
        _apply_status(e, target)
    e.save()
    log_action(user=user, action='UPDATE', entity_type='Emergency', entity_id=e.id,
               description=f'Emergency {e.emergency_number} updated',
               changes={'status': {'from': before_status, 'to': e.status}, 'fields': sorted(data)},
               request=request)
    broadcast_update('emergencies', 'updated', e.id, status=e.status)
    return e


@transaction.atomic
def bulk_update_status(user, ids: Iterable[int], target: str, *, request=None) -> Dict[str, Any]:
    updated, failed = [], []
    for e in scoped_emergencies(user).filter(pk__in=list(ids)):
        try:
            _apply_status(e, target)
        except (InvalidTransition, Conflict) as exc:
            failed.append({'id': e.id, 'reason': str(exc.detail)})
            continue
        e.save(update_fields=['status', 'resolved_at', 'updated_at'])
        updated.append(e.id)
    log_action(user=user, action='UPDATE', entity_type='Emergency', entity_id=','.join(map(str, updated)),
               description=f'Bulk status change to {target} ({len(updated)} updated)',
               changes={'updated': updated, 'failed': failed}, request=request)
    if updated:
        broadcast_update('emergencies', 'bulk_updated', None, ids=updated, status=target)
    return {'updated': updated, 'failed': failed}


def archive_emergency(e: Emergency, *, user, request=None) -> Emergency:
    if e.status == 'ARCHIVED':
        return e
    if e.responses.exclude(status__in=RESPONSE_CLOSED).exists():
        raise Conflict('Emergency still has active responses')
    previous = e.status
    e.status = 'ARCHIVED'
    e.resolved_at = e.resolved_at or timezone.now()
    e.save(update_fields=['status', 'resolved_at', 'updated_at'])
    log_action(user=user, action='DELETE', entity_type='Emergency', entity_id=e.id,
               description=f'Archived emergency {e.emergency_number}',
               changes={'status': {'from': previous, 'to': 'ARCHIVED'}}, request=request)
    return e


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
def get_response(e: Emergency, response_id) -> EmergencyResponse:
    try:
        return e.responses.select_related('hospital', 'ambulance').get(pk=response_id)
    except (EmergencyResponse.DoesNotExist, ValueError):
        raise NotFound('Response not found')


@transaction.atomic
def create_response(e: Emergency, data: Dict[str, Any], *, user, request=None) -> EmergencyResponse:
    e = Emergency.objects.select_for_update().get(pk=e.pk)
    if e.status in CLOSED_STATUSES:
        raise ValidationError({'detail': f'Cannot respond to a {e.status.lower()} emergency'})
    hospital = get_or_404(Hospital, data['hospital_id'])
    ensure_hospital_access(user, hospital)
    if hospital.county_id != e.county_id:
        raise ValidationError({'hospitalId': "Hospital is not in the emergency's county"})

    ambulance = None
    if data.get('ambulance_id'):
        try:
            ambulance = Ambulance.objects.select_for_update().get(pk=data['ambulance_id'])
        except Ambulance.DoesNotExist:
            raise ValidationError({'ambulanceId': 'Ambulance not found'})
        if ambulance.hospital_id != hospital.id:
            raise ValidationError({'ambulanceId': 'Ambulance does not belong to this hospital'})
        if ambulance.status != 'AVAILABLE' or not ambulance.is_operational:
            raise Conflict(f'Ambulance {ambulance.registration_number} is not available')

    staff_ids = set(data.get('staff_ids') or [])
    staff = list(User.objects.filter(pk__in=staff_ids, hospital=hospital, is_active=True))
    if len(staff) != len(staff_ids):
        raise ValidationError({'staffIds': 'All staff must be active members of the responding hospital'})

    r = EmergencyResponse.objects.create(
        emergency=e, hospital=hospital, ambulance=ambulance,
        equipment_deployed=data.get('equipment_deployed') or [],
        supplies_deployed=data.get('supplies_deployed') or [],
        notes=data.get('notes', ''),
        created_by=user,
    )
    r.staff_deployed.set(staff)
    if ambulance:
        ambulance.status = 'DISPATCHED'
        ambulance.save(update_fields=['status', 'updated_at'])
    if e.status in ('REPORTED', 'CONFIRMED'):
        e.status = 'RESPONDING'
        e.save(update_fields=['status', 'updated_at'])
    log_action(user=user, action='CREATE', entity_type='EmergencyResponse', entity_id=r.id,
               description=f'{hospital.name} responding to {e.emergency_number}',
               changes={'ambulanceId': r.ambulance_id, 'staff': sorted(staff_ids)},
               request=request, hospital_id=hospital.id)
    broadcast_update('emergencies', 'response_created', e.id, responseId=r.id)
    return r


def _release_ambulance(r: EmergencyResponse) -> None:
    if r.ambulance_id:
        Ambulance.objects.filter(pk=r.ambulance_id).update(status='AVAILABLE', updated_at=timezone.now())


@transaction.atomic
def update_response(r: EmergencyResponse, data: Dict[str, Any], *, user, request=None) -> EmergencyResponse:
    r = EmergencyResponse.objects.select_for_update().get(pk=r.pk)
    previous = r.status
    target = data.pop('status', None)
    if r.status in RESPONSE_CLOSED and (target or data):
        raise InvalidTransition(f'Response is already {r.status}')
    for k, v in data.items():
        setattr(r, k, v)
    if target and target != r.status:
        check_transition(RESPONSE_TRANSITIONS, r.status, target)
        now = timezone.now()
        if target == 'ON_SCENE':
            r.arrived_at = now
        elif target == 'TRANSPORTING':
            r.departed_at = now
        elif target == 'COMPLETED':
            r.completed_at = now
        r.status = target
        if target in RESPONSE_CLOSED:
            _release_ambulance(r)
        elif r.ambulance_id and target in ('EN_ROUTE', 'ON_SCENE', 'TRANSPORTING'):
            Ambulance.objects.filter(pk=r.ambulance_id).update(status=target, updated_at=now)
    r.save()
    log_action(user=user, action='CANCEL' if target == 'CANCELLED' else 'UPDATE',
               entity_type='EmergencyResponse', entity_id=r.id,
               description=f'Response {r.id} {previous} -> {r.status}',
               changes={'status': {'from': previous, 'to': r.status}}, request=request, hospital_id=r.hospital_id)
    broadcast_update('emergencies', 'response_updated', r.emergency_id, responseId=r.id, status=r.status)
    return r


@transaction.atomic
def delete_response(r: EmergencyResponse, *, user, request=None) -> None:
    if r.status not in RESPONSE_CLOSED:
        _release_ambulance(r)
    rid, hospital_id, emergency_id = r.id, r.hospital_id, r.emergency_id
    r.delete()
    log_action(user=user, action='DELETE', entity_type='EmergencyResponse', entity_id=rid,
               description=f'Removed response {rid} from emergency {emergency_id}',
               request=request, hospital_id=hospital_id)
