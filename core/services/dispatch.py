"""
Emergency call dispatch and the ambulance fleet.

Each dispatch status change stamps its timeline column; the assigned
ambulance mirrors the call's status while on the call and returns to
AVAILABLE when the call is cleared.
"""
import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError, NotFound, PermissionDenied

from core.exceptions import Conflict
from core.models import DispatchLog, Ambulance, AmbulanceMaintenance, Hospital, County
from core.permissions import ensure_hospital_access, ensure_county_access, is_super, COUNTY_ROLES, has_permission
from core.realtime.broadcast import broadcast_update
from core.services.audit import log_action, diff
from core.services.common import next_number, yearly_prefix, check_transition, iso, get_or_404
from core.services.emergencies import get_emergency
from core.services.geo import haversine_km, eta_minutes

logger = logging.getLogger(__name__)

ACTIVE_LIMIT = 20
RECENT_LIMIT = 50
CLOSED_STATUSES = ('COMPLETED', 'CANCELLED')
MISSION_STATUSES = ('DISPATCHED', 'EN_ROUTE', 'ON_SCENE', 'TRANSPORTING', 'AT_HOSPITAL')
DISPATCH_FLOW = ('RECEIVED', 'DISPATCHED', 'EN_ROUTE', 'ON_SCENE', 'TRANSPORTING', 'AT_HOSPITAL', 'COMPLETED')

# any later step may be reported (crews skip updates); CANCELLED from any open state
TRANSITIONS = {
    s: tuple(DISPATCH_FLOW[i + 1:]) + ('CANCELLED',) for i, s in enumerate(DISPATCH_FLOW[:-1])
}

ADVANCED_LEVELS = ('ADVANCED', 'CRITICAL_CARE')
ADVANCED_EMERGENCIES = ('CARDIAC', 'RESPIRATORY', 'TRAUMA')
DISPATCH_ROLES = {'SUPER_ADMIN', 'DISPATCHER'}


def min_fuel() -> int:
    return int(getattr(settings, 'AMBULANCE_MIN_FUEL', 20))


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------
def format_ambulance(a: Ambulance) -> Dict[str, Any]:
    return {
        'id': a.id,
        'registrationNumber': a.registration_number,
        'hospitalId': a.hospital_id,
        'hospitalName': a.hospital.name if a.hospital_id else None,
        'countyId': a.county_id,
        'type': a.type,
        'equipmentLevel': a.equipment_level,
        'status': a.status,
        'isOperational': a.is_operational,
        'latitude': a.latitude,
        'longitude': a.longitude,
        'lastLocationUpdate': iso(a.last_location_update),
        'driverName': a.driver_name,
        'driverPhone': a.driver_phone,
        'paramedicName': a.paramedic_name,
        'fuelLevel': a.fuel_level,
        'mileage': a.mileage,
        'lastServiceDate': iso(a.last_service_date),
        'nextServiceDate': iso(a.next_service_date),
    }


def format_dispatch(d: DispatchLog) -> Dict[str, Any]:
    return {
        'id': d.id,
        'dispatchNumber': d.dispatch_number,
        'callerPhone': d.caller_phone,
        'callerName': d.caller_name,
        'callerLocation': d.caller_location,
        'latitude': d.latitude,
        'longitude': d.longitude,
        'landmark': d.landmark,
        'emergencyType': d.emergency_type,
        'severity': d.severity,
        'description': d.description,
        'patientCount': d.patient_count,
        'status': d.status,
        'timeline': {
            'callReceived': iso(d.call_received),
            'dispatched': iso(d.dispatched),
            'arrivedOnScene': iso(d.arrived_on_scene),
            'departedScene': iso(d.departed_scene),
            'arrivedHospital': iso(d.arrived_hospital),
            'cleared': iso(d.cleared),
        },
        'responseTime': d.response_time,
        'transportTime': d.transport_time,
        'ambulance': format_ambulance(d.ambulance) if d.ambulance_id else None,
        'destinationHospitalId': d.destination_hospital_id,
        'emergencyId': d.emergency_id,
        'dispatcherId': d.dispatcher_id,
        'instructionsGiven': d.instructions_given,
        'outcome': d.outcome,
        'notes': d.notes,
    }


# ---------------------------------------------------------------------------
# Scoping
# ---------------------------------------------------------------------------
def scoped_dispatches(user):
    qs = DispatchLog.objects.select_related('ambulance', 'ambulance__hospital')
    if is_super(user):
        return qs
    county_id = user.county_id or (user.hospital.county_id if user.hospital_id else None)
    if user.role in COUNTY_ROLES or user.role == 'DISPATCHER' or not user.hospital_id:
        return qs.filter(county_id=county_id) if county_id else qs.none()
    return qs.filter(Q(ambulance__hospital_id=user.hospital_id) | Q(destination_hospital_id=user.hospital_id))


def scoped_ambulances(user):
    qs = Ambulance.objects.select_related('hospital')
    if is_super(user):
        return qs
    county_id = user.county_id or (user.hospital.county_id if user.hospital_id else None)
    if user.role in COUNTY_ROLES or user.role == 'DISPATCHER' or not user.hospital_id:
        return qs.filter(Q(county_id=county_id) | Q(hospital__county_id=county_id)) if county_id else qs.none()
    return qs.filter(hospital_id=user.hospital_id)


def get_ambulance(user, pk, *, for_update: bool = False) -> Ambulance:
    try:
        a = scoped_ambulances(user).get(pk=pk)
    except (Ambulance.DoesNotExist, ValueError):
        raise NotFound('Ambulance not found')
    if for_update:
        a = Ambulance.objects.select_for_update().get(pk=a.pk)
    return a


def get_dispatch(user, pk) -> DispatchLog:
    try:
        return scoped_dispatches(user).get(pk=pk)
    except (DispatchLog.DoesNotExist, ValueError):
        raise NotFound('Dispatch not found')


# ---------------------------------------------------------------------------
# Dispatch calls
# ---------------------------------------------------------------------------
def overview(user) -> Dict[str, Any]:
    qs = scoped_dispatches(user)
    active = qs.exclude(status__in=CLOSED_STATUSES).order_by('-call_received')[:ACTIVE_LIMIT]
    recent = qs.order_by('-call_received')[:RECENT_LIMIT]
    fleet = scoped_ambulances(user)
    return {
        'activeCalls': [format_dispatch(d) for d in active],
        'recentDispatches': [format_dispatch(d) for d in recent],
        'fleet': {
            'total': fleet.count(),
            'available': fleet.filter(status='AVAILABLE', is_operational=True).count(),
            'onMission': fleet.filter(status__in=MISSION_STATUSES).count(),
            'maintenance': fleet.filter(status__in=('MAINTENANCE', 'OUT_OF_SERVICE')).count(),
        },
    }


def _assign_ambulance(user, ambulance_id) -> Ambulance:
    amb = get_ambulance(user, ambulance_id, for_update=True)
    if amb.status != 'AVAILABLE' or not amb.is_operational:
        raise Conflict(f'Ambulance {amb.registration_number} is not available ({amb.status})')
    return amb


def _check_references(user, data: Dict[str, Any]) -> None:
    """Resolve the optional hospital, incident and county ids against the caller's scope."""
    if data.get('destination_hospital_id'):
        h = get_or_404(Hospital, data['destination_hospital_id'], message='Destination hospital not found')
        ensure_county_access(user, h.county_id)
    if data.get('emergency_id'):
        get_emergency(user, data['emergency_id'])
    if data.get('county_id'):
        ensure_county_access(user, get_or_404(County, data['county_id'], message='County not found').id)


@transaction.atomic
def create_dispatch(data: Dict[str, Any], *, user, request=None) -> DispatchLog:
    _check_references(user, data)
    ambulance_id = data.pop('ambulance_id', None)
    county_id = data.pop('county_id', None) or user.county_id or (user.hospital.county_id if user.hospital_id else None)
    d = DispatchLog(
        dispatch_number=next_number(DispatchLog, 'dispatch_number', yearly_prefix('DISP')),
        dispatcher=user,
        county_id=county_id,
        **data,
    )
    if ambulance_id:
        amb = _assign_ambulance(user, ambulance_id)
        d.ambulance = amb
        d.status = 'DISPATCHED'
        d.dispatched = timezone.now()
        amb.status = 'DISPATCHED'
        amb.save(update_fields=['status', 'updated_at'])
    d.save()
    log_action(user=user, action='CREATE', entity_type='DispatchLog', entity_id=d.id,
               description=f'Call {d.dispatch_number}: {d.emergency_type}/{d.severity} at {d.caller_location}',
               changes={'ambulanceId': d.ambulance_id, 'status': d.status}, request=request)
    logger.info("Dispatch %s created (%s)", d.dispatch_number, d.status)
    broadcast_update('dispatch', 'created', d.id, severity=d.severity)
    return d


def _seconds(start, end) -> Optional[int]:
    if start and end:
        return max(int((end - start).total_seconds()), 0)
    return None


def can_update_dispatch(user) -> bool:
    return user.role in DISPATCH_ROLES or has_permission(user, 'dispatch.write')


@transaction.atomic
def update_dispatch(pk, data: Dict[str, Any], *, user, request=None) -> DispatchLog:
    if not can_update_dispatch(user):
        raise PermissionDenied('Only dispatchers can update dispatch records')
    d = get_dispatch(user, pk)
    _check_references(user, data)
    d = DispatchLog.objects.select_for_update().get(pk=d.pk)
    before = format_dispatch(d)
    now = timezone.now()

    if data.get('ambulance_id') and data['ambulance_id'] != d.ambulance_id:
        if d.status in CLOSED_STATUSES:
            raise ValidationError({'ambulanceId': 'Call is already closed'})
        if d.ambulance_id and d.ambulance.status in MISSION_STATUSES:
            raise Conflict('Call already has an ambulance on mission')
        d.ambulance = _assign_ambulance(user, data['ambulance_id'])
        if d.status == 'RECEIVED':
            data.setdefault('status', 'DISPATCHED')
    data.pop('ambulance_id', None)

    target = data.pop('status', None)
    for k, v in data.items():
        setattr(d, k, v)

    if target and target != d.status:
        check_transition(TRANSITIONS, d.status, target)
        if target != 'CANCELLED' and target != 'COMPLETED' and not d.ambulance_id:
            raise ValidationError({'status': 'Assign an ambulance first'})
        if target in MISSION_STATUSES:
            d.dispatched = d.dispatched or now
        if target == 'ON_SCENE':
            d.arrived_on_scene = now
        elif target == 'TRANSPORTING':
            d.departed_scene = now
            d.arrived_on_scene = d.arrived_on_scene or now
        elif target == 'AT_HOSPITAL':
            d.arrived_hospital = now
        elif target in CLOSED_STATUSES:
            d.cleared = now
        d.status = target
        d.response_time = _seconds(d.dispatched, d.arrived_on_scene)
        d.transport_time = _seconds(d.departed_scene, d.arrived_hospital)
        _mirror_ambulance(d)

    d.save()
    after = format_dispatch(d)
    action = 'CANCEL' if target == 'CANCELLED' else 'UPDATE'
    log_action(user=user, action=action, entity_type='DispatchLog', entity_id=d.id,
               description=f'Dispatch {d.dispatch_number} now {d.status}',
               changes=diff({k: before[k] for k in ('status', 'timeline', 'notes', 'outcome')},
                            {k: after[k] for k in ('status', 'timeline', 'notes', 'outcome')}),
               request=request)
    broadcast_update('dispatch', 'updated', d.id, status=d.status)
    return d


def _mirror_ambulance(d: DispatchLog) -> None:
    if not d.ambulance_id:
        return
    amb = d.ambulance
    amb.status = 'AVAILABLE' if d.status in CLOSED_STATUSES else d.status
    amb.save(update_fields=['status', 'updated_at'])


# ---------------------------------------------------------------------------
# Nearest units
# ---------------------------------------------------------------------------
def requires_advanced(emergency_type: Optional[str], severity: Optional[str],
                      require_equipment: bool = False) -> bool:
    # critical calls always need an advanced unit; the type check is opt-in
    return severity == 'CRITICAL' or (require_equipment and emergency_type in ADVANCED_EMERGENCIES)


def nearest(lat: float, lng: float, *, emergency_type: Optional[str] = None, severity: Optional[str] = None,
            require_equipment: bool = False, county_id: Optional[int] = None) -> Dict[str, Any]:
    qs = Ambulance.objects.select_related('hospital').filter(
        status='AVAILABLE', is_operational=True, fuel_level__gt=min_fuel(),
        latitude__isnull=False, longitude__isnull=False,
    )
    if county_id:
        qs = qs.filter(Q(county_id=county_id) | Q(hospital__county_id=county_id))
    advanced = requires_advanced(emergency_type, severity, require_equipment)
    if advanced:
        qs = qs.filter(equipment_level__in=ADVANCED_LEVELS)

    ambulances = []
    for a in qs:
        dist = haversine_km(lat, lng, a.latitude, a.longitude)
        row = format_ambulance(a)
        row['distanceKm'] = round(dist, 2)
        row['etaMinutes'] = eta_minutes(dist)
        ambulances.append(row)
    ambulances.sort(key=lambda r: r['distanceKm'])
    ambulances = ambulances[:5]

    hospitals_qs = Hospital.objects.filter(
        is_active=True, accepting_patients=True, latitude__isnull=False, longitude__isnull=False,
    ).exclude(operational_status__in=('CLOSED', 'MAINTENANCE'))
    hospitals = []
    for h in hospitals_qs:
        dist = haversine_km(lat, lng, h.latitude, h.longitude)
        hospitals.append({
            'id': h.id,
            'name': h.name,
            'level': h.level,
            'operationalStatus': h.operational_status,
            'availableBeds': h.available_beds,
            'availableEmergencyBeds': h.available_emergency_beds,
            'availableIcuBeds': h.available_icu_beds,
            'distanceKm': round(dist, 2),
            'etaMinutes': eta_minutes(dist),
        })
    hospitals.sort(key=lambda r: r['distanceKm'])
    hospitals = hospitals[:3]
    return {
        'ambulances': ambulances,
        'hospitals': hospitals,
        'recommended': {
            'ambulance': ambulances[0] if ambulances else None,
            'hospital': hospitals[0] if hospitals else None,
        },
        'criteria': {
            'latitude': lat, 'longitude': lng, 'emergencyType': emergency_type, 'severity': severity,
            'advancedEquipmentRequired': advanced,
            'minimumFuel': min_fuel(),
        },
    }


# ---------------------------------------------------------------------------
# Fleet
# ---------------------------------------------------------------------------
def list_ambulances(user, params):
    qs = scoped_ambulances(user)
    for param, field in (('status', 'status'), ('type', 'type'), ('equipmentLevel', 'equipment_level'),
                         ('hospitalId', 'hospital_id')):
        if params.get(param):
            qs = qs.filter(**{field: params[param]})
    return qs


@transaction.atomic
def create_ambulance(data: Dict[str, Any], *, user, request=None) -> Ambulance:
    if Ambulance.objects.filter(registration_number__iexact=data['registration_number']).exists():
        raise Conflict('An ambulance with this registration number already exists')
    hospital_id = data.pop('hospital_id', None) or (user.hospital_id if not is_super(user) else None)
    hospital = None
    if hospital_id:
        hospital = get_or_404(Hospital, hospital_id)
        ensure_hospital_access(user, hospital)
    county_id = data.pop('county_id', None) or (hospital.county_id if hospital else user.county_id)
    a = Ambulance.objects.create(hospital=hospital, county_id=county_id, **data)
    log_action(user=user, action='CREATE', entity_type='Ambulance', entity_id=a.id,
               description=f'Registered ambulance {a.registration_number}', request=request,
               hospital_id=a.hospital_id)
    return a


@transaction.atomic
def update_ambulance(a: Ambulance, data: Dict[str, Any], *, user, request=None) -> Ambulance:
    before = format_ambulance(a)
    if 'status' in data and data['status'] == 'AVAILABLE' and a.status in MISSION_STATUSES:
        if a.dispatches.exclude(status__in=CLOSED_STATUSES).exists():
            raise Conflict('Ambulance is assigned to an open call')
    for k, v in data.items():
        setattr(a, k, v)
    a.save()
    log_action(user=user, action='UPDATE', entity_type='Ambulance', entity_id=a.id,
               description=f'Updated ambulance {a.registration_number}', changes=diff(before, format_ambulance(a)),
               request=request, hospital_id=a.hospital_id)
    broadcast_update('ambulances', 'updated', a.id, status=a.status)
    return a


def delete_ambulance(a: Ambulance, *, user, request=None) -> None:
    if a.status in MISSION_STATUSES:
        raise Conflict('Ambulance is on a mission and cannot be removed')
    aid, reg, hospital_id = a.id, a.registration_number, a.hospital_id
    a.delete()
    log_action(user=user, action='DELETE', entity_type='Ambulance', entity_id=aid,
               description=f'Removed ambulance {reg}', request=request, hospital_id=hospital_id)


def update_location(a: Ambulance, lat: float, lng: float, *, user, fuel_level: Optional[int] = None,
                    request=None) -> Ambulance:
    a.latitude = lat
    a.longitude = lng
    a.last_location_update = timezone.now()
    fields = ['latitude', 'longitude', 'last_location_update', 'updated_at']
    if fuel_level is not None:
        a.fuel_level = fuel_level
        fields.append('fuel_level')
    a.save(update_fields=fields)
    broadcast_update('ambulances', 'location', a.id, latitude=lat, longitude=lng)
    return a


def format_maintenance(m: AmbulanceMaintenance) -> Dict[str, Any]:
    return {
        'id': m.id,
        'ambulanceId': m.ambulance_id,
        'type': m.type,
        'description': m.description,
        'cost': str(m.cost),
        'performedBy': m.performed_by,
        'date': iso(m.date),
        'nextServiceDate': iso(m.next_service_date),
        'recordedBy': m.recorded_by_id,
    }


@transaction.atomic
def record_maintenance(a: Ambulance, data: Dict[str, Any], *, user, request=None) -> AmbulanceMaintenance:
    if a.status in MISSION_STATUSES:
        raise Conflict('Ambulance is on a mission')
    m = AmbulanceMaintenance.objects.create(ambulance=a, recorded_by=user, **data)
    a.last_service_date = m.date
    if m.next_service_date:
        a.next_service_date = m.next_service_date
    a.save(update_fields=['last_service_date', 'next_service_date', 'updated_at'])
    log_action(user=user, action='CREATE', entity_type='AmbulanceMaintenance', entity_id=m.id,
               description=f'{m.type} on {a.registration_number}', changes={'cost': str(m.cost)},
               request=request, hospital_id=a.hospital_id)
    return m
