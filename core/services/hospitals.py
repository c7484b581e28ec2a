"""Hospital directory, capacity and operational status."""
from typing import Any, Dict

from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from core.exceptions import Conflict
from core.models import Hospital, Department
from core.permissions import scope_queryset
from core.realtime.broadcast import broadcast_update
from core.services.audit import log_action, diff
from core.services.common import percent, iso

BED_PAIRS = (
    ('available_beds', 'total_beds'),
    ('available_icu_beds', 'icu_beds'),
    ('available_emergency_beds', 'emergency_beds'),
    ('available_maternity_beds', 'maternity_beds'),
    ('available_pediatric_beds', 'pediatric_beds'),
)

STATUS_FIELDS = (
    'operational_status', 'accepting_patients', 'emergency_only_mode', 'power_status',
    'water_status', 'oxygen_status', 'internet_status', 'status_notes',
)


def occupancy_rate(h: Hospital) -> float:
    return percent(h.total_beds - h.available_beds, h.total_beds)


def capacity_snapshot(h: Hospital) -> Dict[str, Any]:
    return {
        'hospitalId': h.id,
        'totalBeds': h.total_beds,
        'availableBeds': h.available_beds,
        'icuBeds': h.icu_beds,
        'availableIcuBeds': h.available_icu_beds,
        'emergencyBeds': h.emergency_beds,
        'availableEmergencyBeds': h.available_emergency_beds,
        'maternityBeds': h.maternity_beds,
        'availableMaternityBeds': h.available_maternity_beds,
        'pediatricBeds': h.pediatric_beds,
        'availablePediatricBeds': h.available_pediatric_beds,
        'occupancyRate': occupancy_rate(h),
        'lastUpdated': iso(h.last_capacity_update),
    }


def status_snapshot(h: Hospital) -> Dict[str, Any]:
    return {
        'hospitalId': h.id,
        'operationalStatus': h.operational_status,
        'acceptingPatients': h.accepting_patients,
        'emergencyOnlyMode': h.emergency_only_mode,
        'powerStatus': h.power_status,
        'waterStatus': h.water_status,
        'oxygenStatus': h.oxygen_status,
        'internetStatus': h.internet_status,
        'notes': h.status_notes,
        'availableBeds': h.available_beds,
        'availableIcuBeds': h.available_icu_beds,
        'availableEmergencyBeds': h.available_emergency_beds,
        'lastUpdated': iso(h.updated_at),
    }


def format_hospital(h: Hospital, detail: bool = False) -> Dict[str, Any]:
    data = {
        'id': h.id,
        'name': h.name,
        'code': h.code,
        'countyId': h.county_id,
        'county': h.county.name if h.county_id else None,
        'level': h.level,
        'type': h.type,
        'phone': h.phone,
        'latitude': h.latitude,
        'longitude': h.longitude,
        'operationalStatus': h.operational_status,
        'acceptingPatients': h.accepting_patients,
        'totalBeds': h.total_beds,
        'availableBeds': h.available_beds,
        'occupancyRate': occupancy_rate(h),
        'shaContracted': h.sha_contracted,
        'isActive': h.is_active,
    }
    if detail:
        data.update({
            'address': h.address,
            'email': h.email,
            'capacity': capacity_snapshot(h),
            'status': status_snapshot(h),
            'departments': [format_department(d) for d in h.departments.filter(is_active=True)],
        })
    return data


def format_department(d: Department) -> Dict[str, Any]:
    return {
        'id': d.id,
        'hospitalId': d.hospital_id,
        'name': d.name,
        'type': d.type,
        'totalBeds': d.total_beds,
        'availableBeds': d.available_beds,
        'occupancyRate': percent(d.total_beds - d.available_beds, d.total_beds),
    }


def list_hospitals(user, params):
    qs = scope_queryset(Hospital.objects.select_related('county'), user, hospital_field='self')
    if params.get('countyId'):
        qs = qs.filter(county_id=params['countyId'])
    if params.get('level'):
        qs = qs.filter(level=params['level'])
    if params.get('status'):
        qs = qs.filter(operational_status=params['status'])
    if params.get('accepting') in ('1', 'true'):
        qs = qs.filter(accepting_patients=True, is_active=True)
    q = (params.get('q') or '').strip()
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(code__icontains=q))
    return qs


def create_hospital(data: Dict[str, Any], *, user, request=None) -> Hospital:
    if Hospital.objects.filter(code=data['code']).exists():
        raise Conflict('A hospital with this code already exists')
    h = Hospital(**data)
    _check_capacity(h)
    h.last_capacity_update = timezone.now()
    h.save()
    log_action(user=user, action='CREATE', entity_type='Hospital', entity_id=h.id,
               description=f'Registered hospital {h.name}', request=request, hospital_id=h.id)
    return h


def update_hospital(h: Hospital, data: Dict[str, Any], *, user, request=None) -> Hospital:
    if 'code' in data and data['code'] != h.code and Hospital.objects.filter(code=data['code']).exists():
        raise Conflict('A hospital with this code already exists')
    before = {k: getattr(h, k) for k in data}
    for k, v in data.items():
        setattr(h, k, v)
    _check_capacity(h)
    h.save()
    log_action(user=user, action='UPDATE', entity_type='Hospital', entity_id=h.id,
               description=f'Updated hospital {h.name}', changes=diff(_jsonable(before), _jsonable(data)),
               request=request, hospital_id=h.id)
    return h


def _check_capacity(h: Hospital) -> None:
    errors = {}
    for avail, total in BED_PAIRS:
        if getattr(h, avail) > getattr(h, total):
            errors[avail] = f'Cannot exceed {total} ({getattr(h, total)})'
    if errors:
        raise ValidationError(errors)


def _jsonable(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.pk if hasattr(v, 'pk') else v) for k, v in d.items()}


def update_capacity(h: Hospital, data: Dict[str, Any], *, user, request=None) -> Dict[str, Any]:
    """Apply new available counts; ``occupancyRate`` when given must match 0..100."""
    occupancy = data.pop('occupancy_rate', None)
    if occupancy is not None and not (0 <= occupancy <= 100):
        raise ValidationError({'occupancyRate': 'Must be between 0 and 100'})
    before = capacity_snapshot(h)
    for k, v in data.items():
        setattr(h, k, v)
    _check_capacity(h)
    h.last_capacity_update = timezone.now()
    h.save()
    after = capacity_snapshot(h)
    log_action(user=user, action='UPDATE', entity_type='HospitalCapacity', entity_id=h.id,
               description=f'Capacity updated for {h.name}',
               changes={'before': before, 'after': after}, request=request, hospital_id=h.id)
    broadcast_update('capacity', 'updated', h.id)
    return after


def update_status(h: Hospital, data: Dict[str, Any], *, user, request=None) -> Dict[str, Any]:
    before = status_snapshot(h)
    for k, v in data.items():
        setattr(h, k, v)
    _check_capacity(h)
    if any(k.startswith('available_') for k in data):
        h.last_capacity_update = timezone.now()
    if h.operational_status == 'CLOSED':
        h.accepting_patients = False
    h.save()
    after = status_snapshot(h)
    log_action(user=user, action='UPDATE', entity_type='HospitalStatus', entity_id=h.id,
               description=f'Status of {h.name} set to {h.operational_status}',
               changes=diff(before, after), request=request, hospital_id=h.id)
    broadcast_update('hospital_status', 'updated', h.id, status=h.operational_status)
    return after
