"""
Resource inventory: capacity bookkeeping, bed availability and shortages.

Capacity values of a resource always satisfy
``0 <= x <= total`` and ``available + reserved + in_use <= total``.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError, NotFound

from core.models import Hospital, Resource, SystemAlert, BED_RESOURCE_TYPES
from core.permissions import scope_queryset, ensure_hospital_access
from core.realtime.broadcast import broadcast_update
from core.services.audit import log_action, diff
from core.services.common import percent, iso, get_or_404
from core.services import alerts as alert_service

CAPACITY_FIELDS = ('available_capacity', 'in_use_capacity', 'reserved_capacity')
RESOURCE_STATUS_VALUES = ('AVAILABLE', 'IN_USE', 'RESERVED', 'MAINTENANCE', 'OUT_OF_ORDER')
SEVERITY_ORDER = {'CRITICAL': 0, 'HIGH': 1, 'MEDIUM': 2}
EXPIRY_WARNING_DAYS = 7
EXPIRY_WATCH_DAYS = 30


def format_resource(r: Resource) -> Dict[str, Any]:
    return {
        'id': r.id,
        'name': r.name,
        'type': r.type,
        'category': r.category,
        'hospitalId': r.hospital_id,
        'hospitalName': r.hospital.name if r.hospital_id else None,
        'departmentId': r.department_id,
        'departmentName': r.department.name if r.department_id else None,
        'totalCapacity': r.total_capacity,
        'availableCapacity': r.available_capacity,
        'reservedCapacity': r.reserved_capacity,
        'inUseCapacity': r.in_use_capacity,
        'unit': r.unit,
        'minimumLevel': r.minimum_level,
        'criticalLevel': r.critical_level,
        'reorderLevel': r.reorder_level,
        'status': r.status,
        'isCritical': r.is_critical,
        'isOperational': r.is_operational,
        'lastMaintenance': iso(r.last_maintenance),
        'nextMaintenance': iso(r.next_maintenance),
        'expiryDate': iso(r.expiry_date),
        'lastRestock': iso(r.last_restock),
        'supplier': r.supplier,
        'unitCost': str(r.unit_cost) if r.unit_cost is not None else None,
        'utilizationRate': percent(r.total_capacity - r.available_capacity, r.total_capacity),
        'updatedAt': iso(r.updated_at),
    }


def capacity_dict(r: Resource) -> Dict[str, Any]:
    return {
        'totalCapacity': r.total_capacity,
        'availableCapacity': r.available_capacity,
        'inUseCapacity': r.in_use_capacity,
        'reservedCapacity': r.reserved_capacity,
        'status': r.status,
    }


def validate_capacity(r: Resource) -> None:
    errors = {}
    for f in CAPACITY_FIELDS:
        value = getattr(r, f)
        if value < 0 or value > r.total_capacity:
            errors[f] = f'Must be between 0 and {r.total_capacity}'
    if not errors and sum(getattr(r, f) for f in CAPACITY_FIELDS) > r.total_capacity:
        errors['detail'] = 'Available, in-use and reserved capacity exceed total capacity'
    if errors:
        raise ValidationError(errors)


def get_resource(user, resource_id) -> Resource:
    try:
        r = Resource.objects.select_related('hospital', 'department').get(pk=resource_id)
    except (Resource.DoesNotExist, ValueError):
        raise NotFound('Resource not found')
    ensure_hospital_access(user, r.hospital)
    return r


def list_resources(user, params):
    qs = scope_queryset(Resource.objects.select_related('hospital', 'department'), user)
    for param, field in (('type', 'type'), ('category', 'category'), ('status', 'status'),
                         ('departmentId', 'department_id'), ('hospitalId', 'hospital_id')):
        if params.get(param):
            qs = qs.filter(**{field: params[param]})
    if params.get('critical') in ('1', 'true'):
        qs = qs.filter(is_critical=True)
    q = (params.get('q') or '').strip()
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(category__icontains=q) | Q(supplier__icontains=q))
    return qs


@transaction.atomic
def create_resource(data: Dict[str, Any], *, user, request=None) -> Resource:
    data.setdefault('hospital_id', user.hospital_id)
    if not data.get('hospital_id'):
        raise ValidationError({'hospitalId': 'A hospital is required'})
    if data.get('available_capacity') is None:
        data['available_capacity'] = data['total_capacity'] - data.get('in_use_capacity', 0) - data.get('reserved_capacity', 0)
    hospital = get_or_404(Hospital, data.pop('hospital_id'))
    ensure_hospital_access(user, hospital)
    r = Resource(hospital=hospital, **data)
    validate_capacity(r)
    r.save()
    log_action(user=user, action='CREATE', entity_type='Resource', entity_id=r.id,
               description=f'Added resource {r.name}', changes=capacity_dict(r),
               request=request, hospital_id=r.hospital_id)
    return r


@transaction.atomic
def update_resource(r: Resource, data: Dict[str, Any], *, user, request=None) -> Resource:
    before = format_resource(r)
    for k, v in data.items():
        setattr(r, k, v)
    validate_capacity(r)
    if 'available_capacity' in data and data['available_capacity'] > before['availableCapacity']:
        r.last_restock = timezone.now()
    r.save()
    log_action(user=user, action='UPDATE', entity_type='Resource', entity_id=r.id,
               description=f'Updated resource {r.name}', changes=diff(before, format_resource(r)),
               request=request, hospital_id=r.hospital_id)
    broadcast_update('resources', 'updated', r.id)
    return r


def delete_resource(r: Resource, *, user, request=None) -> None:
    rid, name, hospital_id = r.id, r.name, r.hospital_id
    r.delete()
    log_action(user=user, action='DELETE', entity_type='Resource', entity_id=rid,
               description=f'Removed resource {name}', request=request, hospital_id=hospital_id)


# ---------------------------------------------------------------------------
# Beds
# ---------------------------------------------------------------------------
def bed_availability(user, hospital_id: Optional[int] = None, department_type: Optional[str] = None) -> Dict[str, Any]:
    qs = scope_queryset(Resource.objects.select_related('hospital', 'department'), user).filter(type__in=BED_RESOURCE_TYPES)
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    if department_type:
        qs = qs.filter(department__type=department_type)

    groups: Dict[str, Dict[str, Any]] = {}
    for r in qs:
        key = f'{r.hospital_id}|{r.department_id or "-"}'
        g = groups.setdefault(key, {
            'hospitalId': r.hospital_id,
            'hospitalName': r.hospital.name,
            'departmentId': r.department_id,
            'departmentName': r.department.name if r.department_id else 'General',
            'totalBeds': 0, 'availableBeds': 0, 'inUseBeds': 0, 'reservedBeds': 0,
            'resources': [],
        })
        g['totalBeds'] += r.total_capacity
        g['availableBeds'] += r.available_capacity
        g['inUseBeds'] += r.in_use_capacity
        g['reservedBeds'] += r.reserved_capacity
        g['resources'].append({'id': r.id, 'name': r.name, 'type': r.type, 'status': r.status,
                               'available': r.available_capacity, 'total': r.total_capacity})
    for g in groups.values():
        g['utilizationRate'] = percent(g['totalBeds'] - g['availableBeds'], g['totalBeds'])

    rows = list(groups.values())
    total = sum(g['totalBeds'] for g in rows)
    available = sum(g['availableBeds'] for g in rows)
    return {
        'departments': rows,
        'overall': {
            'totalBeds': total,
            'availableBeds': available,
            'inUseBeds': sum(g['inUseBeds'] for g in rows),
            'reservedBeds': sum(g['reservedBeds'] for g in rows),
            'utilizationRate': percent(total - available, total),
            'hospitalCount': len({g['hospitalId'] for g in rows}),
            'departmentCount': len({g['departmentId'] for g in rows if g['departmentId']}),
        },
        'lastUpdated': timezone.now().isoformat(),
    }


@transaction.atomic
def update_bed_availability(resource_id, data: Dict[str, Any], *, user, request=None) -> Resource:
    """Partial update of a bed resource's capacity split and status."""
    if not any(k in data for k in (*CAPACITY_FIELDS, 'status')):
        raise ValidationError({'detail': 'At least one capacity field or status must be provided'})
    try:
        r = Resource.objects.select_for_update().select_related('hospital').get(pk=resource_id)
    except (Resource.DoesNotExist, ValueError):
        raise NotFound('Resource not found')
    ensure_hospital_access(user, r.hospital)
    if r.type not in BED_RESOURCE_TYPES:
        raise ValidationError({'resourceId': 'Resource is not a bed'})
    if 'status' in data and data['status'] not in RESOURCE_STATUS_VALUES:
        raise ValidationError({'status': 'Invalid status'})
    before = capacity_dict(r)
    for k in (*CAPACITY_FIELDS, 'status'):
        if k in data:
            setattr(r, k, data[k])
    validate_capacity(r)
    r.save()
    after = capacity_dict(r)
    log_action(user=user, action='UPDATE', entity_type='BedAvailability', entity_id=r.id,
               description=f'Bed availability updated for {r.name}',
               changes={'before': before, 'after': after}, request=request, hospital_id=r.hospital_id)
    broadcast_update('beds', 'updated', r.id, hospitalId=r.hospital_id)
    return r


# ---------------------------------------------------------------------------
# Shortages
# ---------------------------------------------------------------------------
def classify_shortage(r: Resource, now: datetime) -> Optional[Dict[str, str]]:
    """First matching rule wins, in severity order."""
    if r.available_capacity <= r.critical_level:
        return {'type': 'STOCK_CRITICAL', 'severity': 'CRITICAL',
                'message': f'{r.name} at critical level ({r.available_capacity} {r.unit} left)'}
    if r.available_capacity <= r.reorder_level:
        return {'type': 'STOCK_LOW', 'severity': 'HIGH',
                'message': f'{r.name} below reorder level ({r.available_capacity} {r.unit} left)'}
    if not r.is_operational:
        return {'type': 'EQUIPMENT_DOWN', 'severity': 'HIGH', 'message': f'{r.name} is not operational'}
    if r.next_maintenance and r.next_maintenance <= now:
        return {'type': 'MAINTENANCE_OVERDUE', 'severity': 'MEDIUM', 'message': f'{r.name} maintenance overdue'}
    if r.expiry_date and r.expiry_date <= now + timedelta(days=EXPIRY_WARNING_DAYS):
        return {'type': 'EXPIRING_SOON', 'severity': 'MEDIUM', 'message': f'{r.name} expires on {r.expiry_date:%Y-%m-%d}'}
    return None


def critical_shortages(user, severity: Optional[str] = None, hospital_id: Optional[int] = None,
                       now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or timezone.now()
    qs = scope_queryset(Resource.objects.select_related('hospital', 'department'), user)
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    candidates = qs.filter(
        Q(available_capacity__lte=F('critical_level'))
        | Q(available_capacity__lte=F('reorder_level'))
        | Q(is_operational=False)
        | Q(next_maintenance__lte=now)
        | Q(expiry_date__lte=now + timedelta(days=EXPIRY_WATCH_DAYS))
    )
    shortages = []
    for r in candidates:
        found = classify_shortage(r, now)
        if not found:
            continue
        shortages.append({
            'resourceId': r.id,
            'resourceName': r.name,
            'resourceType': r.type,
            'category': r.category,
            'hospitalId': r.hospital_id,
            'hospitalName': r.hospital.name,
            'departmentName': r.department.name if r.department_id else None,
            'availableCapacity': r.available_capacity,
            'criticalLevel': r.critical_level,
            'reorderLevel': r.reorder_level,
            'unit': r.unit,
            'shortageType': found['type'],
            'severity': found['severity'],
            'message': found['message'],
            'expiryDate': iso(r.expiry_date),
            'nextMaintenance': iso(r.next_maintenance),
        })
    if severity:
        shortages = [s for s in shortages if s['severity'] == severity]
    shortages.sort(key=lambda s: (SEVERITY_ORDER[s['severity']], s['availableCapacity']))
    by_type: Dict[str, int] = {}
    for s in shortages:
        by_type[s['shortageType']] = by_type.get(s['shortageType'], 0) + 1
    return {
        'shortages': shortages,
        'stats': {
            'total': len(shortages),
            'critical': sum(1 for s in shortages if s['severity'] == 'CRITICAL'),
            'high': sum(1 for s in shortages if s['severity'] == 'HIGH'),
            'medium': sum(1 for s in shortages if s['severity'] == 'MEDIUM'),
            'byType': by_type,
        },
        'lastUpdated': now.isoformat(),
    }


def acknowledge_shortage(resource_id, note: str, *, user, request=None) -> SystemAlert:
    r = get_resource(user, resource_id)
    found = classify_shortage(r, timezone.now()) or {
        'type': 'STOCK_LOW', 'severity': 'MEDIUM', 'message': f'{r.name} flagged for review',
    }
    alert = alert_service.raise_alert(
        alert_type=found['type'], severity=found['severity'],
        title=f'Resource shortage: {r.name}',
        message=f"{found['message']}. {note}".strip(),
        source_type='Resource', source_id=r.id, hospital=r.hospital, user=user,
        status='ACKNOWLEDGED',
    )
    log_action(user=user, action='UPDATE', entity_type='Resource', entity_id=r.id,
               description=f'Shortage acknowledged for {r.name}', changes={'alertId': alert.id, 'note': note},
               request=request, hospital_id=r.hospital_id)
    return alert
