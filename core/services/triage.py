"""
Triage intake, priority queue and statistics.

The queue ordering is IMMEDIATE first, then by arrival time.  Waiting time
is measured in whole minutes from arrival until now, or until the entry was
completed.
"""
from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError, PermissionDenied, NotFound

from core.models import TriageEntry, TriageTransition, Patient, Department, Resource, BED_RESOURCE_TYPES
from core.permissions import scope_queryset, ensure_hospital_access, is_super
from core.realtime.broadcast import broadcast_update
from core.services.audit import log_action, diff
from core.services.common import next_number, check_transition, percent, iso

LEVEL_ORDER = ('IMMEDIATE', 'URGENT', 'LESS_URGENT', 'NON_URGENT')
LEVEL_RANK = {lvl: i for i, lvl in enumerate(LEVEL_ORDER)}
STATUS_ORDER = (
    'WAITING', 'IN_ASSESSMENT', 'IN_TREATMENT', 'ADMITTED', 'DISCHARGED',
    'TRANSFERRED', 'LEFT_WITHOUT_BEING_SEEN',
)
QUEUE_STATUSES = ('WAITING', 'IN_ASSESSMENT')
TERMINAL_STATUSES = ('ADMITTED', 'DISCHARGED', 'TRANSFERRED', 'LEFT_WITHOUT_BEING_SEEN')

TRANSITIONS = {
    'WAITING': ('IN_ASSESSMENT', 'LEFT_WITHOUT_BEING_SEEN'),
    'IN_ASSESSMENT': ('IN_TREATMENT', 'ADMITTED', 'DISCHARGED', 'TRANSFERRED', 'WAITING'),
    'IN_TREATMENT': ('ADMITTED', 'DISCHARGED', 'TRANSFERRED'),
}

# audit action per terminal status
STATUS_ACTIONS = {'DISCHARGED': 'DISCHARGE', 'TRANSFERRED': 'TRANSFER'}

UPDATABLE_FIELDS = (
    'triage_level', 'status', 'chief_complaint', 'arrival_mode', 'department',
    'vital_signs', 'notes', 'disposition', 'diagnosis', 'treatment_given',
)


def waiting_minutes(entry: TriageEntry, now: Optional[datetime] = None) -> int:
    end = entry.completed_at or now or timezone.now()
    return max(int((end - entry.arrival_time).total_seconds() // 60), 0)


def queue_sort_key(entry: TriageEntry):
    return (LEVEL_RANK.get(entry.triage_level, len(LEVEL_ORDER)), entry.arrival_time)


def format_entry(e: TriageEntry, now: Optional[datetime] = None) -> Dict[str, Any]:
    p = e.patient
    return {
        'id': e.id,
        'triageNumber': e.triage_number,
        'patient': {
            'id': p.id,
            'patientNumber': p.patient_number,
            'name': p.full_name,
            'gender': p.gender,
            'dateOfBirth': iso(p.date_of_birth),
        },
        'hospitalId': e.hospital_id,
        'department': {'id': e.department_id, 'name': e.department.name, 'type': e.department.type}
        if e.department_id else None,
        'chiefComplaint': e.chief_complaint,
        'triageLevel': e.triage_level,
        'arrivalMode': e.arrival_mode,
        'vitalSigns': e.vital_signs,
        'status': e.status,
        'arrivalTime': iso(e.arrival_time),
        'assessedAt': iso(e.assessed_at),
        'assessedBy': e.assessed_by_id,
        'completedAt': iso(e.completed_at),
        'notes': e.notes,
        'disposition': e.disposition,
        'diagnosis': e.diagnosis,
        'treatmentGiven': e.treatment_given,
        'waitingTime': waiting_minutes(e, now),
    }


def base_queryset(user):
    qs = TriageEntry.objects.select_related('patient', 'department', 'hospital')
    return scope_queryset(qs, user)


def list_entries(user, params):
    qs = base_queryset(user)
    if params.get('status'):
        qs = qs.filter(status__in=params['status'].split(','))
    if params.get('triageLevel'):
        qs = qs.filter(triage_level=params['triageLevel'])
    if params.get('departmentType'):
        qs = qs.filter(department__type=params['departmentType'])
    if params.get('departmentId'):
        qs = qs.filter(department_id=params['departmentId'])
    if params.get('hospitalId'):
        qs = qs.filter(hospital_id=params['hospitalId'])
    if params.get('date'):
        qs = qs.filter(arrival_time__date=params['date'])
    return qs.order_by('-arrival_time')


def get_entry(user, entry_id) -> TriageEntry:
    try:
        entry = TriageEntry.objects.select_related('patient', 'department', 'hospital').get(pk=entry_id)
    except (TriageEntry.DoesNotExist, ValueError):
        raise NotFound('Triage entry not found')
    ensure_hospital_access(user, entry.hospital)
    return entry


def queue(user, hospital_id: Optional[int] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Active queue in priority order with per-level counts."""
    now = now or timezone.now()
    qs = base_queryset(user).filter(status__in=QUEUE_STATUSES)
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    entries = sorted(qs, key=queue_sort_key)
    data = []
    for pos, e in enumerate(entries, start=1):
        row = format_entry(e, now)
        row['position'] = pos
        data.append(row)
    counts = Counter(e.triage_level for e in entries)
    return {
        'queue': data,
        'counts': {lvl: counts.get(lvl, 0) for lvl in LEVEL_ORDER},
        'total': len(entries),
        'longestWait': max((r['waitingTime'] for r in data), default=0),
    }


def _resolve_department(hospital_id: int, department_id: Optional[int]) -> Optional[Department]:
    if not department_id:
        return None
    try:
        return Department.objects.get(id=department_id, hospital_id=hospital_id)
    except Department.DoesNotExist:
        raise ValidationError({'departmentId': 'Department does not belong to this hospital'})


@transaction.atomic
def create_entry(data: Dict[str, Any], *, user, request=None) -> TriageEntry:
    hospital_id = data.get('hospital_id') or user.hospital_id
    if not hospital_id:
        raise ValidationError({'hospitalId': 'A hospital is required'})
    if not is_super(user) and user.hospital_id and hospital_id != user.hospital_id:
        raise PermissionDenied('You can only triage patients at your own facility')
    try:
        patient = Patient.objects.select_for_update().get(id=data['patient_id'])
    except Patient.DoesNotExist:
        raise ValidationError({'patientId': 'Patient not found'})
    department = _resolve_department(hospital_id, data.get('department_id'))
    entry = TriageEntry.objects.create(
        triage_number=next_number(TriageEntry, 'triage_number', 'TRI-'),
        patient=patient,
        hospital_id=hospital_id,
        department=department,
        chief_complaint=data['chief_complaint'],
        triage_level=data['triage_level'],
        arrival_mode=data.get('arrival_mode') or 'WALK_IN',
        vital_signs=data.get('vital_signs') or {},
        notes=data.get('notes', ''),
        arrival_time=data.get('arrival_time') or timezone.now(),
        created_by=user,
    )
    TriageTransition.objects.create(entry=entry, from_status=None, to_status='WAITING', operator=user)
    patient.current_hospital_id = hospital_id
    if patient.current_status in ('DISCHARGED', 'IN_TRANSFER'):
        patient.current_status = 'ACTIVE'
    patient.save(update_fields=['current_hospital', 'current_status', 'updated_at'])
    log_action(user=user, action='CREATE', entity_type='TriageEntry', entity_id=entry.id,
               description=f'Triaged {patient.full_name} as {entry.triage_level}',
               changes={'triageLevel': entry.triage_level, 'chiefComplaint': entry.chief_complaint},
               request=request, hospital_id=hospital_id)
    broadcast_update('triage', 'created', entry.id, level=entry.triage_level)
    return entry


@transaction.atomic
def update_entry(entry_id: int, data: Dict[str, Any], *, user, request=None) -> TriageEntry:
    try:
        entry = TriageEntry.objects.select_for_update().select_related('patient', 'hospital').get(pk=entry_id)
    except TriageEntry.DoesNotExist:
        raise NotFound('Triage entry not found')
    ensure_hospital_access(user, entry.hospital)
    now = timezone.now()
    before = {k: _plain(getattr(entry, k if k != 'department' else 'department_id')) for k in UPDATABLE_FIELDS}

    if 'department_id' in data:
        entry.department = _resolve_department(entry.hospital_id, data.pop('department_id'))
    new_status = data.pop('status', None)
    for k, v in data.items():
        setattr(entry, k, v)

    action = 'UPDATE'
    if new_status and new_status != entry.status:
        check_transition(TRANSITIONS, entry.status, new_status)
        TriageTransition.objects.create(entry=entry, from_status=entry.status, to_status=new_status, operator=user)
        if new_status == 'IN_ASSESSMENT' and not entry.assessed_at:
            entry.assessed_at = now
            entry.assessed_by = user
        if new_status in TERMINAL_STATUSES:
            entry.completed_at = now
        elif entry.completed_at:
            entry.completed_at = None
        entry.status = new_status
        action = STATUS_ACTIONS.get(new_status, 'UPDATE')
        _sync_patient_status(entry.patient, new_status)
    entry.save()

    after = {k: _plain(getattr(entry, k if k != 'department' else 'department_id')) for k in UPDATABLE_FIELDS}
    log_action(user=user, action=action, entity_type='TriageEntry', entity_id=entry.id,
               description=f'Updated triage {entry.triage_number}', changes=diff(before, after),
               request=request, hospital_id=entry.hospital_id)
    broadcast_update('triage', 'updated', entry.id, status=entry.status)
    return entry


def _plain(v):
    return v.isoformat() if hasattr(v, 'isoformat') else v


def _sync_patient_status(patient: Patient, triage_status: str) -> None:
    mapping = {'ADMITTED': 'ADMITTED', 'DISCHARGED': 'DISCHARGED'}
    if triage_status in mapping:
        patient.current_status = mapping[triage_status]
        patient.save(update_fields=['current_status', 'updated_at'])


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------
def period_bounds(period: str, start: Optional[datetime] = None, end: Optional[datetime] = None,
                  now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    now = now or timezone.now()
    today = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)
    if period == 'week':
        return today - timedelta(days=7), now
    if period == 'month':
        return today - timedelta(days=30), now
    if period == 'custom':
        if not start or not end:
            raise ValidationError({'detail': 'Custom period requires from and to'})
        if start > end:
            raise ValidationError({'detail': 'from must be before to'})
        return start, end
    return today, now


def _mean(values: Iterable[float]) -> Optional[float]:
    values = list(values)
    return round(sum(values) / len(values), 1) if values else None


def statistics(user, period: str = 'today', start=None, end=None,
               hospital_id: Optional[int] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    start, end = period_bounds(period, start, end, now)
    qs = base_queryset(user).filter(arrival_time__gte=start, arrival_time__lte=end)
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    entries = list(qs)

    by_status = Counter(e.status for e in entries)
    by_priority: Dict[str, Any] = {}
    for lvl in LEVEL_ORDER:
        subset = [e for e in entries if e.triage_level == lvl]
        by_priority[lvl] = {
            'total': len(subset),
            'byStatus': dict(Counter(e.status for e in subset)),
        }

    departments: Dict[int, Dict[str, Any]] = {}
    for e in entries:
        if not e.department_id:
            continue
        d = departments.setdefault(e.department_id, {
            'departmentId': e.department_id,
            'name': e.department.name,
            'type': e.department.type,
            'total': 0,
            'byPriority': {lvl: 0 for lvl in LEVEL_ORDER},
        })
        d['total'] += 1
        d['byPriority'][e.triage_level] += 1
    beds = defaultdict(lambda: [0, 0])
    for r in Resource.objects.filter(department_id__in=departments.keys(), type__in=BED_RESOURCE_TYPES):
        beds[r.department_id][0] += r.total_capacity
        beds[r.department_id][1] += r.available_capacity
    for dep_id, d in departments.items():
        total, available = beds[dep_id]
        d['bedOccupancyRate'] = percent(total - available, total)

    peak = [{'hour': h, 'total': 0, 'immediate': 0, 'urgent': 0} for h in range(24)]
    for e in entries:
        bucket = peak[timezone.localtime(e.arrival_time).hour]
        bucket['total'] += 1
        if e.triage_level == 'IMMEDIATE':
            bucket['immediate'] += 1
        elif e.triage_level == 'URGENT':
            bucket['urgent'] += 1

    complaints = Counter(e.chief_complaint.strip().lower() for e in entries if e.chief_complaint)
    assessed = [e for e in entries if e.assessed_at]
    waits = {
        lvl: _mean((e.assessed_at - e.arrival_time).total_seconds() / 60 for e in assessed if e.triage_level == lvl)
        for lvl in LEVEL_ORDER
    }

    return {
        'period': {'type': period, 'from': iso(start), 'to': iso(end)},
        'summary': {
            'total': len(entries),
            'byPriority': by_priority,
            'byStatus': {s: by_status.get(s, 0) for s in STATUS_ORDER},
        },
        'departments': list(departments.values()),
        'peakHours': peak,
        'topComplaints': [{'complaint': c, 'count': n} for c, n in complaints.most_common(10)],
        'arrivalModes': dict(Counter(e.arrival_mode for e in entries)),
        'waitTimes': {
            'averageMinutes': _mean((e.assessed_at - e.arrival_time).total_seconds() / 60 for e in assessed),
            'byPriority': waits,
            'currentlyWaiting': by_status.get('WAITING', 0),
        },
    }
