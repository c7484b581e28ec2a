"""Staff directory and shift rosters."""
import secrets
from collections import Counter
from typing import Any, Dict, Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError, NotFound

from core.exceptions import Conflict
from core.models import StaffSchedule, Hospital, Department
from core.permissions import scope_queryset, ensure_hospital_access, permissions_for, is_super
from core.services.audit import log_action, diff
from core.services.common import next_number, iso, get_or_404

User = get_user_model()


def format_staff(u, detail: bool = False, now=None) -> Dict[str, Any]:
    data = {
        'id': u.id,
        'staffNumber': u.staff_number,
        'firstName': u.first_name,
        'lastName': u.last_name,
        'name': u.full_name,
        'email': u.email,
        'phone': u.phone,
        'role': u.role,
        'specialization': u.specialization,
        'hospitalId': u.hospital_id,
        'departmentId': u.department_id,
        'countyId': u.county_id,
        'employmentType': u.employment_type,
        'contractType': u.contract_type,
        'facilityType': u.facility_type,
        'hireDate': iso(u.hire_date),
        'isActive': u.is_active,
        'isOnDuty': is_on_duty(u, now),
    }
    if detail:
        data.update({
            'licenseNumber': u.license_number,
            'permissions': permissions_for(u),
            'lastLogin': iso(u.last_login),
        })
    return data


def is_on_duty(u, now=None) -> bool:
    now = now or timezone.now()
    return u.is_on_duty or u.schedules.filter(is_active=True, start_time__lte=now, end_time__gt=now).exists()


def list_staff(user, params, now=None):
    now = now or timezone.now()
    qs = scope_queryset(User.objects.select_related('hospital', 'department'), user,
                        county_field='county')
    if not is_super(user):
        qs = qs.exclude(role='SUPER_ADMIN')
    if params.get('role'):
        qs = qs.filter(role=params['role'])
    if params.get('departmentId'):
        qs = qs.filter(department_id=params['departmentId'])
    if params.get('hospitalId'):
        qs = qs.filter(hospital_id=params['hospitalId'])
    if params.get('active') in ('0', 'false'):
        qs = qs.filter(is_active=False)
    elif params.get('active') != 'all':
        qs = qs.filter(is_active=True)
    if params.get('onDuty') in ('1', 'true'):
        qs = qs.filter(Q(is_on_duty=True) | Q(schedules__is_active=True, schedules__start_time__lte=now,
                                              schedules__end_time__gt=now)).distinct()
    q = (params.get('q') or '').strip()
    if q:
        qs = qs.filter(Q(first_name__icontains=q) | Q(last_name__icontains=q) | Q(email__icontains=q)
                       | Q(staff_number__icontains=q) | Q(specialization__icontains=q))
    return qs.order_by('last_name', 'first_name')


def role_stats(qs) -> Dict[str, Any]:
    roles = Counter(qs.values_list('role', flat=True))
    return {'total': sum(roles.values()), 'byRole': dict(roles)}


def get_staff(user, staff_id):
    try:
        u = User.objects.select_related('hospital').get(pk=staff_id)
    except (User.DoesNotExist, ValueError):
        raise NotFound('Staff member not found')
    if u.id != user.id:
        if u.hospital_id:
            ensure_hospital_access(user, u.hospital)
        elif not is_super(user) and u.county_id != user.county_id:
            raise NotFound('Staff member not found')
    return u


def _resolve_placement(data: Dict[str, Any], user) -> None:
    hospital_id = data.get('hospital_id') or (user.hospital_id if not is_super(user) else None)
    if hospital_id:
        hospital = get_or_404(Hospital, hospital_id)
        ensure_hospital_access(user, hospital)
        data['hospital_id'] = hospital.id
        data.setdefault('county_id', hospital.county_id)
    if data.get('department_id'):
        if not Department.objects.filter(pk=data['department_id'], hospital_id=data.get('hospital_id')).exists():
            raise ValidationError({'departmentId': 'Department does not belong to this hospital'})


def check_role_grant(user, role: str) -> None:
    """Only a super admin hands out or takes away SUPER_ADMIN; COUNTY_ADMIN needs a county admin."""
    if is_super(user):
        return
    if role == 'SUPER_ADMIN' or (role == 'COUNTY_ADMIN' and user.role != 'COUNTY_ADMIN'):
        raise ValidationError({'role': f'You cannot assign or change the {role} role'})


@transaction.atomic
def create_staff(data: Dict[str, Any], *, user, request=None) -> tuple[Any, str]:
    """Create a staff account and return it with its one-time password."""
    email = data['email'].lower()
    if User.objects.filter(email__iexact=email).exists():
        raise Conflict('A staff member with this email already exists')
    check_role_grant(user, data['role'])
    _resolve_placement(data, user)
    password = data.pop('password', None) or secrets.token_urlsafe(9)
    u = User(
        username=email,
        email=email,
        staff_number=next_number(User, 'staff_number', 'STF-'),
        **{k: v for k, v in data.items() if k != 'email'},
    )
    u.set_password(password)
    u.save()
    log_action(user=user, action='CREATE', entity_type='Staff', entity_id=u.id,
               description=f'Added staff {u.full_name} ({u.role})', request=request, hospital_id=u.hospital_id)
    return u, password


@transaction.atomic
def register_staff(data: Dict[str, Any], *, request=None):
    """Self-service sign-up.  The account stays inactive until an administrator
    enables it."""
    email = data['email'].lower()
    if User.objects.filter(email__iexact=email).exists():
        raise Conflict('An account with this email already exists')
    hospital_id = data.pop('hospital_id', None)
    hospital = get_or_404(Hospital, hospital_id, message='Hospital not found') if hospital_id else None
    password = data.pop('password')
    data.pop('email')
    u = User(
        username=email,
        email=email,
        staff_number=next_number(User, 'staff_number', 'STF-'),
        hospital=hospital,
        county_id=hospital.county_id if hospital else None,
        is_active=False,
        **data,
    )
    u.set_password(password)
    u.save()
    log_action(user=None, action='CREATE', entity_type='Staff', entity_id=u.id,
               description=f'Registration request from {email} ({u.role})', request=request,
               hospital_id=u.hospital_id)
    return u


@transaction.atomic
def update_staff(u, data: Dict[str, Any], *, user, request=None):
    if 'email' in data:
        data['email'] = data['email'].lower()
        if User.objects.filter(email__iexact=data['email']).exclude(pk=u.pk).exists():
            raise Conflict('A staff member with this email already exists')
    if data.get('role') and data['role'] != u.role:
        check_role_grant(user, u.role)
        check_role_grant(user, data['role'])
    if 'hospital_id' in data or 'department_id' in data:
        data.setdefault('hospital_id', u.hospital_id)
        _resolve_placement(data, user)
    before = format_staff(u)
    for k, v in data.items():
        setattr(u, k, v)
    if 'email' in data:
        u.username = data['email']
    u.save()
    log_action(user=user, action='UPDATE', entity_type='Staff', entity_id=u.id,
               description=f'Updated staff {u.full_name}', changes=diff(before, format_staff(u)),
               request=request, hospital_id=u.hospital_id)
    return u


def deactivate_staff(u, *, user, request=None):
    if u.id == user.id:
        raise ValidationError({'detail': 'You cannot deactivate your own account'})
    u.is_active = False
    u.is_on_duty = False
    u.save(update_fields=['is_active', 'is_on_duty'])
    u.schedules.filter(is_active=True, end_time__gt=timezone.now()).update(is_active=False)
    log_action(user=user, action='DELETE', entity_type='Staff', entity_id=u.id,
               description=f'Deactivated staff {u.full_name}', request=request, hospital_id=u.hospital_id)
    return u


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------
def format_schedule(s: StaffSchedule) -> Dict[str, Any]:
    return {
        'id': s.id,
        'staffId': s.staff_id,
        'hospitalId': s.hospital_id,
        'departmentId': s.department_id,
        'shiftType': s.shift_type,
        'startTime': iso(s.start_time),
        'endTime': iso(s.end_time),
        'durationHours': round((s.end_time - s.start_time).total_seconds() / 3600, 2),
        'notes': s.notes,
        'isActive': s.is_active,
    }


def list_schedules(staff, params):
    qs = staff.schedules.filter(is_active=True)
    if params.get('from'):
        qs = qs.filter(end_time__gte=params['from'])
    if params.get('to'):
        qs = qs.filter(start_time__lte=params['to'])
    return qs


def find_overlap(staff, start, end, exclude_id: Optional[int] = None) -> Optional[StaffSchedule]:
    qs = StaffSchedule.objects.filter(staff=staff, is_active=True, start_time__lt=end, end_time__gt=start)
    if exclude_id:
        qs = qs.exclude(pk=exclude_id)
    return qs.first()


@transaction.atomic
def create_schedule(staff, data: Dict[str, Any], *, user, request=None) -> StaffSchedule:
    if not staff.is_active:
        raise ValidationError({'detail': 'Cannot schedule an inactive staff member'})
    if data['end_time'] <= data['start_time']:
        raise ValidationError({'endTime': 'End time must be after start time'})
    User.objects.select_for_update().filter(pk=staff.pk).first()
    clash = find_overlap(staff, data['start_time'], data['end_time'])
    if clash:
        raise Conflict(f'Shift overlaps an existing {clash.shift_type} shift '
                       f'({clash.start_time:%Y-%m-%d %H:%M} - {clash.end_time:%Y-%m-%d %H:%M})')
    s = StaffSchedule.objects.create(
        staff=staff,
        hospital_id=staff.hospital_id,
        department_id=data.get('department_id') or staff.department_id,
        shift_type=data['shift_type'],
        start_time=data['start_time'],
        end_time=data['end_time'],
        notes=data.get('notes', ''),
        created_by=user,
    )
    log_action(user=user, action='CREATE', entity_type='StaffSchedule', entity_id=s.id,
               description=f'{s.shift_type} shift for {staff.full_name}',
               changes={'startTime': iso(s.start_time), 'endTime': iso(s.end_time)},
               request=request, hospital_id=staff.hospital_id)
    return s


def cancel_schedule(staff, schedule_id, *, user, request=None) -> StaffSchedule:
    try:
        s = staff.schedules.get(pk=schedule_id, is_active=True)
    except (StaffSchedule.DoesNotExist, ValueError):
        raise NotFound('Schedule not found')
    s.is_active = False
    s.save(update_fields=['is_active'])
    log_action(user=user, action='CANCEL', entity_type='StaffSchedule', entity_id=s.id,
               description=f'Cancelled shift for {staff.full_name}', request=request, hospital_id=staff.hospital_id)
    return s
