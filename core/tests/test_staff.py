from datetime import timedelta

import pytest
from django.utils import timezone

from core.models import AuditEvent, Department, StaffSchedule, User

pytestmark = pytest.mark.django_db


def staff_payload(**extra):
    payload = {
        'firstName': 'Grace', 'lastName': 'Wambui', 'email': 'Grace.Wambui@knh.test', 'phone': '0711000222',
        'role': 'NURSE', 'employmentType': 'PERMANENT', 'contractType': 'FULL_TIME',
        'facilityType': 'HOSPITAL', 'hireDate': '2024-01-15',
    }
    payload.update(extra)
    return payload


def shift(start, hours=8, kind='MORNING'):
    return {'startTime': start.isoformat(), 'endTime': (start + timedelta(hours=hours)).isoformat(),
            'shiftType': kind}


def test_create_staff_returns_one_time_password(client_for, hospital_admin, hospital):
    r = client_for(hospital_admin).post('/api/staff', staff_payload(), format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['email'] == 'grace.wambui@knh.test'
    assert data['staffNumber'] == 'STF-000001'
    assert data['hospitalId'] == hospital.id
    assert data['countyId'] == hospital.county_id
    u = User.objects.get(pk=data['id'])
    assert u.check_password(data['temporaryPassword'])
    assert AuditEvent.objects.filter(action='CREATE', entity_type='Staff', entity_id=str(u.id)).exists()


def test_create_staff_with_chosen_password(client_for, hospital_admin):
    r = client_for(hospital_admin).post('/api/staff', staff_payload(password='Welcome#2026'), format='json')
    assert r.data['data']['temporaryPassword'] == 'Welcome#2026'


def test_duplicate_email_conflicts(client_for, hospital_admin, nurse):
    r = client_for(hospital_admin).post('/api/staff', staff_payload(email=nurse.email.upper()), format='json')
    assert r.status_code == 409


def test_only_super_creates_super_admins(client_for, hospital_admin):
    r = client_for(hospital_admin).post('/api/staff', staff_payload(role='SUPER_ADMIN'), format='json')
    assert r.status_code == 400


def test_hospital_admin_cannot_grant_county_roles(client_for, hospital_admin, nurse, super_admin):
    c = client_for(hospital_admin)
    assert c.post('/api/staff', staff_payload(role='COUNTY_ADMIN'), format='json').status_code == 400
    r = c.patch(f'/api/staff/{nurse.id}', {'role': 'COUNTY_ADMIN'}, format='json')
    assert r.status_code == 400
    assert c.patch(f'/api/staff/{nurse.id}', {'role': 'SUPER_ADMIN'}, format='json').status_code == 400
    nurse.refresh_from_db()
    assert nurse.role == 'NURSE'

    assert c.patch(f'/api/staff/{nurse.id}', {'role': 'TRIAGE_OFFICER'}, format='json').status_code == 200
    r = client_for(super_admin).patch(f'/api/staff/{nurse.id}', {'role': 'COUNTY_ADMIN'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['role'] == 'COUNTY_ADMIN'


def test_department_must_belong_to_hospital(client_for, hospital_admin, other_hospital):
    dep = Department.objects.create(hospital=other_hospital, name='Theatre', type='SURGERY')
    r = client_for(hospital_admin).post('/api/staff', staff_payload(departmentId=dep.id), format='json')
    assert r.status_code == 400


def test_cannot_place_staff_at_another_facility(client_for, hospital_admin, other_hospital):
    r = client_for(hospital_admin).post('/api/staff', staff_payload(hospitalId=other_hospital.id), format='json')
    assert r.status_code == 403


def test_list_is_scoped_with_role_stats(client_for, hospital_admin, doctor, nurse, super_admin, make_user,
                                        other_hospital):
    make_user('NURSE', hospital=other_hospital)
    make_user('NURSE', hospital=hospital_admin.hospital, is_active=False)
    r = client_for(hospital_admin).get('/api/staff')
    assert r.status_code == 200
    assert r.data['pagination']['total'] == 3
    assert r.data['stats'] == {'total': 3, 'byRole': {'HOSPITAL_ADMIN': 1, 'DOCTOR': 1, 'NURSE': 1}}
    assert client_for(hospital_admin).get('/api/staff', {'active': 'all'}).data['pagination']['total'] == 4
    assert client_for(hospital_admin).get('/api/staff', {'role': 'DOCTOR'}).data['data'][0]['id'] == doctor.id


def test_staff_without_module_access(client_for, doctor, nurse):
    c = client_for(doctor)
    assert c.get('/api/staff').status_code == 403
    me = c.get(f'/api/staff/{doctor.id}')
    assert me.status_code == 200
    assert 'patients.write' in me.data['data']['permissions']
    assert c.get(f'/api/staff/{nurse.id}').status_code == 403
    assert c.patch(f'/api/staff/{doctor.id}', {'phone': '0700'}, format='json').status_code == 403


def test_update_and_deactivate(client_for, hospital_admin, nurse):
    c = client_for(hospital_admin)
    r = c.patch(f'/api/staff/{nurse.id}', {'specialization': 'Critical care'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['specialization'] == 'Critical care'

    soon = timezone.now() + timedelta(days=1)
    StaffSchedule.objects.create(staff=nurse, hospital=nurse.hospital, shift_type='NIGHT', start_time=soon,
                                 end_time=soon + timedelta(hours=12))
    r = c.delete(f'/api/staff/{nurse.id}')
    assert r.data['data']['isActive'] is False
    assert not nurse.schedules.filter(is_active=True).exists()
    assert c.delete(f'/api/staff/{hospital_admin.id}').status_code == 400


def test_schedule_overlap_is_rejected(client_for, hospital_admin, nurse):
    c = client_for(hospital_admin)
    start = (timezone.now() + timedelta(days=2)).replace(hour=6, minute=0, second=0, microsecond=0)
    url = f'/api/staff/{nurse.id}/schedule'

    r = c.post(url, shift(start), format='json')
    assert r.status_code == 201
    assert r.data['data']['durationHours'] == 8.0
    clash = c.post(url, shift(start + timedelta(hours=4), kind='EVENING'), format='json')
    assert clash.status_code == 409
    assert c.post(url, shift(start + timedelta(hours=8), kind='EVENING'), format='json').status_code == 201

    listed = c.get(url).data['data']
    assert [s['shiftType'] for s in listed] == ['MORNING', 'EVENING']

    backwards = {'startTime': start.isoformat(), 'endTime': (start - timedelta(hours=1)).isoformat(),
                 'shiftType': 'CUSTOM'}
    assert c.post(url, backwards, format='json').status_code == 400


def test_cancelled_shift_frees_the_slot(client_for, hospital_admin, nurse):
    c = client_for(hospital_admin)
    start = timezone.now() + timedelta(days=3)
    sid = c.post(f'/api/staff/{nurse.id}/schedule', shift(start), format='json').data['data']['id']
    r = c.delete(f'/api/staff/{nurse.id}/schedule/{sid}')
    assert r.data['data']['isActive'] is False
    assert c.post(f'/api/staff/{nurse.id}/schedule', shift(start), format='json').status_code == 201
    assert c.delete(f'/api/staff/{nurse.id}/schedule/{sid}').status_code == 404


def test_on_duty_follows_current_shift(client_for, hospital_admin, nurse, doctor):
    now = timezone.now()
    StaffSchedule.objects.create(staff=nurse, hospital=nurse.hospital, shift_type='CUSTOM',
                                 start_time=now - timedelta(hours=1), end_time=now + timedelta(hours=1))
    r = client_for(hospital_admin).get('/api/staff', {'onDuty': 'true'})
    assert [s['id'] for s in r.data['data']] == [nurse.id]
    assert r.data['data'][0]['isOnDuty'] is True


def test_inactive_staff_cannot_be_scheduled(client_for, hospital_admin, make_user, hospital):
    idle = make_user('NURSE', hospital=hospital, is_active=False)
    r = client_for(hospital_admin).post(f'/api/staff/{idle.id}/schedule',
                                        shift(timezone.now() + timedelta(days=1)), format='json')
    assert r.status_code == 400
