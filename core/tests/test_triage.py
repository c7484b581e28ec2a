from datetime import timedelta

import pytest
from django.utils import timezone

from core.models import TriageEntry, TriageTransition, AuditEvent
from core.services import triage as svc

pytestmark = pytest.mark.django_db


def make_entry(patient, hospital, level, minutes_ago=0, status='WAITING', **extra):
    n = TriageEntry.objects.count() + 1
    return TriageEntry.objects.create(
        triage_number=f'TRI-{n:06d}', patient=patient, hospital=hospital, chief_complaint='Chest pain',
        triage_level=level, status=status, arrival_time=timezone.now() - timedelta(minutes=minutes_ago), **extra,
    )


def test_create_entry_records_transition_and_audit(client_for, nurse, patient, department):
    r = client_for(nurse).post('/api/triage', {
        'patientId': patient.id, 'chiefComplaint': 'Difficulty breathing', 'triageLevel': 'IMMEDIATE',
        'departmentId': department.id, 'vitalSigns': {'spo2': 88},
    }, format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['triageNumber'] == 'TRI-000001'
    assert data['status'] == 'WAITING'
    assert data['hospitalId'] == nurse.hospital_id
    assert data['department']['type'] == 'EMERGENCY'
    entry = TriageEntry.objects.get(pk=data['id'])
    assert TriageTransition.objects.filter(entry=entry, from_status=None, to_status='WAITING').exists()
    assert AuditEvent.objects.filter(action='CREATE', entity_type='TriageEntry', entity_id=str(entry.id)).exists()


def test_create_entry_rejects_foreign_department(client_for, nurse, patient, other_hospital):
    from core.models import Department
    dep = Department.objects.create(hospital=other_hospital, name='ER', type='EMERGENCY')
    r = client_for(nurse).post('/api/triage', {
        'patientId': patient.id, 'chiefComplaint': 'Cough', 'triageLevel': 'NON_URGENT', 'departmentId': dep.id,
    }, format='json')
    assert r.status_code == 400


def test_nurse_cannot_triage_at_another_facility(client_for, nurse, patient, other_hospital):
    r = client_for(nurse).post('/api/triage', {
        'patientId': patient.id, 'hospitalId': other_hospital.id, 'chiefComplaint': 'Cough',
        'triageLevel': 'NON_URGENT',
    }, format='json')
    assert r.status_code == 403


def test_queue_orders_immediate_first_then_arrival(client_for, nurse, patient, hospital):
    late_urgent = make_entry(patient, hospital, 'URGENT', minutes_ago=5)
    early_urgent = make_entry(patient, hospital, 'URGENT', minutes_ago=30)
    immediate = make_entry(patient, hospital, 'IMMEDIATE', minutes_ago=1)
    make_entry(patient, hospital, 'IMMEDIATE', minutes_ago=60, status='DISCHARGED')
    r = client_for(nurse).get('/api/triage/queue')
    assert r.status_code == 200
    body = r.data['data']
    assert [row['id'] for row in body['queue']] == [immediate.id, early_urgent.id, late_urgent.id]
    assert [row['position'] for row in body['queue']] == [1, 2, 3]
    assert body['counts'] == {'IMMEDIATE': 1, 'URGENT': 2, 'LESS_URGENT': 0, 'NON_URGENT': 0}
    assert body['longestWait'] >= 29


def test_status_walk_sets_timestamps(client_for, nurse, patient, hospital):
    e = make_entry(patient, hospital, 'URGENT')
    c = client_for(nurse)
    r = c.patch(f'/api/triage/{e.id}', {'status': 'IN_ASSESSMENT'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['assessedAt'] is not None
    assert r.data['data']['assessedBy'] == nurse.id
    r = c.patch(f'/api/triage/{e.id}', {'status': 'DISCHARGED', 'disposition': 'Home'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['completedAt'] is not None
    patient.refresh_from_db()
    assert patient.current_status == 'DISCHARGED'
    assert AuditEvent.objects.filter(action='DISCHARGE', entity_type='TriageEntry').exists()


def test_invalid_transition_is_rejected(client_for, nurse, patient, hospital):
    e = make_entry(patient, hospital, 'URGENT')
    r = client_for(nurse).patch(f'/api/triage/{e.id}', {'status': 'ADMITTED'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_transition'
    e.refresh_from_db()
    assert e.status == 'WAITING'


def test_entry_at_other_hospital_is_forbidden(client_for, nurse, patient, other_hospital):
    e = make_entry(patient, other_hospital, 'URGENT')
    assert client_for(nurse).get(f'/api/triage/{e.id}').status_code == 403
    assert client_for(nurse).get('/api/triage/999999').status_code == 404


def test_waiting_minutes_stops_at_completion(patient, hospital):
    e = make_entry(patient, hospital, 'URGENT', minutes_ago=90)
    e.completed_at = e.arrival_time + timedelta(minutes=42)
    assert svc.waiting_minutes(e) == 42


def test_statistics_summary(client_for, nurse, patient, hospital, department):
    now = timezone.now()
    a = make_entry(patient, hospital, 'IMMEDIATE', department=department)
    a.assessed_at = a.arrival_time + timedelta(minutes=4)
    a.status = 'IN_ASSESSMENT'
    a.save()
    make_entry(patient, hospital, 'URGENT', department=department)
    stats = svc.statistics(nurse, 'custom', now - timedelta(hours=1), now + timedelta(hours=1))
    assert stats['summary']['total'] == 2
    assert stats['summary']['byPriority']['IMMEDIATE']['total'] == 1
    assert stats['summary']['byStatus']['WAITING'] == 1
    assert stats['departments'][0]['byPriority']['URGENT'] == 1
    assert stats['waitTimes']['byPriority']['IMMEDIATE'] == 4.0
    assert stats['waitTimes']['byPriority']['URGENT'] is None
    assert stats['topComplaints'] == [{'complaint': 'chest pain', 'count': 2}]
    assert sum(h['total'] for h in stats['peakHours']) == 2


def test_custom_stats_period_requires_bounds(client_for, nurse):
    r = client_for(nurse).get('/api/triage/stats', {'period': 'custom'})
    assert r.status_code == 400
    assert client_for(nurse).get('/api/triage/stats').status_code == 200
