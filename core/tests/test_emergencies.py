import pytest

from core.models import AuditEvent, Emergency, EmergencyResponse, SystemAlert

pytestmark = pytest.mark.django_db


def report(client, **extra):
    payload = {'type': 'TRAFFIC_ACCIDENT', 'severity': 'MAJOR', 'location': 'Thika Road, Roysambu',
               'latitude': -1.2180, 'longitude': 36.8890, 'description': 'Matatu and lorry collision',
               'estimatedCasualties': 14, 'reportedBy': 'Traffic police', 'reporterPhone': '0733000444'}
    payload.update(extra)
    return client.post('/api/emergencies', payload, format='json')


def make_emergency(county, status='REPORTED', **extra):
    n = Emergency.objects.count() + 1
    return Emergency.objects.create(emergency_number=f'EMG-T{n}', type='FIRE', severity='SEVERE', county=county,
                                    location='Gikomba market', description='Market fire', status=status, **extra)


def test_report_notifies_county_hospitals(client_for, dispatcher, second_hospital, other_hospital):
    r = report(client_for(dispatcher))
    assert r.status_code == 201
    assert r.data['hospitalsNotified'] == 2
    data = r.data['data']
    assert data['emergencyNumber'].startswith('EMG-')
    assert data['countyId'] == dispatcher.county_id
    assert data['status'] == 'REPORTED'
    alerts = SystemAlert.objects.filter(alert_type='EMERGENCY')
    assert alerts.count() == 2
    assert {a.severity for a in alerts} == {'CRITICAL'}
    assert not alerts.filter(hospital=other_hospital).exists()


def test_closed_hospitals_are_not_notified(client_for, dispatcher, second_hospital):
    second_hospital.accepting_patients = False
    second_hospital.save()
    assert report(client_for(dispatcher)).data['hospitalsNotified'] == 1


def test_reporting_needs_write_access(client_for, nurse, doctor):
    assert report(client_for(nurse)).status_code == 403
    assert report(client_for(doctor)).status_code == 403


def test_cannot_report_for_another_county(client_for, dispatcher, other_county):
    assert report(client_for(dispatcher), countyId=other_county.id).status_code == 403


def test_status_only_moves_forward(client_for, dispatcher, county):
    e = make_emergency(county)
    c = client_for(dispatcher)
    r = c.patch(f'/api/emergencies/{e.id}', {'status': 'ON_SCENE'}, format='json')
    assert r.status_code == 200
    back = c.patch(f'/api/emergencies/{e.id}', {'status': 'CONFIRMED'}, format='json')
    assert back.status_code == 400
    assert back.data['error']['code'] == 'invalid_transition'
    r = c.patch(f'/api/emergencies/{e.id}', {'status': 'RESOLVED', 'estimatedCasualties': 3}, format='json')
    assert r.data['data']['resolvedAt'] is not None
    assert r.data['data']['estimatedCasualties'] == 3


def test_emergencies_are_county_scoped(client_for, dispatcher, make_user, other_hospital, county):
    e = make_emergency(county)
    outsider = make_user('DISPATCHER', hospital=other_hospital)
    assert client_for(outsider).get(f'/api/emergencies/{e.id}').status_code == 404
    assert client_for(outsider).get('/api/emergencies').data['pagination']['total'] == 0
    assert client_for(dispatcher).get('/api/emergencies').data['pagination']['total'] == 1


def test_bulk_status_reports_failures(client_for, dispatcher, county):
    fresh = make_emergency(county)
    done = make_emergency(county, status='RESOLVED')
    r = client_for(dispatcher).patch('/api/emergencies', {'ids': [fresh.id, done.id], 'status': 'CONFIRMED'},
                                     format='json')
    assert r.status_code == 200
    assert r.data['data']['updated'] == [fresh.id]
    assert r.data['data']['failed'][0]['id'] == done.id
    fresh.refresh_from_db()
    assert fresh.status == 'CONFIRMED'


def test_response_deploys_ambulance_and_staff(client_for, hospital_admin, doctor, ambulance, hospital, county):
    e = make_emergency(county)
    c = client_for(hospital_admin)
    r = c.post(f'/api/emergencies/{e.id}/response', {
        'hospitalId': hospital.id, 'ambulanceId': ambulance.id, 'staffIds': [doctor.id],
        'equipmentDeployed': ['Defibrillator'], 'suppliesDeployed': ['IV fluids'],
    }, format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['status'] == 'DISPATCHED'
    assert data['staffDeployed'] == [{'id': doctor.id, 'name': doctor.full_name, 'role': 'DOCTOR'}]
    ambulance.refresh_from_db()
    assert ambulance.status == 'DISPATCHED'
    e.refresh_from_db()
    assert e.status == 'RESPONDING'

    busy = c.post(f'/api/emergencies/{e.id}/response', {'hospitalId': hospital.id, 'ambulanceId': ambulance.id},
                  format='json')
    assert busy.status_code == 409


def test_response_staff_must_belong_to_hospital(client_for, hospital_admin, make_user, second_hospital, hospital,
                                                county):
    e = make_emergency(county)
    elsewhere = make_user('DOCTOR', hospital=second_hospital)
    r = client_for(hospital_admin).post(f'/api/emergencies/{e.id}/response',
                                        {'hospitalId': hospital.id, 'staffIds': [elsewhere.id]}, format='json')
    assert r.status_code == 400


def test_response_hospital_must_be_in_county(client_for, super_admin, other_hospital, county):
    e = make_emergency(county)
    r = client_for(super_admin).post(f'/api/emergencies/{e.id}/response', {'hospitalId': other_hospital.id},
                                     format='json')
    assert r.status_code == 400


def test_response_lifecycle_releases_ambulance(client_for, hospital_admin, ambulance, hospital, county):
    e = make_emergency(county)
    c = client_for(hospital_admin)
    rid = c.post(f'/api/emergencies/{e.id}/response', {'hospitalId': hospital.id, 'ambulanceId': ambulance.id},
                 format='json').data['data']['id']
    url = f'/api/emergencies/{e.id}/response/{rid}'

    r = c.patch(url, {'status': 'ON_SCENE'}, format='json')
    assert r.data['data']['arrivedAt'] is not None
    ambulance.refresh_from_db()
    assert ambulance.status == 'ON_SCENE'

    assert c.delete(f'/api/emergencies/{e.id}').status_code == 409

    r = c.patch(url, {'status': 'COMPLETED', 'patientsTreated': 6, 'patientsTransported': 2}, format='json')
    assert r.data['data']['completedAt'] is not None
    ambulance.refresh_from_db()
    assert ambulance.status == 'AVAILABLE'
    assert c.patch(url, {'notes': 'late note'}, format='json').status_code == 400

    r = c.delete(f'/api/emergencies/{e.id}')
    assert r.data['data']['status'] == 'ARCHIVED'
    assert c.get('/api/emergencies').data['pagination']['total'] == 0
    assert c.get('/api/emergencies', {'includeArchived': 'true'}).data['pagination']['total'] == 1
    assert AuditEvent.objects.filter(action='DELETE', entity_type='Emergency').exists()


def test_no_response_to_resolved_emergency(client_for, hospital_admin, hospital, county):
    e = make_emergency(county, status='RESOLVED')
    r = client_for(hospital_admin).post(f'/api/emergencies/{e.id}/response', {'hospitalId': hospital.id},
                                        format='json')
    assert r.status_code == 400
    assert not EmergencyResponse.objects.exists()


def test_removing_response_frees_ambulance(client_for, hospital_admin, ambulance, hospital, county):
    e = make_emergency(county)
    c = client_for(hospital_admin)
    rid = c.post(f'/api/emergencies/{e.id}/response', {'hospitalId': hospital.id, 'ambulanceId': ambulance.id},
                 format='json').data['data']['id']
    assert c.delete(f'/api/emergencies/{e.id}/response/{rid}').status_code == 200
    ambulance.refresh_from_db()
    assert ambulance.status == 'AVAILABLE'


def test_deleting_cancelled_response_keeps_ambulance_on_new_call(client_for, hospital_admin, ambulance, hospital,
                                                                 county):
    first, second = make_emergency(county), make_emergency(county)
    c = client_for(hospital_admin)
    rid = c.post(f'/api/emergencies/{first.id}/response', {'hospitalId': hospital.id, 'ambulanceId': ambulance.id},
                 format='json').data['data']['id']
    c.patch(f'/api/emergencies/{first.id}/response/{rid}', {'status': 'CANCELLED'}, format='json')
    r = c.post(f'/api/emergencies/{second.id}/response', {'hospitalId': hospital.id, 'ambulanceId': ambulance.id},
               format='json')
    assert r.status_code == 201

    assert c.delete(f'/api/emergencies/{first.id}/response/{rid}').status_code == 200
    ambulance.refresh_from_db()
    assert ambulance.status == 'DISPATCHED'


def test_archive_by_patch_is_refused_while_responding(client_for, hospital_admin, hospital, county):
    e = make_emergency(county)
    c = client_for(hospital_admin)
    c.post(f'/api/emergencies/{e.id}/response', {'hospitalId': hospital.id}, format='json')

    single = c.patch(f'/api/emergencies/{e.id}', {'status': 'ARCHIVED'}, format='json')
    assert single.status_code == 409
    bulk = c.patch('/api/emergencies', {'ids': [e.id], 'status': 'ARCHIVED'}, format='json')
    assert bulk.status_code == 200
    assert bulk.data['data']['updated'] == []
    assert bulk.data['data']['failed'][0]['id'] == e.id
    e.refresh_from_db()
    assert e.status == 'RESPONDING'


def test_archive_by_bulk_patch_once_responses_close(client_for, dispatcher, county):
    e = make_emergency(county, status='RESOLVED')
    r = client_for(dispatcher).patch('/api/emergencies', {'ids': [e.id], 'status': 'ARCHIVED'}, format='json')
    assert r.data['data']['updated'] == [e.id]
    e.refresh_from_db()
    assert e.status == 'ARCHIVED'
    assert e.resolved_at is not None


def test_only_admins_remove_responses(client_for, dispatcher, hospital_admin, hospital, county):
    e = make_emergency(county)
    rid = client_for(hospital_admin).post(f'/api/emergencies/{e.id}/response', {'hospitalId': hospital.id},
                                          format='json').data['data']['id']
    assert client_for(dispatcher).delete(f'/api/emergencies/{e.id}/response/{rid}').status_code == 403
    assert EmergencyResponse.objects.filter(pk=rid).exists()
