import pytest
from django.utils import timezone

from core.models import Ambulance, AuditEvent, DispatchLog
from core.services.geo import haversine_km, eta_minutes

pytestmark = pytest.mark.django_db

YEAR = timezone.now().year


def call(client, **extra):
    payload = {'callerPhone': '0722111333', 'callerName': 'Mary Atieno', 'callerLocation': 'Kenyatta Avenue',
               'latitude': -1.2864, 'longitude': 36.8172, 'emergencyType': 'CARDIAC', 'severity': 'CRITICAL',
               'description': 'Elderly man collapsed', 'patientCount': 1}
    payload.update(extra)
    return client.post('/api/dispatch', payload, format='json')


def test_haversine_and_eta():
    nairobi_to_mombasa = haversine_km(-1.2921, 36.8219, -4.0435, 39.6682)
    assert 430 < nairobi_to_mombasa < 450
    assert haversine_km(-1.3, 36.8, -1.3, 36.8) == 0
    assert eta_minutes(20) == 30
    assert eta_minutes(0) == 1


def test_call_with_ambulance_is_dispatched(client_for, dispatcher, ambulance):
    r = call(client_for(dispatcher), ambulanceId=ambulance.id)
    assert r.status_code == 201
    data = r.data['data']
    assert data['dispatchNumber'] == f'DISP-{YEAR}-000001'
    assert data['status'] == 'DISPATCHED'
    assert data['timeline']['dispatched'] is not None
    assert data['ambulance']['registrationNumber'] == 'KCA 123A'
    ambulance.refresh_from_db()
    assert ambulance.status == 'DISPATCHED'

    busy = call(client_for(dispatcher), ambulanceId=ambulance.id)
    assert busy.status_code == 409
    assert DispatchLog.objects.count() == 1


def test_call_lifecycle_mirrors_ambulance(client_for, dispatcher, ambulance, hospital):
    c = client_for(dispatcher)
    did = call(c, ambulanceId=ambulance.id, destinationHospitalId=hospital.id).data['data']['id']
    url = f'/api/dispatch/{did}'

    r = c.patch(url, {'status': 'ON_SCENE'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['responseTime'] >= 0
    ambulance.refresh_from_db()
    assert ambulance.status == 'ON_SCENE'

    back = c.patch(url, {'status': 'EN_ROUTE'}, format='json')
    assert back.status_code == 400
    assert back.data['error']['code'] == 'invalid_transition'

    c.patch(url, {'status': 'TRANSPORTING'}, format='json')
    c.patch(url, {'status': 'AT_HOSPITAL'}, format='json')
    r = c.patch(url, {'status': 'COMPLETED', 'outcome': 'Handed over to ED'}, format='json')
    data = r.data['data']
    assert data['timeline']['cleared'] is not None
    assert data['transportTime'] is not None
    assert data['outcome'] == 'Handed over to ED'
    ambulance.refresh_from_db()
    assert ambulance.status == 'AVAILABLE'


def test_status_needs_an_assigned_ambulance(client_for, dispatcher, ambulance):
    c = client_for(dispatcher)
    did = call(c).data['data']['id']
    assert c.patch(f'/api/dispatch/{did}', {'status': 'EN_ROUTE'}, format='json').status_code == 400

    r = c.patch(f'/api/dispatch/{did}', {'ambulanceId': ambulance.id}, format='json')
    assert r.data['data']['status'] == 'DISPATCHED'
    ambulance.refresh_from_db()
    assert ambulance.status == 'DISPATCHED'


def test_cancelling_releases_ambulance(client_for, dispatcher, ambulance):
    c = client_for(dispatcher)
    did = call(c, ambulanceId=ambulance.id).data['data']['id']
    r = c.patch(f'/api/dispatch/{did}', {'status': 'CANCELLED'}, format='json')
    assert r.data['data']['status'] == 'CANCELLED'
    ambulance.refresh_from_db()
    assert ambulance.status == 'AVAILABLE'
    assert AuditEvent.objects.filter(action='CANCEL', entity_type='DispatchLog').exists()


def test_dispatch_permissions(client_for, nurse, hospital_admin, dispatcher):
    assert client_for(nurse).get('/api/dispatch').status_code == 403
    did = call(client_for(dispatcher)).data['data']['id']
    assert client_for(hospital_admin).patch(f'/api/dispatch/{did}', {'notes': 'x'}, format='json').status_code == 403


def test_board_overview(client_for, dispatcher, ambulance, hospital):
    Ambulance.objects.create(registration_number='KCB 900Z', hospital=hospital, county=hospital.county,
                             status='MAINTENANCE')
    c = client_for(dispatcher)
    call(c, ambulanceId=ambulance.id)
    call(c)
    board = c.get('/api/dispatch').data['data']
    assert len(board['activeCalls']) == 2
    assert board['fleet'] == {'total': 2, 'available': 0, 'onMission': 1, 'maintenance': 1}


def test_call_references_must_exist_and_be_in_scope(client_for, dispatcher, other_county, other_hospital, hospital):
    c = client_for(dispatcher)
    assert call(c, destinationHospitalId=999999).status_code == 404
    assert call(c, emergencyId=999999).status_code == 404
    assert call(c, countyId=999999).status_code == 404
    assert call(c, countyId=other_county.id).status_code == 403
    assert call(c, destinationHospitalId=other_hospital.id).status_code == 403
    assert DispatchLog.objects.count() == 0

    did = call(c, destinationHospitalId=hospital.id).data['data']['id']
    r = c.patch(f'/api/dispatch/{did}', {'destinationHospitalId': other_hospital.id}, format='json')
    assert r.status_code == 403
    assert DispatchLog.objects.get(pk=did).destination_hospital_id == hospital.id


def test_nearest_filters_by_fuel_and_equipment(client_for, dispatcher, ambulance, hospital, second_hospital,
                                               other_hospital):
    Ambulance.objects.create(registration_number='KBZ 001A', hospital=hospital, county=hospital.county,
                             equipment_level='BASIC', latitude=-1.2950, longitude=36.8100)
    Ambulance.objects.create(registration_number='KBZ 002B', hospital=hospital, county=hospital.county,
                             equipment_level='ADVANCED', latitude=-1.2930, longitude=36.8200, fuel_level=10)
    c = client_for(dispatcher)
    params = {'lat': -1.3000, 'lng': 36.8070}

    r = c.get('/api/dispatch/nearest', params)
    assert r.status_code == 200
    data = r.data['data']
    assert [a['registrationNumber'] for a in data['ambulances']] == ['KBZ 001A', 'KCA 123A']
    assert [h['id'] for h in data['hospitals']] == [hospital.id, second_hospital.id, other_hospital.id]
    assert data['recommended']['hospital']['id'] == hospital.id

    r = c.get('/api/dispatch/nearest', dict(params, emergencyType='CARDIAC', requireEquipment='true'))
    data = r.data['data']
    assert [a['registrationNumber'] for a in data['ambulances']] == ['KCA 123A']
    assert data['criteria']['advancedEquipmentRequired'] is True

    r = c.get('/api/dispatch/nearest', dict(params, severity='CRITICAL'))
    data = r.data['data']
    assert [a['registrationNumber'] for a in data['ambulances']] == ['KCA 123A']
    assert data['criteria']['advancedEquipmentRequired'] is True

    r = c.get('/api/dispatch/nearest', dict(params, emergencyType='CARDIAC', severity='HIGH'))
    assert len(r.data['data']['ambulances']) == 2
    assert r.data['data']['criteria']['advancedEquipmentRequired'] is False


def test_nearest_requires_coordinates(client_for, dispatcher):
    assert client_for(dispatcher).get('/api/dispatch/nearest', {'lat': 95, 'lng': 36.8}).status_code == 400


# ---------------------------------------------------------------------------
# Fleet
# ---------------------------------------------------------------------------
def test_register_ambulance(client_for, dispatcher, ambulance, hospital, doctor):
    c = client_for(dispatcher)
    r = c.post('/api/dispatch/ambulances', {'registrationNumber': 'KDA 555X', 'type': 'BLS'}, format='json')
    assert r.status_code == 201
    assert r.data['data']['hospitalId'] == hospital.id
    assert r.data['data']['countyId'] == hospital.county_id
    dup = c.post('/api/dispatch/ambulances', {'registrationNumber': 'kca 123a'}, format='json')
    assert dup.status_code == 409
    assert client_for(doctor).get('/api/dispatch/ambulances').status_code == 403


def test_registration_number_is_immutable(client_for, dispatcher, ambulance):
    r = client_for(dispatcher).patch(f'/api/dispatch/ambulances/{ambulance.id}',
                                     {'registrationNumber': 'KAA 000A'}, format='json')
    assert r.status_code == 400


def test_on_mission_ambulance_is_protected(client_for, dispatcher, ambulance):
    c = client_for(dispatcher)
    call(c, ambulanceId=ambulance.id)
    url = f'/api/dispatch/ambulances/{ambulance.id}'
    assert c.patch(url, {'status': 'AVAILABLE'}, format='json').status_code == 409
    assert c.delete(url).status_code == 409
    r = c.post(f'{url}/maintenance', {'type': 'Service', 'description': 'Oil change', 'cost': '15000',
                                      'performedBy': 'CMC Motors', 'date': '2026-03-01'}, format='json')
    assert r.status_code == 409


def test_driver_reports_location(client_for, make_user, ambulance, hospital, nurse):
    driver = make_user('AMBULANCE_DRIVER', hospital=hospital)
    url = f'/api/dispatch/ambulances/{ambulance.id}/location'
    r = client_for(driver).post(url, {'latitude': -1.2700, 'longitude': 36.8100, 'fuelLevel': 55}, format='json')
    assert r.status_code == 200
    assert r.data['data']['latitude'] == -1.27
    assert r.data['data']['fuelLevel'] == 55
    assert r.data['data']['lastLocationUpdate'] is not None
    assert client_for(nurse).post(url, {'latitude': 0, 'longitude': 0}, format='json').status_code == 403


def test_maintenance_updates_service_dates(client_for, dispatcher, ambulance):
    c = client_for(dispatcher)
    url = f'/api/dispatch/ambulances/{ambulance.id}/maintenance'
    r = c.post(url, {'type': 'Service', 'description': 'Brake pads', 'cost': '15000', 'performedBy': 'CMC Motors',
                     'date': '2026-03-01', 'nextServiceDate': '2026-06-01'}, format='json')
    assert r.status_code == 201
    assert r.data['data']['cost'] == '15000.00'
    ambulance.refresh_from_db()
    assert str(ambulance.last_service_date) == '2026-03-01'
    assert str(ambulance.next_service_date) == '2026-06-01'
    assert len(c.get(url).data['data']) == 1
