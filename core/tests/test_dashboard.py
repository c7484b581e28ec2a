"""
Dashboard counters, health check and the server-rendered boards.
"""
import pytest

from core.models import SystemAlert

pytestmark = pytest.mark.django_db


def alert(hospital, **extra):
    n = SystemAlert.objects.count() + 1
    return SystemAlert.objects.create(alert_number=f'ALT-T{n}', alert_type='LOW_STOCK', title='Oxygen low',
                                      message='Oxygen below critical level', hospital=hospital,
                                      county=hospital.county, **extra)


def test_hospital_dashboard(client_for, hospital_admin, hospital):
    r = client_for(hospital_admin).get('/api/dashboard')
    assert r.status_code == 200
    data = r.data['data']
    assert data['scope'] == f'hospital:{hospital.id}'
    assert data['hospitals'] == 1
    assert data['beds'] == {'total': 100, 'available': 40, 'icuTotal': 10, 'icuAvailable': 2,
                            'occupancyRate': 60.0}


def test_county_dashboard_spans_hospitals(client_for, county_admin, hospital, second_hospital, other_hospital):
    data = client_for(county_admin).get('/api/dashboard').data['data']
    assert data['scope'] == f'county:{county_admin.county_id}'
    assert data['hospitals'] == 2
    assert data['beds']['total'] == 150
    assert data['beds']['available'] == 60


def test_dashboard_is_cached_until_refresh(client_for, hospital_admin, hospital):
    c = client_for(hospital_admin)
    assert c.get('/api/dashboard').data['data']['activeAlerts'] == 0
    alert(hospital, severity='CRITICAL')
    assert c.get('/api/dashboard').data['data']['activeAlerts'] == 0
    fresh = c.get('/api/dashboard', {'refresh': '1'}).data['data']
    assert fresh['activeAlerts'] == 1
    assert fresh['criticalAlerts'] == 1


def test_dashboard_needs_login(client_for):
    assert client_for().get('/api/dashboard').status_code == 401


def test_healthz(client):
    r = client.get('/healthz')
    assert r.status_code == 200
    body = r.json()
    assert body['ok'] is True
    assert body['db'] is True
    assert body['cache'] is True


def test_pages_redirect_anonymous_users(client):
    r = client.get('/')
    assert r.status_code == 302
    assert r['Location'].startswith('/accounts/login')


def test_dashboard_page(client, nurse):
    client.force_login(nurse)
    r = client.get('/')
    assert r.status_code == 200
    assert b'Operations overview' in r.content
    assert b'http-equiv="refresh" content="30"' in r.content


def test_dispatch_board_is_module_gated(client, nurse, dispatcher, ambulance):
    client.force_login(nurse)
    assert client.get('/dispatch').status_code == 403
    client.force_login(dispatcher)
    r = client.get('/dispatch')
    assert r.status_code == 200
    assert b'Dispatch board' in r.content


def test_triage_and_beds_pages(client, nurse, bed_resource):
    client.force_login(nurse)
    assert client.get('/triage').status_code == 200
    r = client.get('/beds')
    assert r.status_code == 200
    assert b'Accident &amp; Emergency' in r.content
