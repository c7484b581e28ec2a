from datetime import timedelta

import pytest
from django.utils import timezone

from core.models import Resource, SystemAlert, AuditEvent
from core.services import resources as svc

pytestmark = pytest.mark.django_db


def stock(hospital, name, rtype='SUPPLY', total=100, available=50, critical=5, reorder=10, **extra):
    return Resource.objects.create(name=name, type=rtype, category='Consumables', unit='units', hospital=hospital,
                                   total_capacity=total, available_capacity=available, critical_level=critical,
                                   reorder_level=reorder, **extra)


def test_create_resource_defaults_available_capacity(client_for, hospital_admin):
    r = client_for(hospital_admin).post('/api/resources', {
        'name': 'Ventilators', 'type': 'VENTILATOR', 'category': 'Equipment', 'unit': 'units',
        'totalCapacity': 10, 'inUseCapacity': 4, 'reservedCapacity': 1,
    }, format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['availableCapacity'] == 5
    assert data['hospitalId'] == hospital_admin.hospital_id
    assert data['utilizationRate'] == 50.0


def test_capacity_split_cannot_exceed_total(client_for, hospital_admin):
    r = client_for(hospital_admin).post('/api/resources', {
        'name': 'Beds', 'type': 'BED', 'category': 'Beds', 'unit': 'beds',
        'totalCapacity': 10, 'availableCapacity': 6, 'inUseCapacity': 6,
    }, format='json')
    assert r.status_code == 400


def test_nurse_cannot_write_resources(client_for, nurse):
    r = client_for(nurse).post('/api/resources', {
        'name': 'Beds', 'type': 'BED', 'category': 'Beds', 'unit': 'beds', 'totalCapacity': 10,
    }, format='json')
    assert r.status_code == 403


def test_restock_stamps_last_restock(client_for, hospital_admin, hospital):
    res = stock(hospital, 'Gloves', available=10)
    r = client_for(hospital_admin).patch(f'/api/resources/{res.id}', {'availableCapacity': 90}, format='json')
    assert r.status_code == 200
    assert r.data['data']['lastRestock'] is not None


def test_bed_availability_groups_by_department(client_for, nurse, bed_resource, hospital):
    stock(hospital, 'Ward beds', rtype='BED', total=30, available=10)
    stock(hospital, 'Gloves')
    r = client_for(nurse).get('/api/resources/beds/availability')
    assert r.status_code == 200
    overall = r.data['data']['overall']
    assert overall['totalBeds'] == 50
    assert overall['availableBeds'] == 15
    assert overall['utilizationRate'] == 70.0
    assert overall['departmentCount'] == 1
    names = {d['departmentName'] for d in r.data['data']['departments']}
    assert names == {'Accident & Emergency', 'General'}


def test_bed_availability_update(client_for, hospital_admin, bed_resource):
    c = client_for(hospital_admin)
    r = c.post('/api/resources/beds/availability',
               {'resourceId': bed_resource.id, 'availableCapacity': 3, 'inUseCapacity': 17}, format='json')
    assert r.status_code == 200
    assert r.data['data']['availableCapacity'] == 3
    row = AuditEvent.objects.get(entity_type='BedAvailability')
    assert row.changes['before']['availableCapacity'] == 5
    assert row.changes['after']['inUseCapacity'] == 17

    bad = c.post('/api/resources/beds/availability',
                 {'resourceId': bed_resource.id, 'availableCapacity': 10}, format='json')
    assert bad.status_code == 400
    empty = c.post('/api/resources/beds/availability', {'resourceId': bed_resource.id}, format='json')
    assert empty.status_code == 400


def test_bed_update_rejects_non_bed_resources(client_for, hospital_admin, hospital):
    gloves = stock(hospital, 'Gloves')
    r = client_for(hospital_admin).post('/api/resources/beds/availability',
                                        {'resourceId': gloves.id, 'availableCapacity': 1}, format='json')
    assert r.status_code == 400


def test_classify_shortage_rules(hospital):
    now = timezone.now()
    assert svc.classify_shortage(stock(hospital, 'A', available=5), now)['type'] == 'STOCK_CRITICAL'
    assert svc.classify_shortage(stock(hospital, 'B', available=8), now)['severity'] == 'HIGH'
    assert svc.classify_shortage(stock(hospital, 'C', is_operational=False), now)['type'] == 'EQUIPMENT_DOWN'
    overdue = stock(hospital, 'D', next_maintenance=now - timedelta(days=1))
    assert svc.classify_shortage(overdue, now)['type'] == 'MAINTENANCE_OVERDUE'
    expiring = stock(hospital, 'E', expiry_date=now + timedelta(days=3))
    assert svc.classify_shortage(expiring, now)['type'] == 'EXPIRING_SOON'
    assert svc.classify_shortage(stock(hospital, 'F', expiry_date=now + timedelta(days=20)), now) is None


def test_critical_shortages_sorted_and_filtered(client_for, hospital_admin, hospital, other_hospital):
    stock(hospital, 'Oxygen', available=8)
    stock(hospital, 'Blood', available=2)
    stock(hospital, 'Plenty', available=90)
    stock(other_hospital, 'Elsewhere', available=0)
    r = client_for(hospital_admin).get('/api/resources/critical-shortages')
    assert r.status_code == 200
    body = r.data['data']
    assert [s['resourceName'] for s in body['shortages']] == ['Blood', 'Oxygen']
    assert body['stats'] == {'total': 2, 'critical': 1, 'high': 1, 'medium': 0,
                             'byType': {'STOCK_CRITICAL': 1, 'STOCK_LOW': 1}}
    r = client_for(hospital_admin).get('/api/resources/critical-shortages', {'severity': 'high'})
    assert [s['resourceName'] for s in r.data['data']['shortages']] == ['Oxygen']


def test_acknowledging_a_shortage_raises_an_alert(client_for, hospital_admin, hospital):
    blood = stock(hospital, 'Blood', available=2)
    r = client_for(hospital_admin).post('/api/resources/critical-shortages',
                                        {'resourceId': blood.id, 'note': 'Requested from KNBTS'}, format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['status'] == 'ACKNOWLEDGED'
    assert data['severity'] == 'CRITICAL'
    assert data['acknowledgedBy'] == hospital_admin.id
    assert 'Requested from KNBTS' in data['message']
    assert data['alertNumber'].startswith(f'ALT-{timezone.now().year}-')


def test_alert_lifecycle(client_for, hospital_admin, hospital, other_hospital):
    from core.services.alerts import raise_alert
    mine = raise_alert(alert_type='STOCK_LOW', severity='HIGH', title='Low oxygen', message='x', hospital=hospital)
    theirs = raise_alert(alert_type='STOCK_LOW', severity='LOW', title='Other', message='y', hospital=other_hospital)
    c = client_for(hospital_admin)

    r = c.get('/api/alerts', {'status': 'ACTIVE'})
    assert [a['id'] for a in r.data['data']] == [mine.id]
    assert c.post(f'/api/alerts/{theirs.id}/acknowledge').status_code == 403

    r = c.post(f'/api/alerts/{mine.id}/acknowledge')
    assert r.status_code == 200
    assert r.data['data']['status'] == 'ACKNOWLEDGED'
    assert c.post(f'/api/alerts/{mine.id}/acknowledge').status_code == 400

    r = c.post(f'/api/alerts/{mine.id}/resolve')
    assert r.status_code == 200
    assert r.data['data']['resolvedAt'] is not None
    assert SystemAlert.objects.get(pk=mine.pk).status == 'RESOLVED'
    assert AuditEvent.objects.filter(entity_type='SystemAlert', entity_id=str(mine.id)).count() == 2
