"""
Facility registry, capacity and operational status endpoints.
"""
from rest_framework.test import APITestCase

from core.models import County, Hospital, Department, User, AuditEvent


class HospitalAPITests(APITestCase):
    def setUp(self) -> None:
        self.nairobi = County.objects.create(name='Nairobi', code='047')
        self.kisumu = County.objects.create(name='Kisumu', code='042')
        self.knh = Hospital.objects.create(name='Kenyatta National Hospital', code='KNH-001', county=self.nairobi,
                                           total_beds=100, available_beds=40, icu_beds=10, available_icu_beds=3)
        self.jootrh = Hospital.objects.create(name='JOOTRH', code='JOOTRH-001', county=self.kisumu,
                                              total_beds=60, available_beds=30)
        Department.objects.create(hospital=self.knh, name='ICU', type='ICU', total_beds=10, available_beds=3)

        self.super_admin = self._user('super@ems.test', 'SUPER_ADMIN')
        self.county_admin = self._user('county@ems.test', 'COUNTY_ADMIN', county=self.nairobi)
        self.hospital_admin = self._user('admin@knh.test', 'HOSPITAL_ADMIN', hospital=self.knh)
        self.nurse = self._user('nurse@knh.test', 'NURSE', hospital=self.knh)
        self.dispatcher = self._user('dispatch@knh.test', 'DISPATCHER', hospital=self.knh)

    def _user(self, email, role, hospital=None, county=None):
        return User.objects.create_user(username=email, email=email, password='Str0ng!Passw0rd', role=role,
                                        hospital=hospital, county=county or (hospital.county if hospital else None))

    def test_list_is_scoped(self):
        self.client.force_authenticate(self.super_admin)
        resp = self.client.get('/api/hospitals')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['pagination']['total'], 2)

        self.client.force_authenticate(self.county_admin)
        resp = self.client.get('/api/hospitals')
        self.assertEqual([h['code'] for h in resp.data['data']], ['KNH-001'])

    def test_hospital_bound_user_without_permission_sees_own_facility(self):
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.get('/api/hospitals')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['pagination']['total'], 1)

    def test_create_restricted_to_super_and_county(self):
        payload = {'name': 'Mbagathi', 'code': 'MBG-001', 'countyId': self.nairobi.id, 'totalBeds': 50,
                   'availableBeds': 20}
        self.client.force_authenticate(self.hospital_admin)
        self.assertEqual(self.client.post('/api/hospitals', payload, format='json').status_code, 403)

        self.client.force_authenticate(self.county_admin)
        resp = self.client.post('/api/hospitals', payload, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data['data']['occupancyRate'], 60.0)

        other = dict(payload, code='KSM-002', countyId=self.kisumu.id)
        self.assertEqual(self.client.post('/api/hospitals', other, format='json').status_code, 403)

        dup = self.client.post('/api/hospitals', payload, format='json')
        self.assertEqual(dup.status_code, 409)

    def test_available_beds_cannot_exceed_total(self):
        self.client.force_authenticate(self.super_admin)
        resp = self.client.post('/api/hospitals', {
            'name': 'X', 'code': 'X-1', 'countyId': self.nairobi.id, 'totalBeds': 5, 'availableBeds': 9,
        }, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_detail_includes_capacity_status_and_departments(self):
        self.client.force_authenticate(self.nurse)
        resp = self.client.get(f'/api/hospitals/{self.knh.id}')
        self.assertEqual(resp.status_code, 200)
        data = resp.data['data']
        self.assertEqual(data['capacity']['availableIcuBeds'], 3)
        self.assertEqual(data['status']['operationalStatus'], 'OPERATIONAL')
        self.assertEqual(data['departments'][0]['type'], 'ICU')
        self.assertEqual(self.client.get(f'/api/hospitals/{self.jootrh.id}').status_code, 403)

    def test_only_super_moves_hospital_between_counties(self):
        self.client.force_authenticate(self.county_admin)
        resp = self.client.patch(f'/api/hospitals/{self.knh.id}', {'countyId': self.kisumu.id}, format='json')
        self.assertEqual(resp.status_code, 403)
        resp = self.client.patch(f'/api/hospitals/{self.knh.id}', {'phone': '0202726300'}, format='json')
        self.assertEqual(resp.status_code, 200)

    def test_nurse_updates_capacity_of_own_hospital(self):
        self.client.force_authenticate(self.nurse)
        resp = self.client.patch(f'/api/hospitals/{self.knh.id}/capacity',
                                 {'availableBeds': 25, 'availableIcuBeds': 1}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['data']['occupancyRate'], 75.0)
        self.knh.refresh_from_db()
        self.assertIsNotNone(self.knh.last_capacity_update)
        row = AuditEvent.objects.get(entity_type='HospitalCapacity')
        self.assertEqual(row.changes['before']['availableBeds'], 40)
        self.assertEqual(row.changes['after']['availableBeds'], 25)

    def test_capacity_validation(self):
        self.client.force_authenticate(self.nurse)
        url = f'/api/hospitals/{self.knh.id}/capacity'
        self.assertEqual(self.client.patch(url, {'availableIcuBeds': 11}, format='json').status_code, 400)
        self.assertEqual(self.client.patch(url, {}, format='json').status_code, 400)
        self.assertEqual(self.client.patch(url, {'availableBeds': 1, 'occupancyRate': 120}, format='json').status_code, 400)

    def test_dispatcher_cannot_update_capacity(self):
        self.client.force_authenticate(self.dispatcher)
        resp = self.client.patch(f'/api/hospitals/{self.knh.id}/capacity', {'availableBeds': 1}, format='json')
        self.assertEqual(resp.status_code, 403)

    def test_closing_a_hospital_stops_admissions(self):
        self.client.force_authenticate(self.hospital_admin)
        resp = self.client.patch(f'/api/hospitals/{self.knh.id}/status',
                                 {'operationalStatus': 'CLOSED', 'powerStatus': 'GENERATOR'}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.data['data']['acceptingPatients'])
        self.assertEqual(resp.data['data']['powerStatus'], 'GENERATOR')

        self.client.force_authenticate(self.nurse)
        resp = self.client.patch(f'/api/hospitals/{self.knh.id}/status', {'operationalStatus': 'OPERATIONAL'},
                                 format='json')
        self.assertEqual(resp.status_code, 403)

    def test_department_list_filters(self):
        self.client.force_authenticate(self.nurse)
        resp = self.client.get('/api/departments', {'type': 'ICU'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data['data']), 1)
        self.assertEqual(resp.data['data'][0]['occupancyRate'], 70.0)
