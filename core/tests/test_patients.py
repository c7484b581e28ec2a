from decimal import Decimal

import pytest
import requests
from django.utils import timezone

from core.models import AuditEvent, Patient, ShaClaim

pytestmark = pytest.mark.django_db


def test_register_patient_at_own_facility(client_for, nurse, hospital):
    r = client_for(nurse).post('/api/patients', {
        'firstName': 'Achieng', 'lastName': 'Odhiambo', 'gender': 'FEMALE', 'phone': '0722000111',
        'nationalId': '30111222', 'allergies': ['Penicillin'], 'nextOfKinName': '<b>Baraka</b>',
    }, format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['patientNumber'] == 'PAT-000001'
    assert data['currentHospitalId'] == hospital.id
    assert data['countyId'] == hospital.county_id
    assert data['nextOfKin']['name'] == 'Baraka'
    assert AuditEvent.objects.filter(action='CREATE', entity_type='Patient', entity_id=str(data['id'])).exists()


def test_duplicate_national_id_is_rejected(client_for, nurse, patient):
    r = client_for(nurse).post('/api/patients', {
        'firstName': 'A', 'lastName': 'B', 'nationalId': patient.national_id,
    }, format='json')
    assert r.status_code == 400
    assert 'nationalId' in r.data['error']['message']


def test_blank_identifiers_are_stored_as_null(client_for, nurse):
    c = client_for(nurse)
    for name in ('One', 'Two'):
        r = c.post('/api/patients', {'firstName': name, 'lastName': 'Mwangi', 'nationalId': '', 'shaNumber': ''},
                   format='json')
        assert r.status_code == 201
    assert Patient.objects.filter(national_id__isnull=True).count() == 2


def test_list_and_detail_are_scoped(client_for, nurse, super_admin, patient, other_hospital):
    stranger = Patient.objects.create(patient_number='PAT-000002', first_name='Hamisi', last_name='Juma',
                                      current_hospital=other_hospital)
    r = client_for(nurse).get('/api/patients')
    assert [p['id'] for p in r.data['data']] == [patient.id]
    assert client_for(super_admin).get('/api/patients').data['pagination']['total'] == 2
    assert client_for(nurse).get(f'/api/patients/{stranger.id}').status_code == 403
    assert client_for(nurse).get('/api/patients/424242').status_code == 404


def test_search(client_for, nurse, patient):
    c = client_for(nurse)
    assert [p['id'] for p in c.get('/api/patients/search', {'q': 'wanj'}).data['data']] == [patient.id]
    assert [p['id'] for p in c.get('/api/patients/search', {'q': 'SHA1234'}).data['data']] == [patient.id]
    assert c.get('/api/patients/search', {'q': '  '}).data['data'] == []


def test_discharge_is_audited_as_discharge(client_for, nurse, patient):
    r = client_for(nurse).patch(f'/api/patients/{patient.id}', {'currentStatus': 'DISCHARGED'}, format='json')
    assert r.status_code == 200
    row = AuditEvent.objects.get(action='DISCHARGE', entity_type='Patient')
    assert row.changes == {'currentStatus': {'from': 'ACTIVE', 'to': 'DISCHARGED'}}


def test_delete_blocked_by_clinical_records(client_for, hospital_admin, patient, hospital):
    ShaClaim.objects.create(claim_number='CLM-2026-000001', patient=patient, hospital=hospital,
                            service_date=timezone.now().date(), service_type='Consultation',
                            diagnosis='Malaria', total_amount=Decimal('1000'))
    r = client_for(hospital_admin).delete(f'/api/patients/{patient.id}')
    assert r.status_code == 409
    assert r.data['error']['code'] == 'conflict'


def test_medical_history_timeline(client_for, doctor, patient):
    c = client_for(doctor)
    r = c.post(f'/api/patients/{patient.id}/medical-history', {
        'recordType': 'PRESCRIPTION', 'title': 'Antimalarials', 'diagnosis': 'Malaria',
        'prescriptions': [{'drug': 'Artemether-lumefantrine', 'dose': '4 tabs BD'}],
    }, format='json')
    assert r.status_code == 201
    assert r.data['data']['recordedBy'] == doctor.id
    assert AuditEvent.objects.filter(action='PRESCRIBE', entity_type='MedicalRecord').exists()

    history = c.get(f'/api/patients/{patient.id}/medical-history').data['data']
    assert history['patient']['id'] == patient.id
    assert [row['kind'] for row in history['timeline']] == ['RECORD']
    assert history['records'][0]['prescriptions'][0]['drug'] == 'Artemether-lumefantrine'

    export = c.get(f'/api/patients/{patient.id}/history/export')
    assert export.status_code == 200
    assert export['Content-Disposition'] == 'attachment; filename="PAT-000001-history.csv"'
    assert 'Antimalarials' in export.content.decode()


def test_export_csv(client_for, nurse, patient):
    r = client_for(nurse).get('/api/patients/export')
    assert r.status_code == 200
    lines = r.content.decode().splitlines()
    assert lines[0].startswith('Patient Number,First Name')
    assert lines[1].startswith('PAT-000001,Wanjiru,Kamau')
    assert AuditEvent.objects.filter(action='READ', entity_type='Patient', description='Exported 1 patients').exists()


# ---------------------------------------------------------------------------
# SHA verification
# ---------------------------------------------------------------------------
def test_verify_sha_from_local_registry(client_for, hospital_admin, patient, hospital):
    ShaClaim.objects.create(claim_number='CLM-2026-000001', patient=patient, hospital=hospital,
                            service_date=timezone.now().date(), service_type='Admission', diagnosis='Pneumonia',
                            total_amount=Decimal('5000'), sha_approved_amount=Decimal('4500'), status='PAID')
    r = client_for(hospital_admin).post('/api/patients/verify-sha', {'shaNumber': patient.sha_number},
                                        format='json')
    assert r.status_code == 200
    data = r.data['data']
    assert data['verification']['verified'] is True
    assert data['verification']['source'] == 'LOCAL_REGISTRY'
    assert data['eligibility'] == {'eligible': True, 'reason': None, 'restrictions': []}
    assert data['financialSummary']['totalPaid'] == 4500.0
    assert data['financialSummary']['utilizationRate'] == 0.9
    assert data['financialSummary']['remainingLimit'] == 495500.0
    assert data['metadata']['searchMethod'] == 'shaNumber'
    assert data['certificate']['number'].startswith('SHA-VC-')
    assert AuditEvent.objects.filter(entity_type='ShaVerification', entity_id=str(patient.id)).exists()


def test_verify_sha_falls_back_to_other_identifiers(client_for, hospital_admin, patient):
    r = client_for(hospital_admin).post('/api/patients/verify-sha',
                                        {'shaNumber': 'SHA000', 'nationalId': patient.national_id}, format='json')
    assert r.status_code == 200
    assert r.data['data']['metadata']['searchMethod'] == 'nationalId'


def test_verify_sha_lapsed_contributions(client_for, hospital_admin, patient):
    Patient.objects.filter(pk=patient.pk).update(contribution_status='IN_ARREARS')
    r = client_for(hospital_admin).post('/api/patients/verify-sha', {'patientNumber': 'PAT-000001'}, format='json')
    elig = r.data['data']['eligibility']
    assert elig['eligible'] is False
    assert elig['reason'] == 'SHA contributions are not up to date'


def test_verify_sha_errors(client_for, hospital_admin, dispatcher):
    c = client_for(hospital_admin)
    r = c.post('/api/patients/verify-sha', {}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'MISSING_IDENTIFIER'
    r = c.post('/api/patients/verify-sha', {'shaNumber': 'SHA-NOPE'}, format='json')
    assert r.status_code == 404
    assert r.data['error']['code'] == 'MEMBER_NOT_FOUND'
    assert client_for(dispatcher).post('/api/patients/verify-sha', {'shaNumber': 'x'}, format='json').status_code == 403


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self.payload


def test_verify_sha_uses_remote_registry_when_configured(settings, monkeypatch, client_for, hospital_admin, patient):
    settings.SHA_API_URL = 'https://sha.example.test/api/'
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append(url)
        if url.endswith('members/verify'):
            return FakeResponse({'verified': True, 'status': 'REGISTERED', 'message': 'Active member'})
        return FakeResponse({'annualLimit': 1000000, 'scheme': 'SHIF'})

    monkeypatch.setattr('core.services.sha.requests.post', fake_post)
    data = client_for(hospital_admin).post('/api/patients/verify-sha', {'shaNumber': patient.sha_number},
                                           format='json').data['data']
    assert calls == ['https://sha.example.test/api/members/verify', 'https://sha.example.test/api/members/coverage']
    assert data['verification']['source'] == 'SHA_API'
    assert data['coverage']['annualLimit'] == 1000000
    assert data['eligibility']['eligible'] is True


def test_verify_sha_reports_unreachable_registry(settings, monkeypatch, client_for, hospital_admin, patient):
    settings.SHA_API_URL = 'https://sha.example.test'

    def down(*args, **kwargs):
        raise requests.ConnectionError('connection refused')

    monkeypatch.setattr('core.services.sha.requests.post', down)
    r = client_for(hospital_admin).post('/api/patients/verify-sha', {'shaNumber': patient.sha_number}, format='json')
    assert r.status_code == 200
    data = r.data['data']
    assert data['verification']['verified'] is False
    assert data['verification']['message'].startswith('SHA service unavailable')
    assert data['eligibility']['reason'] == 'SHA membership could not be verified'
