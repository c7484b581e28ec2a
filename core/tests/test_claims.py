from decimal import Decimal

import pytest
from django.utils import timezone

from core.models import AuditEvent, Patient, ShaClaim

pytestmark = pytest.mark.django_db


def new_claim(client, patient, **extra):
    payload = {'patientId': patient.id, 'serviceDate': '2026-01-10', 'serviceType': 'Consultation',
               'diagnosis': 'Malaria', 'icd10Codes': ['B54'], 'totalAmount': '5000.00'}
    payload.update(extra)
    return client.post('/api/claims', payload, format='json')


def move(client, claim_id, status, **extra):
    return client.post(f'/api/claims/{claim_id}/transition', dict(status=status, **extra), format='json')


def test_create_draft_claim(client_for, hospital_admin, patient):
    r = new_claim(client_for(hospital_admin), patient)
    assert r.status_code == 201
    data = r.data['data']
    assert data['claimNumber'] == f'CLM-{timezone.now().year}-000001'
    assert data['status'] == 'DRAFT'
    assert data['hospitalId'] == hospital_admin.hospital_id
    assert data['outstandingBalance'] == '5000.00'
    assert AuditEvent.objects.filter(action='CREATE', entity_type='ShaClaim').exists()


def test_create_and_submit_in_one_call(client_for, hospital_admin, patient):
    r = new_claim(client_for(hospital_admin), patient, submit=True)
    assert r.data['data']['status'] == 'SUBMITTED'
    assert r.data['data']['submittedAt'] is not None
    assert AuditEvent.objects.filter(action='SUBMIT_CLAIM').exists()


def test_patient_without_sha_number_cannot_claim(client_for, hospital_admin, hospital):
    p = Patient.objects.create(patient_number='PAT-000009', first_name='Otieno', last_name='Ouma',
                               current_hospital=hospital)
    assert new_claim(client_for(hospital_admin), p).status_code == 400


def test_doctor_has_no_claims_access(client_for, doctor, patient):
    assert new_claim(client_for(doctor), patient).status_code == 403
    assert client_for(doctor).get('/api/claims').status_code == 403


def test_full_lifecycle_to_paid(client_for, hospital_admin, patient):
    c = client_for(hospital_admin)
    claim_id = new_claim(c, patient).data['data']['id']

    bad = move(c, claim_id, 'APPROVED', shaApprovedAmount='4500.00')
    assert bad.status_code == 400
    assert bad.data['error']['code'] == 'invalid_transition'

    assert move(c, claim_id, 'SUBMITTED').status_code == 200
    assert move(c, claim_id, 'IN_REVIEW').status_code == 200
    missing = move(c, claim_id, 'APPROVED')
    assert missing.status_code == 400
    assert missing.data['error']['code'] == 'validation_error'

    r = move(c, claim_id, 'APPROVED', shaApprovedAmount='4500.00')
    assert r.status_code == 200
    assert r.data['data']['shaApprovedAmount'] == '4500.00'
    assert r.data['data']['outstandingBalance'] == '500.00'

    again = move(c, claim_id, 'APPROVED', shaApprovedAmount='9000.00')
    assert again.status_code == 400
    assert again.data['error']['code'] == 'invalid_transition'
    assert ShaClaim.objects.get(pk=claim_id).sha_approved_amount == Decimal('4500.00')

    r = move(c, claim_id, 'PAID', patientPaidAmount='500.00')
    assert r.data['data']['status'] == 'PAID'
    assert r.data['data']['outstandingBalance'] == '0.00'
    assert r.data['data']['paidAt'] is not None
    assert AuditEvent.objects.filter(action='APPROVE', entity_type='ShaClaim', entity_id=str(claim_id)).exists()


def test_approved_amount_cannot_exceed_total(client_for, hospital_admin, patient):
    c = client_for(hospital_admin)
    claim_id = new_claim(c, patient, submit=True).data['data']['id']
    move(c, claim_id, 'IN_REVIEW')
    r = move(c, claim_id, 'APPROVED', shaApprovedAmount='6000.00')
    assert r.status_code == 400
    assert ShaClaim.objects.get(pk=claim_id).status == 'IN_REVIEW'


def test_reject_and_resubmit(client_for, hospital_admin, patient):
    c = client_for(hospital_admin)
    claim_id = new_claim(c, patient, submit=True).data['data']['id']
    move(c, claim_id, 'IN_REVIEW')
    assert move(c, claim_id, 'REJECTED').status_code == 400
    r = move(c, claim_id, 'REJECTED', rejectionReason='Missing discharge summary')
    assert r.data['data']['rejectionReason'] == 'Missing discharge summary'

    edit = c.patch(f'/api/claims/{claim_id}', {'diagnosis': 'Severe malaria'}, format='json')
    assert edit.status_code == 200
    r = move(c, claim_id, 'RESUBMITTED')
    assert r.data['data']['status'] == 'RESUBMITTED'
    assert r.data['data']['rejectionReason'] == ''


def test_submitted_claim_is_not_editable(client_for, hospital_admin, patient):
    c = client_for(hospital_admin)
    claim_id = new_claim(c, patient, submit=True).data['data']['id']
    r = c.patch(f'/api/claims/{claim_id}', {'totalAmount': '100.00'}, format='json')
    assert r.status_code == 400


def test_claims_are_scoped_to_facility(client_for, hospital_admin, make_user, other_hospital, patient):
    outsider = make_user('FINANCE_OFFICER', hospital=other_hospital)
    claim_id = new_claim(client_for(hospital_admin), patient).data['data']['id']
    assert client_for(outsider).get('/api/claims').data['pagination']['total'] == 0
    assert client_for(outsider).get(f'/api/claims/{claim_id}').status_code == 403
    r = client_for(hospital_admin).get('/api/claims', {'status': 'DRAFT'})
    assert r.data['pagination']['total'] == 1
