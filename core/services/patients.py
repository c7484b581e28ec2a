"""Patient registry, medical history and SHA verification."""
import csv
import io
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone
from rest_framework.exceptions import ValidationError, NotFound, PermissionDenied

from core.exceptions import Conflict, CodedError
from core.models import Patient, MedicalRecord, ShaClaim
from core.permissions import is_super, COUNTY_ROLES
from core.services import sha
from core.services.audit import log_action, diff
from core.services.common import next_number, iso

PAID_CLAIM_STATUSES = ('PAID',)
PENDING_CLAIM_STATUSES = ('SUBMITTED', 'IN_REVIEW', 'RESUBMITTED')
UNIQUE_IDS = (('national_id', 'nationalId'), ('sha_number', 'shaNumber'))

EXPORT_HEADERS = [
    'Patient Number', 'First Name', 'Last Name', 'Gender', 'Date of Birth', 'Phone',
    'National ID', 'SHA Number', 'SHA Status', 'Current Status', 'Hospital ID', 'Registered',
]


def format_patient(p: Patient, detail: bool = False) -> Dict[str, Any]:
    data = {
        'id': p.id,
        'patientNumber': p.patient_number,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'otherNames': p.other_names,
        'fullName': p.full_name,
        'dateOfBirth': iso(p.date_of_birth),
        'gender': p.gender,
        'phone': p.phone,
        'nationalId': p.national_id,
        'shaNumber': p.sha_number,
        'shaStatus': p.sha_status,
        'contributionStatus': p.contribution_status,
        'currentStatus': p.current_status,
        'currentHospitalId': p.current_hospital_id,
        'countyId': p.county_id,
        'createdAt': iso(p.created_at),
    }
    if detail:
        data.update({
            'email': p.email,
            'address': p.address,
            'bloodType': p.blood_type,
            'allergies': p.allergies,
            'chronicConditions': p.chronic_conditions,
            'shaRegistrationDate': iso(p.sha_registration_date),
            'nextOfKin': {
                'name': p.next_of_kin_name,
                'phone': p.next_of_kin_phone,
                'relationship': p.next_of_kin_relationship,
            },
        })
    return data


def scoped_patients(user):
    """Patients currently at, or ever triaged at, the caller's facility."""
    qs = Patient.objects.all()
    if is_super(user):
        return qs
    if user.role in COUNTY_ROLES or not user.hospital_id:
        if not user.county_id:
            return qs.none()
        return qs.filter(Q(county_id=user.county_id) | Q(current_hospital__county_id=user.county_id)).distinct()
    return qs.filter(Q(current_hospital_id=user.hospital_id) | Q(triage_entries__hospital_id=user.hospital_id)
                     | Q(created_by__hospital_id=user.hospital_id)).distinct()


def get_patient(user, patient_id) -> Patient:
    try:
        p = Patient.objects.get(pk=patient_id)
    except (Patient.DoesNotExist, ValueError):
        raise NotFound('Patient not found')
    if not scoped_patients(user).filter(pk=p.pk).exists():
        raise PermissionDenied('You do not have access to this patient')
    return p


def search_filter(qs, q: str):
    q = (q or '').strip()
    if not q:
        return qs
    return qs.filter(
        Q(first_name__icontains=q) | Q(last_name__icontains=q) | Q(other_names__icontains=q)
        | Q(patient_number__icontains=q) | Q(national_id__icontains=q)
        | Q(sha_number__icontains=q) | Q(phone__icontains=q)
    )


def list_patients(user, params):
    qs = search_filter(scoped_patients(user), params.get('q') or params.get('search'))
    if params.get('status'):
        qs = qs.filter(current_status=params['status'])
    if params.get('shaStatus'):
        qs = qs.filter(sha_status=params['shaStatus'])
    if params.get('hospitalId'):
        qs = qs.filter(current_hospital_id=params['hospitalId'])
    return qs.order_by('-created_at')


def _check_unique(data: Dict[str, Any], exclude_id: Optional[int] = None) -> None:
    for field, label in UNIQUE_IDS:
        value = data.get(field)
        if not value:
            continue
        qs = Patient.objects.filter(**{field: value})
        if exclude_id:
            qs = qs.exclude(pk=exclude_id)
        if qs.exists():
            raise ValidationError({label: f'A patient with this {label} already exists'})


def _blank_ids(data: Dict[str, Any]) -> None:
    for field, _ in UNIQUE_IDS:
        if data.get(field) == '':
            data[field] = None


@transaction.atomic
def create_patient(data: Dict[str, Any], *, user, request=None) -> Patient:
    _blank_ids(data)
    _check_unique(data)
    data.setdefault('current_hospital_id', user.hospital_id)
    if not data.get('county_id') and user.hospital_id:
        data['county_id'] = user.hospital.county_id
    p = Patient.objects.create(
        patient_number=next_number(Patient, 'patient_number', 'PAT-'),
        created_by=user,
        **data,
    )
    log_action(user=user, action='CREATE', entity_type='Patient', entity_id=p.id,
               description=f'Registered patient {p.full_name} ({p.patient_number})', request=request)
    return p


@transaction.atomic
def update_patient(p: Patient, data: Dict[str, Any], *, user, request=None) -> Patient:
    _blank_ids(data)
    _check_unique(data, exclude_id=p.id)
    before = format_patient(p, detail=True)
    for k, v in data.items():
        setattr(p, k, v)
    p.save()
    action = 'DISCHARGE' if data.get('current_status') == 'DISCHARGED' and before['currentStatus'] != 'DISCHARGED' else 'UPDATE'
    log_action(user=user, action=action, entity_type='Patient', entity_id=p.id,
               description=f'Updated patient {p.patient_number}',
               changes=diff(before, format_patient(p, detail=True)), request=request)
    return p


def delete_patient(p: Patient, *, user, request=None) -> None:
    if p.triage_entries.exists() or p.transfers.exists() or p.sha_claims.exists() or p.medical_records.exists():
        raise Conflict('Patient has clinical records and cannot be deleted')
    pid, number = p.id, p.patient_number
    p.delete()
    log_action(user=user, action='DELETE', entity_type='Patient', entity_id=pid,
               description=f'Deleted patient {number}', request=request)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------
def format_record(r: MedicalRecord) -> Dict[str, Any]:
    return {
        'id': r.id,
        'recordType': r.record_type,
        'title': r.title,
        'diagnosis': r.diagnosis,
        'icd10Codes': r.icd10_codes,
        'details': r.details,
        'prescriptions': r.prescriptions,
        'hospitalId': r.hospital_id,
        'recordedBy': r.recorded_by_id,
        'recordedAt': iso(r.recorded_at),
    }


def medical_history(p: Patient) -> Dict[str, Any]:
    timeline = []
    for r in p.medical_records.all():
        timeline.append({'date': iso(r.recorded_at), 'kind': 'RECORD', 'title': r.title,
                         'detail': r.diagnosis or r.details, 'hospitalId': r.hospital_id, 'refId': r.id})
    for t in p.triage_entries.all():
        timeline.append({'date': iso(t.arrival_time), 'kind': 'TRIAGE',
                         'title': f'{t.triage_level} triage: {t.chief_complaint}',
                         'detail': t.diagnosis or t.disposition, 'hospitalId': t.hospital_id, 'refId': t.id})
    for tr in p.transfers.all():
        timeline.append({'date': iso(tr.requested_at), 'kind': 'TRANSFER',
                         'title': f'Transfer {tr.transfer_number} ({tr.status})',
                         'detail': tr.reason, 'hospitalId': tr.origin_hospital_id, 'refId': tr.id})
    for c in p.sha_claims.all():
        timeline.append({'date': iso(c.created_at), 'kind': 'CLAIM',
                         'title': f'Claim {c.claim_number} ({c.status})',
                         'detail': c.diagnosis, 'hospitalId': c.hospital_id, 'refId': c.id})
    timeline.sort(key=lambda x: x['date'] or '', reverse=True)
    return {
        'patient': format_patient(p, detail=True),
        'records': [format_record(r) for r in p.medical_records.all()],
        'timeline': timeline,
    }


def add_medical_record(p: Patient, data: Dict[str, Any], *, user, request=None) -> MedicalRecord:
    record = MedicalRecord.objects.create(patient=p, hospital_id=user.hospital_id, recorded_by=user, **data)
    action = 'PRESCRIBE' if record.record_type == 'PRESCRIPTION' else 'CREATE'
    log_action(user=user, action=action, entity_type='MedicalRecord', entity_id=record.id,
               description=f'{record.record_type.title()} recorded for {p.patient_number}',
               changes={'patientId': p.id, 'title': record.title}, request=request)
    return record


def history_csv(p: Patient) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(['Date', 'Type', 'Title', 'Detail', 'Hospital ID'])
    for row in medical_history(p)['timeline']:
        writer.writerow([row['date'], row['kind'], row['title'], row['detail'] or '', row['hospitalId'] or ''])
    return buf.getvalue()


def patients_csv(qs) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPORT_HEADERS)
    for p in qs.iterator():
        writer.writerow([
            p.patient_number, p.first_name, p.last_name, p.gender, iso(p.date_of_birth) or '',
            p.phone, p.national_id or '', p.sha_number or '', p.sha_status, p.current_status,
            p.current_hospital_id or '', iso(p.created_at),
        ])
    return buf.getvalue()


# ---------------------------------------------------------------------------
# SHA verification
# ---------------------------------------------------------------------------
LOOKUPS = (
    ('shaNumber', 'sha_number'),
    ('nationalId', 'national_id'),
    ('patientNumber', 'patient_number'),
    ('phone', 'phone'),
)


def find_member(identifiers: Dict[str, str]) -> tuple[Patient, str]:
    given = [(key, field, (identifiers.get(key) or '').strip()) for key, field in LOOKUPS]
    given = [g for g in given if g[2]]
    if not given:
        raise CodedError('Provide shaNumber, nationalId, patientNumber or phone', 'MISSING_IDENTIFIER')
    for key, field, value in given:
        p = Patient.objects.filter(**{field: value}).first()
        if p:
            return p, key
    raise CodedError('No patient matches the supplied identifier', 'MEMBER_NOT_FOUND', status_code=404)


def financial_summary(p: Patient, limit: int) -> Dict[str, Any]:
    claims = p.sha_claims.all()
    zero = Decimal('0')
    paid = claims.filter(status__in=PAID_CLAIM_STATUSES)
    pending = claims.filter(status__in=PENDING_CLAIM_STATUSES)
    paid_total = paid.aggregate(s=Sum('sha_approved_amount'))['s'] or zero
    pending_total = pending.aggregate(s=Sum('total_amount'))['s'] or zero
    outstanding = claims.exclude(status='REJECTED').aggregate(s=Sum('outstanding_balance'))['s'] or zero
    billed = claims.aggregate(s=Sum('total_amount'))['s'] or zero
    return {
        'totalClaims': claims.count(),
        'paidClaims': paid.count(),
        'pendingClaims': pending.count(),
        'totalBilled': float(billed),
        'totalPaid': float(paid_total),
        'pendingAmount': float(pending_total),
        'outstandingBalance': float(outstanding),
        'utilizationRate': round(float(paid_total) / limit * 100, 2) if limit else 0.0,
        'remainingLimit': float(max(Decimal(limit) - paid_total, zero)),
    }


def verify_sha(identifiers: Dict[str, str], *, user, request=None, now=None) -> Dict[str, Any]:
    now = now or timezone.now()
    p, method = find_member(identifiers)
    try:
        verification = sha.verify_member(p)
        cover = sha.coverage(p)
    except sha.ShaServiceError as e:
        verification = {'verified': False, 'memberStatus': None, 'message': f'SHA service unavailable: {e}',
                        'verifiedAt': now.isoformat(), 'source': 'SHA_API'}
        cover = {'annualLimit': sha.annual_limit(), 'benefits': sha.BENEFITS, 'scheme': 'SHIF'}
    elig = sha.eligibility(p, verification)
    recent = [
        {'id': c.id, 'claimNumber': c.claim_number, 'status': c.status, 'serviceDate': iso(c.service_date),
         'totalAmount': float(c.total_amount), 'approvedAmount': float(c.sha_approved_amount)}
        for c in p.sha_claims.order_by('-created_at')[:5]
    ]
    result = {
        'patient': format_patient(p),
        'verification': verification,
        'coverage': cover,
        'eligibility': elig,
        'financialSummary': financial_summary(p, int(cover['annualLimit'])),
        'recentClaims': recent,
        'certificate': {
            'number': f'SHA-VC-{int(now.timestamp() * 1000)}',
            'issuedAt': now.isoformat(),
            'validUntil': (now + timedelta(hours=24)).isoformat(),
            'eligible': elig['eligible'],
        },
        'metadata': {'searchMethod': method, 'verifiedBy': user.id, 'timestamp': now.isoformat()},
    }
    log_action(user=user, action='READ', entity_type='ShaVerification', entity_id=p.id,
               description=f'SHA verification for {p.patient_number}: '
                           f'{"eligible" if elig["eligible"] else "not eligible"}',
               changes={'searchMethod': method, 'eligible': elig['eligible']}, request=request)
    return result
