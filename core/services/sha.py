"""
Social Health Authority (SHA) member lookups.

When ``SHA_API_URL`` is configured the member registry is queried over
HTTP; otherwise the answer is derived from the patient's locally recorded
registration so that facilities without connectivity keep working.
"""
import logging
from typing import Any, Dict, Optional

import requests
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

BENEFITS = {
    'OUTPATIENT': {'covered': True, 'limit': 50000, 'copay': 0},
    'INPATIENT': {'covered': True, 'limit': 300000, 'copay': 0},
    'EMERGENCY': {'covered': True, 'limit': 100000, 'copay': 0},
    'MATERNITY': {'covered': True, 'limit': 100000, 'copay': 0},
    'SURGERY': {'covered': True, 'limit': 200000, 'copay': 10},
    'CHRONIC_DISEASE': {'covered': True, 'limit': 120000, 'copay': 0},
    'DIALYSIS': {'covered': True, 'limit': 150000, 'copay': 0},
    'MENTAL_HEALTH': {'covered': True, 'limit': 60000, 'copay': 0},
}


class ShaServiceError(Exception):
    pass


def annual_limit() -> int:
    return int(getattr(settings, 'SHA_ANNUAL_LIMIT', 500000))


def _remote(path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    base = settings.SHA_API_URL.rstrip('/')
    headers = {'Accept': 'application/json'}
    if settings.SHA_API_KEY:
        headers['Authorization'] = f'Bearer {settings.SHA_API_KEY}'
    try:
        r = requests.post(f'{base}/{path}', json=payload, headers=headers, timeout=settings.SHA_API_TIMEOUT)
        r.raise_for_status()
        return r.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("SHA API call %s failed: %s", path, e)
        raise ShaServiceError(str(e)) from e


def verify_member(patient) -> Dict[str, Any]:
    """Return ``{'verified', 'memberStatus', 'message', 'verifiedAt', 'source'}``."""
    if settings.SHA_API_URL and patient.sha_number:
        data = _remote('members/verify', {'shaNumber': patient.sha_number, 'nationalId': patient.national_id})
        return {
            'verified': bool(data.get('verified')),
            'memberStatus': data.get('status') or data.get('memberStatus'),
            'message': data.get('message', ''),
            'verifiedAt': timezone.now().isoformat(),
            'source': 'SHA_API',
        }
    verified = bool(patient.sha_number) and patient.sha_status == 'REGISTERED'
    return {
        'verified': verified,
        'memberStatus': patient.sha_status,
        'message': 'Member record found' if verified else 'Member is not actively registered with SHA',
        'verifiedAt': timezone.now().isoformat(),
        'source': 'LOCAL_REGISTRY',
    }


def coverage(patient) -> Dict[str, Any]:
    if settings.SHA_API_URL and patient.sha_number:
        data = _remote('members/coverage', {'shaNumber': patient.sha_number})
        return {
            'annualLimit': data.get('annualLimit', annual_limit()),
            'benefits': data.get('benefits', BENEFITS),
            'scheme': data.get('scheme', 'SHIF'),
        }
    return {'annualLimit': annual_limit(), 'benefits': BENEFITS, 'scheme': 'SHIF'}


def eligibility(patient, verification: Dict[str, Any]) -> Dict[str, Any]:
    if patient.sha_status != 'REGISTERED':
        reason: Optional[str] = 'Patient is not registered with SHA'
    elif patient.contribution_status != 'UP_TO_DATE':
        reason = 'SHA contributions are not up to date'
    elif not verification.get('verified'):
        reason = 'SHA membership could not be verified'
    else:
        reason = None
    if reason is None:
        return {'eligible': True, 'reason': None, 'restrictions': []}
    return {'eligible': False, 'reason': reason, 'restrictions': ['INPATIENT_SERVICES', 'ELECTIVE_PROCEDURES']}
