"""Telemedicine consultations and signed video room tokens."""
import logging
import secrets
from datetime import timedelta
from typing import Any, Dict

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core import signing
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError, NotFound, PermissionDenied

from core.exceptions import Conflict, InvalidTransition
from core.models import TelemedicineSession, Patient, Hospital
from core.permissions import is_super, COUNTY_ROLES, ensure_hospital_access
from core.realtime.broadcast import broadcast_update
from core.services.audit import log_action
from core.services.common import next_number, iso, get_or_404, check_transition

User = get_user_model()
logger = logging.getLogger(__name__)

TOKEN_SALT = 'core.telemedicine.room'
ICE_SERVERS = [
    {'urls': 'stun:stun.l.google.com:19302'},
    {'urls': 'stun:stun1.l.google.com:19302'},
]
OPEN_STATUSES = ('SCHEDULED', 'IN_PROGRESS')
TRANSITIONS = {
    'SCHEDULED': ('IN_PROGRESS', 'CANCELLED', 'NO_SHOW', 'TECHNICAL_FAILURE'),
    'IN_PROGRESS': ('COMPLETED', 'TECHNICAL_FAILURE'),
}


def slot_minutes() -> int:
    return int(getattr(settings, 'TELEMEDICINE_SLOT_MINUTES', 30))


def format_session(s: TelemedicineSession) -> Dict[str, Any]:
    return {
        'id': s.id,
        'sessionNumber': s.session_number,
        'patient': {'id': s.patient_id, 'name': s.patient.full_name, 'patientNumber': s.patient.patient_number},
        'specialist': {'id': s.specialist_id, 'name': s.specialist.full_name,
                       'specialization': s.specialist.specialization},
        'providerHospitalId': s.provider_hospital_id,
        'requestingHospitalId': s.requesting_hospital_id,
        'requestingFacilityType': s.requesting_facility_type,
        'consultationType': s.consultation_type,
        'chiefComplaint': s.chief_complaint,
        'clinicalSummary': s.clinical_summary,
        'scheduledTime': iso(s.scheduled_time),
        'status': s.status,
        'startTime': iso(s.start_time),
        'endTime': iso(s.end_time),
        'duration': s.duration,
        'diagnosis': s.diagnosis,
        'recommendations': s.recommendations,
        'prescriptions': s.prescriptions,
        'requiresInPersonVisit': s.requires_in_person_visit,
        'requiresReferral': s.requires_referral,
        'connectionQuality': s.connection_quality or None,
        'audioQuality': s.audio_quality,
        'videoQuality': s.video_quality,
    }


def scoped_sessions(user):
    qs = TelemedicineSession.objects.select_related('patient', 'specialist')
    if is_super(user):
        return qs
    if user.role in COUNTY_ROLES or not user.hospital_id:
        if not user.county_id:
            return qs.filter(specialist=user)
        return qs.filter(Q(provider_hospital__county_id=user.county_id)
                         | Q(requesting_hospital__county_id=user.county_id))
    return qs.filter(Q(specialist=user) | Q(provider_hospital_id=user.hospital_id)
                     | Q(requesting_hospital_id=user.hospital_id))


def list_sessions(user, params):
    qs = scoped_sessions(user)
    if params.get('status'):
        qs = qs.filter(status__in=params['status'].split(','))
    if params.get('type'):
        qs = qs.filter(consultation_type=params['type'])
    if params.get('specialistId'):
        qs = qs.filter(specialist_id=params['specialistId'])
    if params.get('patientId'):
        qs = qs.filter(patient_id=params['patientId'])
    return qs


def get_session(user, pk) -> TelemedicineSession:
    try:
        return scoped_sessions(user).get(pk=pk)
    except (TelemedicineSession.DoesNotExist, ValueError):
        raise NotFound('Telemedicine session not found')


def find_conflict(specialist, scheduled_time, exclude_id=None):
    window = timedelta(minutes=slot_minutes())
    qs = TelemedicineSession.objects.filter(
        specialist=specialist, status__in=OPEN_STATUSES,
        scheduled_time__gt=scheduled_time - window, scheduled_time__lt=scheduled_time + window,
    )
    if exclude_id:
        qs = qs.exclude(pk=exclude_id)
    return qs.first()


@transaction.atomic
def create_session(data: Dict[str, Any], *, user, request=None) -> TelemedicineSession:
    patient = get_or_404(Patient, data.pop('patient_id'))
    try:
        specialist = User.objects.select_for_update().get(pk=data.pop('specialist_id'), role='DOCTOR',
                                                          is_active=True)
    except (User.DoesNotExist, ValueError):
        raise ValidationError({'specialistId': 'Specialist must be an active doctor'})
    provider = get_or_404(Hospital, data.pop('provider_hospital_id', None) or specialist.hospital_id,
                          message='Provider hospital not found')
    requesting_id = data.pop('requesting_hospital_id', None) or user.hospital_id
    requesting = get_or_404(Hospital, requesting_id) if requesting_id else None
    if requesting is not None:
        ensure_hospital_access(user, requesting)

    clash = find_conflict(specialist, data['scheduled_time'])
    if clash:
        raise Conflict(f'Specialist already has session {clash.session_number} '
                       f'at {clash.scheduled_time:%Y-%m-%d %H:%M}')

    s = TelemedicineSession.objects.create(
        session_number=next_number(TelemedicineSession, 'session_number', 'TM'),
        patient=patient,
        specialist=specialist,
        provider_hospital=provider,
        requesting_hospital=requesting,
        created_by=user,
        **data,
    )
    log_action(user=user, action='CREATE', entity_type='TelemedicineSession', entity_id=s.id,
               description=f'Scheduled {s.consultation_type} consultation {s.session_number} '
                           f'with {specialist.full_name}',
               request=request, hospital_id=requesting_id or provider.id)
    broadcast_update('telemedicine', 'created', s.id, specialistId=specialist.id)
    return s


@transaction.atomic
def update_session(s: TelemedicineSession, data: Dict[str, Any], *, user, request=None) -> TelemedicineSession:
    s = TelemedicineSession.objects.select_for_update().get(pk=s.pk)
    previous = s.status
    target = data.pop('status', None)
    if 'scheduled_time' in data:
        if s.status != 'SCHEDULED':
            raise InvalidTransition('Only scheduled sessions can be rescheduled')
        clash = find_conflict(s.specialist, data['scheduled_time'], exclude_id=s.id)
        if clash:
            raise Conflict(f'Specialist already has session {clash.session_number} at that time')
    prescribed = bool(data.get('prescriptions'))
    for k, v in data.items():
        setattr(s, k, v)

    if target and target != s.status:
        check_transition(TRANSITIONS, s.status, target)
        now = timezone.now()
        if target == 'IN_PROGRESS':
            s.start_time = now
        elif target == 'COMPLETED':
            s.end_time = now
            start = s.start_time or now
            s.duration = max(int((now - start).total_seconds() // 60), 0)
        s.status = target
    s.save()

    log_action(user=user, action='UPDATE', entity_type='TelemedicineSession', entity_id=s.id,
               description=f'Session {s.session_number} updated',
               changes={'status': {'from': previous, 'to': s.status}, 'fields': sorted(data)},
               request=request, hospital_id=s.provider_hospital_id)
    if prescribed:
        log_action(user=user, action='PRESCRIBE', entity_type='TelemedicineSession', entity_id=s.id,
                   description=f'Prescribed {len(s.prescriptions)} item(s) in {s.session_number}',
                   changes={'prescriptions': s.prescriptions}, request=request,
                   hospital_id=s.provider_hospital_id)
    broadcast_update('telemedicine', 'updated', s.id, status=s.status)
    return s


def cancel_session(s: TelemedicineSession, *, user, request=None) -> TelemedicineSession:
    if s.status != 'SCHEDULED':
        raise InvalidTransition('Only scheduled sessions can be cancelled')
    s.status = 'CANCELLED'
    s.save(update_fields=['status', 'updated_at'])
    log_action(user=user, action='CANCEL', entity_type='TelemedicineSession', entity_id=s.id,
               description=f'Cancelled session {s.session_number}', request=request,
               hospital_id=s.provider_hospital_id)
    broadcast_update('telemedicine', 'cancelled', s.id)
    return s


def can_join(user, s: TelemedicineSession) -> bool:
    if is_super(user) or s.specialist_id == user.id:
        return True
    return bool(user.hospital_id) and user.hospital_id in (s.provider_hospital_id, s.requesting_hospital_id)


def issue_room_token(user, session_id, *, request=None, now=None) -> Dict[str, Any]:
    now = now or timezone.now()
    try:
        s = TelemedicineSession.objects.get(pk=session_id)
    except (TelemedicineSession.DoesNotExist, ValueError, TypeError):
        raise NotFound('Telemedicine session not found')
    if not can_join(user, s):
        raise PermissionDenied('Access denied to this session')
    if s.status not in OPEN_STATUSES:
        raise InvalidTransition(f'Cannot join a {s.status.lower()} session')

    ttl = int(getattr(settings, 'TELEMEDICINE_TOKEN_TTL', 3600))
    room = f'telemedicine-session-{s.id}'
    expires_at = now + timedelta(seconds=ttl)
    token = signing.dumps(
        {'room': room, 'identity': str(user.id), 'exp': int(expires_at.timestamp()), 'nonce': secrets.token_hex(4)},
        salt=TOKEN_SALT,
    )
    log_action(user=user, action='CREATE', entity_type='VideoToken', entity_id=s.id,
               description=f'Generated video token for telemedicine session {s.session_number}', request=request)
    return {
        'token': token,
        'roomName': room,
        'identity': str(user.id),
        'expiresAt': iso(expires_at),
        'serverUrl': getattr(settings, 'VIDEO_SERVER_URL', 'wss://localhost:3001'),
        'iceServers': ICE_SERVERS,
        'sessionId': s.id,
    }
