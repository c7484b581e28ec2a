from rest_framework import serializers

from core.models import (
    REQUESTING_FACILITY_TYPES, CONSULTATION_TYPES, SESSION_STATUSES, CONNECTION_QUALITIES,
)
from core.serializers.common import CleanCharField, choice_values


class SessionSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(source='patient_id')
    specialistId = serializers.IntegerField(source='specialist_id')
    providerHospitalId = serializers.IntegerField(source='provider_hospital_id', required=False, allow_null=True)
    requestingHospitalId = serializers.IntegerField(source='requesting_hospital_id', required=False,
                                                    allow_null=True)
    requestingFacilityType = serializers.ChoiceField(source='requesting_facility_type',
                                                     choices=choice_values(REQUESTING_FACILITY_TYPES))
    consultationType = serializers.ChoiceField(source='consultation_type',
                                               choices=choice_values(CONSULTATION_TYPES))
    chiefComplaint = CleanCharField(source='chief_complaint', max_length=500)
    clinicalSummary = CleanCharField(source='clinical_summary', required=False, allow_blank=True)
    scheduledTime = serializers.DateTimeField(source='scheduled_time')


class SessionUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=choice_values(SESSION_STATUSES), required=False)
    scheduledTime = serializers.DateTimeField(source='scheduled_time', required=False)
    clinicalSummary = CleanCharField(source='clinical_summary', required=False, allow_blank=True)
    diagnosis = CleanCharField(max_length=255, required=False, allow_blank=True)
    recommendations = CleanCharField(required=False, allow_blank=True)
    prescriptions = serializers.ListField(child=serializers.DictField(), required=False)
    requiresInPersonVisit = serializers.BooleanField(source='requires_in_person_visit', required=False)
    requiresReferral = serializers.BooleanField(source='requires_referral', required=False)
    connectionQuality = serializers.ChoiceField(source='connection_quality',
                                                choices=choice_values(CONNECTION_QUALITIES), required=False)
    audioQuality = serializers.IntegerField(source='audio_quality', min_value=1, max_value=5, required=False)
    videoQuality = serializers.IntegerField(source='video_quality', min_value=1, max_value=5, required=False)


class TokenRequestSerializer(serializers.Serializer):
    sessionId = serializers.IntegerField(min_value=1)
