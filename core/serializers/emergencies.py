from rest_framework import serializers

from core.models import EMERGENCY_TYPES, EMERGENCY_SEVERITIES, EMERGENCY_STATUSES, RESPONSE_STATUSES
from core.serializers.common import CleanCharField, StringListField, choice_values


class EmergencySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=choice_values(EMERGENCY_TYPES))
    severity = serializers.ChoiceField(choices=choice_values(EMERGENCY_SEVERITIES))
    countyId = serializers.IntegerField(source='county_id', required=False, allow_null=True)
    location = CleanCharField(max_length=255)
    latitude = serializers.FloatField(min_value=-90, max_value=90, required=False, allow_null=True)
    longitude = serializers.FloatField(min_value=-180, max_value=180, required=False, allow_null=True)
    description = CleanCharField()
    estimatedCasualties = serializers.IntegerField(source='estimated_casualties', min_value=0, required=False)
    reportedBy = CleanCharField(source='reported_by', max_length=120, required=False, allow_blank=True)
    reporterPhone = CleanCharField(source='reporter_phone', max_length=30, required=False, allow_blank=True)


class EmergencyUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=choice_values(EMERGENCY_STATUSES), required=False)
    severity = serializers.ChoiceField(choices=choice_values(EMERGENCY_SEVERITIES), required=False)
    location = CleanCharField(max_length=255, required=False)
    latitude = serializers.FloatField(min_value=-90, max_value=90, required=False, allow_null=True)
    longitude = serializers.FloatField(min_value=-180, max_value=180, required=False, allow_null=True)
    description = CleanCharField(required=False)
    estimatedCasualties = serializers.IntegerField(source='estimated_casualties', min_value=0, required=False)


class BulkStatusSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    status = serializers.ChoiceField(choices=choice_values(EMERGENCY_STATUSES))


class ResponseSerializer(serializers.Serializer):
    hospitalId = serializers.IntegerField(source='hospital_id')
    ambulanceId = serializers.IntegerField(source='ambulance_id', required=False, allow_null=True)
    staffIds = serializers.ListField(source='staff_ids', child=serializers.IntegerField(min_value=1),
                                     required=False)
    equipmentDeployed = StringListField(source='equipment_deployed', required=False)
    suppliesDeployed = StringListField(source='supplies_deployed', required=False)
    notes = CleanCharField(required=False, allow_blank=True)


class ResponseUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=choice_values(RESPONSE_STATUSES), required=False)
    patientsTreated = serializers.IntegerField(source='patients_treated', min_value=0, required=False)
    patientsTransported = serializers.IntegerField(source='patients_transported', min_value=0, required=False)
    notes = CleanCharField(required=False, allow_blank=True)
