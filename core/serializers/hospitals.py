from rest_framework import serializers

from core.models import (
    HOSPITAL_LEVELS, HOSPITAL_TYPES, OPERATIONAL_STATUSES, POWER_STATUSES, WATER_STATUSES,
    OXYGEN_STATUSES, INTERNET_STATUSES,
)
from core.serializers.common import CleanCharField, choice_values


class BedCountsMixin(serializers.Serializer):
    availableBeds = serializers.IntegerField(source='available_beds', min_value=0, required=False)
    availableIcuBeds = serializers.IntegerField(source='available_icu_beds', min_value=0, required=False)
    availableEmergencyBeds = serializers.IntegerField(source='available_emergency_beds', min_value=0, required=False)
    availableMaternityBeds = serializers.IntegerField(source='available_maternity_beds', min_value=0, required=False)
    availablePediatricBeds = serializers.IntegerField(source='available_pediatric_beds', min_value=0, required=False)


class HospitalSerializer(BedCountsMixin):
    name = CleanCharField(max_length=255)
    code = CleanCharField(max_length=30)
    countyId = serializers.IntegerField(source='county_id')
    level = serializers.ChoiceField(choices=choice_values(HOSPITAL_LEVELS), required=False)
    type = serializers.ChoiceField(choices=choice_values(HOSPITAL_TYPES), required=False)
    address = CleanCharField(max_length=255, required=False, allow_blank=True)
    phone = CleanCharField(max_length=30, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    latitude = serializers.FloatField(min_value=-90, max_value=90, required=False, allow_null=True)
    longitude = serializers.FloatField(min_value=-180, max_value=180, required=False, allow_null=True)
    totalBeds = serializers.IntegerField(source='total_beds', min_value=0, required=False)
    icuBeds = serializers.IntegerField(source='icu_beds', min_value=0, required=False)
    emergencyBeds = serializers.IntegerField(source='emergency_beds', min_value=0, required=False)
    maternityBeds = serializers.IntegerField(source='maternity_beds', min_value=0, required=False)
    pediatricBeds = serializers.IntegerField(source='pediatric_beds', min_value=0, required=False)
    shaContracted = serializers.BooleanField(source='sha_contracted', required=False)
    isActive = serializers.BooleanField(source='is_active', required=False)


class CapacitySerializer(BedCountsMixin):
    occupancyRate = serializers.FloatField(source='occupancy_rate', required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('No capacity fields provided')
        return attrs


class HospitalStatusSerializer(BedCountsMixin):
    operationalStatus = serializers.ChoiceField(source='operational_status',
                                                choices=choice_values(OPERATIONAL_STATUSES), required=False)
    acceptingPatients = serializers.BooleanField(source='accepting_patients', required=False)
    emergencyOnlyMode = serializers.BooleanField(source='emergency_only_mode', required=False)
    powerStatus = serializers.ChoiceField(source='power_status', choices=choice_values(POWER_STATUSES), required=False)
    waterStatus = serializers.ChoiceField(source='water_status', choices=choice_values(WATER_STATUSES), required=False)
    oxygenStatus = serializers.ChoiceField(source='oxygen_status', choices=choice_values(OXYGEN_STATUSES),
                                           required=False)
    internetStatus = serializers.ChoiceField(source='internet_status', choices=choice_values(INTERNET_STATUSES),
                                             required=False)
    notes = CleanCharField(source='status_notes', required=False, allow_blank=True)
