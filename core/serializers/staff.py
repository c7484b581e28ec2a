from rest_framework import serializers

from core.models import ROLE_CHOICES, EMPLOYMENT_TYPES, CONTRACT_TYPES, FACILITY_TYPES, SHIFT_TYPES
from core.serializers.common import CleanCharField, choice_values


class StaffSerializer(serializers.Serializer):
    firstName = CleanCharField(source='first_name', max_length=150)
    lastName = CleanCharField(source='last_name', max_length=150)
    email = serializers.EmailField()
    phone = CleanCharField(max_length=30)
    role = serializers.ChoiceField(choices=choice_values(ROLE_CHOICES))
    specialization = CleanCharField(max_length=120, required=False, allow_blank=True)
    licenseNumber = CleanCharField(source='license_number', max_length=60, required=False, allow_blank=True)
    hospitalId = serializers.IntegerField(source='hospital_id', required=False, allow_null=True)
    departmentId = serializers.IntegerField(source='department_id', required=False, allow_null=True)
    countyId = serializers.IntegerField(source='county_id', required=False, allow_null=True)
    employmentType = serializers.ChoiceField(source='employment_type', choices=choice_values(EMPLOYMENT_TYPES))
    contractType = serializers.ChoiceField(source='contract_type', choices=choice_values(CONTRACT_TYPES))
    facilityType = serializers.ChoiceField(source='facility_type', choices=choice_values(FACILITY_TYPES))
    hireDate = serializers.DateField(source='hire_date')
    isOnDuty = serializers.BooleanField(source='is_on_duty', required=False)
    isActive = serializers.BooleanField(source='is_active', required=False)
    password = serializers.CharField(min_length=8, required=False, write_only=True, trim_whitespace=False)


class ScheduleSerializer(serializers.Serializer):
    startTime = serializers.DateTimeField(source='start_time')
    endTime = serializers.DateTimeField(source='end_time')
    shiftType = serializers.ChoiceField(source='shift_type', choices=choice_values(SHIFT_TYPES))
    departmentId = serializers.IntegerField(source='department_id', required=False, allow_null=True)
    notes = CleanCharField(max_length=255, required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['end_time'] <= attrs['start_time']:
            raise serializers.ValidationError({'endTime': 'End time must be after start time'})
        return attrs
