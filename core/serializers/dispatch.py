from rest_framework import serializers

from core.models import (
    EMERGENCY_TYPES, DISPATCH_SEVERITIES, DISPATCH_STATUSES, AMBULANCE_TYPES, EQUIPMENT_LEVELS,
    AMBULANCE_STATUSES,
)
from core.serializers.common import CleanCharField, choice_values


class DispatchSerializer(serializers.Serializer):
    callerPhone = CleanCharField(source='caller_phone', max_length=30)
    callerName = CleanCharField(source='caller_name', max_length=120, required=False, allow_blank=True)
    callerLocation = CleanCharField(source='caller_location', max_length=255)
    latitude = serializers.FloatField(min_value=-90, max_value=90, required=False, allow_null=True)
    longitude = serializers.FloatField(min_value=-180, max_value=180, required=False, allow_null=True)
    landmark = CleanCharField(max_length=255, required=False, allow_blank=True)
    emergencyType = serializers.ChoiceField(source='emergency_type', choices=choice_values(EMERGENCY_TYPES))
    severity = serializers.ChoiceField(choices=choice_values(DISPATCH_SEVERITIES))
    description = CleanCharField()
    patientCount = serializers.IntegerField(source='patient_count', min_value=1, required=False)
    ambulanceId = serializers.IntegerField(source='ambulance_id', required=False, allow_null=True)
    destinationHospitalId = serializers.IntegerField(source='destination_hospital_id', required=False,
                                                     allow_null=True)
    emergencyId = serializers.IntegerField(source='emergency_id', required=False, allow_null=True)
    countyId = serializers.IntegerField(source='county_id', required=False, allow_null=True)
    instructionsGiven = CleanCharField(source='instructions_given', required=False, allow_blank=True)
    notes = CleanCharField(required=False, allow_blank=True)


class DispatchUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=choice_values(DISPATCH_STATUSES), required=False)
    ambulanceId = serializers.IntegerField(source='ambulance_id', required=False, allow_null=True)
    destinationHospitalId = serializers.IntegerField(source='destination_hospital_id', required=False,
                                                     allow_null=True)
    instructionsGiven = CleanCharField(source='instructions_given', required=False, allow_blank=True)
    outcome = CleanCharField(max_length=255, required=False, allow_blank=True)
    notes = CleanCharField(required=False, allow_blank=True)


class NearestQuerySerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
    emergencyType = serializers.ChoiceField(choices=choice_values(EMERGENCY_TYPES), required=False)
    severity = serializers.ChoiceField(choices=choice_values(DISPATCH_SEVERITIES), required=False)
    requireEquipment = serializers.BooleanField(required=False, default=False)
    countyId = serializers.IntegerField(required=False)


class AmbulanceSerializer(serializers.Serializer):
    registrationNumber = CleanCharField(source='registration_number', max_length=20)
    hospitalId = serializers.IntegerField(source='hospital_id', required=False, allow_null=True)
    countyId = serializers.IntegerField(source='county_id', required=False, allow_null=True)
    type = serializers.ChoiceField(choices=choice_values(AMBULANCE_TYPES), required=False)
    equipmentLevel = serializers.ChoiceField(source='equipment_level', choices=choice_values(EQUIPMENT_LEVELS),
                                             required=False)
    status = serializers.ChoiceField(choices=choice_values(AMBULANCE_STATUSES), required=False)
    isOperational = serializers.BooleanField(source='is_operational', required=False)
    latitude = serializers.FloatField(min_value=-90, max_value=90, required=False, allow_null=True)
    longitude = serializers.FloatField(min_value=-180, max_value=180, required=False, allow_null=True)
    driverName = CleanCharField(source='driver_name', max_length=120, required=False, allow_blank=True)
    driverPhone = CleanCharField(source='driver_phone', max_length=30, required=False, allow_blank=True)
    paramedicName = CleanCharField(source='paramedic_name', max_length=120, required=False, allow_blank=True)
    fuelLevel = serializers.IntegerField(source='fuel_level', min_value=0, max_value=100, required=False)
    mileage = serializers.IntegerField(min_value=0, required=False)
    lastServiceDate = serializers.DateField(source='last_service_date', required=False, allow_null=True)
    nextServiceDate = serializers.DateField(source='next_service_date', required=False, allow_null=True)


class LocationSerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    fuelLevel = serializers.IntegerField(min_value=0, max_value=100, required=False)


class MaintenanceSerializer(serializers.Serializer):
    type = CleanCharField(max_length=100)
    description = CleanCharField()
    cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    performedBy = CleanCharField(source='performed_by', max_length=200)
    date = serializers.DateField()
    nextServiceDate = serializers.DateField(source='next_service_date', required=False, allow_null=True)
