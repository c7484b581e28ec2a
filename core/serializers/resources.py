from rest_framework import serializers

from core.models import RESOURCE_TYPES, RESOURCE_STATUSES, ALERT_STATUSES, ALERT_SEVERITIES
from core.serializers.common import CleanCharField, choice_values


class ResourceSerializer(serializers.Serializer):
    name = CleanCharField(max_length=200)
    type = serializers.ChoiceField(choices=choice_values(RESOURCE_TYPES))
    category = CleanCharField(max_length=100)
    hospitalId = serializers.IntegerField(source='hospital_id', required=False, allow_null=True)
    departmentId = serializers.IntegerField(source='department_id', required=False, allow_null=True)
    totalCapacity = serializers.IntegerField(source='total_capacity', min_value=0)
    availableCapacity = serializers.IntegerField(source='available_capacity', min_value=0, required=False)
    reservedCapacity = serializers.IntegerField(source='reserved_capacity', min_value=0, required=False)
    inUseCapacity = serializers.IntegerField(source='in_use_capacity', min_value=0, required=False)
    unit = CleanCharField(max_length=30)
    minimumLevel = serializers.IntegerField(source='minimum_level', min_value=0, required=False)
    criticalLevel = serializers.IntegerField(source='critical_level', min_value=0, required=False)
    reorderLevel = serializers.IntegerField(source='reorder_level', min_value=0, required=False)
    status = serializers.ChoiceField(choices=choice_values(RESOURCE_STATUSES), required=False)
    isCritical = serializers.BooleanField(source='is_critical', required=False)
    isOperational = serializers.BooleanField(source='is_operational', required=False)
    lastMaintenance = serializers.DateTimeField(source='last_maintenance', required=False, allow_null=True)
    nextMaintenance = serializers.DateTimeField(source='next_maintenance', required=False, allow_null=True)
    expiryDate = serializers.DateTimeField(source='expiry_date', required=False, allow_null=True)
    supplier = CleanCharField(max_length=200, required=False, allow_blank=True)
    unitCost = serializers.DecimalField(source='unit_cost', max_digits=12, decimal_places=2, min_value=0,
                                        required=False, allow_null=True)
    notes = CleanCharField(required=False, allow_blank=True)


class BedAvailabilitySerializer(serializers.Serializer):
    resourceId = serializers.IntegerField()
    availableCapacity = serializers.IntegerField(source='available_capacity', min_value=0, required=False)
    inUseCapacity = serializers.IntegerField(source='in_use_capacity', min_value=0, required=False)
    reservedCapacity = serializers.IntegerField(source='reserved_capacity', min_value=0, required=False)
    status = serializers.CharField(required=False)


class ShortageAckSerializer(serializers.Serializer):
    resourceId = serializers.IntegerField()
    note = CleanCharField(required=False, allow_blank=True, default='')


class AlertQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=choice_values(ALERT_STATUSES), required=False)
    severity = serializers.ChoiceField(choices=choice_values(ALERT_SEVERITIES), required=False)
    hospitalId = serializers.IntegerField(required=False)
