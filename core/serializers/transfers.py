from rest_framework import serializers

from core.models import TRANSFER_URGENCIES, TRANSPORT_MODES
from core.serializers.common import CleanCharField, StringListField, choice_values


class TransferSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(source='patient_id')
    originHospitalId = serializers.IntegerField(source='origin_hospital_id', required=False, allow_null=True)
    destinationHospitalId = serializers.IntegerField(source='destination_hospital_id')
    reason = CleanCharField()
    urgency = serializers.ChoiceField(choices=choice_values(TRANSFER_URGENCIES))
    diagnosis = CleanCharField(max_length=255)
    vitalSigns = serializers.DictField(source='vital_signs', required=False)
    transportMode = serializers.ChoiceField(source='transport_mode', choices=choice_values(TRANSPORT_MODES))
    ambulanceId = serializers.IntegerField(source='ambulance_id', required=False, allow_null=True)
    requiredResources = StringListField(source='required_resources', required=False)
    specialNeeds = CleanCharField(source='special_needs', required=False, allow_blank=True)
    notes = CleanCharField(required=False, allow_blank=True)

    def validate(self, attrs):
        origin = attrs.get('origin_hospital_id')
        if origin and origin == attrs['destination_hospital_id']:
            raise serializers.ValidationError({'destinationHospitalId': 'Destination must differ from the origin'})
        return attrs


class TransferUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['IN_TRANSIT', 'COMPLETED'], required=False)
    reason = CleanCharField(required=False)
    urgency = serializers.ChoiceField(choices=choice_values(TRANSFER_URGENCIES), required=False)
    diagnosis = CleanCharField(max_length=255, required=False)
    vitalSigns = serializers.DictField(source='vital_signs', required=False)
    transportMode = serializers.ChoiceField(source='transport_mode', choices=choice_values(TRANSPORT_MODES),
                                            required=False)
    ambulanceId = serializers.IntegerField(source='ambulance_id', required=False, allow_null=True)
    requiredResources = StringListField(source='required_resources', required=False)
    specialNeeds = CleanCharField(source='special_needs', required=False, allow_blank=True)
    bedNumber = CleanCharField(source='bed_number', max_length=30, required=False, allow_blank=True)
    notes = CleanCharField(required=False, allow_blank=True)


class ApproveTransferSerializer(serializers.Serializer):
    bedReserved = serializers.BooleanField(source='bed_reserved', required=False, default=False)
    bedNumber = CleanCharField(source='bed_number', max_length=30, required=False, allow_blank=True)
    notes = CleanCharField(required=False, allow_blank=True)


class RejectTransferSerializer(serializers.Serializer):
    rejectionReason = CleanCharField(source='rejection_reason')
