from rest_framework import serializers

from core.models import VISIT_TYPES, CLAIM_STATUSES
from core.serializers.common import CleanCharField, StringListField, choice_values


def _money(**kwargs):
    return serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, **kwargs)


class ClaimSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(source='patient_id')
    hospitalId = serializers.IntegerField(source='hospital_id', required=False, allow_null=True)
    serviceDate = serializers.DateField(source='service_date')
    serviceType = CleanCharField(source='service_type', max_length=100)
    visitType = serializers.ChoiceField(source='visit_type', choices=choice_values(VISIT_TYPES), required=False)
    diagnosis = CleanCharField(max_length=255)
    icd10Codes = StringListField(source='icd10_codes', required=False)
    totalAmount = _money(source='total_amount')
    patientCopay = _money(source='patient_copay', required=False)
    submit = serializers.BooleanField(required=False, default=False)


class ClaimUpdateSerializer(serializers.Serializer):
    serviceDate = serializers.DateField(source='service_date', required=False)
    serviceType = CleanCharField(source='service_type', max_length=100, required=False)
    visitType = serializers.ChoiceField(source='visit_type', choices=choice_values(VISIT_TYPES), required=False)
    diagnosis = CleanCharField(max_length=255, required=False)
    icd10Codes = StringListField(source='icd10_codes', required=False)
    totalAmount = _money(source='total_amount', required=False)
    patientCopay = _money(source='patient_copay', required=False)


class ClaimTransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=choice_values(CLAIM_STATUSES))
    shaApprovedAmount = _money(source='sha_approved_amount', required=False)
    patientCopay = _money(source='patient_copay', required=False)
    patientPaidAmount = _money(source='patient_paid_amount', required=False)
    rejectionReason = CleanCharField(source='rejection_reason', required=False, allow_blank=True)
