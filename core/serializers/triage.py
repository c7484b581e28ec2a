from rest_framework import serializers

from core.models import TRIAGE_LEVELS, ARRIVAL_MODES, TRIAGE_STATUSES
from core.serializers.common import CleanCharField, choice_values


class TriageCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(source='patient_id')
    hospitalId = serializers.IntegerField(source='hospital_id', required=False, allow_null=True)
    departmentId = serializers.IntegerField(source='department_id', required=False, allow_null=True)
    chiefComplaint = CleanCharField(source='chief_complaint', max_length=500)
    triageLevel = serializers.ChoiceField(source='triage_level', choices=choice_values(TRIAGE_LEVELS))
    arrivalMode = serializers.ChoiceField(source='arrival_mode', choices=choice_values(ARRIVAL_MODES),
                                          required=False)
    arrivalTime = serializers.DateTimeField(source='arrival_time', required=False)
    vitalSigns = serializers.DictField(source='vital_signs', required=False)
    notes = CleanCharField(required=False, allow_blank=True)


class TriageUpdateSerializer(serializers.Serializer):
    triageLevel = serializers.ChoiceField(source='triage_level', choices=choice_values(TRIAGE_LEVELS),
                                          required=False)
    status = serializers.ChoiceField(choices=choice_values(TRIAGE_STATUSES), required=False)
    chiefComplaint = CleanCharField(source='chief_complaint', max_length=500, required=False)
    arrivalMode = serializers.ChoiceField(source='arrival_mode', choices=choice_values(ARRIVAL_MODES),
                                          required=False)
    departmentId = serializers.IntegerField(source='department_id', required=False, allow_null=True)
    vitalSigns = serializers.DictField(source='vital_signs', required=False)
    notes = CleanCharField(required=False, allow_blank=True)
    disposition = CleanCharField(max_length=255, required=False, allow_blank=True)
    diagnosis = CleanCharField(max_length=255, required=False, allow_blank=True)
    treatmentGiven = CleanCharField(source='treatment_given', required=False, allow_blank=True)


class TriageStatsQuerySerializer(serializers.Serializer):
    period = serializers.ChoiceField(choices=['today', 'week', 'month', 'custom'], required=False,
                                     default='today')
    hospitalId = serializers.IntegerField(required=False)

    def get_fields(self):
        fields = super().get_fields()
        fields['from'] = serializers.DateTimeField(required=False)
        fields['to'] = serializers.DateTimeField(required=False)
        return fields

    def validate(self, attrs):
        if attrs.get('period') == 'custom' and not (attrs.get('from') and attrs.get('to')):
            raise serializers.ValidationError('Custom period requires from and to')
        return attrs
