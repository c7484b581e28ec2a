from rest_framework import serializers

from core.models import GENDERS, SHA_STATUSES, CONTRIBUTION_STATUSES, PATIENT_STATUSES, RECORD_TYPES
from core.serializers.common import CleanCharField, StringListField, choice_values


class PatientSerializer(serializers.Serializer):
    firstName = CleanCharField(source='first_name', max_length=100)
    lastName = CleanCharField(source='last_name', max_length=100)
    otherNames = CleanCharField(source='other_names', max_length=100, required=False, allow_blank=True)
    dateOfBirth = serializers.DateField(source='date_of_birth', required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=choice_values(GENDERS), required=False, allow_blank=True)
    phone = CleanCharField(max_length=30, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    address = CleanCharField(max_length=255, required=False, allow_blank=True)
    nationalId = CleanCharField(source='national_id', max_length=20, required=False, allow_blank=True,
                                allow_null=True)
    shaNumber = CleanCharField(source='sha_number', max_length=30, required=False, allow_blank=True,
                               allow_null=True)
    shaStatus = serializers.ChoiceField(source='sha_status', choices=choice_values(SHA_STATUSES), required=False)
    contributionStatus = serializers.ChoiceField(source='contribution_status',
                                                 choices=choice_values(CONTRIBUTION_STATUSES), required=False)
    shaRegistrationDate = serializers.DateField(source='sha_registration_date', required=False, allow_null=True)
    bloodType = CleanCharField(source='blood_type', max_length=5, required=False, allow_blank=True)
    allergies = StringListField(required=False)
    chronicConditions = StringListField(source='chronic_conditions', required=False)
    currentStatus = serializers.ChoiceField(source='current_status', choices=choice_values(PATIENT_STATUSES),
                                           required=False)
    currentHospitalId = serializers.IntegerField(source='current_hospital_id', required=False, allow_null=True)
    countyId = serializers.IntegerField(source='county_id', required=False, allow_null=True)
    nextOfKinName = CleanCharField(source='next_of_kin_name', max_length=200, required=False, allow_blank=True)
    nextOfKinPhone = CleanCharField(source='next_of_kin_phone', max_length=30, required=False, allow_blank=True)
    nextOfKinRelationship = CleanCharField(source='next_of_kin_relationship', max_length=50, required=False,
                                           allow_blank=True)


class MedicalRecordSerializer(serializers.Serializer):
    recordType = serializers.ChoiceField(source='record_type', choices=choice_values(RECORD_TYPES),
                                        required=False)
    title = CleanCharField(max_length=200)
    diagnosis = CleanCharField(max_length=255, required=False, allow_blank=True)
    icd10Codes = StringListField(source='icd10_codes', required=False)
    details = CleanCharField(required=False, allow_blank=True)
    prescriptions = serializers.ListField(child=serializers.DictField(), required=False)


class VerifyShaSerializer(serializers.Serializer):
    shaNumber = serializers.CharField(required=False, allow_blank=True)
    nationalId = serializers.CharField(required=False, allow_blank=True)
    patientNumber = serializers.CharField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True)
