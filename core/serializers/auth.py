from rest_framework import serializers

from core.models import ROLE_CHOICES
from core.serializers.common import CleanCharField, choice_values


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField(required=False, allow_blank=True)
    username = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(trim_whitespace=False)

    def validate(self, attrs):
        ident = (attrs.get('email') or attrs.get('username') or '').strip()
        if not ident:
            raise serializers.ValidationError({'email': 'Email or username is required'})
        attrs['identifier'] = ident
        return attrs

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password is required')
        return v


class RefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=False, allow_blank=True)


class RegisterSerializer(serializers.Serializer):
    firstName = CleanCharField(source='first_name', max_length=150)
    lastName = CleanCharField(source='last_name', max_length=150)
    email = serializers.EmailField()
    phone = CleanCharField(max_length=30, required=False, allow_blank=True)
    password = serializers.CharField(min_length=8, trim_whitespace=False, write_only=True)
    role = serializers.ChoiceField(choices=choice_values(ROLE_CHOICES), required=False)
    hospitalId = serializers.IntegerField(source='hospital_id', required=False, allow_null=True)
    licenseNumber = CleanCharField(source='license_number', max_length=60, required=False, allow_blank=True)
    specialization = CleanCharField(max_length=120, required=False, allow_blank=True)

    def validate_role(self, v):
        if v == 'SUPER_ADMIN':
            raise serializers.ValidationError('This role cannot be requested')
        return v
