import bleach
from rest_framework import serializers

from core.services.users import ROLE_LABELS

ROLE_INPUTS = list(ROLE_LABELS.keys()) + list(ROLE_LABELS.values())
PHONE_REGEX = r'^\+?[0-9]{10,15}$'


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField()

    def validate_email(self, v):
        return (v or '').strip().lower()

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Please enter both email and password')
        return v


class RegisterSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True)
    confirmPassword = serializers.CharField(required=False, write_only=True)
    phoneNumber = serializers.RegexField(PHONE_REGEX, error_messages={'invalid': 'Please enter a valid phone number'})
    role = serializers.ChoiceField(choices=ROLE_INPUTS)

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Name is required')
        return v

    def validate(self, attrs):
        confirm = attrs.pop('confirmPassword', None)
        if confirm is not None and confirm != attrs['password']:
            raise serializers.ValidationError({'confirmPassword': 'Passwords do not match'})
        return attrs


class OtpSendSerializer(serializers.Serializer):
    phoneNumber = serializers.CharField(required=False, allow_blank=True, max_length=20)


class OtpVerifySerializer(serializers.Serializer):
    phoneNumber = serializers.CharField(max_length=20)
    code = serializers.CharField(max_length=12)


class PasswordResetSerializer(serializers.Serializer):
    email = serializers.EmailField()


class PasswordResetConfirmSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()
    newPassword = serializers.CharField(min_length=6, write_only=True)


class ProfileUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, max_length=255)
    phoneNumber = serializers.RegexField(PHONE_REGEX, required=False)
    photoURL = serializers.URLField(required=False, allow_blank=True, allow_null=True, max_length=1024)

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Name is required')
        return v
