import bleach
from rest_framework import serializers

BLOOD_GROUPS = ['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-']

# camelCase input -> model field
FIELD_MAP = {
    'name': 'name',
    'age': 'age',
    'phoneNumber': 'phone_number',
    'email': 'email',
    'address': 'address',
    'bloodGroup': 'blood_group',
    'menstrualStatus': 'menstrual_status',
    'symptoms': 'symptoms',
    'medicalHistory': 'medical_history',
}


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class PatientSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    age = serializers.IntegerField(min_value=0, max_value=120, required=False, allow_null=True)
    phoneNumber = serializers.CharField(required=False, allow_blank=True, max_length=32)
    email = serializers.EmailField(required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)
    bloodGroup = serializers.ChoiceField(choices=BLOOD_GROUPS, required=False, allow_blank=True)
    menstrualStatus = serializers.CharField(required=False, allow_blank=True, max_length=64)
    symptoms = serializers.ListField(child=serializers.CharField(max_length=128), required=False)
    medicalHistory = serializers.CharField(required=False, allow_blank=True)

    def validate_name(self, v):
        v = _clean(v)
        if len(v) < 2:
            raise serializers.ValidationError('Name must be at least 2 characters')
        return v

    def validate_address(self, v):
        return _clean(v)

    def validate_medicalHistory(self, v):
        return _clean(v)

    def validate_symptoms(self, v):
        return [_clean(s) for s in v if _clean(s)]

    def to_model_fields(self):
        return {FIELD_MAP[k]: v for k, v in self.validated_data.items()}


class PatientUpdateSerializer(PatientSerializer):
    name = serializers.CharField(max_length=255, required=False)
