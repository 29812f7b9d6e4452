from rest_framework import serializers

from records.models import Patient
from records.serializers.fields import CleanCharField, StringListField

# camelCase API field -> model field
PATIENT_FIELD_MAP = {
    'fullName': 'full_name',
    'email': 'email',
    'phone': 'phone',
    'dateOfBirth': 'date_of_birth',
    'gender': 'gender',
    'address': 'address',
    'bloodType': 'blood_type',
    'allergies': 'allergies',
    'chronicConditions': 'chronic_conditions',
    'emergencyContactName': 'emergency_contact_name',
    'emergencyContactPhone': 'emergency_contact_phone',
}


class PatientSerializer(serializers.Serializer):
    fullName = CleanCharField(max_length=100)
    email = serializers.EmailField(max_length=255)
    phone = CleanCharField(max_length=20, required=False, allow_blank=True)
    dateOfBirth = serializers.DateField(required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=[c for c, _ in Patient.GENDER_CHOICES] + [''], required=False)
    address = CleanCharField(max_length=500, required=False, allow_blank=True)
    bloodType = CleanCharField(max_length=10, required=False, allow_blank=True)
    allergies = StringListField(required=False)
    chronicConditions = StringListField(required=False)
    emergencyContactName = CleanCharField(max_length=100, required=False, allow_blank=True)
    emergencyContactPhone = CleanCharField(max_length=20, required=False, allow_blank=True)

    def validate_fullName(self, v):
        v = v.strip()
        if not v:
            raise serializers.ValidationError('Name is required')
        return v

    def to_model_fields(self) -> dict:
        return {PATIENT_FIELD_MAP[k]: v for k, v in self.validated_data.items() if k in PATIENT_FIELD_MAP}


class PatientCreateSerializer(PatientSerializer):
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)


class PatientListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=100, required=False, allow_blank=True)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)
