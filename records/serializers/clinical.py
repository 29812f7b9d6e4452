from rest_framework import serializers

from records.models import Appointment, Vaccination
from records.serializers.fields import CleanCharField


class ChildSerializer(serializers.Serializer):
    """Base for patient children: maps camelCase input onto model fields."""
    field_map: dict = {}

    def to_model_fields(self) -> dict:
        return {self.field_map[k]: v for k, v in self.validated_data.items() if k in self.field_map}


class MedicalRecordSerializer(ChildSerializer):
    field_map = {
        'visitDate': 'visit_date',
        'diagnosis': 'diagnosis',
        'symptoms': 'symptoms',
        'treatment': 'treatment',
        'prescription': 'prescription',
        'notes': 'notes',
    }
    visitDate = serializers.DateTimeField()
    diagnosis = CleanCharField(max_length=500)
    symptoms = CleanCharField(max_length=2000, required=False, allow_blank=True)
    treatment = CleanCharField(max_length=2000, required=False, allow_blank=True)
    prescription = CleanCharField(max_length=2000, required=False, allow_blank=True)
    notes = CleanCharField(max_length=2000, required=False, allow_blank=True)


class VaccinationSerializer(ChildSerializer):
    field_map = {
        'vaccineName': 'vaccine_name',
        'dateGiven': 'date_given',
        'nextDoseDate': 'next_dose_date',
        'status': 'status',
        'batchNumber': 'batch_number',
        'administeredBy': 'administered_by',
        'notes': 'notes',
    }
    vaccineName = CleanCharField(max_length=255)
    dateGiven = serializers.DateTimeField()
    nextDoseDate = serializers.DateTimeField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=[c for c, _ in Vaccination.STATUS_CHOICES], required=False)
    batchNumber = CleanCharField(max_length=100, required=False, allow_blank=True)
    administeredBy = CleanCharField(max_length=255, required=False, allow_blank=True)
    notes = CleanCharField(max_length=2000, required=False, allow_blank=True)


class AppointmentSerializer(ChildSerializer):
    field_map = {
        'reason': 'reason',
        'appointmentDate': 'appointment_date',
        'status': 'status',
        'notes': 'notes',
    }
    reason = CleanCharField(max_length=500)
    appointmentDate = serializers.DateTimeField()
    status = serializers.ChoiceField(choices=[c for c, _ in Appointment.STATUS_CHOICES], required=False)
    notes = CleanCharField(max_length=2000, required=False, allow_blank=True)


class ChildListQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, min_value=1, max_value=500)


class HorizonQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(required=False, min_value=0, max_value=365)
