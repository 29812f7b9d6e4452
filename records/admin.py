"""
Django admin registrations for the records models.

Lets superusers inspect patients and their entries under ``/admin/``
during development.
"""

from django.contrib import admin

from .models import Appointment, AuditEvent, MedicalRecord, Patient, User, Vaccination


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'role', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'email', 'first_name', 'last_name')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'full_name', 'email', 'phone', 'date_of_birth', 'created_at')
    search_fields = ('full_name', 'email', 'phone')


@admin.register(MedicalRecord)
class MedicalRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'visit_date', 'diagnosis')
    search_fields = ('patient__full_name', 'diagnosis')


@admin.register(Vaccination)
class VaccinationAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'vaccine_name', 'date_given', 'next_dose_date', 'status')
    list_filter = ('status',)
    search_fields = ('patient__full_name', 'vaccine_name')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'appointment_date', 'reason', 'status')
    list_filter = ('status',)
    search_fields = ('patient__full_name', 'reason')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'action', 'object_type', 'object_id')
    list_filter = ('action', 'object_type')
