"""
Medical records, vaccinations and appointments of one patient.

The three child collections share one CRUD surface; ``KINDS`` maps the URL
segment to the model, input serializer, default ordering and output format.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from django.db import models, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from records.exceptions import BackendReadError, BackendWriteError, backend_errors
from records.models import Appointment, MedicalRecord, Patient, Vaccination
from records.serializers.clinical import AppointmentSerializer, MedicalRecordSerializer, VaccinationSerializer
from records.services.dashboard import invalidate_dashboard
from records.services.patients import format_patient


def _iso(value):
    return value.isoformat() if value else None


def format_medical_record(r: MedicalRecord) -> dict:
    return {
        'id': r.id,
        'patientId': r.patient_id,
        'visitDate': _iso(r.visit_date),
        'diagnosis': r.diagnosis,
        'symptoms': r.symptoms,
        'treatment': r.treatment,
        'prescription': r.prescription,
        'notes': r.notes,
        'createdAt': _iso(r.created_at),
        'updatedAt': _iso(r.updated_at),
    }


def format_vaccination(v: Vaccination) -> dict:
    return {
        'id': v.id,
        'patientId': v.patient_id,
        'vaccineName': v.vaccine_name,
        'dateGiven': _iso(v.date_given),
        'nextDoseDate': _iso(v.next_dose_date),
        'status': v.status,
        'batchNumber': v.batch_number,
        'administeredBy': v.administered_by,
        'notes': v.notes,
        'createdAt': _iso(v.created_at),
        'updatedAt': _iso(v.updated_at),
    }


def format_appointment(a: Appointment) -> dict:
    return {
        'id': a.id,
        'patientId': a.patient_id,
        'reason': a.reason,
        'appointmentDate': _iso(a.appointment_date),
        'status': a.status,
        'notes': a.notes,
        'createdAt': _iso(a.created_at),
        'updatedAt': _iso(a.updated_at),
    }


@dataclass(frozen=True)
class ChildKind:
    name: str
    model: type[models.Model]
    serializer: type
    ordering: tuple[str, ...]
    format: Callable[[models.Model], dict]


KINDS = {
    'records': ChildKind('records', MedicalRecord, MedicalRecordSerializer, ('-visit_date', '-id'),
                         format_medical_record),
    'vaccinations': ChildKind('vaccinations', Vaccination, VaccinationSerializer, ('-date_given', '-id'),
                              format_vaccination),
    'appointments': ChildKind('appointments', Appointment, AppointmentSerializer, ('appointment_date', 'id'),
                              format_appointment),
}


def get_kind(name: str) -> ChildKind:
    try:
        return KINDS[name]
    except KeyError:
        raise NotFound(f'unknown collection: {name}')


def list_children(patient: Patient, kind: ChildKind, limit: Optional[int] = None) -> list[dict]:
    qs = kind.model.objects.filter(patient=patient).order_by(*kind.ordering)
    if limit:
        qs = qs[:limit]
    with backend_errors(BackendReadError, f'{kind.name} list'):
        return [kind.format(obj) for obj in qs]


def get_child(patient: Patient, kind: ChildKind, child_id: int):
    with backend_errors(BackendReadError, f'{kind.name} lookup'):
        obj = kind.model.objects.filter(patient=patient, id=child_id).first()
    if not obj:
        raise NotFound(f'{kind.name} entry not found')
    return obj


def add_child(patient: Patient, kind: ChildKind, fields: dict):
    with backend_errors(BackendWriteError, f'{kind.name} create'), transaction.atomic():
        obj = kind.model.objects.create(patient=patient, **fields)
    invalidate_dashboard()
    return obj


def update_child(obj, kind: ChildKind, fields: dict):
    with backend_errors(BackendWriteError, f'{kind.name} update'), transaction.atomic():
        for name, value in fields.items():
            setattr(obj, name, value)
        obj.save()
    invalidate_dashboard()
    return obj


def delete_child(obj, kind: ChildKind) -> None:
    with backend_errors(BackendWriteError, f'{kind.name} delete'), transaction.atomic():
        obj.delete()
    invalidate_dashboard()


def patient_dashboard(patient: Patient, limit: int = 5) -> dict:
    """The patient's own overview: profile, latest records and doses, next visits."""
    upcoming = (Appointment.objects
                .filter(patient=patient, appointment_date__gte=timezone.now())
                .order_by('appointment_date', 'id')[:limit])
    with backend_errors(BackendReadError, 'patient dashboard'):
        return {
            'profile': format_patient(patient),
            'recentRecords': list_children(patient, KINDS['records'], limit),
            'vaccinations': list_children(patient, KINDS['vaccinations'], limit),
            'upcomingAppointments': [format_appointment(a) for a in upcoming],
        }
