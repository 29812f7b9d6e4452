"""
Read access used by the reminder aggregator.

``RecordStore`` is the explicit data-access handle the aggregator is given.
Every method is a single read against the database and returns plain
dictionaries, so tests can hand the aggregator a fake with the same methods.
Page methods use keyset pagination on the primary key: ``after_id`` is the
last id of the previous page and rows come back in ascending id order.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from records.models import Appointment, MedicalRecord, Patient, Vaccination


class RecordStore:

    def count_patients(self) -> int:
        return Patient.objects.count()

    def vaccinations_due(self, start: datetime, end: datetime, *, after_id: int = 0,
                         limit: int = 500) -> list[dict]:
        """Vaccinations whose next dose falls in ``[start, end]``."""
        qs = (Vaccination.objects
              .filter(next_dose_date__isnull=False, next_dose_date__gte=start, next_dose_date__lte=end,
                      id__gt=after_id)
              .order_by('id')
              .values('id', 'patient_id', 'patient__full_name', 'vaccine_name', 'next_dose_date'))
        return [{
            'id': row['id'],
            'patient_id': row['patient_id'],
            'patient_name': row['patient__full_name'],
            'vaccine_name': row['vaccine_name'],
            'next_dose_date': row['next_dose_date'],
        } for row in qs[:limit]]

    def appointments_between(self, start: datetime, end: datetime, *, status: Optional[str] = None,
                             after_id: int = 0, limit: int = 500) -> list[dict]:
        """Appointments dated in ``[start, end)``, optionally with one status."""
        qs = Appointment.objects.filter(appointment_date__gte=start, appointment_date__lt=end, id__gt=after_id)
        if status:
            qs = qs.filter(status=status)
        qs = qs.order_by('id').values(
            'id', 'patient_id', 'patient__full_name', 'reason', 'appointment_date', 'status', 'notes'
        )
        return [{
            'id': row['id'],
            'patient_id': row['patient_id'],
            'patient_name': row['patient__full_name'],
            'reason': row['reason'],
            'appointment_date': row['appointment_date'],
            'status': row['status'],
            'notes': row['notes'],
        } for row in qs[:limit]]

    def count_appointments_between(self, start: datetime, end: datetime) -> int:
        return Appointment.objects.filter(appointment_date__gte=start, appointment_date__lt=end).count()

    def count_records_since(self, since: datetime) -> int:
        return MedicalRecord.objects.filter(visit_date__gte=since).count()

    def patient_contacts(self, patient_ids: Iterable[int]) -> dict[int, dict]:
        rows = Patient.objects.filter(id__in=list(patient_ids)).values('id', 'full_name', 'email')
        return {row['id']: {'name': row['full_name'], 'email': row['email']} for row in rows}
