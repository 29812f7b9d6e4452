"""
Management command to populate the database with test data.
"""
import random
from datetime import timedelta

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.utils import timezone

from records.models import Appointment, MedicalRecord, Patient, User, Vaccination

PATIENTS = [
    ('Alice Martin', 'alice@example.com', 'female', 'A+'),
    ('Bruno Silva', 'bruno@example.com', 'male', 'O-'),
    ('Chen Wei', 'chen@example.com', 'male', 'B+'),
    ('Dana Kowalski', 'dana@example.com', 'female', 'AB+'),
    ('Emeka Obi', 'emeka@example.com', 'other', 'O+'),
]
DIAGNOSES = ['Seasonal influenza', 'Hypertension follow-up', 'Sprained ankle', 'Routine check-up', 'Migraine']
VACCINES = ['Influenza', 'Hepatitis B', 'Tetanus', 'COVID-19 booster', 'HPV']
REASONS = ['Follow-up visit', 'Blood test', 'Annual physical', 'Vaccination', 'Consultation']


class Command(BaseCommand):
    help = 'Populate database with test data'

    def add_arguments(self, parser):
        parser.add_argument('--seed', type=int, default=None, help='Random seed for repeatable data.')

    def handle(self, *args, **options):
        rng = random.Random(options['seed'])
        self.stdout.write('Creating test data...')

        doctor = self.create_staff()
        patients = self.create_patients()
        for patient in patients:
            self.create_records(rng, patient, doctor)
            self.create_vaccinations(rng, patient, doctor)
            self.create_appointments(rng, patient)

        self.stdout.write(self.style.SUCCESS('Test data created.'))

    def create_staff(self):
        for username, role in (('doctor1', User.ROLE_DOCTOR), ('admin1', User.ROLE_ADMIN)):
            user, _ = User.objects.get_or_create(
                username=username,
                defaults={
                    'email': f'{username}@example.com',
                    'password': make_password('123456'),
                    'role': role,
                    'first_name': username.capitalize(),
                },
            )
            self.stdout.write(f'Staff: {user.username} ({user.role})')
        return User.objects.get(username='doctor1')

    def create_patients(self):
        patients = []
        for name, email, gender, blood in PATIENTS:
            user, _ = User.objects.get_or_create(
                username=email,
                defaults={'email': email, 'password': make_password('123456'),
                          'role': User.ROLE_PATIENT, 'first_name': name},
            )
            patient, created = Patient.objects.get_or_create(
                user=user,
                defaults={'full_name': name, 'email': email, 'gender': gender, 'blood_type': blood,
                          'allergies': ['Penicillin'] if blood.startswith('O') else []},
            )
            patients.append(patient)
            self.stdout.write(f'Patient: {patient.full_name}{"" if created else " (exists)"}')
        return patients

    def create_records(self, rng, patient, doctor):
        now = timezone.now()
        for _ in range(rng.randint(1, 3)):
            MedicalRecord.objects.create(
                patient=patient,
                visit_date=now - timedelta(days=rng.randint(0, 60)),
                diagnosis=rng.choice(DIAGNOSES),
                treatment='Rest and fluids',
                notes=f'Seen by {doctor.get_full_name() or doctor.username}',
            )

    def create_vaccinations(self, rng, patient, doctor):
        now = timezone.now()
        for vaccine in rng.sample(VACCINES, 2):
            next_dose = now + timedelta(days=rng.randint(-5, 30), hours=rng.randint(0, 23))
            Vaccination.objects.create(
                patient=patient,
                vaccine_name=vaccine,
                date_given=now - timedelta(days=rng.randint(30, 365)),
                next_dose_date=next_dose,
                status=Vaccination.STATUS_OVERDUE if next_dose < now else Vaccination.STATUS_PENDING,
                administered_by=doctor.username,
            )

    def create_appointments(self, rng, patient):
        tomorrow = timezone.localtime().replace(hour=9, minute=0, second=0, microsecond=0) + timedelta(days=1)
        for offset in (0, rng.randint(2, 14)):
            Appointment.objects.create(
                patient=patient,
                reason=rng.choice(REASONS),
                appointment_date=tomorrow + timedelta(days=offset, hours=rng.randint(0, 8)),
                status=rng.choice([Appointment.STATUS_SCHEDULED] * 3 + [Appointment.STATUS_CANCELLED]),
            )
