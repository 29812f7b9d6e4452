from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.utils import timezone

from records.models import Appointment, MedicalRecord, Patient, Vaccination
from records.services.reminders import (
    STATUS_FAILED, STATUS_OK, STATUS_PARTIAL, ReminderAggregator, days_until,
)
from records.services.store import RecordStore

NOW = datetime(2024, 5, 10, 9, 0, tzinfo=dt_timezone.utc)
TOMORROW = datetime(2024, 5, 11, tzinfo=dt_timezone.utc)


@pytest.fixture(autouse=True)
def utc(settings):
    settings.TIME_ZONE = 'UTC'


class FakeStore:
    """In-memory stand-in for RecordStore, with the same paging contract."""

    def __init__(self, patients=0, vaccinations=(), appointments=(), records=()):
        self.patients = patients
        self.vaccinations = list(vaccinations)
        self.appointments = list(appointments)
        self.records = list(records)
        self.calls = []

    @staticmethod
    def _page(rows, after_id, limit):
        rows = sorted((r for r in rows if r['id'] > after_id), key=lambda r: r['id'])
        return rows[:limit]

    def count_patients(self):
        self.calls.append('count_patients')
        return self.patients

    def vaccinations_due(self, start, end, *, after_id=0, limit=500):
        self.calls.append('vaccinations_due')
        rows = [r for r in self.vaccinations if start <= r['next_dose_date'] <= end]
        return self._page(rows, after_id, limit)

    def appointments_between(self, start, end, *, status=None, after_id=0, limit=500):
        self.calls.append('appointments_between')
        rows = [r for r in self.appointments
                if start <= r['appointment_date'] < end and (status is None or r['status'] == status)]
        return self._page(rows, after_id, limit)

    def count_appointments_between(self, start, end):
        return len([r for r in self.appointments if start <= r['appointment_date'] < end])

    def count_records_since(self, since):
        return len([r for r in self.records if r >= since])

    def patient_contacts(self, ids):
        return {}


class BrokenStore(FakeStore):

    def vaccinations_due(self, *args, **kwargs):
        raise ConnectionError('store unreachable')

    appointments_between = vaccinations_due
    count_patients = vaccinations_due


def vacc(id, patient_id, next_dose, name='Influenza', patient_name='Alice'):
    return {'id': id, 'patient_id': patient_id, 'patient_name': patient_name,
            'vaccine_name': name, 'next_dose_date': next_dose}


def appt(id, patient_id, when, status='scheduled', reason='Check-up'):
    return {'id': id, 'patient_id': patient_id, 'patient_name': 'Alice', 'reason': reason,
            'appointment_date': when, 'status': status, 'notes': ''}


def ticker(step):
    t = {'now': -step}

    def monotonic():
        t['now'] += step
        return t['now']
    return monotonic


def make(store, **kwargs):
    kwargs.setdefault('monotonic', ticker(0))
    return ReminderAggregator(store, now=lambda: NOW, **kwargs)


def test_days_until_rounds_up():
    assert days_until(NOW + timedelta(days=2, hours=12), NOW) == 3
    assert days_until(NOW + timedelta(days=3), NOW) == 3
    assert days_until(NOW, NOW) == 0


def test_vaccination_within_horizon_only():
    store = FakeStore(vaccinations=[
        vacc(1, 1, NOW + timedelta(days=3)),
        vacc(2, 1, NOW + timedelta(days=10)),
    ])
    result = make(store, vaccination_days=7).upcoming_vaccinations()
    assert result.status == STATUS_OK
    assert [i['vaccinationId'] for i in result.data] == [1]
    assert result.data[0]['daysUntil'] == 3
    assert result.data[0]['vaccineName'] == 'Influenza'


def test_vaccination_horizon_override():
    store = FakeStore(vaccinations=[vacc(1, 1, NOW + timedelta(days=10))])
    assert make(store).upcoming_vaccinations(horizon_days=30).data[0]['daysUntil'] == 10


def test_vaccinations_sorted_by_days_then_ids():
    store = FakeStore(vaccinations=[
        vacc(1, 3, NOW + timedelta(days=5)),
        vacc(2, 2, NOW + timedelta(days=1)),
        vacc(3, 1, NOW + timedelta(days=3)),
        vacc(4, 1, NOW + timedelta(days=1)),
    ])
    data = make(store).upcoming_vaccinations().data
    assert [i['daysUntil'] for i in data] == [1, 1, 3, 5]
    assert [i['vaccinationId'] for i in data] == [4, 2, 3, 1]


def test_past_dose_is_not_upcoming():
    # a store that ignores the range must not leak past doses
    store = FakeStore()
    store.vaccinations_due = lambda start, end, **kw: [vacc(1, 1, NOW - timedelta(hours=1))]
    assert make(store).upcoming_vaccinations().data == []


def test_appointments_tomorrow_scheduled_only():
    store = FakeStore(appointments=[
        appt(1, 1, TOMORROW + timedelta(hours=10)),
        appt(2, 1, TOMORROW + timedelta(hours=14), status='cancelled'),
        appt(3, 2, NOW + timedelta(hours=6)),
        appt(4, 2, TOMORROW + timedelta(days=1, hours=9)),
    ])
    result = make(store, appointment_days=1).upcoming_appointments()
    assert result.status == STATUS_OK
    assert [i['appointmentId'] for i in result.data] == [1]
    assert result.data[0]['appointmentDate'] == TOMORROW + timedelta(hours=10)


def test_appointment_window_starts_tomorrow():
    start, end = make(FakeStore()).appointment_window(3)
    assert start == TOMORROW
    assert end == TOMORROW + timedelta(days=3)


def test_appointments_sorted_by_date():
    store = FakeStore(appointments=[
        appt(1, 1, TOMORROW + timedelta(hours=15)),
        appt(2, 2, TOMORROW + timedelta(hours=8)),
        appt(3, 1, TOMORROW + timedelta(hours=8)),
    ])
    data = make(store).upcoming_appointments().data
    assert [i['appointmentId'] for i in data] == [3, 2, 1]


def test_empty_population():
    aggregator = make(FakeStore())
    stats = aggregator.doctor_stats()
    assert stats.status == STATUS_OK
    assert stats.data == {'totalPatients': 0, 'todayAppointments': 0, 'recentRecords': 0}
    assert aggregator.upcoming_vaccinations().data == []
    assert aggregator.upcoming_appointments().data == []


def test_doctor_stats_counts():
    store = FakeStore(
        patients=4,
        appointments=[
            appt(1, 1, NOW + timedelta(hours=3), status='completed'),
            appt(2, 1, NOW - timedelta(hours=8)),
            appt(3, 2, TOMORROW + timedelta(hours=1)),
        ],
        records=[NOW - timedelta(days=1), NOW - timedelta(days=6, hours=23), NOW - timedelta(days=8)],
    )
    stats = make(store, recent_days=7).doctor_stats()
    assert stats.data == {'totalPatients': 4, 'todayAppointments': 2, 'recentRecords': 2}


def test_failing_store_yields_empty_failed_results():
    aggregator = make(BrokenStore())
    for result in (aggregator.upcoming_vaccinations(), aggregator.upcoming_appointments()):
        assert result.status == STATUS_FAILED
        assert result.data == []
        assert 'store unreachable' in result.error
    stats = aggregator.doctor_stats()
    assert stats.status == STATUS_FAILED
    assert stats.data == {'totalPatients': 0, 'todayAppointments': 0, 'recentRecords': 0}
    assert stats.as_payload()['ok'] is False


def test_keyset_paging_reads_every_page():
    store = FakeStore(vaccinations=[vacc(i, i, NOW + timedelta(days=1, minutes=i)) for i in range(1, 6)])
    result = make(store, page_size=2).upcoming_vaccinations()
    assert [i['vaccinationId'] for i in result.data] == [1, 2, 3, 4, 5]
    assert store.calls.count('vaccinations_due') == 3


def test_deadline_returns_partial_results():
    store = FakeStore(vaccinations=[vacc(i, i, NOW + timedelta(days=i)) for i in range(1, 4)])
    # each monotonic() call advances 2s: reads start at 2 and 6, the third at 10 hits the deadline
    aggregator = make(store, page_size=1, read_timeout=5, deadline=10, monotonic=ticker(2))
    result = aggregator.upcoming_vaccinations()
    assert result.status == STATUS_PARTIAL
    assert [i['vaccinationId'] for i in result.data] == [1, 2]
    assert result.as_payload()['ok'] is True


def test_slow_read_times_out():
    store = FakeStore(vaccinations=[vacc(1, 1, NOW + timedelta(days=1))])
    aggregator = make(store, read_timeout=1, deadline=30, monotonic=ticker(2))
    result = aggregator.upcoming_vaccinations()
    assert result.status == STATUS_PARTIAL
    assert result.data == []
    assert 'limit' in result.error


def test_from_settings_reads_configuration(settings):
    settings.VACCINATION_REMINDER_DAYS = 14
    settings.APPOINTMENT_REMINDER_DAYS = 2
    aggregator = ReminderAggregator.from_settings(FakeStore(), appointment_days=None, page_size=10)
    assert aggregator.vaccination_days == 14
    assert aggregator.appointment_days == 2
    assert aggregator.page_size == 10


@pytest.mark.django_db
class TestWithDatabase:

    @pytest.fixture(autouse=True)
    def data(self, db):
        self.alice = Patient.objects.create(full_name='Alice', email='alice@example.com')
        self.bob = Patient.objects.create(full_name='Bob', email='bob@example.com')
        Vaccination.objects.create(patient=self.alice, vaccine_name='Tetanus', date_given=NOW - timedelta(days=300),
                                   next_dose_date=NOW + timedelta(days=2))
        Vaccination.objects.create(patient=self.bob, vaccine_name='HPV', date_given=NOW - timedelta(days=30),
                                   next_dose_date=NOW + timedelta(days=20))
        Vaccination.objects.create(patient=self.bob, vaccine_name='Influenza', date_given=NOW - timedelta(days=30))
        Appointment.objects.create(patient=self.bob, reason='Blood test', appointment_date=TOMORROW + timedelta(hours=9))
        Appointment.objects.create(patient=self.alice, reason='Follow-up', appointment_date=NOW + timedelta(hours=2))
        MedicalRecord.objects.create(patient=self.alice, visit_date=NOW - timedelta(days=2), diagnosis='Flu')
        self.aggregator = ReminderAggregator(RecordStore(), now=lambda: NOW)

    def test_upcoming_from_store(self):
        vaccinations = self.aggregator.upcoming_vaccinations()
        assert [(i['patientName'], i['vaccineName'], i['daysUntil']) for i in vaccinations.data] == [
            ('Alice', 'Tetanus', 2),
        ]
        appointments = self.aggregator.upcoming_appointments()
        assert [(i['patientId'], i['reason']) for i in appointments.data] == [(self.bob.id, 'Blood test')]

    def test_stats_from_store(self):
        assert self.aggregator.doctor_stats().data == {
            'totalPatients': 2, 'todayAppointments': 1, 'recentRecords': 1,
        }

    def test_deleted_patient_disappears_from_reminders(self):
        self.alice.delete()
        assert not Vaccination.objects.filter(patient_id=self.alice.id).exists()
        assert self.aggregator.upcoming_vaccinations().data == []
        assert self.aggregator.doctor_stats().data['totalPatients'] == 1

    def test_doses_at_both_ends_of_the_horizon(self):
        Vaccination.objects.all().delete()
        for name, due in (('Now', NOW), ('Last', NOW + timedelta(days=7)),
                          ('Late', NOW + timedelta(days=7, minutes=1)), ('Past', NOW - timedelta(minutes=1))):
            Vaccination.objects.create(patient=self.alice, vaccine_name=name, date_given=NOW - timedelta(days=30),
                                       next_dose_date=due)
        aggregator = ReminderAggregator(RecordStore(), now=lambda: NOW, vaccination_days=7, page_size=1)
        result = aggregator.upcoming_vaccinations()
        assert result.status == 'ok'
        assert [(i['vaccineName'], i['daysUntil']) for i in result.data] == [('Now', 0), ('Last', 7)]


@pytest.mark.django_db
def test_stats_with_a_single_patient():
    carol = Patient.objects.create(full_name='Carol', email='carol@example.com')
    MedicalRecord.objects.create(patient=carol, visit_date=NOW - timedelta(days=1), diagnosis='Cold')
    stats = ReminderAggregator(RecordStore(), now=lambda: NOW).doctor_stats()
    assert stats.status == 'ok'
    assert stats.data == {'totalPatients': 1, 'todayAppointments': 0, 'recentRecords': 1}


def test_default_clock_is_timezone_now():
    aggregator = ReminderAggregator(FakeStore())
    assert aggregator.now is timezone.now
