from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.core import mail

from records.models import Appointment, AuditEvent, Patient
from records.services.dispatch import ReminderDispatcher, appointment_message, vaccination_message
from records.services.notifications import (
    EmailNotificationSink, LoggingNotificationSink, MemoryNotificationSink, get_notification_sink,
)
from records.services.reminders import STATUS_FAILED, STATUS_OK, AggregationResult, ReminderAggregator
from records.services.store import RecordStore

pytestmark = pytest.mark.django_db

WHEN = datetime(2024, 5, 11, 10, 30, tzinfo=dt_timezone.utc)


class StubAggregator:

    def __init__(self, vaccinations=None, appointments=None, store=None):
        self.vaccinations = vaccinations or AggregationResult([])
        self.appointments = appointments or AggregationResult([])
        self.store = store
        self.horizons = []

    def upcoming_vaccinations(self, horizon_days=None):
        self.horizons.append(horizon_days)
        return self.vaccinations

    def upcoming_appointments(self, horizon_days=None):
        self.horizons.append(horizon_days)
        return self.appointments


class ContactStore:

    def __init__(self, contacts):
        self.contacts = contacts

    def patient_contacts(self, ids):
        return {i: self.contacts[i] for i in ids if i in self.contacts}


class FlakySink(MemoryNotificationSink):

    def send(self, recipient, subject, body):
        if recipient.startswith('bounce'):
            raise OSError('mailbox unavailable')
        super().send(recipient, subject, body)


def vaccination_item(patient_id, days=3, name='Alice'):
    return {'patientId': patient_id, 'patientName': name, 'vaccinationId': patient_id,
            'vaccineName': 'Tetanus', 'nextDoseDate': WHEN, 'daysUntil': days}


def test_messages(settings):
    settings.TIME_ZONE = 'UTC'
    subject, body = vaccination_message(vaccination_item(1, days=3), 'Alice')
    assert subject == 'Vaccination Reminder: Tetanus'
    assert body == 'Dear Alice, you have an upcoming vaccination (Tetanus) in 3 days.'
    assert vaccination_message(vaccination_item(1, days=0), 'Alice')[1].endswith('(Tetanus) today.')

    subject, body = appointment_message({'reason': 'Blood test', 'appointmentDate': WHEN}, 'Bob')
    assert subject == 'Appointment Reminder: Blood test'
    assert body == 'Dear Bob, you have an appointment on 2024-05-11 10:30.'


def test_one_message_per_item_and_skips_missing_email():
    sink = FlakySink()
    store = ContactStore({
        1: {'name': 'Alice', 'email': 'alice@example.com'},
        2: {'name': 'Bob', 'email': ''},
        3: {'name': 'Carol', 'email': 'bounce@example.com'},
    })
    aggregator = StubAggregator(vaccinations=AggregationResult(
        [vaccination_item(1), vaccination_item(2, name='Bob'), vaccination_item(3, name='Carol')]))
    summary = ReminderDispatcher(aggregator, sink, store).send_vaccination_reminders(14)

    assert aggregator.horizons == [14]
    assert summary == {'found': 3, 'sent': 1, 'skipped': 1, 'failed': 1, 'status': STATUS_OK, 'error': None}
    assert [m['recipient'] for m in sink.outbox] == ['alice@example.com']
    assert AuditEvent.objects.filter(action='vaccination_reminders').count() == 1


def test_failed_aggregation_sends_nothing():
    sink = MemoryNotificationSink()
    aggregator = StubAggregator(appointments=AggregationResult([], STATUS_FAILED, 'boom'))
    summary = ReminderDispatcher(aggregator, sink, ContactStore({})).send_appointment_reminders()
    assert summary['status'] == STATUS_FAILED
    assert summary['error'] == 'boom'
    assert sink.outbox == []


def test_contact_lookup_failure_is_reported():
    class BrokenContacts:
        def patient_contacts(self, ids):
            raise ConnectionError('down')

    aggregator = StubAggregator(vaccinations=AggregationResult([vaccination_item(1)]))
    summary = ReminderDispatcher(aggregator, MemoryNotificationSink(), BrokenContacts()).send_vaccination_reminders()
    assert summary['status'] == STATUS_FAILED
    assert summary['sent'] == 0


def test_email_sink_uses_django_mail(settings):
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    EmailNotificationSink(from_email='clinic@example.com').send('alice@example.com', 'Hi', 'Body')
    assert len(mail.outbox) == 1
    assert mail.outbox[0].to == ['alice@example.com']
    assert mail.outbox[0].from_email == 'clinic@example.com'


def test_sink_from_settings(settings):
    settings.REMINDER_NOTIFICATION_SINK = 'records.services.notifications.LoggingNotificationSink'
    assert isinstance(get_notification_sink(), LoggingNotificationSink)
    assert isinstance(get_notification_sink('records.services.notifications.MemoryNotificationSink'),
                      MemoryNotificationSink)


def test_dispatch_against_database(settings):
    settings.TIME_ZONE = 'UTC'
    now = datetime(2024, 5, 10, 9, 0, tzinfo=dt_timezone.utc)
    alice = Patient.objects.create(full_name='Alice', email='alice@example.com')
    Appointment.objects.create(patient=alice, reason='Blood test', appointment_date=now + timedelta(days=1))
    aggregator = ReminderAggregator(RecordStore(), now=lambda: now)
    sink = MemoryNotificationSink()

    summary = ReminderDispatcher(aggregator, sink).send_appointment_reminders()
    assert summary['sent'] == 1
    assert sink.outbox[0]['body'] == 'Dear Alice, you have an appointment on 2024-05-11 09:00.'
