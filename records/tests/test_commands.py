from datetime import timedelta
from io import StringIO
from unittest import mock

import pytest
from django.core import mail
from django.core.cache import cache
from django.core.management import CommandError, call_command
from django.utils import timezone

from records.models import Appointment, MedicalRecord, Patient, User, Vaccination
from records.services.dashboard import DOCTOR_DASHBOARD_KEY

pytestmark = pytest.mark.django_db


@pytest.fixture
def due(settings):
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    settings.REMINDER_NOTIFICATION_SINK = 'records.services.notifications.EmailNotificationSink'
    now = timezone.now()
    tomorrow = timezone.localtime(now).replace(hour=10, minute=0, second=0, microsecond=0) + timedelta(days=1)
    alice = Patient.objects.create(full_name='Alice', email='alice@example.com')
    bob = Patient.objects.create(full_name='Bob', email='')
    Vaccination.objects.create(patient=alice, vaccine_name='Tetanus', date_given=now - timedelta(days=300),
                               next_dose_date=now + timedelta(days=3))
    Vaccination.objects.create(patient=bob, vaccine_name='HPV', date_given=now - timedelta(days=30),
                               next_dose_date=now + timedelta(days=2))
    Vaccination.objects.create(patient=alice, vaccine_name='Influenza', date_given=now - timedelta(days=30),
                               next_dose_date=now + timedelta(days=12))
    Appointment.objects.create(patient=alice, reason='Blood test', appointment_date=tomorrow)
    return alice, bob


def run(*args):
    out = StringIO()
    call_command('send_reminders', *args, stdout=out, stderr=StringIO())
    return out.getvalue()


def test_send_reminders(due):
    out = run()
    assert 'vaccinations: found=2 sent=1 skipped=1 failed=0 status=ok' in out
    assert 'appointments: found=1 sent=1' in out
    subjects = sorted(m.subject for m in mail.outbox)
    assert subjects == ['Appointment Reminder: Blood test', 'Vaccination Reminder: Tetanus']
    assert mail.outbox[0].to == ['alice@example.com']


def test_send_reminders_options(due):
    out = run('--only', 'vaccinations', '--vaccination-days', '14')
    assert 'vaccinations: found=3 sent=2' in out
    assert 'appointments' not in out
    assert len(mail.outbox) == 2


def test_dry_run_sends_no_mail(due):
    out = run('--dry-run')
    assert 'sent=1' in out
    assert mail.outbox == []


def test_negative_horizon_is_an_error(due):
    with pytest.raises(CommandError):
        run('--appointment-days', '-1')


def test_failed_aggregation_fails_the_command(due):
    with mock.patch('records.services.store.RecordStore.vaccinations_due', side_effect=RuntimeError('down')):
        with pytest.raises(CommandError):
            run('--only', 'vaccinations')
    assert mail.outbox == []


def test_refresh_dashboard_warms_cache_and_broadcasts(due):
    MedicalRecord.objects.create(patient=due[0], visit_date=timezone.now(), diagnosis='Flu')
    with mock.patch('records.management.commands.refresh_dashboard.async_to_sync') as a2s:
        out = StringIO()
        call_command('refresh_dashboard', stdout=out)
    assert 'Dashboard refreshed' in out.getvalue()
    cached = cache.get(DOCTOR_DASHBOARD_KEY)
    assert cached['stats']['data'] == {'totalPatients': 2, 'todayAppointments': 0, 'recentRecords': 1}
    group, event = a2s.return_value.call_args.args
    assert group == 'dashboard'
    assert event['type'] == 'broadcast.refresh'
    assert event['stats']['totalPatients'] == 2


def test_ensure_test_users_is_idempotent():
    call_command('ensure_test_users', stdout=StringIO())
    call_command('ensure_test_users', stdout=StringIO())
    assert set(User.objects.values_list('username', 'role')) == {
        ('admin1', 'admin'), ('doctor1', 'doctor'), ('patient1', 'patient'),
    }
    patient1 = User.objects.get(username='patient1')
    assert patient1.check_password('123456')
    assert Patient.objects.filter(user=patient1).count() == 1


def test_populate_data():
    call_command('populate_data', '--seed', '1', stdout=StringIO())
    assert Patient.objects.count() == 5
    assert Vaccination.objects.count() == 10
    assert Appointment.objects.count() == 10
    assert MedicalRecord.objects.exists()
    assert User.objects.filter(role='doctor').exists()
