"""
Daily reminder job.

Run once a day from cron or any scheduler::

    python manage.py send_reminders
    python manage.py send_reminders --only vaccinations --vaccination-days 14
    python manage.py send_reminders --dry-run
"""
from django.core.management.base import BaseCommand, CommandError

from records.services.dispatch import ReminderDispatcher
from records.services.notifications import LoggingNotificationSink, get_notification_sink
from records.services.reminders import STATUS_FAILED, STATUS_OK, ReminderAggregator


class Command(BaseCommand):
    help = "Send vaccination and appointment reminders to patients."

    def add_arguments(self, parser):
        parser.add_argument('--only', choices=['vaccinations', 'appointments'],
                            help='Send only one kind of reminder.')
        parser.add_argument('--vaccination-days', type=int, default=None,
                            help='Vaccination horizon in days (default VACCINATION_REMINDER_DAYS).')
        parser.add_argument('--appointment-days', type=int, default=None,
                            help='Appointment horizon in days (default APPOINTMENT_REMINDER_DAYS).')
        parser.add_argument('--dry-run', action='store_true',
                            help='Log the reminders instead of delivering them.')

    def handle(self, *args, **opts):
        for name in ('vaccination_days', 'appointment_days'):
            if opts[name] is not None and opts[name] < 0:
                raise CommandError(f"--{name.replace('_', '-')} must not be negative")

        aggregator = ReminderAggregator.from_settings()
        sink = LoggingNotificationSink() if opts['dry_run'] else get_notification_sink()
        dispatcher = ReminderDispatcher(aggregator, sink)

        summaries = {}
        if opts['only'] in (None, 'vaccinations'):
            summaries['vaccinations'] = dispatcher.send_vaccination_reminders(opts['vaccination_days'])
        if opts['only'] in (None, 'appointments'):
            summaries['appointments'] = dispatcher.send_appointment_reminders(opts['appointment_days'])

        failed = False
        for kind, s in summaries.items():
            line = (f"{kind}: found={s['found']} sent={s['sent']} skipped={s['skipped']} "
                    f"failed={s['failed']} status={s['status']}")
            if s['status'] == STATUS_FAILED:
                failed = True
                self.stderr.write(self.style.ERROR(f"{line} error={s['error']}"))
            elif s['failed'] or s['status'] != STATUS_OK:
                self.stdout.write(self.style.WARNING(line))
            else:
                self.stdout.write(self.style.SUCCESS(line))
        if failed:
            raise CommandError('reminder aggregation failed')
