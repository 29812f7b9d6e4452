"""
Turn reminder aggregations into notifications.

One message is sent per upcoming item to the patient's e-mail address.
Patients without an address are skipped.  A delivery failure for one
recipient is logged and counted and the remaining reminders are still sent.
A failed aggregation sends nothing.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from django.utils import timezone

from records.services.audit import log_action
from records.services.notifications import NotificationSink
from records.services.reminders import AggregationResult, ReminderAggregator, STATUS_FAILED
from records.services.store import RecordStore

logger = logging.getLogger(__name__)


def vaccination_message(item: dict, name: str) -> tuple[str, str]:
    days = item['daysUntil']
    if days == 0:
        when = 'today'
    elif days == 1:
        when = 'in 1 day'
    else:
        when = f'in {days} days'
    subject = f"Vaccination Reminder: {item['vaccineName']}"
    body = f"Dear {name}, you have an upcoming vaccination ({item['vaccineName']}) {when}."
    return subject, body


def appointment_message(item: dict, name: str) -> tuple[str, str]:
    when = timezone.localtime(item['appointmentDate']).strftime('%Y-%m-%d %H:%M')
    subject = f"Appointment Reminder: {item['reason']}"
    body = f"Dear {name}, you have an appointment on {when}."
    return subject, body


class ReminderDispatcher:

    def __init__(self, aggregator: ReminderAggregator, sink: NotificationSink,
                 store: Optional[RecordStore] = None):
        self.aggregator = aggregator
        self.sink = sink
        self.store = store or aggregator.store

    def send_vaccination_reminders(self, horizon_days: Optional[int] = None) -> dict:
        result = self.aggregator.upcoming_vaccinations(horizon_days)
        return self._dispatch('vaccination', result, vaccination_message)

    def send_appointment_reminders(self, horizon_days: Optional[int] = None) -> dict:
        result = self.aggregator.upcoming_appointments(horizon_days)
        return self._dispatch('appointment', result, appointment_message)

    def _dispatch(self, kind: str, result: AggregationResult,
                  compose: Callable[[dict, str], tuple[str, str]]) -> dict:
        summary = {'found': len(result.data), 'sent': 0, 'skipped': 0, 'failed': 0,
                   'status': result.status, 'error': result.error}
        if result.status == STATUS_FAILED:
            logger.error('%s reminders not sent: %s', kind, result.error)
            return summary
        if not result.data:
            return summary

        try:
            contacts = self.store.patient_contacts({item['patientId'] for item in result.data})
        except Exception as e:
            logger.exception('%s reminders not sent: contact lookup failed', kind)
            summary.update(status=STATUS_FAILED, error=str(e))
            return summary

        for item in result.data:
            contact = contacts.get(item['patientId']) or {}
            email = contact.get('email')
            if not email:
                summary['skipped'] += 1
                logger.info('no e-mail for patient %s, %s reminder skipped', item['patientId'], kind)
                continue
            subject, body = compose(item, item.get('patientName') or contact.get('name') or '')
            logger.info('Reminder: %s', body)
            try:
                self.sink.send(email, subject, body)
            except Exception as e:
                summary['failed'] += 1
                logger.error('%s reminder to %s failed: %s', kind, email, e)
            else:
                summary['sent'] += 1

        log_action(user=None, action=f'{kind}_reminders', object_type='reminder', detail=summary)
        return summary
