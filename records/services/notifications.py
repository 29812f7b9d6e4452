"""
Notification sinks used by the reminder job.

A sink is anything with ``send(recipient, subject, body)``.  It raises on
delivery failure; the dispatcher decides what a failure means.  The sink
class used by the job is configured with ``REMINDER_NOTIFICATION_SINK``.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings
from django.core.mail import send_mail
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class NotificationSink:
    """Delivery capability for reminder messages."""

    def send(self, recipient: str, subject: str, body: str) -> None:
        raise NotImplementedError


class EmailNotificationSink(NotificationSink):
    """Send through Django's configured e-mail backend."""

    def __init__(self, from_email: Optional[str] = None):
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL

    def send(self, recipient: str, subject: str, body: str) -> None:
        send_mail(subject, body, self.from_email, [recipient], fail_silently=False)
        logger.info('reminder e-mail sent to %s: %s', recipient, subject)


class LoggingNotificationSink(NotificationSink):
    """No-op delivery: only writes a log line."""

    def send(self, recipient: str, subject: str, body: str) -> None:
        logger.info('reminder for %s: %s | %s', recipient, subject, body)


class MemoryNotificationSink(NotificationSink):
    """Keeps every message in ``outbox``; for tests and dry runs."""

    def __init__(self):
        self.outbox: list[dict] = []

    def send(self, recipient: str, subject: str, body: str) -> None:
        self.outbox.append({'recipient': recipient, 'subject': subject, 'body': body})


def get_notification_sink(path: Optional[str] = None) -> NotificationSink:
    sink_class = import_string(path or settings.REMINDER_NOTIFICATION_SINK)
    return sink_class()
