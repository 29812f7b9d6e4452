"""
Reminder aggregation across the whole patient population.

``ReminderAggregator`` computes the near-term obligations shown on the doctor
dashboard and sent by the daily reminder job:

* upcoming vaccination doses within a horizon of days,
* scheduled appointments from tomorrow 00:00 for a horizon of days,
* doctor statistics (patients, today's appointments, recent records).

Each list is read with one indexed range query per entity type, in keyset
pages.  The aggregator never raises: a failed read yields an empty result
with ``status='failed'``, and running past the per-read timeout or the
overall deadline yields what was read so far with ``status='partial'``.
Timeouts are checked between reads; a single blocked read is bounded by the
database driver's own timeout.  Only the MySQL settings set one
(``DB_READ_TIMEOUT``); SQLite and ``DATABASE_URL`` connections have no
per-read bound.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Iterator, Optional

from django.conf import settings
from django.utils import timezone

from records.models import Appointment
from records.services.store import RecordStore

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)

STATUS_OK = 'ok'
STATUS_PARTIAL = 'partial'
STATUS_FAILED = 'failed'


class AggregationTimeout(Exception):
    """A read or the whole aggregation ran past its time budget."""


@dataclass
class AggregationResult:
    data: Any
    status: str = STATUS_OK
    error: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.status == STATUS_OK

    def as_payload(self) -> dict:
        return {
            'ok': self.status != STATUS_FAILED,
            'status': self.status,
            'error': self.error,
            'data': self.data,
        }


def days_until(when: datetime, now: datetime) -> int:
    """Whole days from ``now`` to ``when``, rounded up."""
    return math.ceil((when - now) / DAY)


def start_of_day(moment: datetime) -> datetime:
    """Local midnight of the day ``moment`` falls on."""
    return timezone.localtime(moment).replace(hour=0, minute=0, second=0, microsecond=0)


class _Budget:
    """Per-call time budget: a timeout for each read and a deadline for all of them."""

    def __init__(self, read_timeout: float, deadline: float, monotonic: Callable[[], float]):
        self.read_timeout = read_timeout
        self.monotonic = monotonic
        self.expires_at = monotonic() + deadline

    def read(self, fn: Callable, *args, **kwargs):
        started = self.monotonic()
        if started >= self.expires_at:
            raise AggregationTimeout('aggregation deadline exceeded')
        result = fn(*args, **kwargs)
        finished = self.monotonic()
        if finished - started > self.read_timeout:
            raise AggregationTimeout(
                f'read took {finished - started:.2f}s, limit is {self.read_timeout:.2f}s'
            )
        if finished > self.expires_at:
            raise AggregationTimeout('aggregation deadline exceeded')
        return result


class ReminderAggregator:

    def __init__(self, store: Optional[RecordStore] = None, *,
                 now: Optional[Callable[[], datetime]] = None,
                 monotonic: Optional[Callable[[], float]] = None,
                 vaccination_days: int = 7,
                 appointment_days: int = 1,
                 recent_days: int = 7,
                 read_timeout: float = 5.0,
                 deadline: float = 30.0,
                 page_size: int = 500):
        self.store = store or RecordStore()
        self.now = now or timezone.now
        self.monotonic = monotonic or time.monotonic
        self.vaccination_days = vaccination_days
        self.appointment_days = appointment_days
        self.recent_days = recent_days
        self.read_timeout = read_timeout
        self.deadline = deadline
        self.page_size = max(1, page_size)

    @classmethod
    def from_settings(cls, store: Optional[RecordStore] = None, **overrides) -> 'ReminderAggregator':
        options = {
            'vaccination_days': settings.VACCINATION_REMINDER_DAYS,
            'appointment_days': settings.APPOINTMENT_REMINDER_DAYS,
            'recent_days': settings.RECENT_RECORDS_DAYS,
            'read_timeout': settings.REMINDER_READ_TIMEOUT,
            'deadline': settings.REMINDER_DEADLINE,
            'page_size': settings.REMINDER_PAGE_SIZE,
        }
        options.update({k: v for k, v in overrides.items() if v is not None})
        return cls(store, **options)

    def _budget(self) -> _Budget:
        return _Budget(self.read_timeout, self.deadline, self.monotonic)

    def _pages(self, budget: _Budget, fetch: Callable, *args, **kwargs) -> Iterator[list[dict]]:
        after_id = 0
        while True:
            page = budget.read(fetch, *args, after_id=after_id, limit=self.page_size, **kwargs)
            yield page
            if len(page) < self.page_size:
                return
            after_id = page[-1]['id']

    def _collect(self, name: str, pages: Iterator[list[dict]], build: Callable[[dict], Optional[dict]],
                 sort_key: Callable[[dict], tuple]) -> AggregationResult:
        items: list[dict] = []
        try:
            for page in pages:
                for row in page:
                    item = build(row)
                    if item is not None:
                        items.append(item)
        except AggregationTimeout as e:
            logger.warning('%s aggregation incomplete after %d items: %s', name, len(items), e)
            items.sort(key=sort_key)
            return AggregationResult(items, STATUS_PARTIAL, str(e))
        except Exception as e:
            logger.exception('%s aggregation failed', name)
            return AggregationResult([], STATUS_FAILED, str(e))
        items.sort(key=sort_key)
        return AggregationResult(items)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def upcoming_vaccinations(self, horizon_days: Optional[int] = None) -> AggregationResult:
        """Vaccinations with a next dose between now and ``horizon_days`` ahead.

        A dose earlier than ``now``, even earlier today, is no longer upcoming,
        so ``daysUntil`` is never negative.  Items are sorted by ``daysUntil``;
        ties are broken by the dose date, then patient id, then vaccination id.
        """
        horizon = self.vaccination_days if horizon_days is None else horizon_days
        now = self.now()
        end = now + horizon * DAY

        def build(row: dict) -> Optional[dict]:
            next_dose = row['next_dose_date']
            if next_dose is None or next_dose < now:
                return None
            remaining = days_until(next_dose, now)
            if remaining > horizon:
                return None
            return {
                'patientId': row['patient_id'],
                'patientName': row['patient_name'],
                'vaccinationId': row['id'],
                'vaccineName': row['vaccine_name'],
                'nextDoseDate': next_dose,
                'daysUntil': remaining,
            }

        return self._collect(
            'upcoming vaccinations',
            self._pages(self._budget(), self.store.vaccinations_due, now, end),
            build,
            lambda i: (i['daysUntil'], i['nextDoseDate'], i['patientId'], i['vaccinationId']),
        )

    def appointment_window(self, horizon_days: Optional[int] = None) -> tuple[datetime, datetime]:
        horizon = self.appointment_days if horizon_days is None else horizon_days
        start = start_of_day(self.now()) + DAY
        return start, start + horizon * DAY

    def upcoming_appointments(self, horizon_days: Optional[int] = None) -> AggregationResult:
        """Scheduled appointments from tomorrow 00:00 for ``horizon_days`` days."""
        start, end = self.appointment_window(horizon_days)

        def build(row: dict) -> Optional[dict]:
            when = row['appointment_date']
            if row['status'] != Appointment.STATUS_SCHEDULED or not (start <= when < end):
                return None
            return {
                'patientId': row['patient_id'],
                'patientName': row['patient_name'],
                'appointmentId': row['id'],
                'reason': row['reason'],
                'appointmentDate': when,
                'status': row['status'],
                'notes': row['notes'],
            }

        return self._collect(
            'upcoming appointments',
            self._pages(self._budget(), self.store.appointments_between, start, end,
                        status=Appointment.STATUS_SCHEDULED),
            build,
            lambda i: (i['appointmentDate'], i['patientId'], i['appointmentId']),
        )

    def doctor_stats(self) -> AggregationResult:
        now = self.now()
        today = start_of_day(now)
        tomorrow = today + DAY
        since = now - self.recent_days * DAY
        stats = {'totalPatients': 0, 'todayAppointments': 0, 'recentRecords': 0}
        budget = self._budget()
        try:
            stats['totalPatients'] = budget.read(self.store.count_patients)
            stats['todayAppointments'] = budget.read(self.store.count_appointments_between, today, tomorrow)
            stats['recentRecords'] = budget.read(self.store.count_records_since, since)
        except AggregationTimeout as e:
            logger.warning('doctor stats incomplete: %s', e)
            return AggregationResult(stats, STATUS_PARTIAL, str(e))
        except Exception as e:
            logger.exception('doctor stats failed')
            return AggregationResult(dict.fromkeys(stats, 0), STATUS_FAILED, str(e))
        return AggregationResult(stats)
