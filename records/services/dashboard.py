from typing import Optional

from django.conf import settings
from django.core.cache import cache

from records.services.reminders import ReminderAggregator

DOCTOR_DASHBOARD_KEY = 'dashboard:doctor'


def doctor_dashboard(aggregator: ReminderAggregator) -> dict:
    stats = aggregator.doctor_stats()
    vaccinations = aggregator.upcoming_vaccinations()
    appointments = aggregator.upcoming_appointments()
    return {
        'ok': True,
        'complete': all(r.complete for r in (stats, vaccinations, appointments)),
        'stats': stats.as_payload(),
        'upcomingVaccinations': vaccinations.as_payload(),
        'upcomingAppointments': appointments.as_payload(),
    }


def cached_doctor_dashboard(aggregator: Optional[ReminderAggregator] = None, *, refresh: bool = False) -> dict:
    """Dashboard payload, cached while complete.  Partial or failed payloads are not cached."""
    if not refresh:
        cached = cache.get(DOCTOR_DASHBOARD_KEY)
        if cached:
            return cached
    payload = doctor_dashboard(aggregator or ReminderAggregator.from_settings())
    if payload['complete']:
        cache.set(DOCTOR_DASHBOARD_KEY, payload, settings.DASHBOARD_CACHE_SECONDS)
    return payload


def invalidate_dashboard() -> None:
    cache.delete(DOCTOR_DASHBOARD_KEY)
