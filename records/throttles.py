"""
Rate limits for the sensitive endpoints.

Rates come from ``REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']`` keyed by scope.
"""
from rest_framework.permissions import SAFE_METHODS
from rest_framework.throttling import AnonRateThrottle, UserRateThrottle


class LoginRateThrottle(AnonRateThrottle):
    scope = 'login'

    def get_cache_key(self, request, view):
        return self.cache_format % {'scope': self.scope, 'ident': self.get_ident(request)}


class RegisterRateThrottle(LoginRateThrottle):
    scope = 'register'


class PatientWriteThrottle(UserRateThrottle):
    """Limits creates, updates and deletes only; reads are not counted."""
    scope = 'patient_write'

    def allow_request(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return super().allow_request(request, view)
