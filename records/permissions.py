"""
Role based permission classes.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

STAFF_ROLES = {"doctor", "admin"}


def is_staff_role(user) -> bool:
    return bool(user and user.is_authenticated and getattr(user, "role", None) in STAFF_ROLES)


class IsStaffRole(BasePermission):
    """Allow access only to doctors and administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return is_staff_role(getattr(request, "user", None))


class IsPatientRole(BasePermission):
    """Allow access only to users with the patient role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) == "patient")


class StaffOrReadOnly(BasePermission):
    """Staff may write; everyone else authenticated may only read."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        if request.method in SAFE_METHODS:
            return True
        return is_staff_role(getattr(request, "user", None))
