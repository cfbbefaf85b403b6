"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

STAFF_ROLES = {"receptionist", "doctor", "admin"}
SCHEDULER_ROLES = {"receptionist", "admin"}


def is_staff_user(user) -> bool:
    return bool(user and user.is_authenticated and (user.is_superuser or getattr(user, "role", None) in STAFF_ROLES))


class CanManageSchedule(BasePermission):
    """Writes are reserved to front-desk roles; doctors may read."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        if not is_staff_user(user):
            return False
        if request.method in SAFE_METHODS:
            return True
        return user.is_superuser or getattr(user, "role", None) in SCHEDULER_ROLES
