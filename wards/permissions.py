"""
Permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission

# Roles allowed to manage beds and admissions
WARD_ROLES = {"admin", "doctor", "staff"}


class IsWardStaff(BasePermission):
    """Allow access only to users with a ward management role."""
    message = 'Access denied. Admin, doctor, or staff role required.'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in WARD_ROLES)
