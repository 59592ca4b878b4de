"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission

from .models import User

STAFF_ROLES = {User.ROLE_HCW, User.ROLE_DOCTOR}


def _role(request):
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    return getattr(user, "role", None)


class IsPatientRole(BasePermission):
    """Allow access only to users with the patient role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == User.ROLE_PATIENT


class IsHealthcareWorkerRole(BasePermission):
    """Allow access only to healthcare workers."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == User.ROLE_HCW


class IsDoctorRole(BasePermission):
    """Allow access only to doctors."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == User.ROLE_DOCTOR


class IsStaffRole(BasePermission):
    """Healthcare worker or doctor."""
    def has_permission(self, request, view) -> bool:
        return _role(request) in STAFF_ROLES
