# accounts/permissions.py
from rest_framework.permissions import BasePermission


class _RolePermission(BasePermission):
    """Allow access only to authenticated users with a given role."""
    role = None

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) == self.role


class IsStudent(_RolePermission):
    role = "student"


class IsDriver(_RolePermission):
    role = "driver"


class IsAdminRole(_RolePermission):
    """Operations dashboard access."""
    role = "admin"
