# apps/accounts/permissions.py

"""
Role gates for the marketplace API. Ownership is checked by the services.
"""

from rest_framework import permissions

from apps.accounts.models import Role


def _role(request):
    user = request.user
    if not user or not user.is_authenticated:
        return None
    return user.role


class IsCustomer(permissions.BasePermission):
    message = "Only customers can perform this action."

    def has_permission(self, request, view):
        return _role(request) == Role.CUSTOMER


class IsVendorOrAdmin(permissions.BasePermission):
    message = "Only vendors or administrators can perform this action."

    def has_permission(self, request, view):
        return _role(request) in (Role.VENDOR, Role.ADMIN)


class IsAdminRole(permissions.BasePermission):
    message = "Only administrators can perform this action."

    def has_permission(self, request, view):
        return _role(request) == Role.ADMIN
