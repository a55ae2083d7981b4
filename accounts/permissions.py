"""Role guard and permission classes for the application"""
from rest_framework import permissions
from rest_framework.exceptions import PermissionDenied

from .models import Role


def require_role(user, allowed):
    """
    Raise PermissionDenied unless ``user`` is authenticated and holds one of
    the ``allowed`` roles.
    """
    if not user or not user.is_authenticated:
        raise PermissionDenied('Authentication required.')
    if user.role not in {Role(role) for role in allowed}:
        raise PermissionDenied('You do not have permission to perform this action.')
    return user


def has_role(user, allowed):
    try:
        require_role(user, allowed)
    except PermissionDenied:
        return False
    return True


class IsManagerOrAdmin(permissions.BasePermission):
    """
    Permission to only allow managers and admins.
    """

    message = 'Only managers or admins can access this resource.'

    def has_permission(self, request, view):
        return has_role(request.user, {Role.MANAGER, Role.ADMIN})


class IsAdminRole(permissions.BasePermission):
    """
    Permission to only allow admin users.
    """

    message = 'Only admins can access this resource.'

    def has_permission(self, request, view):
        return has_role(request.user, {Role.ADMIN})

