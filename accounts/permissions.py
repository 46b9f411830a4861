"""
DRF permission classes built from the role to permission mapping.
"""
from rest_framework.permissions import BasePermission


def require(*permissions):
    """
    Build a permission class that passes when the user holds every permission.

    Usage:
        permission_classes = [require(Permission.PLACE_ORDERS)]
    """
    names = ', '.join(p.value for p in permissions)

    class RolePermission(BasePermission):
        message = f'Your role does not allow this action (requires: {names})'

        def has_permission(self, request, view):
            user = request.user
            if not (user and user.is_authenticated):
                return False
            return all(user.has_role_permission(p) for p in permissions)

    RolePermission.__name__ = f"Require[{names}]"
    return RolePermission
