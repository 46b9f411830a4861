"""
Roles and the permissions each role holds.

The mapping is declared once and checked by set membership; views ask for a
Permission, never for a role name.
"""
import enum

from django.db import models


class Role(models.TextChoices):
    ADMIN = 'admin', 'Admin'
    MANAGER = 'manager', 'Manager'
    EMPLOYEE = 'employee', 'Employee'
    VENDOR = 'vendor', 'Vendor'
    CUSTOMER = 'customer', 'Customer'


class Permission(enum.Enum):
    VIEW_CATALOG = 'view_catalog'
    MANAGE_INVENTORY = 'manage_inventory'
    MANAGE_PRICING = 'manage_pricing'
    MANAGE_PROMOS = 'manage_promos'
    VIEW_INVENTORY_STATS = 'view_inventory_stats'
    LIST_VENDORS = 'list_vendors'
    PLACE_ORDERS = 'place_orders'
    FULFIL_ORDERS = 'fulfil_orders'
    VIEW_ALL_ORDERS = 'view_all_orders'
    ADMINISTER_ORDERS = 'administer_orders'
    MANAGE_USERS = 'manage_users'


ROLE_PERMISSIONS = {
    Role.ADMIN: frozenset(Permission),
    Role.MANAGER: frozenset({
        Permission.VIEW_CATALOG,
        Permission.MANAGE_INVENTORY,
        Permission.MANAGE_PRICING,
        Permission.MANAGE_PROMOS,
        Permission.VIEW_INVENTORY_STATS,
        Permission.LIST_VENDORS,
        Permission.VIEW_ALL_ORDERS,
        Permission.ADMINISTER_ORDERS,
    }),
    Role.EMPLOYEE: frozenset({
        Permission.VIEW_CATALOG,
        Permission.VIEW_INVENTORY_STATS,
        Permission.LIST_VENDORS,
        Permission.VIEW_ALL_ORDERS,
    }),
    Role.VENDOR: frozenset({
        Permission.VIEW_CATALOG,
        Permission.MANAGE_INVENTORY,
        Permission.MANAGE_PRICING,
        Permission.MANAGE_PROMOS,
        Permission.VIEW_INVENTORY_STATS,
        Permission.FULFIL_ORDERS,
    }),
    Role.CUSTOMER: frozenset({
        Permission.VIEW_CATALOG,
        Permission.PLACE_ORDERS,
    }),
}

# Roles that see every inventory record regardless of ownership
STAFF_ROLES = frozenset({Role.ADMIN, Role.MANAGER})


def permissions_for(role) -> frozenset:
    try:
        return ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        return frozenset()
