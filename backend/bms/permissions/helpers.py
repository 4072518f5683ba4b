# Overview: Permission lookups used by route guards and admin endpoints.

from __future__ import annotations

from .definitions import Permission, PERMISSION_DEFINITIONS
from .roles import Role, ROLE_PERMISSIONS


def parse_role(value) -> Role | None:
    """Map a stored role string to Role; None for unknown values."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def parse_permission(value) -> Permission | None:
    if isinstance(value, Permission):
        return value
    try:
        return Permission(value)
    except ValueError:
        return None


def permissions_for_role(role) -> frozenset[Permission]:
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_PERMISSIONS[parsed]


def can(user, permission) -> bool:
    """
    True when the user's role grants the permission.

    No user, no role, an unknown role or an unknown token all deny.
    Inactive users are denied as well.
    """
    if user is None:
        return False
    role = getattr(user, "role", None)
    if not role:
        return False
    if getattr(user, "is_active", True) is False:
        return False
    token = parse_permission(permission)
    if token is None:
        return False
    return token in permissions_for_role(role)


def get_all_permission_codes() -> list[str]:
    """Get list of all permission codes."""
    return [perm[0].value for perm in PERMISSION_DEFINITIONS]


def get_permissions_by_category(category):
    """Get all permissions in a category."""
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == category]


def get_permission_definition(code):
    """Get full definition for a permission code."""
    for perm in PERMISSION_DEFINITIONS:
        if perm[0].value == code:
            return {
                "code": perm[0].value,
                "name": perm[1],
                "description": perm[2],
                "category": perm[3],
            }
    return None


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return parse_permission(code) is not None
