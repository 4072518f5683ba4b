# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    Permission,
    PERMISSION_DEFINITIONS,
    USER_PERMISSIONS,
    COMPANY_PERMISSIONS,
    SALES_PERMISSIONS,
    CATALOG_PERMISSIONS,
    EXPENSE_PERMISSIONS,
    REPORT_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import Role, ROLE_PERMISSIONS, PRIVILEGED_ROLES
from .helpers import (
    can,
    parse_role,
    parse_permission,
    permissions_for_role,
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "Permission",
    "PERMISSION_DEFINITIONS",
    "USER_PERMISSIONS",
    "COMPANY_PERMISSIONS",
    "SALES_PERMISSIONS",
    "CATALOG_PERMISSIONS",
    "EXPENSE_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "Role",
    "ROLE_PERMISSIONS",
    "PRIVILEGED_ROLES",
    "can",
    "parse_role",
    "parse_permission",
    "permissions_for_role",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
]
