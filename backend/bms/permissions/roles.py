# Overview: Static role -> permission table. Checked for completeness at import time.

from enum import Enum

from .definitions import Permission, PERMISSION_DEFINITIONS


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    COMPANY_ADMIN = "company_admin"
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    STAFF = "staff"

    def __str__(self) -> str:
        return self.value


# Roles only a super_admin may hand out.
PRIVILEGED_ROLES = frozenset({Role.SUPER_ADMIN, Role.COMPANY_ADMIN})


_ADMIN_PERMISSIONS = frozenset({
    Permission.CREATE_USER,
    Permission.UPDATE_USER,
    Permission.DELETE_USER,
    Permission.VIEW_USERS,
    Permission.APPROVE_EXPENSE,
    Permission.DELETE_EXPENSE,
    Permission.RECORD_PAYMENT,
    Permission.DELETE_INVOICE,
    Permission.CANCEL_INVOICE,
    Permission.DELETE_RECEIPT,
    Permission.MANAGE_ITEMS,
    Permission.DELETE_ITEM,
    Permission.DELETE_CUSTOMER,
    Permission.VIEW_FINANCIAL_REPORTS,
    Permission.VIEW_SYSTEM_REPORTS,
    Permission.EXPORT_DATA,
})

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.SUPER_ADMIN: frozenset(Permission),
    Role.COMPANY_ADMIN: _ADMIN_PERMISSIONS | {
        Permission.UPDATE_COMPANY,
        Permission.VIEW_COMPANIES,
    },
    Role.ADMIN: _ADMIN_PERMISSIONS,
    Role.ACCOUNTANT: frozenset({
        Permission.VIEW_USERS,
        Permission.RECORD_PAYMENT,
        Permission.CANCEL_INVOICE,
        Permission.VIEW_FINANCIAL_REPORTS,
        Permission.EXPORT_DATA,
    }),
    Role.STAFF: frozenset({
        Permission.VIEW_USERS,
    }),
}


def _check_table() -> None:
    missing_roles = [role for role in Role if role not in ROLE_PERMISSIONS]
    if missing_roles:
        raise RuntimeError(f"Roles without a permission set: {', '.join(map(str, missing_roles))}")

    for role, perms in ROLE_PERMISSIONS.items():
        if not isinstance(perms, frozenset):
            raise RuntimeError(f"Permission set for {role} must be a frozenset")
        stray = [p for p in perms if not isinstance(p, Permission)]
        if stray:
            raise RuntimeError(f"Unknown permission tokens for {role}: {stray!r}")

    defined = {definition[0] for definition in PERMISSION_DEFINITIONS}
    undocumented = set(Permission) - defined
    if undocumented:
        raise RuntimeError(f"Permissions missing a definition: {sorted(map(str, undocumented))}")


_check_table()
