# Overview: Permission checks against the static role table, with audit of denials.

from __future__ import annotations

from ..permissions import Permission, can, parse_permission, permissions_for_role
from .activity_service import log_activity


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_user_permissions(user) -> set[str]:
    """
    Permission codes granted to the user's role.

    Returns an empty set for missing or inactive users.
    """
    if user is None or not user.is_active:
        return set()
    return {perm.value for perm in permissions_for_role(user.role)}


def require_permission(
    user,
    permission,
    *,
    company_id: int | None = None,
    resource: str | None = None,
) -> None:
    """
    Raise PermissionDeniedError unless the user's role grants permission.

    Denials are written to the activity log (best-effort).
    """
    if can(user, permission):
        return

    token = parse_permission(permission)
    code = token.value if isinstance(token, Permission) else str(permission)
    log_activity(
        action="permission_denied",
        company_id=company_id,
        user_id=user.id if user is not None else None,
        details={"permission": code, "resource": resource, "role": getattr(user, "role", None)},
    )
    raise PermissionDeniedError(f"Missing permission: {code}")
