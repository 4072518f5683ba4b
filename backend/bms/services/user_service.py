# Overview: Service-layer operations for user management inside a tenant.

"""
User Management Service

MULTI-TENANT: Company users are managed inside their company only;
super_admin manages users platform-wide.

ROLE GRANTS: Only super_admin may grant super_admin or company_admin.
Everyone else with create_user/update_user may hand out admin, accountant
and staff.

Deactivating a user (or changing their role) revokes all their sessions.
Users are never hard-deleted; their id is referenced by invoices and the
activity log.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Company, User
from ..permissions import PRIVILEGED_ROLES, Role, parse_role
from ..validation import ValidationError
from .activity_service import log_activity
from .auth_service import PasswordValidationError, create_user, hash_password
from .session_service import revoke_all_user_sessions
from .tenant_service import get_owned, scope_query


class UserManagementError(Exception):
    """Raised when a user-management rule is violated."""
    pass


class UserNotFoundError(UserManagementError):
    pass


def _check_grant(actor: User, role: Role) -> None:
    if role in PRIVILEGED_ROLES and actor.role != Role.SUPER_ADMIN.value:
        raise UserManagementError(f"Only super_admin may grant the {role.value} role")


def _ensure_seat_available(company_id: int) -> None:
    company = db.session.get(Company, company_id)
    if company is None:
        raise UserManagementError("Company not found")
    active = db.session.query(User).filter_by(company_id=company_id, is_active=True).count()
    if active >= company.max_users:
        raise UserManagementError(f"Company has reached its user limit ({company.max_users})")


def get_user(company_id: int | None, user_id: int) -> User:
    user = get_owned(User, user_id, company_id)
    if not user:
        raise UserNotFoundError("User not found")
    return user


def list_users(company_id: int | None, *, include_inactive: bool = False) -> list[User]:
    query = scope_query(db.session.query(User), User, company_id)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.name.asc(), User.id.asc()).all()


def create_company_user(actor: User, company_id: int | None, payload: dict) -> User:
    """
    Create a user on behalf of actor.

    company_id is the actor's tenant; super_admin may also target any
    company by passing company_id in the payload, or omit it when creating
    another super_admin.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    role = parse_role(payload.get("role") or Role.STAFF.value)
    if role is None:
        raise ValidationError(f"Unknown role: {payload.get('role')}", field="role")
    _check_grant(actor, role)

    target_company = company_id
    if actor.role == Role.SUPER_ADMIN.value:
        target_company = payload.get("company_id", company_id)
        if target_company is not None and (isinstance(target_company, bool) or not isinstance(target_company, int)):
            raise ValidationError("company_id must be an integer", field="company_id")
        if role == Role.SUPER_ADMIN:
            target_company = None
    if target_company is not None:
        _ensure_seat_available(target_company)

    try:
        user = create_user(
            name=payload.get("name") or "",
            email=payload.get("email") or "",
            password=payload.get("password") or "",
            role=role.value,
            company_id=target_company,
        )
    except PasswordValidationError as exc:
        raise ValidationError(str(exc), field="password")
    except ValueError as exc:
        raise ValidationError(str(exc))

    log_activity(action="user.created", company_id=target_company, user_id=actor.id,
                 entity_type="user", entity_id=user.id, details={"role": user.role})
    return user


def update_user(actor: User, company_id: int | None, user_id: int, payload: dict) -> User:
    """Update name, role, password or active flag."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    user = get_user(company_id, user_id)
    if (
        actor.role != Role.SUPER_ADMIN.value
        and user.id != actor.id
        and parse_role(user.role) in PRIVILEGED_ROLES
    ):
        raise UserManagementError("Only super_admin may modify a company_admin account")

    unknown = sorted(set(payload) - {"name", "role", "password", "is_active"})
    if unknown:
        raise ValidationError([{"field": k, "message": f"Field not allowed: {k}"} for k in unknown])

    revoke = False
    if "name" in payload:
        name = (payload["name"] or "").strip()
        if not name:
            raise ValidationError("name cannot be blank", field="name")
        user.name = name

    if "role" in payload:
        role = parse_role(payload["role"])
        if role is None:
            raise ValidationError(f"Unknown role: {payload['role']}", field="role")
        _check_grant(actor, role)
        if (role == Role.SUPER_ADMIN) != (user.company_id is None):
            raise UserManagementError("super_admin is reserved for platform users")
        if user.role != role.value:
            user.role = role.value
            revoke = True

    if "password" in payload:
        try:
            user.password_hash = hash_password(payload["password"] or "")
        except PasswordValidationError as exc:
            raise ValidationError(str(exc), field="password")
        revoke = True

    if "is_active" in payload:
        if not isinstance(payload["is_active"], bool):
            raise ValidationError("is_active must be a boolean", field="is_active")
        if payload["is_active"] is False and user.id == actor.id:
            raise UserManagementError("You cannot deactivate your own account")
        if payload["is_active"] and not user.is_active and user.company_id is not None:
            _ensure_seat_available(user.company_id)
        if user.is_active and not payload["is_active"]:
            revoke = True
        user.is_active = payload["is_active"]

    db.session.commit()
    if revoke:
        revoke_all_user_sessions(user.id, reason="User updated")

    log_activity(action="user.updated", company_id=user.company_id, user_id=actor.id,
                 entity_type="user", entity_id=user.id, details={"fields": sorted(payload)})
    return user


def deactivate_user(actor: User, company_id: int | None, user_id: int) -> User:
    return update_user(actor, company_id, user_id, {"is_active": False})
