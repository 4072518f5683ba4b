# Overview: Service-layer operations for companies (tenants).

"""
Company Service

MULTI-TENANT: Companies are the tenant boundary. Only super_admin creates,
lists or deactivates companies; a company_admin may update their own
company's profile and document settings.

Deactivating a company revokes every session of its users. Nothing is
deleted: invoices and receipts must stay auditable.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Company
from ..models.tenancy import SUBSCRIPTION_PLANS, SUBSCRIPTION_STATUSES
from ..validation import ModelValidationPolicy, ValidationError, validate_payload, FieldErrors
from .activity_service import log_activity
from .session_service import revoke_company_sessions


logger = logging.getLogger(__name__)


class CompanyError(Exception):
    """Raised for company business-rule violations."""
    pass


class CompanyNotFoundError(CompanyError):
    pass


_PROFILE_FIELDS = {"name", "email", "phone", "address", "currency", "invoice_prefix", "receipt_prefix"}

# Fields a company_admin may change on their own company
COMPANY_UPDATE_POLICY = ModelValidationPolicy(writable_fields=_PROFILE_FIELDS)

# Platform operators may also manage the subscription
COMPANY_ADMIN_POLICY = ModelValidationPolicy(
    writable_fields=_PROFILE_FIELDS | {"subscription_plan", "subscription_status", "max_users"},
    required_on_create={"name", "email"},
    choices={"subscription_plan": SUBSCRIPTION_PLANS, "subscription_status": SUBSCRIPTION_STATUSES},
)


def _normalize(patch: dict) -> dict:
    errors = FieldErrors()
    if patch.get("email"):
        patch["email"] = patch["email"].lower()
    for key in ("invoice_prefix", "receipt_prefix"):
        if key in patch:
            prefix = patch[key].upper()
            if not prefix.replace("-", "").isalnum():
                errors.add(key, f"{key} may only contain letters, digits and dashes")
            patch[key] = prefix
    if "currency" in patch:
        patch["currency"] = patch["currency"].upper()
        if len(patch["currency"]) != 3 or not patch["currency"].isalpha():
            errors.add("currency", "currency must be a 3-letter ISO code")
    if patch.get("max_users") is not None and patch["max_users"] < 1:
        errors.add("max_users", "max_users must be >= 1")
    errors.raise_if_any()
    return patch


def _ensure_email_free(email: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Company).filter(Company.email == email)
    if exclude_id is not None:
        query = query.filter(Company.id != exclude_id)
    if query.first():
        raise ValidationError("A company with this email already exists", field="email")


def get_company(company_id: int) -> Company:
    company = db.session.get(Company, company_id)
    if not company:
        raise CompanyNotFoundError("Company not found")
    return company


def list_companies(*, include_inactive: bool = True) -> list[Company]:
    query = db.session.query(Company)
    if not include_inactive:
        query = query.filter(Company.is_active.is_(True))
    return query.order_by(Company.name.asc(), Company.id.asc()).all()


def create_company(payload: dict, *, user_id: int | None = None) -> Company:
    patch = _normalize(validate_payload(model=Company, payload=payload, policy=COMPANY_ADMIN_POLICY, partial=False))
    _ensure_email_free(patch["email"])

    company = Company(**patch)
    db.session.add(company)
    db.session.commit()

    logger.info("Company %s created (%s)", company.id, company.name)
    log_activity(action="company.created", company_id=company.id, user_id=user_id,
                 entity_type="company", entity_id=company.id)
    return company


def update_company(company_id: int, payload: dict, *, user_id: int | None = None,
                   platform_admin: bool = False) -> Company:
    """
    Update company profile.

    platform_admin=True (super_admin) also allows subscription fields.
    """
    policy = COMPANY_ADMIN_POLICY if platform_admin else COMPANY_UPDATE_POLICY
    patch = _normalize(validate_payload(model=Company, payload=payload, policy=policy, partial=True))
    company = get_company(company_id)
    if "email" in patch:
        _ensure_email_free(patch["email"], exclude_id=company.id)

    for key, value in patch.items():
        setattr(company, key, value)
    db.session.commit()

    log_activity(action="company.updated", company_id=company.id, user_id=user_id,
                 entity_type="company", entity_id=company.id, details={"fields": sorted(patch)})
    return company


def set_company_active(company_id: int, active: bool, *, user_id: int | None = None) -> Company:
    """
    Activate or deactivate a company.

    Deactivation revokes all open sessions of the company's users, so they
    are signed out on their next request.
    """
    company = get_company(company_id)
    company.is_active = active
    db.session.commit()

    revoked = 0 if active else revoke_company_sessions(company.id)

    logger.info("Company %s %s (%s sessions revoked)", company.id, "activated" if active else "deactivated", revoked)
    log_activity(action="company.activated" if active else "company.deactivated", company_id=company.id,
                 user_id=user_id, entity_type="company", entity_id=company.id,
                 details={"sessions_revoked": revoked})
    return company
