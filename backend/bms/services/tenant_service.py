"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant scoping for reuse across services and routes.
Every company-owned query must be filtered by the caller's company, and
records of other companies must look exactly like missing records.

SECURITY INVARIANTS:
1. Every authenticated company user has g.company_id set from the session
2. super_admin may act inside one company by sending X-Company-ID
3. Lookups by id go through get_owned(), which filters by company_id
4. Cross-tenant misses are reported as "not found", never "forbidden"

USAGE:
    from bms.services.tenant_service import get_owned, require_company_id

    company_id = require_company_id()
    invoice = get_owned(Invoice, invoice_id, company_id)
"""

from __future__ import annotations

from flask import g

from ..extensions import db
from ..models import Company
from ..permissions import Role


COMPANY_HEADER = "X-Company-ID"


class TenantAccessError(Exception):
    """Raised when an operation needs a company context that is not established."""
    pass


class UnknownCompanyError(TenantAccessError):
    """X-Company-ID names a company that does not exist."""
    pass


def resolve_company_id(user, session_company_id: int | None, header_value: str | None) -> int | None:
    """
    Company the request acts in.

    Company users always act in their session's company. super_admin acts in
    the company named by X-Company-ID when present, otherwise platform-wide
    (None).

    Raises TenantAccessError for a malformed or unknown X-Company-ID.
    """
    if user.role != Role.SUPER_ADMIN.value:
        return session_company_id

    if not header_value:
        return None
    try:
        company_id = int(header_value)
    except (TypeError, ValueError):
        raise TenantAccessError(f"Invalid {COMPANY_HEADER} header")
    company = db.session.get(Company, company_id)
    if not company:
        raise UnknownCompanyError("Company not found")
    return company.id


def get_current_company_id() -> int | None:
    """Company of the current request; None for platform-wide super_admin requests."""
    return getattr(g, "company_id", None)


def require_company_id() -> int:
    """
    Company of the current request, for operations that write company data.

    Raises TenantAccessError when a super_admin has not picked a company.
    """
    company_id = get_current_company_id()
    if company_id is None:
        raise TenantAccessError(f"Company context required; send the {COMPANY_HEADER} header")
    return company_id


def scope_query(query, model, company_id: int | None):
    """Filter query to company_id; None (platform-wide) leaves it unfiltered."""
    if company_id is None:
        return query
    return query.filter(model.company_id == company_id)


def get_owned(model, entity_id: int, company_id: int | None):
    """Fetch model row by id within the company; None if missing or foreign."""
    query = db.session.query(model).filter(model.id == entity_id)
    return scope_query(query, model, company_id).first()
