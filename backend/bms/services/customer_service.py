# Overview: Customer CRUD scoped to a company.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Invoice, SalesReceipt
from ..models.customers import CUSTOMER_STATUSES, CUSTOMER_TYPES
from ..validation import ModelValidationPolicy, validate_payload
from .activity_service import log_activity
from .tenant_service import get_owned, scope_query


class CustomerError(Exception):
    """Raised for customer business-rule violations."""
    pass


class CustomerNotFoundError(CustomerError):
    pass


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"customer_type", "full_name", "phone", "email", "address", "status"},
    required_on_create={"full_name"},
    choices={"customer_type": CUSTOMER_TYPES, "status": CUSTOMER_STATUSES},
)


def get_customer(company_id: int | None, customer_id: int) -> Customer:
    customer = get_owned(Customer, customer_id, company_id)
    if not customer:
        raise CustomerNotFoundError("Customer not found")
    return customer


def list_customers(
    company_id: int | None,
    *,
    search: str | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Customer], int]:
    query = scope_query(db.session.query(Customer), Customer, company_id)
    if status:
        query = query.filter(Customer.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Customer.full_name.ilike(pattern),
            Customer.email.ilike(pattern),
            Customer.phone.ilike(pattern),
        ))
    total = query.count()
    rows = query.order_by(Customer.full_name.asc(), Customer.id.asc()).offset((max(page, 1) - 1) * limit).limit(limit).all()
    return rows, total


def create_customer(company_id: int, user_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    if patch.get("email"):
        patch["email"] = patch["email"].lower()
    customer = Customer(company_id=company_id, created_by_user_id=user_id, **patch)
    db.session.add(customer)
    db.session.commit()

    log_activity(action="customer.created", company_id=company_id, user_id=user_id,
                 entity_type="customer", entity_id=customer.id)
    return customer


def update_customer(company_id: int, customer_id: int, user_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    customer = get_customer(company_id, customer_id)
    if patch.get("email"):
        patch["email"] = patch["email"].lower()
    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()

    log_activity(action="customer.updated", company_id=company_id, user_id=user_id,
                 entity_type="customer", entity_id=customer.id, details={"fields": sorted(patch)})
    return customer


def delete_customer(company_id: int, customer_id: int, user_id: int) -> None:
    """Hard delete; refused while invoices or receipts still reference the customer."""
    customer = get_customer(company_id, customer_id)
    invoice_count = db.session.query(Invoice).filter_by(customer_id=customer.id).count()
    if invoice_count:
        raise CustomerError(f"Customer has {invoice_count} invoice(s); set status to inactive instead")
    receipt_count = db.session.query(SalesReceipt).filter_by(customer_id=customer.id).count()
    if receipt_count:
        raise CustomerError(f"Customer has {receipt_count} sales receipt(s); set status to inactive instead")

    db.session.delete(customer)
    db.session.commit()
    log_activity(action="customer.deleted", company_id=company_id, user_id=user_id,
                 entity_type="customer", entity_id=customer_id)
