# Overview: Invoice write paths (create, update, send, cancel, delete) and queries.

"""
Invoice Service

WHY: Invoices are the center of the receivables workflow. Every write path
here ends the same way: recompute totals if lines changed, run
invoice_lifecycle.apply_invoice_state(), commit.

DESIGN:
- Payload shape is validated by validate_invoice_payload() (field errors,
  400); business rules raise InvoiceError (400) or InvoiceNotFoundError
  (404, also used for other companies' invoices).
- Numbers come from numbering_service; explicit numbers are uppercased and
  must be free within the company.
- Activity log entries and report cache invalidation happen after commit.

LIFECYCLE RULES:
- Editable only while draft, overdue or partially_paid
- "paid" can never be set by hand; it is derived from payments
- send: draft only (or a never-sent invoice that went overdue)
- cancel: anything not paid or already cancelled
- delete: drafts only
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Company, Customer, Invoice, InvoiceLine
from ..validation import (
    FieldErrors,
    ValidationError,
    parse_cents,
    parse_choice,
    parse_date,
    parse_int,
    parse_str,
)
from bms.time_utils import utcnow
from . import numbering_service
from .activity_service import log_activity
from .concurrency import run_with_retry
from .invoice_lifecycle import (
    apply_invoice_state,
    OPEN_STATUSES,
    STATUS_CANCELLED,
    STATUS_DRAFT,
    STATUS_OVERDUE,
    STATUS_PAID,
    STATUS_PARTIALLY_PAID,
    STATUS_SENT,
)
from .line_items import LineItemError, parse_line_inputs, price_lines, summarize
from .numbering_service import DuplicateDocumentNumberError
from .reporting_service import invalidate_company_reports
from .tenant_service import get_owned, scope_query


logger = logging.getLogger(__name__)


class InvoiceError(Exception):
    """Raised for invoice business-rule violations."""
    pass


class InvoiceNotFoundError(InvoiceError):
    """Invoice missing, or owned by another company."""
    pass


EDITABLE_STATUSES = (STATUS_DRAFT, STATUS_OVERDUE, STATUS_PARTIALLY_PAID)
CREATE_STATUSES = (STATUS_DRAFT, STATUS_SENT)
# Statuses excluded from "invoiced" totals
NON_BILLED_STATUSES = (STATUS_DRAFT, STATUS_CANCELLED)


# =============================================================================
# PAYLOAD VALIDATION (boundary)
# =============================================================================

def validate_invoice_payload(data: dict | None, *, partial: bool) -> dict:
    """
    Shape-check an invoice payload.

    Returns a clean dict containing only the keys the client sent (plus
    defaults on create). Raises ValidationError with every field problem.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    errors = FieldErrors()
    clean: dict = {}

    def wanted(key: str) -> bool:
        return not partial or key in data

    if wanted("customer_id"):
        clean["customer_id"] = parse_int(data.get("customer_id"), "customer_id", errors, minimum=1)
    if wanted("invoice_date"):
        clean["invoice_date"] = parse_date(data.get("invoice_date"), "invoice_date", errors)
    if wanted("due_date"):
        clean["due_date"] = parse_date(data.get("due_date"), "due_date", errors)
    if wanted("lines"):
        clean["lines"] = parse_line_inputs(data.get("lines"), errors)
    if "invoice_number" in data and data.get("invoice_number") not in (None, ""):
        clean["invoice_number"] = parse_str(data.get("invoice_number"), "invoice_number", errors, max_length=64)
    for key in ("discount_cents", "shipping_cents"):
        if key in data or not partial:
            clean[key] = parse_cents(data.get(key, 0), key, errors)
    for key, max_length in (("terms", 64), ("notes", None)):
        if key in data:
            clean[key] = parse_str(data.get(key), key, errors, required=False, max_length=max_length)
    if "status" in data:
        if data.get("status") == STATUS_PAID:
            errors.add("status", "Invoice status cannot be set to paid manually; record a payment instead")
        else:
            clean["status"] = parse_choice(data.get("status"), "status", CREATE_STATUSES, errors)
    elif not partial:
        clean["status"] = STATUS_DRAFT

    invoice_date = clean.get("invoice_date")
    due_date = clean.get("due_date")
    if isinstance(invoice_date, date) and isinstance(due_date, date) and due_date < invoice_date:
        errors.add("due_date", "due_date cannot be before invoice_date")

    errors.raise_if_any()
    return clean


# =============================================================================
# HELPERS
# =============================================================================

def _invoice_number_taken(company_id: int, number: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Invoice.id).filter(
        Invoice.company_id == company_id,
        Invoice.invoice_number == number,
    )
    if exclude_id is not None:
        query = query.filter(Invoice.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _require_customer(company_id: int, customer_id: int) -> Customer:
    customer = get_owned(Customer, customer_id, company_id)
    if not customer:
        raise InvoiceError("Customer not found")
    if customer.status != "active":
        raise InvoiceError("Customer is inactive")
    return customer


def _price(company_id: int, line_inputs) -> list:
    try:
        return price_lines(company_id, line_inputs)
    except LineItemError as e:
        raise InvoiceError(str(e))


def _set_lines(invoice: Invoice, priced) -> None:
    invoice.lines.clear()
    for line in priced:
        invoice.lines.append(InvoiceLine(
            item_id=line.item.id,
            position=line.position,
            item_name=line.item.name,
            description=line.description,
            quantity=line.quantity,
            rate_cents=line.rate_cents,
            tax_rate_bps=line.tax_rate_bps,
            tax_cents=line.tax_cents,
            amount_cents=line.amount_cents,
        ))


def _apply_totals(invoice: Invoice, priced_lines, discount_cents: int, shipping_cents: int) -> None:
    try:
        totals = summarize(priced_lines, discount_cents=discount_cents, shipping_cents=shipping_cents)
    except LineItemError as e:
        raise InvoiceError(str(e))
    for key, value in totals.items():
        setattr(invoice, key, value)


def get_invoice(company_id: int | None, invoice_id: int) -> Invoice:
    invoice = get_owned(Invoice, invoice_id, company_id)
    if not invoice:
        raise InvoiceNotFoundError("Invoice not found")
    return invoice


def peek_next_invoice_number(company_id: int) -> str:
    """Auto number the next invoice would get (display hint only)."""
    company = db.session.get(Company, company_id)
    return numbering_service.peek_next_number(
        company_id=company_id,
        document_type=numbering_service.DOCUMENT_INVOICE,
        prefix=company.invoice_prefix,
        is_taken=lambda n: _invoice_number_taken(company_id, n),
    )


def _after_write(invoice: Invoice, action: str, user_id: int | None, details: dict | None = None) -> None:
    invalidate_company_reports(invoice.company_id)
    log_activity(
        action=action,
        company_id=invoice.company_id,
        user_id=user_id,
        entity_type="invoice",
        entity_id=invoice.id,
        details=details,
    )


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def create_invoice(company_id: int, user_id: int, data: dict, now: datetime | None = None) -> Invoice:
    """
    Create an invoice from a payload already passed through
    validate_invoice_payload(partial=False).

    Raises:
        InvoiceError: unknown/inactive customer or item, negative total
        DuplicateDocumentNumberError: explicit number already used in company
    """
    now = now or utcnow()
    explicit_number = data.get("invoice_number")
    if explicit_number is not None:
        explicit_number = numbering_service.normalize_number(explicit_number)
        if _invoice_number_taken(company_id, explicit_number):
            raise DuplicateDocumentNumberError(numbering_service.DOCUMENT_INVOICE, explicit_number)

    def _build() -> Invoice:
        customer = _require_customer(company_id, data["customer_id"])
        company = db.session.get(Company, company_id)
        priced = _price(company_id, data["lines"])

        # Allocate last: everything above may still reject the request.
        number = explicit_number or numbering_service.next_document_number(
            company_id=company_id,
            document_type=numbering_service.DOCUMENT_INVOICE,
            prefix=company.invoice_prefix,
            is_taken=lambda n: _invoice_number_taken(company_id, n),
        )

        invoice = Invoice(
            company_id=company_id,
            customer_id=customer.id,
            customer_name=customer.full_name,
            customer_phone=customer.phone,
            invoice_number=number,
            invoice_date=data["invoice_date"],
            due_date=data["due_date"],
            terms=data.get("terms"),
            notes=data.get("notes"),
            status=data.get("status") or STATUS_DRAFT,
            amount_paid_cents=0,
            created_by_user_id=user_id,
            updated_by_user_id=user_id,
        )
        if invoice.status == STATUS_SENT:
            invoice.sent_at = now

        _set_lines(invoice, priced)
        _apply_totals(invoice, priced, data.get("discount_cents") or 0, data.get("shipping_cents") or 0)
        apply_invoice_state(invoice, now)

        db.session.add(invoice)
        return invoice

    try:
        invoice = numbering_service.create_with_allocated_number(
            _build,
            document_type=numbering_service.DOCUMENT_INVOICE,
            number_column="invoice_number",
            explicit_number=explicit_number,
        )
    except Exception:
        db.session.rollback()
        raise
    logger.info("Created invoice %s (company %s)", invoice.invoice_number, company_id)
    _after_write(invoice, "invoice.created", user_id, {"invoice_number": invoice.invoice_number})
    return invoice


def update_invoice(company_id: int, invoice_id: int, user_id: int, data: dict,
                   now: datetime | None = None) -> Invoice:
    """
    Apply a payload validated with validate_invoice_payload(partial=True).

    Raises:
        InvoiceNotFoundError, InvoiceError, DuplicateDocumentNumberError
    """
    now = now or utcnow()

    def _op() -> Invoice:
        invoice = get_invoice(company_id, invoice_id)
        if invoice.status not in EDITABLE_STATUSES:
            raise InvoiceError(f"Cannot edit an invoice with status {invoice.status}")

        if "invoice_number" in data and data["invoice_number"] is not None:
            number = numbering_service.normalize_number(data["invoice_number"])
            if number != invoice.invoice_number:
                if _invoice_number_taken(company_id, number, exclude_id=invoice.id):
                    raise DuplicateDocumentNumberError(numbering_service.DOCUMENT_INVOICE, number)
                invoice.invoice_number = number

        if "customer_id" in data and data["customer_id"] != invoice.customer_id:
            if invoice.amount_paid_cents:
                raise InvoiceError("Cannot change the customer of an invoice with payments")
            customer = _require_customer(company_id, data["customer_id"])
            invoice.customer_id = customer.id
            invoice.customer_name = customer.full_name
            invoice.customer_phone = customer.phone

        invoice_date = data.get("invoice_date") or invoice.invoice_date
        due_date = data.get("due_date") or invoice.due_date
        if due_date < invoice_date:
            raise InvoiceError("due_date cannot be before invoice_date")
        invoice.invoice_date = invoice_date
        invoice.due_date = due_date

        for key in ("terms", "notes"):
            if key in data:
                setattr(invoice, key, data[key])

        if "status" in data:
            target = data["status"]
            if target == STATUS_DRAFT and (invoice.amount_paid_cents or invoice.sent_at):
                raise InvoiceError("A sent or paid invoice cannot return to draft")
            if target == STATUS_SENT and invoice.sent_at is None:
                invoice.sent_at = now
            # Derivation below restores partially_paid/overdue where they apply.
            invoice.status = target

        if "lines" in data or "discount_cents" in data or "shipping_cents" in data:
            if "lines" in data:
                priced = _price(company_id, data["lines"])
                _set_lines(invoice, priced)
            else:
                priced = _existing_priced_lines(invoice)
            discount = data["discount_cents"] if data.get("discount_cents") is not None else invoice.discount_cents
            shipping = data["shipping_cents"] if data.get("shipping_cents") is not None else invoice.shipping_cents
            _apply_totals(invoice, priced, discount, shipping)

        if invoice.total_cents < invoice.amount_paid_cents:
            raise InvoiceError(
                f"Invoice total ({invoice.total_cents}) cannot be less than the amount already paid ({invoice.amount_paid_cents})"
            )

        invoice.updated_by_user_id = user_id
        apply_invoice_state(invoice, now)
        numbering_service.commit_or_duplicate(
            document_type=numbering_service.DOCUMENT_INVOICE,
            number_column="invoice_number",
            number=invoice.invoice_number,
        )
        return invoice

    try:
        invoice = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise
    _after_write(invoice, "invoice.updated", user_id)
    return invoice


class _StoredLine:
    """Adapter so stored lines can be re-summarized without re-pricing."""

    def __init__(self, line: InvoiceLine):
        self.amount_cents = line.amount_cents
        self.tax_cents = line.tax_cents


def _existing_priced_lines(invoice: Invoice) -> list:
    return [_StoredLine(line) for line in invoice.lines]


# =============================================================================
# STATUS ACTIONS
# =============================================================================

def send_invoice(company_id: int, invoice_id: int, user_id: int, now: datetime | None = None) -> Invoice:
    """Mark a draft invoice as sent (sets sent_at)."""
    now = now or utcnow()

    def _op() -> Invoice:
        invoice = get_invoice(company_id, invoice_id)
        never_sent_overdue = invoice.status == STATUS_OVERDUE and invoice.sent_at is None
        if invoice.status != STATUS_DRAFT and not never_sent_overdue:
            raise InvoiceError(f"Only draft invoices can be sent (status is {invoice.status})")
        invoice.status = STATUS_SENT
        invoice.sent_at = now
        invoice.updated_by_user_id = user_id
        apply_invoice_state(invoice, now)
        db.session.commit()
        return invoice

    try:
        invoice = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise
    _after_write(invoice, "invoice.sent", user_id)
    return invoice


def cancel_invoice(company_id: int, invoice_id: int, user_id: int, now: datetime | None = None) -> Invoice:
    """Move an unpaid invoice to cancelled (terminal)."""
    now = now or utcnow()

    def _op() -> Invoice:
        invoice = get_invoice(company_id, invoice_id)
        if invoice.status == STATUS_PAID:
            raise InvoiceError("Paid invoices cannot be cancelled")
        if invoice.status == STATUS_CANCELLED:
            raise InvoiceError("Invoice is already cancelled")
        invoice.status = STATUS_CANCELLED
        invoice.cancelled_at = now
        invoice.updated_by_user_id = user_id
        apply_invoice_state(invoice, now)
        db.session.commit()
        return invoice

    try:
        invoice = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise
    _after_write(invoice, "invoice.cancelled", user_id)
    return invoice


def delete_invoice(company_id: int, invoice_id: int, user_id: int) -> None:
    """Delete a draft invoice. Anything past draft must be cancelled instead."""
    invoice = get_invoice(company_id, invoice_id)
    if invoice.status != STATUS_DRAFT:
        raise InvoiceError("Only draft invoices can be deleted; cancel it instead")
    if invoice.payments:
        raise InvoiceError("Invoices with payments cannot be deleted")
    number = invoice.invoice_number
    db.session.delete(invoice)
    db.session.commit()

    invalidate_company_reports(company_id)
    log_activity(
        action="invoice.deleted",
        company_id=company_id,
        user_id=user_id,
        entity_type="invoice",
        entity_id=invoice_id,
        details={"invoice_number": number},
    )


# =============================================================================
# QUERIES
# =============================================================================

def list_invoices(
    company_id: int | None,
    *,
    status: str | None = None,
    customer_id: int | None = None,
    search: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    min_total_cents: int | None = None,
    max_total_cents: int | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Invoice], int]:
    """Filtered, newest-first page of invoices plus the total match count."""
    query = scope_query(db.session.query(Invoice), Invoice, company_id)

    if status:
        query = query.filter(Invoice.status == status)
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Invoice.invoice_number.ilike(pattern),
            Invoice.customer_name.ilike(pattern),
        ))
    if from_date:
        query = query.filter(Invoice.invoice_date >= from_date)
    if to_date:
        query = query.filter(Invoice.invoice_date <= to_date)
    if min_total_cents is not None:
        query = query.filter(Invoice.total_cents >= min_total_cents)
    if max_total_cents is not None:
        query = query.filter(Invoice.total_cents <= max_total_cents)

    total = query.count()
    page = max(page, 1)
    rows = (
        query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def list_unpaid_for_customer(company_id: int, customer_id: int) -> list[Invoice]:
    """Open invoices with money still owed, oldest due first."""
    return (
        db.session.query(Invoice)
        .filter(
            Invoice.company_id == company_id,
            Invoice.customer_id == customer_id,
            Invoice.status.in_(OPEN_STATUSES),
            Invoice.balance_due_cents > 0,
        )
        .order_by(Invoice.due_date.asc(), Invoice.id.asc())
        .all()
    )


def find_possible_duplicates(
    company_id: int,
    *,
    customer_id: int,
    invoice_date: date,
    due_date: date,
    total_cents: int,
    exclude_id: int | None = None,
) -> list[Invoice]:
    """Non-cancelled invoices with the same customer, dates and total."""
    query = db.session.query(Invoice).filter(
        Invoice.company_id == company_id,
        Invoice.customer_id == customer_id,
        Invoice.invoice_date == invoice_date,
        Invoice.due_date == due_date,
        Invoice.total_cents == total_cents,
        Invoice.status != STATUS_CANCELLED,
    )
    if exclude_id is not None:
        query = query.filter(Invoice.id != exclude_id)
    return query.order_by(Invoice.id).all()


def get_invoice_stats(company_id: int | None) -> dict:
    """
    Counts per status plus money totals.

    total_invoiced excludes drafts and cancelled invoices; outstanding is the
    balance of sent, partially paid and overdue invoices.
    """
    base = scope_query(db.session.query(Invoice), Invoice, company_id)

    counts = dict(
        base.with_entities(Invoice.status, func.count(Invoice.id))
        .group_by(Invoice.status)
        .all()
    )
    billed = base.filter(Invoice.status.notin_(NON_BILLED_STATUSES))
    total_invoiced, total_paid = billed.with_entities(
        func.coalesce(func.sum(Invoice.total_cents), 0),
        func.coalesce(func.sum(Invoice.amount_paid_cents), 0),
    ).one()
    outstanding = base.filter(Invoice.status.in_(OPEN_STATUSES)).with_entities(
        func.coalesce(func.sum(Invoice.balance_due_cents), 0)
    ).scalar()
    overdue = base.filter(Invoice.status == STATUS_OVERDUE).with_entities(
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.balance_due_cents), 0),
    ).one()

    return {
        "counts": {status: counts.get(status, 0) for status in (
            STATUS_DRAFT, STATUS_SENT, STATUS_PARTIALLY_PAID, STATUS_OVERDUE, STATUS_PAID, STATUS_CANCELLED,
        )},
        "total_count": sum(counts.values()),
        "total_invoiced_cents": int(total_invoiced),
        "total_paid_cents": int(total_paid),
        "outstanding_cents": int(outstanding),
        "overdue_count": int(overdue[0]),
        "overdue_cents": int(overdue[1]),
    }


# =============================================================================
# RECONCILIATION
# =============================================================================

def reconcile_overdue_invoices(now: datetime | None = None, company_id: int | None = None) -> int:
    """
    Re-run the derivation over every unsettled invoice and persist changes.

    Status is otherwise only recomputed when an invoice is written; this
    sweep lets an operator bring idle invoices up to date (e.g. from cron).
    Returns the number of invoices whose status changed.
    """
    now = now or utcnow()
    query = db.session.query(Invoice).filter(
        Invoice.status.notin_((STATUS_PAID, STATUS_CANCELLED)),
    )
    if company_id is not None:
        query = query.filter(Invoice.company_id == company_id)

    changed_companies: set[int] = set()
    changed = 0
    for invoice in query.all():
        before = invoice.status
        apply_invoice_state(invoice, now)
        if invoice.status != before:
            changed += 1
            changed_companies.add(invoice.company_id)
            logger.info("Invoice %s: %s -> %s", invoice.invoice_number, before, invoice.status)
    db.session.commit()

    for cid in changed_companies:
        invalidate_company_reports(cid)
    return changed
