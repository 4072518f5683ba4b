# Overview: Recording payments against invoices.

"""
Invoice Payment Service

WHY: Payments are how invoices move from sent to partially_paid to paid.
Each payment is an append-only InvoicePayment row; Invoice.amount_paid_cents
is recomputed from those rows and the lifecycle derivation is re-run.

DESIGN PRINCIPLES:
- Field-shape problems (amount, method, date) are ValidationErrors raised by
  validate_payment_payload() at the boundary
- Business-rule problems (draft/cancelled/paid invoice, amount above the
  balance) raise PaymentError and leave the invoice untouched
- Amounts are integer cents, so "amount <= balance" is exact
- A repeated idempotency_key returns the invoice unchanged
- Notification + activity log are best-effort, after commit
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Invoice, InvoicePayment
from ..models.invoices import PAYMENT_METHODS
from ..validation import FieldErrors, ValidationError, parse_cents, parse_choice, parse_date, parse_str
from bms.time_utils import utcnow
from .activity_service import log_activity
from .concurrency import lock_for_update, run_with_retry
from .invoice_lifecycle import apply_invoice_state, STATUS_CANCELLED, STATUS_DRAFT, STATUS_PAID
from .notification_service import notify
from .reporting_service import invalidate_company_reports


logger = logging.getLogger(__name__)

DEFAULT_METHOD = "cash"


class PaymentError(Exception):
    """Raised for payment operation errors."""
    pass


class PaymentInvoiceNotFoundError(PaymentError):
    pass


# =============================================================================
# PAYLOAD VALIDATION (boundary)
# =============================================================================

def validate_payment_payload(data: dict | None, today: date | None = None) -> dict:
    """
    Check amount, method and date of a payment request.

    - amount_cents: integer > 0
    - method: one of PAYMENT_METHODS (defaults to cash)
    - payment_date: ISO date, not in the future (defaults to today)
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    today = today or utcnow().date()
    errors = FieldErrors()

    amount = parse_cents(data.get("amount_cents"), "amount_cents", errors, positive=True)
    method = parse_choice(data.get("method"), "method", PAYMENT_METHODS, errors, default=DEFAULT_METHOD)
    payment_date = parse_date(data.get("payment_date"), "payment_date", errors, required=False)
    if payment_date is None and not any(e["field"] == "payment_date" for e in errors.errors):
        payment_date = today
    if payment_date is not None and payment_date > today:
        errors.add("payment_date", "payment_date cannot be in the future")

    reference = parse_str(data.get("reference"), "reference", errors, required=False, max_length=128)
    note = parse_str(data.get("note"), "note", errors, required=False)
    idempotency_key = parse_str(data.get("idempotency_key"), "idempotency_key", errors, required=False, max_length=128)

    errors.raise_if_any()
    return {
        "amount_cents": amount,
        "method": method,
        "payment_date": payment_date,
        "reference": reference,
        "note": note,
        "idempotency_key": idempotency_key,
    }


# =============================================================================
# PAYMENT RECORDING
# =============================================================================

def record_payment(
    *,
    company_id: int,
    invoice_id: int,
    user_id: int | None,
    amount_cents: int,
    method: str = DEFAULT_METHOD,
    payment_date: date | None = None,
    reference: str | None = None,
    note: str | None = None,
    idempotency_key: str | None = None,
    now: datetime | None = None,
) -> Invoice:
    """
    Append a payment to an invoice and re-derive its balance and status.

    Returns the updated Invoice.

    Raises:
        PaymentInvoiceNotFoundError: invoice missing or in another company
        PaymentError: invoice is draft/cancelled/paid, or amount is invalid
            or exceeds the remaining balance
    """
    now = now or utcnow()
    payment_date = payment_date or now.date()
    replayed = False

    def _op() -> Invoice:
        nonlocal replayed
        replayed = False

        if amount_cents is None or amount_cents <= 0:
            raise PaymentError("Payment amount must be greater than 0")
        if payment_date > now.date():
            raise PaymentError("Payment date cannot be in the future")

        invoice = lock_for_update(
            db.session.query(Invoice).filter_by(id=invoice_id, company_id=company_id)
        ).first()
        if not invoice:
            raise PaymentInvoiceNotFoundError("Invoice not found")

        if idempotency_key:
            existing = db.session.query(InvoicePayment).filter_by(
                invoice_id=invoice.id, idempotency_key=idempotency_key
            ).first()
            if existing:
                replayed = True
                return invoice

        if invoice.status == STATUS_DRAFT:
            raise PaymentError("Cannot record a payment on a draft invoice; send it first")
        if invoice.status == STATUS_CANCELLED:
            raise PaymentError("Cannot record a payment on a cancelled invoice")
        if invoice.status == STATUS_PAID or invoice.balance_due_cents <= 0:
            raise PaymentError("Invoice is already fully paid")

        if amount_cents > invoice.balance_due_cents:
            raise PaymentError(
                f"Payment amount ({amount_cents}) exceeds the remaining balance ({invoice.balance_due_cents})"
            )

        payment = InvoicePayment(
            invoice_id=invoice.id,
            company_id=company_id,
            amount_cents=amount_cents,
            method=method,
            payment_date=payment_date,
            reference=reference,
            note=note,
            idempotency_key=idempotency_key,
            recorded_by_user_id=user_id,
        )
        db.session.add(payment)
        db.session.flush()

        invoice.amount_paid_cents = _sum_payments(invoice.id)
        invoice.updated_by_user_id = user_id
        apply_invoice_state(invoice, now)

        db.session.commit()
        return invoice

    try:
        invoice = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    if replayed:
        logger.info("Idempotent replay of payment %s on invoice %s", idempotency_key, invoice.invoice_number)
        return invoice

    logger.info(
        "Recorded payment of %s cents on invoice %s (status %s)",
        amount_cents, invoice.invoice_number, invoice.status,
    )
    invalidate_company_reports(company_id)
    _notify_payment(invoice, amount_cents, user_id)
    log_activity(
        action="invoice.payment_recorded",
        company_id=company_id,
        user_id=user_id,
        entity_type="invoice",
        entity_id=invoice.id,
        details={
            "amount_cents": amount_cents,
            "method": method,
            "balance_due_cents": invoice.balance_due_cents,
            "status": invoice.status,
        },
    )
    return invoice


def _sum_payments(invoice_id: int) -> int:
    return int(
        db.session.query(func.coalesce(func.sum(InvoicePayment.amount_cents), 0))
        .filter(InvoicePayment.invoice_id == invoice_id)
        .scalar()
    )


def _notify_payment(invoice: Invoice, amount_cents: int, user_id: int | None) -> None:
    recipient = invoice.created_by_user_id or user_id
    if not recipient:
        return
    if invoice.status == STATUS_PAID:
        title = f"Invoice {invoice.invoice_number} paid in full"
    else:
        title = f"Payment received for invoice {invoice.invoice_number}"
    notify(
        user_id=recipient,
        type="payment",
        title=title,
        message=f"{amount_cents / 100:,.2f} received from {invoice.customer_name or 'customer'}. "
                f"Balance due: {invoice.balance_due_cents / 100:,.2f}",
        link=f"/invoices/{invoice.id}",
    )


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

def get_invoice_payments(company_id: int | None, invoice_id: int) -> list[InvoicePayment]:
    invoice_query = db.session.query(Invoice).filter(Invoice.id == invoice_id)
    if company_id is not None:
        invoice_query = invoice_query.filter(Invoice.company_id == company_id)
    if not invoice_query.first():
        raise PaymentInvoiceNotFoundError("Invoice not found")
    return (
        db.session.query(InvoicePayment)
        .filter(InvoicePayment.invoice_id == invoice_id)
        .order_by(InvoicePayment.id)
        .all()
    )
