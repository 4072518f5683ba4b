# Overview: Pure invoice balance/status derivation and its write-path application.

"""
Invoice Balance/Status Derivation

WHY: Balance and status are functions of (total, amount paid, due date),
not independently editable fields. Keeping the rule in one pure function
makes it testable without a database and keeps control flow explicit:
every write path calls apply_invoice_state() right before it commits.

RULES (evaluated in order):
1. balance_due = total - amount_paid
2. balance_due <= 0            -> "paid"; paid_at set once, never overwritten
3. amount_paid > 0             -> "partially_paid"
4. today > due_date            -> "overdue"
5. otherwise                   -> status unchanged

Paid takes priority over overdue. "cancelled" is a manual terminal state:
its balance is recomputed but its status is never derived away.

A derived status that no longer holds (e.g. "overdue" after the due date
was pushed out) falls back to the last explicit state: "sent" if the
invoice was ever sent, otherwise "draft".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


STATUS_DRAFT = "draft"
STATUS_SENT = "sent"
STATUS_PAID = "paid"
STATUS_OVERDUE = "overdue"
STATUS_CANCELLED = "cancelled"
STATUS_PARTIALLY_PAID = "partially_paid"

DERIVED_STATUSES = frozenset({STATUS_PAID, STATUS_OVERDUE, STATUS_PARTIALLY_PAID})

# Invoices that still expect money
OPEN_STATUSES = (STATUS_SENT, STATUS_PARTIALLY_PAID, STATUS_OVERDUE)


@dataclass(frozen=True)
class InvoiceState:
    balance_due_cents: int
    status: str
    paid_at: datetime | None


def derive_invoice_state(
    *,
    total_cents: int,
    amount_paid_cents: int,
    due_date: date,
    status: str,
    now: datetime,
    paid_at: datetime | None = None,
    sent_at: datetime | None = None,
) -> InvoiceState:
    """Compute balance, status and paid_at. No I/O, no errors."""
    balance_due = total_cents - amount_paid_cents

    if status == STATUS_CANCELLED:
        return InvoiceState(balance_due, STATUS_CANCELLED, paid_at)

    if balance_due <= 0:
        return InvoiceState(balance_due, STATUS_PAID, paid_at or now)

    if amount_paid_cents > 0:
        return InvoiceState(balance_due, STATUS_PARTIALLY_PAID, paid_at)

    if now.date() > due_date:
        return InvoiceState(balance_due, STATUS_OVERDUE, paid_at)

    if status in DERIVED_STATUSES:
        status = STATUS_SENT if sent_at else STATUS_DRAFT
    return InvoiceState(balance_due, status, paid_at)


def apply_invoice_state(invoice, now: datetime) -> InvoiceState:
    """
    Run the derivation against an Invoice row and copy the result onto it.

    Does not flush or commit; persistence is the caller's job.
    """
    state = derive_invoice_state(
        total_cents=invoice.total_cents,
        amount_paid_cents=invoice.amount_paid_cents or 0,
        due_date=invoice.due_date,
        status=invoice.status,
        now=now,
        paid_at=invoice.paid_at,
        sent_at=invoice.sent_at,
    )
    invoice.balance_due_cents = state.balance_due_cents
    invoice.status = state.status
    invoice.paid_at = state.paid_at
    return state
