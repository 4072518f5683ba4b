# Overview: Service-layer operations for reporting; dashboard, P&L, status mix and aging.

from __future__ import annotations

import logging
from datetime import date

from flask import current_app
from sqlalchemy import func

from bms.cache import get_cache
from bms.extensions import db
from bms.models import Customer, Expense, Invoice, InvoicePayment, Item, SalesReceipt
from bms.services.invoice_lifecycle import OPEN_STATUSES, STATUS_CANCELLED, STATUS_DRAFT, STATUS_OVERDUE
from bms.time_utils import utcnow, utctoday, to_utc_z, to_iso_date


logger = logging.getLogger(__name__)

# Invoice statuses that never count as revenue
_NON_REVENUE_STATUSES = (STATUS_DRAFT, STATUS_CANCELLED)

AGING_BUCKETS = (
    ("current", None, 0),
    ("1_30", 1, 30),
    ("31_60", 31, 60),
    ("61_90", 61, 90),
    ("over_90", 91, None),
)


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _dashboard_key(company_id: int | None) -> str:
    return f"reports:dashboard:{company_id if company_id is not None else 'all'}"


def invalidate_company_reports(company_id: int | None) -> None:
    """Drop cached reports for a company (and the platform-wide rollup)."""
    cache = get_cache()
    cache.delete(_dashboard_key(company_id))
    cache.delete(_dashboard_key(None))


def _scoped(query, model, company_id: int | None):
    if company_id is None:
        return query
    return query.filter(model.company_id == company_id)


def _validate_range(from_date: date | None, to_date: date | None) -> None:
    if from_date and to_date and from_date > to_date:
        raise ReportError("from_date must be on or before to_date")


# =============================================================================
# DASHBOARD
# =============================================================================

def _invoice_revenue_cents(company_id: int | None) -> int:
    query = db.session.query(func.coalesce(func.sum(Invoice.amount_paid_cents), 0)).filter(
        Invoice.status.notin_(_NON_REVENUE_STATUSES)
    )
    return int(_scoped(query, Invoice, company_id).scalar())


def _receipt_revenue_cents(company_id: int | None, from_date=None, to_date=None) -> int:
    query = db.session.query(func.coalesce(func.sum(SalesReceipt.total_cents), 0)).filter(
        SalesReceipt.status == "completed"
    )
    if from_date:
        query = query.filter(SalesReceipt.receipt_date >= from_date)
    if to_date:
        query = query.filter(SalesReceipt.receipt_date <= to_date)
    return int(_scoped(query, SalesReceipt, company_id).scalar())


def _paid_expenses_cents(company_id: int | None, from_date=None, to_date=None) -> int:
    query = db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0)).filter(
        Expense.status == "paid"
    )
    if from_date:
        query = query.filter(Expense.expense_date >= from_date)
    if to_date:
        query = query.filter(Expense.expense_date <= to_date)
    return int(_scoped(query, Expense, company_id).scalar())


def build_dashboard(company_id: int | None) -> dict:
    """Uncached dashboard numbers."""
    invoice_revenue = _invoice_revenue_cents(company_id)
    receipt_revenue = _receipt_revenue_cents(company_id)
    revenue = invoice_revenue + receipt_revenue
    expenses = _paid_expenses_cents(company_id)

    invoices = _scoped(db.session.query(Invoice), Invoice, company_id)
    customers = _scoped(db.session.query(Customer), Customer, company_id)
    items = _scoped(db.session.query(Item), Item, company_id)

    outstanding = invoices.filter(Invoice.status.in_(OPEN_STATUSES)).with_entities(
        func.coalesce(func.sum(Invoice.balance_due_cents), 0)
    ).scalar()

    low_stock = items.filter(
        Item.is_active.is_(True),
        Item.track_inventory.is_(True),
        Item.stock_quantity <= Item.low_stock_threshold,
    ).count()

    return {
        "revenue_cents": revenue,
        "invoice_revenue_cents": invoice_revenue,
        "receipt_revenue_cents": receipt_revenue,
        "expenses_cents": expenses,
        "profit_cents": revenue - expenses,
        "outstanding_cents": int(outstanding),
        "invoice_count": invoices.count(),
        "unpaid_invoice_count": invoices.filter(Invoice.status.in_(OPEN_STATUSES)).count(),
        "overdue_invoice_count": invoices.filter(Invoice.status == STATUS_OVERDUE).count(),
        "customer_count": customers.count(),
        "active_customer_count": customers.filter(Customer.status == "active").count(),
        "item_count": items.count(),
        "low_stock_item_count": low_stock,
        "generated_at": to_utc_z(utcnow()),
    }


def get_dashboard(company_id: int | None) -> dict:
    """
    Dashboard overview, cached per company for REPORT_CACHE_TTL seconds.

    Writes to invoices, receipts and expenses invalidate the entry.
    """
    cache = get_cache()
    key = _dashboard_key(company_id)
    cached = cache.get(key)
    if cached is not None:
        return {**cached, "cached": True}

    data = build_dashboard(company_id)
    cache.set(key, data, ttl=current_app.config.get("REPORT_CACHE_TTL", 60))
    return {**data, "cached": False}


# =============================================================================
# PROFIT & LOSS
# =============================================================================

def profit_and_loss(company_id: int | None, *, from_date: date | None = None, to_date: date | None = None) -> dict:
    """
    Revenue (invoice payments received + completed receipts) against paid
    expenses over an optional date range.
    """
    _validate_range(from_date, to_date)

    payments = db.session.query(func.coalesce(func.sum(InvoicePayment.amount_cents), 0)).join(
        Invoice, Invoice.id == InvoicePayment.invoice_id
    ).filter(Invoice.status.notin_(_NON_REVENUE_STATUSES))
    if company_id is not None:
        payments = payments.filter(InvoicePayment.company_id == company_id)
    if from_date:
        payments = payments.filter(InvoicePayment.payment_date >= from_date)
    if to_date:
        payments = payments.filter(InvoicePayment.payment_date <= to_date)
    invoice_revenue = int(payments.scalar())

    receipt_revenue = _receipt_revenue_cents(company_id, from_date, to_date)
    revenue = invoice_revenue + receipt_revenue
    expenses = _paid_expenses_cents(company_id, from_date, to_date)

    by_category = _scoped(
        db.session.query(Expense.category, func.coalesce(func.sum(Expense.amount_cents), 0)),
        Expense,
        company_id,
    ).filter(Expense.status == "paid")
    if from_date:
        by_category = by_category.filter(Expense.expense_date >= from_date)
    if to_date:
        by_category = by_category.filter(Expense.expense_date <= to_date)

    profit = revenue - expenses
    return {
        "from_date": to_iso_date(from_date),
        "to_date": to_iso_date(to_date),
        "revenue_cents": revenue,
        "invoice_revenue_cents": invoice_revenue,
        "receipt_revenue_cents": receipt_revenue,
        "expenses_cents": expenses,
        "expenses_by_category": {
            category: int(total) for category, total in by_category.group_by(Expense.category).all()
        },
        "profit_cents": profit,
        "profit_margin_pct": round(profit * 100 / revenue, 2) if revenue else 0.0,
    }


# =============================================================================
# INVOICE STATUS DISTRIBUTION
# =============================================================================

def invoice_status_distribution(company_id: int | None) -> list[dict]:
    """Count and value per status; cancelled invoices are left out."""
    rows = _scoped(
        db.session.query(
            Invoice.status,
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.total_cents), 0),
        ),
        Invoice,
        company_id,
    ).filter(Invoice.status != STATUS_CANCELLED).group_by(Invoice.status).all()

    return sorted(
        (
            {"status": status, "count": int(count), "total_cents": int(total)}
            for status, count, total in rows
        ),
        key=lambda r: r["status"],
    )


# =============================================================================
# AGING
# =============================================================================

def _bucket_for(days_overdue: int) -> str:
    for name, low, high in AGING_BUCKETS:
        if (low is None or days_overdue >= low) and (high is None or days_overdue <= high):
            return name
    return AGING_BUCKETS[-1][0]


def aging_report(company_id: int | None, *, as_of: date | None = None) -> dict:
    """
    Open invoices with a balance, oldest due date first, bucketed by days
    past due as of the given date.
    """
    as_of = as_of or utctoday()
    invoices = _scoped(db.session.query(Invoice), Invoice, company_id).filter(
        Invoice.status.in_(OPEN_STATUSES),
        Invoice.balance_due_cents > 0,
    ).order_by(Invoice.due_date.asc(), Invoice.id.asc()).all()

    buckets = {name: {"count": 0, "balance_cents": 0} for name, _, _ in AGING_BUCKETS}
    rows = []
    for invoice in invoices:
        days_overdue = max((as_of - invoice.due_date).days, 0)
        bucket = _bucket_for(days_overdue)
        buckets[bucket]["count"] += 1
        buckets[bucket]["balance_cents"] += invoice.balance_due_cents
        rows.append({
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "customer_id": invoice.customer_id,
            "customer_name": invoice.customer_name,
            "due_date": to_iso_date(invoice.due_date),
            "status": invoice.status,
            "balance_due_cents": invoice.balance_due_cents,
            "days_overdue": days_overdue,
            "bucket": bucket,
        })

    return {
        "as_of": to_iso_date(as_of),
        "invoices": rows,
        "buckets": buckets,
        "total_outstanding_cents": sum(r["balance_due_cents"] for r in rows),
    }
