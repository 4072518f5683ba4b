# Overview: Expense CRUD and approval workflow.

"""
Expense Service

Status workflow: pending -> approved -> paid, with rejected reachable from
pending or approved. Moving an expense through that workflow needs the
approve_expense permission (enforced by the route). Only paid expenses
count in reports.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Expense
from ..models.expenses import EXPENSE_CATEGORIES, EXPENSE_STATUSES, EXPENSE_TRANSITIONS
from ..models.invoices import PAYMENT_METHODS
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_money
from bms.time_utils import utcnow
from .activity_service import log_activity
from .reporting_service import invalidate_company_reports
from .tenant_service import get_owned, scope_query


class ExpenseError(Exception):
    """Raised for expense business-rule violations."""
    pass


class ExpenseNotFoundError(ExpenseError):
    pass


EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={
        "title",
        "description",
        "amount_cents",
        "expense_date",
        "category",
        "vendor",
        "payment_method",
        "notes",
    },
    required_on_create={"title", "amount_cents", "expense_date"},
    choices={"category": EXPENSE_CATEGORIES, "payment_method": PAYMENT_METHODS},
)


def get_expense(company_id: int | None, expense_id: int) -> Expense:
    expense = get_owned(Expense, expense_id, company_id)
    if not expense:
        raise ExpenseNotFoundError("Expense not found")
    return expense


def list_expenses(
    company_id: int | None,
    *,
    status: str | None = None,
    category: str | None = None,
    search: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Expense], int]:
    query = scope_query(db.session.query(Expense), Expense, company_id)
    if status:
        query = query.filter(Expense.status == status)
    if category:
        query = query.filter(Expense.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Expense.title.ilike(pattern), Expense.vendor.ilike(pattern)))
    if from_date:
        query = query.filter(Expense.expense_date >= from_date)
    if to_date:
        query = query.filter(Expense.expense_date <= to_date)
    total = query.count()
    rows = (
        query.order_by(Expense.expense_date.desc(), Expense.id.desc())
        .offset((max(page, 1) - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def create_expense(company_id: int, user_id: int, payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_money(patch, "amount_cents")
    expense = Expense(company_id=company_id, created_by_user_id=user_id, status="pending", **patch)
    db.session.add(expense)
    db.session.commit()

    invalidate_company_reports(company_id)
    log_activity(action="expense.created", company_id=company_id, user_id=user_id,
                 entity_type="expense", entity_id=expense.id)
    return expense


def update_expense(company_id: int, expense_id: int, user_id: int, payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    enforce_rules_money(patch, "amount_cents")
    expense = get_expense(company_id, expense_id)
    if expense.status in ("paid", "rejected"):
        raise ExpenseError(f"Cannot edit a {expense.status} expense")
    for key, value in patch.items():
        setattr(expense, key, value)
    db.session.commit()

    invalidate_company_reports(company_id)
    log_activity(action="expense.updated", company_id=company_id, user_id=user_id,
                 entity_type="expense", entity_id=expense.id, details={"fields": sorted(patch)})
    return expense


def change_expense_status(company_id: int, expense_id: int, user_id: int, status: str,
                          now: datetime | None = None) -> Expense:
    """Move an expense along the approval workflow."""
    if status not in EXPENSE_STATUSES:
        raise ExpenseError(f"status must be one of: {', '.join(EXPENSE_STATUSES)}")
    expense = get_expense(company_id, expense_id)
    if status not in EXPENSE_TRANSITIONS[expense.status]:
        raise ExpenseError(f"Cannot move expense from {expense.status} to {status}")

    previous = expense.status
    expense.status = status
    if status == "approved":
        expense.approved_by_user_id = user_id
        expense.approved_at = now or utcnow()
    db.session.commit()

    invalidate_company_reports(company_id)
    log_activity(action=f"expense.{status}", company_id=company_id, user_id=user_id,
                 entity_type="expense", entity_id=expense.id, details={"from": previous, "to": status})
    return expense


def delete_expense(company_id: int, expense_id: int, user_id: int) -> None:
    expense = get_expense(company_id, expense_id)
    db.session.delete(expense)
    db.session.commit()

    invalidate_company_reports(company_id)
    log_activity(action="expense.deleted", company_id=company_id, user_id=user_id,
                 entity_type="expense", entity_id=expense_id)


def expense_summary(company_id: int | None) -> dict:
    rows = scope_query(
        db.session.query(Expense.status, func.count(Expense.id), func.coalesce(func.sum(Expense.amount_cents), 0)),
        Expense,
        company_id,
    ).group_by(Expense.status).all()
    by_status = {status: {"count": int(c), "total_cents": int(t)} for status, c, t in rows}
    return {
        "by_status": {s: by_status.get(s, {"count": 0, "total_cents": 0}) for s in EXPENSE_STATUSES},
        "total_count": sum(v["count"] for v in by_status.values()),
    }
