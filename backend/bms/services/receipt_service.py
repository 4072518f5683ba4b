# Overview: Sales receipts (completed, fully paid sales) with per-company numbering.

"""
Sales Receipt Service

WHY: Point-of-sale style sales are paid on the spot, so they skip the
invoice balance workflow entirely. They still need per-company sequential
numbers ("REC-00001") that may repeat across companies.

RULES:
- Customer is optional (walk-in sale)
- Receipts cannot reference invoices; invoice money goes through payments
- Cancelled and refunded receipts are locked
- Explicit numbers are uppercased; a duplicate inside the company is a 409
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Company, Customer, SalesReceipt, SalesReceiptLine
from ..models.receipts import RECEIPT_PAYMENT_METHODS, RECEIPT_STATUSES
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
from .line_items import LineItemError, parse_line_inputs, price_lines, summarize
from .numbering_service import DuplicateDocumentNumberError
from .reporting_service import invalidate_company_reports
from .tenant_service import get_owned, scope_query


logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_REFUNDED = "refunded"
LOCKED_STATUSES = (STATUS_CANCELLED, STATUS_REFUNDED)

_INVOICE_LINK_FIELDS = ("invoice_id", "invoice_ids", "linked_invoices")


class ReceiptError(Exception):
    """Raised for sales receipt business-rule violations."""
    pass


class ReceiptNotFoundError(ReceiptError):
    pass


def validate_receipt_payload(data: dict | None, *, partial: bool) -> dict:
    """Shape-check a sales receipt payload; raises ValidationError."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    errors = FieldErrors()
    clean: dict = {}

    for field in _INVOICE_LINK_FIELDS:
        if data.get(field):
            errors.add(field, "Sales receipts cannot be linked to invoices; record an invoice payment instead")

    def wanted(key: str) -> bool:
        return not partial or key in data

    if "customer_id" in data:
        clean["customer_id"] = parse_int(data.get("customer_id"), "customer_id", errors, minimum=1, required=False)
    if wanted("lines"):
        clean["lines"] = parse_line_inputs(data.get("lines"), errors, allow_discount=True)
    if wanted("receipt_date"):
        clean["receipt_date"] = parse_date(data.get("receipt_date"), "receipt_date", errors, required=False)
    if "sales_receipt_number" in data and data.get("sales_receipt_number") not in (None, ""):
        clean["sales_receipt_number"] = parse_str(
            data.get("sales_receipt_number"), "sales_receipt_number", errors, max_length=64
        )
    if wanted("payment_method"):
        clean["payment_method"] = parse_choice(
            data.get("payment_method"), "payment_method", RECEIPT_PAYMENT_METHODS, errors, default="cash"
        )
    if "discount_cents" in data or not partial:
        clean["discount_cents"] = parse_cents(data.get("discount_cents", 0), "discount_cents", errors)
    for key, max_length in (("payment_reference", 128), ("notes", None)):
        if key in data:
            clean[key] = parse_str(data.get(key), key, errors, required=False, max_length=max_length)
    if "status" in data:
        clean["status"] = parse_choice(data.get("status"), "status", RECEIPT_STATUSES, errors)

    errors.raise_if_any()
    return clean


def _receipt_number_taken(company_id: int, number: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(SalesReceipt.id).filter(
        SalesReceipt.company_id == company_id,
        SalesReceipt.sales_receipt_number == number,
    )
    if exclude_id is not None:
        query = query.filter(SalesReceipt.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _resolve_customer(company_id: int, customer_id: int | None) -> Customer | None:
    if customer_id is None:
        return None
    customer = get_owned(Customer, customer_id, company_id)
    if not customer:
        raise ReceiptError("Customer not found")
    return customer


def _price(company_id: int, line_inputs):
    try:
        return price_lines(company_id, line_inputs)
    except LineItemError as e:
        raise ReceiptError(str(e))


def _apply_lines(receipt: SalesReceipt, priced, discount_cents: int) -> None:
    try:
        totals = summarize(priced, discount_cents=discount_cents)
    except LineItemError as e:
        raise ReceiptError(str(e))
    receipt.lines.clear()
    for line in priced:
        receipt.lines.append(SalesReceiptLine(
            item_id=line.item.id,
            position=line.position,
            item_name=line.item.name,
            quantity=line.quantity,
            rate_cents=line.rate_cents,
            discount_cents=line.discount_cents,
            tax_rate_bps=line.tax_rate_bps,
            tax_cents=line.tax_cents,
            amount_cents=line.amount_cents,
        ))
    receipt.sub_total_cents = totals["sub_total_cents"]
    receipt.tax_total_cents = totals["tax_total_cents"]
    receipt.discount_cents = totals["discount_cents"]
    receipt.total_cents = totals["total_cents"]


def get_receipt(company_id: int | None, receipt_id: int) -> SalesReceipt:
    receipt = get_owned(SalesReceipt, receipt_id, company_id)
    if not receipt:
        raise ReceiptNotFoundError("Sales receipt not found")
    return receipt


def peek_next_receipt_number(company_id: int) -> str:
    company = db.session.get(Company, company_id)
    return numbering_service.peek_next_number(
        company_id=company_id,
        document_type=numbering_service.DOCUMENT_SALES_RECEIPT,
        prefix=company.receipt_prefix,
        is_taken=lambda n: _receipt_number_taken(company_id, n),
    )


def create_receipt(company_id: int, user_id: int, data: dict, now: datetime | None = None) -> SalesReceipt:
    """
    Create a completed sales receipt from a validated payload.

    Raises:
        ReceiptError: unknown customer/item, discount above total
        DuplicateDocumentNumberError: explicit number already used in company
    """
    now = now or utcnow()
    explicit_number = data.get("sales_receipt_number")
    if explicit_number is not None:
        explicit_number = numbering_service.normalize_number(explicit_number)
        if _receipt_number_taken(company_id, explicit_number):
            raise DuplicateDocumentNumberError(numbering_service.DOCUMENT_SALES_RECEIPT, explicit_number)

    def _build() -> SalesReceipt:
        customer = _resolve_customer(company_id, data.get("customer_id"))
        company = db.session.get(Company, company_id)
        priced = _price(company_id, data["lines"])

        number = explicit_number or numbering_service.next_document_number(
            company_id=company_id,
            document_type=numbering_service.DOCUMENT_SALES_RECEIPT,
            prefix=company.receipt_prefix,
            is_taken=lambda n: _receipt_number_taken(company_id, n),
        )

        receipt = SalesReceipt(
            company_id=company_id,
            customer_id=customer.id if customer else None,
            customer_name=customer.full_name if customer else None,
            sales_receipt_number=number,
            receipt_date=data.get("receipt_date") or now.date(),
            payment_method=data.get("payment_method") or "cash",
            payment_reference=data.get("payment_reference"),
            notes=data.get("notes"),
            status=STATUS_COMPLETED,
            created_by_user_id=user_id,
        )
        _apply_lines(receipt, priced, data.get("discount_cents") or 0)
        db.session.add(receipt)
        return receipt

    try:
        receipt = numbering_service.create_with_allocated_number(
            _build,
            document_type=numbering_service.DOCUMENT_SALES_RECEIPT,
            number_column="sales_receipt_number",
            explicit_number=explicit_number,
        )
    except Exception:
        db.session.rollback()
        raise

    logger.info("Created sales receipt %s (company %s)", receipt.sales_receipt_number, company_id)
    invalidate_company_reports(company_id)
    log_activity(
        action="receipt.created",
        company_id=company_id,
        user_id=user_id,
        entity_type="sales_receipt",
        entity_id=receipt.id,
        details={"sales_receipt_number": receipt.sales_receipt_number, "total_cents": receipt.total_cents},
    )
    return receipt


def update_receipt(company_id: int, receipt_id: int, user_id: int, data: dict,
                   now: datetime | None = None) -> SalesReceipt:
    """Edit a completed receipt; cancelled/refunded receipts are locked."""
    now = now or utcnow()
    try:
        receipt = get_receipt(company_id, receipt_id)
        if receipt.status in LOCKED_STATUSES:
            raise ReceiptError(f"Cannot edit a {receipt.status} receipt")

        if data.get("sales_receipt_number"):
            number = numbering_service.normalize_number(data["sales_receipt_number"])
            if number != receipt.sales_receipt_number:
                if _receipt_number_taken(company_id, number, exclude_id=receipt.id):
                    raise DuplicateDocumentNumberError(numbering_service.DOCUMENT_SALES_RECEIPT, number)
                receipt.sales_receipt_number = number

        if "customer_id" in data:
            customer = _resolve_customer(company_id, data["customer_id"])
            receipt.customer_id = customer.id if customer else None
            receipt.customer_name = customer.full_name if customer else None

        for key in ("receipt_date", "payment_method", "payment_reference", "notes"):
            if key in data and (data[key] is not None or key in ("payment_reference", "notes")):
                setattr(receipt, key, data[key])

        if "lines" in data:
            priced = _price(company_id, data["lines"])
            discount = data["discount_cents"] if data.get("discount_cents") is not None else receipt.discount_cents
            _apply_lines(receipt, priced, discount)
        elif data.get("discount_cents") is not None:
            total = receipt.sub_total_cents + receipt.tax_total_cents - data["discount_cents"]
            if total < 0:
                raise ReceiptError("Discount cannot exceed the document total")
            receipt.discount_cents = data["discount_cents"]
            receipt.total_cents = total

        if data.get("status") in LOCKED_STATUSES:
            receipt.status = data["status"]
            receipt.cancelled_at = now

        numbering_service.commit_or_duplicate(
            document_type=numbering_service.DOCUMENT_SALES_RECEIPT,
            number_column="sales_receipt_number",
            number=receipt.sales_receipt_number,
        )
    except Exception:
        db.session.rollback()
        raise

    invalidate_company_reports(company_id)
    log_activity(
        action="receipt.updated",
        company_id=company_id,
        user_id=user_id,
        entity_type="sales_receipt",
        entity_id=receipt.id,
    )
    return receipt


def cancel_receipt(company_id: int, receipt_id: int, user_id: int, now: datetime | None = None) -> SalesReceipt:
    receipt = get_receipt(company_id, receipt_id)
    if receipt.status in LOCKED_STATUSES:
        raise ReceiptError(f"Receipt is already {receipt.status}")
    receipt.status = STATUS_CANCELLED
    receipt.cancelled_at = now or utcnow()
    db.session.commit()

    invalidate_company_reports(company_id)
    log_activity(
        action="receipt.cancelled",
        company_id=company_id,
        user_id=user_id,
        entity_type="sales_receipt",
        entity_id=receipt.id,
    )
    return receipt


def delete_receipt(company_id: int, receipt_id: int, user_id: int) -> None:
    receipt = get_receipt(company_id, receipt_id)
    number = receipt.sales_receipt_number
    db.session.delete(receipt)
    db.session.commit()

    invalidate_company_reports(company_id)
    log_activity(
        action="receipt.deleted",
        company_id=company_id,
        user_id=user_id,
        entity_type="sales_receipt",
        entity_id=receipt_id,
        details={"sales_receipt_number": number},
    )


def list_receipts(
    company_id: int | None,
    *,
    status: str | None = None,
    customer_id: int | None = None,
    payment_method: str | None = None,
    search: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[SalesReceipt], int]:
    query = scope_query(db.session.query(SalesReceipt), SalesReceipt, company_id)
    if status:
        query = query.filter(SalesReceipt.status == status)
    if customer_id:
        query = query.filter(SalesReceipt.customer_id == customer_id)
    if payment_method:
        query = query.filter(SalesReceipt.payment_method == payment_method)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            SalesReceipt.sales_receipt_number.ilike(pattern),
            SalesReceipt.customer_name.ilike(pattern),
        ))
    if from_date:
        query = query.filter(SalesReceipt.receipt_date >= from_date)
    if to_date:
        query = query.filter(SalesReceipt.receipt_date <= to_date)

    total = query.count()
    page = max(page, 1)
    rows = (
        query.order_by(SalesReceipt.receipt_date.desc(), SalesReceipt.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def get_receipt_stats(company_id: int | None, *, from_date: date | None = None, to_date: date | None = None) -> dict:
    """Completed-receipt totals, overall and per payment method."""
    query = scope_query(db.session.query(SalesReceipt), SalesReceipt, company_id).filter(
        SalesReceipt.status == STATUS_COMPLETED
    )
    if from_date:
        query = query.filter(SalesReceipt.receipt_date >= from_date)
    if to_date:
        query = query.filter(SalesReceipt.receipt_date <= to_date)

    rows = (
        query.with_entities(
            SalesReceipt.payment_method,
            func.count(SalesReceipt.id),
            func.coalesce(func.sum(SalesReceipt.total_cents), 0),
        )
        .group_by(SalesReceipt.payment_method)
        .all()
    )
    by_method = {
        method: {"count": int(count), "total_cents": int(total)}
        for method, count, total in rows
    }
    total_count = sum(m["count"] for m in by_method.values())
    total_cents = sum(m["total_cents"] for m in by_method.values())
    return {
        "total_count": total_count,
        "total_sales_cents": total_cents,
        "average_sale_cents": total_cents // total_count if total_count else 0,
        "by_payment_method": by_method,
    }
