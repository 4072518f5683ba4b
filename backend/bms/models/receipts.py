from __future__ import annotations

from ..extensions import db
from bms.time_utils import to_utc_z, to_iso_date
from .invoices import PAYMENT_METHODS


RECEIPT_STATUSES = ("completed", "cancelled", "refunded")
RECEIPT_PAYMENT_METHODS = PAYMENT_METHODS


class SalesReceipt(db.Model):
    """
    Completed, fully paid sale (no balance-due workflow).

    MULTI-TENANT: sales_receipt_number is unique per company only. The
    compound constraint below is the sole uniqueness rule on that column;
    a single-column unique index would stop two companies from both issuing
    REC-00001 (see maintenance_service.ensure_tenant_number_indexes).
    """
    __tablename__ = "sales_receipts"
    __table_args__ = (
        db.UniqueConstraint("company_id", "sales_receipt_number", name="uq_sales_receipts_company_number"),
        db.Index("ix_sales_receipts_company_date", "company_id", "receipt_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    # Optional: walk-in sales have no customer
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    sales_receipt_number = db.Column(db.String(64), nullable=False)
    receipt_date = db.Column(db.Date, nullable=False)

    sub_total_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    payment_reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="completed", index=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("sales_receipts", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sales_receipts", lazy=True))
    lines = db.relationship(
        "SalesReceiptLine",
        backref="receipt",
        lazy=True,
        order_by="SalesReceiptLine.position",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "sales_receipt_number": self.sales_receipt_number,
            "receipt_date": to_iso_date(self.receipt_date),
            "sub_total_cents": self.sub_total_cents,
            "discount_cents": self.discount_cents,
            "tax_total_cents": self.tax_total_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "notes": self.notes,
            "status": self.status,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SalesReceiptLine(db.Model):
    __tablename__ = "sales_receipt_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_sales_receipt_lines_qty_positive"),
        db.CheckConstraint("rate_cents >= 0", name="ck_sales_receipt_lines_rate_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    receipt_id = db.Column(db.Integer, db.ForeignKey("sales_receipts.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    item_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    rate_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_cents = db.Column(db.Integer, nullable=False)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "position": self.position,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "rate_cents": self.rate_cents,
            "discount_cents": self.discount_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "amount_cents": self.amount_cents,
        }
