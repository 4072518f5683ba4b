from __future__ import annotations

from ..extensions import db
from bms.time_utils import to_utc_z, to_iso_date


INVOICE_STATUSES = ("draft", "sent", "paid", "overdue", "cancelled", "partially_paid")
PAYMENT_METHODS = ("cash", "credit_card", "bank_transfer", "cheque", "online", "other")


class Invoice(db.Model):
    """
    Customer invoice with a balance-due workflow.

    WHY: Invoices are documents with a lifecycle (draft -> sent -> paid),
    not just totals. Balance and status are derived from total, amount paid
    and due date by bms.services.invoice_lifecycle on every write.

    INVARIANTS:
    - balance_due_cents == total_cents - amount_paid_cents
    - amount_paid_cents == sum(payments.amount_cents) and never exceeds total
    - invoice_number is uppercase and unique per company, not globally
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("company_id", "invoice_number", name="uq_invoices_company_number"),
        db.CheckConstraint("amount_paid_cents >= 0", name="ck_invoices_paid_nonneg"),
        db.CheckConstraint("amount_paid_cents <= total_cents", name="ck_invoices_paid_le_total"),
        db.CheckConstraint("total_cents >= 0", name="ck_invoices_total_nonneg"),
        db.Index("ix_invoices_company_status_due", "company_id", "status", "due_date"),
        db.Index("ix_invoices_customer", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    # Human-readable document number (e.g., "INV-00001")
    invoice_number = db.Column(db.String(64), nullable=False)

    invoice_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    terms = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Customer snapshot at creation time
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)

    # Totals (all amounts in cents)
    sub_total_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_due_cents = db.Column(db.Integer, nullable=False, default=0)

    # Lifecycle status
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # User attribution
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    company = db.relationship("Company", backref=db.backref("invoices", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        order_by="InvoiceLine.position",
        cascade="all, delete-orphan",
    )
    payments = db.relationship(
        "InvoicePayment",
        backref="invoice",
        lazy=True,
        order_by="InvoicePayment.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "invoice_number": self.invoice_number,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "terms": self.terms,
            "notes": self.notes,
            "sub_total_cents": self.sub_total_cents,
            "discount_cents": self.discount_cents,
            "shipping_cents": self.shipping_cents,
            "tax_total_cents": self.tax_total_cents,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "status": self.status,
            "sent_at": to_utc_z(self.sent_at) if self.sent_at else None,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "created_by_user_id": self.created_by_user_id,
            "updated_by_user_id": self.updated_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class InvoiceLine(db.Model):
    """
    Line item on an invoice.

    amount_cents = quantity * rate_cents; tax_cents derives from tax_rate_bps.
    item_name is snapshotted so renaming a catalog item does not rewrite history.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_invoice_lines_qty_positive"),
        db.CheckConstraint("rate_cents >= 0", name="ck_invoice_lines_rate_nonneg"),
        db.CheckConstraint("tax_cents >= 0", name="ck_invoice_lines_tax_nonneg"),
        db.CheckConstraint("amount_cents >= 0", name="ck_invoice_lines_amount_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    item_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    rate_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)  # Basis points (e.g., 825 = 8.25%)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_cents = db.Column(db.Integer, nullable=False)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "position": self.position,
            "item_name": self.item_name,
            "description": self.description,
            "quantity": self.quantity,
            "rate_cents": self.rate_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "amount_cents": self.amount_cents,
        }


class InvoicePayment(db.Model):
    """
    Payment applied to an invoice.

    APPEND-ONLY: Invoice.amount_paid_cents is the sum of these rows.
    idempotency_key lets clients safely resubmit the same payment.
    """
    __tablename__ = "invoice_payments"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "idempotency_key", name="uq_invoice_payments_idempotency"),
        db.CheckConstraint("amount_cents > 0", name="ck_invoice_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False, default="cash")
    payment_date = db.Column(db.Date, nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    note = db.Column(db.Text, nullable=True)
    idempotency_key = db.Column(db.String(128), nullable=True)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "payment_date": to_iso_date(self.payment_date),
            "reference": self.reference,
            "note": self.note,
            "recorded_by_user_id": self.recorded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
