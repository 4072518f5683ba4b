from __future__ import annotations

from ..extensions import db
from bms.time_utils import to_utc_z, to_iso_date


EXPENSE_STATUSES = ("pending", "approved", "rejected", "paid")
EXPENSE_CATEGORIES = (
    "rent",
    "utilities",
    "salaries",
    "supplies",
    "marketing",
    "travel",
    "maintenance",
    "insurance",
    "taxes",
    "other",
)

# Allowed status moves; "paid" and "rejected" are terminal.
EXPENSE_TRANSITIONS = {
    "pending": ("approved", "rejected"),
    "approved": ("paid", "rejected"),
    "rejected": (),
    "paid": (),
}


class Expense(db.Model):
    """
    Business expense with an approval workflow.

    Only "paid" expenses count against profit in reports.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="ck_expenses_amount_nonneg"),
        db.Index("ix_expenses_company_status_date", "company_id", "status", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    expense_date = db.Column(db.Date, nullable=False)
    category = db.Column(db.String(32), nullable=False, default="other")
    vendor = db.Column(db.String(255), nullable=True)
    payment_method = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("expenses", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "title": self.title,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "expense_date": to_iso_date(self.expense_date),
            "category": self.category,
            "vendor": self.vendor,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "status": self.status,
            "approved_by_user_id": self.approved_by_user_id,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
