from __future__ import annotations

from ..extensions import db
from bms.time_utils import to_utc_z


SUBSCRIPTION_PLANS = ("free", "basic", "premium", "enterprise")
SUBSCRIPTION_STATUSES = ("trial", "active", "suspended", "cancelled")


class Company(db.Model):
    """
    Multi-tenant root: every tenant is a Company.

    WHY: Enables shared-database multi-tenancy with strict isolation.
    Customers, items, invoices, receipts, expenses and users belong to
    exactly one company. No data may cross company boundaries.

    DESIGN:
    - All tenant-owned tables carry company_id
    - Document numbers (invoices, receipts) are unique per company only
    - invoice_prefix / receipt_prefix drive the numbering service
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)

    # Settings
    currency = db.Column(db.String(8), nullable=False, default="USD")
    invoice_prefix = db.Column(db.String(16), nullable=False, default="INV")
    receipt_prefix = db.Column(db.String(16), nullable=False, default="REC")

    # Subscription
    subscription_plan = db.Column(db.String(32), nullable=False, default="free")
    subscription_status = db.Column(db.String(32), nullable=False, default="trial")
    max_users = db.Column(db.Integer, nullable=False, default=5)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "settings": {
                "currency": self.currency,
                "invoice_prefix": self.invoice_prefix,
                "receipt_prefix": self.receipt_prefix,
            },
            "subscription": {
                "plan": self.subscription_plan,
                "status": self.subscription_status,
                "max_users": self.max_users,
            },
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
