from __future__ import annotations

from ..extensions import db
from bms.time_utils import to_utc_z


ITEM_TYPES = ("goods", "service")


class Item(db.Model):
    """
    Catalog entry (goods or service) referenced by invoice and receipt lines.

    MULTI-TENANT: scoped to company_id.
    Prices are integer cents.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("selling_price_cents >= 0", name="ck_items_price_nonneg"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_items_stock_nonneg"),
        db.Index("ix_items_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    item_type = db.Column(db.String(16), nullable=False, default="goods")
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)
    track_inventory = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("items", lazy=True))

    @property
    def is_low_stock(self) -> bool:
        return bool(self.track_inventory and self.stock_quantity <= self.low_stock_threshold)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "item_type": self.item_type,
            "name": self.name,
            "description": self.description,
            "selling_price_cents": self.selling_price_cents,
            "stock_quantity": self.stock_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "track_inventory": self.track_inventory,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
