from __future__ import annotations

from ..extensions import db
from bms.time_utils import to_utc_z


class DocumentCounter(db.Model):
    """
    Atomic per-company document counters.

    WHY: Invoice and receipt numbers increase monotonically within a company
    and are allowed to repeat across companies.
    """
    __tablename__ = "document_counters"
    __table_args__ = (
        db.UniqueConstraint("company_id", "document_type", name="uq_document_counters_company_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("document_counters", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
