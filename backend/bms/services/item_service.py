# Overview: Catalog item CRUD scoped to a company.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Item, InvoiceLine, SalesReceiptLine
from ..models.catalog import ITEM_TYPES
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_money, FieldErrors
from .activity_service import log_activity
from .tenant_service import get_owned, scope_query


class ItemError(Exception):
    """Raised for catalog item business-rule violations."""
    pass


class ItemNotFoundError(ItemError):
    pass


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "item_type",
        "name",
        "description",
        "selling_price_cents",
        "stock_quantity",
        "low_stock_threshold",
        "track_inventory",
        "is_active",
    },
    required_on_create={"name", "selling_price_cents"},
    choices={"item_type": ITEM_TYPES},
)


def _enforce_item_rules(patch: dict) -> None:
    enforce_rules_money(patch, "selling_price_cents")
    errors = FieldErrors()
    for key in ("stock_quantity", "low_stock_threshold"):
        if patch.get(key) is not None and patch[key] < 0:
            errors.add(key, f"{key} must be >= 0")
    errors.raise_if_any()


def get_item(company_id: int | None, item_id: int) -> Item:
    item = get_owned(Item, item_id, company_id)
    if not item:
        raise ItemNotFoundError("Item not found")
    return item


def list_items(
    company_id: int | None,
    *,
    search: str | None = None,
    item_type: str | None = None,
    active: bool | None = None,
    low_stock: bool = False,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Item], int]:
    query = scope_query(db.session.query(Item), Item, company_id)
    if item_type:
        query = query.filter(Item.item_type == item_type)
    if active is not None:
        query = query.filter(Item.is_active.is_(active))
    if low_stock:
        query = query.filter(Item.track_inventory.is_(True), Item.stock_quantity <= Item.low_stock_threshold)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Item.name.ilike(pattern), Item.description.ilike(pattern)))
    total = query.count()
    rows = query.order_by(Item.name.asc(), Item.id.asc()).offset((max(page, 1) - 1) * limit).limit(limit).all()
    return rows, total


def create_item(company_id: int, user_id: int, payload: dict) -> Item:
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
    _enforce_item_rules(patch)
    if patch.get("item_type") == "service":
        patch["track_inventory"] = False
    item = Item(company_id=company_id, created_by_user_id=user_id, **patch)
    db.session.add(item)
    db.session.commit()

    log_activity(action="item.created", company_id=company_id, user_id=user_id,
                 entity_type="item", entity_id=item.id)
    return item


def update_item(company_id: int, item_id: int, user_id: int, payload: dict) -> Item:
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=True)
    _enforce_item_rules(patch)
    item = get_item(company_id, item_id)
    for key, value in patch.items():
        setattr(item, key, value)
    if item.item_type == "service":
        item.track_inventory = False
    db.session.commit()

    log_activity(action="item.updated", company_id=company_id, user_id=user_id,
                 entity_type="item", entity_id=item.id, details={"fields": sorted(patch)})
    return item


def toggle_item_status(company_id: int, item_id: int, user_id: int) -> Item:
    item = get_item(company_id, item_id)
    item.is_active = not item.is_active
    db.session.commit()

    log_activity(action="item.activated" if item.is_active else "item.deactivated",
                 company_id=company_id, user_id=user_id, entity_type="item", entity_id=item.id)
    return item


def delete_item(company_id: int, item_id: int, user_id: int) -> None:
    """Hard delete; items already used on documents must be deactivated instead."""
    item = get_item(company_id, item_id)
    used = (
        db.session.query(InvoiceLine.id).filter_by(item_id=item.id).first()
        or db.session.query(SalesReceiptLine.id).filter_by(item_id=item.id).first()
    )
    if used:
        raise ItemError("Item is used on invoices or receipts; deactivate it instead")

    db.session.delete(item)
    db.session.commit()
    log_activity(action="item.deleted", company_id=company_id, user_id=user_id,
                 entity_type="item", entity_id=item_id)
