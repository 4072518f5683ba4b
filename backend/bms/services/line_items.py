# Overview: Line-item parsing and totals shared by invoices and sales receipts.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Item
from ..validation import FieldErrors, parse_cents, parse_int, parse_str


MAX_TAX_RATE_BPS = 10_000  # 100%


class LineItemError(Exception):
    """Raised when a line references an unusable catalog item."""
    pass


@dataclass(frozen=True)
class LineInput:
    item_id: int
    quantity: int
    rate_cents: int | None
    tax_rate_bps: int
    discount_cents: int
    description: str | None


@dataclass(frozen=True)
class PricedLine:
    item: Item
    position: int
    quantity: int
    rate_cents: int
    tax_rate_bps: int
    discount_cents: int
    tax_cents: int
    amount_cents: int
    description: str | None


def parse_line_inputs(raw, errors: FieldErrors, *, field: str = "lines",
                      allow_discount: bool = False) -> list[LineInput] | None:
    """Validate the client's line list; problems are reported as lines[i].key."""
    if not isinstance(raw, list) or not raw:
        errors.add(field, f"{field} must be a non-empty list")
        return None

    parsed: list[LineInput] = []
    for i, line in enumerate(raw):
        prefix = f"{field}[{i}]"
        if not isinstance(line, dict):
            errors.add(prefix, "Line must be an object")
            continue
        before = len(errors.errors)
        item_id = parse_int(line.get("item_id"), f"{prefix}.item_id", errors, minimum=1)
        quantity = parse_int(line.get("quantity", 1), f"{prefix}.quantity", errors, minimum=1)
        rate = parse_cents(line.get("rate_cents"), f"{prefix}.rate_cents", errors, required=False)
        tax_rate = parse_int(line.get("tax_rate_bps", 0), f"{prefix}.tax_rate_bps", errors,
                             minimum=0, maximum=MAX_TAX_RATE_BPS)
        discount = 0
        if allow_discount:
            discount = parse_cents(line.get("discount_cents", 0), f"{prefix}.discount_cents", errors)
        description = parse_str(line.get("description"), f"{prefix}.description", errors, required=False)
        if len(errors.errors) != before:
            continue
        parsed.append(LineInput(
            item_id=item_id,
            quantity=quantity,
            rate_cents=rate,
            tax_rate_bps=tax_rate or 0,
            discount_cents=discount or 0,
            description=description,
        ))
    return parsed


def compute_tax_cents(taxable_cents: int, tax_rate_bps: int) -> int:
    """Half-up rounding to the cent."""
    return (taxable_cents * tax_rate_bps + 5000) // 10000


def price_lines(company_id: int, lines: list[LineInput]) -> list[PricedLine]:
    """
    Resolve items within the company and compute per-line amounts.

    A missing rate defaults to the item's selling price. Inactive or foreign
    items are rejected.
    """
    item_ids = {line.item_id for line in lines}
    items = {
        item.id: item
        for item in db.session.query(Item).filter(Item.company_id == company_id, Item.id.in_(item_ids)).all()
    }

    priced: list[PricedLine] = []
    for position, line in enumerate(lines):
        item = items.get(line.item_id)
        if not item:
            raise LineItemError(f"Item {line.item_id} not found")
        if not item.is_active:
            raise LineItemError(f"Item {item.name!r} is inactive")
        rate = item.selling_price_cents if line.rate_cents is None else line.rate_cents
        gross = line.quantity * rate
        if line.discount_cents > gross:
            raise LineItemError(f"Discount on {item.name!r} exceeds the line amount")
        amount = gross - line.discount_cents
        priced.append(PricedLine(
            item=item,
            position=position,
            quantity=line.quantity,
            rate_cents=rate,
            tax_rate_bps=line.tax_rate_bps,
            discount_cents=line.discount_cents,
            tax_cents=compute_tax_cents(amount, line.tax_rate_bps),
            amount_cents=amount,
            description=line.description,
        ))
    return priced


def summarize(lines: list[PricedLine], *, discount_cents: int = 0, shipping_cents: int = 0) -> dict:
    """
    Document totals: total = sub_total + tax_total + shipping - discount.

    Raises LineItemError when the document-level discount exceeds the rest.
    """
    sub_total = sum(line.amount_cents for line in lines)
    tax_total = sum(line.tax_cents for line in lines)
    total = sub_total + tax_total + shipping_cents - discount_cents
    if total < 0:
        raise LineItemError("Discount cannot exceed the document total")
    return {
        "sub_total_cents": sub_total,
        "tax_total_cents": tax_total,
        "discount_cents": discount_cents,
        "shipping_cents": shipping_cents,
        "total_cents": total,
    }
