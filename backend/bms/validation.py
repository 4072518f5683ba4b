from __future__ import annotations
from datetime import date, datetime
from bms.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import Boolean, Date, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum amount: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """
    400-level input problem.

    Carries a list of {"field", "message"} dicts so clients can map errors
    back onto form fields. A bare string becomes a single field-less error.
    """

    def __init__(self, errors: str | list[dict], field: str | None = None):
        if isinstance(errors, str):
            errors = [{"field": field, "message": errors}]
        self.errors = list(errors)
        super().__init__("; ".join(e["message"] for e in self.errors))


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate email)."""


class FieldErrors:
    """Collects field-level problems so a payload reports all of them at once."""

    def __init__(self):
        self.errors: list[dict] = []

    def add(self, field: str | None, message: str) -> None:
        self.errors.append({"field": field, "message": message})

    def __bool__(self) -> bool:
        return bool(self.errors)

    def raise_if_any(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - choices: closed value sets for enum-like string columns
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    choices: dict[str, tuple[str, ...]] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


# =============================================================================
# Scalar parsers (used by routes for hand-shaped payloads)
# =============================================================================

def parse_int(value: Any, field: str, errors: FieldErrors, *, minimum: int | None = None,
              maximum: int | None = None, required: bool = True) -> int | None:
    """
    Strict integer parse: rejects floats, bools, decimals and scientific notation.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors.add(field, f"{field} is required")
        return None

    parsed = None
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        stripped = value.strip()
        if 'e' not in stripped.lower() and '.' not in stripped:
            try:
                parsed = int(stripped)
            except ValueError:
                parsed = None

    if parsed is None:
        errors.add(field, f"{field} must be an integer")
        return None
    if minimum is not None and parsed < minimum:
        errors.add(field, f"{field} must be >= {minimum}")
        return None
    if maximum is not None and parsed > maximum:
        errors.add(field, f"{field} cannot exceed {maximum}")
        return None
    return parsed


def parse_cents(value: Any, field: str, errors: FieldErrors, *, positive: bool = False,
                required: bool = True) -> int | None:
    """Money in integer cents; >= 0, or > 0 when positive=True."""
    cents = parse_int(value, field, errors, minimum=0, maximum=MAX_AMOUNT_CENTS, required=required)
    if cents is not None and positive and cents == 0:
        errors.add(field, f"{field} must be greater than 0")
        return None
    return cents


def parse_date(value: Any, field: str, errors: FieldErrors, *, required: bool = True) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors.add(field, f"{field} is required")
        return None
    if not isinstance(value, str):
        errors.add(field, f"{field} must be an ISO-8601 date")
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        errors.add(field, f"{field} must be an ISO-8601 date")
        return None


def parse_choice(value: Any, field: str, choices: Iterable[str], errors: FieldErrors, *,
                 required: bool = True, default: str | None = None) -> str | None:
    if value is None or value == "":
        if default is not None:
            return default
        if required:
            errors.add(field, f"{field} is required")
        return None
    allowed = tuple(choices)
    if value not in allowed:
        errors.add(field, f"{field} must be one of: {', '.join(allowed)}")
        return None
    return value


def parse_str(value: Any, field: str, errors: FieldErrors, *, required: bool = True,
              max_length: int | None = None) -> str | None:
    if value is None:
        if required:
            errors.add(field, f"{field} is required")
        return None
    text = str(value).strip()
    if not text:
        if required:
            errors.add(field, f"{field} cannot be blank")
        return None
    if max_length and len(text) > max_length:
        errors.add(field, f"{field} exceeds max length {max_length}")
        return None
    return text


# =============================================================================
# Column-driven payload validation
# =============================================================================

def _coerce_value(col, value: Any, errors: FieldErrors):
    coltype = col.type
    key = col.key

    if isinstance(coltype, Integer):
        return parse_int(value, key, errors)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        errors.add(key, f"{key} must be a boolean")
        return None

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                dt = None
            if dt is not None:
                return dt
        errors.add(key, f"{key} must be an ISO-8601 datetime")
        return None

    if isinstance(coltype, Date):
        return parse_date(value, key, errors)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields) and closed choices
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    Raises ValidationError listing every problem found.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors = FieldErrors()
    required = policy.required_on_create or set()
    choices = policy.choices or {}
    if not partial:
        for f in sorted(required):
            if f not in payload:
                errors.add(f, f"{f} is required")

    cols = _columns_by_key(model)

    patch: dict = {}

    for k, raw in payload.items():
        # Reject unknown / non-writable fields
        if k not in policy.writable_fields or k not in cols:
            errors.add(k, f"Field not allowed: {k}")
            continue
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                errors.add(k, f"{k} cannot be null")
            else:
                patch[k] = None
            continue

        before = len(errors.errors)
        val = _coerce_value(col, raw, errors)
        if len(errors.errors) != before:
            continue

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                errors.add(k, f"{k} cannot be blank")
                continue

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors.add(k, f"{k} exceeds max length {col.type.length}")
                continue

        if k in choices and val not in choices[k]:
            errors.add(k, f"{k} must be one of: {', '.join(choices[k])}")
            continue

        patch[k] = val

    errors.raise_if_any()
    return patch


def enforce_rules_money(patch: dict, *fields: str) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    errors = FieldErrors()
    for field in fields:
        value = patch.get(field)
        if value is None:
            continue
        if value < 0:
            errors.add(field, f"{field} must be >= 0")
        elif value > MAX_AMOUNT_CENTS:
            errors.add(field, f"{field} cannot exceed {MAX_AMOUNT_CENTS} (${MAX_AMOUNT_CENTS / 100:,.2f})")
    errors.raise_if_any()
