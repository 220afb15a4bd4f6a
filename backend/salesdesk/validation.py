from __future__ import annotations
from datetime import datetime
from salesdesk.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .money import MoneyError, to_cents


# Maximum amount: $99,999,999.99 (9,999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 9_999_999_999

# Ids and quantities: the portable INTEGER range (32-bit on PostgreSQL)
MAX_INTEGER = 2_147_483_647


class ValidationError(ValueError):
    """400-level input problem."""
    status_code = 400

    def to_dict(self) -> dict:
        return {"error": str(self), "details": {}}


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - money_fields: API field -> *_cents column; values arrive in currency
      units and are stored as integer cents
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    money_fields: dict[str, str] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                value = int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # An int by now (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            if abs(value) > MAX_INTEGER:
                raise ValidationError(f"{col.key} cannot exceed {MAX_INTEGER}")
            return value
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def parse_amount(value: Any, name: str, *, allow_zero: bool = True) -> int:
    """Currency amount in units (19.99) -> integer cents, rejecting negatives."""
    try:
        cents = to_cents(value)
    except MoneyError:
        raise ValidationError(f"{name} must be a number")
    if cents < 0 or (cents == 0 and not allow_zero):
        raise ValidationError(f"{name} must be {'>= 0' if allow_zero else '> 0'}")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{name} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
    return cents


def parse_int(value: Any, name: str, *, positive: bool = False, nonzero: bool = False) -> int:
    """Strict integer parsing for ids and quantities (no bools, no floats)."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, str):
        stripped = value.strip()
        digits = stripped[1:] if stripped.startswith("-") else stripped
        if not (digits.isascii() and digits.isdigit()):
            raise ValidationError(f"{name} must be an integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if abs(value) > MAX_INTEGER:
        raise ValidationError(f"{name} cannot exceed {MAX_INTEGER}")
    if positive and value <= 0:
        raise ValidationError(f"{name} must be > 0")
    if nonzero and value == 0:
        raise ValidationError(f"{name} must be non-zero")
    return value


def parse_date_param(value: Any, name: str):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    try:
        parsed = parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")
    if parsed is None:
        raise ValidationError(f"{name} must be an ISO-8601 date")
    return parsed


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
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by column name.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols and k not in policy.money_fields:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in policy.money_fields:
            column_key = policy.money_fields[k]
            if raw is None and not cols[column_key].nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[column_key] = None if raw is None else parse_amount(raw, k)
            continue

        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for key in ("stock_quantity", "min_stock_level"):
        if key in patch and patch[key] is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")


def enforce_rules_customer(patch: dict) -> None:
    email = patch.get("email")
    if email and "@" not in email:
        raise ValidationError("email must be a valid email address")


def clean_order_items(items: Any) -> list[dict]:
    """
    Order line items -> [{product_id, quantity, unit_price_cents}].

    quantity must be a positive integer and unit_price strictly positive.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    cleaned = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        for key in ("product_id", "quantity", "unit_price"):
            if key not in item:
                raise ValidationError(f"items[{index}].{key} is required")
        cleaned.append({
            "product_id": parse_int(item["product_id"], f"items[{index}].product_id", positive=True),
            "quantity": parse_int(item["quantity"], f"items[{index}].quantity", positive=True),
            "unit_price_cents": parse_amount(item["unit_price"], f"items[{index}].unit_price", allow_zero=False),
        })
    return cleaned


def parse_bool_param(value: Any, name: str, *, default: bool) -> bool:
    """Query-string flag: true/false (any case), 1/0; absent -> default."""
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in ("true", "1"):
        return True
    if normalized in ("false", "0"):
        return False
    raise ValidationError(f"{name} must be true or false")
