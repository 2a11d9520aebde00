from __future__ import annotations
from datetime import datetime
import re
from decimal import Decimal, ROUND_HALF_UP
from gestao.money import MAX_AMOUNT, quantize_money, to_decimal
from gestao.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from gestao.models import RECURRENCE_PERIODS

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate category name)."""


class NotFoundError(LookupError):
    """404-level: row is missing or belongs to another owner."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: accepted keys that are not columns (resolved by the service)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Numeric (money / quantities) - Decimal, never float
    if isinstance(coltype, Numeric):
        try:
            dec = to_decimal(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be a number")
        if abs(dec) > MAX_AMOUNT:
            raise ValidationError(f"{col.key} is out of range")
        # Rules must see the value the column will store
        if coltype.scale is not None:
            dec = dec.quantize(Decimal(1).scaleb(-coltype.scale), rounding=ROUND_HALF_UP)
        return dec

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false", "1", "0"}:
            return value.strip().lower() in {"true", "1"}
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
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a string")
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
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    Keys listed in policy.extra_fields are passed through untouched so the
    service can resolve them (e.g. a category given by name).
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    extra = policy.extra_fields or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k in extra:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in extra:
            patch[k] = raw
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

        # Blank optional strings are stored as NULL
        if isinstance(col.type, (String, Text)) and col.nullable and val == "":
            val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _require_non_negative(patch: dict, field: str) -> None:
    value = patch.get(field)
    if value is not None and value < 0:
        raise ValidationError(f"{field} must be >= 0")


def enforce_rules_product(patch: dict, current: dict | None = None) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.

    current holds the stored values on update so sale_price >= cost_price is
    checked against the merged state, not only when both are in the patch.
    """
    for field in ("cost_price", "sale_price", "stock_quantity", "min_stock_quantity"):
        _require_non_negative(patch, field)

    merged = dict(current or {})
    merged.update({k: v for k, v in patch.items() if k in ("cost_price", "sale_price")})
    cost = merged.get("cost_price")
    sale = merged.get("sale_price")
    if cost is not None and sale is not None and quantize_money(Decimal(sale)) < quantize_money(Decimal(cost)):
        raise ValidationError("sale_price cannot be lower than cost_price")


def enforce_rules_customer(patch: dict) -> None:
    email = patch.get("email")
    if email and not EMAIL_RE.match(email):
        raise ValidationError("email is invalid")


def enforce_rules_expense(patch: dict, current: dict | None = None) -> None:
    amount = patch.get("amount")
    if amount is not None and quantize_money(Decimal(amount)) <= 0:
        raise ValidationError("amount must be > 0")

    period = patch.get("recurrence_period")
    if period is not None and period not in RECURRENCE_PERIODS:
        raise ValidationError(
            f"recurrence_period must be one of: {', '.join(RECURRENCE_PERIODS)}"
        )

    merged = dict(current or {})
    merged.update(patch)
    if merged.get("is_recurring") and not merged.get("recurrence_period"):
        raise ValidationError("recurrence_period is required for recurring expenses")
