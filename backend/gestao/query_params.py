# Overview: Query-string parsing shared by list endpoints.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import request

from gestao.money import to_decimal
from gestao.time_utils import end_of_day, parse_iso_date, parse_iso_datetime
from gestao.validation import ValidationError


def page_args() -> tuple[int | None, int | None]:
    """
    (page, per_page) from `page` and `limit` (or `per_page`).

    No page means "return everything".
    """
    page = request.args.get("page", type=int)
    per_page = request.args.get("limit", type=int)
    if per_page is None:
        per_page = request.args.get("per_page", type=int)
    return page, per_page


def int_list(name: str) -> list[int] | None:
    """`?ids=1,2,3` or `?ids=1&ids=2`; None when absent."""
    raw = request.args.getlist(name)
    if not raw:
        return None
    values = []
    for chunk in raw:
        for part in chunk.split(","):
            part = part.strip()
            if not part:
                continue
            if not part.isdigit():
                raise ValidationError(f"{name} must be a list of integer ids")
            values.append(int(part))
    return values or None


def bool_arg(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    value = raw.strip().lower()
    if value in {"true", "1", "yes"}:
        return True
    if value in {"false", "0", "no"}:
        return False
    raise ValidationError(f"{name} must be true or false")


def decimal_arg(name: str) -> Decimal | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return to_decimal(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number")


def date_bound(name: str, *, end: bool = False) -> datetime | None:
    """
    Inclusive date filter bound.

    A plain date (YYYY-MM-DD) used as an end bound covers the whole day.
    """
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    raw = raw.strip()
    try:
        if len(raw) == 10:
            day = parse_iso_date(raw)
            return end_of_day(day) if end else datetime(day.year, day.month, day.day)
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")


def bulk_ids(payload) -> list[int]:
    """`{"ids": [...]}` body of the bulk-delete endpoints."""
    if not isinstance(payload, dict) or not isinstance(payload.get("ids"), list):
        raise ValidationError("ids must be a list")
    ids = []
    for value in payload["ids"]:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("ids must contain integers")
        ids.append(value)
    return ids
