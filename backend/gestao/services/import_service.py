# Overview: Bulk product import from CSV; category names are resolved to owner categories.

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, IO

from ..extensions import db
from ..models import Product
from ..validation import ValidationError, enforce_rules_product
from gestao.money import MAX_AMOUNT, quantize_money, quantize_qty, to_decimal
from .category_service import find_category_by_name, resolve_category_reference

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = (
    "name",
    "description",
    "category",
    "cost_price",
    "sale_price",
    "stock_quantity",
    "min_stock_quantity",
)
REQUIRED_COLUMNS = {"name"}


class ImportError(ValueError):
    """Raised when the file itself cannot be imported."""


@dataclass
class ImportReport:
    created: int = 0
    categories_created: list[str] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "categories_created": list(self.categories_created),
            "errors": list(self.errors),
            "dry_run": self.dry_run,
        }


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _to_number(row: dict, column: str, *, money: bool) -> Decimal | None:
    text = _to_text(row.get(column))
    if text is None:
        return None
    try:
        value = to_decimal(text)
    except ValueError:
        raise ValidationError(f"{column} must be a number")
    if abs(value) > MAX_AMOUNT:
        raise ValidationError(f"{column} is out of range")
    return quantize_money(value) if money else quantize_qty(value)


def _normalize_row(row: dict) -> dict:
    name = _to_text(row.get("name"))
    if not name:
        raise ValidationError("name is required")
    if len(name) > 255:
        raise ValidationError("name exceeds max length 255")

    patch = {
        "name": name,
        "description": _to_text(row.get("description")),
        "cost_price": _to_number(row, "cost_price", money=True) or Decimal("0.00"),
        "sale_price": _to_number(row, "sale_price", money=True) or Decimal("0.00"),
        "stock_quantity": _to_number(row, "stock_quantity", money=False) or Decimal("0.000"),
        "min_stock_quantity": _to_number(row, "min_stock_quantity", money=False),
    }
    enforce_rules_product(patch)
    return patch


def import_products(stream: IO[str], *, user_id: int, dry_run: bool = False) -> ImportReport:
    """
    Create products from a CSV stream with a header row.

    Every row is validated; rows with errors are reported and skipped. In
    dry-run mode nothing is committed, including categories that would have
    been created.
    """
    reader = csv.DictReader(stream)
    if not reader.fieldnames:
        raise ImportError("CSV file is empty")

    headers = {h.strip() for h in reader.fieldnames if h}
    missing = REQUIRED_COLUMNS - headers
    if missing:
        raise ImportError(f"Missing required columns: {', '.join(sorted(missing))}")
    unknown = headers - set(PRODUCT_COLUMNS)
    if unknown:
        raise ImportError(f"Unknown columns: {', '.join(sorted(unknown))}")

    report = ImportReport(dry_run=dry_run)

    # Row 1 is the header
    for line_no, raw in enumerate(reader, start=2):
        row = {(k or "").strip(): v for k, v in raw.items()}
        category_name = _to_text(row.get("category"))
        try:
            patch = _normalize_row(row)
            if category_name:
                is_new = find_category_by_name(user_id, category_name) is None
                patch["category_id"] = resolve_category_reference(user_id, category_name=category_name)
                if is_new:
                    report.categories_created.append(category_name)
        except ValidationError as exc:
            report.errors.append({"row": line_no, "error": str(exc)})
            continue

        db.session.add(Product(user_id=user_id, **patch))
        report.created += 1

    if dry_run:
        db.session.rollback()
    else:
        db.session.commit()
        logger.info(
            "Imported %s products for user_id=%s (%s rows rejected)",
            report.created, user_id, len(report.errors),
        )
    return report
