"""
Sales Service - sale transaction workflow

A sale is a header plus one or more items, written together in one
database transaction:

- create: validate every item (product exists, aggregated quantity fits in
  stock) before any write, then insert header + items and decrement stock
- update: header patch and/or full item replacement; availability counts
  the quantity this sale already holds, and stock is reconciled by the
  difference
- delete: stock held by the sale is given back, then header + items go

total_amount is always recomputed from the items; a client-sent total is
ignored. Product rows are locked (FOR UPDATE / BEGIN IMMEDIATE on SQLite)
and carry a version column, so a lost race is retried from the start.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Sale, SaleItem, Product, Customer, PAYMENT_METHODS
from ..validation import ValidationError
from gestao.money import (
    MAX_AMOUNT,
    as_float,
    line_subtotal,
    quantize_money,
    quantize_qty,
    to_decimal,
)
from gestao.time_utils import utcnow, month_bounds
from .concurrency import begin_write, lock_for_update, run_with_retry
from .ownership_service import require_owned, scoped_query
from .pagination import paginate, like_pattern

logger = logging.getLogger(__name__)

ITEM_FIELDS = {"product_id", "quantity", "unit_price"}
# Derived values a client may echo back; recomputed server-side
ITEM_IGNORED_FIELDS = {"subtotal", "product_name"}

TOP_PRODUCTS_DEFAULT_LIMIT = 5
TOP_PRODUCTS_MAX_LIMIT = 100


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(SaleError):
    """Requested quantity exceeds what the product has available."""


@dataclass(frozen=True)
class ItemRequest:
    product_id: int
    quantity: Decimal
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return line_subtotal(self.quantity, self.unit_price)


def _fmt_qty(value: Decimal) -> str:
    # 7.000 -> "7", 2.500 -> "2.5"
    return format(Decimal(value).normalize(), "f")


def _parse_int(value, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")


def parse_items(raw) -> list[ItemRequest]:
    """
    Validate a client item list.

    Each entry needs product_id, quantity > 0 and unit_price >= 0. Quantities
    keep three decimal places, prices two.
    """
    if not isinstance(raw, list) or not raw:
        raise ValidationError("items must be a non-empty list")

    items: list[ItemRequest] = []
    for idx, entry in enumerate(raw):
        label = f"items[{idx}]"
        if not isinstance(entry, dict):
            raise ValidationError(f"{label} must be an object")

        for key in entry:
            if key not in ITEM_FIELDS and key not in ITEM_IGNORED_FIELDS:
                raise ValidationError(f"{label}: field not allowed: {key}")
        for key in sorted(ITEM_FIELDS):
            if entry.get(key) is None:
                raise ValidationError(f"{label}.{key} is required")

        product_id = _parse_int(entry["product_id"], f"{label}.product_id")

        try:
            quantity = to_decimal(entry["quantity"])
        except ValueError:
            raise ValidationError(f"{label}.quantity must be a number")
        if abs(quantity) > MAX_AMOUNT:
            raise ValidationError(f"{label} is out of range")
        quantity = quantize_qty(quantity)
        if quantity <= 0:
            raise ValidationError(f"{label}.quantity must be > 0")

        try:
            unit_price = to_decimal(entry["unit_price"])
        except ValueError:
            raise ValidationError(f"{label}.unit_price must be a number")
        if abs(unit_price) > MAX_AMOUNT:
            raise ValidationError(f"{label} is out of range")
        unit_price = quantize_money(unit_price)
        if unit_price < 0:
            raise ValidationError(f"{label}.unit_price must be >= 0")

        item = ItemRequest(product_id=product_id, quantity=quantity, unit_price=unit_price)
        if quantity > MAX_AMOUNT or item.subtotal > MAX_AMOUNT:
            raise ValidationError(f"{label} is out of range")
        items.append(item)

    total = sum((i.subtotal for i in items), Decimal("0"))
    if total > MAX_AMOUNT:
        raise ValidationError("Sale total is out of range")
    return items


def _aggregate(items: list[ItemRequest]) -> dict[int, Decimal]:
    """Requested quantity per product, in first-seen order."""
    totals: dict[int, Decimal] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, Decimal("0")) + item.quantity
    return totals


def _held_quantities(sale: Sale) -> dict[int, Decimal]:
    """Quantity per product this sale currently holds (deleted products skipped)."""
    held: dict[int, Decimal] = {}
    for item in sale.items:
        if item.product_id is None:
            continue
        held[item.product_id] = held.get(item.product_id, Decimal("0")) + Decimal(item.quantity)
    return held


def _load_products(user_id: int, product_ids: list[int]) -> dict[int, Product]:
    """
    Lock the owner's products for the unit of work.

    Raises NotFoundError for the first id, in the given order, that is
    missing or owned by someone else.
    """
    unique_ids = list(dict.fromkeys(product_ids))
    if not unique_ids:
        return {}
    rows = lock_for_update(
        scoped_query(Product, user_id).filter(Product.id.in_(unique_ids))
    ).all()
    products = {p.id: p for p in rows}
    for pid in unique_ids:
        if pid not in products:
            require_owned(Product, pid, user_id, label="Product")
    return products


def _validate_availability(
    products: dict[int, Product],
    requested: dict[int, Decimal],
    held: dict[int, Decimal],
) -> None:
    insufficient = []
    for product_id, qty in requested.items():
        product = products[product_id]
        available = Decimal(product.stock_quantity) + held.get(product_id, Decimal("0"))
        if qty > available:
            insufficient.append({
                "product_id": product_id,
                "product_name": product.name,
                "requested": as_float(qty),
                "available": as_float(available),
                "_available": available,
            })

    if insufficient:
        first = insufficient[0]
        message = (
            f"Insufficient stock for product {first['product_name']}. "
            f"Available: {_fmt_qty(first['_available'])}"
        )
        for entry in insufficient:
            entry.pop("_available")
        raise InsufficientStockError(message, details={"items": insufficient})


def _validate_payment_method(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("payment_method is required")
    value = value.strip()
    if value not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    return value


def _build_items(items: list[ItemRequest], products: dict[int, Product]) -> list[SaleItem]:
    return [
        SaleItem(
            product_id=item.product_id,
            product_name=products[item.product_id].name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
        )
        for item in items
    ]


def _total(items: list[ItemRequest]) -> Decimal:
    return quantize_money(sum((i.subtotal for i in items), Decimal("0")))


def get_sale(sale_id: int, user_id: int) -> Sale:
    return require_owned(Sale, sale_id, user_id, label="Sale")


def create_sale(*, patch: dict, user_id: int) -> Sale:
    """
    Record a sale and take its items out of stock.

    patch keys: payment_method, items, and optionally customer_id, notes,
    sale_date. Anything else (e.g. total_amount) is ignored.

    Raises:
        ValidationError: bad header or item fields
        NotFoundError: product or customer missing under this owner
        InsufficientStockError: aggregated quantity exceeds stock
    """
    payment_method = _validate_payment_method(patch.get("payment_method"))
    items = parse_items(patch.get("items"))
    customer_id = patch.get("customer_id")

    def _op():
        begin_write()
        products = _load_products(user_id, [i.product_id for i in items])
        requested = _aggregate(items)
        _validate_availability(products, requested, held={})

        if customer_id is not None:
            require_owned(Customer, customer_id, user_id, label="Customer")

        sale = Sale(
            user_id=user_id,
            customer_id=customer_id,
            payment_method=payment_method,
            notes=patch.get("notes"),
            sale_date=patch.get("sale_date") or utcnow(),
            total_amount=_total(items),
        )
        sale.items = _build_items(items, products)

        for product_id, qty in requested.items():
            product = products[product_id]
            product.stock_quantity = Decimal(product.stock_quantity) - qty

        db.session.add(sale)
        db.session.commit()
        logger.info(
            "Created sale id=%s user_id=%s items=%s total=%s",
            sale.id, user_id, len(items), sale.total_amount,
        )
        return sale

    return run_with_retry(_op)


def update_sale(*, sale_id: int, patch: dict, user_id: int) -> Sale:
    """
    Patch header fields and/or replace the full item list.

    When items are given, availability per product is current stock plus
    what this sale already holds, and stock moves by old_qty - new_qty.
    Products dropped from the sale get their quantity back.
    """
    payment_method = None
    if "payment_method" in patch:
        payment_method = _validate_payment_method(patch["payment_method"])
    items = parse_items(patch["items"]) if "items" in patch else None
    if "sale_date" in patch and patch["sale_date"] is None:
        raise ValidationError("sale_date cannot be null")

    def _op():
        begin_write()
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None or sale.user_id != user_id:
            get_sale(sale_id, user_id)

        if patch.get("customer_id") is not None:
            require_owned(Customer, patch["customer_id"], user_id, label="Customer")

        if items is not None:
            held = _held_quantities(sale)
            requested = _aggregate(items)
            products = _load_products(user_id, [i.product_id for i in items])
            # Products leaving the sale still exist; lock them for the restore
            products.update(_load_products(user_id, [pid for pid in held if pid not in products]))
            _validate_availability(products, requested, held=held)

            for product_id in set(held) | set(requested):
                product = products[product_id]
                delta = held.get(product_id, Decimal("0")) - requested.get(product_id, Decimal("0"))
                if delta:
                    product.stock_quantity = Decimal(product.stock_quantity) + delta

            sale.items = _build_items(items, products)
            sale.total_amount = _total(items)

        if payment_method is not None:
            sale.payment_method = payment_method
        if "customer_id" in patch:
            sale.customer_id = patch["customer_id"]
        if "notes" in patch:
            sale.notes = patch["notes"]
        if "sale_date" in patch:
            sale.sale_date = patch["sale_date"]

        db.session.commit()
        logger.info("Updated sale id=%s user_id=%s items_replaced=%s", sale.id, user_id, items is not None)
        return sale

    return run_with_retry(_op)


def delete_sale(*, sale_id: int, user_id: int) -> None:
    """Delete a sale and give its quantities back to stock."""
    def _op():
        begin_write()
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None or sale.user_id != user_id:
            get_sale(sale_id, user_id)

        held = _held_quantities(sale)
        if held:
            rows = lock_for_update(
                scoped_query(Product, user_id).filter(Product.id.in_(list(held)))
            ).all()
            for product in rows:
                product.stock_quantity = Decimal(product.stock_quantity) + held[product.id]

        db.session.delete(sale)
        db.session.commit()
        logger.info("Deleted sale id=%s user_id=%s restored_products=%s", sale_id, user_id, len(held))

    run_with_retry(_op)


def list_sales(
    user_id: int,
    *,
    search: str | None = None,
    category_ids: list[int] | None = None,
    product_ids: list[int] | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Owner-scoped sale listing, newest first.

    Args:
        search: matches customer name, notes, payment method or an item's
            product name
        category_ids: sales with at least one item from these categories
        product_ids: sales with at least one item for these products
        start/end: inclusive bounds on sale_date
    """
    query = scoped_query(Sale, user_id)

    if search and search.strip():
        pattern = like_pattern(search.strip())
        customer_match = db.select(Customer.id).where(
            Customer.user_id == user_id,
            Customer.name.ilike(pattern, escape="\\"),
        )
        item_match = (
            db.select(SaleItem.sale_id)
            .outerjoin(Product, Product.id == SaleItem.product_id)
            .where(
                db.or_(
                    SaleItem.product_name.ilike(pattern, escape="\\"),
                    Product.name.ilike(pattern, escape="\\"),
                )
            )
        )
        query = query.filter(
            db.or_(
                Sale.notes.ilike(pattern, escape="\\"),
                Sale.payment_method.ilike(pattern, escape="\\"),
                Sale.customer_id.in_(customer_match),
                Sale.id.in_(item_match),
            )
        )

    if category_ids:
        query = query.filter(
            Sale.id.in_(
                db.select(SaleItem.sale_id)
                .join(Product, Product.id == SaleItem.product_id)
                .where(Product.category_id.in_(category_ids))
            )
        )
    if product_ids:
        query = query.filter(
            Sale.id.in_(db.select(SaleItem.sale_id).where(SaleItem.product_id.in_(product_ids)))
        )
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date <= end)

    query = query.order_by(Sale.sale_date.desc(), Sale.id.desc())
    return paginate(query, page=page, per_page=per_page)


def get_total_between(user_id: int, start: datetime, end: datetime) -> Decimal:
    """Sum of total_amount for sale_date in [start, end]."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Sale.total_amount), 0))
        .filter(
            Sale.user_id == user_id,
            Sale.sale_date >= start,
            Sale.sale_date <= end,
        )
        .scalar()
    )
    return quantize_money(Decimal(str(total)))


def count_between(user_id: int, start: datetime, end: datetime) -> int:
    return (
        scoped_query(Sale, user_id)
        .filter(Sale.sale_date >= start, Sale.sale_date <= end)
        .count()
    )


def monthly_total(user_id: int, year: int, month: int) -> Decimal:
    start, end = month_bounds(year, month)
    return get_total_between(user_id, start, end)


def top_products(
    user_id: int,
    limit: int | None = None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[dict]:
    """
    Best sellers by revenue.

    Items are grouped by product, summing quantity and subtotal, and sorted
    by revenue descending, then product id ascending. Items whose product was
    deleted are left out.
    """
    if limit is None:
        limit = TOP_PRODUCTS_DEFAULT_LIMIT
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    limit = min(limit, TOP_PRODUCTS_MAX_LIMIT)

    revenue = db.func.sum(SaleItem.subtotal).label("total_revenue")
    quantity = db.func.sum(SaleItem.quantity).label("total_quantity")

    query = (
        db.session.query(
            Product.id.label("product_id"),
            Product.name.label("product_name"),
            quantity,
            revenue,
        )
        .select_from(SaleItem)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .join(Product, Product.id == SaleItem.product_id)
        .filter(Sale.user_id == user_id)
    )
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date <= end)

    rows = (
        query.group_by(Product.id, Product.name)
        .order_by(revenue.desc(), Product.id.asc())
        .limit(limit)
        .all()
    )

    return [
        {
            "product_id": r.product_id,
            "product_name": r.product_name,
            "total_quantity": as_float(quantize_qty(Decimal(str(r.total_quantity)))),
            "total_revenue": as_float(quantize_money(Decimal(str(r.total_revenue)))),
        }
        for r in rows
    ]
