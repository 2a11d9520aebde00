# backend/gestao/services/products_service.py
"""
Products Service

OWNERSHIP: All product operations are scoped to the owner (user_id).
- list/search only ever return the owner's rows
- a category reference, by id or by name, is normalized to category_id
- stock never goes below zero
"""
from __future__ import annotations

import logging
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Product, SaleItem
from ..validation import ValidationError, enforce_rules_product
from gestao.money import MAX_AMOUNT, quantize_qty, to_decimal
from .category_service import resolve_category_reference
from .concurrency import run_with_retry, lock_for_update
from .ownership_service import require_owned, scoped_query, owned_ids
from .pagination import paginate, like_pattern

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "category_id",
    "cost_price",
    "sale_price",
    "stock_quantity",
    "min_stock_quantity",
}


def _low_stock_clause():
    default = current_app.config.get("LOW_STOCK_DEFAULT_THRESHOLD", 5)
    return Product.stock_quantity <= db.func.coalesce(Product.min_stock_quantity, default)


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _resolve_category(patch: dict, user_id: int) -> dict:
    """
    Replace a `category` (name) key with the resolved category_id.

    Giving both forms is ambiguous and rejected.
    """
    patch = dict(patch)
    has_name = "category" in patch
    has_id = "category_id" in patch
    if has_name and has_id:
        raise ValidationError("Provide either category or category_id, not both")

    if has_name:
        patch["category_id"] = resolve_category_reference(user_id, category_name=patch.pop("category"))
    elif has_id and patch["category_id"] is not None:
        patch["category_id"] = resolve_category_reference(user_id, category_id=patch["category_id"])
    return patch


def list_products(
    user_id: int,
    *,
    search: str | None = None,
    category_ids: list[int] | None = None,
    low_stock: bool | None = None,
    min_sale_price: Decimal | None = None,
    max_sale_price: Decimal | None = None,
    min_cost_price: Decimal | None = None,
    max_cost_price: Decimal | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Owner-scoped product listing with optional filters and pagination.

    Args:
        search: substring of name or description (case-insensitive)
        category_ids: keep products in any of these categories
        low_stock: True keeps only low-stock products, False excludes them
        min/max_*_price: inclusive price bounds
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)
    """
    query = scoped_query(Product, user_id)

    if search:
        pattern = like_pattern(search.strip())
        query = query.filter(
            db.or_(
                Product.name.ilike(pattern, escape="\\"),
                Product.description.ilike(pattern, escape="\\"),
            )
        )
    if category_ids:
        query = query.filter(Product.category_id.in_(category_ids))
    if low_stock is True:
        query = query.filter(_low_stock_clause())
    elif low_stock is False:
        query = query.filter(db.not_(_low_stock_clause()))
    if min_sale_price is not None:
        query = query.filter(Product.sale_price >= min_sale_price)
    if max_sale_price is not None:
        query = query.filter(Product.sale_price <= max_sale_price)
    if min_cost_price is not None:
        query = query.filter(Product.cost_price >= min_cost_price)
    if max_cost_price is not None:
        query = query.filter(Product.cost_price <= max_cost_price)

    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page=page, per_page=per_page)


def search_products(user_id: int, term: str) -> list[Product]:
    query = scoped_query(Product, user_id)
    if term and term.strip():
        query = query.filter(Product.name.ilike(like_pattern(term.strip()), escape="\\"))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def list_products_by_category(user_id: int, category_id: int) -> list[Product]:
    resolve_category_reference(user_id, category_id=category_id)
    return (
        scoped_query(Product, user_id)
        .filter(Product.category_id == category_id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def list_low_stock_products(user_id: int) -> list[Product]:
    """Products at or below their minimum stock, lowest stock first."""
    return (
        scoped_query(Product, user_id)
        .filter(_low_stock_clause())
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .all()
    )


def count_low_stock_products(user_id: int) -> int:
    return scoped_query(Product, user_id).filter(_low_stock_clause()).count()


def get_product(product_id: int, user_id: int) -> Product:
    return require_owned(Product, product_id, user_id, label="Product")


def create_product(*, patch: dict, user_id: int) -> Product:
    """
    Create product using a validated patch dict.

    Raises:
        ValidationError: price/stock rules, unknown category name form
        NotFoundError: category_id not owned by user
    """
    patch = _resolve_category(patch, user_id)
    enforce_rules_product(patch)

    p = Product(user_id=user_id)
    p.cost_price = Decimal("0")
    p.sale_price = Decimal("0")
    p.stock_quantity = Decimal("0")
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()
    logger.info("Created product id=%s user_id=%s", p.id, user_id)
    return p


def update_product(*, product_id: int, patch: dict, user_id: int) -> Product:
    """Partial update; sale_price >= cost_price is checked on the merged values."""
    p = get_product(product_id, user_id)
    patch = _resolve_category(patch, user_id)
    enforce_rules_product(patch, current={"cost_price": p.cost_price, "sale_price": p.sale_price})

    apply_product_patch(p, patch)
    db.session.commit()
    return p


def _detach_sale_items(user_id: int, product_ids: list[int]) -> None:
    # Sale items keep their product_name snapshot
    (
        db.session.query(SaleItem)
        .filter(SaleItem.product_id.in_(product_ids))
        .update({SaleItem.product_id: None}, synchronize_session="fetch")
    )


def delete_product(*, product_id: int, user_id: int) -> None:
    p = get_product(product_id, user_id)
    _detach_sale_items(user_id, [p.id])
    db.session.delete(p)
    db.session.commit()
    logger.info("Deleted product id=%s user_id=%s", product_id, user_id)


def bulk_delete_products(*, ids: list, user_id: int) -> int:
    target = owned_ids(Product, ids, user_id)
    if not target:
        return 0
    _detach_sale_items(user_id, target)
    deleted = (
        db.session.query(Product)
        .filter(Product.user_id == user_id, Product.id.in_(target))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted


def adjust_stock(*, product_id: int, delta, user_id: int, reason: str | None = None) -> Product:
    """
    Add a signed delta to on-hand stock (restock, breakage, count fix).

    Raises:
        ValidationError: delta is zero/not a number, or stock would go negative
    """
    try:
        delta = to_decimal(delta)
    except ValueError:
        raise ValidationError("delta must be a number")
    if abs(delta) > MAX_AMOUNT:
        raise ValidationError("delta is out of range")
    delta = quantize_qty(delta)
    if delta == 0:
        raise ValidationError("delta must be non-zero")

    def _op():
        p = lock_for_update(scoped_query(Product, user_id).filter(Product.id == product_id)).first()
        if p is None:
            # Same message for foreign rows
            get_product(product_id, user_id)
        new_qty = Decimal(p.stock_quantity) + delta
        if new_qty < 0:
            raise ValidationError(
                f"Stock cannot go below zero for product {p.name}. "
                f"Available: {format(Decimal(p.stock_quantity).normalize(), 'f')}"
            )
        p.stock_quantity = new_qty
        db.session.commit()
        logger.info(
            "Adjusted stock product_id=%s delta=%s reason=%s", p.id, delta, reason or "-",
        )
        return p

    return run_with_retry(_op)
