# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/gestao/routes/products.py
"""
Product management routes.

OWNERSHIP: All product operations are scoped to the caller (g.user_id).
A product that belongs to someone else answers 404, like a missing one.

A category can be given as category_id or by name as "category"; names are
resolved to the owner's category, creating it when missing.
"""
from flask import Blueprint, request, g, current_app

from ..services import products_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..query_params import page_args, int_list, bool_arg, decimal_arg, bulk_ids
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "category_id",
        "cost_price",
        "sale_price",
        "stock_quantity",
        "min_stock_quantity",
    },
    required_on_create={"name", "cost_price", "sale_price"},
    extra_fields={"category"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products with optional filters and pagination.

    Query params:
    - search: substring of name or description
    - categories: comma-separated category ids
    - lowStock: true/false
    - minSalePrice, maxSalePrice, minCostPrice, maxCostPrice: inclusive bounds
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - limit: int (optional) - items per page (default 20, max 100)
    """
    page, per_page = page_args()
    try:
        return products_service.list_products(
            g.user_id,
            search=request.args.get("search"),
            category_ids=int_list("categories"),
            low_stock=bool_arg("lowStock"),
            min_sale_price=decimal_arg("minSalePrice"),
            max_sale_price=decimal_arg("maxSalePrice"),
            min_cost_price=decimal_arg("minCostPrice"),
            max_cost_price=decimal_arg("maxCostPrice"),
            page=page,
            per_page=per_page,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@products_bp.get("/search")
@require_auth
def search_products_route():
    rows = products_service.search_products(g.user_id, request.args.get("q", ""))
    return {"items": [p.to_dict() for p in rows], "count": len(rows)}


@products_bp.get("/low-stock")
@require_auth
def low_stock_route():
    """Products at or below their minimum stock (default threshold 5)."""
    rows = products_service.list_low_stock_products(g.user_id)
    return {"items": [p.to_dict() for p in rows], "count": len(rows)}


@products_bp.get("/by-category/<int:category_id>")
@require_auth
def products_by_category_route(category_id: int):
    try:
        rows = products_service.list_products_by_category(g.user_id, category_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [p.to_dict() for p in rows], "count": len(rows)}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id, g.user_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"product": product.to_dict()}


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a new product.

    Rules: prices and stock >= 0, sale_price >= cost_price.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        created = products_service.create_product(patch=patch, user_id=g.user_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"product": created.to_dict()}, 201


@products_bp.patch("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """Partial update. sale_price >= cost_price is checked on the merged values."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        updated = products_service.update_product(product_id=product_id, patch=patch, user_id=g.user_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"product": updated.to_dict()}, 200


@products_bp.post("/<int:product_id>/stock")
@require_auth
def adjust_stock_route(product_id: int):
    """
    Adjust on-hand stock by a signed delta.

    Request body:
    {
        "delta": -2.5,          // required, non-zero
        "reason": "Quebra"      // optional, logged
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        product = products_service.adjust_stock(
            product_id=product_id,
            delta=payload.get("delta"),
            user_id=g.user_id,
            reason=payload.get("reason"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return {"error": "Internal server error"}, 500

    return {"product": product.to_dict()}, 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Delete a product. Past sale items keep its name."""
    try:
        products_service.delete_product(product_id=product_id, user_id=g.user_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200


@products_bp.post("/bulk-delete")
@require_auth
def bulk_delete_products_route():
    try:
        ids = bulk_ids(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400

    deleted = products_service.bulk_delete_products(ids=ids, user_id=g.user_id)
    return {"deleted": deleted}, 200
