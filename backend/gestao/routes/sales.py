# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales routes.

POST /api/sales
{
    "customer_id": 3,                 // optional
    "payment_method": "pix",          // dinheiro | cartao_credito | cartao_debito | pix
    "notes": "...",                   // optional
    "sale_date": "2026-03-01T10:00Z", // optional, defaults to now
    "items": [{"product_id": 1, "quantity": 2, "unit_price": 5.00}]
}

total_amount is computed server-side; a client value is accepted and ignored.
Insufficient stock answers 409 with details.items listing every short product.
"""
from flask import Blueprint, jsonify, request, g, current_app

from ..services import sales_service
from ..services.sales_service import SaleError, InsufficientStockError
from ..models import Sale
from ..money import as_float
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
)
from ..query_params import page_args, int_list, date_bound
from ..decorators import require_auth
from gestao.time_utils import utcnow

SALE_POLICY = ModelValidationPolicy(
    writable_fields={"customer_id", "payment_method", "notes", "sale_date"},
    required_on_create={"payment_method", "items"},
    extra_fields={"items", "total_amount"},
)

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_patch(partial: bool) -> dict:
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Sale, payload=payload, policy=SALE_POLICY, partial=partial)
    patch.pop("total_amount", None)
    return patch


def _sale_error_response(e: SaleError):
    status = 409 if isinstance(e, InsufficientStockError) else 400
    return jsonify({"error": str(e), "details": e.details}), status


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - search: customer name, notes, payment method or product name
    - categories: comma-separated category ids of sold products
    - products: comma-separated product ids
    - startDate / endDate: inclusive (YYYY-MM-DD or ISO datetime)
    - page / limit: optional pagination
    """
    page, per_page = page_args()
    try:
        result = sales_service.list_sales(
            g.user_id,
            search=request.args.get("search"),
            category_ids=int_list("categories"),
            product_ids=int_list("products"),
            start=date_bound("startDate"),
            end=date_bound("endDate", end=True),
            page=page,
            per_page=per_page,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result), 200


@sales_bp.get("/monthly-total")
@require_auth
def monthly_total_route():
    """Query params: year, month (default: current month)."""
    now = utcnow()
    year = request.args.get("year", default=now.year, type=int)
    month = request.args.get("month", default=now.month, type=int)
    if month < 1 or month > 12:
        return jsonify({"error": "month must be between 1 and 12"}), 400

    total = sales_service.monthly_total(g.user_id, year, month)
    return jsonify({"year": year, "month": month, "total": as_float(total)}), 200


@sales_bp.get("/top-products")
@require_auth
def top_products_route():
    """
    Best-selling products by revenue.

    Query params:
    - limit: int (default 5, max 100)
    - startDate / endDate: optional inclusive range
    """
    try:
        rows = sales_service.top_products(
            g.user_id,
            request.args.get("limit", type=int),
            start=date_bound("startDate"),
            end=date_bound("endDate", end=True),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"items": rows, "count": len(rows)}), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, g.user_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.post("")
@require_auth
def create_sale_route():
    """Record a sale and take its items out of stock, all or nothing."""
    try:
        patch = _sale_patch(partial=False)
        sale = sales_service.create_sale(patch=patch, user_id=g.user_id)
        return jsonify({"sale": sale.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SaleError as e:
        return _sale_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.patch("/<int:sale_id>")
@require_auth
def update_sale_route(sale_id: int):
    """
    Patch header fields and/or replace the item list.

    When "items" is present it replaces every existing item; stock is
    reconciled by the difference.
    """
    try:
        patch = _sale_patch(partial=True)
        sale = sales_service.update_sale(sale_id=sale_id, patch=patch, user_id=g.user_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SaleError as e:
        return _sale_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    """Delete a sale; its quantities go back to stock."""
    try:
        sales_service.delete_sale(sale_id=sale_id, user_id=g.user_id)
        return jsonify({"ok": True}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
