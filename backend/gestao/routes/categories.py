# Overview: Flask API routes for category operations; parses input and returns JSON responses.

"""
Category routes.

All operations are scoped to the caller (g.user_id, set by @require_auth).
Names are unique per owner ignoring case (409 on duplicates).
"""
from flask import Blueprint, request, g, current_app

from ..services import category_service
from ..models import Category
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..query_params import page_args, bulk_ids
from ..decorators import require_auth

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories_route():
    """
    List categories.

    Query params:
    - search: substring of the name (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - limit: int (optional) - items per page (default 20, max 100)
    """
    page, per_page = page_args()
    return category_service.list_categories(
        g.user_id,
        search=request.args.get("search"),
        page=page,
        per_page=per_page,
    )


@categories_bp.get("/search")
@require_auth
def search_categories_route():
    rows = category_service.search_categories(g.user_id, request.args.get("q", ""))
    return {"items": [c.to_dict() for c in rows], "count": len(rows)}


@categories_bp.get("/<int:category_id>")
@require_auth
def get_category_route(category_id: int):
    try:
        category = category_service.get_category(category_id, g.user_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"category": category.to_dict()}


@categories_bp.post("")
@require_auth
def create_category_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        created = category_service.create_category(patch=patch, user_id=g.user_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"category": created.to_dict()}, 201


@categories_bp.patch("/<int:category_id>")
@require_auth
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        updated = category_service.update_category(category_id=category_id, patch=patch, user_id=g.user_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"category": updated.to_dict()}, 200


@categories_bp.delete("/<int:category_id>")
@require_auth
def delete_category_route(category_id: int):
    """Delete a category; its products become uncategorized."""
    try:
        category_service.delete_category(category_id=category_id, user_id=g.user_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200


@categories_bp.post("/bulk-delete")
@require_auth
def bulk_delete_categories_route():
    try:
        ids = bulk_ids(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400

    deleted = category_service.bulk_delete_categories(ids=ids, user_id=g.user_id)
    return {"deleted": deleted}, 200
