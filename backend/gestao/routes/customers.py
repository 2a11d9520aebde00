# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

from flask import Blueprint, request, g, current_app

from ..services import customer_service
from ..models import Customer
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
)
from ..query_params import page_args, bulk_ids
from ..decorators import require_auth

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "notes"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    """
    List customers.

    Query params:
    - search: substring of name, email or phone
    - page / limit: optional pagination
    """
    page, per_page = page_args()
    return customer_service.list_customers(
        g.user_id,
        search=request.args.get("search"),
        page=page,
        per_page=per_page,
    )


@customers_bp.get("/search")
@require_auth
def search_customers_route():
    rows = customer_service.search_customers(g.user_id, request.args.get("q", ""))
    return {"items": [c.to_dict() for c in rows], "count": len(rows)}


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id, g.user_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"customer": customer.to_dict()}


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        created = customer_service.create_customer(patch=patch, user_id=g.user_id)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"customer": created.to_dict()}, 201


@customers_bp.patch("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        updated = customer_service.update_customer(customer_id=customer_id, patch=patch, user_id=g.user_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"customer": updated.to_dict()}, 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    """Delete a customer. Their sales are kept without a customer."""
    try:
        customer_service.delete_customer(customer_id=customer_id, user_id=g.user_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200


@customers_bp.post("/bulk-delete")
@require_auth
def bulk_delete_customers_route():
    try:
        ids = bulk_ids(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400

    deleted = customer_service.bulk_delete_customers(ids=ids, user_id=g.user_id)
    return {"deleted": deleted}, 200
