# Overview: Flask API routes for expense operations; parses input and returns JSON responses.

"""
Expense routes.

A recurring expense needs a recurrence_period (diaria, semanal, quinzenal,
mensal, trimestral, semestral, anual). Amounts are strictly positive.
"""
from flask import Blueprint, request, g, current_app

from ..services import expense_service
from ..models import Expense
from ..money import as_float
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
)
from ..query_params import page_args, bool_arg, date_bound, bulk_ids
from ..decorators import require_auth
from gestao.time_utils import utcnow

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={
        "description",
        "amount",
        "category",
        "expense_date",
        "is_recurring",
        "recurrence_period",
        "notes",
    },
    required_on_create={"description", "amount", "category"},
)

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    """
    List expenses, newest first.

    Query params:
    - search: substring of description, category or notes
    - category: exact category (case-insensitive)
    - recurring: true/false
    - startDate / endDate: inclusive (YYYY-MM-DD or ISO datetime)
    - page / limit: optional pagination
    """
    page, per_page = page_args()
    try:
        return expense_service.list_expenses(
            g.user_id,
            search=request.args.get("search"),
            category=request.args.get("category"),
            recurring=bool_arg("recurring"),
            start=date_bound("startDate"),
            end=date_bound("endDate", end=True),
            page=page,
            per_page=per_page,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@expenses_bp.get("/search")
@require_auth
def search_expenses_route():
    rows = expense_service.search_expenses(g.user_id, request.args.get("q", ""))
    return {"items": [e.to_dict() for e in rows], "count": len(rows)}


@expenses_bp.get("/recurring")
@require_auth
def recurring_expenses_route():
    rows = expense_service.list_recurring_expenses(g.user_id)
    return {"items": [e.to_dict() for e in rows], "count": len(rows)}


@expenses_bp.get("/categories")
@require_auth
def expense_categories_route():
    """Distinct category names already used by the caller's expenses."""
    return {"categories": expense_service.list_expense_categories(g.user_id)}


@expenses_bp.get("/by-category")
@require_auth
def expenses_by_category_route():
    try:
        rows = expense_service.list_expenses_by_category(g.user_id, request.args.get("category", ""))
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [e.to_dict() for e in rows], "count": len(rows)}


@expenses_bp.get("/monthly-total")
@require_auth
def expenses_monthly_total_route():
    """Query params: year, month (default: current month)."""
    now = utcnow()
    year = request.args.get("year", default=now.year, type=int)
    month = request.args.get("month", default=now.month, type=int)
    if month < 1 or month > 12:
        return {"error": "month must be between 1 and 12"}, 400

    total = expense_service.monthly_total(g.user_id, year, month)
    return {"year": year, "month": month, "total": as_float(total)}


@expenses_bp.get("/<int:expense_id>")
@require_auth
def get_expense_route(expense_id: int):
    try:
        expense = expense_service.get_expense(expense_id, g.user_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"expense": expense.to_dict()}


@expenses_bp.post("")
@require_auth
def create_expense_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
        created = expense_service.create_expense(patch=patch, user_id=g.user_id)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"expense": created.to_dict()}, 201


@expenses_bp.patch("/<int:expense_id>")
@require_auth
def update_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
        updated = expense_service.update_expense(expense_id=expense_id, patch=patch, user_id=g.user_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"expense": updated.to_dict()}, 200


@expenses_bp.delete("/<int:expense_id>")
@require_auth
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id=expense_id, user_id=g.user_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200


@expenses_bp.post("/bulk-delete")
@require_auth
def bulk_delete_expenses_route():
    try:
        ids = bulk_ids(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400

    deleted = expense_service.bulk_delete_expenses(ids=ids, user_id=g.user_id)
    return {"deleted": deleted}, 200
