from flask import Blueprint, jsonify, request, g

from gestao.decorators import require_auth
from gestao.services import reporting_service
from gestao.validation import ValidationError


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/summary")
@require_auth
def summary():
    """Month KPIs. Query params: year, month (default: current month)."""
    try:
        report = reporting_service.dashboard_summary(
            g.user_id,
            year=request.args.get("year", type=int),
            month=request.args.get("month", type=int),
        )
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@dashboard_bp.get("/monthly")
@require_auth
def monthly():
    """Sales vs expenses for the last N months. Query params: months (default 6, max 24)."""
    try:
        series = reporting_service.monthly_series(g.user_id, request.args.get("months", type=int))
        return jsonify({"items": series, "count": len(series)}), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@dashboard_bp.get("/expenses-by-category")
@require_auth
def expenses_by_category():
    try:
        rows = reporting_service.expenses_by_category(
            g.user_id,
            year=request.args.get("year", type=int),
            month=request.args.get("month", type=int),
        )
        return jsonify({"items": rows, "count": len(rows)}), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
