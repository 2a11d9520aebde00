# Overview: Flask API routes for the signed-in user's own account.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..validation import ValidationError
from ..decorators import require_auth


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.patch("/me")
@require_auth
def update_me_route():
    """Update full_name / business_name / phone."""
    payload = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_profile(g.current_user, payload)
        return jsonify({"user": user.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/me")
@require_auth
def delete_me_route():
    """Delete the account and everything it owns. Irreversible."""
    try:
        auth_service.delete_account(g.user_id)
        return jsonify({"ok": True}), 200
    except Exception:
        current_app.logger.exception("Failed to delete account")
        return jsonify({"error": "Internal server error"}), 500
