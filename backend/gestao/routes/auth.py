# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- register: creates the account and signs it in
- login: email + password, returns an access/refresh token pair
- refresh: exchanges a refresh token for a new pair (rotation)
- logout: revokes the session of the bearer token
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.session_service import SessionError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _client_info() -> dict:
    return {
        "user_agent": request.headers.get("User-Agent"),
        "ip_address": request.remote_addr,
    }


@auth_bp.post("/register")
def register_route():
    """
    Create an account.

    Request body:
    {
        "email": "dona@loja.com",   // required
        "password": "segredo1",     // required, >= 6 chars, letter + digit
        "full_name": "Dona Maria",  // required
        "business_name": "Loja",    // optional
        "phone": "..."              // optional
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.register_user(
            email=data.get("email"),
            password=data.get("password"),
            full_name=data.get("full_name"),
            business_name=data.get("business_name"),
            phone=data.get("phone"),
        )
        issued = session_service.create_session(user_id=user.id, **_client_info())

        return jsonify({"user": user.to_dict(), **issued.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create a session.

    Returns user info plus access and refresh tokens. The access token goes
    in the Authorization header of protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.info("Failed login attempt from %s", request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        issued = session_service.create_session(user_id=user.id, **_client_info())

        return jsonify({
            "user": user.to_dict(),
            **issued.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/refresh")
def refresh_route():
    """Exchange {"refresh_token": ...} for a new token pair."""
    try:
        data = request.get_json(silent=True) or {}
        issued = session_service.refresh_session(data.get("refresh_token"), **_client_info())
        return jsonify(issued.to_dict()), 200

    except SessionError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to refresh session")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        revoked = session_service.revoke_session(token, reason="User logout")

        if not revoked:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
