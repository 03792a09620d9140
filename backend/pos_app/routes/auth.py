# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/pos_app/routes/auth.py
"""
Authentication API routes.

Login issues an opaque bearer token; only its SHA-256 hash is stored.
There is no self-registration: accounts come from an admin (POST /api/users)
or the CLI (flask users create).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth
from pos_app.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header as
    "Bearer <token>" for protected routes.
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.info("Failed login for username=%r", username)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
        }), 200

    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session token used for this request."""
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user plus the capabilities their role grants."""
    return jsonify({
        "user": g.current_user.to_dict(),
        "capabilities": sorted(g.actor.policy.capabilities),
    }), 200
