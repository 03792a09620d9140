# Overview: Flask API routes for user administration (admin only).

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_capability
from ..errors import POSError
from ..permissions import Capability
from ..services import auth_service

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_capability(Capability.MANAGE_USERS)
def list_users_route():
    users = auth_service.list_users()
    return jsonify({"items": [u.to_dict() for u in users]}), 200


@users_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_USERS)
def create_user_route():
    """
    Body: {"username": str, "password": str, "role": "admin" | "cashier"}
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        user = auth_service.create_user(
            data.get("username"),
            data.get("password"),
            data.get("role") or "cashier",
        )
    except POSError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("User %s created %s (%s)", g.actor.user_id, user.username, user.role)
    return jsonify(user.to_dict()), 201


@users_bp.get("/<int:user_id>")
@require_auth
@require_capability(Capability.MANAGE_USERS)
def get_user_route(user_id: int):
    try:
        user = auth_service.get_user(user_id)
    except POSError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(user.to_dict()), 200


@users_bp.put("/<int:user_id>")
@require_auth
@require_capability(Capability.MANAGE_USERS)
def update_user_route(user_id: int):
    """
    Body: {"username"?: str, "password"?: str, "role"?: "admin" | "cashier"}

    An empty password means "keep the current one".
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        user = auth_service.update_user(
            user_id,
            actor_user_id=g.actor.user_id,
            username=data.get("username"),
            password=data.get("password") or None,
            role=data.get("role"),
        )
    except POSError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("User %s updated user %s", g.actor.user_id, user.id)
    return jsonify(user.to_dict()), 200


@users_bp.delete("/<int:user_id>")
@require_auth
@require_capability(Capability.MANAGE_USERS)
def deactivate_user_route(user_id: int):
    """Deactivate (never hard-delete) a user and revoke their sessions."""
    try:
        user = auth_service.deactivate_user(user_id, actor_user_id=g.actor.user_id)
    except POSError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(user.to_dict()), 200
