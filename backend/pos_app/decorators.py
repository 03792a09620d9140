# Overview: Request and capability decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .permissions import Actor, policy_for
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'actor')


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.actor: Actor(user_id, role policy) handed to services
    - g.session_token: The plaintext token (for logout)

    Returns 401 if the header is missing, the token is invalid/expired/revoked,
    or the account is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        try:
            policy = policy_for(user.role)
        except ValueError:
            current_app.logger.warning("User %s has unknown role %r", user.id, user.role)
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.actor = Actor(user_id=user.id, policy=policy)
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """Require the authenticated actor's role policy to allow a capability."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not g.actor.can(capability):
                return jsonify({
                    "error": "Permission denied",
                    "required_capability": capability,
                    "role": g.actor.role,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
