# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every sale must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..errors import ConflictError, UserNotFound, ValidationError
from ..extensions import db
from ..models import User
from ..permissions import ROLE_POLICIES
from pos_app.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt (cost factor BCRYPT_ROUNDS, default 12).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def _clean_username(username) -> str:
    username = (username or "").strip() if isinstance(username, str) else ""
    if not username:
        raise ValidationError("username is required")
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")
    return username


def _check_role(role) -> None:
    if role not in ROLE_POLICIES:
        raise ValidationError(f"role must be one of: {', '.join(sorted(ROLE_POLICIES))}")


def create_user(username: str, password: str, role: str = "cashier") -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: bad username or role
        PasswordValidationError: weak password
        ConflictError: username taken
    """
    username = _clean_username(username)
    _check_role(role)

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        raise ConflictError("Username already exists")

    user = User(
        username=username,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """Return the active user for valid credentials, else None."""
    if not username or not password:
        return None

    user = db.session.query(User).filter_by(username=username).first()
    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


def deactivate_user(user_id: int, *, actor_user_id: int) -> User:
    """Deactivate a user and revoke their sessions. Admins cannot deactivate themselves."""
    from .session_service import revoke_user_sessions

    if user_id == actor_user_id:
        raise ConflictError("You cannot deactivate your own account")

    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFound("User not found", details={"user_id": user_id})

    user.is_active = False
    revoke_user_sessions(user.id)
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFound("User not found", details={"user_id": user_id})
    return user


def update_user(
    user_id: int,
    *,
    actor_user_id: int,
    username: str | None = None,
    password: str | None = None,
    role: str | None = None,
) -> User:
    """
    Update username, role and/or password. None leaves a field unchanged.

    A new password is strength-checked and re-hashed. Changing the password
    or the role revokes the user's sessions so the change applies at once.
    Admins cannot change their own role.
    """
    from .session_service import revoke_user_sessions

    user = get_user(user_id)

    if username is not None:
        username = _clean_username(username)
        clash = (
            db.session.query(User.id)
            .filter(User.username == username, User.id != user.id)
            .first()
        )
        if clash:
            raise ConflictError("Username already exists")

    role_changed = False
    if role is not None:
        _check_role(role)
        role_changed = role != user.role
        if role_changed and user.id == actor_user_id:
            raise ConflictError("You cannot change your own role")

    password_hash = hash_password(password) if password is not None else None

    if username is not None:
        user.username = username
    if role_changed:
        user.role = role
    if password_hash is not None:
        user.password_hash = password_hash

    if role_changed or password_hash is not None:
        revoked = revoke_user_sessions(user.id)
        current_app.logger.info("Revoked %s session(s) for user %s after account change", revoked, user.id)

    db.session.commit()
    return user
