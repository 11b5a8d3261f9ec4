# Overview: Service-layer operations for auth; password hashing, user creation and credential checks.

"""
Authentication Service

WHY: Every order, payout and debt payment is attributed to a username, so
every request must come from a known account.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Session tokens managed separately (see session_service.py)
- Roles are the closed set in app.permissions.Role
"""

import bcrypt

from ..extensions import db
from ..errors import Conflict, ValidationError
from ..models import User
from ..permissions import Role
from app.time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Raises ValidationError if the password is shorter than MIN_PASSWORD_LENGTH.
    """
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            field="password",
        )
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(username: str, name: str, role: str, password: str) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: blank username/name, unknown role, weak password
        Conflict: username already taken
    """
    username = (username or "").strip()
    name = (name or "").strip()
    if not username:
        raise ValidationError("username is required", field="username")
    if not name:
        raise ValidationError("name is required", field="name")
    try:
        role = Role.parse(role)
    except ValueError as e:
        raise ValidationError(str(e), field="role")

    if db.session.query(User).filter_by(username=username).first():
        raise Conflict(f"Username '{username}' already exists", username=username)

    user = User(
        username=username,
        name=name,
        role=role.value,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Check credentials.

    Returns the User when they match an active account, None otherwise.
    Updates last_login_at on success.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        User.username == username,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
