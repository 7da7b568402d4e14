# Overview: Operator accounts: bcrypt password hashing, user management and login checks.

"""
Every sale records the operator who rang it up, so every API call runs as a
known user.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with upper/lower case letters, a digit and a special char
- Session tokens managed separately (see session_service.py)
- Deactivated users cannot log in and lose their open sessions
"""

import re

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Branch, User, USER_ROLES
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    if not password or len(password) < 8:
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
    """Validate strength, then hash with bcrypt (cost factor 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe check; a malformed stored hash never matches."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _check_role(role: str) -> None:
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")


def _check_branch(branch_id) -> None:
    if branch_id is not None and db.session.get(Branch, branch_id) is None:
        raise ValidationError("Branch not found", details={"branch_id": branch_id})


def create_user(
    username: str,
    password: str,
    role: str = "cashier",
    full_name: str | None = None,
    branch_id: int | None = None,
) -> User:
    def _op():
        clean_username = (username or "").strip()
        if not clean_username:
            raise ValidationError("username is required")
        _check_role(role)
        _check_branch(branch_id)
        if db.session.query(User.id).filter(User.username == clean_username).first():
            raise ValidationError("Username already exists")

        user = User(
            username=clean_username,
            password_hash=hash_password(password),
            role=role,
            full_name=full_name,
            branch_id=branch_id,
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError as exc:
            raise ConflictError("Username was taken concurrently") from exc
        return user

    return run_with_retry(_op)


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_users(include_inactive: bool = False) -> list[User]:
    q = db.session.query(User)
    if not include_inactive:
        q = q.filter(User.is_active.is_(True))
    return q.order_by(User.username.asc()).all()


def update_user(user_id: int, patch: dict) -> User:
    """Editable: full_name, role, branch_id, password."""
    def _op():
        user = get_user(user_id)
        if "role" in patch:
            _check_role(patch["role"])
            user.role = patch["role"]
        if "branch_id" in patch:
            _check_branch(patch["branch_id"])
            user.branch_id = patch["branch_id"]
        if "full_name" in patch:
            user.full_name = patch["full_name"]
        if patch.get("password"):
            user.password_hash = hash_password(patch["password"])
        db.session.commit()
        return user

    return run_with_retry(_op)


def deactivate_user(user_id: int) -> User:
    from .session_service import revoke_all_user_sessions

    def _op():
        user = get_user(user_id)
        user.is_active = False
        revoke_all_user_sessions(user.id, reason="user_deactivated", commit=False)
        db.session.commit()
        return user

    return run_with_retry(_op)


def authenticate(username: str, password: str) -> User | None:
    """
    Returns the active user for valid credentials, None otherwise.
    """
    user = (
        db.session.query(User)
        .filter(User.username == (username or "").strip(), User.is_active.is_(True))
        .first()
    )
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user
