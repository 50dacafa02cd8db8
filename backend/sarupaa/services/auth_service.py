# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Users who enter purchases, sales and expenses. Passwords are bcrypt hashes.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from ..extensions import db
from ..models import User
from ..models.auth import ROLES, ROLE_USER
from ..validation import ConflictError, ValidationError
from sarupaa.time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    *,
    role: str = ROLE_USER,
    store_id: int | None = None,
    rounds: int = 12,
) -> User:
    """
    Create a new user with a bcrypt password hash.

    Raises ConflictError when the username or email is taken.
    """
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    existing = db.session.query(User).filter(
        db.or_(
            db.func.lower(User.username) == username.strip().lower(),
            db.func.lower(User.email) == email.strip().lower(),
        )
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username.strip(),
        email=email.strip(),
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        store_id=store_id,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Authenticate with username or email (case-insensitive) and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    needle = identifier.strip().lower()
    user = db.session.query(User).filter(
        db.or_(db.func.lower(User.username) == needle, db.func.lower(User.email) == needle),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
