# Overview: Service-layer operations for accounts; encapsulates business logic and database work.

"""
Account Service

WHY: Every row in the system is owned by a user. Uses bcrypt for password
hashing and validates password strength at registration.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 6 characters, at least one letter and one digit
- Email is the login identifier, compared case-insensitively
- Session tokens managed separately (see session_service.py)
"""

import logging
import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Sale, SaleItem, Product, Category, Customer, Expense, SessionToken
from ..validation import ValidationError, ConflictError, EMAIL_RE
from gestao.time_utils import utcnow

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {"full_name", "business_name", "phone"}


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 6 characters
    - At least one letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 6:
        raise PasswordValidationError("Password must be at least 6 characters long")

    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. A malformed stored hash counts as a
    mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def normalize_email(email) -> str:
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("email is required")
    email = email.strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("email is invalid")
    if len(email) > 255:
        raise ValidationError("email exceeds max length 255")
    return email


def register_user(
    email: str,
    password: str,
    full_name: str,
    business_name: str | None = None,
    phone: str | None = None,
) -> User:
    """
    Create a new account.

    Raises:
        ValidationError: bad email, weak password, missing name
        ConflictError: email already registered
    """
    email = normalize_email(email)

    if not isinstance(full_name, str) or not full_name.strip():
        raise ValidationError("full_name is required")

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        raise ConflictError("Email already registered")

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name.strip(),
        business_name=(business_name or "").strip() or None,
        phone=(phone or "").strip() or None,
    )

    db.session.add(user)
    db.session.commit()
    logger.info("Registered user id=%s", user.id)
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    if not isinstance(email, str) or not isinstance(password, str):
        return None

    user = (
        db.session.query(User)
        .filter(User.email == email.strip().lower(), User.is_active.is_(True))
        .first()
    )

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def update_profile(user: User, patch: dict) -> User:
    """Patch full_name / business_name / phone on the current user."""
    for key in patch:
        if key not in PROFILE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    if "full_name" in patch:
        full_name = patch["full_name"]
        if not isinstance(full_name, str) or not full_name.strip():
            raise ValidationError("full_name cannot be blank")
        user.full_name = full_name.strip()

    for key in ("business_name", "phone"):
        if key in patch:
            value = patch[key]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string")
            setattr(user, key, (value or "").strip() or None)

    db.session.commit()
    return user


def delete_account(user_id: int) -> None:
    """
    Delete the account and everything it owns.

    Rows are removed child-first so the delete also works on databases
    where ON DELETE CASCADE is not enforced (SQLite by default).
    """
    sale_ids = db.select(Sale.id).where(Sale.user_id == user_id)
    db.session.query(SaleItem).filter(SaleItem.sale_id.in_(sale_ids)).delete(synchronize_session=False)
    db.session.query(Sale).filter(Sale.user_id == user_id).delete(synchronize_session=False)
    db.session.query(Product).filter(Product.user_id == user_id).delete(synchronize_session=False)
    db.session.query(Category).filter(Category.user_id == user_id).delete(synchronize_session=False)
    db.session.query(Customer).filter(Customer.user_id == user_id).delete(synchronize_session=False)
    db.session.query(Expense).filter(Expense.user_id == user_id).delete(synchronize_session=False)
    db.session.query(SessionToken).filter(SessionToken.user_id == user_id).delete(synchronize_session=False)
    db.session.query(User).filter(User.id == user_id).delete(synchronize_session=False)
    db.session.commit()
    logger.info("Deleted account user_id=%s", user_id)
