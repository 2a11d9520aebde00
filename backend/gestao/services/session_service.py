# Overview: Service-layer operations for sessions; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: Stateless bearer auth with an access/refresh token pair. Tokens are
cryptographically random, hashed in the database and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes each)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Access token lifetime: ACCESS_TOKEN_TTL_MINUTES (default 60)
- Refresh token lifetime: REFRESH_TOKEN_TTL_DAYS (default 7)
- Refresh rotates the pair and revokes the old session
- Revocable on logout
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from gestao.time_utils import utcnow

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Raised when a refresh token cannot be exchanged."""


@dataclass
class SessionContext:
    """Authenticated user plus the session row that authenticated them."""
    user: User
    session: SessionToken

    @property
    def user_id(self) -> int:
        return self.user.id


@dataclass
class IssuedTokens:
    session: SessionToken
    access_token: str
    refresh_token: str

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": "Bearer",
            "expires_at": self.session.to_dict()["access_expires_at"],
            "refresh_expires_at": self.session.to_dict()["refresh_expires_at"],
        }


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so SHA-256 is sufficient.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _access_ttl() -> timedelta:
    return timedelta(minutes=current_app.config.get("ACCESS_TOKEN_TTL_MINUTES", 60))


def _refresh_ttl() -> timedelta:
    return timedelta(days=current_app.config.get("REFRESH_TOKEN_TTL_DAYS", 7))


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> IssuedTokens:
    """
    Create a new session for the user.

    Returns the session row with both plaintext tokens. The database keeps
    only their hashes.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is deactivated")

    access_token = generate_token()
    refresh_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        access_token_hash=hash_token(access_token),
        refresh_token_hash=hash_token(refresh_token),
        created_at=now,
        last_used_at=now,
        access_expires_at=now + _access_ttl(),
        refresh_expires_at=now + _refresh_ttl(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return IssuedTokens(session=session, access_token=access_token, refresh_token=refresh_token)


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Validate an access token and return SessionContext if valid.

    Returns None if:
    - Token is unknown or revoked
    - Access token has expired (the client should refresh)
    - User account is deactivated

    Updates last_used_at on successful validation (activity tracking).
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        access_token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.access_expires_at < now:
        return None

    user = session.user

    # SECURITY: Check if user account is active
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session)


def refresh_session(
    refresh_token: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> IssuedTokens:
    """
    Exchange a refresh token for a new token pair.

    The old session is revoked (rotation): a refresh token works once.

    Raises:
        SessionError if the token is unknown, revoked, or expired
    """
    if not isinstance(refresh_token, str) or not refresh_token:
        raise SessionError("refresh_token required")

    session = db.session.query(SessionToken).filter_by(
        refresh_token_hash=hash_token(refresh_token),
    ).first()

    if not session:
        raise SessionError("Invalid refresh token")

    if session.is_revoked:
        logger.warning("Revoked refresh token presented for user_id=%s", session.user_id)
        raise SessionError("Invalid refresh token")

    if session.refresh_expires_at < utcnow():
        raise SessionError("Refresh token expired")

    _revoke(session, "Rotated by refresh")
    db.session.flush()

    try:
        return create_session(session.user_id, user_agent=user_agent, ip_address=ip_address)
    except ValueError as exc:
        db.session.commit()
        raise SessionError(str(exc))


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke the session an access token belongs to.

    Returns True if session was revoked, False if not found.
    """
    session = db.session.query(SessionToken).filter_by(
        access_token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    db.session.commit()
    return True


def cleanup_expired_sessions() -> int:
    """
    Delete sessions whose refresh token expired or that were revoked more
    than 30 days ago.

    Returns count of sessions deleted.
    """
    now = utcnow()
    cutoff = now - timedelta(days=30)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.refresh_expires_at < now,
            db.and_(SessionToken.is_revoked.is_(True), SessionToken.created_at < cutoff),
        )
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
