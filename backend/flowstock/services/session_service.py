# Overview: Service-layer operations for sessions; access/refresh token issue, rotation and revocation.

"""
Session Token Management Service

Each login opens one AuthSession carrying two opaque tokens:
- access token: sent as "Authorization: Bearer ...", short lived
  (ACCESS_TOKEN_TTL_SECONDS, 15 minutes by default)
- refresh token: exchanged for a new pair, long lived
  (REFRESH_TOKEN_TTL_SECONDS, 7 days by default)

SECURITY FEATURES:
- Tokens come from the secrets module and only their SHA-256 hashes are stored
- Refreshing rotates BOTH tokens; the previous refresh token stops working
- Sessions are revocable one by one (logout, session list) or all at once
  (password reset)
- Deactivated users lose every session on the next request
"""

from __future__ import annotations

import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..errors import AuthenticationError, NotFound
from ..extensions import db
from ..models import AuthSession, User
from ..time_utils import utcnow


@dataclass
class SessionContext:
    """Authenticated request context returned by validate_access_token."""
    user: User
    session: AuthSession


def generate_access_token() -> str:
    return secrets.token_hex(32)


def generate_refresh_token() -> str:
    return secrets.token_urlsafe(48)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _access_ttl() -> timedelta:
    return timedelta(seconds=int(current_app.config.get("ACCESS_TOKEN_TTL_SECONDS", 900)))


def _refresh_ttl() -> timedelta:
    return timedelta(seconds=int(current_app.config.get("REFRESH_TOKEN_TTL_SECONDS", 604800)))


def _token_payload(session: AuthSession, access_token: str, refresh_token: str) -> dict:
    return {
        "access_token": access_token,
        "token_type": "Bearer",
        "expires_in": int(_access_ttl().total_seconds()),
        "refresh_token": refresh_token,
        "refresh_expires_in": int(_refresh_ttl().total_seconds()),
        "session_id": session.session_id,
    }


def _revoke(session: AuthSession, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def create_session(
    user: User,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict:
    """
    Open a session for an authenticated user.

    Returns the plaintext tokens; the database keeps only their hashes.
    """
    access_token = generate_access_token()
    refresh_token = generate_refresh_token()
    now = utcnow()

    session = AuthSession(
        session_id=str(uuid.uuid4()),
        user_id=user.id,
        access_token_hash=hash_token(access_token),
        access_expires_at=now + _access_ttl(),
        refresh_token_hash=hash_token(refresh_token),
        expires_at=now + _refresh_ttl(),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        created_at=now,
        last_used_at=now,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return _token_payload(session, access_token, refresh_token)


def validate_access_token(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its user and session.

    Returns None if the token is unknown, expired or revoked, or the user is
    inactive (the session is revoked in that last case).
    """
    if not token:
        return None
    now = utcnow()
    session = (
        db.session.query(AuthSession)
        .filter_by(access_token_hash=hash_token(token), is_revoked=False)
        .first()
    )
    if session is None:
        return None
    if session.access_expires_at < now or session.expires_at < now:
        return None

    user = session.user
    if user is None or not user.is_active:
        _revoke(session, "USER_DEACTIVATED")
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=session)


def refresh(refresh_token: str, *, ip_address: str | None = None) -> tuple[User, dict]:
    """Rotate both tokens of the session owning refresh_token."""
    if not refresh_token:
        raise AuthenticationError("refresh_token is required")
    now = utcnow()
    session = (
        db.session.query(AuthSession)
        .filter_by(refresh_token_hash=hash_token(refresh_token))
        .first()
    )
    if session is None or session.is_revoked or session.expires_at < now:
        raise AuthenticationError("Invalid or expired refresh token")

    user = session.user
    if user is None or not user.is_active:
        _revoke(session, "USER_DEACTIVATED")
        db.session.commit()
        raise AuthenticationError("Invalid or expired refresh token")

    access_token = generate_access_token()
    new_refresh_token = generate_refresh_token()
    session.access_token_hash = hash_token(access_token)
    session.access_expires_at = now + _access_ttl()
    session.refresh_token_hash = hash_token(new_refresh_token)
    session.expires_at = now + _refresh_ttl()
    session.last_used_at = now
    if ip_address:
        session.ip_address = ip_address
    db.session.commit()
    return user, _token_payload(session, access_token, new_refresh_token)


def revoke_by_refresh_token(refresh_token: str, reason: str = "LOGOUT") -> AuthSession | None:
    """Logout. Unknown tokens are ignored so logout is safe to repeat."""
    if not refresh_token:
        return None
    session = (
        db.session.query(AuthSession)
        .filter_by(refresh_token_hash=hash_token(refresh_token), is_revoked=False)
        .first()
    )
    if session is None:
        return None
    _revoke(session, reason)
    db.session.commit()
    return session


def revoke_session(session: AuthSession, reason: str = "LOGOUT") -> None:
    if not session.is_revoked:
        _revoke(session, reason)
        db.session.commit()


def list_sessions(user_id: int) -> list[AuthSession]:
    """Open (not revoked, not expired) sessions of a user, most recently used first."""
    return (
        db.session.query(AuthSession)
        .filter(
            AuthSession.user_id == user_id,
            AuthSession.is_revoked.is_(False),
            AuthSession.expires_at > utcnow(),
        )
        .order_by(AuthSession.last_used_at.desc(), AuthSession.id.desc())
        .all()
    )


def revoke_user_session(user_id: int, session_id: str) -> AuthSession:
    session = (
        db.session.query(AuthSession)
        .filter_by(user_id=user_id, session_id=session_id, is_revoked=False)
        .first()
    )
    if session is None:
        raise NotFound("Session not found", {"session_id": session_id})
    _revoke(session, "USER_REVOKED")
    db.session.commit()
    return session


def revoke_all_user_sessions(user_id: int, reason: str) -> int:
    count = (
        db.session.query(AuthSession)
        .filter(AuthSession.user_id == user_id, AuthSession.is_revoked.is_(False))
        .update(
            {
                AuthSession.is_revoked: True,
                AuthSession.revoked_at: utcnow(),
                AuthSession.revoked_reason: reason,
            },
            synchronize_session="fetch",
        )
    )
    db.session.commit()
    return count


def cleanup_expired_sessions(*, grace_days: int = 7) -> int:
    """Delete sessions that expired or were revoked more than grace_days ago."""
    cutoff = utcnow() - timedelta(days=grace_days)
    deleted = (
        db.session.query(AuthSession)
        .filter(db.or_(AuthSession.expires_at < cutoff, AuthSession.revoked_at < cutoff))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
