# Overview: Service-layer operations for self-service password reset.

"""
Password Reset

- request_reset always answers the same way, whether or not the username
  exists, so the endpoint cannot be used to discover accounts.
- Tokens are single use, stored as SHA-256 hashes and expire after
  PASSWORD_RESET_TTL_SECONDS (30 minutes by default, never below 5).
- The raw token is handed back only when PASSWORD_RESET_EXPOSE_TOKEN is set
  (development and tests); otherwise it would be delivered out of band.
- A successful reset revokes every session of the user.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import PasswordResetToken
from ..time_utils import utcnow
from . import audit_service, auth_service, session_service
from .audit_service import Actor

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "If the account exists, password reset instructions have been issued."
MIN_TTL_SECONDS = 300


def _ttl() -> timedelta:
    seconds = int(current_app.config.get("PASSWORD_RESET_TTL_SECONDS", 1800))
    return timedelta(seconds=max(MIN_TTL_SECONDS, seconds))


def request_reset(username: str, *, ip_address: str | None = None) -> dict:
    result = {"message": GENERIC_MESSAGE}
    user = auth_service.find_by_username(username or "")
    if user is None or not user.is_active:
        logger.info("Password reset requested for unknown or inactive account")
        return result

    raw_token = secrets.token_urlsafe(32)
    now = utcnow()
    db.session.add(PasswordResetToken(
        user_id=user.id,
        token_hash=session_service.hash_token(raw_token),
        created_at=now,
        expires_at=now + _ttl(),
        requested_ip=ip_address,
    ))
    db.session.commit()

    audit_service.record(
        audit_service.AUTH_PASSWORD_RESET_REQUEST,
        target_type="USER",
        target_id=user.id,
        actor=Actor.from_user(user),
    )

    if current_app.config.get("PASSWORD_RESET_EXPOSE_TOKEN"):
        result["reset_token"] = raw_token
        result["expires_in"] = int(_ttl().total_seconds())
    return result


def confirm_reset(token: str, new_password: str) -> None:
    if not token:
        raise ValidationError("token is required")

    record = (
        db.session.query(PasswordResetToken)
        .filter_by(token_hash=session_service.hash_token(token))
        .first()
    )
    if record is None or record.used_at is not None or record.expires_at < utcnow():
        raise ValidationError("Invalid or expired reset token")

    user = record.user
    user.password_hash = auth_service.hash_password(new_password)
    record.used_at = utcnow()
    db.session.commit()

    revoked = session_service.revoke_all_user_sessions(user.id, "PASSWORD_RESET")
    audit_service.record(
        audit_service.AUTH_PASSWORD_RESET_CONFIRM,
        target_type="USER",
        target_id=user.id,
        detail=f"sessions_revoked={revoked}",
        actor=Actor.from_user(user),
    )


def cleanup_expired_tokens() -> int:
    deleted = (
        db.session.query(PasswordResetToken)
        .filter(db.or_(PasswordResetToken.expires_at < utcnow(), PasswordResetToken.used_at.isnot(None)))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
