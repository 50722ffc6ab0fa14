"""
Login Throttling Service

Prevents brute-force password attempts by locking an identifier after too
many failures.

- Lockout after LOGIN_MAX_FAILURES failures within LOGIN_LOCKOUT_MINUTES
- Lockout lasts LOGIN_LOCKOUT_MINUTES from the most recent failure
- A successful login resets the count: only failures after the last success
  are counted
- Unknown usernames are throttled the same way as real ones
"""

from __future__ import annotations

import logging
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import LoginEvent
from ..time_utils import utcnow

logger = logging.getLogger(__name__)


def _max_failures() -> int:
    return max(1, int(current_app.config.get("LOGIN_MAX_FAILURES", 5)))


def _window() -> timedelta:
    return timedelta(minutes=max(1, int(current_app.config.get("LOGIN_LOCKOUT_MINUTES", 15))))


def recent_failures(identifier: str) -> list[LoginEvent]:
    """Failures inside the window and after the latest success, newest first."""
    cutoff = utcnow() - _window()
    last_success = (
        db.session.query(db.func.max(LoginEvent.occurred_at))
        .filter(LoginEvent.identifier == identifier, LoginEvent.success.is_(True))
        .scalar()
    )
    if last_success is not None and last_success > cutoff:
        cutoff = last_success

    return (
        db.session.query(LoginEvent)
        .filter(
            LoginEvent.identifier == identifier,
            LoginEvent.success.is_(False),
            LoginEvent.occurred_at > cutoff,
        )
        .order_by(LoginEvent.occurred_at.desc())
        .all()
    )


def is_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    failures = recent_failures(identifier)
    if len(failures) < _max_failures():
        return False, None

    lockout_end = failures[0].occurred_at + _window()
    now = utcnow()
    if now < lockout_end:
        return True, max(1, int((lockout_end - now).total_seconds()))
    return False, None


def record_attempt(
    identifier: str,
    *,
    success: bool,
    user=None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    event = LoginEvent(
        identifier=identifier,
        user_id=user.id if user is not None else None,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()

    if not success:
        logger.warning("Failed login for %s (%s) from %s", identifier, reason, ip_address)


def cleanup_login_events(*, retention_days: int = 90) -> int:
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = (
        db.session.query(LoginEvent)
        .filter(LoginEvent.occurred_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
