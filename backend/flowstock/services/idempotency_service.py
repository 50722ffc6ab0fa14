# Overview: Service-layer operations for idempotency keys on state-changing API calls.

"""
Idempotency Keys

A client retrying a POST sends the same Idempotency-Key header. Keys are
scoped by (actor, "METHOD /path", key), so two users, or one user hitting
two endpoints, never collide.

FLOW:
1. claim(): insert a pending row. The unique constraint decides the race;
   the loser gets the existing row back instead.
2. The operation runs.
3. complete() stores status + body for 2xx/3xx outcomes; release() deletes
   the claim for failures so the client can retry with the same key.

An expired row is replaced by a fresh claim, and so is a pending row older
than IDEMPOTENCY_PENDING_TIMEOUT_SECONDS (its request died before complete()).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import BusinessRuleError, ValidationError
from ..extensions import db
from ..models import ApiIdempotencyKey
from ..time_utils import utcnow

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 128
MIN_TTL_SECONDS = 60
DEFAULT_TTL_SECONDS = 86400
DEFAULT_PENDING_TIMEOUT_SECONDS = 300


@dataclass
class ClaimResult:
    record: ApiIdempotencyKey
    is_new: bool

    @property
    def replay(self) -> tuple[dict, int] | None:
        if self.is_new or not self.record.is_completed:
            return None
        return json.loads(self.record.response_body or "null"), self.record.status_code


class IdempotencyInProgress(BusinessRuleError):
    """Same key is still being processed by an earlier request."""


def normalize_key(raw: str | None) -> str | None:
    if raw is None:
        return None
    key = raw.strip()
    if not key:
        return None
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError(f"Idempotency-Key must be at most {MAX_KEY_LENGTH} characters")
    return key


def _ttl() -> timedelta:
    seconds = current_app.config.get("IDEMPOTENCY_TTL_SECONDS", DEFAULT_TTL_SECONDS)
    return timedelta(seconds=max(MIN_TTL_SECONDS, int(seconds)))


def _find(actor: str, endpoint_key: str, key: str) -> ApiIdempotencyKey | None:
    return (
        db.session.query(ApiIdempotencyKey)
        .filter_by(actor_username=actor, endpoint_key=endpoint_key, idempotency_key=key)
        .first()
    )


def _pending_timeout() -> timedelta:
    seconds = current_app.config.get("IDEMPOTENCY_PENDING_TIMEOUT_SECONDS", DEFAULT_PENDING_TIMEOUT_SECONDS)
    return timedelta(seconds=max(1, int(seconds)))


def _is_live(record: ApiIdempotencyKey, now) -> bool:
    if record.expires_at <= now:
        return False
    if record.is_completed:
        return True
    # A pending claim older than the lease belongs to a request that never finished
    return record.created_at > now - _pending_timeout()


def claim(*, actor: str, endpoint_key: str, key: str) -> ClaimResult:
    """
    Claim a key for a new request, or return the existing record.

    Raises IdempotencyInProgress when an earlier request holding the key has
    not finished yet.
    """
    now = utcnow()
    existing = _find(actor, endpoint_key, key)
    if existing is not None:
        if _is_live(existing, now):
            if not existing.is_completed:
                raise IdempotencyInProgress(
                    "A request with this Idempotency-Key is still being processed",
                    {"idempotency_key": key},
                )
            return ClaimResult(existing, is_new=False)
        if not existing.is_completed:
            logger.warning(
                "Reclaiming abandoned idempotency key actor=%s endpoint=%s created_at=%s",
                actor, endpoint_key, existing.created_at,
            )
        db.session.delete(existing)
        db.session.commit()

    record = ApiIdempotencyKey(
        actor_username=actor,
        endpoint_key=endpoint_key,
        idempotency_key=key,
        created_at=now,
        expires_at=now + _ttl(),
    )
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = _find(actor, endpoint_key, key)
        if existing is None:
            raise
        if not existing.is_completed:
            raise IdempotencyInProgress(
                "A request with this Idempotency-Key is still being processed",
                {"idempotency_key": key},
            )
        return ClaimResult(existing, is_new=False)
    return ClaimResult(record, is_new=True)


def complete(record_id: int, *, status_code: int, body) -> None:
    record = db.session.get(ApiIdempotencyKey, record_id)
    if record is None:
        return
    record.status_code = status_code
    record.response_body = json.dumps(body)
    db.session.commit()


def release(record_id: int) -> None:
    # The failed request may have left uncommitted work behind
    db.session.rollback()
    record = db.session.get(ApiIdempotencyKey, record_id)
    if record is None:
        return
    db.session.delete(record)
    db.session.commit()


def cleanup_expired() -> int:
    deleted = (
        db.session.query(ApiIdempotencyKey)
        .filter(ApiIdempotencyKey.expires_at <= utcnow())
        .delete(synchronize_session=False)
    )
    db.session.commit()
    logger.info("Expired idempotency keys deleted=%d", deleted)
    return deleted
