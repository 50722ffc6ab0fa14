# Overview: Service-layer operations for the audit trail: best-effort recording, search, export and retention cleanup.

"""
Audit Recorder

record() is called only AFTER the business transaction has committed and
writes in a transaction of its own. If the audit write fails, the failure is
rolled back and logged; the business result already stands and the caller
never sees the error.

Actions are plain strings (ORDER_CREATE, PURCHASE_ORDER_RECEIVE, ...). Actor
defaults to SYSTEM/SYSTEM for work not tied to a signed-in user (CLI jobs).
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLog
from ..time_utils import utcnow, to_utc_z

logger = logging.getLogger("flowstock.audit")

MAX_PAGE_SIZE = 200
MAX_EXPORT_ROWS = 5000
DEFAULT_RETENTION_DAYS = 90

ORDER_CREATE = "ORDER_CREATE"
ORDER_CONFIRM = "ORDER_CONFIRM"
ORDER_CANCEL = "ORDER_CANCEL"
PURCHASE_ORDER_CREATE = "PURCHASE_ORDER_CREATE"
PURCHASE_ORDER_RECEIVE = "PURCHASE_ORDER_RECEIVE"
PURCHASE_ORDER_CANCEL = "PURCHASE_ORDER_CANCEL"
PRODUCT_CREATE = "PRODUCT_CREATE"
PRODUCT_UPDATE = "PRODUCT_UPDATE"
CATEGORY_CREATE = "CATEGORY_CREATE"
STOCK_ADD = "STOCK_ADD"
SUPPLIER_CREATE = "SUPPLIER_CREATE"
SUPPLIER_UPDATE = "SUPPLIER_UPDATE"
PRODUCT_SUPPLIER_UPSERT = "PRODUCT_SUPPLIER_UPSERT"
PRODUCT_SUPPLIER_UNLINK = "PRODUCT_SUPPLIER_UNLINK"
USER_CREATE = "USER_CREATE"
AUTH_LOGIN = "AUTH_LOGIN"
AUTH_REFRESH = "AUTH_REFRESH"
AUTH_LOGOUT = "AUTH_LOGOUT"
AUTH_SESSION_REVOKE = "AUTH_SESSION_REVOKE"
AUTH_MFA_SETUP = "AUTH_MFA_SETUP"
AUTH_MFA_ENABLE = "AUTH_MFA_ENABLE"
AUTH_MFA_DISABLE = "AUTH_MFA_DISABLE"
AUTH_PASSWORD_RESET_REQUEST = "AUTH_PASSWORD_RESET_REQUEST"
AUTH_PASSWORD_RESET_CONFIRM = "AUTH_PASSWORD_RESET_CONFIRM"
AUDIT_LOG_CLEANUP = "AUDIT_LOG_CLEANUP"


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation, as recorded on audit entries and documents."""
    username: str
    role: str

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(username=user.username, role=user.role)


SYSTEM_ACTOR = Actor(username="SYSTEM", role="SYSTEM")


def record(
    action: str,
    *,
    target_type: str | None = None,
    target_id=None,
    detail: str | None = None,
    actor: Actor | None = None,
) -> AuditLog | None:
    """
    Append an audit entry in its own transaction. Never raises.

    Returns the stored entry, or None when the write failed.
    """
    actor = actor or SYSTEM_ACTOR
    try:
        entry = AuditLog(
            actor_username=actor.username,
            actor_role=actor.role,
            action=action,
            target_type=target_type,
            target_id=str(target_id) if target_id is not None else None,
            detail=detail,
            created_at=utcnow(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception(
            "Failed to record audit entry action=%s target=%s:%s actor=%s",
            action, target_type, target_id, actor.username,
        )
        return None


def _filtered_query(
    *,
    action: str | None = None,
    actor: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
):
    query = db.session.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action.strip().upper())
    if actor:
        query = query.filter(AuditLog.actor_username.ilike(f"%{actor.strip()}%"))
    if date_from:
        query = query.filter(AuditLog.created_at >= date_from)
    if date_to:
        query = query.filter(AuditLog.created_at <= date_to)
    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())


def list_logs(
    *,
    page: int = 0,
    size: int = 50,
    action: str | None = None,
    actor: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    """Newest-first page of audit entries. Page is zero based; size is clamped to 1..200."""
    page = max(0, page)
    size = min(max(1, size), MAX_PAGE_SIZE)

    query = _filtered_query(action=action, actor=actor, date_from=date_from, date_to=date_to)
    total = query.order_by(None).count()
    rows = query.offset(page * size).limit(size).all()

    return {
        "items": [row.to_dict() for row in rows],
        "page": page,
        "size": size,
        "total": total,
        "total_pages": (total + size - 1) // size,
    }


def export_logs(
    *,
    limit: int = 1000,
    action: str | None = None,
    actor: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[AuditLog]:
    limit = min(max(1, limit), MAX_EXPORT_ROWS)
    query = _filtered_query(action=action, actor=actor, date_from=date_from, date_to=date_to)
    return query.limit(limit).all()


def to_csv(rows: list[AuditLog]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["id", "created_at", "actor_username", "actor_role", "action", "target_type", "target_id", "detail"])
    for row in rows:
        writer.writerow([
            row.id,
            to_utc_z(row.created_at),
            row.actor_username,
            row.actor_role,
            row.action,
            row.target_type or "",
            row.target_id or "",
            row.detail or "",
        ])
    return buffer.getvalue()


def cleanup(
    retention_days: int | None = None,
    *,
    trigger: str = "MANUAL",
    actor: Actor | None = None,
) -> dict:
    """
    Delete entries older than now - retention_days (clamped to at least 1 day).

    The cleanup itself is recorded as an AUDIT_LOG_CLEANUP entry afterwards.
    """
    if retention_days is None:
        retention_days = DEFAULT_RETENTION_DAYS
    retention_days = max(1, int(retention_days))

    executed_at = utcnow()
    cutoff = executed_at - timedelta(days=retention_days)

    deleted = (
        db.session.query(AuditLog)
        .filter(AuditLog.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.session.commit()

    logger.info("Audit log cleanup deleted=%d retention_days=%d trigger=%s", deleted, retention_days, trigger)

    record(
        AUDIT_LOG_CLEANUP,
        target_type="AUDIT_LOG",
        detail=f"trigger={trigger}, retention_days={retention_days}, deleted={deleted}, cutoff={to_utc_z(cutoff)}",
        actor=actor,
    )

    return {
        "deleted_count": deleted,
        "retention_days": retention_days,
        "cutoff": to_utc_z(cutoff),
        "executed_at": to_utc_z(executed_at),
        "trigger": trigger,
    }
