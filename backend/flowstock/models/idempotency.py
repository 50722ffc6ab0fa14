from __future__ import annotations

from ..extensions import db


class ApiIdempotencyKey(db.Model):
    """
    Replay record for a state-changing API call.

    A row with status_code NULL is a claim: the first request holding this key
    is still running. Once it completes the status and JSON body are stored and
    replayed to retries until expires_at.
    """
    __tablename__ = "api_idempotency_keys"
    __table_args__ = (
        db.UniqueConstraint(
            "actor_username", "endpoint_key", "idempotency_key",
            name="uq_api_idempotency_keys_scope",
        ),
        db.Index("ix_api_idempotency_keys_expires_at", "expires_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    actor_username = db.Column(db.String(64), nullable=False)
    endpoint_key = db.Column(db.String(255), nullable=False)
    idempotency_key = db.Column(db.String(128), nullable=False)

    status_code = db.Column(db.Integer, nullable=True)
    response_body = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    @property
    def is_completed(self) -> bool:
        return self.status_code is not None
