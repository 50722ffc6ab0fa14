from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class LoginEvent(db.Model):
    """
    Login attempt history, used for brute-force throttling.

    identifier is the lowercased username as typed, so attempts against
    unknown accounts are throttled too.
    """
    __tablename__ = "login_events"
    __table_args__ = (
        db.Index("ix_login_events_identifier_time", "identifier", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    identifier = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    success = db.Column(db.Boolean, nullable=False)
    reason = db.Column(db.String(64), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "identifier": self.identifier,
            "user_id": self.user_id,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
