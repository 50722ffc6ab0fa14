from __future__ import annotations

import enum

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    VIEWER = "VIEWER"


class User(db.Model):
    """
    Console user.

    Role is a single column: ADMIN > OPERATOR > VIEWER. MFA is TOTP based and
    mfa_secret is only trusted once mfa_enabled is set.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_users_username"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=Role.VIEWER.value)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    mfa_secret = db.Column(db.String(64), nullable=True)
    mfa_enabled = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "mfa_enabled": self.mfa_enabled,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }


class AuthSession(db.Model):
    """
    One signed-in device.

    SECURITY: only SHA-256 hashes of the access and refresh tokens are stored.
    Refreshing rotates both tokens in place, so a session id stays stable for
    the session list while old tokens stop working immediately.
    """
    __tablename__ = "auth_sessions"
    __table_args__ = (
        db.UniqueConstraint("session_id", name="uq_auth_sessions_session_id"),
        db.UniqueConstraint("access_token_hash", name="uq_auth_sessions_access_hash"),
        db.UniqueConstraint("refresh_token_hash", name="uq_auth_sessions_refresh_hash"),
        db.Index("ix_auth_sessions_user", "user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(36), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    access_token_hash = db.Column(db.String(64), nullable=False)
    access_expires_at = db.Column(db.DateTime, nullable=False)
    refresh_token_hash = db.Column(db.String(64), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False)
    last_used_at = db.Column(db.DateTime, nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime, nullable=True)
    revoked_reason = db.Column(db.String(64), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self, current_session_id: str | None = None) -> dict:
        return {
            "session_id": self.session_id,
            "user_agent": self.user_agent,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "current": self.session_id == current_session_id,
        }


class PasswordResetToken(db.Model):
    """Single-use password reset token (hash only)."""
    __tablename__ = "password_reset_tokens"
    __table_args__ = (
        db.UniqueConstraint("token_hash", name="uq_password_reset_tokens_hash"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    used_at = db.Column(db.DateTime, nullable=True)
    requested_ip = db.Column(db.String(64), nullable=True)

    user = db.relationship("User")
