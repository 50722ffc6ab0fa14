# Overview: Service-layer operations for auth; password hashing, user management and the login flow.

"""
Authentication Service

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, 12 by default)
- Minimum 8 characters; upper, lower, digit and special character required
- Failed logins are throttled per username (see login_throttle_service)
- Users with MFA enabled must also present a current TOTP code
- Tokens are issued and rotated by session_service
"""

from __future__ import annotations

import logging
import re

import bcrypt
from flask import current_app

from ..errors import AuthenticationError, BusinessRuleError, NotFound, ThrottledError, ValidationError
from ..extensions import db
from ..models import Role, User
from ..time_utils import utcnow
from . import audit_service, login_throttle_service, session_service, totp_service
from .audit_service import Actor

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]{3,64}$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-+=\[\]/\\;~`]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt-hash the password."""
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        logger.error("Stored password hash is not a valid bcrypt hash")
        return False


def create_user(
    *,
    username: str,
    password: str,
    role: str = Role.VIEWER.value,
    email: str | None = None,
    actor: Actor | None = None,
) -> User:
    username = username.strip() if isinstance(username, str) else ""
    if not USERNAME_PATTERN.match(username):
        raise ValidationError("username must be 3-64 characters of letters, digits, '.', '_' or '-'")
    try:
        role = Role(str(role).strip().upper()).value
    except ValueError:
        raise ValidationError(f"role must be one of: {', '.join(r.value for r in Role)}") from None

    if db.session.query(User.id).filter(db.func.lower(User.username) == username.lower()).first():
        raise BusinessRuleError("Username already exists", {"username": username})

    user = User(
        username=username,
        email=(email or "").strip() or None,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()

    audit_service.record(
        audit_service.USER_CREATE,
        target_type="USER",
        target_id=user.id,
        detail=f"username={user.username}, role={user.role}",
        actor=actor,
    )
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found", {"user_id": user_id})
    return user


def find_by_username(username: str) -> User | None:
    if not username:
        return None
    return (
        db.session.query(User)
        .filter(db.func.lower(User.username) == username.strip().lower())
        .first()
    )


def login(
    *,
    username: str,
    password: str,
    mfa_code: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict:
    """
    Verify credentials (and MFA when enabled) and open a new session.

    Returns the token payload from session_service.create_session plus the user.
    Raises ThrottledError while locked out, AuthenticationError otherwise.
    """
    identifier = (username or "").strip().lower()
    if not identifier or not password:
        raise ValidationError("username and password are required")

    locked, seconds = login_throttle_service.is_locked(identifier)
    if locked:
        logger.warning("Login blocked for %s, locked for %ss", identifier, seconds)
        raise ThrottledError(
            "Too many failed login attempts. Try again later.",
            {"retry_after_seconds": seconds},
        )

    user = find_by_username(identifier)
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        login_throttle_service.record_attempt(
            identifier, success=False, user=user, reason="INVALID_CREDENTIALS",
            ip_address=ip_address, user_agent=user_agent,
        )
        raise AuthenticationError("Invalid username or password")

    if user.mfa_enabled:
        if not mfa_code:
            raise AuthenticationError("MFA code required", {"mfa_required": True})
        if not totp_service.verify(user.mfa_secret, mfa_code):
            login_throttle_service.record_attempt(
                identifier, success=False, user=user, reason="INVALID_MFA",
                ip_address=ip_address, user_agent=user_agent,
            )
            raise AuthenticationError("Invalid MFA code", {"mfa_required": True})

    login_throttle_service.record_attempt(
        identifier, success=True, user=user, ip_address=ip_address, user_agent=user_agent,
    )
    user.last_login_at = utcnow()
    tokens = session_service.create_session(user, user_agent=user_agent, ip_address=ip_address)

    audit_service.record(
        audit_service.AUTH_LOGIN,
        target_type="USER",
        target_id=user.id,
        detail=f"session_id={tokens['session_id']}",
        actor=Actor.from_user(user),
    )
    tokens["user"] = user.to_dict()
    return tokens


# =============================================================================
# MFA
# =============================================================================

def setup_mfa(user: User) -> dict:
    """
    Issue a fresh TOTP secret for the user to scan.

    MFA stays off until enable_mfa confirms a code from the new secret.
    """
    if user.mfa_enabled:
        raise BusinessRuleError("MFA is already enabled")
    secret = totp_service.generate_secret()
    user.mfa_secret = secret
    db.session.commit()

    audit_service.record(audit_service.AUTH_MFA_SETUP, target_type="USER", target_id=user.id, actor=Actor.from_user(user))
    issuer = current_app.config.get("MFA_ISSUER", "FlowStock")
    return {
        "secret": secret,
        "otpauth_uri": totp_service.provisioning_uri(secret, username=user.username, issuer=issuer),
    }


def enable_mfa(user: User, code: str) -> None:
    if user.mfa_enabled:
        raise BusinessRuleError("MFA is already enabled")
    if not user.mfa_secret:
        raise BusinessRuleError("Run MFA setup first")
    if not totp_service.verify(user.mfa_secret, code):
        raise ValidationError("Invalid MFA code")
    user.mfa_enabled = True
    db.session.commit()
    audit_service.record(audit_service.AUTH_MFA_ENABLE, target_type="USER", target_id=user.id, actor=Actor.from_user(user))


def disable_mfa(user: User, code: str) -> None:
    if not user.mfa_enabled:
        raise BusinessRuleError("MFA is not enabled")
    if not totp_service.verify(user.mfa_secret, code):
        raise ValidationError("Invalid MFA code")
    user.mfa_enabled = False
    user.mfa_secret = None
    db.session.commit()
    audit_service.record(audit_service.AUTH_MFA_DISABLE, target_type="USER", target_id=user.id, actor=Actor.from_user(user))
