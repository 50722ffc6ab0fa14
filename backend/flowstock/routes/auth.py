# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/flowstock/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Login throttling (429 while an account is locked)
- Optional TOTP second factor
- Short-lived access tokens, rotating refresh tokens
- Per-session revocation and generic password-reset answers
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import FlowStockError, ThrottledError, error_response
from ..services import audit_service, auth_service, password_reset_service, session_service
from ..services.audit_service import Actor


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and open a session.

    Request body: {"username": "...", "password": "...", "mfa_code": "123456"?}
    Returns access_token, refresh_token, expiry and the user.
    """
    data = request.get_json(silent=True) or {}
    try:
        result = auth_service.login(
            username=data.get("username"),
            password=data.get("password"),
            mfa_code=data.get("mfa_code"),
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify(result)
    except ThrottledError as e:
        response, status = error_response(e)
        response.headers["Retry-After"] = str(e.details.get("retry_after_seconds", 60))
        return response, status
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/refresh")
def refresh_route():
    """Exchange a refresh token for a new token pair (both rotate)."""
    data = request.get_json(silent=True) or {}
    try:
        user, tokens = session_service.refresh(data.get("refresh_token"), ip_address=request.remote_addr)
        audit_service.record(
            audit_service.AUTH_REFRESH,
            target_type="USER",
            target_id=user.id,
            detail=f"session_id={tokens['session_id']}",
            actor=Actor.from_user(user),
        )
        tokens["user"] = user.to_dict()
        return jsonify(tokens)
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to refresh session")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke the session owning the refresh token.

    Always answers 200 so clients can log out with stale tokens.
    """
    data = request.get_json(silent=True) or {}
    session = session_service.revoke_by_refresh_token(data.get("refresh_token"))
    if session is not None:
        audit_service.record(
            audit_service.AUTH_LOGOUT,
            target_type="USER",
            target_id=session.user_id,
            detail=f"session_id={session.session_id}",
            actor=Actor.from_user(session.user),
        )
    return jsonify({"message": "Logged out"})


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()})


@auth_bp.get("/sessions")
@require_auth
def list_sessions_route():
    current_id = g.session_context.session.session_id
    sessions = session_service.list_sessions(g.current_user.id)
    return jsonify({"items": [s.to_dict(current_session_id=current_id) for s in sessions]})


@auth_bp.delete("/sessions/<session_id>")
@require_auth
def revoke_session_route(session_id: str):
    try:
        session_service.revoke_user_session(g.current_user.id, session_id)
        audit_service.record(
            audit_service.AUTH_SESSION_REVOKE,
            target_type="USER",
            target_id=g.current_user.id,
            detail=f"session_id={session_id}",
            actor=Actor.from_user(g.current_user),
        )
        return jsonify({"message": "Session revoked", "session_id": session_id})
    except FlowStockError as e:
        return error_response(e)


@auth_bp.post("/mfa/setup")
@require_auth
def mfa_setup_route():
    try:
        return jsonify(auth_service.setup_mfa(g.current_user))
    except FlowStockError as e:
        return error_response(e)


@auth_bp.post("/mfa/enable")
@require_auth
def mfa_enable_route():
    data = request.get_json(silent=True) or {}
    try:
        auth_service.enable_mfa(g.current_user, data.get("code"))
        return jsonify({"mfa_enabled": True})
    except FlowStockError as e:
        return error_response(e)


@auth_bp.post("/mfa/disable")
@require_auth
def mfa_disable_route():
    data = request.get_json(silent=True) or {}
    try:
        auth_service.disable_mfa(g.current_user, data.get("code"))
        return jsonify({"mfa_enabled": False})
    except FlowStockError as e:
        return error_response(e)


@auth_bp.post("/password-reset/request")
def password_reset_request_route():
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(password_reset_service.request_reset(data.get("username"), ip_address=request.remote_addr))
    except Exception:
        current_app.logger.exception("Failed to issue password reset")
        return jsonify({"message": password_reset_service.GENERIC_MESSAGE})


@auth_bp.post("/password-reset/confirm")
def password_reset_confirm_route():
    data = request.get_json(silent=True) or {}
    try:
        password_reset_service.confirm_reset(data.get("token"), data.get("new_password"))
        return jsonify({"message": "Password updated. Sign in again."})
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reset password")
        return jsonify({"error": "Internal server error"}), 500
