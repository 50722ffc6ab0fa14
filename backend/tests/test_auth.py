"""
Authentication tests.

Verifies:
- Login issues an access/refresh pair; bad credentials are 401
- Refresh rotates both tokens and retires the old ones
- Logout and per-session revocation
- Lockout after repeated failures (429 + Retry-After)
- TOTP second factor and self-service password reset
"""

import pytest

from conftest import DEFAULT_PASSWORD, auth_headers
from flowstock.extensions import db
from flowstock.models import LoginEvent
from flowstock.services import auth_service, totp_service
from flowstock.services.auth_service import PasswordValidationError


def _login(client, username="operator", password=DEFAULT_PASSWORD, **extra):
    return client.post("/api/auth/login", json={"username": username, "password": password, **extra})


class TestLogin:

    def test_login_returns_tokens(self, client, operator_user):
        resp = _login(client)

        assert resp.status_code == 200
        body = resp.json
        assert body["token_type"] == "Bearer"
        assert body["access_token"] and body["refresh_token"]
        assert body["expires_in"] == 900
        assert body["user"]["role"] == "OPERATOR"

        me = client.get("/api/auth/me", headers=auth_headers(body["access_token"]))
        assert me.status_code == 200
        assert me.json["user"]["username"] == "operator"

    def test_username_is_case_insensitive(self, client, operator_user):
        assert _login(client, username="OPERATOR").status_code == 200

    def test_wrong_password(self, client, operator_user):
        resp = _login(client, password="Wrong-password1")
        assert resp.status_code == 401

    def test_unknown_user_gets_same_answer(self, client, operator_user):
        wrong_password = _login(client, password="Wrong-password1")
        unknown = _login(client, username="nobody")

        assert unknown.status_code == 401
        assert unknown.json == wrong_password.json

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "x"})
        assert resp.status_code == 400

    def test_inactive_user_cannot_login(self, client, operator_user):
        operator_user.is_active = False
        db.session.commit()

        assert _login(client).status_code == 401


class TestLockout:

    def test_locked_after_repeated_failures(self, client, operator_user):
        for _ in range(5):
            assert _login(client, password="Wrong-password1").status_code == 401

        resp = _login(client)

        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) > 0

    def test_success_resets_failure_count(self, client, operator_user):
        for _ in range(4):
            _login(client, password="Wrong-password1")
        assert _login(client).status_code == 200

        for _ in range(4):
            _login(client, password="Wrong-password1")
        assert _login(client).status_code == 200

    def test_attempts_are_recorded(self, client, operator_user):
        _login(client, password="Wrong-password1")
        _login(client)

        events = db.session.query(LoginEvent).order_by(LoginEvent.id.asc()).all()
        assert [(e.success, e.reason) for e in events] == [(False, "INVALID_CREDENTIALS"), (True, None)]


class TestTokens:

    def test_refresh_rotates_both_tokens(self, client, operator_user):
        first = _login(client).json

        resp = client.post("/api/auth/refresh", json={"refresh_token": first["refresh_token"]})
        assert resp.status_code == 200
        second = resp.json
        assert second["session_id"] == first["session_id"]
        assert second["access_token"] != first["access_token"]
        assert second["refresh_token"] != first["refresh_token"]

        assert client.post("/api/auth/refresh", json={"refresh_token": first["refresh_token"]}).status_code == 401
        assert client.get("/api/auth/me", headers=auth_headers(first["access_token"])).status_code == 401
        assert client.get("/api/auth/me", headers=auth_headers(second["access_token"])).status_code == 200

    def test_logout_revokes_session(self, client, operator_user):
        tokens = _login(client).json

        resp = client.post("/api/auth/logout", json={"refresh_token": tokens["refresh_token"]})
        assert resp.status_code == 200

        assert client.get("/api/auth/me", headers=auth_headers(tokens["access_token"])).status_code == 401
        assert client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401

    def test_logout_with_unknown_token_is_ok(self, client, db_session):
        resp = client.post("/api/auth/logout", json={"refresh_token": "not-a-token"})
        assert resp.status_code == 200

    def test_session_list_and_revoke(self, client, operator_user):
        laptop = _login(client).json
        phone = _login(client).json
        headers = auth_headers(laptop["access_token"])

        sessions = client.get("/api/auth/sessions", headers=headers).json["items"]
        assert len(sessions) == 2
        current = [s for s in sessions if s["current"]]
        assert [s["session_id"] for s in current] == [laptop["session_id"]]

        resp = client.delete(f"/api/auth/sessions/{phone['session_id']}", headers=headers)
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(phone["access_token"])).status_code == 401
        assert len(client.get("/api/auth/sessions", headers=headers).json["items"]) == 1

    def test_cannot_revoke_another_users_session(self, client, operator_user, viewer_user):
        mine = _login(client).json
        theirs = _login(client, username="viewer").json

        resp = client.delete(
            f"/api/auth/sessions/{theirs['session_id']}",
            headers=auth_headers(mine["access_token"]),
        )

        assert resp.status_code == 404
        assert client.get("/api/auth/me", headers=auth_headers(theirs["access_token"])).status_code == 200

    def test_deactivated_user_loses_access(self, client, operator_user):
        tokens = _login(client).json
        operator_user.is_active = False
        db.session.commit()

        assert client.get("/api/auth/me", headers=auth_headers(tokens["access_token"])).status_code == 401

    def test_expired_access_token(self, app, client, operator_user):
        app.config["ACCESS_TOKEN_TTL_SECONDS"] = -1
        try:
            tokens = _login(client).json
        finally:
            app.config["ACCESS_TOKEN_TTL_SECONDS"] = 900

        assert client.get("/api/auth/me", headers=auth_headers(tokens["access_token"])).status_code == 401
        refreshed = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refreshed.status_code == 200


class TestMfa:

    def _enable(self, client, headers):
        secret = client.post("/api/auth/mfa/setup", headers=headers).json["secret"]
        resp = client.post("/api/auth/mfa/enable", json={"code": totp_service.current_code(secret)}, headers=headers)
        assert resp.status_code == 200
        return secret

    def test_setup_returns_provisioning_uri(self, client, operator_headers):
        resp = client.post("/api/auth/mfa/setup", headers=operator_headers)

        assert resp.status_code == 200
        assert resp.json["otpauth_uri"].startswith("otpauth://totp/FlowStock%3Aoperator?")

    def test_enable_rejects_wrong_code(self, client, operator_headers):
        client.post("/api/auth/mfa/setup", headers=operator_headers)

        resp = client.post("/api/auth/mfa/enable", json={"code": "000000x"}, headers=operator_headers)

        assert resp.status_code == 400

    def test_login_requires_code_once_enabled(self, client, operator_headers):
        secret = self._enable(client, operator_headers)

        missing = _login(client)
        assert missing.status_code == 401
        assert missing.json["details"]["mfa_required"] is True

        assert _login(client, mfa_code="12345").status_code == 401
        assert _login(client, mfa_code=totp_service.current_code(secret)).status_code == 200

    def test_non_ascii_digits_are_rejected(self, client, operator_headers):
        arabic_indic = "١٢٣٤٥٦"
        client.post("/api/auth/mfa/setup", headers=operator_headers)

        resp = client.post("/api/auth/mfa/enable", json={"code": arabic_indic}, headers=operator_headers)
        assert resp.status_code == 400

        self._enable(client, operator_headers)
        resp = _login(client, mfa_code=arabic_indic)

        assert resp.status_code == 401
        last = db.session.query(LoginEvent).order_by(LoginEvent.id.desc()).first()
        assert (last.success, last.reason) == (False, "INVALID_MFA")

    def test_disable(self, client, operator_headers):
        secret = self._enable(client, operator_headers)

        resp = client.post("/api/auth/mfa/disable", json={"code": totp_service.current_code(secret)}, headers=operator_headers)

        assert resp.status_code == 200
        assert _login(client).status_code == 200


class TestPasswordReset:

    def test_reset_flow_revokes_sessions(self, client, operator_user):
        tokens = _login(client).json

        requested = client.post("/api/auth/password-reset/request", json={"username": "operator"}).json
        token = requested["reset_token"]

        resp = client.post(
            "/api/auth/password-reset/confirm",
            json={"token": token, "new_password": "N3w-Password!"},
        )
        assert resp.status_code == 200

        assert client.get("/api/auth/me", headers=auth_headers(tokens["access_token"])).status_code == 401
        assert _login(client).status_code == 401
        assert _login(client, password="N3w-Password!").status_code == 200

        reused = client.post(
            "/api/auth/password-reset/confirm",
            json={"token": token, "new_password": "An0ther-Password!"},
        )
        assert reused.status_code == 400

    def test_unknown_user_gets_generic_answer(self, client, operator_user):
        known = client.post("/api/auth/password-reset/request", json={"username": "operator"}).json
        unknown = client.post("/api/auth/password-reset/request", json={"username": "ghost"}).json

        assert unknown["message"] == known["message"]
        assert "reset_token" not in unknown

    def test_weak_new_password_is_rejected(self, client, operator_user):
        token = client.post("/api/auth/password-reset/request", json={"username": "operator"}).json["reset_token"]

        resp = client.post("/api/auth/password-reset/confirm", json={"token": token, "new_password": "short"})

        assert resp.status_code == 400
        assert _login(client).status_code == 200


class TestPasswordStrength:

    @pytest.mark.parametrize(
        "password",
        ["Sh0rt!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigitsHere!", "NoSpecial123"],
    )
    def test_weak_passwords(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_strong_password(self):
        auth_service.validate_password_strength("Str0ng-Enough!")
