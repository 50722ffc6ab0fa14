"""
Authorization tests for FlowStock.

Verifies:
- Unauthenticated requests return 401
- VIEWER is read-only (403 on writes)
- OPERATOR runs the stock workflow but not administration
- ADMIN can reach administration endpoints
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/auth/sessions"),
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/categories"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/orders"),
            ("POST", "/api/orders"),
            ("POST", "/api/orders/1/confirm"),
            ("GET", "/api/purchase-orders"),
            ("GET", "/api/purchase-orders/suggestions"),
            ("POST", "/api/purchase-orders/1/receive"),
            ("GET", "/api/sales/report"),
            ("GET", "/api/audit-logs"),
            ("POST", "/api/audit-logs/cleanup"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Bearer nonsense"})
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# VIEWER IS READ-ONLY (403)
# =============================================================================


class TestViewerReadOnly:

    @pytest.mark.parametrize(
        "path",
        [
            "/api/products",
            "/api/categories",
            "/api/suppliers",
            "/api/orders",
            "/api/purchase-orders",
            "/api/purchase-orders/suggestions",
            "/api/sales/report",
        ],
    )
    def test_can_read(self, client, viewer_headers, path):
        resp = client.get(path, headers=viewer_headers)
        assert resp.status_code == 200, f"GET {path} returned {resp.status_code}"

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/products"),
            ("POST", "/api/categories"),
            ("POST", "/api/suppliers"),
            ("POST", "/api/orders"),
            ("POST", "/api/orders/1/cancel"),
            ("POST", "/api/purchase-orders"),
            ("POST", "/api/purchase-orders/1/receive"),
            ("PUT", "/api/products/1/suppliers/1"),
        ],
    )
    def test_cannot_write(self, client, viewer_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=viewer_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"


# =============================================================================
# OPERATOR DENIED ADMINISTRATION (403)
# =============================================================================


class TestOperatorDeniedAdministration:

    def test_cannot_list_users(self, client, operator_headers):
        assert client.get("/api/users", headers=operator_headers).status_code == 403

    def test_cannot_create_user(self, client, operator_headers):
        resp = client.post(
            "/api/users",
            json={"username": "mallory", "password": "P@ssw0rd123!", "role": "ADMIN"},
            headers=operator_headers,
        )
        assert resp.status_code == 403

    def test_cannot_read_audit_log(self, client, operator_headers):
        assert client.get("/api/audit-logs", headers=operator_headers).status_code == 403

    def test_cannot_clean_audit_log(self, client, operator_headers):
        resp = client.post("/api/audit-logs/cleanup", json={"retention_days": 1}, headers=operator_headers)
        assert resp.status_code == 403


# =============================================================================
# ADMIN
# =============================================================================


class TestAdminAccess:

    def test_create_and_list_users(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": "clerk", "password": "P@ssw0rd123!", "role": "operator"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["role"] == "OPERATOR"

        users = client.get("/api/users", headers=admin_headers).json
        assert {u["username"] for u in users["items"]} == {"admin", "clerk"}

    def test_duplicate_username_is_409(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": "ADMIN", "password": "P@ssw0rd123!"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_audit_log_lists_logins(self, client, admin_headers):
        resp = client.get("/api/audit-logs?action=AUTH_LOGIN", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["total"] >= 1
        assert resp.json["items"][0]["actor_username"] == "admin"

    def test_audit_cleanup(self, client, admin_headers):
        resp = client.post("/api/audit-logs/cleanup", json={"retention_days": 0}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["retention_days"] == 1
        assert resp.json["trigger"] == "MANUAL"

    def test_audit_cleanup_rejects_non_integer(self, client, admin_headers):
        resp = client.post("/api/audit-logs/cleanup", json={"retention_days": "soon"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_audit_export_csv(self, client, admin_headers):
        resp = client.get("/api/audit-logs/export.csv", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "AUTH_LOGIN" in resp.get_data(as_text=True)

    def test_bad_date_filter_is_400(self, client, admin_headers):
        resp = client.get("/api/audit-logs?from=yesterday", headers=admin_headers)
        assert resp.status_code == 400
