"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Cashier role is denied admin operations (403)
- Admin role can perform privileged operations
- Role policies grant the documented capabilities
"""

import pytest

from pos_app.permissions import AdminPolicy, Capability, CashierPolicy, policy_for

from conftest import auth_headers


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/categories"),
            ("POST", "/api/transactions"),
            ("GET", "/api/transactions"),
            ("GET", "/api/reports/sales"),
            ("GET", "/api/users"),
            ("GET", "/api/inventory/reconcile"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401

    def test_logged_out_token_is_rejected(self, client, cashier_headers):
        assert client.post("/api/auth/logout", headers=cashier_headers).status_code == 200
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401


# =============================================================================
# CASHIER DENIED ADMIN OPERATIONS: 403
# =============================================================================


class TestCashierDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/reports/sales?start=2024-01-01&end=2024-01-31"),
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("POST", "/api/products"),
            ("POST", "/api/categories"),
            ("PUT", "/api/categories/1"),
            ("GET", "/api/users/1"),
            ("PUT", "/api/users/1"),
            ("GET", "/api/inventory/reconcile"),
            ("POST", "/api/inventory/1/adjust"),
        ],
    )
    def test_forbidden(self, client, cashier_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.json["role"] == "cashier"
        assert resp.json["required_capability"]

    def test_cashier_can_browse_catalog(self, client, cashier_headers, make_product):
        make_product(stock=1)
        resp = client.get("/api/products", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1


# =============================================================================
# ADMIN ALLOWED
# =============================================================================


class TestAdminAllowed:

    def test_admin_can_view_reports(self, client, admin_headers):
        resp = client.get("/api/reports/sales?start=2024-01-01&end=2024-01-31", headers=admin_headers)
        assert resp.status_code == 200

    def test_admin_can_list_users(self, client, admin_headers):
        resp = client.get("/api/users", headers=admin_headers)
        assert resp.status_code == 200
        assert [u["username"] for u in resp.json["items"]] == ["admin"]

    def test_deactivated_user_loses_access(self, client, admin_headers, make_user):
        from conftest import get_auth_token

        clerk = make_user("clerk")
        clerk_headers = auth_headers(get_auth_token(client, "clerk"))
        assert client.get("/api/auth/me", headers=clerk_headers).status_code == 200

        resp = client.delete(f"/api/users/{clerk.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["is_active"] is False
        assert client.get("/api/auth/me", headers=clerk_headers).status_code == 401


class TestRolePolicies:

    def test_admin_holds_every_capability(self):
        assert all(AdminPolicy().allows(cap) for cap in Capability.ALL)

    def test_cashier_capabilities(self):
        policy = CashierPolicy()
        granted = {cap for cap in Capability.ALL if policy.allows(cap)}
        assert granted == {Capability.CHECKOUT, Capability.VIEW_CATALOG, Capability.VIEW_OWN_TRANSACTIONS}

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            policy_for("manager")
