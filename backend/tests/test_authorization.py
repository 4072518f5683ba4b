"""
Authorization tests for BMS.

Verifies:
- Unauthenticated requests return 401
- Staff and accountant roles are denied privileged operations (403)
- Admin roles can perform them
- Platform endpoints are reserved for super_admin
"""

import pytest

from bms.extensions import db
from bms.models import ActivityLog

from conftest import get_auth_token, auth_headers, login_headers, make_invoice


@pytest.fixture
def staff_headers(client, staff_a):
    return login_headers(client, staff_a)


@pytest.fixture
def accountant_headers(client, accountant_a):
    return login_headers(client, accountant_a)


@pytest.fixture
def admin_headers(client, admin_a):
    return login_headers(client, admin_a)


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("GET", "/api/companies"),
            ("GET", "/api/companies/current"),
            ("GET", "/api/customers"),
            ("GET", "/api/items"),
            ("GET", "/api/invoices"),
            ("POST", "/api/invoices"),
            ("POST", "/api/invoices/1/payments"),
            ("GET", "/api/receipts"),
            ("GET", "/api/expenses"),
            ("GET", "/api/notifications"),
            ("GET", "/api/reports/dashboard"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["error"] == "Authentication required"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/auth/me", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired token"

    def test_health_is_public(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"


# =============================================================================
# LOGIN / SESSION
# =============================================================================


class TestLogin:
    def test_login_returns_token_and_permissions(self, client, accountant_a):
        resp = client.post("/api/auth/login", json={"email": "BOOKS@acme.test", "password": "Password123!"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["token"]
        assert body["company_id"] == accountant_a.company_id
        assert "record_payment" in body["permissions"]
        assert "delete_invoice" not in body["permissions"]

    def test_wrong_password_is_logged(self, client, accountant_a):
        resp = client.post("/api/auth/login", json={"email": accountant_a.email, "password": "Wrong123!"})
        assert resp.status_code == 401
        assert db.session.query(ActivityLog).filter_by(action="auth.login_failed").count() == 1

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "x@y.z"})
        assert resp.status_code == 400

    def test_self_registration_is_disabled(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "x@y.z", "password": "Password123!"})
        assert resp.status_code == 403

    def test_logout_revokes_token(self, client, staff_a):
        token = get_auth_token(client, staff_a.email)
        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_me(self, client, staff_a, staff_headers):
        resp = client.get("/api/auth/me", headers=staff_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["email"] == staff_a.email
        assert body["permissions"] == ["view_users"]


# =============================================================================
# LOW-PRIVILEGE ROLES DENIED: 403
# =============================================================================


class TestStaffDenied:
    """Staff can work with documents but not guard-protected actions."""

    def test_cannot_create_user(self, client, staff_headers):
        resp = client.post(
            "/api/users",
            json={"name": "x", "email": "x@acme.test", "password": "Password123!"},
            headers=staff_headers,
        )
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == "create_user"

    def test_cannot_view_reports(self, client, staff_headers):
        assert client.get("/api/reports/dashboard", headers=staff_headers).status_code == 403

    def test_cannot_delete_invoice(self, client, staff_headers, company_a, admin_a, customer_a, item_a):
        invoice = make_invoice(company_a, admin_a, customer_a, item_a)
        resp = client.delete(f"/api/invoices/{invoice.id}", headers=staff_headers)
        assert resp.status_code == 403

    def test_cannot_list_companies(self, client, staff_headers):
        assert client.get("/api/companies", headers=staff_headers).status_code == 403

    def test_can_list_invoices(self, client, staff_headers):
        resp = client.get("/api/invoices", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["pagination"]["total"] == 0

    def test_denial_is_audited(self, client, staff_a, staff_headers):
        client.get("/api/reports/dashboard", headers=staff_headers)
        entry = db.session.query(ActivityLog).filter_by(action="permission_denied").one()
        assert entry.user_id == staff_a.id
        assert entry.details["resource"] == "GET /api/reports/dashboard"


class TestAccountant:
    def test_can_view_reports(self, client, accountant_headers):
        assert client.get("/api/reports/dashboard", headers=accountant_headers).status_code == 200

    def test_cannot_delete_invoice(self, client, accountant_headers, company_a, admin_a, customer_a, item_a):
        invoice = make_invoice(company_a, admin_a, customer_a, item_a)
        assert client.delete(f"/api/invoices/{invoice.id}", headers=accountant_headers).status_code == 403

    def test_can_cancel_invoice(self, client, accountant_headers, company_a, admin_a, customer_a, item_a):
        invoice = make_invoice(company_a, admin_a, customer_a, item_a, status="sent")
        resp = client.patch(f"/api/invoices/{invoice.id}/cancel", headers=accountant_headers)
        assert resp.status_code == 200
        assert resp.get_json()["invoice"]["status"] == "cancelled"


# =============================================================================
# ADMIN ALLOWED
# =============================================================================


class TestAdminAllowed:
    def test_can_delete_draft_invoice(self, client, admin_headers, company_a, admin_a, customer_a, item_a):
        invoice = make_invoice(company_a, admin_a, customer_a, item_a)
        assert client.delete(f"/api/invoices/{invoice.id}", headers=admin_headers).status_code == 200

    def test_can_create_staff_user(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"name": "New Clerk", "email": "new@acme.test", "password": "Password123!", "role": "staff"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["user"]["role"] == "staff"

    def test_cannot_grant_company_admin(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"name": "Boss", "email": "boss@acme.test", "password": "Password123!", "role": "company_admin"},
            headers=admin_headers,
        )
        assert resp.status_code == 403

    def test_cannot_update_company_profile(self, client, admin_headers):
        resp = client.put("/api/companies/current", json={"phone": "555"}, headers=admin_headers)
        assert resp.status_code == 403


class TestPlatformAccess:
    def test_super_admin_lists_companies(self, client, super_admin, company_a, company_b):
        resp = client.get("/api/companies", headers=login_headers(client, super_admin))
        assert resp.status_code == 200
        assert {c["name"] for c in resp.get_json()["companies"]} == {"Acme Ltd", "Beta Inc"}

    def test_company_admin_cannot_create_company(self, client, company_admin_a):
        resp = client.post("/api/companies", json={"name": "X", "email": "x@x.test"},
                           headers=login_headers(client, company_admin_a))
        assert resp.status_code == 403
