# Overview: Pytest coverage for user management and company administration.

import pytest

from bms.permissions import Role
from bms.services import company_service, user_service
from bms.services.user_service import UserManagementError
from bms.validation import ValidationError

from conftest import PASSWORD, get_auth_token, auth_headers, login_headers


def staff_payload(email="new@acme.test", **extra):
    payload = {"name": "New Hire", "email": email, "password": PASSWORD, "role": "staff"}
    payload.update(extra)
    return payload


# =============================================================================
# USERS
# =============================================================================

class TestCreateCompanyUser:
    def test_admin_creates_staff_in_own_company(self, company_a, admin_a):
        user = user_service.create_company_user(admin_a, company_a.id, staff_payload())
        assert user.company_id == company_a.id
        assert user.role == Role.STAFF.value

    def test_company_id_in_payload_ignored_for_company_users(self, company_a, company_b, admin_a):
        user = user_service.create_company_user(admin_a, company_a.id, staff_payload(company_id=company_b.id))
        assert user.company_id == company_a.id

    def test_only_super_admin_grants_privileged_roles(self, company_a, company_admin_a, super_admin):
        with pytest.raises(UserManagementError, match="Only super_admin"):
            user_service.create_company_user(company_admin_a, company_a.id, staff_payload(role="company_admin"))

        user = user_service.create_company_user(
            super_admin, None, staff_payload(role="company_admin", company_id=company_a.id)
        )
        assert user.role == "company_admin"
        assert user.company_id == company_a.id

    def test_seat_limit(self, db_session, company_a, admin_a, staff_a):
        company_a.max_users = 2
        db_session.commit()
        with pytest.raises(UserManagementError, match="user limit"):
            user_service.create_company_user(admin_a, company_a.id, staff_payload())

    def test_weak_password_and_unknown_role(self, company_a, admin_a):
        with pytest.raises(ValidationError) as exc:
            user_service.create_company_user(admin_a, company_a.id, staff_payload(password="short"))
        assert exc.value.errors[0]["field"] == "password"

        with pytest.raises(ValidationError) as exc:
            user_service.create_company_user(admin_a, company_a.id, staff_payload(role="wizard"))
        assert exc.value.errors[0]["field"] == "role"

    def test_duplicate_email(self, company_a, admin_a, staff_a):
        with pytest.raises(ValidationError):
            user_service.create_company_user(admin_a, company_a.id, staff_payload(email=staff_a.email))


class TestUpdateUser:
    def test_role_change_revokes_sessions(self, client, company_a, company_admin_a, staff_a):
        token = get_auth_token(client, staff_a.email)
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 200

        user_service.update_user(company_admin_a, company_a.id, staff_a.id, {"role": "accountant"})
        assert staff_a.role == "accountant"
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_rename_keeps_sessions(self, client, company_a, admin_a, staff_a):
        token = get_auth_token(client, staff_a.email)
        user_service.update_user(admin_a, company_a.id, staff_a.id, {"name": "Clerk Kent"})
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 200

    def test_cannot_deactivate_self(self, company_a, admin_a):
        with pytest.raises(UserManagementError, match="your own account"):
            user_service.deactivate_user(admin_a, company_a.id, admin_a.id)

    def test_admin_cannot_touch_company_admin(self, company_a, admin_a, company_admin_a):
        with pytest.raises(UserManagementError):
            user_service.update_user(admin_a, company_a.id, company_admin_a.id, {"name": "Demoted"})

    def test_unknown_fields_rejected(self, company_a, admin_a, staff_a):
        with pytest.raises(ValidationError) as exc:
            user_service.update_user(admin_a, company_a.id, staff_a.id, {"email": "x@y.test", "company_id": 9})
        assert [e["field"] for e in exc.value.errors] == ["company_id", "email"]

    def test_super_admin_role_reserved_for_platform(self, company_a, super_admin, staff_a):
        with pytest.raises(UserManagementError, match="reserved"):
            user_service.update_user(super_admin, company_a.id, staff_a.id, {"role": "super_admin"})

    def test_foreign_user_not_found(self, company_a, admin_a, admin_b):
        with pytest.raises(user_service.UserNotFoundError):
            user_service.update_user(admin_a, company_a.id, admin_b.id, {"name": "Hijacked"})


class TestUserRoutes:
    def test_create_privileged_role_is_403(self, client, company_a, admin_a):
        resp = client.post("/api/users", json=staff_payload(role="company_admin"),
                           headers=login_headers(client, admin_a))
        assert resp.status_code == 403

    def test_deactivate_route(self, client, company_a, admin_a, staff_a):
        resp = client.patch(f"/api/users/{staff_a.id}/deactivate", headers=login_headers(client, admin_a))
        assert resp.status_code == 200
        assert resp.get_json()["user"]["is_active"] is False
        assert get_auth_token(client, staff_a.email) is None

    def test_staff_cannot_deactivate(self, client, company_a, admin_a, staff_a):
        resp = client.patch(f"/api/users/{admin_a.id}/deactivate", headers=login_headers(client, staff_a))
        assert resp.status_code == 403

    def test_permission_catalog(self, client, company_a, staff_a):
        headers = login_headers(client, staff_a)
        body = client.get("/api/users/permissions", headers=headers).get_json()
        assert body["roles"]["staff"] == ["view_users"]
        assert {"code": "record_payment", "name": "Record Payments",
                "description": "Apply payments to invoices", "category": "SALES"} in body["permissions"]

        body = client.get("/api/users/permissions?category=expenses", headers=headers).get_json()
        assert [p["code"] for p in body["permissions"]] == ["approve_expense", "delete_expense"]


# =============================================================================
# COMPANIES
# =============================================================================

class TestCompanyService:
    def test_create_normalizes(self, db_session):
        company = company_service.create_company({
            "name": "Gamma Co", "email": "Hello@Gamma.TEST", "currency": "eur",
            "invoice_prefix": "gam-inv", "receipt_prefix": "gr",
        })
        assert company.email == "hello@gamma.test"
        assert company.currency == "EUR"
        assert (company.invoice_prefix, company.receipt_prefix) == ("GAM-INV", "GR")
        assert company.max_users == 5

    def test_create_rejects_bad_settings(self, db_session):
        with pytest.raises(ValidationError) as exc:
            company_service.create_company({
                "name": "Bad", "email": "bad@bad.test", "currency": "EURO", "invoice_prefix": "IN V",
            })
        assert {e["field"] for e in exc.value.errors} == {"currency", "invoice_prefix"}

    def test_required_fields(self, db_session):
        with pytest.raises(ValidationError) as exc:
            company_service.create_company({})
        assert {e["field"] for e in exc.value.errors} == {"email", "name"}

    def test_duplicate_email(self, company_a):
        with pytest.raises(ValidationError, match="already exists"):
            company_service.create_company({"name": "Copy", "email": "OFFICE@acme.test"})

    def test_subscription_fields_need_platform_admin(self, company_a):
        with pytest.raises(ValidationError):
            company_service.update_company(company_a.id, {"subscription_plan": "premium"})

        company = company_service.update_company(company_a.id, {"subscription_plan": "premium"},
                                                 platform_admin=True)
        assert company.subscription_plan == "premium"

    def test_list_excludes_inactive_on_request(self, company_a, company_b):
        company_service.set_company_active(company_b.id, False)
        assert [c.name for c in company_service.list_companies()] == ["Acme Ltd", "Beta Inc"]
        assert [c.name for c in company_service.list_companies(include_inactive=False)] == ["Acme Ltd"]


class TestCompanyRoutes:
    def test_current_company(self, client, company_a, company_admin_a):
        resp = client.get("/api/companies/current", headers=login_headers(client, company_admin_a))
        assert resp.status_code == 200
        assert resp.get_json()["company"]["settings"]["invoice_prefix"] == "INV"

    def test_staff_cannot_view_company(self, client, company_a, staff_a):
        assert client.get("/api/companies/current", headers=login_headers(client, staff_a)).status_code == 403

    def test_company_admin_updates_profile(self, client, company_a, company_admin_a):
        headers = login_headers(client, company_admin_a)
        resp = client.put("/api/companies/current", json={"phone": "555-0199", "invoice_prefix": "acme"},
                          headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["company"]["settings"]["invoice_prefix"] == "ACME"

        resp = client.put("/api/companies/current", json={"max_users": 50}, headers=headers)
        assert resp.status_code == 400

    def test_super_admin_deactivates_and_reactivates(self, client, company_a, super_admin):
        headers = login_headers(client, super_admin)
        resp = client.patch(f"/api/companies/{company_a.id}/deactivate", headers=headers)
        assert resp.get_json()["company"]["is_active"] is False

        resp = client.patch(f"/api/companies/{company_a.id}/activate", headers=headers)
        assert resp.get_json()["company"]["is_active"] is True

    def test_unknown_company_is_404(self, client, db_session, super_admin):
        resp = client.patch("/api/companies/999999/deactivate", headers=login_headers(client, super_admin))
        assert resp.status_code == 404
