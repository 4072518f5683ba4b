# Overview: Pytest coverage for the static role -> permission table.

from types import SimpleNamespace

import pytest

from bms.extensions import db
from bms.models import ActivityLog
from bms.permissions import (
    Permission,
    PRIVILEGED_ROLES,
    ROLE_PERMISSIONS,
    Role,
    can,
    get_all_permission_codes,
    get_permission_definition,
    parse_permission,
    parse_role,
    permissions_for_role,
    validate_permission_code,
)
from bms.services import permission_service
from bms.services.permission_service import PermissionDeniedError


def user(role, is_active=True):
    return SimpleNamespace(id=None, role=role, is_active=is_active)


class TestRoleTable:
    """Every role has a closed permission set."""

    def test_every_role_is_mapped(self):
        assert set(ROLE_PERMISSIONS) == set(Role)

    def test_super_admin_has_everything(self):
        assert ROLE_PERMISSIONS[Role.SUPER_ADMIN] == frozenset(Permission)

    def test_company_admin_extends_admin(self):
        admin = ROLE_PERMISSIONS[Role.ADMIN]
        company_admin = ROLE_PERMISSIONS[Role.COMPANY_ADMIN]
        assert admin < company_admin
        assert Permission.UPDATE_COMPANY in company_admin
        assert Permission.UPDATE_COMPANY not in admin

    def test_platform_permissions_are_super_admin_only(self):
        for role in Role:
            if role is Role.SUPER_ADMIN:
                continue
            assert Permission.ACCESS_ALL_COMPANIES not in ROLE_PERMISSIONS[role]
            assert Permission.CREATE_COMPANY not in ROLE_PERMISSIONS[role]

    def test_privileged_roles(self):
        assert PRIVILEGED_ROLES == {Role.SUPER_ADMIN, Role.COMPANY_ADMIN}

    def test_every_permission_is_documented(self):
        assert sorted(get_all_permission_codes()) == sorted(p.value for p in Permission)
        definition = get_permission_definition("record_payment")
        assert definition["category"] == "SALES"


class TestCan:
    @pytest.mark.parametrize("role,permission,expected", [
        ("accountant", Permission.RECORD_PAYMENT, True),
        ("accountant", Permission.DELETE_INVOICE, False),
        ("accountant", Permission.CANCEL_INVOICE, True),
        ("staff", Permission.RECORD_PAYMENT, False),
        ("staff", Permission.VIEW_USERS, True),
        ("admin", Permission.DELETE_INVOICE, True),
        ("admin", Permission.VIEW_FINANCIAL_REPORTS, True),
        ("staff", Permission.VIEW_FINANCIAL_REPORTS, False),
        ("super_admin", Permission.ACCESS_ALL_COMPANIES, True),
    ])
    def test_matrix(self, role, permission, expected):
        assert can(user(role), permission) is expected

    def test_string_tokens_are_accepted(self):
        assert can(user("admin"), "delete_item") is True

    def test_unknown_inputs_deny(self):
        assert can(None, Permission.VIEW_USERS) is False
        assert can(user(None), Permission.VIEW_USERS) is False
        assert can(user("janitor"), Permission.VIEW_USERS) is False
        assert can(user("admin"), "launch_rockets") is False

    def test_inactive_user_is_denied(self):
        assert can(user("super_admin", is_active=False), Permission.VIEW_USERS) is False

    def test_parsers(self):
        assert parse_role("staff") is Role.STAFF
        assert parse_role("nope") is None
        assert parse_permission("export_data") is Permission.EXPORT_DATA
        assert parse_permission("nope") is None
        assert validate_permission_code("view_users")
        assert permissions_for_role("nope") == frozenset()


class TestPermissionService:
    def test_user_permissions_are_codes(self, staff_a):
        assert permission_service.get_user_permissions(staff_a) == {"view_users"}

    def test_denial_is_logged(self, db_session, staff_a):
        with pytest.raises(PermissionDeniedError, match="record_payment"):
            permission_service.require_permission(
                staff_a, Permission.RECORD_PAYMENT, company_id=staff_a.company_id, resource="POST /x"
            )

        entry = db.session.query(ActivityLog).filter_by(action="permission_denied").one()
        assert entry.user_id == staff_a.id
        assert entry.company_id == staff_a.company_id
        assert entry.details["permission"] == "record_payment"
        assert entry.details["resource"] == "POST /x"

    def test_grant_writes_nothing(self, db_session, admin_a):
        permission_service.require_permission(admin_a, Permission.RECORD_PAYMENT, company_id=admin_a.company_id)
        assert db.session.query(ActivityLog).count() == 0
