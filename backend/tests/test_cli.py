# Overview: Pytest coverage for the Flask CLI command groups.

from datetime import timedelta

import pytest

from bms.extensions import db
from bms.models import Company, Invoice, User
from bms.time_utils import utctoday

from conftest import make_invoice


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestPermsCommands:
    def test_list_single_role(self, runner):
        result = runner.invoke(args=["perms", "list", "--role", "staff"])
        assert result.exit_code == 0
        assert result.output.splitlines() == ["staff (1):", "  - view_users"]

    def test_list_unknown_role(self, runner):
        result = runner.invoke(args=["perms", "list", "--role", "janitor"])
        assert "FAIL Unknown role: janitor" in result.output

    def test_check(self, runner, staff_a):
        result = runner.invoke(args=["perms", "check", "CLERK@acme.test", "view_users"])
        assert result.output.startswith("YES clerk@acme.test (staff)")

        result = runner.invoke(args=["perms", "check", "clerk@acme.test", "record_payment"])
        assert result.output.startswith("NO clerk@acme.test")

    def test_check_unknown_permission(self, runner, staff_a):
        result = runner.invoke(args=["perms", "check", "clerk@acme.test", "fly"])
        assert "FAIL Unknown permission: fly" in result.output


class TestCompanyAndUserCommands:
    def test_create_and_list_companies(self, runner, db_session):
        result = runner.invoke(args=["companies", "create", "--name", "Delta", "--email", "hq@delta.test",
                                     "--invoice-prefix", "dlt"])
        assert "PASS Created company: Delta" in result.output
        assert db.session.query(Company).filter_by(email="hq@delta.test").one().invoice_prefix == "DLT"

        result = runner.invoke(args=["companies", "list"])
        assert "hq@delta.test" in result.output

    def test_create_company_duplicate_email(self, runner, company_a):
        result = runner.invoke(args=["companies", "create", "--name", "Copy", "--email", "office@acme.test"])
        assert result.output.startswith("FAIL")

    def test_create_user(self, runner, company_a):
        result = runner.invoke(args=[
            "users", "create", "--company-id", str(company_a.id), "--name", "Jane",
            "--email", "jane@acme.test", "--password", "Password123!", "--role", "accountant",
        ])
        assert "PASS Created user: jane@acme.test" in result.output

        result = runner.invoke(args=["users", "list", "--company-id", str(company_a.id)])
        assert "jane@acme.test" in result.output
        assert "accountant" in result.output

    def test_create_user_weak_password(self, runner, company_a):
        result = runner.invoke(args=[
            "users", "create", "--company-id", str(company_a.id), "--name", "Jane",
            "--email", "jane@acme.test", "--password", "weak",
        ])
        assert "FAIL Password validation failed" in result.output


class TestSystemInit:
    def test_init_is_idempotent(self, runner, db_session):
        first = runner.invoke(args=["system", "init", "--company", "Acme Ltd", "--email", "office@acme.test"])
        assert "PASS Created company: Acme Ltd" in first.output
        assert first.output.count("PASS Created user:") == 5

        second = runner.invoke(args=["system", "init", "--company", "Acme Ltd", "--email", "office@acme.test"])
        assert "PASS Using existing company: Acme Ltd" in second.output
        assert second.output.count("SKIP User already exists") == 5
        assert db.session.query(User).count() == 5

    def test_reset_requires_confirmation(self, runner, db_session):
        result = runner.invoke(args=["system", "reset-db"])
        assert "FAIL Refusing to reset without --yes" in result.output


class TestMaintenanceCommands:
    def test_reconcile_overdue(self, runner, db_session, company_a, admin_a, customer_a, item_a):
        invoice = make_invoice(company_a, admin_a, customer_a, item_a, status="sent",
                               invoice_date=(utctoday() - timedelta(days=30)).isoformat())
        invoice.due_date = utctoday() - timedelta(days=2)
        db_session.commit()

        result = runner.invoke(args=["invoices", "reconcile-overdue"])
        assert "Reconciled invoices: 1 status change(s)." in result.output
        assert db.session.get(Invoice, invoice.id).status == "overdue"

    def test_fix_number_indexes_on_current_schema(self, runner, db_session):
        result = runner.invoke(args=["maintenance", "fix-number-indexes"])
        assert result.output.splitlines() == [
            "OK   invoices: nothing to do",
            "OK   sales_receipts: nothing to do",
        ]
