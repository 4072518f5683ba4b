# Overview: Pytest coverage for dashboard, profit & loss, status mix and aging reports.

from datetime import date, timedelta

import pytest

from bms.services import expense_service, receipt_service, reporting_service
from bms.services.payment_service import record_payment
from bms.services.reporting_service import ReportError
from bms.time_utils import utctoday

from conftest import login_headers, make_invoice


def paid_expense(company, user, amount, category="rent", expense_date=None):
    expense = expense_service.create_expense(company.id, user.id, {
        "title": f"{category} bill",
        "amount_cents": amount,
        "expense_date": (expense_date or utctoday()).isoformat(),
        "category": category,
    })
    expense_service.change_expense_status(company.id, expense.id, user.id, "approved")
    return expense_service.change_expense_status(company.id, expense.id, user.id, "paid")


def sale(company, user, item, quantity=1):
    data = receipt_service.validate_receipt_payload(
        {"lines": [{"item_id": item.id, "quantity": quantity}]}, partial=False
    )
    return receipt_service.create_receipt(company.id, user.id, data)


class TestDashboard:
    def test_revenue_counts_payments_and_receipts(self, company_a, admin_a, customer_a, item_a):
        invoice = make_invoice(company_a, admin_a, customer_a, item_a, quantity=4, status="sent")
        record_payment(company_id=company_a.id, invoice_id=invoice.id, user_id=admin_a.id, amount_cents=5000)
        sale(company_a, admin_a, item_a)
        paid_expense(company_a, admin_a, 3000)

        dash = reporting_service.get_dashboard(company_a.id)
        assert dash["invoice_revenue_cents"] == 5000
        assert dash["receipt_revenue_cents"] == 5000
        assert dash["revenue_cents"] == 10000
        assert dash["expenses_cents"] == 3000
        assert dash["profit_cents"] == 7000
        assert dash["outstanding_cents"] == 15000
        assert dash["unpaid_invoice_count"] == 1

    def test_pending_expenses_do_not_count(self, company_a, admin_a):
        expense_service.create_expense(company_a.id, admin_a.id, {
            "title": "Chairs", "amount_cents": 9900, "expense_date": utctoday().isoformat(),
        })
        assert reporting_service.get_dashboard(company_a.id)["expenses_cents"] == 0

    def test_expense_status_change_invalidates(self, company_a, admin_a):
        assert reporting_service.get_dashboard(company_a.id)["expenses_cents"] == 0
        paid_expense(company_a, admin_a, 1234)
        dash = reporting_service.get_dashboard(company_a.id)
        assert dash["cached"] is False
        assert dash["expenses_cents"] == 1234


class TestProfitAndLoss:
    def test_range_and_categories(self, company_a, admin_a, item_a):
        today = utctoday()
        sale(company_a, admin_a, item_a, quantity=2)
        paid_expense(company_a, admin_a, 2000, category="rent")
        paid_expense(company_a, admin_a, 500, category="utilities")
        paid_expense(company_a, admin_a, 700, category="rent", expense_date=today - timedelta(days=60))

        report = reporting_service.profit_and_loss(company_a.id, from_date=today - timedelta(days=7), to_date=today)
        assert report["revenue_cents"] == 10000
        assert report["expenses_cents"] == 2500
        assert report["expenses_by_category"] == {"rent": 2000, "utilities": 500}
        assert report["profit_cents"] == 7500
        assert report["profit_margin_pct"] == 75.0

    def test_inverted_range(self, company_a):
        with pytest.raises(ReportError):
            reporting_service.profit_and_loss(company_a.id, from_date=date(2024, 2, 1), to_date=date(2024, 1, 1))

    def test_no_revenue_margin_is_zero(self, company_a):
        assert reporting_service.profit_and_loss(company_a.id)["profit_margin_pct"] == 0.0


class TestStatusAndAging:
    def test_status_distribution_skips_cancelled(self, company_a, admin_a, customer_a, item_a):
        from bms.services.invoice_service import cancel_invoice

        make_invoice(company_a, admin_a, customer_a, item_a)
        make_invoice(company_a, admin_a, customer_a, item_a, status="sent")
        gone = make_invoice(company_a, admin_a, customer_a, item_a, status="sent")
        cancel_invoice(company_a.id, gone.id, admin_a.id)

        rows = reporting_service.invoice_status_distribution(company_a.id)
        assert [(r["status"], r["count"]) for r in rows] == [("draft", 1), ("sent", 1)]

    def test_aging_buckets(self, company_a, admin_a, customer_a, item_a):
        today = utctoday()
        make_invoice(company_a, admin_a, customer_a, item_a, status="sent", days_until_due=10)
        make_invoice(company_a, admin_a, customer_a, item_a, status="sent", days_until_due=20)
        make_invoice(company_a, admin_a, customer_a, item_a)  # draft: not receivable

        report = reporting_service.aging_report(company_a.id, as_of=today + timedelta(days=46))
        assert report["buckets"]["31_60"] == {"count": 1, "balance_cents": 10000}
        assert report["buckets"]["1_30"] == {"count": 1, "balance_cents": 10000}
        assert report["buckets"]["over_90"]["count"] == 0
        assert report["buckets"]["current"]["count"] == 0
        assert report["total_outstanding_cents"] == 20000
        assert [r["days_overdue"] for r in report["invoices"]] == [36, 26]

    def test_not_yet_due_is_current(self, company_a, admin_a, customer_a, item_a):
        make_invoice(company_a, admin_a, customer_a, item_a, status="sent")
        report = reporting_service.aging_report(company_a.id)
        assert report["buckets"]["current"]["count"] == 1


class TestReportRoutes:
    def test_dashboard_cached_flag(self, client, company_a, accountant_a):
        headers = login_headers(client, accountant_a)
        assert client.get("/api/reports/dashboard", headers=headers).get_json()["cached"] is False
        assert client.get("/api/reports/dashboard", headers=headers).get_json()["cached"] is True

    def test_bad_date_is_400(self, client, company_a, accountant_a):
        resp = client.get("/api/reports/profit-loss?from_date=yesterday",
                          headers=login_headers(client, accountant_a))
        assert resp.status_code == 400

    def test_inverted_range_is_400(self, client, company_a, accountant_a):
        resp = client.get("/api/reports/profit-loss?from_date=2024-02-01&to_date=2024-01-01",
                          headers=login_headers(client, accountant_a))
        assert resp.status_code == 400

    def test_aging_as_of(self, client, company_a, accountant_a):
        resp = client.get("/api/reports/aging?as_of=2024-06-30", headers=login_headers(client, accountant_a))
        assert resp.status_code == 200
        assert resp.get_json()["as_of"] == "2024-06-30"

    def test_activity_trail(self, client, company_a, admin_a, accountant_a, customer_a, item_a):
        invoice = make_invoice(company_a, admin_a, customer_a, item_a)

        assert client.get("/api/reports/activity", headers=login_headers(client, accountant_a)).status_code == 403

        resp = client.get(f"/api/reports/activity?entity_type=invoice&entity_id={invoice.id}",
                          headers=login_headers(client, admin_a))
        assert resp.status_code == 200
        assert [e["action"] for e in resp.get_json()["activity"]] == ["invoice.created"]
