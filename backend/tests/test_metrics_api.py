"""HTTP tests for /api/v1/metrics."""
from __future__ import annotations

import uuid
from calendar import monthrange
from collections.abc import Callable
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

import pytest
from fastapi.testclient import TestClient

from backend.app.models.invoice import Invoice, InvoiceStatus
from backend.app.models.job import Job
from backend.app.models.product import Product
from backend.app.repositories.registry import Repositories

BASE = "/api/v1/metrics"

REPORTS = [
    "revenue-trends",
    "avg-invoice-value",
    "dso",
    "outstanding-invoices",
    "revenue-by-product",
    "profit-margins",
]


@pytest.fixture()
def job(
    make_invoice: Callable[..., Invoice],
    make_job: Callable[..., Job],
    packaging: Product,
) -> Job:
    # 3 cartons at 3.335 gives a revenue that only rounds cleanly half-up
    invoice = make_invoice([(packaging, 3, "3.335")], issue_date=date.today())
    return make_job(
        [{
            "product": packaging,
            "requested_quantity": 3,
            "ink_cost_per_unit": Decimal("0.01"),
        }],
        invoice=invoice,
    )


# ─── Job Metrics ─────────────────────────────────────────────────────────────


class TestJobMetricsEndpoints:
    def test_list_populates_lazily(self, client: TestClient, job: Job) -> None:
        resp = client.get(f"{BASE}/jobs")
        assert resp.status_code == 200
        rows = resp.json()
        assert len(rows) == 1
        row = rows[0]
        assert row["job_id"] == str(job.id)
        assert row["customer_name"] == "Acme Print Buyers"
        # 3 x 3.335 = 10.005
        assert row["revenue"] == 10.01
        assert row["material_cost"] == 6.0
        assert row["ink_cost"] == 0.03
        assert row["total_cost"] == 6.03
        assert row["gross_profit"] == 3.98
        assert row["profit_margin"] == 0.3973

    def test_list_filters_by_job(self, client: TestClient, job: Job) -> None:
        resp = client.get(f"{BASE}/jobs", params={"job_id": str(uuid.uuid4())})
        assert resp.status_code == 200
        assert resp.json() == []

    def test_list_rejects_malformed_uuid(self, client: TestClient) -> None:
        resp = client.get(f"{BASE}/jobs", params={"user_id": "not-a-uuid"})
        assert resp.status_code == 422

    def test_recalculate_all(
        self, client: TestClient, job: Job, repos: Repositories,
    ) -> None:
        resp = client.post(f"{BASE}/recalculate")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["count"] == 1
        assert repos.metrics.count() == 1

    def test_recalculate_failure_keeps_existing_rows(
        self,
        client: TestClient,
        job: Job,
        make_job: Callable[..., Job],
        repos: Repositories,
    ) -> None:
        assert client.post(f"{BASE}/recalculate").status_code == 200
        broken = make_job([{"product_id": uuid.uuid4(), "requested_quantity": 1}])

        resp = client.post(f"{BASE}/recalculate")

        assert resp.status_code == 500
        detail = resp.json()["detail"]
        assert detail["failed_job_id"] == str(broken.id)
        assert detail["recalculated"] == 1
        assert repos.metrics.count() == 1

    def test_recalculate_single_job(self, client: TestClient, job: Job) -> None:
        resp = client.post(f"{BASE}/jobs/{job.id}/recalculate")
        assert resp.status_code == 200
        assert resp.json()["job_id"] == str(job.id)
        assert resp.json()["revenue"] == 10.01

    def test_recalculate_unknown_job_is_404(self, client: TestClient) -> None:
        resp = client.post(f"{BASE}/jobs/{uuid.uuid4()}/recalculate")
        assert resp.status_code == 404

    def test_recalculate_job_with_missing_product_is_409(
        self, client: TestClient, make_job: Callable[..., Job],
    ) -> None:
        broken = make_job([{"product_id": uuid.uuid4(), "requested_quantity": 1}])
        resp = client.post(f"{BASE}/jobs/{broken.id}/recalculate")
        assert resp.status_code == 409

    def test_recalculate_malformed_job_id_is_422(self, client: TestClient) -> None:
        resp = client.post(f"{BASE}/jobs/not-a-uuid/recalculate")
        assert resp.status_code == 422


# ─── Financial reports ───────────────────────────────────────────────────────


class TestReportEndpoints:
    @pytest.mark.parametrize("report", REPORTS)
    def test_empty_database(self, client: TestClient, report: str) -> None:
        resp = client.get(f"{BASE}/{report}")
        assert resp.status_code == 200
        body = resp.json()
        assert "data" in body
        assert "summary" in body

    @pytest.mark.parametrize("report", REPORTS)
    @pytest.mark.parametrize("time_range", ["12months", "24months", "ytd"])
    def test_every_time_range_accepted(
        self, client: TestClient, report: str, time_range: str,
    ) -> None:
        resp = client.get(f"{BASE}/{report}", params={"timeRange": time_range})
        assert resp.status_code == 200

    @pytest.mark.parametrize("report", REPORTS)
    def test_unknown_time_range_rejected(self, client: TestClient, report: str) -> None:
        resp = client.get(f"{BASE}/{report}", params={"timeRange": "6months"})
        assert resp.status_code == 422

    def test_revenue_trends_money_has_two_decimals(
        self, client: TestClient, job: Job,
    ) -> None:
        resp = client.get(f"{BASE}/revenue-trends", params={"timeRange": "ytd"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"]["total_revenue"] == 10.01
        assert body["data"][-1]["day"] == date.today().isoformat()
        assert body["data"][-1]["amount"] == 10.01
        assert body["top_products"][0]["name"] == "Folding Carton"

    def test_outstanding_invoices_buckets(
        self,
        client: TestClient,
        make_invoice: Callable[..., Invoice],
        finished: Product,
    ) -> None:
        today = date.today()
        make_invoice(
            [(finished, 20, "5.00")],
            issue_date=today - timedelta(days=80),
            due_date=today - timedelta(days=50),
            status=InvoiceStatus.OVERDUE,
        )
        resp = client.get(f"{BASE}/outstanding-invoices")
        assert resp.status_code == 200
        body = resp.json()
        assert [b["age_bucket"] for b in body["data"]] == [
            "Current", "1-30 days", "31-60 days", "61-90 days", "Over 90 days",
        ]
        assert body["data"][2]["count"] == 1
        assert body["data"][2]["invoices"][0]["days_overdue"] == 50
        assert body["summary"]["total_outstanding"] == 100.0

    def test_dso_reported_in_days_to_one_place(
        self,
        client: TestClient,
        make_invoice: Callable[..., Invoice],
        finished: Product,
    ) -> None:
        today = date.today()
        make_invoice([(finished, 40, "5.00")], issue_date=today, status=InvoiceStatus.PAID)
        make_invoice([(finished, 20, "5.00")], issue_date=today)

        resp = client.get(f"{BASE}/dso")

        assert resp.status_code == 200
        row = resp.json()["data"][0]
        days = monthrange(today.year, today.month)[1]
        # a third of the month's sales are still unpaid
        expected = (Decimal(days) / 3).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        assert row["dso"] == float(expected)
        assert resp.json()["summary"]["worst_dso"] == float(expected)

    def test_category_share_reported_as_percentage(
        self,
        client: TestClient,
        make_invoice: Callable[..., Invoice],
        packaging: Product,
        leaflets: Product,
    ) -> None:
        make_invoice([(packaging, 100, "5.00"), (leaflets, 2000, "0.10")])

        resp = client.get(f"{BASE}/revenue-by-product")

        assert resp.status_code == 200
        body = resp.json()
        assert [row["percentage"] for row in body["data"]] == [71.4, 28.6]
        assert body["summary"]["top_category_percentage"] == 71.4

    def test_profit_margins_after_recalculation(
        self, client: TestClient, job: Job,
    ) -> None:
        client.post(f"{BASE}/recalculate")
        resp = client.get(f"{BASE}/profit-margins")
        assert resp.status_code == 200
        body = resp.json()
        assert body["data"][0]["job_type"] == "PACKAGING"
        assert body["summary"]["highest_margin_type"] == "Packaging"

    @pytest.mark.parametrize("group_by", ["month", "quarter"])
    def test_period_revenue(self, client: TestClient, group_by: str) -> None:
        resp = client.get(f"{BASE}/revenue", params={"group_by": group_by})
        assert resp.status_code == 200
        assert resp.json()["summary"]["group_by"] == group_by

    def test_period_revenue_rejects_unknown_grouping(self, client: TestClient) -> None:
        resp = client.get(f"{BASE}/revenue", params={"group_by": "week"})
        assert resp.status_code == 422


def test_request_id_header(client: TestClient) -> None:
    resp = client.get(f"{BASE}/dso", headers={"X-Request-ID": "abc123"})
    assert resp.headers["X-Request-ID"] == "abc123"
    assert client.get(f"{BASE}/dso").headers["X-Request-ID"]
