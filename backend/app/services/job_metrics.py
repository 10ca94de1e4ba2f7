"""Job cost/profit metrics: calculation and the one-row-per-job store.

``calculate_job_metrics`` is pure. ``upsert_job_metrics`` and
``recalculate_all_job_metrics`` write through the metrics repository but do
NOT call db.commit(); the caller is responsible.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from backend.app.models.invoice import Invoice
from backend.app.models.job import Job
from backend.app.models.metrics import JobMetrics
from backend.app.models.product import Product
from backend.app.repositories.registry import Repositories
from backend.app.services.cost_rules import (
    InkLine,
    MaterialLine,
    ink_cost,
    material_cost,
    normalize_category,
    unbilled_material_cost,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
Q = Decimal("0.0001")
MARGIN_Q = Decimal("0.000001")


class MetricsDataError(ValueError):
    """A job, invoice or product the calculation depends on is missing."""

    def __init__(
        self,
        message: str,
        *,
        job_id: UUID | None = None,
        invoice_id: UUID | None = None,
        product_id: UUID | None = None,
    ) -> None:
        super().__init__(message)
        self.job_id = job_id
        self.invoice_id = invoice_id
        self.product_id = product_id


@dataclass(frozen=True)
class JobMetricsResult:
    job_id: UUID
    revenue: Decimal
    material_cost: Decimal
    ink_cost: Decimal
    gross_profit: Decimal
    profit_margin: Decimal
    total_quantity: int
    total_time_minutes: int

    def matches(self, row: JobMetrics) -> bool:
        """True when *row* already holds exactly these figures."""
        return (
            Decimal(str(row.revenue)) == self.revenue
            and Decimal(str(row.material_cost)) == self.material_cost
            and Decimal(str(row.ink_cost)) == self.ink_cost
            and Decimal(str(row.gross_profit)) == self.gross_profit
            and Decimal(str(row.profit_margin)) == self.profit_margin
            and row.total_quantity == self.total_quantity
            and row.total_time_minutes == self.total_time_minutes
        )

    def apply_to(self, row: JobMetrics, now: datetime) -> None:
        row.revenue = self.revenue
        row.material_cost = self.material_cost
        row.ink_cost = self.ink_cost
        row.gross_profit = self.gross_profit
        row.profit_margin = self.profit_margin
        row.total_quantity = self.total_quantity
        row.total_time_minutes = self.total_time_minutes
        row.last_updated = now


@dataclass
class RecalculationReport:
    """Outcome of a full rebuild.

    When ``ok`` is False the metrics table was left as it was, and
    ``recalculated`` lists the jobs computed before ``failed_job_id``.
    """

    ok: bool
    recalculated: list[UUID] = field(default_factory=list)
    failed_job_id: UUID | None = None
    error: str | None = None

    @property
    def count(self) -> int:
        return len(self.recalculated)


class RecalculationError(RuntimeError):
    def __init__(self, report: RecalculationReport) -> None:
        super().__init__(report.error or "Recalculation failed")
        self.report = report


# ── Calculation ──────────────────────────────────────────────────────────────


def _require_products(
    job: Job, invoice: Invoice | None, repos: Repositories,
) -> dict[UUID, Product]:
    wanted = [line.product_id for line in job.line_items]
    if invoice is not None:
        wanted.extend(item.product_id for item in invoice.items)
    products = repos.products.get_products(wanted)
    for product_id in wanted:
        if product_id not in products:
            raise MetricsDataError(
                f"Product {product_id} referenced by job {job.id} not found",
                job_id=job.id,
                invoice_id=invoice.id if invoice else None,
                product_id=product_id,
            )
    return products


def _calculate_for_job(job: Job, repos: Repositories) -> JobMetricsResult:
    invoice: Invoice | None = None
    if job.invoice_id is not None:
        invoice = repos.invoices.get_invoice(job.invoice_id)
        if invoice is None:
            raise MetricsDataError(
                f"Invoice {job.invoice_id} linked to job {job.id} not found",
                job_id=job.id,
                invoice_id=job.invoice_id,
            )

    products = _require_products(job, invoice, repos)

    revenue = Decimal(str(invoice.subtotal)) if invoice is not None else ZERO

    materials = ZERO
    if invoice is not None:
        for item in invoice.items:
            product = products[item.product_id]
            materials += material_cost(
                normalize_category(item.category) or product.category,
                MaterialLine(
                    quantity=Decimal(item.quantity),
                    base_price=Decimal(str(product.base_price)),
                    area=item.area,
                    cost_per_area_unit=product.cost_per_area_unit,
                ),
            )
    else:
        for line in job.line_items:
            materials += unbilled_material_cost(
                products[line.product_id].base_price, line.requested_quantity
            )

    ink = ZERO
    total_quantity = 0
    total_time = 0
    for line in job.line_items:
        product = products[line.product_id]
        ink += ink_cost(
            normalize_category(line.category) or product.category,
            InkLine(
                completed_quantity=Decimal(line.completed_quantity or 0),
                ink_volume_ml=line.ink_volume_ml,
                ink_cost_per_unit=line.ink_cost_per_unit,
            ),
        )
        total_quantity += line.requested_quantity or 0
        total_time += line.elapsed_time_minutes or 0

    revenue = revenue.quantize(Q, rounding=ROUND_HALF_UP)
    materials = materials.quantize(Q, rounding=ROUND_HALF_UP)
    ink = ink.quantize(Q, rounding=ROUND_HALF_UP)
    gross_profit = revenue - materials - ink
    margin = (
        (gross_profit / revenue).quantize(MARGIN_Q, rounding=ROUND_HALF_UP)
        if revenue != ZERO
        else ZERO
    )

    logger.debug(
        "Job %s: revenue=%s material=%s ink=%s profit=%s margin=%s",
        job.id, revenue, materials, ink, gross_profit, margin,
    )
    return JobMetricsResult(
        job_id=job.id,
        revenue=revenue,
        material_cost=materials,
        ink_cost=ink,
        gross_profit=gross_profit,
        profit_margin=margin,
        total_quantity=total_quantity,
        total_time_minutes=total_time,
    )


def calculate_job_metrics(job_id: UUID, repos: Repositories) -> JobMetricsResult:
    """Compute cost and profit figures for one job without persisting them.

    Jobs without a linked invoice are still calculated, with zero revenue and
    material cost estimated from the job's own lines. Raises
    ``MetricsDataError`` when the job or any product it references is missing.
    """
    job = repos.jobs.get_job(job_id)
    if job is None:
        raise MetricsDataError(f"Job {job_id} not found", job_id=job_id)
    return _calculate_for_job(job, repos)


# ── Store ────────────────────────────────────────────────────────────────────


def upsert_job_metrics(
    job_id: UUID, repos: Repositories, now: datetime | None = None,
) -> JobMetrics:
    """Recompute one job and write or replace its metrics row.

    Unchanged figures leave the existing row untouched, including its
    ``last_updated`` stamp.
    """
    result = calculate_job_metrics(job_id, repos)
    existing = repos.metrics.get(job_id)
    if existing is not None and result.matches(existing):
        return existing

    row = existing or JobMetrics(job_id=job_id)
    result.apply_to(row, now or datetime.now(timezone.utc))
    repos.metrics.save(row)
    logger.info("Metrics updated for job %s", job_id)
    return row


def recalculate_all_job_metrics(
    repos: Repositories, now: datetime | None = None,
) -> RecalculationReport:
    """Wipe and rebuild the metrics table for every job with line items.

    All jobs are calculated before the table is touched, so a failure part
    way through returns a failed report and leaves existing rows in place.
    """
    stamp = now or datetime.now(timezone.utc)
    jobs = repos.jobs.list_jobs_with_line_items()

    results: list[JobMetricsResult] = []
    for job in jobs:
        try:
            results.append(_calculate_for_job(job, repos))
        except (MetricsDataError, ArithmeticError) as exc:
            logger.error(
                "Recalculation aborted at job %s after %d of %d jobs: %s",
                job.id, len(results), len(jobs), exc,
            )
            return RecalculationReport(
                ok=False,
                recalculated=[r.job_id for r in results],
                failed_job_id=job.id,
                error=str(exc),
            )

    deleted = repos.metrics.delete_all()
    rows: list[JobMetrics] = []
    for result in results:
        row = JobMetrics(job_id=result.job_id)
        result.apply_to(row, stamp)
        rows.append(row)
    repos.metrics.save_all(rows)

    logger.info(
        "Recalculated metrics for %d jobs (%d previous rows cleared)",
        len(results), deleted,
    )
    return RecalculationReport(ok=True, recalculated=[r.job_id for r in results])


def list_job_metrics(
    repos: Repositories,
    *,
    job_id: UUID | None = None,
    user_id: UUID | None = None,
    recalculate: bool = False,
) -> list[JobMetrics]:
    """Return stored metrics, rebuilding first when forced or when empty."""
    if recalculate or repos.metrics.count() == 0:
        report = recalculate_all_job_metrics(repos)
        if not report.ok:
            raise RecalculationError(report)

    job_ids: list[UUID] | None = None
    if user_id is not None:
        job_ids = repos.jobs.job_ids_for_user(user_id)
    if job_id is not None:
        job_ids = [job_id] if job_ids is None or job_id in job_ids else []
    return repos.metrics.list_metrics(job_ids)


def serialize_job_metrics(row: JobMetrics) -> dict[str, object]:
    job = row.job
    return {
        "job_id": row.job_id,
        "job_title": job.title if job else None,
        "job_status": job.status.value if job else None,
        "customer_name": job.customer.name if job and job.customer else None,
        "revenue": Decimal(str(row.revenue)),
        "material_cost": Decimal(str(row.material_cost)),
        "ink_cost": Decimal(str(row.ink_cost)),
        "total_cost": Decimal(str(row.material_cost)) + Decimal(str(row.ink_cost)),
        "gross_profit": Decimal(str(row.gross_profit)),
        "profit_margin": Decimal(str(row.profit_margin)),
        "total_quantity": row.total_quantity,
        "total_time_minutes": row.total_time_minutes,
        "last_updated": row.last_updated,
    }
