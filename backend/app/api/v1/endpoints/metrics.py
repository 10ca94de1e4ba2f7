from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from backend.app.api.deps import get_repositories
from backend.app.core.config import settings
from backend.app.core.database import get_db
from backend.app.repositories.registry import Repositories
from backend.app.schemas.metrics import (
    AverageInvoiceValueResponse,
    DSOResponse,
    JobMetricsOut,
    OutstandingInvoicesResponse,
    PeriodRevenueResponse,
    ProfitMarginsResponse,
    RecalculationOut,
    RevenueByCategoryResponse,
    RevenueTrendsResponse,
)
from backend.app.services.financial_metrics import (
    PeriodGrouping,
    TimeRange,
    get_average_invoice_value as _get_average_invoice_value,
    get_dso as _get_dso,
    get_outstanding_invoices as _get_outstanding_invoices,
    get_period_revenue as _get_period_revenue,
    get_profit_margins as _get_profit_margins,
    get_revenue_by_category as _get_revenue_by_category,
    get_revenue_trends as _get_revenue_trends,
    resolve_date_range,
)
from backend.app.services.job_metrics import (
    MetricsDataError,
    RecalculationError,
    RecalculationReport,
    list_job_metrics,
    recalculate_all_job_metrics,
    serialize_job_metrics,
    upsert_job_metrics,
)


router = APIRouter()


def _range(time_range: TimeRange | None) -> tuple[date, date]:
    try:
        return resolve_date_range(time_range or settings.DEFAULT_TIME_RANGE)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc),
        )


def _optional_range(time_range: TimeRange | None) -> tuple[date | None, date | None]:
    if time_range is None:
        return None, None
    return _range(time_range)


def _recalculation_failed(report: RecalculationReport) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": report.error,
            "failed_job_id": str(report.failed_job_id) if report.failed_job_id else None,
            "recalculated": report.count,
        },
    )


# ── Job Metrics ─────────────────────────────────────────────────────────────


@router.get("/jobs", response_model=list[JobMetricsOut])
def job_metrics(
    recalculate: bool = Query(False),
    job_id: UUID | None = Query(None),
    user_id: UUID | None = Query(None),
    repos: Repositories = Depends(get_repositories),
    db: Session = Depends(get_db),
) -> list[dict[str, object]]:
    try:
        rows = list_job_metrics(
            repos, job_id=job_id, user_id=user_id, recalculate=recalculate,
        )
    except RecalculationError as exc:
        db.rollback()
        raise _recalculation_failed(exc.report)
    db.commit()
    return [serialize_job_metrics(row) for row in rows]


@router.post("/recalculate", response_model=RecalculationOut)
def recalculate_all(
    repos: Repositories = Depends(get_repositories),
    db: Session = Depends(get_db),
) -> dict[str, object]:
    report = recalculate_all_job_metrics(repos)
    if not report.ok:
        db.rollback()
        raise _recalculation_failed(report)
    db.commit()
    return {
        "success": True,
        "count": report.count,
        "message": f"Recalculated metrics for {report.count} jobs",
    }


@router.post("/jobs/{job_id}/recalculate", response_model=JobMetricsOut)
def recalculate_job(
    job_id: UUID,
    repos: Repositories = Depends(get_repositories),
    db: Session = Depends(get_db),
) -> dict[str, object]:
    try:
        row = upsert_job_metrics(job_id, repos)
    except MetricsDataError as exc:
        db.rollback()
        missing_job = exc.invoice_id is None and exc.product_id is None
        raise HTTPException(
            status_code=(
                status.HTTP_404_NOT_FOUND if missing_job else status.HTTP_409_CONFLICT
            ),
            detail=str(exc),
        )
    db.commit()
    db.refresh(row)
    return serialize_job_metrics(row)


# ── Revenue ─────────────────────────────────────────────────────────────────


@router.get("/revenue-trends", response_model=RevenueTrendsResponse)
def revenue_trends(
    time_range: TimeRange | None = Query(None, alias="timeRange"),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, object]:
    start, end = _range(time_range)
    return _get_revenue_trends(repos, start, end, top_n=settings.TOP_PRODUCTS_LIMIT)


@router.get("/revenue", response_model=PeriodRevenueResponse)
def period_revenue(
    group_by: PeriodGrouping = Query(PeriodGrouping.MONTH),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, object]:
    return _get_period_revenue(repos, group_by)


@router.get("/avg-invoice-value", response_model=AverageInvoiceValueResponse)
def average_invoice_value(
    time_range: TimeRange | None = Query(None, alias="timeRange"),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, object]:
    start, end = _range(time_range)
    return _get_average_invoice_value(repos, start, end)


@router.get("/revenue-by-product", response_model=RevenueByCategoryResponse)
def revenue_by_product(
    time_range: TimeRange | None = Query(None, alias="timeRange"),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, object]:
    start, end = _range(time_range)
    return _get_revenue_by_category(repos, start, end)


# ── Receivables ─────────────────────────────────────────────────────────────


@router.get("/dso", response_model=DSOResponse)
def days_sales_outstanding(
    time_range: TimeRange | None = Query(None, alias="timeRange"),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, object]:
    start, end = _range(time_range)
    return _get_dso(repos, start, end)


@router.get("/outstanding-invoices", response_model=OutstandingInvoicesResponse)
def outstanding_invoices(
    time_range: TimeRange | None = Query(None, alias="timeRange"),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, object]:
    start, end = _optional_range(time_range)
    return _get_outstanding_invoices(repos, start=start, end=end)


# ── Profitability ───────────────────────────────────────────────────────────


@router.get("/profit-margins", response_model=ProfitMarginsResponse)
def profit_margins(
    time_range: TimeRange | None = Query(None, alias="timeRange"),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, object]:
    start, end = _optional_range(time_range)
    return _get_profit_margins(repos, start, end)
