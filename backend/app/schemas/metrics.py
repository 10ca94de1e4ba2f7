"""Pydantic response schemas for job metrics and financial KPIs.

Money is carried as ``Decimal`` internally and rendered as a JSON number
rounded half-up to two places; ratios (margins, growth) keep four. Day counts
and percentages (already scaled by 100) keep one.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, PlainSerializer


def _rounded(places: str):
    step = Decimal(places)

    def _serialize(value: Decimal) -> float:
        return float(Decimal(value).quantize(step, rounding=ROUND_HALF_UP))

    return PlainSerializer(_serialize, return_type=float, when_used="json")


Money = Annotated[Decimal, _rounded("0.01")]
Ratio = Annotated[Decimal, _rounded("0.0001")]
Days = Annotated[Decimal, _rounded("0.1")]
Percent = Annotated[Decimal, _rounded("0.1")]


# ─── Job Metrics ─────────────────────────────────────────────────────────────


class JobMetricsOut(BaseModel):
    job_id: UUID
    job_title: str | None
    job_status: str | None
    customer_name: str | None
    revenue: Money
    material_cost: Money
    ink_cost: Money
    total_cost: Money
    gross_profit: Money
    profit_margin: Ratio
    total_quantity: int
    total_time_minutes: int
    last_updated: datetime


class RecalculationOut(BaseModel):
    success: bool
    count: int
    message: str


# ─── Revenue Trends ──────────────────────────────────────────────────────────


class DailyRevenue(BaseModel):
    day: date
    amount: Money


class TopProduct(BaseModel):
    product_id: UUID
    name: str
    category: str
    quantity: int
    revenue: Money


class RevenueTrendSummary(BaseModel):
    from_date: date
    to_date: date
    total_revenue: Money
    average_daily_revenue: Money
    current_week: Money
    previous_week: Money
    weekly_growth: Ratio


class RevenueTrendsResponse(BaseModel):
    data: list[DailyRevenue]
    summary: RevenueTrendSummary
    top_products: list[TopProduct]


# ─── Monthly / Quarterly Revenue ─────────────────────────────────────────────


class PeriodRevenueRow(BaseModel):
    period: str
    current_year: Money
    previous_year: Money
    change: Ratio


class PeriodRevenueSummary(BaseModel):
    group_by: str
    current_year: int
    previous_year: int
    total_revenue: Money
    previous_year_revenue: Money
    average_revenue: Money
    year_over_year_growth: Ratio


class PeriodRevenueResponse(BaseModel):
    data: list[PeriodRevenueRow]
    summary: PeriodRevenueSummary


# ─── Average Invoice Value ───────────────────────────────────────────────────


class MonthlyInvoiceValue(BaseModel):
    month: str
    label: str
    average_value: Money
    total_value: Money
    invoice_count: int


class InvoiceValueSummary(BaseModel):
    total_invoices: int
    total_value: Money
    average_value: Money
    median_value: Money
    min_value: Money
    max_value: Money


class AverageInvoiceValueResponse(BaseModel):
    data: list[MonthlyInvoiceValue]
    summary: InvoiceValueSummary


# ─── DSO ─────────────────────────────────────────────────────────────────────


class MonthlyDSO(BaseModel):
    month: str
    label: str
    dso: Days
    invoice_count: int
    total_amount: Money
    outstanding_amount: Money


class DSOSummary(BaseModel):
    current_dso: Days
    dso_trend: str  # improving | stable | worsening
    average_dso: Days
    best_dso: Days
    worst_dso: Days


class DSOResponse(BaseModel):
    data: list[MonthlyDSO]
    summary: DSOSummary


# ─── Outstanding Invoice Aging ───────────────────────────────────────────────


class AgingInvoice(BaseModel):
    invoice_id: UUID
    invoice_number: str
    customer: str | None
    amount: Money
    issue_date: date
    due_date: date
    days_overdue: int


class AgingBucket(BaseModel):
    age_bucket: str
    count: int
    total: Money
    invoices: list[AgingInvoice]


class AgingSummary(BaseModel):
    as_of_date: date
    total_outstanding: Money
    invoice_count: int
    average_age: int
    oldest_invoice: int


class OutstandingInvoicesResponse(BaseModel):
    data: list[AgingBucket]
    summary: AgingSummary


# ─── Revenue by Product Category ─────────────────────────────────────────────


class CategoryRevenue(BaseModel):
    category: str
    label: str
    total_revenue: Money
    percentage: Percent
    invoice_count: int
    job_count: int


class CategoryRevenueSummary(BaseModel):
    total_revenue: Money
    total_categories: int
    top_category: str
    top_category_revenue: Money
    top_category_percentage: Percent


class RevenueByCategoryResponse(BaseModel):
    data: list[CategoryRevenue]
    summary: CategoryRevenueSummary


# ─── Profit Margins by Job Type ──────────────────────────────────────────────


class JobTypeMargin(BaseModel):
    job_type: str
    label: str
    job_count: int
    revenue: Money
    cost: Money
    profit: Money
    margin: Ratio


class ProfitMarginSummary(BaseModel):
    overall_margin: Ratio
    highest_margin_type: str | None
    highest_margin: Ratio
    lowest_margin_type: str | None
    lowest_margin: Ratio
    total_revenue: Money
    total_profit: Money


class ProfitMarginsResponse(BaseModel):
    data: list[JobTypeMargin]
    summary: ProfitMarginSummary
