"""Financial KPI rollups over invoices and job metrics.

Every function is read-only and returns ``{"data": [...], "summary": {...}}``
with ``Decimal`` amounts; rounding for display happens in the response
schemas. Empty inputs produce zero-valued summaries rather than errors.
CANCELLED invoices never count towards revenue.
"""
from __future__ import annotations

import enum
from calendar import monthrange
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from backend.app.models.invoice import OUTSTANDING_STATUSES, Invoice, InvoiceItem
from backend.app.models.job import Job, JobProduct, JobStatus
from backend.app.models.product import Product
from backend.app.repositories.registry import Repositories
from backend.app.services.cost_rules import normalize_category

ZERO = Decimal("0")
HUNDRED = Decimal("100")
UNKNOWN_CATEGORY = "UNKNOWN"

# DSO movement beyond this fraction of the first month counts as a trend
DSO_TREND_THRESHOLD = Decimal("0.1")

AGING_BUCKETS: tuple[str, ...] = (
    "Current",
    "1-30 days",
    "31-60 days",
    "61-90 days",
    "Over 90 days",
)

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class TimeRange(str, enum.Enum):
    LAST_12_MONTHS = "12months"
    LAST_24_MONTHS = "24months"
    YEAR_TO_DATE = "ytd"


class PeriodGrouping(str, enum.Enum):
    MONTH = "month"
    QUARTER = "quarter"


# ── Date helpers ─────────────────────────────────────────────────────────────


def _add_months(d: date, months: int) -> date:
    """Add *months* calendar months to *d*, clamping to end-of-month."""
    month = d.month - 1 + months
    year = d.year + month // 12
    month = month % 12 + 1
    day = min(d.day, monthrange(year, month)[1])
    return date(year, month, day)


def resolve_date_range(
    time_range: TimeRange | str, today: date | None = None,
) -> tuple[date, date]:
    """Turn a named range into an inclusive ``(start, end)`` pair ending today."""
    try:
        tr = TimeRange(time_range)
    except ValueError:
        allowed = ", ".join(t.value for t in TimeRange)
        raise ValueError(
            f"Unknown time range '{time_range}'; expected one of {allowed}"
        ) from None

    end = today or date.today()
    if tr == TimeRange.YEAR_TO_DATE:
        return date(end.year, 1, 1), end
    months = 24 if tr == TimeRange.LAST_24_MONTHS else 12
    return _add_months(end, -months), end


def _week_start(d: date) -> date:
    """Sunday on or before *d*."""
    return d - timedelta(days=(d.weekday() + 1) % 7)


def _month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def _month_label(key: str) -> str:
    year, month = key.split("-")
    return f"{MONTH_NAMES[int(month) - 1]} {year}"


def _days_in_month(key: str) -> int:
    year, month = key.split("-")
    return monthrange(int(year), int(month))[1]


# ── Numeric helpers ──────────────────────────────────────────────────────────


def _d(value: object) -> Decimal:
    return ZERO if value is None else Decimal(str(value))


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator, or 0 when the denominator is 0."""
    if denominator == ZERO:
        return ZERO
    return numerator / denominator


def median(values: Iterable[Decimal]) -> Decimal:
    """Midpoint of the value-sorted list; mean of the two middles when even."""
    ordered = sorted(values)
    if not ordered:
        return ZERO
    middle = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[middle - 1] + ordered[middle]) / 2
    return ordered[middle]


def category_label(category: str | None) -> str:
    """``WIDE_FORMAT`` → ``Wide Format``."""
    if not category:
        return "Unknown"
    return category.replace("_", " ").title()


def _products_for(
    repos: Repositories, lines: Iterable[InvoiceItem | JobProduct],
) -> dict[UUID, Product]:
    return repos.products.get_products(line.product_id for line in lines)


def _line_category(line: InvoiceItem | JobProduct, products: dict[UUID, Product]) -> str:
    category = normalize_category(line.category)
    if category is None:
        product = products.get(line.product_id)
        category = normalize_category(product.category) if product is not None else None
    return category or UNKNOWN_CATEGORY


# ── Revenue trend ────────────────────────────────────────────────────────────


def get_revenue_trends(
    repos: Repositories,
    start: date,
    end: date,
    as_of: date | None = None,
    top_n: int = 10,
) -> dict[str, object]:
    """Daily revenue for every day in range, week-on-week growth, top products."""
    today = as_of or end
    invoices = repos.invoices.list_invoices(start, end)

    daily: dict[date, Decimal] = {}
    day = start
    while day <= end:
        daily[day] = ZERO
        day += timedelta(days=1)
    for inv in invoices:
        daily[inv.issue_date] = daily.get(inv.issue_date, ZERO) + _d(inv.total_amount)

    current_week_start = _week_start(today)
    previous_week_start = current_week_start - timedelta(days=7)
    current_week = ZERO
    previous_week = ZERO
    for inv in repos.invoices.list_invoices(previous_week_start, today):
        if inv.issue_date >= current_week_start:
            current_week += _d(inv.total_amount)
        else:
            previous_week += _d(inv.total_amount)

    items = [item for inv in invoices for item in inv.items]
    products = _products_for(repos, items)
    by_product: dict[UUID, dict[str, object]] = {}
    for item in items:
        row = by_product.setdefault(
            item.product_id,
            {
                "product_id": item.product_id,
                "name": (
                    products[item.product_id].name
                    if item.product_id in products
                    else "Unknown"
                ),
                "category": _line_category(item, products),
                "quantity": 0,
                "revenue": ZERO,
            },
        )
        row["quantity"] += item.quantity
        row["revenue"] += _d(item.line_total)
    top_products = sorted(
        by_product.values(), key=lambda r: r["revenue"], reverse=True,
    )[:top_n]

    total = sum(daily.values(), ZERO)
    return {
        "data": [{"day": d, "amount": amount} for d, amount in sorted(daily.items())],
        "summary": {
            "from_date": start,
            "to_date": end,
            "total_revenue": total,
            "average_daily_revenue": _ratio(total, Decimal(len(daily))),
            "current_week": current_week,
            "previous_week": previous_week,
            "weekly_growth": _ratio(current_week - previous_week, previous_week),
        },
        "top_products": top_products,
    }


# ── Monthly / quarterly revenue ──────────────────────────────────────────────


def get_period_revenue(
    repos: Repositories,
    group_by: PeriodGrouping | str = PeriodGrouping.MONTH,
    as_of: date | None = None,
) -> dict[str, object]:
    """This year against last year, per calendar month or quarter."""
    grouping = PeriodGrouping(group_by)
    today = as_of or date.today()
    this_year, last_year = today.year, today.year - 1

    if grouping == PeriodGrouping.MONTH:
        periods = list(MONTH_NAMES)
    else:
        periods = ["Q1", "Q2", "Q3", "Q4"]

    totals: dict[str, dict[int, Decimal]] = {
        p: {this_year: ZERO, last_year: ZERO} for p in periods
    }
    for inv in repos.invoices.list_invoices(date(last_year, 1, 1), today):
        month_index = inv.issue_date.month - 1
        period = periods[month_index] if grouping == PeriodGrouping.MONTH else periods[month_index // 3]
        totals[period][inv.issue_date.year] += _d(inv.total_amount)

    data: list[dict[str, object]] = []
    for period in periods:
        current = totals[period][this_year]
        previous = totals[period][last_year]
        if previous > ZERO:
            change = (current - previous) / previous
        else:
            change = Decimal("1") if current > ZERO else ZERO
        data.append({
            "period": period,
            "current_year": current,
            "previous_year": previous,
            "change": change,
        })

    current_total = sum((totals[p][this_year] for p in periods), ZERO)
    previous_total = sum((totals[p][last_year] for p in periods), ZERO)
    return {
        "data": data,
        "summary": {
            "group_by": grouping.value,
            "current_year": this_year,
            "previous_year": last_year,
            "total_revenue": current_total,
            "previous_year_revenue": previous_total,
            "average_revenue": current_total / len(periods),
            "year_over_year_growth": _ratio(current_total - previous_total, previous_total),
        },
    }


# ── Average invoice value ────────────────────────────────────────────────────


def get_average_invoice_value(
    repos: Repositories, start: date, end: date,
) -> dict[str, object]:
    invoices = repos.invoices.list_invoices(start, end)
    if not invoices:
        return {
            "data": [],
            "summary": {
                "total_invoices": 0,
                "total_value": ZERO,
                "average_value": ZERO,
                "median_value": ZERO,
                "min_value": ZERO,
                "max_value": ZERO,
            },
        }

    by_month: dict[str, list[Decimal]] = defaultdict(list)
    for inv in invoices:
        by_month[_month_key(inv.issue_date)].append(_d(inv.total_amount))

    data = []
    for key in sorted(by_month):
        values = by_month[key]
        total = sum(values, ZERO)
        data.append({
            "month": key,
            "label": _month_label(key),
            "average_value": total / len(values),
            "total_value": total,
            "invoice_count": len(values),
        })

    all_values = [_d(inv.total_amount) for inv in invoices]
    total = sum(all_values, ZERO)
    return {
        "data": data,
        "summary": {
            "total_invoices": len(all_values),
            "total_value": total,
            "average_value": total / len(all_values),
            "median_value": median(all_values),
            "min_value": min(all_values),
            "max_value": max(all_values),
        },
    }


# ── Days Sales Outstanding ──────────────────────────────────────────────────


def calculate_dso(invoices: Iterable[Invoice], days: int) -> Decimal:
    """(unpaid receivables / total sales) × days; 0 when there were no sales."""
    total_sales = ZERO
    receivables = ZERO
    for inv in invoices:
        amount = _d(inv.total_amount)
        total_sales += amount
        if inv.status in OUTSTANDING_STATUSES:
            receivables += amount
    return _ratio(receivables, total_sales) * days


def dso_trend(first: Decimal, last: Decimal) -> str:
    if first == ZERO:
        return "stable" if last == ZERO else "worsening"
    change = (last - first) / first
    if change < -DSO_TREND_THRESHOLD:
        return "improving"
    if change > DSO_TREND_THRESHOLD:
        return "worsening"
    return "stable"


def get_dso(repos: Repositories, start: date, end: date) -> dict[str, object]:
    invoices = repos.invoices.list_invoices(start, end)
    if not invoices:
        return {
            "data": [],
            "summary": {
                "current_dso": ZERO,
                "dso_trend": "stable",
                "average_dso": ZERO,
                "best_dso": ZERO,
                "worst_dso": ZERO,
            },
        }

    overall = calculate_dso(invoices, max((end - start).days, 1))

    by_month: dict[str, list[Invoice]] = defaultdict(list)
    for inv in invoices:
        by_month[_month_key(inv.issue_date)].append(inv)

    data = []
    for key in sorted(by_month):
        month_invoices = by_month[key]
        data.append({
            "month": key,
            "label": _month_label(key),
            "dso": calculate_dso(month_invoices, _days_in_month(key)),
            "invoice_count": len(month_invoices),
            "total_amount": sum((_d(i.total_amount) for i in month_invoices), ZERO),
            "outstanding_amount": sum(
                (_d(i.total_amount) for i in month_invoices if i.status in OUTSTANDING_STATUSES),
                ZERO,
            ),
        })

    trend = dso_trend(data[0]["dso"], data[-1]["dso"]) if len(data) > 1 else "stable"
    positive = [row["dso"] for row in data if row["dso"] > ZERO]
    return {
        "data": data,
        "summary": {
            "current_dso": overall,
            "dso_trend": trend,
            "average_dso": sum(positive, ZERO) / len(positive) if positive else ZERO,
            "best_dso": min(positive) if positive else ZERO,
            "worst_dso": max(positive) if positive else ZERO,
        },
    }


# ── Outstanding invoice aging ────────────────────────────────────────────────


def aging_bucket(days_past_due: int) -> str:
    """Assign an aging bucket from days past the due date."""
    if days_past_due <= 0:
        return "Current"
    elif days_past_due <= 30:
        return "1-30 days"
    elif days_past_due <= 60:
        return "31-60 days"
    elif days_past_due <= 90:
        return "61-90 days"
    else:
        return "Over 90 days"


def get_outstanding_invoices(
    repos: Repositories,
    as_of: date | None = None,
    start: date | None = None,
    end: date | None = None,
) -> dict[str, object]:
    """Bucket PENDING/OVERDUE invoices by how far past due they are."""
    today = as_of or date.today()
    invoices = repos.invoices.list_outstanding(start, end)

    buckets: dict[str, dict[str, object]] = {
        name: {"age_bucket": name, "count": 0, "total": ZERO, "invoices": []}
        for name in AGING_BUCKETS
    }
    total_outstanding = ZERO
    ages: list[int] = []

    for inv in invoices:
        age = (today - inv.due_date).days
        amount = _d(inv.total_amount)
        days_overdue = max(0, age)
        bkt = buckets[aging_bucket(age)]
        bkt["count"] += 1
        bkt["total"] += amount
        bkt["invoices"].append({
            "invoice_id": inv.id,
            "invoice_number": inv.invoice_number,
            "customer": inv.customer.name if inv.customer else None,
            "amount": amount,
            "issue_date": inv.issue_date,
            "due_date": inv.due_date,
            "days_overdue": days_overdue,
        })
        total_outstanding += amount
        ages.append(days_overdue)

    average_age = (
        int((Decimal(sum(ages)) / len(ages)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        if ages
        else 0
    )
    return {
        "data": [buckets[name] for name in AGING_BUCKETS],
        "summary": {
            "as_of_date": today,
            "total_outstanding": total_outstanding,
            "invoice_count": len(invoices),
            "average_age": average_age,
            "oldest_invoice": max(ages) if ages else 0,
        },
    }


# ── Revenue by product category ──────────────────────────────────────────────


def get_revenue_by_category(
    repos: Repositories, start: date, end: date,
) -> dict[str, object]:
    invoices = repos.invoices.list_invoices(start, end)
    items = [(inv, item) for inv in invoices for item in inv.items]
    products = _products_for(repos, (item for _, item in items))

    revenue: dict[str, Decimal] = {}
    invoice_ids: dict[str, set[UUID]] = defaultdict(set)
    total_revenue = ZERO
    for inv, item in items:
        category = _line_category(item, products)
        line_total = _d(item.line_total)
        revenue[category] = revenue.get(category, ZERO) + line_total
        invoice_ids[category].add(inv.id)
        total_revenue += line_total

    jobs = repos.jobs.list_jobs(start, end)
    job_products = _products_for(repos, (line for job in jobs for line in job.line_items))
    job_ids: dict[str, set[UUID]] = defaultdict(set)
    for job in jobs:
        for line in job.line_items:
            category = _line_category(line, job_products)
            if category in revenue:
                job_ids[category].add(job.id)

    data = [
        {
            "category": category,
            "label": category_label(category),
            "total_revenue": amount,
            "percentage": (_ratio(amount, total_revenue) * HUNDRED).quantize(
                Decimal("0.1"), rounding=ROUND_HALF_UP
            ),
            "invoice_count": len(invoice_ids[category]),
            "job_count": len(job_ids[category]),
        }
        for category, amount in revenue.items()
    ]
    data.sort(key=lambda r: r["total_revenue"], reverse=True)

    top = data[0] if data else None
    return {
        "data": data,
        "summary": {
            "total_revenue": total_revenue,
            "total_categories": len(data),
            "top_category": top["label"] if top else "None",
            "top_category_revenue": top["total_revenue"] if top else ZERO,
            "top_category_percentage": top["percentage"] if top else ZERO,
        },
    }


# ── Profit margin by job type ────────────────────────────────────────────────


def _job_type(job: Job, products: dict[UUID, Product]) -> str:
    if not job.line_items:
        return UNKNOWN_CATEGORY
    return _line_category(job.line_items[0], products)


def get_profit_margins(
    repos: Repositories,
    start: date | None = None,
    end: date | None = None,
) -> dict[str, object]:
    """Group jobs by the category of their first line and compare margins."""
    jobs = [
        job for job in repos.jobs.list_jobs(start, end)
        if job.status != JobStatus.CANCELLED
    ]
    metrics = repos.metrics.by_job_ids(job.id for job in jobs)
    first_lines = [job.line_items[0] for job in jobs if job.line_items]
    products = _products_for(repos, first_lines)

    groups: dict[str, dict[str, object]] = {}
    for job in jobs:
        row = metrics.get(job.id)
        if row is None:
            continue
        revenue = _d(row.revenue)
        if revenue <= ZERO:
            continue
        cost = _d(row.material_cost) + _d(row.ink_cost)
        job_type = _job_type(job, products)
        group = groups.setdefault(job_type, {
            "job_type": job_type,
            "label": category_label(job_type),
            "job_count": 0,
            "revenue": ZERO,
            "cost": ZERO,
            "profit": ZERO,
        })
        group["job_count"] += 1
        group["revenue"] += revenue
        group["cost"] += cost
        group["profit"] += revenue - cost

    data = []
    for group in groups.values():
        group["margin"] = _ratio(group["profit"], group["revenue"])
        data.append(group)
    data.sort(key=lambda g: g["margin"], reverse=True)

    total_revenue = sum((g["revenue"] for g in data), ZERO)
    total_profit = sum((g["profit"] for g in data), ZERO)
    # Only profitable job types compete for highest and lowest margin
    profitable = [g for g in data if g["margin"] > ZERO]
    highest = profitable[0] if profitable else None
    lowest = profitable[-1] if profitable else None
    return {
        "data": data,
        "summary": {
            "overall_margin": _ratio(total_profit, total_revenue),
            "highest_margin_type": highest["label"] if highest else None,
            "highest_margin": highest["margin"] if highest else ZERO,
            "lowest_margin_type": lowest["label"] if lowest else None,
            "lowest_margin": lowest["margin"] if lowest else ZERO,
            "total_revenue": total_revenue,
            "total_profit": total_profit,
        },
    }
