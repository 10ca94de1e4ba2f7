from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.database import Base
from backend.app.models.job import Job


class JobMetrics(Base):
    """Derived cost/profit view of a job.

    Rows are written only by the metrics service and can always be rebuilt
    from the job and invoice they were computed from.
    """

    __tablename__ = "job_metrics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("jobs.id"), unique=True, nullable=False
    )
    revenue: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)
    material_cost: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )
    ink_cost: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)
    gross_profit: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )
    # Ratio, not percentage: 0.25 means 25 %
    profit_margin: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=6), nullable=False
    )
    total_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    job: Mapped[Job] = relationship()
