from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.database import Base
from backend.app.models.customer import Customer


class JobStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id"), nullable=False
    )
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus), nullable=False, default=JobStatus.PENDING
    )
    invoice_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True
    )
    # Opaque reference to the employee working the job (auth lives elsewhere)
    assigned_to_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    customer: Mapped[Customer] = relationship()
    line_items: Mapped[list[JobProduct]] = relationship(
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobProduct.line_no",
    )

    __table_args__ = (
        Index("ix_jobs_invoice", "invoice_id"),
        Index("ix_jobs_status", "status"),
        Index("ix_jobs_assigned_to", "assigned_to_id"),
    )


class JobProduct(Base):
    """A product requested on a job, with production figures."""

    __tablename__ = "job_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("jobs.id"), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id"), nullable=False
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Category snapshot at the time the job was booked
    category: Mapped[str | None] = mapped_column(String(30), nullable=True)
    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    elapsed_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ink_volume_ml: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=4), nullable=True
    )
    ink_cost_per_unit: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=4), nullable=True
    )

    job: Mapped[Job] = relationship(back_populates="line_items")

    __table_args__ = (
        CheckConstraint(
            "completed_quantity <= requested_quantity",
            name="ck_job_products_completed_le_requested",
        ),
        Index("ix_job_products_job", "job_id"),
    )
