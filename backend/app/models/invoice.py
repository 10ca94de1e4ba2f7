from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
    event,
    func,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from backend.app.core.database import Base
from backend.app.models.customer import Customer

Q = Decimal("0.0001")
ZERO = Decimal("0")


class InvoiceStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


OUTSTANDING_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.OVERDUE)


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id"), nullable=False
    )
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.PENDING
    )
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=ZERO
    )
    # Flat rate, e.g. 0.2000 for 20 %
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=8, scale=4), nullable=False, default=ZERO
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=ZERO
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=ZERO
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    customer: Mapped[Customer] = relationship()
    items: Mapped[list[InvoiceItem]] = relationship(
        back_populates="invoice", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_invoices_customer", "customer_id"),
        Index("ix_invoices_status", "status"),
        Index("ix_invoices_issue_date", "issue_date"),
        Index("ix_invoices_due_date", "due_date"),
    )

    def recompute_totals(self) -> None:
        """Derive subtotal, tax and total from the current line items."""
        subtotal = ZERO
        for item in self.items:
            item.line_total = compute_line_total(item.quantity, item.unit_price)
            subtotal += item.line_total
        rate = Decimal(str(self.tax_rate or ZERO))
        self.subtotal = subtotal
        self.tax_amount = (subtotal * rate).quantize(Q, rounding=ROUND_HALF_UP)
        self.total_amount = self.subtotal + self.tax_amount


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("invoices.id"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id"), nullable=False
    )
    # Category snapshot at the time of sale
    category: Mapped[str | None] = mapped_column(String(30), nullable=True)
    # Printed area per unit, WIDE_FORMAT only
    area: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=4), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )
    line_total: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=ZERO
    )

    invoice: Mapped[Invoice] = relationship(back_populates="items")

    __table_args__ = (Index("ix_invoice_items_invoice", "invoice_id"),)


def compute_line_total(quantity: int, unit_price: Decimal) -> Decimal:
    return (Decimal(str(unit_price)) * quantity).quantize(Q, rounding=ROUND_HALF_UP)


@event.listens_for(InvoiceItem, "before_insert")
@event.listens_for(InvoiceItem, "before_update")
def _recompute_line_total(mapper: object, connection: object, target: InvoiceItem) -> None:
    # line_total is always derived; whatever the caller set is overwritten
    target.line_total = compute_line_total(target.quantity, target.unit_price)


@event.listens_for(Session, "before_flush")
def _recompute_invoice_totals(session: Session, flush_context: object, instances: object) -> None:
    # subtotal, tax and total are derived from the items on every flush
    touched: set[Invoice] = set()
    with session.no_autoflush:
        for obj in (*session.new, *session.dirty):
            if isinstance(obj, Invoice):
                touched.add(obj)
            elif isinstance(obj, InvoiceItem):
                invoice = obj.invoice
                if invoice is None and obj.invoice_id is not None:
                    invoice = session.get(Invoice, obj.invoice_id)
                if invoice is not None:
                    touched.add(invoice)
        for obj in session.deleted:
            if isinstance(obj, InvoiceItem) and obj.invoice is not None:
                invoice = obj.invoice
                if invoice not in session.deleted:
                    if obj in invoice.items:
                        invoice.items.remove(obj)
                    touched.add(invoice)
        for invoice in touched:
            if invoice not in session.deleted:
                invoice.recompute_totals()
