from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session, joinedload, selectinload

from backend.app.models.invoice import OUTSTANDING_STATUSES, Invoice, InvoiceStatus


class InvoiceRepository:
    """Read access to invoices and their booked line items."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_invoice(self, invoice_id: UUID) -> Invoice | None:
        return (
            self.db.query(Invoice)
            .options(selectinload(Invoice.items))
            .filter(Invoice.id == invoice_id)
            .first()
        )

    def list_invoices(
        self,
        start: date,
        end: date,
        statuses: Iterable[InvoiceStatus] | None = None,
        exclude_cancelled: bool = True,
    ) -> list[Invoice]:
        """Invoices issued within ``[start, end]`` inclusive, by issue date."""
        query = (
            self.db.query(Invoice)
            .options(selectinload(Invoice.items), joinedload(Invoice.customer))
            .filter(Invoice.issue_date >= start, Invoice.issue_date <= end)
        )
        if statuses is not None:
            query = query.filter(Invoice.status.in_(list(statuses)))
        elif exclude_cancelled:
            query = query.filter(Invoice.status != InvoiceStatus.CANCELLED)
        return query.order_by(Invoice.issue_date, Invoice.invoice_number).all()

    def list_outstanding(
        self, start: date | None = None, end: date | None = None,
    ) -> list[Invoice]:
        """PENDING and OVERDUE invoices, oldest due date first."""
        query = (
            self.db.query(Invoice)
            .options(joinedload(Invoice.customer))
            .filter(Invoice.status.in_(OUTSTANDING_STATUSES))
        )
        if start:
            query = query.filter(Invoice.issue_date >= start)
        if end:
            query = query.filter(Invoice.issue_date <= end)
        return query.order_by(Invoice.due_date, Invoice.invoice_number).all()
