"""Bundle of the repositories the metrics services depend on.

Built once per request from the request's session and passed explicitly,
so services never reach for a shared client.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from backend.app.repositories.invoices import InvoiceRepository
from backend.app.repositories.jobs import JobRepository
from backend.app.repositories.metrics import MetricsRepository
from backend.app.repositories.products import ProductRepository


@dataclass
class Repositories:
    jobs: JobRepository
    invoices: InvoiceRepository
    products: ProductRepository
    metrics: MetricsRepository

    @classmethod
    def from_session(cls, db: Session) -> Repositories:
        return cls(
            jobs=JobRepository(db),
            invoices=InvoiceRepository(db),
            products=ProductRepository(db),
            metrics=MetricsRepository(db),
        )
