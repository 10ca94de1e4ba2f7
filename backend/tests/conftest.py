"""Shared test fixtures.

Each test gets its own in-memory SQLite database with the full schema, so
tests never pollute each other and endpoints are free to commit.
"""

from __future__ import annotations

import itertools
import uuid
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from backend.app.core.database import Base, get_db
from backend.app.main import app
from backend.app.models.customer import Customer
from backend.app.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from backend.app.models.job import Job, JobProduct, JobStatus
from backend.app.models.metrics import JobMetrics  # noqa: F401  (registers table)
from backend.app.models.product import Product, ProductCategory
from backend.app.repositories.registry import Repositories


# ─── DB session on a throwaway database ──────────────────────────────────────


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Yield a session bound to a fresh in-memory database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = Session(bind=engine, autoflush=False)

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def repos(db: Session) -> Repositories:
    return Repositories.from_session(db)


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the per-test session."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ─── Catalog ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def customer(db: Session) -> Customer:
    c = Customer(name="Acme Print Buyers", email="buyer@acme.test")
    db.add(c)
    db.commit()
    return c


@pytest.fixture()
def packaging(db: Session) -> Product:
    p = Product(
        name="Folding Carton",
        category=ProductCategory.PACKAGING.value,
        base_price=Decimal("2.0000"),
    )
    db.add(p)
    db.commit()
    return p


@pytest.fixture()
def wide_format(db: Session) -> Product:
    p = Product(
        name="Vinyl Banner",
        category=ProductCategory.WIDE_FORMAT.value,
        base_price=Decimal("10.0000"),
        cost_per_area_unit=Decimal("3.5000"),
    )
    db.add(p)
    db.commit()
    return p


@pytest.fixture()
def leaflets(db: Session) -> Product:
    p = Product(
        name="A5 Flyer",
        category=ProductCategory.LEAFLETS.value,
        base_price=Decimal("0.0500"),
    )
    db.add(p)
    db.commit()
    return p


@pytest.fixture()
def finished(db: Session) -> Product:
    p = Product(
        name="Bound Booklet",
        category=ProductCategory.FINISHED.value,
        base_price=Decimal("5.0000"),
    )
    db.add(p)
    db.commit()
    return p


# ─── Factories ───────────────────────────────────────────────────────────────


@pytest.fixture()
def make_invoice(db: Session, customer: Customer) -> Callable[..., Invoice]:
    """Build and commit an invoice; totals are derived from the lines."""
    numbers = itertools.count(1)

    def _make(
        lines: list[tuple],
        issue_date: date | None = None,
        due_date: date | None = None,
        status: InvoiceStatus = InvoiceStatus.PENDING,
        tax_rate: Decimal = Decimal("0"),
    ) -> Invoice:
        issued = issue_date or date.today()
        inv = Invoice(
            invoice_number=f"INV-{next(numbers):05d}",
            customer_id=customer.id,
            issue_date=issued,
            due_date=due_date or issued + timedelta(days=30),
            status=status,
            tax_rate=tax_rate,
        )
        for line in lines:
            product, quantity, unit_price = line[0], line[1], line[2]
            area = line[3] if len(line) > 3 else None
            inv.items.append(
                InvoiceItem(
                    product_id=product.id,
                    category=product.category,
                    area=area,
                    quantity=quantity,
                    unit_price=Decimal(str(unit_price)),
                )
            )
        db.add(inv)
        db.commit()
        return inv

    return _make


@pytest.fixture()
def make_job(db: Session, customer: Customer) -> Callable[..., Job]:
    """Build and commit a job with the given ``JobProduct`` keyword dicts."""

    def _make(
        lines: list[dict[str, object]],
        invoice: Invoice | None = None,
        invoice_id: uuid.UUID | None = None,
        status: JobStatus = JobStatus.COMPLETED,
        created_at: datetime | None = None,
        assigned_to_id: uuid.UUID | None = None,
        title: str = "Print job",
    ) -> Job:
        job = Job(
            title=title,
            customer_id=customer.id,
            status=status,
            invoice_id=invoice.id if invoice is not None else invoice_id,
            assigned_to_id=assigned_to_id,
            created_at=created_at or datetime.now(timezone.utc),
        )
        for n, fields in enumerate(lines, start=1):
            fields = dict(fields)
            product = fields.pop("product", None)
            if product is not None:
                fields.setdefault("product_id", product.id)
                fields.setdefault("category", product.category)
            fields.setdefault("completed_quantity", fields.get("requested_quantity", 0))
            job.line_items.append(JobProduct(line_no=n, **fields))
        db.add(job)
        db.commit()
        return job

    return _make
