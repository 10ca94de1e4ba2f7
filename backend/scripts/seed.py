"""Seed the database with a small print-shop catalogue, invoices and jobs,
then build the job metrics table.

Usage:
    python -m backend.scripts.seed
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from backend.app.core.database import SessionLocal
from backend.app.core.logging import configure_logging
from backend.app.models.customer import Customer
from backend.app.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from backend.app.models.job import Job, JobProduct, JobStatus
from backend.app.models.product import Product, ProductCategory
from backend.app.repositories.registry import Repositories
from backend.app.services.job_metrics import recalculate_all_job_metrics

VAT = Decimal("0.2000")

CUSTOMERS: list[tuple[str, str]] = [
    ("Northside Bakery", "orders@northside.test"),
    ("Harbour Events Ltd", "print@harbour-events.test"),
    ("Greenleaf Cosmetics", "packaging@greenleaf.test"),
]

# name, category, base price, cost per area unit
PRODUCTS: list[tuple[str, ProductCategory, str, str | None]] = [
    ("Folding Carton 250gsm", ProductCategory.PACKAGING, "0.4500", None),
    ("Mailer Box", ProductCategory.PACKAGING, "1.2000", None),
    ("PVC Banner", ProductCategory.WIDE_FORMAT, "18.0000", "6.5000"),
    ("Foamex Board", ProductCategory.WIDE_FORMAT, "12.0000", "9.0000"),
    ("A5 Flyer", ProductCategory.LEAFLETS, "0.0300", None),
    ("Tri-fold Leaflet", ProductCategory.LEAFLETS, "0.0600", None),
    ("Perfect Bound Booklet", ProductCategory.FINISHED, "2.4000", None),
]

# customer, product, quantity, unit price, area, days ago, invoice status,
# job status, ink: (volume ml, cost per unit)
JOBS: list[tuple[int, int, int, str, str | None, int, InvoiceStatus | None, JobStatus, tuple[str | None, str | None]]] = [
    (0, 4, 5000, "0.0900", None, 3, InvoiceStatus.PENDING, JobStatus.COMPLETED, (None, None)),
    (0, 6, 200, "6.5000", None, 12, InvoiceStatus.PAID, JobStatus.COMPLETED, ("400", None)),
    (1, 2, 4, "55.0000", "3.0000", 9, InvoiceStatus.OVERDUE, JobStatus.COMPLETED, ("900", None)),
    (1, 3, 10, "35.0000", "1.2000", 41, InvoiceStatus.PAID, JobStatus.COMPLETED, ("650", None)),
    (1, 5, 2500, "0.1500", None, 70, InvoiceStatus.OVERDUE, JobStatus.COMPLETED, (None, None)),
    (2, 0, 3000, "1.1000", None, 18, InvoiceStatus.PENDING, JobStatus.COMPLETED, (None, "0.0250")),
    (2, 1, 800, "2.9000", None, 130, InvoiceStatus.PAID, JobStatus.COMPLETED, (None, "0.0400")),
    (2, 1, 500, "2.9000", None, 100, InvoiceStatus.OVERDUE, JobStatus.COMPLETED, (None, "0.0400")),
    (0, 6, 50, "6.5000", None, 2, InvoiceStatus.CANCELLED, JobStatus.CANCELLED, ("100", None)),
    (2, 0, 1500, "1.1000", None, 0, None, JobStatus.IN_PROGRESS, (None, "0.0250")),
]


def seed() -> None:
    configure_logging()
    db = SessionLocal()
    try:
        if db.query(Customer).first():
            print("Database already seeded; rebuilding job metrics only.")
        else:
            # ── Catalogue ──────────────────────────────────────────────
            customers = [Customer(name=name, email=email) for name, email in CUSTOMERS]
            db.add_all(customers)
            products = [
                Product(
                    name=name,
                    category=category.value,
                    base_price=Decimal(price),
                    cost_per_area_unit=Decimal(area_rate) if area_rate else None,
                )
                for name, category, price, area_rate in PRODUCTS
            ]
            db.add_all(products)
            db.flush()
            print(f"Created {len(customers)} customers and {len(products)} products")

            # ── Invoices and jobs ──────────────────────────────────────
            today = date.today()
            for n, (c, p, qty, price, area, days_ago, inv_status, job_status, ink) in enumerate(
                JOBS, start=1
            ):
                customer, product = customers[c], products[p]
                issued = today - timedelta(days=days_ago)

                invoice = None
                if inv_status is not None:
                    invoice = Invoice(
                        invoice_number=f"INV-{issued:%Y}-{n:04d}",
                        customer_id=customer.id,
                        issue_date=issued,
                        due_date=issued + timedelta(days=30),
                        status=inv_status,
                        tax_rate=VAT,
                    )
                    invoice.items.append(
                        InvoiceItem(
                            product_id=product.id,
                            category=product.category,
                            area=Decimal(area) if area else None,
                            quantity=qty,
                            unit_price=Decimal(price),
                        )
                    )
                    db.add(invoice)
                    db.flush()

                volume, per_unit = ink
                job = Job(
                    title=f"{product.name} for {customer.name}",
                    customer_id=customer.id,
                    status=job_status,
                    invoice_id=invoice.id if invoice else None,
                    created_at=datetime.combine(issued, datetime.min.time(), timezone.utc),
                )
                job.line_items.append(
                    JobProduct(
                        line_no=1,
                        product_id=product.id,
                        category=product.category,
                        requested_quantity=qty,
                        completed_quantity=qty if job_status == JobStatus.COMPLETED else qty // 2,
                        elapsed_time_minutes=max(30, qty // 50),
                        ink_volume_ml=Decimal(volume) if volume else None,
                        ink_cost_per_unit=Decimal(per_unit) if per_unit else None,
                    )
                )
                db.add(job)
            db.flush()
            print(f"Created {len(JOBS)} jobs")

        # ── Job metrics ────────────────────────────────────────────────
        report = recalculate_all_job_metrics(Repositories.from_session(db))
        if not report.ok:
            db.rollback()
            raise SystemExit(f"Metrics rebuild failed at job {report.failed_job_id}: {report.error}")
        db.commit()
        print(f"Recalculated metrics for {report.count} jobs.")
        print("Seed complete.")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
