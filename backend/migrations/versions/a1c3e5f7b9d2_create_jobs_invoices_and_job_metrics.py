"""create_jobs_invoices_and_job_metrics

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c3e5f7b9d2"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(precision=20, scale=4)


def upgrade() -> None:
    job_status = sa.Enum(
        "PENDING", "IN_PROGRESS", "COMPLETED", "CANCELLED", name="jobstatus"
    )
    invoice_status = sa.Enum(
        "PENDING", "PAID", "OVERDUE", "CANCELLED", name="invoicestatus"
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "category", sa.String(30), nullable=False, server_default="FINISHED"
        ),
        sa.Column("base_price", MONEY, nullable=False),
        sa.Column("cost_per_area_unit", MONEY, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_products_category", "products", ["category"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("invoice_number", sa.String(50), nullable=False, unique=True),
        sa.Column(
            "customer_id", sa.Uuid(), sa.ForeignKey("customers.id"), nullable=False
        ),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", invoice_status, nullable=False),
        sa.Column("subtotal", MONEY, nullable=False, server_default="0"),
        sa.Column(
            "tax_rate",
            sa.Numeric(precision=8, scale=4),
            nullable=False,
            server_default="0",
        ),
        sa.Column("tax_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("total_amount", MONEY, nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_invoices_customer", "invoices", ["customer_id"])
    op.create_index("ix_invoices_status", "invoices", ["status"])
    op.create_index("ix_invoices_issue_date", "invoices", ["issue_date"])
    op.create_index("ix_invoices_due_date", "invoices", ["due_date"])

    op.create_table(
        "invoice_items",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column(
            "invoice_id", sa.Uuid(), sa.ForeignKey("invoices.id"), nullable=False
        ),
        sa.Column(
            "product_id", sa.Uuid(), sa.ForeignKey("products.id"), nullable=False
        ),
        sa.Column("category", sa.String(30), nullable=True),
        sa.Column("area", MONEY, nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", MONEY, nullable=False),
        sa.Column("line_total", MONEY, nullable=False, server_default="0"),
    )
    op.create_index("ix_invoice_items_invoice", "invoice_items", ["invoice_id"])

    op.create_table(
        "jobs",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "customer_id", sa.Uuid(), sa.ForeignKey("customers.id"), nullable=False
        ),
        sa.Column("status", job_status, nullable=False),
        sa.Column(
            "invoice_id", sa.Uuid(), sa.ForeignKey("invoices.id"), nullable=True
        ),
        sa.Column("assigned_to_id", sa.Uuid(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_jobs_invoice", "jobs", ["invoice_id"])
    op.create_index("ix_jobs_status", "jobs", ["status"])
    op.create_index("ix_jobs_assigned_to", "jobs", ["assigned_to_id"])

    op.create_table(
        "job_products",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("job_id", sa.Uuid(), sa.ForeignKey("jobs.id"), nullable=False),
        sa.Column(
            "product_id", sa.Uuid(), sa.ForeignKey("products.id"), nullable=False
        ),
        sa.Column("line_no", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("category", sa.String(30), nullable=True),
        sa.Column("requested_quantity", sa.Integer(), nullable=False),
        sa.Column(
            "completed_quantity", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "elapsed_time_minutes", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("ink_volume_ml", MONEY, nullable=True),
        sa.Column("ink_cost_per_unit", MONEY, nullable=True),
        sa.CheckConstraint(
            "completed_quantity <= requested_quantity",
            name="ck_job_products_completed_le_requested",
        ),
    )
    op.create_index("ix_job_products_job", "job_products", ["job_id"])

    op.create_table(
        "job_metrics",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column(
            "job_id",
            sa.Uuid(),
            sa.ForeignKey("jobs.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("revenue", MONEY, nullable=False),
        sa.Column("material_cost", MONEY, nullable=False),
        sa.Column("ink_cost", MONEY, nullable=False),
        sa.Column("gross_profit", MONEY, nullable=False),
        sa.Column(
            "profit_margin", sa.Numeric(precision=20, scale=6), nullable=False
        ),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "total_time_minutes", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("job_metrics")
    op.drop_index("ix_job_products_job", table_name="job_products")
    op.drop_table("job_products")
    op.drop_index("ix_jobs_assigned_to", table_name="jobs")
    op.drop_index("ix_jobs_status", table_name="jobs")
    op.drop_index("ix_jobs_invoice", table_name="jobs")
    op.drop_table("jobs")
    op.drop_index("ix_invoice_items_invoice", table_name="invoice_items")
    op.drop_table("invoice_items")
    op.drop_index("ix_invoices_due_date", table_name="invoices")
    op.drop_index("ix_invoices_issue_date", table_name="invoices")
    op.drop_index("ix_invoices_status", table_name="invoices")
    op.drop_index("ix_invoices_customer", table_name="invoices")
    op.drop_table("invoices")
    op.drop_index("ix_products_category", table_name="products")
    op.drop_table("products")
    op.drop_table("customers")
    sa.Enum(name="invoicestatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="jobstatus").drop(op.get_bind(), checkfirst=True)
