from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Index, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.database import Base


class ProductCategory(str, enum.Enum):
    PACKAGING = "PACKAGING"
    WIDE_FORMAT = "WIDE_FORMAT"
    LEAFLETS = "LEAFLETS"
    FINISHED = "FINISHED"


class Product(Base):
    """Catalog product.

    ``category`` is stored as plain text rather than a database enum so rows
    written under retired categories still load; cost rules fall back to the
    FINISHED formula for anything they do not recognise.

    Prices must not be edited once a product is referenced by a booked
    invoice line, otherwise historical job costs would shift.
    """

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ProductCategory.FINISHED.value
    )
    base_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )
    # Only meaningful for WIDE_FORMAT products
    cost_per_area_unit: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=4), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (Index("ix_products_category", "category"),)
