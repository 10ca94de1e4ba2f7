"""Per-category material and ink cost formulas.

Every piece of category-specific cost arithmetic lives in ``COST_RULES``.
Adding a product category means adding one entry here; the job metrics
calculator only ever asks this module for a rule.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from backend.app.models.product import ProductCategory

ZERO = Decimal("0")

INK_COST_PER_ML = Decimal("0.16")
LEAFLET_INK_COST_PER_UNIT = Decimal("0.004")


@dataclass(frozen=True)
class MaterialLine:
    """Inputs for a material cost: one booked invoice line and its product."""

    quantity: Decimal
    base_price: Decimal
    area: Decimal | None = None
    cost_per_area_unit: Decimal | None = None


@dataclass(frozen=True)
class InkLine:
    """Inputs for an ink cost: one requested job line."""

    completed_quantity: Decimal
    ink_volume_ml: Decimal | None = None
    ink_cost_per_unit: Decimal | None = None


@dataclass(frozen=True)
class CostRule:
    material: Callable[[MaterialLine], Decimal]
    ink: Callable[[InkLine], Decimal]


def _d(value: Decimal | int | None) -> Decimal:
    return ZERO if value is None else Decimal(str(value))


# ── Material formulas ────────────────────────────────────────────────────────


def base_price_material(line: MaterialLine) -> Decimal:
    return _d(line.base_price) * _d(line.quantity)


def area_material(line: MaterialLine) -> Decimal:
    # Lines booked without an area (or products without an area rate) are
    # priced per unit like every other category.
    if not line.area or line.cost_per_area_unit is None:
        return base_price_material(line)
    return _d(line.cost_per_area_unit) * _d(line.area) * _d(line.quantity)


# ── Ink formulas ─────────────────────────────────────────────────────────────


def volume_ink(line: InkLine) -> Decimal:
    return _d(line.ink_volume_ml) * INK_COST_PER_ML


def per_unit_ink(line: InkLine) -> Decimal:
    return _d(line.ink_cost_per_unit) * _d(line.completed_quantity)


def leaflet_ink(line: InkLine) -> Decimal:
    return LEAFLET_INK_COST_PER_UNIT * _d(line.completed_quantity)


FALLBACK_RULE = CostRule(material=base_price_material, ink=volume_ink)

COST_RULES: dict[str, CostRule] = {
    ProductCategory.WIDE_FORMAT.value: CostRule(material=area_material, ink=volume_ink),
    ProductCategory.PACKAGING.value: CostRule(material=base_price_material, ink=per_unit_ink),
    ProductCategory.LEAFLETS.value: CostRule(material=base_price_material, ink=leaflet_ink),
    ProductCategory.FINISHED.value: FALLBACK_RULE,
}


def normalize_category(category: str | ProductCategory | None) -> str | None:
    if category is None:
        return None
    if isinstance(category, ProductCategory):
        return category.value
    return category.strip().upper() or None


def rule_for(category: str | ProductCategory | None) -> CostRule:
    """Return the cost rule for *category*, FINISHED for anything unknown."""
    key = normalize_category(category)
    if key is None:
        return FALLBACK_RULE
    return COST_RULES.get(key, FALLBACK_RULE)


def material_cost(category: str | ProductCategory | None, line: MaterialLine) -> Decimal:
    return rule_for(category).material(line)


def ink_cost(category: str | ProductCategory | None, line: InkLine) -> Decimal:
    return rule_for(category).ink(line)


def unbilled_material_cost(base_price: Decimal, requested_quantity: int) -> Decimal:
    """Material estimate for a job line when the job has no invoice yet."""
    return _d(base_price) * _d(requested_quantity)
