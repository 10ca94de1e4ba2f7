"""Tests for the per-category material and ink cost formulas."""
from __future__ import annotations

from decimal import Decimal

import pytest

from backend.app.models.product import ProductCategory
from backend.app.services.cost_rules import (
    COST_RULES,
    FALLBACK_RULE,
    InkLine,
    MaterialLine,
    ink_cost,
    material_cost,
    rule_for,
    unbilled_material_cost,
)


class TestMaterialCost:
    def test_packaging_uses_base_price(self) -> None:
        line = MaterialLine(quantity=Decimal("100"), base_price=Decimal("2.00"))
        assert material_cost("PACKAGING", line) == Decimal("200.00")

    def test_leaflets_use_base_price(self) -> None:
        line = MaterialLine(quantity=Decimal("1000"), base_price=Decimal("0.05"))
        assert material_cost(ProductCategory.LEAFLETS, line) == Decimal("50.00")

    def test_wide_format_uses_area(self) -> None:
        line = MaterialLine(
            quantity=Decimal("2"),
            base_price=Decimal("10.00"),
            area=Decimal("1.5"),
            cost_per_area_unit=Decimal("3.50"),
        )
        # 3.50 per unit area x 1.5 area x 2 units
        assert material_cost("WIDE_FORMAT", line) == Decimal("10.50")

    def test_wide_format_without_area_falls_back_to_base_price(self) -> None:
        line = MaterialLine(
            quantity=Decimal("2"),
            base_price=Decimal("10.00"),
            cost_per_area_unit=Decimal("3.50"),
        )
        assert material_cost("WIDE_FORMAT", line) == Decimal("20.00")

    def test_wide_format_without_rate_falls_back_to_base_price(self) -> None:
        line = MaterialLine(
            quantity=Decimal("3"),
            base_price=Decimal("10.00"),
            area=Decimal("2"),
        )
        assert material_cost("WIDE_FORMAT", line) == Decimal("30.00")


class TestInkCost:
    def test_packaging_ink_per_completed_unit(self) -> None:
        line = InkLine(
            completed_quantity=Decimal("80"), ink_cost_per_unit=Decimal("0.03"),
        )
        assert ink_cost("PACKAGING", line) == Decimal("2.40")

    def test_packaging_without_unit_cost_is_zero(self) -> None:
        line = InkLine(completed_quantity=Decimal("80"))
        assert ink_cost("PACKAGING", line) == Decimal("0")

    def test_wide_format_ink_by_volume(self) -> None:
        line = InkLine(completed_quantity=Decimal("2"), ink_volume_ml=Decimal("250"))
        assert ink_cost("WIDE_FORMAT", line) == Decimal("40.00")

    def test_leaflets_flat_rate_per_unit(self) -> None:
        line = InkLine(completed_quantity=Decimal("1000"))
        assert ink_cost("LEAFLETS", line) == Decimal("4.000")

    def test_finished_ink_by_volume(self) -> None:
        line = InkLine(completed_quantity=Decimal("10"), ink_volume_ml=Decimal("12.5"))
        assert ink_cost("FINISHED", line) == Decimal("2.000")

    def test_only_completed_units_count(self) -> None:
        line = InkLine(completed_quantity=Decimal("0"), ink_cost_per_unit=Decimal("0.03"))
        assert ink_cost("PACKAGING", line) == Decimal("0")


class TestRuleLookup:
    def test_every_category_has_a_rule(self) -> None:
        for category in ProductCategory:
            assert category.value in COST_RULES

    @pytest.mark.parametrize("category", [None, "", "STICKERS", "unknown"])
    def test_unknown_category_uses_finished_rule(self, category: str | None) -> None:
        assert rule_for(category) is FALLBACK_RULE
        assert rule_for(category) is COST_RULES["FINISHED"]

    def test_category_lookup_ignores_case_and_whitespace(self) -> None:
        assert rule_for(" packaging ") is COST_RULES["PACKAGING"]

    def test_unknown_category_costs_like_finished(self) -> None:
        material = MaterialLine(quantity=Decimal("4"), base_price=Decimal("5.00"))
        ink = InkLine(completed_quantity=Decimal("4"), ink_volume_ml=Decimal("10"))
        assert material_cost("STICKERS", material) == material_cost("FINISHED", material)
        assert ink_cost("STICKERS", ink) == ink_cost("FINISHED", ink)


def test_unbilled_material_cost() -> None:
    assert unbilled_material_cost(Decimal("2.50"), 40) == Decimal("100.00")
