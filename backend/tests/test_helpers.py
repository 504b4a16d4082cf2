"""Tests for unit inference, category mapping and threshold derivation."""

from decimal import Decimal

import pytest

from services.helpers.categories import map_category
from services.helpers.thresholds import VarianceThresholdCalculator
from services.helpers.units import infer_unit, normalize_unit


class TestUnits:
    @pytest.mark.parametrize("name,unit", [
        ("Coke 12 oz", "oz"),
        ("Coke 12 fl oz", "fl oz"),
        ("Whole Milk 1 gallon", "gal"),
        ("Ribeye 2 lbs", "lb"),
        ("Wings 10 pcs", "ea"),
        ("Napkins 1 case", "case"),
    ])
    def test_pattern_inference(self, name, unit):
        inferred = infer_unit(name)
        assert inferred.unit == unit
        assert inferred.match_type == "pattern"

    def test_variation_name_is_searched(self):
        assert infer_unit("Cold Brew", "16 oz").unit == "oz"

    def test_category_default(self):
        inferred = infer_unit("House Salad", category="produce")
        assert (inferred.unit, inferred.confidence, inferred.match_type) == ("lb", 0.6, "category_default")

    def test_global_default(self):
        assert infer_unit("Mystery Special").match_type == "global_default"
        assert infer_unit(None).unit == "lb"

    @pytest.mark.parametrize("raw,unit", [
        ("lb", "lbs"),
        (" Gal ", "gallons"),
        ("fl oz", "oz"),
        ("ea", "pieces"),
        ("case", "cases"),
        ("flagon", "pieces"),
        (None, "pieces"),
    ])
    def test_normalize(self, raw, unit):
        assert normalize_unit(raw) == unit


class TestCategories:
    def test_exact_alias(self):
        match = map_category("  Meat  ")
        assert (match.category, match.confidence, match.match_type) == ("proteins", 1.0, "exact")

    def test_fuzzy_alias(self):
        match = map_category("Vegetabls")
        assert match.category == "produce"
        assert match.match_type == "fuzzy"
        assert 0.85 < match.confidence < 1.0

    @pytest.mark.parametrize("raw", ["", "   ", None, "Qwzx"])
    def test_unmapped(self, raw):
        assert map_category(raw) is None


class TestThresholds:
    def test_cheap_protein(self):
        limits = VarianceThresholdCalculator(high_value_dollar=50).calculate(Decimal("3.49"), "proteins", "lbs", 40)
        assert limits.percentage == Decimal("15")
        assert limits.quantity == Decimal("6.000")
        assert limits.dollar == Decimal("20.94")
        assert not limits.high_value

    def test_expensive_item_is_high_value(self):
        limits = VarianceThresholdCalculator(high_value_dollar=50, default_par_level=10).calculate(
            Decimal("120"), "beverages", "bottle"
        )
        assert limits.percentage == Decimal("15")
        assert limits.quantity == Decimal("1.500")
        assert limits.dollar == Decimal("180.00")
        assert limits.high_value

    def test_count_units_get_wider_tolerance(self):
        limits = VarianceThresholdCalculator(default_par_level=10).calculate(Decimal("1"), None, "pieces")
        assert limits.percentage == Decimal("50")
        assert limits.quantity == Decimal("5.000")

    def test_percentage_floor(self):
        limits = VarianceThresholdCalculator(default_par_level=10).calculate(Decimal("150"), "proteins", "lbs")
        assert limits.percentage == Decimal("1")
        assert limits.quantity == Decimal("0.100")
