"""
Unit tests for the calculation helpers in utils/.

Run: pytest tests/unit/test_utils.py -v
"""

import pytest

from utils.sqm_calculator import (
    calculate_sqm,
    convert_to_meters,
    format_sqm_with_square_feet,
    product_sqm,
    to_number,
)
from utils.product_ratio import calculate_product_ratio, is_usable_ratio
from utils.stock_status import calculate_stock_status, classify_material_availability
from utils.format_helpers import (
    format_currency,
    format_indian_number,
    format_indian_number_with_decimals,
    format_quantity,
)
from utils.unit_converter import calculate_total_price, convert_area


# ===================
# SQM
# ===================

class TestCalculateSqm:
    """Tests for calculate_sqm()"""

    def test_meters(self):
        assert calculate_sqm(2, 1.5, "m", "m") == pytest.approx(3.0)

    def test_feet(self):
        assert calculate_sqm(10, 10, "feet", "feet") == pytest.approx(9.290304)

    def test_mixed_units(self):
        """Should convert each side with its own unit."""
        assert calculate_sqm(200, 1, "cm", "m") == pytest.approx(2.0)

    def test_string_dimensions(self):
        assert calculate_sqm("2", " 1.5 ", "m", "m") == pytest.approx(3.0)

    def test_unparseable_dimension_is_zero(self):
        assert calculate_sqm("abc", 2, "m", "m") == 0

    def test_missing_dimension_is_zero(self):
        assert calculate_sqm(None, 2) == 0

    def test_unknown_unit_assumed_meters(self):
        assert convert_to_meters(3, "furlongs") == 3


class TestProductSqm:
    """Tests for product_sqm()"""

    def test_uses_row_units(self):
        product = {"length": 8, "width": 10, "length_unit": "feet", "width_unit": "feet"}
        assert product_sqm(product) == pytest.approx(7.432243, rel=1e-6)

    def test_defaults_missing_units(self):
        product = {"length": 2, "width": 3, "length_unit": None, "width_unit": None}
        assert product_sqm(product, "m") == pytest.approx(6.0)


def test_to_number_handles_none():
    assert to_number(None) == 0.0


def test_format_sqm_with_square_feet():
    assert format_sqm_with_square_feet(1) == "1.0000 sqm (10.7639 sqft)"


# ===================
# PRODUCT RATIO
# ===================

class TestCalculateProductRatio:
    """Tests for calculate_product_ratio()"""

    def test_ratio_is_inverse_of_source_area(self):
        """A 1.5 SQM source gives 1 / 1.5 units per SQM."""
        source = {"length": 1.5, "width": 1, "length_unit": "m", "width_unit": "m"}
        target = {"length": 3, "width": 1, "length_unit": "m", "width_unit": "m"}

        assert calculate_product_ratio(source, target) == pytest.approx(0.6667, abs=1e-4)

    def test_missing_source_unit_returns_zero(self):
        source = {"length": 1.5, "width": 1, "length_unit": None, "width_unit": "m"}
        assert calculate_product_ratio(source) == 0

    def test_missing_target_unit_returns_zero(self):
        source = {"length": 1.5, "width": 1, "length_unit": "m", "width_unit": "m"}
        target = {"length": 3, "width": 1, "length_unit": "m", "width_unit": ""}
        assert calculate_product_ratio(source, target) == 0

    def test_zero_area_returns_zero(self):
        source = {"length": 0, "width": 1, "length_unit": "m", "width_unit": "m"}
        assert calculate_product_ratio(source) == 0

    @pytest.mark.parametrize("ratio,usable", [
        (0.5, True),
        (0, False),
        (-1, False),
        (None, False),
        (float("nan"), False),
        (float("inf"), False),
    ])
    def test_is_usable_ratio(self, ratio, usable):
        assert is_usable_ratio(ratio) is usable


# ===================
# STOCK STATUS
# ===================

class TestCalculateStockStatus:
    """Tests for calculate_stock_status()"""

    def test_zero_is_out_of_stock(self):
        assert calculate_stock_status(0, 10) == "out-of-stock"

    def test_below_min_is_low_stock(self):
        assert calculate_stock_status(4, 5) == "low-stock"

    def test_at_min_is_in_stock(self):
        assert calculate_stock_status(5, 5) == "in-stock"

    def test_no_min_level(self):
        assert calculate_stock_status(1, None) == "in-stock"

    @pytest.mark.parametrize("status", ["inactive", "discontinued"])
    def test_manual_status_kept(self, status):
        """Should never overwrite a manually set status."""
        assert calculate_stock_status(0, 10, status) == status


class TestClassifyMaterialAvailability:
    """Tests for classify_material_availability()"""

    def test_enough_stock(self):
        assert classify_material_availability(15, 20) == ("available", 0.0)

    def test_exactly_enough(self):
        assert classify_material_availability(15, 15) == ("available", 0.0)

    def test_partial_stock_is_low(self):
        assert classify_material_availability(15, 10) == ("low", 5)

    def test_no_stock_is_unavailable(self):
        assert classify_material_availability(15, 0) == ("unavailable", 15)

    def test_nothing_required(self):
        assert classify_material_availability(0, 0) == ("available", 0.0)


# ===================
# FORMATTING
# ===================

class TestIndianFormatting:
    """Tests for format_helpers"""

    @pytest.mark.parametrize("value,expected", [
        (1234, "1,234"),
        (123456, "1,23,456"),
        (12345678.5, "1,23,45,678.5"),
        (999, "999"),
        (-123456, "-1,23,456"),
        (None, "0.00"),
    ])
    def test_with_decimals(self, value, expected):
        assert format_indian_number_with_decimals(value) == expected

    def test_compact_lakh(self):
        assert format_indian_number(250000) == "2.50 Lac"

    def test_compact_crore(self):
        assert format_indian_number(35000000) == "3.50 Cr"

    def test_compact_zero(self):
        assert format_indian_number(0) == "0"

    def test_currency(self):
        assert format_currency(1234) == "₹1,234"
        assert format_currency(250000) == "₹2.5 Lac"
        assert format_currency(None) == "₹0"

    def test_quantity_with_unit(self):
        assert format_quantity(15, "kg") == "15 kg"
        assert format_quantity(2.5) == "2.5"


# ===================
# PRICING
# ===================

class TestCalculateTotalPrice:
    """Tests for calculate_total_price()"""

    def test_flat_unit_pricing(self):
        assert calculate_total_price(500, 3, "unit") == 1500

    def test_sqm_pricing(self):
        dims = {"length": 2, "width": 1.5}
        assert calculate_total_price(100, 2, "sqm", dims, "m", "m") == pytest.approx(600)

    def test_sqft_pricing(self):
        dims = {"length": 10, "width": 10}
        assert calculate_total_price(2, 1, "sqft", dims, "feet", "feet") == pytest.approx(200)

    def test_sqm_without_dimensions_falls_back_to_flat(self):
        assert calculate_total_price(100, 2, "sqm", {}) == 200

    def test_gsm_weight_text(self):
        """Should parse weight stored as text like '650 GSM'."""
        dims = {"length": 2, "width": 1, "weight": "650 GSM"}
        assert calculate_total_price(1, 1, "gsm", dims, "m", "m") == pytest.approx(1300)

    def test_kg_pricing_from_gsm(self):
        # 500 gsm x 2 sqm = 1 kg
        dims = {"length": 2, "width": 1, "gsm": 500}
        assert calculate_total_price(300, 2, "kg", dims, "m", "m") == pytest.approx(600)

    def test_convert_area(self):
        assert convert_area(1, "sqm", "sqft") == pytest.approx(10.764)
        assert convert_area(10.764, "sqft", "sqm") == pytest.approx(1)

    def test_convert_area_rejects_lengths(self):
        with pytest.raises(ValueError):
            convert_area(1, "m", "sqft")
