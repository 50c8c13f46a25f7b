"""Tests for the discount price formula."""

from decimal import Decimal

import pytest

from discount_scheduler.services.pricing import (
    anchor_price,
    discounted_price,
    existing_discount_percent,
    format_price,
    to_decimal,
)


class TestAnchorPrice:
    """Tests for anchor_price."""

    def test_uses_reference_when_higher(self):
        assert anchor_price(Decimal("80"), Decimal("100")) == Decimal("100")

    def test_uses_current_without_reference(self):
        assert anchor_price(Decimal("80"), None) == Decimal("80")

    def test_uses_current_when_reference_lower(self):
        """A stale compare-at below the price is ignored."""
        assert anchor_price(Decimal("80"), Decimal("50")) == Decimal("80")


class TestExistingDiscount:
    """Tests for existing_discount_percent."""

    def test_gap_between_anchor_and_current(self):
        assert existing_discount_percent(Decimal("100"), Decimal("80")) == Decimal("20")

    def test_no_gap(self):
        assert existing_discount_percent(Decimal("80"), Decimal("80")) == 0

    def test_zero_anchor(self):
        """A free variant has no existing discount and no division by zero."""
        assert existing_discount_percent(Decimal("0"), Decimal("0")) == 0


class TestDiscountedPrice:
    """Tests for discounted_price."""

    def test_stacks_onto_existing_markdown(self):
        """anchor=100, current=80, +10% -> 30% off anchor."""
        change = discounted_price("80.00", "100.00", 10)
        assert change.price == "70.00"
        assert change.compare_at_price == "100.00"

    def test_plain_discount_without_reference(self):
        change = discounted_price("80.00", None, 10)
        assert change.price == "72.00"
        assert change.compare_at_price == "80.00"

    def test_empty_reference_treated_as_absent(self):
        change = discounted_price("50.00", "", 20)
        assert change.price == "40.00"
        assert change.compare_at_price == "50.00"

    def test_clamps_to_zero(self):
        """Discounts over 100% never produce a negative price."""
        change = discounted_price("10.00", None, 150)
        assert change.price == "0.00"
        assert change.compare_at_price == "10.00"

    def test_rounds_half_up_to_cents(self):
        change = discounted_price("19.99", None, 15)
        # 19.99 * 0.85 = 16.9915
        assert change.price == "16.99"

    def test_rounding_half_up_boundary(self):
        change = discounted_price("0.50", None, 1)
        # 0.50 * 0.99 = 0.495
        assert change.price == "0.50"

    def test_fractional_existing_discount(self):
        """anchor=30, current=20 (33.3% off) +10% -> 20 - 3 = 17.00."""
        change = discounted_price("20.00", "30.00", 10)
        assert change.price == "17.00"
        assert change.compare_at_price == "30.00"

    def test_zero_discount_keeps_price(self):
        change = discounted_price("25.00", "40.00", 0)
        assert change.price == "25.00"
        assert change.compare_at_price == "40.00"

    def test_rejects_non_numeric_price(self):
        with pytest.raises(ValueError):
            discounted_price("abc", None, 10)

    def test_rejects_nan(self):
        with pytest.raises(ValueError):
            discounted_price("NaN", None, 10)


class TestHelpers:
    """Tests for parsing and formatting helpers."""

    def test_to_decimal_from_float(self):
        assert to_decimal(12.5) == Decimal("12.5")

    def test_to_decimal_strips_whitespace(self):
        assert to_decimal(" 9.99 ") == Decimal("9.99")

    def test_format_price_pads_cents(self):
        assert format_price(Decimal("7")) == "7.00"
