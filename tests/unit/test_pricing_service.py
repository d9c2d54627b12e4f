"""
Unit tests for PricingService and VAT breakdown.

Run: pytest tests/unit/test_pricing_service.py -v
"""

from decimal import Decimal

import pytest

from models.catalog_import import VariantRecord
from services.pricing_service import PricingService, calculate_vat_breakdown

from tests.factories import VariantFactory


@pytest.fixture
def variant() -> VariantRecord:
    return VariantRecord(**VariantFactory.create(product_id="p-1", id="v-1"))


class TestCalculateVatBreakdown:
    """Tests for calculate_vat_breakdown()"""

    def test_default_rate(self):
        """49.99 inc VAT at 20% → 41.66 + 8.33."""
        # Act
        pricing = calculate_vat_breakdown("49.99")

        # Assert
        assert pricing.price_including_vat == Decimal("49.99")
        assert pricing.price_excluding_vat == Decimal("41.66")
        assert pricing.vat_amount == Decimal("8.33")
        assert pricing.vat_rate == Decimal("0.2")

    def test_round_trip_within_a_cent(self):
        """excl * (1 + rate) reproduces the input within rounding."""
        # Act
        pricing = calculate_vat_breakdown(49.99)

        # Assert
        rebuilt = pricing.price_excluding_vat * (1 + pricing.vat_rate)
        assert abs(rebuilt - pricing.price_including_vat) <= Decimal("0.01")
        assert pricing.price_excluding_vat + pricing.vat_amount == pricing.price_including_vat

    def test_custom_rate(self):
        # Act
        pricing = calculate_vat_breakdown(Decimal("10.50"), vat_rate=0.05)

        # Assert
        assert pricing.price_excluding_vat == Decimal("10.00")
        assert pricing.vat_amount == Decimal("0.50")

    @pytest.mark.parametrize("price", [0, "0", -1, Decimal("-0.01")])
    def test_non_positive_price(self, price):
        """Should return None for zero or negative prices."""
        assert calculate_vat_breakdown(price) is None


class TestAssignPricing:
    """Tests for PricingService.assign_pricing()"""

    def test_creates_website_price(self, mock_supabase, variant):
        """Should insert a website channel row."""
        # Arrange
        service = PricingService(db=mock_supabase)

        # Act
        record = service.assign_pricing(variant, Decimal("49.99"))

        # Assert
        assert record.channel == "website"
        assert record.variant_id == "v-1"
        assert record.price_excluding_vat == 41.66
        assert record.vat_amount == 8.33

    def test_second_call_updates(self, mock_supabase, variant):
        """One row per variant and channel."""
        # Arrange
        service = PricingService(db=mock_supabase)
        service.assign_pricing(variant, "49.99")

        # Act
        record = service.assign_pricing(variant, "59.99")

        # Assert
        assert len(mock_supabase.rows("variant_pricing")) == 1
        assert record.price_including_vat == 59.99

    def test_zero_price_writes_nothing(self, mock_supabase, variant):
        """Should skip non-positive prices."""
        # Arrange
        service = PricingService(db=mock_supabase)

        # Act
        record = service.assign_pricing(variant, 0)

        # Assert
        assert record is None
        assert mock_supabase.rows("variant_pricing") == []
