"""
Pricing service: VAT breakdown and website channel pricing.

Retail prices in catalog files include VAT. The excluding-VAT price and the
VAT amount are derived from it:

    excl = round(P / (1 + r), 2)
    vat  = round(P - excl, 2)
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

import structlog

from config import get_supabase_client, settings
from config.import_rules import PRICING_CHANNEL
from exceptions import classify_storage_error
from models.catalog_import import PricingRecord, VariantPricing, VariantRecord

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


def _to_decimal(value: Union[Decimal, float, int, str]) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so 49.99 stays 49.99 rather than its binary expansion
    return Decimal(str(value))


def calculate_vat_breakdown(
    price: Union[Decimal, float, int, str],
    vat_rate: Optional[Union[Decimal, float]] = None
) -> Optional[VariantPricing]:
    """
    Split a VAT-inclusive price.

    Args:
        price: VAT-inclusive retail price
        vat_rate: VAT rate (default settings.vat_rate, 0.20)

    Returns:
        VariantPricing, or None when price <= 0
    """
    including = _to_decimal(price)
    if including <= 0:
        return None

    rate = _to_decimal(settings.vat_rate if vat_rate is None else vat_rate)
    including = including.quantize(CENT, rounding=ROUND_HALF_UP)
    excluding = (including / (1 + rate)).quantize(CENT, rounding=ROUND_HALF_UP)
    vat_amount = (including - excluding).quantize(CENT, rounding=ROUND_HALF_UP)

    return VariantPricing(
        price_including_vat=including,
        price_excluding_vat=excluding,
        vat_amount=vat_amount,
        vat_rate=rate,
    )


class PricingService:
    """
    Writes website channel pricing for variants.

    Args:
        db: Supabase client; the cached client by default
    """

    def __init__(self, db=None):
        self.db = db or get_supabase_client()
        self.table = "variant_pricing"
        self.channel = PRICING_CHANNEL

    def assign_pricing(
        self,
        variant: VariantRecord,
        price: Union[Decimal, float, int, str]
    ) -> Optional[PricingRecord]:
        """
        Upsert the website channel price for a variant.

        Args:
            variant: Target variant
            price: VAT-inclusive retail price

        Returns:
            PricingRecord, or None when the price is not positive
        """
        breakdown = calculate_vat_breakdown(price)
        if breakdown is None:
            logger.debug("pricing_skipped", variant_id=variant.id, price=str(price))
            return None

        payload = {
            "price_including_vat": float(breakdown.price_including_vat),
            "price_excluding_vat": float(breakdown.price_excluding_vat),
            "vat_amount": float(breakdown.vat_amount),
            "vat_rate": float(breakdown.vat_rate),
        }

        try:
            existing = (
                self.db.table(self.table)
                .select("id")
                .eq("variant_id", variant.id)
                .eq("channel", self.channel)
                .limit(1)
                .execute()
            )

            if existing.data:
                result = (
                    self.db.table(self.table)
                    .update(payload)
                    .eq("id", existing.data[0]["id"])
                    .execute()
                )
            else:
                result = (
                    self.db.table(self.table)
                    .insert({"variant_id": variant.id, "channel": self.channel, **payload})
                    .execute()
                )

        except Exception as e:
            logger.error("pricing_upsert_failed", variant_id=variant.id, error=str(e))
            raise classify_storage_error("upsert", e)

        logger.info(
            "pricing_assigned",
            variant_id=variant.id,
            channel=self.channel,
            price_including_vat=payload["price_including_vat"]
        )

        return PricingRecord(**result.data[0])


# Singleton instance
_pricing_service: Optional[PricingService] = None


def get_pricing_service() -> PricingService:
    """Get or create pricing service instance."""
    global _pricing_service
    if _pricing_service is None:
        _pricing_service = PricingService()
    return _pricing_service
