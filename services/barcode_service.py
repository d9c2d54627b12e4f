"""
Barcode service for catalog imports.

Symbology comes from the value's length alone. Existence is checked once per
batch with a single set-membership query.
"""

from typing import Optional

import structlog

from config import get_supabase_client
from config.import_rules import BARCODE_SYMBOLOGY_BY_LENGTH, FALLBACK_BARCODE_SYMBOLOGY
from exceptions import classify_storage_error
from models.catalog_import import BarcodeRecord, VariantRecord

logger = structlog.get_logger(__name__)


def detect_symbology(value: str) -> str:
    """
    Barcode symbology by length.

    8 → EAN8, 12 → UPC-A, 13 → EAN13, 6 → UPC-E, anything else → CODE128.
    """
    return BARCODE_SYMBOLOGY_BY_LENGTH.get(len(value.strip()), FALLBACK_BARCODE_SYMBOLOGY)


class BarcodeService:
    """
    Attaches barcodes to variants.

    Args:
        db: Supabase client; the cached client by default
    """

    def __init__(self, db=None):
        self.db = db or get_supabase_client()
        self.table = "barcodes"

    def existing_barcodes(self, values: list[str]) -> dict[str, str]:
        """
        Look up which barcode values are already attached.

        One query for the whole batch.

        Args:
            values: Barcode values from the batch

        Returns:
            {barcode value: variant_id}
        """
        unique_values = sorted({v.strip() for v in values if v and v.strip()})
        if not unique_values:
            return {}

        try:
            result = (
                self.db.table(self.table)
                .select("value, variant_id")
                .in_("value", unique_values)
                .execute()
            )
        except Exception as e:
            logger.error("barcode_lookup_failed", count=len(unique_values), error=str(e))
            raise classify_storage_error("select", e)

        existing = {row["value"]: row["variant_id"] for row in result.data or []}

        logger.debug(
            "barcodes_checked",
            requested=len(unique_values),
            existing=len(existing)
        )

        return existing

    def assign_barcode(
        self,
        variant: VariantRecord,
        value: Optional[str],
        barcode_type: Optional[str] = None,
        existing: Optional[dict[str, str]] = None
    ) -> Optional[BarcodeRecord]:
        """
        Attach a barcode to a variant.

        Skips blank values and values already attached to this variant.
        A value owned by another variant is left alone and logged.

        Args:
            variant: Target variant
            value: Barcode value from the row
            barcode_type: Explicit symbology column, if mapped
            existing: Batch lookup from existing_barcodes(); updated in place

        Returns:
            The new BarcodeRecord, or None if nothing was written
        """
        if not value or not value.strip():
            return None

        value = value.strip()
        existing = existing if existing is not None else self.existing_barcodes([value])

        owner = existing.get(value)
        if owner == variant.id:
            return None
        if owner is not None:
            logger.warning(
                "barcode_owned_by_other_variant",
                barcode=value,
                variant_id=variant.id,
                owner_variant_id=owner
            )
            return None

        auto_detected = not barcode_type
        payload = {
            "variant_id": variant.id,
            "value": value,
            "symbology": barcode_type.strip().upper() if barcode_type else detect_symbology(value),
            "auto_detected": auto_detected,
        }

        try:
            result = self.db.table(self.table).insert(payload).execute()
        except Exception as e:
            logger.error("barcode_insert_failed", barcode=value, variant_id=variant.id, error=str(e))
            raise classify_storage_error("insert", e)

        existing[value] = variant.id

        logger.info(
            "barcode_assigned",
            barcode=value,
            symbology=payload["symbology"],
            variant_id=variant.id
        )

        return BarcodeRecord(**result.data[0])


# Singleton instance
_barcode_service: Optional[BarcodeService] = None


def get_barcode_service() -> BarcodeService:
    """Get or create barcode service instance."""
    global _barcode_service
    if _barcode_service is None:
        _barcode_service = BarcodeService()
    return _barcode_service
