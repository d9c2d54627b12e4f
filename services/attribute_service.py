"""
Attribute service for catalog imports.

Unmapped columns and ad-hoc key/value pairs become attributes. Keys on the
product allow-list go to the parent product; everything else goes to the
variant.
"""

import re
from datetime import datetime
from typing import Optional, Union

import structlog

from config import get_supabase_client
from config.import_rules import (
    ATTRIBUTE_CATEGORIES,
    ATTRIBUTE_KEY_MAX_LENGTH,
    BOOLEAN_WORDS,
    DEFAULT_ATTRIBUTE_CATEGORY,
    PRODUCT_ATTRIBUTE_KEYS,
    VARIANT_ATTRIBUTE_KEYS,
)
from exceptions import classify_storage_error
from models.catalog_import import (
    AttributeDataType,
    AttributeScope,
    ProductRecord,
    VariantRecord,
)
from services.row_validator import is_valid_image_url

logger = structlog.get_logger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_INTEGER = re.compile(r"^-?\d+$")
_DECIMAL = re.compile(r"^-?\d*\.\d+$")
DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d")


# ===================
# PURE HELPERS
# ===================

def sanitize_attribute_key(header: Optional[str], index: int) -> str:
    """
    Attribute key from a column header.

    - "Fabric Composition (%)" → "fabric_composition"
    - "" → "column_7"

    Lowercase, non-alphanumerics to "_", trimmed of "_", max 50 chars.
    """
    key = _NON_ALNUM.sub("_", (header or "").lower()).strip("_")
    key = key[:ATTRIBUTE_KEY_MAX_LENGTH].strip("_")
    return key or f"column_{index}"


def detect_column_attributes(
    headers: list[str],
    cells: Union[list[Optional[str]], tuple[Optional[str], ...]],
    index: dict[str, str]
) -> dict[str, str]:
    """
    Turn every unmapped, non-empty column into an attribute.

    Args:
        headers: Header row
        cells: Row cells
        index: {header: field} mapping index

    Returns:
        {attribute key: value}
    """
    attributes: dict[str, str] = {}
    for position, value in enumerate(cells):
        header = headers[position] if position < len(headers) else ""
        if header and header in index:
            continue
        if value is None or not str(value).strip():
            continue

        key = sanitize_attribute_key(header, position)
        attributes.setdefault(key, str(value).strip())

    return attributes


def merge_attributes(
    detected: dict[str, str],
    ad_hoc: Optional[dict[str, str]]
) -> dict[str, str]:
    """Combine detected and ad-hoc attributes; ad-hoc wins on collision."""
    merged = dict(detected)
    for key, value in (ad_hoc or {}).items():
        if not key or value is None or str(value).strip() == "":
            continue
        merged[sanitize_attribute_key(key, 0)] = str(value).strip()
    return merged


def attribute_scope(key: str) -> AttributeScope:
    """
    Owner scope for an attribute key.

    Variant allow-list first, then the product allow-list; unknown keys
    default to the variant.
    """
    if key in VARIANT_ATTRIBUTE_KEYS:
        return AttributeScope.VARIANT
    if key in PRODUCT_ATTRIBUTE_KEYS:
        return AttributeScope.PRODUCT
    return AttributeScope.VARIANT


def split_attributes(attributes: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
    """
    Split attributes into (product, variant) buckets.

    Variant is the default bucket for unknown keys.
    """
    product_attrs: dict[str, str] = {}
    variant_attrs: dict[str, str] = {}
    for key, value in attributes.items():
        if attribute_scope(key) == AttributeScope.PRODUCT:
            product_attrs[key] = value
        else:
            variant_attrs[key] = value
    return product_attrs, variant_attrs


def infer_data_type(value: str) -> AttributeDataType:
    """
    Infer an attribute's type from its raw value.

    Order: boolean word, integer, decimal, date, http(s) URL, text.
    """
    text = value.strip()
    lowered = text.lower()

    if lowered in BOOLEAN_WORDS:
        return AttributeDataType.BOOLEAN
    if _INTEGER.match(text):
        return AttributeDataType.INTEGER
    if _DECIMAL.match(text):
        return AttributeDataType.DECIMAL

    for fmt in DATE_FORMATS:
        try:
            datetime.strptime(text, fmt)
            return AttributeDataType.DATE
        except ValueError:
            continue

    if lowered.startswith(("http://", "https://")) and is_valid_image_url(text):
        return AttributeDataType.URL

    return AttributeDataType.TEXT


def attribute_category(key: str) -> str:
    """Category for a key (physical, functional, ...) or "general"."""
    for category, keys in ATTRIBUTE_CATEGORIES.items():
        if key in keys:
            return category
    return DEFAULT_ATTRIBUTE_CATEGORY


# ===================
# SERVICE
# ===================

class AttributeService:
    """
    Upserts product and variant attributes.

    Uniqueness is (owner_id, key): re-assigning overwrites value, data type
    and category.

    Args:
        db: Supabase client; the cached client by default
    """

    def __init__(self, db=None):
        self.db = db or get_supabase_client()
        self.tables = {
            AttributeScope.PRODUCT: "product_attributes",
            AttributeScope.VARIANT: "variant_attributes",
        }

    def assign(
        self,
        product: ProductRecord,
        variant: Optional[VariantRecord],
        attributes: dict[str, str]
    ) -> dict[str, int]:
        """
        Split and upsert attributes for one row.

        Variant-scoped keys are skipped when the row produced no variant.

        Args:
            product: Parent product
            variant: Row's variant (None for product-only rows)
            attributes: Merged attributes

        Returns:
            Count of attributes written per scope
        """
        product_attrs, variant_attrs = split_attributes(attributes)

        for key, value in product_attrs.items():
            self.upsert_attribute(AttributeScope.PRODUCT, product.id, key, value)

        if variant is not None:
            for key, value in variant_attrs.items():
                self.upsert_attribute(AttributeScope.VARIANT, variant.id, key, value)
        elif variant_attrs:
            logger.debug(
                "variant_attributes_skipped",
                product_id=product.id,
                keys=list(variant_attrs)
            )

        counts = {
            "product": len(product_attrs),
            "variant": len(variant_attrs) if variant is not None else 0,
        }
        logger.debug("attributes_assigned", product_id=product.id, **counts)
        return counts

    def upsert_attribute(
        self,
        scope: AttributeScope,
        owner_id: str,
        key: str,
        value: str
    ) -> dict:
        """
        Create or overwrite one attribute.

        Args:
            scope: Product or variant
            owner_id: Product or variant UUID
            key: Sanitized attribute key
            value: Raw value

        Returns:
            Stored attribute row
        """
        table = self.tables[scope]
        payload = {
            "value": value,
            "data_type": infer_data_type(value).value,
            "category": attribute_category(key),
        }

        try:
            existing = (
                self.db.table(table)
                .select("id")
                .eq("owner_id", owner_id)
                .eq("key", key)
                .limit(1)
                .execute()
            )

            if existing.data:
                result = (
                    self.db.table(table)
                    .update(payload)
                    .eq("id", existing.data[0]["id"])
                    .execute()
                )
            else:
                result = (
                    self.db.table(table)
                    .insert({"owner_id": owner_id, "key": key, **payload})
                    .execute()
                )

            return result.data[0] if result.data else payload

        except Exception as e:
            logger.error(
                "attribute_upsert_failed",
                scope=scope.value,
                owner_id=owner_id,
                key=key,
                error=str(e)
            )
            raise classify_storage_error("upsert", e)


# Singleton instance
_attribute_service: Optional[AttributeService] = None


def get_attribute_service() -> AttributeService:
    """Get or create attribute service instance."""
    global _attribute_service
    if _attribute_service is None:
        _attribute_service = AttributeService()
    return _attribute_service
