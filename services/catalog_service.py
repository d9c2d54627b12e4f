"""
Catalog service: idempotent create-or-update of products and variants.

Products are keyed by parent_sku (or by name for true parents with no
parent_sku). Variants are keyed by sku. Running the same input twice
creates on the first pass and updates on the second, never duplicates.

The import mode narrows what may be written:

    create_or_update   insert new records, update existing ones
    create_only        insert new records; existing variants are refused,
                       existing products are reused untouched
    update_existing    update existing records; new ones are refused

See STANDARDS_LOGGING.md for logging patterns.
See STANDARDS_ERRORS.md for error handling patterns.
"""

import time
import uuid
from typing import Any, Callable, Optional

import structlog
from slugify import slugify

from config import get_supabase_client, settings
from config.import_rules import BOOLEAN_WORDS
from exceptions import (
    AppError,
    ImportModeRefusedError,
    PersistenceConflictError,
    classify_storage_error,
    is_unique_violation,
)
from models.catalog_import import ImportMode, ParentInfo, ProductRecord, VariantRecord

logger = structlog.get_logger(__name__)

MAX_SLUG_ATTEMPTS = 1000
INACTIVE_STATUS_WORDS = {"false", "no", "0", "inactive", "disabled", "draft", "archived"}


def normalize_status(value: Optional[str]) -> str:
    """Map a status cell ("Yes", "inactive", "0", ...) to active/inactive."""
    if not value:
        return "active"
    lowered = value.strip().lower()
    if lowered in INACTIVE_STATUS_WORDS:
        return "inactive"
    if lowered in BOOLEAN_WORDS or lowered in {"1", "active", "enabled"}:
        return "active"
    return lowered


def parse_stock_level(value: Optional[str]) -> int:
    """Stock cell to a non-negative int; blanks and junk count as 0."""
    if not value:
        return 0
    try:
        return max(int(float(value.replace(",", ""))), 0)
    except ValueError:
        return 0


def product_natural_key(parent_info: ParentInfo) -> tuple[str, str]:
    """("parent_sku", sku) for keyed parents, ("name", name) otherwise."""
    if parent_info.parent_sku:
        return "parent_sku", parent_info.parent_sku
    return "name", parent_info.product_name


def check_import_mode(
    mode: ImportMode,
    exists: bool,
    entity: str,
    key: str,
    value: Optional[str]
) -> None:
    """
    Refuse a write the import mode does not allow.

    Raises:
        ImportModeRefusedError: create_only on an existing record, or
            update_existing on a missing one
    """
    if exists and mode == ImportMode.CREATE_ONLY:
        raise ImportModeRefusedError(entity, key, value, mode.value, exists=True)
    if not exists and mode == ImportMode.UPDATE_EXISTING:
        raise ImportModeRefusedError(entity, key, value, mode.value, exists=False)


class CatalogService:
    """
    Product and variant persistence for imports.

    Args:
        db: Supabase client; the cached client by default
    """

    def __init__(self, db=None):
        self.db = db or get_supabase_client()
        self.products_table = "products"
        self.variants_table = "product_variants"

    # ===================
    # READ OPERATIONS
    # ===================

    def find_product(self, parent_info: ParentInfo) -> Optional[ProductRecord]:
        """
        Look up a product by its natural key.

        parent_sku when present, otherwise the name of a parent with no
        parent_sku.
        """
        try:
            query = self.db.table(self.products_table).select("*")
            if parent_info.parent_sku:
                query = query.eq("parent_sku", parent_info.parent_sku)
            else:
                query = query.is_("parent_sku", "null").eq("name", parent_info.product_name)

            result = query.limit(1).execute()

            if not result.data:
                return None
            return ProductRecord(**result.data[0])

        except Exception as e:
            logger.error(
                "find_product_failed",
                parent_sku=parent_info.parent_sku,
                error=str(e)
            )
            raise classify_storage_error("select", e)

    def find_variant(self, sku: str) -> Optional[VariantRecord]:
        """Look up a variant by SKU."""
        try:
            result = (
                self.db.table(self.variants_table)
                .select("*")
                .eq("sku", sku)
                .limit(1)
                .execute()
            )

            if not result.data:
                return None
            return VariantRecord(**result.data[0])

        except Exception as e:
            logger.error("find_variant_failed", sku=sku, error=str(e))
            raise classify_storage_error("select", e)

    def slug_exists(self, slug: str) -> bool:
        """Check whether a product already uses this slug."""
        try:
            result = (
                self.db.table(self.products_table)
                .select("id")
                .eq("slug", slug)
                .limit(1)
                .execute()
            )
            return bool(result.data)

        except Exception as e:
            logger.error("slug_lookup_failed", slug=slug, error=str(e))
            raise classify_storage_error("select", e)

    def generate_unique_slug(self, name: str) -> str:
        """
        Slug for a new product.

        "Roller Blind" → "roller-blind", then "roller-blind-2", "-3", ...
        After 1000 collisions a random suffix is used. An empty name gives
        "product-<timestamp>".
        """
        base = slugify(name or "")
        if not base:
            base = f"product-{int(time.time())}"

        slug = base
        attempt = 1
        while self.slug_exists(slug):
            attempt += 1
            if attempt > MAX_SLUG_ATTEMPTS:
                slug = f"{base}-{uuid.uuid4().hex[:8]}"
                break
            slug = f"{base}-{attempt}"

        return slug

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create_or_update_product(
        self,
        parent_info: ParentInfo,
        description: Optional[str] = None,
        features: Optional[list[str]] = None,
        details: Optional[list[str]] = None,
        status: Optional[str] = None,
        mode: ImportMode = ImportMode.CREATE_OR_UPDATE
    ) -> tuple[ProductRecord, Optional[bool]]:
        """
        Upsert the parent product for a row or group.

        On update, parent_sku and slug never change. Description, features
        and details are only overwritten when supplied.

        Args:
            parent_info: Resolved parent (key + name)
            description: Product description
            features: Feature slot texts
            details: Detail slot texts
            status: Status cell value
            mode: Import mode

        Returns:
            Tuple of (product, was_created). was_created is None when
            create_only found the product and left it untouched.

        Raises:
            ImportModeRefusedError: update_existing and the product does not exist
            PersistenceConflictError: Insert lost a race and the winner could not be re-read
            InfrastructureFaultError: Storage unreachable
            DatabaseError: Any other storage failure
        """
        key, value = product_natural_key(parent_info)

        changes: dict[str, Any] = {"name": parent_info.product_name}
        if status:
            changes["status"] = normalize_status(status)
        if description:
            changes["description"] = description
        if features:
            changes["features"] = features
        if details:
            changes["details"] = details

        existing = self.find_product(parent_info)
        if existing and mode == ImportMode.CREATE_ONLY:
            logger.info("product_kept", product_id=existing.id, **{key: value})
            return existing, None

        check_import_mode(mode, existing is not None, "product", key, value)

        if existing:
            return self._update_product(existing, changes), False

        def on_conflict(winner: ProductRecord) -> ProductRecord:
            if mode == ImportMode.CREATE_ONLY:
                return winner
            return self._update_product(winner, changes)

        payload = {
            "parent_sku": parent_info.parent_sku,
            "slug": self.generate_unique_slug(parent_info.product_name),
            "status": "active",
            "description": None,
            "features": [],
            "details": [],
            "is_parent": True,
            **changes,
        }

        created = self._insert_or_resolve(
            table=self.products_table,
            payload=payload,
            lookup=lambda: self.find_product(parent_info),
            update=on_conflict,
            entity="product",
            key=key,
            value=value,
        )
        if isinstance(created, ProductRecord):
            return created, None if mode == ImportMode.CREATE_ONLY else False

        product = ProductRecord(**created)
        logger.info(
            "product_created",
            product_id=product.id,
            parent_sku=product.parent_sku,
            slug=product.slug
        )
        return product, True

    def create_or_update_variant(
        self,
        product: ProductRecord,
        fields: dict[str, str],
        parent_info: ParentInfo,
        mode: ImportMode = ImportMode.CREATE_OR_UPDATE
    ) -> tuple[VariantRecord, bool]:
        """
        Upsert a variant by SKU.

        Width falls back to the configured default when missing or 0, drop
        when missing. Price is always 0 here; channel pricing is set by
        PricingService. An explicit color column beats the resolved color.

        Args:
            product: Owning product
            fields: Extracted row fields (must contain sku)
            parent_info: Resolved parent info (color, width, drop)
            mode: Import mode

        Returns:
            Tuple of (variant, was_created)

        Raises:
            ImportModeRefusedError: The mode does not allow writing this SKU
        """
        sku = fields["sku"]

        changes = {
            "product_id": product.id,
            "color": fields.get("color") or parent_info.color,
            "width": parent_info.width or settings.default_variant_width,
            "drop": parent_info.drop if parent_info.drop is not None else settings.default_variant_drop,
            "price": 0,
            "stock_level": parse_stock_level(fields.get("stock_level")),
            "status": normalize_status(fields.get("status")),
        }

        existing = self.find_variant(sku)
        check_import_mode(mode, existing is not None, "variant", "sku", sku)
        if existing:
            return self._update_variant(existing, changes), False

        def on_conflict(winner: VariantRecord) -> VariantRecord:
            check_import_mode(mode, True, "variant", "sku", sku)
            return self._update_variant(winner, changes)

        created = self._insert_or_resolve(
            table=self.variants_table,
            payload={"sku": sku, **changes},
            lookup=lambda: self.find_variant(sku),
            update=on_conflict,
            entity="variant",
            key="sku",
            value=sku,
        )
        if isinstance(created, VariantRecord):
            return created, False

        variant = VariantRecord(**created)
        logger.info(
            "variant_created",
            variant_id=variant.id,
            sku=variant.sku,
            product_id=product.id
        )
        return variant, True

    # ===================
    # HELPERS
    # ===================

    def _insert_or_resolve(
        self,
        table: str,
        payload: dict,
        lookup: Callable[[], Any],
        update: Callable[[Any], Any],
        entity: str,
        key: str,
        value: Optional[str]
    ) -> Any:
        """
        Insert a row; on a unique violation re-read the winner and update it.

        Returns:
            The inserted row dict, or the updated record when another writer
            got there first
        """
        try:
            result = self.db.table(table).insert(payload).execute()
            return result.data[0]

        except Exception as e:
            if isinstance(e, AppError) or not is_unique_violation(e):
                logger.error(f"{entity}_insert_failed", **{key: value}, error=str(e))
                raise classify_storage_error("insert", e)

            logger.warning(f"{entity}_insert_conflict", **{key: value})

        winner = lookup()
        if winner is None:
            raise PersistenceConflictError(entity, key, value)
        return update(winner)

    def _update_product(self, product: ProductRecord, changes: dict) -> ProductRecord:
        try:
            result = (
                self.db.table(self.products_table)
                .update(changes)
                .eq("id", product.id)
                .execute()
            )
        except Exception as e:
            logger.error("product_update_failed", product_id=product.id, error=str(e))
            raise classify_storage_error("update", e)

        logger.info("product_updated", product_id=product.id, parent_sku=product.parent_sku)

        if result.data:
            return ProductRecord(**result.data[0])
        return product.model_copy(update=changes)

    def _update_variant(self, variant: VariantRecord, changes: dict) -> VariantRecord:
        try:
            result = (
                self.db.table(self.variants_table)
                .update(changes)
                .eq("id", variant.id)
                .execute()
            )
        except Exception as e:
            logger.error("variant_update_failed", variant_id=variant.id, error=str(e))
            raise classify_storage_error("update", e)

        logger.info("variant_updated", variant_id=variant.id, sku=variant.sku)

        if result.data:
            return VariantRecord(**result.data[0])
        return variant.model_copy(update=changes)


# Singleton instance
_catalog_service: Optional[CatalogService] = None


def get_catalog_service() -> CatalogService:
    """Get or create catalog service instance."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
