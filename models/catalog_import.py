"""
Catalog import schemas.

Persisted catalog records (products, variants, attributes, barcodes, pricing)
and the value objects that flow through the import pipeline.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models.base import BaseSchema, TimestampMixin


# ===================
# ENUMS
# ===================

class SkuPattern(str, Enum):
    """SKU grammars, in match priority order."""
    THREE_PART_NUMERIC = "three_part_numeric"   # 001-002-003
    TWO_PART_NUMERIC = "two_part_numeric"       # 010-108
    ALPHANUMERIC_COLOR = "alphanumeric_color"   # RB45120-White (and the fallback)


class AttributeDataType(str, Enum):
    """Inferred type of an attribute value."""
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    URL = "url"
    TEXT = "text"


class AttributeScope(str, Enum):
    """Owner of an attribute."""
    PRODUCT = "product"
    VARIANT = "variant"


class RowState(str, Enum):
    """Per-row import state machine."""
    PENDING = "pending"
    EXTRACTING = "extracting"
    RESOLVING_PARENT = "resolving_parent"
    UPSERTING = "upserting"
    ASSIGNING_ATTRIBUTES = "assigning_attributes"
    ASSIGNING_BARCODE = "assigning_barcode"
    ASSIGNING_PRICING = "assigning_pricing"
    DONE = "done"
    SKIPPED = "skipped"
    ERROR = "error"


class OutcomeStatus(str, Enum):
    """Terminal outcome reported for a row."""
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


class ImportStatus(str, Enum):
    """Terminal status of a whole import run."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ImportMode(str, Enum):
    """Which existing/new records an import may write."""
    CREATE_ONLY = "create_only"             # skip SKUs that already exist
    UPDATE_EXISTING = "update_existing"     # skip SKUs that do not exist yet
    CREATE_OR_UPDATE = "create_or_update"   # upsert everything


# ===================
# PIPELINE VALUE OBJECTS
# ===================

class RawRow(BaseModel):
    """One worksheet row as read from the file (1-based row number)."""
    model_config = ConfigDict(frozen=True)

    row_number: int = Field(..., ge=1, description="Spreadsheet row number")
    cells: tuple[Optional[str], ...] = Field(default_factory=tuple)


class ParentInfo(BaseModel):
    """
    Parent resolution for one row.

    Always fully populated: color defaults to "Default" and product_name
    falls back to "Product {parent_sku}".
    """
    model_config = ConfigDict(frozen=True)

    parent_sku: Optional[str] = Field(None, description="Natural key of the parent product")
    product_name: str = Field(..., min_length=1)
    color: str = Field("Default")
    width: Optional[int] = Field(None, ge=0, description="Width in cm")
    drop: Optional[int] = Field(None, ge=0, description="Drop in cm")
    sku_pattern: Optional[SkuPattern] = None


class VariantPricing(BaseModel):
    """
    VAT breakdown derived from a VAT-inclusive retail price.

    price_excluding_vat * (1 + vat_rate) == price_including_vat
    within 2-decimal rounding.
    """
    model_config = ConfigDict(frozen=True)

    price_including_vat: Decimal
    price_excluding_vat: Decimal
    vat_amount: Decimal
    vat_rate: Decimal


# ===================
# PERSISTED RECORDS
# ===================

class ProductRecord(BaseSchema, TimestampMixin):
    """Parent product row (table: products)."""

    id: str = Field(..., description="Product UUID")
    parent_sku: Optional[str] = Field(None, description="Natural key, set once")
    name: str
    slug: str
    status: str = "active"
    description: Optional[str] = None
    features: list[str] = Field(default_factory=list, description="Free-text feature slots (max 5)")
    details: list[str] = Field(default_factory=list, description="Free-text detail slots (max 5)")
    is_parent: bool = True


class VariantRecord(BaseSchema, TimestampMixin):
    """Purchasable variant row (table: product_variants)."""

    id: str = Field(..., description="Variant UUID")
    product_id: str
    sku: str
    color: Optional[str] = None
    width: Optional[int] = None
    drop: Optional[int] = None
    price: float = 0
    stock_level: int = 0
    status: str = "active"


class AttributeRecord(BaseSchema, TimestampMixin):
    """Product- or variant-scoped attribute (unique on owner_id + key)."""

    id: str
    owner_id: str
    key: str
    value: str
    data_type: AttributeDataType = AttributeDataType.TEXT
    category: str = "general"


class BarcodeRecord(BaseSchema, TimestampMixin):
    """Barcode attached to a variant (table: barcodes)."""

    id: str
    variant_id: str
    value: str
    symbology: str
    auto_detected: bool = True


class PricingRecord(BaseSchema, TimestampMixin):
    """Channel pricing row for a variant (table: variant_pricing)."""

    id: str
    variant_id: str
    channel: str
    price_including_vat: float
    price_excluding_vat: float
    vat_amount: float
    vat_rate: float


# ===================
# API SCHEMAS
# ===================

class MappingValidation(BaseModel):
    """Result of checking a column mapping before import."""

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    coverage_percentage: float = 0.0
    mapped_fields_count: int = 0
    total_columns: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.errors


class ImportAnalysisResponse(BaseModel):
    """Headers, sample rows and suggested mapping for an uploaded file."""

    filename: Optional[str] = None
    headers: list[str]
    total_rows: int
    sample_rows: list[list[Optional[str]]] = Field(default_factory=list)
    column_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="Column position (as string) -> canonical field"
    )
    from_cache: bool = False
    validation: MappingValidation


class ImportResultResponse(BaseModel):
    """
    Aggregate counts for a finished (or cancelled) import.

    For a dry run the counts are predictions and nothing was written.
    """

    status: ImportStatus
    import_mode: ImportMode = ImportMode.CREATE_OR_UPDATE
    dry_run: bool = False
    created_products: int = 0
    updated_products: int = 0
    created_variants: int = 0
    updated_variants: int = 0
    skipped_rows: int = 0
    processed_rows: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    likely_mapping_problem: bool = False
    duration_seconds: Optional[float] = None
