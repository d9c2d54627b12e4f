"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.catalog_import import (
    SkuPattern,
    AttributeDataType,
    AttributeScope,
    RowState,
    OutcomeStatus,
    ImportStatus,
    RawRow,
    ParentInfo,
    VariantPricing,
    ProductRecord,
    VariantRecord,
    AttributeRecord,
    BarcodeRecord,
    PricingRecord,
    MappingValidation,
    ImportAnalysisResponse,
    ImportResultResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Enums
    "SkuPattern",
    "AttributeDataType",
    "AttributeScope",
    "RowState",
    "OutcomeStatus",
    "ImportStatus",

    # Pipeline values
    "RawRow",
    "ParentInfo",
    "VariantPricing",

    # Records
    "ProductRecord",
    "VariantRecord",
    "AttributeRecord",
    "BarcodeRecord",
    "PricingRecord",

    # API
    "MappingValidation",
    "ImportAnalysisResponse",
    "ImportResultResponse",
]
