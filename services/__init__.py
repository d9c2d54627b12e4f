"""
Business logic services.

Each service handles one stage of the catalog import pipeline.
"""

from services.catalog_service import CatalogService, get_catalog_service
from services.attribute_service import AttributeService, get_attribute_service
from services.barcode_service import BarcodeService, get_barcode_service, detect_symbology
from services.pricing_service import PricingService, get_pricing_service, calculate_vat_breakdown
from services.grouping_service import (
    GroupingService,
    GroupedRow,
    ParentGroup,
    NameSimilarityGrouper,
    RapidFuzzNameGrouper,
)
from services.mapping_cache_service import (
    MappingCache,
    InMemoryMappingCache,
    get_mapping_cache,
)
from services.import_service import (
    ImportService,
    ImportOptions,
    ImportProgress,
    ImportResult,
    RowOutcome,
    SecurityValidator,
    get_import_service,
)

__all__ = [
    "CatalogService",
    "get_catalog_service",
    "AttributeService",
    "get_attribute_service",
    "BarcodeService",
    "get_barcode_service",
    "detect_symbology",
    "PricingService",
    "get_pricing_service",
    "calculate_vat_breakdown",
    "GroupingService",
    "GroupedRow",
    "ParentGroup",
    "NameSimilarityGrouper",
    "RapidFuzzNameGrouper",
    "MappingCache",
    "InMemoryMappingCache",
    "get_mapping_cache",
    "ImportService",
    "ImportOptions",
    "ImportProgress",
    "ImportResult",
    "RowOutcome",
    "SecurityValidator",
    "get_import_service",
]
