"""
Catalog file and text parsers module.
"""

from parsers.catalog_file_parser import (
    parse_catalog_file,
    CatalogSheet,
)
from parsers.dimension_parser import (
    extract_dimensions,
    has_dimension_token,
    Dimensions,
)
from parsers.sku_parser import (
    classify_sku,
    resolve_color,
    derive_product_name,
    resolve_parent_info,
    SkuParseResult,
)

__all__ = [
    "parse_catalog_file",
    "CatalogSheet",
    "extract_dimensions",
    "has_dimension_token",
    "Dimensions",
    "classify_sku",
    "resolve_color",
    "derive_product_name",
    "resolve_parent_info",
    "SkuParseResult",
]
