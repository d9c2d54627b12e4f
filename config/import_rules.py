"""
Static rule tables for the catalog import pipeline.

Kept as data so the vocabularies and allow-lists can be reviewed and tested
independently of the services that consume them.
"""

# =============================================================================
# COLUMN VOCABULARY
# =============================================================================
# Ordered (field, patterns) pairs. Patterns are in normalized form
# (lowercase words separated by single spaces). Order is the tie-break:
# the first field whose pattern matches a header wins, so more specific
# fields ("parent sku", "cost price", "barcode type") sit above the generic
# ones they would otherwise be swallowed by ("sku", "price", "barcode").

FIELD_VOCABULARY: list[tuple[str, list[str]]] = [
    ("parent_sku", ["parent sku", "parent code", "group sku"]),
    ("parent_name", ["parent name", "parent product", "parent title"]),
    ("is_parent", ["is parent", "parent flag"]),
    ("barcode_type", ["barcode type", "barcode format", "symbology"]),
    ("barcode", ["barcode", "ean", "upc", "gtin"]),
    ("cost_price", ["cost price", "cost", "wholesale price", "buy price"]),
    ("price", ["retail price", "price", "selling price", "rrp"]),
    ("stock_level", ["stock level", "stock", "quantity", "qty", "inventory"]),
    ("image_urls", ["image urls", "image url", "images", "image", "photo", "picture"]),
    ("description", ["description", "desc"]),
    ("color", ["colour", "color"]),
    ("size", ["size"]),
    ("brand", ["brand", "manufacturer"]),
    ("status", ["status", "active", "enabled"]),
    ("package_length", ["package length", "length"]),
    ("package_width", ["package width", "width"]),
    ("package_height", ["package height", "height"]),
    ("package_weight", ["package weight", "weight"]),
    ("sku", ["sku", "variant sku", "item sku", "product code", "item code", "code"]),
    ("product_name", ["product name", "title", "name", "product"]),
]

# Legacy field names accepted in caller-supplied mappings
FIELD_ALIASES: dict[str, str] = {
    "variant_sku": "sku",
    "title": "product_name",
    "retail_price": "price",
    "variant_color": "color",
    "variant_size": "size",
}

# Numbered free-text slots ("Item Feature 3", "Finer Detail 2")
MAX_TEXT_SLOTS = 5
FEATURE_HEADER_PATTERN = r"(?:item\s+)?feature[\s_-]*(\d+)"
DETAIL_HEADER_PATTERN = r"(?:finer\s+)?detail[\s_-]*(\d+)"

# Fuzzy header matching: pattern word within this edit distance of a header word
FUZZY_MAX_EDIT_DISTANCE = 1
# ...and at least this share of pattern words must match
FUZZY_MIN_WORD_RATIO = 0.7

# Mapping validation
REQUIRED_IDENTITY_FIELDS = ("sku", "product_name")
MIN_MAPPING_COVERAGE_PCT = 30.0


# =============================================================================
# ROW VALIDATION
# =============================================================================

SKU_PATTERN = r"^[A-Za-z0-9\-_]+$"
BARCODE_MIN_DIGITS = 8
BARCODE_MAX_DIGITS = 13


# =============================================================================
# COLOUR DICTIONARY
# =============================================================================
# Canonical casing is returned on a match. Lookup is longest-phrase-first so
# compound colours ("Dark Grey") win over their components ("Grey").

COLOR_DICTIONARY: list[str] = [
    "Black", "Jet Black",
    "White", "Off White", "Pure White", "Snow White",
    "Grey", "Gray", "Dark Grey", "Light Grey", "Silver Grey", "Charcoal", "Anthracite", "Slate",
    "Silver", "Gold", "Bronze", "Copper",
    "Cream", "Ivory", "Beige", "Natural", "Taupe", "Linen", "Sand", "Stone", "Mocha",
    "Brown", "Chocolate", "Walnut",
    "Blue", "Navy", "Navy Blue", "Dark Blue", "Light Blue", "Sky Blue", "Duck Egg", "Duck Egg Blue", "Teal", "Aqua",
    "Green", "Sage", "Sage Green", "Olive", "Mint", "Forest Green",
    "Red", "Burgundy", "Wine",
    "Pink", "Blush", "Blush Pink",
    "Purple", "Lilac", "Plum",
    "Yellow", "Mustard", "Ochre",
    "Orange", "Terracotta",
]

DEFAULT_COLOR = "Default"

# Words that sit before a "60cm" token but are never colours
NON_COLOR_WORDS = {"x", "by", "and", "drop", "width", "wide"}


# =============================================================================
# GROUPING
# =============================================================================

SIZE_WORDS: list[str] = [
    "xs", "sm", "small", "md", "medium", "lg", "large", "xl", "xxl", "xxxl",
    "mini", "extra", "super", "king", "queen", "single", "double",
    "pack", "set", "piece", "unit", "pcs",
]

MEASUREMENT_PATTERN = r"\d+(?:\.\d+)?\s*(?:ml|l|kg|g|oz|lb|cl|dl|cm|mm|inch|ft|m)\b"

# rapidfuzz ratios (0-100) used by the default name-similarity grouper
NAME_WORD_SIMILARITY_MIN = 0.7
NAME_STRING_SIMILARITY_MIN = 80.0
NAME_WORD_SIMILARITY_WITH_STRING_MIN = 0.5

GENERIC_GROUP_KEY = "generic:default"
SYNTHESIZED_PARENT_PREFIX = "GRP-"


# =============================================================================
# ATTRIBUTES
# =============================================================================
# Keys in VARIANT_ATTRIBUTE_KEYS are always variant-scoped, keys in
# PRODUCT_ATTRIBUTE_KEYS go to the parent product, anything else lands on the
# variant. The two allow-lists must not overlap.

PRODUCT_ATTRIBUTE_KEYS: frozenset[str] = frozenset({
    "brand",
    "manufacturer",
    "collection",
    "material",
    "fabric_type",
    "operation_type",
    "mount_type",
    "child_safety",
    "room_darkening",
    "fire_rating",
    "warranty_years",
    "installation_required",
    "custom_size_available",
    "country_of_origin",
    "care_instructions",
})

VARIANT_ATTRIBUTE_KEYS: frozenset[str] = frozenset({
    "fabric_composition",
    "fabric_pattern",
    "width_mm",
    "drop_mm",
    "chain_length",
    "slat_width",
    "opacity_level",
    "colour_code",
    "size",
})

ATTRIBUTE_CATEGORIES: dict[str, frozenset[str]] = {
    "physical": frozenset({
        "width_mm", "drop_mm", "chain_length", "slat_width",
        "fabric_pattern", "fabric_composition",
    }),
    "functional": frozenset({
        "operation_type", "mount_type", "room_darkening", "opacity_level",
    }),
    "compliance": frozenset({"fire_rating", "child_safety"}),
    "branding": frozenset({"brand", "manufacturer", "collection"}),
}
DEFAULT_ATTRIBUTE_CATEGORY = "general"

ATTRIBUTE_KEY_MAX_LENGTH = 50

# Mapped fields with no column on products/variants; stored as attributes
# under the field name
FIELD_ATTRIBUTES: tuple[str, ...] = (
    "brand",
    "size",
    "cost_price",
    "image_urls",
    "package_length",
    "package_width",
    "package_height",
    "package_weight",
)

BOOLEAN_WORDS = {"true", "false", "yes", "no"}


# =============================================================================
# BARCODES
# =============================================================================

BARCODE_SYMBOLOGY_BY_LENGTH: dict[int, str] = {
    8: "EAN8",
    12: "UPC-A",
    13: "EAN13",
    6: "UPC-E",
}
FALLBACK_BARCODE_SYMBOLOGY = "CODE128"


# =============================================================================
# PRICING
# =============================================================================

PRICING_CHANNEL = "website"
