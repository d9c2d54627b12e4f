"""
Parent/variant inference from SKU and title text.

Supplier SKUs follow one of three grammars, tried in priority order:

    THREE_PART_NUMERIC   001-002-003      → parent "001-002"
    TWO_PART_NUMERIC     010-108          → parent "010"
    ALPHANUMERIC_COLOR   45120RWST-White  → parent "45120RWST", color "White"

The third grammar is also the fallback: a SKU that matches nothing is never
an error, it just falls through with its trailing letters suffix removed.

Titles supply everything else:
    "Blackout Roller Blind Dark Grey 60cm x 160cm"
        → color "Dark Grey", width 60, drop 160, name "Blackout Roller Blind"
"""

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from config.import_rules import (
    COLOR_DICTIONARY,
    DEFAULT_COLOR,
    NON_COLOR_WORDS,
)
from models.catalog_import import ParentInfo, SkuPattern
from parsers.dimension_parser import extract_dimensions
from utils.text_utils import collapse_whitespace

logger = structlog.get_logger(__name__)


# ===================
# SKU GRAMMARS
# ===================

SKU_GRAMMARS: list[tuple[SkuPattern, re.Pattern]] = [
    (SkuPattern.THREE_PART_NUMERIC, re.compile(r"^(\d{3}-\d{3})-(\d{3})$")),
    (SkuPattern.TWO_PART_NUMERIC, re.compile(r"^(\d{3})-(\d{3})$")),
]

_TRAILING_LETTERS_SUFFIX = re.compile(r"-[A-Za-z]+$")
_HAS_LETTER = re.compile(r"[A-Za-z]")

# Longest phrase first so "Dark Grey" beats "Grey"
_COLOR_PATTERNS: list[tuple[str, re.Pattern]] = [
    (color, re.compile(r"\b" + re.escape(color) + r"\b", re.IGNORECASE))
    for color in sorted(COLOR_DICTIONARY, key=len, reverse=True)
]

_WORD_BEFORE_CM = re.compile(r"\b([A-Za-z]+)\s+\d+\s*cm\b", re.IGNORECASE)
_DIMENSION_TOKEN = re.compile(
    r"\d+\s*cm(?:\s*x\s*\d+\s*cm)?(?:\s+drop\b)?",
    re.IGNORECASE
)


@dataclass(frozen=True)
class SkuParseResult:
    """Which grammar matched and what it yielded."""
    pattern: SkuPattern
    parent_sku: str
    variant_suffix: Optional[str] = None
    color: Optional[str] = None     # Only set when the SKU itself carries a color


def classify_sku(sku: str) -> SkuParseResult:
    """
    Classify a SKU against the known grammars.

    Args:
        sku: Variant SKU as supplied

    Returns:
        SkuParseResult for the first grammar that matches
    """
    sku = sku.strip()

    for pattern, regex in SKU_GRAMMARS:
        match = regex.match(sku)
        if match:
            return SkuParseResult(
                pattern=pattern,
                parent_sku=match.group(1),
                variant_suffix=match.group(2),
            )

    parent_sku = _TRAILING_LETTERS_SUFFIX.sub("", sku)

    color = None
    if "-" in sku:
        last_segment = sku.rsplit("-", 1)[1]
        if _HAS_LETTER.search(last_segment):
            color = last_segment

    return SkuParseResult(
        pattern=SkuPattern.ALPHANUMERIC_COLOR,
        parent_sku=parent_sku or sku,
        variant_suffix=color,
        color=color,
    )


# ===================
# TITLE HEURISTICS
# ===================

def resolve_color(title: Optional[str]) -> str:
    """
    Find the color named in a title.

    Order:
        1. Known color phrase (longest first, word boundary, any case),
           returned in dictionary casing
        2. Word right before the first "Ncm" token ("Mauve 60cm")
        3. "Default"
    """
    if not title:
        return DEFAULT_COLOR

    for color, pattern in _COLOR_PATTERNS:
        if pattern.search(title):
            return color

    for match in _WORD_BEFORE_CM.finditer(title):
        word = match.group(1)
        if word.lower() not in NON_COLOR_WORDS:
            return word

    return DEFAULT_COLOR


def derive_product_name(
    title: Optional[str],
    color: Optional[str],
    parent_sku: Optional[str]
) -> str:
    """
    Strip dimensions and color from a title to get the parent product name.

    Args:
        title: Variant title
        color: Color to remove (ignored when "Default")
        parent_sku: Used for the fallback name

    Returns:
        Cleaned name, or "Product {parent_sku}" if nothing is left
    """
    name = title or ""
    name = _DIMENSION_TOKEN.sub(" ", name)

    if color and color != DEFAULT_COLOR:
        name = re.sub(r"\b" + re.escape(color) + r"\b", " ", name, flags=re.IGNORECASE)

    name = collapse_whitespace(name)
    # Separators left dangling once the tokens around them are gone
    name = name.strip(" -,/|")

    if not name:
        return f"Product {parent_sku}"
    return name


def resolve_parent_info(sku: str, title: Optional[str]) -> ParentInfo:
    """
    Resolve parent SKU, name, color and size for one row.

    Pure: the same (sku, title) always yields the same ParentInfo.

    Args:
        sku: Variant SKU
        title: Variant title (may be empty)

    Returns:
        Fully populated ParentInfo
    """
    parsed = classify_sku(sku)

    color = parsed.color or resolve_color(title)
    dimensions = extract_dimensions(title)
    product_name = derive_product_name(title, color, parsed.parent_sku)

    logger.debug(
        "parent_info_resolved",
        sku=sku,
        pattern=parsed.pattern.value,
        parent_sku=parsed.parent_sku,
        color=color
    )

    return ParentInfo(
        parent_sku=parsed.parent_sku,
        product_name=product_name,
        color=color,
        width=dimensions.width,
        drop=dimensions.drop,
        sku_pattern=parsed.pattern,
    )
