"""
Text utilities for handling spreadsheet headers and cell values.

Headers arrive in any casing, with accents ("Déscription"), punctuation
("Retail Price (£)") and stray whitespace. Everything is folded to a
single comparable form before matching.
"""

import re
import unicodedata
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HTML_TAGS = re.compile(r"<[^>]*>")


def fold_accents(text: str) -> str:
    """
    Remove accent marks, keeping the base characters.

    - "Décoration" → "Decoration"
    """
    # NFD separates base chars from combining marks (category 'Mn')
    normalized = unicodedata.normalize('NFD', text)
    return ''.join(c for c in normalized if unicodedata.category(c) != 'Mn')


def normalize_header(header: Optional[str]) -> str:
    """
    Normalize a column header for comparison.

    - "  Retail Price (£) " → "retail price"
    - "Item_Feature-3" → "item feature 3"
    - "Colóur" → "colour"

    Args:
        header: Raw header text (may be None)

    Returns:
        Lowercase ASCII words separated by single spaces, "" for blank input
    """
    if not header:
        return ""

    folded = fold_accents(str(header)).lower()
    return _NON_ALNUM.sub(" ", folded).strip()


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to one space and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def clean_cell_value(value: Any) -> Optional[str]:
    """
    Clean a raw cell for extraction.

    - Strips whitespace
    - Returns None for None, NaN and whitespace-only strings

    Args:
        value: Raw cell (str, number, None, NaN)

    Returns:
        Stripped string or None
    """
    if value is None:
        return None

    # NaN is the only value not equal to itself
    if isinstance(value, float) and value != value:
        return None

    text = str(value).strip()
    return text or None


class DefaultSecurityValidator:
    """
    Baseline sanitizer applied to every extracted record.

    Strips control characters and HTML tags from values. Keys are left alone.
    """

    def sanitize(self, record: dict[str, str]) -> dict[str, str]:
        cleaned: dict[str, str] = {}
        for key, value in record.items():
            text = _CONTROL_CHARS.sub("", value)
            text = _HTML_TAGS.sub("", text).strip()
            if text != value:
                logger.debug("value_sanitized", field=key)
            if text:
                cleaned[key] = text
        return cleaned
