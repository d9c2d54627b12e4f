"""
Column mapping for catalog imports.

Turns arbitrary spreadsheet headers into canonical field names, and applies a
mapping to raw rows:

    headers ──auto_map_columns──▶ ColumnMapping {position|header: field}
    ColumnMapping + headers ──build_mapping_index──▶ {header: field}
    row + index ──extract_row_fields──▶ {field: value}

Extraction is header-driven, so a saved mapping keeps working when a
supplier reorders columns between files.
"""

import re
from typing import Optional, Union

import structlog
from rapidfuzz.distance import Levenshtein

from config.import_rules import (
    DETAIL_HEADER_PATTERN,
    FEATURE_HEADER_PATTERN,
    FIELD_ALIASES,
    FIELD_VOCABULARY,
    FUZZY_MAX_EDIT_DISTANCE,
    FUZZY_MIN_WORD_RATIO,
    MAX_TEXT_SLOTS,
    MIN_MAPPING_COVERAGE_PCT,
    REQUIRED_IDENTITY_FIELDS,
)
from models.catalog_import import MappingValidation
from utils.text_utils import normalize_header

logger = structlog.get_logger(__name__)

ColumnMapping = dict[Union[int, str], str]

_FEATURE_HEADER = re.compile(FEATURE_HEADER_PATTERN, re.IGNORECASE)
_DETAIL_HEADER = re.compile(DETAIL_HEADER_PATTERN, re.IGNORECASE)

# Pre-split vocabulary: (field, [(pattern, pattern_words)])
_VOCABULARY: list[tuple[str, list[tuple[str, list[str]]]]] = [
    (field_name, [(pattern, pattern.split()) for pattern in patterns])
    for field_name, patterns in FIELD_VOCABULARY
]


# ===================
# FIELD GUESSING
# ===================

def _contains_words(haystack: list[str], needle: list[str]) -> bool:
    """True if needle appears as a contiguous run of words in haystack."""
    size = len(needle)
    return any(
        haystack[i:i + size] == needle
        for i in range(len(haystack) - size + 1)
    )


def _fuzzy_match(header_words: list[str], pattern_words: list[str]) -> bool:
    """At least 70% of pattern words have a header word within edit distance 1."""
    matched = sum(
        1 for pattern_word in pattern_words
        if any(
            Levenshtein.distance(pattern_word, header_word) <= FUZZY_MAX_EDIT_DISTANCE
            for header_word in header_words
        )
    )
    return matched / len(pattern_words) >= FUZZY_MIN_WORD_RATIO


def _match_text_slot(header: str) -> Optional[str]:
    """Map numbered feature/detail headers to product_features_N / product_details_N."""
    for regex, template in (
        (_FEATURE_HEADER, "product_features_{}"),
        (_DETAIL_HEADER, "product_details_{}"),
    ):
        match = regex.search(header)
        if match:
            number = int(match.group(1))
            if 1 <= number <= MAX_TEXT_SLOTS:
                return template.format(number)
    return None


def guess_field_mapping(header: Optional[str]) -> Optional[str]:
    """
    Guess the canonical field for a column header.

    Numbered feature/detail headers are checked first. Then, in vocabulary
    order, a field matches when one of its patterns:
        (a) equals the normalized header
        (b) is contained in the header, or the header's words are a run
            inside the pattern
        (c) fuzzy-matches: 70% of pattern words are within one edit of a
            header word

    Exact matches are looked for across the whole vocabulary before
    (b) and (c), so "Price" maps to price and not to the "cost price" field
    declared above it.

    Args:
        header: Raw column header

    Returns:
        Canonical field name, or None if nothing matches
    """
    normalized = normalize_header(header)
    if not normalized:
        return None

    slot = _match_text_slot(normalized)
    if slot:
        return slot

    for field_name, patterns in _VOCABULARY:
        if any(pattern == normalized for pattern, _ in patterns):
            return field_name

    header_words = normalized.split()

    for field_name, patterns in _VOCABULARY:
        for pattern, pattern_words in patterns:
            if pattern in normalized or _contains_words(pattern_words, header_words):
                return field_name
            if _fuzzy_match(header_words, pattern_words):
                return field_name

    return None


def auto_map_columns(headers: list[str]) -> dict[int, str]:
    """
    Guess a mapping for every header.

    Args:
        headers: Header row

    Returns:
        {column position: field} for headers that matched
    """
    mapping: dict[int, str] = {}
    for position, header in enumerate(headers):
        field_name = guess_field_mapping(header)
        if field_name:
            mapping[position] = field_name

    logger.info(
        "columns_auto_mapped",
        total_columns=len(headers),
        mapped_columns=len(mapping)
    )

    return mapping


# ===================
# MAPPING INDEX
# ===================

def canonical_field(field_name: Optional[str]) -> Optional[str]:
    """Fold legacy field names (variant_sku, title, ...) into canonical ones."""
    if not field_name:
        return None
    field_name = field_name.strip()
    return FIELD_ALIASES.get(field_name, field_name) or None


def invert_field_mapping(field_to_column: dict[str, Union[int, str]]) -> ColumnMapping:
    """
    Flip a {field: column} mapping into {column: field}.

    Entries with a blank column are dropped (field not present in the file).
    """
    inverted: ColumnMapping = {}
    for field_name, column in field_to_column.items():
        if column is None or column == "":
            continue
        inverted[column] = field_name
    return inverted


def build_mapping_index(
    headers: list[str],
    column_mapping: ColumnMapping
) -> tuple[dict[str, str], list[str]]:
    """
    Resolve a column mapping against the header row.

    Integer keys (and digit strings that are not themselves a header) are
    positions into the header row. Other string keys are header names.
    Anything else, or a position outside the header row, is reported as a
    warning and dropped. Entries with an empty field are simply unmapped.

    Args:
        headers: Header row
        column_mapping: {position | header name: field}

    Returns:
        Tuple of ({header: field}, warnings)
    """
    index: dict[str, str] = {}
    warnings: list[str] = []
    header_set = set(headers)

    for column, field_name in column_mapping.items():
        field_name = canonical_field(field_name)
        if not field_name:
            continue

        if isinstance(column, bool):
            header = None
        elif isinstance(column, int):
            header = headers[column] if 0 <= column < len(headers) else None
        elif isinstance(column, str) and column.isdigit() and column not in header_set:
            position = int(column)
            header = headers[position] if position < len(headers) else None
        elif isinstance(column, str) and column:
            header = column
        else:
            header = None

        if header is None:
            warnings.append(f"Ignoring malformed mapping entry {column!r} -> {field_name!r}")
            logger.warning("malformed_mapping_entry", column=repr(column), field=field_name)
            continue

        index[header] = field_name

    return index, warnings


def extract_row_fields(
    headers: list[str],
    cells: Union[list[Optional[str]], tuple[Optional[str], ...]],
    index: dict[str, str]
) -> dict[str, str]:
    """
    Pull canonical fields out of one row.

    Columns without a mapping and blank cells are skipped. When two columns
    share a header, the first non-blank value wins.

    Args:
        headers: Header row
        cells: Row cells, aligned with headers
        index: {header: field} from build_mapping_index

    Returns:
        {field: stripped value}; absent key means not supplied
    """
    fields: dict[str, str] = {}

    for header, value in zip(headers, cells):
        field_name = index.get(header)
        if not field_name or value is None:
            continue

        value = str(value).strip()
        if not value or field_name in fields:
            continue

        fields[field_name] = value

    return fields


# ===================
# VALIDATION
# ===================

def validate_mapping(column_mapping: ColumnMapping, header_count: int) -> MappingValidation:
    """
    Check a mapping before running an import.

    Errors:
        - Neither sku nor product_name is mapped
    Warnings:
        - One of sku / product_name is missing
        - A field is mapped from more than one column
        - Less than 30% of columns are mapped

    Args:
        column_mapping: {column: field}
        header_count: Number of columns in the file

    Returns:
        MappingValidation
    """
    mapped_fields = [
        f for f in (canonical_field(v) for v in column_mapping.values()) if f
    ]
    errors: list[str] = []
    warnings: list[str] = []

    missing = [f for f in REQUIRED_IDENTITY_FIELDS if f not in mapped_fields]
    if len(missing) == len(REQUIRED_IDENTITY_FIELDS):
        errors.append("Neither 'sku' nor 'product_name' is mapped")
    else:
        for field_name in missing:
            warnings.append(f"Field '{field_name}' is not mapped")

    seen: set[str] = set()
    for field_name in mapped_fields:
        if field_name in seen:
            warnings.append(f"Field '{field_name}' is mapped multiple times")
        seen.add(field_name)

    coverage = (len(mapped_fields) / header_count * 100) if header_count > 0 else 0.0
    if coverage < MIN_MAPPING_COVERAGE_PCT:
        warnings.append(f"Only {coverage:.1f}% of columns are mapped")

    return MappingValidation(
        errors=errors,
        warnings=list(dict.fromkeys(warnings)),
        coverage_percentage=round(coverage, 1),
        mapped_fields_count=len(mapped_fields),
        total_columns=header_count,
    )
