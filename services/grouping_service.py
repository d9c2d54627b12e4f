"""
Grouping of unparented rows into parent products.

Used when a batch has no explicit parent linkage. Each row gets a bucket key:

    1. parent_name column present   → "name:<md5 of trimmed lowercased name>"
    2. sku like 010-108             → "sku:010"
    3. product name, cleaned        → "name:<md5 of cleaned name>"
    4. nothing usable               → "generic:default"

Buckets with more than one member are then split by a name-similarity
grouper, so "Roller Blind White" and "Garden Hose 15m" never share a parent
just because both landed in the generic bucket.
"""

import hashlib
import re
from dataclasses import dataclass, field
from typing import Optional, Protocol

import structlog
from rapidfuzz import fuzz

from config.import_rules import (
    COLOR_DICTIONARY,
    GENERIC_GROUP_KEY,
    MEASUREMENT_PATTERN,
    NAME_STRING_SIMILARITY_MIN,
    NAME_WORD_SIMILARITY_MIN,
    NAME_WORD_SIMILARITY_WITH_STRING_MIN,
    SIZE_WORDS,
    SYNTHESIZED_PARENT_PREFIX,
)
from parsers.sku_parser import classify_sku
from utils.text_utils import collapse_whitespace

logger = structlog.get_logger(__name__)

_NUMERIC_PAIR_SKU = re.compile(r"^(\d{3})-\d{3}$")
_BRACKETED = re.compile(r"\[[^\]]*\]|\([^)]*\)|\{[^}]*\}")
_TRAILING_DASH_SUFFIX = re.compile(r"\s+[-–]\s+.*$")
_DIMENSION_PAIR = re.compile(r"\d+\s*cm\s*x\s*\d+\s*cm(?:\s+drop\b)?", re.IGNORECASE)
_MEASUREMENT = re.compile(MEASUREMENT_PATTERN, re.IGNORECASE)
_SIZE_WORDS = re.compile(r"\b(?:" + "|".join(SIZE_WORDS) + r")\b", re.IGNORECASE)
_COLOR_WORDS = re.compile(
    r"\b(?:" + "|".join(
        re.escape(c) for c in sorted(COLOR_DICTIONARY, key=len, reverse=True)
    ) + r")\b",
    re.IGNORECASE
)
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


# ===================
# DATA CLASSES
# ===================

@dataclass
class GroupedRow:
    """One extracted row awaiting a parent."""
    row_number: int
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.fields.get("product_name") or self.fields.get("sku") or ""


@dataclass
class ParentGroup:
    """A parent product and the rows that become its variants."""
    key: str
    parent_sku: str
    parent_name: str
    description: Optional[str] = None
    rows: list[GroupedRow] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "parent_sku": self.parent_sku,
            "parent_name": self.parent_name,
            "row_numbers": [r.row_number for r in self.rows],
        }


class NameSimilarityGrouper(Protocol):
    """Splits a list of names into clusters of similar names."""

    def group(self, names: list[str]) -> list[list[str]]:
        ...


# ===================
# NAME HELPERS
# ===================

def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def remove_variant_info(name: str) -> str:
    """
    Strip color, size and measurement words from a name.

    - "Roller Blind White 60cm x 160cm" → "Roller Blind"
    - "Shampoo 500ml Large" → "Shampoo"
    """
    cleaned = _DIMENSION_PAIR.sub(" ", name)
    cleaned = _MEASUREMENT.sub(" ", cleaned)
    cleaned = _SIZE_WORDS.sub(" ", cleaned)
    cleaned = _COLOR_WORDS.sub(" ", cleaned)
    return collapse_whitespace(cleaned)


def clean_name_for_grouping(name: str) -> str:
    """
    Reduce a variant name to its parent form for bucketing.

    Removes bracketed text, a trailing " - suffix", then variant info.
    """
    cleaned = _BRACKETED.sub(" ", name)
    cleaned = _TRAILING_DASH_SUFFIX.sub("", cleaned)
    return remove_variant_info(cleaned)


def _normalize_for_comparison(name: str) -> str:
    return _NON_ALNUM.sub(" ", name.lower()).strip()


def grouping_key(fields: dict[str, str]) -> str:
    """Bucket key for one row (see module docstring for priority)."""
    parent_name = (fields.get("parent_name") or "").strip()
    if parent_name:
        return "name:" + _md5(parent_name.lower())

    sku = fields.get("sku") or ""
    match = _NUMERIC_PAIR_SKU.match(sku)
    if match:
        return f"sku:{match.group(1)}"

    product_name = fields.get("product_name") or ""
    cleaned = clean_name_for_grouping(product_name).lower()
    if cleaned:
        return "name:" + _md5(cleaned)

    return GENERIC_GROUP_KEY


# ===================
# DEFAULT SIMILARITY GROUPER
# ===================

class RapidFuzzNameGrouper:
    """
    Greedy clustering by name similarity.

    Two names are similar when:
        - they are equal, or
        - their bases (variant info removed) are equal and longer than 3 chars, or
        - word overlap (jaccard) >= 0.7, or
        - rapidfuzz ratio >= 80 and word overlap >= 0.5

    Deterministic: each name joins the first cluster whose seed it resembles,
    clusters are seeded in input order.
    """

    def are_similar(self, name1: str, name2: str) -> bool:
        if name1 == name2:
            return True

        normalized1 = _normalize_for_comparison(name1)
        normalized2 = _normalize_for_comparison(name2)

        base1 = remove_variant_info(normalized1)
        base2 = remove_variant_info(normalized2)
        if base1 == base2 and len(base1) > 3:
            return True

        words1 = set(normalized1.split())
        words2 = set(normalized2.split())
        union = words1 | words2
        word_similarity = len(words1 & words2) / len(union) if union else 0.0

        if word_similarity >= NAME_WORD_SIMILARITY_MIN:
            return True

        string_similarity = fuzz.ratio(normalized1, normalized2)
        return (
            string_similarity >= NAME_STRING_SIMILARITY_MIN
            and word_similarity >= NAME_WORD_SIMILARITY_WITH_STRING_MIN
        )

    def group(self, names: list[str]) -> list[list[str]]:
        clusters: list[list[str]] = []
        for name in names:
            for cluster in clusters:
                if self.are_similar(cluster[0], name):
                    cluster.append(name)
                    break
            else:
                clusters.append([name])
        return clusters


# ===================
# SERVICE
# ===================

class GroupingService:
    """
    Buckets unparented rows into parent groups.

    Args:
        grouper: Name-similarity strategy; RapidFuzzNameGrouper by default
    """

    def __init__(self, grouper: Optional[NameSimilarityGrouper] = None):
        self.grouper = grouper or RapidFuzzNameGrouper()

    def group_rows(self, rows: list[GroupedRow]) -> list[ParentGroup]:
        """
        Group rows into parents.

        Args:
            rows: Extracted rows, in file order

        Returns:
            ParentGroups in order of first appearance
        """
        buckets: dict[str, list[GroupedRow]] = {}
        for row in rows:
            buckets.setdefault(grouping_key(row.fields), []).append(row)

        groups: list[ParentGroup] = []
        for key, members in buckets.items():
            if len(members) > 1:
                clusters = self._split_bucket(members)
            else:
                clusters = [members]

            for index, cluster in enumerate(clusters):
                # Sub-groups after a split get their own key so each resolves
                # to its own parent on re-import
                cluster_key = key if index == 0 else f"{key}#{index}"
                groups.append(self._build_group(cluster_key, cluster))

        logger.info(
            "rows_grouped",
            rows=len(rows),
            buckets=len(buckets),
            groups=len(groups)
        )

        return groups

    def _split_bucket(self, members: list[GroupedRow]) -> list[list[GroupedRow]]:
        """Refine one bucket with the similarity grouper."""
        names = list(dict.fromkeys(m.display_name for m in members))
        name_groups = self.grouper.group(names)

        clusters: list[list[GroupedRow]] = []
        assigned: set[int] = set()
        for name_group in name_groups:
            wanted = set(name_group)
            cluster = [
                m for m in members
                if m.display_name in wanted and m.row_number not in assigned
            ]
            if cluster:
                assigned.update(m.row_number for m in cluster)
                clusters.append(cluster)

        # Names the grouper did not return stay together rather than vanish
        leftovers = [m for m in members if m.row_number not in assigned]
        if leftovers:
            clusters.append(leftovers)

        return clusters

    def _build_group(self, key: str, rows: list[GroupedRow]) -> ParentGroup:
        first = rows[0].fields
        parent_name = (first.get("parent_name") or "").strip()
        if not parent_name:
            parent_name = common_base_name([r.display_name for r in rows])

        return ParentGroup(
            key=key,
            parent_sku=self._parent_sku(key, rows, parent_name),
            parent_name=parent_name,
            description=first.get("description"),
            rows=rows,
        )

    def _parent_sku(self, key: str, rows: list[GroupedRow], parent_name: str) -> str:
        """
        Parent SKU for a group.

        Sub-groups split off a bucket ("key#1", "key#2", ...) always get a
        synthesized "GRP-" key, since the rows' own SKUs point back at the
        first sub-group's parent. Otherwise SKU buckets use their prefix, and
        a bucket whose rows all derive the same parent uses that. Failing
        that, synthesize a stable "GRP-" key from the bucket key and parent
        name.
        """
        digest = _md5(f"{key}|{parent_name.lower()}")[:10].upper()
        synthesized = f"{SYNTHESIZED_PARENT_PREFIX}{digest}"

        if "#" in key:
            return synthesized

        if key.startswith("sku:"):
            return key[len("sku:"):]

        derived = {
            classify_sku(r.fields["sku"]).parent_sku
            for r in rows if r.fields.get("sku")
        }
        if len(derived) == 1:
            return derived.pop()

        return synthesized


def common_base_name(names: list[str]) -> str:
    """
    Common parent name for a set of variant names.

    Keeps words present in every name (casing from the first name), then
    drops variant info. Falls back to the cleaned first name.
    """
    names = [n for n in names if n]
    if not names:
        return "Product Group"

    first_words = names[0].split()
    other_word_sets = [set(w.lower() for w in n.split()) for n in names[1:]]
    common = [
        w for w in first_words
        if all(w.lower() in words for words in other_word_sets)
    ]

    candidate = remove_variant_info(" ".join(common))
    # Dangling "x" from "60cm x 160cm" when the dimensions differ
    candidate = collapse_whitespace(re.sub(r"\bx\b", " ", candidate, flags=re.IGNORECASE))
    if len(candidate) > 3:
        return candidate

    fallback = clean_name_for_grouping(names[0])
    return fallback or names[0]
