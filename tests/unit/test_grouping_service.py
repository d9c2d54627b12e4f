"""
Unit tests for GroupingService.

See STANDARDS_TESTING.md for patterns.

Run: pytest tests/unit/test_grouping_service.py -v
"""

import hashlib

from services.grouping_service import (
    GroupedRow,
    GroupingService,
    RapidFuzzNameGrouper,
    clean_name_for_grouping,
    common_base_name,
    grouping_key,
    remove_variant_info,
)


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


class SingletonGrouper:
    """Puts every name in its own cluster."""

    def group(self, names: list[str]) -> list[list[str]]:
        return [[name] for name in names]


class TestGroupingKey:
    """Tests for grouping_key()"""

    def test_parent_name_first(self):
        """Should key on the parent_name column when present."""
        # Act
        key = grouping_key({"parent_name": " Roller Blind ", "sku": "010-108"})

        # Assert
        assert key == "name:" + _md5("roller blind")

    def test_numeric_sku_prefix(self):
        """Should key "010-108" on its prefix."""
        assert grouping_key({"sku": "010-108", "product_name": "Curtain"}) == "sku:010"

    def test_cleaned_product_name(self):
        """Variant words are removed before hashing the name."""
        # Act
        key = grouping_key({"product_name": "Roller Blind White 60cm x 160cm"})

        # Assert
        assert key == "name:" + _md5("roller blind")

    def test_generic_fallback(self):
        """Should fall back to the generic bucket."""
        assert grouping_key({}) == "generic:default"


class TestNameHelpers:
    """Tests for remove_variant_info() and clean_name_for_grouping()"""

    def test_remove_variant_info(self):
        assert remove_variant_info("Roller Blind White 60cm x 160cm") == "Roller Blind"
        assert remove_variant_info("Shampoo 500ml Large") == "Shampoo"

    def test_clean_name_for_grouping(self):
        """Should drop bracketed text and a trailing " - suffix"."""
        # Act
        cleaned = clean_name_for_grouping("Roller Blind (Blackout) - White")

        # Assert
        assert cleaned == "Roller Blind"

    def test_common_base_name(self):
        """Should keep shared words and drop dimensions."""
        # Act
        name = common_base_name([
            "Roller Blind White 60cm x 160cm",
            "Roller Blind Cream 90cm x 160cm",
        ])

        # Assert
        assert name == "Roller Blind"

    def test_common_base_name_empty(self):
        assert common_base_name([]) == "Product Group"


class TestRapidFuzzNameGrouper:
    """Tests for RapidFuzzNameGrouper"""

    def test_groups_similar_names(self):
        """Should cluster names that share a base, in input order."""
        # Arrange
        grouper = RapidFuzzNameGrouper()

        # Act
        clusters = grouper.group(["Roller Blind White", "Garden Hose", "Roller Blind Cream"])

        # Assert
        assert clusters == [["Roller Blind White", "Roller Blind Cream"], ["Garden Hose"]]

    def test_dissimilar_names(self):
        """Low word overlap keeps names apart."""
        # Arrange
        grouper = RapidFuzzNameGrouper()

        # Act
        similar = grouper.are_similar("Roller Blind White", "Roller Blind Kids Dinosaur")

        # Assert
        assert similar is False


class TestGroupRows:
    """Tests for GroupingService.group_rows()"""

    def test_groups_by_sku_prefix_and_name(self):
        """Should build one parent per family, in order of first appearance."""
        # Arrange
        rows = [
            GroupedRow(2, {"sku": "010-108", "product_name": "Curtain Blue"}),
            GroupedRow(3, {"sku": "RB1-White", "product_name": "Roller Blind White 60cm"}),
            GroupedRow(4, {"sku": "010-109", "product_name": "Curtain Red"}),
            GroupedRow(5, {"sku": "RB1-Cream", "product_name": "Roller Blind Cream 60cm"}),
        ]
        service = GroupingService()

        # Act
        groups = service.group_rows(rows)

        # Assert
        assert len(groups) == 2
        assert groups[0].parent_sku == "010"
        assert groups[0].parent_name == "Curtain"
        assert [r.row_number for r in groups[0].rows] == [2, 4]
        assert groups[1].parent_sku == "RB1"
        assert groups[1].parent_name == "Roller Blind"
        assert [r.row_number for r in groups[1].rows] == [3, 5]

    def test_parent_name_column_is_used(self):
        """Should take the explicit parent name."""
        # Arrange
        rows = [
            GroupedRow(2, {"sku": "A1", "product_name": "Thing One", "parent_name": "Things"}),
            GroupedRow(3, {"sku": "A2", "product_name": "Thing Two", "parent_name": "Things"}),
        ]

        # Act
        groups = GroupingService(grouper=SingletonGrouper()).group_rows(rows)

        # Assert
        assert groups[0].parent_name == "Things"

    def test_split_bucket_gets_distinct_keys(self):
        """Sub-groups of a split bucket resolve to different parents."""
        # Arrange
        rows = [
            GroupedRow(2, {"product_name": "Roller Blind White"}),
            GroupedRow(3, {"product_name": "Roller Blind Cream"}),
        ]

        # Act
        groups = GroupingService(grouper=SingletonGrouper()).group_rows(rows)

        # Assert
        assert len(groups) == 2
        assert groups[1].key == groups[0].key + "#1"
        assert groups[0].parent_sku != groups[1].parent_sku

    def test_split_sku_bucket_gets_own_parent(self):
        """A sub-group split off a SKU-prefix bucket does not reuse the prefix."""
        # Arrange
        rows = [
            GroupedRow(2, {"sku": "010-108", "product_name": "Blackout Curtain Blue"}),
            GroupedRow(3, {"sku": "010-109", "product_name": "Garden Hose Reel"}),
        ]

        # Act
        groups = GroupingService(grouper=SingletonGrouper()).group_rows(rows)

        # Assert
        assert [g.key for g in groups] == ["sku:010", "sku:010#1"]
        assert groups[0].parent_sku == "010"
        assert groups[1].parent_sku == "GRP-" + _md5("sku:010#1|garden hose reel")[:10].upper()
        assert groups[1].parent_name == "Garden Hose Reel"

    def test_synthesized_parent_sku_is_stable(self):
        """Rows without SKUs get a deterministic GRP- key."""
        # Arrange
        rows = [GroupedRow(2, {"product_name": "Garden Hose 15m"})]
        service = GroupingService()

        # Act
        first = service.group_rows(rows)[0]
        second = service.group_rows(rows)[0]

        # Assert
        assert first.parent_sku.startswith("GRP-")
        assert len(first.parent_sku) == 14
        assert first.parent_sku == second.parent_sku

    def test_to_dict(self):
        """Should summarize the group."""
        # Arrange
        rows = [GroupedRow(7, {"sku": "010-108", "product_name": "Curtain"})]

        # Act
        group = GroupingService().group_rows(rows)[0]

        # Assert
        assert group.to_dict() == {
            "key": "sku:010",
            "parent_sku": "010",
            "parent_name": "Curtain",
            "row_numbers": [7],
        }
