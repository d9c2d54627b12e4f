"""
Unit tests for the catalog file reader.

Run: pytest tests/unit/test_catalog_file_parser.py -v
"""

from io import BytesIO

import pytest
from openpyxl import Workbook

from exceptions import CatalogFileParseError
from parsers.catalog_file_parser import parse_catalog_file


CSV_CONTENT = (
    b"SKU,Title,Barcode\n"
    b"001-002,Roller Blind White,05012345678900\n"
    b",,\n"
    b"010-108,Curtain,\n"
)


class TestParseCsv:
    """Tests for parse_catalog_file() with CSV input"""

    def test_headers_and_rows(self):
        """Should read the header row and the non-blank data rows."""
        # Act
        sheet = parse_catalog_file(CSV_CONTENT, filename="catalog.csv")

        # Assert
        assert sheet.headers == ["SKU", "Title", "Barcode"]
        assert sheet.total_rows == 2

    def test_leading_zeros_preserved(self):
        """Cells are read as text."""
        # Act
        sheet = parse_catalog_file(CSV_CONTENT, filename="catalog.csv")

        # Assert
        assert sheet.rows[0].cells == ("001-002", "Roller Blind White", "05012345678900")

    def test_row_numbers_match_spreadsheet(self):
        """First data row is 2; skipped blank rows keep their number."""
        # Act
        sheet = parse_catalog_file(CSV_CONTENT, filename="catalog.csv")

        # Assert
        assert [r.row_number for r in sheet.rows] == [2, 4]

    def test_blank_cells_are_none(self):
        """Should turn empty cells into None."""
        # Act
        sheet = parse_catalog_file(CSV_CONTENT, filename="catalog.csv")

        # Assert
        assert sheet.rows[1].cells == ("010-108", "Curtain", None)

    def test_sample(self):
        """Should return the first rows as lists."""
        # Act
        sheet = parse_catalog_file(CSV_CONTENT, filename="catalog.csv")

        # Assert
        assert sheet.sample(1) == [["001-002", "Roller Blind White", "05012345678900"]]


class TestParseExcel:
    """Tests for parse_catalog_file() with XLSX input"""

    def test_reads_first_sheet(self):
        """Should read an .xlsx upload."""
        # Arrange
        wb = Workbook()
        ws = wb.active
        ws.append(["SKU", "Title"])
        ws.append(["RB1-White", "Roller Blind White"])
        buffer = BytesIO()
        wb.save(buffer)

        # Act
        sheet = parse_catalog_file(buffer.getvalue(), filename="catalog.xlsx")

        # Assert
        assert sheet.headers == ["SKU", "Title"]
        assert sheet.rows[0].row_number == 2
        assert sheet.rows[0].cells == ("RB1-White", "Roller Blind White")


class TestParseErrors:
    """Tests for parse_catalog_file() failures"""

    def test_unsupported_extension(self):
        """Should reject files that are neither CSV nor XLSX."""
        with pytest.raises(CatalogFileParseError) as exc_info:
            parse_catalog_file(b"%PDF-1.4", filename="catalog.pdf")

        assert "Unsupported file type" in exc_info.value.message

    def test_empty_file(self):
        """Should reject a file with no header row."""
        with pytest.raises(CatalogFileParseError):
            parse_catalog_file(b"", filename="catalog.csv")
