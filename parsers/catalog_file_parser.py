"""
CSV / XLSX reader for catalog uploads.

Reads the first worksheet (or the CSV) as text: every cell is a string so
SKUs like "001-002" and barcodes like "05012345678900" keep their leading
zeros. The first row is the header row; data rows are numbered the way a
spreadsheet shows them (first data row = 2).
"""

from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import pandas as pd
import structlog

from exceptions import CatalogFileParseError
from models.catalog_import import RawRow
from utils.text_utils import clean_cell_value

logger = structlog.get_logger(__name__)

CSV_EXTENSIONS = {".csv", ".txt"}
EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}

# Header row is spreadsheet row 1
FIRST_DATA_ROW = 2


@dataclass
class CatalogSheet:
    """Headers and data rows of one uploaded catalog file."""
    headers: list[str] = field(default_factory=list)
    rows: list[RawRow] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    def sample(self, limit: int = 5) -> list[list[Optional[str]]]:
        """First rows as plain lists, for previews."""
        return [list(row.cells) for row in self.rows[:limit]]


def parse_catalog_file(
    file: Union[str, Path, BytesIO, bytes],
    filename: Optional[str] = None,
) -> CatalogSheet:
    """
    Parse a catalog CSV or XLSX file.

    Args:
        file: File path, file-like object or raw bytes
        filename: Original filename; used to pick the reader for uploads

    Returns:
        CatalogSheet with headers and non-blank data rows

    Raises:
        CatalogFileParseError: If the file cannot be read or has no header row
    """
    if isinstance(file, bytes):
        file = BytesIO(file)

    name = filename or (str(file) if isinstance(file, (str, Path)) else "")
    extension = Path(name).suffix.lower()

    logger.info("parsing_catalog_file", filename=name, extension=extension)

    try:
        if extension in EXCEL_EXTENSIONS:
            df = pd.read_excel(
                file,
                sheet_name=0,
                header=None,
                dtype=str,
                engine="openpyxl",
            )
        elif extension in CSV_EXTENSIONS or not extension:
            df = pd.read_csv(
                file,
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
            )
        else:
            raise CatalogFileParseError(
                f"Unsupported file type: {extension}",
                details={"filename": name}
            )
    except CatalogFileParseError:
        raise
    except Exception as e:
        logger.error("catalog_file_read_failed", filename=name, error=str(e))
        raise CatalogFileParseError(
            f"Could not read file: {str(e)}",
            details={"filename": name}
        )

    if df.empty:
        raise CatalogFileParseError(
            "File has no header row",
            details={"filename": name}
        )

    raw_headers = df.iloc[0].tolist()
    headers = [clean_cell_value(h) or "" for h in raw_headers]

    rows: list[RawRow] = []
    for offset, values in enumerate(df.iloc[1:].itertuples(index=False)):
        cells = tuple(clean_cell_value(v) for v in values)
        if not any(cells):
            continue
        rows.append(RawRow(row_number=FIRST_DATA_ROW + offset, cells=cells))

    logger.info(
        "catalog_file_parsed",
        filename=name,
        columns=len(headers),
        rows=len(rows)
    )

    return CatalogSheet(headers=headers, rows=rows)
