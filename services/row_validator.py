"""
Row validation for catalog imports.

Blocking errors skip the row. Warnings are reported and the row proceeds.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog
from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from config.import_rules import (
    BARCODE_MAX_DIGITS,
    BARCODE_MIN_DIGITS,
    SKU_PATTERN,
)

logger = structlog.get_logger(__name__)

_SKU = re.compile(SKU_PATTERN)
_PRICE_CHARS = re.compile(r"[^\d.,\-]")
_DECIMAL_COMMA = re.compile(r",\d{1,2}$")

_http_url = TypeAdapter(HttpUrl)


@dataclass
class RowValidation:
    """Errors block the row; warnings do not."""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0


def parse_price(value: Optional[str]) -> Optional[Decimal]:
    """
    Parse a price cell.

    Tolerates currency symbols, thousands separators and decimal commas:
    - "£49.99" → 49.99
    - "1,299.00" → 1299.00
    - "12,50" → 12.50

    Args:
        value: Raw cell text

    Returns:
        Decimal, or None when blank or not a number
    """
    if value is None:
        return None

    cleaned = _PRICE_CHARS.sub("", str(value).strip())
    if not cleaned:
        return None

    if "," in cleaned and "." not in cleaned and _DECIMAL_COMMA.search(cleaned):
        cleaned = cleaned.replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    try:
        price = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not price.is_finite():
        return None
    return price


def is_valid_image_url(url: str) -> bool:
    """True for absolute http(s) URLs."""
    try:
        _http_url.validate_python(url)
    except PydanticValidationError:
        return False
    return True


def validate_row(fields: dict[str, str], row_number: int) -> RowValidation:
    """
    Validate extracted fields for one row.

    Blocking:
        - Both sku and product_name missing (one error, nothing else checked
          for identity)
        - sku not matching ^[A-Za-z0-9\\-_]+$
        - price not a number, or negative
    Warnings:
        - barcode not 8-13 digits
        - any comma-separated image_urls entry that is not an http(s) URL

    Args:
        fields: Extracted {field: value}
        row_number: Spreadsheet row number (for messages)

    Returns:
        RowValidation
    """
    result = RowValidation()

    sku = fields.get("sku")
    product_name = fields.get("product_name")

    if not sku and not product_name:
        result.errors.append("Missing both SKU and product name")
    elif sku and not _SKU.match(sku):
        result.errors.append(f"Invalid SKU format: '{sku}'")

    price = fields.get("price")
    if price is not None:
        parsed = parse_price(price)
        if parsed is None:
            result.errors.append(f"Price is not a number: '{price}'")
        elif parsed < 0:
            result.errors.append(f"Price cannot be negative: '{price}'")

    barcode = fields.get("barcode")
    if barcode is not None:
        if not (barcode.isdigit() and BARCODE_MIN_DIGITS <= len(barcode) <= BARCODE_MAX_DIGITS):
            result.warnings.append(
                f"Barcode '{barcode}' should be {BARCODE_MIN_DIGITS}-{BARCODE_MAX_DIGITS} digits"
            )

    image_urls = fields.get("image_urls")
    if image_urls:
        for url in (u.strip() for u in image_urls.split(",")):
            if url and not is_valid_image_url(url):
                result.warnings.append(f"Invalid image URL: '{url}'")

    if result.errors:
        logger.debug("row_validation_failed", row=row_number, errors=result.errors)

    return result
