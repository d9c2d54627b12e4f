"""
Test data factories.

See STANDARDS_TESTING.md for patterns.
Uses factory pattern to generate consistent test data.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from models.catalog_import import RawRow


class RowFactory:
    """
    Factory for catalog sheet rows.

    Usage:
        headers = RowFactory.HEADERS
        row = RowFactory.create(sku="RB100-White", title="Roller Blind White 60cm")
        rows = RowFactory.create_batch(5)
    """

    HEADERS = ["SKU", "Title", "Barcode", "Retail Price", "Brand", "Fabric Composition"]
    MAPPING = {0: "sku", 1: "product_name", 2: "barcode", 3: "price"}

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        sku: Optional[str] = None,
        title: Optional[str] = None,
        barcode: Optional[str] = None,
        price: Optional[str] = None,
        brand: Optional[str] = None,
        fabric: Optional[str] = None,
        row_number: Optional[int] = None
    ) -> RawRow:
        """
        Create a row aligned with HEADERS.

        Args:
            sku: Variant SKU
            title: Variant title
            barcode: Barcode digits
            price: Retail price text
            brand: Brand (unmapped column, becomes a product attribute)
            fabric: Fabric composition (unmapped, becomes a variant attribute)
            row_number: Spreadsheet row (auto-numbered from 2)

        Returns:
            RawRow
        """
        n = cls._next_counter()
        return RawRow(
            row_number=row_number or n + 1,
            cells=(sku, title, barcode, price, brand, fabric),
        )

    @classmethod
    def create_batch(cls, count: int, prefix: str = "RB") -> list[RawRow]:
        """Create rows with distinct SKUs in one parent family."""
        colors = ["White", "Blue", "Cream", "Black", "Sage", "Navy", "Pink", "Red"]
        rows = []
        for i in range(count):
            color = colors[i % len(colors)]
            rows.append(RawRow(
                row_number=i + 2,
                cells=(
                    f"{prefix}{100 + i // len(colors)}-{color}",
                    f"Roller Blind {color} 60cm x 160cm",
                    None,
                    "19.99",
                    None,
                    None,
                ),
            ))
        return rows


class ProductFactory:
    """
    Factory for stored product rows.

    Usage:
        product = ProductFactory.create(parent_sku="RB100")
    """

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        parent_sku: Optional[str] = "RB100",
        name: str = "Roller Blind",
        slug: Optional[str] = None,
        status: str = "active"
    ) -> dict:
        now = datetime.utcnow().isoformat() + "Z"
        return {
            "id": id or str(uuid4()),
            "parent_sku": parent_sku,
            "name": name,
            "slug": slug or name.lower().replace(" ", "-"),
            "status": status,
            "description": None,
            "features": [],
            "details": [],
            "is_parent": True,
            "created_at": now,
            "updated_at": now,
        }


class VariantFactory:
    """
    Factory for stored variant rows.

    Usage:
        variant = VariantFactory.create(product_id=product["id"], sku="RB100-White")
    """

    @classmethod
    def create(
        cls,
        product_id: str,
        sku: str = "RB100-White",
        id: Optional[str] = None,
        color: str = "White",
        width: int = 60,
        drop: int = 160
    ) -> dict:
        now = datetime.utcnow().isoformat() + "Z"
        return {
            "id": id or str(uuid4()),
            "product_id": product_id,
            "sku": sku,
            "color": color,
            "width": width,
            "drop": drop,
            "price": 0,
            "stock_level": 0,
            "status": "active",
            "created_at": now,
            "updated_at": now,
        }
