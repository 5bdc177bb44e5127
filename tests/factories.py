"""
Test data factories.

Uses factory pattern to generate consistent test data.
"""

from typing import Optional

from models.catalog import CatalogEntry


class CatalogEntryFactory:
    """
    Factory for creating test catalog entries.

    Usage:
        # Create a raw dict (camelCase, like a catalog file row)
        row = CatalogEntryFactory.create()

        # Create with overrides
        row = CatalogEntryFactory.create(name="Toothpaste", brand="Colgate")

        # Create a validated CatalogEntry
        entry = CatalogEntryFactory.build(price=2.5)

        # Create multiple
        rows = CatalogEntryFactory.create_batch(5)
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        sku: Optional[str] = None,
        name: Optional[str] = None,
        brand: str = "Generic Foods",
        size: str = "1 pack",
        price: float = 1.99,
        sale_price: Optional[float] = None,
        on_sale: bool = False,
        category: str = "pantry",
        in_stock: bool = True,
        season_months: Optional[list] = None,
        substitutes: Optional[list] = None
    ) -> dict:
        """
        Create a single catalog row dict.

        Args:
            sku: Unique SKU (auto-generated if not provided)
            name: Product name (auto-generated if not provided)
            sale_price: Sale price, only effective with on_sale=True

        Returns:
            Dict with camelCase keys, as found in a catalog file
        """
        n = cls._next_counter()
        return {
            "sku": sku or f"TEST-{n:04d}",
            "name": name or f"Test Product {n}",
            "brand": brand,
            "size": size,
            "price": price,
            "salePrice": sale_price,
            "onSale": on_sale,
            "category": category,
            "inStock": in_stock,
            "seasonMonths": season_months or [],
            "substitutes": substitutes or [],
        }

    @classmethod
    def build(cls, **kwargs) -> CatalogEntry:
        """Create a validated CatalogEntry."""
        return CatalogEntry.model_validate(cls.create(**kwargs))

    @classmethod
    def create_batch(cls, count: int, **kwargs) -> list[dict]:
        return [cls.create(**kwargs) for _ in range(count)]


def grocery_catalog() -> list[dict]:
    """
    Small grocery catalog covering the interesting cases.

    - three toothpaste brands (one on sale, one above $5)
    - two milk brands
    - out-of-stock butter with a declared substitute
    - out-of-stock mangoes with no in-stock name match
    - nickname products (kitkat, perk)
    """
    f = CatalogEntryFactory.create
    return [
        f(sku="DAIRY-MILK-AMUL", name="Whole Milk", brand="Amul", size="1l", price=1.49, category="dairy"),
        f(sku="DAIRY-MILK-HORIZON", name="Organic Whole Milk", brand="Horizon", size="1l", price=2.99,
          category="dairy"),
        f(sku="DAIRY-BUTTER", name="Butter", brand="Amul", size="500g", price=4.25, category="dairy",
          in_stock=False, substitutes=["Margarine"]),
        f(sku="DAIRY-MARGARINE", name="Margarine", brand="Flora", size="500g", price=2.75, category="dairy"),
        f(sku="DAIRY-GHEE", name="Ghee", brand="Amul", size="500g", price=5.99, category="dairy"),
        f(sku="PROD-APPLES", name="Apples", brand="", size="1kg", price=3.20, category="produce"),
        f(sku="PROD-BANANAS", name="Bananas", brand="Chiquita", size="6 pcs", price=1.80, category="produce"),
        f(sku="PROD-MANGOES", name="Mangoes", brand="", size="1kg", price=4.50, category="produce",
          in_stock=False, substitutes=["Apples"]),
        f(sku="CARE-TP-COLGATE", name="Toothpaste", brand="Colgate", size="100g", price=2.99,
          category="personal care"),
        f(sku="CARE-TP-CREST", name="Toothpaste", brand="Crest", size="100g", price=3.49, sale_price=2.79,
          on_sale=True, category="personal care"),
        f(sku="CARE-TP-SENSODYNE", name="Toothpaste", brand="Sensodyne", size="75g", price=6.49,
          category="personal care"),
        f(sku="SNACK-KITKAT", name="KitKat Chocolate", brand="Nestle", size="4-finger", price=1.25,
          category="snacks"),
        f(sku="SNACK-PERK", name="Perk Chocolate", brand="Cadbury", size="1 piece", price=0.50,
          category="snacks"),
        f(sku="BAKE-BREAD", name="White Bread", brand="Wonder", size="1 pack", price=2.49, category="bakery"),
    ]
