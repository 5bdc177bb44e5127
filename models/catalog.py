"""
Catalog schemas.
"""

from pydantic import Field, field_validator
from typing import Optional

from models.base import BaseSchema, FrozenSchema


class CatalogEntry(FrozenSchema):
    """
    One sellable product in the catalog snapshot.

    sku is unique across the snapshot; price is always positive.
    """

    sku: str = Field(..., min_length=1, description="Unique stock keeping unit")
    name: str = Field(..., min_length=1, description="Product name")
    brand: str = Field(default="", description="Brand name")
    size: str = Field(default="", description="Package size label, e.g. '500g' or '6 x 330ml'")
    price: float = Field(..., gt=0, description="List price per package")
    sale_price: Optional[float] = Field(None, gt=0, description="Sale price when on sale")
    on_sale: bool = Field(default=False)
    category: str = Field(default="others")
    in_stock: bool = Field(default=True)
    season_months: tuple[int, ...] = Field(default=(), description="Months (1-12) the item is in season")
    substitutes: tuple[str, ...] = Field(default=(), description="Names of declared substitute products")

    @field_validator("size", "brand", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""

    @property
    def effective_price(self) -> float:
        """Sale price when on sale, otherwise list price."""
        if self.on_sale and self.sale_price:
            return self.sale_price
        return self.price

    @property
    def price_label(self) -> str:
        if self.on_sale and self.sale_price:
            return f"${self.sale_price:.2f} (sale, was ${self.price:.2f})"
        return f"${self.price:.2f}"


class CatalogFilters(BaseSchema):
    """Filter-mode query. Every field is optional."""

    query: str = ""
    brand: str = ""
    size: str = ""
    max_price: Optional[float] = None
    min_price: Optional[float] = None
    in_stock_only: bool = False


class SearchResult(FrozenSchema):
    """Catalog entry decorated for display."""

    entry: CatalogEntry
    effective_price: float
    price_label: str
