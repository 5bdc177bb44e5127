"""
Suggestion schemas.

Restock, seasonal and substitute tips built from list history,
preferences and the catalog snapshot.
"""

from enum import Enum
from pydantic import Field
from typing import Optional

from models.base import BaseSchema, FrozenSchema


class SuggestionType(str, Enum):
    PRODUCT = "product"
    PRODUCT_PREFERENCE = "product_preference"
    SEASONAL = "seasonal"
    SEASONAL_SALE = "seasonal_sale"
    SUBSTITUTE = "substitute"
    SUBSTITUTE_PREFERENCE = "substitute_preference"


class Suggestion(FrozenSchema):
    """One tip shown to the shopper."""

    type: SuggestionType
    item: str
    brand: str = ""
    message: str
    score: Optional[int] = Field(None, description="Ranking score, product tips only")

    @property
    def dedupe_key(self) -> str:
        return f"{self.type.value}:{self.item}:{self.brand}".lower()


class SuggestionReport(BaseSchema):
    """Suggestions grouped by source, plus the combined list."""

    product_recommendations: list[Suggestion] = Field(default_factory=list)
    seasonal_recommendations: list[Suggestion] = Field(default_factory=list)
    substitute_recommendations: list[Suggestion] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.suggestions)
