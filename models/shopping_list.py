"""
Shopping list and command result schemas.
"""

from pydantic import Field
from typing import Any, Optional
from datetime import datetime

from models.base import BaseSchema, TimestampMixin
from models.catalog import SearchResult
from models.command import Action, ParsedCommand
from models.pricing import PricingMode
from models.proposal import (
    BrandSelectionConfirmation,
    ProposalOption,
    SubstituteConfirmation,
)


class ListLine(BaseSchema, TimestampMixin):
    """
    One line on the shopping list.

    The pricing fields mirror the latest PricingSnapshot and are rewritten
    on every quantity or price change.
    """

    id: str
    name: str
    brand: str = "Generic"
    quantity: float = Field(..., gt=0)
    unit: str = "unit"
    size: str = ""
    category: str = "others"
    in_stock: bool = True
    last_known_price: Optional[float] = None
    line_total_price: Optional[float] = None
    billable_quantity: Optional[float] = None
    billable_unit: str = ""
    pricing_mode: PricingMode = PricingMode.UNKNOWN


class HistoryEntry(BaseSchema):
    """Audit record of a list mutation."""

    name: str
    brand: str = "Generic"
    quantity: float
    unit: str = "unit"
    action: str
    timestamp: datetime


class RemoveResult(BaseSchema):
    removed: bool
    items: list[ListLine] = Field(default_factory=list)


class SetQuantityResult(BaseSchema):
    created: bool
    item: Optional[ListLine] = None
    items: list[ListLine] = Field(default_factory=list)


class CommandResult(BaseSchema):
    """Outcome of executing or confirming a command."""

    action: Action
    message: str
    status_code: int = 200
    parsed: Optional[ParsedCommand] = None
    items: list[ListLine] = Field(default_factory=list)
    results: list[SearchResult] = Field(default_factory=list)
    found: Optional[bool] = None
    rejected: bool = False
    error: Optional[dict[str, Any]] = None
    requires_brand_selection: bool = False
    brand_selection: Optional[BrandSelectionConfirmation] = None
    requires_confirmation: bool = False
    confirmation: Optional[SubstituteConfirmation] = None
    confirmed: Optional[bool] = None
    selected_option: Optional[ProposalOption] = None
    applied_item: Optional[ProposalOption] = None
