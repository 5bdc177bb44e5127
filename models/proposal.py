"""
Ambiguity proposal schemas (brand selection and substitutes).
"""

from pydantic import Field
from typing import Optional
from datetime import datetime

from models.base import FrozenSchema
from models.catalog import CatalogEntry
from models.command import Action, ListMode, ParsedCommand
from models.pricing import PricingSnapshot


class ProposalOption(FrozenSchema):
    """A catalog entry offered to the user, priced for the requested quantity."""

    entry: CatalogEntry
    pricing: PricingSnapshot
    unit_price: Optional[float] = None
    unit_price_label: str = "-"
    in_list_quantity: Optional[float] = Field(
        None,
        description="Quantity of this product already on the shopping list"
    )
    in_list_unit: str = ""

    @property
    def sku(self) -> str:
        return self.entry.sku

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def brand(self) -> str:
        return self.entry.brand

    @property
    def line_total_label(self) -> str:
        return self.pricing.line_total_label


class BrandSelectionProposal(FrozenSchema):
    """Several brands match an unbranded request."""

    action: Action = Action.ADD
    requested_item: str
    quantity: float = 1
    unit: str = "unit"
    size: str = ""
    options: tuple[ProposalOption, ...] = ()


class RequestedItem(FrozenSchema):
    """What the user asked for, resolved against the catalog where possible."""

    name: str
    brand: str = "Generic"
    size: str = ""
    exists_in_catalog: bool = False
    in_stock: bool = False


class SubstituteProposal(FrozenSchema):
    """Requested item is missing or out of stock; alternatives are offered."""

    requested_item: RequestedItem
    suggested_alternative: ProposalOption
    options: tuple[ProposalOption, ...] = ()
    quantity: float = 1
    unit: str = "unit"
    mode: ListMode = ListMode.INCREMENT


class PendingBrandSelection(FrozenSchema):
    """Payload held behind a brand selection token."""

    proposal: BrandSelectionProposal
    parsed: ParsedCommand
    mode: ListMode = ListMode.INCREMENT


class BrandSelectionConfirmation(FrozenSchema):
    """Token handed to the caller for a brand selection."""

    token: str
    expires_at: datetime
    proposal: BrandSelectionProposal


class SubstituteConfirmation(FrozenSchema):
    """Token handed to the caller for a substitute proposal."""

    token: str
    expires_at: datetime
    proposal: SubstituteProposal
