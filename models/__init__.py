"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    FrozenSchema,
    TimestampMixin,
)
from models.catalog import (
    CatalogEntry,
    CatalogFilters,
    SearchResult,
)
from models.command import (
    Action,
    Confidence,
    ParseSource,
    ListMode,
    CANONICAL_UNITS,
    CommandFilters,
    ParsedCommand,
)
from models.pricing import (
    PricingMode,
    UnitFamily,
    SizeDescriptor,
    PricingSnapshot,
    MergedQuantity,
)
from models.proposal import (
    ProposalOption,
    BrandSelectionProposal,
    RequestedItem,
    SubstituteProposal,
    PendingBrandSelection,
    BrandSelectionConfirmation,
    SubstituteConfirmation,
)
from models.suggestion import (
    SuggestionType,
    Suggestion,
    SuggestionReport,
)
from models.shopping_list import (
    ListLine,
    HistoryEntry,
    RemoveResult,
    SetQuantityResult,
    CommandResult,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",
    "TimestampMixin",

    # Catalog
    "CatalogEntry",
    "CatalogFilters",
    "SearchResult",

    # Commands
    "Action",
    "Confidence",
    "ParseSource",
    "ListMode",
    "CANONICAL_UNITS",
    "CommandFilters",
    "ParsedCommand",

    # Pricing
    "PricingMode",
    "UnitFamily",
    "SizeDescriptor",
    "PricingSnapshot",
    "MergedQuantity",

    # Proposals
    "ProposalOption",
    "BrandSelectionProposal",
    "RequestedItem",
    "SubstituteProposal",
    "PendingBrandSelection",
    "BrandSelectionConfirmation",
    "SubstituteConfirmation",

    # Suggestions
    "SuggestionType",
    "Suggestion",
    "SuggestionReport",

    # Shopping list
    "ListLine",
    "HistoryEntry",
    "RemoveResult",
    "SetQuantityResult",
    "CommandResult",
]
