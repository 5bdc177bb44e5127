"""
Brand selection for unbranded requests.

When an add/update names an item but no brand and the in-stock matches
span several brands, the user is asked to pick one. The proposal is held
behind a single-use token until it is confirmed, rejected or expires.
"""

from typing import Optional
import structlog

from config import settings
from exceptions import InvalidSelectionError, MissingFieldError
from models.command import Action, ListMode, ParsedCommand
from models.proposal import (
    BrandSelectionConfirmation,
    BrandSelectionProposal,
    PendingBrandSelection,
    ProposalOption,
)
from services.catalog_service import CatalogService, get_catalog_service
from services.confirmation_store_service import ConfirmationStore
from services.proposal_options import build_option
from services.shopping_list_service import ListStore
from utils.text_utils import normalize_text

logger = structlog.get_logger(__name__)


def score_brand_option(option: ProposalOption, query: str, size: str) -> float:
    """
    Rank an option against the requested item.

    +6 exact name, +3 name contains query, +2 query contains name,
    +2 size hit, +1 in stock, plus a sub-point tie-break favouring
    shorter brand names.
    """
    q = normalize_text(query)
    s = normalize_text(size)
    name = normalize_text(option.entry.name)
    brand = normalize_text(option.entry.brand)
    option_size = normalize_text(option.entry.size)

    score = 0.0
    if name == q:
        score += 6
    if q in name:
        score += 3
    if name in q:
        score += 2
    if s and s in option_size:
        score += 2
    if option.entry.in_stock:
        score += 1
    score += max(0.0, 1 - len(brand) / 1000)
    return score


class BrandSelectionService:
    """
    Builds brand selection proposals and manages their tokens.
    """

    def __init__(
        self,
        catalog_service: Optional[CatalogService] = None,
        store: Optional[ConfirmationStore[PendingBrandSelection]] = None,
        list_store: Optional[ListStore] = None,
        max_options: Optional[int] = None
    ):
        self.catalog_service = catalog_service or get_catalog_service()
        if store is None:
            store = ConfirmationStore("Brand selection", settings.confirmation_ttl_minutes)
        self.store = store
        self.list_store = list_store
        self.max_options = max_options if max_options is not None else settings.brand_selection_max_options

    def propose(
        self,
        item: str,
        brand: str = "",
        size: str = "",
        quantity=1,
        unit: str = "unit",
        action: Action = Action.ADD
    ) -> Optional[BrandSelectionProposal]:
        """
        Brand options for an unbranded add/update.

        Returns:
            BrandSelectionProposal, or None when the command is not an
            add/update, already names a brand, or fewer than two brands match
        """
        if action not in (Action.ADD, Action.UPDATE) or not item or brand:
            return None

        entries = self.catalog_service.filter(query=item, size=size, in_stock_only=True)
        brands = {normalize_text(entry.brand) for entry in entries}
        if len(brands) <= 1:
            return None

        options = [build_option(entry, quantity, unit, self.list_store) for entry in entries]
        options.sort(key=lambda option: score_brand_option(option, item, size), reverse=True)
        options = options[:self.max_options]

        logger.info(
            "brand_selection_proposed",
            item=item,
            size=size,
            brands=len(brands),
            options=len(options)
        )
        return BrandSelectionProposal(
            action=action,
            requested_item=item,
            quantity=quantity if quantity is not None else 1,
            unit=unit,
            size=size,
            options=tuple(options),
        )

    def propose_for(self, parsed: ParsedCommand) -> Optional[BrandSelectionProposal]:
        """propose() driven by a parsed command."""
        return self.propose(
            item=parsed.item,
            brand=parsed.brand,
            size=parsed.size,
            quantity=parsed.quantity,
            unit=parsed.unit,
            action=parsed.action,
        )

    # ===================
    # CONFIRMATION TOKENS
    # ===================

    def create_confirmation(
        self,
        proposal: BrandSelectionProposal,
        parsed: ParsedCommand,
        mode: ListMode = ListMode.INCREMENT
    ) -> BrandSelectionConfirmation:
        token, expires_at = self.store.create(
            PendingBrandSelection(proposal=proposal, parsed=parsed, mode=mode)
        )
        return BrandSelectionConfirmation(token=token, expires_at=expires_at, proposal=proposal)

    def consume_confirmation(
        self,
        token: str,
        selected_sku: str
    ) -> tuple[PendingBrandSelection, ProposalOption]:
        """
        Take the pending selection and the option the user picked.

        Raises:
            MissingFieldError: Token or sku missing
            InvalidSelectionError: sku not among the proposal's options
                (the token stays pending)
            ConfirmationNotFoundError: Unknown, used or expired token
        """
        if not token:
            raise MissingFieldError("token", "Brand selection token is required")
        if not selected_sku:
            raise MissingFieldError("selected_sku", "Selected SKU is required")

        def find_option(pending: PendingBrandSelection) -> ProposalOption:
            for option in pending.proposal.options:
                if option.sku == selected_sku:
                    return option
            raise InvalidSelectionError(selected_sku, "brand")

        pending = self.store.consume(token, check=find_option)
        return pending, find_option(pending)

    def reject_confirmation(self, token: str) -> None:
        if not token:
            raise MissingFieldError("token", "Brand selection token is required")
        self.store.reject(token)


# Singleton instance
_brand_selection: Optional[BrandSelectionService] = None


def get_brand_selection_service() -> BrandSelectionService:
    """Get or create BrandSelectionService instance."""
    global _brand_selection
    if _brand_selection is None:
        _brand_selection = BrandSelectionService()
    return _brand_selection
