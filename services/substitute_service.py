"""
Substitute proposals for missing or out-of-stock items.

Candidates come from several sources, each with a fixed priority bias:

    90  user's preferred alternatives for this item
    75  substitutes declared on the catalog entry
    85  in-stock matches on name/brand/size (70 if the item is not in the catalog)
    60  name-only matches, only when the item is not in the catalog
    40  first in-stock entry of the same category
    50  last resort: single best filter match on the raw request

Lexical closeness to the request adjusts the bias. Options are deduped by
sku keeping the best score, then ordered by score, line total and name.
"""

from typing import Optional
import structlog

from config import settings
from exceptions import InvalidSelectionError, MissingFieldError
from models.catalog import CatalogEntry
from models.command import ListMode, ParsedCommand
from models.proposal import (
    ProposalOption,
    RequestedItem,
    SubstituteConfirmation,
    SubstituteProposal,
)
from services.catalog_service import CatalogService, get_catalog_service
from services.confirmation_store_service import ConfirmationStore
from services.proposal_options import build_option
from services.shopping_list_service import ListStore
from utils.text_utils import normalize_text

logger = structlog.get_logger(__name__)

PREFERENCE_BIAS = 90
DIRECT_MATCH_BIAS = 85
CATALOG_SUBSTITUTE_BIAS = 75
UNKNOWN_ITEM_MATCH_BIAS = 70
NAME_ONLY_BIAS = 60
LAST_RESORT_BIAS = 50
CATEGORY_BIAS = 40

# Matches taken per candidate source
PER_CANDIDATE_LIMIT = 4
PER_QUERY_LIMIT = 8


def score_substitute(entry: CatalogEntry, requested_name: str, requested_brand: str, bias: int) -> int:
    """
    Source bias plus lexical closeness.

    +8 exact name, +5 name contains request, +4 request contains name,
    +3 same brand, +1 in stock.
    """
    name = normalize_text(entry.name)
    brand = normalize_text(entry.brand)
    req_name = normalize_text(requested_name)
    req_brand = normalize_text(requested_brand)

    score = bias
    if name == req_name:
        score += 8
    if req_name in name:
        score += 5
    if name in req_name:
        score += 4
    if req_brand and brand == req_brand:
        score += 3
    if entry.in_stock:
        score += 1
    return score


def preferred_alternatives(preferences: dict[str, list[str]], requested_name: str) -> list[str]:
    """Alternatives stored under the first preference key that overlaps the request."""
    requested = normalize_text(requested_name)
    for key, alternatives in (preferences or {}).items():
        normalized_key = normalize_text(key)
        if normalized_key and (
            normalized_key == requested or requested in normalized_key or normalized_key in requested
        ):
            return list(alternatives or [])
    return []


class SubstituteService:
    """
    Builds substitute proposals and manages their tokens.
    """

    def __init__(
        self,
        catalog_service: Optional[CatalogService] = None,
        store: Optional[ConfirmationStore[SubstituteProposal]] = None,
        list_store: Optional[ListStore] = None,
        max_options: Optional[int] = None
    ):
        self.catalog_service = catalog_service or get_catalog_service()
        if store is None:
            store = ConfirmationStore("Confirmation", settings.confirmation_ttl_minutes)
        self.store = store
        self.list_store = list_store
        self.max_options = max_options if max_options is not None else settings.substitute_max_options

    def propose(
        self,
        item: str,
        brand: str = "",
        size: str = "",
        quantity=1,
        unit: str = "unit",
        mode: ListMode = ListMode.INCREMENT,
        preferences: Optional[dict[str, list[str]]] = None
    ) -> Optional[SubstituteProposal]:
        """
        Alternatives for an item that is missing or out of stock.

        Args:
            preferences: Item → preferred alternative names; read from the
                list store when not given

        Returns:
            SubstituteProposal, or None when the item is available or no
            in-stock alternative exists
        """
        requested = self.catalog_service.best_match(item, brand, size)
        if requested is not None and requested.in_stock:
            return None

        if preferences is None:
            preferences = self.list_store.get_preferences() if self.list_store is not None else {}

        requested_name = requested.name if requested else item
        requested_brand = (requested.brand if requested else "") or brand or ""

        scored: dict[str, tuple[int, ProposalOption]] = {}

        def put(entries: list[CatalogEntry], bias: int) -> None:
            for entry in entries:
                if not entry.in_stock:
                    continue
                score = score_substitute(entry, requested_name, requested_brand, bias)
                existing = scored.get(entry.sku)
                if existing is None or score > existing[0]:
                    scored[entry.sku] = (score, build_option(entry, quantity, unit, self.list_store))

        for candidate in preferred_alternatives(preferences, requested_name):
            put(self.catalog_service.filter(query=candidate, in_stock_only=True)[:PER_CANDIDATE_LIMIT],
                PREFERENCE_BIAS)

        for candidate in (requested.substitutes if requested else ()):
            put(self.catalog_service.filter(query=candidate, in_stock_only=True)[:PER_CANDIDATE_LIMIT],
                CATALOG_SUBSTITUTE_BIAS)

        direct = self.catalog_service.filter(
            query=requested_name or item, brand=brand, size=size, in_stock_only=True
        )[:PER_QUERY_LIMIT]
        put(direct, DIRECT_MATCH_BIAS if requested else UNKNOWN_ITEM_MATCH_BIAS)

        if requested is None:
            put(self.catalog_service.filter(query=item, in_stock_only=True)[:PER_QUERY_LIMIT], NAME_ONLY_BIAS)

        category_entry = self._category_fallback(requested)
        if category_entry is not None:
            put([category_entry], CATEGORY_BIAS)

        ranked = sorted(scored.values(), key=self._sort_key)
        options = [option for _, option in ranked][:self.max_options]

        if not options:
            last_resort = self.catalog_service.filter(query=item, in_stock_only=True)[:1]
            options = [build_option(entry, quantity, unit, self.list_store) for entry in last_resort]

        if not options:
            logger.info("substitute_not_found", item=item, brand=brand)
            return None

        proposal = SubstituteProposal(
            requested_item=RequestedItem(
                name=requested_name,
                brand=requested_brand or "Generic",
                size=(requested.size if requested else "") or size or "",
                exists_in_catalog=requested is not None,
                in_stock=requested.in_stock if requested else False,
            ),
            suggested_alternative=options[0],
            options=tuple(options),
            quantity=quantity if quantity is not None else 1,
            unit=unit,
            mode=mode,
        )

        logger.info(
            "substitute_proposed",
            item=item,
            exists_in_catalog=requested is not None,
            options=len(options),
            suggested=options[0].sku
        )
        return proposal

    def propose_for(
        self,
        parsed: ParsedCommand,
        preferences: Optional[dict[str, list[str]]] = None
    ) -> Optional[SubstituteProposal]:
        """propose() driven by a parsed command."""
        return self.propose(
            item=parsed.item,
            brand=parsed.brand,
            size=parsed.size,
            quantity=parsed.quantity,
            unit=parsed.unit,
            mode=parsed.mode,
            preferences=preferences,
        )

    @staticmethod
    def _sort_key(row: tuple[int, ProposalOption]):
        score, option = row
        total = option.pricing.line_total_price
        return (
            -score,
            total if total is not None else float("inf"),
            f"{option.entry.name}|{option.entry.brand}".lower(),
        )

    def _category_fallback(self, requested: Optional[CatalogEntry]) -> Optional[CatalogEntry]:
        if requested is None or not requested.category:
            return None
        requested_name = normalize_text(requested.name)
        return next(
            (
                entry for entry in self.catalog_service.repository.snapshot
                if entry.category == requested.category
                and entry.in_stock
                and normalize_text(entry.name) != requested_name
            ),
            None
        )

    # ===================
    # CONFIRMATION TOKENS
    # ===================

    def create_confirmation(self, proposal: SubstituteProposal) -> SubstituteConfirmation:
        token, expires_at = self.store.create(proposal)
        return SubstituteConfirmation(token=token, expires_at=expires_at, proposal=proposal)

    def consume_confirmation(
        self,
        token: str,
        selected_sku: Optional[str] = None
    ) -> tuple[SubstituteProposal, ProposalOption]:
        """
        Take the pending proposal and the chosen option.

        Without a selected sku the suggested alternative is used.

        Raises:
            MissingFieldError: Token missing
            InvalidSelectionError: sku not among the proposal's options
                (the token stays pending)
            ConfirmationNotFoundError: Unknown, used or expired token
        """
        if not token:
            raise MissingFieldError("token", "Confirmation token is required")

        def pick(proposal: SubstituteProposal) -> ProposalOption:
            if not selected_sku:
                return proposal.suggested_alternative
            for option in proposal.options:
                if option.sku == selected_sku:
                    return option
            raise InvalidSelectionError(selected_sku, "substitute")

        proposal = self.store.consume(token, check=pick)
        return proposal, pick(proposal)

    def reject_confirmation(self, token: str) -> None:
        if not token:
            raise MissingFieldError("token", "Confirmation token is required")
        self.store.reject(token)


# Singleton instance
_substitute: Optional[SubstituteService] = None


def get_substitute_service() -> SubstituteService:
    """Get or create SubstituteService instance."""
    global _substitute
    if _substitute is None:
        _substitute = SubstituteService()
    return _substitute
