"""
Voice command orchestration.

Runs a transcript through the parser and applies the result to the
shopping list. Ambiguous add/update requests stop at a brand selection or
substitute proposal and resume through the confirm_* methods.
"""

from typing import Optional
import structlog

from exceptions import CatalogItemNotFoundError, ItemUnavailableError, MissingFieldError
from models.command import Action, ListMode, ParsedCommand
from models.proposal import ProposalOption, SubstituteProposal
from models.shopping_list import CommandResult
from services.brand_selection_service import BrandSelectionService
from services.catalog_service import CatalogService, get_catalog_service
from services.generative_parser_service import GenerativeParserService, get_generative_parser_service
from services.shopping_list_service import ShoppingListService, get_shopping_list_service
from services.substitute_service import SubstituteService

logger = structlog.get_logger(__name__)


def _fmt(value) -> str:
    """Render a quantity without a trailing .0"""
    if value is None:
        return ""
    return f"{float(value):g}"


def substitute_prompt(proposal: SubstituteProposal) -> str:
    alternative = proposal.suggested_alternative
    return (
        f"{proposal.requested_item.name} is currently unavailable. "
        f"I found {len(proposal.options) or 1} alternative option(s). "
        f"Do you want to add {alternative.name} by {alternative.brand}, or pick another alternative?"
    )


class CommandService:
    """
    Executes parsed voice commands against the catalog and shopping list.
    """

    def __init__(
        self,
        parser: Optional[GenerativeParserService] = None,
        catalog_service: Optional[CatalogService] = None,
        shopping_list: Optional[ShoppingListService] = None,
        brand_selection: Optional[BrandSelectionService] = None,
        substitutes: Optional[SubstituteService] = None
    ):
        self.parser = parser or get_generative_parser_service()
        self.catalog_service = catalog_service or get_catalog_service()
        self.shopping_list = shopping_list or get_shopping_list_service()
        self.brand_selection = brand_selection or BrandSelectionService(
            self.catalog_service, list_store=self.shopping_list
        )
        self.substitutes = substitutes or SubstituteService(
            self.catalog_service, list_store=self.shopping_list
        )

    def parse(self, transcript: Optional[str], locale: str = "en-US") -> ParsedCommand:
        """Parse only, without touching the list."""
        if not transcript or not transcript.strip():
            raise MissingFieldError("transcript")
        return self.parser.parse(transcript, locale)

    def execute(self, transcript: Optional[str], locale: str = "en-US") -> CommandResult:
        """
        Parse a transcript and act on it.

        Raises:
            MissingFieldError: Empty transcript, or no item on a non-search command
        """
        parsed = self.parse(transcript, locale)

        if not parsed.item and parsed.action != Action.SEARCH:
            raise MissingFieldError("item", "Could not detect an item in voice command")

        logger.info(
            "command_executing",
            action=parsed.action.value,
            item=parsed.item,
            brand=parsed.brand,
            source=parsed.source.value
        )

        if parsed.action == Action.REMOVE:
            return self._remove(parsed)
        if parsed.action == Action.SEARCH:
            return self._search(parsed)

        proposal = self.brand_selection.propose_for(parsed)
        if proposal is not None:
            confirmation = self.brand_selection.create_confirmation(proposal, parsed, parsed.mode)
            return CommandResult(
                action=parsed.action,
                status_code=202,
                requires_brand_selection=True,
                message=f"Multiple brands are available for {parsed.item}. "
                        "Please select a brand and price to continue.",
                brand_selection=confirmation,
                parsed=parsed,
            )

        return self._add_or_update(parsed, parsed.mode)

    # ===================
    # CONFIRMATIONS
    # ===================

    def confirm_brand_selection(
        self,
        token: Optional[str],
        selected_sku: Optional[str] = None,
        cancel: bool = False
    ) -> CommandResult:
        """
        Resume a command once the user picked a brand, or drop it.

        The chosen option's name, brand and size replace the parsed ones
        before the add/update continues (including the substitute check).
        """
        if cancel:
            self.brand_selection.reject_confirmation(token)
            return CommandResult(
                action=Action.ADD,
                confirmed=False,
                message="No brand was selected. Nothing was added.",
            )

        pending, option = self.brand_selection.consume_confirmation(token, selected_sku)
        size = option.entry.size or pending.parsed.size or ""
        parsed = pending.parsed.model_copy(update={
            "item": option.name,
            "brand": option.brand,
            "size": size,
            "filters": pending.parsed.filters.model_copy(update={
                "query": option.name,
                "brand": option.brand,
                "size": option.entry.size,
            }),
        })

        logger.info("brand_selected", token=token, sku=option.sku)
        result = self._add_or_update(parsed, pending.mode)
        return result.model_copy(update={"selected_option": option})

    def confirm_substitute(
        self,
        token: Optional[str],
        approve: bool = False,
        selected_sku: Optional[str] = None
    ) -> CommandResult:
        """Apply the suggested (or selected) alternative, or drop the proposal."""
        if not approve:
            self.substitutes.reject_confirmation(token)
            return CommandResult(
                action=Action.ADD,
                confirmed=False,
                message="No problem, I did not add the alternative item.",
            )

        proposal, option = self.substitutes.consume_confirmation(token, selected_sku)
        message = f"Added alternative {option.name} by {option.brand}."

        if proposal.mode == ListMode.SET:
            result = self.shopping_list.set_item_quantity(
                option.name, option.brand, proposal.quantity, proposal.unit, option.entry.size
            )
            items = result.items
            action = Action.UPDATE
        else:
            items = self.shopping_list.add_item(
                option.name, option.brand, proposal.quantity, proposal.unit,
                option.entry.size, ListMode.INCREMENT
            )
            action = Action.ADD

        logger.info("substitute_applied", token=token, sku=option.sku, mode=proposal.mode.value)
        return CommandResult(
            action=action,
            confirmed=True,
            message=message,
            items=items,
            applied_item=option,
        )

    # ===================
    # ACTIONS
    # ===================

    def _remove(self, parsed: ParsedCommand) -> CommandResult:
        result = self.shopping_list.remove_item(
            parsed.item,
            parsed.brand,
            parsed.quantity if parsed.quantity_provided else None,
            parsed.unit,
        )
        message = (
            f"Updated list after removing {parsed.item}"
            if result.removed
            else f"{parsed.item} was not in your list"
        )
        return CommandResult(action=parsed.action, message=message, items=result.items, parsed=parsed)

    def _search(self, parsed: ParsedCommand) -> CommandResult:
        filters = parsed.filters
        results = self.catalog_service.search(
            query=filters.query,
            brand=filters.brand,
            size=filters.size,
            max_price=filters.max_price,
            min_price=filters.min_price,
        )
        query_text = (
            filters.query
            or " ".join(part for part in (parsed.brand, parsed.item, parsed.size) if part)
            or "your query"
        )
        message = (
            f"Found {len(results)} matching product(s)."
            if results
            else f'No products found for "{query_text}".'
        )
        return CommandResult(
            action=parsed.action,
            message=message,
            found=bool(results),
            results=results,
            parsed=parsed,
        )

    def _add_or_update(self, parsed: ParsedCommand, mode: ListMode) -> CommandResult:
        best = self.catalog_service.best_match(parsed.item, parsed.brand, parsed.size)

        proposal = self.substitutes.propose_for(parsed)
        if proposal is not None:
            confirmation = self.substitutes.create_confirmation(proposal)
            return CommandResult(
                action=parsed.action,
                status_code=202,
                requires_confirmation=True,
                message=substitute_prompt(proposal),
                confirmation=confirmation,
                parsed=parsed,
            )

        if best is None or not best.in_stock:
            error = CatalogItemNotFoundError(parsed.item) if best is None else ItemUnavailableError(best.name, best.sku)
            logger.info("command_rejected", item=parsed.item, code=error.code)
            return CommandResult(
                action=parsed.action,
                rejected=True,
                message=error.message,
                error=error.to_dict(),
                items=self.shopping_list.list_items(),
                parsed=parsed,
            )

        name = best.name or parsed.item
        brand = best.brand or parsed.brand
        brand_tag = f" ({brand})" if brand else ""

        if mode == ListMode.SET:
            result = self.shopping_list.set_item_quantity(
                parsed.item, parsed.brand, parsed.quantity, parsed.unit, parsed.size
            )
            verb = "Added" if result.created else "Updated"
            joiner = "with quantity" if result.created else "quantity to"
            return CommandResult(
                action=parsed.action,
                message=f"{verb} {name}{brand_tag} {joiner} {_fmt(parsed.quantity)}",
                items=result.items,
                parsed=parsed,
            )

        items = self.shopping_list.add_item(
            parsed.item, parsed.brand, parsed.quantity, parsed.unit, parsed.size, ListMode.INCREMENT
        )
        return CommandResult(
            action=parsed.action,
            status_code=201,
            message=f"Added {_fmt(parsed.quantity)} {parsed.unit} of {name}{brand_tag}",
            items=items,
            parsed=parsed,
        )


# Singleton instance
_command: Optional[CommandService] = None


def get_command_service() -> CommandService:
    """Get or create CommandService instance."""
    global _command
    if _command is None:
        _command = CommandService()
    return _command
