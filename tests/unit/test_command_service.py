"""
Unit tests for CommandService orchestration.

Run: pytest tests/unit/test_command_service.py -v
"""

import pytest
from unittest.mock import MagicMock

from exceptions import ConfirmationNotFoundError, MissingFieldError
from models.command import Action
from services.brand_selection_service import BrandSelectionService
from services.catalog_service import CatalogRepository, CatalogService
from services.command_parser_service import CommandParserService
from services.command_service import CommandService
from services.confirmation_store_service import ConfirmationStore
from services.generative_parser_service import GenerativeParserService
from services.shopping_list_service import ShoppingListService
from services.substitute_service import SubstituteService
from tests.factories import CatalogEntryFactory


def build_command_service(catalog_service: CatalogService, clock) -> CommandService:
    """Wire a CommandService whose generator never returns usable JSON."""
    client = MagicMock()
    client.complete.return_value = ""
    shopping_list = ShoppingListService(catalog_service, clock=clock)
    return CommandService(
        parser=GenerativeParserService(CommandParserService(catalog_service, ["hi", "es"]), client=client),
        catalog_service=catalog_service,
        shopping_list=shopping_list,
        brand_selection=BrandSelectionService(
            catalog_service, ConfirmationStore("Brand selection", clock=clock), shopping_list
        ),
        substitutes=SubstituteService(
            catalog_service, ConfirmationStore("Confirmation", clock=clock), shopping_list
        ),
    )


@pytest.fixture
def service(catalog_service, clock) -> CommandService:
    return build_command_service(catalog_service, clock)


class TestExecuteAdd:
    """Tests for add/update commands."""

    def test_add_in_stock_item(self, service):
        # Act
        result = service.execute("add 2 kg apples", "en-US")

        # Assert
        assert result.status_code == 201
        assert result.message == "Added 2 kg of Apples"
        assert [line.name for line in result.items] == ["Apples"]
        assert result.parsed.item == "apples"

    def test_hindi_add(self, service):
        result = service.execute("मुझे 5 किलो सेब चाहिए", "hi-IN")

        assert result.message == "Added 5 kg of Apples"
        assert result.items[0].quantity == 5

    def test_update_existing_item(self, service):
        service.execute("add 2 kg apples", "en-US")

        result = service.execute("change apples to 5 kg", "en-US")

        assert result.action == Action.UPDATE
        assert result.message == "Updated Apples quantity to 5"
        assert result.items[0].quantity == 5

    def test_unknown_item_rejected(self, service):
        """Should reject items with no catalog match."""
        result = service.execute("add samsung galaxy phone", "en-US")

        assert result.rejected is True
        assert result.message == 'Item "samsung galaxy phone" was not found in catalog stock. Try another item or brand.'
        assert result.error["error"]["code"] == "CATALOG_ITEM_NOT_FOUND"
        assert result.items == []

    def test_out_of_stock_without_substitute_rejected(self, clock):
        repository = CatalogRepository([
            CatalogEntryFactory.create(sku="SAFFRON", name="Saffron", brand="Kesar", size="1g", price=9.99,
                                       category="spices", in_stock=False),
        ])
        service = build_command_service(CatalogService(repository), clock)

        result = service.execute("add saffron", "en-US")

        assert result.rejected is True
        assert result.message == '"Saffron" is currently out of stock and no suitable alternatives were found.'
        assert result.error["error"]["code"] == "ITEM_UNAVAILABLE"

    def test_missing_item_raises(self, service):
        with pytest.raises(MissingFieldError) as exc_info:
            service.execute("add please", "en-US")

        assert exc_info.value.code == "ITEM_REQUIRED"

    def test_empty_transcript_raises(self, service):
        with pytest.raises(MissingFieldError) as exc_info:
            service.execute("  ", "en-US")

        assert exc_info.value.code == "TRANSCRIPT_REQUIRED"


class TestExecuteRemoveAndSearch:
    """Tests for remove and search commands."""

    def test_remove_existing(self, service):
        service.execute("add 2 kg apples", "en-US")

        result = service.execute("remove apples", "en-US")

        assert result.message == "Updated list after removing apples"
        assert result.items == []

    def test_remove_missing(self, service):
        result = service.execute("remove bananas", "en-US")

        assert result.message == "bananas was not in your list"

    def test_search_with_price_filter(self, service):
        result = service.execute("find toothpaste under 5", "en-US")

        assert result.found is True
        assert result.message == "Found 2 matching product(s)."
        assert {r.entry.sku for r in result.results} == {"CARE-TP-COLGATE", "CARE-TP-CREST"}

    def test_search_no_results(self, service):
        result = service.execute("find caviar", "en-US")

        assert result.found is False
        assert result.message == 'No products found for "caviar".'


class TestBrandSelectionFlow:
    """Tests for execute() → confirm_brand_selection()"""

    def test_unbranded_request_asks_for_brand(self, service):
        result = service.execute("add toothpaste", "en-US")

        assert result.status_code == 202
        assert result.requires_brand_selection is True
        assert result.message == (
            "Multiple brands are available for toothpaste. Please select a brand and price to continue."
        )
        assert len(result.brand_selection.proposal.options) == 3
        assert result.items == []

    def test_confirm_adds_selected_brand(self, service):
        """Should add the picked option under its catalog name and brand."""
        pending = service.execute("add toothpaste", "en-US")

        result = service.confirm_brand_selection(pending.brand_selection.token, "CARE-TP-COLGATE")

        assert result.message == "Added 1 unit of Toothpaste (Colgate)"
        assert result.selected_option.sku == "CARE-TP-COLGATE"
        assert result.parsed.brand == "Colgate"
        assert result.parsed.size == "100g"
        assert [(line.name, line.brand) for line in result.items] == [("Toothpaste", "Colgate")]

    def test_cancel(self, service):
        pending = service.execute("add toothpaste", "en-US")
        token = pending.brand_selection.token

        result = service.confirm_brand_selection(token, cancel=True)

        assert result.confirmed is False
        assert result.message == "No brand was selected. Nothing was added."
        with pytest.raises(ConfirmationNotFoundError):
            service.confirm_brand_selection(token, "CARE-TP-COLGATE")


class TestSubstituteFlow:
    """Tests for execute() → confirm_substitute()"""

    def test_out_of_stock_item_offers_substitute(self, service):
        result = service.execute("add butter", "en-US")

        assert result.status_code == 202
        assert result.requires_confirmation is True
        assert result.message == (
            "Butter is currently unavailable. I found 2 alternative option(s). "
            "Do you want to add Margarine by Flora, or pick another alternative?"
        )

    def test_approve_adds_alternative(self, service):
        pending = service.execute("add butter", "en-US")

        result = service.confirm_substitute(pending.confirmation.token, approve=True)

        assert result.confirmed is True
        assert result.action == Action.ADD
        assert result.message == "Added alternative Margarine by Flora."
        assert result.applied_item.sku == "DAIRY-MARGARINE"
        assert [line.name for line in result.items] == ["Margarine"]

    def test_approve_update_sets_quantity(self, service):
        pending = service.execute("update butter to 2", "en-US")

        result = service.confirm_substitute(pending.confirmation.token, approve=True, selected_sku="DAIRY-MILK-AMUL")

        assert result.action == Action.UPDATE
        assert result.items[0].name == "Whole Milk"
        assert result.items[0].quantity == 2

    def test_decline(self, service):
        pending = service.execute("add butter", "en-US")

        result = service.confirm_substitute(pending.confirmation.token, approve=False)

        assert result.confirmed is False
        assert result.message == "No problem, I did not add the alternative item."
        assert service.shopping_list.list_items() == []

    def test_double_confirm_not_found(self, service):
        pending = service.execute("add butter", "en-US")
        service.confirm_substitute(pending.confirmation.token, approve=True)

        with pytest.raises(ConfirmationNotFoundError):
            service.confirm_substitute(pending.confirmation.token, approve=True)
