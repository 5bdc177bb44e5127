"""
Unit tests for SubstituteService.

Run: pytest tests/unit/test_substitute_service.py -v
"""

import pytest

from exceptions import ConfirmationNotFoundError, InvalidSelectionError
from models.command import Action, ListMode, ParsedCommand
from services.catalog_service import CatalogRepository, CatalogService
from services.substitute_service import (
    SubstituteService,
    preferred_alternatives,
    score_substitute,
)
from tests.factories import CatalogEntryFactory


@pytest.fixture
def service(catalog_service, substitute_store, shopping_list) -> SubstituteService:
    return SubstituteService(catalog_service, substitute_store, shopping_list, max_options=12)


class TestScoring:
    """Tests for the lexical score helpers."""

    def test_score_substitute_exact_name_same_brand(self):
        entry = CatalogEntryFactory.build(name="Butter", brand="Amul")

        # bias + exact 8 + contains 5 + contained 4 + brand 3 + stock 1
        assert score_substitute(entry, "butter", "amul", 75) == 96

    def test_score_substitute_unrelated(self):
        entry = CatalogEntryFactory.build(name="Ghee", brand="Amul", in_stock=False)

        assert score_substitute(entry, "Butter", "", 40) == 40

    def test_preferred_alternatives_matches_partial_key(self):
        prefs = {"mango": ["Bananas"], "milk": ["Oat Milk"]}

        assert preferred_alternatives(prefs, "Mangoes") == ["Bananas"]
        assert preferred_alternatives(prefs, "bread") == []


class TestSubstitutePropose:
    """Tests for SubstituteService.propose()"""

    def test_available_item_needs_no_substitute(self, service):
        assert service.propose("toothpaste") is None

    def test_out_of_stock_item_uses_catalog_substitute(self, service):
        """Should suggest the declared substitute for out-of-stock mangoes."""
        proposal = service.propose("mangoes", quantity=2, unit="kg")

        assert proposal is not None
        assert proposal.suggested_alternative.sku == "PROD-APPLES"
        assert proposal.requested_item.name == "Mangoes"
        assert proposal.requested_item.brand == "Generic"
        assert proposal.requested_item.exists_in_catalog is True
        assert proposal.requested_item.in_stock is False
        assert proposal.suggested_alternative.pricing.line_total_price == 6.40

    def test_preferred_alternative_ranked_first(self, service, shopping_list):
        """Should rank the user's preference above the catalog substitute."""
        # Arrange
        shopping_list.set_preference("butter", ["Ghee"])

        # Act
        proposal = service.propose("butter")

        # Assert
        skus = [option.sku for option in proposal.options]
        assert skus[0] == "DAIRY-GHEE"
        assert "DAIRY-MARGARINE" in skus
        assert skus.index("DAIRY-GHEE") < skus.index("DAIRY-MARGARINE")

    def test_explicit_preferences_override_store(self, service):
        proposal = service.propose("mangoes", preferences={"mango": ["Bananas"]})

        assert proposal.options[0].sku == "PROD-BANANAS"
        assert proposal.options[1].sku == "PROD-APPLES"

    def test_category_fallback_included(self, service):
        """Should add a same-category in-stock entry."""
        proposal = service.propose("butter")

        skus = [option.sku for option in proposal.options]
        assert skus == ["DAIRY-MARGARINE", "DAIRY-MILK-AMUL"]

    def test_unknown_item_returns_none(self, service):
        assert service.propose("papaya") is None

    def test_cap_on_options(self, catalog_service, substitute_store, shopping_list):
        service = SubstituteService(catalog_service, substitute_store, shopping_list, max_options=1)
        shopping_list.set_preference("butter", ["Ghee"])

        proposal = service.propose("butter")

        assert [option.sku for option in proposal.options] == ["DAIRY-GHEE"]

    def test_equal_scores_order_by_line_total_then_name(self, substitute_store):
        """Should put the cheaper option first on equal scores."""
        repository = CatalogRepository([
            CatalogEntryFactory.create(sku="PB-OUT", name="Crunchy Peanut Butter", brand="Jif", price=4.5,
                                       in_stock=False, substitutes=["Peanut Butter"]),
            CatalogEntryFactory.create(sku="PB-B", name="Peanut Butter", brand="Skippy", price=4.0),
            CatalogEntryFactory.create(sku="PB-A", name="Peanut Butter", brand="Reese", price=3.0),
            CatalogEntryFactory.create(sku="PB-C", name="Peanut Butter", brand="Adams", price=4.0),
        ])
        service = SubstituteService(CatalogService(repository), substitute_store)

        proposal = service.propose("crunchy peanut butter", preferences={})

        assert [option.sku for option in proposal.options] == ["PB-A", "PB-C", "PB-B"]

    def test_propose_for_keeps_mode(self, service):
        parsed = ParsedCommand(action=Action.UPDATE, item="mangoes", quantity=3, unit="kg")

        proposal = service.propose_for(parsed)

        assert proposal.mode == ListMode.SET
        assert proposal.quantity == 3
        assert proposal.unit == "kg"


class TestSubstituteConfirmation:
    """Tests for the substitute token lifecycle."""

    def test_consume_defaults_to_suggestion(self, service):
        confirmation = service.create_confirmation(service.propose("mangoes"))

        proposal, option = service.consume_confirmation(confirmation.token)

        assert option.sku == proposal.suggested_alternative.sku

    def test_consume_with_selected_sku(self, service, shopping_list):
        shopping_list.set_preference("butter", ["Ghee"])
        confirmation = service.create_confirmation(service.propose("butter"))

        _, option = service.consume_confirmation(confirmation.token, "DAIRY-MARGARINE")

        assert option.sku == "DAIRY-MARGARINE"

    def test_invalid_sku_keeps_token(self, service):
        confirmation = service.create_confirmation(service.propose("mangoes"))

        with pytest.raises(InvalidSelectionError) as exc_info:
            service.consume_confirmation(confirmation.token, "NOPE")

        assert exc_info.value.message == "Selected substitute option is invalid"
        _, option = service.consume_confirmation(confirmation.token)
        assert option.sku == "PROD-APPLES"

    def test_reject_then_consume(self, service):
        confirmation = service.create_confirmation(service.propose("mangoes"))

        service.reject_confirmation(confirmation.token)

        with pytest.raises(ConfirmationNotFoundError):
            service.consume_confirmation(confirmation.token)

    def test_expired_token(self, service, clock):
        confirmation = service.create_confirmation(service.propose("mangoes"))
        clock.advance(minutes=10)

        with pytest.raises(ConfirmationNotFoundError):
            service.consume_confirmation(confirmation.token)

    def test_uses_injected_empty_store(self, catalog_service, substitute_store):
        """An empty store passed in is kept, not replaced by a default one."""
        service = SubstituteService(catalog_service, substitute_store)

        assert len(substitute_store) == 0
        assert service.store is substitute_store
