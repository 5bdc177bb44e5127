"""
Unit tests for the rule-based command parser.

Run: pytest tests/unit/test_command_parser_service.py -v
"""

from models.command import Action, Confidence, ParseSource, ParsedCommand, CommandFilters
from services.command_parser_service import (
    apply_alias_corrections,
    detect_action,
    extract_brand,
    extract_price_filters,
    extract_quantity,
    extract_size,
    replace_number_words,
)


class TestExtractionPasses:
    """Tests for the individual extraction helpers."""

    def test_detect_action_defaults_to_add(self):
        """Should default to add for text without a verb."""
        assert detect_action("milk") == Action.ADD

    def test_detect_action_empty_is_unknown(self):
        assert detect_action("") == Action.UNKNOWN

    def test_detect_action_checks_add_first(self):
        """Should prefer add when several verbs are present."""
        assert detect_action("remove the old one and add milk") == Action.ADD

    def test_replace_number_words(self):
        """Should turn number words into digits."""
        assert replace_number_words("add two apples") == "add 2 apples"
        assert replace_number_words("add dos manzanas") == "add 2 manzanas"

    def test_replace_number_words_by_locale(self):
        """Should apply Hindi and Spanish words only for those speakers."""
        assert replace_number_words("do i need milk", "en-US") == "do i need milk"
        assert replace_number_words("do kilo chawal", "hi-IN") == "2 kilo chawal"
        assert replace_number_words("dos manzanas", "en-US") == "dos manzanas"
        assert replace_number_words("dos manzanas", "es-MX") == "2 manzanas"

    def test_replace_number_words_expands_dozens(self):
        assert replace_number_words("add one dozen eggs", "en-US") == "add 12 eggs"
        assert replace_number_words("add 2 dozen eggs", "en-US") == "add 24 eggs"
        assert replace_number_words("add a dozen eggs", "en-US") == "add a 12 eggs"

    def test_extract_quantity_with_unit(self):
        """Should read amount and canonical unit."""
        result = extract_quantity("add 500 grams sugar", Action.ADD)

        assert result.quantity == 500
        assert result.unit == "g"
        assert result.provided is True

    def test_extract_quantity_default(self):
        """Should default to 1 unit when no number is present."""
        result = extract_quantity("add sugar", Action.ADD)

        assert result.quantity == 1
        assert result.unit == "unit"
        assert result.provided is False

    def test_extract_quantity_search_has_no_quantity(self):
        """Should return quantity None for searches."""
        result = extract_quantity("find 2 kg rice", Action.SEARCH)

        assert result.quantity is None
        assert result.provided is False

    def test_extract_size(self):
        """Should compact size labels."""
        assert extract_size("find milk 1.5 liters").value == "1.5l"
        assert extract_size("find rice 500 g").value == "500g"

    def test_extract_price_filters_both_bounds(self):
        """Should read max and min independently."""
        max_price, min_price = extract_price_filters("find rice above 2 under 10")

        assert max_price.value == 10
        assert min_price.value == 2

    def test_extract_price_filters_hindi(self):
        """Should read '50 rupees se kam' as an upper bound."""
        max_price, min_price = extract_price_filters("toothpaste 50 rupees se kam", "hi-IN")

        assert max_price.value == 50
        assert min_price.value is None

    def test_extract_brand_prefers_longest(self):
        """Should prefer the longest known brand."""
        result = extract_brand("add amul gold milk", Action.ADD, ["Amul", "Amul Gold"])

        assert result.value == "Amul Gold"

    def test_extract_brand_is_word_bounded(self):
        """Should not match a brand inside another word."""
        result = extract_brand("add crestline paper", Action.ADD, ["Crest"])

        assert result.value == ""

    def test_extract_brand_from_phrase_on_search(self):
        """Should read 'from X' on searches and cut at filter words."""
        result = extract_brand("find chips from lays under 3", Action.SEARCH, [])

        assert result.value == "lays"


class TestCommandParserService:
    """Tests for CommandParserService.parse()"""

    def test_parse_empty_is_unknown(self, rule_parser):
        """Should return unknown/low for empty input."""
        result = rule_parser.parse("   ", "en-US")

        assert result.action == Action.UNKNOWN
        assert result.confidence == Confidence.LOW
        assert result.item == ""

    def test_parse_hindi_add(self, rule_parser):
        """Should parse a Hindi add command into apples, 5 kg."""
        result = rule_parser.parse("मुझे 5 किलो सेब चाहिए", "hi-IN")

        assert result.action == Action.ADD
        assert result.quantity == 5
        assert result.unit == "kg"
        assert result.quantity_provided is True
        assert result.item == "apples"
        assert result.source == ParseSource.RULE

    def test_parse_spanish_add(self, rule_parser):
        """Should parse number words and Spanish units."""
        result = rule_parser.parse("Agrega dos litros de leche", "es-ES")

        assert result.action == Action.ADD
        assert result.quantity == 2
        assert result.unit == "liter"
        assert result.item == "milk"

    def test_parse_english_add(self, rule_parser):
        # Arrange
        transcript = "Please add 2 kg apples"

        # Act
        result = rule_parser.parse(transcript, "en-US")

        # Assert
        assert result.action == Action.ADD
        assert result.item == "apples"
        assert result.quantity == 2
        assert result.unit == "kg"
        assert result.confidence == Confidence.HIGH
        assert result.raw == transcript

    def test_parse_search_with_price(self, rule_parser):
        """Should read search filters and leave quantity empty."""
        result = rule_parser.parse("find toothpaste under 5", "en-US")

        assert result.action == Action.SEARCH
        assert result.item == "toothpaste"
        assert result.quantity is None
        assert result.filters.query == "toothpaste"
        assert result.filters.max_price == 5

    def test_price_amount_is_not_a_quantity(self, rule_parser):
        """Should not read 'under 3' as a quantity of 3."""
        result = rule_parser.parse("add bread under 3", "en-US")

        assert result.quantity == 1
        assert result.quantity_provided is False
        assert result.filters.max_price == 3
        assert result.item == "bread"

    def test_parse_known_brand(self, rule_parser):
        """Should pull a catalog brand out of the item text."""
        result = rule_parser.parse("add colgate toothpaste", "en-US")

        assert result.brand == "Colgate"
        assert result.item == "toothpaste"

    def test_parse_update(self, rule_parser):
        """Should detect update and its quantity."""
        result = rule_parser.parse("change milk to 3 liters", "en-US")

        assert result.action == Action.UPDATE
        assert result.item == "milk"
        assert result.quantity == 3
        assert result.unit == "liter"

    def test_parse_remove(self, rule_parser):
        result = rule_parser.parse("remove bananas", "en-US")

        assert result.action == Action.REMOVE
        assert result.item == "bananas"
        assert result.quantity_provided is False

    def test_rule_preferred_locale_falls_back_to_raw(self, rule_parser):
        """Should keep the raw transcript when stripping leaves nothing."""
        result = rule_parser.parse("मुझे चाहिए", "hi-IN")

        assert result.item == "मुझे चाहिए"

    def test_non_preferred_locale_keeps_empty_item(self, rule_parser):
        """Should not fall back to the raw transcript for English."""
        result = rule_parser.parse("add please", "en-US")

        assert result.item == ""
        assert result.confidence == Confidence.LOW

    def test_parse_nickname_alias(self, rule_parser):
        """Should map 'kit kat' to the canonical product and brand."""
        result = rule_parser.parse("add 2 kit kat", "en-US")

        assert result.item == "kitkat chocolate"
        assert result.brand == "Nestle"
        assert result.quantity == 2

    def test_parse_dozen(self, rule_parser):
        """Should read 'one dozen' as twelve units."""
        result = rule_parser.parse("add one dozen eggs", "en-US")

        assert result.quantity == 12
        assert result.quantity_provided is True
        assert result.item == "eggs"

    def test_english_do_is_not_a_number(self, rule_parser):
        result = rule_parser.parse("do i need milk", "en-US")

        assert result.quantity == 1
        assert result.quantity_provided is False

    def test_romanized_hindi_number_word(self, rule_parser):
        result = rule_parser.parse("mujhe do kilo ande chahiye", "hi-IN")

        assert result.quantity == 2
        assert result.unit == "kg"


class TestAliasCorrections:
    """Tests for apply_alias_corrections()"""

    def test_generic_chocolate_with_nickname_in_query(self):
        """Should correct a search that names 'perk' with 'chocolate'."""
        parsed = ParsedCommand(
            action=Action.SEARCH,
            item="chocolate",
            filters=CommandFilters(query="perk chocolate"),
        )

        result = apply_alias_corrections(parsed)

        assert result.item == "perk chocolate"
        assert result.brand == "Cadbury"
        assert result.filters.brand == "Cadbury"

    def test_unrelated_item_untouched(self):
        """Should return the same object when no alias applies."""
        parsed = ParsedCommand(action=Action.ADD, item="milk")

        assert apply_alias_corrections(parsed) is parsed
