"""
Rule-based multilingual command parser.

Each extraction stage (action, price bounds, brand, quantity/unit, size)
is an independent pass over the same normalized text and reports the
character span it consumed. The residual item text is what is left after
blanking those spans and removing verbs and filler words.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional
import structlog

from config import settings
from models.command import (
    CANONICAL_UNITS,
    Action,
    CommandFilters,
    Confidence,
    ParseSource,
    ParsedCommand,
)
from services.catalog_service import CatalogService, get_catalog_service
from services.pricing_service import UNIT_ALIASES, to_canonical_unit
from services.text_normalizer_service import normalize_transcript
from utils.text_utils import (
    collapse_whitespace,
    mask_spans,
    normalize_text,
    replace_whole_phrase,
    word_pattern,
)

logger = structlog.get_logger(__name__)


# ===================
# VOCABULARY
# ===================

# Checked in this order; the first action with a matching verb wins
ACTION_ALIASES: dict[Action, list[str]] = {
    Action.ADD: ["add", "need", "buy", "want", "agrega", "necesito", "comprar", "chahiye", "mujhe"],
    Action.REMOVE: ["remove", "delete", "quit", "elimina", "quita", "hatao", "nikalo"],
    Action.UPDATE: ["update", "change", "set", "modify", "actualiza", "cambia", "badal", "set karo"],
    Action.SEARCH: ["find", "search", "look", "buscar", "encuentra", "dhundo", "khojo"],
}

# Number words by language. English always applies; the others only for
# the speaker's language ("do" is 2 in Hindi but a verb in English).
NUMBER_WORDS: dict[str, dict[str, int]] = {
    "en": {
        "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
        "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
        "eleven": 11, "twelve": 12,
    },
    "es": {
        "uno": 1, "una": 1, "un": 1, "dos": 2, "tres": 3, "cuatro": 4, "cinco": 5,
        "seis": 6, "siete": 7, "ocho": 8, "nueve": 9, "diez": 10, "doce": 12,
    },
    "hi": {
        # Romanized
        "ek": 1, "ekk": 1, "do": 2, "teen": 3, "char": 4, "paanch": 5,
        "chhe": 6, "saat": 7, "aath": 8, "nau": 9, "das": 10,
        # Devanagari
        "एक": 1, "दो": 2, "तीन": 3, "चार": 4, "पांच": 5, "पाँच": 5,
        "छः": 6, "छह": 6, "सात": 7, "आठ": 8, "नौ": 9, "दस": 10,
    },
}

STOPWORDS = [
    "i", "me", "my", "please", "the", "a", "an", "to", "for", "on", "in", "list",
    "from", "by", "of", "some", "need", "want", "buy", "add", "remove", "delete",
    "set", "update", "change", "find", "search", "look", "brand", "price", "under",
    "below", "less", "than", "max", "up", "at", "most", "show", "rupees",
    "mujhe", "mera", "meri", "lista", "mi", "por", "con", "ki", "ko", "mein", "se",
    "de", "la", "el", "una", "un", "necesito", "quiero", "comprar", "agrega",
    "anade", "añade", "busca", "encuentra", "chahiye",
]

_NUMBER = r"(\d+(?:\.\d+)?)"

# Latin spellings only: Devanagari units are translated by the normalizer
_QUANTITY_UNITS = sorted((alias for alias in UNIT_ALIASES if alias.isascii()), key=len, reverse=True)
QUANTITY_PATTERN = re.compile(
    rf"{_NUMBER}\s*(?:({'|'.join(map(re.escape, _QUANTITY_UNITS))})\b)?",
    re.IGNORECASE
)
SIZE_PATTERN = re.compile(
    rf"{_NUMBER}\s*(kg|g|ml|l|liters|litres|liter|litre|litros|litro|packs|pack|pieces|piece|pcs"
    r"|paquetes|paquete|piezas|pieza)\b",
    re.IGNORECASE
)

_PRICE_AMOUNT = r"\$?\s*" + _NUMBER
_PRICE_SUFFIX_CURRENCY = r"\s*(?:rupees|rs|dollars|pesos)?\s*"

# Upper and lower price bounds by language. The speaker's language is
# tried first, then the rest; the first pattern that matches wins.
MAX_PRICE_PATTERNS: dict[str, list[re.Pattern]] = {
    "en": [
        re.compile(r"\b(?:under|below|less than|max|up to|upto|at most|cheaper than)\s*" + _PRICE_AMOUNT, re.I),
        re.compile(_NUMBER + _PRICE_SUFFIX_CURRENCY + r"or less\b", re.I),
    ],
    "es": [
        re.compile(r"\b(?:menos de|debajo de|máximo|maximo)\s*" + _PRICE_AMOUNT, re.I),
    ],
    "hi": [
        re.compile(r"\bneeche\s*" + _PRICE_AMOUNT, re.I),
        re.compile(_NUMBER + _PRICE_SUFFIX_CURRENCY + r"se (?:kam|neeche)\b", re.I),
    ],
}
MIN_PRICE_PATTERNS: dict[str, list[re.Pattern]] = {
    "en": [
        re.compile(r"\b(?:above|over|more than|min|at least|greater than)\s*" + _PRICE_AMOUNT, re.I),
        re.compile(_NUMBER + _PRICE_SUFFIX_CURRENCY + r"or more\b", re.I),
    ],
    "es": [
        re.compile(r"\b(?:mas de|más de|mínimo|minimo)\s*" + _PRICE_AMOUNT, re.I),
    ],
    "hi": [
        re.compile(r"\b(?:kam se kam|zyada|upar)\s*" + _PRICE_AMOUNT, re.I),
        re.compile(_NUMBER + _PRICE_SUFFIX_CURRENCY + r"se (?:zyada|upar)\b", re.I),
    ],
}

SEARCH_BRAND_PATTERN = re.compile(r"\b(?:brand|from|by|marca)\s+([a-z0-9\s-]+)", re.IGNORECASE)
_BRAND_TAIL = re.compile(r"\b(?:under|below|less|than|max|size|for|above|over|min)\b.*", re.IGNORECASE)

_VERBS = word_pattern(verb for verbs in ACTION_ALIASES.values() for verb in verbs)
_STOPWORDS = word_pattern(STOPWORDS)
_ACTION_PATTERNS = {action: word_pattern(verbs) for action, verbs in ACTION_ALIASES.items()}


# ===================
# ALIAS CORRECTIONS
# ===================

@dataclass(frozen=True)
class ProductAlias:
    """Informal product nickname mapped to a canonical item and brand."""
    aliases: tuple[str, ...]
    canonical_item: str
    canonical_brand: str


PRODUCT_ALIASES = (
    ProductAlias(("kitkat", "kit kat"), "kitkat chocolate", "Nestle"),
    ProductAlias(("perk",), "perk chocolate", "Cadbury"),
)

_CHOCOLATE_WORDS = ("chocolate", "chocholate", "choclate")


def apply_alias_corrections(parsed: ParsedCommand) -> ParsedCommand:
    """
    Map nicknames ("kit kat", "perk") to the canonical item and brand.

    Applies when the brand equals an alias, the item contains an alias, or
    the search query contains an alias alongside a generic chocolate word.
    """
    item = normalize_text(parsed.item)
    brand = normalize_text(parsed.brand)
    query = normalize_text(parsed.filters.query or parsed.item)
    chocolate_mentioned = any(word in item or word in query for word in _CHOCOLATE_WORDS)

    corrected = parsed
    for rule in PRODUCT_ALIASES:
        in_brand = any(brand == alias for alias in rule.aliases)
        in_item = any(alias in item for alias in rule.aliases)
        in_query = any(alias in query for alias in rule.aliases)

        if in_brand or in_item or (in_query and chocolate_mentioned):
            corrected = corrected.model_copy(update={
                "item": rule.canonical_item,
                "brand": rule.canonical_brand,
                "filters": corrected.filters.model_copy(update={
                    "query": rule.canonical_item,
                    "brand": rule.canonical_brand,
                }),
            })

    if corrected is not parsed:
        logger.debug("alias_corrected", item=parsed.item, corrected_item=corrected.item)
    return corrected


# ===================
# EXTRACTION PASSES
# ===================

@dataclass
class Extraction:
    """Partial parse result and the text span it came from."""
    value: Any = None
    span: Optional[tuple[int, int]] = None


@dataclass
class QuantityExtraction:
    quantity: Optional[float]
    unit: str
    provided: bool
    span: Optional[tuple[int, int]] = None


_DOZEN_PATTERN = re.compile(r"(?:\b(\d+(?:\.\d+)?)\s+)?\bdozens?\b")


def number_words_for(locale: Optional[str] = None) -> dict[str, int]:
    """English words plus the speaker's language; every language when locale is None."""
    if locale is None:
        languages = list(NUMBER_WORDS)
    else:
        languages = ["en", _language(locale)]
    words: dict[str, int] = {}
    for language in languages:
        words.update(NUMBER_WORDS.get(language, {}))
    return words


def _expand_dozens(text: str) -> str:
    """'3 dozen' → '36', bare 'dozen' → '12'."""
    def to_units(match: re.Match) -> str:
        count = float(match.group(1)) if match.group(1) else 1
        return f"{count * 12:g}"

    return _DOZEN_PATTERN.sub(to_units, text)


def replace_number_words(text: str, locale: Optional[str] = None) -> str:
    """'dos kg' → '2 kg'. Longest words first."""
    updated = text
    words = number_words_for(locale)
    for word, value in sorted(words.items(), key=lambda pair: len(pair[0]), reverse=True):
        updated = replace_whole_phrase(updated, word, str(value))
    return _expand_dozens(updated)


def detect_action(text: str) -> Action:
    if not text:
        return Action.UNKNOWN
    for action, pattern in _ACTION_PATTERNS.items():
        if pattern.search(text):
            return action
    return Action.ADD


def _language(locale: str) -> str:
    return normalize_text(locale).split("-")[0] or "en"


def _first_price(text: str, table: dict[str, list[re.Pattern]], locale: str) -> Extraction:
    language = _language(locale)
    ordered = table.get(language, []) + [p for lang, ps in table.items() if lang != language for p in ps]
    for pattern in ordered:
        match = pattern.search(text)
        if match:
            return Extraction(float(match.group(1)), match.span())
    return Extraction()


def extract_price_filters(text: str, locale: str = "en-US") -> tuple[Extraction, Extraction]:
    """Upper and lower price bounds; each optional and independent."""
    return (
        _first_price(text, MAX_PRICE_PATTERNS, locale),
        _first_price(text, MIN_PRICE_PATTERNS, locale),
    )


def extract_brand(text: str, action: Action, known_brands) -> Extraction:
    """
    Longest known brand in the text; for searches also "brand/from/by X".
    """
    for brand in sorted(known_brands, key=len, reverse=True):
        needle = normalize_text(brand)
        if not needle:
            continue
        match = re.search(rf"(?<!\w){re.escape(needle)}(?!\w)", text)
        if match:
            return Extraction(brand, match.span())

    if action != Action.SEARCH:
        return Extraction("")

    match = SEARCH_BRAND_PATTERN.search(text)
    if not match:
        return Extraction("")

    brand = _BRAND_TAIL.sub("", match.group(1))
    size = SIZE_PATTERN.search(brand)
    if size:
        brand = brand[:size.start()]
    brand = brand.strip()
    if not brand:
        return Extraction("")
    end = match.start(1) + match.group(1).find(brand) + len(brand)
    return Extraction(brand, (match.start(), end))


def extract_quantity(text: str, action: Action) -> QuantityExtraction:
    """
    First "<number><unit>?" in the text.

    Searches never carry a quantity; other actions default to 1 unit.
    """
    match = QUANTITY_PATTERN.search(text)
    span = match.span() if match else None

    if action == Action.SEARCH:
        return QuantityExtraction(None, "unit", False, span)
    if not match:
        return QuantityExtraction(1, "unit", False)

    quantity = float(match.group(1))
    unit = to_canonical_unit(match.group(2))
    if quantity <= 0:
        return QuantityExtraction(1, unit, False, span)
    return QuantityExtraction(quantity, unit, True, span)


def extract_size(text: str) -> Extraction:
    """'1.5 liters' → '1.5l', '500 g' → '500g'."""
    match = SIZE_PATTERN.search(text)
    if not match:
        return Extraction("")
    unit = to_canonical_unit(match.group(2))
    return Extraction(f"{match.group(1)}{'l' if unit == 'liter' else unit}", match.span())


def residual_item(text: str, spans: list[tuple[int, int]]) -> str:
    """Text left after removing consumed spans, verbs and filler words."""
    cleaned = mask_spans(text, spans)
    cleaned = _VERBS.sub(" ", cleaned)
    cleaned = _STOPWORDS.sub(" ", cleaned)
    cleaned = cleaned.replace("$", " ")
    return collapse_whitespace(cleaned)


# ===================
# PARSER
# ===================

class CommandParserService:
    """
    Deterministic transcript → ParsedCommand parser.

    Never raises. Known brands come from the current catalog snapshot.
    """

    def __init__(
        self,
        catalog_service: Optional[CatalogService] = None,
        rule_preferred_locales: Optional[list[str]] = None
    ):
        self.catalog_service = catalog_service or get_catalog_service()
        self.rule_preferred_locales = (
            rule_preferred_locales if rule_preferred_locales is not None else settings.rule_preferred_locales
        )

    def prefers_rules(self, locale: Optional[str]) -> bool:
        """True for locales whose short utterances the rule parser handles best."""
        tag = normalize_text(locale)
        return any(tag.startswith(prefix) for prefix in self.rule_preferred_locales)

    def parse(self, transcript: Optional[str], locale: str = "en-US") -> ParsedCommand:
        """
        Parse one transcript.

        Args:
            transcript: Raw speech-to-text output
            locale: BCP-47 tag, e.g. "hi-IN"

        Returns:
            ParsedCommand with source="rule"; empty input gives an
            "unknown" action with low confidence
        """
        raw = (transcript or "").strip()
        text = replace_number_words(normalize_transcript(raw, locale), locale)

        if not text:
            return ParsedCommand(action=Action.UNKNOWN, locale=locale, raw=raw, confidence=Confidence.LOW)

        action = detect_action(text)
        max_price, min_price = extract_price_filters(text, locale)
        price_spans = [e.span for e in (max_price, min_price) if e.span]

        # Price amounts are not quantities or sizes
        unpriced = mask_spans(text, price_spans)
        brand = extract_brand(unpriced, action, self.catalog_service.known_brands())
        quantity = extract_quantity(unpriced, action)
        size = extract_size(unpriced) if action == Action.SEARCH else Extraction("")

        spans = price_spans + [e.span for e in (brand, size) if e.span]
        if quantity.span:
            spans.append(quantity.span)

        item = residual_item(text, spans)
        if not item and self.prefers_rules(locale):
            item = raw

        if item:
            confidence = Confidence.HIGH
        elif action == Action.SEARCH:
            confidence = Confidence.MEDIUM
        else:
            confidence = Confidence.LOW

        unit = quantity.unit if quantity.unit in CANONICAL_UNITS else "unit"
        parsed = ParsedCommand(
            action=action,
            item=item,
            brand=brand.value,
            quantity=quantity.quantity,
            quantity_provided=quantity.provided,
            unit=unit,
            size=size.value,
            filters=CommandFilters(
                query=item,
                brand=brand.value,
                size=size.value,
                max_price=max_price.value,
                min_price=min_price.value,
            ),
            locale=locale,
            confidence=confidence,
            raw=raw,
            source=ParseSource.RULE,
        )
        parsed = apply_alias_corrections(parsed)

        logger.info(
            "command_parsed",
            source="rule",
            action=parsed.action.value,
            item=parsed.item,
            quantity=parsed.quantity,
            unit=parsed.unit,
            confidence=parsed.confidence.value
        )
        return parsed


# Singleton instance
_command_parser: Optional[CommandParserService] = None


def get_command_parser_service() -> CommandParserService:
    """Get or create CommandParserService instance."""
    global _command_parser
    if _command_parser is None:
        _command_parser = CommandParserService()
    return _command_parser
