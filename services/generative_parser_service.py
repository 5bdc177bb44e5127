"""
Generative command parser with rule-based reconciliation.

Asks Claude for a strict-JSON parse of the transcript, validates it
against the same enums and units as the rule parser, and keeps the rule
result whenever the generator is unavailable, slow, malformed, or less
specific. Generator problems never reach callers.
"""

import json
import re
from typing import Any, Optional, Protocol
import anthropic
import structlog

from config import settings
from exceptions import GeneratorUnavailableError, GenerativePayloadError
from models.command import (
    CANONICAL_UNITS,
    Action,
    CommandFilters,
    Confidence,
    ParseSource,
    ParsedCommand,
)
from services.command_parser_service import (
    CommandParserService,
    apply_alias_corrections,
    get_command_parser_service,
)
from services.pricing_service import to_canonical_unit
from services.text_normalizer_service import normalize_transcript
from utils.text_utils import normalize_text

logger = structlog.get_logger(__name__)


# Items too vague to replace a specific rule-parser item
GENERIC_ITEMS = frozenset({
    "item", "items", "product", "products", "thing", "things",
    "cup", "cups", "unit", "units",
})

SCHEMA_HINT = """
Return ONLY valid JSON with this exact schema:
{
  "action": "add|remove|update|search|unknown",
  "item": "string",
  "brand": "string",
  "quantity": number|null,
  "quantityProvided": boolean,
  "unit": "unit|piece|pack|bottle|kg|g|liter|ml",
  "size": "string",
  "filters": {
    "query": "string",
    "brand": "string",
    "size": "string",
    "maxPrice": number|null,
    "minPrice": number|null
  },
  "confidence": "high|medium|low"
}
Rules:
- Keep item clean (no filler words)
- If transcript is non-English, translate item, query and unit to English grocery terms
- For search commands, fill filters fields
- If quantity is absent for add/remove/update, set quantity=1 and quantityProvided=false
- Never include markdown or code fences.
"""

SYSTEM_PROMPT = (
    "You convert shopping-list voice commands into structured JSON. "
    "You never answer with anything except the JSON object."
)


class TextCompletionClient(Protocol):
    """Prompt in, free text out. Failures surface as GeneratorUnavailableError."""

    def complete(self, prompt: str) -> str:
        ...


class AnthropicCompletionClient:
    """TextCompletionClient backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        system_prompt: str = SYSTEM_PROMPT
    ):
        self.model = model or settings.generative_model
        self.max_tokens = max_tokens or settings.generative_max_tokens
        self.system_prompt = system_prompt
        # Bounded call, no automatic retries
        self.client = anthropic.Anthropic(
            api_key=api_key,
            timeout=timeout_seconds or settings.generative_timeout_seconds,
            max_retries=0,
        )

    def complete(self, prompt: str) -> str:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=self.system_prompt,
                messages=[{"role": "user", "content": prompt}]
            )
        except anthropic.APIError as e:
            raise GeneratorUnavailableError(f"Claude API error: {e}", details={"type": type(e).__name__})

        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )


# ===================
# TOLERANT DECODER
# ===================

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")
_DECODER = json.JSONDecoder()


def _first_json_value(text: Optional[str], opener: str, kind: type):
    if not text:
        return None

    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", text.strip())).strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, kind):
        return data

    start = cleaned.find(opener)
    while start != -1:
        try:
            data, _ = _DECODER.raw_decode(cleaned, start)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, kind):
            return data
        start = cleaned.find(opener, start + 1)
    return None


def extract_json_object(text: Optional[str]) -> Optional[dict]:
    """
    Best-effort JSON object extraction from a model response.

    Strips code fences, then tries the whole text, then the first
    well-formed {...} object embedded in surrounding prose.

    Returns:
        The decoded object, or None when nothing decodes to a JSON object
    """
    return _first_json_value(text, "{", dict)


def extract_json_array(text: Optional[str]) -> Optional[list]:
    """Same as extract_json_object, for the first [...] array."""
    return _first_json_value(text, "[", list)


def _as_number(value: Any, default: Optional[float]) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number or number in (float("inf"), float("-inf")):
        return default
    return number


def _as_text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def validate_payload(
    payload: Any,
    fallback: ParsedCommand,
    transcript: str,
    locale: str
) -> ParsedCommand:
    """
    Clamp a decoded generator payload onto the ParsedCommand schema.

    Unknown enum values fall back to the rule result, units are
    canonicalized, and item/query text goes through the same normalizer
    as the rule parser.

    Raises:
        GenerativePayloadError: If the payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise GenerativePayloadError("Generator payload is not an object", details={"type": type(payload).__name__})

    raw_action = normalize_text(_as_text(payload.get("action")))
    action = Action(raw_action) if raw_action in {a.value for a in Action} else fallback.action

    brand = _as_text(payload.get("brand"))
    item = _as_text(payload.get("item")) or fallback.item
    unit = to_canonical_unit(_as_text(payload.get("unit")) or fallback.unit)
    if unit not in CANONICAL_UNITS:
        unit = fallback.unit

    filters = payload.get("filters") if isinstance(payload.get("filters"), dict) else {}

    if action == Action.SEARCH:
        quantity, quantity_provided, unit = None, False, "unit"
    else:
        quantity = _as_number(payload.get("quantity"), 1)
        provided = payload.get("quantityProvided")
        quantity_provided = provided if isinstance(provided, bool) else quantity != 1
        if quantity is None or quantity <= 0:
            quantity, quantity_provided = 1, False

    raw_confidence = normalize_text(_as_text(payload.get("confidence")))
    confidence = (
        Confidence(raw_confidence) if raw_confidence in {c.value for c in Confidence} else fallback.confidence
    )

    size = _as_text(payload.get("size")) or _as_text(filters.get("size"))
    return ParsedCommand(
        action=action,
        item=normalize_transcript(item, locale),
        brand=brand,
        quantity=quantity,
        quantity_provided=quantity_provided,
        unit=unit,
        size=size,
        filters=CommandFilters(
            query=normalize_transcript(_as_text(filters.get("query")) or item, locale),
            brand=_as_text(filters.get("brand")) or brand,
            size=_as_text(filters.get("size")) or size,
            max_price=_as_number(filters.get("maxPrice"), None),
            min_price=_as_number(filters.get("minPrice"), None),
        ),
        locale=locale,
        confidence=confidence,
        raw=transcript,
        source=ParseSource.GENERATIVE,
    )


def should_keep_rule_result(generative: ParsedCommand, rule: ParsedCommand) -> bool:
    """
    True when the rule result is more specific than the generator's.

    - generator item empty, rule item present
    - generator item is a placeholder ("item", "product", ...) while the
      rule item is not
    - neither has an item on a non-search command
    """
    generative_item = normalize_text(generative.item)
    rule_item = normalize_text(rule.item)

    if not generative_item and rule_item:
        return True
    if generative_item in GENERIC_ITEMS and rule_item and rule_item not in GENERIC_ITEMS:
        return True
    if not generative_item and generative.action != Action.SEARCH:
        return True
    return False


class GenerativeParserService:
    """
    parse() contract: never raises, always returns a ParsedCommand.

    Falls back to the rule parser for rule-preferred locales, when no
    generator is configured, and on any generator failure.
    """

    def __init__(
        self,
        rule_parser: Optional[CommandParserService] = None,
        client: Optional[TextCompletionClient] = None
    ):
        self.rule_parser = rule_parser or get_command_parser_service()
        if client is None and settings.generative_configured:
            client = AnthropicCompletionClient(api_key=settings.anthropic_api_key)
        self.client = client

    @property
    def is_enabled(self) -> bool:
        return self.client is not None

    @property
    def parser_mode(self) -> str:
        return "generative+rule-fallback" if self.is_enabled else "rule-based"

    def build_prompt(self, transcript: str, locale: str) -> str:
        return f'User language locale: {locale}\nTranscript: "{transcript}"\n{SCHEMA_HINT}'

    def parse(self, transcript: Optional[str], locale: str = "en-US") -> ParsedCommand:
        """
        Parse a transcript, preferring the generator when it is usable.

        Args:
            transcript: Raw speech-to-text output
            locale: BCP-47 tag

        Returns:
            ParsedCommand with source "generative" or "rule"
        """
        fallback = self.rule_parser.parse(transcript, locale)
        if not fallback.raw or self.rule_parser.prefers_rules(locale) or not self.is_enabled:
            return fallback

        try:
            response_text = self.client.complete(self.build_prompt(fallback.raw, locale))
            logger.debug("generator_response_received", response_length=len(response_text or ""))

            payload = extract_json_object(response_text)
            if payload is None:
                raise GeneratorUnavailableError(
                    "Generator response contained no JSON object",
                    details={"preview": (response_text or "")[:200]}
                )

            candidate = validate_payload(payload, fallback, fallback.raw, locale)

        except (GeneratorUnavailableError, GenerativePayloadError) as e:
            logger.warning("generative_fallback", reason=e.code, error=e.message)
            return fallback
        except Exception as e:
            # The completion collaborator must never break parsing
            logger.error("generative_fallback", reason="unexpected_error", error=str(e))
            return fallback

        if should_keep_rule_result(candidate, fallback):
            logger.info("generative_result_discarded", generative_item=candidate.item, rule_item=fallback.item)
            return fallback

        parsed = apply_alias_corrections(candidate)
        logger.info(
            "command_parsed",
            source="generative",
            action=parsed.action.value,
            item=parsed.item,
            quantity=parsed.quantity,
            unit=parsed.unit,
            confidence=parsed.confidence.value
        )
        return parsed


# Singleton instance
_generative_parser: Optional[GenerativeParserService] = None


def get_generative_parser_service() -> GenerativeParserService:
    """Get or create GenerativeParserService instance."""
    global _generative_parser
    if _generative_parser is None:
        _generative_parser = GenerativeParserService()
    return _generative_parser
