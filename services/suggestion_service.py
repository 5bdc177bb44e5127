"""
Shopping suggestions.

Three groups of tips, each capped at suggestion_max_per_group:
- product: restock reminders from list history, plus preference items
  missing from the list
- seasonal: in-season and on-sale catalog entries (generated when a
  completion client is configured, catalog flags otherwise)
- substitute: in-stock alternatives for out-of-stock list items, plus
  preferred substitutes
"""

import json
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional
import structlog

from config import settings
from exceptions import GeneratorUnavailableError, GenerativePayloadError
from models.catalog import CatalogEntry
from models.shopping_list import HistoryEntry, ListLine
from models.suggestion import Suggestion, SuggestionReport, SuggestionType
from services.catalog_service import CatalogService, get_catalog_service
from services.generative_parser_service import (
    AnthropicCompletionClient,
    TextCompletionClient,
    extract_json_array,
)
from services.shopping_list_service import ShoppingListService, get_shopping_list_service
from utils.text_utils import normalize_text

logger = structlog.get_logger(__name__)


# History actions that count as a purchase
RESTOCK_ACTIONS = frozenset({"add", "update"})

MIN_PURCHASE_EVENTS = 2
FREQUENT_PURCHASE_EVENTS = 3
MIN_CADENCE_DAYS = 3

DUE_BY_CADENCE_SCORE = 100
LOW_QUANTITY_SCORE = 80
FREQUENT_SCORE = 60
PREFERENCE_SCORE = 50

SEASONAL_SYSTEM_PROMPT = (
    "You recommend grocery items from a catalog. "
    "You never answer with anything except a JSON array."
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _fmt(value: float) -> str:
    return f"{float(value):g}"


def _line_key(name: str, brand: str) -> str:
    return f"{normalize_text(name)}|{normalize_text(brand or 'generic')}"


def dedupe_suggestions(suggestions: Iterable[Suggestion]) -> list[Suggestion]:
    """Keep the first tip per (type, item, brand), case-insensitive."""
    seen = set()
    unique = []
    for suggestion in suggestions:
        if suggestion.dedupe_key in seen:
            continue
        seen.add(suggestion.dedupe_key)
        unique.append(suggestion)
    return unique


@dataclass
class PurchaseRecord:
    """Add/update history for one (item, brand)."""

    item: str
    brand: str
    events: int = 0
    total_quantity: float = 0
    timestamps: list[datetime] = field(default_factory=list)

    @property
    def average_quantity(self) -> int:
        return max(1, _round_half_up(self.total_quantity / self.events))

    @property
    def average_interval_days(self) -> Optional[int]:
        """Mean gap between purchases, at least one day."""
        if len(self.timestamps) < 2:
            return None
        ordered = sorted(self.timestamps)
        span = (ordered[-1] - ordered[0]).total_seconds()
        return max(1, _round_half_up(span / (len(ordered) - 1) / 86400))

    def days_since_last(self, now: datetime) -> Optional[int]:
        if not self.timestamps:
            return None
        return (now - max(self.timestamps)).days


def group_purchases(history: Iterable[HistoryEntry]) -> dict[str, PurchaseRecord]:
    grouped: dict[str, PurchaseRecord] = {}
    for entry in history:
        name = normalize_text(entry.name)
        if not name or entry.action not in RESTOCK_ACTIONS:
            continue
        record = grouped.setdefault(
            _line_key(name, entry.brand),
            PurchaseRecord(item=name, brand=entry.brand or "Generic")
        )
        record.events += 1
        record.total_quantity += entry.quantity
        record.timestamps.append(entry.timestamp)
    return grouped


def restock_suggestion(record: PurchaseRecord, line: Optional[ListLine], now: datetime) -> Optional[Suggestion]:
    """
    Restock tip for a repeatedly bought item, or None.

    Checked in order:
    - due by cadence: not on the list and the usual gap has (nearly) passed
    - low quantity: on the list at half the usual amount or less
    - frequent: not on the list and bought three times or more
    """
    interval = record.average_interval_days
    days_since = record.days_since_last(now)
    missing = line is None
    low_threshold = max(1, _round_half_up(record.average_quantity * 0.5))

    due_by_cadence = (
        missing
        and interval is not None
        and days_since is not None
        and days_since >= max(MIN_CADENCE_DAYS, math.floor(interval * 0.8))
    )
    low_quantity = not missing and line.quantity <= low_threshold
    frequent = missing and record.events >= FREQUENT_PURCHASE_EVENTS

    running_low = f"It looks like you're running low on {record.item}."
    if due_by_cadence:
        message = (
            f"{running_low} You usually buy it every {interval} day(s), "
            f"and last bought it {days_since} day(s) ago."
        )
        score = DUE_BY_CADENCE_SCORE
    elif low_quantity:
        message = (
            f"{running_low} You currently have {_fmt(line.quantity)} {line.unit}, "
            f"while your usual purchase amount is around {record.average_quantity}."
        )
        score = LOW_QUANTITY_SCORE
    elif frequent:
        message = f"You frequently buy {record.item}. Consider adding it before your next trip."
        score = FREQUENT_SCORE
    else:
        return None

    return Suggestion(
        type=SuggestionType.PRODUCT,
        item=record.item,
        brand=record.brand,
        score=score + record.events,
        message=message,
    )


class SuggestionService:
    """
    Builds suggestion reports for the current shopping list.

    Only the generated seasonal group talks to an external service; any
    failure there falls back to the catalog flags.
    """

    def __init__(
        self,
        catalog_service: Optional[CatalogService] = None,
        list_store: Optional[ShoppingListService] = None,
        client: Optional[TextCompletionClient] = None,
        clock: Callable[[], datetime] = _utc_now,
        max_per_group: Optional[int] = None,
        region: Optional[str] = None,
        cache_hours: Optional[float] = None
    ):
        self.catalog_service = catalog_service or get_catalog_service()
        self.list_store = list_store if list_store is not None else get_shopping_list_service()
        if client is None and settings.generative_configured:
            client = AnthropicCompletionClient(
                api_key=settings.anthropic_api_key,
                system_prompt=SEASONAL_SYSTEM_PROMPT
            )
        self.client = client
        self._clock = clock
        self.max_per_group = max_per_group if max_per_group is not None else settings.suggestion_max_per_group
        self.region = region or settings.seasonal_region
        self.cache_hours = cache_hours if cache_hours is not None else settings.seasonal_cache_hours
        self._season_cache: dict[str, tuple[datetime, list[Suggestion]]] = {}
        self._lock = threading.Lock()

    # ===================
    # REPORT
    # ===================

    def build(self, focus_item: Optional[str] = None) -> SuggestionReport:
        """
        Suggestions for the current list.

        Args:
            focus_item: Limit substitute tips to this item instead of the whole list

        Returns:
            SuggestionReport with each group and the de-duplicated union
        """
        items = self.list_store.list_items()
        history = self.list_store.history()
        preferences = self.list_store.get_preferences()

        product = self.product_recommendations(history, preferences, items)
        seasonal = self.seasonal_recommendations()
        substitute = self.substitute_recommendations(items, preferences, focus_item)

        report = SuggestionReport(
            product_recommendations=product,
            seasonal_recommendations=seasonal,
            substitute_recommendations=substitute,
            suggestions=dedupe_suggestions(product + seasonal + substitute),
        )
        logger.info(
            "suggestions_built",
            product=len(product),
            seasonal=len(seasonal),
            substitute=len(substitute),
            focus_item=focus_item
        )
        return report

    # ===================
    # PRODUCT
    # ===================

    def product_recommendations(
        self,
        history: list[HistoryEntry],
        preferences: dict[str, list[str]],
        items: list[ListLine]
    ) -> list[Suggestion]:
        """Restock tips by score, then preference items not yet on the list."""
        now = self._clock()
        lines = {_line_key(line.name, line.brand): line for line in items}

        recommendations = []
        for key, record in group_purchases(history).items():
            if record.events < MIN_PURCHASE_EVENTS:
                continue
            tip = restock_suggestion(record, lines.get(key), now)
            if tip is not None:
                recommendations.append(tip)

        listed = {normalize_text(line.name) for line in items}
        for item in preferences:
            if normalize_text(item) in listed:
                continue
            recommendations.append(Suggestion(
                type=SuggestionType.PRODUCT_PREFERENCE,
                item=item,
                score=PREFERENCE_SCORE,
                message=f"Based on your preferences, you may need {item}.",
            ))

        recommendations.sort(key=lambda tip: -tip.score)
        return dedupe_suggestions(recommendations)[:self.max_per_group]

    # ===================
    # SEASONAL
    # ===================

    def seasonal_recommendations(self) -> list[Suggestion]:
        return self.generated_seasonal_recommendations() or self.catalog_seasonal_recommendations()

    def catalog_seasonal_recommendations(self) -> list[Suggestion]:
        """Entries in season this month, then entries on sale."""
        month = self._clock().month
        snapshot = self.catalog_service.repository.snapshot

        seasonal = [
            Suggestion(
                type=SuggestionType.SEASONAL,
                item=entry.name,
                brand=entry.brand,
                message=f"{entry.name} is typically in season this month.",
            )
            for entry in snapshot if month in entry.season_months
        ]
        sales = [
            Suggestion(
                type=SuggestionType.SEASONAL_SALE,
                item=entry.name,
                brand=entry.brand,
                message=f"{entry.name} is currently on sale for ${entry.effective_price:.2f}.",
            )
            for entry in snapshot if entry.on_sale
        ]
        return dedupe_suggestions(seasonal + sales)[:self.max_per_group]

    def build_seasonal_prompt(self, now: datetime) -> str:
        summary = [
            {
                "name": entry.name,
                "brand": entry.brand,
                "category": entry.category,
                "onSale": entry.on_sale,
                "salePrice": entry.sale_price,
                "price": entry.price,
            }
            for entry in self.catalog_service.repository.snapshot
        ]
        return (
            f"Month: {now.strftime('%B')}\n"
            f"Region: {self.region}\n"
            f"Catalog entries JSON: {json.dumps(summary)}\n\n"
            f"Pick up to {self.max_per_group} recommendations that are either:\n"
            "1) in-season items for the given month/region, or\n"
            "2) currently on-sale items.\n\n"
            "Return ONLY a JSON array of objects:\n"
            '[{"item": "catalog item name exactly", "brand": "catalog brand exactly", '
            '"type": "seasonal|sale", "reason": "short reason"}]\n'
            "Do not return markdown."
        )

    def generated_seasonal_recommendations(self) -> Optional[list[Suggestion]]:
        """
        Seasonal tips picked by the completion client.

        Cached per (month, region) for cache_hours. Returns None when no
        client is configured or the response is unusable.
        """
        if self.client is None:
            return None

        now = self._clock()
        cache_key = f"{now.month}:{self.region}"
        with self._lock:
            cached = self._season_cache.get(cache_key)
            if cached and cached[0] > now:
                return list(cached[1])

        try:
            response_text = self.client.complete(self.build_seasonal_prompt(now))
            payload = extract_json_array(response_text)
            if payload is None:
                raise GenerativePayloadError(
                    "Seasonal response contained no JSON array",
                    details={"preview": (response_text or "")[:200]}
                )
        except (GeneratorUnavailableError, GenerativePayloadError) as e:
            logger.warning("seasonal_fallback", reason=e.code, error=e.message)
            return None
        except Exception as e:
            # The completion collaborator must never break suggestions
            logger.error("seasonal_fallback", reason="unexpected_error", error=str(e))
            return None

        month_name = now.strftime("%B")
        recommendations = []
        for row in payload:
            if not isinstance(row, dict):
                continue
            entry = self.catalog_service.best_match(str(row.get("item") or ""), str(row.get("brand") or ""))
            if entry is None:
                continue
            recommendations.append(self._generated_tip(entry, row, month_name))

        result = dedupe_suggestions(recommendations)[:self.max_per_group]
        with self._lock:
            self._season_cache[cache_key] = (now + timedelta(hours=self.cache_hours), result)

        logger.info("seasonal_generated", month=now.month, region=self.region, count=len(result))
        return list(result)

    def _generated_tip(self, entry: CatalogEntry, row: dict, month_name: str) -> Suggestion:
        reason = str(row.get("reason") or "").strip()
        if row.get("type") == "sale":
            return Suggestion(
                type=SuggestionType.SEASONAL_SALE,
                item=entry.name,
                brand=entry.brand,
                message=f"{entry.name} is on sale for ${entry.effective_price:.2f}. {reason}".strip(),
            )
        return Suggestion(
            type=SuggestionType.SEASONAL,
            item=entry.name,
            brand=entry.brand,
            message=f"{entry.name} is in season around {month_name}. {reason}".strip(),
        )

    # ===================
    # SUBSTITUTE
    # ===================

    def substitute_recommendations(
        self,
        items: list[ListLine],
        preferences: dict[str, list[str]],
        focus_item: Optional[str] = None
    ) -> list[Suggestion]:
        """In-stock alternatives for out-of-stock targets, then preferred substitutes."""
        targets = [normalize_text(focus_item)] if focus_item else [normalize_text(line.name) for line in items]

        recommendations = []
        for target in targets:
            requested = self.catalog_service.best_match(target)
            if requested is None or requested.in_stock:
                continue
            for name in requested.substitutes:
                match = self._first_in_stock(name)
                if match is None:
                    continue
                recommendations.append(Suggestion(
                    type=SuggestionType.SUBSTITUTE,
                    item=match.name,
                    brand=match.brand,
                    message=(
                        f"{requested.name} is out of stock. "
                        f"{match.name} by {match.brand} is available as an alternative."
                    ),
                ))

        for base_item, alternatives in preferences.items():
            for alternative in alternatives:
                match = self._first_in_stock(alternative)
                if match is None:
                    continue
                recommendations.append(Suggestion(
                    type=SuggestionType.SUBSTITUTE_PREFERENCE,
                    item=match.name,
                    brand=match.brand,
                    message=f"Preferred substitute for {base_item}: {match.name} by {match.brand}.",
                ))

        return dedupe_suggestions(recommendations)[:self.max_per_group]

    def _first_in_stock(self, name: str) -> Optional[CatalogEntry]:
        matches = self.catalog_service.filter(query=name, in_stock_only=True)
        return matches[0] if matches else None


# Singleton instance
_suggestion_service: Optional[SuggestionService] = None


def get_suggestion_service() -> SuggestionService:
    """Get or create SuggestionService instance."""
    global _suggestion_service
    if _suggestion_service is None:
        _suggestion_service = SuggestionService()
    return _suggestion_service
