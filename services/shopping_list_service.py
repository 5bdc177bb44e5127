"""
In-memory shopping list.

Reference implementation of the list-store collaborator: proposals read
current quantities and substitution preferences through the ListStore
protocol, and the command service applies confirmed actions here.
Persistent storage lives outside the core.
"""

import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol
import structlog

from models.command import ListMode
from models.pricing import MergedQuantity
from models.shopping_list import HistoryEntry, ListLine, RemoveResult, SetQuantityResult
from services.catalog_service import CatalogService, get_catalog_service
from services.pricing_service import (
    compute_pricing_snapshot,
    convert_quantity,
    merge_quantities,
    to_canonical_unit,
)
from utils.text_utils import normalize_text

logger = structlog.get_logger(__name__)


class ListStore(Protocol):
    """What the proposal builders need from the shopping list."""

    def get_quantity(self, name: str, brand: str) -> Optional[MergedQuantity]:
        ...

    def get_preferences(self) -> dict[str, list[str]]:
        ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_quantity(value, fallback: float = 1) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if number > 0 else fallback


def _names_match(candidate: str, requested: str) -> bool:
    c = normalize_text(candidate)
    r = normalize_text(requested)
    return bool(c and r) and (c == r or r in c or c in r)


class ShoppingListService:
    """
    Shopping list lines, mutation history and substitution preferences.

    Every quantity or price change recomputes the line's pricing snapshot.
    """

    def __init__(
        self,
        catalog_service: Optional[CatalogService] = None,
        clock: Callable[[], datetime] = _utc_now
    ):
        self.catalog_service = catalog_service or get_catalog_service()
        self._clock = clock
        self._lines: list[ListLine] = []
        self._history: list[HistoryEntry] = []
        self._preferences: dict[str, list[str]] = {}
        self._lock = threading.RLock()

    # ===================
    # READ OPERATIONS
    # ===================

    def list_items(self) -> list[ListLine]:
        """Lines sorted by name."""
        with self._lock:
            return sorted((line.model_copy() for line in self._lines), key=lambda line: line.name)

    def history(self) -> list[HistoryEntry]:
        with self._lock:
            return list(self._history)

    def get_quantity(self, name: str, brand: str) -> Optional[MergedQuantity]:
        """Quantity on the list for an exact (normalized name, normalized brand)."""
        line = self._find_exact(name, brand)
        if line is None:
            return None
        return MergedQuantity(quantity=line.quantity, unit=line.unit)

    def get_preferences(self) -> dict[str, list[str]]:
        """Preferred alternatives keyed by item name."""
        with self._lock:
            return {key: list(values) for key, values in self._preferences.items()}

    def set_preference(self, item: str, alternatives: list[str]) -> None:
        with self._lock:
            self._preferences[normalize_text(item)] = [a for a in alternatives if a]
        logger.info("preference_saved", item=item, alternatives=alternatives)

    # ===================
    # WRITE OPERATIONS
    # ===================

    def add_item(
        self,
        name: str,
        brand: str = "",
        quantity=1,
        unit: str = "unit",
        size: str = "",
        mode: ListMode = ListMode.INCREMENT
    ) -> list[ListLine]:
        """
        Add a product, merging into an existing line for the same product.

        Args:
            name: Requested item name
            brand: Requested brand (may be empty)
            quantity: Amount in `unit`
            unit: Any unit spelling
            size: Requested package size
            mode: INCREMENT merges quantities, SET overwrites them

        Returns:
            The updated list
        """
        qty = _to_quantity(quantity)
        details = self._resolve(name, brand, size, unit)

        with self._lock:
            existing = self._find_exact(details["name"], details["brand"])
            now = self._clock()

            if existing is not None:
                if mode == ListMode.SET:
                    existing.quantity = qty
                    existing.unit = details["unit"]
                else:
                    merged = merge_quantities(existing.quantity, existing.unit, qty, details["unit"])
                    existing.quantity = _to_quantity(merged.quantity)
                    existing.unit = to_canonical_unit(merged.unit)
                existing.size = details["size"] or existing.size
                existing.category = details["category"]
                existing.in_stock = details["in_stock"]
                if details["price"]:
                    existing.last_known_price = details["price"]
                self._apply_price(existing)
                existing.last_updated_at = now
            else:
                line = ListLine(
                    id=str(uuid.uuid4()),
                    name=details["name"],
                    brand=details["brand"],
                    quantity=qty,
                    unit=details["unit"],
                    size=details["size"],
                    category=details["category"],
                    in_stock=details["in_stock"],
                    last_known_price=details["price"],
                    added_at=now,
                    last_updated_at=now,
                )
                self._lines.append(self._apply_price(line))

            self._record(details["name"], details["brand"], qty, details["unit"],
                         "update" if mode == ListMode.SET else "add")

        logger.info("list_item_added", name=details["name"], brand=details["brand"],
                    quantity=qty, unit=details["unit"], mode=mode.value)
        return self.list_items()

    def set_item_quantity(
        self,
        name: str,
        brand: str = "",
        quantity=1,
        unit: str = "unit",
        size: str = ""
    ) -> SetQuantityResult:
        """Overwrite the quantity of a line, creating it when missing."""
        qty = _to_quantity(quantity)
        details = self._resolve(name, brand, size, unit)

        with self._lock:
            existing = next(
                (
                    line for line in self._lines
                    if _names_match(line.name, details["name"])
                    and (not brand or normalize_text(brand) in normalize_text(line.brand))
                ),
                None
            )
            if existing is not None:
                existing.name = details["name"]
                existing.brand = details["brand"]
                existing.quantity = qty
                existing.unit = details["unit"]
                existing.size = details["size"] or existing.size
                existing.category = details["category"]
                existing.in_stock = details["in_stock"]
                if details["price"]:
                    existing.last_known_price = details["price"]
                self._apply_price(existing)
                existing.last_updated_at = self._clock()
                self._record(existing.name, existing.brand, qty, existing.unit, "update")
                logger.info("list_item_quantity_set", name=existing.name, quantity=qty, unit=existing.unit)
                return SetQuantityResult(created=False, item=existing.model_copy(), items=self.list_items())

        items = self.add_item(details["name"], details["brand"], qty, details["unit"], details["size"], ListMode.SET)
        item = next(
            (line for line in items
             if normalize_text(line.name) == normalize_text(details["name"])
             and normalize_text(line.brand) == normalize_text(details["brand"])),
            None
        )
        return SetQuantityResult(created=True, item=item, items=items)

    def remove_item(
        self,
        name: str,
        brand: str = "",
        quantity=None,
        unit: str = "unit"
    ) -> RemoveResult:
        """
        Remove a product or part of its quantity.

        A removal quantity is converted into the line's unit when possible.
        Removing at least the full quantity, or no quantity, deletes the line.
        """
        with self._lock:
            target = next(
                (
                    line for line in self._lines
                    if (not brand or normalize_text(brand) in normalize_text(line.brand))
                    and _names_match(line.name, name)
                ),
                None
            )
            if target is None:
                logger.info("list_item_not_on_list", name=name, brand=brand)
                return RemoveResult(removed=False, items=self.list_items())

            removal = None
            if quantity is not None:
                removal = convert_quantity(quantity, unit, target.unit)
                if removal is None:
                    removal = _to_quantity(quantity, 0)

            if removal and target.quantity > removal:
                target.quantity = target.quantity - removal
                self._apply_price(target)
                target.last_updated_at = self._clock()
                self._record(target.name, target.brand, removal, target.unit, "decrement")
            else:
                self._lines.remove(target)
                self._record(target.name, target.brand, target.quantity, target.unit, "remove")

        logger.info("list_item_removed", name=target.name, brand=target.brand, quantity=removal)
        return RemoveResult(removed=True, items=self.list_items())

    # ===================
    # HELPERS
    # ===================

    def _find_exact(self, name: str, brand: str) -> Optional[ListLine]:
        key = (normalize_text(name), normalize_text(brand))
        with self._lock:
            return next(
                (line for line in self._lines
                 if (normalize_text(line.name), normalize_text(line.brand)) == key),
                None
            )

    def _resolve(self, name: str, brand: str, size: str, unit: str) -> dict:
        """Ground a requested item on its best catalog match."""
        normalized = normalize_text(name)
        match = self.catalog_service.best_match(normalized, brand, size)
        return {
            "name": match.name if match else normalized,
            "brand": match.brand if match and match.brand else (brand or "Generic"),
            "size": size or (match.size if match else ""),
            "unit": to_canonical_unit(unit),
            "category": match.category if match else "others",
            "in_stock": match.in_stock if match else True,
            "price": match.effective_price if match else None,
        }

    def _apply_price(self, line: ListLine) -> ListLine:
        pricing = compute_pricing_snapshot(line.quantity, line.unit, line.size, line.last_known_price)
        line.line_total_price = pricing.line_total_price
        line.billable_quantity = pricing.billable_quantity
        line.billable_unit = pricing.billable_unit
        line.pricing_mode = pricing.pricing_mode
        return line

    def _record(self, name: str, brand: str, quantity: float, unit: str, action: str) -> None:
        self._history.append(HistoryEntry(
            name=normalize_text(name),
            brand=brand or "Generic",
            quantity=quantity,
            unit=unit or "unit",
            action=action,
            timestamp=self._clock(),
        ))


# Singleton instance
_shopping_list: Optional[ShoppingListService] = None


def get_shopping_list_service() -> ShoppingListService:
    """Get or create ShoppingListService instance."""
    global _shopping_list
    if _shopping_list is None:
        _shopping_list = ShoppingListService()
    return _shopping_list
