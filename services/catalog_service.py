"""
Catalog snapshot and lexical matching.

The snapshot is read-mostly. A reload builds and validates a complete new
snapshot, then swaps it in with a single assignment, so concurrent readers
see either the old or the new catalog and never a mix.
"""

import json
from pathlib import Path
from typing import Any, Iterable, Optional, Union
import structlog

from pydantic import ValidationError as PydanticValidationError

from config import settings
from exceptions import CatalogValidationError
from models.catalog import CatalogEntry, CatalogFilters, SearchResult
from utils.text_utils import normalize_text

logger = structlog.get_logger(__name__)

# Best match must carry at least one real name-token hit
MIN_MATCH_RELEVANCE = 3

# Common speech-to-text variants
_TOKEN_FIXES = {
    "chocholate": "chocolate",
    "chocholates": "chocolate",
    "choclate": "chocolate",
    "choclates": "chocolate",
}


def normalize_token(token: str) -> str:
    """
    Light stemming for lexical matching.

    - "tomatoes" → "tomato", "apples" → "appl", "eggs" → "egg"
    - short words are left alone ("gas", "peas")
    """
    out = normalize_text(token)
    if not out:
        return ""
    out = _TOKEN_FIXES.get(out, out)
    if out.endswith("es") and len(out) > 4:
        return out[:-2]
    if out.endswith("s") and len(out) > 3:
        return out[:-1]
    return out


def tokenize(value: str) -> list[str]:
    return [t for t in (normalize_token(part) for part in normalize_text(value).split()) if t]


def _as_price(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class CatalogRepository:
    """
    Holder of the current catalog snapshot.

    The snapshot, its known-brand list and its source label live in one
    tuple that is replaced atomically.
    """

    def __init__(
        self,
        entries: Iterable[CatalogEntry] = (),
        source: str = "memory",
        validate_sale_prices: Optional[bool] = None
    ):
        self.validate_sale_prices = (
            settings.validate_sale_prices if validate_sale_prices is None else validate_sale_prices
        )
        self._state: tuple[tuple[CatalogEntry, ...], tuple[str, ...], str] = ((), (), source)
        if entries:
            self.replace(entries, source=source)

    @property
    def snapshot(self) -> tuple[CatalogEntry, ...]:
        return self._state[0]

    @property
    def known_brands(self) -> tuple[str, ...]:
        return self._state[1]

    @property
    def source(self) -> str:
        return self._state[2]

    def replace(
        self,
        entries: Iterable[Union[CatalogEntry, dict]],
        source: str = "memory"
    ) -> int:
        """
        Validate a full batch and swap it in.

        Args:
            entries: CatalogEntry objects or raw dicts (camelCase or snake_case)
            source: Label describing where the batch came from

        Returns:
            Number of entries in the new snapshot

        Raises:
            CatalogValidationError: On duplicate sku, invalid fields, or
                (when enabled) an on-sale price not below list price
        """
        rows: list[CatalogEntry] = []
        errors: list[dict] = []
        seen: set[str] = set()

        for index, raw in enumerate(entries):
            try:
                entry = raw if isinstance(raw, CatalogEntry) else CatalogEntry.model_validate(raw)
            except PydanticValidationError as e:
                errors.append({"row": index, "error": str(e)})
                continue

            if entry.sku in seen:
                errors.append({"row": index, "sku": entry.sku, "error": "duplicate sku"})
                continue
            if (
                self.validate_sale_prices
                and entry.on_sale
                and entry.sale_price is not None
                and entry.sale_price >= entry.price
            ):
                errors.append({"row": index, "sku": entry.sku, "error": "sale price must be below list price"})
                continue

            seen.add(entry.sku)
            rows.append(entry)

        if errors:
            logger.error("catalog_validation_failed", source=source, error_count=len(errors))
            raise CatalogValidationError(errors)

        brands = tuple(dict.fromkeys(entry.brand for entry in rows if entry.brand))
        self._state = (tuple(rows), brands, source)

        logger.info("catalog_replaced", source=source, count=len(rows), brands=len(brands))
        return len(rows)

    def load_file(self, path: Union[str, Path]) -> int:
        """
        Replace the snapshot with a JSON array read from disk.

        Raises:
            CatalogValidationError: If the file is unreadable or invalid
        """
        file_path = Path(path)
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("catalog_file_read_failed", path=str(file_path), error=str(e))
            raise CatalogValidationError([{"path": str(file_path), "error": str(e)}])

        if not isinstance(data, list):
            raise CatalogValidationError([{"path": str(file_path), "error": "expected a JSON array"}])

        return self.replace(data, source=f"file:{file_path.name}")


class CatalogService:
    """
    Lexical catalog lookups over the current snapshot.

    filter() returns every entry that satisfies the filters (unranked);
    best_match() scores entries and returns the top one only when it has
    real name evidence.
    """

    def __init__(self, repository: Optional[CatalogRepository] = None):
        self.repository = repository or get_catalog_repository()

    def known_brands(self) -> tuple[str, ...]:
        return self.repository.known_brands

    # ===================
    # FILTER MODE
    # ===================

    def filter(self, filters: Optional[CatalogFilters] = None, **kwargs) -> list[CatalogEntry]:
        """
        Entries matching every provided filter, in snapshot order.

        Args:
            filters: CatalogFilters, or the same fields as keyword arguments

        Returns:
            List of CatalogEntry (possibly empty)
        """
        filters = filters or CatalogFilters(**kwargs)
        tokens = tokenize(filters.query)
        brand_text = normalize_text(filters.brand)
        size_text = normalize_text(filters.size)
        max_price = _as_price(filters.max_price)
        min_price = _as_price(filters.min_price)

        matches = []
        for entry in self.repository.snapshot:
            haystack = f"{entry.name} {entry.brand} {entry.size}".lower()
            if tokens and not all(token in haystack for token in tokens):
                continue
            if brand_text and brand_text not in entry.brand.lower():
                continue
            if size_text and size_text not in entry.size.lower():
                continue
            price = entry.effective_price
            if max_price is not None and price > max_price:
                continue
            if min_price is not None and price < min_price:
                continue
            if filters.in_stock_only and not entry.in_stock:
                continue
            matches.append(entry)

        logger.debug(
            "catalog_filtered",
            query=filters.query,
            brand=filters.brand,
            size=filters.size,
            count=len(matches)
        )
        return matches

    def search(self, filters: Optional[CatalogFilters] = None, **kwargs) -> list[SearchResult]:
        """filter() with effective price and display label attached."""
        return [
            SearchResult(entry=entry, effective_price=entry.effective_price, price_label=entry.price_label)
            for entry in self.filter(filters, **kwargs)
        ]

    # ===================
    # BEST MATCH MODE
    # ===================

    def best_match(self, name: str, brand: str = "", size: str = "") -> Optional[CatalogEntry]:
        """
        Single best catalog entry for a requested item.

        Scoring:
            +12 exact name, +3 per query token (>= 2 chars) in the name,
            +4 name contains the query / +2 query contains the name,
            +4 brand hit, +3 size hit. Without any name evidence the
            relevance is 0. In-stock adds 0.5 to the sort score only.

        Returns:
            Top entry when its relevance is at least MIN_MATCH_RELEVANCE,
            otherwise None
        """
        name_text = normalize_text(name)
        if not name_text:
            return None

        name_tokens = [t for t in tokenize(name_text) if len(t) >= 2]
        brand_text = normalize_text(brand)
        size_text = normalize_text(size)

        scored = []
        for entry in self.repository.snapshot:
            row_name = entry.name.lower()
            exact = row_name == name_text
            relevance = 12 if exact else 0

            token_hits = sum(1 for token in name_tokens if token in row_name)
            relevance += 3 * token_hits

            contains_query = not exact and name_text in row_name
            contained_in_query = not exact and row_name in name_text
            if contains_query:
                relevance += 4
            elif contained_in_query:
                relevance += 2

            if not (exact or token_hits or contains_query or contained_in_query):
                # brand or size overlap alone never qualifies
                relevance = 0
            else:
                if brand_text and brand_text in entry.brand.lower():
                    relevance += 4
                if size_text and size_text in entry.size.lower():
                    relevance += 3

            score = relevance + (0.5 if entry.in_stock else 0)
            scored.append((score, relevance, entry))

        if not scored:
            return None

        scored.sort(key=lambda row: (-row[0], -row[1], not row[2].in_stock, row[2].name))
        _, relevance, best = scored[0]

        if relevance < MIN_MATCH_RELEVANCE:
            logger.debug("catalog_no_match", name=name, best_candidate=best.sku, relevance=relevance)
            return None

        logger.debug("catalog_best_match", name=name, sku=best.sku, relevance=relevance)
        return best


# Singleton instances
_catalog_repository: Optional[CatalogRepository] = None
_catalog_service: Optional[CatalogService] = None


def get_catalog_repository() -> CatalogRepository:
    """Get or create the process-wide catalog repository."""
    global _catalog_repository
    if _catalog_repository is None:
        _catalog_repository = CatalogRepository()
        if settings.catalog_path:
            _catalog_repository.load_file(settings.catalog_path)
    return _catalog_repository


def get_catalog_service() -> CatalogService:
    """Get or create CatalogService instance."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
