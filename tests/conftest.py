"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from services.catalog_service import CatalogRepository, CatalogService
from services.command_parser_service import CommandParserService
from services.confirmation_store_service import ConfirmationStore
from services.shopping_list_service import ShoppingListService
from tests.factories import grocery_catalog


# ===================
# FAKE CLOCK
# ===================

class FakeClock:
    """Manually advanced UTC clock for TTL tests."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ===================
# CATALOG
# ===================

@pytest.fixture
def sample_catalog() -> list[dict]:
    """Raw catalog rows (camelCase, as loaded from a file)."""
    return grocery_catalog()


@pytest.fixture
def catalog_repository(sample_catalog) -> CatalogRepository:
    return CatalogRepository(sample_catalog, source="test", validate_sale_prices=True)


@pytest.fixture
def catalog_service(catalog_repository) -> CatalogService:
    return CatalogService(catalog_repository)


@pytest.fixture
def rule_parser(catalog_service) -> CommandParserService:
    return CommandParserService(catalog_service, rule_preferred_locales=["hi", "es"])


# ===================
# SHOPPING LIST
# ===================

@pytest.fixture
def shopping_list(catalog_service, clock) -> ShoppingListService:
    return ShoppingListService(catalog_service, clock=clock)


@pytest.fixture
def brand_store(clock) -> ConfirmationStore:
    return ConfirmationStore("Brand selection", ttl_minutes=10, clock=clock)


@pytest.fixture
def substitute_store(clock) -> ConfirmationStore:
    return ConfirmationStore("Confirmation", ttl_minutes=10, clock=clock)


# ===================
# GENERATOR
# ===================

@pytest.fixture
def mock_completion_client() -> MagicMock:
    """
    Text completion client returning whatever the test sets.

    Usage:
        def test_something(mock_completion_client):
            mock_completion_client.complete.return_value = '{"action": "add"}'
    """
    client = MagicMock()
    client.complete.return_value = ""
    return client
