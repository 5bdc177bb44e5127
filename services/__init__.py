"""
Business logic services.

Each service handles one domain area.
"""

from services.catalog_service import (
    CatalogRepository,
    CatalogService,
    get_catalog_repository,
    get_catalog_service,
)
from services.command_parser_service import CommandParserService, get_command_parser_service
from services.generative_parser_service import (
    AnthropicCompletionClient,
    GenerativeParserService,
    get_generative_parser_service,
)
from services.confirmation_store_service import ConfirmationStore
from services.shopping_list_service import ShoppingListService, get_shopping_list_service
from services.brand_selection_service import BrandSelectionService, get_brand_selection_service
from services.substitute_service import SubstituteService, get_substitute_service
from services.command_service import CommandService, get_command_service
from services.suggestion_service import SuggestionService, get_suggestion_service

__all__ = [
    "CatalogRepository",
    "CatalogService",
    "get_catalog_repository",
    "get_catalog_service",
    "CommandParserService",
    "get_command_parser_service",
    "AnthropicCompletionClient",
    "GenerativeParserService",
    "get_generative_parser_service",
    "ConfirmationStore",
    "ShoppingListService",
    "get_shopping_list_service",
    "BrandSelectionService",
    "get_brand_selection_service",
    "SubstituteService",
    "get_substitute_service",
    "CommandService",
    "get_command_service",
    "SuggestionService",
    "get_suggestion_service",
]
