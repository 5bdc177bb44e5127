"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,

    # Input
    MissingFieldError,
    InvalidSelectionError,

    # Catalog
    CatalogValidationError,
    CatalogItemNotFoundError,
    ItemUnavailableError,

    # Confirmations
    ConfirmationNotFoundError,

    # Generative parser
    GeneratorUnavailableError,
    GenerativePayloadError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",

    # Input
    "MissingFieldError",
    "InvalidSelectionError",

    # Catalog
    "CatalogValidationError",
    "CatalogItemNotFoundError",
    "ItemUnavailableError",

    # Confirmations
    "ConfirmationNotFoundError",

    # Generative parser
    "GeneratorUnavailableError",
    "GenerativePayloadError",
]
