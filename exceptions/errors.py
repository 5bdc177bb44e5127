"""
Custom exception classes for the command pipeline.

Absence of a catalog match is never an exception: lookups return None or
an empty list. Exceptions are reserved for caller mistakes (422), unknown
or expired confirmations (404), unavailable stock (409) and the external
generator (503, caught inside the generative adapter).
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "CONFIRMATION_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP-style status code for the outer surface
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None,
        message: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            message=message or f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with current state (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# INPUT ERRORS
# ===================

class MissingFieldError(ValidationError):
    """A required request field (transcript, token, sku, item) is empty."""

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(
            code=f"{field.upper()}_REQUIRED",
            message=message or f"{field.replace('_', ' ').capitalize()} is required",
            details={"field": field}
        )


class InvalidSelectionError(ValidationError):
    """Selected sku is not one of the options in the stored proposal."""

    def __init__(self, sku: str, kind: str):
        super().__init__(
            code="INVALID_SELECTION",
            message=f"Selected {kind} option is invalid",
            details={"sku": sku, "kind": kind}
        )


# ===================
# CATALOG ERRORS
# ===================

class CatalogValidationError(ValidationError):
    """Catalog batch rejected at ingest."""

    def __init__(self, errors: list[dict]):
        super().__init__(
            code="CATALOG_INVALID",
            message=f"Catalog validation failed with {len(errors)} errors",
            details={"errors": errors}
        )


class CatalogItemNotFoundError(NotFoundError):
    """No catalog entry matches the requested item."""

    def __init__(self, item: str):
        super().__init__(
            resource="Catalog item",
            identifier=item,
            code="CATALOG_ITEM_NOT_FOUND",
            message=f'Item "{item}" was not found in catalog stock. Try another item or brand.'
        )


class ItemUnavailableError(ConflictError):
    """Matched entry is out of stock and no substitute is viable."""

    def __init__(self, name: str, sku: Optional[str] = None):
        super().__init__(
            code="ITEM_UNAVAILABLE",
            message=f'"{name}" is currently out of stock and no suitable alternatives were found.',
            details={"name": name, "sku": sku}
        )


# ===================
# CONFIRMATION ERRORS
# ===================

class ConfirmationNotFoundError(NotFoundError):
    """Token unknown, already used, or expired."""

    def __init__(self, token: str, kind: str = "Confirmation"):
        super().__init__(
            resource=kind,
            identifier=token,
            code="CONFIRMATION_NOT_FOUND",
            message=f"{kind} request expired or not found"
        )


# ===================
# GENERATIVE PARSER ERRORS
# ===================

class GeneratorUnavailableError(ExternalServiceError):
    """Generator unreachable, timed out, or returned nothing usable."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="generator",
            message=message,
            details=details
        )


class GenerativePayloadError(ValidationError):
    """Generator returned JSON that does not satisfy the command schema."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="GENERATIVE_PAYLOAD_INVALID",
            message=message,
            details=details
        )
