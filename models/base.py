"""
Base schemas and mixins for all models.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
        - Accept camelCase keys from external payloads
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True
    )


class FrozenSchema(BaseSchema):
    """
    Immutable schema.

    Used for values shared between requests (catalog entries, parsed
    commands, proposals). Derive changed copies with model_copy(update=...).
    """
    model_config = ConfigDict(frozen=True)


class TimestampMixin(BaseModel):
    """Add timestamps to list records."""
    added_at: datetime
    last_updated_at: Optional[datetime] = None
