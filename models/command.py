"""
Parsed voice command schemas.
"""

from pydantic import Field
from typing import Optional
from enum import Enum

from models.base import FrozenSchema


class Action(str, Enum):
    """What the user wants to do with the list."""
    ADD = "add"
    REMOVE = "remove"
    UPDATE = "update"
    SEARCH = "search"
    UNKNOWN = "unknown"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ParseSource(str, Enum):
    """Which parser produced the command."""
    RULE = "rule"
    GENERATIVE = "generative"


class ListMode(str, Enum):
    """How a quantity is applied to an existing list line."""
    INCREMENT = "increment"
    SET = "set"


CANONICAL_UNITS = ("unit", "piece", "pack", "bottle", "kg", "g", "liter", "ml")


class CommandFilters(FrozenSchema):
    """Search filters extracted from a command."""

    query: str = ""
    brand: str = ""
    size: str = ""
    max_price: Optional[float] = None
    min_price: Optional[float] = None


class ParsedCommand(FrozenSchema):
    """
    Structured result of parsing one transcript.

    Created fresh per parse call and never mutated afterwards.
    """

    action: Action = Action.UNKNOWN
    item: str = ""
    brand: str = ""
    quantity: Optional[float] = Field(1, description="Null for search commands")
    quantity_provided: bool = False
    unit: str = Field("unit", description="One of CANONICAL_UNITS")
    size: str = ""
    filters: CommandFilters = Field(default_factory=CommandFilters)
    locale: str = "en-US"
    confidence: Confidence = Confidence.LOW
    raw: str = ""
    source: ParseSource = ParseSource.RULE

    @property
    def mode(self) -> ListMode:
        """Update commands overwrite quantities, everything else increments."""
        return ListMode.SET if self.action == Action.UPDATE else ListMode.INCREMENT
