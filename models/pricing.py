"""
Pricing and unit schemas.
"""

from pydantic import Field
from typing import Optional
from enum import Enum

from models.base import FrozenSchema


class PricingMode(str, Enum):
    UNKNOWN = "unknown"
    DIRECT = "direct"
    PRORATED = "prorated"


class UnitFamily(str, Enum):
    MASS = "mass"
    VOLUME = "volume"
    COUNT = "count"
    UNKNOWN = "unknown"


class SizeDescriptor(FrozenSchema):
    """Amount and canonical unit parsed from a size label."""

    amount: float = Field(..., gt=0)
    unit: str
    raw: str = ""


class PricingSnapshot(FrozenSchema):
    """
    Money total for one list line or proposal option.

    Recomputed whenever quantity, unit, size or price changes.
    """

    line_total_price: Optional[float] = None
    billable_quantity: Optional[float] = None
    billable_unit: str = ""
    pricing_mode: PricingMode = PricingMode.UNKNOWN

    @property
    def line_total_label(self) -> str:
        if self.line_total_price is None:
            return ""
        return f"${self.line_total_price:.2f}"


class MergedQuantity(FrozenSchema):
    """Result of combining two quantities that may use different units."""

    quantity: float
    unit: str
    unit_mismatch: bool = Field(
        default=False,
        description="True when incompatible units were summed as raw numbers"
    )
