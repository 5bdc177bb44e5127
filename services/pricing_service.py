"""
Package-size-aware pricing and unit conversion.

A catalog price is always per package ("500g", "6 x 330ml", "12 pack").
Requests can come in any unit, so line totals are computed on the number
of packages the request represents whenever the size label allows it.

Unit families:
    mass:   g, kg        (base: grams)
    volume: ml, liter    (base: milliliters)
    count:  unit, piece, pack, bottle (no conversion between them)
"""

import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import structlog

from models.pricing import (
    MergedQuantity,
    PricingMode,
    PricingSnapshot,
    SizeDescriptor,
    UnitFamily,
)
from utils.text_utils import normalize_text

logger = structlog.get_logger(__name__)


# ===================
# UNIT TABLES
# ===================

UNIT_ALIASES: dict[str, str] = {
    # count
    "unit": "unit", "units": "unit", "unidad": "unit", "unidades": "unit",
    "piece": "piece", "pieces": "piece", "pc": "piece", "pcs": "piece",
    "pieza": "piece", "piezas": "piece",
    "bottle": "bottle", "bottles": "bottle", "botella": "bottle", "botellas": "bottle",
    "pack": "pack", "packs": "pack", "paquete": "pack", "paquetes": "pack",
    # mass
    "kg": "kg", "kilo": "kg", "kilos": "kg", "kilogram": "kg", "kilograms": "kg",
    "kilogramo": "kg", "kilogramos": "kg", "किलो": "kg", "किलोग्राम": "kg",
    "g": "g", "gram": "g", "grams": "g", "gramo": "g", "gramos": "g", "ग्राम": "g",
    # volume
    "l": "liter", "liter": "liter", "liters": "liter", "litre": "liter", "litres": "liter",
    "litro": "liter", "litros": "liter", "लीटर": "liter",
    "ml": "ml", "mililitro": "ml", "mililitros": "ml", "मिलीलीटर": "ml",
}

_FAMILIES: dict[str, UnitFamily] = {
    "g": UnitFamily.MASS,
    "kg": UnitFamily.MASS,
    "ml": UnitFamily.VOLUME,
    "liter": UnitFamily.VOLUME,
    "unit": UnitFamily.COUNT,
    "piece": UnitFamily.COUNT,
    "pack": UnitFamily.COUNT,
    "bottle": UnitFamily.COUNT,
}

# Multiplier into the family base unit (grams / milliliters)
_BASE_FACTORS: dict[str, int] = {"g": 1, "kg": 1000, "ml": 1, "liter": 1000}

_NUMBER = r"(\d+(?:\.\d+)?)"
_MULTIPACK_SIZE = re.compile(rf"^{_NUMBER}\s*x\s*{_NUMBER}\s*(kg|g|ml|l|liter|litre)\b")
_PLAIN_SIZE = re.compile(
    rf"^{_NUMBER}\s*(kg|g|ml|l|liter|litre|packs|pack|pieces|piece|pcs|units|unit|bottles|bottle)\b"
)
_FINGER_SIZE = re.compile(rf"^{_NUMBER}\s*[- ]?finger\b")

_CENTS = Decimal("0.01")
_QUANTITY_STEP = Decimal("0.0001")
MIN_BILLABLE_QUANTITY = 0.0001


def to_canonical_unit(unit: Optional[str] = "unit") -> str:
    """
    Map any known spelling to its canonical unit.

    Unknown spellings come back lowercased; empty input means "unit".
    """
    key = normalize_text(unit)
    if not key:
        return "unit"
    return UNIT_ALIASES.get(key, key)


def unit_family(unit: str) -> UnitFamily:
    return _FAMILIES.get(to_canonical_unit(unit), UnitFamily.UNKNOWN)


def _to_base(amount: float, unit: str) -> Optional[float]:
    factor = _BASE_FACTORS.get(unit)
    if factor is None or amount <= 0:
        return None
    return amount * factor


def round_money(value: float) -> float:
    return float(Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def round_quantity(value: float) -> float:
    return float(Decimal(str(value)).quantize(_QUANTITY_STEP, rounding=ROUND_HALF_UP))


def _as_number(value) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


# ===================
# SIZE LABELS
# ===================

def parse_size_label(size_label: Optional[str]) -> Optional[SizeDescriptor]:
    """
    Parse a package size label.

    First matching form wins:
        "6 x 330ml"  → 1980 ml
        "500g", "2 l", "12 pack", "6 pcs" → amount + unit
        "4-finger"   → 4 piece

    Returns:
        SizeDescriptor, or None when the label has no recognisable amount
    """
    size = normalize_text(size_label)
    if not size:
        return None

    match = _MULTIPACK_SIZE.match(size)
    if match:
        amount = float(match.group(1)) * float(match.group(2))
        if amount > 0:
            return SizeDescriptor(amount=amount, unit=to_canonical_unit(match.group(3)), raw=size_label)

    match = _PLAIN_SIZE.match(size)
    if match:
        amount = float(match.group(1))
        if amount > 0:
            return SizeDescriptor(amount=amount, unit=to_canonical_unit(match.group(2)), raw=size_label)

    match = _FINGER_SIZE.match(size)
    if match:
        amount = float(match.group(1))
        if amount > 0:
            return SizeDescriptor(amount=amount, unit="piece", raw=size_label)

    return None


# ===================
# CONVERSION
# ===================

def convert_quantity(amount, from_unit: str, to_unit: str) -> Optional[float]:
    """
    Convert between units of the same mass or volume family.

    Returns:
        Converted amount, the amount itself when the units are equal,
        or None for non-positive amounts, count units and cross-family pairs
    """
    quantity = _as_number(amount)
    if quantity is None or quantity <= 0:
        return None

    source = to_canonical_unit(from_unit)
    target = to_canonical_unit(to_unit)
    if source == target:
        return quantity

    family = unit_family(source)
    if family not in (UnitFamily.MASS, UnitFamily.VOLUME) or family != unit_family(target):
        return None

    return _to_base(quantity, source) / _BASE_FACTORS[target]


# ===================
# PRICING
# ===================

def compute_pricing_snapshot(
    quantity,
    unit: Optional[str] = "unit",
    size_label: Optional[str] = "",
    unit_price=None
) -> PricingSnapshot:
    """
    Price a requested quantity of a packaged product.

    Args:
        quantity: Requested amount in `unit`
        unit: Requested unit (any spelling)
        size_label: Catalog size label of the package
        unit_price: Effective price of one package

    Returns:
        PricingSnapshot. Mode is "prorated" when the request was converted
        into a number of packages, "direct" when quantity × price was used
        as-is, "unknown" when quantity or price is missing.
    """
    requested = _as_number(quantity)
    price = _as_number(unit_price)
    if requested is None or requested <= 0 or price is None or price <= 0:
        return PricingSnapshot()

    requested_unit = to_canonical_unit(unit)
    size = parse_size_label(size_label)
    if size is None:
        return PricingSnapshot(
            line_total_price=round_money(requested * price),
            billable_quantity=requested,
            billable_unit=requested_unit,
            pricing_mode=PricingMode.DIRECT
        )

    requested_family = unit_family(requested_unit)
    size_family = unit_family(size.unit)

    billable_quantity = requested
    billable_unit = requested_unit
    mode = PricingMode.DIRECT

    if requested_family == size_family and requested_family in (UnitFamily.MASS, UnitFamily.VOLUME):
        requested_base = _to_base(requested, requested_unit)
        size_base = _to_base(size.amount, size.unit)
        if requested_base and size_base:
            billable_quantity = max(MIN_BILLABLE_QUANTITY, requested_base / size_base)
            billable_unit = "pack"
            mode = PricingMode.PRORATED
    elif requested_family == UnitFamily.COUNT and size_family == UnitFamily.COUNT:
        if requested_unit == "pack":
            billable_unit = "pack"
        elif size.unit == "pack" or size.amount > 1:
            billable_quantity = max(MIN_BILLABLE_QUANTITY, requested / size.amount)
            billable_unit = "pack"
            mode = PricingMode.PRORATED
    elif requested_unit == "pack":
        billable_unit = "pack"

    billable_quantity = round_quantity(billable_quantity)
    return PricingSnapshot(
        line_total_price=round_money(billable_quantity * price),
        billable_quantity=billable_quantity,
        billable_unit=billable_unit,
        pricing_mode=mode
    )


# ===================
# QUANTITY MERGE
# ===================

def merge_quantities(
    current_quantity,
    current_unit: Optional[str],
    delta_quantity,
    delta_unit: Optional[str]
) -> MergedQuantity:
    """
    Add a delta to an existing quantity, converting units where possible.

    Order of attempts: same unit → delta converted into the current unit →
    current converted into the delta unit → raw numeric sum in the current
    unit. The last step mixes incompatible families (e.g. kg + piece); it
    is flagged with unit_mismatch=True and logged.
    """
    current = _as_number(current_quantity) or 0.0
    delta = _as_number(delta_quantity) or 0.0
    current_unit = to_canonical_unit(current_unit)
    delta_unit = to_canonical_unit(delta_unit)

    if current <= 0:
        return MergedQuantity(quantity=delta, unit=delta_unit)

    if current_unit == delta_unit:
        return MergedQuantity(quantity=current + delta, unit=current_unit)

    converted_delta = convert_quantity(delta, delta_unit, current_unit)
    if converted_delta is not None:
        return MergedQuantity(quantity=current + converted_delta, unit=current_unit)

    converted_current = convert_quantity(current, current_unit, delta_unit)
    if converted_current is not None:
        return MergedQuantity(quantity=converted_current + delta, unit=delta_unit)

    logger.warning(
        "unit_mismatch_merge",
        current_quantity=current,
        current_unit=current_unit,
        delta_quantity=delta,
        delta_unit=delta_unit
    )
    return MergedQuantity(quantity=current + delta, unit=current_unit, unit_mismatch=True)
