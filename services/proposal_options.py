"""
Shared construction of priced proposal options.
"""

from typing import Optional

from models.catalog import CatalogEntry
from models.proposal import ProposalOption
from services.pricing_service import compute_pricing_snapshot
from services.shopping_list_service import ListStore


def build_option(
    entry: CatalogEntry,
    quantity,
    unit: str,
    list_store: Optional[ListStore] = None
) -> ProposalOption:
    """
    Price a catalog entry for the requested quantity.

    The option carries the entry's own pricing snapshot and, when a list
    store is given, how much of this product is already on the list.
    """
    unit_price = entry.effective_price
    pricing = compute_pricing_snapshot(quantity, unit, entry.size, unit_price)

    in_list = list_store.get_quantity(entry.name, entry.brand) if list_store is not None else None
    return ProposalOption(
        entry=entry,
        pricing=pricing,
        unit_price=unit_price,
        unit_price_label=entry.price_label,
        in_list_quantity=in_list.quantity if in_list else None,
        in_list_unit=in_list.unit if in_list else "",
    )
