"""
Normalizer: map heterogeneous raw fields into the canonical row schema
"""

import logging
from typing import Optional, Type

from .schemas import NormalizedRow
from .utils import canonicalize_unit, split_quantity_unit

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def derive_costs(quantity: Optional[float], unit_cost: Optional[float],
                 total_cost: Optional[float]):
    """
    Fill in whichever of unit cost / total cost is missing

    Recomputation is one-directional: a parsed total is never overwritten.

    Returns:
        (unit_cost, total_cost)
    """
    if total_cost is None and unit_cost is not None and quantity is not None:
        total_cost = round(unit_cost * quantity, 2)
        logger.debug(f"Synthesized total {total_cost} from {quantity} x {unit_cost}")
    elif unit_cost is None and total_cost is not None and quantity:
        unit_cost = total_cost / quantity
        logger.debug(f"Back-computed unit cost {unit_cost} from {total_cost} / {quantity}")
    return unit_cost, total_cost


def build_row(name: str,
              quantity: Optional[float] = None,
              unit_raw: Optional[str] = None,
              unit_cost: Optional[float] = None,
              total_cost: Optional[float] = None,
              raw_size: Optional[str] = None,
              raw_cost: Optional[str] = None,
              row_cls: Type[NormalizedRow] = NormalizedRow,
              derive: bool = True,
              **extra) -> NormalizedRow:
    """
    Build a canonical row from whatever fields a dialect could read

    Quantity and unit come from the explicit arguments, or else from
    splitting raw_size ("32 acres", "1,200 ft"). The unit token always
    goes through the shared alias table.

    Args:
        name: Practice / item name
        quantity: Explicit quantity column, if any
        unit_raw: Explicit unit token, if any
        unit_cost: Parsed unit cost
        total_cost: Parsed total cost (takes precedence over any derived value)
        raw_size: Combined size/amount text
        raw_cost: Raw cost cell text
        row_cls: Row variant to construct
        derive: Synthesize the missing cost from quantity when possible
        **extra: Variant-specific fields (code, section, landowner_match ...)

    Returns:
        Row instance of row_cls
    """
    if quantity is None and raw_size:
        size_qty, size_unit, _ = split_quantity_unit(raw_size)
        quantity = size_qty
        if unit_raw is None:
            unit_raw = size_unit

    if derive:
        unit_cost, total_cost = derive_costs(quantity, unit_cost, total_cost)

    return row_cls(
        name=name.strip(),
        quantity=quantity,
        unit=canonicalize_unit(unit_raw),
        unit_raw=unit_raw,
        unit_cost=unit_cost,
        total_cost=total_cost,
        raw_size=raw_size,
        raw_cost=raw_cost,
        **extra
    )


def clean_name(text: str) -> str:
    """Strip bullets, leader dots and trailing separators from an item name"""
    name = text.strip()
    name = name.lstrip('-•*· ').strip()
    name = name.rstrip(':-•.… ').strip()
    return name
