"""
Aggregator: computed totals, discrepancy against reported totals, fund shares
"""

import logging
from typing import Dict, List, Optional

from .schemas import FundingRow, MatchRow, NormalizedRow, NormalizedTable

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def compute_total(rows: List[NormalizedRow]) -> Optional[float]:
    """Sum of non-null row totals, or None when no row carries a total"""
    values = [row.total_cost for row in rows if row.total_cost is not None]
    if not values:
        return None
    return sum(values)


def compute_discrepancy(reported: Optional[float], computed: Optional[float]) -> Optional[float]:
    """reported - computed when both are numeric"""
    if reported is None or computed is None:
        return None
    return reported - computed


def _sum_field(rows: List[NormalizedRow], field: str) -> float:
    total = 0.0
    for row in rows:
        value = getattr(row, field, None)
        if value is not None:
            total += value
    return total


def funding_totals(rows: List[FundingRow]) -> Dict[str, float]:
    """Independent per-contributor sums across all rows"""
    return {
        'producer_computed': _sum_field(rows, 'producer_contribution'),
        'nrcs_computed': _sum_field(rows, 'nrcs_contribution'),
        'other_computed': _sum_field(rows, 'other_contribution'),
    }


def apply_funding_shares(row: FundingRow) -> FundingRow:
    """
    Synthesize a missing row total from its contributors and record each share

    A parsed total is kept as-is; shares are relative to that total.
    """
    parts = [row.producer_contribution, row.nrcs_contribution, row.other_contribution]
    present = [part for part in parts if part is not None]

    total = row.total_cost
    if total is None and present:
        total = sum(present)

    def share(value: Optional[float]) -> Optional[float]:
        if not total:
            return None
        return (value or 0.0) / total

    return row.model_copy(update={
        'total_cost': total,
        'funding_pct_producer': share(row.producer_contribution),
        'funding_pct_nrcs': share(row.nrcs_contribution),
        'funding_pct_other': share(row.other_contribution),
    })


def match_totals(rows: List[MatchRow], reported: Optional[float]) -> Dict[str, Optional[float]]:
    """Landowner match computed sum and its discrepancy against the reported match"""
    computed = _sum_field(rows, 'landowner_match')
    return {
        'landowner_match_reported': reported,
        'landowner_match_computed': computed,
        'match_discrepancy': compute_discrepancy(reported, computed),
    }


def build_normalized(pattern_id: str, confidence: float, rows: List[NormalizedRow],
                     total_reported: Optional[float] = None, **extras) -> NormalizedTable:
    """
    Package rows with their computed total and discrepancy

    Args:
        pattern_id: Dialect identifier
        confidence: Static dialect confidence
        rows: Normalized rows
        total_reported: Figure read from an explicit Total line, if any
        **extras: Dialect-specific table fields (funding sums, match totals ...)

    Returns:
        NormalizedTable
    """
    total_computed = compute_total(rows)
    return NormalizedTable(
        rows=rows,
        total_reported=total_reported,
        total_computed=total_computed,
        discrepancy=compute_discrepancy(total_reported, total_computed),
        pattern_id=pattern_id,
        pattern_confidence=confidence,
        **extras
    )


def reconcile(table: NormalizedTable, tolerance: float) -> NormalizedTable:
    """Flag whether the reported total agrees with the computed one"""
    if table.discrepancy is None:
        return table

    reconciled = abs(table.discrepancy) <= tolerance
    if not reconciled:
        logger.info(
            f"⚠️ {table.pattern_id}: reported {table.total_reported:.2f} vs "
            f"computed {table.total_computed:.2f} (discrepancy {table.discrepancy:.2f})"
        )
    return table.model_copy(update={'reconciled': reconciled})
