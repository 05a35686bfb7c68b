"""
Corpus-level helpers for the report assembler
Merges coded budgets, summarizes detections and tabulates rows with pandas
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .aggregator import build_normalized
from .patterns import CONFIDENCE
from .schemas import DetectedTable, RawTable

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CODED_BUDGET_ID = 'implementation_plan_coded_budget'
MERGED_CODED_BUDGET_ID = 'implementation_plan_coded_budget_merged'


def merge_coded_budgets(tables: List[DetectedTable]) -> List[DetectedTable]:
    """
    Collapse several implementation-plan budget detections into one table

    Rows sharing a code and section have their totals summed. Reported totals
    are added up when any table reported one; the span is the union.

    Args:
        tables: Detections from scan()

    Returns:
        Detections with the coded budgets replaced by a single merged entry
    """
    coded = [t for t in tables if t.id == CODED_BUDGET_ID]
    if len(coded) <= 1:
        return list(tables)

    merged_rows = {}
    for table in coded:
        for row in table.normalized.rows:
            key = f"{getattr(row, 'code', None)}|{getattr(row, 'section', None)}"
            existing = merged_rows.get(key)
            if existing is None:
                merged_rows[key] = row
            elif row.total_cost is not None:
                merged_rows[key] = existing.model_copy(
                    update={'total_cost': (existing.total_cost or 0.0) + row.total_cost}
                )

    reported = [t.normalized.total_reported for t in coded if t.normalized.total_reported is not None]
    subtotals = [s for t in coded for s in (t.normalized.section_subtotals or [])]

    merged = DetectedTable(
        id=MERGED_CODED_BUDGET_ID,
        title=coded[0].title,
        span_start=min(t.span_start for t in coded),
        span_end=max(t.span_end for t in coded),
        dollar_line_indices=sorted({i for t in coded for i in t.dollar_line_indices}),
        table=RawTable(
            columns=coded[0].table.columns,
            rows=[raw for t in coded for raw in t.table.rows],
            total=sum(reported) if reported else None,
        ),
        normalized=build_normalized(
            CODED_BUDGET_ID,
            CONFIDENCE[CODED_BUDGET_ID],
            list(merged_rows.values()),
            sum(reported) if reported else None,
            section_subtotals=subtotals or None,
        ),
    )
    logger.info(f"🔗 Merged {len(coded)} coded budget tables into {len(merged_rows)} rows")

    others = [t for t in tables if t.id != CODED_BUDGET_ID]
    return sorted(others + [merged], key=lambda t: t.span_start)


def summarize_detections(tables: List[DetectedTable]) -> List[Dict]:
    """costPatternsDetected metadata: one entry per detection"""
    return [
        {
            'id': t.id,
            'title': t.title,
            'confidence': t.normalized.pattern_confidence,
            'totalReported': t.normalized.total_reported,
            'totalComputed': t.normalized.total_computed,
        }
        for t in tables
    ]


def detections_to_dataframe(tables: List[DetectedTable]) -> pd.DataFrame:
    """Flatten detections into one DataFrame row per normalized row"""
    records = []
    for table in tables:
        for row in table.normalized.rows:
            records.append({
                'pattern_id': table.id,
                'confidence': table.normalized.pattern_confidence,
                'span_start': table.span_start,
                'name': row.name,
                'quantity': row.quantity,
                'unit': row.unit,
                'unit_cost': row.unit_cost,
                'total_cost': row.total_cost,
            })

    columns = ['pattern_id', 'confidence', 'span_start', 'name', 'quantity', 'unit', 'unit_cost', 'total_cost']
    df = pd.DataFrame(records, columns=columns)
    for column in ('quantity', 'unit_cost', 'total_cost'):
        df[column] = pd.to_numeric(df[column], errors='coerce')
    return df


def pattern_cost_summary(tables: List[DetectedTable]) -> pd.DataFrame:
    """Row count and summed total cost per pattern id"""
    df = detections_to_dataframe(tables)
    if df.empty:
        return pd.DataFrame(columns=['pattern_id', 'rows', 'total_cost'])

    summary = df.groupby('pattern_id').agg(
        rows=('name', 'count'),
        total_cost=('total_cost', 'sum'),
    ).reset_index()
    return summary.sort_values('total_cost', ascending=False).reset_index(drop=True)


def confidence_weighted_total(tables: List[DetectedTable]) -> Optional[float]:
    """Σ confidence × totalComputed / Σ confidence over tables with a computed total"""
    scored = [
        (t.normalized.pattern_confidence, t.normalized.total_computed)
        for t in tables
        if t.normalized.total_computed is not None
    ]
    if not scored:
        return None

    weights = np.array([weight for weight, _ in scored], dtype=float)
    totals = np.array([total for _, total in scored], dtype=float)
    return float(np.average(totals, weights=weights))
