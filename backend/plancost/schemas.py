"""
Result schemas for cost-table detection
Rows, tables and detections serialize to the camelCase JSON the report assembler consumes
"""
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .exceptions import PatternCrash


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class NormalizedRow(CamelModel):
    """Canonical row shared by every dialect"""
    kind: Literal["base"] = "base"
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    unit_raw: Optional[str] = None
    unit_cost: Optional[float] = None
    total_cost: Optional[float] = None
    raw_size: Optional[str] = None
    raw_cost: Optional[str] = None


class FundingRow(NormalizedRow):
    """Row of a multi-funding-source table"""
    kind: Literal["funding"] = "funding"
    producer_contribution: Optional[float] = None
    nrcs_contribution: Optional[float] = None
    other_contribution: Optional[float] = None
    funding_pct_producer: Optional[float] = None
    funding_pct_nrcs: Optional[float] = None
    funding_pct_other: Optional[float] = None


class CodedRow(NormalizedRow):
    """Row of a coded-line budget (A1., B12 ...)"""
    kind: Literal["coded"] = "coded"
    code: Optional[str] = None
    section: Optional[str] = None


class MatchRow(NormalizedRow):
    """Row carrying a landowner match amount"""
    kind: Literal["match"] = "match"
    landowner_match: Optional[float] = None


class RangeRow(NormalizedRow):
    """Row whose costs were given as $X - $Y ranges"""
    kind: Literal["range"] = "range"
    unit_cost_min: Optional[float] = None
    unit_cost_max: Optional[float] = None
    total_cost_min: Optional[float] = None
    total_cost_max: Optional[float] = None


AnyRow = Annotated[
    Union[NormalizedRow, FundingRow, CodedRow, MatchRow, RangeRow],
    Field(discriminator="kind"),
]


class NormalizedTable(CamelModel):
    """Normalized view of one detected table plus reconciliation figures"""
    rows: List[AnyRow] = []
    total_reported: Optional[float] = None
    total_computed: Optional[float] = None
    discrepancy: Optional[float] = None
    reconciled: Optional[bool] = None
    pattern_id: str
    pattern_confidence: float

    # Multi-funding dialect
    producer_computed: Optional[float] = None
    nrcs_computed: Optional[float] = None
    other_computed: Optional[float] = None

    # Landowner match dialects
    landowner_match_reported: Optional[float] = None
    landowner_match_computed: Optional[float] = None
    match_discrepancy: Optional[float] = None

    # Coded budgets
    section_subtotals: Optional[List[Dict[str, Any]]] = None


class RawTable(CamelModel):
    """Table as read from the text: column labels and raw string cells"""
    columns: List[str]
    rows: List[Dict[str, Any]] = []
    total: Optional[float] = None
    match_total: Optional[float] = None


class ParseResult(CamelModel):
    """What a dialect's parse() hands back to the scanner"""
    table: RawTable
    normalized: NormalizedTable
    span_start: int
    span_end: int
    dollar_line_indices: Optional[List[int]] = None


class DetectedTable(CamelModel):
    """One surviving detection, the unit the engine returns"""
    id: str
    title: str
    span_start: int
    span_end: int
    dollar_line_indices: List[int] = []
    table: RawTable
    normalized: NormalizedTable


@dataclass
class PatternOutcome:
    """
    Result of running one pattern at one line: Ok(ParseResult | None) or Err(PatternCrash)

    ok=True with result=None is a header hit that did not yield a table.
    """
    pattern_id: str
    line_index: int
    result: Optional[ParseResult] = None
    error: Optional[PatternCrash] = None

    @property
    def ok(self) -> bool:
        return self.error is None
