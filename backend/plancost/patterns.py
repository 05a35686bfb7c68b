"""
Pattern registry: one PatternDefinition per recognized cost-table dialect

Every dialect bundles a header test (literal header signature or a density
probe over a bounded lookahead window) and a parse function that returns a
ParseResult, or None when the candidate does not hold enough valid rows.
The registry is an immutable tuple built once; scan() takes it as an argument.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Pattern, Sequence, Tuple

from .aggregator import apply_funding_shares, build_normalized, funding_totals, match_totals
from .exceptions import RegistryError
from .normalizer import build_row, clean_name
from .schemas import CodedRow, FundingRow, MatchRow, NormalizedRow, ParseResult, RangeRow, RawTable
from .utils import (
    MONEY_RE,
    MONEY_TOKEN,
    find_money,
    has_dollar,
    is_blank,
    is_lone_amount,
    is_section_boundary,
    is_total_line,
    midpoint,
    money_to_number,
    reported_total,
    walk_block,
)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

HeaderTest = Callable[[str, Sequence[str], int], bool]
Parser = Callable[[Sequence[str], int], Optional[ParseResult]]

AMT = r"[0-9][0-9,]*(?:\.[0-9]{1,2})?"
NUM = r"[0-9][0-9,]*(?:\.[0-9]+)?"
TRAILING_MONEY_RE = re.compile(rf"^(.*?)\s*({MONEY_TOKEN})\s*$")
TWO_TRAILING_MONEY_RE = re.compile(rf"^(.*?)\s+({MONEY_TOKEN})(?:\s+({MONEY_TOKEN}))?\s*$")

# Header signatures the low-precision dialects must not claim
KNOWN_HEADER_RE = re.compile(
    r"Producer\s+NRCS|Activity\s+Size|Practice\s+Average\s+Unit|Code\s+Practice\s+Units",
    re.IGNORECASE,
)

# Wrapped description text continuing the row above it
WRAPPED_TAIL_RE = re.compile(r"^(?:[a-z(&/]|-\s)")

CONFIDENCE = {
    'sparse_inline_costs': 0.45,
    'narrative_cost_block': 0.55,
    'coded_activity_budget_loose': 0.68,
    'practice_unit_cost_range': 0.78,
    'activity_unit_cost_range': 0.75,
    'practice_unit_nrcs_costs': 0.85,
    'multi_funding_source_costs': 0.83,
    'implementation_plan_coded_budget': 0.70,
    'generic_activity_costs': 0.80,
    'total_estimated_project_cost_block': 0.75,
    'booths_creek_bmps': 0.95,
    'phase1_bmps': 0.90,
    'activity_match': 0.85,
    'practice_costs': 0.88,
    'bell_creek_bmps': 0.90,
    'tech_assistance': 0.85,
    'adaptive_generic_costs': 0.50,
}

MIN_ROWS = {
    'sparse_inline_costs': 5,
    'narrative_cost_block': 4,
    'coded_activity_budget_loose': 5,
    'practice_unit_cost_range': 2,
    'activity_unit_cost_range': 2,
    'adaptive_generic_costs': 4,
}


@dataclass(frozen=True)
class PatternDefinition:
    """A registered dialect: detection predicate, row parser and static confidence"""
    id: str
    description: str
    header_test: HeaderTest
    parse: Parser
    confidence: float
    min_rows: int = 1
    catch_all: bool = False


@dataclass
class _Entry:
    """A logical row after wrapped lines have been merged"""
    indices: List[int]
    text: str
    continuations: List[str] = field(default_factory=list)
    wrapped: List[str] = field(default_factory=list)

    def full_name(self, head: str) -> str:
        """Row name with any description text that wrapped below the row"""
        name = clean_name(head)
        if name and self.wrapped:
            name = clean_name(f"{name} {' '.join(self.wrapped)}")
        return name


def _finish(pattern_id: str, columns: List[str], raw_rows: List[dict],
            rows: List[NormalizedRow], span_start: int, span_end: int,
            total_reported: Optional[float] = None,
            dollar_line_indices: Optional[List[int]] = None,
            table_extras: Optional[dict] = None,
            **normalized_extras) -> Optional[ParseResult]:
    """Apply the dialect's minimum row count and package the result"""
    if len(rows) < MIN_ROWS.get(pattern_id, 1):
        return None

    normalized = build_normalized(
        pattern_id, CONFIDENCE[pattern_id], rows, total_reported, **normalized_extras
    )
    table = RawTable(columns=columns, rows=raw_rows, total=total_reported, **(table_extras or {}))
    return ParseResult(
        table=table,
        normalized=normalized,
        span_start=span_start,
        span_end=max(span_start, span_end),
        dollar_line_indices=dollar_line_indices,
    )


def _opens_row(text: str, row_re: Pattern) -> bool:
    """The line is a complete named row on its own"""
    return bool(re.match(r"[A-Za-z]", text)) and bool(row_re.search(text))


def _settle(merged: List[_Entry], held: _Entry, row_re: Pattern) -> None:
    """Attach a held text line to the row above it, or drop it as a sub-heading"""
    if not merged or not WRAPPED_TAIL_RE.match(held.text):
        return
    previous = merged[-1]
    if row_re.search(previous.text):
        previous.indices.extend(held.indices)
        previous.wrapped.append(held.text)


def _merge_wrapped(entries: List[Tuple[int, str]], row_re: Pattern,
                   name_wraps: bool = False) -> List[_Entry]:
    """
    Merge continuation lines into logical rows before row parsing

    A text line without a dollar amount is held until the next line is seen:
    - joined with a next line that only carries the row's figures
      ("2 each $4,000") it is the start of that row
    - otherwise a lowercase or parenthesised line is the wrapped tail of the
      row above, and anything else is a sub-heading and is dropped
    Dialects whose names wrap ahead of a named figure line ("Critical Area" /
    "Planting $248.10 ...") pass name_wraps=True.

    A line holding only dollar amounts belongs to the preceding row: it
    completes it when that row is still short of its amounts, otherwise it is
    kept as a continuation.
    """
    merged: List[_Entry] = []
    held: Optional[_Entry] = None

    for index, line in entries:
        text = line.strip()

        if held is not None:
            joined = f"{held.text} {text}"
            if row_re.search(joined) and (name_wraps or not _opens_row(text, row_re)):
                held.indices.append(index)
                held.text = joined
                merged.append(held)
                held = None
                continue
            _settle(merged, held, row_re)
            held = None

        if is_lone_amount(text) and merged:
            previous = merged[-1]
            previous.indices.append(index)
            if row_re.search(previous.text):
                previous.continuations.append(text)
            else:
                previous.text = f"{previous.text} {text}"
            continue

        if not has_dollar(text) and not row_re.search(text):
            if not text.endswith(':'):
                held = _Entry([index], text)
            continue

        merged.append(_Entry([index], text))

    if held is not None:
        _settle(merged, held, row_re)
    return merged


def _money(value: str) -> str:
    return '$' + value.lstrip('$').strip()


def _format_money(value: float) -> str:
    return f"${value:,.2f}"


def _count_ahead(lines: Sequence[str], start: int, stop: int, row_re: Pattern) -> int:
    return sum(1 for line in lines[start:stop] if line and row_re.search(line))


# ---------------------------------------------------------------------------
# sparse_inline_costs (catch-all)
# ---------------------------------------------------------------------------

def _single_dollar_line(line: Optional[str]) -> bool:
    if not line or len(find_money(line)) != 1:
        return False
    return bool(re.search(r"[A-Za-z]{3,}", line))


def _sparse_header(line: str, lines: Sequence[str], index: int) -> bool:
    if not _single_dollar_line(line):
        return False
    count = sum(1 for other in lines[index:index + 70] if _single_dollar_line(other))
    return count >= 5


def _sparse_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    rows, raw_rows, indices = [], [], []
    total = None
    for index, line in walk_block(lines, start, 70):
        if not _single_dollar_line(line):
            continue
        text = line.strip()
        token = MONEY_RE.search(text)
        if is_total_line(text):
            total = money_to_number(token.group(0))
            indices.append(index)
            break
        name = clean_name(text[:token.start()]) or clean_name(text[token.end():])
        if not name:
            continue
        cost = _money(token.group(0))
        raw_rows.append({'Item': name, 'Cost': cost})
        rows.append(build_row(name, total_cost=money_to_number(cost), raw_cost=cost))
        indices.append(index)

    if not indices:
        return None
    return _finish('sparse_inline_costs', ['Item', 'Cost'], raw_rows, rows,
                   start, indices[-1], total, dollar_line_indices=indices)


# ---------------------------------------------------------------------------
# narrative_cost_block
# ---------------------------------------------------------------------------

def _narrative_header(line: str, lines: Sequence[str], index: int) -> bool:
    if not has_dollar(line) or KNOWN_HEADER_RE.search(line):
        return False
    count = 0
    for other in lines[index:index + 12]:
        if is_blank(other) or not has_dollar(other):
            break
        count += 1
    return count >= 4


def _narrative_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    entries = []
    total = None
    end = start
    for index in range(start, min(len(lines), start + 40)):
        line = lines[index]
        if is_blank(line) or not has_dollar(line):
            break
        if index > start and is_section_boundary(line):
            break
        end = index
        if is_total_line(line):
            total = reported_total(line, average=False)
            break
        entries.append((index, line))

    rows, raw_rows = [], []
    for entry in _merge_wrapped(entries, TRAILING_MONEY_RE):
        match = TRAILING_MONEY_RE.match(entry.text)
        if not match:
            continue
        name = entry.full_name(entry.text[:entry.text.index('$')])
        if not name:
            continue
        cost = _money(match.group(2))
        raw_rows.append({'Item': name, 'Cost': cost})
        rows.append(build_row(name, total_cost=money_to_number(cost), raw_cost=cost))

    return _finish('narrative_cost_block', ['Item', 'Cost'], raw_rows, rows, start, end, total)


# ---------------------------------------------------------------------------
# Coded budgets (A1., B12 ...)
# ---------------------------------------------------------------------------

LOOSE_CODE_RE = re.compile(
    rf"^\*?([A-Z]{{1,2}}[0-9]{{1,3}})\.[\s\-]+(.+?)\s+\$({AMT})(?:\s+\(.*?\))?\s*$"
)
PLAN_CODE_RE = re.compile(
    rf"^\*?([A-Z]{{1,2}}[0-9]{{1,3}}[A-Za-z\.]*)\s+(.+?)\s+\$({AMT})(?:\s+\*\d+)?\s*$"
)
SUBTOTAL_RE = re.compile(rf"^\s*Sub-?total:?\s*\$({AMT})", re.IGNORECASE)
CONTINUATION_RE = re.compile(r"^(?:\(|for\b|to\b|and\b)", re.IGNORECASE)
ROMAN_SECTION_RE = re.compile(r"^\s*([IVX]+\.)\s+\S")
PLAN_HEADER_RE = re.compile(
    r"WATERSHED IMPLEMENTATION PLAN\s*[–-]\s*BUDGET ESTIMATES|Watershed Implementation Plan\s*$",
    re.IGNORECASE,
)


def _coded_rows(raw_rows: List[dict]) -> List[NormalizedRow]:
    rows = []
    for raw in raw_rows:
        rows.append(build_row(
            f"{raw['Code']} {raw['Description']}",
            total_cost=money_to_number(raw['Amount']),
            raw_cost=raw['Amount'],
            row_cls=CodedRow,
            code=raw['Code'],
            section=raw['Section'],
        ))
    return rows


def _coded_total(explicit: Optional[float], subtotals: List[dict]) -> Optional[float]:
    if explicit is not None:
        return explicit
    if subtotals:
        return sum(item['subtotal'] for item in subtotals)
    return None


def _loose_code_header(line: str, lines: Sequence[str], index: int) -> bool:
    if not LOOSE_CODE_RE.match(line.strip()):
        return False
    return _count_ahead(lines, index + 1, index + 15, LOOSE_CODE_RE) >= 2


def _loose_code_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    raw_rows: List[dict] = []
    subtotals: List[dict] = []
    explicit_total = None
    end = start
    for index, line in walk_block(lines, start, 160):
        text = line.strip()
        subtotal = SUBTOTAL_RE.match(text)
        if subtotal:
            subtotals.append({'section': None, 'subtotal': money_to_number(subtotal.group(1))})
            end = index
            continue
        if is_total_line(text) and has_dollar(text):
            explicit_total = reported_total(text, average=False)
            end = index
            break
        match = LOOSE_CODE_RE.match(text)
        if match:
            raw_rows.append({
                'Code': match.group(1),
                'Description': match.group(2).strip(),
                'Amount': _money(match.group(3)),
                'Section': None,
            })
            end = index
            continue
        if raw_rows and CONTINUATION_RE.match(text) and not has_dollar(text):
            raw_rows[-1]['Description'] += ' ' + text
            end = index
            continue
        if len(raw_rows) >= 5:
            break

    return _finish('coded_activity_budget_loose', ['Code', 'Description', 'Amount', 'Section'],
                   raw_rows, _coded_rows(raw_rows), start, end,
                   _coded_total(explicit_total, subtotals),
                   section_subtotals=subtotals or None)


def _plan_header(line: str, lines: Sequence[str], index: int) -> bool:
    return bool(PLAN_HEADER_RE.search(line))


def _plan_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    raw_rows: List[dict] = []
    subtotals: List[dict] = []
    explicit_total = None
    section = None
    end = start
    for index, line in walk_block(lines, start + 1, 300):
        text = line.strip()
        if ROMAN_SECTION_RE.match(text) and not has_dollar(text):
            section = text
            continue
        subtotal = SUBTOTAL_RE.match(text)
        if subtotal:
            subtotals.append({'section': section, 'subtotal': money_to_number(subtotal.group(1))})
            end = index
            continue
        if is_total_line(text) and has_dollar(text):
            explicit_total = reported_total(text, average=False)
            end = index
            break
        match = PLAN_CODE_RE.match(text)
        if match:
            raw_rows.append({
                'Code': match.group(1).rstrip('.'),
                'Description': match.group(2).strip(),
                'Amount': _money(match.group(3)),
                'Section': section,
            })
            end = index
        elif raw_rows and CONTINUATION_RE.match(text) and not has_dollar(text):
            raw_rows[-1]['Description'] += ' ' + text

    return _finish('implementation_plan_coded_budget', ['Code', 'Description', 'Amount', 'Section'],
                   raw_rows, _coded_rows(raw_rows), start, end,
                   _coded_total(explicit_total, subtotals),
                   section_subtotals=subtotals or None)


# ---------------------------------------------------------------------------
# Range-valued tables ($X - $Y)
# ---------------------------------------------------------------------------

RANGE_UNITS = r"ac|acres?|ft|feet|mi|miles?|machines?|hrs?|hours?|units?|basins?|ea|each|structures?"
RANGE_ROW_RE = re.compile(
    rf"^(.*?)\s+\$({AMT})(?:\s*[-–]\s*\$({AMT}))?\s+"
    rf"({NUM}(?:\s*(?:{RANGE_UNITS})\b)?(?:\s*x\s*{NUM}\s*ft)?)\s+"
    rf"\$({AMT})(?:\s*[-–]\s*\$({AMT}))?\s*$",
    re.IGNORECASE,
)
RANGE_PROBE_RE = re.compile(
    rf"^(.*?)\s+\$({AMT})(?:\s*[-–]\s*\$({AMT}))?\s+[0-9][0-9,]*.*?\s+\$({AMT})"
)
PRACTICE_RANGE_HEADER_RE = re.compile(
    r"Practice\s+Unit\s+Cost.*Number\s+of\s+Units.*Total\s+Cost", re.IGNORECASE
)
ACTIVITY_RANGE_HEADER_RE = re.compile(
    r"Activity\s+Unit\s+cost.*Number\s+of\s+units.*Total\s+cost", re.IGNORECASE
)


def _preceded_by(lines: Sequence[str], index: int, header_re: Pattern, lookback: int = 3) -> bool:
    return any(line and header_re.search(line) for line in lines[max(0, index - lookback):index])


def _range_header(own_re: Pattern, other_re: Pattern) -> HeaderTest:
    def header_test(line: str, lines: Sequence[str], index: int) -> bool:
        if own_re.search(line):
            return True
        # Density fallback: first data row plus at least two more within 15 lines
        if not RANGE_PROBE_RE.search(line):
            return False
        if any(_preceded_by(lines, index, regex) for regex in (own_re, other_re, RANGE_PROBE_RE)):
            return False
        return _count_ahead(lines, index + 1, index + 16, RANGE_PROBE_RE) >= 2
    return header_test


def _range_parse(pattern_id: str, header_re: Pattern, columns: List[str],
                 max_lines: int) -> Parser:
    name_col, unit_col, units_col, total_col = columns

    def parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
        begin = start + 1 if header_re.search(lines[start]) else start
        entries = []
        total = None
        end = start
        for index, line in walk_block(lines, begin, max_lines):
            if is_total_line(line):
                total = reported_total(line)
                end = index
                break
            entries.append((index, line))

        rows, raw_rows = [], []
        for entry in _merge_wrapped(entries, RANGE_ROW_RE):
            match = RANGE_ROW_RE.match(entry.text)
            if not match:
                continue
            name = entry.full_name(match.group(1))
            unit_min = money_to_number(match.group(2))
            unit_max = money_to_number(match.group(3)) if match.group(3) else unit_min
            units_raw = match.group(4).strip()
            total_min = money_to_number(match.group(5))
            total_max = money_to_number(match.group(6)) if match.group(6) else total_min
            unit_raw_text = '$' + match.group(2) + (f" - ${match.group(3)}" if match.group(3) else '')
            total_raw_text = '$' + match.group(5) + (f" - ${match.group(6)}" if match.group(6) else '')

            raw_rows.append({
                name_col: name,
                unit_col: unit_raw_text,
                units_col: units_raw,
                total_col: total_raw_text,
            })
            rows.append(build_row(
                name,
                unit_cost=midpoint(unit_min, unit_max),
                total_cost=midpoint(total_min, total_max),
                raw_size=units_raw,
                raw_cost=total_raw_text,
                row_cls=RangeRow,
                unit_cost_min=unit_min,
                unit_cost_max=unit_max,
                total_cost_min=total_min,
                total_cost_max=total_max,
            ))
            end = max(end, entry.indices[-1])

        return _finish(pattern_id, columns, raw_rows, rows, start, end, total)

    return parse


# ---------------------------------------------------------------------------
# practice_unit_nrcs_costs
# ---------------------------------------------------------------------------

NRCS_HEADER_RE = re.compile(
    r"Practice\s+Average\s+Unit\s+NRCS\s+Cost\s+Units\s+Total\s+Cost", re.IGNORECASE
)
NRCS_ROW_RE = re.compile(
    rf"^(.*?)\s+\$?({AMT})\s+({NUM})\s+"
    r"(acres?|ac|ft|feet|sq\s?ft|structures?|each|ea|ponds?|cu\s?yd|cy|gal|no)\.?\s+"
    rf"\$?({AMT})\s*$",
    re.IGNORECASE,
)


def _nrcs_header(line: str, lines: Sequence[str], index: int) -> bool:
    return bool(NRCS_HEADER_RE.search(line))


def _nrcs_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    entries = []
    total = None
    end = start
    for index, line in walk_block(lines, start + 1, 50):
        if re.match(r"^\s*TOTAL", line, re.IGNORECASE):
            amounts = find_money(line)
            if amounts:
                total = money_to_number(amounts[0])
            end = index
            break
        entries.append((index, line))

    rows, raw_rows = [], []
    for entry in _merge_wrapped(entries, NRCS_ROW_RE):
        match = NRCS_ROW_RE.match(entry.text)
        if not match:
            continue
        practice = entry.full_name(match.group(1))
        unit_cost = _money(match.group(2))
        quantity = match.group(3)
        unit_raw = match.group(4)
        total_cost = _money(match.group(5))
        raw_rows.append({
            'Practice': practice,
            'Average Unit NRCS Cost': unit_cost,
            'Units': f"{quantity} {unit_raw}",
            'Total Cost': total_cost,
        })
        rows.append(build_row(
            practice,
            quantity=money_to_number(quantity),
            unit_raw=unit_raw,
            unit_cost=money_to_number(unit_cost),
            total_cost=money_to_number(total_cost),
            raw_size=f"{quantity} {unit_raw}",
            raw_cost=total_cost,
        ))
        end = max(end, entry.indices[-1])

    return _finish('practice_unit_nrcs_costs',
                   ['Practice', 'Average Unit NRCS Cost', 'Units', 'Total Cost'],
                   raw_rows, rows, start, end, total)


# ---------------------------------------------------------------------------
# multi_funding_source_costs
# ---------------------------------------------------------------------------

FUNDING_HEADER_RE = re.compile(r"Producer\s+(?:NRCS|Agency)\b", re.IGNORECASE)
FUNDING_OTHER_RE = re.compile(r"(?:NRCS|Agency)\s+(EPA[-\s]?MDEQ|[A-Za-z][\w\-/]*)", re.IGNORECASE)
FUNDING_CELL_RE = re.compile(r"\$\s*[0-9][0-9,]*(?:\.[0-9]+)?|\$\s*-|(?<!\S)-(?!\S)")


def _funding_header(line: str, lines: Sequence[str], index: int) -> bool:
    return bool(FUNDING_HEADER_RE.search(line)) and not has_dollar(line)


def _funding_cell(cell: Optional[str]) -> Optional[float]:
    if cell is None or cell.replace('$', '').strip() == '-':
        return None
    return money_to_number(cell)


def _funding_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    other_label = 'Other'
    other = FUNDING_OTHER_RE.search(lines[start])
    if other and not re.match(r"totals?$", other.group(1), re.IGNORECASE):
        other_label = other.group(1)

    rows: List[FundingRow] = []
    raw_rows = []
    total = None
    end = start
    for index, line in walk_block(lines, start + 1, 40):
        if re.search(r"\bTotals?\b", line, re.IGNORECASE) and has_dollar(line):
            total = reported_total(line, average=False)
            end = index
            break
        if '$' not in line:
            continue
        name = clean_name(line[:line.index('$')])
        cells = FUNDING_CELL_RE.findall(line[line.index('$'):])
        if not name or len(cells) < 3:
            continue

        producer, nrcs, other_value = (_funding_cell(cell) for cell in cells[:3])
        parsed_total = _funding_cell(cells[3]) if len(cells) > 3 else None
        row = apply_funding_shares(FundingRow(
            name=name,
            total_cost=parsed_total,
            raw_cost=cells[3].strip() if parsed_total is not None else None,
            producer_contribution=producer,
            nrcs_contribution=nrcs,
            other_contribution=other_value,
        ))
        raw_rows.append({
            'Practice': name,
            'Producer': cells[0].strip(),
            'NRCS': cells[1].strip(),
            other_label: cells[2].strip(),
            'Total': row.raw_cost or (_format_money(row.total_cost) if row.total_cost is not None else None),
        })
        rows.append(row)
        end = index

    return _finish('multi_funding_source_costs',
                   ['Practice', 'Producer', 'NRCS', other_label, 'Total'],
                   raw_rows, rows, start, end, total,
                   **funding_totals(rows))


# ---------------------------------------------------------------------------
# Activity / Size/Amount / Estimated Cost (with and without landowner match)
# ---------------------------------------------------------------------------

GENERIC_ACTIVITY_HEADER_RE = re.compile(r"Activity\s+Size\s*/?\s*Amount\s+Estimated\s+Cost", re.IGNORECASE)
ACTIVITY_MATCH_HEADER_RE = re.compile(r"Activity.*Size.*Estimated\s+Cost.*Landowner\s+Match", re.IGNORECASE)
PROJECT_TOTAL_RE = re.compile(r"Total\s+Estimated\s+Project\s+Cost", re.IGNORECASE)
ELEMENT_STOP_RE = re.compile(r"Element\s+[A-I]:|Technical Assistance|Education/Outreach", re.IGNORECASE)
SIZE_SPLIT_RE = re.compile(
    r"[0-9][0-9,]*\s*(?:ft|feet|ac|acres?|each|ea|structures?|ponds?)\b|[0-9][0-9,]*\s*@",
    re.IGNORECASE,
)
MATCH_SIZE_SPLIT_RE = re.compile(r"\b[0-9][0-9,]*\b.*@|\b[0-9][0-9,]*\b|N/A")


def _split_name_size(left: str, split_re: Pattern) -> Tuple[str, str]:
    left = left.strip().lstrip('-•').strip()
    found = split_re.search(left)
    if not found:
        return left, ''
    name = left[:found.start()].strip()
    return (name or left), left[found.start():].strip()


def _generic_activity_header(line: str, lines: Sequence[str], index: int) -> bool:
    return bool(GENERIC_ACTIVITY_HEADER_RE.search(line)) and not re.search(
        r"Landowner\s+Match", line, re.IGNORECASE)


def _generic_activity_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    entries = []
    total = None
    end = start
    for index, line in walk_block(lines, start + 1, 60):
        if PROJECT_TOTAL_RE.search(line) or (is_total_line(line) and has_dollar(line)):
            amounts = find_money(line)
            if amounts:
                total = money_to_number(amounts[0])
            end = index
            break
        if ELEMENT_STOP_RE.search(line):
            break
        entries.append((index, line))

    rows, raw_rows = [], []
    for entry in _merge_wrapped(entries, TRAILING_MONEY_RE):
        match = TRAILING_MONEY_RE.match(entry.text)
        if not match or not match.group(1).strip():
            continue
        name, size = _split_name_size(match.group(1), SIZE_SPLIT_RE)
        name = entry.full_name(name)
        if not name:
            continue
        cost = _money(match.group(2))
        raw_rows.append({'Activity': name, 'Size/Amount': size, 'Estimated Cost': cost})
        rows.append(build_row(name, total_cost=money_to_number(cost),
                              raw_size=size or None, raw_cost=cost))
        end = max(end, entry.indices[-1])

    return _finish('generic_activity_costs', ['Activity', 'Size/Amount', 'Estimated Cost'],
                   raw_rows, rows, start, end, total)


def _activity_match_header(line: str, lines: Sequence[str], index: int) -> bool:
    return bool(ACTIVITY_MATCH_HEADER_RE.search(line))


def _match_row(name: str, size: str, cost: str, match_value: Optional[str]) -> MatchRow:
    return build_row(
        name,
        total_cost=money_to_number(cost),
        raw_size=size or None,
        raw_cost=cost,
        row_cls=MatchRow,
        landowner_match=money_to_number(match_value),
    )


def _activity_match_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    entries = []
    total = match_total = None
    end = start
    for index, line in walk_block(lines, start + 1, 80):
        if PROJECT_TOTAL_RE.search(line):
            amounts = find_money(line)
            if amounts:
                total = money_to_number(amounts[0])
            if len(amounts) > 1:
                match_total = money_to_number(amounts[1])
            end = index
            break
        entries.append((index, line))

    rows, raw_rows = [], []
    for entry in _merge_wrapped(entries, TWO_TRAILING_MONEY_RE):
        match = TWO_TRAILING_MONEY_RE.match(entry.text)
        if not match:
            continue
        name, size = _split_name_size(match.group(1), MATCH_SIZE_SPLIT_RE)
        name = entry.full_name(re.sub(r"^BMPs\s*:?\s*", '', name, flags=re.IGNORECASE))
        if not name:
            continue
        cost = _money(match.group(2))
        match_value = _money(match.group(3)) if match.group(3) else None
        raw_rows.append({'Activity': name, 'Size/Amount': size,
                         'Estimated Cost': cost, 'Landowner Match': match_value})
        rows.append(_match_row(name, size, cost, match_value))
        end = max(end, entry.indices[-1])

    return _finish('activity_match', ['Activity', 'Size/Amount', 'Estimated Cost', 'Landowner Match'],
                   raw_rows, rows, start, end, total,
                   table_extras={'match_total': match_total},
                   **match_totals(rows, match_total))


# ---------------------------------------------------------------------------
# total_estimated_project_cost_block (walks backwards from the summary line)
# ---------------------------------------------------------------------------

def _project_total_header(line: str, lines: Sequence[str], index: int) -> bool:
    return bool(PROJECT_TOTAL_RE.search(line)) and bool(re.search(r"Match", line, re.IGNORECASE))


def _project_total_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    amounts = find_money(lines[start])
    total = money_to_number(amounts[0]) if amounts else None
    match_total = money_to_number(amounts[1]) if len(amounts) > 1 else None

    collected = []
    blanks = 0
    for index in range(start - 1, max(-1, start - 35), -1):
        line = lines[index]
        if is_blank(line):
            blanks += 1
            if blanks >= 2:
                break
            continue
        blanks = 0
        if re.search(r"Element\s+[A-I]:", line, re.IGNORECASE) or is_section_boundary(line):
            break
        if not has_dollar(line) or PROJECT_TOTAL_RE.search(line):
            continue
        match = TWO_TRAILING_MONEY_RE.match(line.strip())
        if match and clean_name(match.group(1)):
            collected.append((index, match))
    collected.reverse()

    rows, raw_rows = [], []
    for _, match in collected:
        name = clean_name(match.group(1))
        cost = _money(match.group(2))
        match_value = _money(match.group(3)) if match.group(3) else None
        raw_rows.append({'Item': name, 'Cost': cost, 'Match': match_value})
        rows.append(_match_row(name, '', cost, match_value))

    span_start = collected[0][0] if collected else start
    return _finish('total_estimated_project_cost_block', ['Item', 'Cost', 'Match'],
                   raw_rows, rows, span_start, start, total,
                   table_extras={'match_total': match_total},
                   **match_totals(rows, match_total))


# ---------------------------------------------------------------------------
# booths_creek_bmps: Code Practice Units Cost Estimated Units Total
# ---------------------------------------------------------------------------

BOOTHS_HEADER_RE = re.compile(r"Code\s+Practice\s+Units\s+Cost.*Estimated.*Units.*Total", re.IGNORECASE)
BOOTHS_ROW_RE = re.compile(
    rf"^([0-9]+)\s+(.*?)\s+(ac|ft|ea|each|cuyd|cy|sqft|gal|no)\s+\$({AMT})\s+({NUM})\s+\$({AMT})\s*$"
)


def _booths_header(line: str, lines: Sequence[str], index: int) -> bool:
    return bool(BOOTHS_HEADER_RE.search(line))


def _booths_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    raw_rows = []
    rows = []
    total = None
    end = start
    for index, line in walk_block(lines, start + 1, 60):
        text = line.strip()
        if re.match(r"^Total\s*\$[0-9]", text, re.IGNORECASE):
            total = money_to_number(find_money(text)[0])
            end = index
            break
        if re.search(r"In addition to these costs|Element\s+[A-I]:", text, re.IGNORECASE):
            break
        match = BOOTHS_ROW_RE.match(text)
        if not match:
            continue
        code, practice, unit_raw, cost, estimated, line_total = match.groups()
        raw_rows.append({
            'Code': code, 'Practice': practice.strip(), 'Units': unit_raw,
            'Cost': '$' + cost, 'Estimated Units': estimated, 'Total': '$' + line_total,
        })
        rows.append(build_row(
            f"{code} - {practice.strip()}",
            quantity=money_to_number(estimated),
            unit_raw=unit_raw,
            unit_cost=money_to_number(cost),
            total_cost=money_to_number(line_total),
            raw_size=f"{estimated} {unit_raw}",
            raw_cost='$' + line_total,
            row_cls=CodedRow,
            code=code,
        ))
        end = index

    return _finish('booths_creek_bmps', ['Code', 'Practice', 'Units', 'Cost', 'Estimated Units', 'Total'],
                   raw_rows, rows, start, end, total)


# ---------------------------------------------------------------------------
# phase1_bmps: BMPs Amount Estimated Cost
# ---------------------------------------------------------------------------

PHASE1_HEADER_RE = re.compile(r"BMPs\s*Amount\s*Estimated\s*Cost", re.IGNORECASE)
PHASE1_ROW_RE = re.compile(rf"^(.*?)\s+({NUM})\s+(each|ea|ac|acres?|cy|ft|feet)\s+\$({AMT})\s*$", re.IGNORECASE)
PHASE1_STOP_RE = re.compile(
    r"Technical Assistance|Education and Outreach|Monitoring|Project Management", re.IGNORECASE
)


def _phase1_header(line: str, lines: Sequence[str], index: int) -> bool:
    return bool(PHASE1_HEADER_RE.search(line))


def _phase1_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    entries = []
    total = None
    end = start
    for index, line in walk_block(lines, start + 1, 40):
        if is_total_line(line) and has_dollar(line):
            total = money_to_number(find_money(line)[0])
            end = index
            break
        if PHASE1_STOP_RE.search(line):
            break
        entries.append((index, line))

    rows, raw_rows = [], []
    for entry in _merge_wrapped(entries, PHASE1_ROW_RE):
        match = PHASE1_ROW_RE.match(entry.text)
        if not match:
            continue
        name = entry.full_name(match.group(1))
        amount = f"{match.group(2)} {match.group(3)}"
        cost = '$' + match.group(4)
        raw_rows.append({'BMPs': name, 'Amount': amount, 'Estimated Cost': cost})
        rows.append(build_row(
            name,
            quantity=money_to_number(match.group(2)),
            unit_raw=match.group(3),
            total_cost=money_to_number(cost),
            raw_size=amount,
            raw_cost=cost,
        ))
        end = max(end, entry.indices[-1])

    return _finish('phase1_bmps', ['BMPs', 'Amount', 'Estimated Cost'], raw_rows, rows, start, end, total)


# ---------------------------------------------------------------------------
# practice_costs: multi-line "Practice" header, wrapped rows
# ---------------------------------------------------------------------------

PRACTICE_COSTS_ROW_RE = re.compile(rf"^(.*?)\s+\$({AMT})\s+([0-9][0-9,]*)\s+\$({AMT})\s*$")
PRACTICE_COSTS_STOP_RE = re.compile(r"Low DO/Organic|Participants", re.IGNORECASE)


def _practice_costs_header(line: str, lines: Sequence[str], index: int) -> bool:
    if not re.match(r"^\s*Practice\s*$", line, re.IGNORECASE):
        return False
    lookahead = ' '.join(other or '' for other in lines[index:index + 6])
    return bool(re.search(r"Unit Cost", lookahead, re.IGNORECASE)) and bool(
        re.search(r"Total Cost", lookahead, re.IGNORECASE))


def _first_amount_after(lines: Sequence[str], index: int, limit: int = 3) -> Tuple[Optional[float], int]:
    for offset in range(index + 1, min(len(lines), index + 1 + limit)):
        amounts = find_money(lines[offset])
        if amounts:
            return money_to_number(amounts[0]), offset
    return None, index


def _practice_costs_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    first = next((k for k in range(start, min(len(lines), start + 10)) if has_dollar(lines[k])), None)
    if first is None:
        return None

    # A wrapped name line just above the first row belongs to it
    begin = first
    above = lines[first - 1] if first - 1 > start else ''
    if not is_blank(above) and not re.search(r"Cost|Units", above, re.IGNORECASE):
        begin = first - 1

    entries = []
    total = None
    end = start
    for index, line in walk_block(lines, begin, 80):
        text = line.strip()
        if re.match(r"^Total\s*$", text, re.IGNORECASE):
            total, end = _first_amount_after(lines, index)
            end = max(end, index)
            break
        if is_total_line(text) and has_dollar(text):
            total = money_to_number(find_money(text)[0])
            end = index
            break
        if PRACTICE_COSTS_STOP_RE.search(text):
            break
        entries.append((index, line))

    rows, raw_rows = [], []
    for entry in _merge_wrapped(entries, PRACTICE_COSTS_ROW_RE, name_wraps=True):
        match = PRACTICE_COSTS_ROW_RE.match(entry.text)
        if not match:
            continue
        name = entry.full_name(match.group(1))
        units = match.group(3)
        raw_rows.append({
            'Practice': name,
            'Unit Cost w/Installation': '$' + match.group(2),
            'Number of Units': units,
            'Total Cost': '$' + match.group(4),
        })
        rows.append(build_row(
            name,
            quantity=money_to_number(units),
            unit_cost=money_to_number(match.group(2)),
            total_cost=money_to_number(match.group(4)),
            raw_size=f"{units} units",
            raw_cost='$' + match.group(4),
        ))
        end = max(end, entry.indices[-1])

    return _finish('practice_costs',
                   ['Practice', 'Unit Cost w/Installation', 'Number of Units', 'Total Cost'],
                   raw_rows, rows, start, end, total)


# ---------------------------------------------------------------------------
# bell_creek_bmps: Practice Area Affected BMP Cost BMP Total
# ---------------------------------------------------------------------------

BELL_HEADER_RE = re.compile(r"Practice\s+Area\s+Affected\s+BMP\s+Cost\s+BMP\s+Total", re.IGNORECASE)
BELL_ROW_RE = re.compile(
    rf"^(.*?)\s+({NUM})\s+(feet|ft|acres?|ac|structures?|each|ea)\s+\$({NUM})\s*(?:/\s*\w+)?\s+\$({AMT})\s*$",
    re.IGNORECASE,
)


def _bell_header(line: str, lines: Sequence[str], index: int) -> bool:
    return bool(BELL_HEADER_RE.search(line))


def _bell_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    entries = []
    total = None
    end = start
    for index, line in walk_block(lines, start + 1, 50):
        text = line.strip()
        if re.match(r"^Total\s*$", text, re.IGNORECASE):
            total, end = _first_amount_after(lines, index)
            end = max(end, index)
            break
        if is_total_line(text) and has_dollar(text):
            total = money_to_number(find_money(text)[0])
            end = index
            break
        if re.search(r"Technical Assistance", text, re.IGNORECASE):
            break
        entries.append((index, line))

    rows, raw_rows = [], []
    for entry in _merge_wrapped(entries, BELL_ROW_RE):
        match = BELL_ROW_RE.match(entry.text)
        if not match:
            continue
        name = entry.full_name(match.group(1))
        area = f"{match.group(2)} {match.group(3)}"
        raw_rows.append({
            'Practice': name,
            'Area Affected': area,
            'BMP Cost': '$' + match.group(4),
            'BMP Total': '$' + match.group(5),
        })
        rows.append(build_row(
            name,
            quantity=money_to_number(match.group(2)),
            unit_raw=match.group(3),
            unit_cost=money_to_number(match.group(4)),
            total_cost=money_to_number(match.group(5)),
            raw_size=area,
            raw_cost='$' + match.group(5),
        ))
        end = max(end, entry.indices[-1])

    return _finish('bell_creek_bmps', ['Practice', 'Area Affected', 'BMP Cost', 'BMP Total'],
                   raw_rows, rows, start, end, total)


# ---------------------------------------------------------------------------
# tech_assistance: Item Cost
# ---------------------------------------------------------------------------

def _tech_header(line: str, lines: Sequence[str], index: int) -> bool:
    if has_dollar(line) or re.search(r"Technical Assistance", line, re.IGNORECASE):
        return False
    return bool(re.search(r"\bItem\s+Cost\b", line, re.IGNORECASE))


def _tech_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    entries = []
    total = None
    end = start
    for index, line in walk_block(lines, start + 1, 25):
        if re.match(r"^\s*Total\s+\$[0-9]", line, re.IGNORECASE):
            total = money_to_number(find_money(line)[0])
            end = index
            break
        entries.append((index, line))

    rows, raw_rows = [], []
    for entry in _merge_wrapped(entries, TRAILING_MONEY_RE):
        match = TRAILING_MONEY_RE.match(entry.text)
        if not match:
            continue
        name = entry.full_name(match.group(1))
        if not name:
            continue
        cost = _money(match.group(2))
        raw_rows.append({'Item': name, 'Cost': cost})
        rows.append(build_row(name, total_cost=money_to_number(cost), raw_cost=cost))
        end = max(end, entry.indices[-1])

    return _finish('tech_assistance', ['Item', 'Cost'], raw_rows, rows, start, end, total)


# ---------------------------------------------------------------------------
# adaptive_generic_costs (catch-all, registered last)
# ---------------------------------------------------------------------------

def _adaptive_header(line: str, lines: Sequence[str], index: int) -> bool:
    if not has_dollar(line) or KNOWN_HEADER_RE.search(line):
        return False
    money_lines = sum(1 for other in lines[index:index + 12] if has_dollar(other))
    return money_lines >= 3


def _adaptive_parse(lines: Sequence[str], start: int) -> Optional[ParseResult]:
    rows, raw_rows, indices = [], [], []
    total = None
    for index in range(start, min(len(lines), start + 80)):
        line = lines[index]
        if is_blank(line) or (index > start and is_section_boundary(line)):
            break
        if not has_dollar(line):
            if len(rows) > 4:
                break
            continue

        indices.append(index)
        text = line.strip()
        if is_total_line(text):
            total = reported_total(text, average=False)
            break
        match = TWO_TRAILING_MONEY_RE.match(text)
        if match and match.group(1).strip():
            name, cost, extra = match.group(1), _money(match.group(2)), match.group(3)
        else:
            first_dollar = text.find('$')
            tokens = find_money(text)
            if first_dollar <= 5 or not tokens:
                continue
            name, cost = text[:first_dollar], _money(tokens[0])
            extra = tokens[1] if len(tokens) > 1 else None
        name = clean_name(name)
        if not name:
            continue
        raw_rows.append({'Item': name, 'Cost': cost, 'Extra?': _money(extra) if extra else None})
        rows.append(build_row(name, total_cost=money_to_number(cost), raw_cost=cost))

    if not indices:
        return None
    return _finish('adaptive_generic_costs', ['Item', 'Cost', 'Extra?'], raw_rows, rows,
                   start, indices[-1], total, dollar_line_indices=indices)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_CATALOG = [
    ('sparse_inline_costs',
     'Dispersed lines each containing a single $ amount within a limited window',
     _sparse_header, _sparse_parse, True),
    ('narrative_cost_block',
     'Contiguous list of 4+ lines ending in dollar amounts without a recognizable header',
     _narrative_header, _narrative_parse, False),
    ('coded_activity_budget_loose',
     'Loose coded activity budget lines (A1., B12.) without an explicit header',
     _loose_code_header, _loose_code_parse, False),
    ('practice_unit_cost_range',
     'Practice | Unit Cost (may be range) | Number of Units | Total Cost (may be range)',
     _range_header(PRACTICE_RANGE_HEADER_RE, ACTIVITY_RANGE_HEADER_RE),
     _range_parse('practice_unit_cost_range', PRACTICE_RANGE_HEADER_RE,
                  ['Practice', 'Unit Cost', 'Number of Units', 'Total Cost'], 120), False),
    ('activity_unit_cost_range',
     'Activity | Unit cost* (range) | Number of units | Total cost (range)',
     _range_header(ACTIVITY_RANGE_HEADER_RE, PRACTICE_RANGE_HEADER_RE),
     _range_parse('activity_unit_cost_range', ACTIVITY_RANGE_HEADER_RE,
                  ['Activity', 'Unit cost*', 'Number of units', 'Total cost'], 100), False),
    ('practice_unit_nrcs_costs',
     'Practice | Average Unit NRCS Cost | Units | Total Cost',
     _nrcs_header, _nrcs_parse, False),
    ('multi_funding_source_costs',
     'Practice funding allocation with Producer | NRCS | Other | Total columns',
     _funding_header, _funding_parse, False),
    ('implementation_plan_coded_budget',
     'Implementation plan coded lines (A1., B11) with dollars and subtotals',
     _plan_header, _plan_parse, False),
    ('generic_activity_costs',
     'Activity | Size/Amount | Estimated Cost without Landowner Match',
     _generic_activity_header, _generic_activity_parse, False),
    ('total_estimated_project_cost_block',
     'Cost lines preceding a Total Estimated Project Cost & Match summary line',
     _project_total_header, _project_total_parse, False),
    ('booths_creek_bmps',
     'Code | Practice | Units | Cost | Estimated Units | Total',
     _booths_header, _booths_parse, False),
    ('phase1_bmps',
     'BMPs | Amount | Estimated Cost',
     _phase1_header, _phase1_parse, False),
    ('activity_match',
     'Activity | Size | Estimated Cost | Landowner Match',
     _activity_match_header, _activity_match_parse, False),
    ('practice_costs',
     'Practice | Unit Cost | Number of Units | Total Cost with a multi-line header',
     _practice_costs_header, _practice_costs_parse, False),
    ('bell_creek_bmps',
     'Practice | Area Affected | BMP Cost | BMP Total',
     _bell_header, _bell_parse, False),
    ('tech_assistance',
     'Simple Item | Cost list',
     _tech_header, _tech_parse, False),
    ('adaptive_generic_costs',
     'Contiguous block of item descriptions followed by dollar amounts when no specific pattern fires',
     _adaptive_header, _adaptive_parse, True),
]


def validate_registry(patterns: Sequence[PatternDefinition]) -> None:
    """Raise RegistryError for duplicate ids, out-of-range confidence or bad minimums"""
    seen = set()
    for pattern in patterns:
        if pattern.id in seen:
            raise RegistryError(f"duplicate pattern id '{pattern.id}'")
        seen.add(pattern.id)
        if not 0.45 <= pattern.confidence <= 0.95:
            raise RegistryError(f"confidence {pattern.confidence} of '{pattern.id}' outside [0.45, 0.95]")
        if pattern.min_rows < 1:
            raise RegistryError(f"minimum rows of '{pattern.id}' must be positive")


def build_registry(include_catch_all: bool = True) -> Tuple[PatternDefinition, ...]:
    """
    Build the immutable, ordered dialect catalog

    Args:
        include_catch_all: Keep the low-precision recall backstops

    Returns:
        Tuple of PatternDefinition in registration order
    """
    patterns = tuple(
        PatternDefinition(
            id=pattern_id,
            description=description,
            header_test=header_test,
            parse=parse,
            confidence=CONFIDENCE[pattern_id],
            min_rows=MIN_ROWS.get(pattern_id, 1),
            catch_all=catch_all,
        )
        for pattern_id, description, header_test, parse, catch_all in _CATALOG
        if include_catch_all or not catch_all
    )
    validate_registry(patterns)
    logger.debug(f"Registered {len(patterns)} cost-table patterns")
    return patterns


def registered_cost_patterns(patterns: Optional[Sequence[PatternDefinition]] = None) -> List[Dict[str, str]]:
    """[{id, description}] for every registered dialect"""
    return [{'id': p.id, 'description': p.description} for p in (patterns or DEFAULT_PATTERNS)]


DEFAULT_PATTERNS = build_registry()
