"""
Span Scanner
Runs every registered pattern at every line, assembles DetectedTable records
and hands them to the overlap resolver
"""

import logging
from typing import Iterator, List, Optional, Sequence

from .aggregator import reconcile
from .config import Settings, get_settings
from .exceptions import PatternCrash
from .patterns import DEFAULT_PATTERNS, PatternDefinition, build_registry
from .resolver import resolve_overlaps
from .schemas import DetectedTable, ParseResult, PatternOutcome
from .utils import has_dollar

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_pattern(pattern: PatternDefinition, lines: Sequence[str], index: int) -> Optional[PatternOutcome]:
    """
    Evaluate one pattern at one line

    Returns:
        None when the header test does not fire, otherwise a PatternOutcome
        carrying the parse result (possibly None) or the captured crash
    """
    try:
        if not pattern.header_test(lines[index], lines, index):
            return None
        result = pattern.parse(lines, index)
    except Exception as e:
        crash = PatternCrash(pattern.id, index, f"{type(e).__name__}: {e}")
        logger.warning(f"⚠️ {crash}")
        return PatternOutcome(pattern_id=pattern.id, line_index=index, error=crash)

    if result is None:
        logger.debug(f"{pattern.id} header hit at line {index} yielded no table")
    else:
        logger.debug(f"{pattern.id} matched at line {index}: {len(result.normalized.rows)} rows")
    return PatternOutcome(pattern_id=pattern.id, line_index=index, result=result)


def iter_outcomes(lines: Sequence[str], patterns: Sequence[PatternDefinition]) -> Iterator[PatternOutcome]:
    """Yield an outcome for every header hit, line by line in registration order"""
    for index in range(len(lines)):
        for pattern in patterns:
            outcome = run_pattern(pattern, lines, index)
            if outcome is not None:
                yield outcome


def _dollar_lines(lines: Sequence[str], result: ParseResult) -> List[int]:
    start, end = result.span_start, result.span_end
    if result.dollar_line_indices is not None:
        return sorted({i for i in result.dollar_line_indices if start <= i <= end})
    return [i for i in range(start, end + 1) if has_dollar(lines[i])]


def assemble(lines: Sequence[str], outcome: PatternOutcome, tolerance: float) -> DetectedTable:
    """Turn a successful outcome into a DetectedTable"""
    result = outcome.result
    end = min(result.span_end, len(lines) - 1)
    result = result.model_copy(update={'span_end': max(result.span_start, end)})
    return DetectedTable(
        id=outcome.pattern_id,
        title=(lines[outcome.line_index] or '').strip(),
        span_start=result.span_start,
        span_end=result.span_end,
        dollar_line_indices=_dollar_lines(lines, result),
        table=result.table,
        normalized=reconcile(result.normalized, tolerance),
    )


def scan(lines: Sequence[str],
         patterns: Optional[Sequence[PatternDefinition]] = None,
         settings: Optional[Settings] = None) -> List[DetectedTable]:
    """
    Detect, parse and normalize every cost table in a document

    Args:
        lines: Document lines in order; blank lines are significant
        patterns: Registry to use (defaults to the built-in catalog)
        settings: Engine settings (defaults to the cached environment settings)

    Returns:
        Non-redundant detections in document order; never raises for malformed input
    """
    settings = settings or get_settings()
    if patterns is None:
        patterns = DEFAULT_PATTERNS if settings.include_catch_all else build_registry(include_catch_all=False)

    lines = tuple(line if isinstance(line, str) else '' for line in (lines or ()))
    if len(lines) > settings.large_document_lines:
        logger.warning(
            f"⚠️ Document has {len(lines)} lines (> {settings.large_document_lines}); "
            f"consider pre-chunking before scanning"
        )

    detections = []
    crashes = 0
    for outcome in iter_outcomes(lines, patterns):
        if not outcome.ok:
            crashes += 1
            continue
        if outcome.result is not None:
            detections.append(assemble(lines, outcome, settings.discrepancy_tolerance))

    resolved = resolve_overlaps(detections, patterns)
    logger.info(
        f"✅ Detected {len(resolved)} cost tables "
        f"({len(detections)} candidates, {crashes} pattern crashes)"
    )
    return resolved


if __name__ == "__main__":
    sample = [
        "Practice Average Unit NRCS Cost Units Total Cost",
        "Critical Area Planting $248.10 32 acres $7,939.20",
        "TOTAL $7,939.20",
        "",
        "",
        "Practice Producer NRCS Other Total",
        "Fencing $100 $200 $50",
        "Heavy Use Area $1,000 $3,000 - $4,000",
    ]
    for table in scan(sample):
        print(f"{table.id} ({table.normalized.pattern_confidence}): "
              f"{len(table.normalized.rows)} rows, computed {table.normalized.total_computed}")
