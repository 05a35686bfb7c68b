"""
Tests for overlap resolution between detections
"""

from plancost.patterns import DEFAULT_PATTERNS
from plancost.resolver import resolve_overlaps
from plancost.schemas import DetectedTable, NormalizedTable, RawTable

CONFIDENCE = {pattern.id: pattern.confidence for pattern in DEFAULT_PATTERNS}


def make(pattern_id, span_start, span_end, dollars):
    return DetectedTable(
        id=pattern_id,
        title=pattern_id,
        span_start=span_start,
        span_end=span_end,
        dollar_line_indices=dollars,
        table=RawTable(columns=[]),
        normalized=NormalizedTable(pattern_id=pattern_id, pattern_confidence=CONFIDENCE[pattern_id]),
    )


def ids(tables):
    return [(t.id, t.span_start) for t in tables]


def test_catch_all_subset_is_dropped():
    specific = make('practice_unit_nrcs_costs', 0, 6, [1, 2, 3, 4, 5, 6])
    catch_all = make('adaptive_generic_costs', 2, 6, [2, 3, 4])
    assert ids(resolve_overlaps([catch_all, specific], DEFAULT_PATTERNS)) == [('practice_unit_nrcs_costs', 0)]


def test_catch_all_inside_span_is_dropped():
    """Span containment alone is enough for a catch-all"""
    specific = make('tech_assistance', 0, 10, [1, 2])
    catch_all = make('sparse_inline_costs', 3, 9, [3, 5, 7, 8, 9])
    assert ids(resolve_overlaps([specific, catch_all], DEFAULT_PATTERNS)) == [('tech_assistance', 0)]


def test_partially_covered_catch_all_is_kept():
    specific = make('practice_unit_nrcs_costs', 0, 6, [1, 2, 3, 4, 5, 6])
    catch_all = make('adaptive_generic_costs', 5, 9, [5, 6, 7, 8, 9])
    result = resolve_overlaps([specific, catch_all], DEFAULT_PATTERNS)
    assert ids(result) == [('practice_unit_nrcs_costs', 0), ('adaptive_generic_costs', 5)]


def test_identical_sets_keep_higher_confidence():
    narrative = make('narrative_cost_block', 0, 3, [0, 1, 2, 3])
    coded = make('coded_activity_budget_loose', 0, 3, [0, 1, 2, 3])
    assert ids(resolve_overlaps([narrative, coded], DEFAULT_PATTERNS)) == [('coded_activity_budget_loose', 0)]


def test_identical_confidence_prefers_longer_span_then_registration():
    header = make('activity_match', 0, 4, [1, 2, 3, 4])
    shifted = make('activity_match', 1, 4, [1, 2, 3, 4])
    assert ids(resolve_overlaps([shifted, header], DEFAULT_PATTERNS)) == [('activity_match', 0)]

    # tech_assistance (0.85) registers after practice_unit_nrcs_costs (0.85)
    tech = make('tech_assistance', 0, 3, [1, 2, 3])
    nrcs = make('practice_unit_nrcs_costs', 0, 3, [1, 2, 3])
    assert ids(resolve_overlaps([tech, nrcs], DEFAULT_PATTERNS)) == [('practice_unit_nrcs_costs', 0)]


def test_retrigger_inside_claimed_block_is_dropped():
    first = make('coded_activity_budget_loose', 0, 6, [0, 1, 2, 3, 4, 5, 6])
    later = make('coded_activity_budget_loose', 1, 6, [1, 2, 3, 4, 5, 6])
    assert ids(resolve_overlaps([first, later], DEFAULT_PATTERNS)) == [('coded_activity_budget_loose', 0)]


def test_empty_dollar_sets_are_kept_and_output_in_document_order():
    late = make('tech_assistance', 20, 24, [21, 22])
    empty = make('generic_activity_costs', 10, 12, [])
    early = make('booths_creek_bmps', 0, 5, [1, 2, 3])
    result = resolve_overlaps([late, empty, early], DEFAULT_PATTERNS)
    assert ids(result) == [('booths_creek_bmps', 0), ('generic_activity_costs', 10), ('tech_assistance', 20)]
