"""
Tests for the cost-table dialects
Each block below is a minimal layout of one dialect as it appears in plan text
"""

import pytest

from plancost.exceptions import RegistryError
from plancost.patterns import (
    DEFAULT_PATTERNS,
    PatternDefinition,
    build_registry,
    registered_cost_patterns,
    validate_registry,
)
from plancost.scanner import scan

PATTERNS = {pattern.id: pattern for pattern in DEFAULT_PATTERNS}


def detect(lines):
    """Scan and return {pattern id: detection}"""
    return {table.id: table for table in scan(lines)}


def test_registry_order_and_confidence():
    """Catalog is ordered, catch-alls flagged, confidences in range"""
    ids = [pattern.id for pattern in DEFAULT_PATTERNS]
    assert len(ids) == 17
    assert ids[0] == 'sparse_inline_costs'
    assert ids[-1] == 'adaptive_generic_costs'
    assert {p.id for p in DEFAULT_PATTERNS if p.catch_all} == {'sparse_inline_costs', 'adaptive_generic_costs'}
    assert all(0.45 <= p.confidence <= 0.95 for p in DEFAULT_PATTERNS)
    assert PATTERNS['adaptive_generic_costs'].confidence <= 0.55

    without = build_registry(include_catch_all=False)
    assert len(without) == 15
    assert not any(p.catch_all for p in without)

    listed = registered_cost_patterns()
    assert listed[5]['id'] == 'practice_unit_nrcs_costs'
    assert listed[5]['description']


def test_registry_validation():
    """Duplicate ids and out-of-range confidences are rejected"""
    nrcs = PATTERNS['practice_unit_nrcs_costs']
    with pytest.raises(RegistryError):
        validate_registry((nrcs, nrcs))

    bad = PatternDefinition(id='bad', description='', header_test=nrcs.header_test,
                            parse=nrcs.parse, confidence=0.99)
    with pytest.raises(RegistryError):
        validate_registry((bad,))


def test_multi_funding_source_costs():
    """Contributor columns, dash cells and per-row shares"""
    lines = [
        "Practice Producer NRCS EPA-MDEQ Total",
        "Fencing $100 $200 $50",
        "Heavy Use Area $1,000 $3,000 - $4,000",
        "Totals $1,100 $3,200 $50 $4,350",
    ]
    table = detect(lines)['multi_funding_source_costs']
    normalized = table.normalized

    assert table.table.columns == ['Practice', 'Producer', 'NRCS', 'EPA-MDEQ', 'Total']
    assert [row.total_cost for row in normalized.rows] == [350.0, 4000.0]
    assert normalized.rows[1].other_contribution is None
    assert normalized.rows[1].funding_pct_producer == 0.25
    assert normalized.rows[1].funding_pct_other == 0.0
    assert normalized.producer_computed == 1100.0
    assert normalized.nrcs_computed == 3200.0
    assert normalized.other_computed == 50.0
    assert normalized.total_reported == 4350.0
    assert normalized.discrepancy == 0.0
    assert normalized.reconciled is True


def test_implementation_plan_coded_budget():
    """Roman sections, subtotals and wrapped descriptions"""
    lines = [
        "WATERSHED IMPLEMENTATION PLAN – BUDGET ESTIMATES",
        "I. Agricultural Practices",
        "A1 Cover crops on cropland $12,000",
        "A2 Nutrient management plans $8,000",
        "Subtotal: $20,000",
        "II. Education",
        "B1 Field days $1,500 *2",
        "for local producers",
        "Subtotal: $1,500",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['implementation_plan_coded_budget']

    normalized = tables[0].normalized
    assert [row.code for row in normalized.rows] == ['A1', 'A2', 'B1']
    assert normalized.rows[0].section == 'I. Agricultural Practices'
    assert normalized.rows[2].section == 'II. Education'
    assert normalized.rows[2].name == 'B1 Field days for local producers'
    assert normalized.section_subtotals == [
        {'section': 'I. Agricultural Practices', 'subtotal': 20000.0},
        {'section': 'II. Education', 'subtotal': 1500.0},
    ]
    assert normalized.total_reported == 21500.0
    assert normalized.total_computed == 21500.0
    assert tables[0].dollar_line_indices == [2, 3, 4, 6, 8]


def test_coded_activity_budget_loose():
    """Headerless coded lines win over the narrative reading of the same block"""
    lines = [
        "A1. Cover crops $12,000",
        "A2. Grassed waterways $8,000 (cost share)",
        "A3. - Filter strips $4,500",
        "B1. Field days $1,500",
        "B2. Newsletter $900",
        "Subtotal: $26,900",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['coded_activity_budget_loose']

    normalized = tables[0].normalized
    assert len(normalized.rows) == 5
    assert normalized.rows[2].code == 'A3'
    assert normalized.total_reported == 26900.0
    assert normalized.total_computed == 26900.0
    assert normalized.pattern_confidence == 0.68


def test_practice_unit_cost_range():
    """Ranges resolve to midpoints while keeping min/max"""
    lines = [
        "Practice Unit Cost Number of Units Total Cost",
        "Cover Crops $30 - $50 1,000 ac $30,000 - $50,000",
        "Grade Stabilization $5,000 4 $20,000",
        "Total $50,000 - $70,000",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['practice_unit_cost_range']

    first = tables[0].normalized.rows[0]
    assert first.kind == 'range'
    assert first.unit_cost_min == 30.0
    assert first.unit_cost_max == 50.0
    assert first.unit_cost == 40.0
    assert first.total_cost == 40000.0
    assert first.quantity == 1000.0
    assert first.unit == 'acre'

    normalized = tables[0].normalized
    assert normalized.total_computed == 60000.0
    assert normalized.total_reported == 60000.0
    assert normalized.discrepancy == 0.0


def test_activity_unit_cost_range():
    """Rows right below the activity header are not lost"""
    lines = [
        "Activity Unit cost* Number of units Total cost",
        "Streambank stabilization $100 - $150 500 ft $50,000 - $75,000",
        "Livestock exclusion fencing $3 - $5 2,000 ft $6,000 - $10,000",
        "Alternative water sources $2,500 4 units $10,000",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['activity_unit_cost_range']

    rows = tables[0].normalized.rows
    assert len(rows) == 3
    assert rows[0].name == 'Streambank stabilization'
    assert rows[0].unit_cost == 125.0
    assert rows[0].total_cost == 62500.0
    assert rows[2].unit == 'each'
    assert tables[0].normalized.total_computed == 62500.0 + 8000.0 + 10000.0


def test_headerless_range_table_prefers_practice_dialect():
    """Identical range detections collapse to the higher-confidence dialect"""
    lines = [
        "Streambank stabilization $100 - $150 500 ft $50,000 - $75,000",
        "Livestock exclusion fencing $3 - $5 2,000 ft $6,000 - $10,000",
        "Alternative water sources $2,500 4 units $10,000",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['practice_unit_cost_range']
    assert tables[0].span_start == 0
    assert tables[0].span_end == 2


def test_generic_activity_costs():
    """Size/Amount is split into quantity and unit"""
    lines = [
        "Activity Size/Amount Estimated Cost",
        "Fencing 1,200 ft @ $5/ft $6,000",
        "Critical area planting 10 ac $2,500",
        "Watering facility",
        "2 each $4,000",
        "Total Estimated Project Cost $12,500",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['generic_activity_costs']

    rows = tables[0].normalized.rows
    assert [row.name for row in rows] == ['Fencing', 'Critical area planting', 'Watering facility']
    assert rows[0].quantity == 1200.0
    assert rows[0].unit == 'ft'
    assert rows[0].unit_cost == 5.0
    assert rows[1].unit == 'acre'
    assert rows[2].quantity == 2.0
    assert rows[2].unit == 'each'
    assert tables[0].normalized.total_reported == 12500.0
    assert tables[0].normalized.total_computed == 12500.0


def test_total_estimated_project_cost_block():
    """Rows are collected walking back from the summary line"""
    lines = [
        "Element C: Practice costs",
        "Stream fencing $20,000 $5,000",
        "Riparian buffer $10,000 $4,000",
        "Total Estimated Project Cost $30,000 Match $9,000",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['total_estimated_project_cost_block']

    table = tables[0]
    assert table.span_start == 1
    assert table.span_end == 3
    assert [row.name for row in table.normalized.rows] == ['Stream fencing', 'Riparian buffer']
    assert table.normalized.total_reported == 30000.0
    assert table.normalized.landowner_match_reported == 9000.0
    assert table.normalized.landowner_match_computed == 9000.0
    assert table.normalized.match_discrepancy == 0.0
    assert table.table.match_total == 9000.0


def test_activity_match():
    """Landowner match column and BMPs prefix"""
    lines = [
        "Activity Size Estimated Cost Landowner Match",
        "BMPs: Cover crops 500 ac @ $40 $20,000 $8,000",
        "Grade stabilization N/A $15,000 $6,000",
        "Total Estimated Project Cost $35,000 $14,000",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['activity_match']

    rows = tables[0].normalized.rows
    assert rows[0].name == 'Cover crops'
    assert rows[0].quantity == 500.0
    assert rows[0].unit == 'acre'
    assert rows[0].unit_cost == 40.0
    assert rows[0].landowner_match == 8000.0
    assert rows[1].name == 'Grade stabilization'
    assert rows[1].quantity is None
    assert tables[0].normalized.landowner_match_computed == 14000.0
    assert tables[0].normalized.total_reported == 35000.0


def test_booths_creek_bmps():
    lines = [
        "Code Practice Units Cost Estimated Units Total",
        "382 Fence ft $2.50 1,000 $2,500",
        "614 Watering Facility ea $1,200 3 $3,600",
        "Total $6,100",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['booths_creek_bmps']

    rows = tables[0].normalized.rows
    assert rows[0].name == '382 - Fence'
    assert rows[0].code == '382'
    assert rows[0].unit_cost == 2.5
    assert rows[1].unit == 'each'
    assert tables[0].normalized.total_reported == 6100.0
    assert tables[0].normalized.total_computed == 6100.0


def test_phase1_bmps():
    """Unit cost is back-computed from total and amount"""
    lines = [
        "BMPs Amount Estimated Cost",
        "Grassed waterway 2,400 ft $12,000",
        "Sediment basin 3 each $9,000",
        "Total $21,000",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['phase1_bmps']

    rows = tables[0].normalized.rows
    assert rows[0].unit_cost == 5.0
    assert rows[1].unit_cost == 3000.0
    assert tables[0].normalized.total_reported == 21000.0


def test_practice_costs_multiline_header():
    """Wrapped practice names and a Total on its own line"""
    lines = [
        "Practice",
        "Unit Cost w/Installation",
        "Number of Units",
        "Total Cost",
        "Critical Area",
        "Planting $248.10 32 $7,939.20",
        "Fencing $2.00 1,500 $3,000.00",
        "Total",
        "$10,939.20",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['practice_costs']

    table = tables[0]
    assert [row.name for row in table.normalized.rows] == ['Critical Area Planting', 'Fencing']
    assert table.normalized.rows[0].quantity == 32.0
    assert table.normalized.total_reported == 10939.20
    assert table.normalized.total_computed == pytest.approx(10939.20)
    assert table.span_end == 8
    assert table.dollar_line_indices == [5, 6, 8]


def test_bell_creek_bmps():
    lines = [
        "Practice Area Affected BMP Cost BMP Total",
        "Filter Strip 12.5 acres $300/ac $3,750",
        "Stream Crossing 2 structures $4,000 $8,000",
        "Total",
        "$11,750",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['bell_creek_bmps']

    rows = tables[0].normalized.rows
    assert rows[0].quantity == 12.5
    assert rows[0].unit == 'acre'
    assert rows[1].unit == 'structure'
    assert tables[0].normalized.total_reported == 11750.0
    assert tables[0].normalized.total_computed == 11750.0


def test_tech_assistance():
    lines = [
        "Item Cost",
        "Project coordinator $45,000",
        "Water quality monitoring $12,000",
        "Total $57,000",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['tech_assistance']
    assert tables[0].normalized.total_reported == 57000.0
    assert tables[0].normalized.total_computed == 57000.0


def test_sparse_inline_costs():
    """Dispersed single-amount sentences are collected as a backstop"""
    lines = [
        "Cover crop seed will cost about $12,000 for the first season.",
        "The district will also rent a no-till drill.",
        "Drill rental is budgeted at $3,500 per year.",
        "",
        "Workshop materials $1,200",
        "Landowners will be contacted by mail.",
        "Mailing costs are estimated at $800.",
        "Soil testing for enrolled fields will run $2,000.",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['sparse_inline_costs']

    table = tables[0]
    assert table.dollar_line_indices == [0, 2, 4, 6, 7]
    assert table.normalized.rows[0].name == 'Cover crop seed will cost about'
    assert table.normalized.total_computed == 19500.0
    assert table.normalized.pattern_confidence == 0.45


def test_adaptive_generic_costs():
    """Catch-all picks up an undocumented layout with a gap line"""
    lines = [
        "Heavy use area protection $15,000",
        "Roof runoff structure $8,000 $2,000",
        "Prescribed grazing plan",
        "Waste storage facility $60,000",
        "Nutrient management $4,000",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['adaptive_generic_costs']

    table = tables[0]
    assert table.dollar_line_indices == [0, 1, 3, 4]
    assert table.table.rows[1]['Extra?'] == '$2,000'
    assert table.normalized.total_computed == 87000.0
    assert table.normalized.pattern_confidence == 0.5


def test_false_positive_header_is_dropped():
    """A header with no parseable rows yields nothing"""
    lines = [
        "Practice Average Unit NRCS Cost Units Total Cost",
        "See appendix B for practice details.",
    ]
    assert scan(lines) == []
    assert PATTERNS['practice_unit_nrcs_costs'].parse(lines, 0) is None


def test_description_wrapped_below_row_stays_with_it():
    """Trailing description text joins the row above, not the next row"""
    lines = [
        "Activity Size/Amount Estimated Cost",
        "Grassed Waterway 1,200 ft $3,000",
        "with rock outlet",
        "Fence 2,000 ft $3,500",
        "Cover crops 10 ac $2,500",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['generic_activity_costs']

    rows = tables[0].normalized.rows
    assert [row.name for row in rows] == ['Grassed Waterway with rock outlet', 'Fence', 'Cover crops']
    assert rows[0].quantity == 1200.0
    assert tables[0].normalized.total_computed == 9000.0
    assert tables[0].span_end == 4


def test_sub_headings_are_not_part_of_row_names():
    lines = [
        "Practice Average Unit NRCS Cost Units Total Cost",
        "Vegetative Practices",
        "Critical Area Planting $248.10 32 acres $7,939.20",
        "Structural Practices",
        "Grassed Waterway $2.50 1,200 ft $3,000.00",
        "TOTAL $10,939.20",
    ]
    tables = scan(lines)
    assert [t.id for t in tables] == ['practice_unit_nrcs_costs']

    table = tables[0]
    assert [row.name for row in table.normalized.rows] == ['Critical Area Planting', 'Grassed Waterway']
    assert table.normalized.total_computed == pytest.approx(10939.20)
    assert table.dollar_line_indices == [2, 4, 5]
