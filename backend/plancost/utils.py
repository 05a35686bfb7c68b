"""
Money, unit and line helpers shared by every cost-table dialect
Pure functions only: currency parsing, unit canonicalization, block bounding
"""

import re
from typing import Iterator, List, Optional, Sequence, Tuple

# A single dollar token: $1,234.56 / $ 1,234 / $248.10
MONEY_TOKEN = r"\$\s?[0-9][0-9,]*(?:\.[0-9]+)?"
MONEY_RE = re.compile(MONEY_TOKEN)
DOLLAR_RE = re.compile(r"\$\s?[0-9]")

# $X - $Y (also en dash / "to")
MONEY_RANGE_RE = re.compile(
    rf"({MONEY_TOKEN})\s*(?:-|–|—|to)\s*({MONEY_TOKEN})", re.IGNORECASE
)

# Line consisting of nothing but money tokens (a wrapped amount column)
LONE_AMOUNT_RE = re.compile(
    rf"^\s*{MONEY_TOKEN}(?:\s*(?:-|–)\s*{MONEY_TOKEN})?(?:\s+{MONEY_TOKEN})*\s*$"
)

SECTION_BOUNDARY_RE = re.compile(
    r"^\s*(?:Goal|Objective|Section|Table\s+\d+|Implementation\s+Plan)\b",
    re.IGNORECASE,
)

TOTAL_LINE_RE = re.compile(r"^\s*(?:grand\s+)?totals?\b", re.IGNORECASE)

UNIT_ALIASES = {
    'each': 'each', 'ea': 'each', 'no': 'each', 'unit': 'each', 'units': 'each',
    'ac': 'acre', 'acre': 'acre', 'acres': 'acre',
    'ft': 'ft', 'feet': 'ft', 'foot': 'ft', 'lf': 'ft', 'linft': 'ft',
    'cuyd': 'cu_yd', 'cy': 'cu_yd', 'cuyds': 'cu_yd', 'cubicyards': 'cu_yd',
    'sqft': 'sq_ft', 'sf': 'sq_ft', 'squarefeet': 'sq_ft',
    'gal': 'gal', 'gallon': 'gal', 'gallons': 'gal',
    'mi': 'mi', 'mile': 'mi', 'miles': 'mi',
    'hr': 'hr', 'hrs': 'hr', 'hour': 'hr', 'hours': 'hr',
    'structure': 'structure', 'structures': 'structure',
    'pond': 'pond', 'ponds': 'pond',
    'basin': 'basin', 'basins': 'basin',
    'machine': 'machine', 'machines': 'machine',
}


def money_to_number(text: Optional[str]) -> Optional[float]:
    """
    Parse the first currency token in text to a float

    Args:
        text: Raw token such as "$7,939.20" or "1,200"

    Returns:
        Parsed value, or None when no number is present
    """
    if not text:
        return None

    match = re.search(r"\$?\s?([0-9][0-9,]*(?:\.[0-9]+)?)", text)
    if not match:
        return None

    try:
        return float(match.group(1).replace(',', ''))
    except ValueError:
        return None


def parse_money_range(text: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """
    Parse "$X - $Y" into (min, max); a single amount gives (x, x)
    """
    if not text:
        return None, None

    match = MONEY_RANGE_RE.search(text)
    if match:
        low = money_to_number(match.group(1))
        high = money_to_number(match.group(2))
        if low is not None and high is not None and low > high:
            low, high = high, low
        return low, high

    value = money_to_number(text)
    return value, value


def midpoint(low: Optional[float], high: Optional[float]) -> Optional[float]:
    """Arithmetic midpoint of a range, tolerating a missing bound"""
    if low is None and high is None:
        return None
    if low is None:
        return high
    if high is None:
        return low
    return (low + high) / 2


def canonicalize_unit(token: Optional[str]) -> Optional[str]:
    """
    Map a raw unit token through the shared alias table

    Unknown tokens are lowercased and stripped to [a-z0-9_].
    """
    if not token:
        return None

    raw = token.strip().lower().rstrip('.')
    key = re.sub(r"[\s\.]", '', raw)
    if not key:
        return None
    if key in UNIT_ALIASES:
        return UNIT_ALIASES[key]

    cleaned = re.sub(r"[^a-z0-9_]", '', key)
    return cleaned or None


def split_quantity_unit(text: Optional[str]) -> Tuple[Optional[float], Optional[str], Optional[str]]:
    """
    Split a combined Size/Amount field into (quantity, unit_raw, unit)

    "32 acres" -> (32.0, "acres", "acre"); "1,200 ft" -> (1200.0, "ft", "ft")
    """
    if not text:
        return None, None, None

    match = re.match(r"^\s*([0-9][0-9,]*(?:\.[0-9]+)?)\s*([A-Za-z][A-Za-z\.]*)?", text)
    if not match:
        return None, None, None

    try:
        quantity = float(match.group(1).replace(',', ''))
    except ValueError:
        return None, None, None

    unit_raw = match.group(2)
    # "500 x 20 ft" is a dimension, not a unit
    if unit_raw and unit_raw.lower() == 'x':
        unit_raw = None
    return quantity, unit_raw, canonicalize_unit(unit_raw)


def find_money(line: Optional[str]) -> List[str]:
    """All dollar tokens in a line, in order"""
    if not line:
        return []
    return MONEY_RE.findall(line)


def has_dollar(line: Optional[str]) -> bool:
    return bool(line) and bool(DOLLAR_RE.search(line))


def is_blank(line: Optional[str]) -> bool:
    return not line or not line.strip()


def is_section_boundary(line: Optional[str]) -> bool:
    return bool(line) and bool(SECTION_BOUNDARY_RE.match(line))


def is_total_line(line: Optional[str]) -> bool:
    return bool(line) and bool(TOTAL_LINE_RE.match(line))


def is_lone_amount(line: Optional[str]) -> bool:
    return bool(line) and bool(LONE_AMOUNT_RE.match(line))


def reported_total(line: str, average: bool = True) -> Optional[float]:
    """
    Read the reported figure from a Total line

    A dollar range (or several amounts) is averaged; otherwise the last amount wins.
    """
    amounts = [money_to_number(token) for token in find_money(line)]
    amounts = [amount for amount in amounts if amount is not None]
    if not amounts:
        return None
    if average:
        return sum(amounts) / len(amounts)
    return amounts[-1]


def walk_block(lines: Sequence[str], start: int, max_lines: int,
               blank_limit: int = 2) -> Iterator[Tuple[int, str]]:
    """
    Yield (index, line) for the non-blank lines of a candidate block

    Stops at the first of: a section boundary line (after the first line),
    blank_limit consecutive blank lines, or max_lines scanned.
    """
    blanks = 0
    stop = min(len(lines), start + max_lines)
    for index in range(start, stop):
        line = lines[index] or ''
        if not line.strip():
            blanks += 1
            if blanks >= blank_limit:
                return
            continue
        blanks = 0
        if index > start and is_section_boundary(line):
            return
        yield index, line
