"""
Overlap resolution for detections that claim the same dollar lines
"""

import logging
from typing import Dict, List, Sequence

from .schemas import DetectedTable

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _span_within(inner: DetectedTable, outer: DetectedTable) -> bool:
    return outer.span_start <= inner.span_start and inner.span_end <= outer.span_end


def _covered(candidate: DetectedTable, other: DetectedTable) -> bool:
    """Candidate's span sits inside other's, or its dollar lines are a subset of other's"""
    if _span_within(candidate, other):
        return True
    dollars = set(candidate.dollar_line_indices)
    return bool(dollars) and dollars <= set(other.dollar_line_indices)


def resolve_overlaps(detections: List[DetectedTable], patterns: Sequence) -> List[DetectedTable]:
    """
    Drop redundant detections

    1. Catch-all detections covered by any specific detection are discarded.
       Partially covered catch-alls survive.
    2. In rank order (confidence, span length, registration order, position),
       a detection whose dollar lines are all claimed by a kept one is discarded.
    3. Survivors come back in document order.

    Args:
        detections: Raw detections from the scanner
        patterns: The registry that produced them (for order and catch-all flags)

    Returns:
        Filtered detections sorted by span start
    """
    order: Dict[str, int] = {pattern.id: position for position, pattern in enumerate(patterns)}
    catch_all = {pattern.id for pattern in patterns if pattern.catch_all}

    specific = [d for d in detections if d.id not in catch_all]
    candidates = []
    for detection in detections:
        if detection.id in catch_all and any(_covered(detection, other) for other in specific):
            logger.debug(f"Dropped catch-all {detection.id} at line {detection.span_start}")
            continue
        candidates.append(detection)

    def rank(detection: DetectedTable):
        return (
            -detection.normalized.pattern_confidence,
            -(detection.span_end - detection.span_start),
            order.get(detection.id, len(order)),
            detection.span_start,
        )

    kept: List[DetectedTable] = []
    for detection in sorted(candidates, key=rank):
        dollars = set(detection.dollar_line_indices)
        if dollars and any(dollars <= set(other.dollar_line_indices) for other in kept):
            logger.debug(f"Dropped {detection.id} at line {detection.span_start}: dollar lines already claimed")
            continue
        kept.append(detection)

    return sorted(kept, key=lambda d: (d.span_start, order.get(d.id, len(order))))
