"""
plancost: cost-table detection and normalization for watershed plan text
"""

from .patterns import DEFAULT_PATTERNS, PatternDefinition, build_registry, registered_cost_patterns
from .scanner import iter_outcomes, scan
from .schemas import DetectedTable, NormalizedRow, NormalizedTable

__all__ = [
    'DEFAULT_PATTERNS',
    'DetectedTable',
    'NormalizedRow',
    'NormalizedTable',
    'PatternDefinition',
    'build_registry',
    'iter_outcomes',
    'registered_cost_patterns',
    'scan',
]

__version__ = "1.0.0"
