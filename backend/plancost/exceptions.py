"""
Exception types for cost-table detection
Only RegistryError ever propagates to callers; pattern failures are captured
"""


class CostTableError(Exception):
    """Base class for cost-table detection errors"""


class PatternCrash(CostTableError):
    """Raised inside a dialect's logic and captured at the scanner boundary"""
    def __init__(self, pattern_id: str, line_index: int, reason: str):
        self.pattern_id = pattern_id
        self.line_index = line_index
        self.reason = reason
        super().__init__(
            f"Pattern '{pattern_id}' crashed at line {line_index}: {reason}"
        )


class RegistryError(CostTableError):
    """Raised when a pattern catalog is malformed (duplicate ids, bad confidence)"""
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Invalid pattern registry: {detail}")
