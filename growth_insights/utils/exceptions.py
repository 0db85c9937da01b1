"""
Error taxonomy for insight generation.

Only DataQualityTooLowError ever reaches a caller of the engine. Family and
cache failures are caught where they happen and logged; analyzer precondition
misses never raise at all (they come back as None / []).
"""
from typing import List, Optional


class InsightsError(Exception):
    """Base class for insight generation errors"""


class DataQualityTooLowError(InsightsError):
    """Aggregate data quality is below the generation threshold"""

    def __init__(self, score: float, threshold: float, issues: Optional[List] = None):
        self.score = score
        self.threshold = threshold
        self.issues = issues or []
        super().__init__(
            f"Data quality too low ({score * 100:.1f}%) to generate reliable insights"
        )


class AnalysisFamilyError(InsightsError):
    """One analysis family (trend, anomaly, ...) failed"""

    def __init__(self, family: str, cause: Exception):
        self.family = family
        self.cause = cause
        super().__init__(f"{family} analysis failed: {type(cause).__name__}: {cause}")


class CacheError(InsightsError):
    """Internal cache failure; callers treat it as a miss"""
