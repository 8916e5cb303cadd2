"""
Earnings fact extraction from news text.

Pattern-based extraction of EPS, revenue and a Beat/Miss/Inline verdict
from headlines and summaries, with a composed confidence score.

Components:
- ExtractionConfig: Confidence constants and heuristics
- ExtractedFacts: Dataclass of extracted facts
- FactExtractor: Regex cascade extractor
- PeriodDetector: Quarter / fiscal year detection
"""

from earnings_tracker.extraction.config import ExtractionConfig
from earnings_tracker.extraction.extractor import FactExtractor, is_earnings_related
from earnings_tracker.extraction.periods import (
    PeriodDetector,
    mentions_quarter,
    mentions_year,
    quarter_variants,
)
from earnings_tracker.extraction.schemas import ExtractedFacts

__all__ = [
    "ExtractedFacts",
    "ExtractionConfig",
    "FactExtractor",
    "PeriodDetector",
    "is_earnings_related",
    "mentions_quarter",
    "mentions_year",
    "quarter_variants",
]
