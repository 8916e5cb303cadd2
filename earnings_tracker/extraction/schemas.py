"""Schema for structured facts extracted from one news item."""

from dataclasses import dataclass
from typing import Any

from earnings_tracker.records.schemas import EarningsResult, Quarter


@dataclass(frozen=True)
class ExtractedFacts:
    """
    Candidate earnings facts parsed from a headline and summary.

    Attributes:
        actual_eps: EPS figure, if a pattern matched.
        revenue_usd: Revenue in USD after magnitude resolution.
        result: Verdict from the beat/miss/inline classifier.
        confidence: Composed confidence in [0, 1].
        quarter: Quarter mentioned in the text, if any.
        fiscal_year: Explicit year token, else the publish year.
    """

    actual_eps: float | None
    revenue_usd: float | None
    result: EarningsResult
    confidence: float
    quarter: Quarter | None = None
    fiscal_year: int | None = None

    @property
    def is_usable(self) -> bool:
        """A verdict or an EPS figure is enough to backfill a record."""
        return self.result != EarningsResult.UNKNOWN or self.actual_eps is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "actual_eps": self.actual_eps,
            "revenue_usd": self.revenue_usd,
            "result": self.result.value,
            "confidence": self.confidence,
            "quarter": self.quarter.value if self.quarter else None,
            "fiscal_year": self.fiscal_year,
        }
