"""Fiscal period detection for earnings text.

Finds which quarter and fiscal year a headline talks about. Quarters are
recognised in numeric ("Q3") and written-out ("third quarter") form; the
fiscal year comes from an explicit "FY 2025" / "fiscal year 2025" token,
else a bare 20xx year token, else the article's publish year.
"""

from __future__ import annotations

import re
from datetime import datetime

from earnings_tracker.records.schemas import Quarter

_WRITTEN_QUARTERS: dict[Quarter, str] = {
    Quarter.Q1: "first quarter",
    Quarter.Q2: "second quarter",
    Quarter.Q3: "third quarter",
    Quarter.Q4: "fourth quarter",
}

# Detection order; the first quarter found wins.
_QUARTER_ORDER = (Quarter.Q4, Quarter.Q3, Quarter.Q2, Quarter.Q1)

_FY_RE = re.compile(r"\b(?:fy|fiscal\s+year)\s*'?(\d{4})\b", re.IGNORECASE)
_YEAR_RE = re.compile(r"\b(20\d{2})\b")


def _numeric_quarter_re(quarter: Quarter) -> re.Pattern[str]:
    return re.compile(rf"\bq{quarter.ordinal}(?!\d)", re.IGNORECASE)


_NUMERIC_QUARTER_RES: dict[Quarter, re.Pattern[str]] = {
    q: _numeric_quarter_re(q) for q in Quarter
}


def quarter_variants(quarter: Quarter) -> tuple[str, str]:
    """Lower-case phrases that name ``quarter``: ('q3', 'third quarter')."""
    return (quarter.value.lower(), _WRITTEN_QUARTERS[quarter])


def mentions_quarter(text: str, quarter: Quarter) -> bool:
    """Check whether ``text`` names ``quarter`` in numeric or written form."""
    if _NUMERIC_QUARTER_RES[quarter].search(text):
        return True
    _, written = quarter_variants(quarter)
    return written in text.lower()


def mentions_year(text: str, year: int) -> bool:
    """Check for a standalone year token."""
    return re.search(rf"(?<!\d){year}(?!\d)", text) is not None


class PeriodDetector:
    """
    Stateless detector for the fiscal period referenced by a text.

    Usage:
        detector = PeriodDetector()
        detector.detect_quarter("NVDA Q3 earnings beat")   # Quarter.Q3
        detector.detect_fiscal_year("FY 2025 results", published_at)  # 2025
    """

    def detect_quarter(self, text: str) -> Quarter | None:
        """Return the first quarter mentioned, checking Q4 down to Q1."""
        for quarter in _QUARTER_ORDER:
            if mentions_quarter(text, quarter):
                return quarter
        return None

    def detect_fiscal_year(
        self,
        text: str,
        published_at: datetime | None = None,
    ) -> int | None:
        """
        Resolve the fiscal year referenced by ``text``.

        Args:
            text: Headline and summary
            published_at: Article publish time, used when no year token exists

        Returns:
            Fiscal year, or None when there is neither a token nor a publish date
        """
        m = _FY_RE.search(text)
        if m:
            return int(m.group(1))

        m = _YEAR_RE.search(text)
        if m:
            return int(m.group(1))

        if published_at is not None:
            return published_at.year
        return None
