"""Pattern-based earnings fact extraction from news headlines.

Turns a headline plus summary into an ExtractedFacts value: EPS, revenue,
a Beat/Miss/Inline verdict, the referenced fiscal period and a composed
confidence. The extractor holds no mutable state; identical input always
yields identical output.
"""

from __future__ import annotations

import re
from datetime import datetime

from earnings_tracker.extraction.config import ExtractionConfig
from earnings_tracker.extraction.patterns import (
    BEAT_PATTERNS,
    EARNINGS_KEYWORDS,
    EPS_PATTERNS,
    INLINE_PATTERNS,
    MISS_PATTERNS,
    REVENUE_PATTERNS,
)
from earnings_tracker.extraction.periods import PeriodDetector
from earnings_tracker.extraction.schemas import ExtractedFacts
from earnings_tracker.news.schemas import NewsItem, NewsTags, RumorLevel
from earnings_tracker.records.schemas import EarningsResult

_UNIT_MULTIPLIERS: dict[str, float] = {
    "b": 1_000_000_000,
    "bn": 1_000_000_000,
    "billion": 1_000_000_000,
    "m": 1_000_000,
    "mn": 1_000_000,
    "million": 1_000_000,
}


def is_earnings_related(text: str, tags: NewsTags | None = None) -> bool:
    """Gate: an earnings keyword in the text or an explicit earnings tag."""
    if tags is not None and tags.earnings:
        return True
    lower = text.lower()
    return any(keyword in lower for keyword in EARNINGS_KEYWORDS)


class FactExtractor:
    """
    Regex cascade extractor for earnings facts.

    Usage:
        extractor = FactExtractor()
        facts = extractor.extract(
            "Acme beats estimates with EPS of $1.42 on revenue of $3.1B", "",
        )
        facts.result      # EarningsResult.BEAT
        facts.revenue_usd # 3_100_000_000
    """

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        detector: PeriodDetector | None = None,
    ):
        self._config = config or ExtractionConfig()
        self._detector = detector or PeriodDetector()

    def extract_item(self, item: NewsItem) -> ExtractedFacts | None:
        """Extract facts from a corpus news item."""
        return self.extract(
            item.title,
            item.summary,
            item.tags,
            published_at=item.published_at,
            rumor_level=item.classification.rumor_level,
        )

    def extract(
        self,
        title: str,
        summary: str,
        tags: NewsTags | None = None,
        *,
        published_at: datetime | None = None,
        rumor_level: RumorLevel | None = None,
    ) -> ExtractedFacts | None:
        """
        Extract earnings facts from a headline and summary.

        Args:
            title: Article headline
            summary: Article summary text
            tags: Upstream topic tags (earnings flag adds confidence)
            published_at: Publish time, fallback for the fiscal year
            rumor_level: Upstream sourcing level (Confirmed adds confidence)

        Returns:
            ExtractedFacts, or None when the text is not earnings-related or
            carries neither a verdict nor a number
        """
        text = f"{title or ''} {summary or ''}".lower()

        if not is_earnings_related(text, tags):
            return None

        actual_eps = self._extract_eps(text)
        revenue_usd = self._extract_revenue(text)
        result, confidence = self._classify(text)

        if actual_eps is None and revenue_usd is None and result == EarningsResult.UNKNOWN:
            return None

        cfg = self._config
        if actual_eps is not None:
            confidence += cfg.eps_bonus
        if revenue_usd is not None:
            confidence += cfg.revenue_bonus
        if tags is not None and tags.earnings:
            confidence += cfg.earnings_tag_bonus
        if rumor_level == RumorLevel.CONFIRMED:
            confidence += cfg.confirmed_bonus
        confidence = round(min(confidence, cfg.max_confidence), 4)

        return ExtractedFacts(
            actual_eps=actual_eps,
            revenue_usd=revenue_usd,
            result=result,
            confidence=confidence,
            quarter=self._detector.detect_quarter(text),
            fiscal_year=self._detector.detect_fiscal_year(text, published_at),
        )

    @staticmethod
    def _parse_number(raw: str) -> float | None:
        try:
            return float(raw.replace(",", ""))
        except ValueError:
            return None

    def _extract_eps(self, text: str) -> float | None:
        """First matching EPS pattern wins."""
        for pattern in EPS_PATTERNS:
            m = pattern.search(text)
            if m:
                value = self._parse_number(m.group("value"))
                if value is not None:
                    return value
        return None

    def _extract_revenue(self, text: str) -> float | None:
        """
        First matching revenue pattern wins.

        With no M/B suffix the magnitude is guessed: values above
        ``revenue_millions_threshold`` are taken as millions, smaller values
        as billions. "revenue of 850" reads as $850M, "revenue of 3.1" as
        $3.1B. The guess is wrong for mid-size figures quoted in billions.
        """
        for pattern in REVENUE_PATTERNS:
            m = pattern.search(text)
            if not m:
                continue
            value = self._parse_number(m.group("value"))
            if value is None:
                continue

            unit = m.group("unit")
            if unit:
                return value * _UNIT_MULTIPLIERS[unit.lower()]
            if value > self._config.revenue_millions_threshold:
                return value * 1_000_000
            return value * 1_000_000_000
        return None

    def _classify(self, text: str) -> tuple[EarningsResult, float]:
        """
        Beat/Miss/Inline verdict by counting matching patterns per set.

        The set with the strictly highest count wins; ties and no matches
        give Unknown.
        """
        scores = {
            EarningsResult.BEAT: self._count(BEAT_PATTERNS, text),
            EarningsResult.MISS: self._count(MISS_PATTERNS, text),
            EarningsResult.INLINE: self._count(INLINE_PATTERNS, text),
        }
        best = max(scores.values())
        winners = [r for r, s in scores.items() if s == best]

        cfg = self._config
        if best == 0 or len(winners) > 1:
            return EarningsResult.UNKNOWN, cfg.unknown_verdict_confidence

        confidence = cfg.verdict_base_confidence + cfg.verdict_step * (best - 1)
        return winners[0], min(confidence, cfg.verdict_ceiling)

    @staticmethod
    def _count(patterns: tuple[re.Pattern[str], ...], text: str) -> int:
        return sum(1 for p in patterns if p.search(text))
