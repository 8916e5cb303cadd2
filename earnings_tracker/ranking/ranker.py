"""
Relevance ranking of news articles for an earnings backfill key.

Selects which articles in the corpus are worth parsing for a given
(ticker, fiscal_year, quarter) and orders them best-first. Articles that
fail the hard filter are excluded entirely; the rest are ordered by an
additive score, with ties kept in corpus order.
"""

import calendar
import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from earnings_tracker.extraction.patterns import EARNINGS_KEYWORDS
from earnings_tracker.extraction.periods import mentions_quarter, mentions_year
from earnings_tracker.news.schemas import Impact, NewsItem
from earnings_tracker.ranking.config import RankingConfig
from earnings_tracker.ranking.schemas import RankedCandidate
from earnings_tracker.records.schemas import Quarter

logger = logging.getLogger(__name__)


def subtract_months(when: datetime, months: int) -> datetime:
    """Shift ``when`` back by whole calendar months, clamping the day."""
    total = when.year * 12 + (when.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(when.day, calendar.monthrange(year, month)[1])
    return when.replace(year=year, month=month, day=day)


class RelevanceRanker:
    """
    Stateless ranker for backfill candidates.

    Usage:
        ranker = RelevanceRanker()
        candidates = ranker.rank(corpus, "NVDA", 2025, Quarter.Q3)
        for candidate in candidates:
            print(candidate.item.title, candidate.score)
    """

    def __init__(self, config: RankingConfig | None = None):
        self._config = config or RankingConfig()

    def rank(
        self,
        corpus: Sequence[NewsItem],
        ticker: str,
        fiscal_year: int,
        quarter: Quarter | str,
        *,
        now: datetime | None = None,
    ) -> list[RankedCandidate]:
        """
        Filter and order candidate articles.

        Args:
            corpus: Caller-supplied news items (not mutated)
            ticker: Ticker symbol
            fiscal_year: Requested fiscal year
            quarter: Requested quarter
            now: Reference time for the window and recency (default: UTC now)

        Returns:
            Candidates sorted by descending score; ties keep corpus order
        """
        quarter = Quarter(quarter)
        now = now or datetime.now(timezone.utc)
        window_start = subtract_months(now, self._config.window_months)

        candidates = []
        for item in corpus:
            if not item.mentions(ticker):
                continue
            if item.published_at < window_start:
                continue

            title = item.title.lower()
            summary = item.summary.lower()
            text = f"{title} {summary}"

            has_keyword = any(k in text for k in EARNINGS_KEYWORDS)
            in_title = mentions_quarter(title, quarter)
            in_summary = mentions_quarter(summary, quarter)
            if not (has_keyword or in_title or in_summary):
                continue

            candidates.append(RankedCandidate(
                item=item,
                score=self._score(item, title, text, in_title, in_summary, now),
                quarter_in_title=in_title,
                mentions_fiscal_year=mentions_year(text, fiscal_year),
            ))

        # sorted() is stable, so equal scores keep corpus order
        ranked = sorted(candidates, key=lambda c: c.score, reverse=True)

        logger.debug(
            f"Ranked {len(ranked)}/{len(corpus)} articles for "
            f"{ticker.upper()} {quarter.value} {fiscal_year}"
        )
        return ranked

    def _score(
        self,
        item: NewsItem,
        title: str,
        text: str,
        quarter_in_title: bool,
        quarter_in_summary: bool,
        now: datetime,
    ) -> int:
        cfg = self._config
        score = 0

        if item.tags.earnings:
            score += cfg.earnings_tag_weight
        if item.classification.impact == Impact.HIGH and "earnings" in title:
            score += cfg.high_impact_earnings_headline_weight
        if item.is_confirmed:
            score += cfg.confirmed_weight

        if quarter_in_title:
            score += cfg.quarter_in_title_weight
        elif quarter_in_summary:
            score += cfg.quarter_in_summary_weight

        if "beat" in text or "miss" in text:
            score += cfg.beat_miss_weight
        if "eps" in text:
            score += cfg.eps_weight
        if "revenue" in text:
            score += cfg.revenue_weight

        age = now - item.published_at
        if age < timedelta(days=7):
            score += cfg.recency_week_weight
        elif age < timedelta(days=30):
            score += cfg.recency_month_weight
        elif age < timedelta(days=90):
            score += cfg.recency_quarter_weight

        return score
