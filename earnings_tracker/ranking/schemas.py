"""Schema for ranked backfill candidates."""

from dataclasses import dataclass

from earnings_tracker.news.schemas import NewsItem


@dataclass(frozen=True)
class RankedCandidate:
    """
    A news item that passed the relevance filter, with its score.

    Attributes:
        item: The corpus news item.
        score: Sum of the soft relevance bonuses.
        quarter_in_title: Headline names the requested quarter.
        mentions_fiscal_year: Text carries the requested fiscal year token.
    """

    item: NewsItem
    score: int
    quarter_in_title: bool = False
    mentions_fiscal_year: bool = False
