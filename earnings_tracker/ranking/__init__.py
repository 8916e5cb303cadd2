"""
Relevance ranking of news candidates for earnings backfill.

Components:
- RankingConfig: Window and score weights
- RankedCandidate: A filtered article with its score
- RelevanceRanker: Filter + additive scoring + stable sort
"""

from earnings_tracker.ranking.config import RankingConfig
from earnings_tracker.ranking.ranker import RelevanceRanker
from earnings_tracker.ranking.schemas import RankedCandidate

__all__ = ["RankedCandidate", "RankingConfig", "RelevanceRanker"]
