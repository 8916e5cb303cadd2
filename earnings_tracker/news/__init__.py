"""
News corpus contract.

Components:
- NewsItem: A single caller-supplied article
- NewsTags / NewsClassification: Upstream tagger and classifier output
- load_corpus / parse_corpus: JSON corpus readers
"""

from earnings_tracker.news.schemas import (
    Impact,
    NewsClassification,
    NewsItem,
    NewsTags,
    RumorLevel,
    load_corpus,
    parse_corpus,
)

__all__ = [
    "Impact",
    "NewsClassification",
    "NewsItem",
    "NewsTags",
    "RumorLevel",
    "load_corpus",
    "parse_corpus",
]
