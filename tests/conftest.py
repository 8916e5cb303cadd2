"""Pytest fixtures for earnings-tracker tests."""

from datetime import datetime, timedelta, timezone

import pytest

from earnings_tracker.config.settings import Settings
from earnings_tracker.news.schemas import (
    Impact,
    NewsClassification,
    NewsItem,
    NewsTags,
    RumorLevel,
)

NOW = datetime(2025, 11, 20, 14, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for TTL and recency tests."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        redis_url="redis://localhost:6379/1",  # Use DB 1 for tests
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_news_item(
    item_id: str = "news_1",
    title: str = "",
    summary: str = "",
    tickers: list[str] | None = None,
    published_at: datetime | None = None,
    earnings_tag: bool = False,
    impact: Impact = Impact.LOW,
    rumor_level: RumorLevel = RumorLevel.RUMOR,
) -> NewsItem:
    """Build a NewsItem with sensible defaults."""
    return NewsItem(
        id=item_id,
        published_at=published_at or NOW - timedelta(days=2),
        tickers=tickers if tickers is not None else ["ACME"],
        title=title,
        summary_text=summary,
        tags=NewsTags(earnings=earnings_tag),
        classification=NewsClassification(impact=impact, rumor_level=rumor_level),
    )


@pytest.fixture
def acme_beat_item() -> NewsItem:
    """Well-sourced earnings headline for ACME Q3."""
    return make_news_item(
        item_id="acme_q3_beat",
        title="Acme Corp Q3 earnings: beats estimates with EPS of $1.42 on revenue of $3.1B",
        summary="Acme reported third quarter results ahead of consensus.",
        earnings_tag=True,
        impact=Impact.HIGH,
        rumor_level=RumorLevel.CONFIRMED,
    )


@pytest.fixture
def acme_generic_item() -> NewsItem:
    """Generic mention of ACME with no earnings facts."""
    return make_news_item(
        item_id="acme_generic",
        title="Chip stocks roundup: Acme among movers",
        summary="Shares of several suppliers moved after industry results.",
        published_at=NOW - timedelta(days=120),
    )


@pytest.fixture
def news_factory():
    """Factory fixture for NewsItem objects."""
    return make_news_item
