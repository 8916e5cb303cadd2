"""
News item schema supplied by the corpus owner.

The backfill core only reads these objects; it never mutates the corpus.
Field names follow the upstream feed (``published_at``,
``classification.summary_15``) so raw JSON can be validated directly.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class Impact(str, Enum):
    """Classifier-assigned market impact."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class RumorLevel(str, Enum):
    """How well-sourced the story is."""

    CONFIRMED = "Confirmed"
    LIKELY = "Likely"
    RUMOR = "Rumor"


class NewsTags(BaseModel):
    """Boolean topic flags attached by the upstream tagger."""

    earnings: bool = False
    is_macro: bool = False
    fed: bool = False
    sec: bool = False
    social: bool = False


class NewsClassification(BaseModel):
    """Upstream classifier output for a news item."""

    impact: Impact = Impact.LOW
    rumor_level: RumorLevel = RumorLevel.RUMOR
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    sentiment: str | None = None
    summary_15: str = Field(
        default="",
        description="Short classifier summary; used as summary text when none is given",
    )


class NewsItem(BaseModel):
    """
    A single article in the caller-supplied news corpus.

    ``summary_text`` falls back to the classifier's ``summary_15`` when the
    feed does not carry a separate summary.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    published_at: datetime
    tickers: list[str] = Field(default_factory=list)
    title: str = ""
    summary_text: str = ""
    tags: NewsTags = Field(default_factory=NewsTags)
    classification: NewsClassification = Field(default_factory=NewsClassification)

    @field_validator("published_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("tickers")
    @classmethod
    def normalize_tickers(cls, v: list[str]) -> list[str]:
        """Upper-case tickers and strip cashtag prefixes."""
        return [t.strip().lstrip("$").upper() for t in v if t and t.strip()]

    @property
    def summary(self) -> str:
        """Summary text, falling back to the classifier summary."""
        return self.summary_text or self.classification.summary_15

    @property
    def is_confirmed(self) -> bool:
        return self.classification.rumor_level == RumorLevel.CONFIRMED

    def mentions(self, ticker: str) -> bool:
        """Check whether the item references ``ticker``."""
        return ticker.strip().lstrip("$").upper() in self.tickers


_CORPUS_ADAPTER = TypeAdapter(list[NewsItem])


def parse_corpus(raw: str | bytes) -> list[NewsItem]:
    """
    Validate a JSON array of news items.

    Args:
        raw: JSON text

    Returns:
        Validated NewsItem list, in input order

    Raises:
        pydantic.ValidationError: If any item is malformed
    """
    return _CORPUS_ADAPTER.validate_python(json.loads(raw))


def load_corpus(path: str | Path) -> list[NewsItem]:
    """Read and validate a JSON corpus file."""
    return parse_corpus(Path(path).read_text(encoding="utf-8"))
