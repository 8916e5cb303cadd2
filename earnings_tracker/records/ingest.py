"""
Authoritative earnings-calendar ingest.

Converts scheduled/reported earnings items from the market data feed into
``authoritative`` EarningsRecords and loads them through the record store's
confidence gate. Items that carry neither an EPS figure nor a verdict are
loaded as ``placeholder`` records at zero confidence, marking the quarter as
a backfill target without claiming any facts.
"""

import json
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from earnings_tracker.records.schemas import (
    EarningsRecord,
    EarningsResult,
    Quarter,
    RecordSource,
    Session,
)
from earnings_tracker.records.store import RecordStore

AUTHORITATIVE_CONFIDENCE = 1.0
PLACEHOLDER_CONFIDENCE = 0.0

_VERDICT_MAP: dict[str, EarningsResult] = {
    "beat": EarningsResult.BEAT,
    "miss": EarningsResult.MISS,
    "inline": EarningsResult.INLINE,
}


class EarningsCalendarItem(BaseModel):
    """
    One entry of the earnings calendar feed.

    ``actual_rev`` is quoted in billions of USD.
    """

    ticker: str = Field(..., min_length=1)
    scheduled_at: datetime
    report_time: Literal["BMO", "AMC", "Intra"] | None = None
    actual_eps: float | None = None
    cons_eps: float | None = None
    actual_rev: float | None = None
    cons_rev: float | None = None
    verdict: Literal["Beat", "Miss", "Inline"] | None = None
    article_id: str | None = None

    @field_validator("scheduled_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


def to_fiscal_period(when: datetime, fiscal_start_month: int = 1) -> tuple[int, Quarter]:
    """
    Map a calendar date to (fiscal_year, quarter).

    The fiscal year is labelled by the calendar year in which it starts.

    Args:
        when: Date to classify
        fiscal_start_month: First month of the fiscal year (1-12)

    Returns:
        (fiscal_year, quarter) tuple
    """
    if not 1 <= fiscal_start_month <= 12:
        raise ValueError(f"Invalid fiscal_start_month {fiscal_start_month}. Must be 1-12.")
    offset = (when.month - fiscal_start_month + 12) % 12
    quarter = Quarter.from_ordinal(offset // 3 + 1)
    fiscal_year = when.year if when.month >= fiscal_start_month else when.year - 1
    return fiscal_year, quarter


def guess_session(when: datetime) -> Session:
    """Reports before noon are treated as pre-market, otherwise after close."""
    return Session.BMO if when.hour < 12 else Session.AMC


def calendar_item_to_record(
    item: EarningsCalendarItem,
    fiscal_start_month: int = 1,
) -> EarningsRecord:
    """
    Convert a calendar item to an EarningsRecord.

    Args:
        item: Feed entry
        fiscal_start_month: Company fiscal year start month

    Returns:
        An authoritative record, or a placeholder when the item carries no facts
    """
    fiscal_year, quarter = to_fiscal_period(item.scheduled_at, fiscal_start_month)

    if item.report_time in ("BMO", "AMC"):
        session = Session(item.report_time)
    else:
        session = guess_session(item.scheduled_at)

    result = _VERDICT_MAP.get((item.verdict or "").lower(), EarningsResult.UNKNOWN)
    revenue_usd = item.actual_rev * 1_000_000_000 if item.actual_rev is not None else None
    has_facts = item.actual_eps is not None or result != EarningsResult.UNKNOWN

    return EarningsRecord(
        ticker=item.ticker,
        fiscal_year=fiscal_year,
        quarter=quarter,
        actual_eps=item.actual_eps,
        revenue_usd=revenue_usd,
        session=session,
        result=result,
        source=RecordSource.AUTHORITATIVE if has_facts else RecordSource.PLACEHOLDER,
        origin_article_id=item.article_id,
        confidence=AUTHORITATIVE_CONFIDENCE if has_facts else PLACEHOLDER_CONFIDENCE,
    )


def ingest_calendar(
    store: RecordStore,
    items: Iterable[EarningsCalendarItem],
    fiscal_start_month: int = 1,
) -> int:
    """
    Bulk-load calendar items into the store.

    Returns:
        Number of records applied
    """
    records = [calendar_item_to_record(i, fiscal_start_month) for i in items]
    return store.bulk_upsert(records)


_CALENDAR_ADAPTER = TypeAdapter(list[EarningsCalendarItem])


def load_calendar(path: str | Path) -> list[EarningsCalendarItem]:
    """Read and validate a JSON array of calendar items."""
    raw = Path(path).read_text(encoding="utf-8")
    return _CALENDAR_ADAPTER.validate_python(json.loads(raw))
