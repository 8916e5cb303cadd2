"""
Reconciled earnings records.

Components:
- EarningsRecord: One record per (ticker, fiscal_year, quarter)
- RecordStore: Confidence-gated in-memory store mirrored to a blob store
- BlobStore / RedisBlobStore / InMemoryBlobStore: Durable blob adapters
- ingest_calendar: Authoritative earnings-calendar loader
"""

from earnings_tracker.records.blob import BlobStore, InMemoryBlobStore, RedisBlobStore
from earnings_tracker.records.ingest import (
    EarningsCalendarItem,
    calendar_item_to_record,
    ingest_calendar,
    load_calendar,
)
from earnings_tracker.records.schemas import (
    EarningsRecord,
    EarningsResult,
    Quarter,
    RecordSource,
    Session,
    make_record_key,
)
from earnings_tracker.records.store import RecordStore

__all__ = [
    "BlobStore",
    "EarningsCalendarItem",
    "EarningsRecord",
    "EarningsResult",
    "InMemoryBlobStore",
    "Quarter",
    "RecordSource",
    "RecordStore",
    "RedisBlobStore",
    "Session",
    "calendar_item_to_record",
    "ingest_calendar",
    "load_calendar",
    "make_record_key",
]
