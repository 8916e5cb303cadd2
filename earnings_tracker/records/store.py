"""
Record Store - authoritative per-quarter earnings records.

Holds one EarningsRecord per (ticker, fiscal_year, quarter) and enforces the
confidence gate: a write is rejected when the stored record for the same key
has strictly higher confidence. Replaying any set of writes in any order
therefore converges to the highest-confidence write per key.

Every mutation is mirrored to the blob store as a single JSON document,
fire-and-forget. Persistence failures are logged and swallowed; the
in-memory map stays authoritative for the session.
"""

import asyncio
import json
import threading
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timezone

import structlog

from earnings_tracker.config.settings import get_settings
from earnings_tracker.observability.metrics import get_metrics
from earnings_tracker.records.blob import BlobStore
from earnings_tracker.records.schemas import (
    EarningsRecord,
    EarningsResult,
    Quarter,
    make_record_key,
)

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordStore:
    """
    In-memory map of reconciled earnings records with confidence-gated writes.

    Reads and writes are synchronous; the read-compare-write for a key runs
    under a lock so concurrent writers cannot interleave. Persistence is
    scheduled on the running event loop and never blocks the caller.

    Persistence is enabled only after ``hydrate()`` has loaded the existing
    blob, so an unhydrated store can never overwrite persisted history.

    Usage:
        store = RecordStore(blob_store=RedisBlobStore())
        await store.hydrate()

        store.upsert(record)
        store.get("NVDA", 2025, Quarter.Q3)

        await store.flush()
    """

    def __init__(
        self,
        blob_store: BlobStore | None = None,
        blob_key: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Args:
            blob_store: Durable store to mirror into (None = memory only)
            blob_key: Key of the records blob (default from settings)
            clock: Source of ``updated_at`` stamps
        """
        self._records: dict[str, EarningsRecord] = {}
        self._lock = threading.Lock()
        self._blob_store = blob_store
        self._blob_key = blob_key or get_settings().records_blob_key
        self._clock = clock or _utc_now
        self._hydrated = False
        self._dirty = False
        self._persist_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    @property
    def is_hydrated(self) -> bool:
        """Whether persisted records have been loaded."""
        return self._hydrated

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _apply(self, record: EarningsRecord) -> bool:
        """Confidence-gated replace. Caller must hold ``_lock``."""
        existing = self._records.get(record.key)
        if existing is not None and existing.confidence > record.confidence:
            return False
        self._records[record.key] = replace(record, updated_at=self._clock())
        return True

    def upsert(self, record: EarningsRecord) -> bool:
        """
        Insert or replace a record unless a higher-confidence one is stored.

        Equal confidence replaces, so re-applying the same write is a no-op
        in effect.

        Args:
            record: Incoming record

        Returns:
            True if the record was stored, False if rejected as stale
        """
        with self._lock:
            applied = self._apply(record)
            total = len(self._records)

        metrics = get_metrics()
        metrics.record_upsert(applied)

        if not applied:
            logger.debug(
                "Skipping lower confidence record",
                key=record.key,
                confidence=record.confidence,
            )
            return False

        metrics.records_stored.set(total)
        logger.info(
            "Saved earnings record",
            key=record.key,
            source=record.source.value,
            confidence=record.confidence,
        )
        self._schedule_persist()
        return True

    def bulk_upsert(self, records: Iterable[EarningsRecord]) -> int:
        """
        Apply the confidence gate to each record in turn.

        Args:
            records: Records to store (e.g. an initial authoritative load)

        Returns:
            Number of records that were applied
        """
        applied = 0
        rejected = 0
        with self._lock:
            for record in records:
                if self._apply(record):
                    applied += 1
                else:
                    rejected += 1
            total = len(self._records)

        metrics = get_metrics()
        if applied:
            metrics.record_upsert(True, count=applied)
        if rejected:
            metrics.record_upsert(False, count=rejected)
        metrics.records_stored.set(total)

        if applied:
            logger.info("Bulk saved earnings records", applied=applied, rejected=rejected)
            self._schedule_persist()
        return applied

    def update_result(
        self,
        ticker: str,
        fiscal_year: int,
        quarter: Quarter | str,
        result: EarningsResult,
        confidence: float,
    ) -> bool:
        """
        Replace only the verdict of an existing record.

        The same confidence gate applies: the update is rejected when the
        stored record is more confident than ``confidence``.

        Returns:
            True if the verdict was updated, False if the record is missing
            or the update is stale
        """
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"Invalid confidence {confidence}. Must be between 0 and 1.")

        key = make_record_key(ticker, fiscal_year, quarter)
        with self._lock:
            existing = self._records.get(key)
            if existing is None:
                logger.warning("Cannot update result: record not found", key=key)
                return False
            if existing.confidence > confidence:
                logger.debug("Skipping lower confidence update", key=key)
                get_metrics().record_upsert(False)
                return False
            self._records[key] = replace(
                existing,
                result=EarningsResult(result),
                confidence=confidence,
                updated_at=self._clock(),
            )

        get_metrics().record_upsert(True)
        logger.info("Updated earnings result", key=key, result=EarningsResult(result).value)
        self._schedule_persist()
        return True

    def prune(self, years_to_keep: int = 3, current_year: int | None = None) -> int:
        """
        Drop records older than the retention window.

        Removes every record with ``fiscal_year < current_year - years_to_keep``.

        Args:
            years_to_keep: Number of trailing fiscal years to retain
            current_year: Reference year (defaults to the clock's year)

        Returns:
            Number of records removed
        """
        cutoff = self._cutoff_year(years_to_keep, current_year)
        with self._lock:
            stale = [k for k, r in self._records.items() if r.fiscal_year < cutoff]
            for key in stale:
                del self._records[key]
            total = len(self._records)

        if stale:
            metrics = get_metrics()
            metrics.records_pruned.inc(len(stale))
            metrics.records_stored.set(total)
            logger.info("Cleared old earnings records", removed=len(stale), cutoff_year=cutoff)
            self._schedule_persist()
        return len(stale)

    def count_prunable(self, years_to_keep: int = 3, current_year: int | None = None) -> int:
        """Number of records ``prune`` would remove, without removing them."""
        cutoff = self._cutoff_year(years_to_keep, current_year)
        with self._lock:
            return sum(1 for r in self._records.values() if r.fiscal_year < cutoff)

    def _cutoff_year(self, years_to_keep: int, current_year: int | None) -> int:
        return (current_year or self._clock().year) - years_to_keep

    def clear(self) -> None:
        """Remove every record and persist the empty map."""
        with self._lock:
            self._records.clear()
        get_metrics().records_stored.set(0)
        logger.info("Cleared all earnings records")
        self._schedule_persist()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(
        self, ticker: str, fiscal_year: int, quarter: Quarter | str
    ) -> EarningsRecord | None:
        """Return a copy of the stored record for the key, or None."""
        key = make_record_key(ticker, fiscal_year, quarter)
        with self._lock:
            record = self._records.get(key)
        return replace(record) if record is not None else None

    def list_for_ticker(
        self, ticker: str, fiscal_year: int | None = None
    ) -> list[EarningsRecord]:
        """
        List a ticker's records, newest quarter first.

        Args:
            ticker: Ticker symbol (case-insensitive)
            fiscal_year: Restrict to one fiscal year

        Returns:
            Records sorted descending by (fiscal_year, quarter)
        """
        ticker = ticker.strip().upper()
        with self._lock:
            matches = [
                replace(r)
                for r in self._records.values()
                if r.ticker == ticker
                and (fiscal_year is None or r.fiscal_year == fiscal_year)
            ]
        matches.sort(key=lambda r: (r.fiscal_year, r.quarter.ordinal), reverse=True)
        return matches

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def hydrate(self) -> int:
        """
        Load persisted records from the blob store.

        Missing, unreadable or malformed blobs load as empty; malformed
        entries inside a valid blob are skipped. Persisted records merge
        under the confidence gate, with writes made before hydration
        winning ties.

        Returns:
            Number of persisted records that were loaded
        """
        loaded = 0
        if self._blob_store is not None:
            raw: str | None = None
            try:
                raw = await self._blob_store.get(self._blob_key)
            except Exception as e:
                logger.warning("Failed to load earnings records", error=str(e))
                get_metrics().record_persistence_error("records", "load")

            with self._lock:
                for record in self._decode(raw):
                    existing = self._records.get(record.key)
                    if existing is None or existing.confidence < record.confidence:
                        self._records[record.key] = record
                        loaded += 1
                total = len(self._records)
            get_metrics().records_stored.set(total)
            logger.info("Loaded earnings records from storage", count=loaded)

        self._hydrated = True
        if self._dirty:
            self._schedule_persist()
        return loaded

    def _decode(self, raw: str | None) -> list[EarningsRecord]:
        """Parse the records blob, tolerating corruption."""
        if not raw or not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in records blob, ignoring", error=str(e))
            return []
        if not isinstance(data, dict):
            logger.warning("Records blob is not an object, ignoring")
            return []

        records = []
        for key, entry in data.items():
            try:
                records.append(EarningsRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed earnings record", key=key, error=str(e))
        return records

    def _schedule_persist(self) -> None:
        """Queue a background write of the current map."""
        self._dirty = True
        if self._blob_store is None or not self._hydrated:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Called outside the event loop thread; flush() picks it up.
            return
        task = loop.create_task(self._persist())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self) -> None:
        async with self._persist_lock:
            if not self._dirty or self._blob_store is None:
                return
            try:
                with self._lock:
                    payload = json.dumps({k: r.to_dict() for k, r in self._records.items()})
                    self._dirty = False
                await self._blob_store.set(self._blob_key, payload)
            except Exception as e:
                self._dirty = True
                logger.warning("Failed to persist earnings records", error=str(e))
                get_metrics().record_persistence_error("records", "save")

    async def flush(self) -> None:
        """Wait for scheduled writes and persist any deferred changes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self._dirty and self._hydrated:
            await self._persist()
