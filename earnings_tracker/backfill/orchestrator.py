"""
Backfill Orchestrator - reconciles missing earnings records from news text.

Decides whether a (ticker, fiscal_year, quarter) key is worth another
attempt, runs the ranking + extraction cascade over a caller-supplied
corpus, and writes the first usable fact through the record store's
confidence gate.

Attempt metadata and the news index version are mirrored to the blob store
the same way the record store mirrors its records: one JSON document,
written fire-and-forget after each mutation.
"""

import asyncio
import json
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone

import structlog

from earnings_tracker.backfill.config import BackfillConfig
from earnings_tracker.backfill.inflight import InFlightSet
from earnings_tracker.backfill.schemas import BackfillAttemptMetadata
from earnings_tracker.config.settings import get_settings
from earnings_tracker.extraction.extractor import FactExtractor
from earnings_tracker.extraction.schemas import ExtractedFacts
from earnings_tracker.news.schemas import NewsItem
from earnings_tracker.observability.metrics import get_metrics
from earnings_tracker.ranking.ranker import RelevanceRanker
from earnings_tracker.records.blob import BlobStore
from earnings_tracker.records.schemas import (
    EarningsRecord,
    Quarter,
    RecordSource,
    Session,
    make_record_key,
)
from earnings_tracker.records.store import RecordStore

logger = structlog.get_logger(__name__)

BackfillKey = tuple[str, int, Quarter | str]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BackfillOrchestrator:
    """
    Gatekeeper and runner for per-key earnings backfills.

    At most one backfill runs per key at a time; calls for different keys
    proceed in parallel. The cascade itself is CPU-bound and runs in a
    worker thread so it never blocks the event loop.

    Usage:
        store = RecordStore(blob_store=blobs)
        orchestrator = BackfillOrchestrator(store, blob_store=blobs)
        await store.hydrate()
        await orchestrator.hydrate()

        applied = await orchestrator.request_backfill("NVDA", 2025, "Q3", corpus)

        # New articles arrived; TTL-gated keys become eligible again
        orchestrator.mark_news_index_updated()
    """

    def __init__(
        self,
        store: RecordStore,
        blob_store: BlobStore | None = None,
        ranker: RelevanceRanker | None = None,
        extractor: FactExtractor | None = None,
        config: BackfillConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        blob_key: str | None = None,
    ) -> None:
        """
        Args:
            store: Record store that receives extracted records
            blob_store: Durable store for attempt metadata (None = memory only)
            ranker: Candidate ranker
            extractor: Per-article fact extractor
            config: Backfill configuration
            clock: Source of the current time, for TTL decisions
            blob_key: Key of the attempts blob (default from settings)
        """
        self._store = store
        self._blob_store = blob_store
        self._ranker = ranker or RelevanceRanker()
        self._extractor = extractor or FactExtractor()
        self._config = config or BackfillConfig()
        self._clock = clock or _utc_now
        self._blob_key = blob_key or get_settings().attempts_blob_key

        self._attempts: dict[str, BackfillAttemptMetadata] = {}
        self._news_index_version = 0
        self._lock = threading.Lock()
        self._in_flight = InFlightSet()

        self._hydrated = False
        self._dirty = False
        self._persist_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def news_index_version(self) -> int:
        with self._lock:
            return self._news_index_version

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    def get_attempt(
        self, ticker: str, fiscal_year: int, quarter: Quarter | str
    ) -> BackfillAttemptMetadata | None:
        """Return metadata for the last attempt on this key, if any."""
        key = make_record_key(ticker, fiscal_year, quarter)
        with self._lock:
            return self._attempts.get(key)

    def is_in_flight(self, ticker: str, fiscal_year: int, quarter: Quarter | str) -> bool:
        return make_record_key(ticker, fiscal_year, quarter) in self._in_flight

    def mark_news_index_updated(self) -> int:
        """
        Signal that the news corpus changed materially.

        Keys gated by the TTL become eligible again because their recorded
        version is now behind the current one.

        Returns:
            The new news index version
        """
        with self._lock:
            self._news_index_version += 1
            version = self._news_index_version

        get_metrics().news_index_version.set(version)
        logger.info("News index updated", version=version)
        self._schedule_persist()
        return version

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def should_attempt(self, ticker: str, fiscal_year: int, quarter: Quarter | str) -> bool:
        """
        Decide whether a backfill is warranted for this key.

        Returns False when the store already holds real data (non-placeholder
        with EPS), or when the last attempt is younger than the TTL and no
        newer news has been indexed since. Keys never attempted are eligible.
        """
        existing = self._store.get(ticker, fiscal_year, quarter)
        if existing is not None and existing.has_real_data:
            return False

        key = make_record_key(ticker, fiscal_year, quarter)
        with self._lock:
            attempt = self._attempts.get(key)
            current_version = self._news_index_version

        if attempt is None:
            return True

        elapsed = self._clock() - attempt.last_attempt_at
        if (
            elapsed < self._config.ttl
            and attempt.news_index_version_at_attempt >= current_version
        ):
            return False

        return True

    # ------------------------------------------------------------------
    # Backfill
    # ------------------------------------------------------------------

    async def request_backfill(
        self,
        ticker: str,
        fiscal_year: int,
        quarter: Quarter | str,
        corpus: Sequence[NewsItem],
    ) -> bool:
        """
        Try to reconcile one key from the news corpus.

        Args:
            ticker: Ticker symbol
            fiscal_year: Fiscal year of the record
            quarter: Fiscal quarter of the record
            corpus: Caller-supplied news items (read only)

        Returns:
            True if an extracted record was applied to the store. False for
            ineligible keys, duplicate in-flight requests, attempts that found
            nothing usable, and extracted records the store rejected.
        """
        quarter = Quarter(quarter)
        key = make_record_key(ticker, fiscal_year, quarter)
        log = logger.bind(key=key)
        metrics = get_metrics()

        if not self.should_attempt(ticker, fiscal_year, quarter):
            log.debug("Backfill not warranted")
            metrics.record_backfill("skipped")
            return False

        with self._in_flight.claim(key) as acquired:
            if not acquired:
                log.debug("Backfill already in flight")
                metrics.record_backfill("duplicate")
                return False

            version = self.news_index_version
            started = time.perf_counter()
            facts: tuple[ExtractedFacts, NewsItem] | None = None
            try:
                facts = await asyncio.to_thread(
                    self._run_cascade, ticker, fiscal_year, quarter, corpus
                )
            except Exception:
                log.exception("Backfill cascade failed")
            latency = time.perf_counter() - started

            applied = False
            try:
                if facts is not None:
                    found, article = facts
                    record = EarningsRecord(
                        ticker=ticker,
                        fiscal_year=fiscal_year,
                        quarter=quarter,
                        actual_eps=found.actual_eps,
                        revenue_usd=found.revenue_usd,
                        session=Session.TBA,
                        result=found.result,
                        source=RecordSource.TEXT_EXTRACTED,
                        origin_article_id=article.id,
                        confidence=found.confidence,
                    )
                    applied = self._store.upsert(record)
                    log.info(
                        "Backfilled earnings from news",
                        article_id=article.id,
                        result=found.result.value,
                        confidence=found.confidence,
                        applied=applied,
                    )
                else:
                    log.info("No usable earnings facts found in news")
            except Exception:
                log.exception("Failed to apply backfilled record")
            finally:
                self._record_attempt(key, version, succeeded=facts is not None)
                metrics.record_backfill(
                    "succeeded" if facts is not None else "failed", latency=latency
                )
            return applied

    def _run_cascade(
        self,
        ticker: str,
        fiscal_year: int,
        quarter: Quarter,
        corpus: Sequence[NewsItem],
    ) -> tuple[ExtractedFacts, NewsItem] | None:
        """Rank candidates and return the first usable extraction."""
        metrics = get_metrics()
        candidates = self._ranker.rank(corpus, ticker, fiscal_year, quarter, now=self._clock())

        for candidate in candidates:
            try:
                facts = self._extractor.extract_item(candidate.item)
            except Exception as e:
                logger.warning(
                    "Extraction failed for candidate",
                    article_id=candidate.item.id,
                    error=str(e),
                )
                metrics.record_extraction("error")
                continue

            if facts is None:
                metrics.record_extraction("not_earnings")
                continue
            if not facts.is_usable:
                metrics.record_extraction("unusable")
                continue

            metrics.record_extraction("usable")
            return facts, candidate.item

        return None

    def _record_attempt(self, key: str, version: int, succeeded: bool) -> None:
        attempt = BackfillAttemptMetadata(
            last_attempt_at=self._clock(),
            news_index_version_at_attempt=version,
            succeeded=succeeded,
        )
        with self._lock:
            self._attempts[key] = attempt
        self._schedule_persist()

    async def request_many(
        self,
        keys: Iterable[BackfillKey],
        corpus: Sequence[NewsItem],
    ) -> dict[str, bool]:
        """
        Backfill many keys concurrently.

        Concurrency is bounded by ``BackfillConfig.max_concurrent_keys``.
        Repeated keys in ``keys`` collapse onto one attempt.

        Returns:
            Mapping of record key to ``request_backfill`` result
        """
        semaphore = asyncio.Semaphore(self._config.max_concurrent_keys)
        unique: dict[str, tuple[str, int, Quarter]] = {}
        for ticker, fiscal_year, quarter in keys:
            unique.setdefault(
                make_record_key(ticker, fiscal_year, quarter),
                (ticker, fiscal_year, Quarter(quarter)),
            )

        async def run(ticker: str, fiscal_year: int, quarter: Quarter) -> bool:
            async with semaphore:
                return await self.request_backfill(ticker, fiscal_year, quarter, corpus)

        results = await asyncio.gather(*(run(*args) for args in unique.values()))
        return dict(zip(unique.keys(), results))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def hydrate(self) -> int:
        """
        Load attempt metadata and the news index version from the blob store.

        Unreadable or malformed data loads as empty. Attempts recorded in
        this process before hydration are kept over persisted ones, and the
        news index version never moves backwards.

        Returns:
            Number of persisted attempts that were loaded
        """
        loaded = 0
        if self._blob_store is not None:
            raw: str | None = None
            try:
                raw = await self._blob_store.get(self._blob_key)
            except Exception as e:
                logger.warning("Failed to load backfill attempts", error=str(e))
                get_metrics().record_persistence_error("attempts", "load")

            version, attempts = self._decode(raw)
            with self._lock:
                self._news_index_version = max(self._news_index_version, version)
                for key, attempt in attempts.items():
                    if key not in self._attempts:
                        self._attempts[key] = attempt
                        loaded += 1
                current = self._news_index_version

            get_metrics().news_index_version.set(current)
            logger.info("Loaded backfill attempts from storage", count=loaded, version=current)

        self._hydrated = True
        if self._dirty:
            self._schedule_persist()
        return loaded

    def _decode(self, raw: str | None) -> tuple[int, dict[str, BackfillAttemptMetadata]]:
        """Parse the attempts blob, tolerating corruption."""
        if not raw or not raw.strip():
            return 0, {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in attempts blob, ignoring", error=str(e))
            return 0, {}
        if not isinstance(data, dict):
            logger.warning("Attempts blob is not an object, ignoring")
            return 0, {}

        version = data.get("news_index_version", 0)
        if not isinstance(version, int) or version < 0:
            version = 0

        attempts = {}
        entries = data.get("attempts", {})
        if isinstance(entries, dict):
            for key, entry in entries.items():
                try:
                    attempts[key] = BackfillAttemptMetadata.from_dict(entry)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("Skipping malformed backfill attempt", key=key, error=str(e))
        return version, attempts

    def _schedule_persist(self) -> None:
        self._dirty = True
        if self._blob_store is None or not self._hydrated:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
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
                    payload = json.dumps({
                        "news_index_version": self._news_index_version,
                        "attempts": {k: a.to_dict() for k, a in self._attempts.items()},
                    })
                    self._dirty = False
                await self._blob_store.set(self._blob_key, payload)
            except Exception as e:
                self._dirty = True
                logger.warning("Failed to persist backfill attempts", error=str(e))
                get_metrics().record_persistence_error("attempts", "save")

    async def flush(self) -> None:
        """Wait for scheduled writes and persist any deferred changes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self._dirty and self._hydrated:
            await self._persist()
