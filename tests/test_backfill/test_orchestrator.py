"""Tests for BackfillOrchestrator eligibility, de-duplication and persistence."""

import asyncio
import json
import threading
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from earnings_tracker.backfill.config import BackfillConfig
from earnings_tracker.backfill.orchestrator import BackfillOrchestrator
from earnings_tracker.extraction.extractor import FactExtractor
from earnings_tracker.news.schemas import RumorLevel
from earnings_tracker.ranking.ranker import RelevanceRanker
from earnings_tracker.records.blob import BlobStore, InMemoryBlobStore
from earnings_tracker.records.schemas import (
    EarningsRecord,
    EarningsResult,
    Quarter,
    RecordSource,
    Session,
)
from earnings_tracker.records.store import RecordStore


class SlowCountingRanker(RelevanceRanker):
    """Ranker that counts cascade executions and holds the worker thread."""

    def __init__(self, delay: float = 0.05):
        super().__init__()
        self.calls = 0
        self._delay = delay
        self._lock = threading.Lock()

    def rank(self, *args, **kwargs):
        with self._lock:
            self.calls += 1
        time.sleep(self._delay)
        return super().rank(*args, **kwargs)


class FailingExtractor(FactExtractor):
    """Extractor that raises for selected article ids."""

    def __init__(self, fail_ids: set[str]):
        super().__init__()
        self._fail_ids = fail_ids

    def extract_item(self, item):
        if item.id in self._fail_ids:
            raise RuntimeError(f"parser blew up on {item.id}")
        return super().extract_item(item)


@pytest.fixture
def store(clock):
    return RecordStore(clock=clock)


@pytest.fixture
def orchestrator(store, clock):
    return BackfillOrchestrator(store, clock=clock)


@pytest.fixture
def corpus(acme_beat_item, acme_generic_item):
    return [acme_generic_item, acme_beat_item]


@pytest.fixture
def noise_corpus(news_factory):
    return [news_factory(item_id="noise", title="Acme earnings call scheduled")]


# ── Eligibility ──────────────────────────────────────────


class TestShouldAttempt:
    def test_never_attempted(self, orchestrator):
        assert orchestrator.should_attempt("ACME", 2025, Quarter.Q3) is True

    def test_real_data_blocks_regardless_of_version(self, orchestrator, store):
        store.upsert(EarningsRecord(
            ticker="ACME",
            fiscal_year=2025,
            quarter=Quarter.Q3,
            actual_eps=1.42,
            source=RecordSource.AUTHORITATIVE,
            confidence=1.0,
        ))
        assert orchestrator.should_attempt("ACME", 2025, Quarter.Q3) is False
        orchestrator.mark_news_index_updated()
        assert orchestrator.should_attempt("ACME", 2025, Quarter.Q3) is False

    def test_placeholder_does_not_block(self, orchestrator, store):
        store.upsert(EarningsRecord(ticker="ACME", fiscal_year=2025, quarter=Quarter.Q3))
        assert orchestrator.should_attempt("ACME", 2025, Quarter.Q3) is True

    def test_verdict_without_eps_does_not_block(self, orchestrator, store):
        store.upsert(EarningsRecord(
            ticker="ACME",
            fiscal_year=2025,
            quarter=Quarter.Q3,
            result=EarningsResult.BEAT,
            source=RecordSource.TEXT_EXTRACTED,
            confidence=0.7,
        ))
        assert orchestrator.should_attempt("ACME", 2025, Quarter.Q3) is True

    @pytest.mark.asyncio
    async def test_ttl_gating(self, orchestrator, clock, noise_corpus):
        assert await orchestrator.request_backfill("ACME", 2025, "Q3", noise_corpus) is False
        assert orchestrator.should_attempt("ACME", 2025, "Q3") is False

        clock.advance(hours=23)
        assert orchestrator.should_attempt("ACME", 2025, "Q3") is False

        clock.advance(hours=2)
        assert orchestrator.should_attempt("ACME", 2025, "Q3") is True

    @pytest.mark.asyncio
    async def test_configurable_ttl(self, store, clock, noise_corpus):
        orchestrator = BackfillOrchestrator(store, clock=clock, config=BackfillConfig(ttl_hours=1))
        await orchestrator.request_backfill("ACME", 2025, "Q3", noise_corpus)
        clock.advance(minutes=61)
        assert orchestrator.should_attempt("ACME", 2025, "Q3") is True

    @pytest.mark.asyncio
    async def test_index_version_override(self, orchestrator, noise_corpus):
        await orchestrator.request_backfill("ACME", 2025, "Q3", noise_corpus)
        assert orchestrator.should_attempt("ACME", 2025, "Q3") is False

        assert orchestrator.mark_news_index_updated() == 1
        assert orchestrator.news_index_version == 1
        assert orchestrator.should_attempt("ACME", 2025, "Q3") is True

    @pytest.mark.asyncio
    async def test_attempt_after_update_is_gated_again(self, orchestrator, noise_corpus):
        orchestrator.mark_news_index_updated()
        await orchestrator.request_backfill("ACME", 2025, "Q3", noise_corpus)

        attempt = orchestrator.get_attempt("ACME", 2025, "Q3")
        assert attempt.news_index_version_at_attempt == 1
        assert orchestrator.should_attempt("ACME", 2025, "Q3") is False


# ── Backfill ─────────────────────────────────────────────


class TestRequestBackfill:
    @pytest.mark.asyncio
    async def test_success_writes_extracted_record(self, orchestrator, store, corpus, clock):
        assert await orchestrator.request_backfill("acme", 2025, "Q3", corpus) is True

        record = store.get("ACME", 2025, Quarter.Q3)
        assert record.source == RecordSource.TEXT_EXTRACTED
        assert record.session == Session.TBA
        assert record.result == EarningsResult.BEAT
        assert record.actual_eps == 1.42
        assert record.revenue_usd == pytest.approx(3_100_000_000)
        assert record.origin_article_id == "acme_q3_beat"
        assert 0.0 < record.confidence <= 0.95

        attempt = orchestrator.get_attempt("ACME", 2025, "Q3")
        assert attempt.succeeded is True
        assert attempt.last_attempt_at == clock.now

    @pytest.mark.asyncio
    async def test_real_data_stops_further_attempts(self, orchestrator, corpus):
        await orchestrator.request_backfill("ACME", 2025, "Q3", corpus)
        orchestrator.mark_news_index_updated()
        assert orchestrator.should_attempt("ACME", 2025, "Q3") is False

    @pytest.mark.asyncio
    async def test_no_usable_fact_records_failure(self, orchestrator, store, noise_corpus):
        assert await orchestrator.request_backfill("ACME", 2025, "Q3", noise_corpus) is False
        assert store.get("ACME", 2025, "Q3") is None
        assert orchestrator.get_attempt("ACME", 2025, "Q3").succeeded is False

    @pytest.mark.asyncio
    async def test_empty_corpus(self, orchestrator):
        assert await orchestrator.request_backfill("ACME", 2025, "Q3", []) is False
        assert orchestrator.get_attempt("ACME", 2025, "Q3").succeeded is False

    @pytest.mark.asyncio
    async def test_ineligible_skips_cascade(self, store, clock, corpus):
        ranker = MagicMock(wraps=RelevanceRanker())
        orchestrator = BackfillOrchestrator(store, ranker=ranker, clock=clock)
        store.upsert(EarningsRecord(
            ticker="ACME",
            fiscal_year=2025,
            quarter=Quarter.Q3,
            actual_eps=1.0,
            source=RecordSource.AUTHORITATIVE,
            confidence=1.0,
        ))

        assert await orchestrator.request_backfill("ACME", 2025, "Q3", corpus) is False
        ranker.rank.assert_not_called()
        assert orchestrator.get_attempt("ACME", 2025, "Q3") is None

    @pytest.mark.asyncio
    async def test_rejected_upsert_returns_false(self, orchestrator, store, corpus):
        store.upsert(EarningsRecord(
            ticker="ACME",
            fiscal_year=2025,
            quarter=Quarter.Q3,
            result=EarningsResult.MISS,
            source=RecordSource.AUTHORITATIVE,
            confidence=1.0,
        ))

        assert await orchestrator.request_backfill("ACME", 2025, "Q3", corpus) is False
        assert store.get("ACME", 2025, "Q3").result == EarningsResult.MISS
        # Facts were found, so the attempt itself succeeded
        assert orchestrator.get_attempt("ACME", 2025, "Q3").succeeded is True

    @pytest.mark.asyncio
    async def test_candidate_errors_are_skipped(self, store, clock, acme_beat_item):
        # Same score as the good item, and earlier in the corpus
        broken = acme_beat_item.model_copy(update={"id": "broken"})
        orchestrator = BackfillOrchestrator(
            store, extractor=FailingExtractor({"broken"}), clock=clock,
        )

        assert await orchestrator.request_backfill("ACME", 2025, "Q3", [broken, acme_beat_item]) is True
        assert store.get("ACME", 2025, "Q3").origin_article_id == "acme_q3_beat"

    @pytest.mark.asyncio
    async def test_all_candidates_failing(self, store, clock, acme_beat_item):
        orchestrator = BackfillOrchestrator(
            store, extractor=FailingExtractor({"acme_q3_beat"}), clock=clock,
        )
        assert await orchestrator.request_backfill("ACME", 2025, "Q3", [acme_beat_item]) is False
        assert orchestrator.get_attempt("ACME", 2025, "Q3").succeeded is False
        assert not orchestrator.is_in_flight("ACME", 2025, "Q3")

    @pytest.mark.asyncio
    async def test_ranker_failure_releases_key(self, store, clock, corpus):
        ranker = MagicMock(spec=RelevanceRanker)
        ranker.rank.side_effect = RuntimeError("ranker bug")
        orchestrator = BackfillOrchestrator(store, ranker=ranker, clock=clock)

        assert await orchestrator.request_backfill("ACME", 2025, "Q3", corpus) is False
        assert not orchestrator.is_in_flight("ACME", 2025, "Q3")
        assert orchestrator.get_attempt("ACME", 2025, "Q3").succeeded is False

    @pytest.mark.asyncio
    async def test_store_failure_still_records_attempt(self, store, clock, corpus, monkeypatch):
        monkeypatch.setattr(store, "upsert", MagicMock(side_effect=RuntimeError("store bug")))
        orchestrator = BackfillOrchestrator(store, clock=clock)

        assert await orchestrator.request_backfill("ACME", 2025, "Q3", corpus) is False
        assert not orchestrator.is_in_flight("ACME", 2025, "Q3")
        attempt = orchestrator.get_attempt("ACME", 2025, "Q3")
        assert attempt.succeeded is True
        assert attempt.last_attempt_at == clock.now
        assert orchestrator.should_attempt("ACME", 2025, "Q3") is False

    @pytest.mark.asyncio
    async def test_first_usable_candidate_wins(self, store, clock, news_factory):
        top = news_factory(
            item_id="top",
            title="Acme Q3 earnings: EPS of $0.90",
            earnings_tag=True,
        )
        lower = news_factory(
            item_id="lower",
            title="Acme beats estimates, topped estimates with EPS of $1.00 on revenue of $2B",
            rumor_level=RumorLevel.CONFIRMED,
        )
        orchestrator = BackfillOrchestrator(store, clock=clock)

        assert await orchestrator.request_backfill("ACME", 2025, "Q3", [lower, top]) is True
        assert store.get("ACME", 2025, "Q3").origin_article_id == "top"


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_at_most_one_in_flight(self, store, clock, corpus):
        ranker = SlowCountingRanker()
        orchestrator = BackfillOrchestrator(store, ranker=ranker, clock=clock)

        results = await asyncio.gather(
            orchestrator.request_backfill("ACME", 2025, "Q3", corpus),
            orchestrator.request_backfill("ACME", 2025, "Q3", corpus),
        )

        assert sorted(results) == [False, True]
        assert ranker.calls == 1
        assert not orchestrator.is_in_flight("ACME", 2025, "Q3")

    @pytest.mark.asyncio
    async def test_key_is_in_flight_during_cascade(self, store, clock, corpus):
        orchestrator = BackfillOrchestrator(store, ranker=SlowCountingRanker(), clock=clock)

        task = asyncio.create_task(orchestrator.request_backfill("ACME", 2025, "Q3", corpus))
        await asyncio.sleep(0.01)
        assert orchestrator.is_in_flight("ACME", 2025, "Q3")
        await task
        assert not orchestrator.is_in_flight("ACME", 2025, "Q3")

    @pytest.mark.asyncio
    async def test_distinct_keys_all_run(self, store, clock, corpus):
        ranker = SlowCountingRanker()
        orchestrator = BackfillOrchestrator(store, ranker=ranker, clock=clock)

        results = await orchestrator.request_many(
            [("ACME", 2025, "Q3"), ("ACME", 2025, "Q2"), ("acme", 2025, Quarter.Q3)],
            corpus,
        )

        assert set(results) == {"ACME_2025_Q3", "ACME_2025_Q2"}
        assert ranker.calls == 2
        assert results["ACME_2025_Q3"] is True


# ── Persistence ──────────────────────────────────────────


class TestPersistence:
    @pytest.mark.asyncio
    async def test_round_trip(self, store, clock, noise_corpus):
        blobs = InMemoryBlobStore()
        first = BackfillOrchestrator(store, blob_store=blobs, clock=clock, blob_key="attempts")
        await first.hydrate()

        await first.request_backfill("ACME", 2025, "Q3", noise_corpus)
        first.mark_news_index_updated()
        first.mark_news_index_updated()
        await first.flush()

        data = json.loads(await blobs.get("attempts"))
        assert data["news_index_version"] == 2
        assert data["attempts"]["ACME_2025_Q3"]["succeeded"] is False

        second = BackfillOrchestrator(store, blob_store=blobs, clock=clock, blob_key="attempts")
        assert await second.hydrate() == 1
        assert second.news_index_version == 2
        assert second.get_attempt("ACME", 2025, "Q3") == first.get_attempt("ACME", 2025, "Q3")

    @pytest.mark.asyncio
    async def test_hydrate_corrupt_blob(self, store, clock):
        blobs = InMemoryBlobStore({"attempts": "[1, 2"})
        orchestrator = BackfillOrchestrator(store, blob_store=blobs, clock=clock, blob_key="attempts")
        assert await orchestrator.hydrate() == 0
        assert orchestrator.news_index_version == 0

    @pytest.mark.asyncio
    async def test_hydrate_skips_malformed_attempts(self, store, clock):
        blobs = InMemoryBlobStore({
            "attempts": json.dumps({
                "news_index_version": 4,
                "attempts": {
                    "ACME_2025_Q3": {
                        "last_attempt_at": "2025-11-20T10:00:00+00:00",
                        "news_index_version_at_attempt": 4,
                        "succeeded": False,
                    },
                    "ACME_2025_Q2": {"last_attempt_at": "yesterday"},
                },
            }),
        })
        orchestrator = BackfillOrchestrator(store, blob_store=blobs, clock=clock, blob_key="attempts")
        assert await orchestrator.hydrate() == 1
        assert orchestrator.news_index_version == 4
        assert orchestrator.should_attempt("ACME", 2025, "Q3") is False
        assert orchestrator.should_attempt("ACME", 2025, "Q2") is True

    @pytest.mark.asyncio
    async def test_version_never_moves_backwards(self, store, clock):
        blobs = InMemoryBlobStore({"attempts": json.dumps({"news_index_version": 1, "attempts": {}})})
        orchestrator = BackfillOrchestrator(store, blob_store=blobs, clock=clock, blob_key="attempts")
        for _ in range(3):
            orchestrator.mark_news_index_updated()
        await orchestrator.hydrate()
        await orchestrator.flush()
        assert orchestrator.news_index_version == 3

    @pytest.mark.asyncio
    async def test_persistence_failure_is_swallowed(self, store, clock, noise_corpus):
        blobs = AsyncMock(spec=BlobStore)
        blobs.get.side_effect = ConnectionError("redis down")
        blobs.set.side_effect = ConnectionError("redis down")
        orchestrator = BackfillOrchestrator(store, blob_store=blobs, clock=clock, blob_key="attempts")

        await orchestrator.hydrate()
        assert await orchestrator.request_backfill("ACME", 2025, "Q3", noise_corpus) is False
        await orchestrator.flush()

        blobs.set.assert_awaited()
        assert orchestrator.get_attempt("ACME", 2025, "Q3") is not None
