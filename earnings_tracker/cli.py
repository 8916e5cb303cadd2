"""
Command-line interface for earnings-tracker.

Operates on the records and backfill attempts persisted in Redis.

Usage:
    earnings-tracker backfill NVDA 2025 Q3 --corpus news.json
    earnings-tracker history NVDA --year 2025
    earnings-tracker prune --years 3
    earnings-tracker ingest-calendar calendar.json
"""

import asyncio

import click

from earnings_tracker.config.settings import get_settings
from earnings_tracker.observability.logging import bind_context, get_logger, setup_logging
from earnings_tracker.observability.metrics import get_metrics

QUARTER_CHOICE = click.Choice(["Q1", "Q2", "Q3", "Q4"], case_sensitive=False)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Earnings Tracker - Reconcile quarterly earnings records from news."""
    setup_logging("DEBUG" if debug else None)


@main.command()
@click.argument("ticker")
@click.argument("fiscal_year", type=int)
@click.argument("quarter", type=QUARTER_CHOICE)
@click.option(
    "--corpus",
    "corpus_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON array of news items",
)
@click.option("--index-updated", is_flag=True, help="Mark the news index as updated first")
@click.option("--metrics/--no-metrics", default=False, help="Enable metrics server")
def backfill(
    ticker: str,
    fiscal_year: int,
    quarter: str,
    corpus_path: str,
    index_updated: bool,
    metrics: bool,
) -> None:
    """Backfill one quarter's earnings record from a news corpus.

    Example:
        earnings-tracker backfill NVDA 2025 Q3 --corpus news.json
        earnings-tracker backfill NVDA 2025 Q3 --corpus news.json --index-updated
    """
    from earnings_tracker.backfill.orchestrator import BackfillOrchestrator
    from earnings_tracker.news.schemas import load_corpus
    from earnings_tracker.records.blob import RedisBlobStore
    from earnings_tracker.records.store import RecordStore

    bind_context(ticker=ticker.upper(), fiscal_year=fiscal_year, quarter=quarter.upper())
    logger = get_logger(__name__)

    corpus = load_corpus(corpus_path)
    logger.info("Loaded news corpus", articles=len(corpus))

    async def run():
        if metrics:
            get_metrics().start_server()

        blobs = RedisBlobStore()
        store = RecordStore(blob_store=blobs)
        orchestrator = BackfillOrchestrator(store, blob_store=blobs)
        try:
            await store.hydrate()
            await orchestrator.hydrate()

            if index_updated:
                orchestrator.mark_news_index_updated()

            if not orchestrator.should_attempt(ticker, fiscal_year, quarter.upper()):
                click.echo("Backfill not needed (real data present or recently attempted)")
                return

            applied = await orchestrator.request_backfill(
                ticker, fiscal_year, quarter.upper(), corpus
            )
            record = store.get(ticker, fiscal_year, quarter.upper())

            if applied and record is not None:
                click.echo(f"\nBackfilled {record.key}")
                _echo_record(record)
            else:
                click.echo(f"\nNo record applied for {ticker.upper()} {quarter.upper()} {fiscal_year}")
        finally:
            await store.flush()
            await orchestrator.flush()
            await blobs.close()

    asyncio.run(run())


@main.command()
@click.argument("ticker")
@click.option("--year", "fiscal_year", default=None, type=int, help="Restrict to one fiscal year")
def history(ticker: str, fiscal_year: int | None) -> None:
    """Show stored earnings records for a ticker, newest first."""
    from earnings_tracker.records.blob import RedisBlobStore
    from earnings_tracker.records.store import RecordStore

    async def run():
        blobs = RedisBlobStore()
        try:
            store = RecordStore(blob_store=blobs)
            await store.hydrate()
            records = store.list_for_ticker(ticker, fiscal_year)
        finally:
            await blobs.close()

        if not records:
            click.echo(f"No earnings records for {ticker.upper()}")
            return

        click.echo(f"\n{ticker.upper()}: {len(records)} records")
        click.echo("=" * 60)
        for record in records:
            _echo_record(record)

    asyncio.run(run())


@main.command()
@click.option("--years", default=None, type=int, help="Fiscal years to keep (default from settings)")
@click.option("--dry-run", is_flag=True, help="Show count without deleting")
def prune(years: int | None, dry_run: bool) -> None:
    """Remove records older than the retention window.

    Example:
        earnings-tracker prune --years 2
        earnings-tracker prune --dry-run
    """
    from earnings_tracker.records.blob import RedisBlobStore
    from earnings_tracker.records.store import RecordStore

    years_to_keep = years if years is not None else get_settings().retention_years

    async def run():
        blobs = RedisBlobStore()
        try:
            store = RecordStore(blob_store=blobs)
            await store.hydrate()

            if dry_run:
                stale = store.count_prunable(years_to_keep)
                click.echo(f"\nDry run - would remove {stale} of {store.count()} records")
                click.echo("\nRun without --dry-run to actually remove.")
                return

            removed = store.prune(years_to_keep)
            await store.flush()
            click.echo(f"\nRemoved {removed} records older than {years_to_keep} fiscal years")
            click.echo(f"Remaining: {store.count()}")
        finally:
            await blobs.close()

    asyncio.run(run())


@main.command("ingest-calendar")
@click.argument("calendar_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--fiscal-start-month", default=1, type=click.IntRange(1, 12),
              help="First month of the fiscal year")
def ingest_calendar_cmd(calendar_path: str, fiscal_start_month: int) -> None:
    """Load an earnings calendar JSON file as authoritative records."""
    from earnings_tracker.records.blob import RedisBlobStore
    from earnings_tracker.records.ingest import ingest_calendar, load_calendar
    from earnings_tracker.records.store import RecordStore

    items = load_calendar(calendar_path)

    async def run():
        blobs = RedisBlobStore()
        try:
            store = RecordStore(blob_store=blobs)
            await store.hydrate()
            applied = ingest_calendar(store, items, fiscal_start_month)
            await store.flush()
        finally:
            await blobs.close()

        click.echo(f"\nApplied {applied} of {len(items)} calendar items")

    asyncio.run(run())


def _echo_record(record) -> None:
    eps = f"{record.actual_eps:.2f}" if record.actual_eps is not None else "-"
    revenue = f"${record.revenue_usd / 1e9:.2f}B" if record.revenue_usd is not None else "-"
    click.echo(
        f"  {record.fiscal_year} {record.quarter.value}  "
        f"EPS {eps:>7}  Rev {revenue:>9}  {record.result.value:<7}  "
        f"{record.session.value}  {record.source.value} ({record.confidence:.2f})"
    )
