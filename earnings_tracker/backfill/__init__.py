"""
Backfill orchestration for missing or low-confidence earnings records.

Components:
- BackfillConfig: TTL and concurrency settings
- BackfillAttemptMetadata: Last attempt per record key
- InFlightSet: Atomic add-if-absent set of running keys
- BackfillOrchestrator: Eligibility cascade and ranking/extraction runner
"""

from earnings_tracker.backfill.config import BackfillConfig
from earnings_tracker.backfill.inflight import InFlightSet
from earnings_tracker.backfill.orchestrator import BackfillOrchestrator
from earnings_tracker.backfill.schemas import BackfillAttemptMetadata

__all__ = [
    "BackfillAttemptMetadata",
    "BackfillConfig",
    "BackfillOrchestrator",
    "InFlightSet",
]
