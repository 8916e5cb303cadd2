"""Schema for per-key backfill attempt metadata."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class BackfillAttemptMetadata:
    """
    Outcome of the most recent backfill attempt for one record key.

    Attributes:
        last_attempt_at: When the attempt finished (UTC).
        news_index_version_at_attempt: News index version seen by the attempt.
        succeeded: Whether the attempt stored a record.
    """

    last_attempt_at: datetime
    news_index_version_at_attempt: int
    succeeded: bool

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "last_attempt_at": self.last_attempt_at.isoformat(),
            "news_index_version_at_attempt": self.news_index_version_at_attempt,
            "succeeded": self.succeeded,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BackfillAttemptMetadata":
        """Create from dictionary (e.g., parsed from the attempts blob)."""
        last_attempt_at = datetime.fromisoformat(data["last_attempt_at"])
        if last_attempt_at.tzinfo is None:
            last_attempt_at = last_attempt_at.replace(tzinfo=timezone.utc)
        return cls(
            last_attempt_at=last_attempt_at,
            news_index_version_at_attempt=int(data["news_index_version_at_attempt"]),
            succeeded=bool(data["succeeded"]),
        )
