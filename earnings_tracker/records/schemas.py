"""Schema definitions for reconciled earnings records.

Provides the identity enums (Quarter), the fact enums (Session,
EarningsResult, RecordSource) and the EarningsRecord dataclass that the
record store owns. One record exists per (ticker, fiscal_year, quarter).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class Quarter(str, Enum):
    """Fiscal quarter."""

    Q1 = "Q1"
    Q2 = "Q2"
    Q3 = "Q3"
    Q4 = "Q4"

    @property
    def ordinal(self) -> int:
        """1-based position within the fiscal year."""
        return int(self.value[1])

    @classmethod
    def from_ordinal(cls, ordinal: int) -> "Quarter":
        if not 1 <= ordinal <= 4:
            raise ValueError(f"Invalid quarter ordinal {ordinal}. Must be 1-4.")
        return cls(f"Q{ordinal}")


class Session(str, Enum):
    """When the report lands relative to the trading day."""

    BMO = "BMO"  # before market open
    AMC = "AMC"  # after market close
    TBA = "TBA"


class EarningsResult(str, Enum):
    """Verdict against consensus."""

    BEAT = "Beat"
    MISS = "Miss"
    INLINE = "Inline"
    UNKNOWN = "Unknown"


class RecordSource(str, Enum):
    """Provenance / trust tier of a record."""

    AUTHORITATIVE = "authoritative"
    TEXT_EXTRACTED = "text_extracted"
    PLACEHOLDER = "placeholder"


def make_record_key(ticker: str, fiscal_year: int, quarter: Quarter | str) -> str:
    """
    Build the identity key for a record.

    Format: ``{TICKER}_{fiscal_year}_{Qn}``, e.g. ``NVDA_2025_Q3``.
    """
    q = Quarter(quarter)
    return f"{ticker.strip().upper()}_{fiscal_year}_{q.value}"


@dataclass
class EarningsRecord:
    """
    Best-known earnings facts for one (ticker, fiscal_year, quarter).

    Attributes:
        ticker: Upper-cased ticker symbol.
        fiscal_year: Fiscal year of the report.
        quarter: Fiscal quarter.
        actual_eps: Reported EPS, if known.
        revenue_usd: Reported revenue in USD, if known.
        session: Report timing.
        result: Beat/Miss/Inline verdict, Unknown when not determined.
        source: Provenance tier.
        origin_article_id: News item the facts were extracted from.
        confidence: Trust score in [0, 1]; gates overwrites.
        updated_at: Last time the store accepted this record.
    """

    ticker: str
    fiscal_year: int
    quarter: Quarter
    actual_eps: float | None = None
    revenue_usd: float | None = None
    session: Session = Session.TBA
    result: EarningsResult = EarningsResult.UNKNOWN
    source: RecordSource = RecordSource.PLACEHOLDER
    origin_article_id: str | None = None
    confidence: float = 0.0
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        self.ticker = self.ticker.strip().upper()
        if not self.ticker:
            raise ValueError("ticker must be non-empty")
        self.quarter = Quarter(self.quarter)
        self.session = Session(self.session)
        self.result = EarningsResult(self.result)
        self.source = RecordSource(self.source)
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError(
                f"Invalid confidence {self.confidence}. Must be between 0 and 1."
            )

    @property
    def key(self) -> str:
        return make_record_key(self.ticker, self.fiscal_year, self.quarter)

    @property
    def has_real_data(self) -> bool:
        """Non-placeholder record carrying an actual EPS figure."""
        return self.source != RecordSource.PLACEHOLDER and self.actual_eps is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert record to dictionary for JSON serialization."""
        return {
            "ticker": self.ticker,
            "fiscal_year": self.fiscal_year,
            "quarter": self.quarter.value,
            "actual_eps": self.actual_eps,
            "revenue_usd": self.revenue_usd,
            "session": self.session.value,
            "result": self.result.value,
            "source": self.source.value,
            "origin_article_id": self.origin_article_id,
            "confidence": self.confidence,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EarningsRecord":
        """
        Create EarningsRecord from dictionary.

        Args:
            data: Dictionary with record fields.

        Returns:
            EarningsRecord instance.

        Raises:
            KeyError: If an identity field is missing.
            TypeError: If data is not a dict or a field has the wrong type.
            ValueError: If an enum or confidence value is invalid.
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected an object, got {type(data).__name__}")
        if not isinstance(data["ticker"], str):
            raise TypeError("ticker must be a string")

        for field_name in ("actual_eps", "revenue_usd", "confidence"):
            value = data.get(field_name)
            if value is not None and (
                isinstance(value, bool) or not isinstance(value, (int, float))
            ):
                raise TypeError(f"{field_name} must be a number, got {type(value).__name__}")

        updated_at = data.get("updated_at")
        if isinstance(updated_at, str):
            updated_at = datetime.fromisoformat(updated_at)
        elif updated_at is None:
            updated_at = _utc_now()
        else:
            raise TypeError(f"updated_at must be an ISO string, got {type(updated_at).__name__}")

        return cls(
            ticker=data["ticker"],
            fiscal_year=int(data["fiscal_year"]),
            quarter=Quarter(data["quarter"]),
            actual_eps=data.get("actual_eps"),
            revenue_usd=data.get("revenue_usd"),
            session=Session(data.get("session", Session.TBA.value)),
            result=EarningsResult(data.get("result", EarningsResult.UNKNOWN.value)),
            source=RecordSource(data.get("source", RecordSource.PLACEHOLDER.value)),
            origin_article_id=data.get("origin_article_id"),
            confidence=float(data.get("confidence", 0.0)),
            updated_at=updated_at,
        )
