"""Relevance ranker configuration.

Controls the trailing window and the additive score weights used to order
candidate articles for a backfill key. All settings can be overridden via
``RANKING_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RankingConfig(BaseSettings):
    """Configuration for the relevance ranker."""

    model_config = SettingsConfigDict(
        env_prefix="RANKING_",
        case_sensitive=False,
        extra="ignore",
    )

    # Hard filter
    window_months: int = Field(
        default=18,
        ge=1,
        le=120,
        description="Articles older than this many months are excluded",
    )

    # Soft score weights
    earnings_tag_weight: int = Field(default=50, ge=0)
    high_impact_earnings_headline_weight: int = Field(default=30, ge=0)
    confirmed_weight: int = Field(default=20, ge=0)
    quarter_in_title_weight: int = Field(default=40, ge=0)
    quarter_in_summary_weight: int = Field(default=20, ge=0)
    beat_miss_weight: int = Field(default=25, ge=0)
    eps_weight: int = Field(default=15, ge=0)
    revenue_weight: int = Field(default=10, ge=0)

    # Recency decay; only the tightest matching bucket applies
    recency_week_weight: int = Field(default=20, ge=0, description="Published < 7 days ago")
    recency_month_weight: int = Field(default=10, ge=0, description="Published < 30 days ago")
    recency_quarter_weight: int = Field(default=5, ge=0, description="Published < 90 days ago")
