"""Backfill orchestrator configuration."""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackfillConfig(BaseSettings):
    """
    Configuration for the backfill orchestrator.

    All settings can be overridden via ``BACKFILL_*`` environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="BACKFILL_",
        case_sensitive=False,
        extra="ignore",
    )

    ttl_hours: float = Field(
        default=24.0,
        gt=0,
        description="Hours before a key may be retried when the news index is unchanged",
    )
    max_concurrent_keys: int = Field(
        default=8,
        ge=1,
        le=256,
        description="Upper bound on keys backfilled at once by request_many",
    )

    @property
    def ttl(self) -> timedelta:
        return timedelta(hours=self.ttl_hours)
