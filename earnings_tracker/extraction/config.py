"""Configuration for the earnings fact extractor.

Uses Pydantic settings for environment-based configuration,
following the same pattern as the other subsystem configs.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExtractionConfig(BaseSettings):
    """
    Confidence constants and heuristics for the Fact Extractor.

    All settings can be overridden via environment variables with EXTRACT_ prefix.
    Example: EXTRACT_EPS_BONUS=0.12

    Every bonus is non-negative, so an extra corroborating signal can never
    lower the final confidence.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXTRACT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Verdict classification
    verdict_base_confidence: float = Field(
        default=0.70,
        ge=0.0,
        le=1.0,
        description="Confidence when the winning verdict set has one matching pattern.",
    )
    verdict_step: float = Field(
        default=0.05,
        ge=0.0,
        le=0.5,
        description="Added per extra matching pattern in the winning set.",
    )
    verdict_ceiling: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Upper bound of the classification confidence.",
    )
    unknown_verdict_confidence: float = Field(
        default=0.30,
        ge=0.0,
        le=1.0,
        description="Starting confidence when no verdict could be determined.",
    )

    # Corroboration bonuses
    eps_bonus: float = Field(default=0.10, ge=0.0, le=1.0)
    revenue_bonus: float = Field(default=0.05, ge=0.0, le=1.0)
    earnings_tag_bonus: float = Field(default=0.05, ge=0.0, le=1.0)
    confirmed_bonus: float = Field(default=0.05, ge=0.0, le=1.0)
    max_confidence: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Cap on the final composed confidence.",
    )

    # Revenue magnitude heuristic for figures quoted without an M/B suffix:
    # values above the threshold are read as millions, otherwise billions.
    revenue_millions_threshold: float = Field(default=100.0, gt=0.0)

    @model_validator(mode="after")
    def check_ceilings(self) -> "ExtractionConfig":
        if self.verdict_base_confidence > self.verdict_ceiling:
            raise ValueError("verdict_base_confidence must not exceed verdict_ceiling")
        return self
