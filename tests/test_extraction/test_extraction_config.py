"""Tests for ExtractionConfig defaults and environment overrides."""

import pytest
from pydantic import ValidationError

from earnings_tracker.extraction.config import ExtractionConfig


class TestExtractionConfig:
    def test_defaults(self):
        config = ExtractionConfig()
        assert config.verdict_base_confidence == 0.70
        assert config.verdict_ceiling == 0.85
        assert config.unknown_verdict_confidence == 0.30
        assert config.max_confidence == 0.95
        assert config.revenue_millions_threshold == 100.0

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("EXTRACT_EPS_BONUS", "0.2")
        monkeypatch.setenv("EXTRACT_MAX_CONFIDENCE", "0.9")
        config = ExtractionConfig()
        assert config.eps_bonus == 0.2
        assert config.max_confidence == 0.9

    def test_base_above_ceiling_rejected(self):
        with pytest.raises(ValidationError):
            ExtractionConfig(verdict_base_confidence=0.9, verdict_ceiling=0.8)

    def test_bonus_out_of_range(self):
        with pytest.raises(ValidationError):
            ExtractionConfig(eps_bonus=1.5)
