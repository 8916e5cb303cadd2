"""Shared fixtures for fact extraction tests."""

import pytest

from earnings_tracker.extraction.config import ExtractionConfig
from earnings_tracker.extraction.extractor import FactExtractor
from earnings_tracker.extraction.periods import PeriodDetector


@pytest.fixture
def extraction_config():
    """Default extraction config."""
    return ExtractionConfig()


@pytest.fixture
def extractor(extraction_config):
    """FactExtractor with default config."""
    return FactExtractor(config=extraction_config)


@pytest.fixture
def detector():
    return PeriodDetector()


@pytest.fixture
def sample_headlines():
    """Headlines grouped by the verdict they should produce."""
    return {
        "beat": [
            "Acme Corp beats estimates with EPS of $1.42 on revenue of $3.1B",
            "Widget Inc topped estimates as revenue of $850 million grew 12%",
            "Globex earnings exceeded expectations; EPS came in at 2.10",
        ],
        "miss": [
            "Initech misses estimates, EPS of $0.31 below expectations",
            "Hooli fell short of expectations with revenue of 1.2 billion",
        ],
        "inline": [
            "Umbrella results in line with estimates, EPS was $0.95",
            "Stark earnings per share of $3.02 matched expectations",
        ],
    }
