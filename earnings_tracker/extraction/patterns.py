"""Ordered regex patterns for earnings fact extraction.

Each list is evaluated in priority order against lower-cased text and the
first match wins, so the order of entries is part of the extractor's
behaviour. Value patterns expose a ``value`` group and, for revenue, an
optional ``unit`` group.
"""

from __future__ import annotations

import re

# Reusable pattern fragments
_NUMBER = r"\$?(?P<value>\d[\d,]*(?:\.\d+)?)"
_UNIT = r"(?:\s*(?P<unit>billion|million|bn|mn|b|m)\b)?"
_ESTIMATES = r"(?:estimates?|expectations?)"

# Lower-case words that mark a text as earnings-related.
EARNINGS_KEYWORDS: tuple[str, ...] = ("earnings", "eps", "revenue", "results")


def _compile(patterns: list[str]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


EPS_PATTERNS = _compile([
    # "eps of $1.42", "eps came in at 1.42"
    rf"\beps\s+(?:of|at|was|came\s+in\s+at)\s+{_NUMBER}",
    # "reported eps $1.42"
    rf"\breported\s+eps\s+{_NUMBER}",
    # "earnings per share of $1.42"
    rf"\bearnings\s+per\s+share\s+(?:of|at|was)\s+{_NUMBER}",
    # "$1.42 per share"
    rf"{_NUMBER}\s+per\s+share",
])

REVENUE_PATTERNS = _compile([
    # "revenue of $3.1b", "sales came in at 850 million"
    rf"\b(?:revenue|sales)\s+(?:of|at|were|was|came\s+in\s+at)\s+{_NUMBER}{_UNIT}",
    # "reported revenue $3.1b"
    rf"\breported\s+(?:revenue|sales)\s+{_NUMBER}{_UNIT}",
    # "$3.1b in revenue"
    rf"{_NUMBER}{_UNIT}\s+in\s+(?:revenue|sales)",
])

BEAT_PATTERNS = _compile([
    rf"\bbeat\s+(?:wall\s+street|analyst|street|consensus)\s+{_ESTIMATES}",
    r"\bbeats?\s+estimates?",
    r"\bexceeded\s+expectations?",
    r"\btopped\s+estimates?",
    r"\bsurpassed\s+expectations?",
])

MISS_PATTERNS = _compile([
    rf"\bmiss(?:ed|es)?\s+(?:wall\s+street|analyst|street|consensus)\s+{_ESTIMATES}",
    r"\bmiss(?:ed|es)?\s+estimates?",
    rf"\bfell\s+short\s+of\s+{_ESTIMATES}",
    r"\bbelow\s+expectations?",
    r"\bdisappointed\s+(?:investors|analysts)",
])

INLINE_PATTERNS = _compile([
    rf"\b(?:in-line|inline|in\s+line)\s+with\s+{_ESTIMATES}",
    rf"\bmet\s+{_ESTIMATES}",
    rf"\bmatched\s+{_ESTIMATES}",
])
