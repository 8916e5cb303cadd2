"""Set of record keys with a backfill currently running."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class InFlightSet:
    """
    Thread-safe set with atomic add-if-absent.

    Usage:
        inflight = InFlightSet()
        with inflight.claim("NVDA_2025_Q3") as acquired:
            if not acquired:
                return False
            ...
    """

    def __init__(self) -> None:
        self._keys: set[str] = set()
        self._lock = threading.Lock()

    def try_add(self, key: str) -> bool:
        """Add ``key`` unless present. Returns True if this call added it."""
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def discard(self, key: str) -> None:
        with self._lock:
            self._keys.discard(key)

    @contextmanager
    def claim(self, key: str) -> Iterator[bool]:
        """
        Claim ``key`` for the duration of the block.

        Yields True when the claim succeeded. A successful claim is released
        on exit, including when the block raises.
        """
        acquired = self.try_add(key)
        try:
            yield acquired
        finally:
            if acquired:
                self.discard(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
