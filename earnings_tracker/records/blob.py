"""
Durable blob store adapters.

The record store and the backfill orchestrator mirror their in-memory maps
into a key/value store as serialized JSON strings. Callers treat read
failures as "empty" and write failures as logged-and-ignored; these adapters
only move strings.
"""

from abc import ABC, abstractmethod

import redis.asyncio as redis

from earnings_tracker.config.settings import get_settings


class BlobStore(ABC):
    """Interface for the external string key/value store."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the blob stored under ``key``, or None if absent."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous blob."""


class InMemoryBlobStore(BlobStore):
    """
    Process-local blob store.

    Used for tests and for running without Redis; contents are lost
    when the process exits.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value


class RedisBlobStore(BlobStore):
    """
    Redis-backed blob store using plain GET/SET.

    Usage:
        blobs = RedisBlobStore()
        await blobs.set("earnings_history", "{}")
        raw = await blobs.get("earnings_history")
        await blobs.close()
    """

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        """
        Args:
            redis_client: Existing client to reuse. When omitted, a client is
                created from ``Settings.redis_url``.
        """
        if redis_client is None:
            settings = get_settings()
            redis_client = redis.from_url(
                str(settings.redis_url),
                encoding="utf-8",
                decode_responses=True,
            )
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        await self._redis.set(key, value)

    async def close(self) -> None:
        """Close the underlying Redis connection."""
        await self._redis.aclose()
