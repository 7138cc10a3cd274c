"""Temporary blob storage for handing large payloads to the worker.

Payloads are stored before the worker is triggered, read once by the worker
and deleted after that read whatever the outcome.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "temp-images:"


class TempBlobStore:
    """Redis-backed key/value store with expiry."""

    def __init__(self, client: redis.Redis, ttl_seconds: int = 3600) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 3600) -> "TempBlobStore":
        return cls(redis.from_url(url), ttl_seconds=ttl_seconds)

    def put(self, payload: str, ttl_seconds: int | None = None) -> str:
        """Store ``payload`` under a fresh random key and return the key."""
        key = str(uuid.uuid4())
        self.client.set(KEY_PREFIX + key, payload, ex=ttl_seconds or self.ttl_seconds)
        logger.debug(f"Stored temp blob {key}")
        return key

    def get(self, key: str) -> str | None:
        value = self.client.get(KEY_PREFIX + key)
        if value is None:
            return None
        return value.decode("utf-8") if isinstance(value, bytes) else value

    def delete(self, key: str) -> None:
        self.client.delete(KEY_PREFIX + key)

    @contextmanager
    def consume(self, key: str) -> Iterator[str | None]:
        """Read a blob once; it is deleted on exit even if the caller raises."""
        try:
            yield self.get(key)
        finally:
            try:
                self.delete(key)
            except redis.RedisError as e:
                # Expiry removes the blob eventually
                logger.error(f"Failed to delete temp blob {key}: {e}")

    def close(self) -> None:
        self.client.close()
