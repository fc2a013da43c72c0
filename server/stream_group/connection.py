"""
Redis Connection

Owns a redis.asyncio client for callers that do not manage one
themselves. StreamConsumer and StreamProducer take the client, not the
URL, so several of them can share one connection pool.

Usage:
    async with RedisConnection("redis://localhost:6379/0") as conn:
        consumer = StreamConsumer(conn.redis, "workers", "worker-1", ["orders"])
        entries = await consumer.read()
"""
from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class StreamConnectionError(Exception):
    """Raised when the Redis connection cannot be opened or is not open."""


class RedisConnection:
    """Connection lifecycle around a single redis.asyncio client."""

    def __init__(self, redis_url: str, decode_responses: bool = False) -> None:
        self._redis_url = redis_url
        self._decode_responses = decode_responses
        self._redis: Redis | None = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the Redis connection and verify it with PING."""
        self._redis = Redis.from_url(self._redis_url, decode_responses=self._decode_responses)
        try:
            await self._redis.ping()
        except RedisError as exc:
            await self._redis.aclose()
            self._redis = None
            raise StreamConnectionError(f"Cannot connect to Redis: {exc}") from exc
        logger.info("Connected to Redis at %s", self._redis_url)

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Disconnected from Redis")

    async def __aenter__(self) -> RedisConnection:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    # ── Access ────────────────────────────────────────────────────────────────

    @property
    def redis(self) -> Redis:
        """The connected client."""
        if self._redis is None:
            raise StreamConnectionError("RedisConnection is not connected, call connect() first")
        return self._redis

    @property
    def connected(self) -> bool:
        return self._redis is not None
