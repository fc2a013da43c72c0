"""
Stream Producer

Appends entries to a single Redis stream with XADD. Optional length
capping (exact or approximate MAXLEN) is fixed per producer and applied
on every write.

Usage:
    producer = StreamProducer(redis, "orders", max_len=10_000, approximate=True)
    entry_id = await producer.write({"order_id": "42", "status": "paid"})
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from redis.asyncio import Redis

from .entry import decode

logger = logging.getLogger(__name__)

AUTO_ID = "*"


class StreamProducer:
    """
    Writes entries to one stream.

    Args:
        redis:       Connected redis.asyncio client. Owned by the caller.
        stream:      Target stream name. Created by the first write.
        max_len:     Trim the stream to this many entries on each write.
        approximate: Use "MAXLEN ~" so Redis trims only whole macro nodes.
    """

    def __init__(
        self,
        redis: Redis,
        stream: str,
        *,
        max_len: int | None = None,
        approximate: bool = False,
    ) -> None:
        if max_len is not None and max_len < 1:
            raise ValueError(f"max_len must be a positive integer, got {max_len}")
        self._redis = redis
        self._stream = stream
        self._max_len = max_len
        self._approximate = approximate

    @property
    def stream(self) -> str:
        return self._stream

    async def write(self, fields: Mapping[str, Any], id: str | None = None) -> str:
        """
        Append one entry to the stream.

        Args:
            fields: Field/value pairs for the entry. Must not be empty.
            id:     Explicit entry ID. None, "" or "*" lets Redis assign one.

        Returns:
            The ID assigned to the entry.

        Raises:
            RedisError: Propagated unchanged from the client, e.g. when an
                        explicit ID is not greater than the stream's top ID.
        """
        entry_id = await self._redis.xadd(
            self._stream,
            dict(fields),
            id=id or AUTO_ID,
            maxlen=self._max_len,
            approximate=self._approximate,
        )
        entry_id = decode(entry_id)
        logger.debug("Appended %s to '%s'", entry_id, self._stream)
        return entry_id
