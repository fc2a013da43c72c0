"""
Stream Consumer

Reads entries from one or more Redis streams as a named member of a
consumer group. Each read() issues a single XREADGROUP across every
subscribed stream and keeps one cursor per stream:

  - replay: starts at "0-0" and walks the entries already delivered to
    this consumer but never acknowledged (survives process restarts,
    since the pending list lives in Redis)
  - live:   ">", entries not yet delivered to anyone in the group

A stream switches from replay to live the first time its replay read
comes back empty, and never switches back.

Usage:
    consumer = StreamConsumer(
        redis,
        group="workers",
        consumer="worker-1",
        streams=["orders", "payments"],
        block=5.0,
    )

    while True:
        entries = await consumer.read()
        for entry in entries:
            handle(entry)
        await consumer.ack(*entries)

One StreamConsumer per worker task: the cursor map is unsynchronised, so
concurrent read()/ack() calls on the same instance are not supported.
Run several instances with distinct consumer names to scale out.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from redis.asyncio import Redis

from .cursor import Cursor, Replay
from .entry import Entry, decode

logger = logging.getLogger(__name__)


def _block_ms(block: float) -> int | None:
    """Translate a block duration in seconds into the XREADGROUP BLOCK argument."""
    if block < 0:
        return None
    if block == 0:
        return 0
    # a positive sub-millisecond wait must not turn into BLOCK 0 (forever)
    return max(1, int(block * 1000))


def _reply_sections(reply: Any) -> Iterable[tuple[Any, Sequence[Any]]]:
    """
    Yield (stream, entries) pairs from an XREADGROUP reply.

    RESP2 replies are a list of [stream, entries] pairs. RESP3 replies
    (protocol=3) are a mapping of stream to a list of entry lists.
    """
    if isinstance(reply, Mapping):
        for stream, chunks in reply.items():
            yield stream, [entry for chunk in chunks or [] for entry in chunk]
        return
    for stream, entries in reply:
        yield stream, entries or []


class StreamConsumer:
    """
    A consumer-group member reading from a fixed, ordered set of streams.

    Args:
        redis:    Connected redis.asyncio client. Owned by the caller.
        group:    Consumer group name. The group must already exist on every stream.
        consumer: This consumer's name within the group.
        streams:  Stream names, in the order entries should be batched.
        count:    Optional cap on entries returned per stream per round.
        block:    Seconds to wait for live entries. Negative returns
                  immediately, zero blocks until data arrives.
        noack:    Pass NOACK so delivered entries skip the pending list.
    """

    def __init__(
        self,
        redis: Redis,
        group: str,
        consumer: str,
        streams: Sequence[str],
        *,
        count: int | None = None,
        block: float = 0.0,
        noack: bool = False,
    ) -> None:
        if not streams:
            raise ValueError("streams must be a non-empty list of stream names")
        if len(set(streams)) != len(streams):
            raise ValueError(f"streams must not contain duplicates: {list(streams)}")
        if count is not None and count < 1:
            raise ValueError(f"count must be a positive integer, got {count}")

        self._redis = redis
        self._group = group
        self._name = consumer
        self._streams = list(streams)
        self._count = count
        self._block = block
        self._block_ms = _block_ms(block)
        self._noack = noack
        self._cursors: dict[str, Cursor] = {stream: Replay() for stream in self._streams}

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def group(self) -> str:
        return self._group

    @property
    def name(self) -> str:
        return self._name

    @property
    def streams(self) -> list[str]:
        """The subscribed stream names, in subscription order."""
        return list(self._streams)

    @property
    def cursors(self) -> dict[str, Cursor]:
        """Snapshot of the current cursor for each stream."""
        return dict(self._cursors)

    # ── Read ──────────────────────────────────────────────────────────────────

    async def read(self) -> list[Entry]:
        """
        Return the next batch of entries across all subscribed streams.

        Rounds are re-issued until there is something to return: a
        non-empty batch, or an empty batch from a round in which every
        stream was already on the live tail. An empty live round is a
        timeout; it is retried when blocking and returned as [] when
        non-blocking.

        Entries are ordered by subscription order, then by entry ID.

        Cancellation (task.cancel(), asyncio.timeout()) aborts the
        in-flight XREADGROUP and leaves every cursor untouched.

        Raises:
            RedisError: Propagated unchanged from the client; cursors are
                        not modified.
        """
        while True:
            live_tail = all(cursor.is_live for cursor in self._cursors.values())
            request = {stream: self._cursors[stream].token for stream in self._streams}

            logger.debug(
                "XREADGROUP %s/%s %s (live_tail=%s)",
                self._group,
                self._name,
                request,
                live_tail,
            )
            reply = await self._redis.xreadgroup(
                groupname=self._group,
                consumername=self._name,
                streams=request,
                count=self._count,
                # history reads never block; BLOCK only applies to the live tail
                block=self._block_ms if live_tail else None,
                noack=self._noack,
            )

            batch, self._cursors = self._apply_reply(reply or [])
            if batch:
                logger.debug("Read %d entries for %s/%s", len(batch), self._group, self._name)
                return batch

            if live_tail:
                if self._block < 0:
                    return []
                logger.debug(
                    "No entries for %s/%s within block window, retrying",
                    self._group,
                    self._name,
                )

    def _apply_reply(self, reply: Any) -> tuple[list[Entry], dict[str, Cursor]]:
        """
        Collect entries from an XREADGROUP reply and compute the next cursors.

        Works on a copy of the cursor map so a failure part-way through
        leaves the consumer's state as it was.
        """
        returned: dict[str, Sequence[Any]] = {
            decode(stream): messages for stream, messages in _reply_sections(reply)
        }

        batch: list[Entry] = []
        cursors = dict(self._cursors)

        for stream in self._streams:
            messages = returned.get(stream, [])
            cursor = cursors[stream]

            if not messages:
                if isinstance(cursor, Replay):
                    cursors[stream] = cursor.exhaust()
                    logger.debug("Backlog for %s exhausted, switching to live tail", stream)
                continue

            entries = [Entry.from_reply(stream, entry_id, fields) for entry_id, fields in messages]
            batch.extend(entries)
            if isinstance(cursor, Replay):
                cursors[stream] = cursor.advance(entries[-1].id)

        return batch, cursors

    # ── Ack ───────────────────────────────────────────────────────────────────

    async def ack(self, *entries: Entry) -> int:
        """
        Acknowledge entries, removing them from the group's pending list.

        One XACK per stream, sent together in a single pipeline.
        Acknowledging an entry twice is harmless.

        Returns:
            Number of entries Redis reported as newly acknowledged.

        Raises:
            RedisError: If any XACK in the pipeline fails.
        """
        if not entries:
            return 0

        ids: dict[str, list[str]] = {}
        for entry in entries:
            ids.setdefault(entry.stream, []).append(entry.id)

        async with self._redis.pipeline(transaction=False) as pipe:
            for stream, entry_ids in ids.items():
                pipe.xack(stream, self._group, *entry_ids)
            results = await pipe.execute()

        acked = sum(int(n) for n in results)
        logger.debug(
            "Acked %d/%d entries across %d stream(s) for group %s",
            acked,
            len(entries),
            len(ids),
            self._group,
        )
        return acked
