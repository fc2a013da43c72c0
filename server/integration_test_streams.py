#!/usr/bin/env python3
"""
Consumer-group integration smoke test.

Writes a handful of entries to two streams, then walks through the life of
a consumer group member and prints what each read returned.

Demonstrates:
  - Replay: a restarted consumer gets its unacknowledged entries back.
  - Ack: once acknowledged, entries are not replayed again.
  - Live tail: a second consumer name shares the group's undelivered entries.

Two modes:

  --fake   In-process fakeredis (no external server needed).

  Live Redis (default):
    With podman:   podman run --rm -p 6379:6379 redis
    With Docker:   docker run --rm -p 6379:6379 redis

Usage (from server/):
    python integration_test_streams.py --fake
    python integration_test_streams.py --redis-url redis://localhost:6379/0
    python integration_test_streams.py --entries 5 --count 2
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any
from unittest.mock import patch

from fakeredis import FakeAsyncRedis, FakeServer

from stream_group import Entry, RedisConnection, StreamConsumer, StreamProducer

GROUP = "smoke-group"
STREAMS = ["smoke:orders", "smoke:payments"]

# ── ANSI colours ──────────────────────────────────────────────────────────────

RESET = "\033[0m"
BOLD = "\033[1m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"
RED = "\033[31m"
DIM = "\033[2m"


def _c(code: str, text: str) -> str:
    return f"{code}{text}{RESET}"


def _build_fake_redis_factory():
    """
    Return a class whose from_url() hands out async FakeRedis instances that
    all share one in-process FakeServer.
    """
    server = FakeServer()

    class _Factory:
        @classmethod
        def from_url(cls, url: str, **kwargs: Any):
            return FakeAsyncRedis(server=server, **kwargs)

    return _Factory


def _show(title: str, entries: list[Entry]) -> None:
    print(_c(BOLD, f"  {title}") + _c(DIM, f"  ({len(entries)} entries)"))
    if not entries:
        print(_c(DIM, "    (nothing)"))
    for entry in entries:
        print(f"    {_c(CYAN, entry.stream):<30}  {entry.id:<20}  {entry.fields}")


async def _drain(consumer: StreamConsumer, ack: bool) -> list[Entry]:
    """Read until an empty batch, optionally acknowledging as we go."""
    received: list[Entry] = []
    while entries := await consumer.read():
        received.extend(entries)
        if ack:
            await consumer.ack(*entries)
    return received


# ── Main ──────────────────────────────────────────────────────────────────────

async def main(redis_url: str, entries: int, count: int | None, fake: bool) -> None:
    print()
    print(_c(BOLD, "=== consumer-group integration smoke test ==="))
    print(_c(DIM, f"Redis: {'in-process fakeredis' if fake else redis_url}"))
    print()

    async with RedisConnection(redis_url, decode_responses=True) as conn:
        redis = conn.redis

        # -- Fresh streams and group ------------------------------------------
        for stream in STREAMS:
            await redis.delete(stream)
            await redis.xgroup_create(stream, GROUP, id="$", mkstream=True)

        print(_c(BOLD, "Writing:"))
        for stream in STREAMS:
            producer = StreamProducer(redis, stream, max_len=1000, approximate=True)
            for i in range(entries):
                entry_id = await producer.write({"seq": str(i), "stream": stream})
                print(f"  {_c(CYAN, stream):<30}  {entry_id}")
        print()

        def consumer(name: str) -> StreamConsumer:
            return StreamConsumer(redis, GROUP, name, STREAMS, count=count, block=-1)

        # -- Read without ack, then "restart" ---------------------------------
        print(_c(BOLD, "Reads:"))
        first = await _drain(consumer("worker-a"), ack=False)
        _show("worker-a, first run (no ack)", first)

        replayed = await _drain(consumer("worker-a"), ack=True)
        _show("worker-a, restarted (replay + ack)", replayed)

        after_ack = await _drain(consumer("worker-a"), ack=True)
        _show("worker-a, restarted again", after_ack)

        # -- Live tail shared across the group --------------------------------
        producer = StreamProducer(redis, STREAMS[0])
        await producer.write({"seq": "late"})
        late_a = await _drain(consumer("worker-a"), ack=True)
        late_b = await _drain(consumer("worker-b"), ack=True)
        _show("worker-a, live tail after one more write", late_a)
        _show("worker-b, same group", late_b)
        print()

        for stream in STREAMS:
            await redis.delete(stream)

    ok = (
        len(first) == len(replayed) == entries * len(STREAMS)
        and [e.id for e in first] == [e.id for e in replayed]
        and not after_ack
        and len(late_a) + len(late_b) == 1
    )
    if ok:
        print(_c(GREEN, _c(BOLD, "Done.")))
    else:
        print(_c(YELLOW, _c(BOLD, "Unexpected delivery pattern, see above.")))
    print()


async def _run(redis_url: str, entries: int, count: int | None, fake: bool) -> None:
    """Wrap main() with the fakeredis patch when requested."""
    if fake:
        with patch("stream_group.connection.Redis", _build_fake_redis_factory()):
            await main(redis_url=redis_url, entries=entries, count=count, fake=True)
    else:
        await main(redis_url=redis_url, entries=entries, count=count, fake=False)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--redis-url",
        default="redis://localhost:6379/0",
        help="Redis connection URL (default: redis://localhost:6379/0)",
    )
    parser.add_argument(
        "--entries",
        type=int,
        default=3,
        help="Entries written to each stream (default: 3)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=None,
        help="Max entries per stream per read round (default: no cap)",
    )
    parser.add_argument(
        "--fake",
        action="store_true",
        help="Use in-process fakeredis instead of a live Redis server",
    )
    args = parser.parse_args()

    try:
        asyncio.run(_run(
            redis_url=args.redis_url,
            entries=args.entries,
            count=args.count,
            fake=args.fake,
        ))
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        print(_c(RED, f"\nFailed: {exc}"))
        if not args.fake:
            print(_c(DIM, "Tip: run with --fake, or start Redis with:"))
            print(_c(DIM, "     podman run --rm -p 6379:6379 redis"))
        sys.exit(1)
