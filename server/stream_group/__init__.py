"""
stream_group: Redis stream consumer-group primitives.

Public API:
    StreamConsumer    read batches across several streams as one group member,
                      replaying unacknowledged entries before the live tail
    StreamProducer    append entries to a stream, with optional MAXLEN capping
    RedisConnection   open/close a redis.asyncio client from a URL
    Entry             an entry handed back by StreamConsumer.read()
    Replay, Live      the two per-stream cursor modes
"""
from .connection import RedisConnection, StreamConnectionError
from .consumer import StreamConsumer
from .cursor import FIRST_ID, LIVE, LIVE_ID, Cursor, Live, Replay
from .entry import Entry
from .producer import StreamProducer

__all__ = [
    "StreamConsumer",
    "StreamProducer",
    "RedisConnection",
    "StreamConnectionError",
    "Entry",
    "Cursor",
    "Replay",
    "Live",
    "LIVE",
    "FIRST_ID",
    "LIVE_ID",
]
