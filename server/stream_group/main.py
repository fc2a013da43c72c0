"""
Stream Group CLI

    stream-group consume --stream orders --stream payments --group workers
    stream-group produce --stream orders order_id=42 status=paid

consume: reads batches as one consumer-group member, logs every entry and
acknowledges each batch, until SIGINT/SIGTERM. With a negative --block-ms
it drains what is available and exits on the first empty batch.

produce: appends one entry and prints its ID.

Defaults come from the environment (see stream_group.config); a .env file
in the working directory is loaded first. Flags override the environment.
"""
from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from dotenv import load_dotenv
from redis.exceptions import RedisError

from stream_group.config import ConfigurationError, Settings, load_settings
from stream_group.connection import RedisConnection, StreamConnectionError
from stream_group.consumer import StreamConsumer
from stream_group.producer import StreamProducer

logger = logging.getLogger("stream_group")


def _field(pair: str) -> tuple[str, str]:
    """argparse type for key=value field arguments."""
    key, sep, value = pair.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {pair!r}")
    return key, value


def _positive_int(value: str) -> int:
    """argparse type for count-like options."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {number}")
    return number


async def consume(args: argparse.Namespace, settings: Settings) -> int:
    """Read, log and acknowledge entries until told to stop."""
    cfg = settings.consumer
    streams = args.stream or list(cfg.streams)
    if not streams:
        logger.error("No streams to consume: pass --stream or set STREAM_NAMES")
        return 1
    if len(set(streams)) != len(streams):
        logger.error(f"Each stream may be given only once: {streams}")
        return 1

    group = args.group or cfg.group
    name = args.consumer or cfg.consumer
    block_ms = cfg.block_ms if args.block_ms is None else args.block_ms
    noack = args.noack or cfg.noack

    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        async with RedisConnection(
            args.redis_url or settings.redis.url, decode_responses=True
        ) as conn:
            consumer = StreamConsumer(
                conn.redis,
                group,
                name,
                streams,
                count=args.count or cfg.count,
                block=block_ms / 1000,
                noack=noack,
            )
            logger.info(f"Consuming {streams} as {group}/{name} (block={block_ms}ms)")
            total = await _consume_until_stopped(
                consumer,
                shutdown_event,
                ack_after_read=not (noack or args.no_ack_after_read),
                stop_when_empty=block_ms < 0,
            )
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    logger.info(f"Consumed {total} entries")
    return 0


async def _consume_until_stopped(
    consumer: StreamConsumer,
    shutdown_event: asyncio.Event,
    ack_after_read: bool,
    stop_when_empty: bool,
) -> int:
    total = 0
    while not shutdown_event.is_set():
        read_task = asyncio.create_task(consumer.read())
        stop_task = asyncio.create_task(shutdown_event.wait())
        done, _ = await asyncio.wait({read_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        stop_task.cancel()

        if read_task not in done:
            # unacked entries of an interrupted read are replayed next run
            read_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await read_task
            break

        entries = read_task.result()
        for entry in entries:
            logger.info(f"{entry.stream} {entry.id} {entry.fields}")
        total += len(entries)

        if entries and ack_after_read:
            await consumer.ack(*entries)
        if not entries and stop_when_empty:
            break

    return total


async def produce(args: argparse.Namespace, settings: Settings) -> int:
    """Append one entry and print the assigned ID."""
    if not args.fields:
        logger.error("Nothing to write: pass at least one key=value field")
        return 1

    cfg = settings.producer
    max_len = args.maxlen or cfg.max_len
    approximate = args.approx or cfg.approximate

    async with RedisConnection(args.redis_url or settings.redis.url, decode_responses=True) as conn:
        producer = StreamProducer(conn.redis, args.stream, max_len=max_len, approximate=approximate)
        entry_id = await producer.write(dict(args.fields), id=args.id)

    print(entry_id)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stream-group",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--redis-url", help="Redis connection URL (default: $REDIS_URL)")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    consume_parser = sub.add_parser("consume", help="Read entries as a consumer-group member")
    consume_parser.add_argument(
        "--stream", action="append", default=[], help="Stream to read (repeatable, ordered)"
    )
    consume_parser.add_argument("--group", help="Consumer group (default: $STREAM_GROUP)")
    consume_parser.add_argument("--consumer", help="Consumer name (default: $STREAM_CONSUMER)")
    consume_parser.add_argument(
        "--count", type=_positive_int, help="Max entries per stream per round"
    )
    consume_parser.add_argument(
        "--block-ms",
        type=int,
        help="Block window in ms: <0 non-blocking, 0 forever (default: $STREAM_BLOCK_MS)",
    )
    consume_parser.add_argument(
        "--noack", action="store_true", help="Read with NOACK (entries never become pending)"
    )
    consume_parser.add_argument(
        "--no-ack-after-read",
        action="store_true",
        help="Leave entries pending instead of acknowledging each batch",
    )
    consume_parser.set_defaults(handler=consume)

    produce_parser = sub.add_parser("produce", help="Append one entry to a stream")
    produce_parser.add_argument("--stream", required=True, help="Target stream")
    produce_parser.add_argument("--id", help="Explicit entry ID (default: auto-generated)")
    produce_parser.add_argument("--maxlen", type=_positive_int, help="Cap the stream length")
    produce_parser.add_argument("--approx", action="store_true", help="Use approximate MAXLEN (~)")
    produce_parser.add_argument("fields", nargs="*", type=_field, metavar="key=value")
    produce_parser.set_defaults(handler=produce)

    return parser


def run(argv: list[str] | None = None) -> None:
    """Console-script entry point."""
    load_dotenv()

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = load_settings()
        exit_code = asyncio.run(args.handler(args, settings))
    except KeyboardInterrupt:
        exit_code = 0
    except ConfigurationError as exc:
        logger.error(f"Invalid configuration: {exc}")
        exit_code = 1
    except StreamConnectionError as exc:
        logger.error(str(exc))
        exit_code = 1
    except RedisError as exc:
        logger.error(f"Redis command failed: {exc}")
        exit_code = 1
    except ValueError as exc:
        logger.error(f"Invalid argument: {exc}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
