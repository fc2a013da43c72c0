"""
Stream Group Configuration

Centralized configuration for the command-line entry point.
All environment variables are read here. No os.getenv() calls elsewhere.
"""
from __future__ import annotations

import os
from dataclasses import dataclass


class ConfigurationError(Exception):
    """Raised when configuration is missing or invalid."""


def _optional_env(name: str, default: str = "") -> str:
    """Get an optional environment variable with a default."""
    return os.environ.get(name, default)


def _optional_env_int(name: str, default: int | None) -> int | None:
    """Get an optional integer environment variable with a default."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid integer value for {name}: {value}")


def _optional_env_bool(name: str, default: bool) -> bool:
    """Get an optional boolean environment variable with a default."""
    value = os.environ.get(name)
    if not value:
        return default
    return value.lower() in ("true", "1", "yes")


def _optional_env_list(name: str) -> tuple[str, ...]:
    """Get a comma-separated list from the environment, empty items dropped."""
    value = os.environ.get(name, "")
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class RedisConfig:
    """Redis connection configuration."""
    url: str


@dataclass(frozen=True)
class ConsumerConfig:
    """Consumer group membership and read behaviour."""
    group: str
    consumer: str
    streams: tuple[str, ...]
    count: int | None
    block_ms: int  # <0 non-blocking, 0 forever, >0 milliseconds
    noack: bool

    @property
    def block(self) -> float:
        """Block duration in seconds, as StreamConsumer expects it."""
        return self.block_ms / 1000


@dataclass(frozen=True)
class ProducerConfig:
    """Stream length capping applied to every write."""
    max_len: int | None
    approximate: bool


@dataclass(frozen=True)
class Settings:
    """Root configuration container."""
    redis: RedisConfig
    consumer: ConsumerConfig
    producer: ProducerConfig


def load_settings() -> Settings:
    """Load all settings from environment variables."""
    consumer = ConsumerConfig(
        group=_optional_env("STREAM_GROUP", "workers"),
        consumer=_optional_env("STREAM_CONSUMER", f"worker-{os.getpid()}"),
        streams=_optional_env_list("STREAM_NAMES"),
        count=_optional_env_int("STREAM_COUNT", None),
        block_ms=_optional_env_int("STREAM_BLOCK_MS", 0),
        noack=_optional_env_bool("STREAM_NOACK", False),
    )
    if consumer.count is not None and consumer.count < 1:
        raise ConfigurationError(f"STREAM_COUNT must be positive: {consumer.count}")

    producer = ProducerConfig(
        max_len=_optional_env_int("STREAM_MAXLEN", None),
        approximate=_optional_env_bool("STREAM_MAXLEN_APPROX", False),
    )
    if producer.max_len is not None and producer.max_len < 1:
        raise ConfigurationError(f"STREAM_MAXLEN must be positive: {producer.max_len}")

    return Settings(
        redis=RedisConfig(url=_optional_env("REDIS_URL", "redis://localhost:6379/0")),
        consumer=consumer,
        producer=producer,
    )
