"""
Stream Entry

The unit handed back by StreamConsumer.read(). Stream name, entry ID and
field names are normalised to str; field values are passed through as the
Redis client returned them (bytes unless the client decodes responses).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def decode(value: str | bytes) -> str:
    """Return *value* as str, decoding UTF-8 bytes."""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


@dataclass(frozen=True)
class Entry:
    """A single entry read from a stream on behalf of a consumer group."""

    stream: str
    id: str
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_reply(
        cls,
        stream: str | bytes,
        entry_id: str | bytes,
        raw_fields: dict[Any, Any] | None,
    ) -> Entry:
        """
        Build an Entry from one (id, fields) pair of an XREADGROUP reply.

        Redis reports a nil field map for pending entries that were deleted
        after delivery; those come back with empty fields.
        """
        fields = {decode(k): v for k, v in (raw_fields or {}).items()}
        return cls(stream=decode(stream), id=decode(entry_id), fields=fields)
