"""
Per-stream read cursors.

A consumer keeps one cursor per subscribed stream. A cursor starts in
replay mode at FIRST_ID, walking the entries already delivered to this
consumer but never acknowledged. Once a replay read comes back empty the
cursor switches to the live tail and stays there.

    cursor = Replay()              # token "0-0"
    cursor = cursor.advance("5-0") # token "5-0"
    cursor = cursor.exhaust()      # LIVE, token ">"
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

FIRST_ID = "0-0"
"""Lowest possible entry ID: replay the whole pending backlog."""

LIVE_ID = ">"
"""Wire token asking for entries never delivered to any group member."""


@dataclass(frozen=True)
class Replay:
    """Replaying this consumer's pending entries, after *last_id*."""

    last_id: str = FIRST_ID

    @property
    def token(self) -> str:
        return self.last_id

    @property
    def is_live(self) -> bool:
        return False

    def advance(self, entry_id: str) -> Replay:
        """Move past *entry_id*, the newest entry delivered for this stream."""
        return Replay(entry_id)

    def exhaust(self) -> Live:
        """The backlog is drained: switch to the live tail."""
        return LIVE


@dataclass(frozen=True)
class Live:
    """Reading entries not yet delivered to any consumer in the group."""

    @property
    def token(self) -> str:
        return LIVE_ID

    @property
    def is_live(self) -> bool:
        return True


LIVE = Live()

Cursor = Union[Replay, Live]
