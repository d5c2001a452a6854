"""
Session window segmentation.

Partitions a time-ordered usage log into fixed-length, hour-aligned
session blocks. A block closes either when an entry reaches the block's
fixed end time or when the idle gap since the previous entry in the
block is at least one full window.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from .token_counter import TokenCounts
from claude_usage_monitor.storage.models import UsageEntry

DEFAULT_SESSION_DURATION = timedelta(hours=5)

_MIN_DURATION_MINUTES = 1.0


class SessionBlock:
    """A bounded session window and the entries that fell into it.

    ``end_time`` is exclusive and fixed at creation. Token and cost totals
    are maintained incrementally on every append.
    """

    def __init__(self, start_time: datetime, end_time: datetime):
        if end_time <= start_time:
            raise ValueError("end_time must be after start_time")
        self._start_time = start_time
        self._end_time = end_time
        self.entries: List[UsageEntry] = []
        self.token_counts = TokenCounts()
        self.cost_usd = 0.0
        self.duration_minutes = 0.0

    @property
    def start_time(self) -> datetime:
        return self._start_time

    @property
    def end_time(self) -> datetime:
        return self._end_time

    def add_entry(self, entry: UsageEntry) -> None:
        """Append an entry and update the running totals."""
        self.token_counts.add_entry(entry)
        self.cost_usd += entry.cost_usd
        self.entries.append(entry)
        self._update_duration()

    def _update_duration(self) -> None:
        # First-to-last entry span, floored so rates never divide by zero
        span = self.entries[-1].timestamp - self.entries[0].timestamp
        self.duration_minutes = max(span.total_seconds() / 60.0, _MIN_DURATION_MINUTES)

    def is_empty(self) -> bool:
        return not self.entries

    @property
    def first_timestamp(self) -> Optional[datetime]:
        return self.entries[0].timestamp if self.entries else None

    @property
    def last_timestamp(self) -> Optional[datetime]:
        return self.entries[-1].timestamp if self.entries else None

    def contains(self, at_time: datetime) -> bool:
        """Whether at_time falls inside [start_time, end_time)."""
        return self._start_time <= at_time < self._end_time

    def snapshot(self) -> "SessionBlock":
        """Return an independent copy that later appends cannot touch."""
        copy = SessionBlock(self._start_time, self._end_time)
        copy.entries = list(self.entries)
        copy.token_counts = self.token_counts.copy()
        copy.cost_usd = self.cost_usd
        copy.duration_minutes = self.duration_minutes
        return copy

    def __repr__(self) -> str:
        return (
            f"SessionBlock(start_time={self._start_time.isoformat()}, "
            f"end_time={self._end_time.isoformat()}, entries={len(self.entries)})"
        )


class SessionIdentifier:
    """Groups usage entries into session blocks."""

    def __init__(self, session_duration: timedelta = DEFAULT_SESSION_DURATION):
        if session_duration <= timedelta(0):
            raise ValueError("session_duration must be positive")
        self.session_duration = session_duration

    def identify_blocks(self, entries: Sequence[UsageEntry]) -> List[SessionBlock]:
        """Segment entries into session blocks.

        Args:
            entries: Usage entries sorted ascending by timestamp. The order
                is trusted, not re-checked.

        Returns:
            Non-empty blocks in chronological order. Concatenating their
            entries reproduces the input exactly.
        """
        blocks: List[SessionBlock] = []
        current: Optional[SessionBlock] = None

        for entry in entries:
            if current is None or self._should_start_new_block(current, entry):
                current = self._create_block_for(entry)
                blocks.append(current)
            current.add_entry(entry)

        return blocks

    def _should_start_new_block(self, block: SessionBlock, entry: UsageEntry) -> bool:
        # Fixed boundary: the window's end time is exclusive
        if entry.timestamp >= block.end_time:
            return True

        # Idle gap against the immediately preceding entry in this block
        if entry.timestamp - block.entries[-1].timestamp >= self.session_duration:
            return True

        return False

    def _create_block_for(self, entry: UsageEntry) -> SessionBlock:
        start_time = round_to_hour(entry.timestamp)
        return SessionBlock(start_time, start_time + self.session_duration)


def round_to_hour(timestamp: datetime) -> datetime:
    """Truncate a timestamp to the top of its hour."""
    return timestamp.replace(minute=0, second=0, microsecond=0)
