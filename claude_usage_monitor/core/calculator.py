"""
Burn rate, projection and limit calculations.

Every function here is pure: inputs are passed explicitly and nothing is
cached between calls. A result that cannot be computed (empty block,
closed window, limit already reached) is returned as None rather than
raised.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

from .sessions import SessionBlock
from claude_usage_monitor.storage.models import UsageEntry

HOURLY_WINDOW = timedelta(hours=1)


@dataclass(frozen=True)
class BurnRate:
    """Consumption velocity of a block."""
    tokens_per_minute: float
    cost_per_hour: float

    @property
    def tokens_per_second(self) -> float:
        return self.tokens_per_minute / 60.0


@dataclass(frozen=True)
class UsageProjection:
    """Linear extrapolation of a block's usage to its end time."""
    current_tokens: int
    current_cost: float
    projected_additional_tokens: int
    projected_additional_cost: float

    @property
    def projected_total_tokens(self) -> int:
        return self.current_tokens + self.projected_additional_tokens

    @property
    def projected_total_cost(self) -> float:
        return self.current_cost + self.projected_additional_cost


def calculate_burn_rate(block: SessionBlock) -> Optional[BurnRate]:
    """Calculate the raw (unweighted) burn rate of a block.

    Returns:
        BurnRate, or None for an empty or zero-duration block
    """
    if block.is_empty() or block.duration_minutes == 0:
        return None

    tokens_per_minute = block.token_counts.total_tokens / block.duration_minutes
    cost_per_hour = (block.cost_usd / block.duration_minutes) * 60.0
    return BurnRate(tokens_per_minute=tokens_per_minute, cost_per_hour=cost_per_hour)


def project_block_usage(block: SessionBlock, at_time: datetime) -> Optional[UsageProjection]:
    """Project a block's usage to its end time at its current burn rate.

    Args:
        block: Block to project
        at_time: Point in time the projection is made from

    Returns:
        UsageProjection, or None if the block is empty or at_time is at or
        past the block's end time
    """
    if block.is_empty() or at_time >= block.end_time:
        return None

    burn_rate = calculate_burn_rate(block)
    if burn_rate is None:
        return None

    remaining_minutes = max((block.end_time - at_time).total_seconds(), 0.0) / 60.0
    remaining_hours = remaining_minutes / 60.0

    return UsageProjection(
        current_tokens=block.token_counts.total_tokens,
        current_cost=block.cost_usd,
        projected_additional_tokens=math.floor(burn_rate.tokens_per_minute * remaining_minutes),
        projected_additional_cost=burn_rate.cost_per_hour * remaining_hours,
    )


def calculate_hourly_burn_rate(blocks: Sequence[SessionBlock], at_time: datetime) -> float:
    """Tokens per minute over the trailing hour ending at at_time.

    Each block contributes the share of its tokens proportional to how much
    of its first-to-last entry span overlaps the hour. This assumes
    consumption is uniform within a block, so bursty blocks are smoothed.
    """
    window_start = at_time - HOURLY_WINDOW
    tokens_in_window = 0.0

    for block in blocks:
        if block.is_empty():
            continue

        block_start = block.first_timestamp
        block_end = block.last_timestamp
        if block_end < window_start or block_start > at_time:
            continue

        overlap_start = max(block_start, window_start)
        overlap_end = min(block_end, at_time)
        overlap_minutes = (overlap_end - overlap_start).total_seconds() / 60.0
        if overlap_minutes <= 0 or block.duration_minutes <= 0:
            continue

        share = overlap_minutes / block.duration_minutes
        tokens_in_window += share * block.token_counts.total_tokens

    return tokens_in_window / 60.0


def calculate_weighted_tokens(entry: UsageEntry, weight: float) -> float:
    """Raw total tokens of an entry scaled by its model weight."""
    return entry.total_tokens * weight


def calculate_total_cost(blocks: Sequence[SessionBlock]) -> float:
    return sum(block.cost_usd for block in blocks)


def calculate_total_tokens(blocks: Sequence[SessionBlock]) -> int:
    return sum(block.token_counts.total_tokens for block in blocks)


def calculate_average_burn_rate(blocks: Sequence[SessionBlock]) -> Optional[BurnRate]:
    """Unweighted mean of each block's own burn rate.

    Blocks are not weighted by duration or token count: a short busy block
    counts as much as a long quiet one.
    """
    rates = [rate for rate in map(calculate_burn_rate, blocks) if rate is not None]
    if not rates:
        return None

    return BurnRate(
        tokens_per_minute=sum(r.tokens_per_minute for r in rates) / len(rates),
        cost_per_hour=sum(r.cost_per_hour for r in rates) / len(rates),
    )


def calculate_peak_burn_rate(blocks: Sequence[SessionBlock]) -> Optional[BurnRate]:
    """Highest tokens-per-minute burn rate across blocks."""
    rates = [rate for rate in map(calculate_burn_rate, blocks) if rate is not None]
    if not rates:
        return None
    return max(rates, key=lambda r: r.tokens_per_minute)


def calculate_time_to_limit(
    current_tokens: float,
    token_limit: float,
    tokens_per_minute: float,
) -> Optional[float]:
    """Minutes until token_limit is reached at the given rate.

    Returns:
        Minutes as a float, or None if the limit is already reached or the
        rate is not positive
    """
    if current_tokens >= token_limit or tokens_per_minute <= 0:
        return None
    return (token_limit - current_tokens) / tokens_per_minute


class Calculator:
    """Stateless facade over the calculation functions.

    Exists so the monitor can hold one injected collaborator; it carries no
    state of its own.
    """

    def burn_rate(self, block: SessionBlock) -> Optional[BurnRate]:
        return calculate_burn_rate(block)

    def project(self, block: SessionBlock, at_time: datetime) -> Optional[UsageProjection]:
        return project_block_usage(block, at_time)

    def hourly_burn_rate(self, blocks: Sequence[SessionBlock], at_time: datetime) -> float:
        return calculate_hourly_burn_rate(blocks, at_time)

    def weighted_tokens(self, entry: UsageEntry, weight: float) -> float:
        return calculate_weighted_tokens(entry, weight)

    def total_cost(self, blocks: Sequence[SessionBlock]) -> float:
        return calculate_total_cost(blocks)

    def total_tokens(self, blocks: Sequence[SessionBlock]) -> int:
        return calculate_total_tokens(blocks)

    def average_burn_rate(self, blocks: Sequence[SessionBlock]) -> Optional[BurnRate]:
        return calculate_average_burn_rate(blocks)

    def peak_burn_rate(self, blocks: Sequence[SessionBlock]) -> Optional[BurnRate]:
        return calculate_peak_burn_rate(blocks)

    def time_to_limit(
        self,
        current_tokens: float,
        token_limit: float,
        tokens_per_minute: float,
    ) -> Optional[float]:
        return calculate_time_to_limit(current_tokens, token_limit, tokens_per_minute)
