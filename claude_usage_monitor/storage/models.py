"""
Data models for the usage log.

Defines the immutable usage record produced by the entry loader.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class UsageEntry:
    """Immutable record of one model invocation.

    Created once by the loader from a transcript line and never mutated.
    Everything downstream (blocks, rates, projections) is derived from
    sequences of these records.
    """
    timestamp: datetime
    model: str
    input_tokens: int
    output_tokens: int
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    cost_usd: float = 0.0

    def __post_init__(self):
        """Validate token counts and cost are non-negative."""
        for name in ("input_tokens", "output_tokens",
                     "cache_creation_tokens", "cache_read_tokens"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.cost_usd < 0:
            raise ValueError("cost_usd cannot be negative")

    @property
    def total_tokens(self) -> int:
        """Input plus output tokens."""
        return self.input_tokens + self.output_tokens

    @property
    def all_tokens(self) -> int:
        """Total tokens including both cache categories."""
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )
