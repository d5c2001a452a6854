"""
Token counting and usage tracking.

Maintains running token totals as entries are appended to a block.
"""

from dataclasses import dataclass

from claude_usage_monitor.storage.models import UsageEntry


@dataclass
class TokenCounts:
    """Running accumulator of the four token categories.

    Updated one entry at a time; totals are never recomputed by summing
    over the owning block's entries.
    """
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0

    def add_entry(self, entry: UsageEntry) -> None:
        """Fold one entry's token counts into the running totals."""
        self.input_tokens += entry.input_tokens
        self.output_tokens += entry.output_tokens
        self.cache_creation_tokens += entry.cache_creation_tokens
        self.cache_read_tokens += entry.cache_read_tokens

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens

    @property
    def all_tokens(self) -> int:
        """Total tokens including cache creation and cache reads."""
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )

    def copy(self) -> "TokenCounts":
        return TokenCounts(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cache_creation_tokens=self.cache_creation_tokens,
            cache_read_tokens=self.cache_read_tokens,
        )
