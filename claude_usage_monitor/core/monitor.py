"""
Usage monitor.

Owns the entry log and the session blocks derived from it, and exposes
read-only snapshots to presentation code. The entry log and the block
sequence sit behind one lock so that "replace entries, then re-derive
blocks" is always observed as a single step.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from .calculator import BurnRate, Calculator, UsageProjection
from .plans import Plan
from .pricing import PRICING_TABLE, PricingTable
from .sessions import SessionBlock, SessionIdentifier
from claude_usage_monitor.storage.loader import EntryLoader, PathLike
from claude_usage_monitor.storage.models import UsageEntry

logger = logging.getLogger(__name__)

ModelBreakdown = Dict[str, Tuple[int, float]]


class UsageMonitor:
    """Orchestrates segmentation and metrics over a usage log.

    Every mutation re-segments the full log; every accessor returns values
    or copies, never references into the live state.
    """

    def __init__(
        self,
        pricing: PricingTable = PRICING_TABLE,
        identifier: Optional[SessionIdentifier] = None,
        calculator: Optional[Calculator] = None,
        loader: Optional[EntryLoader] = None,
    ):
        self.pricing = pricing
        self.identifier = identifier or SessionIdentifier()
        self.calculator = calculator or Calculator()
        self.loader = loader or EntryLoader(pricing)
        self._lock = threading.Lock()
        self._entries: List[UsageEntry] = []
        self._blocks: List[SessionBlock] = []

    # -- mutation ---------------------------------------------------------

    def set_entries(self, entries: Iterable[UsageEntry]) -> None:
        """Replace the whole log and re-derive all blocks."""
        ordered = sorted(entries, key=lambda e: e.timestamp)
        with self._lock:
            self._replace(ordered)

    def try_replace_entries(self, entries: Iterable[UsageEntry]) -> bool:
        """Replace the log only if nobody else holds the lock.

        Used by periodic refreshes, which are best-effort and never queue.

        Returns:
            True if the log was replaced, False if the refresh was skipped
        """
        ordered = sorted(entries, key=lambda e: e.timestamp)
        if not self._lock.acquire(blocking=False):
            logger.debug("Monitor busy, skipping refresh of %d entries", len(ordered))
            return False
        try:
            self._replace(ordered)
        finally:
            self._lock.release()
        return True

    def add_entry(self, entry: UsageEntry) -> None:
        """Append one entry, keep the log ordered and re-derive blocks."""
        with self._lock:
            entries = self._entries + [entry]
            entries.sort(key=lambda e: e.timestamp)
            self._replace(entries)

    def load_path(self, path: PathLike) -> int:
        """Load a transcript file or directory, replacing the current log.

        File I/O happens before the lock is taken.

        Returns:
            Number of entries loaded

        Raises:
            FileNotFoundError: If the path does not exist
            OSError: If a single file cannot be read
        """
        entries = self.loader.load_path(path)
        self.set_entries(entries)
        return len(entries)

    def clear(self) -> None:
        with self._lock:
            self._entries = []
            self._blocks = []

    def _replace(self, ordered: List[UsageEntry]) -> None:
        # Caller holds the lock
        self._entries = ordered
        self._blocks = self.identifier.identify_blocks(ordered)
        logger.debug("Segmented %d entries into %d blocks", len(self._entries), len(self._blocks))

    # -- snapshots --------------------------------------------------------

    def entries(self) -> List[UsageEntry]:
        with self._lock:
            return list(self._entries)

    def session_blocks(self) -> List[SessionBlock]:
        with self._lock:
            return [block.snapshot() for block in self._blocks]

    def snapshot(self) -> "UsageMonitor":
        """Return a detached monitor holding this log as of one instant.

        Readers that combine several accessors (a rendered frame, say) query
        the copy so every value comes from the same generation of the log.
        """
        frozen = UsageMonitor(self.pricing, self.identifier, self.calculator, self.loader)
        with self._lock:
            frozen._entries = list(self._entries)
            frozen._blocks = [block.snapshot() for block in self._blocks]
        return frozen

    def current_block(self) -> Optional[SessionBlock]:
        """Snapshot of the most recent block, if any."""
        with self._lock:
            return self._blocks[-1].snapshot() if self._blocks else None

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def session_count(self) -> int:
        with self._lock:
            return len(self._blocks)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._entries

    # -- burn rates and projections ---------------------------------------

    def current_burn_rate(self) -> Optional[BurnRate]:
        """Burn rate of the most recent block."""
        with self._lock:
            if not self._blocks:
                return None
            return self.calculator.burn_rate(self._blocks[-1])

    def burn_rate_for_block(self, index: int) -> Optional[BurnRate]:
        with self._lock:
            block = self._block_at(index)
            return self.calculator.burn_rate(block) if block else None

    def average_burn_rate(self) -> Optional[BurnRate]:
        with self._lock:
            return self.calculator.average_burn_rate(self._blocks)

    def peak_burn_rate(self) -> Optional[BurnRate]:
        with self._lock:
            return self.calculator.peak_burn_rate(self._blocks)

    def project_usage(self, index: int, at_time: datetime) -> Optional[UsageProjection]:
        with self._lock:
            block = self._block_at(index)
            return self.calculator.project(block, at_time) if block else None

    def project_current_usage(self, at_time: datetime) -> Optional[UsageProjection]:
        """Projection for the live (most recent) block."""
        with self._lock:
            if not self._blocks:
                return None
            return self.calculator.project(self._blocks[-1], at_time)

    def hourly_burn_rate(self, at_time: datetime) -> float:
        """Tokens per minute over the hour ending at at_time."""
        with self._lock:
            return self.calculator.hourly_burn_rate(self._blocks, at_time)

    def tokens_per_second(self, at_time: datetime) -> float:
        return self.hourly_burn_rate(at_time) / 60.0

    def _block_at(self, index: int) -> Optional[SessionBlock]:
        if 0 <= index < len(self._blocks):
            return self._blocks[index]
        return None

    # -- totals -----------------------------------------------------------

    def total_cost(self) -> float:
        with self._lock:
            return self.calculator.total_cost(self._blocks)

    def total_tokens(self) -> int:
        with self._lock:
            return self.calculator.total_tokens(self._blocks)

    def total_weighted_tokens(self) -> float:
        """Lifetime tokens scaled by each entry's model weight."""
        with self._lock:
            return self._weighted_sum(self._entries)

    def weighted_tokens_for_model(self, model: str) -> float:
        with self._lock:
            return self._weighted_sum(e for e in self._entries if e.model == model)

    def _weighted_sum(self, entries: Iterable[UsageEntry]) -> float:
        return sum(
            self.calculator.weighted_tokens(entry, self.pricing.get_weight(entry.model))
            for entry in entries
        )

    # -- current block ----------------------------------------------------

    def current_block_tokens(self) -> float:
        """Weighted tokens used in the live block."""
        with self._lock:
            if not self._blocks:
                return 0.0
            return self._weighted_sum(self._blocks[-1].entries)

    def current_block_cost(self) -> float:
        with self._lock:
            return self._blocks[-1].cost_usd if self._blocks else 0.0

    def current_block_duration(self) -> float:
        """Duration of the live block in minutes."""
        with self._lock:
            return self._blocks[-1].duration_minutes if self._blocks else 0.0

    def current_block_percentage(self, plan: Plan) -> float:
        return self.current_block_tokens() / plan.max_tokens * 100.0

    # -- plans and limits -------------------------------------------------

    def plan_usage_percentage(self, plan: Plan) -> float:
        """Weighted lifetime tokens as a percentage of the plan cap."""
        return self.total_weighted_tokens() / plan.max_tokens * 100.0

    def estimate_time_to_limit(self, token_limit: float) -> Optional[float]:
        """Minutes until weighted usage reaches token_limit at the live block's rate."""
        with self._lock:
            if not self._blocks:
                return None
            burn_rate = self.calculator.burn_rate(self._blocks[-1])
            if burn_rate is None:
                return None
            current_tokens = self._weighted_sum(self._entries)
        return self.calculator.time_to_limit(
            current_tokens, token_limit, burn_rate.tokens_per_minute
        )

    def estimate_time_to_plan_limit(self, plan: Plan) -> Optional[float]:
        return self.estimate_time_to_limit(plan.max_tokens)

    def time_to_reset(self, at_time: datetime) -> Optional[timedelta]:
        """Time left in the live block, or None when no block is live."""
        with self._lock:
            if not self._blocks or not self._blocks[-1].contains(at_time):
                return None
            return self._blocks[-1].end_time - at_time

    # -- breakdowns and ranges --------------------------------------------

    def model_breakdown(self) -> ModelBreakdown:
        """Raw tokens and cost per model across the whole log."""
        with self._lock:
            return _breakdown(self._entries)

    def current_block_model_breakdown(self) -> ModelBreakdown:
        """Raw tokens and cost per model within the live block only."""
        with self._lock:
            return _breakdown(self._blocks[-1].entries) if self._blocks else {}

    def active_sessions(self, at_time: datetime) -> List[SessionBlock]:
        with self._lock:
            return [
                block.snapshot() for block in self._blocks
                if not block.is_empty() and block.contains(at_time)
            ]

    def sessions_in_range(self, start: datetime, end: datetime) -> List[SessionBlock]:
        """Blocks whose window intersects [start, end)."""
        with self._lock:
            return [
                block.snapshot() for block in self._blocks
                if not block.is_empty() and block.start_time < end and block.end_time > start
            ]

    # -- catalog passthrough ----------------------------------------------

    def model_weight(self, model: str) -> float:
        return self.pricing.get_weight(model)

    def supported_models(self) -> List[str]:
        return self.pricing.supported_models()

    def cost_for_tokens(self, model: str, input_tokens: int, output_tokens: int) -> Optional[float]:
        return self.pricing.calculate_cost(model, input_tokens, output_tokens)


def _breakdown(entries: Iterable[UsageEntry]) -> ModelBreakdown:
    totals: Dict[str, Tuple[int, float]] = {}
    for entry in entries:
        tokens, cost = totals.get(entry.model, (0, 0.0))
        totals[entry.model] = (tokens + entry.total_tokens, cost + entry.cost_usd)
    return totals
