"""
Claude Usage Monitor.

Session-window segmentation, burn rate and plan projection over Claude
usage logs.
"""

from .core.calculator import BurnRate, Calculator, UsageProjection
from .core.monitor import UsageMonitor
from .core.plans import Plan
from .core.pricing import PRICING_TABLE, ModelPricing, PricingTable
from .core.sessions import SessionBlock, SessionIdentifier
from .core.token_counter import TokenCounts
from .storage.loader import EntryLoader, EntryParseError
from .storage.models import UsageEntry

__all__ = [
    "BurnRate",
    "Calculator",
    "EntryLoader",
    "EntryParseError",
    "ModelPricing",
    "Plan",
    "PRICING_TABLE",
    "PricingTable",
    "SessionBlock",
    "SessionIdentifier",
    "TokenCounts",
    "UsageEntry",
    "UsageMonitor",
    "UsageProjection",
]
