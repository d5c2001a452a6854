"""
Pricing calculations and rate management.

Handles cost computations and plan weights for Claude models.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from types import MappingProxyType
from typing import List, Mapping, Optional

_PER_MILLION = Decimal("1000000")
_COST_PRECISION = Decimal("0.000001")

DEFAULT_MODEL_WEIGHT = 1.0


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    input_cost_per_mtok: Decimal  # Cost per 1M input tokens
    output_cost_per_mtok: Decimal  # Cost per 1M output tokens
    cache_creation_cost_per_mtok: Decimal  # Cost per 1M cache creation tokens
    cache_read_cost_per_mtok: Decimal  # Cost per 1M cache read tokens

    @property
    def input_cost_per_token(self) -> float:
        return float(self.input_cost_per_mtok / _PER_MILLION)

    @property
    def output_cost_per_token(self) -> float:
        return float(self.output_cost_per_mtok / _PER_MILLION)

    @property
    def cache_creation_cost_per_token(self) -> float:
        return float(self.cache_creation_cost_per_mtok / _PER_MILLION)

    @property
    def cache_read_cost_per_token(self) -> float:
        return float(self.cache_read_cost_per_mtok / _PER_MILLION)

    def calculate_cost(
        self,
        input_tokens: int,
        output_tokens: int,
        cache_creation_tokens: int = 0,
        cache_read_tokens: int = 0,
    ) -> float:
        """Calculate the dollar cost of a token mix.

        Returns:
            Cost rounded half-up to 6 decimal places
        """
        total = (
            Decimal(input_tokens) * self.input_cost_per_mtok
            + Decimal(output_tokens) * self.output_cost_per_mtok
            + Decimal(cache_creation_tokens) * self.cache_creation_cost_per_mtok
            + Decimal(cache_read_tokens) * self.cache_read_cost_per_mtok
        ) / _PER_MILLION
        return float(total.quantize(_COST_PRECISION, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for supported models.

    Built once and shared by reference; both mappings are exposed as
    read-only views so no collaborator can alter the catalog.
    """
    prices: Mapping[str, ModelPricing]
    weights: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        for model, weight in self.weights.items():
            if weight < 0:
                raise ValueError(f"Weight for {model} cannot be negative")
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))

    def get_pricing(self, model: str) -> Optional[ModelPricing]:
        """Get pricing for a specific model, or None if unknown."""
        return self.prices.get(model)

    def calculate_cost(
        self,
        model: str,
        input_tokens: int,
        output_tokens: int,
        cache_creation_tokens: int = 0,
        cache_read_tokens: int = 0,
    ) -> Optional[float]:
        """Calculate the cost of a token mix for a model.

        Args:
            model: Model identifier
            input_tokens: Prompt tokens
            output_tokens: Completion tokens
            cache_creation_tokens: Tokens written to the prompt cache
            cache_read_tokens: Tokens served from the prompt cache

        Returns:
            Cost rounded to 1e-6, or None when the model is not priced.
            Callers substitute zero or a cost they already have.
        """
        pricing = self.get_pricing(model)
        if pricing is None:
            return None
        return pricing.calculate_cost(
            input_tokens, output_tokens, cache_creation_tokens, cache_read_tokens
        )

    def get_weight(self, model: str) -> float:
        """Multiplier applied to a model's tokens when counting toward plan caps.

        Unknown models count at face value.
        """
        return self.weights.get(model, DEFAULT_MODEL_WEIGHT)

    def supported_models(self) -> List[str]:
        return sorted(self.prices)


_OPUS = ModelPricing(
    input_cost_per_mtok=Decimal("15.00"),
    output_cost_per_mtok=Decimal("75.00"),
    cache_creation_cost_per_mtok=Decimal("18.75"),
    cache_read_cost_per_mtok=Decimal("1.875"),
)
_SONNET = ModelPricing(
    input_cost_per_mtok=Decimal("3.00"),
    output_cost_per_mtok=Decimal("15.00"),
    cache_creation_cost_per_mtok=Decimal("3.75"),
    cache_read_cost_per_mtok=Decimal("0.30"),
)
_HAIKU_3 = ModelPricing(
    input_cost_per_mtok=Decimal("0.25"),
    output_cost_per_mtok=Decimal("1.25"),
    cache_creation_cost_per_mtok=Decimal("0.30"),
    cache_read_cost_per_mtok=Decimal("0.03"),
)
_HAIKU_3_5 = ModelPricing(
    input_cost_per_mtok=Decimal("1.00"),
    output_cost_per_mtok=Decimal("5.00"),
    cache_creation_cost_per_mtok=Decimal("1.25"),
    cache_read_cost_per_mtok=Decimal("0.10"),
)

_OPUS_MODELS = (
    "claude-3-opus-20240229",
    "claude-opus-4-20250514",
    "claude-opus-4-1-20250805",
)
_SONNET_MODELS = (
    "claude-3-sonnet-20240229",
    "claude-3-5-sonnet-20240620",
    "claude-3-5-sonnet-20241022",
    "claude-3-7-sonnet-20250219",
    "claude-sonnet-4-20250514",
)

# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable(
    prices={
        **{model: _OPUS for model in _OPUS_MODELS},
        **{model: _SONNET for model in _SONNET_MODELS},
        "claude-3-haiku-20240307": _HAIKU_3,
        "claude-3-5-haiku-20241022": _HAIKU_3_5,
    },
    weights={
        **{model: 5.0 for model in _OPUS_MODELS},
        **{model: 1.0 for model in _SONNET_MODELS},
        "claude-3-haiku-20240307": 0.2,
        "claude-3-5-haiku-20241022": 0.2,
    },
)
