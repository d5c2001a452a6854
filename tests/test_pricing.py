"""
Unit tests for pricing calculations.

Tests cost accuracy, rounding behavior, weights and unknown models.
"""

from decimal import Decimal

import pytest

from claude_usage_monitor.core.pricing import (
    PRICING_TABLE,
    ModelPricing,
    PricingTable,
)

SONNET = "claude-3-5-sonnet-20241022"
OPUS = "claude-opus-4-20250514"
HAIKU = "claude-3-haiku-20240307"


class TestPricingTable:
    """Test pricing table lookup."""

    def test_get_supported_model(self):
        """Verify pricing retrieval for supported models."""
        pricing = PRICING_TABLE.get_pricing("claude-3-opus-20240229")
        assert pricing.input_cost_per_mtok == Decimal("15.00")
        assert pricing.output_cost_per_mtok == Decimal("75.00")
        assert pricing.cache_creation_cost_per_mtok == Decimal("18.75")
        assert pricing.cache_read_cost_per_mtok == Decimal("1.875")

    def test_per_token_rates(self):
        """Verify per-token rates are derived from per-million prices."""
        pricing = PRICING_TABLE.get_pricing(SONNET)
        assert pricing.input_cost_per_token == pytest.approx(3e-6)
        assert pricing.output_cost_per_token == pytest.approx(15e-6)

    def test_unknown_model_is_absent(self):
        """Verify unknown models yield no pricing instead of raising."""
        assert PRICING_TABLE.get_pricing("unknown-model") is None

    def test_supported_models_sorted(self):
        """Verify supported models are listed in sorted order."""
        models = PRICING_TABLE.supported_models()
        assert models == sorted(models)
        assert SONNET in models
        assert HAIKU in models

    def test_table_is_read_only(self):
        """Verify the shared table cannot be mutated."""
        with pytest.raises(TypeError):
            PRICING_TABLE.prices["new-model"] = PRICING_TABLE.get_pricing(SONNET)
        with pytest.raises(TypeError):
            PRICING_TABLE.weights[SONNET] = 10.0

    def test_source_mapping_changes_do_not_leak(self):
        """Verify the table copies the mappings it was built from."""
        prices = {"m": ModelPricing(Decimal("1"), Decimal("1"), Decimal("1"), Decimal("1"))}
        table = PricingTable(prices=prices)
        prices.clear()
        assert table.get_pricing("m") is not None

    def test_negative_weight_rejected(self):
        """Verify negative weights are refused."""
        with pytest.raises(ValueError, match="cannot be negative"):
            PricingTable(prices={}, weights={"m": -1.0})


class TestCostCalculation:
    """Test cost calculation accuracy and rounding."""

    def test_exact_cost_sonnet(self):
        """Verify exact cost calculation for Sonnet."""
        # 1M input * $3 + 1M output * $15
        assert PRICING_TABLE.calculate_cost(SONNET, 1_000_000, 1_000_000) == 18.0

    def test_cache_tokens_are_priced(self):
        """Verify cache creation and cache reads add to cost."""
        cost = PRICING_TABLE.calculate_cost(SONNET, 0, 0, 1_000_000, 1_000_000)
        # $3.75 + $0.30
        assert cost == pytest.approx(4.05)

    def test_small_cost_rounds_to_micro_dollars(self):
        """Verify costs are rounded to 6 decimal places."""
        # 1 Haiku 3 input token = $0.00000025 -> 0.0
        assert PRICING_TABLE.calculate_cost(HAIKU, 1, 0) == 0.0
        # 3 Haiku 3 input tokens = $0.00000075 -> rounds half-up to 0.000001
        assert PRICING_TABLE.calculate_cost(HAIKU, 3, 0) == 0.000001

    def test_rounding_half_up(self):
        """Verify an exact half micro-dollar rounds up."""
        # 2 Haiku 3 input tokens = $0.0000005
        assert PRICING_TABLE.calculate_cost(HAIKU, 2, 0) == 0.000001

    def test_mixed_token_cost(self):
        """Verify the four categories combine correctly."""
        cost = PRICING_TABLE.calculate_cost(OPUS, 1000, 500, 200, 100)
        # 1000*15 + 500*75 + 200*18.75 + 100*1.875 = 56437.5 per million
        assert cost == pytest.approx(0.056438)

    def test_zero_tokens_cost(self):
        """Verify cost calculation with zero tokens."""
        assert PRICING_TABLE.calculate_cost(SONNET, 0, 0) == 0.0

    def test_unknown_model_yields_none(self):
        """Verify unknown models produce no cost."""
        assert PRICING_TABLE.calculate_cost("unknown-model", 100, 50) is None


class TestModelWeights:
    """Test plan weights per model family."""

    def test_opus_weight(self):
        """Verify premium models count 5x."""
        assert PRICING_TABLE.get_weight(OPUS) == 5.0
        assert PRICING_TABLE.get_weight("claude-3-opus-20240229") == 5.0

    def test_sonnet_weight(self):
        """Verify standard models count at face value."""
        assert PRICING_TABLE.get_weight(SONNET) == 1.0

    def test_haiku_weight(self):
        """Verify economy models count 0.2x."""
        assert PRICING_TABLE.get_weight(HAIKU) == 0.2
        assert PRICING_TABLE.get_weight("claude-3-5-haiku-20241022") == 0.2

    def test_unknown_model_weight_defaults_to_one(self):
        """Verify unknown models default to weight 1.0."""
        assert PRICING_TABLE.get_weight("some-future-model") == 1.0
