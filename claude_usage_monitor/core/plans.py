"""
Subscription plans and their weighted-token caps.
"""

from enum import Enum


class Plan(Enum):
    """Closed set of subscription tiers.

    Caps are compared against weighted tokens, not raw tokens.
    """
    PRO = "pro"
    MAX5 = "max5"
    MAX20 = "max20"

    @property
    def max_tokens(self) -> int:
        return _PLAN_CAPS[self]

    @property
    def display_name(self) -> str:
        return _PLAN_NAMES[self]

    @property
    def description(self) -> str:
        return f"{self.display_name} (~{self.max_tokens // 1000}K tokens/day)"

    @classmethod
    def parse(cls, name: str) -> "Plan":
        """Parse a plan identifier case-insensitively.

        Raises:
            ValueError: If the name is not a known plan
        """
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = [plan.value for plan in cls]
            raise ValueError(f"Unknown plan '{name}', must be one of: {valid}")


_PLAN_CAPS = {
    Plan.PRO: 44_000,
    Plan.MAX5: 220_000,
    Plan.MAX20: 880_000,
}

_PLAN_NAMES = {
    Plan.PRO: "Claude Pro",
    Plan.MAX5: "Claude Max 5",
    Plan.MAX20: "Claude Max 20",
}

DEFAULT_PLAN = Plan.PRO
