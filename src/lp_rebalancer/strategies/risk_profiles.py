"""
Risk profiles controlling range width and rebalance eagerness.

Higher risk means wider ranges and a larger tolerated width mismatch before a
rebalance triggers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Union


class RiskLevel(Enum):
    """Risk levels, in ascending order."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class VolatilityMethod(Enum):
    """Volatility estimators."""
    STANDARD = "standard"
    EWMA = "ewma"
    GARCH = "garch"


@dataclass(frozen=True)
class RiskProfile:
    """Named policy bundle. Range widths are total widths as a fraction of price."""

    name: RiskLevel
    min_range_width: float
    max_range_width: float
    default_range_width: float
    volatility_multiplier: float
    rebalance_threshold: float
    volatility_method: VolatilityMethod
    volatility_lookback_hours: int
    min_rebalance_interval_seconds: int
    max_slippage: float
    min_position_usd: float

    def validate(self) -> None:
        """Validate profile parameters."""
        if self.min_range_width <= 0:
            raise ValueError("Min range width must be positive")

        if self.max_range_width < self.min_range_width:
            raise ValueError("Max range width must be at least the min range width")

        if not (self.min_range_width <= self.default_range_width <= self.max_range_width):
            raise ValueError("Default range width must lie between min and max widths")

        if self.volatility_multiplier <= 0:
            raise ValueError("Volatility multiplier must be positive")

        if self.rebalance_threshold <= 0:
            raise ValueError("Rebalance threshold must be positive")

        if self.min_rebalance_interval_seconds < 0:
            raise ValueError("Rebalance interval cannot be negative")

        if not (0 <= self.max_slippage < 1):
            raise ValueError("Max slippage must be between 0 and 1")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name.value,
            "min_range_width": self.min_range_width,
            "max_range_width": self.max_range_width,
            "default_range_width": self.default_range_width,
            "volatility_multiplier": self.volatility_multiplier,
            "rebalance_threshold": self.rebalance_threshold,
            "volatility_method": self.volatility_method.value,
            "volatility_lookback_hours": self.volatility_lookback_hours,
            "min_rebalance_interval_seconds": self.min_rebalance_interval_seconds,
            "max_slippage": self.max_slippage,
            "min_position_usd": self.min_position_usd
        }


RISK_PROFILES: Dict[RiskLevel, RiskProfile] = {
    RiskLevel.LOW: RiskProfile(
        name=RiskLevel.LOW,
        min_range_width=0.10,
        max_range_width=0.50,
        default_range_width=0.15,
        volatility_multiplier=2.0,
        rebalance_threshold=0.25,
        volatility_method=VolatilityMethod.STANDARD,
        volatility_lookback_hours=168,
        min_rebalance_interval_seconds=86400,
        max_slippage=0.005,
        min_position_usd=1000.0,
    ),
    RiskLevel.MEDIUM: RiskProfile(
        name=RiskLevel.MEDIUM,
        min_range_width=0.20,
        max_range_width=0.80,
        default_range_width=0.25,
        volatility_multiplier=3.0,
        rebalance_threshold=0.50,
        volatility_method=VolatilityMethod.EWMA,
        volatility_lookback_hours=72,
        min_rebalance_interval_seconds=21600,
        max_slippage=0.01,
        min_position_usd=500.0,
    ),
    RiskLevel.HIGH: RiskProfile(
        name=RiskLevel.HIGH,
        min_range_width=0.30,
        max_range_width=1.20,
        default_range_width=0.40,
        volatility_multiplier=4.0,
        rebalance_threshold=0.75,
        volatility_method=VolatilityMethod.GARCH,
        volatility_lookback_hours=24,
        min_rebalance_interval_seconds=3600,
        max_slippage=0.02,
        min_position_usd=100.0,
    ),
}


def get_risk_profile(name: Union[RiskLevel, str]) -> RiskProfile:
    """
    Look up a risk profile.

    Args:
        name: RiskLevel or its string value (case-insensitive)

    Returns:
        The matching RiskProfile

    Raises:
        ValueError: If no profile has that name
    """
    if isinstance(name, RiskLevel):
        return RISK_PROFILES[name]

    try:
        level = RiskLevel(str(name).strip().lower())
    except ValueError:
        available = ", ".join(get_available_risk_profiles())
        raise ValueError(f"Unknown risk profile '{name}'. Available: {available}") from None
    return RISK_PROFILES[level]


def get_available_risk_profiles() -> List[str]:
    """Profile names in ascending risk order."""
    return [level.value for level in RiskLevel]
