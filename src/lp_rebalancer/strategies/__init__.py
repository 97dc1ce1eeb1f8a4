"""
Rebalancing strategies module.

This module contains:
- Risk profiles
- Volatility estimators
- Range calculation and rebalance evaluation
"""

from .risk_profiles import RiskLevel, RiskProfile, VolatilityMethod, get_risk_profile
from .volatility import VolatilityMetrics, calculate_volatility, get_volatility_adjusted_range
from .range_calculator import calculate_new_tick_range, calculate_position_health
from .evaluator import (
    EvaluationStrategy, RangeMathEvaluationStrategy, RebalanceEvaluator, plan_rebalance
)

__all__ = [
    'RiskLevel',
    'RiskProfile',
    'VolatilityMethod',
    'get_risk_profile',
    'VolatilityMetrics',
    'calculate_volatility',
    'get_volatility_adjusted_range',
    'calculate_new_tick_range',
    'calculate_position_health',
    'EvaluationStrategy',
    'RangeMathEvaluationStrategy',
    'RebalanceEvaluator',
    'plan_rebalance',
]
