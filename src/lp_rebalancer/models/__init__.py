"""
Data models module.

Contains pool, position and market data models, the evaluation artifacts
produced by the rebalancer, and strict schemas for external payloads.
"""

from .defi import PricePoint, PoolPosition, PoolState, TokenMarketData
from .rebalance import (
    EvaluationState,
    PriceRange,
    OptimalRange,
    RebalanceEvaluation,
    SkippedPosition,
    EvaluationReport,
    TokenAmounts,
    RebalancePlan,
    ExecutionResult,
    MonitoringState,
)

__all__ = [
    # DeFi models
    "PricePoint",
    "PoolPosition",
    "PoolState",
    "TokenMarketData",
    # Rebalance artifacts
    "EvaluationState",
    "PriceRange",
    "OptimalRange",
    "RebalanceEvaluation",
    "SkippedPosition",
    "EvaluationReport",
    "TokenAmounts",
    "RebalancePlan",
    "ExecutionResult",
    "MonitoringState",
]
