"""
Evaluation and planning artifacts produced by the rebalancing core.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class EvaluationState(Enum):
    """Decision state of a single position."""
    IN_RANGE_NO_ACTION = "in_range_no_action"
    IN_RANGE_OFF_CENTRE = "in_range_off_centre"
    IN_RANGE_SUBOPTIMAL_WIDTH = "in_range_suboptimal_width"
    OUT_OF_RANGE_NEEDS_REBALANCE = "out_of_range_needs_rebalance"


@dataclass(frozen=True)
class PriceRange:
    """Lower and upper price bounds."""
    lower: float
    upper: float

    @property
    def width(self) -> float:
        return self.upper - self.lower

    @property
    def midpoint(self) -> float:
        return (self.lower + self.upper) / 2

    def contains(self, price: float) -> bool:
        return self.lower <= price <= self.upper

    def to_dict(self) -> dict:
        return {"lower": self.lower, "upper": self.upper}


@dataclass(frozen=True)
class OptimalRange:
    """A tick range together with its price bounds."""
    tick_lower: int
    tick_upper: int
    price_range: PriceRange
    width_percent: Optional[float] = None

    def validate(self, tick_spacing: int = 1) -> None:
        """Validate the range against a pool tick grid."""
        if self.tick_lower >= self.tick_upper:
            raise ValueError("Lower tick must be less than upper tick")
        if self.tick_lower % tick_spacing or self.tick_upper % tick_spacing:
            raise ValueError("Range bounds must be multiples of the tick spacing")

    def to_dict(self) -> dict:
        return {
            "tick_lower": self.tick_lower,
            "tick_upper": self.tick_upper,
            "price_range": self.price_range.to_dict(),
            "width_percent": self.width_percent
        }


@dataclass(frozen=True)
class RebalanceEvaluation:
    """Decision artifact for one position in one evaluation cycle."""
    position_id: str
    pool_address: str
    current_range: OptimalRange
    suggested_range: OptimalRange
    needs_rebalance: bool
    reason: str
    estimated_apr_improvement: float
    price_deviation: float
    state: EvaluationState
    current_price: float
    current_tick: int
    volatility: Optional[float] = None
    volatility_method: Optional[str] = None
    current_width_percent: float = 0.0
    optimal_width_percent: float = 0.0
    risk_assessment: str = "Low"
    health_score: float = 0.0
    token_pair: str = ""
    chain_id: int = 42161
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "position_id": self.position_id,
            "pool_address": self.pool_address,
            "current_range": self.current_range.to_dict(),
            "suggested_range": self.suggested_range.to_dict(),
            "needs_rebalance": self.needs_rebalance,
            "reason": self.reason,
            "estimated_apr_improvement": self.estimated_apr_improvement,
            "price_deviation": self.price_deviation,
            "state": self.state.value,
            "current_price": self.current_price,
            "current_tick": self.current_tick,
            "volatility": self.volatility,
            "volatility_method": self.volatility_method,
            "current_width_percent": self.current_width_percent,
            "optimal_width_percent": self.optimal_width_percent,
            "risk_assessment": self.risk_assessment,
            "health_score": self.health_score,
            "token_pair": self.token_pair,
            "chain_id": self.chain_id,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass(frozen=True)
class SkippedPosition:
    """Diagnostic for a position that could not be evaluated this cycle."""
    position_id: str
    error_kind: str
    message: str

    def to_dict(self) -> dict:
        return {
            "position_id": self.position_id,
            "error_kind": self.error_kind,
            "message": self.message
        }


@dataclass
class EvaluationReport:
    """Evaluations of one cycle plus the positions that were skipped."""
    evaluations: List[RebalanceEvaluation] = field(default_factory=list)
    skipped: List[SkippedPosition] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def needing_rebalance(self) -> List[RebalanceEvaluation]:
        return [evaluation for evaluation in self.evaluations if evaluation.needs_rebalance]

    @property
    def total_positions(self) -> int:
        return len(self.evaluations) + len(self.skipped)

    def to_dict(self) -> dict:
        return {
            "evaluations": [evaluation.to_dict() for evaluation in self.evaluations],
            "skipped": [skipped.to_dict() for skipped in self.skipped],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "total_positions": self.total_positions,
            "needing_rebalance": len(self.needing_rebalance)
        }


@dataclass(frozen=True)
class TokenAmounts:
    """Token amounts and liquidity, all in base units."""
    amount0: int
    amount1: int
    liquidity: int

    def to_dict(self) -> dict:
        return {
            "amount0": str(self.amount0),
            "amount1": str(self.amount1),
            "liquidity": str(self.liquidity)
        }


@dataclass(frozen=True)
class RebalancePlan:
    """Everything an execution sink needs to withdraw and redeposit a position."""
    evaluation: RebalanceEvaluation
    amounts: TokenAmounts
    previous_usd_value: float
    new_usd_value: float
    max_slippage: float = 0.0
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def value_drift_pct(self) -> float:
        if self.previous_usd_value == 0:
            return 0.0
        return (self.new_usd_value - self.previous_usd_value) / self.previous_usd_value * 100

    def to_dict(self) -> dict:
        return {
            "position_id": self.evaluation.position_id,
            "pool_address": self.evaluation.pool_address,
            "suggested_range": self.evaluation.suggested_range.to_dict(),
            "amounts": self.amounts.to_dict(),
            "previous_usd_value": self.previous_usd_value,
            "new_usd_value": self.new_usd_value,
            "max_slippage": self.max_slippage,
            "created_at": self.created_at.isoformat()
        }


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome reported by an execution sink."""
    success: bool
    transaction_hash: Optional[str] = None
    error: Optional[str] = None


@dataclass
class MonitoringState:
    """Loop state, written only by the owning task between cycles."""
    is_active: bool = False
    task_id: Optional[str] = None
    current_positions: List[str] = field(default_factory=list)
    last_check: Optional[datetime] = None
    cycle_count: int = 0
    skipped_cycles: int = 0
    last_report: Optional[EvaluationReport] = None

    def to_dict(self) -> dict:
        return {
            "is_active": self.is_active,
            "task_id": self.task_id,
            "current_positions": list(self.current_positions),
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "cycle_count": self.cycle_count,
            "skipped_cycles": self.skipped_cycles,
            "last_report": self.last_report.to_dict() if self.last_report else None
        }
