"""
Rebalance evaluation for concentrated liquidity positions.

The evaluator walks a batch of positions, isolating per-position failures so
one bad position never aborts the batch. The decision itself is delegated to
an ``EvaluationStrategy``; ``RangeMathEvaluationStrategy`` is the
deterministic implementation.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Union

from ..core.exceptions import (
    InsufficientDataError,
    InvalidRangeError,
    MissingMarketDataError,
    RebalancerError,
    ValuePreservationError,
)
from ..core.liquidity_math import (
    calculate_optimal_amounts,
    calculate_previous_usd_value,
    calculate_usd_value,
    validate_usd_value_preservation,
)
from ..core.tick_math import (
    calculate_price_deviation,
    calculate_price_range,
    calculate_utilization_rate,
    is_in_range,
)
from ..models.defi import PoolPosition, PoolState, PricePoint, TokenMarketData
from ..models.rebalance import (
    EvaluationReport,
    EvaluationState,
    OptimalRange,
    RebalanceEvaluation,
    RebalancePlan,
    SkippedPosition,
)
from .range_calculator import (
    assess_risk,
    calculate_new_tick_range,
    calculate_position_health,
    calculate_range_width,
    calculate_tick_range_for_width,
    calculate_width_mismatch,
    current_sqrt_price,
    estimate_apr_improvement,
    refresh_position,
)
from .risk_profiles import RiskProfile, VolatilityMethod
from .volatility import calculate_pair_price_series, calculate_volatility

logger = logging.getLogger(__name__)

IN_RANGE_REASON = "Position is in range and optimally sized"


class EvaluationStrategy(ABC):
    """Decides whether a single position needs rebalancing."""

    name = "base"

    @abstractmethod
    def evaluate(
        self,
        position: PoolPosition,
        pool_state: PoolState,
        token0_data: TokenMarketData,
        token1_data: TokenMarketData,
        risk_profile: RiskProfile
    ) -> RebalanceEvaluation:
        """Evaluate one position against the current pool state."""
        pass


class RangeMathEvaluationStrategy(EvaluationStrategy):
    """
    Deterministic evaluation from tick math and a volatility-sized range.

    A position is rebalanced when it is out of range, when the pool tick has
    drifted from the centre of the range towards a bound, or when its width
    differs from the optimal width. Drift and width mismatch are both compared
    with the profile's rebalance threshold.
    """

    name = "range_math"

    def __init__(self, volatility_method: Optional[Union[VolatilityMethod, str]] = None):
        self.volatility_method = (
            VolatilityMethod(volatility_method) if isinstance(volatility_method, str)
            else volatility_method
        )

    def _lookback_series(
        self,
        token0_data: TokenMarketData,
        token1_data: TokenMarketData,
        risk_profile: RiskProfile
    ) -> List[PricePoint]:
        series = calculate_pair_price_series(token0_data, token1_data)
        if not series:
            return series
        cutoff = series[-1].timestamp - timedelta(hours=risk_profile.volatility_lookback_hours)
        return [point for point in series if point.timestamp >= cutoff]

    def evaluate(
        self,
        position: PoolPosition,
        pool_state: PoolState,
        token0_data: TokenMarketData,
        token1_data: TokenMarketData,
        risk_profile: RiskProfile
    ) -> RebalanceEvaluation:
        decimals0 = pool_state.decimals0
        decimals1 = pool_state.decimals1
        current_price = pool_state.price

        current_price_range = calculate_price_range(
            position.tick_lower, position.tick_upper, decimals0, decimals1
        )
        price_deviation = calculate_price_deviation(
            current_price, current_price_range.lower, current_price_range.upper
        )
        current_width = calculate_range_width(current_price_range, current_price)

        method = self.volatility_method or risk_profile.volatility_method
        volatility: Optional[float]
        try:
            metrics = calculate_volatility(
                self._lookback_series(token0_data, token1_data, risk_profile), method
            )
            volatility = metrics.scaled_to(risk_profile.volatility_lookback_hours)
            suggested = calculate_new_tick_range(
                current_price, volatility, risk_profile, decimals0, decimals1,
                pool_state.tick_spacing
            )
        except InsufficientDataError as e:
            logger.warning(
                f"Position {position.position_id}: {e}; "
                f"using default width {risk_profile.default_range_width:.0%}"
            )
            volatility = None
            suggested = calculate_tick_range_for_width(
                current_price, risk_profile.default_range_width, decimals0, decimals1,
                pool_state.tick_spacing
            )

        optimal_width = suggested.width_percent
        width_mismatch = calculate_width_mismatch(current_width, optimal_width)
        out_of_range = (
            not is_in_range(pool_state.tick, position.tick_lower, position.tick_upper)
            or price_deviation > 0
        )
        utilization = calculate_utilization_rate(
            pool_state.tick, position.tick_lower, position.tick_upper
        )
        # 0 at the centre of the range, 1 at either bound
        centre_offset = abs(2 * utilization - 1)

        if out_of_range:
            state = EvaluationState.OUT_OF_RANGE_NEEDS_REBALANCE
            reason = (
                f"Position is out of range (tick {pool_state.tick} outside "
                f"[{position.tick_lower}, {position.tick_upper}], "
                f"deviation {price_deviation:.1%})"
            )
        elif centre_offset >= risk_profile.rebalance_threshold:
            state = EvaluationState.IN_RANGE_OFF_CENTRE
            reason = (
                f"Position is in range but off centre (utilization {utilization:.1%}, "
                f"offset {centre_offset:.1%} >= threshold {risk_profile.rebalance_threshold:.1%})"
            )
        elif width_mismatch >= risk_profile.rebalance_threshold:
            state = EvaluationState.IN_RANGE_SUBOPTIMAL_WIDTH
            reason = (
                f"Position is in range but has suboptimal width "
                f"({current_width:.1%} vs optimal {optimal_width:.1%}, mismatch "
                f"{width_mismatch:.1%} >= threshold {risk_profile.rebalance_threshold:.1%})"
            )
        else:
            state = EvaluationState.IN_RANGE_NO_ACTION
            reason = IN_RANGE_REASON

        apr_improvement = estimate_apr_improvement(
            current_sqrt_price(pool_state),
            position.tick_lower,
            position.tick_upper,
            suggested.tick_lower,
            suggested.tick_upper,
        )

        return RebalanceEvaluation(
            position_id=position.position_id,
            pool_address=position.pool_address,
            current_range=OptimalRange(
                tick_lower=position.tick_lower,
                tick_upper=position.tick_upper,
                price_range=current_price_range,
                width_percent=current_width,
            ),
            suggested_range=suggested,
            needs_rebalance=state != EvaluationState.IN_RANGE_NO_ACTION,
            reason=reason,
            estimated_apr_improvement=apr_improvement,
            price_deviation=price_deviation,
            state=state,
            current_price=current_price,
            current_tick=pool_state.tick,
            volatility=volatility,
            volatility_method=method.value if volatility is not None else None,
            current_width_percent=current_width,
            optimal_width_percent=optimal_width,
            risk_assessment=assess_risk(price_deviation),
            health_score=calculate_position_health(position, pool_state),
            token_pair=position.token_pair,
            chain_id=position.chain_id,
        )


def find_market_data(
    market_data: Iterable[TokenMarketData],
    address: str,
    symbol: Optional[str] = None
) -> Optional[TokenMarketData]:
    """Find a token's market data by address, falling back to symbol."""
    candidates = list(market_data)
    for data in candidates:
        if data.address and data.address.lower() == address.lower():
            return data
    if symbol:
        for data in candidates:
            if data.symbol == symbol:
                return data
    return None


class RebalanceEvaluator:
    """
    Evaluates batches of positions with one risk profile and strategy.

    Args:
        risk_profile: Risk profile sizing ranges and thresholds
        strategy: Evaluation strategy, range math by default
    """

    def __init__(self, risk_profile: RiskProfile, strategy: Optional[EvaluationStrategy] = None):
        risk_profile.validate()
        self.risk_profile = risk_profile
        self.strategy = strategy or RangeMathEvaluationStrategy()

    def evaluate_position(
        self,
        position: PoolPosition,
        pool_state: Optional[PoolState],
        market_data: Iterable[TokenMarketData]
    ) -> RebalanceEvaluation:
        """
        Evaluate a single position.

        Raises:
            MissingMarketDataError: If the pool state or either token's market data is missing
            InvalidRangeError: If the position's tick range is empty
        """
        if pool_state is None:
            raise MissingMarketDataError(
                f"No pool state for pool {position.pool_address}",
                position_id=position.position_id,
            )

        market_data = list(market_data)
        token0_data = find_market_data(market_data, position.token0, position.token0_symbol)
        token1_data = find_market_data(market_data, position.token1, position.token1_symbol)
        missing = [
            token for token, data in ((position.token0, token0_data), (position.token1, token1_data))
            if data is None
        ]
        if missing:
            raise MissingMarketDataError(
                f"No market data for {', '.join(missing)}",
                position_id=position.position_id,
            )

        if position.tick_lower >= position.tick_upper:
            raise InvalidRangeError(
                f"Tick range [{position.tick_lower}, {position.tick_upper}] is empty",
                position_id=position.position_id,
            )
        position.validate()
        pool_state.validate()
        refreshed = refresh_position(position, pool_state)
        return self.strategy.evaluate(
            refreshed, pool_state, token0_data, token1_data, self.risk_profile
        )

    def evaluate_positions(
        self,
        positions: List[PoolPosition],
        pool_states: Dict[str, PoolState],
        market_data: List[TokenMarketData]
    ) -> EvaluationReport:
        """
        Evaluate a batch of positions.

        Args:
            positions: Positions to evaluate
            pool_states: Pool state keyed by lowercase pool address
            market_data: Market data for the positions' tokens

        Returns:
            EvaluationReport with evaluations and skipped-position diagnostics
        """
        report = EvaluationReport()

        for position in positions:
            pool_state = pool_states.get(position.pool_address.lower())
            try:
                evaluation = self.evaluate_position(position, pool_state, market_data)
            except RebalancerError as e:
                logger.warning(f"Skipping position {position.position_id} [{e.kind}]: {e.message}")
                report.skipped.append(
                    SkippedPosition(position.position_id, e.kind, e.message)
                )
                continue
            except Exception as e:
                logger.exception(f"Unexpected error evaluating position {position.position_id}")
                report.skipped.append(
                    SkippedPosition(position.position_id, type(e).__name__, str(e))
                )
                continue

            logger.info(
                f"Position {position.position_id} ({evaluation.token_pair}): "
                f"needs_rebalance={evaluation.needs_rebalance} - {evaluation.reason}"
            )
            report.evaluations.append(evaluation)

        report.finished_at = datetime.now()
        return report


def plan_rebalance(
    evaluation: RebalanceEvaluation,
    position: PoolPosition,
    pool_state: PoolState,
    token0_data: TokenMarketData,
    token1_data: TokenMarketData,
    tolerance_pct: float = 1.0,
    include_fees: bool = False,
    max_slippage: float = 0.0
) -> RebalancePlan:
    """
    Size a USD-value-preserving redeploy into the suggested range.

    Args:
        evaluation: Evaluation whose suggested range is the target
        position: Position being rebalanced
        pool_state: Current pool state
        token0_data: Market data for token0
        token1_data: Market data for token1
        tolerance_pct: Allowed USD value drift in percent
        include_fees: Count uncollected fees in the value to preserve
        max_slippage: Slippage bound handed to the execution sink

    Returns:
        RebalancePlan for an execution sink

    Raises:
        PriceOutsideRangeError: If the price is not inside the suggested range
        ValuePreservationError: If the sized amounts drift beyond the tolerance
    """
    refreshed = refresh_position(position, pool_state)
    decimals0 = pool_state.decimals0
    decimals1 = pool_state.decimals1

    previous_usd_value = calculate_previous_usd_value(
        refreshed, token0_data.price_usd, token1_data.price_usd, decimals0, decimals1,
        include_fees=include_fees,
    )
    amounts = calculate_optimal_amounts(
        previous_usd_value,
        current_sqrt_price(pool_state),
        evaluation.suggested_range.tick_lower,
        evaluation.suggested_range.tick_upper,
        token0_data.price_usd,
        token1_data.price_usd,
        decimals0,
        decimals1,
    )
    new_usd_value = calculate_usd_value(
        amounts.amount0, amounts.amount1, token0_data.price_usd, token1_data.price_usd,
        decimals0, decimals1,
    )

    if not validate_usd_value_preservation(previous_usd_value, new_usd_value, tolerance_pct):
        raise ValuePreservationError(
            f"Redeploy value ${new_usd_value:,.2f} differs from ${previous_usd_value:,.2f} "
            f"by more than {tolerance_pct}%",
            position_id=position.position_id,
        )

    return RebalancePlan(
        evaluation=evaluation,
        amounts=amounts,
        previous_usd_value=previous_usd_value,
        new_usd_value=new_usd_value,
        max_slippage=max_slippage,
    )
