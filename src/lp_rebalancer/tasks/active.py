"""
Active mode task: plans and submits rebalances for positions that need them.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from ..config.settings import RebalancerConfig
from ..core.exceptions import MissingMarketDataError, RebalancerError
from ..core.sources import (
    ExecutionSink,
    MarketDataSource,
    NotificationSink,
    PoolStateSource,
    PositionSource,
)
from ..models.rebalance import ExecutionResult, RebalanceEvaluation
from ..strategies.evaluator import RebalanceEvaluator, find_market_data, plan_rebalance
from .base_task import BaseRebalanceTask, EvaluationCycle
from .notifications import format_rebalance_executed

logger = logging.getLogger(__name__)


class ActiveModeTask(BaseRebalanceTask):
    """
    Monitor that executes rebalances through an execution sink.

    A position is rebalanced at most once per the risk profile's minimum
    rebalance interval. Failures are isolated per position.
    """

    def __init__(
        self,
        config: RebalancerConfig,
        position_source: PositionSource,
        pool_source: PoolStateSource,
        market_source: MarketDataSource,
        execution_sink: ExecutionSink,
        notifier: Optional[NotificationSink] = None,
        evaluator: Optional[RebalanceEvaluator] = None
    ):
        super().__init__(config, position_source, pool_source, market_source, notifier, evaluator)
        self.execution_sink = execution_sink
        self.last_rebalance: Dict[str, datetime] = {}
        self.results: Dict[str, ExecutionResult] = {}

    def get_task_name(self) -> str:
        return "ActiveModeTask"

    def in_cooldown(self, position_id: str, now: Optional[datetime] = None) -> bool:
        """Whether a position was rebalanced too recently to rebalance again."""
        last = self.last_rebalance.get(position_id)
        if last is None:
            return False
        now = now or datetime.now()
        cooldown = timedelta(seconds=self.risk_profile.min_rebalance_interval_seconds)
        return now - last < cooldown

    async def run(self, cycle: EvaluationCycle) -> None:
        needing_rebalance = cycle.report.needing_rebalance
        if not needing_rebalance:
            logger.info("No positions need rebalancing")
            return

        logger.info(f"{len(needing_rebalance)} positions need rebalancing")
        for evaluation in needing_rebalance:
            if self.in_cooldown(evaluation.position_id):
                logger.info(
                    f"Position {evaluation.position_id} was rebalanced less than "
                    f"{self.risk_profile.min_rebalance_interval_seconds}s ago, skipping"
                )
                continue

            try:
                await self.rebalance_position(evaluation, cycle)
            except RebalancerError as e:
                logger.error(f"Rebalance of position {evaluation.position_id} failed [{e.kind}]: {e.message}")
                self.results[evaluation.position_id] = ExecutionResult(success=False, error=e.message)
            except Exception as e:
                logger.error(f"Rebalance of position {evaluation.position_id} failed: {e}")
                self.results[evaluation.position_id] = ExecutionResult(success=False, error=str(e))

    async def rebalance_position(self, evaluation: RebalanceEvaluation, cycle: EvaluationCycle) -> None:
        """Plan, submit and report a rebalance for one position."""
        position = cycle.positions[evaluation.position_id]
        pool_state = cycle.pool_state_for(position)
        token0_data = find_market_data(cycle.market_data, position.token0, position.token0_symbol)
        token1_data = find_market_data(cycle.market_data, position.token1, position.token1_symbol)
        if pool_state is None or token0_data is None or token1_data is None:
            raise MissingMarketDataError(
                f"Market data disappeared for position {position.position_id}",
                position_id=position.position_id,
            )

        plan = plan_rebalance(
            evaluation,
            position,
            pool_state,
            token0_data,
            token1_data,
            tolerance_pct=self.config.usd_value_tolerance_pct,
            include_fees=self.config.include_fees_in_value,
            max_slippage=self.risk_profile.max_slippage,
        )

        if plan.previous_usd_value < self.risk_profile.min_position_usd:
            logger.info(
                f"Position {position.position_id} worth ${plan.previous_usd_value:,.2f} is below "
                f"the ${self.risk_profile.min_position_usd:,.0f} minimum, skipping"
            )
            return

        logger.info(
            f"Rebalancing position {position.position_id} into ticks "
            f"[{plan.evaluation.suggested_range.tick_lower}, {plan.evaluation.suggested_range.tick_upper}] "
            f"with ${plan.new_usd_value:,.2f}"
        )
        result = await self.execution_sink.execute_rebalance(plan)
        self.results[position.position_id] = result

        if result.success:
            self.last_rebalance[position.position_id] = datetime.now()
            logger.info(f"Rebalance of position {position.position_id} submitted: {result.transaction_hash}")
        else:
            logger.error(f"Rebalance of position {position.position_id} rejected: {result.error}")

        if self.notifier is not None:
            try:
                await self.notifier.send(format_rebalance_executed(plan, result))
            except Exception as e:
                logger.error(f"Failed to send rebalance notification: {e}")
