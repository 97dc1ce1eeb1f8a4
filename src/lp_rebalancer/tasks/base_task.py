"""
Base class for periodic rebalancing tasks.

A task runs one evaluation cycle immediately on start and then one cycle per
check interval. Cycles run sequentially inside a single asyncio task and are
guarded by a lock, so two cycles never overlap. Errors raised inside a cycle
are routed to ``handle_error`` and never stop the loop.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config.settings import DiscoveryMode, RebalancerConfig
from ..core.exceptions import ConfigurationError
from ..core.sources import MarketDataSource, NotificationSink, PoolStateSource, PositionSource
from ..models.defi import PoolPosition, PoolState, TokenMarketData
from ..models.rebalance import EvaluationReport, MonitoringState
from ..strategies.evaluator import RangeMathEvaluationStrategy, RebalanceEvaluator
from .notifications import format_error

logger = logging.getLogger(__name__)


@dataclass
class EvaluationCycle:
    """Inputs and report of one evaluation cycle."""
    report: EvaluationReport
    positions: Dict[str, PoolPosition] = field(default_factory=dict)
    pool_states: Dict[str, PoolState] = field(default_factory=dict)
    market_data: List[TokenMarketData] = field(default_factory=list)

    def pool_state_for(self, position: PoolPosition) -> Optional[PoolState]:
        return self.pool_states.get(position.pool_address.lower())


class BaseRebalanceTask(ABC):
    """
    Periodic position monitor.

    Args:
        config: Rebalancer configuration
        position_source: Source of the wallet's positions
        pool_source: Source of pool state
        market_source: Source of token market data
        notifier: Optional notification sink
        evaluator: Evaluator, built from the config when omitted
    """

    def __init__(
        self,
        config: RebalancerConfig,
        position_source: PositionSource,
        pool_source: PoolStateSource,
        market_source: MarketDataSource,
        notifier: Optional[NotificationSink] = None,
        evaluator: Optional[RebalanceEvaluator] = None
    ):
        self.id = uuid.uuid4().hex
        self.config = config
        self.risk_profile = config.get_risk_profile()
        self.position_source = position_source
        self.pool_source = pool_source
        self.market_source = market_source
        self.notifier = notifier
        self.evaluator = evaluator or RebalanceEvaluator(
            self.risk_profile,
            RangeMathEvaluationStrategy(config.get_volatility_method()),
        )
        self.state = MonitoringState()

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._cycle_lock = asyncio.Lock()

    @abstractmethod
    def get_task_name(self) -> str:
        """Name used in logs and notifications."""
        pass

    @abstractmethod
    async def run(self, cycle: EvaluationCycle) -> None:
        """Act on the evaluations of one cycle."""
        pass

    async def handle_error(self, error: Exception) -> None:
        """
        Called with any error raised inside a cycle.

        The default sends an error notification when a sink is configured.
        """
        if self.notifier is not None:
            await self.notifier.send(format_error(self.get_task_name(), error))

    @property
    def is_running(self) -> bool:
        return (
            self._task is not None
            and not self._task.done()
            and self._stop_event is not None
            and not self._stop_event.is_set()
        )

    def start(self) -> None:
        """
        Start periodic execution. Must be called with a running event loop.

        Starting a task that is already running logs a warning and does nothing.
        """
        if self.is_running:
            logger.warning(f"{self.get_task_name()} is already running")
            return

        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self.state.is_active = True
        self.state.task_id = self.id

        logger.info(f"Starting {self.get_task_name()} (ID: {self.id})")
        logger.info(f"Check interval: {self.config.check_interval_seconds}s")

        self._task = loop.create_task(self._run_loop(self._stop_event))

    def stop(self) -> None:
        """
        Stop scheduling further cycles.

        A cycle already in flight is allowed to finish. Stopping a task that is
        not running logs a warning and does nothing.
        """
        if not self.is_running:
            logger.warning(f"{self.get_task_name()} is not running")
            return

        self._stop_event.set()
        self.state.is_active = False
        self.state.task_id = None
        logger.info(f"Stopped {self.get_task_name()}")

    async def wait_closed(self) -> None:
        """Wait for the loop, including any in-flight cycle, to finish."""
        if self._task is not None:
            await self._task

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.config.check_interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def run_once(self) -> Optional[EvaluationReport]:
        """
        Run a single evaluation cycle.

        Returns:
            The cycle's report, or None if the cycle failed or another cycle
            was still running
        """
        if self._cycle_lock.locked():
            logger.warning(f"{self.get_task_name()} cycle still running, skipping this tick")
            self.state.skipped_cycles += 1
            return None

        async with self._cycle_lock:
            return await self._execute_cycle()

    async def _execute_cycle(self) -> Optional[EvaluationReport]:
        logger.info(f"Executing {self.get_task_name()} check...")
        self.state.last_check = datetime.now()

        try:
            cycle = await self.fetch_and_evaluate()
            self.state.last_report = cycle.report
            await self.run(cycle)
            return cycle.report
        except Exception as e:
            logger.error(f"Error in {self.get_task_name()}: {e}")
            try:
                await self.handle_error(e)
            except Exception as handler_error:
                logger.error(f"Error handler of {self.get_task_name()} failed: {handler_error}")
            return None
        finally:
            self.state.cycle_count += 1

    def _filter_positions(self, positions: List[PoolPosition]) -> List[PoolPosition]:
        if self.config.discovery_mode != DiscoveryMode.SINGLE_POOL:
            return positions

        pool_address = self.config.pool_address.lower()
        filtered = [p for p in positions if p.pool_address.lower() == pool_address]
        logger.info(f"Filtered to {len(filtered)} positions for pool {self.config.pool_address}")
        return filtered

    async def fetch_and_evaluate(self) -> EvaluationCycle:
        """
        Fetch positions, pool states and market data and evaluate every position.

        A pool whose state cannot be fetched leaves its positions without pool
        state; they are reported as skipped rather than failing the cycle.
        """
        wallet_address = self.config.wallet_address
        if not wallet_address:
            raise ConfigurationError("wallet_address is required to monitor positions")

        logger.info(f"Fetching positions for wallet: {wallet_address}")
        positions = self._filter_positions(
            await self.position_source.fetch_active_positions(wallet_address)
        )
        self.state.current_positions = [p.position_id for p in positions]

        if not positions:
            logger.info("No positions found for monitoring")
            return EvaluationCycle(report=EvaluationReport(finished_at=datetime.now()))

        logger.info(f"Found {len(positions)} positions to evaluate")

        pool_states: Dict[str, PoolState] = {}
        for pool_address in dict.fromkeys(p.pool_address.lower() for p in positions):
            try:
                pool_state = await self.pool_source.fetch_pool_state(pool_address)
            except Exception as e:
                logger.error(f"Failed to fetch pool state for {pool_address}: {e}")
                continue
            if pool_state is not None:
                pool_states[pool_address] = pool_state

        tokens = list(dict.fromkeys(
            token for p in positions for token in (p.token0, p.token1)
        ))
        market_data = await self.market_source.fetch_market_data(tokens)

        report = self.evaluator.evaluate_positions(positions, pool_states, market_data)
        logger.info(
            f"Evaluated {len(report.evaluations)} positions, "
            f"{len(report.needing_rebalance)} need rebalancing, {len(report.skipped)} skipped"
        )

        return EvaluationCycle(
            report=report,
            positions={p.position_id: p for p in positions},
            pool_states=pool_states,
            market_data=market_data,
        )

    def get_status(self) -> Dict[str, Any]:
        """Task status for the host process."""
        return {
            "task_id": self.id,
            "task_name": self.get_task_name(),
            "is_running": self.is_running,
            "timestamp": datetime.now().isoformat(),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            **self.get_status(),
            "mode": self.config.mode.value,
            "risk_profile": self.risk_profile.name.value,
            "check_interval_seconds": self.config.check_interval_seconds,
            "monitoring_state": self.state.to_dict(),
        }
