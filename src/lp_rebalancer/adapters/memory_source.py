"""
In-memory collaborators for tests, dry runs and snapshot replay.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core.exceptions import PayloadValidationError
from ..core.sources import ExecutionSink, MarketDataSource, PoolStateSource, PositionSource
from ..models.defi import PoolPosition, PoolState, TokenMarketData
from ..models.payloads import parse_snapshot
from ..models.rebalance import ExecutionResult, RebalancePlan

logger = logging.getLogger(__name__)


class InMemoryDataSource(PositionSource, PoolStateSource, MarketDataSource):
    """Position, pool and market data source backed by dictionaries."""

    def __init__(self):
        self.positions: Dict[str, List[PoolPosition]] = {}
        self.pool_states: Dict[str, PoolState] = {}
        self.market_data: List[TokenMarketData] = []

    async def fetch_active_positions(self, wallet_address: str) -> List[PoolPosition]:
        """Get positions held by a wallet."""
        return list(self.positions.get(wallet_address.lower(), []))

    async def fetch_pool_state(self, pool_address: str) -> Optional[PoolState]:
        """Get pool state from cache."""
        return self.pool_states.get(pool_address.lower())

    async def fetch_market_data(self, tokens: List[str]) -> List[TokenMarketData]:
        """Get market data for the known tokens among ``tokens``."""
        return [
            data for data in self.market_data
            if any(data.matches(token) for token in tokens)
        ]

    def add_position(self, wallet_address: str, position: PoolPosition) -> None:
        """Add a position to a wallet."""
        self.positions.setdefault(wallet_address.lower(), []).append(position)

    def update_pool_state(self, pool_state: PoolState) -> None:
        """Update pool state in cache."""
        self.pool_states[pool_state.pool_address.lower()] = pool_state

    def update_market_data(self, data: TokenMarketData) -> None:
        """Replace market data for a token."""
        self.market_data = [
            existing for existing in self.market_data
            if not (existing.symbol == data.symbol and existing.address.lower() == data.address.lower())
        ]
        self.market_data.append(data)


class SnapshotDataSource(InMemoryDataSource):
    """
    Data source loaded from a JSON snapshot.

    A snapshot holds ``positions``, ``pool_states`` and ``market_data`` lists
    and an optional ``wallet_address`` owning the positions.
    """

    def __init__(self, wallet_address: Optional[str] = None):
        super().__init__()
        self.wallet_address = wallet_address

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SnapshotDataSource":
        """Build a source from a decoded snapshot."""
        snapshot = parse_snapshot(data)
        source = cls(wallet_address=snapshot.wallet_address)

        for payload in snapshot.positions:
            source.add_position(snapshot.wallet_address or "", payload.to_model())
        for payload in snapshot.pool_states:
            source.update_pool_state(payload.to_model())
        for payload in snapshot.market_data:
            source.update_market_data(payload.to_model())

        logger.info(
            f"Loaded snapshot with {len(snapshot.positions)} positions, "
            f"{len(snapshot.pool_states)} pools, {len(snapshot.market_data)} tokens"
        )
        return source

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SnapshotDataSource":
        """Load a snapshot from a JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PayloadValidationError(f"Snapshot {path} is not valid JSON: {e}") from e
        return cls.from_dict(data)

    async def fetch_active_positions(self, wallet_address: str) -> List[PoolPosition]:
        # Snapshots without a wallet serve their positions to any wallet
        if self.wallet_address is None:
            return list(self.positions.get("", []))
        return await super().fetch_active_positions(wallet_address)

    @property
    def all_positions(self) -> List[PoolPosition]:
        return [position for positions in self.positions.values() for position in positions]


class DryRunExecutionSink(ExecutionSink):
    """Execution sink that records plans without submitting anything."""

    def __init__(self):
        self.plans: List[RebalancePlan] = []

    async def execute_rebalance(self, plan: RebalancePlan) -> ExecutionResult:
        self.plans.append(plan)
        logger.info(f"[dry-run] Would rebalance: {json.dumps(plan.to_dict())}")
        return ExecutionResult(success=True, transaction_hash=f"dry-run-{uuid.uuid4().hex[:16]}")
