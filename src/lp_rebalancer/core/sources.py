"""
Interfaces to the external collaborators of the rebalancing core.

Transports live outside this package; implementations only need to return
the data model types.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.defi import PoolPosition, PoolState, TokenMarketData
from ..models.rebalance import ExecutionResult, RebalancePlan


class PositionSource(ABC):
    """Source of a wallet's active liquidity positions."""

    @abstractmethod
    async def fetch_active_positions(self, wallet_address: str) -> List[PoolPosition]:
        """Fetch all active positions held by a wallet."""
        pass


class PoolStateSource(ABC):
    """Source of current pool state."""

    @abstractmethod
    async def fetch_pool_state(self, pool_address: str) -> Optional[PoolState]:
        """Fetch a pool snapshot, or None if the pool is unknown."""
        pass


class MarketDataSource(ABC):
    """Source of token prices and price history."""

    @abstractmethod
    async def fetch_market_data(self, tokens: List[str]) -> List[TokenMarketData]:
        """
        Fetch market data for tokens.

        Args:
            tokens: Token addresses or symbols

        Returns:
            Market data for the tokens that are known; unknown tokens are omitted
        """
        pass


class ExecutionSink(ABC):
    """Builds, signs and submits withdraw and redeposit transactions."""

    @abstractmethod
    async def execute_rebalance(self, plan: RebalancePlan) -> ExecutionResult:
        """Execute a rebalance plan."""
        pass


class NotificationSink(ABC):
    """Receives human readable rebalance summaries."""

    @abstractmethod
    async def send(self, message: str) -> None:
        """Deliver a message."""
        pass
