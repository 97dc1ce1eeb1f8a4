"""
DeFi-specific data models for concentrated liquidity positions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class PricePoint:
    """A single observation in a price series."""

    timestamp: datetime
    price: float

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "price": self.price
        }


@dataclass
class PoolPosition:
    """A concentrated liquidity position. Amounts are in token base units."""

    position_id: str
    pool_address: str
    token0: str
    token1: str
    tick_lower: int
    tick_upper: int
    liquidity: int
    amount0: int = 0
    amount1: int = 0
    fees0: int = 0
    fees1: int = 0
    is_in_range: bool = False
    chain_id: int = 42161
    token0_symbol: Optional[str] = None
    token1_symbol: Optional[str] = None

    def validate(self) -> None:
        """Validate position data."""
        if not self.position_id:
            raise ValueError("Position ID cannot be empty")

        if not self.pool_address:
            raise ValueError("Pool address cannot be empty")

        if self.tick_lower >= self.tick_upper:
            raise ValueError("Lower tick must be less than upper tick")

        if self.liquidity < 0:
            raise ValueError("Liquidity cannot be negative")

        if min(self.amount0, self.amount1, self.fees0, self.fees1) < 0:
            raise ValueError("Token amounts and fees cannot be negative")

    @property
    def token_pair(self) -> str:
        """Human readable pair label."""
        if self.token0_symbol and self.token1_symbol:
            return f"{self.token0_symbol}/{self.token1_symbol}"
        return f"{self.token0[:6]}.../{self.token1[:6]}..."

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "position_id": self.position_id,
            "pool_address": self.pool_address,
            "token0": self.token0,
            "token1": self.token1,
            "tick_lower": self.tick_lower,
            "tick_upper": self.tick_upper,
            "liquidity": str(self.liquidity),
            "amount0": str(self.amount0),
            "amount1": str(self.amount1),
            "fees0": str(self.fees0),
            "fees1": str(self.fees1),
            "is_in_range": self.is_in_range,
            "chain_id": self.chain_id,
            "token0_symbol": self.token0_symbol,
            "token1_symbol": self.token1_symbol
        }


@dataclass
class PoolState:
    """Snapshot of a pool's market condition."""

    pool_address: str
    token0: str
    token1: str
    tick: int
    price: float  # token0 priced in token1, decimals applied
    decimals0: int
    decimals1: int
    tick_spacing: int = 1
    liquidity: int = 0
    fee: int = 3000  # hundredths of a basis point
    sqrt_price_x96: Optional[int] = None
    tvl_usd: float = 0.0
    volume_24h_usd: float = 0.0
    fees_earned_24h_usd: float = 0.0

    def validate(self) -> None:
        """Validate pool state."""
        if not self.pool_address:
            raise ValueError("Pool address cannot be empty")

        if self.price <= 0:
            raise ValueError("Pool price must be positive")

        if self.tick_spacing <= 0:
            raise ValueError("Tick spacing must be positive")

        if self.decimals0 < 0 or self.decimals1 < 0:
            raise ValueError("Token decimals cannot be negative")

        if self.liquidity < 0:
            raise ValueError("Liquidity cannot be negative")

    @property
    def fee_percentage(self) -> float:
        """Fee as a fraction, e.g. 0.003 for the 3000 tier."""
        return self.fee / 1_000_000

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "pool_address": self.pool_address,
            "token0": self.token0,
            "token1": self.token1,
            "tick": self.tick,
            "price": self.price,
            "decimals0": self.decimals0,
            "decimals1": self.decimals1,
            "tick_spacing": self.tick_spacing,
            "liquidity": str(self.liquidity),
            "fee": self.fee,
            "sqrt_price_x96": str(self.sqrt_price_x96) if self.sqrt_price_x96 is not None else None,
            "tvl_usd": self.tvl_usd,
            "volume_24h_usd": self.volume_24h_usd,
            "fees_earned_24h_usd": self.fees_earned_24h_usd
        }


@dataclass
class TokenMarketData:
    """Price and history for a single token."""

    symbol: str
    address: str
    decimals: int
    price_usd: float
    price_history: List[PricePoint] = field(default_factory=list)
    price_change_24h: float = 0.0
    volume_24h_usd: float = 0.0
    market_cap_usd: float = 0.0

    def validate(self) -> None:
        """Validate token market data."""
        if not self.symbol and not self.address:
            raise ValueError("Token symbol or address required")

        if self.decimals < 0:
            raise ValueError("Token decimals cannot be negative")

        if self.price_usd < 0:
            raise ValueError("Token price cannot be negative")

    def matches(self, identifier: str) -> bool:
        """Match by symbol or case-insensitive address."""
        return identifier == self.symbol or identifier.lower() == self.address.lower()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "symbol": self.symbol,
            "address": self.address,
            "decimals": self.decimals,
            "price_usd": self.price_usd,
            "price_history": [point.to_dict() for point in self.price_history],
            "price_change_24h": self.price_change_24h,
            "volume_24h_usd": self.volume_24h_usd,
            "market_cap_usd": self.market_cap_usd
        }
