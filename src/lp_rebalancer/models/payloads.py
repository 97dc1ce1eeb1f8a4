"""
Strict schemas for external payloads.

Position, pool state and market data records arrive as loosely typed JSON
from external tools. They are validated here and converted to the data model
before reaching the rebalancing core. Both snake_case and camelCase keys are
accepted; large integers may be given as decimal strings.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from ..core.exceptions import PayloadValidationError
from .defi import PoolPosition, PoolState, PricePoint, TokenMarketData


class PayloadModel(BaseModel):
    """Base schema for external payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class PricePointPayload(PayloadModel):
    timestamp: datetime
    price: float = Field(..., gt=0, description="Price in USD")

    def to_model(self) -> PricePoint:
        return PricePoint(timestamp=self.timestamp, price=self.price)


class PositionPayload(PayloadModel):
    """A concentrated liquidity position record."""

    position_id: str = Field(..., min_length=1, description="Opaque position identifier")
    pool_address: str = Field(..., min_length=1)
    token0: str = Field(..., min_length=1)
    token1: str = Field(..., min_length=1)
    tick_lower: int
    tick_upper: int
    liquidity: int = Field(..., ge=0)
    amount0: int = Field(default=0, ge=0, description="Token0 amount in base units")
    amount1: int = Field(default=0, ge=0, description="Token1 amount in base units")
    fees0: int = Field(default=0, ge=0, description="Uncollected token0 fees in base units")
    fees1: int = Field(default=0, ge=0, description="Uncollected token1 fees in base units")
    is_in_range: bool = False
    chain_id: int = 42161
    token0_symbol: Optional[str] = None
    token1_symbol: Optional[str] = None

    @model_validator(mode="after")
    def check_ticks(self) -> "PositionPayload":
        if self.tick_lower >= self.tick_upper:
            raise ValueError("tickLower must be less than tickUpper")
        return self

    def to_model(self) -> PoolPosition:
        return PoolPosition(**self.model_dump())


class PoolStatePayload(PayloadModel):
    """A pool snapshot record."""

    pool_address: str = Field(..., min_length=1)
    token0: str = Field(..., min_length=1)
    token1: str = Field(..., min_length=1)
    tick: int
    price: float = Field(..., gt=0, description="Token0 price in token1, decimals applied")
    decimals0: int = Field(..., ge=0, le=77)
    decimals1: int = Field(..., ge=0, le=77)
    tick_spacing: int = Field(default=1, gt=0)
    liquidity: int = Field(default=0, ge=0)
    fee: int = Field(default=3000, ge=0, description="Fee in hundredths of a basis point")
    sqrt_price_x96: Optional[int] = Field(default=None, gt=0)
    tvl_usd: float = Field(default=0.0, ge=0)
    volume_24h_usd: float = Field(default=0.0, ge=0)
    fees_earned_24h_usd: float = Field(default=0.0, ge=0)

    def to_model(self) -> PoolState:
        return PoolState(**self.model_dump())


class TokenMarketDataPayload(PayloadModel):
    """Price and history record for one token."""

    symbol: str = Field(..., min_length=1)
    address: str = ""
    decimals: int = Field(..., ge=0, le=77)
    price_usd: float = Field(..., ge=0)
    price_history: List[PricePointPayload] = Field(default_factory=list)
    price_change_24h: float = 0.0
    volume_24h_usd: float = Field(default=0.0, ge=0)
    market_cap_usd: float = Field(default=0.0, ge=0)

    def to_model(self) -> TokenMarketData:
        data = self.model_dump(exclude={"price_history"})
        return TokenMarketData(
            price_history=[point.to_model() for point in self.price_history],
            **data,
        )


class SnapshotPayload(PayloadModel):
    """Positions, pool states and market data captured at one point in time."""

    wallet_address: Optional[str] = None
    positions: List[PositionPayload] = Field(default_factory=list)
    pool_states: List[PoolStatePayload] = Field(default_factory=list)
    market_data: List[TokenMarketDataPayload] = Field(default_factory=list)


_positions_adapter = TypeAdapter(List[PositionPayload])
_market_data_adapter = TypeAdapter(List[TokenMarketDataPayload])


def _validate(adapter: Any, data: Any, what: str) -> Any:
    try:
        return adapter(data)
    except ValidationError as e:
        raise PayloadValidationError(f"Invalid {what} payload: {e}") from e


def parse_positions(data: Any) -> List[PoolPosition]:
    """Validate a list of position records."""
    payloads = _validate(_positions_adapter.validate_python, data, "position")
    return [payload.to_model() for payload in payloads]


def parse_pool_state(data: Any) -> PoolState:
    """Validate a pool state record."""
    return _validate(PoolStatePayload.model_validate, data, "pool state").to_model()


def parse_market_data(data: Any) -> List[TokenMarketData]:
    """Validate a list of token market data records."""
    payloads = _validate(_market_data_adapter.validate_python, data, "market data")
    return [payload.to_model() for payload in payloads]


def parse_snapshot(data: Any) -> SnapshotPayload:
    """Validate a full snapshot."""
    return _validate(SnapshotPayload.model_validate, data, "snapshot")
