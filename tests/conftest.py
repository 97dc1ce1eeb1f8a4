"""
Pytest configuration and fixtures.
"""

from datetime import datetime, timedelta

import pytest

from lp_rebalancer.adapters.memory_source import InMemoryDataSource
from lp_rebalancer.config.settings import RebalancerConfig
from lp_rebalancer.core.tick_math import price_to_tick, tick_to_price
from lp_rebalancer.models.defi import PoolPosition, PoolState, PricePoint, TokenMarketData

WALLET = "0x000000000000000000000000000000000000beef"

TOKEN_A = "0x00000000000000000000000000000000000000a0"
TOKEN_B = "0x00000000000000000000000000000000000000b0"
UNIT_POOL = "0x00000000000000000000000000000000000000c0"

WETH = "0x82af49447d8a07e3bd95bd0d56f35241523fbab1"
USDC = "0xaf88d065e77c8cc2239327c5edb3a432268e5831"
WETH_USDC_POOL = "0xb1026b8e7276e7ac75410f1fcbbe21796e8f7526"


def swinging_history(base_price: float, swing: float, points: int = 48) -> list:
    """Hourly prices alternating between a base price and base * (1 + swing)."""
    start = datetime(2024, 1, 1)
    return [
        PricePoint(
            timestamp=start + timedelta(hours=i),
            price=base_price * (1 + swing if i % 2 else 1.0),
        )
        for i in range(points)
    ]


def quiet_history(base_price: float, points: int = 48) -> list:
    """Hourly prices alternating by 0.1% around a base price."""
    return swinging_history(base_price, 0.001, points)


def make_unit_pool(tick: int = 0) -> PoolState:
    """Pool of two 0-decimal tokens whose price is ``1.0001 ** tick``."""
    return PoolState(
        pool_address=UNIT_POOL,
        token0=TOKEN_A,
        token1=TOKEN_B,
        tick=tick,
        price=tick_to_price(tick, 0, 0),
        decimals0=0,
        decimals1=0,
        tick_spacing=1,
        liquidity=10 ** 12,
    )


def make_unit_position(
    position_id: str = "1",
    tick_lower: int = -1000,
    tick_upper: int = 1000,
    liquidity: int = 10 ** 9
) -> PoolPosition:
    return PoolPosition(
        position_id=position_id,
        pool_address=UNIT_POOL,
        token0=TOKEN_A,
        token1=TOKEN_B,
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        liquidity=liquidity,
        token0_symbol="AAA",
        token1_symbol="BBB",
    )


def make_weth_usdc_pool(price: float = 2000.0) -> PoolState:
    return PoolState(
        pool_address=WETH_USDC_POOL,
        token0=WETH,
        token1=USDC,
        tick=price_to_tick(price, 1, 18, 6),
        price=price,
        decimals0=18,
        decimals1=6,
        tick_spacing=60,
        liquidity=10 ** 18,
        fee=500,
        volume_24h_usd=5_000_000.0,
    )


@pytest.fixture
def unit_market_data():
    """Market data for the 0-decimal test pair, with a quiet history for token0."""
    return [
        TokenMarketData(
            symbol="AAA", address=TOKEN_A, decimals=0, price_usd=1.0,
            price_history=quiet_history(1.0),
        ),
        TokenMarketData(symbol="BBB", address=TOKEN_B, decimals=0, price_usd=1.0),
    ]


@pytest.fixture
def weth_usdc_market_data():
    """WETH at $2000 with a quiet history, USDC at $1."""
    return [
        TokenMarketData(
            symbol="WETH", address=WETH, decimals=18, price_usd=2000.0,
            price_history=quiet_history(2000.0),
        ),
        TokenMarketData(symbol="USDC", address=USDC, decimals=6, price_usd=1.0),
    ]


@pytest.fixture
def out_of_range_weth_position():
    """A $10,000 position (2.5 WETH + 5,000 USDC) whose range is far above $2000."""
    return PoolPosition(
        position_id="42",
        pool_address=WETH_USDC_POOL,
        token0=WETH,
        token1=USDC,
        tick_lower=-190020,
        tick_upper=-189000,
        liquidity=0,
        amount0=2_500_000_000_000_000_000,
        amount1=5_000_000_000,
        token0_symbol="WETH",
        token1_symbol="USDC",
    )


@pytest.fixture
def test_config():
    """Provide a test configuration."""
    return RebalancerConfig(
        wallet_address=WALLET,
        check_interval_seconds=60,
        log_level="DEBUG",
    )


@pytest.fixture
def unit_source(unit_market_data):
    """In-memory source holding one in-range position on the unit pool."""
    source = InMemoryDataSource()
    source.add_position(WALLET, make_unit_position())
    source.update_pool_state(make_unit_pool(0))
    for data in unit_market_data:
        source.update_market_data(data)
    return source
