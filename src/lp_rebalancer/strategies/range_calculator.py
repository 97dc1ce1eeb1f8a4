"""
Range calculator for optimal liquidity positioning.
"""

import dataclasses
import logging
import math

from ..core.liquidity_math import (
    amounts_for_liquidity,
    calculate_capital_efficiency,
    sqrt_price_x96_to_decimal,
    tick_to_sqrt_price,
)
from ..core.tick_math import (
    MAX_TICK,
    MIN_TICK,
    calculate_price_range,
    is_in_range,
    nearest_usable_tick,
    price_to_exact_tick,
)
from ..core.exceptions import InvalidPriceError
from ..models.defi import PoolPosition, PoolState
from ..models.rebalance import OptimalRange, PriceRange
from .risk_profiles import RiskProfile
from .volatility import get_volatility_adjusted_range

logger = logging.getLogger(__name__)

# Price deviation above which a position is flagged as medium / high risk
MEDIUM_RISK_DEVIATION = 0.1
HIGH_RISK_DEVIATION = 0.2


def calculate_tick_range_for_width(
    current_price: float,
    width_percent: float,
    decimals0: int,
    decimals1: int,
    tick_spacing: int = 1
) -> OptimalRange:
    """
    Tick range centred on the current price with a given total width.

    Bounds are rounded outward to the tick grid (lower floored, upper ceiled)
    so the range is never narrower than requested.

    Args:
        current_price: Price of token0 in token1, decimals applied
        width_percent: Total width as a fraction of price
        decimals0: Token0 decimals
        decimals1: Token1 decimals
        tick_spacing: Pool tick spacing

    Returns:
        OptimalRange aligned to ``tick_spacing``
    """
    if current_price <= 0:
        raise InvalidPriceError(f"Current price must be positive, got {current_price}")
    if width_percent <= 0:
        raise ValueError("Range width must be positive")
    if tick_spacing <= 0:
        raise ValueError("Tick spacing must be positive")

    half_width = width_percent / 2
    price_upper = current_price * (1 + half_width)
    price_lower = current_price * (1 - half_width)

    if price_lower > 0:
        exact_lower = price_to_exact_tick(price_lower, decimals0, decimals1)
        tick_lower = nearest_usable_tick(math.floor(exact_lower), tick_spacing)
    else:
        tick_lower = nearest_usable_tick(MIN_TICK, tick_spacing, round_up=True)

    exact_upper = price_to_exact_tick(price_upper, decimals0, decimals1)
    tick_upper = nearest_usable_tick(math.ceil(exact_upper), tick_spacing, round_up=True)

    if tick_lower >= tick_upper:
        max_usable = nearest_usable_tick(MAX_TICK, tick_spacing)
        if tick_lower + tick_spacing <= max_usable:
            tick_upper = tick_lower + tick_spacing
        else:
            tick_lower = tick_upper - tick_spacing

    return OptimalRange(
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        price_range=calculate_price_range(tick_lower, tick_upper, decimals0, decimals1),
        width_percent=width_percent,
    )


def calculate_new_tick_range(
    current_price: float,
    volatility: float,
    risk_profile: RiskProfile,
    decimals0: int,
    decimals1: int,
    tick_spacing: int = 1
) -> OptimalRange:
    """
    Volatility-sized tick range centred on the current price.

    Args:
        current_price: Price of token0 in token1, decimals applied
        volatility: Volatility over the lookback horizon
        risk_profile: Risk profile sizing the range
        decimals0: Token0 decimals
        decimals1: Token1 decimals
        tick_spacing: Pool tick spacing

    Returns:
        OptimalRange with ``tick_lower < tick_upper``
    """
    adjusted = get_volatility_adjusted_range(volatility, risk_profile)
    return calculate_tick_range_for_width(
        current_price, adjusted.width_percent, decimals0, decimals1, tick_spacing
    )


def calculate_range_width(price_range: PriceRange, current_price: float) -> float:
    """Total width of a price range as a fraction of the current price."""
    if current_price <= 0:
        raise InvalidPriceError(f"Current price must be positive, got {current_price}")
    return (price_range.upper - price_range.lower) / current_price


def calculate_width_mismatch(current_width: float, optimal_width: float) -> float:
    """Relative distance between a range width and the optimal width."""
    if optimal_width <= 0:
        raise ValueError("Optimal width must be positive")
    return abs(current_width - optimal_width) / optimal_width


def current_sqrt_price(pool_state: PoolState) -> float:
    """Raw square-root price of a pool, preferring the on-chain Q64.96 value."""
    if pool_state.sqrt_price_x96:
        return sqrt_price_x96_to_decimal(pool_state.sqrt_price_x96)
    if pool_state.price <= 0:
        raise InvalidPriceError(f"Pool price must be positive, got {pool_state.price}")
    raw_price = pool_state.price * math.pow(10, pool_state.decimals1 - pool_state.decimals0)
    return math.sqrt(raw_price)


def refresh_position(position: PoolPosition, pool_state: PoolState) -> PoolPosition:
    """
    Recompute a position's derived fields against the current pool state.

    The in-range flag comes from the pool tick. Token amounts are derived from
    liquidity when the position has any.
    """
    in_range = is_in_range(pool_state.tick, position.tick_lower, position.tick_upper)
    if position.liquidity <= 0:
        return dataclasses.replace(position, is_in_range=in_range)

    amounts = amounts_for_liquidity(
        position.liquidity,
        current_sqrt_price(pool_state),
        tick_to_sqrt_price(position.tick_lower),
        tick_to_sqrt_price(position.tick_upper),
    )
    return dataclasses.replace(
        position,
        is_in_range=in_range,
        amount0=amounts.amount0,
        amount1=amounts.amount1,
    )


def estimate_apr_improvement(
    sqrt_price: float,
    current_tick_lower: int,
    current_tick_upper: int,
    new_tick_lower: int,
    new_tick_upper: int
) -> float:
    """
    Estimated fee APR improvement, in percent, from moving to a new range.

    Compares liquidity concentration per unit of capital. An old range that
    excludes the price is measured at its nearest bound, the last price at
    which it earned fees, so the result can be negative when the new range is
    wider.
    """
    sqrt_lower = tick_to_sqrt_price(current_tick_lower)
    sqrt_upper = tick_to_sqrt_price(current_tick_upper)
    if sqrt_price >= sqrt_upper:
        # All token1 at the upper bound
        old_efficiency = 1.0 / (sqrt_upper - sqrt_lower)
    else:
        old_efficiency = calculate_capital_efficiency(
            max(sqrt_price, sqrt_lower), sqrt_lower, sqrt_upper
        )
    new_efficiency = calculate_capital_efficiency(
        sqrt_price,
        tick_to_sqrt_price(new_tick_lower),
        tick_to_sqrt_price(new_tick_upper),
    )
    if new_efficiency <= 0 or old_efficiency <= 0:
        return 0.0
    return (new_efficiency / old_efficiency - 1) * 100


def calculate_position_health(position: PoolPosition, pool_state: PoolState) -> float:
    """
    Position health score from 0 to 100.

    Out of range scores 0. In range scores 50 plus up to 50 for how well the
    price is centred in the range.
    """
    if not is_in_range(pool_state.tick, position.tick_lower, position.tick_upper):
        return 0.0

    price_range = calculate_price_range(
        position.tick_lower, position.tick_upper, pool_state.decimals0, pool_state.decimals1
    )
    distance_from_center = abs(pool_state.price - price_range.midpoint)
    center_score = max(0.0, 50 - (distance_from_center / price_range.width) * 100)

    return min(100.0, max(0.0, 50 + center_score))


def assess_risk(price_deviation: float) -> str:
    """Risk label for a price deviation."""
    if price_deviation > HIGH_RISK_DEVIATION:
        return "High"
    if price_deviation > MEDIUM_RISK_DEVIATION:
        return "Medium"
    return "Low"


def calculate_expected_fees(
    pool_state: PoolState,
    tick_lower: int,
    tick_upper: int,
    liquidity: int
) -> float:
    """
    Rough daily fee estimate in USD for a range.

    Assumes an optimal range covers about 200 ticks and fees are shared pro
    rata with in-range pool liquidity.
    """
    if tick_upper <= tick_lower or pool_state.liquidity <= 0:
        return 0.0

    range_coverage = min(1.0, 200 / (tick_upper - tick_lower))
    liquidity_share = liquidity / pool_state.liquidity
    return pool_state.volume_24h_usd * pool_state.fee_percentage * range_coverage * liquidity_share
