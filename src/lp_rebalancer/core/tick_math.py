"""
Tick and price conversions for concentrated liquidity pools.

These mirror the on-chain formula ``price = 1.0001 ** tick`` scaled by the
decimals difference of the two tokens.
"""

import math

from .exceptions import InvalidPriceError, InvalidRangeError
from ..models.rebalance import PriceRange

TICK_BASE = 1.0001
LOG_TICK_BASE = math.log(TICK_BASE)

# Protocol tick bounds
MIN_TICK = -887272
MAX_TICK = 887272


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def tick_to_price(tick: int, decimals0: int, decimals1: int) -> float:
    """
    Convert a tick to a human readable price of token0 in token1.

    Args:
        tick: Tick index
        decimals0: Token0 decimals
        decimals1: Token1 decimals

    Returns:
        Price as a float
    """
    return math.pow(TICK_BASE, tick) * math.pow(10, decimals0 - decimals1)


def price_to_tick(
    price: float,
    tick_spacing: int = 1,
    decimals0: int = 0,
    decimals1: int = 0
) -> int:
    """
    Convert a price to the nearest tick on the pool's tick grid.

    With the default decimals the price is taken as a raw (unscaled) pool
    price. Passing the token decimals inverts ``tick_to_price``.

    Args:
        price: Price, must be positive
        tick_spacing: Pool tick spacing
        decimals0: Token0 decimals
        decimals1: Token1 decimals

    Returns:
        Tick index, a multiple of ``tick_spacing``

    Raises:
        InvalidPriceError: If price is not positive
    """
    if price <= 0:
        raise InvalidPriceError(f"Price must be positive to derive a tick, got {price}")
    if tick_spacing <= 0:
        raise ValueError("Tick spacing must be positive")

    raw_price = price * math.pow(10, decimals1 - decimals0)
    raw_tick = math.log(raw_price) / LOG_TICK_BASE
    return int(math.floor(_round_half_up(raw_tick / tick_spacing) * tick_spacing))


def price_to_exact_tick(price: float, decimals0: int = 0, decimals1: int = 0) -> float:
    """Unrounded tick for a price. Used when rounding outward to a grid."""
    if price <= 0:
        raise InvalidPriceError(f"Price must be positive to derive a tick, got {price}")
    raw_price = price * math.pow(10, decimals1 - decimals0)
    return math.log(raw_price) / LOG_TICK_BASE


def calculate_price_range(
    tick_lower: int,
    tick_upper: int,
    decimals0: int,
    decimals1: int
) -> PriceRange:
    """Price bounds for a tick range."""
    if tick_lower >= tick_upper:
        raise InvalidRangeError(
            f"Lower tick must be less than upper tick ({tick_lower} >= {tick_upper})"
        )
    return PriceRange(
        lower=tick_to_price(tick_lower, decimals0, decimals1),
        upper=tick_to_price(tick_upper, decimals0, decimals1),
    )


def is_in_range(current_tick: int, tick_lower: int, tick_upper: int) -> bool:
    """Check whether the current tick lies within the inclusive bounds."""
    return tick_lower <= current_tick <= tick_upper


def calculate_utilization_rate(current_tick: int, tick_lower: int, tick_upper: int) -> float:
    """
    Fraction of the range consumed from the lower bound, clamped to [0, 1].

    A degenerate range (equal bounds) has a utilization of 0.
    """
    if tick_upper == tick_lower:
        return 0.0

    tick_from_lower = current_tick - tick_lower
    tick_range = tick_upper - tick_lower
    return max(0.0, min(1.0, tick_from_lower / tick_range))


def calculate_price_deviation(current_price: float, range_lower: float, range_upper: float) -> float:
    """
    Distance of the current price outside a price range.

    Returns 0 when the price is inside the range, otherwise the distance to
    the nearest bound normalized by the range width.
    """
    if range_lower <= current_price <= range_upper:
        return 0.0

    range_width = range_upper - range_lower
    if range_width <= 0:
        raise InvalidRangeError(
            f"Price range upper bound must exceed lower bound ({range_lower} >= {range_upper})"
        )

    if current_price < range_lower:
        return abs(current_price - range_lower) / range_width
    return abs(current_price - range_upper) / range_width


def nearest_usable_tick(tick: int, tick_spacing: int, round_up: bool = False) -> int:
    """Align a tick to the spacing grid, staying within protocol bounds."""
    if tick_spacing <= 0:
        raise ValueError("Tick spacing must be positive")

    min_usable = math.ceil(MIN_TICK / tick_spacing) * tick_spacing
    max_usable = math.floor(MAX_TICK / tick_spacing) * tick_spacing
    if round_up:
        aligned = math.ceil(tick / tick_spacing) * tick_spacing
    else:
        aligned = math.floor(tick / tick_spacing) * tick_spacing
    return int(max(min_usable, min(max_usable, aligned)))
