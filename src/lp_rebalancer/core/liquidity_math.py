"""
Liquidity math for concentrated liquidity positions.

Square-root prices here are raw pool prices (token1 base units per token0
base unit), so token amounts come out in base units. Liquidity and token
amounts are integers; prices are floats.
"""

import logging
import math

from .exceptions import InvalidPriceError, InvalidRangeError, PriceOutsideRangeError
from .tick_math import LOG_TICK_BASE, TICK_BASE
from ..models.defi import PoolPosition
from ..models.rebalance import TokenAmounts

logger = logging.getLogger(__name__)

Q96 = 2 ** 96

# Liquidity used for the trial deposit before scaling to the target value
TRIAL_LIQUIDITY = 10 ** 18


def tick_to_sqrt_price(tick: int) -> float:
    """Square-root price at a tick, ``1.0001 ** (tick / 2)``."""
    return math.pow(TICK_BASE, tick / 2)


def sqrt_price_to_tick(sqrt_price: float) -> int:
    """Inverse of ``tick_to_sqrt_price``, floored to an integer tick."""
    if sqrt_price <= 0:
        raise InvalidPriceError(f"Square-root price must be positive, got {sqrt_price}")
    return int(math.floor(2 * math.log(sqrt_price) / LOG_TICK_BASE))


def sqrt_price_x96_to_decimal(sqrt_price_x96: int) -> float:
    """Convert a Q64.96 fixed point square-root price to a float."""
    if sqrt_price_x96 <= 0:
        raise InvalidPriceError(f"sqrtPriceX96 must be positive, got {sqrt_price_x96}")
    return sqrt_price_x96 / Q96


def decimal_to_sqrt_price_x96(sqrt_price: float) -> int:
    """Convert a float square-root price to Q64.96 fixed point."""
    if sqrt_price <= 0:
        raise InvalidPriceError(f"Square-root price must be positive, got {sqrt_price}")
    return int(math.floor(sqrt_price * Q96))


def _check_bounds(sqrt_price_lower: float, sqrt_price_upper: float) -> None:
    if sqrt_price_upper <= sqrt_price_lower:
        raise InvalidRangeError(
            f"Upper sqrt price must exceed lower sqrt price "
            f"({sqrt_price_lower} >= {sqrt_price_upper})"
        )


def liquidity_from_token0(amount0: int, sqrt_price_lower: float, sqrt_price_upper: float) -> int:
    """
    Liquidity provided by a token0-only deposit.

    Applies when the current price is below the range.

    Args:
        amount0: Token0 amount in base units
        sqrt_price_lower: Square-root price at the lower bound
        sqrt_price_upper: Square-root price at the upper bound

    Returns:
        Liquidity as an integer

    Raises:
        InvalidRangeError: If the upper bound does not exceed the lower bound
    """
    _check_bounds(sqrt_price_lower, sqrt_price_upper)
    return int(
        amount0 * sqrt_price_lower * sqrt_price_upper / (sqrt_price_upper - sqrt_price_lower)
    )


def liquidity_from_token1(amount1: int, sqrt_price_lower: float, sqrt_price_upper: float) -> int:
    """
    Liquidity provided by a token1-only deposit.

    Applies when the current price is above the range.

    Raises:
        InvalidRangeError: If the upper bound does not exceed the lower bound
    """
    _check_bounds(sqrt_price_lower, sqrt_price_upper)
    return int(amount1 / (sqrt_price_upper - sqrt_price_lower))


def token0_from_liquidity(
    liquidity: int,
    sqrt_price: float,
    sqrt_price_lower: float,
    sqrt_price_upper: float
) -> int:
    """
    Token0 attributable to liquidity at the current price.

    Returns 0 when the price is outside ``[lower, upper)``.
    """
    _check_bounds(sqrt_price_lower, sqrt_price_upper)
    if sqrt_price < sqrt_price_lower or sqrt_price >= sqrt_price_upper:
        return 0
    return int(liquidity * (sqrt_price_upper - sqrt_price) / (sqrt_price * sqrt_price_upper))


def token1_from_liquidity(
    liquidity: int,
    sqrt_price: float,
    sqrt_price_lower: float,
    sqrt_price_upper: float
) -> int:
    """
    Token1 attributable to liquidity at the current price.

    Returns 0 when the price is outside ``[lower, upper)``.
    """
    _check_bounds(sqrt_price_lower, sqrt_price_upper)
    if sqrt_price < sqrt_price_lower or sqrt_price >= sqrt_price_upper:
        return 0
    return int(liquidity * (sqrt_price - sqrt_price_lower))


def amounts_for_liquidity(
    liquidity: int,
    sqrt_price: float,
    sqrt_price_lower: float,
    sqrt_price_upper: float
) -> TokenAmounts:
    """
    Full decomposition of a position into token amounts.

    Below the range the position is entirely token0, above it entirely token1.

    Args:
        liquidity: Position liquidity
        sqrt_price: Current square-root price
        sqrt_price_lower: Square-root price at the lower bound
        sqrt_price_upper: Square-root price at the upper bound

    Returns:
        TokenAmounts for the position
    """
    _check_bounds(sqrt_price_lower, sqrt_price_upper)

    if sqrt_price < sqrt_price_lower:
        amount0 = int(
            liquidity * (sqrt_price_upper - sqrt_price_lower)
            / (sqrt_price_lower * sqrt_price_upper)
        )
        return TokenAmounts(amount0=amount0, amount1=0, liquidity=liquidity)

    if sqrt_price >= sqrt_price_upper:
        amount1 = int(liquidity * (sqrt_price_upper - sqrt_price_lower))
        return TokenAmounts(amount0=0, amount1=amount1, liquidity=liquidity)

    return TokenAmounts(
        amount0=token0_from_liquidity(liquidity, sqrt_price, sqrt_price_lower, sqrt_price_upper),
        amount1=token1_from_liquidity(liquidity, sqrt_price, sqrt_price_lower, sqrt_price_upper),
        liquidity=liquidity,
    )


def calculate_usd_value(
    amount0: int,
    amount1: int,
    price0: float,
    price1: float,
    decimals0: int,
    decimals1: int
) -> float:
    """USD value of base-unit token amounts."""
    value0 = amount0 / math.pow(10, decimals0) * price0
    value1 = amount1 / math.pow(10, decimals1) * price1
    return value0 + value1


def calculate_optimal_amounts(
    target_usd_value: float,
    current_sqrt_price: float,
    new_tick_lower: int,
    new_tick_upper: int,
    price0: float,
    price1: float,
    decimals0: int,
    decimals1: int
) -> TokenAmounts:
    """
    Token amounts and liquidity that redeploy a target USD value into a range.

    Token amounts are linear in liquidity at a fixed price, so a single trial
    deposit is valued and then scaled by ``target / trial``.

    Args:
        target_usd_value: USD value the new position must hold
        current_sqrt_price: Current raw square-root price
        new_tick_lower: Lower tick of the new range
        new_tick_upper: Upper tick of the new range
        price0: Token0 USD price
        price1: Token1 USD price
        decimals0: Token0 decimals
        decimals1: Token1 decimals

    Returns:
        TokenAmounts for the new position

    Raises:
        InvalidRangeError: If the new range is malformed
        PriceOutsideRangeError: If the current price is outside the new range
    """
    if target_usd_value < 0:
        raise ValueError("Target USD value cannot be negative")

    sqrt_price_lower = tick_to_sqrt_price(new_tick_lower)
    sqrt_price_upper = tick_to_sqrt_price(new_tick_upper)
    _check_bounds(sqrt_price_lower, sqrt_price_upper)

    if current_sqrt_price < sqrt_price_lower or current_sqrt_price >= sqrt_price_upper:
        raise PriceOutsideRangeError(
            f"Current price is outside the new tick range. Current: {current_sqrt_price}, "
            f"Range: [{sqrt_price_lower}, {sqrt_price_upper})"
        )

    trial = amounts_for_liquidity(
        TRIAL_LIQUIDITY, current_sqrt_price, sqrt_price_lower, sqrt_price_upper
    )
    trial_usd_value = calculate_usd_value(
        trial.amount0, trial.amount1, price0, price1, decimals0, decimals1
    )
    if trial_usd_value <= 0:
        raise InvalidPriceError("Token prices must be positive to size a position")

    scale_factor = target_usd_value / trial_usd_value
    liquidity = int(math.floor(TRIAL_LIQUIDITY * scale_factor))

    logger.debug(
        f"Sized liquidity {liquidity} for ${target_usd_value:,.2f} "
        f"in ticks [{new_tick_lower}, {new_tick_upper}] (scale {scale_factor:.6g})"
    )

    return amounts_for_liquidity(liquidity, current_sqrt_price, sqrt_price_lower, sqrt_price_upper)


def calculate_previous_usd_value(
    position: PoolPosition,
    price0: float,
    price1: float,
    decimals0: int,
    decimals1: int,
    include_fees: bool = False
) -> float:
    """USD value currently held by a position, optionally with uncollected fees."""
    amount0 = position.amount0
    amount1 = position.amount1
    if include_fees:
        amount0 += position.fees0
        amount1 += position.fees1
    return calculate_usd_value(amount0, amount1, price0, price1, decimals0, decimals1)


def validate_usd_value_preservation(
    previous_usd_value: float,
    new_usd_value: float,
    tolerance_percent: float = 1.0
) -> bool:
    """Check the new value is within ``tolerance_percent`` of the previous one."""
    difference = abs(new_usd_value - previous_usd_value)
    tolerance = abs(previous_usd_value) * (tolerance_percent / 100)
    return difference <= tolerance


def calculate_capital_efficiency(
    sqrt_price: float,
    sqrt_price_lower: float,
    sqrt_price_upper: float
) -> float:
    """
    Liquidity per unit of position value at the current price.

    Narrower ranges around the price concentrate more liquidity per unit of
    capital. A range that does not contain the price has zero efficiency.
    """
    _check_bounds(sqrt_price_lower, sqrt_price_upper)
    if sqrt_price < sqrt_price_lower or sqrt_price >= sqrt_price_upper:
        return 0.0

    # Value of one unit of liquidity, in token1 terms
    value = 2 * sqrt_price - sqrt_price * sqrt_price / sqrt_price_upper - sqrt_price_lower
    if value <= 0:
        return 0.0
    return 1.0 / value
