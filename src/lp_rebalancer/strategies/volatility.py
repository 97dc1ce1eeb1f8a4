"""
Volatility estimation for sizing liquidity ranges.

Three interchangeable estimators operate on log returns of a price series:
sample standard deviation, an EWMA variance (RiskMetrics style) and a
simplified GARCH(1,1) forecast.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Union

import numpy as np
import pandas as pd

from ..core.exceptions import InsufficientDataError, InvalidPriceError
from ..models.defi import PricePoint, TokenMarketData
from .risk_profiles import RiskLevel, RiskProfile, VolatilityMethod

logger = logging.getLogger(__name__)

DEFAULT_EWMA_LAMBDA = 0.94
DEFAULT_GARCH_ALPHA = 0.10
DEFAULT_GARCH_BETA = 0.85


@dataclass(frozen=True)
class VolatilityMetrics:
    """
    Volatility estimate for a price series.

    ``value`` is per sampling period. ``period_seconds`` is the median spacing
    of the series, or None when every timestamp is the same.
    """
    value: float
    method: VolatilityMethod
    sample_size: int
    period_seconds: Optional[float] = None

    def scaled_to(self, horizon_hours: float) -> float:
        """
        Volatility over a horizon under the square-root-of-time rule.

        Horizons shorter than one sampling period are not scaled down.

        Args:
            horizon_hours: Horizon length in hours

        Returns:
            Horizon volatility
        """
        if not self.period_seconds:
            return self.value
        periods = horizon_hours * 3600 / self.period_seconds
        return self.value * math.sqrt(max(periods, 1.0))

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "method": self.method.value,
            "sample_size": self.sample_size,
            "period_seconds": self.period_seconds
        }


@dataclass(frozen=True)
class VolatilityAdjustedRange:
    """Target total range width for a volatility and risk profile."""
    width_percent: float
    volatility: float
    risk_level: RiskLevel


def _log_returns(prices: List[PricePoint]) -> np.ndarray:
    if len(prices) < 2:
        raise InsufficientDataError(
            f"At least 2 price points are required for volatility, got {len(prices)}"
        )

    ordered = sorted(prices, key=lambda point: point.timestamp)
    values = np.array([point.price for point in ordered], dtype=float)
    if np.any(values <= 0):
        raise InvalidPriceError("Price series contains non-positive prices")

    return np.diff(np.log(values))


def _period_seconds(prices: List[PricePoint]) -> Optional[float]:
    timestamps = pd.Series(sorted(point.timestamp for point in prices))
    spacing = timestamps.diff().dt.total_seconds()
    spacing = spacing[spacing > 0]
    if spacing.empty:
        return None
    return float(spacing.median())


def _standard_volatility(returns: np.ndarray) -> float:
    if len(returns) == 1:
        # Degenerate estimate for a single return
        return float(abs(returns[0]))
    return float(np.std(returns, ddof=1))


def _ewma_volatility(returns: np.ndarray, decay: float) -> float:
    if not (0 < decay < 1):
        raise ValueError("EWMA decay must be between 0 and 1")

    squared = pd.Series(returns ** 2)
    variance = squared.ewm(alpha=1 - decay, adjust=False).mean().iloc[-1]
    return float(np.sqrt(max(variance, 0.0)))


def _garch_volatility(
    returns: np.ndarray,
    alpha: float,
    beta: float,
    omega: Optional[float]
) -> float:
    if alpha < 0 or beta < 0:
        raise ValueError("GARCH alpha and beta must be non-negative")
    if alpha + beta >= 1:
        raise ValueError("GARCH alpha + beta must be less than 1")

    squared = returns ** 2
    if omega is None:
        # Variance targeting
        omega = (1 - alpha - beta) * float(np.mean(squared))
    if omega < 0:
        raise ValueError("GARCH omega must be non-negative")

    variance = float(np.var(returns, ddof=1)) if len(returns) > 1 else float(squared[0])
    for squared_return in squared:
        variance = omega + alpha * squared_return + beta * variance

    return float(np.sqrt(max(variance, 0.0)))


def calculate_volatility(
    prices: List[PricePoint],
    method: Union[VolatilityMethod, str] = VolatilityMethod.STANDARD,
    ewma_lambda: float = DEFAULT_EWMA_LAMBDA,
    garch_alpha: float = DEFAULT_GARCH_ALPHA,
    garch_beta: float = DEFAULT_GARCH_BETA,
    garch_omega: Optional[float] = None
) -> VolatilityMetrics:
    """
    Estimate per-period volatility of a price series.

    Args:
        prices: Price observations, any order
        method: Estimator to use
        ewma_lambda: Decay factor for EWMA
        garch_alpha: GARCH reaction to the last squared return
        garch_beta: GARCH persistence of the last variance
        garch_omega: GARCH constant term, variance-targeted when omitted

    Returns:
        VolatilityMetrics with a non-negative value

    Raises:
        InsufficientDataError: If fewer than 2 prices are given
        InvalidPriceError: If any price is not positive
    """
    method = VolatilityMethod(method) if isinstance(method, str) else method
    returns = _log_returns(prices)

    if method == VolatilityMethod.STANDARD:
        value = _standard_volatility(returns)
    elif method == VolatilityMethod.EWMA:
        value = _ewma_volatility(returns, ewma_lambda)
    elif method == VolatilityMethod.GARCH:
        value = _garch_volatility(returns, garch_alpha, garch_beta, garch_omega)
    else:
        raise ValueError(f"Unsupported volatility method: {method}")

    period_seconds = _period_seconds(prices)
    logger.debug(
        f"{method.value} volatility over {len(prices)} prices: {value:.6f} "
        f"per {period_seconds}s period"
    )
    return VolatilityMetrics(
        value=value, method=method, sample_size=len(prices), period_seconds=period_seconds
    )


def _history_series(data: TokenMarketData) -> pd.Series:
    if not data.price_history:
        return pd.Series(dtype=float)
    frame = pd.DataFrame(
        {
            "timestamp": [point.timestamp for point in data.price_history],
            "price": [point.price for point in data.price_history],
        }
    )
    return frame.drop_duplicates("timestamp", keep="last").set_index("timestamp")["price"].sort_index()


def calculate_pair_price_series(
    token0_data: TokenMarketData,
    token1_data: TokenMarketData
) -> List[PricePoint]:
    """
    Price of token0 in token1 from the two USD price histories.

    Histories are aligned on common timestamps. A token without history is
    treated as constant at its current USD price.

    Args:
        token0_data: Market data for token0
        token1_data: Market data for token1

    Returns:
        Pair price series ordered by timestamp
    """
    series0 = _history_series(token0_data)
    series1 = _history_series(token1_data)

    if series0.empty and series1.empty:
        return []
    if series0.empty:
        series0 = pd.Series(token0_data.price_usd, index=series1.index)
    if series1.empty:
        series1 = pd.Series(token1_data.price_usd, index=series0.index)

    aligned = pd.concat([series0, series1], axis=1, join="inner", keys=["token0", "token1"])
    if (aligned["token1"] <= 0).any() or (aligned["token0"] <= 0).any():
        raise InvalidPriceError(
            f"Non-positive USD price in history for {token0_data.symbol}/{token1_data.symbol}"
        )

    ratio = aligned["token0"] / aligned["token1"]
    return [
        PricePoint(timestamp=timestamp.to_pydatetime(), price=float(price))
        for timestamp, price in ratio.items()
    ]


def get_volatility_adjusted_range(volatility: float, risk_profile: RiskProfile) -> VolatilityAdjustedRange:
    """
    Map volatility and risk profile to a total range width.

    The volatility is expected over the lookback horizon, not per sampling
    period; see ``VolatilityMetrics.scaled_to``. The width is non-decreasing
    in volatility and in risk level.

    Args:
        volatility: Horizon volatility estimate, non-negative
        risk_profile: Risk profile

    Returns:
        VolatilityAdjustedRange
    """
    if volatility < 0:
        raise ValueError("Volatility cannot be negative")

    width = max(risk_profile.min_range_width, volatility * risk_profile.volatility_multiplier)
    width = min(width, risk_profile.max_range_width)
    return VolatilityAdjustedRange(
        width_percent=width,
        volatility=volatility,
        risk_level=risk_profile.name,
    )
