"""
Core rebalancing components.

Contains the error taxonomy, tick and liquidity math, and the interfaces of
external collaborators.
"""

from .exceptions import (
    RebalancerError,
    InvalidRangeError,
    InvalidPriceError,
    PriceOutsideRangeError,
    InsufficientDataError,
    MissingMarketDataError,
    ValuePreservationError,
    PayloadValidationError,
    ConfigurationError,
)
from .sources import (
    PositionSource,
    PoolStateSource,
    MarketDataSource,
    ExecutionSink,
    NotificationSink,
)

__all__ = [
    # Errors
    "RebalancerError",
    "InvalidRangeError",
    "InvalidPriceError",
    "PriceOutsideRangeError",
    "InsufficientDataError",
    "MissingMarketDataError",
    "ValuePreservationError",
    "PayloadValidationError",
    "ConfigurationError",
    # Collaborators
    "PositionSource",
    "PoolStateSource",
    "MarketDataSource",
    "ExecutionSink",
    "NotificationSink",
]
