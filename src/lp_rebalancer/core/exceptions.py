"""
Error taxonomy for the rebalancing core.

Pure math raises immediately on precondition violations. Only the task loop
downgrades these errors to "skip and continue".
"""

from typing import Optional


class RebalancerError(Exception):
    """Base class for all rebalancer errors."""

    kind = "rebalancer_error"

    def __init__(self, message: str, position_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.position_id = position_id

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind,
            "message": self.message,
            "position_id": self.position_id,
        }


class InvalidRangeError(RebalancerError, ValueError):
    """Malformed tick or price bounds (upper <= lower)."""

    kind = "invalid_range"


class InvalidPriceError(RebalancerError, ValueError):
    """Non-positive price passed to a conversion."""

    kind = "invalid_price"


class PriceOutsideRangeError(RebalancerError, ValueError):
    """Current price is not inside the proposed range."""

    kind = "price_outside_range"


class InsufficientDataError(RebalancerError):
    """Not enough price points to estimate volatility."""

    kind = "insufficient_data"


class MissingMarketDataError(RebalancerError):
    """Market data or pool state for a position is unavailable."""

    kind = "missing_market_data"


class ValuePreservationError(RebalancerError):
    """A planned redeploy does not preserve the position's USD value."""

    kind = "value_preservation"


class PayloadValidationError(RebalancerError, ValueError):
    """An external payload does not match its schema."""

    kind = "payload_validation"


class ConfigurationError(RebalancerError, ValueError):
    """Invalid rebalancer configuration."""

    kind = "configuration"
