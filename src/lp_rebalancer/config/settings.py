"""
Configuration settings for the rebalancer.
"""

import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..core.exceptions import ConfigurationError
from ..strategies.risk_profiles import RiskLevel, RiskProfile, VolatilityMethod, get_risk_profile

logger = logging.getLogger(__name__)

ENV_PREFIX = "REBALANCER_"

# Shortest allowed monitoring interval
MIN_CHECK_INTERVAL_SECONDS = 60


class OperatingMode(Enum):
    """Passive mode only notifies; active mode plans and submits rebalances."""
    PASSIVE = "passive"
    ACTIVE = "active"


class DiscoveryMode(Enum):
    """Which positions a wallet task monitors."""
    AUTO_DISCOVER = "auto-discover"
    SINGLE_POOL = "single-pool"


class RebalancerConfig(BaseModel):
    """Main rebalancer configuration."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    # Operation
    mode: OperatingMode = Field(default=OperatingMode.PASSIVE, description="Operating mode")
    risk_profile: RiskLevel = Field(default=RiskLevel.MEDIUM, description="Risk profile name")
    discovery_mode: DiscoveryMode = Field(
        default=DiscoveryMode.AUTO_DISCOVER, description="Position discovery mode"
    )
    pool_address: Optional[str] = Field(default=None, description="Pool monitored in single-pool mode")
    wallet_address: Optional[str] = Field(default=None, description="Wallet whose positions are monitored")
    check_interval_seconds: int = Field(
        default=3600, ge=MIN_CHECK_INTERVAL_SECONDS, description="Seconds between evaluation cycles"
    )

    # Evaluation
    volatility_method: Optional[VolatilityMethod] = Field(
        default=None, description="Volatility estimator, defaults to the risk profile's method"
    )
    usd_value_tolerance_pct: float = Field(
        default=1.0, gt=0, le=100, description="Allowed USD value drift on redeploy, percent"
    )
    include_fees_in_value: bool = Field(
        default=False, description="Include uncollected fees in the value a redeploy preserves"
    )

    # Notifications
    telegram_chat_id: Optional[str] = Field(default=None, description="Notification target")

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = None

    @field_validator("risk_profile", mode="before")
    @classmethod
    def normalize_risk_profile(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def check_single_pool(self) -> "RebalancerConfig":
        if self.discovery_mode == DiscoveryMode.SINGLE_POOL and not self.pool_address:
            raise ValueError("pool_address is required in single-pool discovery mode")
        return self

    def get_risk_profile(self) -> RiskProfile:
        """Resolve the configured risk profile."""
        return get_risk_profile(self.risk_profile)

    def get_volatility_method(self) -> VolatilityMethod:
        """Configured volatility method, or the risk profile's default."""
        return self.volatility_method or self.get_risk_profile().volatility_method


def _env_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    overrides = {}
    for name in RebalancerConfig.model_fields:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in environ:
            overrides[name] = environ[key]
    return overrides


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")
    return data


def load_config(environment: str = "dev", config_path: Optional[Path] = None) -> RebalancerConfig:
    """
    Load configuration for the specified environment.

    Values are layered: ``config/{environment}.json`` if present, then the
    given config file, then ``REBALANCER_<FIELD>`` environment variables.

    Args:
        environment: Environment name (dev, test, prod)
        config_path: Optional path to a JSON configuration file

    Returns:
        RebalancerConfig: Loaded configuration

    Raises:
        ConfigurationError: If a file cannot be read or a value is invalid
    """
    values: Dict[str, Any] = {}

    env_config_path = Path(f"config/{environment}.json")
    if env_config_path.exists():
        logger.debug(f"Loading {env_config_path}")
        values.update(_read_json(env_config_path))

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        values.update(_read_json(config_path))

    values.update(_env_overrides(dict(os.environ)))

    try:
        return RebalancerConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
