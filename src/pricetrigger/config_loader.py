"""Configuration loader with Pydantic validation and environment variable interpolation."""

from __future__ import annotations

import os
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables at module level
load_dotenv(find_dotenv(usecwd=True))

from pricetrigger.constants import (
    DEFAULT_BASE_PRICE,
    DEFAULT_ORDER_QUANTITY,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_PRICE_INCREMENT,
    DEFAULT_SIM_START_PRICE,
    DEFAULT_SIM_STEP,
    DEFAULT_SYMBOL,
    ExchangeMode,
    LogFormat,
    LogLevel,
)


def interpolate_env_vars(value: Any) -> Any:
    """
    Interpolate environment variables in string values.

    Supports formats:
    - ${VAR_NAME} - replaced with the variable, or an empty string if unset
    - ${VAR_NAME:default} - optional with default value
    """
    if not isinstance(value, str):
        return value

    pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)

        env_value = os.environ.get(var_name)

        if env_value is not None:
            return env_value
        elif default is not None:
            return default
        else:
            return ""

    return re.sub(pattern, replacer, value)


def process_config_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively process config dict to interpolate env vars."""
    result = {}
    for key, value in data.items():
        if isinstance(value, dict):
            result[key] = process_config_dict(value)
        elif isinstance(value, list):
            result[key] = [
                process_config_dict(item) if isinstance(item, dict) else interpolate_env_vars(item)
                for item in value
            ]
        else:
            result[key] = interpolate_env_vars(value)
    return result


def _to_decimal(v: Any) -> Decimal:
    if isinstance(v, Decimal):
        return v
    try:
        return Decimal(str(v))
    except InvalidOperation as e:
        raise ValueError(f"Invalid decimal value: {v!r}") from e


def _require_positive(v: Decimal) -> Decimal:
    if not v.is_finite() or v <= 0:
        raise ValueError(f"Value must be positive, got: {v}")
    return v


# ============================================
# Pydantic Configuration Models
# ============================================


class EnvironmentConfig(BaseModel):
    """Environment and runtime settings."""

    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.TEXT


class ExchangeConfig(BaseModel):
    """Exchange client configuration.

    Credentials are handed to the exchange client as-is and kept out of ``repr``
    so they never end up in a log line.
    """

    model_config = ConfigDict(frozen=True)

    mode: ExchangeMode = ExchangeMode.KUCOIN
    sandbox: bool = False
    api_key: str = Field(default="", repr=False)
    api_secret: str = Field(default="", repr=False)
    api_passphrase: str = Field(default="", repr=False)

    # Simulated exchange only
    sim_start_price: Decimal = DEFAULT_SIM_START_PRICE
    sim_step: Decimal = DEFAULT_SIM_STEP

    @field_validator("sim_start_price", "sim_step", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Decimal:
        """Convert numeric values to Decimal."""
        return _to_decimal(v)

    @field_validator("sim_start_price", "sim_step")
    @classmethod
    def validate_positive(cls, v: Decimal) -> Decimal:
        """Validate strictly positive decimals."""
        return _require_positive(v)

    @property
    def has_credentials(self) -> bool:
        """Check if all three API credentials are set."""
        return bool(self.api_key and self.api_secret and self.api_passphrase)


class TriggerConfig(BaseModel):
    """Market, threshold and order settings for the dispatcher."""

    model_config = ConfigDict(frozen=True)

    symbol: str = DEFAULT_SYMBOL
    base_price: Decimal = DEFAULT_BASE_PRICE
    price_increment: Decimal = DEFAULT_PRICE_INCREMENT
    order_quantity: Decimal = DEFAULT_ORDER_QUANTITY
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    tick_timeout_ms: int | None = None

    @field_validator("base_price", "price_increment", "order_quantity", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Decimal:
        """Convert numeric values to Decimal."""
        return _to_decimal(v)

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Normalize the market identifier (KuCoin style, e.g. BTC-USDT)."""
        v = v.strip().upper()
        if not v:
            raise ValueError("Symbol must not be empty")
        return v

    @field_validator("base_price", "order_quantity")
    @classmethod
    def validate_positive(cls, v: Decimal) -> Decimal:
        """Validate strictly positive decimals."""
        return _require_positive(v)

    @field_validator("price_increment")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        """Validate the increment is not negative."""
        if not v.is_finite() or v < 0:
            raise ValueError(f"Value must be non-negative, got: {v}")
        return v

    @field_validator("poll_interval_ms", "tick_timeout_ms")
    @classmethod
    def validate_positive_ms(cls, v: int | None) -> int | None:
        """Validate durations are positive."""
        if v is not None and v <= 0:
            raise ValueError(f"Duration must be positive, got: {v}")
        return v

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000

    @property
    def tick_timeout_seconds(self) -> float:
        """Per-tick timeout, defaulting to the poll interval."""
        if self.tick_timeout_ms is None:
            return self.poll_interval_seconds
        return self.tick_timeout_ms / 1000


class AppConfig(BaseModel):
    """Root application configuration."""

    model_config = ConfigDict(frozen=True)

    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    trigger: TriggerConfig = Field(default_factory=TriggerConfig)

    @property
    def is_dry_run(self) -> bool:
        """Check if running in dry run mode."""
        return self.environment.dry_run

    @property
    def is_sim_mode(self) -> bool:
        """Check if using the simulated exchange."""
        return self.exchange.mode == ExchangeMode.SIM


# ============================================
# Configuration Loader
# ============================================


class ConfigLoader:
    """Load and validate configuration from YAML files with env var interpolation."""

    def __init__(self, config_path: str | Path) -> None:
        """
        Initialize config loader.

        Args:
            config_path: Path to the YAML configuration file.
        """
        self.config_path = Path(config_path)
        self._config: AppConfig | None = None

    def load(self) -> AppConfig:
        """
        Load and validate configuration.

        Returns:
            Validated AppConfig instance.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            yaml.YAMLError: If YAML is invalid.
            pydantic.ValidationError: If config validation fails.
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        with open(self.config_path, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)

        if raw_config is None:
            raw_config = {}

        processed_config = process_config_dict(raw_config)

        self._config = AppConfig.model_validate(processed_config)

        return self._config

    @property
    def config(self) -> AppConfig:
        """Get loaded config, loading if necessary."""
        if self._config is None:
            return self.load()
        return self._config

    def reload(self) -> AppConfig:
        """Force reload configuration from disk."""
        self._config = None
        return self.load()


def load_config(config_path: str | Path) -> AppConfig:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated AppConfig instance.
    """
    loader = ConfigLoader(config_path)
    return loader.load()


def load_config_with_overrides(
    config_path: str | Path,
    *,
    dry_run: bool | None = None,
    symbol: str | None = None,
    exchange_mode: str | None = None,
) -> AppConfig:
    """
    Load configuration with CLI overrides.

    Args:
        config_path: Path to the YAML configuration file.
        dry_run: Override dry_run setting.
        symbol: Override the monitored market.
        exchange_mode: Override exchange mode (kucoin or sim).

    Returns:
        Validated AppConfig instance with overrides applied.
    """
    config = load_config(config_path)

    updates: dict[str, Any] = {}

    if dry_run is not None:
        updates["environment"] = config.environment.model_copy(update={"dry_run": dry_run})

    if symbol is not None:
        # Revalidate so the symbol is normalized like a file value would be
        updates["trigger"] = TriggerConfig.model_validate(
            {**config.trigger.model_dump(), "symbol": symbol}
        )

    if exchange_mode is not None:
        mode_enum = ExchangeMode(exchange_mode.lower())
        updates["exchange"] = config.exchange.model_copy(update={"mode": mode_enum})

    if updates:
        return config.model_copy(update=updates)

    return config
