"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``TRONGW_``, nested via ``__``)
2. YAML config file (``TRONGW_CONFIG_PATH`` env var or ``AppConfig.from_yaml``)
3. Defaults defined here

Money-valued settings are ``Decimal`` so fee arithmetic never goes through
binary floats.
"""

from __future__ import annotations

import enum
from decimal import Decimal
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tron_gateway.errors.gateway_errors import ConfigurationError

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class DatabaseEngine(enum.StrEnum):
    """Supported database engines."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class LogFormat(enum.StrEnum):
    """Log line rendering."""

    TEXT = "text"
    JSON = "json"


# Shasta testnet defaults; mainnet deployments override both.
TESTNET_BASE_URL = "https://api.shasta.trongrid.io"
TESTNET_USDT_CONTRACT = "TG3XXyExBkPp9nzdajDZsozEu4BkaSJozs"
MAINNET_USDT_CONTRACT = "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_SERVER__",
        case_sensitive=False,
    )

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    cors_enabled: bool = True


class DatabaseConfig(BaseSettings):
    """Database settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_DB__",
        case_sensitive=False,
    )

    engine: DatabaseEngine = Field(
        default=DatabaseEngine.SQLITE,
        description="Database backend: sqlite or postgresql",
    )
    dsn: str = Field(
        default="sqlite+aiosqlite:///./tron_gateway.db",
        description="Async database connection string",
    )
    max_idle_connections: int = 5
    max_open_connections: int = 10
    debug_sql: bool = False


class TronConfig(BaseSettings):
    """TronGrid endpoint and master wallet settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_TRON__",
        case_sensitive=False,
    )

    base_url: str = TESTNET_BASE_URL
    api_key: str = ""
    usdt_contract: str = TESTNET_USDT_CONTRACT
    usdt_decimals: int = 6
    master_wallet_address: str = ""
    master_wallet_private_key: str = ""
    request_timeout: float = 30.0
    transfer_page_size: int = 50
    # TRC-20 transfer() fee ceiling, in sun
    fee_limit: int = 100_000_000


class FeeConfig(BaseSettings):
    """Fee pricing settings (TRX-denominated gas, USDT-denominated commission)."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_FEES__",
        case_sensitive=False,
    )

    base_trx_per_transaction: Decimal = Decimal("15")
    trx_to_usdt_rate: Decimal = Decimal("0.10")
    commission_percentage: Decimal = Decimal("0.5")
    min_commission_usdt: Decimal = Decimal("1")
    max_commission_usdt: Decimal = Decimal("10")
    dynamic_fees_enabled: bool = True
    dynamic_min_fee: Decimal = Decimal("10")
    dynamic_max_fee: Decimal = Decimal("50")
    network_congestion_multiplier: Decimal = Decimal("1.5")
    energy_price_threshold_sun: int = 500
    state_max_age_seconds: int = 600
    update_interval_minutes: int = 5

    @model_validator(mode="after")
    def _check_bounds(self) -> Self:
        if self.min_commission_usdt > self.max_commission_usdt:
            msg = "min_commission_usdt must not exceed max_commission_usdt"
            raise ValueError(msg)
        if self.dynamic_min_fee > self.dynamic_max_fee:
            msg = "dynamic_min_fee must not exceed dynamic_max_fee"
            raise ValueError(msg)
        return self


class GasSponsorshipConfig(BaseSettings):
    """Master-wallet TRX top-ups before each sweep."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_GAS_SPONSORSHIP__",
        case_sensitive=False,
    )

    enabled: bool = True
    min_trx_amount: Decimal = Decimal("15")
    settle_delay_seconds: float = 3.0


class WalletActivationConfig(BaseSettings):
    """Activation transfer sent to freshly generated wallets."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_WALLET__ACTIVATION__",
        case_sensitive=False,
    )

    enabled: bool = True
    amount: Decimal = Decimal("1.0")


class WalletConfig(BaseSettings):
    """Custodial wallet settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_WALLET__",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    activation: WalletActivationConfig = Field(default_factory=WalletActivationConfig)


class TransferConfig(BaseSettings):
    """Outgoing transfer request limits."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_TRANSFERS__",
        case_sensitive=False,
    )

    max_amount: Decimal = Decimal("1000000000")
    max_fraction_digits: int = 6


class MonitoringConfig(BaseSettings):
    """Incoming transfer monitor settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_MONITORING__",
        case_sensitive=False,
    )

    enabled: bool = True
    confirmed_threshold: int = 19


class SchedulerConfig(BaseSettings):
    """Background loop periods."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_SCHEDULER__",
        case_sensitive=False,
    )

    enabled: bool = True
    monitoring_interval_seconds: int = 30
    transfer_processing_interval_seconds: int = 60
    cleanup_interval_hours: int = 24
    health_check_interval_minutes: int = 5
    cleanup_retention_days: int = 90
    pending_alert_threshold: int = 100


class WebhookConfig(BaseSettings):
    """Outbound webhook settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_WEBHOOK__",
        case_sensitive=False,
    )

    enabled: bool = False
    url: str = ""
    secret_key: str = ""
    timeout_seconds: float = 10.0


class RetryConfig(BaseSettings):
    """Exponential backoff for network calls."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_RETRY__",
        case_sensitive=False,
    )

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = 0.5
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    rate_limit_delay: float = 5.0


class CacheConfig(BaseSettings):
    """Token balance cache settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_CACHE__",
        case_sensitive=False,
    )

    balance_ttl_seconds: int = 30


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


class LoggingConfig(BaseSettings):
    """Root logger settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_LOGGING__",
        case_sensitive=False,
    )

    level: str = "INFO"
    format: LogFormat = LogFormat.TEXT


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``TRONGW_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRONGW_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    config_path: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    tron: TronConfig = Field(default_factory=TronConfig)
    fees: FeeConfig = Field(default_factory=FeeConfig)
    gas_sponsorship: GasSponsorshipConfig = Field(default_factory=GasSponsorshipConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    transfers: TransferConfig = Field(default_factory=TransferConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                merged = {**val, **values[key]}
                values[key] = merged
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load the application config, surfacing bad values as ``ConfigurationError``.

    Args:
        path: Optional YAML file; ``TRONGW_CONFIG_PATH`` is honoured otherwise.
    """
    try:
        if path is not None:
            return AppConfig.from_yaml(path)
        return AppConfig()
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc
