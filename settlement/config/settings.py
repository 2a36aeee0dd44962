"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
Per-network RPC/signer configuration is read separately, see
``settlement.config.networks``.
"""

from decimal import Decimal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from settlement.config.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONFIRMATION_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    EVENT_POLL_INTERVAL,
    EVENT_SWEEP_BATCH_SIZE,
    MAX_GAS_PRICE_GWEI,
    RETRY_BASE_DELAY_SECONDS,
    STUCK_PROCESSING_MINUTES,
)

SETTLEMENT_MODES = ("auto", "contract", "transfer")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (dramatiq broker + distributed locks)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Environment
    environment: str = "development"
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: str = "logs/settlement.log"

    # Networks
    enabled_networks: str = "BSC_TESTNET,ETH_SEPOLIA"  # Comma-separated list
    default_network: str = "BSC_TESTNET"
    max_gas_price_gwei: Decimal = Field(default=MAX_GAS_PRICE_GWEI, gt=0)
    confirmation_timeout: int = Field(
        default=DEFAULT_CONFIRMATION_TIMEOUT,
        gt=0,
        description="Seconds to wait for one confirmation of a broadcast transaction",
    )

    # Settlement
    settlement_mode: str = Field(
        default="auto",
        description="auto: manager contract if deployed, else direct transfer",
    )
    cashback_campaign_id: int = Field(default=1, ge=0)
    cashback_batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0)
    cashback_max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_base_delay_seconds: int = Field(default=RETRY_BASE_DELAY_SECONDS, ge=0)
    stuck_processing_minutes: int = Field(default=STUCK_PROCESSING_MINUTES, gt=0)

    # Events
    event_poll_interval: float = Field(default=EVENT_POLL_INTERVAL, gt=0)
    event_sweep_batch_size: int = Field(default=EVENT_SWEEP_BATCH_SIZE, gt=0)

    # Contracts
    contract_artifacts_dir: str = "artifacts/contracts"

    # Health server
    health_port: int = 8081

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(('postgresql+asyncpg://', 'sqlite+aiosqlite://')):
            raise ValueError(
                'DATABASE_URL must start with postgresql+asyncpg:// or sqlite+aiosqlite://'
            )
        return v

    @field_validator('settlement_mode')
    @classmethod
    def validate_settlement_mode(cls, v: str) -> str:
        """Validate settlement mode."""
        mode = v.strip().lower()
        if mode not in SETTLEMENT_MODES:
            raise ValueError(
                f"SETTLEMENT_MODE must be one of {', '.join(SETTLEMENT_MODES)}, got {v!r}"
            )
        return mode

    @field_validator('default_network')
    @classmethod
    def normalize_default_network(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode='after')
    def validate_default_network(self) -> 'Settings':
        """Default network must be one of the enabled networks."""
        if self.default_network not in self.get_enabled_networks():
            raise ValueError(
                f"DEFAULT_NETWORK {self.default_network} is not listed in ENABLED_NETWORKS"
            )
        return self

    @model_validator(mode='after')
    def validate_production(self) -> 'Settings':
        """Validate production-specific requirements."""
        if self.environment == 'production':
            if self.debug:
                raise ValueError('DEBUG must be False in production')
            if self.database_url.startswith('sqlite'):
                raise ValueError('SQLite is not supported in production')
        return self

    def get_enabled_networks(self) -> list[str]:
        """Parse enabled network names from comma-separated string."""
        return [
            name.strip().upper()
            for name in self.enabled_networks.split(",")
            if name.strip()
        ]


# Global settings instance
settings = Settings()
