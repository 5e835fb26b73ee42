"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from affiliate.config.operational_constants import LOCK_TIMEOUT_MEDIUM


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False
    database_pool_size: int = Field(default=10, ge=1)

    # Redis (for Dramatiq and distributed locks)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str | None = "logs/affiliate.log"

    # Referral closure
    referral_closure_max_depth: int = Field(
        default=64,
        ge=2,
        description=(
            "Maximum referrer chain length accepted by both incremental "
            "registration and full rebuild. Longer chains are rejected."
        ),
    )
    closure_rebuild_batch_size: int = Field(
        default=1000,
        ge=1,
        description="Rows per INSERT statement when swapping in a rebuilt closure",
    )

    # Commission calculation
    commission_money_quantum: Decimal = Field(
        default=Decimal("0.01"),
        gt=0,
        description="Smallest currency unit; amounts are rounded half-even to it",
    )
    commission_allow_partial: bool = Field(
        default=False,
        description=(
            "Persist the valid lines of an order when other lines fail "
            "validation (outcome=partial) instead of failing the whole order"
        ),
    )
    commission_lock_timeout: int = Field(
        default=LOCK_TIMEOUT_MEDIUM,
        gt=0,
        description="Per-order calculation lock expiry in seconds",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://")):
            raise ValueError(
                "DATABASE_URL must start with postgresql:// or postgresql+asyncpg://"
            )
        return v

    @field_validator("commission_money_quantum")
    @classmethod
    def validate_money_quantum(cls, v: Decimal) -> Decimal:
        """Quantum must be a power of ten (1, 0.1, 0.01, ...)."""
        if v.normalize() != Decimal(1).scaleb(v.normalize().as_tuple().exponent):
            raise ValueError(
                f"COMMISSION_MONEY_QUANTUM must be a power of ten, got {v}"
            )
        return v

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production":
            if self.debug:
                raise ValueError(
                    "DEBUG must be False in production environment. "
                    "Set DEBUG=false in your .env file."
                )
            if self.commission_allow_partial:
                logger.warning(
                    "COMMISSION_ALLOW_PARTIAL is enabled in production: orders "
                    "with invalid lines will be paid out partially."
                )
        return self

    @property
    def async_database_url(self) -> str:
        """Database URL with the asyncpg driver."""
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace(
                "postgresql://", "postgresql+asyncpg://", 1
            )
        return self.database_url


# Global settings instance
settings = Settings()
