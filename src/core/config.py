"""Marketplace Settlement Engine - Core Configuration."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, MySQLDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Marketplace Settlement Engine"
    debug: bool = False
    allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # Database
    database_url: MySQLDsn = Field(..., description="MySQL connection string with aiomysql driver")

    # Redis (cache + task queue)
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for cache and task queue",
    )

    # Clerk Authentication
    clerk_secret_key: str = Field(default="", description="Clerk secret key")
    clerk_publishable_key: str = Field(default="", description="Clerk publishable key")

    # Payment gateway (Flutterwave v3 compatible)
    gateway_base_url: str = Field(
        default="https://api.flutterwave.com/v3", description="Payment gateway API base URL"
    )
    gateway_secret_key: str = Field(default="", description="Payment gateway secret key")
    gateway_timeout_seconds: float = Field(
        default=30.0, description="Timeout for a single gateway call"
    )
    transfer_callback_url: str = Field(
        default="", description="Callback URL the gateway notifies about transfers"
    )

    # Money
    currency: str = Field(default="NGN", description="Settlement currency")
    reporting_timezone: str = Field(
        default="Africa/Lagos",
        description="Timezone that defines calendar days for withdrawal windows",
    )
    withdrawal_fee_percent: Decimal = Field(
        default=Decimal("1"), description="Withdrawal fee as percent of amount"
    )
    withdrawal_fee_minimum: Decimal = Field(
        default=Decimal("100"), description="Minimum withdrawal fee"
    )
    default_daily_withdrawal_limit: Decimal = Field(default=Decimal("1000000"))
    default_monthly_withdrawal_limit: Decimal = Field(default=Decimal("10000000"))

    # Bank directory cache TTLs
    banks_cache_ttl_seconds: int = Field(default=86400, description="Banks list cache TTL")
    account_cache_ttl_seconds: int = Field(
        default=3600, description="Account name resolution cache TTL"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()  # type: ignore[call-arg]
