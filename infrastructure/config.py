"""Application settings loaded from the environment"""
import logging
import os
import secrets
from functools import lru_cache
from typing import Optional, Mapping

from pydantic import BaseModel, Field, validator

logger = logging.getLogger(__name__)

# Stripe keeps a checkout session open for at least this long
MIN_PENDING_HOLD_MINUTES = 30


class Settings(BaseModel):
    """Runtime configuration. Amounts are in minor currency units."""

    database_url: Optional[str] = None

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    public_base_url: str = "http://localhost:3000"
    checkout_timeout_seconds: float = Field(default=10.0, gt=0)
    checkout_max_network_retries: int = Field(default=2, ge=0)

    # Pricing & capacity
    nightly_rate: int = Field(default=15000, gt=0)
    currency: str = "nok"
    pending_hold_minutes: int = Field(default=30, ge=0)

    # Admin auth
    admin_username: Optional[str] = None
    admin_password: Optional[str] = None
    jwt_secret_key: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Booking rate limit
    booking_rate_limit: int = Field(default=10, ge=1)
    booking_rate_window_seconds: int = Field(default=60, ge=1)
    redis_url: Optional[str] = None

    log_level: str = "INFO"

    @validator("pending_hold_minutes")
    def hold_covers_checkout(cls, v):
        if 0 < v < MIN_PENDING_HOLD_MINUTES:
            raise ValueError(
                f"pending_hold_minutes must be 0 or at least {MIN_PENDING_HOLD_MINUTES}"
            )
        return v

    @property
    def admin_configured(self) -> bool:
        return bool(self.admin_username and self.admin_password)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        mapping = {
            "database_url": "DATABASE_URL",
            "stripe_secret_key": "STRIPE_SECRET_KEY",
            "stripe_webhook_secret": "STRIPE_WEBHOOK_SECRET",
            "public_base_url": "PUBLIC_BASE_URL",
            "checkout_timeout_seconds": "CHECKOUT_TIMEOUT_SECONDS",
            "checkout_max_network_retries": "CHECKOUT_MAX_NETWORK_RETRIES",
            "nightly_rate": "NIGHTLY_RATE",
            "currency": "CURRENCY",
            "pending_hold_minutes": "PENDING_HOLD_MINUTES",
            "admin_username": "ADMIN_USER",
            "admin_password": "ADMIN_PASS",
            "jwt_secret_key": "JWT_SECRET_KEY",
            "jwt_algorithm": "JWT_ALGORITHM",
            "access_token_expire_minutes": "ACCESS_TOKEN_EXPIRE_MINUTES",
            "booking_rate_limit": "BOOKING_RATE_LIMIT",
            "booking_rate_window_seconds": "BOOKING_RATE_WINDOW_SECONDS",
            "redis_url": "REDIS_URL",
            "log_level": "LOG_LEVEL",
        }
        values = {field: env[var] for field, var in mapping.items() if env.get(var)}
        if "jwt_secret_key" not in values:
            logger.warning(
                "JWT_SECRET_KEY not set; using a random per-process key, "
                "admin tokens will not validate across workers or restarts"
            )
        return cls(**values)


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
