# settings.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal



class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -----------------------
    # DB
    # -----------------------
    DATABASE_URL: str = Field(default="postgresql://localhost:5432/tutormatch")
    DB_POOL_MAX: int = Field(default=10, ge=1)

    # -----------------------
    # JWT
    # -----------------------
    JWT_SECRET: str = Field(default="dev-secret-change-me", min_length=16)
    JWT_ALG: str = Field(default="HS256")
    JWT_ACCESS_MINUTES: int = Field(default=7 * 24 * 60)

    # -----------------------
    # Logging
    # -----------------------
    LOG_LEVEL: str = "INFO"

    # -----------------------
    # Checkout (mode switch)
    # -----------------------
    CHECKOUT_MODE: Literal["mock", "stripe"] = "mock"
    CHECKOUT_CURRENCY: str = "usd"
    CHECKOUT_SUCCESS_URL: str = "http://localhost:5173/student/dashboard?payment=success"
    CHECKOUT_CANCEL_URL: str = "http://localhost:5173/student/dashboard?payment=cancelled"
    CHECKOUT_HTTP_TIMEOUT_S: float = 20.0

    STRIPE_API_BASE: str = "https://api.stripe.com"
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_WEBHOOK_TOLERANCE_S: int = 300

    # -----------------------
    # Assignment lifecycle
    # -----------------------
    PAYMENT_PENDING_TTL_MINUTES: int = Field(default=60, ge=1)

    # -----------------------
    # Rate limiting
    # -----------------------
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_LOGIN_PER_MIN: int = 10



settings = Settings()
