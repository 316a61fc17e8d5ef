"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the API, the Celery
worker and the operator scripts.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (e.g. sqlite for local tests).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="club_league")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://redis:6379/0")
    CACHE_ENABLED: bool = Field(default=True)
    CACHE_TTL_DEFAULT: int = Field(default=300)  # 5 minutes
    CACHE_TTL_STANDINGS: int = Field(default=600)  # 10 minutes

    # JWT Authentication - tokens are issued by the identity service,
    # this service only verifies them.
    SECRET_KEY: str = Field(
        default=...,  # Required - no default
        description="JWT verification key shared with the identity service (32+ chars)."
    )

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    RATE_LIMIT_PER_MINUTE: int = Field(default=60)

    # Celery Configuration
    CELERY_BROKER_URL: str = Field(default="redis://redis:6379/0")
    CELERY_RESULT_BACKEND: str = Field(default="redis://redis:6379/0")

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # --- CHECK-IN TOKEN PROTOCOL ---
    # Club secrets rotate lazily on the first issuance after this interval.
    CHECKIN_TOKEN_ROTATION_MINUTES: int = Field(default=5, ge=1, le=60)
    CHECKIN_TOKEN_SALT: str = Field(default="club-league-checkin")
    CHECKIN_TOKEN_SECRET_BYTES: int = Field(default=32, ge=16)
    # issued_at values further than this in the future are rejected as tampered.
    CHECKIN_TOKEN_CLOCK_SKEW_S: int = Field(default=30, ge=0)

    # --- DEFAULT RULESET VALUES ---
    # Used to seed rulesets and to fill keys a stored ruleset omits.
    RULESET_CHECKIN_POINTS: int = Field(default=50)
    RULESET_ACTIVITY_POINTS_DIVISOR: int = Field(default=10, ge=1)
    RULESET_MAX_ACTIVITY_POINTS_PER_DAY: int = Field(default=150)
    RULESET_STREAK_BONUS_POINTS: int = Field(default=20)
    RULESET_STREAK_DAYS_REQUIRED: int = Field(default=3, ge=1)
    RULESET_TOP_N_CONTRIBUTORS: int = Field(default=10, ge=1)
    RULESET_HYBRID_ENABLED: bool = Field(default=True)
    RULESET_HOME_WEIGHT: float = Field(default=0.7, ge=0)
    RULESET_VISITOR_WEIGHT: float = Field(default=0.3, ge=0)
    RULESET_PROMOTION_COUNT: int = Field(default=2, ge=0)
    RULESET_DEMOTION_COUNT: int = Field(default=2, ge=0)

    # --- ANTI-CHEAT ---
    MAX_ACTIVITY_PER_DAY: int = Field(default=2500)
    MAX_ACTIVITY_SPIKE: int = Field(default=1000)
    # How many past days the nightly sweep re-checks (1 = previous day only, 0 disables the sweep).
    ANOMALY_SWEEP_LOOKBACK_DAYS: int = Field(default=1, ge=0)

    # --- STREAKS ---
    STREAK_LOOKBACK_DAYS: int = Field(default=30, ge=1)
    STREAK_ACTIVITY_FLOOR: int = Field(default=100, ge=0)

    # --- RETENTION ---
    AUDIT_RETENTION_DAYS: int = Field(default=90, ge=1)


# Global settings instance
settings = Settings()
