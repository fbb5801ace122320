from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service and the sync engine.

    This is separate from skuvault_saas.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="SkuVault SaaS API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Multi-tenant API that mirrors SkuVault inventory data (products, locations, "
            "inventory levels, movements, transactions) into a local store."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, run minimal database seeding after migrations.",
    )

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")

    # Auth / session cookie
    JWT_SECRET_KEY: str = Field(default="change-me", description="HMAC key used to sign session tokens")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 12, ge=1)
    SESSION_COOKIE_NAME: str = Field(default="svsaas_session")
    SESSION_COOKIE_SECURE: bool = Field(
        default=False, description="Mark the session cookie Secure (enable behind HTTPS)."
    )

    # SkuVault upstream API
    SKUVAULT_BASE_URL: str = Field(default="https://app.skuvault.com/api/")
    SKUVAULT_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0)

    # Sync engine
    SYNC_ENABLED: bool = Field(
        default=False, description="If true, run the periodic fleet sync in the background."
    )
    SYNC_INTERVAL_MINUTES: int = Field(default=60, ge=1)
    SYNC_STARTUP_DELAY_MINUTES: int = Field(default=2, ge=0)
    SYNC_DEFAULT_LOOKBACK_DAYS: int = Field(
        default=7, ge=1, description="Movement/transaction window when a customer was never synced."
    )
    SYNC_MAX_CONCURRENCY: int = Field(
        default=1, ge=1, description="Customers synced in parallel by the fleet driver."
    )
    SYNC_CUSTOMER_TIMEOUT_SECONDS: Optional[float] = Field(
        default=900.0, description="Deadline for one customer's full sync. 0 or empty disables it."
    )

    # Automatically load from .env at runtime. The orchestrator will provide these.
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            # Try comma-separated
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]

    @field_validator("SYNC_CUSTOMER_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def _parse_timeout(cls, v):
        if v in (None, "", 0, "0"):
            return None
        return v


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      For simplicity we construct a new instance each time. If caching is desired,
      we can add a module-level cache or lru_cache.
    """
    return AppSettings()
