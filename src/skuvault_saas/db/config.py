from __future__ import annotations

import re
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_SQLITE_SCHEME = re.compile(r"^sqlite(\+\w+)?://")
_POSTGRES_SCHEME = re.compile(r"^postgres(ql)?(\+\w+)?://")


# PUBLIC_INTERFACE
def to_async_url(url: str) -> str:
    """
    Rewrite a database URL for the async engine.

    PostgreSQL URLs (any driver tag, or the short "postgres://" scheme) become
    postgresql+asyncpg; sqlite URLs become sqlite+aiosqlite. Other URLs are
    returned unchanged.
    """
    if _SQLITE_SCHEME.match(url):
        return _SQLITE_SCHEME.sub("sqlite+aiosqlite://", url)
    if _POSTGRES_SCHEME.match(url):
        return _POSTGRES_SCHEME.sub("postgresql+asyncpg://", url)
    return url


# PUBLIC_INTERFACE
def to_sync_url(url: str) -> str:
    """Strip an explicit driver tag so offline Alembic can render SQL for the dialect."""
    url = re.sub(r"^sqlite\+\w+://", "sqlite://", url)
    return re.sub(r"^postgresql\+\w+://", "postgresql://", url)


class Settings(BaseSettings):
    """
    Database settings for the mirrored SkuVault store.

    Resolution order for the connection URL:
      1. DATABASE_URL (PostgreSQL or sqlite)
      2. POSTGRES_URL
      3. POSTGRES_USER / POSTGRES_PASSWORD / POSTGRES_DB (+ POSTGRES_HOST, POSTGRES_PORT)
    """

    DATABASE_URL: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL; sqlite URLs are accepted for local runs and tests.",
    )
    POSTGRES_URL: Optional[str] = Field(default=None, description="Full PostgreSQL connection URL")
    POSTGRES_USER: Optional[str] = Field(default=None)
    POSTGRES_PASSWORD: Optional[str] = Field(default=None)
    POSTGRES_DB: Optional[str] = Field(default=None)
    POSTGRES_HOST: Optional[str] = Field(default="localhost")
    POSTGRES_PORT: Optional[int] = Field(default=5432)

    # Engine options; pool sizing is ignored for sqlite
    SQL_ECHO: bool = Field(default=False, description="Log every SQL statement")
    DB_POOL_SIZE: int = Field(default=5, ge=1, description="Connections kept open per process")
    DB_MAX_OVERFLOW: int = Field(default=10, ge=0, description="Extra connections under load (fleet sync)")
    DB_POOL_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def database_url(self) -> str:
        """The configured URL before any driver rewriting."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if self.POSTGRES_URL:
            return self.POSTGRES_URL
        if not all([self.POSTGRES_USER, self.POSTGRES_PASSWORD, self.POSTGRES_DB]):
            raise ValueError(
                "Database configuration missing. Set DATABASE_URL, POSTGRES_URL or "
                "POSTGRES_USER, POSTGRES_PASSWORD and POSTGRES_DB."
            )
        host = self.POSTGRES_HOST or "localhost"
        port = self.POSTGRES_PORT or 5432
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{host}:{port}/{self.POSTGRES_DB}"

    @property
    def async_database_url(self) -> str:
        return to_async_url(self.database_url)

    @property
    def sync_database_url(self) -> str:
        return to_sync_url(self.database_url)

    @property
    def is_sqlite(self) -> bool:
        return self.async_database_url.startswith("sqlite")


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Read database settings from the environment (and .env)."""
    return Settings()
