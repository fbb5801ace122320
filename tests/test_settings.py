import pytest

from skuvault_saas.core.settings import AppSettings
from skuvault_saas.db.config import Settings


def test_cors_origins_accept_comma_separated() -> None:
    settings = AppSettings(CORS_ORIGINS="https://a.example, https://b.example")
    assert settings.CORS_ORIGINS == ["https://a.example", "https://b.example"]


def test_customer_timeout_zero_disables_deadline() -> None:
    assert AppSettings(SYNC_CUSTOMER_TIMEOUT_SECONDS=0).SYNC_CUSTOMER_TIMEOUT_SECONDS is None
    assert AppSettings(SYNC_CUSTOMER_TIMEOUT_SECONDS=30).SYNC_CUSTOMER_TIMEOUT_SECONDS == 30


@pytest.mark.parametrize(
    "url, async_url, sync_url",
    [
        ("postgresql://u:p@db:5432/sv", "postgresql+asyncpg://u:p@db:5432/sv", "postgresql://u:p@db:5432/sv"),
        ("postgres://u:p@db/sv", "postgresql+asyncpg://u:p@db/sv", "postgres://u:p@db/sv"),
        ("sqlite:///./local.db", "sqlite+aiosqlite:///./local.db", "sqlite:///./local.db"),
        ("sqlite+aiosqlite:///./local.db", "sqlite+aiosqlite:///./local.db", "sqlite:///./local.db"),
    ],
)
def test_database_url_variants(url, async_url, sync_url) -> None:
    settings = Settings(DATABASE_URL=url)
    assert settings.async_database_url == async_url
    assert settings.sync_database_url == sync_url


def test_database_url_from_parts() -> None:
    settings = Settings(POSTGRES_USER="u", POSTGRES_PASSWORD="p", POSTGRES_DB="sv", POSTGRES_HOST="db")
    assert settings.database_url == "postgresql://u:p@db:5432/sv"


def test_missing_database_configuration_raises(monkeypatch) -> None:
    for name in ("DATABASE_URL", "POSTGRES_URL", "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_DB"):
        monkeypatch.delenv(name, raising=False)
    with pytest.raises(ValueError):
        Settings().database_url
