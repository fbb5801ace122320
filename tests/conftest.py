import os

os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("AUTO_SEED", "false")
os.environ.setdefault("SYNC_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from skuvault_saas.db.base import Base
from skuvault_saas.db.models import Customer, Location, Product, Tenant
from skuvault_saas.db.session import enable_sqlite_foreign_keys
from skuvault_saas.schemas.skuvault import (
    SkuVaultInventoryLevel,
    SkuVaultLocation,
    SkuVaultMovement,
    SkuVaultProduct,
    SkuVaultTokens,
)

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


class FakeSkuVaultClient:
    """
    In-memory stand-in for SkuVaultClient.

    Feeds are PascalCase dicts as SkuVault sends them. `failures` maps a tenant
    token to the exception every call with that token raises.
    """

    def __init__(self) -> None:
        self.products: List[Dict[str, Any]] = []
        self.locations: List[Dict[str, Any]] = []
        self.inventory: List[Dict[str, Any]] = []
        self.movements: List[Dict[str, Any]] = []
        self.tokens: Dict[str, str] = {"TenantToken": "fresh-tenant", "UserToken": "fresh-user"}
        self.failures: Dict[str, BaseException] = {}
        self.delay = 0.0
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    def calls_for(self, name: str) -> List[Tuple[str, str, Dict[str, Any]]]:
        return [c for c in self.calls if c[0] == name]

    async def _enter(self, name: str, tenant_token: str, **extra: Any) -> None:
        self.calls.append((name, tenant_token, extra))
        if self.delay:
            await asyncio.sleep(self.delay)
        failure = self.failures.get(tenant_token)
        if failure is not None:
            raise failure

    async def get_tokens(self, email: str, password: str) -> SkuVaultTokens:
        self.calls.append(("tokens", email, {}))
        return SkuVaultTokens.model_validate(self.tokens)

    async def get_products(self, tenant_token: str, user_token: str) -> List[SkuVaultProduct]:
        await self._enter("products", tenant_token)
        return [SkuVaultProduct.model_validate(p) for p in self.products]

    async def get_locations(self, tenant_token: str, user_token: str) -> List[SkuVaultLocation]:
        await self._enter("locations", tenant_token)
        return [SkuVaultLocation.model_validate(loc) for loc in self.locations]

    async def get_inventory(self, tenant_token: str, user_token: str) -> List[SkuVaultInventoryLevel]:
        await self._enter("inventory", tenant_token)
        return [SkuVaultInventoryLevel.model_validate(i) for i in self.inventory]

    async def get_inventory_movements(
        self,
        tenant_token: str,
        user_token: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> List[SkuVaultMovement]:
        await self._enter("movements", tenant_token, from_date=from_date, to_date=to_date)
        return [SkuVaultMovement.model_validate(m) for m in self.movements]

    async def aclose(self) -> None:
        return None


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'skuvault.db'}")
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def fake_client() -> FakeSkuVaultClient:
    return FakeSkuVaultClient()


@pytest.fixture
def make_customer(session_factory):
    """Create a tenant and one customer under it; returns the Customer."""
    counter = itertools.count(1)

    async def _make(
        *,
        tenant_token: Optional[str] = "tenant-token",
        user_token: Optional[str] = "user-token",
        last_synced_at: Optional[datetime] = None,
        membership_level: int = 1,
    ) -> Customer:
        n = next(counter)
        async with session_factory() as s:
            tenant = Tenant(
                name=f"Tenant {n}",
                skuvault_tenant_token=tenant_token,
                skuvault_user_token=user_token,
            )
            s.add(tenant)
            await s.flush()
            customer = Customer(
                tenant_id=tenant.id,
                external_id=f"cust-{n}",
                name=f"Customer {n}",
                email=f"customer{n}@acme.com",
                membership_level=membership_level,
                last_synced_at=last_synced_at,
            )
            s.add(customer)
            await s.commit()
            return customer

    return _make


@pytest.fixture
def add_catalog(session_factory):
    """Insert products and locations directly; returns ({sku: id}, {code: id})."""

    async def _add(customer_id: int, skus=(), codes=()) -> Tuple[Dict[str, int], Dict[str, int]]:
        async with session_factory() as s:
            products = [Product(customer_id=customer_id, sku=sku, name=sku) for sku in skus]
            locations = [Location(customer_id=customer_id, code=code) for code in codes]
            s.add_all(products + locations)
            await s.commit()
            return {p.sku: p.id for p in products}, {loc.code: loc.id for loc in locations}

    return _add
