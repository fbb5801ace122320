from __future__ import annotations

from typing import Dict, Iterable, List, Set, Tuple

from sqlalchemy import select

from skuvault_saas.db.models import InventoryLevel, InventoryMovement, Location, Product, Transaction
from .base import CustomerScopedRepository

# Keeps IN (...) lists well below driver parameter limits.
_KEY_CHUNK = 500


def _chunks(values: List[str], size: int = _KEY_CHUNK) -> Iterable[List[str]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


class ProductRepository(CustomerScopedRepository):
    """Products of one customer, keyed by SKU."""

    model = Product

    async def map_by_sku(self) -> Dict[str, Product]:
        return {p.sku: p for p in await self.list_all()}

    async def sku_index(self) -> Dict[str, int]:
        """SKU -> product id, read without loading full rows."""
        stmt = select(Product.sku, Product.id).where(Product.customer_id == self.customer_id)
        rows = (await self.execute(stmt)).all()
        return {sku: pid for sku, pid in rows}


class LocationRepository(CustomerScopedRepository):
    """Locations of one customer, keyed by location code."""

    model = Location

    async def map_by_code(self) -> Dict[str, Location]:
        return {loc.code: loc for loc in await self.list_all()}

    async def code_index(self) -> Dict[str, int]:
        stmt = select(Location.code, Location.id).where(Location.customer_id == self.customer_id)
        rows = (await self.execute(stmt)).all()
        return {code: lid for code, lid in rows}


class InventoryLevelRepository(CustomerScopedRepository):
    """Current quantity rows of one customer."""

    model = InventoryLevel

    async def map_by_product_location(self) -> Dict[Tuple[int, int], InventoryLevel]:
        return {(lvl.product_id, lvl.location_id): lvl for lvl in await self.list_all()}


class InventoryMovementRepository(CustomerScopedRepository):
    """Append-only movement history of one customer."""

    model = InventoryMovement

    async def existing_dedup_keys(self, keys: Iterable[str]) -> Set[str]:
        """Return the subset of `keys` already stored for this customer."""
        found: Set[str] = set()
        for chunk in _chunks(sorted(set(keys))):
            stmt = select(InventoryMovement.dedup_key).where(
                InventoryMovement.customer_id == self.customer_id,
                InventoryMovement.dedup_key.in_(chunk),
            )
            found.update(await self.scalars(stmt))
        return found


class TransactionRepository(CustomerScopedRepository):
    """Append-only transaction history of one customer."""

    model = Transaction

    async def existing_sku_vault_ids(self, keys: Iterable[str]) -> Set[str]:
        """Return the subset of `keys` already stored for this customer."""
        found: Set[str] = set()
        for chunk in _chunks(sorted(set(keys))):
            stmt = select(Transaction.sku_vault_id).where(
                Transaction.customer_id == self.customer_id,
                Transaction.sku_vault_id.in_(chunk),
            )
            found.update(await self.scalars(stmt))
        return found
