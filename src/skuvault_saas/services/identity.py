"""
Natural-key to surrogate-id resolution for one customer, plus the key helpers
the reconcilers use to recognise records they have already stored.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from skuvault_saas.repositories.inventory import LocationRepository, ProductRepository
from skuvault_saas.schemas.skuvault import ensure_utc

LOCATION_SEPARATOR = "--"


@dataclass
class IdentityMaps:
    """
    SKU -> product id and location code -> location id for a single customer.

    Build a fresh instance for every reconciliation pass; the maps are a
    snapshot and go stale as soon as products or locations are synced again.
    """

    customer_id: int
    products: Dict[str, int] = field(default_factory=dict)
    locations: Dict[str, int] = field(default_factory=dict)

    # PUBLIC_INTERFACE
    @classmethod
    async def load(cls, session: AsyncSession, customer_id: int) -> "IdentityMaps":
        """Read the customer's products and locations into lookup dicts."""
        products = await ProductRepository(session, customer_id).sku_index()
        locations = await LocationRepository(session, customer_id).code_index()
        return cls(customer_id=customer_id, products=products, locations=locations)

    def product_id(self, sku: Optional[str]) -> Optional[int]:
        if not sku:
            return None
        return self.products.get(sku)

    def location_id(self, code: Optional[str]) -> Optional[int]:
        if not code:
            return None
        return self.locations.get(code)


# PUBLIC_INTERFACE
def parse_location_code(raw: Optional[str]) -> Optional[str]:
    """
    Extract the location code from SkuVault's composite location string.

    "MAIN--A1-01" -> "A1-01"; "A1-01" -> "A1-01"; None or "" -> None.
    """
    if not raw:
        return None
    if LOCATION_SEPARATOR in raw:
        return raw.split(LOCATION_SEPARATOR)[-1]
    return raw


# PUBLIC_INTERFACE
def movement_dedup_key(
    product_id: int,
    performed_by: Optional[str],
    occurred_at: datetime,
    quantity_change: int,
) -> str:
    """
    Stable fingerprint of a movement within a customer.

    Two movements with the same product, user, instant and quantity change are
    the same event; any difference in quantity makes them distinct.
    """
    occurred = ensure_utc(occurred_at).isoformat()
    raw = f"{product_id}|{performed_by or ''}|{occurred}|{quantity_change}"
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


# PUBLIC_INTERFACE
def transaction_key(
    sku: str,
    transaction_date: datetime,
    user: Optional[str],
    context: Optional[str],
    quantity: int,
) -> str:
    """Idempotency key stored as Transaction.sku_vault_id."""
    stamp = ensure_utc(transaction_date).strftime("%Y%m%d%H%M%S")
    return f"{sku}_{stamp}_{user or ''}_{context or 'unknown'}_{quantity}"


# PUBLIC_INTERFACE
def display_name_from_user(user: Optional[str]) -> str:
    """
    Human-friendly name for a SkuVault user.

    "jane.doe@example.com" -> "Jane Doe"; blank -> "Unknown"; anything without
    an "@" is returned unchanged.
    """
    if user is None or not user.strip():
        return "Unknown"
    if "@" not in user:
        return user
    local = user.split("@", 1)[0].replace(".", " ").replace("_", " ")
    name = " ".join(part[:1].upper() + part[1:].lower() for part in local.split())
    return name or "Unknown"
