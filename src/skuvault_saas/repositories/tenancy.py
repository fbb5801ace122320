from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, select, update

from skuvault_saas.db.models import Customer, Tenant
from .base import BaseRepository


@dataclass(frozen=True)
class SyncCredentials:
    """Plain snapshot of what a sync stage needs to call SkuVault for one customer."""
    customer_id: int
    tenant_id: int
    tenant_token: Optional[str]
    user_token: Optional[str]
    last_synced_at: Optional[datetime]

    @property
    def has_tokens(self) -> bool:
        return bool((self.tenant_token or "").strip()) and bool((self.user_token or "").strip())


class CustomerRepository(BaseRepository):
    """Repository for customers and the tenant credentials behind them."""

    async def get(self, customer_id: int) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.id == customer_id)
        return await self.scalar_one_or_none(stmt)

    async def get_by_email(self, email: str) -> Optional[Customer]:
        return await self.scalar_one_or_none(select(Customer).where(Customer.email == email).limit(1))

    async def create(
        self,
        *,
        tenant_id: int,
        name: str,
        email: str,
        external_id: str,
        membership_level: int = 1,
    ) -> Customer:
        customer = Customer(
            tenant_id=tenant_id,
            name=name,
            email=email,
            external_id=external_id,
            membership_level=membership_level,
        )
        self.session.add(customer)
        await self.flush()
        return customer

    async def delete(self, customer_id: int) -> bool:
        """Delete a customer; the database cascades to its users and synced rows."""
        result = await self.execute(delete(Customer).where(Customer.id == customer_id))
        return result.rowcount > 0

    async def get_sync_credentials(self, customer_id: int) -> Optional[SyncCredentials]:
        """Read customer and tenant tokens in one query; None if the customer does not exist."""
        stmt = (
            select(
                Customer.id,
                Customer.tenant_id,
                Tenant.skuvault_tenant_token,
                Tenant.skuvault_user_token,
                Customer.last_synced_at,
            )
            .join(Tenant, Tenant.id == Customer.tenant_id)
            .where(Customer.id == customer_id)
        )
        row = (await self.execute(stmt)).first()
        if row is None:
            return None
        return SyncCredentials(
            customer_id=row[0],
            tenant_id=row[1],
            tenant_token=row[2],
            user_token=row[3],
            last_synced_at=row[4],
        )

    async def list_syncable_customer_ids(self) -> List[int]:
        """Ids of customers whose tenant has a non-blank tenant token, in id order."""
        stmt = (
            select(Customer.id)
            .join(Tenant, Tenant.id == Customer.tenant_id)
            .where(Tenant.skuvault_tenant_token.is_not(None))
            .where(func.trim(Tenant.skuvault_tenant_token) != "")
            .order_by(Customer.id)
        )
        return list(await self.scalars(stmt))

    async def mark_synced(self, customer_id: int, synced_at: datetime) -> None:
        stmt = (
            update(Customer)
            .where(Customer.id == customer_id)
            .values(last_synced_at=synced_at, updated_at=synced_at)
        )
        await self.execute(stmt)

    async def set_membership_level(self, customer_id: int, level: int) -> Optional[Customer]:
        customer = await self.get(customer_id)
        if customer is None:
            return None
        customer.membership_level = level
        await self.flush()
        return customer


class TenantRepository(BaseRepository):
    """Repository for tenants and their SkuVault credentials."""

    async def get(self, tenant_id: int) -> Optional[Tenant]:
        stmt = select(Tenant).where(Tenant.id == tenant_id)
        return await self.scalar_one_or_none(stmt)

    async def get_by_name(self, name: str) -> Optional[Tenant]:
        return await self.scalar_one_or_none(select(Tenant).where(Tenant.name == name))

    async def create(
        self,
        *,
        name: str,
        skuvault_email: Optional[str] = None,
        skuvault_account_id: Optional[str] = None,
        tenant_token: Optional[str] = None,
        user_token: Optional[str] = None,
    ) -> Tenant:
        tenant = Tenant(
            name=name,
            skuvault_email=skuvault_email,
            skuvault_account_id=skuvault_account_id,
            skuvault_tenant_token=tenant_token,
            skuvault_user_token=user_token,
        )
        self.session.add(tenant)
        await self.flush()
        return tenant

    async def delete(self, tenant_id: int) -> bool:
        """
        Delete a tenant. Its customers go with it, and with them every product,
        location, level, movement, transaction and user scoped to those customers.
        """
        result = await self.execute(delete(Tenant).where(Tenant.id == tenant_id))
        return result.rowcount > 0

    async def set_tokens(
        self,
        tenant: Tenant,
        *,
        tenant_token: str,
        user_token: str,
        email: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> Tenant:
        tenant.skuvault_tenant_token = tenant_token
        tenant.skuvault_user_token = user_token
        if email is not None:
            tenant.skuvault_email = email
        if account_id is not None:
            tenant.skuvault_account_id = account_id
        await self.flush()
        return tenant
