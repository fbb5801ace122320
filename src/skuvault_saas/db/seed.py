"""
Database seeding utilities for minimal reference data.

Seeds:
- Demo tenant (no SkuVault tokens; set them via the tenants API)
- Demo customer at the Basic membership level
- Admin user (admin@example.com / admin) bound to no customer

Usage:
  python -m skuvault_saas.db.run_migrations upgrade head
  python -m skuvault_saas.db.seed
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skuvault_saas.core.membership import MembershipLevel
from skuvault_saas.core.security import get_password_hash
from skuvault_saas.db.models import Customer, Tenant, User
from skuvault_saas.db.session import get_session_factory

logger = logging.getLogger(__name__)

DEMO_TENANT_NAME = "Demo Tenant"
DEMO_CUSTOMER_EXTERNAL_ID = "demo"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin"


# PUBLIC_INTERFACE
async def seed_all(session: AsyncSession | None = None) -> None:
    """
    Seed the database with minimal reference data. Safe to run repeatedly.

    Parameters:
        session: Optional session to seed through (tests); otherwise one is
            opened from the global session factory.
    """
    if session is not None:
        await _seed(session)
        return
    async with get_session_factory()() as own:
        await _seed(own)


async def _seed(session: AsyncSession) -> None:
    tenant = await _ensure_tenant(session, DEMO_TENANT_NAME)
    await _ensure_customer(session, tenant, DEMO_CUSTOMER_EXTERNAL_ID)
    await _ensure_admin(session, ADMIN_EMAIL, ADMIN_PASSWORD)
    await session.commit()


async def _ensure_tenant(session: AsyncSession, name: str) -> Tenant:
    tenant = (await session.execute(select(Tenant).where(Tenant.name == name))).scalar_one_or_none()
    if tenant is None:
        tenant = Tenant(name=name)
        session.add(tenant)
        await session.flush()
        logger.info("Seeded tenant %s (id=%s)", name, tenant.id)
    return tenant


async def _ensure_customer(session: AsyncSession, tenant: Tenant, external_id: str) -> Customer:
    stmt = select(Customer).where(Customer.tenant_id == tenant.id, Customer.external_id == external_id)
    customer = (await session.execute(stmt)).scalar_one_or_none()
    if customer is None:
        customer = Customer(
            tenant_id=tenant.id,
            external_id=external_id,
            name="Demo Customer",
            email="demo@example.com",
            membership_level=int(MembershipLevel.BASIC),
        )
        session.add(customer)
        await session.flush()
        logger.info("Seeded customer %s (id=%s)", external_id, customer.id)
    return customer


async def _ensure_admin(session: AsyncSession, email: str, password: str) -> User:
    user = (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        user = User(
            email=email,
            full_name="Administrator",
            hashed_password=get_password_hash(password),
            is_active=True,
            is_admin=True,
        )
        session.add(user)
        await session.flush()
        logger.info("Seeded admin user %s", email)
    return user


# PUBLIC_INTERFACE
def main() -> None:
    """Entrypoint to run the asynchronous seeding."""
    asyncio.run(seed_all())


if __name__ == "__main__":
    main()
