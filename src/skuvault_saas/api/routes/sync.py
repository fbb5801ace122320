from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skuvault_saas.clients.skuvault import SkuVaultClient
from skuvault_saas.core.deps import (
    ensure_customer_access,
    get_current_active_user,
    get_skuvault_client,
    get_sync_session_factory,
    require_admin,
)
from skuvault_saas.core.settings import get_app_settings
from skuvault_saas.db.models import User
from skuvault_saas.db.session import get_async_session
from skuvault_saas.repositories.inventory import (
    InventoryLevelRepository,
    InventoryMovementRepository,
    LocationRepository,
    ProductRepository,
    TransactionRepository,
)
from skuvault_saas.repositories.tenancy import CustomerRepository
from skuvault_saas.schemas.sync import (
    CustomerSyncResult,
    FleetSyncResult,
    StageResult,
    SyncCounts,
    SyncStatusRead,
)
from skuvault_saas.services.fleet import FleetSyncDriver
from skuvault_saas.services.sync import CustomerNotFoundError, SyncService

router = APIRouter(prefix="/sync", tags=["Sync"])

_SINCE = Query(
    None,
    description="Window start (ISO-8601). Defaults to the last sync time, or 7 days ago if never synced.",
)


def _service(session: AsyncSession, client: SkuVaultClient) -> SyncService:
    return SyncService(session, client, lookback_days=get_app_settings().SYNC_DEFAULT_LOOKBACK_DAYS)


# PUBLIC_INTERFACE
@router.post(
    "/customer/{customer_id}",
    response_model=CustomerSyncResult,
    summary="Full sync for one customer",
    description=(
        "Products, locations, inventory levels, movements and transactions, in that order. "
        "Answers 502 when SkuVault is unavailable and 404 for an unknown customer."
    ),
)
async def sync_customer(
    customer_id: int = Path(..., ge=1),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
    client: SkuVaultClient = Depends(get_skuvault_client),
) -> CustomerSyncResult:
    """Run every sync stage for a customer."""
    ensure_customer_access(user, customer_id)
    return await _service(session, client).sync_customer(customer_id)


# PUBLIC_INTERFACE
@router.post("/customer/{customer_id}/products", response_model=StageResult, summary="Sync products")
async def sync_products(
    customer_id: int = Path(..., ge=1),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
    client: SkuVaultClient = Depends(get_skuvault_client),
) -> StageResult:
    ensure_customer_access(user, customer_id)
    return await _service(session, client).sync_products(customer_id)


# PUBLIC_INTERFACE
@router.post("/customer/{customer_id}/locations", response_model=StageResult, summary="Sync locations")
async def sync_locations(
    customer_id: int = Path(..., ge=1),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
    client: SkuVaultClient = Depends(get_skuvault_client),
) -> StageResult:
    ensure_customer_access(user, customer_id)
    return await _service(session, client).sync_locations(customer_id)


# PUBLIC_INTERFACE
@router.post("/customer/{customer_id}/inventory", response_model=StageResult, summary="Sync inventory levels")
async def sync_inventory(
    customer_id: int = Path(..., ge=1),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
    client: SkuVaultClient = Depends(get_skuvault_client),
) -> StageResult:
    ensure_customer_access(user, customer_id)
    return await _service(session, client).sync_inventory_levels(customer_id)


# PUBLIC_INTERFACE
@router.post("/customer/{customer_id}/movements", response_model=StageResult, summary="Sync inventory movements")
async def sync_movements(
    customer_id: int = Path(..., ge=1),
    since: Optional[datetime] = _SINCE,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
    client: SkuVaultClient = Depends(get_skuvault_client),
) -> StageResult:
    ensure_customer_access(user, customer_id)
    return await _service(session, client).sync_inventory_movements(customer_id, since=since)


# PUBLIC_INTERFACE
@router.post("/customer/{customer_id}/transactions", response_model=StageResult, summary="Sync transactions")
async def sync_transactions(
    customer_id: int = Path(..., ge=1),
    since: Optional[datetime] = _SINCE,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
    client: SkuVaultClient = Depends(get_skuvault_client),
) -> StageResult:
    ensure_customer_access(user, customer_id)
    return await _service(session, client).sync_transactions(customer_id, since=since)


# PUBLIC_INTERFACE
@router.post(
    "/all",
    response_model=FleetSyncResult,
    summary="Sync every customer",
    description="Admin only. Per-customer failures are reported in the result rather than failing the request.",
)
async def sync_all(
    _: User = Depends(require_admin),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_sync_session_factory),
    client: SkuVaultClient = Depends(get_skuvault_client),
) -> FleetSyncResult:
    driver = FleetSyncDriver.from_settings(session_factory, client, get_app_settings())
    return await driver.sync_all_customers()


# PUBLIC_INTERFACE
@router.get(
    "/customer/{customer_id}/status",
    response_model=SyncStatusRead,
    summary="Sync status",
    description="Last sync time, credential presence and stored row counts. Token values are never returned.",
)
async def sync_status(
    customer_id: int = Path(..., ge=1),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> SyncStatusRead:
    """Report what is configured and stored for a customer."""
    ensure_customer_access(user, customer_id)
    customer = await CustomerRepository(session).get(customer_id)
    if customer is None:
        raise CustomerNotFoundError(customer_id)

    tenant = customer.tenant
    tenant_token = (tenant.skuvault_tenant_token or "") if tenant else ""
    user_token = (tenant.skuvault_user_token or "") if tenant else ""
    counts = SyncCounts(
        products=await ProductRepository(session, customer_id).count(),
        locations=await LocationRepository(session, customer_id).count(),
        inventory_levels=await InventoryLevelRepository(session, customer_id).count(),
        inventory_movements=await InventoryMovementRepository(session, customer_id).count(),
        transactions=await TransactionRepository(session, customer_id).count(),
    )
    return SyncStatusRead(
        customer_id=customer.id,
        customer_name=customer.name,
        tenant_id=customer.tenant_id,
        last_synced_at=customer.last_synced_at,
        has_tenant_token=bool(tenant_token.strip()),
        has_user_token=bool(user_token.strip()),
        tenant_token_length=len(tenant_token),
        user_token_length=len(user_token),
        counts=counts,
    )
