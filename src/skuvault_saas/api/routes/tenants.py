from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from skuvault_saas.clients.skuvault import SkuVaultClient
from skuvault_saas.core.deps import get_skuvault_client, require_admin
from skuvault_saas.db.models import Tenant
from skuvault_saas.db.session import get_async_session
from skuvault_saas.repositories.tenancy import TenantRepository
from skuvault_saas.schemas.tenancy import TenantCreate, TenantCredentialsUpdate, TenantRead, TokenRefreshRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants", tags=["Tenants"], dependencies=[Depends(require_admin)])


def _to_read(tenant: Tenant) -> TenantRead:
    return TenantRead(
        id=tenant.id,
        name=tenant.name,
        skuvault_email=tenant.skuvault_email,
        skuvault_account_id=tenant.skuvault_account_id,
        has_tenant_token=bool((tenant.skuvault_tenant_token or "").strip()),
        has_user_token=bool((tenant.skuvault_user_token or "").strip()),
        updated_at=tenant.updated_at,
    )


async def _get_tenant_or_404(repo: TenantRepository, tenant_id: int) -> Tenant:
    tenant = await repo.get(tenant_id)
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Tenant {tenant_id} not found")
    return tenant


# PUBLIC_INTERFACE
@router.post("", response_model=TenantRead, status_code=status.HTTP_201_CREATED, summary="Create tenant")
async def create_tenant(
    payload: TenantCreate,
    session: AsyncSession = Depends(get_async_session),
) -> TenantRead:
    """
    Register a tenant. Tenant names are unique; a duplicate answers 409.

    Customers are attached afterwards through POST /customers.
    """
    repo = TenantRepository(session)
    if await repo.get_by_name(payload.name) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Tenant {payload.name!r} already exists")
    tenant = await repo.create(
        name=payload.name,
        skuvault_email=payload.skuvault_email,
        skuvault_account_id=payload.skuvault_account_id,
        tenant_token=payload.tenant_token,
        user_token=payload.user_token,
    )
    await repo.commit()
    logger.info("Created tenant %s (%s)", tenant.id, tenant.name)
    return _to_read(tenant)


# PUBLIC_INTERFACE
@router.get("/{tenant_id}", response_model=TenantRead, summary="Read tenant")
async def read_tenant(
    tenant_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_async_session),
) -> TenantRead:
    return _to_read(await _get_tenant_or_404(TenantRepository(session), tenant_id))


# PUBLIC_INTERFACE
@router.delete(
    "/{tenant_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete tenant",
    description="Deletes the tenant together with its customers and all of their synced data.",
)
async def delete_tenant(
    tenant_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_async_session),
) -> Response:
    repo = TenantRepository(session)
    if not await repo.delete(tenant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Tenant {tenant_id} not found")
    await repo.commit()
    logger.info("Deleted tenant %s", tenant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.put(
    "/{tenant_id}/credentials",
    response_model=TenantRead,
    summary="Set SkuVault tokens",
    description="Store a TenantToken/UserToken pair obtained elsewhere.",
)
async def update_credentials(
    payload: TenantCredentialsUpdate,
    tenant_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_async_session),
) -> TenantRead:
    """Replace a tenant's SkuVault tokens."""
    repo = TenantRepository(session)
    tenant = await _get_tenant_or_404(repo, tenant_id)
    await repo.set_tokens(
        tenant,
        tenant_token=payload.tenant_token,
        user_token=payload.user_token,
        account_id=payload.account_id,
    )
    await repo.commit()
    logger.info("SkuVault tokens updated for tenant %s", tenant_id)
    return _to_read(tenant)


# PUBLIC_INTERFACE
@router.post(
    "/{tenant_id}/tokens/refresh",
    response_model=TenantRead,
    summary="Obtain SkuVault tokens from a login",
    description=(
        "Exchanges a SkuVault email/password for fresh tokens and stores them with the email. "
        "The password is used once and never stored. Answers 502 when SkuVault rejects the call."
    ),
)
async def refresh_tokens(
    payload: TokenRefreshRequest,
    tenant_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_async_session),
    client: SkuVaultClient = Depends(get_skuvault_client),
) -> TenantRead:
    repo = TenantRepository(session)
    tenant = await _get_tenant_or_404(repo, tenant_id)
    tokens = await client.get_tokens(payload.email, payload.password)
    await repo.set_tokens(
        tenant,
        tenant_token=tokens.tenant_token,
        user_token=tokens.user_token,
        email=payload.email,
    )
    await repo.commit()
    logger.info("SkuVault tokens refreshed for tenant %s", tenant_id)
    return _to_read(tenant)
