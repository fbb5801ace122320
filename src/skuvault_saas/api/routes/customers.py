from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from skuvault_saas.core.deps import require_admin
from skuvault_saas.db.session import get_async_session
from skuvault_saas.repositories.tenancy import CustomerRepository, TenantRepository
from skuvault_saas.schemas.tenancy import CustomerCreate, CustomerRead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["Customers"], dependencies=[Depends(require_admin)])


# PUBLIC_INTERFACE
@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED, summary="Create customer")
async def create_customer(
    payload: CustomerCreate,
    session: AsyncSession = Depends(get_async_session),
) -> CustomerRead:
    """
    Attach a new customer to an existing tenant.

    The customer starts unsynced; the next sync falls back to the default
    lookback window for movements and transactions. Answers 404 for an unknown
    tenant and 409 when the email is already used by another customer.
    """
    if await TenantRepository(session).get(payload.tenant_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Tenant {payload.tenant_id} not found")
    repo = CustomerRepository(session)
    if await repo.get_by_email(payload.email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A customer with this email already exists")

    customer = await repo.create(
        tenant_id=payload.tenant_id,
        name=payload.name,
        email=payload.email,
        external_id=payload.external_id or str(uuid4()),
        membership_level=payload.membership_level,
    )
    await repo.commit()
    logger.info("Created customer %s under tenant %s", customer.id, customer.tenant_id)
    return CustomerRead.model_validate(customer)


# PUBLIC_INTERFACE
@router.get("/{customer_id}", response_model=CustomerRead, summary="Read customer")
async def read_customer(
    customer_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_async_session),
) -> CustomerRead:
    customer = await CustomerRepository(session).get(customer_id)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Customer {customer_id} not found")
    return CustomerRead.model_validate(customer)


# PUBLIC_INTERFACE
@router.delete(
    "/{customer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete customer",
    description="Removes the customer, its users and every product, location, level, movement and transaction synced for it.",
)
async def delete_customer(
    customer_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_async_session),
) -> Response:
    repo = CustomerRepository(session)
    if not await repo.delete(customer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Customer {customer_id} not found")
    await repo.commit()
    logger.info("Deleted customer %s", customer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
