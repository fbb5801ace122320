from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from skuvault_saas.core.deps import ensure_customer_access, get_current_active_user, require_admin
from skuvault_saas.core.membership import MembershipLevel, available_reports, can_access_report, required_level
from skuvault_saas.db.models import Customer, User
from skuvault_saas.db.session import get_async_session
from skuvault_saas.repositories.tenancy import CustomerRepository
from skuvault_saas.schemas.tenancy import MembershipRead, MembershipUpdate, ReportAccessRead
from skuvault_saas.services.sync import CustomerNotFoundError

router = APIRouter(prefix="/membership", tags=["Membership"])

_CUSTOMER_QUERY = Query(None, ge=1, description="Customer to inspect (admins); defaults to the caller's customer")


def _to_read(customer: Customer) -> MembershipRead:
    level = MembershipLevel(customer.membership_level)
    return MembershipRead(
        customer_id=customer.id,
        level=int(level),
        level_name=level.name.title(),
        available_reports=available_reports(level),
    )


async def _resolve_customer(session: AsyncSession, user: User, customer_id: Optional[int]) -> Customer:
    target = customer_id if customer_id is not None else user.customer_id
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No customer is associated with this user")
    ensure_customer_access(user, target)
    customer = await CustomerRepository(session).get(target)
    if customer is None:
        raise CustomerNotFoundError(target)
    return customer


# PUBLIC_INTERFACE
@router.get("/me", response_model=MembershipRead, summary="Current membership")
async def read_membership(
    customer_id: Optional[int] = _CUSTOMER_QUERY,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> MembershipRead:
    """Membership tier of the caller's customer and the reports it unlocks."""
    return _to_read(await _resolve_customer(session, user, customer_id))


# PUBLIC_INTERFACE
@router.get("/reports/{report_name}", response_model=ReportAccessRead, summary="Check report access")
async def check_report_access(
    report_name: str = Path(..., min_length=1),
    customer_id: Optional[int] = _CUSTOMER_QUERY,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> ReportAccessRead:
    """
    Whether the caller's customer may open a report.

    Unknown report names are never accessible and report Enterprise as the
    required tier.
    """
    customer = await _resolve_customer(session, user, customer_id)
    needed = required_level(report_name)
    return ReportAccessRead(
        report=report_name,
        allowed=can_access_report(customer.membership_level, report_name),
        current_level=customer.membership_level,
        required_level=int(needed),
        required_level_name=needed.name.title(),
    )


# PUBLIC_INTERFACE
@router.put(
    "/customers/{customer_id}",
    response_model=MembershipRead,
    summary="Change membership tier",
    dependencies=[Depends(require_admin)],
)
async def update_membership(
    payload: MembershipUpdate,
    customer_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_async_session),
) -> MembershipRead:
    repo = CustomerRepository(session)
    customer = await repo.set_membership_level(customer_id, payload.level)
    if customer is None:
        raise CustomerNotFoundError(customer_id)
    await repo.commit()
    return _to_read(customer)
