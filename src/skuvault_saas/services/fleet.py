from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skuvault_saas.clients.skuvault import SkuVaultApiError, SkuVaultClient
from skuvault_saas.core.logging import customer_log_context
from skuvault_saas.core.settings import AppSettings
from skuvault_saas.db.base import utcnow
from skuvault_saas.repositories.tenancy import CustomerRepository
from skuvault_saas.schemas.sync import (
    CustomerSyncOutcome,
    CustomerSyncResult,
    FleetOutcome,
    FleetSyncResult,
)
from skuvault_saas.services.sync import SyncService

logger = logging.getLogger(__name__)


class _WorkTimeout(Exception):
    """
    A TimeoutError raised inside a customer sync (database pool, driver), held
    apart from the per-customer deadline that asyncio.wait_for enforces.
    """

    def __init__(self, original: BaseException) -> None:
        super().__init__(str(original))
        self.original = original


class FleetSyncDriver:
    """
    Runs a full sync for every customer whose tenant has SkuVault credentials.

    Each customer gets its own session from `session_factory`, so a failure
    rolled back for one customer never touches another customer's work.
    A failing customer is logged and recorded in the result; the run always
    continues with the next customer.

    Parameters:
        session_factory: async_sessionmaker used to open one session per customer.
        client: Shared SkuVault client.
        max_concurrency: Customers synced at the same time (1 = sequential).
        customer_timeout: Seconds allowed for one customer's sync; None disables it.
        lookback_days: Passed through to SyncService.
        clock: Passed through to SyncService.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: SkuVaultClient,
        *,
        max_concurrency: int = 1,
        customer_timeout: Optional[float] = None,
        lookback_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._client = client
        self._max_concurrency = max(1, max_concurrency)
        self._customer_timeout = customer_timeout
        self._lookback_days = lookback_days
        self._clock = clock

    # PUBLIC_INTERFACE
    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        client: SkuVaultClient,
        settings: AppSettings,
    ) -> "FleetSyncDriver":
        """Build a driver from the SYNC_* settings."""
        return cls(
            session_factory,
            client,
            max_concurrency=settings.SYNC_MAX_CONCURRENCY,
            customer_timeout=settings.SYNC_CUSTOMER_TIMEOUT_SECONDS,
            lookback_days=settings.SYNC_DEFAULT_LOOKBACK_DAYS,
        )

    # PUBLIC_INTERFACE
    async def sync_all_customers(self) -> FleetSyncResult:
        """
        Sync every eligible customer.

        Returns:
            FleetSyncResult with one outcome per customer, in customer id order.
            Per-customer failures are reported there and never raised.
        """
        started_at = self._clock()
        async with self._session_factory() as session:
            customer_ids = await CustomerRepository(session).list_syncable_customer_ids()
        logger.info(
            "Starting fleet sync for %d customers (concurrency=%d)", len(customer_ids), self._max_concurrency
        )

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _bounded(customer_id: int) -> CustomerSyncOutcome:
            async with semaphore:
                return await self._sync_one(customer_id)

        outcomes: List[CustomerSyncOutcome] = list(
            await asyncio.gather(*(_bounded(cid) for cid in customer_ids))
        )
        result = FleetSyncResult(
            started_at=started_at,
            finished_at=self._clock(),
            outcomes=outcomes,
            succeeded=sum(1 for o in outcomes if o.outcome == FleetOutcome.SYNCED),
            incomplete=sum(1 for o in outcomes if o.outcome == FleetOutcome.INCOMPLETE),
            failed=sum(
                1 for o in outcomes if o.outcome not in (FleetOutcome.SYNCED, FleetOutcome.INCOMPLETE)
            ),
        )
        logger.info(
            "Completed fleet sync: %d succeeded, %d incomplete, %d failed",
            result.succeeded,
            result.incomplete,
            result.failed,
        )
        return result

    async def _sync_customer(self, customer_id: int) -> CustomerSyncResult:
        try:
            async with self._session_factory() as session:
                service = SyncService(
                    session, self._client, lookback_days=self._lookback_days, clock=self._clock
                )
                return await service.sync_customer(customer_id)
        except asyncio.TimeoutError as exc:
            raise _WorkTimeout(exc) from exc

    async def _sync_one(self, customer_id: int) -> CustomerSyncOutcome:
        with customer_log_context(customer_id):
            try:
                result = await asyncio.wait_for(self._sync_customer(customer_id), timeout=self._customer_timeout)
            except SkuVaultApiError as exc:
                logger.error("SkuVault unavailable while syncing customer %s: %s", customer_id, exc)
                return CustomerSyncOutcome(
                    customer_id=customer_id, outcome=FleetOutcome.UPSTREAM_ERROR, error=str(exc)
                )
            except asyncio.TimeoutError:
                logger.error(
                    "Sync for customer %s exceeded %s seconds; abandoned", customer_id, self._customer_timeout
                )
                return CustomerSyncOutcome(
                    customer_id=customer_id,
                    outcome=FleetOutcome.TIMEOUT,
                    error=f"timed out after {self._customer_timeout} seconds",
                )
            except _WorkTimeout as exc:
                logger.error("Failed to sync customer %s", customer_id, exc_info=exc.original)
                return CustomerSyncOutcome(
                    customer_id=customer_id,
                    outcome=FleetOutcome.INTERNAL_ERROR,
                    error=f"{exc.original.__class__.__name__}: {exc.original}",
                )
            except Exception as exc:
                logger.exception("Failed to sync customer %s", customer_id)
                return CustomerSyncOutcome(
                    customer_id=customer_id,
                    outcome=FleetOutcome.INTERNAL_ERROR,
                    error=f"{exc.__class__.__name__}: {exc}",
                )

        outcome = FleetOutcome.SYNCED if result.success else FleetOutcome.INCOMPLETE
        return CustomerSyncOutcome(customer_id=customer_id, outcome=outcome, result=result)
