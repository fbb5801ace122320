from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from skuvault_saas.clients.skuvault import SkuVaultClient
from skuvault_saas.core.logging import customer_log_context
from skuvault_saas.db.base import utcnow
from skuvault_saas.db.models import InventoryLevel, InventoryMovement, Location, Product, Transaction
from skuvault_saas.repositories.inventory import (
    InventoryLevelRepository,
    InventoryMovementRepository,
    LocationRepository,
    ProductRepository,
    TransactionRepository,
)
from skuvault_saas.repositories.tenancy import CustomerRepository, SyncCredentials
from skuvault_saas.schemas.skuvault import SkuVaultMovement, ensure_utc
from skuvault_saas.schemas.sync import CustomerSyncResult, StageResult, StageStatus, SyncStage
from skuvault_saas.services.base import BaseService
from skuvault_saas.services.identity import (
    IdentityMaps,
    display_name_from_user,
    movement_dedup_key,
    parse_location_code,
    transaction_key,
)

logger = logging.getLogger(__name__)

MISSING_TOKENS_MESSAGE = "SkuVault tenant token or user token is not configured"

StageHandler = Callable[..., Awaitable[StageResult]]


class CustomerNotFoundError(LookupError):
    """Raised when a sync is requested for a customer id that does not exist."""

    def __init__(self, customer_id: int) -> None:
        super().__init__(f"Customer {customer_id} not found")
        self.customer_id = customer_id


class SyncService(BaseService):
    """
    Reconciles one customer's local tables against SkuVault.

    Each public stage method reads the customer's credentials afresh, calls
    SkuVault once, applies every change through the session and commits once.
    On any error the session is rolled back and the exception propagates.

    Parameters:
        session: Session owned by the caller; never shared between customers.
        client: SkuVault API client.
        lookback_days: Movement/transaction window for a never-synced customer.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        session: AsyncSession,
        client: SkuVaultClient,
        *,
        lookback_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(session)
        self.client = client
        self.lookback_days = lookback_days
        self._clock = clock
        self.customers = CustomerRepository(session)

    # PUBLIC_INTERFACE
    async def sync_customer(self, customer_id: int) -> CustomerSyncResult:
        """
        Run every stage in order and record the sync time when all completed.

        Order: products, locations, inventory levels, movements, transactions.
        A raised exception aborts the remaining stages and leaves
        last_synced_at untouched.

        Returns:
            CustomerSyncResult with one StageResult per stage.
        """
        with customer_log_context(customer_id):
            started_at = self._clock()
            logger.info("Starting full sync for customer %s", customer_id)
            stages: List[StageResult] = [
                await self.sync_products(customer_id),
                await self.sync_locations(customer_id),
                await self.sync_inventory_levels(customer_id),
                await self.sync_inventory_movements(customer_id),
                await self.sync_transactions(customer_id),
            ]
            success = all(s.status == StageStatus.COMPLETED for s in stages)
            last_synced_at: Optional[datetime] = None
            if success:
                try:
                    await self.customers.mark_synced(customer_id, started_at)
                    await self.session.commit()
                except Exception:
                    logger.exception("Failed to record sync time for customer %s", customer_id)
                    await self.session.rollback()
                    raise
                last_synced_at = started_at
                logger.info("Completed full sync for customer %s", customer_id)
            else:
                skipped = [s.stage.value for s in stages if s.status == StageStatus.SKIPPED]
                logger.warning(
                    "Sync for customer %s incomplete; skipped stages: %s", customer_id, ", ".join(skipped)
                )
            return CustomerSyncResult(
                customer_id=customer_id, stages=stages, last_synced_at=last_synced_at, success=success
            )

    # PUBLIC_INTERFACE
    async def sync_products(self, customer_id: int) -> StageResult:
        """Upsert products by (customer, SKU)."""
        return await self._run_stage(customer_id, SyncStage.PRODUCTS, self._sync_products)

    # PUBLIC_INTERFACE
    async def sync_locations(self, customer_id: int) -> StageResult:
        """Upsert locations by (customer, code)."""
        return await self._run_stage(customer_id, SyncStage.LOCATIONS, self._sync_locations)

    # PUBLIC_INTERFACE
    async def sync_inventory_levels(self, customer_id: int) -> StageResult:
        """Upsert current quantities by (customer, product, location)."""
        return await self._run_stage(customer_id, SyncStage.INVENTORY, self._sync_inventory_levels)

    # PUBLIC_INTERFACE
    async def sync_inventory_movements(self, customer_id: int, since: Optional[datetime] = None) -> StageResult:
        """
        Append movements not yet stored.

        Parameters:
            since: Window start. Defaults to the customer's last sync time, or
                `lookback_days` ago for a customer that never synced.
        """
        return await self._run_stage(customer_id, SyncStage.MOVEMENTS, self._sync_inventory_movements, since=since)

    # PUBLIC_INTERFACE
    async def sync_transactions(self, customer_id: int, since: Optional[datetime] = None) -> StageResult:
        """Append transactions not yet stored. Uses the same window as movements."""
        return await self._run_stage(customer_id, SyncStage.TRANSACTIONS, self._sync_transactions, since=since)

    async def _run_stage(self, customer_id: int, stage: SyncStage, handler: StageHandler, **kwargs) -> StageResult:
        with customer_log_context(customer_id, stage=stage.value):
            try:
                creds = await self.customers.get_sync_credentials(customer_id)
                if creds is None:
                    raise CustomerNotFoundError(customer_id)
                if not creds.has_tokens:
                    logger.warning(
                        "Customer %s is missing SkuVault tokens (tenant or user); skipping %s",
                        customer_id,
                        stage.value,
                    )
                    return StageResult(stage=stage, status=StageStatus.SKIPPED, message=MISSING_TOKENS_MESSAGE)

                result = await handler(creds, **kwargs)
                await self.session.commit()
            except CustomerNotFoundError:
                await self.session.rollback()
                raise
            except Exception:
                logger.exception("Sync stage %s failed for customer %s", stage.value, customer_id)
                await self.session.rollback()
                raise

            logger.info(
                "Synced %s for customer %s: fetched=%d created=%d updated=%d unresolved=%d duplicates=%d",
                stage.value,
                customer_id,
                result.fetched,
                result.created,
                result.updated,
                result.unresolved,
                result.duplicates,
            )
            return result

    def _window_start(self, creds: SyncCredentials, since: Optional[datetime], now: datetime) -> datetime:
        if since is not None:
            return ensure_utc(since)
        if creds.last_synced_at is not None:
            return ensure_utc(creds.last_synced_at)
        return now - timedelta(days=self.lookback_days)

    async def _sync_products(self, creds: SyncCredentials) -> StageResult:
        customer_id = creds.customer_id
        feed = await self.client.get_products(creds.tenant_token, creds.user_token)
        existing = await ProductRepository(self.session, customer_id).map_by_sku()
        result = StageResult(stage=SyncStage.PRODUCTS, fetched=len(feed))
        now = self._clock()

        for item in feed:
            if not item.sku or not item.sku.strip():
                logger.warning("Skipping product without SKU for customer %s", customer_id)
                result.unresolved += 1
                continue
            product = existing.get(item.sku)
            if product is None:
                product = Product(customer_id=customer_id, sku=item.sku, created_at=now)
                self.session.add(product)
                existing[item.sku] = product
                result.created += 1
            else:
                result.updated += 1
            product.name = item.description or item.sku
            product.description = item.long_description
            product.category = item.classification
            product.cost = item.cost
            product.price = item.retail_price
            product.updated_at = now
        return result

    async def _sync_locations(self, creds: SyncCredentials) -> StageResult:
        customer_id = creds.customer_id
        feed = await self.client.get_locations(creds.tenant_token, creds.user_token)
        existing = await LocationRepository(self.session, customer_id).map_by_code()
        result = StageResult(stage=SyncStage.LOCATIONS, fetched=len(feed))
        now = self._clock()

        for item in feed:
            if not item.code or not item.code.strip():
                logger.warning("Skipping location without code for customer %s", customer_id)
                result.unresolved += 1
                continue
            location = existing.get(item.code)
            if location is None:
                location = Location(customer_id=customer_id, code=item.code, created_at=now)
                self.session.add(location)
                existing[item.code] = location
                result.created += 1
            else:
                result.updated += 1
            location.name = item.name
            location.warehouse = item.warehouse
            location.is_active = item.is_active
            location.updated_at = now
        return result

    async def _sync_inventory_levels(self, creds: SyncCredentials) -> StageResult:
        customer_id = creds.customer_id
        feed = await self.client.get_inventory(creds.tenant_token, creds.user_token)
        maps = await IdentityMaps.load(self.session, customer_id)
        existing = await InventoryLevelRepository(self.session, customer_id).map_by_product_location()
        result = StageResult(stage=SyncStage.INVENTORY, fetched=len(feed))
        now = self._clock()

        for item in feed:
            product_id = maps.product_id(item.sku)
            if product_id is None:
                logger.warning("Product SKU %s not found for customer %s; skipping inventory level", item.sku, customer_id)
                result.unresolved += 1
                continue
            location_id = maps.location_id(item.location_code)
            if location_id is None:
                logger.warning(
                    "Location %s not found for customer %s; skipping inventory level for SKU %s",
                    item.location_code,
                    customer_id,
                    item.sku,
                )
                result.unresolved += 1
                continue

            level = existing.get((product_id, location_id))
            if level is None:
                level = InventoryLevel(customer_id=customer_id, product_id=product_id, location_id=location_id)
                self.session.add(level)
                existing[(product_id, location_id)] = level
                result.created += 1
            else:
                result.updated += 1
            level.quantity_on_hand = item.quantity_on_hand
            level.quantity_available = item.quantity_available
            level.quantity_allocated = item.quantity_allocated
            level.updated_at = now
        return result

    async def _fetch_window(
        self, creds: SyncCredentials, since: Optional[datetime]
    ) -> Tuple[List[SkuVaultMovement], IdentityMaps]:
        now = self._clock()
        start = self._window_start(creds, since, now)
        logger.info(
            "Fetching SkuVault transactions for customer %s from %s to %s",
            creds.customer_id,
            start.isoformat(),
            now.isoformat(),
        )
        feed = await self.client.get_inventory_movements(creds.tenant_token, creds.user_token, start, now)
        maps = await IdentityMaps.load(self.session, creds.customer_id)
        return feed, maps

    async def _sync_inventory_movements(self, creds: SyncCredentials, since: Optional[datetime] = None) -> StageResult:
        customer_id = creds.customer_id
        feed, maps = await self._fetch_window(creds, since)
        result = StageResult(stage=SyncStage.MOVEMENTS, fetched=len(feed))

        candidates: List[Tuple[str, int, Optional[int], SkuVaultMovement]] = []
        for item in feed:
            product_id = maps.product_id(item.sku)
            if product_id is None:
                logger.warning("Product SKU %s not found for customer %s; skipping movement", item.sku, customer_id)
                result.unresolved += 1
                continue
            code = parse_location_code(item.location)
            location_id = maps.location_id(code)
            if code is not None and location_id is None:
                logger.warning(
                    "Location %s not found for customer %s; storing movement without location", code, customer_id
                )
            key = movement_dedup_key(product_id, item.user, item.transaction_date, item.quantity)
            candidates.append((key, product_id, location_id, item))

        repo = InventoryMovementRepository(self.session, customer_id)
        seen = await repo.existing_dedup_keys(key for key, _, _, _ in candidates)
        for key, product_id, location_id, item in candidates:
            if key in seen:
                result.duplicates += 1
                continue
            seen.add(key)
            self.session.add(
                InventoryMovement(
                    customer_id=customer_id,
                    product_id=product_id,
                    location_id=location_id,
                    quantity_change=item.quantity,
                    reason=item.transaction_reason,
                    reference=item.transaction_note,
                    performed_by=item.user,
                    transaction_type=item.transaction_type,
                    context=item.context,
                    occurred_at=item.transaction_date,
                    dedup_key=key,
                    created_at=self._clock(),
                )
            )
            result.created += 1
        return result

    async def _sync_transactions(self, creds: SyncCredentials, since: Optional[datetime] = None) -> StageResult:
        customer_id = creds.customer_id
        feed, maps = await self._fetch_window(creds, since)
        result = StageResult(stage=SyncStage.TRANSACTIONS, fetched=len(feed))
        synced_at = self._clock()

        candidates: List[Tuple[str, int, SkuVaultMovement]] = []
        for item in feed:
            product_id = maps.product_id(item.sku)
            if product_id is None:
                logger.warning("Product SKU %s not found for customer %s; skipping transaction", item.sku, customer_id)
                result.unresolved += 1
                continue
            key = transaction_key(item.sku, item.transaction_date, item.user, item.context, item.quantity)
            candidates.append((key, product_id, item))

        repo = TransactionRepository(self.session, customer_id)
        seen = await repo.existing_sku_vault_ids(key for key, _, _ in candidates)
        for key, product_id, item in candidates:
            if key in seen:
                result.duplicates += 1
                continue
            seen.add(key)
            self.session.add(
                Transaction(
                    customer_id=customer_id,
                    sku_vault_id=key,
                    product_id=product_id,
                    location_id=maps.location_id(parse_location_code(item.location)),
                    sku=item.sku,
                    quantity=item.quantity,
                    quantity_before=item.quantity_before,
                    quantity_after=item.quantity_after,
                    transaction_type=item.transaction_type,
                    transaction_reason=item.transaction_reason,
                    transaction_note=item.transaction_note,
                    context=item.context,
                    user=item.user,
                    performed_by=display_name_from_user(item.user),
                    transaction_date=item.transaction_date,
                    synced_at=synced_at,
                    created_at=synced_at,
                )
            )
            result.created += 1
        return result
