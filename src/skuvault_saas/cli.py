"""
Command-line triggers for the SkuVault sync engine.

Usage:
    skuvault-sync sync-all
    skuvault-sync sync-customer 42
    skuvault-sync sync-customer 42 --stage movements --since 2025-01-01T00:00:00Z

Exit codes: 0 success, 1 failure, 2 SkuVault unavailable. A single-customer
sync that skipped stages exits 1; a fleet run only counts customers that errored.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import List, Optional

from skuvault_saas.clients.skuvault import SkuVaultApiError, SkuVaultClient
from skuvault_saas.core.logging import configure_logging
from skuvault_saas.core.settings import AppSettings, get_app_settings
from skuvault_saas.db.session import dispose_engine, get_session_factory
from skuvault_saas.schemas.skuvault import ensure_utc
from skuvault_saas.schemas.sync import FleetOutcome, FleetSyncResult, StageStatus, SyncStage
from skuvault_saas.services.fleet import FleetSyncDriver
from skuvault_saas.services.sync import CustomerNotFoundError, SyncService

logger = logging.getLogger("skuvault_saas.cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_UPSTREAM = 2


def parse_since(value: str) -> datetime:
    """argparse type for --since: ISO-8601, naive values are UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="skuvault-sync", description="Synchronize SkuVault data into the local database")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("sync-all", help="Sync every customer whose tenant has SkuVault credentials")

    one = sub.add_parser("sync-customer", help="Sync a single customer")
    one.add_argument("customer_id", type=int, help="Customer id")
    one.add_argument(
        "--stage",
        choices=[s.value for s in SyncStage],
        default=None,
        help="Run only this stage (default: full sync)",
    )
    one.add_argument(
        "--since",
        type=parse_since,
        default=None,
        help="Window start for movements/transactions (ISO-8601)",
    )
    return parser


def fleet_exit_code(result: FleetSyncResult) -> int:
    """0 when nothing failed, 2 when every failure was SkuVault being unavailable, else 1."""
    failures = [o for o in result.outcomes if o.outcome not in (FleetOutcome.SYNCED, FleetOutcome.INCOMPLETE)]
    if not failures:
        return EXIT_OK
    if all(o.outcome == FleetOutcome.UPSTREAM_ERROR for o in failures):
        return EXIT_UPSTREAM
    return EXIT_FAILED


async def _sync_all(settings: AppSettings, client: SkuVaultClient) -> int:
    driver = FleetSyncDriver.from_settings(get_session_factory(), client, settings)
    result = await driver.sync_all_customers()
    print(result.model_dump_json(indent=2))
    return fleet_exit_code(result)


async def _sync_customer(
    settings: AppSettings,
    client: SkuVaultClient,
    customer_id: int,
    stage: Optional[str],
    since: Optional[datetime],
) -> int:
    async with get_session_factory()() as session:
        service = SyncService(session, client, lookback_days=settings.SYNC_DEFAULT_LOOKBACK_DAYS)
        try:
            if stage is None:
                full = await service.sync_customer(customer_id)
                print(full.model_dump_json(indent=2))
                return EXIT_OK if full.success else EXIT_FAILED

            selected = SyncStage(stage)
            if selected == SyncStage.PRODUCTS:
                result = await service.sync_products(customer_id)
            elif selected == SyncStage.LOCATIONS:
                result = await service.sync_locations(customer_id)
            elif selected == SyncStage.INVENTORY:
                result = await service.sync_inventory_levels(customer_id)
            elif selected == SyncStage.MOVEMENTS:
                result = await service.sync_inventory_movements(customer_id, since=since)
            else:
                result = await service.sync_transactions(customer_id, since=since)
        except SkuVaultApiError as exc:
            logger.error("SkuVault unavailable: %s", exc)
            return EXIT_UPSTREAM
        except CustomerNotFoundError as exc:
            logger.error("%s", exc)
            return EXIT_FAILED

    print(result.model_dump_json(indent=2))
    return EXIT_OK if result.status == StageStatus.COMPLETED else EXIT_FAILED


async def _run(args: argparse.Namespace, settings: AppSettings) -> int:
    client = SkuVaultClient.from_settings(settings)
    try:
        if args.command == "sync-all":
            return await _sync_all(settings, client)
        return await _sync_customer(settings, client, args.customer_id, args.stage, args.since)
    finally:
        await client.aclose()
        await dispose_engine()


# PUBLIC_INTERFACE
def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the `skuvault-sync` console script."""
    args = build_parser().parse_args(argv)
    settings = get_app_settings()
    configure_logging(settings.LOG_LEVEL)
    try:
        return asyncio.run(_run(args, settings))
    except Exception:
        logger.exception("Sync command failed")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
