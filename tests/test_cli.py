import argparse
from datetime import datetime, timezone

import pytest

from conftest import NOW
from skuvault_saas.cli import EXIT_FAILED, EXIT_OK, EXIT_UPSTREAM, build_parser, fleet_exit_code, parse_since
from skuvault_saas.schemas.sync import CustomerSyncOutcome, FleetOutcome, FleetSyncResult


def _fleet(*outcomes: FleetOutcome) -> FleetSyncResult:
    return FleetSyncResult(
        started_at=NOW,
        finished_at=NOW,
        outcomes=[CustomerSyncOutcome(customer_id=i + 1, outcome=o) for i, o in enumerate(outcomes)],
    )


def test_parse_sync_customer_arguments() -> None:
    args = build_parser().parse_args(
        ["sync-customer", "42", "--stage", "movements", "--since", "2025-01-01T00:00:00Z"]
    )
    assert args.command == "sync-customer"
    assert args.customer_id == 42
    assert args.stage == "movements"
    assert args.since == datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_parse_sync_all() -> None:
    args = build_parser().parse_args(["sync-all"])
    assert args.command == "sync-all"


def test_unknown_stage_is_rejected() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["sync-customer", "1", "--stage", "orders"])


def test_parse_since_treats_naive_as_utc() -> None:
    assert parse_since("2025-01-01T06:00:00") == datetime(2025, 1, 1, 6, tzinfo=timezone.utc)
    with pytest.raises(argparse.ArgumentTypeError):
        parse_since("yesterday")


@pytest.mark.parametrize(
    "outcomes, expected",
    [
        ((), EXIT_OK),
        ((FleetOutcome.SYNCED, FleetOutcome.INCOMPLETE), EXIT_OK),
        ((FleetOutcome.SYNCED, FleetOutcome.UPSTREAM_ERROR), EXIT_UPSTREAM),
        ((FleetOutcome.UPSTREAM_ERROR, FleetOutcome.TIMEOUT), EXIT_FAILED),
        ((FleetOutcome.INTERNAL_ERROR,), EXIT_FAILED),
    ],
)
def test_fleet_exit_code(outcomes, expected) -> None:
    assert fleet_exit_code(_fleet(*outcomes)) == expected
