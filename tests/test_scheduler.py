import asyncio

from skuvault_saas.core.settings import AppSettings
from skuvault_saas.services.scheduler import SyncScheduler


async def _wait_for_runs(scheduler: SyncScheduler, count: int) -> None:
    for _ in range(200):
        if scheduler.runs >= count:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"scheduler made {scheduler.runs} runs, expected {count}")


async def test_scheduler_runs_repeatedly_until_stopped() -> None:
    calls = []

    async def run_once():
        calls.append("run")

    scheduler = SyncScheduler(run_once, interval_seconds=0.01)
    scheduler.start()
    assert scheduler.is_running

    await _wait_for_runs(scheduler, 3)
    await scheduler.stop()

    assert not scheduler.is_running
    assert len(calls) >= 3


async def test_failed_run_does_not_stop_the_loop() -> None:
    attempts = []

    async def run_once():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("first run fails")

    scheduler = SyncScheduler(run_once, interval_seconds=0.01)
    scheduler.start()
    await _wait_for_runs(scheduler, 2)
    await scheduler.stop()

    assert len(attempts) >= 2


async def test_startup_delay_postpones_first_run() -> None:
    calls = []

    async def run_once():
        calls.append(1)

    scheduler = SyncScheduler(run_once, interval_seconds=60, startup_delay_seconds=60)
    scheduler.start()
    await asyncio.sleep(0.05)
    await scheduler.stop()

    assert calls == []


async def test_start_twice_keeps_one_loop() -> None:
    async def run_once():
        return None

    scheduler = SyncScheduler(run_once, interval_seconds=60)
    scheduler.start()
    task = scheduler._task
    scheduler.start()
    assert scheduler._task is task
    await scheduler.stop()
    await scheduler.stop()


def test_from_settings_converts_minutes() -> None:
    async def run_once():
        return None

    settings = AppSettings(SYNC_INTERVAL_MINUTES=15, SYNC_STARTUP_DELAY_MINUTES=0)
    scheduler = SyncScheduler.from_settings(run_once, settings)

    assert scheduler._interval == 900
    assert scheduler._startup_delay == 0
