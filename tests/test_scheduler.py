"""Tests for the periodic refresh scheduler."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from pocketfolio.context import create_memory_context
from pocketfolio.models import AssetClass
from pocketfolio.scheduler import (
    PRICE_JOB_ID,
    VALUATION_JOB_ID,
    APSchedulerBackend,
    ManualScheduler,
    PortfolioScheduler,
    create_scheduler,
)


def test_manual_scheduler_runs_jobs_at_their_interval():
    scheduler = ManualScheduler()
    calls: list[str] = []
    scheduler.schedule(lambda: calls.append("fast"), seconds=60, job_id="fast")
    scheduler.schedule(lambda: calls.append("slow"), seconds=300, job_id="slow")
    scheduler.start()

    runs = scheduler.advance(300)

    assert runs == 6
    assert calls == ["fast"] * 4 + ["fast", "slow"]


def test_manual_scheduler_does_nothing_before_start():
    scheduler = ManualScheduler()
    job = MagicMock()
    scheduler.schedule(job, seconds=10, job_id="job")

    assert scheduler.advance(100) == 0
    job.assert_not_called()


def test_cancelled_task_never_fires_again():
    scheduler = ManualScheduler()
    job = MagicMock()
    task = scheduler.schedule(job, seconds=10, job_id="job")
    scheduler.start()

    scheduler.advance(25)
    task.cancel()
    task.cancel()
    scheduler.advance(100)

    assert job.call_count == 2
    assert task.cancelled
    assert scheduler.job_ids == []


def test_failing_job_is_logged_and_keeps_schedule(caplog):
    scheduler = ManualScheduler()
    job = MagicMock(side_effect=RuntimeError("boom"))
    scheduler.schedule(job, seconds=10, job_id="flaky")
    scheduler.start()

    with caplog.at_level("ERROR", logger="pocketfolio.scheduler"):
        scheduler.advance(30)

    assert job.call_count == 3
    assert "Job flaky failed" in caplog.text


def test_manual_scheduler_moves_the_clock(clock):
    scheduler = ManualScheduler(clock=clock)
    seen = []
    scheduler.schedule(lambda: seen.append(clock.now()), seconds=3600, job_id="hourly")
    scheduler.start()
    start = clock.now()

    scheduler.advance(7200 + 60)

    assert [(t - start).total_seconds() for t in seen] == [3600, 7200]
    assert (clock.now() - start).total_seconds() == 7260


def test_manual_scheduler_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        ManualScheduler().schedule(lambda: None, seconds=0, job_id="bad")


def test_portfolio_scheduler_refreshes_prices_and_valuation(clock):
    ctx = create_memory_context(clock=clock)
    ctx.portfolio.buy(AssetClass.CRYPTO, "bitcoin", 0.1, unit_price=3_500_000)
    scheduler = ManualScheduler(clock=clock)
    refresher = PortfolioScheduler(ctx.portfolio, scheduler, price_seconds=300, valuation_seconds=60)
    refresher.start()

    ctx.oracle.set_price(AssetClass.CRYPTO, "bitcoin", 4_000_000)
    scheduler.advance(60)
    # Valuation pass reuses cached quotes.
    assert ctx.recorder.snapshots()[-1].crypto_value == pytest.approx(350_000)

    scheduler.advance(240)
    assert ctx.recorder.snapshots()[-1].crypto_value == pytest.approx(400_000)
    assert sorted(scheduler.job_ids) == [PRICE_JOB_ID, VALUATION_JOB_ID]


def test_portfolio_scheduler_stop_cancels_jobs(clock):
    ctx = create_memory_context(clock=clock)
    scheduler = ManualScheduler(clock=clock)
    refresher = PortfolioScheduler(ctx.portfolio, scheduler)
    refresher.start()
    assert refresher.active

    refresher.stop()

    assert not refresher.active
    assert all(task.cancelled for task in refresher.tasks)
    assert scheduler.advance(3600) == 0


def test_trade_during_refresh_cycle_is_picked_up_next_tick(clock):
    ctx = create_memory_context(clock=clock)
    scheduler = ManualScheduler(clock=clock)
    PortfolioScheduler(ctx.portfolio, scheduler).start()

    scheduler.advance(60)
    ctx.portfolio.buy(AssetClass.STOCK, "INFY.BSE", 2, unit_price=1400)
    scheduler.advance(60)

    assert ctx.holding_repo.list_all()[0].asset_id == "INFY.BSE"
    assert ctx.recorder.snapshots()[-1].stocks_value == pytest.approx(2 * 1456.75)


def test_create_scheduler_uses_config_intervals(clock):
    ctx = create_memory_context(clock=clock)
    ctx.config.PRICE_REFRESH_SECONDS = 120
    ctx.config.VALUATION_REFRESH_SECONDS = 30
    scheduler = ManualScheduler(clock=clock)

    refresher = create_scheduler(ctx, scheduler=scheduler, auto_start=True)

    assert refresher.price_seconds == 120
    assert refresher.valuation_seconds == 30
    assert scheduler.running


def test_apscheduler_backend_registers_interval_jobs():
    backend = APSchedulerBackend()
    task = backend.schedule(lambda: None, seconds=300, job_id=PRICE_JOB_ID, name="prices")

    job = backend.scheduler.get_job(PRICE_JOB_ID)
    assert job is not None
    assert job.name == "prices"
    assert job.trigger.interval.total_seconds() == 300

    task.cancel()
    assert backend.scheduler.get_job(PRICE_JOB_ID) is None
    # Removing twice is harmless.
    backend._remove(PRICE_JOB_ID)


def test_apscheduler_backend_start_and_shutdown():
    backend = APSchedulerBackend()
    backend.start()
    try:
        assert backend.running
        backend.start()
    finally:
        backend.shutdown()
    assert not backend.running
