"""Periodic price and valuation refresh jobs.

Jobs are registered through a small ``Scheduler`` interface. Production uses
APScheduler's ``BackgroundScheduler``; tests drive a ``ManualScheduler``
forward by hand. Each ``schedule()`` call returns a ``ScheduledTask`` whose
``cancel()`` stops future runs.
"""

from __future__ import annotations

import functools
import itertools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from .context import AppContext
    from .services.portfolio import PortfolioService

logger = logging.getLogger("pocketfolio.scheduler")

PRICE_JOB_ID = "refresh_prices"
VALUATION_JOB_ID = "refresh_valuation"


class ScheduledTask:
    """Handle for one recurring job."""

    def __init__(self, job_id: str, name: str, on_cancel: Callable[[str], None]) -> None:
        self.job_id = job_id
        self.name = name
        self._on_cancel = on_cancel
        self.cancelled = False

    def cancel(self) -> None:
        """Stop future runs. Safe to call more than once."""
        if self.cancelled:
            return
        self.cancelled = True
        self._on_cancel(self.job_id)
        logger.info(f"Cancelled job: {self.job_id}")

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"<ScheduledTask {self.job_id} ({state})>"


class Scheduler(Protocol):
    def schedule(
        self, func: Callable[[], object], *, seconds: float, job_id: str, name: str | None = None
    ) -> ScheduledTask:  # pragma: no cover - interface
        ...

    def start(self) -> None:  # pragma: no cover - interface
        ...

    def shutdown(self) -> None:  # pragma: no cover - interface
        ...


def _guarded(func: Callable[[], object], job_id: str) -> Callable[[], None]:
    """Log job failures so one bad tick does not kill the schedule."""

    @functools.wraps(func)
    def run() -> None:
        try:
            func()
        except Exception as exc:
            logger.error(f"Job {job_id} failed: {exc}", exc_info=True)

    return run


class APSchedulerBackend:
    """Runs jobs on APScheduler's background thread."""

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler()

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def schedule(
        self, func: Callable[[], object], *, seconds: float, job_id: str, name: str | None = None
    ) -> ScheduledTask:
        self.scheduler.add_job(
            func=_guarded(func, job_id),
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            name=name or job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Added job: {job_id} every {seconds:g}s")
        return ScheduledTask(job_id, name or job_id, self._remove)

    def _remove(self, job_id: str) -> None:
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            logger.debug(f"Job {job_id} already removed")

    def start(self) -> None:
        if self.running:
            logger.warning("Scheduler already running")
            return
        self.scheduler.start()
        logger.info("Background scheduler started")

    def shutdown(self) -> None:
        if self.running:
            self.scheduler.shutdown(wait=True)
            logger.info("Background scheduler stopped")


@dataclass
class _ManualJob:
    func: Callable[[], None]
    interval: float
    next_run: float
    order: int
    task: ScheduledTask


@dataclass
class ManualScheduler:
    """Deterministic scheduler whose time only moves on ``advance()``.

    When given a clock with an ``advance(seconds=...)`` method (``FixedClock``)
    the clock moves in step, so jobs observe the time they were due at.
    """

    clock: Optional[object] = None
    elapsed: float = 0.0
    running: bool = False
    _jobs: dict[str, _ManualJob] = field(default_factory=dict)
    _counter: itertools.count = field(default_factory=itertools.count)

    def schedule(
        self, func: Callable[[], object], *, seconds: float, job_id: str, name: str | None = None
    ) -> ScheduledTask:
        if seconds <= 0:
            raise ValueError("Interval must be positive")
        task = ScheduledTask(job_id, name or job_id, self._remove)
        self._jobs[job_id] = _ManualJob(
            func=_guarded(func, job_id),
            interval=seconds,
            next_run=self.elapsed + seconds,
            order=next(self._counter),
            task=task,
        )
        return task

    def _remove(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)

    @property
    def job_ids(self) -> list[str]:
        return sorted(self._jobs)

    def start(self) -> None:
        self.running = True

    def shutdown(self) -> None:
        self.running = False
        self._jobs.clear()

    def _move_to(self, moment: float) -> None:
        step = moment - self.elapsed
        if step > 0 and self.clock is not None and hasattr(self.clock, "advance"):
            self.clock.advance(seconds=step)
        self.elapsed = moment

    def advance(self, seconds: float) -> int:
        """Move time forward, running due jobs in order; return how many ran."""
        target = self.elapsed + seconds
        runs = 0
        while self.running:
            due = [job for job in self._jobs.values() if job.next_run <= target]
            if not due:
                break
            job = min(due, key=lambda j: (j.next_run, j.order))
            self._move_to(job.next_run)
            job.next_run += job.interval
            job.func()
            runs += 1
        self._move_to(target)
        return runs


class PortfolioScheduler:
    """Registers the price and valuation refresh jobs for one portfolio."""

    def __init__(
        self,
        portfolio: PortfolioService,
        scheduler: Scheduler,
        *,
        price_seconds: float = 300.0,
        valuation_seconds: float = 60.0,
    ) -> None:
        self.portfolio = portfolio
        self.scheduler = scheduler
        self.price_seconds = price_seconds
        self.valuation_seconds = valuation_seconds
        self.tasks: list[ScheduledTask] = []

    @property
    def active(self) -> bool:
        return any(not task.cancelled for task in self.tasks)

    def start(self) -> None:
        """Register both refresh jobs and start the scheduler."""
        if self.active:
            logger.warning("Refresh jobs already scheduled")
            return
        self.tasks = [
            self.scheduler.schedule(
                self.portfolio.refresh_prices,
                seconds=self.price_seconds,
                job_id=PRICE_JOB_ID,
                name="Market price refresh",
            ),
            self.scheduler.schedule(
                self.portfolio.revalue,
                seconds=self.valuation_seconds,
                job_id=VALUATION_JOB_ID,
                name="Portfolio valuation refresh",
            ),
        ]
        self.scheduler.start()

    def stop(self) -> None:
        """Cancel both jobs and shut the scheduler down."""
        for task in self.tasks:
            task.cancel()
        self.scheduler.shutdown()


def create_scheduler(
    ctx: AppContext, *, scheduler: Scheduler | None = None, auto_start: bool = False
) -> PortfolioScheduler:
    """Build the refresh scheduler for an application context.

    Args:
        ctx: Application context holding the portfolio and config
        scheduler: Backend to register jobs on; APScheduler when omitted
        auto_start: Whether to start the jobs immediately

    Returns:
        PortfolioScheduler instance
    """
    refresher = PortfolioScheduler(
        ctx.portfolio,
        scheduler or APSchedulerBackend(),
        price_seconds=ctx.config.PRICE_REFRESH_SECONDS,
        valuation_seconds=ctx.config.VALUATION_REFRESH_SECONDS,
    )
    if auto_start:
        refresher.start()
    return refresher
