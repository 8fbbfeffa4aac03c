"""Daily valuation snapshots and the performance history built from them."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from ..clock import Clock, SystemClock, local_day, utc_now
from ..domain.repositories import SnapshotRepository
from ..logging_config import get_logger
from ..models.portfolio import PortfolioSnapshot
from .positions import ValuationTotals

logger = get_logger(__name__)

DEFAULT_RETENTION = 365


@dataclass(frozen=True, slots=True)
class PerformancePoint:
    """One entry of a chart-ready history; placeholders have no date."""

    label: str
    snapshot_date: Optional[date]
    total_value: float = 0.0
    stocks_value: float = 0.0
    crypto_value: float = 0.0
    insurance_value: float = 0.0

    @property
    def placeholder(self) -> bool:
        return self.snapshot_date is None

    @classmethod
    def from_snapshot(cls, snapshot: PortfolioSnapshot) -> "PerformancePoint":
        return cls(
            label=calendar.month_abbr[snapshot.snapshot_date.month],
            snapshot_date=snapshot.snapshot_date,
            total_value=snapshot.total_value,
            stocks_value=snapshot.stocks_value,
            crypto_value=snapshot.crypto_value,
            insurance_value=snapshot.insurance_value,
        )


def shift_month(value: date, months: int) -> date:
    """First day of the month ``months`` away from ``value``'s month."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


class SnapshotRecorder:
    """Keeps at most one valuation per local calendar day."""

    def __init__(
        self,
        repository: SnapshotRepository,
        valuation: Callable[[], ValuationTotals],
        *,
        clock: Clock | None = None,
        retention: int = DEFAULT_RETENTION,
    ) -> None:
        if retention < 1:
            raise ValueError("retention must be at least 1")
        self.repository = repository
        self.valuation = valuation
        self.clock = clock or SystemClock()
        self.retention = retention

    def record_today(self, totals: ValuationTotals | None = None) -> PortfolioSnapshot:
        """Upsert today's snapshot and prune history beyond the retention cap.

        ``totals`` skips a second valuation when the caller already has one.
        """
        if totals is None:
            totals = self.valuation()
        today = local_day(self.clock)
        snapshot = self.repository.upsert(
            PortfolioSnapshot(
                snapshot_date=today,
                total_value=totals.total_value,
                stocks_value=totals.stocks_value,
                crypto_value=totals.crypto_value,
                insurance_value=totals.insurance_value,
                recorded_at=utc_now(self.clock),
            )
        )
        removed = self.repository.prune(self.retention)
        if removed:
            logger.info(f"Pruned {removed} snapshot(s) beyond retention of {self.retention}")
        logger.debug(f"Snapshot for {today.isoformat()}: {totals.total_value:.2f}")
        return snapshot

    def snapshots(self) -> list[PortfolioSnapshot]:
        """All retained snapshots, oldest first."""
        return self.repository.list_all()

    def latest(self, count: int = 1) -> list[PortfolioSnapshot]:
        """The ``count`` most recent snapshots, oldest first."""
        if count <= 0:
            return []
        return self.repository.list_all()[-count:]

    def history(self, months: int = 12) -> list[PerformancePoint]:
        """Exactly ``months`` entries, oldest first, front-padded with zero placeholders."""
        if months <= 0:
            return []
        points = [PerformancePoint.from_snapshot(s) for s in self.latest(months)]
        missing = months - len(points)
        if missing:
            if points and points[0].snapshot_date is not None:
                anchor = shift_month(points[0].snapshot_date, -1)
            else:
                anchor = shift_month(local_day(self.clock), 0)
            padding = [
                PerformancePoint(
                    label=calendar.month_abbr[shift_month(anchor, -offset).month],
                    snapshot_date=None,
                )
                for offset in range(missing - 1, -1, -1)
            ]
            points = padding + points
        return points
