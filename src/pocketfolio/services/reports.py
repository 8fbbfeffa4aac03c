"""Reporting utilities: allocation, period-over-period change and performance series.

All reports are read-only and degrade to zeros instead of raising, so a
dashboard can always render something.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional, Protocol

from ..errors import PortfolioError
from ..logging_config import get_logger
from ..models.portfolio import PortfolioSnapshot
from ..models.transaction import AssetClass
from .positions import PortfolioHoldings, Position, ValuationTotals, best_performer
from .snapshots import SnapshotRecorder

logger = get_logger(__name__)


class ClassValues(Protocol):
    """Anything exposing a total and a per-class value (snapshots, live totals)."""

    total_value: float

    def value_for(self, asset_class: AssetClass) -> float:  # pragma: no cover - interface
        ...


@dataclass(frozen=True, slots=True)
class AssetAllocation:
    """Whole-number percentage share of each asset class."""

    stocks: int = 0
    crypto: int = 0
    insurance: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class PerformanceChange:
    """Percentage change per class between two valuations."""

    total: float = 0.0
    stocks: float = 0.0
    crypto: float = 0.0
    insurance: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def _round_half_up(value: float, places: int) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def allocation_from(values: ClassValues) -> AssetAllocation:
    """Round each class share to the nearest whole percent (halves round up)."""
    total = values.total_value
    if total <= 0:
        return AssetAllocation()

    def share(asset_class: AssetClass) -> int:
        return int(_round_half_up(values.value_for(asset_class) / total * 100, 0))

    return AssetAllocation(
        stocks=share(AssetClass.STOCK),
        crypto=share(AssetClass.CRYPTO),
        insurance=share(AssetClass.INSURANCE),
    )


def percentage_change(previous: float, current: float) -> float:
    """``(current - previous) / previous * 100`` to two places; 0 when previous is 0."""
    if previous == 0:
        return 0.0
    return float(_round_half_up((current - previous) / previous * 100, 2))


def change_between(previous: ClassValues, current: ClassValues) -> PerformanceChange:
    return PerformanceChange(
        total=percentage_change(previous.total_value, current.total_value),
        stocks=percentage_change(
            previous.value_for(AssetClass.STOCK), current.value_for(AssetClass.STOCK)
        ),
        crypto=percentage_change(
            previous.value_for(AssetClass.CRYPTO), current.value_for(AssetClass.CRYPTO)
        ),
        insurance=percentage_change(
            previous.value_for(AssetClass.INSURANCE), current.value_for(AssetClass.INSURANCE)
        ),
    )


def totals_from_snapshot(snapshot: PortfolioSnapshot) -> ValuationTotals:
    return ValuationTotals(
        stocks_value=snapshot.stocks_value,
        crypto_value=snapshot.crypto_value,
        insurance_value=snapshot.insurance_value,
    )


class PerformanceReporter:
    """Derived views over snapshot history, with live holdings as a fallback."""

    def __init__(
        self,
        recorder: SnapshotRecorder,
        live_holdings: Callable[[], PortfolioHoldings],
    ) -> None:
        self.recorder = recorder
        self.live_holdings = live_holdings

    def _live(self) -> Optional[PortfolioHoldings]:
        try:
            return self.live_holdings()
        except PortfolioError as exc:
            logger.warning(f"Live valuation unavailable for reporting: {exc}")
            return None

    def allocation(self) -> AssetAllocation:
        """Shares from the latest snapshot, or from live holdings before the first one."""
        latest = self.recorder.latest(1)
        if latest:
            return allocation_from(totals_from_snapshot(latest[0]))
        holdings = self._live()
        if holdings is None:
            return AssetAllocation()
        return allocation_from(holdings.totals())

    def month_over_month_change(self) -> PerformanceChange:
        """Change between the two most recent snapshots; all zero with fewer than two."""
        recent = self.recorder.latest(2)
        if len(recent) < 2:
            return PerformanceChange()
        previous, current = recent
        return change_between(previous, current)

    def best_performer(self) -> Optional[Position]:
        holdings = self._live()
        if holdings is None:
            return None
        return best_performer(holdings)

    def performance_series(self, months: int = 12) -> tuple[list[str], list[float]]:
        """Chart labels and total values, oldest first."""
        points = self.recorder.history(months)
        return [p.label for p in points], [p.total_value for p in points]
