"""Tests for allocation, period change and chart series reports."""

from __future__ import annotations

from datetime import date

from pocketfolio.errors import StaleDataError
from pocketfolio.models import AssetClass, PortfolioSnapshot
from pocketfolio.services.positions import ValuationTotals
from pocketfolio.services.reports import (
    AssetAllocation,
    PerformanceChange,
    PerformanceReporter,
    allocation_from,
    percentage_change,
)
from pocketfolio.services.snapshots import SnapshotRecorder


def _snapshot(day: int, stocks: float = 0, crypto: float = 0, insurance: float = 0):
    return PortfolioSnapshot(
        snapshot_date=date(2024, 3, day),
        total_value=stocks + crypto + insurance,
        stocks_value=stocks,
        crypto_value=crypto,
        insurance_value=insurance,
    )


def test_allocation_is_zero_for_empty_portfolio(reporter):
    assert reporter.allocation() == AssetAllocation(stocks=0, crypto=0, insurance=0)


def test_allocation_uses_latest_snapshot(reporter, snapshot_repo):
    snapshot_repo.upsert(_snapshot(1, stocks=100))
    snapshot_repo.upsert(_snapshot(2, stocks=500, crypto=300, insurance=200))

    assert reporter.allocation().as_dict() == {"stocks": 50, "crypto": 30, "insurance": 20}


def test_allocation_falls_back_to_live_holdings(reporter, portfolio, snapshot_repo):
    portfolio.buy(AssetClass.CRYPTO, "bitcoin", 0.01, unit_price=3_500_000)
    # No snapshot yet: the report has to value the ledger itself.
    snapshot_repo.prune(0)

    assert reporter.allocation().crypto == 100


def test_allocation_rounds_halves_up():
    totals = ValuationTotals(stocks_value=1, crypto_value=1, insurance_value=6)
    # 12.5 / 12.5 / 75
    assert allocation_from(totals) == AssetAllocation(stocks=13, crypto=13, insurance=75)


def test_month_over_month_change_between_two_latest_snapshots(reporter, snapshot_repo):
    snapshot_repo.upsert(_snapshot(1, stocks=600, crypto=400))
    snapshot_repo.upsert(_snapshot(2, stocks=660, crypto=440))

    change = reporter.month_over_month_change()

    assert change.total == 10.00
    assert change.stocks == 10.00
    assert change.crypto == 10.00
    assert change.insurance == 0.0


def test_month_over_month_change_needs_two_snapshots(reporter, snapshot_repo):
    assert reporter.month_over_month_change() == PerformanceChange()
    snapshot_repo.upsert(_snapshot(1, stocks=1000))
    assert reporter.month_over_month_change() == PerformanceChange()


def test_percentage_change_rounds_to_two_places():
    assert percentage_change(0, 500) == 0.0
    assert percentage_change(1000, 1100) == 10.0
    assert percentage_change(3, 4) == 33.33
    assert percentage_change(200, 150) == -25.0


def test_best_performer_from_live_holdings(portfolio, reporter, oracle):
    portfolio.buy(AssetClass.CRYPTO, "solana", 10, unit_price=8000)
    portfolio.buy(AssetClass.STOCK, "TCS.BSE", 1, unit_price=3900)

    best = reporter.best_performer()

    assert best is not None
    assert best.asset_id == "solana"


def test_reports_degrade_when_live_valuation_fails(snapshot_repo, clock):
    def failing_holdings():
        raise StaleDataError("offline")

    recorder = SnapshotRecorder(snapshot_repo, lambda: ValuationTotals(), clock=clock)
    reporter = PerformanceReporter(recorder, failing_holdings)

    assert reporter.allocation() == AssetAllocation()
    assert reporter.best_performer() is None


def test_performance_series_matches_history(reporter, snapshot_repo):
    snapshot_repo.upsert(_snapshot(1, stocks=100))
    snapshot_repo.upsert(_snapshot(2, stocks=150))

    labels, values = reporter.performance_series(6)

    assert len(labels) == len(values) == 6
    assert values[-2:] == [100, 150]
    assert labels[-1] == "Mar"
