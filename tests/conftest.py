"""Pytest configuration and shared fixtures for PocketFolio tests.

Provides database fixtures, in-memory repositories, a fixed clock, a static
price oracle and a fully wired portfolio service, so domain logic can be
exercised without touching the real app database or the network.
"""

from __future__ import annotations

import tempfile
from datetime import datetime
from pathlib import Path

import pytest
from sqlmodel import SQLModel, create_engine

# Import all models to ensure they're registered with SQLModel metadata
from pocketfolio.models import AppSetting, Holding, PortfolioSnapshot, Transaction  # noqa: F401
from pocketfolio.clock import FixedClock
from pocketfolio.infra.database import create_session_factory
from pocketfolio.infra.repositories import (
    InMemoryHoldingRepository,
    InMemoryLedgerRepository,
    InMemorySettingsRepository,
    InMemorySnapshotRepository,
)
from pocketfolio.services.ledger import LedgerStore
from pocketfolio.services.market_data import StaticPriceOracle
from pocketfolio.services.portfolio import PortfolioService
from pocketfolio.services.reports import PerformanceReporter

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _isolated_data_dir(tmp_path, monkeypatch):
    """Keep config-created directories out of the working tree."""
    monkeypatch.setenv("POCKETFOLIO_DATA_DIR", str(tmp_path / "data"))


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated file-backed SQLite database for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(
        f"sqlite:///{db_path}", echo=False, connect_args={"check_same_thread": False}
    )
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Committing session factory, as the repositories use in production."""
    return create_session_factory(db_engine)


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 15, 10, 30))


@pytest.fixture
def oracle() -> StaticPriceOracle:
    return StaticPriceOracle()


@pytest.fixture
def ledger_repo() -> InMemoryLedgerRepository:
    return InMemoryLedgerRepository()


@pytest.fixture
def holding_repo() -> InMemoryHoldingRepository:
    return InMemoryHoldingRepository()


@pytest.fixture
def snapshot_repo() -> InMemorySnapshotRepository:
    return InMemorySnapshotRepository()


@pytest.fixture
def settings_repo() -> InMemorySettingsRepository:
    return InMemorySettingsRepository()


@pytest.fixture
def ledger(ledger_repo, clock) -> LedgerStore:
    return LedgerStore(ledger_repo, clock=clock)


@pytest.fixture
def portfolio(ledger, holding_repo, snapshot_repo, oracle, clock) -> PortfolioService:
    """Portfolio service wired to in-memory storage and the static catalog."""
    return PortfolioService(
        ledger=ledger,
        holdings=holding_repo,
        oracle=oracle,
        snapshots=snapshot_repo,
        clock=clock,
    )


@pytest.fixture
def reporter(portfolio) -> PerformanceReporter:
    return PerformanceReporter(portfolio.recorder, portfolio.holdings)


# =============================================================================
# Helper Functions
# =============================================================================


def assert_float_equal(actual: float, expected: float, tolerance: float = 0.01):
    """Assert that two floats are equal within a tolerance.

    Args:
        actual: Actual value
        expected: Expected value
        tolerance: Maximum allowed difference (default 0.01)

    Raises:
        AssertionError: If values differ by more than tolerance
    """
    assert abs(actual - expected) <= tolerance, (
        f"Expected {expected}, got {actual} (difference: {abs(actual - expected)})"
    )
