"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .clock import Clock, SystemClock
from .config import BaseConfig, TestConfig
from .domain.repositories import (
    HoldingRepository,
    LedgerRepository,
    SettingsRepository,
    SnapshotRepository,
)
from .infra.database import create_db_engine, create_session_factory, init_database
from .infra.repositories import (
    InMemoryHoldingRepository,
    InMemoryLedgerRepository,
    InMemorySettingsRepository,
    InMemorySnapshotRepository,
    SQLModelHoldingRepository,
    SQLModelLedgerRepository,
    SQLModelSettingsRepository,
    SQLModelSnapshotRepository,
)
from .services.cash import CashAccount
from .services.ledger import LedgerStore
from .services.market_data import PriceOracle, build_price_oracle
from .services.portfolio import PortfolioService
from .services.reports import PerformanceReporter
from .services.snapshots import SnapshotRecorder


@dataclass
class AppContext:
    """Centralized application context with services and repositories."""

    # Configuration
    config: BaseConfig
    clock: Clock

    # Repositories
    ledger_repo: LedgerRepository
    holding_repo: HoldingRepository
    snapshot_repo: SnapshotRepository
    settings_repo: SettingsRepository

    # Services
    oracle: PriceOracle
    ledger: LedgerStore
    recorder: SnapshotRecorder
    portfolio: PortfolioService
    reporter: PerformanceReporter
    cash: CashAccount

    # Set for database-backed contexts
    session_factory: Optional[Callable[[], Any]] = None
    engine: Optional[Any] = None

    def close(self) -> None:
        """Release network clients and database connections."""
        for oracle in (self.oracle, getattr(self.oracle, "primary", None)):
            if hasattr(oracle, "close"):
                oracle.close()
        if self.engine is not None:
            self.engine.dispose()


def _wire(
    config: BaseConfig,
    *,
    ledger_repo: LedgerRepository,
    holding_repo: HoldingRepository,
    snapshot_repo: SnapshotRepository,
    settings_repo: SettingsRepository,
    oracle: Optional[PriceOracle],
    clock: Optional[Clock],
    session_factory=None,
    engine=None,
) -> AppContext:
    clock = clock or SystemClock()
    oracle = oracle or build_price_oracle(config)
    ledger = LedgerStore(ledger_repo, clock=clock)
    portfolio = PortfolioService(
        ledger=ledger,
        holdings=holding_repo,
        oracle=oracle,
        snapshots=snapshot_repo,
        clock=clock,
        retention=config.SNAPSHOT_RETENTION,
    )
    return AppContext(
        config=config,
        clock=clock,
        ledger_repo=ledger_repo,
        holding_repo=holding_repo,
        snapshot_repo=snapshot_repo,
        settings_repo=settings_repo,
        oracle=oracle,
        ledger=ledger,
        recorder=portfolio.recorder,
        portfolio=portfolio,
        reporter=PerformanceReporter(portfolio.recorder, portfolio.holdings),
        cash=CashAccount(settings_repo),
        session_factory=session_factory,
        engine=engine,
    )


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    oracle: Optional[PriceOracle] = None,
    clock: Optional[Clock] = None,
) -> AppContext:
    """Create and initialize the database-backed application context."""

    if config is None:
        config = BaseConfig()

    engine = create_db_engine(config)
    init_database(engine)
    session_factory = create_session_factory(engine)

    return _wire(
        config,
        ledger_repo=SQLModelLedgerRepository(session_factory),
        holding_repo=SQLModelHoldingRepository(session_factory),
        snapshot_repo=SQLModelSnapshotRepository(session_factory),
        settings_repo=SQLModelSettingsRepository(session_factory),
        oracle=oracle,
        clock=clock,
        session_factory=session_factory,
        engine=engine,
    )


def create_memory_context(
    config: Optional[BaseConfig] = None,
    *,
    oracle: Optional[PriceOracle] = None,
    clock: Optional[Clock] = None,
) -> AppContext:
    """Context with nothing persisted; handy for experiments and tests."""

    return _wire(
        config or TestConfig(),
        ledger_repo=InMemoryLedgerRepository(),
        holding_repo=InMemoryHoldingRepository(),
        snapshot_repo=InMemorySnapshotRepository(),
        settings_repo=InMemorySettingsRepository(),
        oracle=oracle,
        clock=clock,
    )
