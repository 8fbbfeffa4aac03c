"""Concrete repository implementations (SQLModel and in-memory)."""

from .holding import SQLModelHoldingRepository
from .ledger import SQLModelLedgerRepository
from .memory import (
    InMemoryHoldingRepository,
    InMemoryLedgerRepository,
    InMemorySettingsRepository,
    InMemorySnapshotRepository,
)
from .settings import SQLModelSettingsRepository
from .snapshot import SQLModelSnapshotRepository

__all__ = [
    "InMemoryHoldingRepository",
    "InMemoryLedgerRepository",
    "InMemorySettingsRepository",
    "InMemorySnapshotRepository",
    "SQLModelHoldingRepository",
    "SQLModelLedgerRepository",
    "SQLModelSettingsRepository",
    "SQLModelSnapshotRepository",
]
