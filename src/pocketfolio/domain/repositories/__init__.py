"""Repository protocol definitions for domain layer."""

from .holding import HoldingRepository
from .ledger import LedgerRepository
from .settings import SettingsRepository
from .snapshot import SnapshotRepository

__all__ = [
    "HoldingRepository",
    "LedgerRepository",
    "SettingsRepository",
    "SnapshotRepository",
]
