"""Snapshot repository protocol."""

from __future__ import annotations

from datetime import date
from typing import Protocol

from ...models.portfolio import PortfolioSnapshot


class SnapshotRepository(Protocol):
    """Storage for daily portfolio valuation snapshots."""

    def get(self, snapshot_date: date) -> PortfolioSnapshot | None:
        """Return the snapshot for a day, if one exists."""
        ...

    def upsert(self, snapshot: PortfolioSnapshot) -> PortfolioSnapshot:
        """Insert a snapshot or replace the one with the same date."""
        ...

    def list_all(self) -> list[PortfolioSnapshot]:
        """Return every snapshot ordered oldest first."""
        ...

    def prune(self, max_entries: int) -> int:
        """Drop the oldest snapshots beyond ``max_entries``; return the count removed."""
        ...
