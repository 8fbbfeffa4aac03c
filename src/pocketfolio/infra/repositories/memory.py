"""In-memory repository implementations for tests and throwaway sessions.

Every read and write copies models so callers never share mutable state with
the store, mirroring the detached objects the SQLModel repositories return.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, TypeVar

from sqlmodel import SQLModel

from ...models.portfolio import Holding, PortfolioSnapshot
from ...models.settings import AppSetting
from ...models.transaction import Transaction

_M = TypeVar("_M", bound=SQLModel)


def _clone(model: _M) -> _M:
    return type(model)(**model.model_dump())


class InMemoryLedgerRepository:
    def __init__(self) -> None:
        self._rows: list[Transaction] = []

    def append(self, transaction: Transaction) -> Transaction:
        stored = _clone(transaction)
        stored.sequence = len(self._rows) + 1
        self._rows.append(stored)
        return _clone(stored)

    def list_all(self) -> list[Transaction]:
        return [_clone(row) for row in self._rows]

    def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        for row in self._rows:
            if row.id == transaction_id:
                return _clone(row)
        return None

    def last_timestamp(self) -> Optional[int]:
        return max((row.timestamp for row in self._rows), default=None)


class InMemoryHoldingRepository:
    def __init__(self) -> None:
        self._rows: list[Holding] = []

    def list_all(self) -> list[Holding]:
        rows = sorted(self._rows, key=lambda h: (h.asset_class.value, h.holding_key))
        return [_clone(row) for row in rows]

    def replace_all(self, holdings: list[Holding]) -> None:
        self._rows = [_clone(h) for h in holdings]


class InMemorySnapshotRepository:
    def __init__(self) -> None:
        self._rows: dict[date, PortfolioSnapshot] = {}

    def get(self, snapshot_date: date) -> Optional[PortfolioSnapshot]:
        row = self._rows.get(snapshot_date)
        return _clone(row) if row else None

    def upsert(self, snapshot: PortfolioSnapshot) -> PortfolioSnapshot:
        self._rows[snapshot.snapshot_date] = _clone(snapshot)
        return _clone(snapshot)

    def list_all(self) -> list[PortfolioSnapshot]:
        return [_clone(self._rows[key]) for key in sorted(self._rows)]

    def prune(self, max_entries: int) -> int:
        newest_first = sorted(self._rows, reverse=True)
        expired = newest_first[max_entries:]
        for key in expired:
            del self._rows[key]
        return len(expired)


class InMemorySettingsRepository:
    def __init__(self) -> None:
        self._rows: dict[str, AppSetting] = {}

    def get(self, key: str) -> Optional[AppSetting]:
        row = self._rows.get(key)
        return _clone(row) if row else None

    def set(self, key: str, value: str, description: str | None = None) -> AppSetting:
        setting = AppSetting(key=key, value=value, description=description, updated_at=datetime.now(timezone.utc))
        self._rows[key] = setting
        return _clone(setting)


__all__ = [
    "InMemoryHoldingRepository",
    "InMemoryLedgerRepository",
    "InMemorySettingsRepository",
    "InMemorySnapshotRepository",
]
