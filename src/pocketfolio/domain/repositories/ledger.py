"""Ledger repository protocol."""

from __future__ import annotations

from typing import Protocol

from ...models.transaction import Transaction


class LedgerRepository(Protocol):
    """Append-only storage for ledger transactions."""

    def append(self, transaction: Transaction) -> Transaction:
        """Durably store a transaction and return it with ``sequence`` assigned.

        Raises ``PersistenceError`` when the write cannot be committed.
        """
        ...

    def list_all(self) -> list[Transaction]:
        """Return every transaction in insertion order."""
        ...

    def get_by_id(self, transaction_id: str) -> Transaction | None:
        """Retrieve a transaction by its id."""
        ...

    def last_timestamp(self) -> int | None:
        """Return the highest recorded timestamp, if any."""
        ...
