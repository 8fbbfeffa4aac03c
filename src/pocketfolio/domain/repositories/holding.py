"""Holding repository protocol."""

from __future__ import annotations

from typing import Protocol

from ...models.portfolio import Holding


class HoldingRepository(Protocol):
    """Storage for the holdings produced by the last valuation pass."""

    def list_all(self) -> list[Holding]:
        """List all persisted holdings."""
        ...

    def replace_all(self, holdings: list[Holding]) -> None:
        """Atomically swap the stored holdings for ``holdings``."""
        ...
