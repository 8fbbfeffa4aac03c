"""Settings repository protocol."""

from __future__ import annotations

from typing import Protocol

from ...models.settings import AppSetting


class SettingsRepository(Protocol):
    """Key/value storage for scalar application state."""

    def get(self, key: str) -> AppSetting | None:
        ...

    def set(self, key: str, value: str, description: str | None = None) -> AppSetting:
        ...
