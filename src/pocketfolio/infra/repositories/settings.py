"""Settings repository for app-level key/value pairs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ...errors import PersistenceError
from ...models.settings import AppSetting


class SQLModelSettingsRepository:
    """SQLModel-based settings repository."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[AppSetting]:
        with self.session_factory() as session:
            setting = session.exec(select(AppSetting).where(AppSetting.key == key)).first()
            if setting:
                session.expunge(setting)
            return setting

    def set(self, key: str, value: str, description: str | None = None) -> AppSetting:
        try:
            with self.session_factory() as session:
                setting = session.exec(select(AppSetting).where(AppSetting.key == key)).first()
                if setting:
                    setting.value = value
                    setting.description = description
                else:
                    setting = AppSetting(key=key, value=value, description=description)
                    session.add(setting)
                setting.updated_at = datetime.now(timezone.utc)
                session.commit()
                session.refresh(setting)
                session.expunge(setting)
                return setting
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not store setting {key!r}") from exc


__all__ = ["SQLModelSettingsRepository"]
