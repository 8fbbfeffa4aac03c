"""SQLModel implementation of the snapshot repository."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ...errors import PersistenceError
from ...models.portfolio import PortfolioSnapshot


class SQLModelSnapshotRepository:
    """SQLModel-based snapshot history."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, snapshot_date: date) -> Optional[PortfolioSnapshot]:
        with self.session_factory() as session:
            obj = session.get(PortfolioSnapshot, snapshot_date)
            if obj:
                session.expunge(obj)
            return obj

    def upsert(self, snapshot: PortfolioSnapshot) -> PortfolioSnapshot:
        try:
            with self.session_factory() as session:
                existing = session.get(PortfolioSnapshot, snapshot.snapshot_date)
                if existing:
                    existing.total_value = snapshot.total_value
                    existing.stocks_value = snapshot.stocks_value
                    existing.crypto_value = snapshot.crypto_value
                    existing.insurance_value = snapshot.insurance_value
                    existing.recorded_at = snapshot.recorded_at
                    target = existing
                else:
                    target = PortfolioSnapshot(**snapshot.model_dump())
                    session.add(target)
                session.commit()
                session.refresh(target)
                session.expunge(target)
                return target
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not store snapshot for {snapshot.snapshot_date.isoformat()}"
            ) from exc

    def list_all(self) -> list[PortfolioSnapshot]:
        with self.session_factory() as session:
            statement = select(PortfolioSnapshot).order_by(PortfolioSnapshot.snapshot_date)  # type: ignore[arg-type]
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def prune(self, max_entries: int) -> int:
        try:
            with self.session_factory() as session:
                statement = (
                    select(PortfolioSnapshot)
                    .order_by(PortfolioSnapshot.snapshot_date.desc())  # type: ignore[attr-defined]
                    .offset(max_entries)
                )
                expired = list(session.exec(statement).all())
                for row in expired:
                    session.delete(row)
                session.commit()
                return len(expired)
        except SQLAlchemyError as exc:
            raise PersistenceError("Could not prune snapshot history") from exc


__all__ = ["SQLModelSnapshotRepository"]
