"""SQLModel implementation of the holding repository."""

from __future__ import annotations

from typing import Callable

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ...errors import PersistenceError
from ...models.portfolio import Holding


class SQLModelHoldingRepository:
    """Persists the holdings of the most recent valuation pass."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def list_all(self) -> list[Holding]:
        with self.session_factory() as session:
            statement = select(Holding).order_by(Holding.asset_class, Holding.holding_key)  # type: ignore[arg-type]
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def replace_all(self, holdings: list[Holding]) -> None:
        """Delete and re-insert in one transaction so readers never see a partial set."""
        try:
            with self.session_factory() as session:
                session.execute(delete(Holding))
                for holding in holdings:
                    session.add(Holding(**holding.model_dump()))
                session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError("Could not store holdings") from exc


__all__ = ["SQLModelHoldingRepository"]
