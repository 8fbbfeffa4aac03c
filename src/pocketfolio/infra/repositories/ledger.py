"""SQLModel implementation of the ledger repository."""

from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ...errors import PersistenceError
from ...logging_config import get_logger
from ...models.transaction import Transaction

logger = get_logger(__name__)


class SQLModelLedgerRepository:
    """SQLModel-based append-only ledger."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def append(self, transaction: Transaction) -> Transaction:
        """Insert and commit a transaction; nothing is retained on failure."""
        stored = Transaction(**transaction.model_dump(exclude={"sequence"}))
        try:
            with self.session_factory() as session:
                session.add(stored)
                session.commit()
                session.refresh(stored)
                session.expunge(stored)
        except SQLAlchemyError as exc:
            logger.error(
                "Ledger write failed",
                exc_info=True,
                extra={"transaction_id": transaction.id},
            )
            raise PersistenceError(f"Could not store transaction {transaction.id}") from exc
        return stored

    def list_all(self) -> list[Transaction]:
        with self.session_factory() as session:
            statement = select(Transaction).order_by(Transaction.sequence)  # type: ignore[arg-type]
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        with self.session_factory() as session:
            obj = session.exec(select(Transaction).where(Transaction.id == transaction_id)).first()
            if obj:
                session.expunge(obj)
            return obj

    def last_timestamp(self) -> Optional[int]:
        with self.session_factory() as session:
            return session.exec(select(func.max(Transaction.timestamp))).first()


__all__ = ["SQLModelLedgerRepository"]
