"""Database infrastructure: engine, schema and session factory."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Tuple

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from ..config import BaseConfig

_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def create_db_engine(config: BaseConfig):
    """Create SQLModel engine from configuration."""
    engine_options = config.sqlalchemy_engine_options()
    if config.DATABASE_URL in _MEMORY_URLS:
        # One shared connection, otherwise each thread sees an empty database.
        engine_options["poolclass"] = StaticPool
    return create_engine(config.DATABASE_URL, **engine_options)


def init_database(engine) -> None:
    """Create any missing tables."""
    from .. import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def create_session_factory(engine):
    """Create a session factory function."""

    @contextmanager
    def factory() -> Iterator[Session]:
        session = Session(engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return factory


def bootstrap_database(config: BaseConfig | None = None) -> Tuple:
    """Build engine + session factory with the schema in place.

    Returns (engine, session_factory).
    """

    cfg = config or BaseConfig()
    engine = create_db_engine(cfg)
    init_database(engine)
    return engine, create_session_factory(engine)
