"""Database session configuration."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from arms_ratings.core.settings import settings

SQLITE_BUSY_TIMEOUT_SECONDS = 30
# Execution option marking a transaction that is going to write.
IMMEDIATE_WRITE_OPTION = "arms_immediate_write"


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import arms_ratings.models  # noqa: E402,F401


def use_immediate_transactions(sqlite_engine: Engine) -> Engine:
    """Let write transactions take the SQLite write lock when they begin.

    pysqlite defers BEGIN until the first write, so two writers can each read
    and then deadlock upgrading their locks. Transactions whose connection
    carries the ``IMMEDIATE_WRITE_OPTION`` execution option start with
    ``BEGIN IMMEDIATE`` and queue behind the busy timeout instead. Every other
    transaction runs in driver autocommit, so readers never hold a lock past
    the statement that needed it.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin(conn: Any) -> None:
        if conn.get_execution_options().get(IMMEDIATE_WRITE_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


def build_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``url`` with the locking the rating engine expects."""
    if url.startswith("sqlite"):
        return use_immediate_transactions(
            create_engine(
                url,
                echo=echo,
                connect_args={
                    "check_same_thread": False,
                    "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
                },
            )
        )
    return create_engine(url, pool_pre_ping=True, echo=echo)


engine = build_engine(settings.effective_database_url, echo=settings.sql_debug)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)
