"""
Module: stock_ledger.db.engine
Responsibility: The process-wide SQLAlchemy engine and the session factory
    a UnitOfWork is built from.
Architecture position: Ledger > DB.  Imports only db/base.py and, lazily,
    the models package so that create_tables() sees every table.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED.  Same-key updates are serialized by
      SELECT ... FOR UPDATE on stock levels, documents and reference
      counters, not by the isolation level.
    - SQLite opens every transaction with BEGIN IMMEDIATE, so a
      read-modify-write holds the database write lock from its first read.
      pysqlite's implicit BEGIN is switched off, which also makes SAVEPOINT
      behave.  Foreign keys are enforced.
    - In-memory SQLite (``sqlite://`` or ``:memory:``) is one connection
      shared by every session, so it only supports one transaction at a
      time: single-threaded use such as scripts and quick experiments.
      Concurrent callers need a file or PostgreSQL URL.

Failure modes:
    - RuntimeError from get_engine()/get_session_factory() before
      init_engine_from_url().
    - sqlalchemy.exc.TimeoutError when the pool stays exhausted for
      ``pool_timeout`` seconds.
"""

import atexit
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from stock_ledger.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _is_memory_sqlite(url: URL) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _engine_options(
    url: URL,
    *,
    pool_size: int,
    max_overflow: int,
    pool_timeout: int,
    pool_recycle: int,
) -> dict[str, Any]:
    # One shared connection, or every pool checkout would see an empty database.
    if _is_memory_sqlite(url):
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}

    options: dict[str, Any] = {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_timeout": pool_timeout,
        "pool_pre_ping": True,
    }
    if url.get_backend_name() == "sqlite":
        # Busy timeout: how long a writer waits for BEGIN IMMEDIATE.
        options["connect_args"] = {"timeout": pool_timeout, "check_same_thread": False}
    else:
        options["pool_recycle"] = pool_recycle
        options["isolation_level"] = "READ COMMITTED"
    return options


def _use_immediate_transactions(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine for ``database_url`` and a session factory bound to it.

    A second call replaces the previous engine without disposing it; callers
    that switch databases dispose the old engine themselves.
    """
    global _engine, _session_factory

    url = make_url(database_url)
    engine = create_engine(
        url,
        echo=echo,
        **_engine_options(
            url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        ),
    )
    if url.get_backend_name() == "sqlite":
        _use_immediate_transactions(engine)
    if _is_memory_sqlite(url):
        logger.warning(
            "sqlite_memory_single_connection",
            extra={"detail": "one shared connection; not safe for concurrent transactions"},
        )

    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    logger.info(
        "engine_initialized",
        extra={
            "dialect": engine.dialect.name,
            "pool": type(engine.pool).__name__,
            "echo": echo,
        },
    )
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory


def create_tables() -> None:
    """Create every ledger table that does not exist yet."""
    from stock_ledger.db.base import Base
    import stock_ledger.models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.sorted_tables)})


def drop_tables() -> None:
    """Drop every ledger table.  Tests and local resets only."""
    from stock_ledger.db.base import Base
    import stock_ledger.models  # noqa: F401

    Base.metadata.drop_all(get_engine())
    logger.info("tables_dropped")


def reset_engine() -> None:
    """Dispose the engine and forget it."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(lambda: _engine.dispose() if _engine is not None else None)
