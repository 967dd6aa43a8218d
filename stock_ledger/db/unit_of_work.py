"""
Module: stock_ledger.db.unit_of_work
Responsibility: The transaction scope every ledger operation runs in.  A
    UnitOfWork wraps a session factory and hands out one session per
    outermost ``transaction()`` block, committing on normal exit and rolling
    back on any exception.
Architecture position: Ledger > DB.  Services and the StockLedger facade are
    constructed with a UnitOfWork instead of a global session.

Invariants enforced:
    - Atomicity: everything done inside the outermost ``transaction()`` block
      commits together or not at all.
    - Composition: a ``transaction()`` opened while another is active in the
      same context (thread or task) joins the outer one.  A transfer's two
      ledger calls, or a document's per-line loop, therefore share one
      transaction without the inner calls knowing about it.
    - Isolation between threads: the active session is tracked in a
      ContextVar, so concurrent threads never share a session.

Failure modes:
    - Any exception inside the block rolls back the outermost transaction and
      is re-raised unchanged.  Domain errors are never retried here.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TypeVar

from sqlalchemy.orm import Session, sessionmaker

from stock_ledger.logging_config import get_logger

logger = get_logger("db.unit_of_work")

T = TypeVar("T")


class UnitOfWork:
    """
    Explicit transaction provider for the ledger.

    Usage:
        uow = UnitOfWork(get_session_factory())
        with uow.transaction() as session:
            ...  # commits on exit, rolls back on exception

        result = uow.run(lambda session: ...)
    """

    def __init__(self, session_factory: sessionmaker[Session] | Callable[[], Session]):
        self._session_factory = session_factory
        self._active: ContextVar[Session | None] = ContextVar(
            f"stock_ledger_uow_{id(self)}", default=None
        )

    @property
    def in_transaction(self) -> bool:
        """True when called from inside a ``transaction()`` block."""
        return self._active.get() is not None

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Provide a transactional scope around a series of operations.

        Postconditions: On normal exit of the outermost block the session is
            committed and closed.  On exception it is rolled back and closed,
            and the exception is re-raised to the caller.
        """
        current = self._active.get()
        if current is not None:
            yield current
            return

        session = self._session_factory()
        token = self._active.set(session)
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception as exc:
            session.rollback()
            logger.info(
                "transaction_rolled_back",
                extra={
                    "error_type": type(exc).__name__,
                    "error_code": getattr(exc, "code", None),
                },
            )
            raise
        finally:
            self._active.reset(token)
            session.close()

    def run(self, fn: Callable[[Session], T]) -> T:
        """Run ``fn(session)`` inside ``transaction()`` and return its result."""
        with self.transaction() as session:
            return fn(session)
