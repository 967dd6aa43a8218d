"""
BaseService -- common constructor for every write-side service.

Responsibility:
    Holds the injected UnitOfWork and Clock.  Services open
    ``self._uow.transaction()`` for each public operation; when the caller
    is already inside a transaction the service joins it, so composite
    operations (transfers, document completion) commit or roll back as one.

Architecture position:
    Ledger > Services -- imperative shell.

Invariants enforced:
    - Services flush, never commit.  Only the outermost transaction scope
      in UnitOfWork commits or rolls back.
    - Services take time from the injected Clock, never from datetime.now().
"""

from abc import ABC

from stock_ledger.db.unit_of_work import UnitOfWork
from stock_ledger.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for ledger services.

    Non-goals:
        - Does NOT provide read-only query methods; those belong in
          ``stock_ledger/selectors/``.
    """

    def __init__(self, uow: UnitOfWork, clock: Clock | None = None):
        """
        Args:
            uow: Transaction provider shared by every service of one ledger.
            clock: Time source.  Defaults to SystemClock.
        """
        self._uow = uow
        self._clock = clock or SystemClock()
