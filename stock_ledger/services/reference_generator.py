"""
ReferenceGenerator -- human-readable document numbers.

Responsibility:
    Hands out ``<PREFIX>-<YYYYMMDD>-<NNNN>`` references for new receipts and
    deliveries.  The sequence restarts at 0001 each UTC day per prefix.

Architecture position:
    Ledger > Services.  Called by DocumentService when a document is created.

Invariants enforced:
    - Uniqueness under concurrency: the per-day ReferenceCounter row is
      incremented under SELECT ... FOR UPDATE, so two concurrent creates
      never compute the same number.  Counting existing rows and adding one
      is not used for allocation.
    - Continuity with existing data: the first allocation of a day seeds the
      counter from the highest sequence already used for that day and
      prefix.
    - Transactional: a rolled-back create returns its number.

Failure modes:
    - IntegrityError on a concurrent first use of a day key is handled by
      rolling back the savepoint and re-reading the counter with the lock.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_ledger.config import LedgerSettings
from stock_ledger.db.unit_of_work import UnitOfWork
from stock_ledger.domain.clock import Clock
from stock_ledger.domain.references import day_key, format_reference, parse_reference
from stock_ledger.domain.values import DocumentType
from stock_ledger.logging_config import get_logger
from stock_ledger.models.document import Document
from stock_ledger.models.sequence import ReferenceCounter
from stock_ledger.services.base import BaseService

logger = get_logger("services.reference")


class ReferenceGenerator(BaseService):
    """
    Allocates document reference numbers.

    Usage:
        with uow.transaction():
            ref = generator.next_reference(DocumentType.RECEIPT)
            # ref == "RCP-20240115-0001"
    """

    def __init__(
        self,
        uow: UnitOfWork,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(uow, clock)
        settings = settings or LedgerSettings()
        self._prefixes = {
            DocumentType.RECEIPT: settings.receipt_prefix,
            DocumentType.DELIVERY: settings.delivery_prefix,
        }

    def prefix_for(self, document_type: DocumentType | str) -> str:
        return self._prefixes[DocumentType(document_type)]

    def next_reference(self, document_type: DocumentType | str) -> str:
        """
        Allocate the next reference for today's date on the clock.

        Postconditions:
            - The returned reference has not been returned before for this
              prefix and day, unless the transaction that took it rolled back.
        """
        prefix = self.prefix_for(document_type)
        now = self._clock.now_utc()
        key = day_key(prefix, now)

        with self._uow.transaction() as session:
            sequence = self._next_value(session, key)

        reference = format_reference(prefix, now, sequence)
        logger.info(
            "reference_allocated",
            extra={"counter": key, "sequence": sequence, "reference": reference},
        )
        return reference

    def _next_value(self, session: Session, key: str) -> int:
        counter = self._lock_counter(session, key)

        if counter is None:
            seed = self._highest_existing(session, key)
            savepoint = session.begin_nested()
            try:
                counter = ReferenceCounter(name=key, current_value=seed + 1)
                session.add(counter)
                session.flush()
                savepoint.commit()
                return counter.current_value
            except IntegrityError:
                logger.debug("reference_counter_race_retry", extra={"counter": key})
                savepoint.rollback()
                counter = self._lock_counter(session, key)
                if counter is None:
                    raise

        counter.current_value += 1
        session.flush()
        return counter.current_value

    @staticmethod
    def _lock_counter(session: Session, key: str) -> ReferenceCounter | None:
        return session.execute(
            select(ReferenceCounter)
            .where(ReferenceCounter.name == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @staticmethod
    def _highest_existing(session: Session, key: str) -> int:
        """Largest sequence among documents already numbered for ``key`` (0 if none)."""
        references = session.execute(
            select(Document.reference_number).where(Document.reference_number.like(f"{key}-%"))
        ).scalars()
        return max((parse_reference(ref)[2] for ref in references), default=0)
