"""
StockLedger -- the entry point callers use.

Responsibility:
    Wires the ledger engine, transfer, adjustment and document services and
    the read-side selectors around one UnitOfWork and one Clock, and exposes
    them as a single object.  Controllers, jobs and the CLI talk to this
    class only.

Architecture position:
    Ledger > Facade.  Imports services, selectors and db.  Nothing inside the
    package imports this module except cli.py.

Invariants enforced:
    - Every write runs inside one UnitOfWork transaction.  Calls made inside
      ``uow.transaction()`` by the caller join that transaction.
    - Reads run in their own short transaction and return frozen DTOs.

Non-goals:
    - Authentication, authorization and notifications belong to the caller.
"""

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from stock_ledger.config import LedgerSettings, load_settings
from stock_ledger.db.engine import get_session_factory, init_engine_from_url
from stock_ledger.db.immutability import register_immutability_listeners
from stock_ledger.db.unit_of_work import UnitOfWork
from stock_ledger.domain.clock import Clock, SystemClock
from stock_ledger.domain.dtos import (
    DocumentFilter,
    DocumentInfo,
    DocumentLineSpec,
    LowStockAlert,
    MovementFilter,
    MovementPage,
    MovementSummary,
    ReconciliationMismatch,
    StockChangeResult,
    StockLevelInfo,
    TransferResult,
    TransitionRecord,
    WarehouseStockSummary,
)
from stock_ledger.domain.values import DocumentStatus, DocumentType, MovementType
from stock_ledger.exceptions import DocumentNotFoundError
from stock_ledger.logging_config import configure_logging, get_logger
from stock_ledger.selectors.document_selector import DocumentSelector
from stock_ledger.selectors.movement_selector import MovementSelector
from stock_ledger.selectors.stock_selector import StockSelector
from stock_ledger.services.adjustment_service import AdjustmentService
from stock_ledger.services.document_service import DocumentService
from stock_ledger.services.ledger_engine import LedgerEngine
from stock_ledger.services.reference_generator import ReferenceGenerator
from stock_ledger.services.transfer_service import TransferService

logger = get_logger("ledger")


class StockLedger:
    """
    Facade over the stock ledger.

    Usage:
        ledger = build_ledger()
        ledger.receive(product_id, warehouse_id, location_id, 10, actor_id)
        doc = ledger.create_receipt(warehouse_id, actor_id, lines=[...])
        ledger.transition_document(doc.id, DocumentStatus.READY, actor_id)
    """

    def __init__(
        self,
        uow: UnitOfWork,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        self.uow = uow
        self.clock = clock or SystemClock()
        self.settings = settings or LedgerSettings()

        register_immutability_listeners()

        self.engine = LedgerEngine(uow, self.clock)
        self.transfers = TransferService(uow, self.engine, self.clock)
        self.adjustments = AdjustmentService(uow, self.engine, self.clock)
        self.references = ReferenceGenerator(uow, self.clock, self.settings)
        self.documents = DocumentService(
            uow,
            self.engine,
            self.clock,
            self.settings,
            references=self.references,
        )

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def apply_stock_change(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        location_id: UUID,
        quantity_delta: int,
        movement_type: MovementType | str,
        actor_id: UUID,
        reference: str | None = None,
        notes: str | None = None,
    ) -> StockChangeResult:
        return self.engine.apply_stock_change(
            product_id,
            warehouse_id,
            location_id,
            quantity_delta,
            movement_type,
            actor_id,
            reference=reference,
            notes=notes,
        )

    def receive(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        location_id: UUID,
        quantity: int,
        actor_id: UUID,
        reference: str | None = None,
        notes: str | None = None,
    ) -> StockChangeResult:
        return self.engine.receive(
            product_id, warehouse_id, location_id, quantity, actor_id,
            reference=reference, notes=notes,
        )

    def deliver(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        location_id: UUID,
        quantity: int,
        actor_id: UUID,
        reference: str | None = None,
        notes: str | None = None,
    ) -> StockChangeResult:
        return self.engine.deliver(
            product_id, warehouse_id, location_id, quantity, actor_id,
            reference=reference, notes=notes,
        )

    def transfer(
        self,
        product_id: UUID,
        from_location_id: UUID,
        to_location_id: UUID,
        quantity: int,
        actor_id: UUID,
        reference: str | None = None,
        notes: str | None = None,
    ) -> TransferResult:
        return self.transfers.transfer(
            product_id, from_location_id, to_location_id, quantity, actor_id,
            reference=reference, notes=notes,
        )

    def adjust(
        self,
        product_id: UUID,
        location_id: UUID,
        target_quantity: int,
        actor_id: UUID,
        reason: str | None = None,
        notes: str | None = None,
    ) -> StockChangeResult:
        return self.adjustments.adjust(
            product_id, location_id, target_quantity, actor_id,
            reason=reason, notes=notes,
        )

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def create_document(
        self,
        document_type: DocumentType | str,
        warehouse_id: UUID,
        actor_id: UUID,
        lines: Sequence[DocumentLineSpec] = (),
        counterparty_id: UUID | None = None,
        notes: str | None = None,
    ) -> DocumentInfo:
        return self.documents.create_document(
            document_type, warehouse_id, actor_id, lines,
            counterparty_id=counterparty_id, notes=notes,
        )

    def create_receipt(
        self,
        warehouse_id: UUID,
        actor_id: UUID,
        lines: Sequence[DocumentLineSpec] = (),
        supplier_id: UUID | None = None,
        notes: str | None = None,
    ) -> DocumentInfo:
        return self.documents.create_receipt(
            warehouse_id, actor_id, lines, supplier_id=supplier_id, notes=notes
        )

    def create_delivery(
        self,
        warehouse_id: UUID,
        actor_id: UUID,
        lines: Sequence[DocumentLineSpec] = (),
        customer_id: UUID | None = None,
        notes: str | None = None,
    ) -> DocumentInfo:
        return self.documents.create_delivery(
            warehouse_id, actor_id, lines, customer_id=customer_id, notes=notes
        )

    def update_document(
        self,
        document_id: UUID,
        actor_id: UUID,
        lines: Sequence[DocumentLineSpec] | None = None,
        notes: str | None = None,
        counterparty_id: UUID | None = None,
        clear_counterparty: bool = False,
    ) -> DocumentInfo:
        return self.documents.update_document(
            document_id, actor_id, lines=lines, notes=notes,
            counterparty_id=counterparty_id, clear_counterparty=clear_counterparty,
        )

    def delete_document(self, document_id: UUID, actor_id: UUID) -> None:
        self.documents.delete_document(document_id, actor_id)

    def transition_document(
        self,
        document_id: UUID,
        target_status: DocumentStatus | str,
        actor_id: UUID,
    ) -> DocumentInfo:
        return self.documents.transition_document(document_id, target_status, actor_id)

    def get_document(self, document_id: UUID) -> DocumentInfo:
        """
        Raises:
            DocumentNotFoundError: no document with that ID.
        """
        with self.uow.transaction() as session:
            document = DocumentSelector(session).get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def list_documents(self, filters: DocumentFilter | None = None) -> list[DocumentInfo]:
        with self.uow.transaction() as session:
            return DocumentSelector(session).list_documents(
                filters, default_limit=self.settings.default_page_size
            )

    def document_history(self, document_id: UUID) -> list[TransitionRecord]:
        with self.uow.transaction() as session:
            return DocumentSelector(session).history(document_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def query_stock_levels(
        self,
        warehouse_id: UUID,
        product_id: UUID | None = None,
        location_id: UUID | None = None,
        include_zero: bool = False,
    ) -> list[StockLevelInfo]:
        with self.uow.transaction() as session:
            return StockSelector(session).query_stock_levels(
                warehouse_id, product_id, location_id, include_zero
            )

    def get_stock_level(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        location_id: UUID,
    ) -> StockLevelInfo | None:
        with self.uow.transaction() as session:
            return StockSelector(session).get_stock_level(product_id, warehouse_id, location_id)

    def query_movements(self, filters: MovementFilter | None = None) -> MovementPage:
        with self.uow.transaction() as session:
            return MovementSelector(session).query_movements(
                filters, default_limit=self.settings.default_page_size
            )

    def low_stock_alerts(self, warehouse_id: UUID) -> list[LowStockAlert]:
        with self.uow.transaction() as session:
            return StockSelector(session).low_stock_alerts(warehouse_id)

    def warehouse_summary(self, warehouse_id: UUID) -> WarehouseStockSummary:
        with self.uow.transaction() as session:
            return StockSelector(session).warehouse_summary(
                warehouse_id, recent_limit=self.settings.recent_movement_limit
            )

    def movement_summary(
        self,
        warehouse_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> MovementSummary:
        with self.uow.transaction() as session:
            return MovementSelector(session).movement_summary(warehouse_id, start, end)

    def reconcile(self, warehouse_id: UUID | None = None) -> list[ReconciliationMismatch]:
        with self.uow.transaction() as session:
            mismatches = StockSelector(session).reconcile(warehouse_id)
        if mismatches:
            logger.warning(
                "reconciliation_mismatch_found",
                extra={
                    "warehouse_id": str(warehouse_id) if warehouse_id else None,
                    "mismatch_count": len(mismatches),
                },
            )
        return mismatches


def build_ledger(settings: LedgerSettings | None = None) -> StockLedger:
    """
    Build a StockLedger from settings (``load_settings()`` when None).

    Configures logging, initializes the database engine, and returns a
    ledger on the system clock.
    """
    settings = settings or load_settings()
    configure_logging(level=settings.log_level)
    init_engine_from_url(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )
    ledger = StockLedger(UnitOfWork(get_session_factory()), SystemClock(), settings)
    logger.info("ledger_started", extra={"database_url": _redact(settings.database_url)})
    return ledger


def _redact(database_url: str) -> str:
    from sqlalchemy.engine import make_url

    return make_url(database_url).render_as_string(hide_password=True)
