"""
DocumentService -- receipts and deliveries through DRAFT -> READY -> DONE.

Responsibility:
    Creates, edits and deletes draft documents and drives them through the
    workflow in domain/workflow.py.  Completing a document (READY -> DONE)
    writes one ledger movement per line.

Architecture position:
    Ledger > Services.  Depends on LedgerEngine and ReferenceGenerator.

Invariants enforced:
    - Forward-only status: DRAFT -> READY -> DONE, nothing else.
    - Exactly-once stock effect: only READY -> DONE moves stock, and the
      document row is read with SELECT ... FOR UPDATE first, so a second
      concurrent completion waits and then finds the document DONE.
    - All-or-nothing completion: the per-line loop runs in one transaction;
      a failure on any line rolls back every line and the document stays
      READY.
    - Only DRAFT documents may be edited or deleted.
    - Every accepted status change appends a DocumentTransition row.

Failure modes:
    - DocumentNotFoundError for unknown IDs.
    - InvalidTransitionError for any transition outside the table.
    - DocumentIncompleteError when readying a document with no lines or a
      line without a location.
    - InsufficientStockError when readying or completing a delivery that is
      not covered by stock.
    - DocumentNotEditableError when editing or deleting outside DRAFT.
    - WarehouseNotFoundError / WarehouseInactiveError on create.
    - InvalidQuantityError for non-positive ordered quantities.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_ledger.config import LedgerSettings
from stock_ledger.db.unit_of_work import UnitOfWork
from stock_ledger.domain.clock import Clock
from stock_ledger.domain.dtos import (
    DocumentInfo,
    DocumentLineInfo,
    DocumentLineSpec,
    intended_quantity,
)
from stock_ledger.domain.values import DocumentStatus, DocumentType
from stock_ledger.domain.workflow import (
    DELIVERY_WORKFLOW,
    RECEIPT_WORKFLOW,
    Workflow,
    check_lines_complete,
    required_quantities,
    resolve_transition,
)
from stock_ledger.exceptions import (
    DocumentNotEditableError,
    DocumentNotFoundError,
    InsufficientStockError,
    InvalidQuantityError,
    WarehouseInactiveError,
    WarehouseNotFoundError,
)
from stock_ledger.logging_config import LogContext, get_logger
from stock_ledger.models.document import Document, DocumentLine, DocumentTransition
from stock_ledger.models.reference import Warehouse
from stock_ledger.services.base import BaseService
from stock_ledger.services.ledger_engine import LedgerEngine
from stock_ledger.services.reference_generator import ReferenceGenerator

logger = get_logger("services.document")

_WORKFLOWS: dict[DocumentType, Workflow] = {
    DocumentType.RECEIPT: RECEIPT_WORKFLOW,
    DocumentType.DELIVERY: DELIVERY_WORKFLOW,
}


def workflow_for(document_type: DocumentType | str) -> Workflow:
    return _WORKFLOWS[DocumentType(document_type)]


def _in_lock_order(quantities: dict[tuple[UUID, UUID], int]) -> list[tuple[tuple[UUID, UUID], int]]:
    """Items sorted by (product, location) so concurrent documents lock rows in the same order."""
    return sorted(quantities.items(), key=lambda item: (str(item[0][0]), str(item[0][1])))


class DocumentService(BaseService):
    """
    Document lifecycle.

    Contract:
        Every public method runs in one transaction and returns a frozen
        DocumentInfo (or None for delete).

    Non-goals:
        - Does NOT authorize the actor.  Role and warehouse-membership
          checks happen before these methods are called.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        engine: LedgerEngine,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        references: ReferenceGenerator | None = None,
    ):
        super().__init__(uow, clock)
        self._engine = engine
        self._references = references or ReferenceGenerator(uow, self._clock, settings)

    # -------------------------------------------------------------------------
    # Drafting
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
        """Create a DRAFT document with a freshly allocated reference number."""
        document_type = DocumentType(document_type)

        with self._uow.transaction() as session:
            warehouse = session.get(Warehouse, warehouse_id)
            if warehouse is None:
                raise WarehouseNotFoundError(warehouse_id)
            if not warehouse.is_active:
                raise WarehouseInactiveError(warehouse_id)

            self._check_line_specs(session, warehouse_id, lines)

            document = Document(
                document_type=document_type.value,
                reference_number=self._references.next_reference(document_type),
                counterparty_id=counterparty_id,
                warehouse_id=warehouse_id,
                status=DocumentStatus.DRAFT.value,
                notes=notes,
                created_by_id=actor_id,
            )
            document.lines = self._build_lines(lines, actor_id)
            session.add(document)
            session.flush()

            logger.info(
                "document_created",
                extra={
                    "document_id": str(document.id),
                    "document_type": document_type.value,
                    "reference": document.reference_number,
                    "warehouse_id": str(warehouse_id),
                    "line_count": len(document.lines),
                },
            )
            return DocumentInfo.from_model(document)

    def create_receipt(
        self,
        warehouse_id: UUID,
        actor_id: UUID,
        lines: Sequence[DocumentLineSpec] = (),
        supplier_id: UUID | None = None,
        notes: str | None = None,
    ) -> DocumentInfo:
        return self.create_document(
            DocumentType.RECEIPT,
            warehouse_id,
            actor_id,
            lines,
            counterparty_id=supplier_id,
            notes=notes,
        )

    def create_delivery(
        self,
        warehouse_id: UUID,
        actor_id: UUID,
        lines: Sequence[DocumentLineSpec] = (),
        customer_id: UUID | None = None,
        notes: str | None = None,
    ) -> DocumentInfo:
        return self.create_document(
            DocumentType.DELIVERY,
            warehouse_id,
            actor_id,
            lines,
            counterparty_id=customer_id,
            notes=notes,
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
        """
        Edit a DRAFT document.

        Arguments left as None are not changed.  ``lines``, when given,
        replaces every existing line.  ``clear_counterparty=True`` removes
        the counterparty; it cannot be combined with ``counterparty_id``.
        """
        if clear_counterparty and counterparty_id is not None:
            raise ValueError("Pass counterparty_id or clear_counterparty, not both")

        with self._uow.transaction() as session:
            document = self._lock_document(session, document_id)
            self._require_draft(document, "update")

            if lines is not None:
                self._check_line_specs(session, document.warehouse_id, lines)
                document.lines = self._build_lines(lines, actor_id)
            if notes is not None:
                document.notes = notes
            if clear_counterparty:
                document.counterparty_id = None
            elif counterparty_id is not None:
                document.counterparty_id = counterparty_id
            document.updated_by_id = actor_id
            session.flush()

            logger.info(
                "document_updated",
                extra={
                    "document_id": str(document.id),
                    "reference": document.reference_number,
                    "lines_replaced": lines is not None,
                },
            )
            return DocumentInfo.from_model(document)

    def delete_document(self, document_id: UUID, actor_id: UUID) -> None:
        """Delete a DRAFT document and its lines."""
        with self._uow.transaction() as session:
            document = self._lock_document(session, document_id)
            self._require_draft(document, "delete")
            reference = document.reference_number
            session.delete(document)
            session.flush()

            logger.info(
                "document_deleted",
                extra={
                    "document_id": str(document_id),
                    "reference": reference,
                    "actor_id": str(actor_id),
                },
            )

    # -------------------------------------------------------------------------
    # Workflow
    # -------------------------------------------------------------------------

    def transition_document(
        self,
        document_id: UUID,
        target_status: DocumentStatus | str,
        actor_id: UUID,
    ) -> DocumentInfo:
        """
        Move a document to ``target_status``.

        DRAFT -> READY validates lines (and stock, for deliveries) without
        moving anything.  READY -> DONE applies every line to the ledger,
        records the fulfilled quantities and marks the document DONE.
        """
        target = DocumentStatus(target_status)

        with LogContext.bind(document_id=str(document_id), actor_id=str(actor_id)):
            with self._uow.transaction() as session:
                document = self._lock_document(session, document_id)
                document_type = DocumentType(document.document_type)
                current = DocumentStatus(document.status)

                transition = resolve_transition(
                    workflow_for(document_type), document.id, current, target
                )
                lines = [DocumentLineInfo.from_model(line) for line in document.lines]

                if target == DocumentStatus.READY:
                    self._validate_ready(session, document, document_type, lines)

                moved = 0
                if transition.moves_stock:
                    moved = self._complete(session, document, document_type, lines, actor_id)

                document.status = target.value
                document.updated_by_id = actor_id
                session.add(
                    DocumentTransition(
                        document_id=document.id,
                        from_status=current.value,
                        to_status=target.value,
                        actor_id=actor_id,
                        occurred_at=self._clock.now(),
                        created_by_id=actor_id,
                    )
                )
                session.flush()

                logger.info(
                    "document_transitioned",
                    extra={
                        "reference": document.reference_number,
                        "document_type": document_type.value,
                        "from_status": current.value,
                        "to_status": target.value,
                        "action": transition.action,
                        "movements_written": moved,
                    },
                )
                return DocumentInfo.from_model(document)

    def _validate_ready(
        self,
        session: Session,
        document: Document,
        document_type: DocumentType,
        lines: list[DocumentLineInfo],
    ) -> None:
        check_lines_complete(document.id, lines)
        for line in lines:
            self._engine.get_location(session, line.location_id, document.warehouse_id)

        if document_type != DocumentType.DELIVERY:
            return

        for (product_id, location_id), needed in _in_lock_order(required_quantities(lines)):
            level = self._engine.lock_stock_level(
                session,
                product_id,
                document.warehouse_id,
                location_id,
                document.created_by_id,
                create=False,
            )
            available = level.quantity if level is not None else 0
            if available < needed:
                logger.warning(
                    "insufficient_stock_rejected",
                    extra={
                        "product_id": str(product_id),
                        "location_id": str(location_id),
                        "current_quantity": available,
                        "requested_quantity": needed,
                    },
                )
                raise InsufficientStockError(
                    current_quantity=available,
                    requested_quantity=needed,
                    product_id=product_id,
                    location_id=location_id,
                )

    def _complete(
        self,
        session: Session,
        document: Document,
        document_type: DocumentType,
        lines: list[DocumentLineInfo],
        actor_id: UUID,
    ) -> int:
        movement_type = document_type.movement_type
        sign = movement_type.expected_sign

        for (product_id, location_id), _ in _in_lock_order(required_quantities(lines)):
            self._engine.lock_stock_level(
                session,
                product_id,
                document.warehouse_id,
                location_id,
                actor_id,
                create=sign > 0,
            )

        for line in document.lines:
            quantity = intended_quantity(line.quantity_ordered, line.quantity_fulfilled)
            self._engine.apply_stock_change(
                line.product_id,
                document.warehouse_id,
                line.location_id,
                sign * quantity,
                movement_type,
                actor_id,
                reference=document.reference_number,
            )
            line.quantity_fulfilled = quantity
            line.updated_by_id = actor_id
        return len(document.lines)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _lock_document(session: Session, document_id: UUID) -> Document:
        document = session.execute(
            select(Document)
            .where(Document.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    @staticmethod
    def _require_draft(document: Document, operation: str) -> None:
        if not document.is_draft:
            raise DocumentNotEditableError(document.id, document.status, operation)

    def _check_line_specs(
        self,
        session: Session,
        warehouse_id: UUID,
        lines: Sequence[DocumentLineSpec],
    ) -> None:
        for spec in lines:
            if spec.quantity_ordered <= 0:
                raise InvalidQuantityError(
                    spec.quantity_ordered, "ordered quantity must be positive"
                )
            if spec.quantity_fulfilled is not None and spec.quantity_fulfilled < 0:
                raise InvalidQuantityError(
                    spec.quantity_fulfilled, "fulfilled quantity cannot be negative"
                )
            self._engine.get_product(session, spec.product_id, warehouse_id)
            if spec.location_id is not None:
                self._engine.get_location(session, spec.location_id, warehouse_id)

    @staticmethod
    def _build_lines(
        lines: Sequence[DocumentLineSpec],
        actor_id: UUID,
    ) -> list[DocumentLine]:
        return [
            DocumentLine(
                line_number=number,
                product_id=spec.product_id,
                location_id=spec.location_id,
                quantity_ordered=spec.quantity_ordered,
                quantity_fulfilled=spec.quantity_fulfilled,
                created_by_id=actor_id,
            )
            for number, spec in enumerate(lines, start=1)
        ]
