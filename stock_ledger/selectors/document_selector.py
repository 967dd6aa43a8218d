"""
Module: stock_ledger.selectors.document_selector
Responsibility: Read-only access to receipts, deliveries and their status
    history.
Architecture position: Ledger > Selectors.  May import from models/ and
    selectors/base.py.  MUST NOT import from services/ or outer layers.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from stock_ledger.domain.dtos import DocumentFilter, DocumentInfo, TransitionRecord
from stock_ledger.domain.values import DocumentStatus, DocumentType
from stock_ledger.models.document import Document, DocumentTransition
from stock_ledger.selectors.base import BaseSelector

_STATUS_ORDER = {status: rank for rank, status in enumerate(DocumentStatus)}


class DocumentSelector(BaseSelector):
    """Queries over documents."""

    def get_document(self, document_id: UUID) -> DocumentInfo | None:
        document = self.session.get(Document, document_id)
        return DocumentInfo.from_model(document) if document is not None else None

    def get_by_reference(self, reference_number: str) -> DocumentInfo | None:
        document = self.session.execute(
            select(Document).where(Document.reference_number == reference_number)
        ).scalar_one_or_none()
        return DocumentInfo.from_model(document) if document is not None else None

    def list_documents(
        self,
        filters: DocumentFilter | None = None,
        default_limit: int = 100,
    ) -> list[DocumentInfo]:
        """Documents matching ``filters``, newest first."""
        filters = filters or DocumentFilter()
        stmt = select(Document).options(selectinload(Document.lines))

        if filters.document_type is not None:
            stmt = stmt.where(
                Document.document_type == DocumentType(filters.document_type).value
            )
        if filters.warehouse_id is not None:
            stmt = stmt.where(Document.warehouse_id == filters.warehouse_id)
        if filters.counterparty_id is not None:
            stmt = stmt.where(Document.counterparty_id == filters.counterparty_id)
        if filters.status is not None:
            stmt = stmt.where(Document.status == DocumentStatus(filters.status).value)
        if filters.created_from is not None:
            stmt = stmt.where(Document.created_at >= filters.created_from)
        if filters.created_to is not None:
            stmt = stmt.where(Document.created_at < filters.created_to)

        limit = filters.limit if filters.limit is not None else default_limit
        stmt = (
            stmt.order_by(Document.created_at.desc(), Document.reference_number.desc())
            .limit(limit)
            .offset(filters.offset)
        )
        return [DocumentInfo.from_model(d) for d in self.session.execute(stmt).scalars()]

    def history(self, document_id: UUID) -> list[TransitionRecord]:
        """Accepted status changes of a document, in the order they happened."""
        rows = self.session.execute(
            select(DocumentTransition).where(DocumentTransition.document_id == document_id)
        ).scalars()
        records = [TransitionRecord.from_model(row) for row in rows]
        records.sort(key=lambda r: (r.occurred_at, _STATUS_ORDER[r.to_status]))
        return records
