"""
Module: stock_ledger.models.document
Responsibility: ORM persistence for inbound (receipt) and outbound (delivery)
    documents, their lines, and the append-only record of every status change.
Architecture position: Ledger > Models.  May import from db/base.py only.

Invariants enforced:
    - reference_number is unique (uq_document_reference).
    - status only advances DRAFT -> READY -> DONE (DocumentService, with the
      transition table in domain/workflow.py).
    - A DONE document and its lines are immutable (db/immutability.py).
    - DocumentTransition rows are never updated or deleted.

Failure modes:
    - IntegrityError on a duplicate reference_number.
    - ImmutabilityViolationError when a DONE document or its lines are
      changed through the ORM.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_ledger.db.base import TrackedBase
from stock_ledger.domain.values import DocumentStatus, DocumentType

__all__ = [
    "Document",
    "DocumentLine",
    "DocumentStatus",
    "DocumentTransition",
    "DocumentType",
]


class Document(TrackedBase):
    """
    Receipt or delivery header.

    Contract:
        Created in DRAFT.  Header fields and lines may change only while
        DRAFT.  The READY -> DONE transition is the only event that writes
        stock movements.

    Guarantees:
        - reference_number matches <PREFIX>-<YYYYMMDD>-<NNNN>.
        - lines are deleted with the document (only possible in DRAFT).
    """

    __tablename__ = "documents"

    __table_args__ = (
        UniqueConstraint("reference_number", name="uq_document_reference"),
        Index("idx_document_warehouse_status", "warehouse_id", "status"),
        Index("idx_document_type", "document_type"),
    )

    document_type: Mapped[str] = mapped_column(String(20), nullable=False)

    reference_number: Mapped[str] = mapped_column(String(50), nullable=False)

    # Supplier for receipts, customer for deliveries
    counterparty_id: Mapped[UUID | None] = mapped_column(nullable=True)

    warehouse_id: Mapped[UUID] = mapped_column(
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=DocumentStatus.DRAFT.value,
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["DocumentLine"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentLine.line_number",
    )

    def __repr__(self) -> str:
        return f"<Document {self.reference_number}: {self.status}>"

    @property
    def is_draft(self) -> bool:
        return self.status == DocumentStatus.DRAFT.value

    @property
    def is_done(self) -> bool:
        return self.status == DocumentStatus.DONE.value


class DocumentLine(TrackedBase):
    """
    One product line of a document.

    Guarantees:
        - quantity_ordered > 0.
        - quantity_fulfilled is None until set by the caller or by the
          READY -> DONE transition.
    """

    __tablename__ = "document_lines"

    __table_args__ = (
        CheckConstraint("quantity_ordered > 0", name="chk_document_line_ordered"),
        CheckConstraint(
            "quantity_fulfilled IS NULL OR quantity_fulfilled >= 0",
            name="chk_document_line_fulfilled",
        ),
        Index("idx_document_line_document", "document_id"),
    )

    document_id: Mapped[UUID] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id"),
        nullable=False,
    )

    # May be left empty while DRAFT; required to reach READY
    location_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("locations.id"),
        nullable=True,
    )

    quantity_ordered: Mapped[int] = mapped_column(nullable=False)

    quantity_fulfilled: Mapped[int | None] = mapped_column(nullable=True)

    document: Mapped[Document] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<DocumentLine {self.line_number}: {self.quantity_ordered}>"


class DocumentTransition(TrackedBase):
    """
    Append-only record of an accepted status change.

    Contract:
        Written by DocumentService in the same transaction as the status
        change.  Never updated or deleted.
    """

    __tablename__ = "document_transitions"

    __table_args__ = (
        Index("idx_document_transition_document", "document_id", "occurred_at"),
    )

    document_id: Mapped[UUID] = mapped_column(
        ForeignKey("documents.id"),
        nullable=False,
    )

    from_status: Mapped[str] = mapped_column(String(20), nullable=False)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<DocumentTransition {self.from_status} -> {self.to_status}>"
