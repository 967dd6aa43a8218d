"""
DTOs -- immutable data transfer objects for the ledger.

Responsibility:
    Defines what crosses the package boundary: inputs for document lines and
    query filters, and frozen snapshots of levels, movements, documents and
    report rows.  Callers never receive live ORM instances.

Architecture position:
    Ledger > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked only from services and selectors.

Failure modes:
    - ValueError from filter DTOs with a non-positive limit or negative
      offset.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import UUID

from stock_ledger.domain.values import DocumentStatus, DocumentType, MovementType

if TYPE_CHECKING:
    from stock_ledger.models.document import (
        Document as DocumentModel,
        DocumentLine as DocumentLineModel,
        DocumentTransition as DocumentTransitionModel,
    )
    from stock_ledger.models.reference import Location as LocationModel
    from stock_ledger.models.reference import Product as ProductModel
    from stock_ledger.models.stock import (
        StockLevel as StockLevelModel,
        StockMovement as StockMovementModel,
    )


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# Stock
# =============================================================================


@dataclass(frozen=True)
class LocationInfo:
    """Snapshot of a location."""

    id: UUID
    warehouse_id: UUID
    code: str
    name: str
    is_active: bool

    @classmethod
    def from_model(cls, model: LocationModel) -> LocationInfo:
        return cls(
            id=model.id,
            warehouse_id=model.warehouse_id,
            code=model.code,
            name=model.name,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class StockLevelInfo:
    """
    Snapshot of one stock level.

    product_sku, product_name and location_code are filled in by the stock
    selector for listings and left as None on ledger results.
    """

    id: UUID
    product_id: UUID
    warehouse_id: UUID
    location_id: UUID
    quantity: int
    updated_at: datetime | None = None
    product_sku: str | None = None
    product_name: str | None = None
    location_code: str | None = None

    @classmethod
    def from_model(
        cls,
        model: StockLevelModel,
        product: ProductModel | None = None,
        location: LocationModel | None = None,
    ) -> StockLevelInfo:
        return cls(
            id=model.id,
            product_id=model.product_id,
            warehouse_id=model.warehouse_id,
            location_id=model.location_id,
            quantity=model.quantity,
            updated_at=as_utc(model.updated_at),
            product_sku=product.sku if product is not None else None,
            product_name=product.name if product is not None else None,
            location_code=location.code if location is not None else None,
        )


@dataclass(frozen=True)
class MovementRecord:
    """An immutable stock movement as read from the ledger."""

    id: UUID
    product_id: UUID
    warehouse_id: UUID
    location_id: UUID
    actor_id: UUID
    movement_type: MovementType
    quantity_delta: int
    reference: str | None
    notes: str | None
    occurred_at: datetime

    @property
    def magnitude(self) -> int:
        return abs(self.quantity_delta)

    @classmethod
    def from_model(cls, model: StockMovementModel) -> MovementRecord:
        return cls(
            id=model.id,
            product_id=model.product_id,
            warehouse_id=model.warehouse_id,
            location_id=model.location_id,
            actor_id=model.actor_id,
            movement_type=MovementType(model.movement_type),
            quantity_delta=model.quantity_delta,
            reference=model.reference,
            notes=model.notes,
            occurred_at=as_utc(model.occurred_at),
        )


@dataclass(frozen=True)
class StockChangeResult:
    """Outcome of one ledger engine call: the new level and its movement."""

    stock_level: StockLevelInfo
    movement: MovementRecord

    @property
    def quantity(self) -> int:
        return self.stock_level.quantity

    @property
    def previous_quantity(self) -> int:
        return self.stock_level.quantity - self.movement.quantity_delta


@dataclass(frozen=True)
class TransferResult:
    """Both legs of a completed transfer."""

    outbound: StockChangeResult
    inbound: StockChangeResult
    from_location: LocationInfo
    to_location: LocationInfo

    @property
    def quantity(self) -> int:
        return self.inbound.movement.quantity_delta


# =============================================================================
# Documents
# =============================================================================


@dataclass(frozen=True)
class DocumentLineSpec:
    """
    Caller input for one document line.

    location_id may be None while the document is a draft.
    """

    product_id: UUID
    quantity_ordered: int
    location_id: UUID | None = None
    quantity_fulfilled: int | None = None


def intended_quantity(quantity_ordered: int, quantity_fulfilled: int | None) -> int:
    """Quantity a line moves: fulfilled when set and non-zero, else ordered."""
    return quantity_fulfilled or quantity_ordered


@dataclass(frozen=True)
class DocumentLineInfo:
    """Snapshot of a document line."""

    id: UUID
    line_number: int
    product_id: UUID
    location_id: UUID | None
    quantity_ordered: int
    quantity_fulfilled: int | None

    @property
    def intended_quantity(self) -> int:
        return intended_quantity(self.quantity_ordered, self.quantity_fulfilled)

    @classmethod
    def from_model(cls, model: DocumentLineModel) -> DocumentLineInfo:
        return cls(
            id=model.id,
            line_number=model.line_number,
            product_id=model.product_id,
            location_id=model.location_id,
            quantity_ordered=model.quantity_ordered,
            quantity_fulfilled=model.quantity_fulfilled,
        )


@dataclass(frozen=True)
class DocumentInfo:
    """Snapshot of a receipt or delivery with its lines."""

    id: UUID
    document_type: DocumentType
    reference_number: str
    counterparty_id: UUID | None
    warehouse_id: UUID
    status: DocumentStatus
    notes: str | None
    lines: tuple[DocumentLineInfo, ...]
    created_by_id: UUID
    updated_by_id: UUID | None
    created_at: datetime | None
    updated_at: datetime | None

    @property
    def is_draft(self) -> bool:
        return self.status == DocumentStatus.DRAFT

    @property
    def is_done(self) -> bool:
        return self.status == DocumentStatus.DONE

    @classmethod
    def from_model(cls, model: DocumentModel) -> DocumentInfo:
        return cls(
            id=model.id,
            document_type=DocumentType(model.document_type),
            reference_number=model.reference_number,
            counterparty_id=model.counterparty_id,
            warehouse_id=model.warehouse_id,
            status=DocumentStatus(model.status),
            notes=model.notes,
            lines=tuple(DocumentLineInfo.from_model(line) for line in model.lines),
            created_by_id=model.created_by_id,
            updated_by_id=model.updated_by_id,
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )


@dataclass(frozen=True)
class TransitionRecord:
    """One accepted document status change."""

    id: UUID
    document_id: UUID
    from_status: DocumentStatus
    to_status: DocumentStatus
    actor_id: UUID
    occurred_at: datetime

    @classmethod
    def from_model(cls, model: DocumentTransitionModel) -> TransitionRecord:
        return cls(
            id=model.id,
            document_id=model.document_id,
            from_status=DocumentStatus(model.from_status),
            to_status=DocumentStatus(model.to_status),
            actor_id=model.actor_id,
            occurred_at=as_utc(model.occurred_at),
        )


# =============================================================================
# Query inputs and pages
# =============================================================================


def _check_paging(limit: int | None, offset: int) -> None:
    if limit is not None and limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    if offset < 0:
        raise ValueError(f"offset cannot be negative, got {offset}")


@dataclass(frozen=True)
class MovementFilter:
    """
    Movement history query.

    All filters are optional and combine with AND.  ``start`` is inclusive,
    ``end`` exclusive.  A limit of None means the configured page size.
    """

    warehouse_id: UUID | None = None
    product_id: UUID | None = None
    location_id: UUID | None = None
    actor_id: UUID | None = None
    movement_type: MovementType | None = None
    reference: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    limit: int | None = None
    offset: int = 0

    def __post_init__(self) -> None:
        _check_paging(self.limit, self.offset)


@dataclass(frozen=True)
class MovementPage:
    """One page of movements, newest first."""

    movements: tuple[MovementRecord, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.movements) < self.total


@dataclass(frozen=True)
class DocumentFilter:
    """Document listing query.  ``created_from`` inclusive, ``created_to`` exclusive."""

    document_type: DocumentType | None = None
    warehouse_id: UUID | None = None
    counterparty_id: UUID | None = None
    status: DocumentStatus | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    limit: int | None = None
    offset: int = 0

    def __post_init__(self) -> None:
        _check_paging(self.limit, self.offset)


# =============================================================================
# Reports
# =============================================================================


@dataclass(frozen=True)
class LocationQuantity:
    """Quantity of one product held at one location."""

    location_id: UUID
    location_code: str
    quantity: int


@dataclass(frozen=True)
class LowStockAlert:
    """A product at or below its reorder level."""

    product_id: UUID
    sku: str
    name: str
    reorder_level: int
    total_quantity: int
    locations: tuple[LocationQuantity, ...] = ()

    @property
    def deficit(self) -> int:
        """Units needed to get back to the reorder level."""
        return self.reorder_level - self.total_quantity


@dataclass(frozen=True)
class WarehouseStockSummary:
    """Headline numbers for one warehouse."""

    warehouse_id: UUID
    active_product_count: int
    active_location_count: int
    locations_with_stock: int
    total_quantity: int
    recent_movements: tuple[MovementRecord, ...] = ()


@dataclass(frozen=True)
class MovementTypeTotals:
    movement_type: MovementType
    movement_count: int
    quantity_total: int


@dataclass(frozen=True)
class MovementSummary:
    """Movement counts and signed quantity totals per type."""

    warehouse_id: UUID
    start: datetime | None
    end: datetime | None
    totals: tuple[MovementTypeTotals, ...]

    def for_type(self, movement_type: MovementType) -> MovementTypeTotals:
        for row in self.totals:
            if row.movement_type == movement_type:
                return row
        return MovementTypeTotals(movement_type, 0, 0)

    @property
    def net_quantity(self) -> int:
        return sum(row.quantity_total for row in self.totals)


@dataclass(frozen=True)
class ReconciliationMismatch:
    """A key whose stored level disagrees with the sum of its movements."""

    product_id: UUID
    warehouse_id: UUID
    location_id: UUID
    level_quantity: int
    movement_total: int

    @property
    def difference(self) -> int:
        return self.level_quantity - self.movement_total
