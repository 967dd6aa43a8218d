"""
Module: stock_ledger.selectors.movement_selector
Responsibility: Read-only access to the movement ledger: filtered, paged
    history and per-type totals.
Architecture position: Ledger > Selectors.  May import from models/ and
    selectors/base.py.  MUST NOT import from services/ or outer layers.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select

from stock_ledger.domain.dtos import (
    MovementFilter,
    MovementPage,
    MovementRecord,
    MovementSummary,
    MovementTypeTotals,
)
from stock_ledger.domain.values import MovementType
from stock_ledger.models.stock import StockMovement
from stock_ledger.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 100


class MovementSelector(BaseSelector):
    """Queries over stock movements."""

    def query_movements(
        self,
        filters: MovementFilter | None = None,
        default_limit: int = DEFAULT_PAGE_SIZE,
    ) -> MovementPage:
        """
        One page of movements matching ``filters``, newest first.

        ``total`` counts every matching movement, not just this page.
        """
        filters = filters or MovementFilter()
        limit = filters.limit if filters.limit is not None else default_limit

        base = self._apply_filters(select(StockMovement), filters)
        total = self.session.execute(
            select(func.count()).select_from(base.subquery())
        ).scalar_one()

        rows = self.session.execute(
            base.order_by(StockMovement.occurred_at.desc(), StockMovement.id)
            .limit(limit)
            .offset(filters.offset)
        ).scalars()

        return MovementPage(
            movements=tuple(MovementRecord.from_model(m) for m in rows),
            total=total,
            limit=limit,
            offset=filters.offset,
        )

    def get_movement(self, movement_id: UUID) -> MovementRecord | None:
        movement = self.session.get(StockMovement, movement_id)
        return MovementRecord.from_model(movement) if movement is not None else None

    def movements_for_reference(self, reference: str) -> list[MovementRecord]:
        """All movements carrying a reference, oldest first."""
        rows = self.session.execute(
            select(StockMovement)
            .where(StockMovement.reference == reference)
            .order_by(StockMovement.occurred_at, StockMovement.id)
        ).scalars()
        return [MovementRecord.from_model(m) for m in rows]

    def movement_summary(
        self,
        warehouse_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> MovementSummary:
        """Count and signed quantity total per movement type in [start, end)."""
        stmt = (
            select(
                StockMovement.movement_type,
                func.count(),
                func.coalesce(func.sum(StockMovement.quantity_delta), 0),
            )
            .where(StockMovement.warehouse_id == warehouse_id)
            .group_by(StockMovement.movement_type)
        )
        if start is not None:
            stmt = stmt.where(StockMovement.occurred_at >= start)
        if end is not None:
            stmt = stmt.where(StockMovement.occurred_at < end)

        counts = {
            MovementType(movement_type): (count, int(total))
            for movement_type, count, total in self.session.execute(stmt).all()
        }
        totals = tuple(
            MovementTypeTotals(
                movement_type=movement_type,
                movement_count=counts[movement_type][0],
                quantity_total=counts[movement_type][1],
            )
            for movement_type in MovementType
            if movement_type in counts
        )
        return MovementSummary(
            warehouse_id=warehouse_id,
            start=start,
            end=end,
            totals=totals,
        )

    @staticmethod
    def _apply_filters(stmt: Select, filters: MovementFilter) -> Select:
        if filters.warehouse_id is not None:
            stmt = stmt.where(StockMovement.warehouse_id == filters.warehouse_id)
        if filters.product_id is not None:
            stmt = stmt.where(StockMovement.product_id == filters.product_id)
        if filters.location_id is not None:
            stmt = stmt.where(StockMovement.location_id == filters.location_id)
        if filters.actor_id is not None:
            stmt = stmt.where(StockMovement.actor_id == filters.actor_id)
        if filters.movement_type is not None:
            stmt = stmt.where(
                StockMovement.movement_type == MovementType(filters.movement_type).value
            )
        if filters.reference is not None:
            stmt = stmt.where(StockMovement.reference == filters.reference)
        if filters.start is not None:
            stmt = stmt.where(StockMovement.occurred_at >= filters.start)
        if filters.end is not None:
            stmt = stmt.where(StockMovement.occurred_at < filters.end)
        return stmt
