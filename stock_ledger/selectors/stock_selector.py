"""
Module: stock_ledger.selectors.stock_selector
Responsibility: Read-only stock queries: level listings, single-key lookups,
    low-stock alerts, warehouse summaries, and ledger reconciliation.
Architecture position: Ledger > Selectors.  May import from models/ and
    selectors/base.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Reconciliation: reconcile() compares every stored level with the signed
      sum of the movements on its key and reports each disagreement.  An
      empty result means the ledger explains every quantity.

Failure modes:
    - Unknown warehouse IDs are not an error; queries return empty results
      and zero totals.
"""

from uuid import UUID

from sqlalchemy import func, select

from stock_ledger.domain.dtos import (
    LocationQuantity,
    LowStockAlert,
    MovementRecord,
    ReconciliationMismatch,
    StockLevelInfo,
    WarehouseStockSummary,
)
from stock_ledger.models.reference import Location, Product
from stock_ledger.models.stock import StockLevel, StockMovement
from stock_ledger.selectors.base import BaseSelector

_Key = tuple[UUID, UUID, UUID]


class StockSelector(BaseSelector):
    """Queries over stock levels."""

    def query_stock_levels(
        self,
        warehouse_id: UUID,
        product_id: UUID | None = None,
        location_id: UUID | None = None,
        include_zero: bool = False,
    ) -> list[StockLevelInfo]:
        """
        Stock levels in a warehouse, ordered by product name then location code.

        Zero quantities are left out unless ``include_zero`` is True.
        """
        stmt = (
            select(StockLevel, Product, Location)
            .join(Product, Product.id == StockLevel.product_id)
            .join(Location, Location.id == StockLevel.location_id)
            .where(StockLevel.warehouse_id == warehouse_id)
        )
        if product_id is not None:
            stmt = stmt.where(StockLevel.product_id == product_id)
        if location_id is not None:
            stmt = stmt.where(StockLevel.location_id == location_id)
        if not include_zero:
            stmt = stmt.where(StockLevel.quantity > 0)
        stmt = stmt.order_by(Product.name, Location.code)

        return [
            StockLevelInfo.from_model(level, product, location)
            for level, product, location in self.session.execute(stmt).all()
        ]

    def get_stock_level(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        location_id: UUID,
    ) -> StockLevelInfo | None:
        """The level at one key, or None if nothing has moved there yet."""
        level = self.session.execute(
            select(StockLevel).where(
                StockLevel.product_id == product_id,
                StockLevel.warehouse_id == warehouse_id,
                StockLevel.location_id == location_id,
            )
        ).scalar_one_or_none()
        return StockLevelInfo.from_model(level) if level is not None else None

    def low_stock_alerts(self, warehouse_id: UUID) -> list[LowStockAlert]:
        """
        Active products with a reorder level whose total stock has fallen to
        or below it.  Products with no stock at all are included.
        """
        products = self.session.execute(
            select(Product)
            .where(
                Product.warehouse_id == warehouse_id,
                Product.is_active.is_(True),
                Product.reorder_level > 0,
            )
            .order_by(Product.name)
        ).scalars().all()
        if not products:
            return []

        rows = self.session.execute(
            select(StockLevel.product_id, Location.id, Location.code, StockLevel.quantity)
            .join(Location, Location.id == StockLevel.location_id)
            .where(
                StockLevel.warehouse_id == warehouse_id,
                StockLevel.product_id.in_([p.id for p in products]),
                StockLevel.quantity > 0,
            )
            .order_by(Location.code)
        ).all()

        by_product: dict[UUID, list[LocationQuantity]] = {}
        for product_id, loc_id, loc_code, quantity in rows:
            by_product.setdefault(product_id, []).append(
                LocationQuantity(location_id=loc_id, location_code=loc_code, quantity=quantity)
            )

        alerts = []
        for product in products:
            locations = by_product.get(product.id, [])
            total = sum(entry.quantity for entry in locations)
            if total <= product.reorder_level:
                alerts.append(
                    LowStockAlert(
                        product_id=product.id,
                        sku=product.sku,
                        name=product.name,
                        reorder_level=product.reorder_level,
                        total_quantity=total,
                        locations=tuple(locations),
                    )
                )
        return alerts

    def warehouse_summary(
        self,
        warehouse_id: UUID,
        recent_limit: int = 10,
    ) -> WarehouseStockSummary:
        active_products = self.session.execute(
            select(func.count())
            .select_from(Product)
            .where(Product.warehouse_id == warehouse_id, Product.is_active.is_(True))
        ).scalar_one()

        active_locations = self.session.execute(
            select(func.count())
            .select_from(Location)
            .where(Location.warehouse_id == warehouse_id, Location.is_active.is_(True))
        ).scalar_one()

        locations_with_stock, total_quantity = self.session.execute(
            select(
                func.count(func.distinct(StockLevel.location_id)),
                func.coalesce(func.sum(StockLevel.quantity), 0),
            ).where(StockLevel.warehouse_id == warehouse_id, StockLevel.quantity > 0)
        ).one()

        recent: list[MovementRecord] = []
        if recent_limit > 0:
            recent = [
                MovementRecord.from_model(m)
                for m in self.session.execute(
                    select(StockMovement)
                    .where(StockMovement.warehouse_id == warehouse_id)
                    .order_by(StockMovement.occurred_at.desc())
                    .limit(recent_limit)
                ).scalars()
            ]

        return WarehouseStockSummary(
            warehouse_id=warehouse_id,
            active_product_count=active_products,
            active_location_count=active_locations,
            locations_with_stock=locations_with_stock,
            total_quantity=int(total_quantity),
            recent_movements=tuple(recent),
        )

    def reconcile(self, warehouse_id: UUID | None = None) -> list[ReconciliationMismatch]:
        """
        Every key where the stored quantity differs from the movement sum.

        A key with movements but no level row, or a non-zero level with no
        movements, is reported as well.
        """
        level_stmt = select(
            StockLevel.product_id,
            StockLevel.warehouse_id,
            StockLevel.location_id,
            StockLevel.quantity,
        )
        movement_stmt = select(
            StockMovement.product_id,
            StockMovement.warehouse_id,
            StockMovement.location_id,
            func.sum(StockMovement.quantity_delta),
        ).group_by(
            StockMovement.product_id,
            StockMovement.warehouse_id,
            StockMovement.location_id,
        )
        if warehouse_id is not None:
            level_stmt = level_stmt.where(StockLevel.warehouse_id == warehouse_id)
            movement_stmt = movement_stmt.where(StockMovement.warehouse_id == warehouse_id)

        levels: dict[_Key, int] = {
            (p, w, loc): qty for p, w, loc, qty in self.session.execute(level_stmt).all()
        }
        sums: dict[_Key, int] = {
            (p, w, loc): int(total) for p, w, loc, total in self.session.execute(movement_stmt).all()
        }

        mismatches = []
        for key in sorted(set(levels) | set(sums), key=lambda k: tuple(str(part) for part in k)):
            level_quantity = levels.get(key, 0)
            movement_total = sums.get(key, 0)
            if level_quantity != movement_total:
                product_id, wh_id, location_id = key
                mismatches.append(
                    ReconciliationMismatch(
                        product_id=product_id,
                        warehouse_id=wh_id,
                        location_id=location_id,
                        level_quantity=level_quantity,
                        movement_total=movement_total,
                    )
                )
        return mismatches
