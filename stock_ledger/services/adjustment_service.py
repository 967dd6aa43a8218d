"""
AdjustmentService -- set a stock level to a counted quantity.

Responsibility:
    Turns "there are N on the shelf" into the signed ADJUSTMENT movement
    that gets the ledger there.

Architecture position:
    Ledger > Services.  Depends on LedgerEngine.

Invariants enforced:
    - The delta is computed from the quantity read under the row lock in the
      same transaction that applies it, so a concurrent change cannot slip
      between the read and the write.
    - A zero delta is refused (NoOpAdjustmentError); no empty movement is
      written.

Failure modes:
    - InvalidQuantityError for a negative target.
    - ProductNotFoundError / ProductInactiveError.
    - LocationNotFoundError / LocationInactiveError / WarehouseMismatchError.
    - NoOpAdjustmentError when the target equals the current quantity.
"""

from uuid import UUID

from stock_ledger.domain.clock import Clock
from stock_ledger.domain.dtos import StockChangeResult
from stock_ledger.domain.values import MovementType
from stock_ledger.db.unit_of_work import UnitOfWork
from stock_ledger.exceptions import InvalidQuantityError, NoOpAdjustmentError
from stock_ledger.logging_config import get_logger
from stock_ledger.services.base import BaseService
from stock_ledger.services.ledger_engine import LedgerEngine

logger = get_logger("services.adjustment")


class AdjustmentService(BaseService):
    """Inventory count adjustments."""

    def __init__(
        self,
        uow: UnitOfWork,
        engine: LedgerEngine,
        clock: Clock | None = None,
    ):
        super().__init__(uow, clock)
        self._engine = engine

    def adjust(
        self,
        product_id: UUID,
        location_id: UUID,
        target_quantity: int,
        actor_id: UUID,
        reason: str | None = None,
        notes: str | None = None,
    ) -> StockChangeResult:
        """
        Bring the level at (product, location) to ``target_quantity``.

        The warehouse comes from the product.  ``reason`` is recorded as the
        movement reference.  Without ``notes`` the movement is annotated
        "Adjusted from <current> to <target>".
        """
        if target_quantity < 0:
            raise InvalidQuantityError(target_quantity, "target quantity cannot be negative")

        with self._uow.transaction() as session:
            product = self._engine.get_product(session, product_id)
            warehouse_id = product.warehouse_id
            self._engine.get_location(session, location_id, warehouse_id)

            level = self._engine.lock_stock_level(
                session,
                product_id,
                warehouse_id,
                location_id,
                actor_id,
                create=target_quantity > 0,
            )
            current = level.quantity if level is not None else 0
            delta = target_quantity - current
            if delta == 0:
                raise NoOpAdjustmentError(product_id, location_id, current)

            result = self._engine.apply_stock_change(
                product_id,
                warehouse_id,
                location_id,
                delta,
                MovementType.ADJUSTMENT,
                actor_id,
                reference=reason,
                notes=notes if notes is not None else f"Adjusted from {current} to {target_quantity}",
            )

            logger.info(
                "adjustment_applied",
                extra={
                    "product_id": str(product_id),
                    "location_id": str(location_id),
                    "previous_quantity": current,
                    "new_quantity": target_quantity,
                    "quantity_delta": delta,
                    "reason": reason,
                },
            )
            return result
