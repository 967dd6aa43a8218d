"""
TransferService -- move stock between two locations of one warehouse.

Responsibility:
    Composes two ledger engine calls, TRANSFER_OUT at the source and
    TRANSFER_IN at the destination, inside one transaction.

Architecture position:
    Ledger > Services.  Depends on LedgerEngine.

Invariants enforced:
    - A successful transfer writes exactly two movements of equal magnitude
      and opposite sign.  A failed one writes none and leaves both levels
      unchanged.
    - Source and destination are distinct locations of the same warehouse.
      The warehouse is taken from the locations, never from the caller.

Failure modes:
    - InvalidQuantityError for quantity <= 0.
    - SameLocationTransferError when source == destination.
    - LocationNotFoundError / LocationInactiveError for either location.
    - WarehouseMismatchError when the locations (or the product) sit in
      different warehouses.
    - InsufficientStockError from the outbound leg.
"""

from uuid import UUID

from stock_ledger.domain.clock import Clock
from stock_ledger.domain.dtos import LocationInfo, TransferResult
from stock_ledger.domain.values import MovementType
from stock_ledger.db.unit_of_work import UnitOfWork
from stock_ledger.exceptions import (
    InvalidQuantityError,
    SameLocationTransferError,
    WarehouseMismatchError,
)
from stock_ledger.logging_config import get_logger
from stock_ledger.services.base import BaseService
from stock_ledger.services.ledger_engine import LedgerEngine

logger = get_logger("services.transfer")


class TransferService(BaseService):
    """Location-to-location transfers."""

    def __init__(
        self,
        uow: UnitOfWork,
        engine: LedgerEngine,
        clock: Clock | None = None,
    ):
        super().__init__(uow, clock)
        self._engine = engine

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
        """
        Move ``quantity`` units of a product from one location to another.

        When ``notes`` is None each leg gets a note naming the other
        location.
        """
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "transfer quantity must be positive")
        if from_location_id == to_location_id:
            raise SameLocationTransferError(from_location_id)

        with self._uow.transaction() as session:
            source = self._engine.get_location(session, from_location_id)
            destination = self._engine.get_location(session, to_location_id)
            if source.warehouse_id != destination.warehouse_id:
                raise WarehouseMismatchError(
                    entity_type="Location",
                    entity_id=to_location_id,
                    expected_warehouse_id=source.warehouse_id,
                    actual_warehouse_id=destination.warehouse_id,
                )
            warehouse_id = source.warehouse_id
            self._engine.get_product(session, product_id, warehouse_id)

            # Both keys locked in id order; opposing transfers must not deadlock.
            for location_id in sorted((from_location_id, to_location_id), key=str):
                self._engine.lock_stock_level(
                    session,
                    product_id,
                    warehouse_id,
                    location_id,
                    actor_id,
                    create=location_id == to_location_id,
                )

            outbound = self._engine.apply_stock_change(
                product_id,
                warehouse_id,
                from_location_id,
                -quantity,
                MovementType.TRANSFER_OUT,
                actor_id,
                reference=reference,
                notes=notes if notes is not None else f"Transfer to {destination.name}",
            )
            inbound = self._engine.apply_stock_change(
                product_id,
                warehouse_id,
                to_location_id,
                quantity,
                MovementType.TRANSFER_IN,
                actor_id,
                reference=reference,
                notes=notes if notes is not None else f"Transfer from {source.name}",
            )

            logger.info(
                "transfer_completed",
                extra={
                    "product_id": str(product_id),
                    "warehouse_id": str(warehouse_id),
                    "from_location_id": str(from_location_id),
                    "to_location_id": str(to_location_id),
                    "quantity": quantity,
                },
            )

            return TransferResult(
                outbound=outbound,
                inbound=inbound,
                from_location=LocationInfo.from_model(source),
                to_location=LocationInfo.from_model(destination),
            )
