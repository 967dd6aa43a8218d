"""
LedgerEngine -- the single writer of stock levels.

Responsibility:
    Applies one signed quantity change to one (product, warehouse, location)
    key and appends the movement that explains it.  Every other write-side
    operation (receive, deliver, transfer, adjust, document completion) ends
    up here.

Architecture position:
    Ledger > Services -- imperative shell.  Called by TransferService,
    AdjustmentService, DocumentService and the StockLedger facade.

Invariants enforced:
    - Never-negative: a change that would take the quantity below zero is
      rejected with InsufficientStockError and nothing is written.
    - One movement per change: the level update and its StockMovement are
      flushed together inside the same transaction.
    - Sign agreement: the delta's sign must match the movement type, and a
      zero delta is rejected.
    - Same-key serialization: the level row is read with SELECT ... FOR UPDATE
      before it is changed.  A first insert racing another first insert is
      retried inside a savepoint.

Failure modes:
    - ProductNotFoundError / LocationNotFoundError for unknown IDs.
    - ProductInactiveError / LocationInactiveError for deactivated rows.
    - WarehouseMismatchError when the product or location belongs elsewhere.
    - InvalidQuantityError for a zero or wrongly-signed delta.
    - InsufficientStockError when stock would go negative.

Audit relevance:
    Each accepted change logs ``stock_change_applied`` with the key, the
    delta and the resulting quantity.  Rejections for insufficient stock log
    ``insufficient_stock_rejected``.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_ledger.domain.dtos import (
    MovementRecord,
    StockChangeResult,
    StockLevelInfo,
)
from stock_ledger.domain.values import MovementType
from stock_ledger.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    LocationInactiveError,
    LocationNotFoundError,
    ProductInactiveError,
    ProductNotFoundError,
    WarehouseMismatchError,
)
from stock_ledger.logging_config import get_logger
from stock_ledger.models.reference import Location, Product
from stock_ledger.models.stock import StockLevel, StockMovement
from stock_ledger.services.base import BaseService

logger = get_logger("services.ledger")


class LedgerEngine(BaseService):
    """
    Applies stock changes.

    Contract:
        ``apply_stock_change`` validates, locks, checks, writes the level,
        appends the movement, and returns frozen snapshots of both, all in
        one transaction.  ``receive`` and ``deliver`` are the positive-
        quantity front doors for the two document directions.

    Non-goals:
        - Does NOT check that the actor may act on the warehouse; callers
          authorize before calling.
    """

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
        """
        Apply ``quantity_delta`` to the stock level at the key.

        Preconditions:
            - ``quantity_delta`` is non-zero and signed as ``movement_type``
              requires.

        Postconditions:
            - The level equals its previous quantity plus ``quantity_delta``
              and is >= 0.
            - Exactly one StockMovement was appended for the change.

        Raises:
            InvalidQuantityError, ProductNotFoundError, ProductInactiveError,
            LocationNotFoundError, LocationInactiveError,
            WarehouseMismatchError, InsufficientStockError.
        """
        movement_type = MovementType(movement_type)
        self._check_delta(quantity_delta, movement_type)

        with self._uow.transaction() as session:
            self.get_product(session, product_id, warehouse_id)
            self.get_location(session, location_id, warehouse_id)

            level = self.lock_stock_level(
                session,
                product_id,
                warehouse_id,
                location_id,
                actor_id,
                create=quantity_delta > 0,
            )
            current = level.quantity if level is not None else 0
            new_quantity = current + quantity_delta

            if new_quantity < 0:
                logger.warning(
                    "insufficient_stock_rejected",
                    extra={
                        "product_id": str(product_id),
                        "location_id": str(location_id),
                        "movement_type": movement_type.value,
                        "current_quantity": current,
                        "requested_quantity": -quantity_delta,
                    },
                )
                raise InsufficientStockError(
                    current_quantity=current,
                    requested_quantity=-quantity_delta,
                    product_id=product_id,
                    location_id=location_id,
                )

            level.quantity = new_quantity
            level.updated_by_id = actor_id

            movement = StockMovement(
                product_id=product_id,
                warehouse_id=warehouse_id,
                location_id=location_id,
                actor_id=actor_id,
                movement_type=movement_type.value,
                quantity_delta=quantity_delta,
                reference=reference,
                notes=notes,
                occurred_at=self._clock.now(),
                created_by_id=actor_id,
            )
            session.add(movement)
            session.flush()

            logger.info(
                "stock_change_applied",
                extra={
                    "product_id": str(product_id),
                    "warehouse_id": str(warehouse_id),
                    "location_id": str(location_id),
                    "movement_type": movement_type.value,
                    "quantity_delta": quantity_delta,
                    "previous_quantity": current,
                    "new_quantity": new_quantity,
                    "movement_id": str(movement.id),
                },
            )

            return StockChangeResult(
                stock_level=StockLevelInfo.from_model(level),
                movement=MovementRecord.from_model(movement),
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
        """Add ``quantity`` (> 0) units as a RECEIPT movement."""
        _require_positive(quantity)
        return self.apply_stock_change(
            product_id,
            warehouse_id,
            location_id,
            quantity,
            MovementType.RECEIPT,
            actor_id,
            reference=reference,
            notes=notes,
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
        """Remove ``quantity`` (> 0) units as a DELIVERY movement."""
        _require_positive(quantity)
        return self.apply_stock_change(
            product_id,
            warehouse_id,
            location_id,
            -quantity,
            MovementType.DELIVERY,
            actor_id,
            reference=reference,
            notes=notes,
        )

    # -------------------------------------------------------------------------
    # Helpers shared with the other services
    # -------------------------------------------------------------------------

    def lock_stock_level(
        self,
        session: Session,
        product_id: UUID,
        warehouse_id: UUID,
        location_id: UUID,
        actor_id: UUID,
        create: bool = True,
    ) -> StockLevel | None:
        """
        Read the level row at the key under a row lock.

        When the row is missing and ``create`` is True, insert it at zero
        first.  A concurrent insert of the same key surfaces as an
        IntegrityError; the savepoint is rolled back and the row that won is
        re-read with the lock.  With ``create`` False a missing row returns
        None and nothing is written.
        """
        level = self._select_level(session, product_id, warehouse_id, location_id)
        if level is not None or not create:
            return level

        savepoint = session.begin_nested()
        try:
            level = StockLevel(
                product_id=product_id,
                warehouse_id=warehouse_id,
                location_id=location_id,
                quantity=0,
                created_by_id=actor_id,
            )
            session.add(level)
            session.flush()
            savepoint.commit()
            return level
        except IntegrityError:
            logger.debug(
                "stock_level_insert_race_retry",
                extra={
                    "product_id": str(product_id),
                    "location_id": str(location_id),
                },
            )
            savepoint.rollback()
            level = self._select_level(session, product_id, warehouse_id, location_id)
            if level is None:
                raise
            return level

    def get_product(
        self,
        session: Session,
        product_id: UUID,
        warehouse_id: UUID | None = None,
    ) -> Product:
        """Load an active product, optionally checking its warehouse."""
        product = session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if not product.is_active:
            raise ProductInactiveError(product_id)
        if warehouse_id is not None and product.warehouse_id != warehouse_id:
            raise WarehouseMismatchError(
                entity_type="Product",
                entity_id=product_id,
                expected_warehouse_id=warehouse_id,
                actual_warehouse_id=product.warehouse_id,
            )
        return product

    def get_location(
        self,
        session: Session,
        location_id: UUID,
        warehouse_id: UUID | None = None,
    ) -> Location:
        """Load an active location, optionally checking its warehouse."""
        location = session.get(Location, location_id)
        if location is None:
            raise LocationNotFoundError(location_id)
        if not location.is_active:
            raise LocationInactiveError(location_id)
        if warehouse_id is not None and location.warehouse_id != warehouse_id:
            raise WarehouseMismatchError(
                entity_type="Location",
                entity_id=location_id,
                expected_warehouse_id=warehouse_id,
                actual_warehouse_id=location.warehouse_id,
            )
        return location

    def _select_level(
        self,
        session: Session,
        product_id: UUID,
        warehouse_id: UUID,
        location_id: UUID,
    ) -> StockLevel | None:
        return session.execute(
            select(StockLevel)
            .where(
                StockLevel.product_id == product_id,
                StockLevel.warehouse_id == warehouse_id,
                StockLevel.location_id == location_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @staticmethod
    def _check_delta(quantity_delta: int, movement_type: MovementType) -> None:
        if quantity_delta == 0:
            raise InvalidQuantityError(quantity_delta, "quantity change cannot be zero")
        if not movement_type.accepts(quantity_delta):
            direction = "positive" if movement_type.expected_sign > 0 else "negative"
            raise InvalidQuantityError(
                quantity_delta,
                f"{movement_type.value} movements must be {direction}",
            )


def _require_positive(quantity: int) -> None:
    if quantity <= 0:
        raise InvalidQuantityError(quantity, "quantity must be positive")
