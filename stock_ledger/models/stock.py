"""
Module: stock_ledger.models.stock
Responsibility: ORM persistence for the two halves of the ledger: the current
    quantity per (product, warehouse, location) key and the append-only
    movement history that explains it.
Architecture position: Ledger > Models.  May import from db/base.py only.

Invariants enforced:
    - StockLevel.quantity >= 0 (chk_stock_level_quantity, and the ledger
      engine checks before writing).
    - One StockLevel per (product_id, warehouse_id, location_id)
      (uq_stock_level_key).
    - StockMovement rows are immutable once written (db/immutability.py).
    - quantity_delta is never zero (chk_stock_movement_delta).

Failure modes:
    - IntegrityError on a concurrent first insert of the same key; the ledger
      engine retries inside a savepoint.
    - ImmutabilityViolationError on UPDATE/DELETE of a movement.

Audit relevance:
    For every key, the signed sum of movement deltas equals the stored
    quantity.  StockSelector.reconcile() checks this.
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
from sqlalchemy.orm import Mapped, mapped_column

from stock_ledger.db.base import TrackedBase
from stock_ledger.domain.values import MovementType

__all__ = ["MovementType", "StockLevel", "StockMovement"]


class StockLevel(TrackedBase):
    """
    Current on-hand quantity for one product at one location.

    Contract:
        Written only by LedgerEngine.  Rows are created lazily on the first
        movement into a key (or the first adjustment lock) and are never
        deleted while movements reference the key.

    Guarantees:
        - quantity >= 0.
        - (product_id, warehouse_id, location_id) is unique.
    """

    __tablename__ = "stock_levels"

    __table_args__ = (
        UniqueConstraint(
            "product_id",
            "warehouse_id",
            "location_id",
            name="uq_stock_level_key",
        ),
        CheckConstraint("quantity >= 0", name="chk_stock_level_quantity"),
        Index("idx_stock_level_warehouse", "warehouse_id"),
        Index("idx_stock_level_product", "product_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id"),
        nullable=False,
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    location_id: Mapped[UUID] = mapped_column(
        ForeignKey("locations.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(default=0, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StockLevel {self.product_id}@{self.location_id}: {self.quantity}>"
        )


class StockMovement(TrackedBase):
    """
    One signed change to one stock level.

    Contract:
        Exactly one row per successful LedgerEngine.apply_stock_change call.
        Never updated or deleted.

    Guarantees:
        - quantity_delta != 0 and its sign matches movement_type.
        - occurred_at comes from the injected Clock.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        CheckConstraint("quantity_delta <> 0", name="chk_stock_movement_delta"),
        Index(
            "idx_stock_movement_key",
            "product_id",
            "warehouse_id",
            "location_id",
        ),
        Index("idx_stock_movement_warehouse_time", "warehouse_id", "occurred_at"),
        Index("idx_stock_movement_reference", "reference"),
    )

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id"),
        nullable=False,
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    location_id: Mapped[UUID] = mapped_column(
        ForeignKey("locations.id"),
        nullable=False,
    )

    # Who caused the movement
    actor_id: Mapped[UUID] = mapped_column(nullable=False)

    # MovementType value
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)

    quantity_delta: Mapped[int] = mapped_column(nullable=False)

    # Document reference number, adjustment reason, or caller reference
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StockMovement {self.movement_type} {self.quantity_delta:+d}>"
