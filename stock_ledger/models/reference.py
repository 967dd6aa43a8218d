"""
Module: stock_ledger.models.reference
Responsibility: ORM persistence for the reference data the ledger validates
    against: warehouses, their locations, and the products they stock.
Architecture position: Ledger > Models.  May import from db/base.py only.

Invariants enforced:
    - Location.code is unique within its warehouse.
    - Product.sku is unique within its warehouse.
    - reorder_level is never negative.

Failure modes:
    - IntegrityError on duplicate codes/SKUs or a dangling warehouse_id.

Ownership:
    These rows are maintained by the warehouse administration surface.  The
    ledger only reads them for existence, active-flag and warehouse-ownership
    checks; it never creates, edits or deletes them.
"""

from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_ledger.db.base import TrackedBase


class Warehouse(TrackedBase):
    """A physical site that holds stock."""

    __tablename__ = "warehouses"

    __table_args__ = (
        UniqueConstraint("code", name="uq_warehouse_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Warehouse {self.code}>"


class Location(TrackedBase):
    """
    A bin, shelf or zone inside a warehouse.

    Guarantees:
        - (warehouse_id, code) is unique (uq_location_warehouse_code).
    """

    __tablename__ = "locations"

    __table_args__ = (
        UniqueConstraint("warehouse_id", "code", name="uq_location_warehouse_code"),
        Index("idx_location_warehouse", "warehouse_id"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Location {self.code}>"


class Product(TrackedBase):
    """
    A stock-keeping unit held in one warehouse.

    Contract:
        reorder_level is the threshold used by low-stock reporting.  Zero
        disables alerts for the product.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("warehouse_id", "sku", name="uq_product_warehouse_sku"),
        CheckConstraint("reorder_level >= 0", name="chk_product_reorder_level"),
        Index("idx_product_warehouse", "warehouse_id"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    reorder_level: Mapped[int] = mapped_column(default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Product {self.sku}>"
