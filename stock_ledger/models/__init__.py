"""ORM models.  Importing this package registers every table on Base.metadata."""

from stock_ledger.models.document import (
    Document,
    DocumentLine,
    DocumentStatus,
    DocumentTransition,
    DocumentType,
)
from stock_ledger.models.reference import Location, Product, Warehouse
from stock_ledger.models.sequence import ReferenceCounter
from stock_ledger.models.stock import MovementType, StockLevel, StockMovement

__all__ = [
    "Document",
    "DocumentLine",
    "DocumentStatus",
    "DocumentTransition",
    "DocumentType",
    "Location",
    "MovementType",
    "Product",
    "ReferenceCounter",
    "StockLevel",
    "StockMovement",
    "Warehouse",
]
