"""Read-only selectors returning frozen DTOs."""

from stock_ledger.selectors.document_selector import DocumentSelector
from stock_ledger.selectors.movement_selector import MovementSelector
from stock_ledger.selectors.stock_selector import StockSelector

__all__ = [
    "DocumentSelector",
    "MovementSelector",
    "StockSelector",
]
