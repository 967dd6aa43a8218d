"""Write-side services.  Every stock level change goes through LedgerEngine."""

from stock_ledger.services.adjustment_service import AdjustmentService
from stock_ledger.services.document_service import DocumentService
from stock_ledger.services.ledger_engine import LedgerEngine
from stock_ledger.services.reference_generator import ReferenceGenerator
from stock_ledger.services.transfer_service import TransferService

__all__ = [
    "AdjustmentService",
    "DocumentService",
    "LedgerEngine",
    "ReferenceGenerator",
    "TransferService",
]
