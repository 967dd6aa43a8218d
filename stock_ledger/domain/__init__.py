"""Pure domain layer: values, DTOs, clock, workflow, reference formatting."""

from stock_ledger.domain.clock import Clock, DeterministicClock, SystemClock
from stock_ledger.domain.values import DocumentStatus, DocumentType, MovementType

__all__ = [
    "Clock",
    "DeterministicClock",
    "DocumentStatus",
    "DocumentType",
    "MovementType",
    "SystemClock",
]
