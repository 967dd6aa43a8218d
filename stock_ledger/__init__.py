"""
Stock Ledger - inventory ledger engine and document workflow.

An append-only stock ledger with:
- Atomic, invariant-preserving stock changes (never negative)
- Paired transfer and absolute adjustment operations
- Receipt/delivery documents with a DRAFT -> READY -> DONE lifecycle
- Date-scoped document reference numbers
- Full auditability via immutable movement records
"""

__version__ = "0.1.0"
