"""Database layer: declarative base, engine setup, unit of work, ORM guards."""

from stock_ledger.db.base import Base, TrackedBase, UUIDString
from stock_ledger.db.unit_of_work import UnitOfWork

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "UnitOfWork",
]
