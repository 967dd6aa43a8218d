"""
Module: stock_ledger.models.sequence
Responsibility: Counter rows backing document reference numbers.
Architecture position: Ledger > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per counter name (uq_reference_counter_name).  A name is a
      day key such as ``RCP-20240115``.
    - current_value only increases, and only under SELECT ... FOR UPDATE in
      ReferenceGenerator.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_ledger.db.base import Base


class ReferenceCounter(Base):
    """
    Per-day reference counter.

    Each row holds the last sequence number handed out for one prefix and
    calendar day.  Row-level locking keeps allocation unique under
    concurrency.
    """

    __tablename__ = "reference_counters"

    __table_args__ = (
        UniqueConstraint("name", name="uq_reference_counter_name"),
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    current_value: Mapped[int] = mapped_column(default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<ReferenceCounter {self.name}={self.current_value}>"
