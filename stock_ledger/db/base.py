"""
Module: stock_ledger.db.base
Responsibility: The declarative base every ledger table inherits from, the
    portable UUID column type, and the audit columns shared by all rows that
    an actor creates or changes.
Architecture position: Ledger > DB.  Lowest layer of the package: models
    import from here, and this module imports nothing from the package.

Invariants enforced:
    - Primary keys are uuid4 values, stored as 36-character strings so the
      same schema runs on SQLite and PostgreSQL.
    - Python ``int`` columns are BIGINT.  Stock is counted in whole units.
    - Python ``datetime`` columns are timezone-aware.
    - Indexes, unique and foreign-key constraints without an explicit name
      get a deterministic one from NAMING_CONVENTION.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, MetaData, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

NAMING_CONVENTION = {
    "ix": "idx_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """UUID column stored as VARCHAR(36).  Accepts UUIDs or their string form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value if isinstance(value, UUID) else UUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Declarative base: uuid4 ``id`` primary key and the shared type map."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        int: BigInteger,
        datetime: DateTime(timezone=True),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Rows with an author.

    ``created_by_id`` is required on insert; ``updated_by_id`` is set by the
    service that changes the row.  The timestamps come from the database.
    The immutability guards ignore changes to the two ``updated_*``
    columns on frozen rows.
    """

    __abstract__ = True

    MUTABLE_AUDIT_COLUMNS: ClassVar[frozenset[str]] = frozenset({"updated_at", "updated_by_id"})

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by_id: Mapped[UUID]
    updated_by_id: Mapped[UUID | None]
