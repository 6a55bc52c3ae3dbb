"""
Module: energy_kernel.db.base
Responsibility: Declarative base and shared column conventions for every
    table of the settlement kernel (fleet, production, settlements).
Architecture position: Kernel > DB.  Imported by models/ only; imports
    nothing else from the kernel.

Invariants enforced:
    - Primary keys are uuid4 values kept as 36-character strings, so the
      same schema runs on PostgreSQL and on the in-memory SQLite used by
      tests.
    - kWh, EUR and ratio columns are Numeric(38, 9); a float never reaches
      the database.
    - Every persisted row records which actor created it and which actor
      last changed it.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID column stored as its canonical string form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        # Accept both UUID objects and already-formatted strings
        return str(value if isinstance(value, PyUUID) else PyUUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for settlement kernel tables.

    Annotated ``Mapped[Decimal]`` columns become Numeric(38, 9) and
    ``Mapped[datetime]`` columns are timezone-aware.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Abstract base adding actor and timestamp columns.

    ``created_*`` are written once on insert; ``updated_*`` change with
    every update that goes through ``touch``.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    created_by_id: Mapped[PyUUID] = mapped_column(UUIDString(), nullable=False)
    updated_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)

    def touch(self, actor_id: PyUUID) -> None:
        """Record ``actor_id`` as the last actor to change this row."""
        self.updated_by_id = actor_id


UUID = PyUUID
