"""
Module: energy_kernel.models.fleet
Responsibility: ORM persistence for operator funds, turbines and the
    time-bounded assignment of a turbine to the fund that operates it.
Architecture position: Kernel > Models.  May import from db/ and the status
    vocabularies in domain/dtos.py only.

Invariants enforced:
    - A "current" assignment has valid_to IS NULL and status ACTIVE.  At most
      one should exist per turbine; violations are detected at calculation
      time, not by a database constraint, so historical imports can load.

Audit relevance:
    Assignments decide which fund receives a turbine's revenue share.  Old
    assignments are kept as HISTORICAL rather than deleted.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from energy_kernel.db.base import TrackedBase, UUIDString
from energy_kernel.domain.dtos import AssignmentStatus, TurbineStatus


class OperatorFund(TrackedBase):
    """
    A tenant-scoped legal entity that operates turbines and receives revenue.
    """

    __tablename__ = "operator_funds"

    __table_args__ = (Index("idx_operator_fund_tenant", "tenant_id"),)

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<OperatorFund {self.name}>"


class Turbine(TrackedBase):
    """
    A wind turbine within a park.

    Guarantees:
        - designation is the human-facing identifier used for ordering line
          items (e.g. "WEA 01").
    """

    __tablename__ = "turbines"

    __table_args__ = (
        Index("idx_turbine_tenant_park", "tenant_id", "park_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    park_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    designation: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[TurbineStatus] = mapped_column(
        String(20),
        default=TurbineStatus.ACTIVE.value,
        nullable=False,
    )

    assignments: Mapped[list["TurbineOperatorAssignment"]] = relationship(
        back_populates="turbine",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Turbine {self.designation}>"


class TurbineOperatorAssignment(TrackedBase):
    """
    Assignment of a turbine to an operator fund over a validity interval.

    Contract:
        valid_to is None while the assignment is open.  Closing an assignment
        sets valid_to and moves status to HISTORICAL.
    """

    __tablename__ = "turbine_operator_assignments"

    __table_args__ = (
        Index("idx_assignment_turbine", "turbine_id"),
        Index("idx_assignment_fund", "operator_fund_id"),
    )

    turbine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("turbines.id"),
        nullable=False,
    )

    operator_fund_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("operator_funds.id"),
        nullable=False,
    )

    valid_from: Mapped[date] = mapped_column(Date, nullable=False)

    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[AssignmentStatus] = mapped_column(
        String(20),
        default=AssignmentStatus.ACTIVE.value,
        nullable=False,
    )

    turbine: Mapped["Turbine"] = relationship(back_populates="assignments")

    operator_fund: Mapped["OperatorFund"] = relationship()

    @property
    def is_current(self) -> bool:
        return self.valid_to is None and self.status == AssignmentStatus.ACTIVE

    def close(self, valid_to: date) -> None:
        """End the assignment on ``valid_to`` and mark it HISTORICAL."""
        self.valid_to = valid_to
        self.status = AssignmentStatus.HISTORICAL.value

    def __repr__(self) -> str:
        return f"<TurbineOperatorAssignment {self.turbine_id} -> {self.operator_fund_id}>"
