"""
Module: energy_kernel.models.production
Responsibility: ORM persistence for recorded turbine production per period.
Architecture position: Kernel > Models.

Invariants enforced:
    - month is between 1 and 12 (CHECK constraint).
    - production_kwh is non-negative (CHECK constraint).
    - Several rows per turbine and period are allowed; readers sum them.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from energy_kernel.db.base import TrackedBase, UUIDString
from energy_kernel.domain.dtos import ProductionSource, ProductionStatus
from energy_kernel.models.fleet import Turbine


class TurbineProduction(TrackedBase):
    """
    Measured production of one turbine in one month.

    Contract:
        Rows come from manual entry, CSV/Excel imports or SCADA feeds.  Only
        statuses enabled in configuration are used for distribution.
    """

    __tablename__ = "turbine_productions"

    __table_args__ = (
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_production_month"),
        CheckConstraint("production_kwh >= 0", name="ck_production_non_negative"),
        Index("idx_production_period", "tenant_id", "year", "month"),
        Index("idx_production_turbine", "turbine_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    turbine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("turbines.id"),
        nullable=False,
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    month: Mapped[int] = mapped_column(Integer, nullable=False)

    production_kwh: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    source: Mapped[ProductionSource] = mapped_column(
        String(20),
        default=ProductionSource.MANUAL.value,
        nullable=False,
    )

    status: Mapped[ProductionStatus] = mapped_column(
        String(20),
        default=ProductionStatus.DRAFT.value,
        nullable=False,
    )

    turbine: Mapped[Turbine] = relationship()

    def __repr__(self) -> str:
        return (
            f"<TurbineProduction {self.turbine_id} {self.year}-{self.month:02d}: "
            f"{self.production_kwh} kWh>"
        )
