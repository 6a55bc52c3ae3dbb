"""
Module: energy_kernel.models.settlement
Responsibility: ORM persistence for energy settlements (one grid operator
    payment per park and period) and their generated allocation line items.
Architecture position: Kernel > Models.

Invariants enforced:
    - One settlement per (tenant_id, park_id, year, month).
    - version is the optimistic-lock column: every UPDATE increments it and
      a stale write raises StaleDataError.
    - (settlement_id, position) is unique, so line item ordering is stable.
    - Line items are only ever written by a calculation, which replaces the
      whole set.

Failure modes:
    - IntegrityError on a duplicate settlement for the same period.
    - StaleDataError when two transactions update the same settlement.

Audit relevance:
    calculation_details stores the full audit record of the last
    calculation (inputs, intermediates, steps and fingerprints).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from energy_kernel.db.base import TrackedBase, UUIDString
from energy_kernel.domain.dtos import SettlementStatus


class EnergySettlement(TrackedBase):
    """
    Net revenue a grid operator paid for one park and period.

    Contract:
        month is None for an annual settlement.  smoothing_factor and
        tolerance_percentage are None when the configured defaults apply.

    Guarantees:
        - status follows DRAFT -> CALCULATED -> INVOICED -> CLOSED.
        - version increases by one on every persisted change.
    """

    __tablename__ = "energy_settlements"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "park_id", "year", "month",
            name="uq_settlement_park_period",
        ),
        CheckConstraint(
            "month IS NULL OR month BETWEEN 1 AND 12",
            name="ck_settlement_month",
        ),
        Index("idx_settlement_tenant_status", "tenant_id", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    park_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    month: Mapped[int | None] = mapped_column(Integer, nullable=True)

    net_operator_revenue_eur: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    distribution_mode: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    smoothing_factor: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    tolerance_percentage: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    status: Mapped[SettlementStatus] = mapped_column(
        String(20),
        default=SettlementStatus.DRAFT.value,
        nullable=False,
    )

    # Written by calculation
    total_production_kwh: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    calculation_details: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )

    calculated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    calculated_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    items: Mapped[list["EnergySettlementItem"]] = relationship(
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="EnergySettlementItem.position",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        period = f"{self.year}-{self.month:02d}" if self.month else str(self.year)
        return f"<EnergySettlement {self.park_id} {period}: {self.status}>"


class EnergySettlementItem(TrackedBase):
    """
    One turbine's share of a settlement.

    Contract:
        average_production_kwh and deviation_kwh are set for SMOOTHED and
        TOLERATED settlements; tolerance_adjustment_eur only for TOLERATED.
    """

    __tablename__ = "energy_settlement_items"

    __table_args__ = (
        UniqueConstraint("settlement_id", "position", name="uq_settlement_item_position"),
        Index("idx_settlement_item_settlement", "settlement_id"),
        Index("idx_settlement_item_fund", "recipient_fund_id"),
    )

    settlement_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("energy_settlements.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    turbine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("turbines.id"),
        nullable=False,
    )

    recipient_fund_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("operator_funds.id"),
        nullable=False,
    )

    production_share_kwh: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    production_share_pct: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    revenue_share_eur: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    # e.g. "PROPORTIONAL: 33.33%"
    distribution_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    average_production_kwh: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    deviation_kwh: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    tolerance_adjustment_eur: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    settlement: Mapped["EnergySettlement"] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<EnergySettlementItem #{self.position} {self.turbine_id}: "
            f"{self.revenue_share_eur} EUR>"
        )
