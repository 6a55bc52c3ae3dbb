"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures that flow through a settlement recalculation:
    raw production and assignment records (selector output), aggregated
    TurbineProductionFacts (aggregator output), data-quality warnings, and
    the read-side SettlementInfo / LineItemInfo returned to callers.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from
    the service and selector layers.

Invariants enforced:
    - Domain logic accepts and returns DTOs, never ORM entities.
    - Energy and money fields are Decimal, never float.

Data flow:
    ProductionRecord + OperatorAssignmentRecord
        -> TurbineProductionFact -> DistributionLine -> LineItemInfo
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from energy_kernel.domain.values import plain

if TYPE_CHECKING:
    from energy_kernel.models.settlement import (
        EnergySettlement as EnergySettlementModel,
        EnergySettlementItem as EnergySettlementItemModel,
    )


# ---------------------------------------------------------------------------
# Status vocabularies (shared by models and domain)
# ---------------------------------------------------------------------------


class SettlementStatus(str, Enum):
    """
    Lifecycle status of an energy settlement.

    Contract:
        DRAFT -> CALCULATED -> INVOICED -> CLOSED.  Only DRAFT settlements
        may be (re)calculated.
    """

    DRAFT = "DRAFT"
    CALCULATED = "CALCULATED"
    INVOICED = "INVOICED"
    CLOSED = "CLOSED"


class ProductionStatus(str, Enum):
    """Review status of a recorded production figure."""

    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    INVOICED = "INVOICED"


class ProductionSource(str, Enum):
    """Where a production figure came from."""

    MANUAL = "MANUAL"
    CSV_IMPORT = "CSV_IMPORT"
    EXCEL_IMPORT = "EXCEL_IMPORT"
    SCADA = "SCADA"


class TurbineStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class AssignmentStatus(str, Enum):
    """Status of a turbine -> operator fund assignment."""

    ACTIVE = "ACTIVE"
    HISTORICAL = "HISTORICAL"


class WarningCode(str, Enum):
    """Data-quality findings reported alongside a calculation."""

    NO_CURRENT_OPERATOR = "NO_CURRENT_OPERATOR"
    MULTIPLE_CURRENT_OPERATORS = "MULTIPLE_CURRENT_OPERATORS"


# ---------------------------------------------------------------------------
# Production inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProductionRecord:
    """
    One raw production row, as read from storage.

    Several records may exist for the same turbine and period; the
    aggregator sums them.
    """

    turbine_id: UUID
    turbine_designation: str
    production_kwh: Decimal
    status: ProductionStatus = ProductionStatus.CONFIRMED


@dataclass(frozen=True)
class OperatorAssignmentRecord:
    """
    One turbine -> operator fund assignment row.

    Guarantees:
        - ``is_current`` is True iff valid_to is unset and status is ACTIVE.
    """

    turbine_id: UUID
    operator_fund_id: UUID
    operator_fund_name: str
    valid_from: date
    valid_to: date | None = None
    status: AssignmentStatus = AssignmentStatus.ACTIVE

    @property
    def is_current(self) -> bool:
        return self.valid_to is None and self.status == AssignmentStatus.ACTIVE


@dataclass(frozen=True)
class TurbineProductionFact:
    """
    Aggregated production of one turbine for one settlement period.

    Contract:
        Exists only for turbines with recorded production and exactly one
        resolvable current operator.

    Guarantees:
        - production_kwh is the sum of all eligible raw records.
    """

    turbine_id: UUID
    turbine_designation: str
    operator_fund_id: UUID
    operator_fund_name: str
    production_kwh: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "turbine_id": str(self.turbine_id),
            "turbine_designation": self.turbine_designation,
            "operator_fund_id": str(self.operator_fund_id),
            "operator_fund_name": self.operator_fund_name,
            "production_kwh": plain(self.production_kwh),
        }


@dataclass(frozen=True)
class DataQualityWarning:
    """
    A non-fatal data problem found while aggregating production.

    Contract:
        Warnings never block a calculation on their own; they are logged and
        stored in the audit record so the excluded turbines can be fixed.
    """

    code: WarningCode
    turbine_id: UUID
    turbine_designation: str
    message: str
    production_kwh: Decimal = Decimal("0")
    operator_fund_ids: tuple[UUID, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "turbine_id": str(self.turbine_id),
            "turbine_designation": self.turbine_designation,
            "message": self.message,
            "production_kwh": plain(self.production_kwh),
            "operator_fund_ids": [str(f) for f in self.operator_fund_ids],
        }


# ---------------------------------------------------------------------------
# Settlement DTOs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItemDraft:
    """
    A line item about to be written for a settlement.

    Contract:
        Produced by the recalculation orchestrator from a distribution line;
        SettlementService turns it into an EnergySettlementItem row.
    """

    position: int
    turbine_id: UUID
    recipient_fund_id: UUID
    production_share_kwh: Decimal
    production_share_pct: Decimal
    revenue_share_eur: Decimal
    distribution_key: str
    average_production_kwh: Decimal | None = None
    deviation_kwh: Decimal | None = None
    tolerance_adjustment_eur: Decimal | None = None


@dataclass(frozen=True)
class LineItemInfo:
    """
    Read-side view of one persisted allocation line item.

    Guarantees:
        - Immutable snapshot; detached from the session.
    """

    id: UUID
    settlement_id: UUID
    position: int
    turbine_id: UUID
    recipient_fund_id: UUID
    production_share_kwh: Decimal
    production_share_pct: Decimal
    revenue_share_eur: Decimal
    distribution_key: str
    average_production_kwh: Decimal | None = None
    deviation_kwh: Decimal | None = None
    tolerance_adjustment_eur: Decimal | None = None

    def content(self) -> dict[str, Any]:
        """Business content of the line, without generated identifiers."""
        return {
            "position": self.position,
            "turbine_id": str(self.turbine_id),
            "recipient_fund_id": str(self.recipient_fund_id),
            "production_share_kwh": self.production_share_kwh,
            "production_share_pct": self.production_share_pct,
            "revenue_share_eur": self.revenue_share_eur,
            "distribution_key": self.distribution_key,
            "average_production_kwh": self.average_production_kwh,
            "deviation_kwh": self.deviation_kwh,
            "tolerance_adjustment_eur": self.tolerance_adjustment_eur,
        }

    @classmethod
    def from_model(cls, model: EnergySettlementItemModel) -> LineItemInfo:
        return cls(
            id=model.id,
            settlement_id=model.settlement_id,
            position=model.position,
            turbine_id=model.turbine_id,
            recipient_fund_id=model.recipient_fund_id,
            production_share_kwh=model.production_share_kwh,
            production_share_pct=model.production_share_pct,
            revenue_share_eur=model.revenue_share_eur,
            distribution_key=model.distribution_key,
            average_production_kwh=model.average_production_kwh,
            deviation_kwh=model.deviation_kwh,
            tolerance_adjustment_eur=model.tolerance_adjustment_eur,
        )


@dataclass(frozen=True)
class SettlementInfo:
    """
    Pure domain representation of an energy settlement.

    Contract:
        Immutable snapshot of the settlement header after a calculation
        attempt.  Line items are carried separately.

    Non-goals:
        - Does NOT enforce the DRAFT-only rule (the orchestrator does that).
    """

    id: UUID
    tenant_id: UUID
    park_id: UUID
    year: int
    month: int | None
    net_operator_revenue_eur: Decimal
    distribution_mode: str
    smoothing_factor: Decimal | None
    tolerance_percentage: Decimal | None
    status: SettlementStatus
    version: int
    total_production_kwh: Decimal | None = None
    calculation_details: dict[str, Any] | None = None
    calculated_at: datetime | None = None
    calculated_by_id: UUID | None = None

    @property
    def is_draft(self) -> bool:
        return self.status == SettlementStatus.DRAFT

    @property
    def period_label(self) -> str:
        return f"{self.year}-{self.month:02d}" if self.month else str(self.year)

    @classmethod
    def from_model(cls, model: EnergySettlementModel) -> SettlementInfo:
        return cls(
            id=model.id,
            tenant_id=model.tenant_id,
            park_id=model.park_id,
            year=model.year,
            month=model.month,
            net_operator_revenue_eur=model.net_operator_revenue_eur,
            distribution_mode=model.distribution_mode,
            smoothing_factor=model.smoothing_factor,
            tolerance_percentage=model.tolerance_percentage,
            status=SettlementStatus(model.status),
            version=model.version,
            total_production_kwh=model.total_production_kwh,
            calculation_details=(
                dict(model.calculation_details) if model.calculation_details else None
            ),
            calculated_at=model.calculated_at,
            calculated_by_id=model.calculated_by_id,
        )
