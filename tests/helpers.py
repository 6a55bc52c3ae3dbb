"""In-memory builders for engine tests (no database)."""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from energy_kernel.domain.dtos import (
    AssignmentStatus,
    OperatorAssignmentRecord,
    ProductionRecord,
    TurbineProductionFact,
)


def make_fact(
    designation: str,
    kwh: str | Decimal,
    fund_id: UUID | None = None,
    fund_name: str = "Fund A",
) -> TurbineProductionFact:
    return TurbineProductionFact(
        turbine_id=uuid4(),
        turbine_designation=designation,
        operator_fund_id=fund_id or uuid4(),
        operator_fund_name=fund_name,
        production_kwh=Decimal(kwh),
    )


def make_facts(*productions: str | Decimal) -> list[TurbineProductionFact]:
    """One fact per production figure, designated WEA-01, WEA-02, ..."""
    return [make_fact(f"WEA-{i:02d}", kwh) for i, kwh in enumerate(productions, start=1)]


def make_record(turbine_id: UUID, designation: str, kwh: str | Decimal) -> ProductionRecord:
    return ProductionRecord(
        turbine_id=turbine_id,
        turbine_designation=designation,
        production_kwh=Decimal(kwh),
    )


def make_assignment(
    turbine_id: UUID,
    fund_id: UUID | None = None,
    fund_name: str = "Fund A",
    valid_to: date | None = None,
    status: AssignmentStatus = AssignmentStatus.ACTIVE,
) -> OperatorAssignmentRecord:
    return OperatorAssignmentRecord(
        turbine_id=turbine_id,
        operator_fund_id=fund_id or uuid4(),
        operator_fund_name=fund_name,
        valid_from=date(2020, 1, 1),
        valid_to=valid_to,
        status=status,
    )
