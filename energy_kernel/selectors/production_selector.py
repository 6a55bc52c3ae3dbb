"""
Module: energy_kernel.selectors.production_selector
Responsibility: Read raw production rows and turbine -> operator assignments
    for one park and settlement period, scoped to a tenant.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Tenant isolation: every query filters on tenant_id.
    - Rows are returned in a deterministic order (designation, turbine id,
      row id) so that downstream aggregation is order-independent anyway.

Failure modes:
    - Returns empty tuples when nothing matches; never raises for "no data".
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from energy_kernel.domain.dtos import (
    AssignmentStatus,
    OperatorAssignmentRecord,
    ProductionRecord,
    ProductionStatus,
)
from energy_kernel.models.fleet import OperatorFund, Turbine, TurbineOperatorAssignment
from energy_kernel.models.production import TurbineProduction
from energy_kernel.selectors.base import BaseSelector


class ProductionSelector(BaseSelector[TurbineProduction]):
    """
    Read-side access to production facts and operator assignments.

    Non-goals:
        - Does not sum or resolve anything; that is the aggregator's job.
    """

    def production_records(
        self,
        tenant_id: UUID,
        park_id: UUID,
        year: int,
        month: int | None = None,
        statuses: Iterable[ProductionStatus | str] | None = None,
    ) -> tuple[ProductionRecord, ...]:
        """
        Raw production rows for a park and period.

        Args:
            tenant_id: Tenant scope.
            park_id: Park whose turbines are read.
            year: Settlement year.
            month: Settlement month, or None for the whole year.
            statuses: Production statuses to include; None includes all.
        """
        stmt = (
            select(
                TurbineProduction.turbine_id,
                Turbine.designation,
                TurbineProduction.production_kwh,
                TurbineProduction.status,
            )
            .join(Turbine, Turbine.id == TurbineProduction.turbine_id)
            .where(
                TurbineProduction.tenant_id == tenant_id,
                Turbine.tenant_id == tenant_id,
                Turbine.park_id == park_id,
                TurbineProduction.year == year,
            )
            .order_by(Turbine.designation, Turbine.id, TurbineProduction.id)
        )
        if month is not None:
            stmt = stmt.where(TurbineProduction.month == month)
        if statuses is not None:
            stmt = stmt.where(
                TurbineProduction.status.in_([ProductionStatus(s).value for s in statuses])
            )

        return tuple(
            ProductionRecord(
                turbine_id=row.turbine_id,
                turbine_designation=row.designation,
                production_kwh=Decimal(row.production_kwh),
                status=ProductionStatus(row.status),
            )
            for row in self._rows(stmt)
        )

    def operator_assignments(
        self,
        tenant_id: UUID,
        turbine_ids: Iterable[UUID],
    ) -> tuple[OperatorAssignmentRecord, ...]:
        """
        All assignments (current and historical) for the given turbines.

        Current-operator resolution happens in the pure aggregation engine,
        so historical rows are returned as well.
        """
        ids = list(turbine_ids)
        if not ids:
            return ()

        stmt = (
            select(
                TurbineOperatorAssignment.turbine_id,
                TurbineOperatorAssignment.operator_fund_id,
                OperatorFund.name,
                TurbineOperatorAssignment.valid_from,
                TurbineOperatorAssignment.valid_to,
                TurbineOperatorAssignment.status,
            )
            .join(OperatorFund, OperatorFund.id == TurbineOperatorAssignment.operator_fund_id)
            .where(
                TurbineOperatorAssignment.turbine_id.in_(ids),
                OperatorFund.tenant_id == tenant_id,
            )
            .order_by(
                TurbineOperatorAssignment.turbine_id,
                TurbineOperatorAssignment.valid_from,
                TurbineOperatorAssignment.id,
            )
        )

        return tuple(
            OperatorAssignmentRecord(
                turbine_id=row.turbine_id,
                operator_fund_id=row.operator_fund_id,
                operator_fund_name=row.name,
                valid_from=row.valid_from,
                valid_to=row.valid_to,
                status=AssignmentStatus(row.status),
            )
            for row in self._rows(stmt)
        )
