"""
ProductionAggregator -- read production for a settlement period and reduce
it to per-turbine facts.

Responsibility:
    Glue between the read-only ProductionSelector and the pure
    ``aggregate_production`` engine.  Applies the configured production
    status filter and ambiguous-operator policy.

Architecture position:
    Services -- read-only orchestration over kernel selectors and engines.
    Never flushes, never commits.

Invariants enforced:
    - Tenant isolation: every read is scoped to ``tenant_id``.
    - Only production rows whose status is enabled in configuration count.

Failure modes:
    - AmbiguousOperatorAssignmentError (from the engine) under the
      ``reject`` policy.
    - An empty AggregationResult when nothing is left to distribute.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from energy_config import DistributionConfig, get_distribution_config
from energy_engines.production import (
    AggregationResult,
    AmbiguousOperatorPolicy,
    aggregate_production,
)
from energy_kernel.logging_config import get_logger
from energy_kernel.selectors.production_selector import ProductionSelector

logger = get_logger("services.production_aggregator")


class ProductionAggregator:
    """
    Aggregate one park's production for a settlement period.

    Contract:
        ``aggregate`` returns the facts and data-quality warnings for the
        given park and period.  It does not decide whether an empty result
        is an error; the caller does.
    """

    def __init__(self, session: Session, config: DistributionConfig | None = None):
        self._selector = ProductionSelector(session)
        self._config = config or get_distribution_config()

    def aggregate(
        self,
        tenant_id: UUID,
        park_id: UUID,
        year: int,
        month: int | None = None,
    ) -> AggregationResult:
        """
        Read, sum and resolve production for ``park_id`` in ``year``/``month``.

        Args:
            tenant_id: Tenant scope.
            park_id: Park whose turbines are aggregated.
            year: Settlement year.
            month: Settlement month, or None for an annual settlement.

        Raises:
            AmbiguousOperatorAssignmentError: A turbine has several current
                operators and the configured policy is ``reject``.
        """
        records = self._selector.production_records(
            tenant_id=tenant_id,
            park_id=park_id,
            year=year,
            month=month,
            statuses=self._config.eligible_production_statuses,
        )
        turbine_ids = {record.turbine_id for record in records}
        assignments = self._selector.operator_assignments(tenant_id, turbine_ids)

        logger.debug(
            "production_records_loaded",
            extra={
                "park_id": str(park_id),
                "year": year,
                "month": month,
                "record_count": len(records),
                "assignment_count": len(assignments),
            },
        )

        return aggregate_production(
            records=records,
            assignments=assignments,
            ambiguous_policy=AmbiguousOperatorPolicy(self._config.ambiguous_operator_policy),
        )
