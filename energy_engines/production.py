"""
Module: energy_engines.production
Responsibility:
    Reduce raw production rows to one TurbineProductionFact per turbine and
    resolve which operator fund currently operates each turbine.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Input records come from energy_kernel.selectors.production_selector.

Invariants enforced:
    - Per-turbine sums live in a map created and consumed inside one call.
    - A turbine without exactly one current operator never becomes a fact:
      it is reported as a DataQualityWarning (or, for an ambiguous
      assignment under the reject policy, raises).
    - Facts are ordered by turbine designation, then turbine id.

Failure modes:
    - AmbiguousOperatorAssignmentError when a turbine has more than one
      current assignment and the policy is REJECT.
    - An empty AggregationResult (not an exception) when nothing remains.

Audit relevance:
    Warnings name every excluded turbine together with the production that
    was left out, and are copied into the settlement's audit record.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from energy_engines.tracer import traced_engine
from energy_kernel.domain.dtos import (
    DataQualityWarning,
    OperatorAssignmentRecord,
    ProductionRecord,
    TurbineProductionFact,
    WarningCode,
)
from energy_kernel.exceptions import AmbiguousOperatorAssignmentError
from energy_kernel.logging_config import get_logger

logger = get_logger("engines.production")

ENGINE_VERSION = "1.0"


class ResolutionStatus(str, Enum):
    """Outcome of looking up a turbine's current operator."""

    RESOLVED = "RESOLVED"
    MISSING = "MISSING"
    AMBIGUOUS = "AMBIGUOUS"


class AmbiguousOperatorPolicy(str, Enum):
    """What to do with a turbine that has several current operators."""

    REJECT = "reject"  # Abort the calculation
    EXCLUDE = "exclude"  # Drop the turbine with a warning


@dataclass(frozen=True)
class OperatorResolution:
    """
    Result of resolve_current_operator.

    Guarantees:
        - assignment is set iff status is RESOLVED.
        - candidates holds every current assignment found (0, 1 or more).
    """

    turbine_id: UUID
    status: ResolutionStatus
    assignment: OperatorAssignmentRecord | None = None
    candidates: tuple[OperatorAssignmentRecord, ...] = ()


def resolve_current_operator(
    turbine_id: UUID,
    assignments: Iterable[OperatorAssignmentRecord],
) -> OperatorResolution:
    """
    Find the single current operator assignment of a turbine.

    Current means no end date and status ACTIVE.  Assignments belonging to
    other turbines are ignored, so the full assignment list may be passed.
    """
    current = tuple(
        a for a in assignments if a.turbine_id == turbine_id and a.is_current
    )
    if not current:
        return OperatorResolution(turbine_id=turbine_id, status=ResolutionStatus.MISSING)
    if len(current) > 1:
        return OperatorResolution(
            turbine_id=turbine_id,
            status=ResolutionStatus.AMBIGUOUS,
            candidates=current,
        )
    return OperatorResolution(
        turbine_id=turbine_id,
        status=ResolutionStatus.RESOLVED,
        assignment=current[0],
        candidates=current,
    )


@dataclass(frozen=True)
class AggregationResult:
    """
    Aggregated production for one settlement period.

    Guarantees:
        - facts are ordered by designation, then turbine id.
        - every excluded turbine has exactly one warning.
    """

    facts: tuple[TurbineProductionFact, ...]
    warnings: tuple[DataQualityWarning, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.facts

    @property
    def turbine_count(self) -> int:
        return len(self.facts)

    @property
    def excluded_count(self) -> int:
        return len(self.warnings)

    @property
    def total_production_kwh(self) -> Decimal:
        return sum((f.production_kwh for f in self.facts), Decimal("0"))


@traced_engine(
    "production_aggregation",
    ENGINE_VERSION,
    fingerprint_fields=("records", "assignments", "ambiguous_policy"),
)
def aggregate_production(
    *,
    records: Sequence[ProductionRecord],
    assignments: Sequence[OperatorAssignmentRecord],
    ambiguous_policy: AmbiguousOperatorPolicy = AmbiguousOperatorPolicy.REJECT,
) -> AggregationResult:
    """
    Sum production per turbine and attach each turbine's current operator.

    Args:
        records: Raw production rows (several per turbine allowed).
        assignments: All operator assignments of the turbines in ``records``.
        ambiguous_policy: Handling of turbines with several current operators.

    Returns:
        AggregationResult with facts and data-quality warnings.

    Raises:
        AmbiguousOperatorAssignmentError: Several current operators and
            ``ambiguous_policy`` is REJECT.
    """
    totals: dict[UUID, Decimal] = {}
    designations: dict[UUID, str] = {}
    for record in records:
        totals[record.turbine_id] = (
            totals.get(record.turbine_id, Decimal("0")) + record.production_kwh
        )
        designations.setdefault(record.turbine_id, record.turbine_designation)

    by_turbine: dict[UUID, list[OperatorAssignmentRecord]] = {}
    for assignment in assignments:
        by_turbine.setdefault(assignment.turbine_id, []).append(assignment)

    facts: list[TurbineProductionFact] = []
    warnings: list[DataQualityWarning] = []

    for turbine_id in sorted(totals, key=lambda t: (designations[t], str(t))):
        designation = designations[turbine_id]
        production = totals[turbine_id]
        resolution = resolve_current_operator(turbine_id, by_turbine.get(turbine_id, ()))

        match resolution.status:
            case ResolutionStatus.RESOLVED:
                assignment = resolution.assignment
                facts.append(
                    TurbineProductionFact(
                        turbine_id=turbine_id,
                        turbine_designation=designation,
                        operator_fund_id=assignment.operator_fund_id,
                        operator_fund_name=assignment.operator_fund_name,
                        production_kwh=production,
                    )
                )
            case ResolutionStatus.MISSING:
                warning = DataQualityWarning(
                    code=WarningCode.NO_CURRENT_OPERATOR,
                    turbine_id=turbine_id,
                    turbine_designation=designation,
                    message=(
                        f"Turbine {designation} has production but no current "
                        "operator assignment; excluded from distribution"
                    ),
                    production_kwh=production,
                )
                warnings.append(warning)
                logger.warning(
                    "turbine_without_current_operator",
                    extra={
                        "turbine_id": str(turbine_id),
                        "turbine_designation": designation,
                        "production_kwh": str(production),
                    },
                )
            case ResolutionStatus.AMBIGUOUS:
                fund_ids = tuple(a.operator_fund_id for a in resolution.candidates)
                if ambiguous_policy == AmbiguousOperatorPolicy.REJECT:
                    logger.error(
                        "turbine_with_multiple_current_operators",
                        extra={
                            "turbine_id": str(turbine_id),
                            "turbine_designation": designation,
                            "operator_fund_ids": [str(f) for f in fund_ids],
                        },
                    )
                    raise AmbiguousOperatorAssignmentError(
                        turbine_id=str(turbine_id),
                        operator_fund_ids=[str(f) for f in fund_ids],
                    )
                warning = DataQualityWarning(
                    code=WarningCode.MULTIPLE_CURRENT_OPERATORS,
                    turbine_id=turbine_id,
                    turbine_designation=designation,
                    message=(
                        f"Turbine {designation} has {len(fund_ids)} current operator "
                        "assignments; excluded from distribution"
                    ),
                    production_kwh=production,
                    operator_fund_ids=fund_ids,
                )
                warnings.append(warning)
                logger.warning(
                    "turbine_with_multiple_current_operators",
                    extra={
                        "turbine_id": str(turbine_id),
                        "turbine_designation": designation,
                        "operator_fund_ids": [str(f) for f in fund_ids],
                    },
                )

    logger.info(
        "production_aggregated",
        extra={
            "record_count": len(records),
            "turbine_count": len(facts),
            "excluded_count": len(warnings),
        },
    )
    return AggregationResult(facts=tuple(facts), warnings=tuple(warnings))
