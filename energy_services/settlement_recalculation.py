"""
SettlementRecalculationService -- the single entry point that (re)computes
a settlement's revenue distribution.

Responsibility:
    Drives one settlement from DRAFT to CALCULATED: lock, validate, build
    the policy, aggregate production, distribute revenue, replace the line
    items and write the audit record, all inside one transaction.

Architecture position:
    Services -- imperative shell, owns transaction boundaries.
    Composes kernel services and selectors with the pure engines in
    energy_engines; the kernel never imports this module.

Recalculation flow:
    recalculate(settlement_id, tenant_id, actor_id)
      1. Lock the settlement row (SettlementService.get_for_update)
      2. Require status DRAFT
      3. Build the policy variant from the settlement's mode and parameters
      4. Aggregate production (ProductionAggregator)
      5. Distribute revenue (DistributionEngine)
      6. Replace line items, stamp totals and audit record, bump version
      7. Commit or rollback

Invariants enforced:
    - Only DRAFT settlements are calculated.
    - Line items and header are written in the same transaction; a failure
      leaves the previous items and status untouched.
    - Identical inputs produce identical line items and an identical
      result fingerprint.
    - Timestamps come from the injected Clock.

Failure modes:
    Every failure is returned as a RecalculationResult, never raised:
    NOT_FOUND, INVALID_STATE, INVALID_POLICY, NO_DATA, DATA_INTEGRITY,
    CONFLICT, INTERNAL.

Audit relevance:
    calculation_details carries inputs, intermediates, steps, warnings and
    fingerprints of the calculation.  Every invocation is logged with
    correlation_id, tenant_id, settlement_id, actor_id and duration.
"""

from __future__ import annotations

import time
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID
from uuid import uuid4 as _uuid4

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from energy_config import DistributionConfig, get_distribution_config
from energy_engines.distribution import (
    ENGINE_VERSION,
    DistributionEngine,
    DistributionResult,
    summarize_by_operator,
)
from energy_engines.production import AggregationResult
from energy_kernel.domain.clock import Clock, SystemClock
from energy_kernel.domain.dtos import (
    DataQualityWarning,
    LineItemDraft,
    LineItemInfo,
    SettlementInfo,
    SettlementStatus,
)
from energy_kernel.domain.policies import build_policy
from energy_kernel.exceptions import (
    AmbiguousOperatorAssignmentError,
    EnergyKernelError,
    InvalidPolicyError,
    NoProductionDataError,
    OptimisticLockError,
    SettlementNotDraftError,
    SettlementNotFoundError,
)
from energy_kernel.logging_config import LogContext, get_logger
from energy_kernel.models.settlement import EnergySettlement
from energy_kernel.services.settlement_service import SettlementService
from energy_kernel.utils.hashing import hash_distribution_input, hash_line_items
from energy_services.production_aggregator import ProductionAggregator

logger = get_logger("services.settlement_recalculation")

# Unexpected errors reach the caller only as this text; the details are logged.
INTERNAL_ERROR_MESSAGE = "Internal error during settlement calculation"


class RecalculationStatus(str, Enum):
    """Outcome of a recalculation."""

    CALCULATED = "calculated"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    INVALID_POLICY = "invalid_policy"
    NO_DATA = "no_data"
    DATA_INTEGRITY = "data_integrity"
    CONFLICT = "conflict"
    INTERNAL = "internal"


@dataclass(frozen=True)
class RecalculationError:
    """Machine-readable description of a failed recalculation."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


@dataclass(frozen=True)
class RecalculationResult:
    """Result of a settlement recalculation."""

    status: RecalculationStatus
    settlement_id: UUID
    settlement: SettlementInfo | None = None
    line_items: tuple[LineItemInfo, ...] = ()
    audit_record: dict[str, Any] | None = None
    warnings: tuple[DataQualityWarning, ...] = ()
    error: RecalculationError | None = None

    @property
    def is_success(self) -> bool:
        return self.status == RecalculationStatus.CALCULATED


def _error_status(exc: Exception) -> RecalculationStatus:
    match exc:
        case SettlementNotFoundError():
            return RecalculationStatus.NOT_FOUND
        case SettlementNotDraftError():
            return RecalculationStatus.INVALID_STATE
        case InvalidPolicyError():
            return RecalculationStatus.INVALID_POLICY
        case NoProductionDataError():
            return RecalculationStatus.NO_DATA
        case AmbiguousOperatorAssignmentError():
            return RecalculationStatus.DATA_INTEGRITY
        case OptimisticLockError():
            return RecalculationStatus.CONFLICT
        case _:
            return RecalculationStatus.INTERNAL


def _error_details(exc: EnergyKernelError) -> dict[str, Any]:
    """Public attributes of a kernel exception, stringified for JSON."""
    details: dict[str, Any] = {}
    for key, value in vars(exc).items():
        if key.startswith("_"):
            continue
        if isinstance(value, (list, tuple)):
            details[key] = [str(v) for v in value]
        elif value is None or isinstance(value, (bool, int, str)):
            details[key] = value
        else:
            details[key] = str(value)
    return details


class SettlementRecalculationService:
    """
    Recalculates the revenue distribution of one settlement.

    Contract:
        ``recalculate`` takes a settlement id, the caller's tenant and the
        acting user, and returns a ``RecalculationResult`` that is either
        CALCULATED (with settlement, line items and audit record) or carries
        a status and error explaining why nothing was written.

    Guarantees:
        - Transaction safety: commit on success, rollback on failure (when
          auto_commit=True).  With auto_commit=False the writes run in a
          SAVEPOINT so a failure still leaves the caller's transaction as it
          was, and committing is left to the caller.
        - Concurrent calls for the same settlement serialize on the row
          lock; a stale version is reported as CONFLICT.
        - A settlement owned by another tenant is reported exactly like a
          missing one.

    Non-goals:
        - Does NOT create, invoice or close settlements.
        - Does NOT retry on conflict.

    Usage:
        service = SettlementRecalculationService(session, clock=clock)
        result = service.recalculate(settlement_id, tenant_id, actor_id)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: DistributionConfig | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_distribution_config()
        self._auto_commit = auto_commit

        self._settlements = SettlementService(session, self._clock)
        self._aggregator = ProductionAggregator(session, self._config)
        self._engine = DistributionEngine(self._config.precision())

    def recalculate(
        self,
        settlement_id: UUID,
        tenant_id: UUID,
        actor_id: UUID,
    ) -> RecalculationResult:
        """
        Recalculate the distribution of a DRAFT settlement.

        Postconditions:
            - On CALCULATED the settlement is CALCULATED, its line items are
              regenerated and ``calculation_details`` holds the audit record.
            - On any other status nothing was written.

        Args:
            settlement_id: Settlement to calculate.
            tenant_id: Tenant of the caller; other tenants' settlements are
                not visible.
            actor_id: User performing the calculation.

        Returns:
            RecalculationResult with status and artifacts.
        """
        warnings: list[DataQualityWarning] = []

        with LogContext.bind(
            correlation_id=str(_uuid4()),
            tenant_id=str(tenant_id),
            settlement_id=str(settlement_id),
            actor_id=str(actor_id),
        ):
            logger.info("settlement_recalculation_started")
            t0 = time.monotonic()

            try:
                result = self._do_recalculate(settlement_id, tenant_id, actor_id, warnings)
                if self._auto_commit:
                    self._session.commit()
            except Exception as exc:
                if self._auto_commit:
                    self._session.rollback()
                result = self._failure(exc, settlement_id, warnings)

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            if result.is_success:
                logger.info(
                    "settlement_recalculation_completed",
                    extra={
                        "status": result.status.value,
                        "duration_ms": duration_ms,
                        "line_item_count": len(result.line_items),
                        "warning_count": len(result.warnings),
                    },
                )
            else:
                logger.warning(
                    "settlement_recalculation_failed",
                    extra={
                        "status": result.status.value,
                        "duration_ms": duration_ms,
                        "error_code": result.error.code if result.error else None,
                    },
                )
            return result

    def _do_recalculate(
        self,
        settlement_id: UUID,
        tenant_id: UUID,
        actor_id: UUID,
        warnings: list[DataQualityWarning],
    ) -> RecalculationResult:
        """Internal recalculation logic (without transaction management)."""
        settlement = self._settlements.get_for_update(settlement_id, tenant_id)
        if settlement is None:
            raise SettlementNotFoundError(str(settlement_id))

        if settlement.status != SettlementStatus.DRAFT.value:
            raise SettlementNotDraftError(str(settlement_id), str(settlement.status))

        policy = build_policy(
            settlement.distribution_mode,
            smoothing_factor=settlement.smoothing_factor,
            tolerance_percentage=settlement.tolerance_percentage,
            defaults=self._config.policy_defaults(),
        )

        aggregation = self._aggregator.aggregate(
            tenant_id=tenant_id,
            park_id=settlement.park_id,
            year=settlement.year,
            month=settlement.month,
        )
        warnings.extend(aggregation.warnings)
        if aggregation.is_empty:
            raise NoProductionDataError(
                park_id=str(settlement.park_id),
                year=settlement.year,
                month=settlement.month,
                excluded_turbines=aggregation.excluded_count,
            )

        distribution = self._engine.distribute(
            facts=aggregation.facts,
            revenue=settlement.net_operator_revenue_eur,
            policy=policy,
        )

        drafts = [
            LineItemDraft(
                position=line.position,
                turbine_id=line.turbine_id,
                recipient_fund_id=line.operator_fund_id,
                production_share_kwh=line.production_kwh,
                production_share_pct=line.production_share_pct,
                revenue_share_eur=line.revenue_share_eur,
                distribution_key=line.distribution_key,
                average_production_kwh=line.average_production_kwh,
                deviation_kwh=line.deviation_kwh,
                tolerance_adjustment_eur=line.tolerance_adjustment_eur,
            )
            for line in distribution.lines
        ]
        calculated_at = self._clock.now()
        audit_record = self._build_audit_record(
            settlement, aggregation, distribution, drafts, calculated_at
        )

        # Without auto_commit the row lock and reads run in the caller's
        # transaction; only the writes get a SAVEPOINT.  pysqlite commits when
        # the savepoint is released, so its rollback path needs PostgreSQL.
        writes = nullcontext() if self._auto_commit else self._session.begin_nested()
        with writes:
            items = self._settlements.replace_line_items(settlement, drafts, actor_id)
            self._settlements.mark_calculated(
                settlement,
                total_production_kwh=distribution.total_production_kwh,
                calculation_details=audit_record,
                actor_id=actor_id,
                calculated_at=calculated_at,
            )

        return RecalculationResult(
            status=RecalculationStatus.CALCULATED,
            settlement_id=settlement_id,
            settlement=SettlementInfo.from_model(settlement),
            line_items=tuple(LineItemInfo.from_model(item) for item in items),
            audit_record=audit_record,
            warnings=tuple(warnings),
        )

    def _build_audit_record(
        self,
        settlement: EnergySettlement,
        aggregation: AggregationResult,
        distribution: DistributionResult,
        drafts: list[LineItemDraft],
        calculated_at: datetime,
    ) -> dict[str, Any]:
        """JSON-safe description of the calculation; all Decimals as strings."""
        mode = distribution.mode.value
        input_fingerprint = hash_distribution_input(
            mode,
            distribution.parameters,
            settlement.net_operator_revenue_eur,
            [fact.to_dict() for fact in aggregation.facts],
        )
        result_fingerprint = hash_line_items(
            [
                {
                    "position": d.position,
                    "turbine_id": str(d.turbine_id),
                    "recipient_fund_id": str(d.recipient_fund_id),
                    "production_share_kwh": d.production_share_kwh,
                    "production_share_pct": d.production_share_pct,
                    "revenue_share_eur": d.revenue_share_eur,
                    "distribution_key": d.distribution_key,
                    "average_production_kwh": d.average_production_kwh,
                    "deviation_kwh": d.deviation_kwh,
                    "tolerance_adjustment_eur": d.tolerance_adjustment_eur,
                }
                for d in drafts
            ]
        )

        return {
            "mode": mode,
            "parameters": dict(distribution.parameters),
            "calculated_at": calculated_at.isoformat(),
            "total_production_kwh": str(distribution.total_production_kwh),
            "average_production_kwh": str(distribution.average_production_kwh),
            "price_per_kwh": str(distribution.price_per_kwh),
            "net_operator_revenue_eur": str(distribution.net_revenue_eur),
            "turbine_count": distribution.turbine_count,
            "turbines": [line.to_dict() for line in distribution.lines],
            "distribution_steps": [step.to_dict() for step in distribution.steps],
            "operator_summary": [
                summary.to_dict() for summary in summarize_by_operator(distribution.lines)
            ],
            "total_distributed_eur": str(distribution.total_distributed_eur),
            "rounding_drift_eur": str(distribution.rounding_drift_eur),
            "warnings": [warning.to_dict() for warning in aggregation.warnings],
            "input_fingerprint": input_fingerprint,
            "result_fingerprint": result_fingerprint,
            "engine_version": ENGINE_VERSION,
            "config_checksum": self._config.checksum,
        }

    def _failure(
        self,
        exc: Exception,
        settlement_id: UUID,
        warnings: list[DataQualityWarning],
    ) -> RecalculationResult:
        """Map an exception to a failed RecalculationResult."""
        if isinstance(exc, StaleDataError):
            exc = OptimisticLockError("EnergySettlement", str(settlement_id))

        status = _error_status(exc)
        if isinstance(exc, EnergyKernelError):
            error = RecalculationError(
                code=exc.code, message=str(exc), details=_error_details(exc)
            )
        else:
            error = RecalculationError(
                code="INTERNAL_ERROR",
                message=INTERNAL_ERROR_MESSAGE,
            )

        if status == RecalculationStatus.INTERNAL:
            logger.error(
                "settlement_recalculation_internal_error",
                extra={"error_type": type(exc).__name__},
                exc_info=exc,
            )

        return RecalculationResult(
            status=status,
            settlement_id=settlement_id,
            warnings=tuple(warnings),
            error=error,
        )
