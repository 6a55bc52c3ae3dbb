"""
Module: energy_engines.distribution
Responsibility:
    Split a settlement's net operator revenue across turbines under one of
    the three distribution policies, and produce the intermediate figures
    and human-readable steps needed to explain the result.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes TurbineProductionFacts and a policy variant from
    energy_kernel.domain; consumed by the settlement recalculation service.

Invariants enforced:
    - Decimal-only arithmetic; no floats.
    - One DistributionLine per input fact, in input order.
    - Money is rounded per line with the deployment's Precision; no
      penny fix-up is applied, the drift is reported instead.
    - Zero total production never divides by zero: price and all shares
      resolve to 0.
    - SMOOTHED and TOLERATED divide by the explicit sum of their effective
      quantities.

Failure modes:
    - NoProductionDataError when called with no facts.

Audit relevance:
    DistributionResult.steps and the per-line effective quantities are
    written verbatim into the settlement's calculation_details.

Usage:
    from energy_engines.distribution import DistributionEngine
    from energy_kernel.domain.policies import SmoothedPolicy

    result = DistributionEngine().distribute(
        facts=aggregation.facts,
        revenue=Decimal("1000.00"),
        policy=SmoothedPolicy(Decimal("0.5")),
    )
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from energy_engines.tracer import traced_engine
from energy_kernel.domain.dtos import TurbineProductionFact
from energy_kernel.domain.policies import (
    DistributionMode,
    DistributionPolicy,
    ProportionalPolicy,
    SmoothedPolicy,
    ToleratedPolicy,
)
from energy_kernel.domain.values import (
    DEFAULT_PRECISION,
    HUNDRED,
    ZERO,
    Precision,
    plain,
    quantize,
)
from energy_kernel.exceptions import NoProductionDataError
from energy_kernel.logging_config import get_logger

logger = get_logger("engines.distribution")

ENGINE_VERSION = "1.0"


@dataclass(frozen=True)
class DistributionStep:
    """One human-readable step of the calculation, for the audit record."""

    step: int
    description: str
    values: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"step": self.step, "description": self.description, "values": dict(self.values)}


@dataclass(frozen=True)
class DistributionLine:
    """
    One turbine's share of the revenue.

    Guarantees:
        - revenue_share_eur is rounded to the money precision.
        - average_production_kwh and deviation_kwh are None for PROPORTIONAL.
        - tolerance_adjustment_eur is set only for TOLERATED.
    """

    position: int
    turbine_id: UUID
    turbine_designation: str
    operator_fund_id: UUID
    operator_fund_name: str
    production_kwh: Decimal
    production_share_pct: Decimal
    effective_kwh: Decimal
    revenue_share_eur: Decimal
    distribution_key: str
    average_production_kwh: Decimal | None = None
    deviation_kwh: Decimal | None = None
    tolerance_adjustment_eur: Decimal | None = None
    within_tolerance: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        def _opt(value: Decimal | None) -> str | None:
            return None if value is None else str(value)

        return {
            "position": self.position,
            "turbine_id": str(self.turbine_id),
            "turbine_designation": self.turbine_designation,
            "operator_fund_id": str(self.operator_fund_id),
            "operator_fund_name": self.operator_fund_name,
            "production_kwh": str(self.production_kwh),
            "production_share_pct": str(self.production_share_pct),
            "effective_kwh": str(self.effective_kwh),
            "revenue_share_eur": str(self.revenue_share_eur),
            "distribution_key": self.distribution_key,
            "average_production_kwh": _opt(self.average_production_kwh),
            "deviation_kwh": _opt(self.deviation_kwh),
            "tolerance_adjustment_eur": _opt(self.tolerance_adjustment_eur),
            "within_tolerance": self.within_tolerance,
        }


@dataclass(frozen=True)
class DistributionResult:
    """
    Complete distribution of one settlement.

    Guarantees:
        - len(lines) equals the number of input facts.
        - rounding_drift_eur == total_distributed_eur - net_revenue_eur,
          bounded by half a money unit per line.
    """

    mode: DistributionMode
    parameters: dict[str, str]
    lines: tuple[DistributionLine, ...]
    net_revenue_eur: Decimal
    total_production_kwh: Decimal
    average_production_kwh: Decimal
    price_per_kwh: Decimal
    effective_total_kwh: Decimal
    total_distributed_eur: Decimal
    rounding_drift_eur: Decimal
    steps: tuple[DistributionStep, ...]

    @property
    def turbine_count(self) -> int:
        return len(self.lines)

    @property
    def total_share_pct(self) -> Decimal:
        return sum((line.production_share_pct for line in self.lines), ZERO)


@dataclass(frozen=True)
class OperatorSummary:
    """Totals of all lines paid to one operator fund."""

    operator_fund_id: UUID
    operator_fund_name: str
    turbine_count: int
    production_kwh: Decimal
    revenue_share_eur: Decimal
    tolerance_adjustment_eur: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "operator_fund_id": str(self.operator_fund_id),
            "operator_fund_name": self.operator_fund_name,
            "turbine_count": self.turbine_count,
            "production_kwh": str(self.production_kwh),
            "revenue_share_eur": str(self.revenue_share_eur),
            "tolerance_adjustment_eur": str(self.tolerance_adjustment_eur),
        }


def _ratio(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole, or 0 when whole is 0."""
    if whole == ZERO:
        return ZERO
    return part / whole


class DistributionEngine:
    """
    Distribute net operator revenue across turbines.

    Contract:
        Pure and deterministic.  Full precision is kept for all intermediate
        values; rounding happens once, when a figure leaves the engine.

    Guarantees:
        - PROPORTIONAL: share = kWh / total * revenue.
        - SMOOTHED: share = smoothed / sum(smoothed) * revenue with
          smoothed = kWh * (1 - f) + average * f.
        - TOLERATED: deviations within +/- average * t / 100 (inclusive)
          count as the average; larger deviations are clamped to the band
          edge and the excess is valued at the price per kWh.

    Non-goals:
        - Does not redistribute rounding remainders.
        - Does not resolve operators or read production.
    """

    def __init__(self, precision: Precision = DEFAULT_PRECISION):
        self._precision = precision

    @traced_engine(
        "distribution",
        ENGINE_VERSION,
        fingerprint_fields=("facts", "revenue", "policy"),
    )
    def distribute(
        self,
        facts: Sequence[TurbineProductionFact],
        revenue: Decimal,
        policy: DistributionPolicy,
    ) -> DistributionResult:
        """
        Distribute ``revenue`` across ``facts`` under ``policy``.

        Raises:
            NoProductionDataError: If ``facts`` is empty.
        """
        t0 = time.monotonic()
        if not facts:
            logger.warning("distribution_no_facts", extra={"mode": policy.mode.value})
            raise NoProductionDataError()

        logger.info(
            "distribution_started",
            extra={
                "mode": policy.mode.value,
                "turbine_count": len(facts),
                "revenue": str(revenue),
            },
        )

        total = sum((f.production_kwh for f in facts), ZERO)
        average = total / len(facts)
        price = _ratio(revenue, total)

        match policy:
            case ProportionalPolicy():
                lines, effective_total, policy_steps = self._proportional(
                    facts, revenue, total
                )
            case SmoothedPolicy(smoothing_factor=factor):
                lines, effective_total, policy_steps = self._smoothed(
                    facts, revenue, total, average, factor
                )
            case ToleratedPolicy(tolerance_percentage=tolerance):
                lines, effective_total, policy_steps = self._tolerated(
                    facts, revenue, total, average, price, tolerance
                )
            case _:
                raise TypeError(f"Unsupported distribution policy: {policy!r}")

        p = self._precision
        distributed = sum((line.revenue_share_eur for line in lines), ZERO)
        drift = distributed - p.money(revenue)

        steps = [
            DistributionStep(
                1,
                "Total production of all eligible turbines",
                {"total_production_kwh": str(p.kwh(total)), "turbine_count": str(len(facts))},
            ),
            DistributionStep(
                2,
                "Average production per turbine",
                {"average_production_kwh": str(p.kwh(average))},
            ),
            DistributionStep(
                3,
                "Price per kWh (net revenue / total production)",
                {
                    "price_per_kwh": str(p.price(price)),
                    "net_revenue_eur": str(p.money(revenue)),
                },
            ),
        ]
        for offset, (description, values) in enumerate(policy_steps):
            steps.append(DistributionStep(4 + offset, description, values))
        steps.append(
            DistributionStep(
                len(steps) + 1,
                f"Shares rounded per line to {p.money_unit} EUR ({p.rounding})",
                {"total_distributed_eur": str(distributed), "rounding_drift_eur": str(drift)},
            )
        )

        result = DistributionResult(
            mode=policy.mode,
            parameters=policy.parameters(),
            lines=tuple(lines),
            net_revenue_eur=p.money(revenue),
            total_production_kwh=p.kwh(total),
            average_production_kwh=p.kwh(average),
            price_per_kwh=p.price(price),
            effective_total_kwh=p.kwh(effective_total),
            total_distributed_eur=distributed,
            rounding_drift_eur=drift,
            steps=tuple(steps),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "distribution_completed",
            extra={
                "mode": policy.mode.value,
                "turbine_count": len(lines),
                "total_production_kwh": str(result.total_production_kwh),
                "total_distributed_eur": str(distributed),
                "rounding_drift_eur": str(drift),
                "duration_ms": duration_ms,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Policy implementations
    # ------------------------------------------------------------------

    def _share_pct(self, kwh: Decimal, total: Decimal) -> Decimal:
        return self._precision.percent(_ratio(kwh, total) * HUNDRED)

    def _key_pct(self, value: Decimal) -> str:
        return str(quantize(value, 2, self._precision.rounding))

    def _proportional(
        self,
        facts: Sequence[TurbineProductionFact],
        revenue: Decimal,
        total: Decimal,
    ) -> tuple[list[DistributionLine], Decimal, list[tuple[str, dict[str, str]]]]:
        p = self._precision
        lines = []
        for position, fact in enumerate(facts, start=1):
            ratio = _ratio(fact.production_kwh, total)
            lines.append(
                DistributionLine(
                    position=position,
                    turbine_id=fact.turbine_id,
                    turbine_designation=fact.turbine_designation,
                    operator_fund_id=fact.operator_fund_id,
                    operator_fund_name=fact.operator_fund_name,
                    production_kwh=p.kwh(fact.production_kwh),
                    production_share_pct=self._share_pct(fact.production_kwh, total),
                    effective_kwh=p.kwh(fact.production_kwh),
                    revenue_share_eur=p.money(ratio * revenue),
                    distribution_key=f"PROPORTIONAL: {self._key_pct(ratio * HUNDRED)}%",
                )
            )
        steps = [("Proportional distribution by production share", {})]
        return lines, total, steps

    def _smoothed(
        self,
        facts: Sequence[TurbineProductionFact],
        revenue: Decimal,
        total: Decimal,
        average: Decimal,
        factor: Decimal,
    ) -> tuple[list[DistributionLine], Decimal, list[tuple[str, dict[str, str]]]]:
        p = self._precision
        keep = Decimal("1") - factor
        smoothed = [f.production_kwh * keep + average * factor for f in facts]
        smoothed_total = sum(smoothed, ZERO)

        lines = []
        for position, (fact, quantity) in enumerate(zip(facts, smoothed), start=1):
            ratio = _ratio(quantity, smoothed_total)
            lines.append(
                DistributionLine(
                    position=position,
                    turbine_id=fact.turbine_id,
                    turbine_designation=fact.turbine_designation,
                    operator_fund_id=fact.operator_fund_id,
                    operator_fund_name=fact.operator_fund_name,
                    production_kwh=p.kwh(fact.production_kwh),
                    production_share_pct=self._share_pct(fact.production_kwh, total),
                    effective_kwh=p.kwh(quantity),
                    revenue_share_eur=p.money(ratio * revenue),
                    distribution_key=(
                        f"SMOOTHED: {self._key_pct(ratio * HUNDRED)}% "
                        f"(smoothed {p.kwh(quantity)} kWh)"
                    ),
                    average_production_kwh=p.kwh(average),
                    deviation_kwh=p.kwh(fact.production_kwh - average),
                )
            )
        steps = [
            (
                f"Smoothing factor: {self._key_pct(factor * HUNDRED)}%",
                {"smoothing_factor": plain(factor)},
            ),
            (
                "Smoothed production = actual * (1 - f) + average * f",
                {"smoothed_total_kwh": str(p.kwh(smoothed_total))},
            ),
        ]
        return lines, smoothed_total, steps

    def _tolerated(
        self,
        facts: Sequence[TurbineProductionFact],
        revenue: Decimal,
        total: Decimal,
        average: Decimal,
        price: Decimal,
        tolerance: Decimal,
    ) -> tuple[list[DistributionLine], Decimal, list[tuple[str, dict[str, str]]]]:
        p = self._precision
        band = average * tolerance / HUNDRED

        effective: list[tuple[Decimal, Decimal, bool]] = []
        for fact in facts:
            deviation = fact.production_kwh - average
            if abs(deviation) <= band:
                effective.append((average, ZERO, True))
            elif deviation > ZERO:
                edge = average + band
                effective.append((edge, fact.production_kwh - edge, False))
            else:
                edge = average - band
                effective.append((edge, fact.production_kwh - edge, False))
        effective_total = sum((quantity for quantity, _, _ in effective), ZERO)

        lines = []
        for position, (fact, (quantity, excess, inside)) in enumerate(
            zip(facts, effective), start=1
        ):
            ratio = _ratio(quantity, effective_total)
            placement = "within tolerance" if inside else "outside tolerance"
            lines.append(
                DistributionLine(
                    position=position,
                    turbine_id=fact.turbine_id,
                    turbine_designation=fact.turbine_designation,
                    operator_fund_id=fact.operator_fund_id,
                    operator_fund_name=fact.operator_fund_name,
                    production_kwh=p.kwh(fact.production_kwh),
                    production_share_pct=self._share_pct(fact.production_kwh, total),
                    effective_kwh=p.kwh(quantity),
                    revenue_share_eur=p.money(ratio * revenue),
                    distribution_key=f"TOLERATED: {placement}",
                    average_production_kwh=p.kwh(average),
                    deviation_kwh=p.kwh(fact.production_kwh - average),
                    tolerance_adjustment_eur=p.money(excess * price),
                    within_tolerance=inside,
                )
            )
        outside = sum(1 for _, _, inside in effective if not inside)
        steps = [
            (
                f"Tolerance band: +/- {quantize(tolerance, 1, p.rounding)}%",
                {"tolerance_percentage": plain(tolerance), "band_kwh": str(p.kwh(band))},
            ),
            (
                "Production within the band counts as the average; outside it is "
                "clamped to the band edge",
                {
                    "within_count": str(len(facts) - outside),
                    "outside_count": str(outside),
                    "effective_total_kwh": str(p.kwh(effective_total)),
                },
            ),
        ]
        return lines, effective_total, steps


def summarize_by_operator(lines: Sequence[DistributionLine]) -> tuple[OperatorSummary, ...]:
    """
    Group distribution lines by operator fund.

    Returns:
        One OperatorSummary per fund, ordered by fund name, then fund id.
    """
    groups: dict[UUID, list[DistributionLine]] = {}
    for line in lines:
        groups.setdefault(line.operator_fund_id, []).append(line)

    summaries = [
        OperatorSummary(
            operator_fund_id=fund_id,
            operator_fund_name=members[0].operator_fund_name,
            turbine_count=len(members),
            production_kwh=sum((m.production_kwh for m in members), ZERO),
            revenue_share_eur=sum((m.revenue_share_eur for m in members), ZERO),
            tolerance_adjustment_eur=sum(
                (m.tolerance_adjustment_eur or ZERO for m in members), ZERO
            ),
        )
        for fund_id, members in groups.items()
    ]
    summaries.sort(key=lambda s: (s.operator_fund_name, str(s.operator_fund_id)))
    return tuple(summaries)
