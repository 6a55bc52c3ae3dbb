"""
Module: energy_engines
Responsibility:
    Pure calculation engines for revenue distribution: production
    aggregation with current-operator resolution, and the three-policy
    distribution engine.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import energy_kernel.domain, exceptions and logging only.
    MUST NOT import energy_services.

Invariants enforced:
    - Engines never read the clock; timestamps are supplied by services.
    - Decimal-only arithmetic.
    - Identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation emits an ENERGY_ENGINE_TRACE record
    (see ``energy_engines.tracer``).
"""

from energy_engines.distribution import (
    DistributionEngine,
    DistributionLine,
    DistributionResult,
    DistributionStep,
    OperatorSummary,
    summarize_by_operator,
)
from energy_engines.production import (
    AggregationResult,
    AmbiguousOperatorPolicy,
    OperatorResolution,
    ResolutionStatus,
    aggregate_production,
    resolve_current_operator,
)
from energy_engines.tracer import traced_engine

__all__ = [
    "AggregationResult",
    "AmbiguousOperatorPolicy",
    "OperatorResolution",
    "ResolutionStatus",
    "aggregate_production",
    "resolve_current_operator",
    "DistributionEngine",
    "DistributionLine",
    "DistributionResult",
    "DistributionStep",
    "OperatorSummary",
    "summarize_by_operator",
    "traced_engine",
]
