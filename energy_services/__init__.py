"""
energy_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure engines (energy_engines/)
    with database sessions and configuration.  This is the only layer that
    commits or rolls back transactions.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        energy_services/ -> energy_engines/  (allowed)
        energy_services/ -> energy_kernel/   (allowed)
        energy_services/ -> energy_config/   (allowed)
        energy_engines/  -> energy_services/ (FORBIDDEN)
        energy_kernel/   -> energy_services/ (FORBIDDEN)
"""

from energy_services.production_aggregator import ProductionAggregator
from energy_services.settlement_recalculation import (
    RecalculationError,
    RecalculationResult,
    RecalculationStatus,
    SettlementRecalculationService,
)

__all__ = [
    "ProductionAggregator",
    "RecalculationError",
    "RecalculationResult",
    "RecalculationStatus",
    "SettlementRecalculationService",
]
