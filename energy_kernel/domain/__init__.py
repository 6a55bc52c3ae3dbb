"""
Pure domain layer.

Data transfer objects, policy variants, rounding helpers and the clock
abstraction.  Nothing here touches the ORM or the database.
"""

from energy_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from energy_kernel.domain.dtos import (
    AssignmentStatus,
    DataQualityWarning,
    LineItemDraft,
    LineItemInfo,
    OperatorAssignmentRecord,
    ProductionRecord,
    ProductionSource,
    ProductionStatus,
    SettlementInfo,
    SettlementStatus,
    TurbineProductionFact,
    TurbineStatus,
    WarningCode,
)
from energy_kernel.domain.policies import (
    DistributionMode,
    DistributionPolicy,
    PolicyDefaults,
    ProportionalPolicy,
    SmoothedPolicy,
    ToleratedPolicy,
    build_policy,
)
from energy_kernel.domain.values import DEFAULT_PRECISION, Precision, to_decimal

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "AssignmentStatus",
    "DataQualityWarning",
    "LineItemDraft",
    "LineItemInfo",
    "OperatorAssignmentRecord",
    "ProductionRecord",
    "ProductionSource",
    "ProductionStatus",
    "SettlementInfo",
    "SettlementStatus",
    "TurbineProductionFact",
    "TurbineStatus",
    "WarningCode",
    "DistributionMode",
    "DistributionPolicy",
    "PolicyDefaults",
    "ProportionalPolicy",
    "SmoothedPolicy",
    "ToleratedPolicy",
    "build_policy",
    "DEFAULT_PRECISION",
    "Precision",
    "to_decimal",
]
