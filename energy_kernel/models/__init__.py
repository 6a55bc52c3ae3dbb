"""Domain models for the energy kernel."""

from energy_kernel.models.fleet import OperatorFund, Turbine, TurbineOperatorAssignment
from energy_kernel.models.production import TurbineProduction
from energy_kernel.models.settlement import EnergySettlement, EnergySettlementItem

__all__ = [
    "OperatorFund",
    "Turbine",
    "TurbineOperatorAssignment",
    "TurbineProduction",
    "EnergySettlement",
    "EnergySettlementItem",
]
