"""Read-only query selectors."""

from energy_kernel.selectors.base import BaseSelector
from energy_kernel.selectors.production_selector import ProductionSelector
from energy_kernel.selectors.settlement_selector import SettlementSelector

__all__ = [
    "BaseSelector",
    "ProductionSelector",
    "SettlementSelector",
]
