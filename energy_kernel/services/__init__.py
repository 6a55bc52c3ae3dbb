"""Kernel services (flush-only writers)."""

from energy_kernel.services.base import BaseService
from energy_kernel.services.settlement_service import SettlementService

__all__ = [
    "BaseService",
    "SettlementService",
]
