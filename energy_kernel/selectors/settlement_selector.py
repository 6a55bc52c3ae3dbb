"""
Module: energy_kernel.selectors.settlement_selector
Responsibility: Tenant-scoped read access to settlements and their line items.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - A settlement of another tenant is indistinguishable from a missing one.
"""

from uuid import UUID

from sqlalchemy import select

from energy_kernel.domain.dtos import LineItemInfo, SettlementInfo
from energy_kernel.models.settlement import EnergySettlement, EnergySettlementItem
from energy_kernel.selectors.base import BaseSelector


class SettlementSelector(BaseSelector[EnergySettlement]):
    """Read settlements and line items as DTOs."""

    def get(self, settlement_id: UUID, tenant_id: UUID) -> SettlementInfo | None:
        model = self._one_or_none(
            select(EnergySettlement).where(
                EnergySettlement.id == settlement_id,
                EnergySettlement.tenant_id == tenant_id,
            )
        )
        return SettlementInfo.from_model(model) if model is not None else None

    def line_items(self, settlement_id: UUID) -> tuple[LineItemInfo, ...]:
        rows = self.session.execute(
            select(EnergySettlementItem)
            .where(EnergySettlementItem.settlement_id == settlement_id)
            .order_by(EnergySettlementItem.position)
        ).scalars()
        return tuple(LineItemInfo.from_model(row) for row in rows)
