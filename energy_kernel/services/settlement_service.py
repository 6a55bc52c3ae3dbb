"""
SettlementService -- write-side persistence for settlement calculations.

Responsibility:
    Locks a settlement row, replaces its generated line items, and stamps
    the calculation summary onto the settlement header.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the settlement
    recalculation orchestrator, which owns the transaction.

Invariants enforced:
    - Tenant isolation: lookups always filter on tenant_id.
    - Concurrent recalculations serialize on ``SELECT ... FOR UPDATE``.
    - Line items are replaced wholesale; old and new items never coexist
      after a flush.
    - The version column is bumped by the ORM on every header update.

Failure modes:
    - StaleDataError on flush when the settlement version changed under us.
"""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from energy_kernel.domain.clock import Clock, SystemClock
from energy_kernel.domain.dtos import LineItemDraft, SettlementStatus
from energy_kernel.models.settlement import EnergySettlement, EnergySettlementItem
from energy_kernel.services.base import BaseService


class SettlementService(BaseService[EnergySettlement]):
    """
    Service for writing calculation results to a settlement.

    Contract:
        Methods operate on the ORM row returned by ``get_for_update`` and
        flush within the caller's transaction.

    Non-goals:
        - Does NOT decide whether a settlement may be calculated.
        - Does NOT create, invoice or close settlements.
    """

    logger_name = "services.settlement"

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def get_for_update(
        self,
        settlement_id: UUID,
        tenant_id: UUID,
    ) -> EnergySettlement | None:
        """
        Load a settlement with a row lock, or None if not visible to tenant.

        Attributes are refreshed from the locked row even when the settlement
        is already in the identity map.
        """
        return self.session.execute(
            select(EnergySettlement)
            .where(
                EnergySettlement.id == settlement_id,
                EnergySettlement.tenant_id == tenant_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def replace_line_items(
        self,
        settlement: EnergySettlement,
        drafts: Sequence[LineItemDraft],
        actor_id: UUID,
    ) -> list[EnergySettlementItem]:
        """
        Delete all existing items of ``settlement`` and insert ``drafts``.

        The delete is flushed before the inserts so that the
        (settlement_id, position) unique constraint never sees both sets.
        """
        removed = len(settlement.items)
        settlement.items.clear()
        self.session.flush()

        items = [
            EnergySettlementItem(
                settlement_id=settlement.id,
                position=draft.position,
                turbine_id=draft.turbine_id,
                recipient_fund_id=draft.recipient_fund_id,
                production_share_kwh=draft.production_share_kwh,
                production_share_pct=draft.production_share_pct,
                revenue_share_eur=draft.revenue_share_eur,
                distribution_key=draft.distribution_key,
                average_production_kwh=draft.average_production_kwh,
                deviation_kwh=draft.deviation_kwh,
                tolerance_adjustment_eur=draft.tolerance_adjustment_eur,
                created_by_id=actor_id,
            )
            for draft in drafts
        ]
        settlement.items.extend(items)
        self._flush(
            "settlement_items_replaced",
            settlement_id=str(settlement.id),
            removed=removed,
            inserted=len(items),
        )
        return items

    def mark_calculated(
        self,
        settlement: EnergySettlement,
        total_production_kwh: Decimal,
        calculation_details: dict[str, Any],
        actor_id: UUID,
        calculated_at: datetime | None = None,
    ) -> EnergySettlement:
        """
        Stamp the calculation summary and move the settlement to CALCULATED.
        """
        previous_version = settlement.version
        settlement.total_production_kwh = total_production_kwh
        settlement.calculation_details = calculation_details
        settlement.calculated_at = calculated_at or self._clock.now()
        settlement.calculated_by_id = actor_id
        settlement.status = SettlementStatus.CALCULATED.value
        settlement.touch(actor_id)
        self._flush(
            "settlement_marked_calculated",
            settlement_id=str(settlement.id),
            previous_version=previous_version,
            total_production_kwh=str(total_production_kwh),
        )
        return settlement
