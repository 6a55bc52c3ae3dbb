"""Tests for ProductionSelector and SettlementSelector read paths."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from energy_kernel.domain.dtos import AssignmentStatus, ProductionStatus
from energy_kernel.selectors.production_selector import ProductionSelector
from energy_kernel.selectors.settlement_selector import SettlementSelector


class TestProductionRecords:

    def test_rows_ordered_by_designation(self, session, park_builder, tenant_id):
        b = park_builder.turbine("WEA-02")
        a = park_builder.turbine("WEA-01")
        park_builder.production(b, "20")
        park_builder.production(a, "10")
        park_builder.production(a, "5")

        records = ProductionSelector(session).production_records(
            tenant_id, park_builder.park_id, 2024, 1
        )

        assert [r.turbine_designation for r in records] == ["WEA-01", "WEA-01", "WEA-02"]
        assert [r.production_kwh for r in records] == [
            Decimal("10"),
            Decimal("5"),
            Decimal("20"),
        ]

    def test_status_filter_accepts_strings(self, session, park_builder, tenant_id):
        turbine = park_builder.turbine("WEA-01")
        park_builder.production(turbine, "1", status=ProductionStatus.DRAFT)
        park_builder.production(turbine, "2", status=ProductionStatus.INVOICED)

        records = ProductionSelector(session).production_records(
            tenant_id, park_builder.park_id, 2024, 1, statuses=["INVOICED"]
        )

        assert [r.status for r in records] == [ProductionStatus.INVOICED]

    def test_tenant_isolation(self, session, park_builder):
        park_builder.production(park_builder.turbine("WEA-01"), "10")

        records = ProductionSelector(session).production_records(
            uuid4(), park_builder.park_id, 2024, 1
        )

        assert records == ()


class TestOperatorAssignments:

    def test_returns_current_and_historical(self, session, park_builder, tenant_id):
        old = park_builder.fund("Old")
        new = park_builder.fund("New")
        turbine = park_builder.turbine("WEA-01")
        park_builder.assign(
            turbine,
            old,
            valid_from=date(2019, 1, 1),
            valid_to=date(2022, 12, 31),
            status=AssignmentStatus.HISTORICAL,
        )
        park_builder.assign(turbine, new, valid_from=date(2023, 1, 1))

        assignments = ProductionSelector(session).operator_assignments(tenant_id, [turbine.id])

        assert [a.operator_fund_name for a in assignments] == ["Old", "New"]
        assert [a.is_current for a in assignments] == [False, True]

    def test_no_turbines_no_query(self, session, tenant_id):
        assert ProductionSelector(session).operator_assignments(tenant_id, []) == ()


class TestSettlementSelector:

    def test_other_tenant_sees_none(self, session, park_builder, tenant_id):
        settlement = park_builder.settlement("1000")
        selector = SettlementSelector(session)

        assert selector.get(settlement.id, tenant_id) is not None
        assert selector.get(settlement.id, uuid4()) is None

    def test_no_items_before_calculation(self, session, park_builder):
        settlement = park_builder.settlement("1000")

        assert SettlementSelector(session).line_items(settlement.id) == ()
