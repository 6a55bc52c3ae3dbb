"""
Tests for SettlementRecalculationService.

Exercises the full path from a DRAFT settlement row to persisted line
items and audit record against in-memory SQLite, and every failure status
the service reports.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.orm.exc import StaleDataError

from energy_config import DistributionConfig
from energy_kernel.domain.dtos import AssignmentStatus, SettlementStatus
from energy_kernel.models import EnergySettlement, Turbine
from energy_kernel.selectors.settlement_selector import SettlementSelector
from energy_kernel.services.settlement_service import SettlementService
from energy_services import RecalculationStatus, SettlementRecalculationService
from tests.conftest import FIXED_NOW

AUDIT_KEYS = {
    "mode",
    "parameters",
    "calculated_at",
    "total_production_kwh",
    "average_production_kwh",
    "price_per_kwh",
    "net_operator_revenue_eur",
    "turbine_count",
    "turbines",
    "distribution_steps",
    "operator_summary",
    "total_distributed_eur",
    "rounding_drift_eur",
    "warnings",
    "input_fingerprint",
    "result_fingerprint",
    "engine_version",
    "config_checksum",
}


@pytest.fixture
def service(session, deterministic_clock, distribution_config):
    return SettlementRecalculationService(
        session, clock=deterministic_clock, config=distribution_config
    )


@pytest.fixture
def two_turbine_park(park_builder, session):
    """Fund A operates WEA-01 (600 kWh), fund B operates WEA-02 (400 kWh)."""
    fund_a = park_builder.fund("Fund A")
    fund_b = park_builder.fund("Fund B")
    park_builder.production(park_builder.turbine("WEA-01", operator=fund_a), "600")
    park_builder.production(park_builder.turbine("WEA-02", operator=fund_b), "400")
    session.commit()
    return park_builder


def _reset_to_draft(session, settlement_id):
    settlement = session.get(EnergySettlement, settlement_id)
    settlement.status = SettlementStatus.DRAFT.value
    session.commit()


class TestSuccessfulRecalculation:

    def test_proportional(self, service, session, two_turbine_park, tenant_id, test_actor_id):
        settlement = two_turbine_park.settlement("1000")
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.CALCULATED
        assert result.is_success
        assert result.error is None
        assert [i.revenue_share_eur for i in result.line_items] == [
            Decimal("600"),
            Decimal("400"),
        ]
        assert [i.distribution_key for i in result.line_items] == [
            "PROPORTIONAL: 60.00%",
            "PROPORTIONAL: 40.00%",
        ]
        assert result.settlement.status == SettlementStatus.CALCULATED
        assert result.settlement.calculated_at == FIXED_NOW
        assert result.settlement.calculated_by_id == test_actor_id
        assert result.settlement.total_production_kwh == Decimal("1000")
        assert result.settlement.version >= 2

    def test_changes_are_committed(
        self, service, session, two_turbine_park, tenant_id, test_actor_id
    ):
        settlement = two_turbine_park.settlement("1000")
        session.commit()

        service.recalculate(settlement.id, tenant_id, test_actor_id)
        session.expire_all()

        selector = SettlementSelector(session)
        stored = selector.get(settlement.id, tenant_id)
        items = selector.line_items(settlement.id)
        assert stored.status == SettlementStatus.CALCULATED
        assert stored.calculation_details["mode"] == "PROPORTIONAL"
        assert [i.position for i in items] == [1, 2]
        assert sum(i.revenue_share_eur for i in items) == Decimal("1000")

    def test_smoothed(self, service, session, two_turbine_park, tenant_id, test_actor_id):
        settlement = two_turbine_park.settlement("1000", mode="SMOOTHED", smoothing_factor="0.5")
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.is_success
        assert [i.revenue_share_eur for i in result.line_items] == [
            Decimal("550"),
            Decimal("450"),
        ]
        assert result.audit_record["parameters"] == {"smoothing_factor": "0.5"}

    def test_smoothed_without_factor_uses_configured_default(
        self, session, two_turbine_park, tenant_id, test_actor_id, deterministic_clock
    ):
        config = DistributionConfig(default_smoothing_factor=Decimal("1"))
        settlement = two_turbine_park.settlement("1000", mode="SMOOTHED")
        session.commit()

        result = SettlementRecalculationService(
            session, clock=deterministic_clock, config=config
        ).recalculate(settlement.id, tenant_id, test_actor_id)

        assert [i.revenue_share_eur for i in result.line_items] == [
            Decimal("500"),
            Decimal("500"),
        ]

    def test_tolerated(self, service, session, two_turbine_park, tenant_id, test_actor_id):
        settlement = two_turbine_park.settlement(
            "1000", mode="TOLERATED", tolerance_percentage="20"
        )
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.is_success
        first, second = result.line_items
        assert first.revenue_share_eur == Decimal("500")
        assert second.revenue_share_eur == Decimal("500")
        assert first.average_production_kwh == Decimal("500")
        assert first.deviation_kwh == Decimal("100")
        assert second.deviation_kwh == Decimal("-100")
        assert first.tolerance_adjustment_eur == Decimal("0")
        assert first.distribution_key == "TOLERATED: within tolerance"

    def test_annual_settlement(self, service, session, park_builder, tenant_id, test_actor_id):
        fund = park_builder.fund("Fund A")
        turbine = park_builder.turbine("WEA-01", operator=fund)
        park_builder.production(turbine, "100", month=1)
        park_builder.production(turbine, "300", month=7)
        settlement = park_builder.settlement("800", month=None)
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.is_success
        assert result.settlement.total_production_kwh == Decimal("400")
        assert result.line_items[0].revenue_share_eur == Decimal("800")


class TestAuditRecord:

    def test_audit_record_contents(
        self, service, session, two_turbine_park, tenant_id, test_actor_id, distribution_config
    ):
        settlement = two_turbine_park.settlement("1000")
        session.commit()

        record = service.recalculate(settlement.id, tenant_id, test_actor_id).audit_record

        assert set(record) == AUDIT_KEYS
        assert record["calculated_at"] == FIXED_NOW.isoformat()
        assert Decimal(record["total_production_kwh"]) == Decimal("1000")
        assert Decimal(record["average_production_kwh"]) == Decimal("500")
        assert Decimal(record["price_per_kwh"]) == Decimal("1")
        assert Decimal(record["net_operator_revenue_eur"]) == Decimal("1000")
        assert record["turbine_count"] == 2
        assert [t["turbine_designation"] for t in record["turbines"]] == ["WEA-01", "WEA-02"]
        assert len(record["operator_summary"]) == 2
        assert Decimal(record["rounding_drift_eur"]) == Decimal("0")
        assert record["warnings"] == []
        assert record["config_checksum"] == distribution_config.checksum
        assert len(record["input_fingerprint"]) == 64
        assert len(record["result_fingerprint"]) == 64

    def test_data_quality_warnings_recorded(
        self, service, session, park_builder, tenant_id, test_actor_id
    ):
        fund = park_builder.fund("Fund A")
        orphan = park_builder.turbine("WEA-03")
        park_builder.assign(
            orphan, fund, valid_to=date(2023, 12, 31), status=AssignmentStatus.HISTORICAL
        )
        park_builder.production(park_builder.turbine("WEA-01", operator=fund), "600")
        park_builder.production(park_builder.turbine("WEA-02", operator=fund), "400")
        park_builder.production(orphan, "250")
        settlement = park_builder.settlement("1000")
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.is_success
        assert len(result.line_items) == 2
        assert sum(i.revenue_share_eur for i in result.line_items) == Decimal("1000")
        assert [w.turbine_designation for w in result.warnings] == ["WEA-03"]
        (warning,) = result.audit_record["warnings"]
        assert warning["code"] == "NO_CURRENT_OPERATOR"
        assert warning["production_kwh"] == "250"


class TestIdempotence:

    def test_recalculating_unchanged_inputs_gives_identical_items(
        self, service, session, two_turbine_park, tenant_id, test_actor_id, deterministic_clock
    ):
        settlement = two_turbine_park.settlement(
            "1234.56", mode="TOLERATED", tolerance_percentage="5"
        )
        session.commit()
        selector = SettlementSelector(session)

        first = service.recalculate(settlement.id, tenant_id, test_actor_id)
        session.expire_all()
        first_items = [i.content() for i in selector.line_items(settlement.id)]
        first_ids = {i.id for i in selector.line_items(settlement.id)}

        _reset_to_draft(session, settlement.id)
        deterministic_clock.advance(3600)
        second = service.recalculate(settlement.id, tenant_id, test_actor_id)
        session.expire_all()
        second_items = selector.line_items(settlement.id)

        assert [i.content() for i in second_items] == first_items
        assert first_ids.isdisjoint({i.id for i in second_items})
        assert second.audit_record["input_fingerprint"] == first.audit_record["input_fingerprint"]
        assert (
            second.audit_record["result_fingerprint"] == first.audit_record["result_fingerprint"]
        )
        assert second.audit_record["calculated_at"] != first.audit_record["calculated_at"]

    def test_changed_production_changes_fingerprints(
        self, service, session, two_turbine_park, tenant_id, test_actor_id
    ):
        settlement = two_turbine_park.settlement("1000")
        session.commit()
        first = service.recalculate(settlement.id, tenant_id, test_actor_id)

        _reset_to_draft(session, settlement.id)
        turbine = session.get(Turbine, first.line_items[0].turbine_id)
        two_turbine_park.production(turbine, "100")
        session.commit()
        second = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert second.audit_record["input_fingerprint"] != first.audit_record["input_fingerprint"]
        assert second.line_items[0].revenue_share_eur == Decimal("636.36")


class TestFailures:

    def test_unknown_settlement(self, service, db_engine, tenant_id, test_actor_id):
        missing = uuid4()

        result = service.recalculate(missing, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.NOT_FOUND
        assert result.settlement_id == missing
        assert result.error.code == "SETTLEMENT_NOT_FOUND"
        assert result.line_items == ()

    def test_other_tenant_is_not_found(self, service, session, two_turbine_park, test_actor_id):
        settlement = two_turbine_park.settlement("1000")
        session.commit()

        result = service.recalculate(settlement.id, uuid4(), test_actor_id)

        assert result.status == RecalculationStatus.NOT_FOUND

    @pytest.mark.parametrize(
        "status", [SettlementStatus.CALCULATED, SettlementStatus.INVOICED, SettlementStatus.CLOSED]
    )
    def test_non_draft_is_invalid_state(
        self, service, session, two_turbine_park, tenant_id, test_actor_id, status
    ):
        settlement = two_turbine_park.settlement("1000", status=status)
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.INVALID_STATE
        assert result.error.code == "SETTLEMENT_NOT_DRAFT"
        assert result.error.details["status"] == status.value

    def test_unknown_mode_is_invalid_policy(
        self, service, session, two_turbine_park, tenant_id, test_actor_id
    ):
        settlement = two_turbine_park.settlement("1000", mode="WEIGHTED")
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.INVALID_POLICY
        assert result.error.code == "UNKNOWN_DISTRIBUTION_MODE"
        assert result.error.details["mode"] == "WEIGHTED"

    def test_lowercase_mode_is_invalid_policy(
        self, service, session, two_turbine_park, tenant_id, test_actor_id
    ):
        settlement = two_turbine_park.settlement("1000", mode="proportional")
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.INVALID_POLICY
        assert result.error.code == "UNKNOWN_DISTRIBUTION_MODE"
        session.expire_all()
        assert SettlementSelector(session).line_items(settlement.id) == ()

    def test_out_of_range_factor_is_invalid_policy(
        self, service, session, two_turbine_park, tenant_id, test_actor_id
    ):
        settlement = two_turbine_park.settlement("1000", mode="SMOOTHED", smoothing_factor="1.5")
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.INVALID_POLICY
        assert result.error.code == "POLICY_PARAMETER_OUT_OF_RANGE"

    def test_no_production(self, service, session, park_builder, tenant_id, test_actor_id):
        park_builder.turbine("WEA-01", operator=park_builder.fund("Fund A"))
        settlement = park_builder.settlement("1000")
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.NO_DATA
        assert result.error.details["excluded_turbines"] == 0

    def test_all_turbines_without_operator(
        self, service, session, park_builder, tenant_id, test_actor_id
    ):
        orphan = park_builder.turbine("WEA-01")
        park_builder.production(orphan, "500")
        settlement = park_builder.settlement("1000")
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.NO_DATA
        assert result.error.details["excluded_turbines"] == 1
        assert len(result.warnings) == 1

    def test_ambiguous_operator_is_data_integrity(
        self, service, session, park_builder, tenant_id, test_actor_id
    ):
        turbine = park_builder.turbine("WEA-01", operator=park_builder.fund("Fund A"))
        park_builder.assign(turbine, park_builder.fund("Fund B"))
        park_builder.production(turbine, "500")
        settlement = park_builder.settlement("1000")
        session.commit()

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.DATA_INTEGRITY
        assert result.error.code == "AMBIGUOUS_OPERATOR_ASSIGNMENT"
        session.expire_all()
        selector = SettlementSelector(session)
        assert selector.get(settlement.id, tenant_id).status == SettlementStatus.DRAFT
        assert selector.line_items(settlement.id) == ()

    def test_stale_version_is_conflict(
        self, service, session, two_turbine_park, tenant_id, test_actor_id, monkeypatch
    ):
        settlement = two_turbine_park.settlement("1000")
        session.commit()

        def stale(*args, **kwargs):
            raise StaleDataError("UPDATE statement on table 'energy_settlements' matched 0 rows")

        monkeypatch.setattr(SettlementService, "mark_calculated", stale)

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.CONFLICT
        assert result.error.code == "OPTIMISTIC_LOCK_CONFLICT"


class TestTransactionSafety:

    def test_failure_keeps_previous_items(
        self, service, session, two_turbine_park, tenant_id, test_actor_id, monkeypatch, captured_logs
    ):
        settlement = two_turbine_park.settlement("1000")
        session.commit()
        assert service.recalculate(settlement.id, tenant_id, test_actor_id).is_success
        _reset_to_draft(session, settlement.id)
        selector = SettlementSelector(session)
        before = {i.id for i in selector.line_items(settlement.id)}

        def boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(SettlementService, "mark_calculated", boom)

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)

        assert result.status == RecalculationStatus.INTERNAL
        assert result.error.code == "INTERNAL_ERROR"
        assert result.error.message == "Internal error during settlement calculation"
        assert "disk full" not in result.error.message
        session.expire_all()
        assert {i.id for i in selector.line_items(settlement.id)} == before
        assert selector.get(settlement.id, tenant_id).status == SettlementStatus.DRAFT

        (logged,) = [
            r for r in captured_logs() if r["message"] == "settlement_recalculation_internal_error"
        ]
        assert logged["error_type"] == "RuntimeError"
        assert logged["exc_message"] == "disk full"

    def test_without_auto_commit_caller_commits(
        self, session, two_turbine_park, tenant_id, test_actor_id, deterministic_clock
    ):
        settlement = two_turbine_park.settlement("1000")
        session.commit()
        service = SettlementRecalculationService(
            session,
            clock=deterministic_clock,
            config=DistributionConfig(),
            auto_commit=False,
        )

        result = service.recalculate(settlement.id, tenant_id, test_actor_id)
        session.commit()
        session.expire_all()

        assert result.is_success
        stored = SettlementSelector(session).get(settlement.id, tenant_id)
        assert stored.status == SettlementStatus.CALCULATED


class TestConcurrentRecalculation:

    def test_second_session_sees_first_result(
        self,
        session,
        session_factory,
        two_turbine_park,
        tenant_id,
        test_actor_id,
        deterministic_clock,
        distribution_config,
    ):
        settlement = two_turbine_park.settlement("1000")
        session.commit()

        with session_factory() as first, session_factory() as second:
            # Both sessions hold the DRAFT settlement before either calculates.
            assert first.get(EnergySettlement, settlement.id).status == SettlementStatus.DRAFT.value
            assert second.get(EnergySettlement, settlement.id).status == SettlementStatus.DRAFT.value
            first.commit()
            second.commit()

            results = [
                SettlementRecalculationService(
                    s, clock=deterministic_clock, config=distribution_config
                ).recalculate(settlement.id, tenant_id, test_actor_id)
                for s in (first, second)
            ]

        assert [r.status for r in results] == [
            RecalculationStatus.CALCULATED,
            RecalculationStatus.INVALID_STATE,
        ]
        session.expire_all()
        selector = SettlementSelector(session)
        stored = selector.line_items(settlement.id)
        assert {i.id for i in stored} == {i.id for i in results[0].line_items}
        assert len(stored) == 2
        assert selector.get(settlement.id, tenant_id).version == results[0].settlement.version


class TestLogging:

    def test_success_is_logged_with_context(
        self, service, session, two_turbine_park, tenant_id, test_actor_id, captured_logs
    ):
        settlement = two_turbine_park.settlement("1000")
        session.commit()

        service.recalculate(settlement.id, tenant_id, test_actor_id)

        records = {r["message"]: r for r in captured_logs()}
        started = records["settlement_recalculation_started"]
        completed = records["settlement_recalculation_completed"]
        assert started["settlement_id"] == str(settlement.id)
        assert started["tenant_id"] == str(tenant_id)
        assert started["actor_id"] == str(test_actor_id)
        assert completed["correlation_id"] == started["correlation_id"]
        assert completed["status"] == "calculated"
        assert completed["line_item_count"] == 2
        assert "duration_ms" in completed
        assert "settlement_items_replaced" in records

    def test_failure_is_logged_as_warning(
        self, service, db_engine, tenant_id, test_actor_id, captured_logs
    ):
        service.recalculate(uuid4(), tenant_id, test_actor_id)

        (failed,) = [
            r for r in captured_logs() if r["message"] == "settlement_recalculation_failed"
        ]
        assert failed["level"] == "WARNING"
        assert failed["status"] == "not_found"
        assert failed["error_code"] == "SETTLEMENT_NOT_FOUND"
