"""
Pytest fixtures for the energy distribution test suite.

Provides:
- In-memory SQLite sessions (one fresh database per test)
- A deterministic clock and a fixed test actor
- ``park_builder`` for seeding funds, turbines, assignments, production
  and settlements
- ``captured_logs`` for asserting on structured log output
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from energy_config import DistributionConfig
from energy_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from energy_kernel.domain.clock import DeterministicClock
from energy_kernel.domain.dtos import (
    AssignmentStatus,
    ProductionSource,
    ProductionStatus,
    SettlementStatus,
)
from energy_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from energy_kernel.models import (
    EnergySettlement,
    OperatorFund,
    Turbine,
    TurbineOperatorAssignment,
    TurbineProduction,
)

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

FIXED_NOW = datetime(2024, 3, 1, 9, 30, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture energy_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, recalculation_service):
            recalculation_service.recalculate(...)
            logs = captured_logs()
            assert any(r["message"] == "settlement_recalculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("energy_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Fresh in-memory SQLite database with all energy tables."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing."""
    sess = get_session()
    yield sess
    sess.close()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test database, for multi-session tests."""
    return get_session_factory()


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


# Clock fixtures


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock(fixed_time=FIXED_NOW)


# Config fixtures


@pytest.fixture
def distribution_config() -> DistributionConfig:
    """Built-in defaults, independent of ENERGY_DISTRIBUTION_CONFIG."""
    return DistributionConfig()


# =============================================================================
# Seed data
# =============================================================================


class ParkBuilder:
    """
    Seeds one wind park for one tenant.

    Every method flushes, so returned rows have ids.  Nothing is committed;
    tests commit through the service under test or explicitly.
    """

    def __init__(self, session: Session, tenant_id: UUID, actor_id: UUID):
        self.session = session
        self.tenant_id = tenant_id
        self.actor_id = actor_id
        self.park_id = uuid4()

    def _add(self, row):
        self.session.add(row)
        self.session.flush()
        return row

    def fund(self, name: str) -> OperatorFund:
        return self._add(
            OperatorFund(tenant_id=self.tenant_id, name=name, created_by_id=self.actor_id)
        )

    def assign(
        self,
        turbine: Turbine,
        fund: OperatorFund,
        valid_from: date = date(2020, 1, 1),
        valid_to: date | None = None,
        status: AssignmentStatus = AssignmentStatus.ACTIVE,
    ) -> TurbineOperatorAssignment:
        return self._add(
            TurbineOperatorAssignment(
                turbine_id=turbine.id,
                operator_fund_id=fund.id,
                valid_from=valid_from,
                valid_to=valid_to,
                status=status.value,
                created_by_id=self.actor_id,
            )
        )

    def turbine(self, designation: str, operator: OperatorFund | None = None) -> Turbine:
        """Create a turbine; with ``operator`` it gets an open assignment."""
        turbine = self._add(
            Turbine(
                tenant_id=self.tenant_id,
                park_id=self.park_id,
                designation=designation,
                created_by_id=self.actor_id,
            )
        )
        if operator is not None:
            self.assign(turbine, operator)
        return turbine

    def production(
        self,
        turbine: Turbine,
        kwh: str | Decimal,
        year: int = 2024,
        month: int = 1,
        status: ProductionStatus = ProductionStatus.CONFIRMED,
        source: ProductionSource = ProductionSource.MANUAL,
    ) -> TurbineProduction:
        return self._add(
            TurbineProduction(
                tenant_id=self.tenant_id,
                turbine_id=turbine.id,
                year=year,
                month=month,
                production_kwh=Decimal(kwh),
                source=source.value,
                status=status.value,
                created_by_id=self.actor_id,
            )
        )

    def settlement(
        self,
        revenue: str | Decimal,
        mode: str = "PROPORTIONAL",
        year: int = 2024,
        month: int | None = 1,
        smoothing_factor: str | Decimal | None = None,
        tolerance_percentage: str | Decimal | None = None,
        status: SettlementStatus = SettlementStatus.DRAFT,
    ) -> EnergySettlement:
        return self._add(
            EnergySettlement(
                tenant_id=self.tenant_id,
                park_id=self.park_id,
                year=year,
                month=month,
                net_operator_revenue_eur=Decimal(revenue),
                distribution_mode=mode,
                smoothing_factor=None if smoothing_factor is None else Decimal(smoothing_factor),
                tolerance_percentage=(
                    None if tolerance_percentage is None else Decimal(tolerance_percentage)
                ),
                status=status.value,
                created_by_id=self.actor_id,
            )
        )


@pytest.fixture
def park_builder(session, tenant_id, test_actor_id) -> ParkBuilder:
    return ParkBuilder(session, tenant_id, test_actor_id)

