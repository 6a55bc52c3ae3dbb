"""
Typed Exception Hierarchy for the Energy Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A revenue distribution that goes wrong pays the wrong amount to a real
counterparty.  Callers (the recalculation orchestrator, request handlers,
batch jobs) must be able to tell "settlement not found" from "no production
data" from "unknown policy" without parsing message strings.

Every exception therefore has:
  1. A TYPED class (catch by type, not by message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        policy = build_policy(mode, smoothing_factor, tolerance_percentage)
    except PolicyParameterOutOfRangeError as e:
        api_response(code=e.code, parameter=e.parameter, value=e.value)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    EnergyKernelError (base)
    |
    +-- SettlementError
    |   +-- SettlementNotFoundError
    |   +-- SettlementNotDraftError
    |
    +-- PolicyError
    |   +-- InvalidPolicyError
    |       +-- UnknownDistributionModeError
    |       +-- PolicyParameterOutOfRangeError
    |
    +-- ProductionDataError
    |   +-- NoProductionDataError
    |   +-- AmbiguousOperatorAssignmentError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                           | When Raised
-------------|--------------------------------|---------------------------------------
Settlement   | SETTLEMENT_NOT_FOUND           | Unknown id, or id of another tenant
             | SETTLEMENT_NOT_DRAFT           | Recalculation of a non-DRAFT settlement
-------------|--------------------------------|---------------------------------------
Policy       | UNKNOWN_DISTRIBUTION_MODE      | Mode is not one of the three policies
             | POLICY_PARAMETER_OUT_OF_RANGE  | Smoothing factor / tolerance out of range
-------------|--------------------------------|---------------------------------------
Production   | NO_PRODUCTION_DATA             | No usable facts for the period
             | AMBIGUOUS_OPERATOR_ASSIGNMENT  | Turbine has >1 current operator
-------------|--------------------------------|---------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT       | Settlement modified concurrently

===============================================================================
"""


class EnergyKernelError(Exception):
    """
    Base exception for all energy kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "ENERGY_KERNEL_ERROR"


# Settlement-related exceptions


class SettlementError(EnergyKernelError):
    """Base exception for settlement lookup and lifecycle errors."""

    code: str = "SETTLEMENT_ERROR"


class SettlementNotFoundError(SettlementError):
    """
    Settlement does not exist within the caller's tenant scope.

    Raised both for unknown ids and for ids owned by another tenant, so the
    two cases are indistinguishable to the caller.
    """

    code: str = "SETTLEMENT_NOT_FOUND"

    def __init__(self, settlement_id: str):
        self.settlement_id = settlement_id
        super().__init__(f"Energy settlement not found: {settlement_id}")


class SettlementNotDraftError(SettlementError):
    """Settlement is not in DRAFT status and cannot be recalculated."""

    code: str = "SETTLEMENT_NOT_DRAFT"

    def __init__(self, settlement_id: str, status: str):
        self.settlement_id = settlement_id
        self.status = status
        super().__init__(
            f"Only DRAFT settlements can be calculated: "
            f"settlement {settlement_id} is {status}"
        )


# Policy-related exceptions


class PolicyError(EnergyKernelError):
    """Base exception for distribution policy errors."""

    code: str = "POLICY_ERROR"


class InvalidPolicyError(PolicyError):
    """Distribution policy or its parameters are invalid."""

    code: str = "INVALID_POLICY"


class UnknownDistributionModeError(InvalidPolicyError):
    """Distribution mode is not a supported policy."""

    code: str = "UNKNOWN_DISTRIBUTION_MODE"

    def __init__(self, mode: str, supported: tuple[str, ...]):
        self.mode = mode
        self.supported = supported
        super().__init__(
            f"Unknown distribution mode '{mode}'. "
            f"Supported: {', '.join(supported)}"
        )


class PolicyParameterOutOfRangeError(InvalidPolicyError):
    """A policy parameter lies outside its permitted closed interval."""

    code: str = "POLICY_PARAMETER_OUT_OF_RANGE"

    def __init__(self, parameter: str, value: str, minimum: str, maximum: str):
        self.parameter = parameter
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"{parameter}={value} is outside the range [{minimum}, {maximum}]"
        )


# Production data exceptions


class ProductionDataError(EnergyKernelError):
    """Base exception for production data problems."""

    code: str = "PRODUCTION_DATA_ERROR"


class NoProductionDataError(ProductionDataError):
    """
    No usable production facts exist for the settlement period.

    Covers both "nothing recorded" and "every turbine was excluded for lack
    of a current operator".
    """

    code: str = "NO_PRODUCTION_DATA"

    def __init__(
        self,
        park_id: str | None = None,
        year: int | None = None,
        month: int | None = None,
        excluded_turbines: int = 0,
    ):
        self.park_id = park_id
        self.year = year
        self.month = month
        self.excluded_turbines = excluded_turbines
        detail = (
            f" ({excluded_turbines} turbine(s) excluded without a current operator)"
            if excluded_turbines
            else ""
        )
        if park_id is None or year is None:
            message = f"No production data to distribute{detail}"
        else:
            period = f"{month:02d}/{year}" if month else str(year)
            message = f"No production data for park {park_id} in period {period}{detail}"
        super().__init__(message)


class AmbiguousOperatorAssignmentError(ProductionDataError):
    """
    A turbine has more than one currently active operator assignment.

    This is a data-integrity anomaly: revenue cannot be attributed to a
    single operator fund.
    """

    code: str = "AMBIGUOUS_OPERATOR_ASSIGNMENT"

    def __init__(self, turbine_id: str, operator_fund_ids: list[str]):
        self.turbine_id = turbine_id
        self.operator_fund_ids = operator_fund_ids
        super().__init__(
            f"Turbine {turbine_id} has {len(operator_fund_ids)} current operator "
            f"assignments: {', '.join(operator_fund_ids)}"
        )


# Concurrency-related exceptions


class ConcurrencyError(EnergyKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
