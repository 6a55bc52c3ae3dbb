"""
Policies -- the closed set of revenue distribution policies.

Responsibility:
    Defines DistributionMode and one frozen variant per mode, and builds the
    right variant from the raw fields stored on a settlement.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Consumed by energy_engines.distribution, which dispatches on the variant
    type exactly once.

Invariants enforced:
    - 0 <= smoothing_factor <= 1.
    - 0 <= tolerance_percentage <= 100.
    - Unknown modes are rejected before any computation starts.

Failure modes:
    - UnknownDistributionModeError for a mode outside DistributionMode.
    - PolicyParameterOutOfRangeError for a parameter outside its range.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from energy_kernel.domain.values import plain
from energy_kernel.exceptions import (
    PolicyParameterOutOfRangeError,
    UnknownDistributionModeError,
)

SMOOTHING_FACTOR_RANGE = (Decimal("0"), Decimal("1"))
TOLERANCE_PERCENTAGE_RANGE = (Decimal("0"), Decimal("100"))

DEFAULT_SMOOTHING_FACTOR = Decimal("0.5")
DEFAULT_TOLERANCE_PERCENTAGE = Decimal("5")


class DistributionMode(str, Enum):
    """How net operator revenue is split between turbines."""

    PROPORTIONAL = "PROPORTIONAL"  # Strictly by production
    SMOOTHED = "SMOOTHED"  # Blend of production and park average
    TOLERATED = "TOLERATED"  # Average within a tolerance band


def _check_range(name: str, value: Decimal, bounds: tuple[Decimal, Decimal]) -> None:
    low, high = bounds
    if not value.is_finite() or not (low <= value <= high):
        raise PolicyParameterOutOfRangeError(
            parameter=name,
            value=str(value),
            minimum=str(low),
            maximum=str(high),
        )


@dataclass(frozen=True)
class ProportionalPolicy:
    """Revenue share equals production share."""

    @property
    def mode(self) -> DistributionMode:
        return DistributionMode.PROPORTIONAL

    def parameters(self) -> dict[str, str]:
        return {}


@dataclass(frozen=True)
class SmoothedPolicy:
    """
    Each turbine's production is pulled towards the park average.

    Contract:
        ``smoothed = actual * (1 - f) + average * f``.  f = 0 is
        PROPORTIONAL, f = 1 is an equal split.
    """

    smoothing_factor: Decimal

    def __post_init__(self) -> None:
        _check_range("smoothing_factor", self.smoothing_factor, SMOOTHING_FACTOR_RANGE)

    @property
    def mode(self) -> DistributionMode:
        return DistributionMode.SMOOTHED

    def parameters(self) -> dict[str, str]:
        return {"smoothing_factor": plain(self.smoothing_factor)}


@dataclass(frozen=True)
class ToleratedPolicy:
    """
    Production within a band around the average counts as the average.

    Contract:
        ``band = average * t / 100``.  Deviations up to and including the
        band are neutralised; larger deviations are clamped to the band edge.
    """

    tolerance_percentage: Decimal

    def __post_init__(self) -> None:
        _check_range(
            "tolerance_percentage",
            self.tolerance_percentage,
            TOLERANCE_PERCENTAGE_RANGE,
        )

    @property
    def mode(self) -> DistributionMode:
        return DistributionMode.TOLERATED

    def parameters(self) -> dict[str, str]:
        return {"tolerance_percentage": plain(self.tolerance_percentage)}


DistributionPolicy = ProportionalPolicy | SmoothedPolicy | ToleratedPolicy


@dataclass(frozen=True)
class PolicyDefaults:
    """Fallback parameters used when a settlement leaves them unset."""

    smoothing_factor: Decimal = DEFAULT_SMOOTHING_FACTOR
    tolerance_percentage: Decimal = DEFAULT_TOLERANCE_PERCENTAGE


def _as_decimal(name: str, value: Decimal | str | int) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise PolicyParameterOutOfRangeError(
            parameter=name, value=str(value), minimum="-", maximum="-"
        ) from None


def parse_mode(mode: str | DistributionMode) -> DistributionMode:
    """
    Parse a stored mode string.

    Raises:
        UnknownDistributionModeError: If mode is not a DistributionMode value.
    """
    if isinstance(mode, DistributionMode):
        return mode
    try:
        return DistributionMode(str(mode))
    except ValueError:
        raise UnknownDistributionModeError(
            mode=str(mode),
            supported=tuple(m.value for m in DistributionMode),
        ) from None


def build_policy(
    mode: str | DistributionMode,
    smoothing_factor: Decimal | str | None = None,
    tolerance_percentage: Decimal | str | None = None,
    defaults: PolicyDefaults | None = None,
) -> DistributionPolicy:
    """
    Build the policy variant for a settlement.

    Parameters that do not apply to ``mode`` are ignored; missing parameters
    fall back to ``defaults``.

    Raises:
        UnknownDistributionModeError: Unknown mode.
        PolicyParameterOutOfRangeError: Parameter outside its range.
    """
    defaults = defaults or PolicyDefaults()
    parsed = parse_mode(mode)

    match parsed:
        case DistributionMode.PROPORTIONAL:
            return ProportionalPolicy()
        case DistributionMode.SMOOTHED:
            factor = (
                defaults.smoothing_factor
                if smoothing_factor is None
                else _as_decimal("smoothing_factor", smoothing_factor)
            )
            return SmoothedPolicy(smoothing_factor=factor)
        case DistributionMode.TOLERATED:
            tolerance = (
                defaults.tolerance_percentage
                if tolerance_percentage is None
                else _as_decimal("tolerance_percentage", tolerance_percentage)
            )
            return ToleratedPolicy(tolerance_percentage=tolerance)
