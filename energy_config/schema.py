"""
DistributionConfig schema.

The parsed, validated form of ``defaults.yaml`` (or an override file).
Bridges to kernel types are provided as methods so that the kernel never
imports this package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from energy_kernel.domain.dtos import ProductionStatus
from energy_kernel.domain.policies import PolicyDefaults
from energy_kernel.domain.values import Precision


@dataclass(frozen=True)
class DistributionConfig:
    """
    Deployment-wide settings for revenue distribution.

    Guarantees:
        - Immutable once loaded.
        - ``checksum`` is the SHA-256 of the parsed values and identifies
          the configuration in audit records.
    """

    default_smoothing_factor: Decimal = Decimal("0.5")
    default_tolerance_percentage: Decimal = Decimal("5")
    money_rounding: str = "ROUND_HALF_UP"
    money_places: int = 2
    percent_places: int = 6
    kwh_places: int = 3
    price_places: int = 9
    eligible_production_statuses: tuple[ProductionStatus, ...] = (
        ProductionStatus.DRAFT,
        ProductionStatus.CONFIRMED,
        ProductionStatus.INVOICED,
    )
    ambiguous_operator_policy: str = "reject"
    source: str = "<defaults>"
    checksum: str = field(default="", compare=False)

    def precision(self) -> Precision:
        return Precision(
            money_places=self.money_places,
            percent_places=self.percent_places,
            kwh_places=self.kwh_places,
            price_places=self.price_places,
            rounding=self.money_rounding,
        )

    def policy_defaults(self) -> PolicyDefaults:
        return PolicyDefaults(
            smoothing_factor=self.default_smoothing_factor,
            tolerance_percentage=self.default_tolerance_percentage,
        )
