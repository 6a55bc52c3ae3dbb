"""
YAML loader for distribution configuration.

Responsibility:
    Read a YAML file with ``yaml.safe_load`` and parse it into a frozen
    ``DistributionConfig``, validating every value on the way in.

Failure modes:
    * Missing file        -> ``FileNotFoundError`` propagates.
    * Malformed YAML      -> ``yaml.YAMLError`` propagates.
    * Out-of-range value  -> ``ValueError`` naming the offending key.

Audit relevance:
    ``compute_checksum`` identifies the exact configuration a calculation
    ran under.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from energy_config.schema import DistributionConfig
from energy_engines.production import AmbiguousOperatorPolicy
from energy_kernel.domain.dtos import ProductionStatus
from energy_kernel.domain.policies import (
    SMOOTHING_FACTOR_RANGE,
    TOLERANCE_PERCENTAGE_RANGE,
)
from energy_kernel.domain.values import SUPPORTED_ROUNDING_MODES

_KNOWN_KEYS = frozenset(
    {
        "default_smoothing_factor",
        "default_tolerance_percentage",
        "money_rounding",
        "money_places",
        "percent_places",
        "kwh_places",
        "price_places",
        "eligible_production_statuses",
        "ambiguous_operator_policy",
    }
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_decimal(data: dict[str, Any], key: str, bounds: tuple[Decimal, Decimal]) -> Decimal:
    raw = data[key]
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"{key}: not a number: {raw!r}") from None
    low, high = bounds
    if not value.is_finite() or not (low <= value <= high):
        raise ValueError(f"{key}: {value} is outside [{low}, {high}]")
    return value


def _parse_places(data: dict[str, Any], key: str) -> int:
    raw = data[key]
    if isinstance(raw, bool) or not isinstance(raw, int) or not (0 <= raw <= 18):
        raise ValueError(f"{key}: expected an integer between 0 and 18, got {raw!r}")
    return raw


def parse_distribution_config(data: dict[str, Any], source: str = "<inline>") -> DistributionConfig:
    """
    Parse a raw mapping into a DistributionConfig.

    Keys that are absent keep their defaults; unknown keys are rejected so
    that typos do not silently fall back to defaults.
    """
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    defaults = DistributionConfig()
    values: dict[str, Any] = {}

    if "default_smoothing_factor" in data:
        values["default_smoothing_factor"] = _parse_decimal(
            data, "default_smoothing_factor", SMOOTHING_FACTOR_RANGE
        )
    if "default_tolerance_percentage" in data:
        values["default_tolerance_percentage"] = _parse_decimal(
            data, "default_tolerance_percentage", TOLERANCE_PERCENTAGE_RANGE
        )
    if "money_rounding" in data:
        rounding = str(data["money_rounding"]).upper()
        if rounding not in SUPPORTED_ROUNDING_MODES:
            raise ValueError(
                f"money_rounding: {data['money_rounding']!r} is not one of "
                f"{', '.join(sorted(SUPPORTED_ROUNDING_MODES))}"
            )
        values["money_rounding"] = rounding
    for key in ("money_places", "percent_places", "kwh_places", "price_places"):
        if key in data:
            values[key] = _parse_places(data, key)
    if "eligible_production_statuses" in data:
        raw_statuses = data["eligible_production_statuses"] or []
        try:
            statuses = tuple(ProductionStatus(str(s).upper()) for s in raw_statuses)
        except ValueError:
            raise ValueError(
                f"eligible_production_statuses: unknown status in {raw_statuses!r}"
            ) from None
        if not statuses:
            raise ValueError("eligible_production_statuses: at least one status is required")
        values["eligible_production_statuses"] = statuses
    if "ambiguous_operator_policy" in data:
        try:
            policy = AmbiguousOperatorPolicy(str(data["ambiguous_operator_policy"]).lower())
        except ValueError:
            raise ValueError(
                "ambiguous_operator_policy: expected 'reject' or 'exclude', got "
                f"{data['ambiguous_operator_policy']!r}"
            ) from None
        values["ambiguous_operator_policy"] = policy.value

    merged = {
        "default_smoothing_factor": defaults.default_smoothing_factor,
        "default_tolerance_percentage": defaults.default_tolerance_percentage,
        "money_rounding": defaults.money_rounding,
        "money_places": defaults.money_places,
        "percent_places": defaults.percent_places,
        "kwh_places": defaults.kwh_places,
        "price_places": defaults.price_places,
        "eligible_production_statuses": defaults.eligible_production_statuses,
        "ambiguous_operator_policy": defaults.ambiguous_operator_policy,
    }
    merged.update(values)

    return DistributionConfig(
        **merged,
        source=source,
        checksum=compute_checksum(merged),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 checksum of the canonical JSON form of ``data``.

    Identical values always produce identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_distribution_config(path: Path) -> DistributionConfig:
    """Load and parse a configuration file."""
    return parse_distribution_config(load_yaml_file(path), source=str(path))
