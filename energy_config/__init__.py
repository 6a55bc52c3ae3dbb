"""
energy_config -- single entrypoint for distribution configuration.

Responsibility:
    ``get_distribution_config()`` is the only way services obtain rounding
    rules, policy defaults and data-quality handling.  No other component
    reads configuration files or environment variables.

Architecture position:
    Configuration -- sits above ``energy_kernel`` and ``energy_engines`` and
    below ``energy_services``.  The kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` when an override path does not exist.
    - ``ValueError`` on invalid values.

Audit relevance:
    Every load emits an ``ENERGY_CONFIG_TRACE`` log entry with the source
    path and checksum; the checksum is also copied into each settlement's
    audit record.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from energy_config.loader import (
    compute_checksum,
    load_distribution_config,
    parse_distribution_config,
)
from energy_config.schema import DistributionConfig

_logger = logging.getLogger("energy_kernel.config")

CONFIG_ENV_VAR = "ENERGY_DISTRIBUTION_CONFIG"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_distribution_config(path: Path | str | None = None) -> DistributionConfig:
    """
    Load the active distribution configuration.

    Resolution order: explicit ``path``, then the file named by
    ``ENERGY_DISTRIBUTION_CONFIG``, then the packaged ``defaults.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If any value is invalid.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        resolved = Path(env_path) if env_path else _DEFAULT_CONFIG_PATH
    else:
        resolved = Path(path)

    config = load_distribution_config(resolved)

    _logger.info(
        "ENERGY_CONFIG_TRACE",
        extra={
            "trace_type": "ENERGY_CONFIG_TRACE",
            "config_source": config.source,
            "checksum": config.checksum,
            "money_rounding": config.money_rounding,
            "ambiguous_operator_policy": config.ambiguous_operator_policy,
            "eligible_production_statuses": [s.value for s in config.eligible_production_statuses],
        },
    )
    return config


__all__ = [
    "CONFIG_ENV_VAR",
    "DistributionConfig",
    "compute_checksum",
    "get_distribution_config",
    "load_distribution_config",
    "parse_distribution_config",
]
