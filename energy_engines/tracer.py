"""
energy_engines.tracer -- Engine invocation tracer emitting ENERGY_ENGINE_TRACE.

Responsibility:
    Decorator (``@traced_engine``) that wraps pure engine invocations with a
    structured trace record: engine_name, engine_version, input_fingerprint
    (SHA-256 of selected keyword arguments), duration_ms and outcome.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; never touches inputs or outputs.

Invariants enforced:
    - Fingerprints are deterministic: Decimals are normalized, dict keys are
      sorted, sequences keep their order.

Failure modes:
    - Fingerprint fields missing from kwargs are recorded as "null".
    - An exception raised by the engine is traced with outcome "error" and
      re-raised unchanged.

Usage:
    from energy_engines.tracer import traced_engine

    @traced_engine("distribution", "1.0", fingerprint_fields=("facts", "revenue"))
    def distribute(*, facts, revenue, policy):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import logging
import time
from collections.abc import Callable
from decimal import Decimal
from enum import Enum
from typing import Any

# Under the energy_kernel namespace so configure_logging() picks it up.
_logger = logging.getLogger("energy_kernel.engines.tracer")

TRACE_TYPE = "ENERGY_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    """Stable string form of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return str(value.normalize())
    if isinstance(value, (int, str)):
        return str(value)
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return type(value).__name__ + _canonicalize(fields)
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """
    Deterministic fingerprint of the selected keyword arguments.

    Returns:
        The first 16 hex characters of a SHA-256 digest.
    """
    parts = [f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields]
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits ENERGY_ENGINE_TRACE around a pure engine call."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                fp = compute_input_fingerprint(fingerprint_fields, kwargs)

            outcome = "ok"
            t0 = time.monotonic()
            try:
                return func(*args, **kwargs)
            except Exception:
                outcome = "error"
                raise
            finally:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                _logger.info(
                    TRACE_TYPE,
                    extra={
                        "trace_type": TRACE_TYPE,
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "input_fingerprint": fp,
                        "duration_ms": duration_ms,
                        "outcome": outcome,
                        "function": func.__qualname__,
                    },
                )

        wrapper.engine_name = engine_name  # type: ignore[attr-defined]
        wrapper.engine_version = engine_version  # type: ignore[attr-defined]
        return wrapper

    return decorator
