"""
Deterministic hashing utilities.

Fingerprints of distribution inputs and results must be reproducible across
processes, so every hash goes through one canonical JSON form.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Serialize types json does not handle natively.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        # 1.50 and 1.5 must hash identically
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON: sorted keys, no whitespace, and stable
    rendering of Decimal, datetime and UUID values.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """
    Compute SHA-256 hash of a payload.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_distribution_input(
    mode: str,
    parameters: dict,
    revenue: Decimal,
    facts: list[dict],
) -> str:
    """
    Fingerprint everything that determines a distribution's outcome.

    Facts are sorted by turbine id so the hash does not depend on the order
    rows came back from the database.
    """
    ordered = sorted(facts, key=lambda f: str(f.get("turbine_id", "")))
    return hash_payload(
        {
            "mode": mode,
            "parameters": parameters,
            "revenue": revenue,
            "facts": ordered,
        }
    )


def hash_line_items(lines: list[dict]) -> str:
    """
    Fingerprint generated line items by their content.

    Row ids and timestamps are excluded by the caller; lines are sorted by
    ``position``.
    """
    ordered = sorted(lines, key=lambda line: line.get("position", 0))
    return hash_payload({"lines": ordered})
