"""Utility functions for the energy kernel."""

from energy_kernel.utils.hashing import (
    canonicalize_json,
    hash_distribution_input,
    hash_line_items,
    hash_payload,
)

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "hash_distribution_input",
    "hash_line_items",
]
