"""Validation of namespace versions."""

from __future__ import annotations


def validate_version(version: int) -> None:
    """Raise ValueError unless version is -1 (create) or 0 and above (update)."""
    if version < -1:
        raise ValueError("invalid version: must be -1 (create) or >= 0 (update)")