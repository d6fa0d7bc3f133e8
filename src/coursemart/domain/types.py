"""Shared type aliases for the domain layer."""

from __future__ import annotations

RecordId = int | str
UserRef = int | str

TEMP_ID_PREFIX = "tmp-"


def is_temporary_id(value: object) -> bool:
    """Return True when ``value`` was generated locally for a placeholder."""

    return isinstance(value, str) and value.startswith(TEMP_ID_PREFIX)


__all__ = [
    "TEMP_ID_PREFIX",
    "RecordId",
    "UserRef",
    "is_temporary_id",
]
