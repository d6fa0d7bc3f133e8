"""Shared helpers."""

from .ids import new_temporary_id

__all__ = ["new_temporary_id"]
