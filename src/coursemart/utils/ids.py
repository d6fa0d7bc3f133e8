"""Placeholder identifiers for records not yet confirmed by the CMS."""

from __future__ import annotations

import itertools
import time

from coursemart.domain import TEMP_ID_PREFIX

_sequence = itertools.count()


def new_temporary_id() -> str:
    """Return a timestamp-based id that can never collide with a CMS id.

    The trailing sequence number keeps ids unique when two placeholders are
    created within the same clock tick.
    """

    return f"{TEMP_ID_PREFIX}{time.time_ns()}-{next(_sequence)}"


__all__ = ["new_temporary_id"]
