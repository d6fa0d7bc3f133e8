"""Identity matching and deduplicating merges for collection records."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeVar

from coursemart.domain import SyncRecord

from .models import TargetRef

T = TypeVar("T", bound=SyncRecord)
KeyFunc = Callable[[T], str]


def _same_id(left: object, right: object) -> bool:
    if left is None or right is None:
        return False
    return str(left) == str(right)


def same_entity(left: SyncRecord, right: SyncRecord) -> bool:
    """Two records are the same entity when either identifier matches.

    The external id is checked first because primary ids may come from
    different fetch paths in different formats.
    """

    if left.external_id and right.external_id and left.external_id == right.external_id:
        return True
    return _same_id(left.id, right.id)


def matches_target(record: T, target: TargetRef, key_of: KeyFunc[T]) -> bool:
    if target.key is not None and key_of(record) == target.key:
        return True
    if target.external_id and record.external_id == target.external_id:
        return True
    return _same_id(record.id, target.record_id)


def dedupe(records: Iterable[T]) -> tuple[T, ...]:
    """Collapse duplicates, keeping the first position and the latest values."""

    result: list[T] = []
    for record in records:
        matches = [index for index, existing in enumerate(result) if same_entity(existing, record)]
        if not matches:
            result.append(record)
            continue
        result[matches[0]] = record
        for index in reversed(matches[1:]):
            del result[index]
    return tuple(result)


def merge_records(existing: Iterable[T], incoming: Iterable[T]) -> tuple[T, ...]:
    """Merge ``incoming`` into ``existing``; incoming values win on conflict."""

    return dedupe((*existing, *incoming))


__all__ = ["KeyFunc", "dedupe", "matches_target", "merge_records", "same_entity"]
