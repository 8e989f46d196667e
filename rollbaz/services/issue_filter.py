"""
Filtering and ordering of issue lists
"""

import math
from collections.abc import Iterable
from datetime import datetime

from rollbaz.models.issue import IssueFilters
from rollbaz.models.rollbar import Item

MAX_INT64 = 2**63 - 1


def filter_items(items: Iterable[Item], filters: IssueFilters) -> list[Item]:
    """Keep the items that satisfy every supplied criterion, in input order"""
    items = list(items)
    normalized = filters.normalized()
    if normalized.is_empty():
        return items

    since_unix = _unix_seconds(normalized.since)
    until_unix = _unix_seconds(normalized.until)

    return [
        item
        for item in items
        if matches_text_filter(item.environment, normalized.environment)
        and matches_text_filter(item.status, normalized.status)
        and matches_time_filter(item.last_occurrence_timestamp, since_unix, until_unix)
        and matches_occurrence_filter(
            item, normalized.min_occurrences, normalized.max_occurrences
        )
    ]


def sort_recent(items: Iterable[Item], limit: int = 0) -> list[Item]:
    """Most recently seen first, then most occurrences; stable on exact ties.

    A limit of zero or less keeps everything.
    """
    ordered = sorted(
        items,
        key=lambda item: (
            item.last_occurrence_timestamp or 0,
            item.effective_occurrences,
        ),
        reverse=True,
    )
    return trim_items(ordered, limit)


def trim_items(items: list[Item], limit: int) -> list[Item]:
    if limit <= 0 or len(items) <= limit:
        return items
    return items[:limit]


def matches_text_filter(value: str, expected: str) -> bool:
    if not expected:
        return True
    return value.strip().casefold() == expected.casefold()


def matches_time_filter(
    timestamp: int | None, since_unix: int | None, until_unix: int | None
) -> bool:
    if since_unix is None and until_unix is None:
        return True
    if timestamp is None:
        return False
    # unrepresentable as a signed 64-bit unix time
    if timestamp > MAX_INT64:
        return False
    if since_unix is not None and timestamp < since_unix:
        return False
    if until_unix is not None and timestamp > until_unix:
        return False
    return True


def matches_occurrence_filter(
    item: Item, min_occurrences: int | None, max_occurrences: int | None
) -> bool:
    occurrences = item.effective_occurrences
    if min_occurrences is not None and occurrences < min_occurrences:
        return False
    if max_occurrences is not None and occurrences > max_occurrences:
        return False
    return True


def _unix_seconds(value: datetime | None) -> int | None:
    if value is None:
        return None
    return math.floor(value.timestamp())
