"""Derived aggregates over a live list — pure reductions, recomputed on every call."""

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from jewellery_crm.domain.entities import Record


class TimeWindow(str, Enum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"


def count_by_status(records: Iterable[Record], statuses: Sequence[str] = ()) -> dict[str, int]:
    """Count records per status. Every status in ``statuses`` appears, even at zero."""
    counts = {status: 0 for status in statuses}
    for record in records:
        counts[record.status] = counts.get(record.status, 0) + 1
    return counts


def in_window(moment: datetime | None, window: TimeWindow, now: datetime | None = None) -> bool:
    """True when ``moment`` falls in the same calendar day / ISO week / month as ``now``."""
    if moment is None:
        return False
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = moment.astimezone(now.tzinfo)

    if window == TimeWindow.TODAY:
        return local.date() == now.date()
    if window == TimeWindow.THIS_WEEK:
        return local.isocalendar()[:2] == now.isocalendar()[:2]
    return (local.year, local.month) == (now.year, now.month)


def count_in_window(
    records: Iterable[Record],
    date_field: str,
    window: TimeWindow,
    now: datetime | None = None,
) -> int:
    return sum(1 for r in records if in_window(r.date(date_field), window, now))


def count_upcoming(
    records: Iterable[Record],
    date_field: str,
    status: str | None = None,
    now: datetime | None = None,
) -> int:
    """Records dated at or after ``now``, optionally restricted to one status."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    total = 0
    for record in records:
        moment = record.date(date_field)
        if moment is None or moment < now:
            continue
        if status is not None and record.status != status:
            continue
        total += 1
    return total


def sum_field(records: Iterable[Record], field: str) -> float:
    """Sum a numeric field (e.g. revenue); non-numeric values count as zero."""
    total = 0.0
    for record in records:
        total += _as_number(record.get(field))
    return total


def percentage(part: int | float, total: int | float) -> int:
    """Whole-number percentage of ``part`` in ``total``; 0 when total is 0."""
    if not total:
        return 0
    return round(part / total * 100)


def group_by(
    records: Iterable[Record],
    key: Callable[[Record], str],
    order: Sequence[str] = (),
) -> dict[str, list[Record]]:
    """Stable partition: groups keep the order records arrived in.

    Keys in ``order`` come first (present even when empty), others follow in
    first-seen order.
    """
    groups: dict[str, list[Record]] = {k: [] for k in order}
    for record in records:
        groups.setdefault(key(record), []).append(record)
    return groups


def search(records: Iterable[Record], term: str, fields: Sequence[str]) -> list[Record]:
    """Case-insensitive substring match over the given fields and the record id."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(records)
    matches = []
    for record in records:
        haystack = [record.id] + [str(record.get(f, "")) for f in fields]
        if any(needle in value.lower() for value in haystack):
            matches.append(record)
    return matches


def _as_number(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
