"""
Calendar math for ranking periods.

All functions are pure. Boundaries are cut in a fixed UTC offset: a
period starts at 00:00:00 of its first day and ends at 23:59:59 of its
last day in that offset.
"""

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import NamedTuple

from trend_tracker.ranking.schemas import PeriodKind


class PeriodKey(NamedTuple):
    kind: PeriodKind
    year: int
    month: int | None = None
    day: int | None = None


def _tz(utc_offset_hours: int) -> timezone:
    return timezone(timedelta(hours=utc_offset_hours))


def resolve_period_key(
    period_kind: PeriodKind | str,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
    now: datetime | None = None,
    utc_offset_hours: int = 0,
) -> PeriodKey:
    """
    Fill missing calendar fields from ``now`` and validate the result.

    Fields finer than the period kind are dropped (a MONTHLY key has no
    day). A naive ``now`` is taken as UTC.

    Raises:
        ValueError: Unknown period kind or an impossible calendar date.
    """
    kind = PeriodKind(period_kind)

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(_tz(utc_offset_hours))

    year = year if year is not None else local.year
    month = month if month is not None else local.month
    day = day if day is not None else local.day

    if kind is PeriodKind.YEARLY:
        date(year, 1, 1)
        return PeriodKey(kind, year)
    if kind is PeriodKind.MONTHLY:
        date(year, month, 1)
        return PeriodKey(kind, year, month)

    date(year, month, day)
    return PeriodKey(kind, year, month, day)


def period_bounds(key: PeriodKey, utc_offset_hours: int = 0) -> tuple[datetime, datetime]:
    """
    Get (started_at, ended_at) for a period.

    Example: MONTHLY 2024-02 spans 2024-02-01 00:00:00 to 2024-02-29 23:59:59.
    """
    tz = _tz(utc_offset_hours)

    if key.kind is PeriodKind.DAILY:
        first = last = date(key.year, key.month, key.day)
    elif key.kind is PeriodKind.MONTHLY:
        first = date(key.year, key.month, 1)
        last = date(key.year, key.month, calendar.monthrange(key.year, key.month)[1])
    else:
        first = date(key.year, 1, 1)
        last = date(key.year, 12, 31)

    started_at = datetime(first.year, first.month, first.day, tzinfo=tz)
    ended_at = datetime(last.year, last.month, last.day, 23, 59, 59, tzinfo=tz)
    return started_at, ended_at


def previous_period_key(key: PeriodKey) -> PeriodKey | None:
    """
    Get the period that rank changes are measured against.

    DAILY -> previous calendar day, MONTHLY -> previous month (January rolls
    back to December of the prior year), YEARLY -> None.
    """
    if key.kind is PeriodKind.DAILY:
        prev = date(key.year, key.month, key.day) - timedelta(days=1)
        return PeriodKey(PeriodKind.DAILY, prev.year, prev.month, prev.day)

    if key.kind is PeriodKind.MONTHLY:
        if key.month == 1:
            return PeriodKey(PeriodKind.MONTHLY, key.year - 1, 12)
        return PeriodKey(PeriodKind.MONTHLY, key.year, key.month - 1)

    return None
