"""
Override reconciler.

The current-outage window reported for an address is authoritative: it
replaces whatever the schedule says for the same time. Windows spanning
midnight are split, each day is reconciled with its own part.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from outage_calendar.core.types import (
    MINUTES_PER_DAY,
    Interval,
    IntervalKind,
    OverrideWindow,
)
from outage_calendar.logic.merger import combine

logger = logging.getLogger(__name__)

DayBounds = Tuple[datetime, datetime]


def day_bounds(day: date, tz: ZoneInfo) -> DayBounds:
    """Local midnight of ``day`` and of the following day."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def override_days(override: OverrideWindow, tz: ZoneInfo) -> List[date]:
    """Local calendar days touched by the override window."""
    first = override.start.astimezone(tz).date()
    last = (override.end - timedelta(microseconds=1)).astimezone(tz).date()
    days = []
    current = first
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days


def minute_of_day(moment: datetime, bounds: DayBounds, round_up: bool = False) -> int:
    """
    Wall-clock minute of ``moment`` within the day, clamped to [0, 1440].

    Seconds are floored, or rounded up to the next minute with ``round_up``.
    """
    day_start, day_end = bounds
    if moment <= day_start:
        return 0
    if moment >= day_end:
        return MINUTES_PER_DAY
    local = moment.astimezone(day_start.tzinfo)
    minutes = local.hour * 60 + local.minute
    if round_up and (local.second or local.microsecond):
        minutes += 1
    return min(minutes, MINUTES_PER_DAY)


def clip_window(override: OverrideWindow, bounds: DayBounds) -> Optional[Tuple[int, int]]:
    """Part of the override inside the day, in minutes, or None."""
    start = minute_of_day(override.start, bounds)
    end = minute_of_day(override.end, bounds, round_up=True)
    if start >= end:
        return None
    return start, end


def carve(interval: Interval, window_start: int, window_end: int) -> List[Interval]:
    """
    Remove [window_start, window_end) from an outage interval.

    Returns:
        Zero, one or two retained fragments.
    """
    if interval.end <= window_start or interval.start >= window_end:
        return [interval]

    fragments = []
    if interval.start < window_start:
        fragments.append(Interval(interval.start, window_start, interval.kind, interval.urgency))
    if window_end < interval.end:
        fragments.append(Interval(window_end, interval.end, interval.kind, interval.urgency))
    return fragments


def tag_live(intervals: Sequence[Interval], now: Optional[datetime], bounds: DayBounds) -> Tuple[Interval, ...]:
    """Mark the interval covering ``now``; nothing is marked if now is outside the day."""
    day_start, day_end = bounds
    if now is None or not day_start <= now < day_end:
        return tuple(intervals)

    current = minute_of_day(now, bounds)
    tagged = []
    found = False
    for interval in intervals:
        live = not found and interval.start <= current < interval.end
        found = found or live
        tagged.append(Interval(interval.start, interval.end, interval.kind, interval.urgency, live))
    return tuple(tagged)


def reconcile(
    day_intervals: Sequence[Interval],
    override: Optional[OverrideWindow],
    bounds: DayBounds,
    now: Optional[datetime] = None,
) -> Tuple[Interval, ...]:
    """
    Apply the override window to one day's intervals.

    Args:
        day_intervals: Intervals from the merger (POWER entries are ignored)
        override: Authoritative window, or None
        bounds: (day_start, day_end) as timezone-aware datetimes
        now: Current moment, used to tag the live interval

    Returns:
        Reconciled OUTAGE intervals plus a fresh POWER complement, sorted.
    """
    outages = [i for i in day_intervals if i.is_outage]

    window = clip_window(override, bounds) if override else None
    if window:
        window_start, window_end = window
        carved = []
        for interval in outages:
            carved.extend(carve(interval, window_start, window_end))
        carved.append(Interval(window_start, window_end, IntervalKind.OUTAGE, override.urgency))
        logger.debug(
            f"Override {window_start}-{window_end} applied on {bounds[0].date()}: "
            f"{len(outages)} scheduled -> {len(carved) - 1} retained"
        )
        outages = carved

    return tag_live(combine(outages), now, bounds)
