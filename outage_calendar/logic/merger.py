"""
Interval merger.

Turns a day's hourly status cells into the minimal set of outage
intervals and the complementary power intervals.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from outage_calendar.core.types import (
    MINUTES_PER_DAY,
    DaySchedule,
    Interval,
    IntervalKind,
    Slot,
    SlotState,
)

logger = logging.getLogger(__name__)


def slot_range(slot: Slot) -> Optional[Tuple[int, int]]:
    """
    Convert a slot to its outage range in minutes of day.

    Returns:
        (start, end), or None for LIGHT and for hours outside 1..24.
    """
    if not 1 <= slot.hour_index <= 24:
        logger.warning(f"Ignoring slot with out-of-range hour {slot.hour_index}")
        return None
    hour_start = (slot.hour_index - 1) * 60
    if slot.state == SlotState.OFF:
        return hour_start, hour_start + 60
    if slot.state == SlotState.OFF_FIRST_HALF:
        return hour_start, hour_start + 30
    if slot.state == SlotState.OFF_SECOND_HALF:
        return hour_start + 30, hour_start + 60
    return None


def merge_ranges(ranges: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Merge touching or overlapping ranges, sorted by start."""
    merged: List[Tuple[int, int]] = []
    for start, end in sorted(ranges):
        if merged and start <= merged[-1][1]:
            last_start, last_end = merged[-1]
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


def outage_ranges(slots: Iterable[Slot]) -> List[Tuple[int, int]]:
    """Minimal, disjoint outage ranges for a set of slots."""
    return merge_ranges(r for r in map(slot_range, slots) if r is not None)


def complement(outages: Sequence[Interval]) -> Tuple[Interval, ...]:
    """
    POWER intervals covering everything in [0, 1440) not covered by outages.

    Outages may touch each other (e.g. a schedule fragment next to an
    override); they are merged first so no empty gaps are produced.
    """
    power = []
    cursor = 0
    for start, end in merge_ranges((i.start, i.end) for i in outages):
        if start > cursor:
            power.append(Interval(cursor, start, IntervalKind.POWER))
        cursor = max(cursor, end)
    if cursor < MINUTES_PER_DAY:
        power.append(Interval(cursor, MINUTES_PER_DAY, IntervalKind.POWER))
    return tuple(power)


def combine(outages: Sequence[Interval]) -> Tuple[Interval, ...]:
    """Outages plus their POWER complement, ordered by start."""
    return tuple(sorted([*outages, *complement(outages)], key=lambda i: i.start))


def merge(day_schedule: DaySchedule) -> Tuple[Interval, ...]:
    """
    Build the interval list for one day.

    Args:
        day_schedule: Slots for the day, in any order.

    Returns:
        OUTAGE and POWER intervals sorted by start, tiling [0, 1440).
    """
    outages = [Interval(s, e) for s, e in outage_ranges(day_schedule.slots)]
    return combine(outages)
