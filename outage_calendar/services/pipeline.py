"""
Per-address pipeline: merge -> reconcile -> emit, plus change detection.

Everything here is pure; fetching and persistence live in OutageService.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from outage_calendar.core.models import AddressConfig
from outage_calendar.core.types import (
    AddressState,
    CalendarEvent,
    ChangeEvent,
    DayIntervals,
    DaySchedule,
    Interval,
    OverrideWindow,
    Urgency,
)
from outage_calendar.logic.differ import diff, snapshot
from outage_calendar.logic.emitter import alert_event, emit
from outage_calendar.logic.merger import merge
from outage_calendar.logic.reconciler import day_bounds, override_days, reconcile


@dataclass(frozen=True)
class AddressInput:
    """Already-fetched upstream data for one address."""
    schedules: Tuple[DaySchedule, ...] = ()
    override: Optional[OverrideWindow] = None
    classification: Optional[Urgency] = None
    update_time: Optional[str] = None


@dataclass(frozen=True)
class AddressOutput:
    days: Tuple[DayIntervals, ...]
    events: Tuple[CalendarEvent, ...]
    change: Optional[ChangeEvent]
    state: AddressState


def resolve_classification(popup: Optional[Urgency], address: Optional[Urgency]) -> Optional[Urgency]:
    """Site-wide announcement wins over the per-address classification."""
    return popup or address


def build_days(
    schedules: Sequence[DaySchedule],
    override: Optional[OverrideWindow],
    tz: ZoneInfo,
    now: Optional[datetime] = None,
) -> Tuple[DayIntervals, ...]:
    """
    Merge every day and reconcile it with the override.

    Days touched only by the override (e.g. the part after midnight)
    start from an empty schedule.
    """
    merged: Dict[date, Tuple[Interval, ...]] = {}
    for schedule in schedules:
        merged[schedule.day_date(tz)] = merge(schedule)
    if override:
        for day in override_days(override, tz):
            merged.setdefault(day, ())

    return tuple(
        DayIntervals(day, reconcile(merged[day], override, day_bounds(day, tz), now))
        for day in sorted(merged)
    )


def run_address(
    address: AddressConfig,
    data: AddressInput,
    previous: AddressState,
    now: datetime,
    tz: ZoneInfo,
    reminder_minutes: int = 30,
) -> AddressOutput:
    """
    Compute the calendar and the new state for one address.

    Args:
        address: Monitored address
        data: Schedules, override, classification and update time
        previous: Persisted state from the last run
        now: Current moment (timezone-aware)
        tz: Source timezone
        reminder_minutes: Reminder offset for schedule events

    Returns:
        AddressOutput with days, events (alert included, ordered by start),
        the change that fired (if any) and the state to persist.
    """
    now = now.astimezone(tz)
    days = build_days(data.schedules, data.override, tz, now)
    events = emit(
        days,
        address,
        data.classification,
        data.update_time,
        now,
        tz,
        reminder_minutes=reminder_minutes,
        override=data.override,
    )

    current = snapshot(data.classification, data.schedules, data.override)
    change, state = diff(previous, current, now.date(), tz, checked_at=now.isoformat())
    if change:
        events.append(alert_event(change, address, now))
        events.sort(key=lambda e: e.start)

    return AddressOutput(days=days, events=tuple(events), change=change, state=state)
