"""
Calendar emitter.

Walks the reconciled intervals of every day and produces calendar events
with labels, descriptions and reminders. Past events are dropped.
"""

import hashlib
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Sequence
from zoneinfo import ZoneInfo

from outage_calendar.core.models import AddressConfig
from outage_calendar.core.types import (
    CalendarEvent,
    ChangeEvent,
    DayIntervals,
    EventKind,
    Interval,
    OverrideWindow,
    Urgency,
)

URGENCY_ICONS = {
    Urgency.STABILIZATION: "📊",
    Urgency.EMERGENCY: "🚨",
    Urgency.ACCIDENT: "⚠️",
}

URGENCY_NAMES = {
    Urgency.STABILIZATION: "Стабілізаційне відключення",
    Urgency.EMERGENCY: "Екстрене відключення",
    Urgency.ACCIDENT: "Аварійне відключення",
}

SCHEDULED_LABEL = "📊 Відключення за графіком"
OVERRIDE_LABEL = "🚫 Відключення"
POWER_LABEL = "⚡ Є струм"

ALERT_DURATION = timedelta(minutes=5)
ALERT_DESCRIPTION = "На сайті ДТЕК з'явилась оновлена інформація про розклад відключень для вашої адреси."


def format_minute(minute: int) -> str:
    """Minute of day as HH:MM (1440 -> 24:00)."""
    return f"{minute // 60:02d}:{minute % 60:02d}"


def at_minute(day: date, minute: int, tz: ZoneInfo) -> datetime:
    """Wall-clock instant ``minute`` minutes after local midnight of ``day``."""
    return datetime.combine(day, time.min, tzinfo=tz) + timedelta(minutes=minute)


def event_uid(address_id: str, kind: str, start: datetime, end: datetime) -> str:
    key = f"{address_id}|{kind}|{start.isoformat()}|{end.isoformat()}"
    return f"{hashlib.sha1(key.encode('utf-8')).hexdigest()}@outage-calendar"


def outage_minutes(day: DayIntervals) -> int:
    return sum(i.end - i.start for i in day.outages)


def build_label(interval: Interval, classification: Optional[Urgency], update_time: Optional[str]) -> str:
    """
    Label for one interval.

    Only the live outage carries its urgency; past and future outages of
    the same run get a generic label.
    """
    span = f"({format_minute(interval.start)} - {format_minute(interval.end)})"
    if not interval.is_outage:
        title = POWER_LABEL
    elif interval.live:
        urgency = interval.urgency or classification or Urgency.STABILIZATION
        title = f"{URGENCY_ICONS[urgency]} {URGENCY_NAMES[urgency]}"
    elif interval.is_override:
        title = OVERRIDE_LABEL
    else:
        title = SCHEDULED_LABEL

    label = f"{title} {span}"
    if update_time:
        label += f" · оновлено {update_time}"
    return label


def build_description(
    interval: Interval,
    day: DayIntervals,
    later_days: Sequence[DayIntervals],
    address: AddressConfig,
    classification: Optional[Urgency],
    update_time: Optional[str],
    override: Optional[OverrideWindow],
    tz: ZoneInfo,
) -> str:
    lines = [f"Адреса: {address.label}"]

    if interval.is_outage:
        if interval.live:
            urgency = interval.urgency or classification or Urgency.STABILIZATION
            lines.append(f"Тип: {URGENCY_NAMES[urgency]}")
        else:
            lines.append("Тип: Відключення за графіком")
        if interval.is_override and override:
            lines.append(f"Причина: {override.reason}")
            restore = override.end.astimezone(tz)
            lines.append(f"Орієнтовне відновлення: {restore:%H:%M %d.%m.%Y}")
    else:
        lines.append("Електропостачання працює за графіком.")

    lines.append(f"Час: {format_minute(interval.start)} - {format_minute(interval.end)} {day.day:%d.%m.%Y}")

    upcoming = [d for d in later_days if d.outages]
    if upcoming:
        lines.append("")
        lines.append("📋 Графіки на наступні дні:")
        for other in upcoming:
            hours = outage_minutes(other) / 60
            lines.append(f"  • {other.day:%d.%m.%Y} ({hours:g} г.)")

    if update_time:
        lines.append("")
        lines.append(f"Дані оновлено: {update_time}")

    return "\n".join(lines)


def emit(
    days: Sequence[DayIntervals],
    address: AddressConfig,
    classification: Optional[Urgency],
    update_time: Optional[str],
    now: datetime,
    tz: ZoneInfo,
    reminder_minutes: int = 30,
    override: Optional[OverrideWindow] = None,
) -> List[CalendarEvent]:
    """
    Emit one calendar event per interval.

    Args:
        days: Reconciled intervals per day
        address: Address the events belong to
        classification: Urgency announced for this run
        update_time: Upstream update time ("HH:MM"), used as label suffix
        now: Current moment; a naive value is read as source-local time
        tz: Source timezone
        reminder_minutes: Reminder offset for every event
        override: Window the override intervals came from, for descriptions

    Returns:
        Events ending after ``now``, ascending by start. Days without any
        outage produce no events.
    """
    now_local = now.replace(tzinfo=tz) if now.tzinfo is None else now.astimezone(tz)
    ordered = sorted(days, key=lambda d: d.day)

    events = []
    for index, day in enumerate(ordered):
        if not day.outages:
            continue
        later_days = ordered[index + 1:]
        for interval in day.intervals:
            start = at_minute(day.day, interval.start, tz)
            end = at_minute(day.day, interval.end, tz)
            if end <= now_local:
                continue
            kind = EventKind(interval.kind.value)
            events.append(CalendarEvent(
                uid=event_uid(address.id, kind.value, start, end),
                start=start,
                end=end,
                label=build_label(interval, classification, update_time),
                description=build_description(
                    interval, day, later_days, address, classification, update_time, override, tz
                ),
                reminder_minutes=reminder_minutes,
                kind=kind,
            ))

    events.sort(key=lambda e: e.start)
    return events


def alert_event(change: ChangeEvent, address: AddressConfig, now: datetime) -> CalendarEvent:
    """Short event announcing a change, with an immediate reminder."""
    end = now + ALERT_DURATION
    return CalendarEvent(
        uid=event_uid(address.id, "alert", now, end),
        start=now,
        end=end,
        label=change.message,
        description=f"{ALERT_DESCRIPTION}\nАдреса: {address.label}",
        reminder_minutes=0,
        kind=EventKind.ALERT,
    )
