"""
State differ.

Decides whether a run observed something worth an alert: a changed
outage classification or current-outage window first, then a newly
published schedule day.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Tuple
from zoneinfo import ZoneInfo

from outage_calendar.core.types import (
    AddressState,
    ChangeEvent,
    ChangeKind,
    DaySchedule,
    OverrideWindow,
    Snapshot,
    Urgency,
)

URGENCY_TITLES = {
    Urgency.STABILIZATION: "стабілізаційні відключення",
    Urgency.EMERGENCY: "екстрені відключення",
    Urgency.ACCIDENT: "аварійні відключення",
}


def day_key(day: date, tz: ZoneInfo) -> int:
    """Unix time of local midnight of ``day``."""
    return int(datetime.combine(day, time.min, tzinfo=tz).timestamp())


def key_date(key: int, tz: ZoneInfo) -> date:
    return datetime.fromtimestamp(key, tz).date()


def snapshot(
    classification: Optional[Urgency],
    schedules: Iterable[DaySchedule],
    override: Optional[OverrideWindow],
) -> Snapshot:
    """Build the current observation for an address."""
    return Snapshot(
        classification=classification,
        scheduled_day_keys=frozenset(s.day_epoch for s in schedules),
        override_fingerprint=override.fingerprint() if override else None,
    )


def _status_change(previous: AddressState, current: Snapshot) -> Optional[ChangeEvent]:
    if current.classification != previous.last_classification:
        if current.classification is None:
            message = "🔔 ОНОВЛЕНО: Оголошення про відключення знято"
        else:
            message = f"🔔 ОНОВЛЕНО: Діють {URGENCY_TITLES[current.classification]}"
        return ChangeEvent(ChangeKind.CLASSIFICATION_CHANGED, message)

    if current.override_fingerprint != previous.last_override_fingerprint:
        if current.override_fingerprint is None:
            message = "🔔 ОНОВЛЕНО: Поточне відключення завершено"
        else:
            message = "🔔 ОНОВЛЕНО: Змінено поточне відключення"
        return ChangeEvent(ChangeKind.OVERRIDE_CHANGED, message)

    return None


def _new_day(previous: AddressState, current: Snapshot, today: date, tz: ZoneInfo) -> Optional[ChangeEvent]:
    added = sorted(current.scheduled_day_keys - previous.last_scheduled_day_keys)
    if not added:
        return None

    tomorrow = day_key(today + timedelta(days=1), tz)
    if tomorrow in added:
        label = key_date(tomorrow, tz).strftime("%d.%m.%Y")
        return ChangeEvent(
            ChangeKind.TOMORROW_ADDED,
            f"🔔 ОНОВЛЕНО: Опубліковано графік на завтра ({label})",
            tomorrow,
        )

    first = added[0]
    label = key_date(first, tz).strftime("%d.%m.%Y")
    return ChangeEvent(
        ChangeKind.NEW_DAY,
        f"🔔 ОНОВЛЕНО: Новий розклад відключень на {label}",
        first,
    )


def diff(
    previous: AddressState,
    current: Snapshot,
    today: date,
    tz: ZoneInfo,
    checked_at: Optional[str] = None,
) -> Tuple[Optional[ChangeEvent], AddressState]:
    """
    Compare the current observation with the persisted one.

    Args:
        previous: State from the last run (empty on first run)
        current: Observation from this run
        today: Current local date in the source timezone
        tz: Source timezone
        checked_at: Value for the timestamp-only ``last_checked`` field

    Returns:
        (ChangeEvent or None, new state). The new state always reflects the
        current observation, whether or not an alert fired.
    """
    change = _status_change(previous, current) or _new_day(previous, current, today, tz)
    state = AddressState(
        last_classification=current.classification,
        last_scheduled_day_keys=frozenset(current.scheduled_day_keys),
        last_override_fingerprint=current.override_fingerprint,
        last_checked=checked_at,
    )
    return change, state
