"""
Core records for the outage calendar pipeline.

All records are immutable. Times inside a day are minute-of-day integers
(0..1440); absolute instants are timezone-aware datetimes.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, Optional, Tuple
from zoneinfo import ZoneInfo

MINUTES_PER_DAY = 24 * 60


class SlotState(str, Enum):
    """Power state of one hourly cell."""
    LIGHT = "light"
    OFF = "off"
    OFF_FIRST_HALF = "off_first_half"
    OFF_SECOND_HALF = "off_second_half"


class IntervalKind(str, Enum):
    OUTAGE = "outage"
    POWER = "power"


class Urgency(str, Enum):
    """Outage classification announced by the utility."""
    STABILIZATION = "stabilization"
    EMERGENCY = "emergency"
    ACCIDENT = "accident"


class EventKind(str, Enum):
    OUTAGE = "outage"
    POWER = "power"
    ALERT = "alert"


class ChangeKind(str, Enum):
    CLASSIFICATION_CHANGED = "classification_changed"
    OVERRIDE_CHANGED = "override_changed"
    NEW_DAY = "new_day"
    TOMORROW_ADDED = "tomorrow_added"


@dataclass(frozen=True)
class Slot:
    """Power state for the 60-minute window ending at ``hour_index``:00."""
    hour_index: int  # 1..24
    state: SlotState


@dataclass(frozen=True)
class DaySchedule:
    """Slots for one day; ``day_epoch`` is local midnight as Unix time."""
    day_epoch: int
    slots: Tuple[Slot, ...] = ()

    def day_date(self, tz: ZoneInfo) -> date:
        return datetime.fromtimestamp(self.day_epoch, tz).date()


@dataclass(frozen=True)
class Interval:
    """
    Contiguous range of uniform power state within one day.

    Attributes:
        start: Minute of day, inclusive (0..1439)
        end: Minute of day, exclusive (1..1440)
        kind: OUTAGE or POWER
        urgency: Set only on the interval taken from an override window
        live: True for the interval covering the current moment
    """
    start: int
    end: int
    kind: IntervalKind = IntervalKind.OUTAGE
    urgency: Optional[Urgency] = None
    live: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.start < self.end <= MINUTES_PER_DAY:
            raise ValueError(f"Invalid interval [{self.start}, {self.end})")

    @property
    def is_outage(self) -> bool:
        return self.kind == IntervalKind.OUTAGE

    @property
    def is_override(self) -> bool:
        return self.urgency is not None


@dataclass(frozen=True)
class DayIntervals:
    """Final interval list for one calendar day."""
    day: date
    intervals: Tuple[Interval, ...] = ()

    @property
    def outages(self) -> Tuple[Interval, ...]:
        return tuple(i for i in self.intervals if i.is_outage)

    @property
    def power(self) -> Tuple[Interval, ...]:
        return tuple(i for i in self.intervals if not i.is_outage)


@dataclass(frozen=True)
class OverrideWindow:
    """Authoritative current outage reported for an address."""
    start: datetime
    end: datetime
    reason: str
    urgency: Urgency

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Override window requires timezone-aware datetimes")
        if self.end <= self.start:
            raise ValueError(f"Override window ends before it starts: {self.start} - {self.end}")

    def fingerprint(self) -> str:
        """Stable identifier of the window content."""
        key = "|".join([
            self.start.isoformat(),
            self.end.isoformat(),
            self.urgency.value,
            self.reason.strip(),
        ])
        return hashlib.sha1(key.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class AddressState:
    """Persisted observation for one address, drives change detection."""
    last_classification: Optional[Urgency] = None
    last_scheduled_day_keys: FrozenSet[int] = field(default_factory=frozenset)
    last_override_fingerprint: Optional[str] = None
    last_checked: Optional[str] = None


@dataclass(frozen=True)
class Snapshot:
    """Current observation compared against AddressState."""
    classification: Optional[Urgency]
    scheduled_day_keys: FrozenSet[int]
    override_fingerprint: Optional[str] = None


@dataclass(frozen=True)
class ChangeEvent:
    kind: ChangeKind
    message: str
    day_key: Optional[int] = None


@dataclass(frozen=True)
class CalendarEvent:
    """One calendar entry ready for serialization."""
    uid: str
    start: datetime
    end: datetime
    label: str
    description: str
    reminder_minutes: int
    kind: EventKind = EventKind.OUTAGE
