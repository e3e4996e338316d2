"""
Parser for DTEK outage data.

Turns the raw payloads fetched by the scraper into core records:
hourly schedules, the current-outage window, the update time and the
outage classification.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from outage_calendar.core.types import DaySchedule, OverrideWindow, Slot, SlotState, Urgency

logger = logging.getLogger(__name__)


class Parser:
    """
    Parser for DTEK schedule and status data.

    Handles:
        - Fact table JSON: {"data": {"<day_epoch>": {"GPV5.1": {"1": "yes", ...}}}}
        - HTML table cell classes: "cell-scheduled", "cell-first-half", ...
        - Current outage text: "Час початку – 14:30 18.10.2026 ... до 21:30"
        - Per-house status: {"sub_type": ..., "start_date": ..., "end_date": ...}
    """

    STATUS_CODES = {
        "yes": SlotState.LIGHT,
        "no": SlotState.OFF,
        "first": SlotState.OFF_FIRST_HALF,
        "second": SlotState.OFF_SECOND_HALF,
        "cell-non-scheduled": SlotState.LIGHT,
        "cell-scheduled": SlotState.OFF,
        "cell-first-half": SlotState.OFF_FIRST_HALF,
        "cell-second-half": SlotState.OFF_SECOND_HALF,
    }

    # "14:30 18.10.2026"
    MOMENT_PATTERN = re.compile(r'(\d{1,2}):(\d{2})\s+(\d{1,2})\.(\d{1,2})\.(\d{4})')
    START_PATTERN = re.compile(r'Час початку\s*[–—-]\s*(\d{1,2}):(\d{2})\s+(\d{1,2})\.(\d{1,2})\.(\d{4})')
    END_PATTERN = re.compile(r'до\s+(\d{1,2}):(\d{2})(?:\s+(\d{1,2})\.(\d{1,2})\.(\d{4}))?')
    REASON_PATTERN = re.compile(r'Причина:\s*(.+?)(?:\n|$)')
    UPDATE_PATTERN = re.compile(r'Дата оновлення інформації\s*[–—-]\s*(\d{1,2}):(\d{2})')
    TIME_PATTERN = re.compile(r'\b(\d{1,2}):(\d{2})\b')

    DEFAULT_REASON = "Стабілізаційне відключення"

    def __init__(self, tz: ZoneInfo) -> None:
        self.tz = tz

    # --- Schedules ---

    def parse_status(self, code: str) -> Optional[SlotState]:
        """Map a status code or cell class to a slot state (None if unknown)."""
        if not isinstance(code, str):
            return None
        normalized = code.strip().lower()
        if normalized in self.STATUS_CODES:
            return self.STATUS_CODES[normalized]
        # HTML cells carry several classes ("cell cell-scheduled")
        for token in normalized.split():
            if token in self.STATUS_CODES:
                return self.STATUS_CODES[token]
        return None

    def parse_slots(self, cells: Mapping[str, str]) -> Tuple[Slot, ...]:
        """
        Parse one day's cells keyed by hour index ("1".."24").

        Malformed cells are logged and skipped; the rest of the day is kept.
        """
        slots: Dict[int, Slot] = {}
        for raw_hour, code in cells.items():
            try:
                hour = int(raw_hour)
            except (TypeError, ValueError):
                logger.warning(f"Skipping slot with invalid hour {raw_hour!r}")
                continue
            if not 1 <= hour <= 24:
                logger.warning(f"Skipping slot with out-of-range hour {hour}")
                continue
            state = self.parse_status(code)
            if state is None:
                logger.warning(f"Skipping slot {hour} with unknown status {code!r}")
                continue
            if hour in slots:
                logger.warning(f"Duplicate slot {hour}, keeping first")
                continue
            slots[hour] = Slot(hour, state)
        return tuple(slots[h] for h in sorted(slots))

    def parse_table_row(self, day_epoch: int, cell_classes: Sequence[str]) -> DaySchedule:
        """Parse a rendered schedule row; cell N covers hour N+1."""
        cells = {str(i + 1): cls for i, cls in enumerate(cell_classes)}
        return DaySchedule(day_epoch, self.parse_slots(cells))

    def parse_fact(self, fact: Mapping, group: str) -> List[DaySchedule]:
        """
        Extract the schedules of one queue from the fact table.

        Args:
            fact: {"data": {"<day_epoch>": {"<group>": {"<hour>": "<code>"}}}}
            group: Queue identifier, e.g. "GPV5.1"

        Returns:
            DaySchedule list sorted by day; days without the queue are skipped.
        """
        schedules = []
        for raw_day, groups in (fact.get("data") or {}).items():
            try:
                day_epoch = int(raw_day)
            except (TypeError, ValueError):
                logger.warning(f"Skipping day with invalid key {raw_day!r}")
                continue
            if not isinstance(groups, Mapping) or group not in groups:
                continue
            cells = groups[group]
            if not isinstance(cells, Mapping):
                logger.warning(f"Skipping malformed schedule for {group} on {raw_day}")
                continue
            schedules.append(DaySchedule(day_epoch, self.parse_slots(cells)))
        return sorted(schedules, key=lambda s: s.day_epoch)

    # --- Classification ---

    def classify(self, text: Optional[str]) -> Optional[Urgency]:
        """Outage classification from announcement text."""
        if not text:
            return None
        lowered = text.lower()
        if "екстрен" in lowered:
            return Urgency.EMERGENCY
        if "аварійн" in lowered:
            return Urgency.ACCIDENT
        if "стабілізац" in lowered:
            return Urgency.STABILIZATION
        return None

    # --- Timestamps ---

    def _moment(self, hour: str, minute: str, day: str, month: str, year: str) -> datetime:
        return datetime(int(year), int(month), int(day), int(hour), int(minute), tzinfo=self.tz)

    def parse_moment(self, text: Optional[str]) -> Optional[datetime]:
        """Parse "HH:MM DD.MM.YYYY" into an aware datetime."""
        if not text:
            return None
        match = self.MOMENT_PATTERN.search(text)
        if not match:
            return None
        try:
            return self._moment(*match.groups())
        except ValueError:
            return None

    def parse_update_time(self, text: Optional[str]) -> Optional[str]:
        """Upstream update time as "HH:MM"."""
        if not text:
            return None
        match = self.UPDATE_PATTERN.search(text) or self.TIME_PATTERN.search(text)
        if not match:
            return None
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            return None
        return f"{hour:02d}:{minute:02d}"

    # --- Current outage ---

    def _window(
        self, start: datetime, end: datetime, reason: str, urgency: Urgency, roll_over: bool = False
    ) -> Optional[OverrideWindow]:
        if end <= start and roll_over:
            end += timedelta(days=1)
        if end <= start:
            logger.warning(f"Ignoring override ending before it starts: {start} - {end}")
            return None
        return OverrideWindow(start, end, reason, urgency)

    def parse_override_text(self, text: Optional[str], urgency: Optional[Urgency] = None) -> Optional[OverrideWindow]:
        """
        Parse the current-outage block.

        The end time may omit the date; it then takes the start date and
        rolls over to the next day if it is not after the start.
        """
        if not text:
            return None
        start_match = self.START_PATTERN.search(text)
        if not start_match:
            logger.warning("Current outage text without a start time, ignoring")
            return None
        end_match = self.END_PATTERN.search(text, start_match.end())
        if not end_match:
            logger.warning("Current outage text without a restoration time, ignoring")
            return None

        hour, minute, day, month, year = start_match.groups()
        end_hour, end_minute, end_day, end_month, end_year = end_match.groups()
        try:
            start = self._moment(hour, minute, day, month, year)
            end = self._moment(
                end_hour, end_minute,
                end_day or day, end_month or month, end_year or year,
            )
        except ValueError as e:
            logger.warning(f"Unparsable current outage timestamps: {e}")
            return None

        reason_match = self.REASON_PATTERN.search(text)
        reason = reason_match.group(1).strip() if reason_match else self.DEFAULT_REASON
        resolved = urgency or self.classify(text) or Urgency.STABILIZATION
        return self._window(start, end, reason, resolved, roll_over=end_day is None)

    def parse_house(self, entry: Optional[Mapping], urgency: Optional[Urgency] = None) -> Optional[OverrideWindow]:
        """
        Parse a per-house status entry.

        Args:
            entry: {"sub_type": "...", "start_date": "HH:MM DD.MM.YYYY", "end_date": "..."}
            urgency: Classification that takes precedence over the entry text

        Returns:
            OverrideWindow, or None when there is no current outage or the
            timestamps cannot be parsed or end before the start.
        """
        if not entry:
            return None
        start_text = entry.get("start_date")
        end_text = entry.get("end_date")
        if not start_text and not end_text:
            return None

        start = self.parse_moment(start_text)
        end = self.parse_moment(end_text)
        if start is None or end is None:
            logger.warning(f"Unparsable current outage timestamps: {start_text!r} - {end_text!r}")
            return None

        reason = (entry.get("sub_type") or "").strip() or self.DEFAULT_REASON
        resolved = urgency or self.classify(reason) or Urgency.STABILIZATION
        return self._window(start, end, reason, resolved)

    def house_group(self, entry: Optional[Mapping]) -> Optional[str]:
        """Queue identifier reported for a house ("GPV5.1"), if any."""
        if not entry:
            return None
        reasons = entry.get("sub_type_reason") or []
        return reasons[0] if reasons else None
