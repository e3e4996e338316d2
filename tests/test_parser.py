"""
Unit tests for the DTEK data parser.
"""

from datetime import datetime

import pytest

from outage_calendar.core.types import Slot, SlotState, Urgency
from outage_calendar.logic.parser import Parser


@pytest.fixture
def parser(tz):
    return Parser(tz)


CURRENT_OUTAGE_TEXT = """
Причина: Екстрені відключення (Аварійне без застосування графіку погодинних відключень)
Час початку – 14:30 18.10.2026
Орієнтовний час відновлення електроенергії – до 21:30 18.10.2026
"""


class TestParseFact:
    """Tests for the fact table."""

    def test_parse_fact(self, parser):
        fact = {
            "data": {
                "1760734800": {
                    "GPV5.1": {"1": "no", "2": "no", "3": "yes", "4": "first"},
                    "GPV5.2": {"1": "yes"},
                },
                "1760821200": {
                    "GPV5.1": {"24": "second"},
                },
            },
            "update": "18.10.2026 10:15",
        }

        schedules = parser.parse_fact(fact, "GPV5.1")

        assert [s.day_epoch for s in schedules] == [1760734800, 1760821200]
        assert schedules[0].slots == (
            Slot(1, SlotState.OFF),
            Slot(2, SlotState.OFF),
            Slot(3, SlotState.LIGHT),
            Slot(4, SlotState.OFF_FIRST_HALF),
        )
        assert schedules[1].slots == (Slot(24, SlotState.OFF_SECOND_HALF),)

    def test_bad_cells_skipped(self, parser):
        """A malformed cell does not discard the rest of the day."""
        fact = {"data": {"1760734800": {"GPV5.1": {
            "1": "no",
            "25": "no",
            "0": "no",
            "abc": "no",
            "5": "maybe",
            "6": None,
            "7": "second",
        }}}}

        schedules = parser.parse_fact(fact, "GPV5.1")

        assert schedules[0].slots == (Slot(1, SlotState.OFF), Slot(7, SlotState.OFF_SECOND_HALF))

    def test_missing_group(self, parser):
        fact = {"data": {"1760734800": {"GPV1.1": {"1": "no"}}}}
        assert parser.parse_fact(fact, "GPV5.1") == []

    def test_invalid_day_key_skipped(self, parser):
        fact = {"data": {"tomorrow": {"GPV5.1": {"1": "no"}}, "1760734800": {"GPV5.1": {"1": "no"}}}}
        assert [s.day_epoch for s in parser.parse_fact(fact, "GPV5.1")] == [1760734800]

    def test_empty_fact(self, parser):
        assert parser.parse_fact({}, "GPV5.1") == []


class TestParseTable:
    """Tests for rendered table cells."""

    def test_cell_classes(self, parser):
        row = ["cell-scheduled", "cell cell-first-half", "cell-non-scheduled", "cell-second-half"]

        schedule = parser.parse_table_row(1760734800, row)

        assert schedule.slots == (
            Slot(1, SlotState.OFF),
            Slot(2, SlotState.OFF_FIRST_HALF),
            Slot(3, SlotState.LIGHT),
            Slot(4, SlotState.OFF_SECOND_HALF),
        )


class TestClassify:
    """Tests for classify()."""

    def test_classify(self, parser):
        assert parser.classify("Екстрені відключення") == Urgency.EMERGENCY
        assert parser.classify("Аварійне відключення") == Urgency.ACCIDENT
        assert parser.classify("Стабілізаційне відключення") == Urgency.STABILIZATION
        assert parser.classify("Планові ремонтні роботи") is None
        assert parser.classify(None) is None

    def test_emergency_takes_precedence(self, parser):
        assert parser.classify(CURRENT_OUTAGE_TEXT) == Urgency.EMERGENCY


class TestParseOverrideText:
    """Tests for the current-outage block."""

    def test_full_text(self, parser, tz):
        override = parser.parse_override_text(CURRENT_OUTAGE_TEXT)

        assert override.start == datetime(2026, 10, 18, 14, 30, tzinfo=tz)
        assert override.end == datetime(2026, 10, 18, 21, 30, tzinfo=tz)
        assert override.urgency == Urgency.EMERGENCY
        assert override.reason.startswith("Екстрені відключення")

    def test_end_without_date(self, parser, tz):
        text = "Час початку – 09:00 18.10.2026\nОрієнтовний час відновлення – до 13:00"
        override = parser.parse_override_text(text)

        assert override.end == datetime(2026, 10, 18, 13, 0, tzinfo=tz)
        assert override.urgency == Urgency.STABILIZATION
        assert override.reason == "Стабілізаційне відключення"

    def test_end_rolls_past_midnight(self, parser, tz):
        text = "Час початку – 22:00 18.10.2026\nОрієнтовний час відновлення – до 02:00"
        override = parser.parse_override_text(text)

        assert override.end == datetime(2026, 10, 19, 2, 0, tzinfo=tz)

    def test_dated_end_before_start_rejected(self, parser):
        text = "Час початку – 22:00 18.10.2026\nОрієнтовний час відновлення – до 02:00 18.10.2026"
        assert parser.parse_override_text(text) is None

    def test_urgency_hint_wins(self, parser):
        override = parser.parse_override_text(CURRENT_OUTAGE_TEXT, urgency=Urgency.ACCIDENT)
        assert override.urgency == Urgency.ACCIDENT

    def test_missing_times(self, parser):
        assert parser.parse_override_text("Причина: Екстрені відключення") is None
        assert parser.parse_override_text("Час початку – 14:30 18.10.2026") is None
        assert parser.parse_override_text("") is None

    def test_invalid_date(self, parser):
        text = "Час початку – 14:30 32.13.2026\nдо 21:30"
        assert parser.parse_override_text(text) is None


class TestParseHouse:
    """Tests for per-house status entries."""

    def test_house_entry(self, parser, tz):
        entry = {
            "sub_type": "Аварійне відключення",
            "start_date": "09:33 18.10.2026",
            "end_date": "18:00 18.10.2026",
            "type": "2",
            "sub_type_reason": ["GPV5.1"],
        }

        override = parser.parse_house(entry)

        assert override.start == datetime(2026, 10, 18, 9, 33, tzinfo=tz)
        assert override.end == datetime(2026, 10, 18, 18, 0, tzinfo=tz)
        assert override.urgency == Urgency.ACCIDENT
        assert parser.house_group(entry) == "GPV5.1"

    def test_no_current_outage(self, parser):
        entry = {"sub_type": "", "start_date": "", "end_date": "", "sub_type_reason": ["GPV5.1"]}
        assert parser.parse_house(entry) is None
        assert parser.parse_house(None) is None

    def test_unparsable_timestamps(self, parser):
        """Broken timestamps mean "no override", not a failure."""
        entry = {"sub_type": "Екстрені відключення", "start_date": "скоро", "end_date": "18:00 18.10.2026"}
        assert parser.parse_house(entry) is None

    def test_end_before_start_rejected(self, parser):
        """A dated end before the start is not rolled into the next day."""
        entry = {
            "sub_type": "Екстрені відключення",
            "start_date": "13:00 18.10.2026",
            "end_date": "12:00 18.10.2026",
        }
        assert parser.parse_house(entry) is None

    def test_popup_classification_wins(self, parser):
        entry = {
            "sub_type": "Стабілізаційне відключення",
            "start_date": "09:00 18.10.2026",
            "end_date": "13:00 18.10.2026",
        }
        assert parser.parse_house(entry, urgency=Urgency.EMERGENCY).urgency == Urgency.EMERGENCY

    def test_house_group_missing(self, parser):
        assert parser.house_group({"sub_type_reason": []}) is None
        assert parser.house_group(None) is None


class TestUpdateTime:
    """Tests for parse_update_time()."""

    def test_page_text(self, parser):
        assert parser.parse_update_time("Дата оновлення інформації – 9:05 18.10.2026") == "09:05"

    def test_fact_format(self, parser):
        assert parser.parse_update_time("18.10.2026 10:15") == "10:15"

    def test_invalid(self, parser):
        assert parser.parse_update_time("немає даних") is None
        assert parser.parse_update_time(None) is None
        assert parser.parse_update_time("99:99") is None
