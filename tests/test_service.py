"""
Tests for OutageService: a full update run with a mocked scraper.
"""

from datetime import date, datetime
from unittest.mock import MagicMock

import pytest

from outage_calendar.core.config import Settings
from outage_calendar.core.models import AddressConfig
from outage_calendar.core.types import Urgency
from outage_calendar.db.database import Database
from outage_calendar.db.state import StateStore
from outage_calendar.logic.differ import day_key
from outage_calendar.logic.scraper import Scraper
from outage_calendar.services.outage_service import OutageService


def make_fact(tz, days):
    """Fact table for queue GPV5.1: {date: {hour: code}}."""
    return {
        "data": {str(day_key(day, tz)): {"GPV5.1": cells} for day, cells in days.items()},
        "update": "18.10.2026 10:15",
    }


HOUSE_PAYLOAD = {
    "data": {
        "21": {
            "sub_type": "Екстрені відключення",
            "start_date": "13:00 18.10.2026",
            "end_date": "15:00 18.10.2026",
            "sub_type_reason": ["GPV5.1"],
        }
    },
    "updateTimestamp": "10:15 18.10.2026",
}


@pytest.fixture
def config(tmp_path):
    config = Settings()
    config.TIMEZONE = "Europe/Kyiv"
    config.CALENDAR_DIR = str(tmp_path / "calendars")
    config.REMINDER_MINUTES = 30
    return config


@pytest.fixture
def scraper(tz):
    scraper = MagicMock(spec=Scraper)
    scraper.fetch.return_value = "<html></html>"
    scraper.extract_fact.return_value = make_fact(tz, {
        date(2026, 10, 18): {"13": "no", "14": "no", "15": "no", "16": "no"},
    })
    scraper.extract_announcement.return_value = None
    scraper.extract_current_outage.return_value = None
    scraper.extract_tables.return_value = []
    scraper.extract_update_text.return_value = "Дата оновлення інформації – 10:15 18.10.2026"
    scraper.extract_csrf.return_value = "token"
    scraper.fetch_house.return_value = HOUSE_PAYLOAD
    return scraper


@pytest.fixture
def service(tmp_path, config, scraper, address):
    db = Database(db_path=str(tmp_path / "outages.db"))
    store = StateStore(str(tmp_path / "state.json"))
    return OutageService(db, store, [address], config=config, scraper=scraper)


@pytest.fixture
def now(tz):
    return datetime(2026, 10, 18, 8, 0, tzinfo=tz)


class TestUpdate:
    """Tests for OutageService.update()."""

    def test_first_run(self, service, now, tmp_path):
        """First run publishes the calendar, alerts and stores state."""
        results = service.update(now=now)

        assert results["gora"].status == "ok"
        # power 00-12, outage 12-13, override 13-15, outage 15-16, power 16-24, alert
        assert results["gora"].events == 6
        assert results["gora"].alert is not None

        ics = (tmp_path / "calendars" / "gora.ics").read_bytes().decode("utf-8")
        unfolded = ics.replace("\r\n ", "")
        assert ics.count("BEGIN:VEVENT") == 6
        # the override has not started yet at 08:00
        assert "SUMMARY:🚫 Відключення (13:00 - 15:00) · оновлено 10:15" in unfolded

        state = service.state_store.load()["gora"]
        assert state.last_classification == Urgency.EMERGENCY
        assert state.last_override_fingerprint is not None
        assert len(state.last_scheduled_day_keys) == 1

        assert service.db.get_metadata("last_updated") == now.isoformat()

    def test_rerun_is_idempotent(self, service, now):
        """Identical upstream data: no new alert, calendar unchanged."""
        service.update(now=now)
        calendar = service.db.get_calendar("gora")
        state = service.state_store.load()["gora"]

        results = service.update(now=now)

        assert results["gora"].alert is None
        assert service.db.get_calendar("gora") == calendar
        new_state = service.state_store.load()["gora"]
        assert new_state.last_scheduled_day_keys == state.last_scheduled_day_keys
        assert new_state.last_override_fingerprint == state.last_override_fingerprint

    def test_tomorrow_published(self, service, scraper, now, tz):
        service.update(now=now)
        scraper.extract_fact.return_value = make_fact(tz, {
            date(2026, 10, 18): {"13": "no", "14": "no", "15": "no", "16": "no"},
            date(2026, 10, 19): {"1": "no"},
        })

        results = service.update(now=now)

        assert "завтра" in results["gora"].alert
        assert len(service.state_store.load()["gora"].last_scheduled_day_keys) == 2

    def test_popup_classification_wins(self, service, scraper, now):
        scraper.extract_announcement.return_value = "Увага! Аварійні відключення у зв'язку з обстрілами"

        service.update(now=now)

        assert service.state_store.load()["gora"].last_classification == Urgency.ACCIDENT

    def test_fetch_failure(self, service, scraper, now, tmp_path):
        scraper.fetch.return_value = None

        assert service.update(now=now) is None
        assert not (tmp_path / "state.json").exists()

    def test_address_failure_is_isolated(self, tmp_path, config, scraper, address, now):
        """One failing address does not stop the others."""
        broken = AddressConfig(id="broken", city="м. Ірпінь", street="вул. Садова", house="1", group="GPV1.1")

        def fetch_house(addr, csrf):
            if addr.id == "broken":
                raise RuntimeError("unexpected payload")
            return HOUSE_PAYLOAD

        scraper.fetch_house.side_effect = fetch_house
        service = OutageService(
            Database(db_path=str(tmp_path / "outages.db")),
            StateStore(str(tmp_path / "state.json")),
            [broken, address],
            config=config,
            scraper=scraper,
        )

        results = service.update(now=now)

        assert results["broken"].status == "error"
        assert "unexpected payload" in results["broken"].error
        assert results["gora"].status == "ok"
        assert set(service.state_store.load()) == {"gora"}

    def test_no_current_outage(self, service, scraper, now):
        """Without an override the schedule is published as is."""
        scraper.fetch_house.return_value = {"data": {"21": {"sub_type": "", "start_date": "", "end_date": ""}}}

        results = service.update(now=now)

        events = service.db.get_events("gora")
        assert results["gora"].status == "ok"
        assert [e["kind"] for e in events] == ["power", "outage", "power"]
        assert service.state_store.load()["gora"].last_override_fingerprint is None

    def test_queue_from_house_status(self, tmp_path, config, scraper, now):
        """An address without a configured queue uses the one reported for the house."""
        address = AddressConfig(id="gora", city="с. Гора", street="вул. Мостова", house="21")
        service = OutageService(
            Database(db_path=str(tmp_path / "outages.db")),
            StateStore(str(tmp_path / "state.json")),
            [address],
            config=config,
            scraper=scraper,
        )

        service.update(now=now)

        assert len(service.state_store.load()["gora"].last_scheduled_day_keys) == 1

    def test_current_outage_block_fallback(self, service, scraper, now):
        """Without a house status the page's current-outage block is used."""
        scraper.fetch_house.return_value = None
        scraper.extract_current_outage.return_value = (
            "Причина: Екстрені відключення\n"
            "Час початку – 13:00 18.10.2026\n"
            "Орієнтовний час відновлення електроенергії – до 15:00 18.10.2026"
        )

        results = service.update(now=now)

        labels = [e["label"] for e in service.db.get_events("gora")]
        assert results["gora"].status == "ok"
        assert "🚫 Відключення (13:00 - 15:00) · оновлено 10:15" in labels
        state = service.state_store.load()["gora"]
        assert state.last_classification == Urgency.EMERGENCY
        assert state.last_override_fingerprint is not None

    def test_rendered_tables_fallback(self, service, scraper, now, tz):
        """Without the fact table the rendered schedule rows are used."""
        scraper.extract_fact.return_value = None
        scraper.extract_tables.return_value = [(
            day_key(date(2026, 10, 18), tz),
            ["cell-non-scheduled"] * 12 + ["cell-scheduled"] * 4 + ["cell-non-scheduled"] * 8,
        )]
        scraper.fetch_house.return_value = {"data": {"21": {"sub_type": "", "start_date": "", "end_date": ""}}}

        service.update(now=now)

        events = service.db.get_events("gora")
        assert [e["kind"] for e in events] == ["power", "outage", "power"]
        assert events[1]["start_time"] == datetime(2026, 10, 18, 12, 0, tzinfo=tz).isoformat()
        assert events[1]["end_time"] == datetime(2026, 10, 18, 16, 0, tzinfo=tz).isoformat()


class TestGetAddress:

    def test_get_address(self, service):
        assert service.get_address("gora").house == "21"
        assert service.get_address("missing") is None
