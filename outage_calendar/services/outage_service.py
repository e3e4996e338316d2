"""
Outage service: one update run over all monitored addresses.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from outage_calendar.core.config import Settings, settings as default_settings
from outage_calendar.core.models import AddressConfig, AddressResult
from outage_calendar.core.types import AddressState, CalendarEvent, DaySchedule, EventKind, Urgency
from outage_calendar.db.database import Database
from outage_calendar.db.state import StateStore
from outage_calendar.logic.ics import build_calendar
from outage_calendar.logic.parser import Parser
from outage_calendar.logic.scraper import Scraper
from outage_calendar.services.pipeline import (
    AddressInput,
    AddressOutput,
    resolve_classification,
    run_address,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageData:
    """Data read once from the shutdowns page."""
    fact: dict = field(default_factory=dict)
    tables: Tuple[DaySchedule, ...] = ()
    popup: Optional[Urgency] = None
    current_outage: Optional[str] = None
    update_time: Optional[str] = None
    csrf: Optional[str] = None


class OutageService:
    """
    Fetches upstream data once per run and processes every address.

    Addresses are isolated: a failure is logged and reported for that
    address only, and its previous state is kept.
    """

    def __init__(
        self,
        db: Database,
        state_store: StateStore,
        addresses: List[AddressConfig],
        config: Settings = default_settings,
        scraper: Optional[Scraper] = None,
    ) -> None:
        self.db = db
        self.state_store = state_store
        self.addresses = addresses
        self.config = config
        self.tz = config.tz
        self.scraper = scraper or Scraper(config.SOURCE_URL, timeout=config.REQUEST_TIMEOUT)
        self.parser = Parser(self.tz)

    def get_address(self, address_id: str) -> Optional[AddressConfig]:
        return next((a for a in self.addresses if a.id == address_id), None)

    def update(self, now: Optional[datetime] = None) -> Optional[Dict[str, AddressResult]]:
        """
        Fetch the page, recompute calendars for all addresses, persist state.

        Returns:
            Per-address results, or None if the page could not be fetched.
        """
        html = self.scraper.fetch()
        if not html:
            return None

        now = now or datetime.now(self.tz)
        page = self.read_page(html)
        if page.popup:
            logger.info(f"Site-wide announcement: {page.popup.value}")

        states = self.state_store.load()
        results: Dict[str, AddressResult] = {}

        for address in self.addresses:
            try:
                data = self.collect(address, page)
                output = run_address(
                    address,
                    data,
                    states.get(address.id, AddressState()),
                    now,
                    self.tz,
                    reminder_minutes=self.config.REMINDER_MINUTES,
                )
                self.publish(address, output, now)
                states[address.id] = output.state
                results[address.id] = AddressResult(
                    status="ok",
                    events=len(output.events),
                    alert=output.change.message if output.change else None,
                )
                logger.info(
                    f"{address.id}: {len(output.days)} days, {len(output.events)} events"
                    + (f", alert: {output.change.kind.value}" if output.change else "")
                )
            except Exception as e:
                logger.exception(f"Error processing address {address.id}")
                results[address.id] = AddressResult(status="error", error=str(e))

        self.state_store.save(states)
        self.db.set_metadata("last_updated", now.isoformat())
        return results

    def read_page(self, html: str) -> PageData:
        """Extract the page-level data shared by all addresses."""
        fact = self.scraper.extract_fact(html) or {}
        tables = tuple(
            self.parser.parse_table_row(day_epoch, classes)
            for day_epoch, classes in self.scraper.extract_tables(html)
        )
        return PageData(
            fact=fact,
            tables=tables,
            popup=self.parser.classify(self.scraper.extract_announcement(html)),
            current_outage=self.scraper.extract_current_outage(html),
            update_time=(
                self.parser.parse_update_time(self.scraper.extract_update_text(html))
                or self.parser.parse_update_time(fact.get("update"))
            ),
            csrf=self.scraper.extract_csrf(html),
        )

    def collect(self, address: AddressConfig, page: PageData) -> AddressInput:
        """
        Gather schedules, override and classification for one address.

        The per-house status is the primary source. When it is unavailable
        the page's current-outage block is used, and when the page carries
        no fact table the rendered schedule rows are used.
        """
        payload = self.scraper.fetch_house(address, page.csrf) or {}
        entry = (payload.get("data") or {}).get(address.house)

        group = address.group or self.parser.house_group(entry)
        if page.fact.get("data"):
            if not group:
                logger.warning(f"{address.id}: queue unknown, no schedule available")
            schedules = tuple(self.parser.parse_fact(page.fact, group)) if group else ()
        else:
            schedules = page.tables

        if payload:
            address_class = self.parser.classify(entry.get("sub_type")) if entry else None
            override = self.parser.parse_house(entry, urgency=page.popup)
        else:
            address_class = self.parser.classify(page.current_outage)
            override = self.parser.parse_override_text(page.current_outage, urgency=page.popup)

        update_time = self.parser.parse_update_time(payload.get("updateTimestamp")) or page.update_time
        return AddressInput(
            schedules=schedules,
            override=override,
            classification=resolve_classification(page.popup, address_class),
            update_time=update_time,
        )

    def publish(self, address: AddressConfig, output: AddressOutput, now: datetime) -> None:
        """Store events and alerts, render the calendar, write the .ics file if changed."""
        schedule_events = [e for e in output.events if e.kind != EventKind.ALERT]
        for alert in (e for e in output.events if e.kind == EventKind.ALERT):
            self.db.save_alert(address.id, alert)

        self.db.save_events(address.id, schedule_events)
        events: List[CalendarEvent] = sorted(
            [*schedule_events, *self.db.get_active_alerts(address.id, now)],
            key=lambda e: e.start,
        )

        content = build_calendar(
            events,
            name=f"ДТЕК {address.city}",
            tz_name=self.config.TIMEZONE,
            location=address.label,
        )
        path = Path(self.config.CALENDAR_DIR) / f"{address.id}.ics"
        if self.db.save_calendar(address.id, content) or not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content.encode("utf-8"))
            logger.info(f"Calendar written: {path}")
