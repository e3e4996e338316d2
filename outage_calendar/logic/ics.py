"""
iCalendar (RFC 5545) serialization of calendar events.
"""

from datetime import timedelta, timezone
from typing import Iterable

from icalendar import Alarm, Calendar, Event

from outage_calendar.core.types import CalendarEvent

PRODID = "-//outage-calendar//Scheduler//UK"


def vevent(event: CalendarEvent, location: str = "") -> Event:
    """VEVENT for one CalendarEvent, reminder included."""
    start = event.start.astimezone(timezone.utc)
    end = event.end.astimezone(timezone.utc)

    component = Event()
    component.add("uid", event.uid)
    component.add("dtstamp", start)
    component.add("dtstart", start)
    component.add("dtend", end)
    component.add("summary", event.label)
    component.add("description", event.description)
    if location:
        component.add("location", location)
    component.add("status", "CONFIRMED")
    component.add("transp", "TRANSPARENT")
    component.add("categories", event.kind.value.upper())

    alarm = Alarm()
    alarm.add("action", "DISPLAY")
    alarm.add("trigger", timedelta(minutes=-event.reminder_minutes))
    alarm.add("description", event.label)
    component.add_component(alarm)
    return component


def build_calendar(events: Iterable[CalendarEvent], name: str, tz_name: str, location: str = "") -> str:
    """
    Wrap events in a single VCALENDAR.

    Instants are written in UTC; X-WR-TIMEZONE tells clients which zone to
    display them in.
    """
    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", name)
    cal.add("x-wr-timezone", tz_name)
    for event in events:
        cal.add_component(vevent(event, location))
    return cal.to_ical().decode("utf-8")
