"""
Database module for the outage calendar.

Manages SQLite database with published calendar events, alert events,
rendered calendars and run metadata.
Uses separate connection per request for thread-safety with FastAPI.
"""

import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional

from outage_calendar.core.types import CalendarEvent, EventKind


class Database:
    """
    SQLite database handler for published events.

    Tables:
        - events: Current calendar events per address (replaced every run)
        - alerts: Change alerts per address (kept until they end)
        - calendars: Rendered .ics content per address
        - metadata: System metadata (last_updated, etc.)

    Thread Safety:
        Creates a new connection for each operation to ensure thread safety
        when used with FastAPI's request handling.
    """

    def __init__(self, db_path: str = "outages.db") -> None:
        """
        Initialize database.

        Args:
            db_path: Path to SQLite database file.
        """
        self.db_path = db_path
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        """Create a new connection (thread-safe for FastAPI)."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._connect() as conn:
            conn.executescript("""
                -- Calendar events (outage and power intervals)
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    address_id TEXT NOT NULL,
                    uid TEXT NOT NULL,
                    start_ts INTEGER NOT NULL,
                    end_ts INTEGER NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    label TEXT NOT NULL,
                    description TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    reminder_minutes INTEGER NOT NULL
                );

                -- Change alerts
                CREATE TABLE IF NOT EXISTS alerts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    address_id TEXT NOT NULL,
                    uid TEXT UNIQUE NOT NULL,
                    start_ts INTEGER NOT NULL,
                    end_ts INTEGER NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    label TEXT NOT NULL,
                    description TEXT NOT NULL
                );

                -- Rendered calendars
                CREATE TABLE IF NOT EXISTS calendars (
                    address_id TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                -- System metadata
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT
                );

                -- Indexes for fast lookups
                CREATE INDEX IF NOT EXISTS idx_events_address ON events(address_id, start_ts);
                CREATE INDEX IF NOT EXISTS idx_alerts_address ON alerts(address_id, end_ts);
            """)
            conn.commit()

    def save_events(self, address_id: str, events: Iterable[CalendarEvent]) -> None:
        """
        Replace the published events of an address.

        Args:
            address_id: Address identifier
            events: Outage/power events (alerts are stored separately)
        """
        with self._connect() as conn:
            conn.execute("DELETE FROM events WHERE address_id = ?", (address_id,))
            conn.executemany(
                """INSERT INTO events (address_id, uid, start_ts, end_ts, start_time, end_time,
                                       label, description, kind, reminder_minutes)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (address_id, e.uid, int(e.start.timestamp()), int(e.end.timestamp()),
                     e.start.isoformat(), e.end.isoformat(), e.label, e.description,
                     e.kind.value, e.reminder_minutes)
                    for e in events if e.kind != EventKind.ALERT
                ]
            )
            conn.commit()

    def get_events(self, address_id: str, after: Optional[datetime] = None) -> list[dict]:
        """
        Get published events of an address ordered by start.

        Args:
            address_id: Address identifier
            after: Only events ending after this moment

        Returns:
            List of dicts with start_time, end_time, label, description, kind,
            reminder_minutes keys.
        """
        threshold = int(after.timestamp()) if after else 0
        with self._connect() as conn:
            cursor = conn.execute(
                """SELECT start_time, end_time, label, description, kind, reminder_minutes
                   FROM events
                   WHERE address_id = ? AND end_ts > ?
                   ORDER BY start_ts""",
                (address_id, threshold)
            )
            return [dict(row) for row in cursor.fetchall()]

    def save_alert(self, address_id: str, event: CalendarEvent) -> None:
        """Store a change alert; duplicates by uid are ignored."""
        with self._connect() as conn:
            conn.execute(
                """INSERT OR IGNORE INTO alerts (address_id, uid, start_ts, end_ts, start_time,
                                                 end_time, label, description)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (address_id, event.uid, int(event.start.timestamp()), int(event.end.timestamp()),
                 event.start.isoformat(), event.end.isoformat(), event.label, event.description)
            )
            conn.commit()

    def get_active_alerts(self, address_id: str, now: datetime) -> List[CalendarEvent]:
        """
        Get alerts that have not ended yet.

        Returns:
            CalendarEvent list (kind "alert") ordered by start.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """SELECT uid, start_time, end_time, label, description FROM alerts
                   WHERE address_id = ? AND end_ts > ?
                   ORDER BY start_ts""",
                (address_id, int(now.timestamp()))
            )
            return [
                CalendarEvent(
                    uid=row["uid"],
                    start=datetime.fromisoformat(row["start_time"]),
                    end=datetime.fromisoformat(row["end_time"]),
                    label=row["label"],
                    description=row["description"],
                    reminder_minutes=0,
                    kind=EventKind.ALERT,
                )
                for row in cursor.fetchall()
            ]

    def save_calendar(self, address_id: str, content: str) -> bool:
        """
        Store rendered calendar content.

        Returns:
            True if the content changed.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT content FROM calendars WHERE address_id = ?", (address_id,)
            )
            row = cursor.fetchone()
            if row and row["content"] == content:
                return False
            conn.execute(
                "INSERT OR REPLACE INTO calendars (address_id, content, updated_at) VALUES (?, ?, ?)",
                (address_id, content, datetime.now().isoformat())
            )
            conn.commit()
            return True

    def get_calendar(self, address_id: str) -> Optional[str]:
        """
        Get rendered calendar content for an address.

        Returns:
            iCalendar text or None if not found.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT content FROM calendars WHERE address_id = ?", (address_id,)
            )
            row = cursor.fetchone()
            return row["content"] if row else None

    def set_metadata(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                (key, value)
            )
            conn.commit()

    def get_metadata(self, key: str) -> Optional[str]:
        """
        Get metadata value by key.

        Args:
            key: Metadata key (e.g., "last_updated")

        Returns:
            Value or None if not found.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT value FROM metadata WHERE key = ?", (key,)
            )
            row = cursor.fetchone()
            return row["value"] if row else None
