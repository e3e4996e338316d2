"""
DTEK Outage Calendar

FastAPI application that republishes DTEK power outage schedules as
iCalendar files, one per monitored address, and alerts on changes.
Data source: dtek-krem.com.ua

Usage:
    python main.py              # Run server on port 8000
    python main.py --once       # Run one update and exit (cron)
    python main.py --watch      # Update every CHECK_INTERVAL_MINUTES
    uvicorn main:app --reload   # Development with auto-reload
"""

import argparse
import logging
import time
from datetime import datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from outage_calendar.core.config import settings
from outage_calendar.core.models import ScheduleResponse, StatusResponse, load_addresses
from outage_calendar.db.database import Database
from outage_calendar.db.state import StateStore
from outage_calendar.services.outage_service import OutageService

# --- Logging Configuration ---

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# --- Utility Functions ---

def calculate_hours(events: list[dict]) -> float:
    """
    Calculate total outage hours from published events.

    Args:
        events: List of dicts with start_time, end_time (ISO 8601) and kind keys.

    Returns:
        Total hours as float (e.g., 5.5 for 5 hours 30 minutes).
    """
    total_minutes = 0
    for event in events:
        if event.get("kind") != "outage":
            continue
        try:
            start = datetime.fromisoformat(event["start_time"])
            end = datetime.fromisoformat(event["end_time"])
            total_minutes += int((end - start).total_seconds()) // 60
        except (KeyError, ValueError, TypeError):
            continue

    return round(total_minutes / 60, 1)


# --- App Configuration ---

app = FastAPI(
    title="DTEK Outage Calendar",
    description="Календар відключень електроенергії ДТЕК для обраних адрес",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS - allow all origins for calendar clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Dependencies ---

db = Database(settings.DB_PATH)
state_store = StateStore(settings.STATE_PATH)
service = OutageService(db, state_store, load_addresses(settings.ADDRESSES_FILE))


# --- API Endpoints ---

@app.get("/")
def root() -> dict:
    """Return API info."""
    return {"name": "DTEK Outage Calendar", "version": "1.0.0", "docs": "/docs"}


@app.get("/status", response_model=StatusResponse)
def health_check() -> dict:
    """
    Health check endpoint.

    Returns:
        System status, last update time and monitored addresses.
        Useful for monitoring data freshness.
    """
    return {
        "status": "healthy",
        "last_update": db.get_metadata("last_updated"),
        "addresses": [a.id for a in service.addresses],
    }


@app.get("/update")
def update_data() -> dict:
    """
    Fetch schedules from the DTEK site and rebuild all calendars.

    Returns:
        Status, per-address results and last_updated timestamp.
    """
    try:
        result = service.update()
        if result is not None:
            return {
                "status": "success",
                "addresses": {k: v.model_dump() for k, v in result.items()},
                "message": f"Оновлено календарі для {len(result)} адрес",
                "last_updated": db.get_metadata("last_updated"),
            }
        return {"status": "error", "message": "Не вдалося отримати дані з сайту"}
    except Exception:
        logger.exception("Error updating schedules")
        return {"status": "error", "message": "Внутрішня помилка сервера"}


@app.get("/addresses")
def get_addresses() -> dict:
    """Get monitored addresses."""
    return {
        "addresses": [
            {"id": a.id, "address": a.label, "group": a.group}
            for a in service.addresses
        ]
    }


@app.get("/schedule/{address_id}", response_model=ScheduleResponse)
def get_schedule(address_id: str) -> dict:
    """
    Get upcoming events for an address.

    **Response format:**
    ```json
    {
      "address_id": "gora",
      "address": "с. Гора, вул. Мостова, 21",
      "status": "active",
      "events": [{"start": "2026-10-18T12:00:00+03:00", "end": "...", "label": "...",
                  "description": "...", "kind": "outage", "reminder_minutes": 30}],
      "last_updated": "2026-10-18T10:15:00+03:00",
      "total_hours_off": 4.0
    }
    ```
    """
    address = service.get_address(address_id)
    if address is None:
        raise HTTPException(status_code=404, detail="Адресу не знайдено")

    data = db.get_events(address_id, after=datetime.now(settings.tz))
    events = [
        {
            "start": e["start_time"],
            "end": e["end_time"],
            "label": e["label"],
            "description": e["description"],
            "kind": e["kind"],
            "reminder_minutes": e["reminder_minutes"],
        }
        for e in data
    ]

    return {
        "address_id": address_id,
        "address": address.label,
        "status": "active" if data else "no_data",
        "events": events,
        "last_updated": db.get_metadata("last_updated"),
        "total_hours_off": calculate_hours(data),
    }


@app.get("/calendar/{address_id}.ics")
def get_calendar(address_id: str) -> Response:
    """Get the iCalendar feed of an address (subscribe from any calendar app)."""
    if service.get_address(address_id) is None:
        raise HTTPException(status_code=404, detail="Адресу не знайдено")

    content = db.get_calendar(address_id)
    if content is None:
        raise HTTPException(status_code=404, detail="Календар ще не сформовано")
    return Response(content=content, media_type="text/calendar; charset=utf-8")


# --- Entry Point ---

def run_once() -> Optional[dict]:
    """Run a single update (entry point for cron)."""
    result = service.update()
    if result is None:
        logger.error("Update failed: source page unavailable")
    return result


def watch(interval_minutes: int = settings.CHECK_INTERVAL_MINUTES) -> None:
    """Run updates periodically until interrupted."""
    logger.info(f"Check interval: {interval_minutes} minutes")
    try:
        while True:
            try:
                run_once()
            except Exception:
                logger.exception("Update run failed")
            logger.info(f"Next check in {interval_minutes} minutes")
            time.sleep(interval_minutes * 60)
    except KeyboardInterrupt:
        logger.info("Stopped")


def run() -> None:
    """Run the API server or the updater (entry point for CLI)."""
    parser = argparse.ArgumentParser(description="DTEK outage calendar")
    parser.add_argument("--once", action="store_true", help="Run one update and exit")
    parser.add_argument("--watch", action="store_true", help="Run updates periodically")
    parser.add_argument("--port", type=int, default=8000, help="API server port")
    args = parser.parse_args()

    if args.once:
        run_once()
    elif args.watch:
        watch()
    else:
        uvicorn.run(app, host="0.0.0.0", port=args.port)


if __name__ == "__main__":
    run()
