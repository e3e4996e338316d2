"""
Pydantic models for API responses, address configuration and persisted state.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from outage_calendar.core.types import AddressState, Urgency

logger = logging.getLogger(__name__)


class AddressConfig(BaseModel):
    """Monitored address and its outage queue (e.g. "GPV5.1")."""
    id: str
    city: str
    street: str
    house: str
    group: str = ""

    @property
    def label(self) -> str:
        return f"{self.city}, {self.street}, {self.house}"


DEFAULT_ADDRESS = AddressConfig(
    id="gora",
    city="с. Гора",
    street="вул. Мостова",
    house="21",
    group="GPV5.1",
)


class AddressesFile(BaseModel):
    addresses: List[AddressConfig]


def load_addresses(path: str) -> List[AddressConfig]:
    """
    Load monitored addresses from a JSON file.

    Accepts either {"addresses": [...]} or the single-address form
    {"address": {...}}. Falls back to the default address when the file
    is missing or invalid.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if "address" in raw and "addresses" not in raw:
            single = dict(raw["address"])
            single.setdefault("id", "default")
            raw = {"addresses": [single]}
        return AddressesFile.model_validate(raw).addresses
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Error reading {path}: {e}; using default address")
        return [DEFAULT_ADDRESS]


class AddressStateRecord(BaseModel):
    """JSON form of AddressState in the state file."""
    last_classification: Optional[Urgency] = None
    last_scheduled_day_keys: List[int] = Field(default_factory=list)
    last_override_fingerprint: Optional[str] = None
    last_checked: Optional[str] = None

    @classmethod
    def from_state(cls, state: AddressState) -> "AddressStateRecord":
        return cls(
            last_classification=state.last_classification,
            last_scheduled_day_keys=sorted(state.last_scheduled_day_keys),
            last_override_fingerprint=state.last_override_fingerprint,
            last_checked=state.last_checked,
        )

    def to_state(self) -> AddressState:
        return AddressState(
            last_classification=self.last_classification,
            last_scheduled_day_keys=frozenset(self.last_scheduled_day_keys),
            last_override_fingerprint=self.last_override_fingerprint,
            last_checked=self.last_checked,
        )


class EventResponse(BaseModel):
    """Single calendar event."""
    start: str  # ISO 8601 with offset
    end: str
    label: str
    description: str
    kind: str  # "outage" | "power" | "alert"
    reminder_minutes: int


class ScheduleResponse(BaseModel):
    """Upcoming events for one address."""
    address_id: str
    address: str
    status: str  # "active" | "no_data"
    events: List[EventResponse]
    last_updated: Optional[str] = None
    total_hours_off: float


class AddressResult(BaseModel):
    """Outcome of one address during an update run."""
    status: str  # "ok" | "error"
    events: int = 0
    alert: Optional[str] = None
    error: Optional[str] = None


class StatusResponse(BaseModel):
    """Health check response."""
    status: str
    last_update: Optional[str] = None
    addresses: List[str]
