"""
Persisted per-address state for change detection.

One JSON object keyed by address id. A missing or corrupt file (or
entry) is treated as a first run; writes are atomic.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict

from pydantic import ValidationError

from outage_calendar.core.models import AddressStateRecord
from outage_calendar.core.types import AddressState

logger = logging.getLogger(__name__)


class StateStore:
    """JSON file holding AddressState per address."""

    def __init__(self, path: str = "state.json") -> None:
        self.path = Path(path)

    def load(self) -> Dict[str, AddressState]:
        """
        Read all address states.

        Returns:
            Mapping of address id to state; empty if the file is missing or
            unreadable. Invalid entries are skipped.
        """
        if not self.path.exists():
            logger.info(f"No state file at {self.path}, starting fresh")
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Corrupt state file {self.path}: {e}; starting fresh")
            return {}
        if not isinstance(raw, dict):
            logger.warning(f"Unexpected state file format in {self.path}; starting fresh")
            return {}

        states = {}
        for address_id, entry in raw.items():
            try:
                states[address_id] = AddressStateRecord.model_validate(entry).to_state()
            except ValidationError as e:
                logger.warning(f"Invalid state for {address_id}, treating as first run: {e}")
        return states

    def save(self, states: Dict[str, AddressState]) -> None:
        """Write all states atomically (temp file + rename)."""
        payload = {
            address_id: AddressStateRecord.from_state(state).model_dump(mode="json")
            for address_id, state in sorted(states.items())
        }
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
