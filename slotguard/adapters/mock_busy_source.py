"""
Busy-period source backed by a JSON file, for running without providers.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import pendulum
from pendulum import DateTime

from ..domain.models import CalendarAccount, TimeRange

logger = logging.getLogger(__name__)


class JsonBusyPeriodSource:
    """
    Serves busy ranges from a JSON list of events.

    Each event looks like::

        {"accountId": "work", "calendarId": "primary",
         "start": "2026-03-09T10:00:00", "end": "2026-03-09T11:00:00"}

    ``accountId`` and ``calendarId`` are optional filters. Timestamps
    without an offset are read in ``timezone``.
    """

    def __init__(self, data_file: Path, timezone: str = "UTC"):
        self.data_file = data_file
        self.timezone = timezone
        self.events = self._load_events()

    def _load_events(self) -> List[Dict[str, Any]]:
        if not self.data_file.exists():
            raise FileNotFoundError(f"Busy data file not found: {self.data_file}")

        with open(self.data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, list):
            raise ValueError("Busy data file must contain a list of events.")
        return data

    async def fetch(
        self,
        account: CalendarAccount,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[TimeRange]:
        busy_ranges: List[TimeRange] = []

        for event in self.events:
            if event.get("accountId", account.id) != account.id:
                continue
            if event.get("calendarId", calendar_id) != calendar_id:
                continue

            try:
                event_start = pendulum.parse(event["start"], tz=self.timezone)
                event_end = pendulum.parse(event["end"], tz=self.timezone)
                busy = TimeRange(
                    start=event_start.in_timezone("UTC"),
                    end=event_end.in_timezone("UTC"),
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid mock event %s: %s", event, exc)
                continue

            # Check if event overlaps with requested time window
            if busy.start < range_end and busy.end > range_start:
                busy_ranges.append(busy)

        return busy_ranges
