"""
Conversions between wall-clock local times and absolute instants.

All instants handed out are pendulum ``DateTime`` objects in UTC. Local times
are only ever interpreted together with a calendar date and an IANA zone.

DST policy for local times that do not map to exactly one instant:

* a time inside a spring-forward gap is moved forward by the length of the
  gap (02:30 on a one-hour gap becomes 03:30 of the new offset);
* a time inside a fall-back fold resolves to its earlier occurrence.
"""

import logging
from datetime import date, timedelta, tzinfo
from typing import List, Protocol

import pendulum
from pendulum import DateTime

from .exceptions import InputError
from .models import LocalTime

logger = logging.getLogger(__name__)


class TimeZoneDatabase(Protocol):
    """Resolves IANA zone names to ``tzinfo`` objects."""

    def get(self, name: str) -> tzinfo:
        """Return the zone or raise ``InputError`` if the name is unknown."""


class PendulumTimeZoneDatabase:
    """Zone lookup backed by pendulum (and the tzdata it ships with)."""

    def get(self, name: str) -> tzinfo:
        if not isinstance(name, str) or not name.strip():
            raise InputError(f"Invalid timezone name: {name!r}")
        try:
            return pendulum.timezone(name)
        except (ValueError, KeyError, TypeError) as exc:
            raise InputError(f"Unknown timezone: {name!r}") from exc


class TimeZoneClock:
    """Timezone arithmetic for availability rules."""

    def __init__(self, database: TimeZoneDatabase | None = None):
        self._database = database or PendulumTimeZoneDatabase()

    def zone(self, name: str) -> tzinfo:
        """Resolve a zone name, raising ``InputError`` when it is invalid."""
        return self._database.get(name)

    def local_to_instant(self, day: date, hour: int, minute: int, zone: str) -> DateTime:
        """
        Return the instant that reads ``hour:minute`` on ``day`` in ``zone``.

        The offset is anchored at local noon of ``day`` rather than midnight;
        the offsets twelve hours either side of that first guess are then
        tried so that a transition between the anchor and the requested time
        is still honoured.
        """
        tz = self.zone(name=zone)
        LocalTime(hour=hour, minute=minute)  # range check

        wall = pendulum.datetime(day.year, day.month, day.day, hour, minute, tz="UTC")
        noon_offset = self._offset_near_local_noon(day, tz)
        guess = wall - noon_offset

        before = self._offset_at(guess.subtract(hours=12), tz)
        after = self._offset_at(guess.add(hours=12), tz)

        candidates: List[DateTime] = []
        for offset in _unique([noon_offset, before, after]):
            instant = wall - offset
            if self._offset_at(instant, tz) == offset:
                candidates.append(instant)

        if candidates:
            # Two matches means the wall time repeats; keep the first one.
            return min(candidates)

        # Non-existent wall time: read it with the pre-transition offset,
        # which lands past the gap.
        shifted = wall - before
        logger.debug(
            "Local time %02d:%02d on %s does not exist in %s; using %s",
            hour, minute, day.isoformat(), zone, shifted.to_iso8601_string(),
        )
        return shifted

    def to_local(self, instant: DateTime, zone: str) -> DateTime:
        """Render an instant in the given zone."""
        return instant.astimezone(self.zone(zone))

    def weekday_of(self, instant: DateTime, zone: str) -> int:
        """Weekday of the instant in ``zone``, 0=Sunday ... 6=Saturday."""
        return self.to_local(instant, zone).isoweekday() % 7

    @staticmethod
    def weekday_of_day(day: date) -> int:
        """Weekday of a calendar date, 0=Sunday ... 6=Saturday."""
        return day.isoweekday() % 7

    def local_date_of(self, instant: DateTime, zone: str) -> pendulum.Date:
        local = self.to_local(instant, zone)
        return pendulum.date(local.year, local.month, local.day)

    def local_time_of(self, instant: DateTime, zone: str) -> LocalTime:
        local = self.to_local(instant, zone)
        return LocalTime(hour=local.hour, minute=local.minute)

    def time_string_of(self, instant: DateTime, zone: str) -> str:
        """Zero-padded ``HH:MM`` of the instant in ``zone``."""
        return str(self.local_time_of(instant, zone))

    def _offset_near_local_noon(self, day: date, tz: tzinfo) -> timedelta:
        utc_noon = pendulum.datetime(day.year, day.month, day.day, 12, tz="UTC")
        rough = self._offset_at(utc_noon, tz)
        return self._offset_at(utc_noon - rough, tz)

    @staticmethod
    def _offset_at(instant: DateTime, tz: tzinfo) -> timedelta:
        return instant.astimezone(tz).utcoffset()


def _unique(offsets: List[timedelta]) -> List[timedelta]:
    seen: List[timedelta] = []
    for offset in offsets:
        if offset not in seen:
            seen.append(offset)
    return seen
