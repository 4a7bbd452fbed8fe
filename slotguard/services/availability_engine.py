"""
Bulk computation of tagged candidate slots over a range of days.

The result is advisory: it is what a booking page displays. The
authoritative check happens again in ``SlotValidator`` when a booking is
committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterator, List, Sequence

import pendulum

from ..domain.clock import Clock, SystemClock
from ..domain.exceptions import InputError
from ..domain.intervals import overlaps_any
from ..domain.models import AvailabilityRule, CalendarAccount, CandidateSlot, SlotBlocker
from ..domain.slot_generator import SlotGenerator
from ..domain.timezone_clock import TimeZoneClock
from .busy_periods import AccountFetchFailure, BusyPeriodCollector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityQuery:
    """
    Parameters of one availability computation.

    ``range_start`` and ``range_end`` are calendar dates in ``zone`` and both
    are included.
    """
    rules: Sequence[AvailabilityRule]
    zone: str
    range_start: date
    range_end: date
    slot_duration: int
    accounts: Sequence[CalendarAccount] = ()
    min_notice_hours: float = 0
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0
    fail_closed: bool = False
    timeout_seconds: float | None = None

    def __post_init__(self):
        if self.slot_duration <= 0:
            raise InputError(f"Slot duration must be positive, got {self.slot_duration}")
        if self.range_end < self.range_start:
            raise InputError(
                f"Range end {self.range_end} must not be before range start {self.range_start}"
            )
        if self.min_notice_hours < 0:
            raise InputError("min_notice_hours must not be negative")
        if self.buffer_before_minutes < 0 or self.buffer_after_minutes < 0:
            raise InputError("Buffers must not be negative")


@dataclass
class AvailabilityResult:
    """
    Every candidate slot of the range, available or not, ordered by start.

    ``failures`` lists accounts whose busy data could not be fetched; when it
    is not empty the availability flags only reflect the other accounts.
    """
    slots: List[CandidateSlot] = field(default_factory=list)
    failures: List[AccountFetchFailure] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)

    def available_slots(self) -> List[CandidateSlot]:
        return [slot for slot in self.slots if slot.available]


class AvailabilityEngine:
    """
    Orchestrates busy-period collection and slot generation.

    Algorithm:
    1. Fetch busy ranges for the whole date range once per account, merge
    2. Compute the minimum-notice cutoff from the injected clock
    3. Generate each day's candidate slots from the rules
    4. Tag slots before the cutoff as ``notice``; tag slots whose buffered
       window overlaps busy time as ``busy``
    5. Return all slots, tagged
    """

    def __init__(
        self,
        busy_collector: BusyPeriodCollector,
        clock: Clock | None = None,
        tz_clock: TimeZoneClock | None = None,
    ) -> None:
        self._busy_collector = busy_collector
        self._clock = clock or SystemClock()
        self._tz_clock = tz_clock or TimeZoneClock()
        self._slot_generator = SlotGenerator(clock=self._tz_clock)

    async def compute(self, query: AvailabilityQuery) -> AvailabilityResult:
        """Compute the tagged slot list for ``query``."""
        # Reject a bad zone before any I/O happens.
        self._tz_clock.zone(query.zone)

        fetch_start = self._tz_clock.local_to_instant(
            query.range_start, 0, 0, query.zone
        ).subtract(minutes=query.buffer_before_minutes)
        fetch_end = self._tz_clock.local_to_instant(
            query.range_end + timedelta(days=1), 0, 0, query.zone
        ).add(minutes=query.buffer_after_minutes)

        report = await self._busy_collector.collect(
            query.accounts,
            fetch_start,
            fetch_end,
            timeout_seconds=query.timeout_seconds,
        )
        if report.degraded:
            logger.warning(
                "Computing availability without busy data for %d account(s)",
                len(report.failures),
            )

        cutoff = self._clock.now() + timedelta(hours=query.min_notice_hours)

        slots: List[CandidateSlot] = []

        for day in _iter_days(query.range_start, query.range_end):
            day_slots = self._slot_generator.generate_day_slots(
                day, query.rules, query.slot_duration, query.zone
            )

            for slot in day_slots:
                if slot.start < cutoff:
                    slots.append(
                        CandidateSlot(slot.start, slot.end, False, SlotBlocker.NOTICE)
                    )
                    continue

                window = slot.widen(query.buffer_before_minutes, query.buffer_after_minutes)
                if overlaps_any(window, report.intervals):
                    slots.append(CandidateSlot(slot.start, slot.end, False, SlotBlocker.BUSY))
                elif report.degraded and query.fail_closed:
                    slots.append(
                        CandidateSlot(slot.start, slot.end, False, SlotBlocker.UNKNOWN)
                    )
                else:
                    slots.append(CandidateSlot(slot.start, slot.end, True))

        slots.sort(key=lambda s: s.start)

        logger.debug(
            "Computed %d slots (%d available) for %s..%s in %s",
            len(slots),
            sum(1 for s in slots if s.available),
            query.range_start,
            query.range_end,
            query.zone,
        )

        return AvailabilityResult(slots=slots, failures=report.failures)


def _iter_days(start: date, end: date) -> Iterator[pendulum.Date]:
    current = pendulum.date(start.year, start.month, start.day)
    last = pendulum.date(end.year, end.month, end.day)

    while current <= last:
        yield current
        current = current.add(days=1)
