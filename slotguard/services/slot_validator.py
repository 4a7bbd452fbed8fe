"""
Authoritative, commit-time validation of a single slot.

Called right before a booking is written, with freshly fetched busy data, so
that a slot that got booked elsewhere between display and submission is
rejected. Nothing from an earlier availability computation is reused.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Sequence

from pendulum import DateTime

from ..domain.clock import Clock, SystemClock
from ..domain.exceptions import BusyDataUnavailableError, InputError
from ..domain.intervals import overlaps_any
from ..domain.models import (
    AvailabilityRule,
    CalendarAccount,
    TimeRange,
    ValidationOutcome,
    ValidationVerdict,
)
from ..domain.timezone_clock import TimeZoneClock
from .busy_periods import BusyPeriodCollector

logger = logging.getLogger(__name__)

REASON_PAST = "This time slot is in the past"
REASON_DAY_UNAVAILABLE = "This day is not available for bookings"
REASON_OUTSIDE_HOURS = "This time is outside of available hours"
REASON_CONFLICT = "This time slot is no longer available"


def notice_reason(min_notice_hours: float) -> str:
    hours = int(min_notice_hours) if float(min_notice_hours).is_integer() else min_notice_hours
    return f"Bookings require at least {hours} hour(s) notice"


class SlotValidator:
    """
    Re-runs the availability checks for one proposed slot.

    Checks, in order, stopping at the first failure:
    1. Minimum notice (only when a notice period is configured)
    2. Slot not in the past
    3. An active rule exists for the slot's local weekday
    4. Local start/end ``HH:MM`` fall inside an active rule, bounds inclusive,
       and the slot ends on the same local date it starts
    5. No overlap with busy time fetched just now
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

    async def validate(
        self,
        slot_start: DateTime,
        slot_end: DateTime,
        accounts: Sequence[CalendarAccount],
        rules: Sequence[AvailabilityRule],
        zone: str,
        min_notice_hours: float = 0,
        buffer_before_minutes: int = 0,
        buffer_after_minutes: int = 0,
    ) -> ValidationVerdict:
        """
        Validate a slot for booking.

        Buffers are not applied unless passed explicitly; by default the
        conflict check covers exactly ``[slot_start, slot_end)``.

        Raises:
            InputError: If the zone is unknown or the slot is empty
            BusyDataUnavailableError: If any account's busy data could not
                be fetched; no verdict can be given in that case
        """
        self._tz_clock.zone(zone)
        if slot_end <= slot_start:
            raise InputError(f"Slot end {slot_end} must be after slot start {slot_start}")

        now = self._clock.now()

        if min_notice_hours > 0 and slot_start < now + timedelta(hours=min_notice_hours):
            return ValidationVerdict.reject(
                ValidationOutcome.NOTICE, notice_reason(min_notice_hours)
            )

        if slot_start < now:
            return ValidationVerdict.reject(ValidationOutcome.PAST, REASON_PAST)

        weekday = self._tz_clock.weekday_of(slot_start, zone)
        day_rules = [rule for rule in rules if rule.active and rule.weekday == weekday]

        if not day_rules:
            return ValidationVerdict.reject(
                ValidationOutcome.RULE_INACTIVE, REASON_DAY_UNAVAILABLE
            )

        start_str = self._tz_clock.time_string_of(slot_start, zone)
        end_str = self._tz_clock.time_string_of(slot_end, zone)
        same_day = self._tz_clock.local_date_of(slot_end, zone) == self._tz_clock.local_date_of(
            slot_start, zone
        )

        # HH:MM strings alone would let a slot spill past local midnight.
        if not same_day or not any(
            rule.contains_times(start_str, end_str) for rule in day_rules
        ):
            return ValidationVerdict.reject(
                ValidationOutcome.OUT_OF_WINDOW, REASON_OUTSIDE_HOURS
            )

        window = TimeRange(start=slot_start, end=slot_end).widen(
            buffer_before_minutes, buffer_after_minutes
        )
        report = await self._busy_collector.collect(accounts, window.start, window.end)

        if report.degraded:
            raise BusyDataUnavailableError(report.failures)

        if overlaps_any(window, report.intervals):
            logger.info(
                "Slot %s conflicts with fresh busy data", slot_start.to_iso8601_string()
            )
            return ValidationVerdict.reject(ValidationOutcome.CONFLICT, REASON_CONFLICT)

        return ValidationVerdict.accept()
