"""
Turns recurring weekly rules into fixed-length candidate intervals for one day.
"""

from datetime import date
from typing import Dict, Iterable, List

from pendulum import DateTime

from .exceptions import InputError
from .models import AvailabilityRule, TimeRange
from .timezone_clock import TimeZoneClock


class SlotGenerator:
    """
    Generates candidate slots from availability rules.

    Algorithm for one calendar day:
    1. Keep the active rules whose weekday matches the day
    2. Convert each rule's local window to instants in the host zone
    3. Step through the window by the slot duration, dropping any remainder
       shorter than one full slot
    4. Union the slots of all matching rules, de-duplicated by start instant
    """

    def __init__(self, clock: TimeZoneClock | None = None):
        self.clock = clock or TimeZoneClock()

    def generate_day_slots(
        self,
        day: date,
        rules: Iterable[AvailabilityRule],
        duration_minutes: int,
        zone: str,
    ) -> List[TimeRange]:
        """
        Generate all candidate slots for ``day`` (a calendar date in ``zone``).

        Args:
            day: Calendar date, interpreted in the host zone
            rules: Availability rules of the host
            duration_minutes: Length of every slot
            zone: IANA zone of the host

        Returns:
            Slots ordered by start instant
        """
        if duration_minutes <= 0:
            raise InputError(f"Slot duration must be positive, got {duration_minutes}")

        weekday = self.clock.weekday_of_day(day)
        day_rules = [rule for rule in rules if rule.active and rule.weekday == weekday]

        slots_by_start: Dict[DateTime, TimeRange] = {}

        for rule in day_rules:
            window = self.rule_window(day, rule, zone)
            if window is None:
                continue
            for slot in self._split_window(window, duration_minutes):
                slots_by_start.setdefault(slot.start, slot)

        return [slots_by_start[start] for start in sorted(slots_by_start)]

    def rule_window(self, day: date, rule: AvailabilityRule, zone: str) -> TimeRange | None:
        """
        Absolute window of ``rule`` on ``day``, or None when a DST gap
        swallows the whole window.
        """
        start = self.clock.local_to_instant(day, rule.start.hour, rule.start.minute, zone)
        end = self.clock.local_to_instant(day, rule.end.hour, rule.end.minute, zone)
        if start >= end:
            return None
        return TimeRange(start=start, end=end)

    @staticmethod
    def _split_window(window: TimeRange, duration_minutes: int) -> List[TimeRange]:
        slots: List[TimeRange] = []
        slot_start = window.start

        while slot_start.add(minutes=duration_minutes) <= window.end:
            slot_end = slot_start.add(minutes=duration_minutes)
            slots.append(TimeRange(start=slot_start, end=slot_end))
            slot_start = slot_end

        return slots
