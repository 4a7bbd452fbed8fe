"""
Domain layer - timezone arithmetic, rules, intervals and slot generation.
No I/O happens here.
"""

from .clock import Clock, FrozenClock, SystemClock
from .intervals import merge_intervals, overlaps_any
from .models import (
    AvailabilityRule,
    CalendarAccount,
    CandidateSlot,
    LocalTime,
    SlotBlocker,
    TimeRange,
    ValidationOutcome,
    ValidationVerdict,
    default_availability_rules,
)
from .slot_generator import SlotGenerator
from .timezone_clock import PendulumTimeZoneDatabase, TimeZoneClock, TimeZoneDatabase

__all__ = [
    "AvailabilityRule",
    "CalendarAccount",
    "CandidateSlot",
    "Clock",
    "FrozenClock",
    "LocalTime",
    "PendulumTimeZoneDatabase",
    "SlotBlocker",
    "SlotGenerator",
    "SystemClock",
    "TimeRange",
    "TimeZoneClock",
    "TimeZoneDatabase",
    "ValidationOutcome",
    "ValidationVerdict",
    "default_availability_rules",
    "merge_intervals",
    "overlaps_any",
]
