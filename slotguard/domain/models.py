"""
Domain models for availability rules, intervals, slots and verdicts.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pendulum import DateTime

from .exceptions import InputError

_LOCAL_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise InputError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ends do not overlap."""
        return self.start < other.end and self.end > other.start

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        return TimeRange(start=max(self.start, other.start), end=min(self.end, other.end))

    def widen(self, before_minutes: int = 0, after_minutes: int = 0) -> "TimeRange":
        """Return a copy stretched by the given margins on each side."""
        return TimeRange(
            start=self.start.subtract(minutes=before_minutes),
            end=self.end.add(minutes=after_minutes),
        )

    def __str__(self) -> str:
        return f"{self.start.to_iso8601_string()} - {self.end.to_iso8601_string()}"


@dataclass(frozen=True, order=True)
class LocalTime:
    """Wall-clock time of day with no date or zone attached."""
    hour: int
    minute: int

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise InputError(f"Hour must be between 0 and 23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise InputError(f"Minute must be between 0 and 59, got {self.minute}")

    @classmethod
    def parse(cls, value: str) -> "LocalTime":
        """
        Parse ``HH:MM``. A ``:00`` seconds suffix, as returned by SQL ``time``
        columns, is tolerated.
        """
        match = _LOCAL_TIME_PATTERN.match(value.strip())
        if not match:
            raise InputError(f"Invalid local time '{value}', expected HH:MM")
        hour, minute, seconds = match.groups()
        if seconds not in (None, "00"):
            raise InputError(f"Local time '{value}' must not carry seconds")
        return cls(hour=int(hour), minute=int(minute))

    def minutes_since_midnight(self) -> int:
        return self.hour * 60 + self.minute

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class AvailabilityRule:
    """
    Recurring weekly availability window for one weekday.

    ``weekday`` follows the 0=Sunday ... 6=Saturday convention.
    """
    weekday: int
    start: LocalTime
    end: LocalTime
    active: bool = True
    owner_id: str = "default"
    name: str = "Default"

    def __post_init__(self):
        if self.weekday not in range(7):
            raise InputError(f"weekday must be between 0 and 6, got {self.weekday}")
        if self.start >= self.end:
            raise InputError(
                f"Rule start {self.start} must be before rule end {self.end} "
                f"({WEEKDAY_NAMES[self.weekday]})"
            )

    @classmethod
    def from_strings(
        cls,
        weekday: int,
        start_time: str,
        end_time: str,
        active: bool = True,
        owner_id: str = "default",
        name: str = "Default",
    ) -> "AvailabilityRule":
        return cls(
            weekday=weekday,
            start=LocalTime.parse(start_time),
            end=LocalTime.parse(end_time),
            active=active,
            owner_id=owner_id,
            name=name,
        )

    def contains_times(self, start_str: str, end_str: str) -> bool:
        """Inclusive check on zero-padded ``HH:MM`` strings."""
        return start_str >= str(self.start) and end_str <= str(self.end)


def default_availability_rules(owner_id: str = "default") -> List[AvailabilityRule]:
    """Monday to Friday, 09:00 - 17:00."""
    return [
        AvailabilityRule.from_strings(weekday, "09:00", "17:00", owner_id=owner_id)
        for weekday in range(1, 6)
    ]


class SlotBlocker(str, Enum):
    """Why a candidate slot is unavailable."""
    NOTICE = "notice"
    BUSY = "busy"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CandidateSlot:
    """A fixed-length bookable interval, tagged with its availability."""
    start: DateTime
    end: DateTime
    available: bool
    blocked_by: Optional[SlotBlocker] = None

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()


class ValidationOutcome(str, Enum):
    VALID = "valid"
    NOTICE = "notice"
    PAST = "past"
    RULE_INACTIVE = "rule_inactive"
    OUT_OF_WINDOW = "out_of_window"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class ValidationVerdict:
    """Result of re-validating a single slot at commit time."""
    valid: bool
    outcome: ValidationOutcome = ValidationOutcome.VALID
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "ValidationVerdict":
        return cls(valid=True)

    @classmethod
    def reject(cls, outcome: ValidationOutcome, reason: str) -> "ValidationVerdict":
        return cls(valid=False, outcome=outcome, reason=reason)


@dataclass
class CalendarAccount:
    """
    A connected calendar account.

    Token fields are updated in place by the token providers when a refresh
    happens.
    """
    id: str
    provider: str = "google"  # google | outlook
    calendar_id: str = "primary"
    account_email: str = ""
    access_token: str = ""
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None  # unix seconds
    include_in_availability: bool = True
