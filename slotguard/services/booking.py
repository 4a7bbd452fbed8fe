"""
Booking gate: the single operation that validates and commits a booking.

The slot validator runs inside ``BookingGate.commit`` itself, right before
the injected commit callable, never ahead of time. Failed bookings are not
retried.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Generic, List, Mapping, Optional, Sequence, TypeVar
from uuid import UUID

import pendulum
from pydantic import BaseModel, ValidationError, field_validator

from ..domain.clock import Clock, SystemClock
from ..domain.exceptions import BookingRequestError, RateLimitExceededError
from ..domain.models import AvailabilityRule, CalendarAccount, ValidationVerdict
from .rate_limit import RATE_LIMITS, RateLimiter, RateLimitPolicy
from .slot_validator import SlotValidator

logger = logging.getLogger(__name__)

VALID_DURATIONS = [15, 30, 45, 60, 90, 120]
VALID_SLOT_MINUTES = [0, 15, 30, 45]
MAX_FUTURE_DAYS = 90

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MARKUP_PATTERN = re.compile(r"<[^>]*>|javascript:", re.IGNORECASE)
SCRIPT_PATTERN = re.compile(r"<script", re.IGNORECASE)

T = TypeVar("T")


class BookingRequest(BaseModel):
    """A visitor's request to book one slot."""
    username: str
    start_time: datetime
    end_time: datetime
    attendee_name: str
    attendee_email: str
    event_type_id: Optional[UUID] = None
    attendee_timezone: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username is required")
        return value

    @field_validator("attendee_name")
    @classmethod
    def validate_attendee_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Attendee name is required")
        if len(value) > 200:
            raise ValueError("Attendee name too long")
        if MARKUP_PATTERN.search(value):
            raise ValueError("Invalid characters in attendee name")
        return value

    @field_validator("attendee_email")
    @classmethod
    def validate_attendee_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("Attendee email is required")
        if len(value) > 254:
            raise ValueError("Email address too long")
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email format")
        return value

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if len(value) > 2000:
            raise ValueError("Notes too long")
        if SCRIPT_PATTERN.search(value):
            raise ValueError("Invalid content in notes")
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("Timestamp must carry a UTC offset")
        return value

    def slot_start(self) -> pendulum.DateTime:
        return pendulum.instance(self.start_time).in_timezone("UTC")

    def slot_end(self) -> pendulum.DateTime:
        return pendulum.instance(self.end_time).in_timezone("UTC")


def parse_booking_request(payload: Mapping[str, Any]) -> BookingRequest:
    """
    Build a ``BookingRequest`` from a raw payload.

    Raises:
        BookingRequestError: With one ``field: message`` entry per problem
    """
    try:
        return BookingRequest.model_validate(payload)
    except ValidationError as exc:
        errors = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "body"
            message = error["msg"].removeprefix("Value error, ")
            errors.append(f"{location}: {message}")
        raise BookingRequestError(errors) from exc


def check_booking_timing(
    request: BookingRequest,
    now: pendulum.DateTime,
    zone: str,
) -> List[str]:
    """
    Timing rules a booking must satisfy before availability is even checked.

    Returns a list of problems; empty when the timing is acceptable.
    """
    errors: List[str] = []
    start = request.slot_start()
    end = request.slot_end()

    if end <= start:
        errors.append("End time must be after start time")

    duration_minutes = round((end - start).total_seconds() / 60)
    if duration_minutes not in VALID_DURATIONS:
        valid = ", ".join(str(d) for d in VALID_DURATIONS)
        errors.append(f"Invalid duration: {duration_minutes} minutes. Valid durations: {valid}")

    start_minute = start.in_timezone(zone).minute
    if start_minute not in VALID_SLOT_MINUTES:
        errors.append(f"Booking must start on :00, :15, :30, or :45. Got :{start_minute:02d}")

    if start > now + timedelta(days=MAX_FUTURE_DAYS):
        errors.append(f"Booking cannot be more than {MAX_FUTURE_DAYS} days in the future")

    return errors


@dataclass(frozen=True)
class BookingOutcome(Generic[T]):
    """Verdict of the commit-time check and, when it passed, the booking."""
    verdict: ValidationVerdict
    booking: Optional[T] = None

    @property
    def booked(self) -> bool:
        return self.verdict.valid and self.booking is not None


class BookingGate:
    """
    Validates and commits one booking in a single operation.

    Steps:
    1. Rate limit per client
    2. Timing rules (duration, granularity, horizon)
    3. Authoritative slot validation with fresh busy data
    4. Commit through the injected callable
    """

    def __init__(
        self,
        validator: SlotValidator,
        rate_limiter: RateLimiter | None = None,
        clock: Clock | None = None,
        rate_limit_policy: RateLimitPolicy = RATE_LIMITS["booking"],
    ) -> None:
        self._validator = validator
        self._clock = clock or SystemClock()
        self._rate_limiter = rate_limiter or RateLimiter(clock=self._clock)
        self._rate_limit_policy = rate_limit_policy

    async def commit(
        self,
        request: BookingRequest,
        *,
        client_id: str,
        accounts: Sequence[CalendarAccount],
        rules: Sequence[AvailabilityRule],
        zone: str,
        commit: Callable[[BookingRequest], Awaitable[T]],
        min_notice_hours: float = 0,
    ) -> BookingOutcome[T]:
        """
        Run every check and, if they all pass, call ``commit``.

        Raises:
            RateLimitExceededError: If the client exceeded its budget
            BookingRequestError: If the timing rules are violated
            BusyDataUnavailableError: If fresh busy data could not be fetched
        """
        decision = self._rate_limiter.check(f"booking:{client_id}", self._rate_limit_policy)
        if not decision.allowed:
            logger.warning("Booking rate limit hit for client %s", client_id)
            raise RateLimitExceededError(client_id, decision.reset_in)

        errors = check_booking_timing(request, self._clock.now(), zone)
        if errors:
            raise BookingRequestError(errors)

        verdict = await self._validator.validate(
            request.slot_start(),
            request.slot_end(),
            accounts,
            rules,
            zone,
            min_notice_hours=min_notice_hours,
        )
        if not verdict.valid:
            logger.info(
                "Booking for %s rejected: %s", request.attendee_email, verdict.outcome.value
            )
            return BookingOutcome(verdict=verdict)

        booking = await commit(request)
        return BookingOutcome(verdict=verdict, booking=booking)
