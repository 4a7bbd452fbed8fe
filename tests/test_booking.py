"""
Tests for booking request parsing and the booking gate.
"""

import asyncio
from typing import List

import pendulum
import pytest

from slotguard.domain.clock import FrozenClock
from slotguard.domain.exceptions import BookingRequestError, RateLimitExceededError
from slotguard.domain.models import AvailabilityRule, CalendarAccount, TimeRange, ValidationOutcome
from slotguard.services.booking import (
    BookingGate,
    BookingRequest,
    check_booking_timing,
    parse_booking_request,
)
from slotguard.services.busy_periods import BusyPeriodCollector
from slotguard.services.rate_limit import RateLimiter, RateLimitPolicy
from slotguard.services.slot_validator import SlotValidator

CHICAGO = "America/Chicago"
NOW = pendulum.parse("2025-12-01T12:00:00Z")
RULES = [AvailabilityRule.from_strings(1, "09:00", "17:00")]
ACCOUNTS = [CalendarAccount(id="work")]


class StubBusySource:
    """Minimal stub matching BusyPeriodSource."""

    def __init__(self, busy: List[TimeRange]):
        self._busy = busy

    async def fetch(self, account, calendar_id, range_start, range_end):
        return self._busy


def _payload(**overrides):
    payload = {
        "username": "host",
        "start_time": "2025-12-08T09:00:00-06:00",
        "end_time": "2025-12-08T09:30:00-06:00",
        "attendee_name": "Ada Lovelace",
        "attendee_email": " Ada@Example.com ",
    }
    payload.update(overrides)
    return payload


def _build_gate(busy=None, limit: int = 10):
    clock = FrozenClock(NOW)
    validator = SlotValidator(BusyPeriodCollector(StubBusySource(busy or [])), clock=clock)
    return BookingGate(
        validator,
        rate_limiter=RateLimiter(clock=clock),
        clock=clock,
        rate_limit_policy=RateLimitPolicy(limit=limit, window_seconds=60),
    )


class RecordingCommit:
    def __init__(self):
        self.requests: List[BookingRequest] = []

    async def __call__(self, request: BookingRequest):
        self.requests.append(request)
        return {"id": len(self.requests), "email": request.attendee_email}


def _commit(gate, request, commit, client_id="203.0.113.9"):
    return asyncio.run(
        gate.commit(
            request,
            client_id=client_id,
            accounts=ACCOUNTS,
            rules=RULES,
            zone=CHICAGO,
            commit=commit,
        )
    )


class TestParseBookingRequest:
    """Tests for request parsing."""

    def test_valid_payload(self):
        request = parse_booking_request(_payload())

        assert request.attendee_email == "ada@example.com"
        assert request.slot_start() == pendulum.parse("2025-12-08T15:00:00Z")
        assert request.slot_end() == pendulum.parse("2025-12-08T15:30:00Z")

    def test_collects_every_problem(self):
        with pytest.raises(BookingRequestError) as excinfo:
            parse_booking_request(
                _payload(attendee_email="not-an-email", attendee_name="<b>Ada</b>")
            )

        errors = excinfo.value.errors
        assert "attendee_name: Invalid characters in attendee name" in errors
        assert "attendee_email: Invalid email format" in errors

    def test_naive_timestamps_are_rejected(self):
        with pytest.raises(BookingRequestError) as excinfo:
            parse_booking_request(_payload(start_time="2025-12-08T09:00:00"))

        assert excinfo.value.errors == ["start_time: Timestamp must carry a UTC offset"]

    def test_script_in_notes(self):
        with pytest.raises(BookingRequestError):
            parse_booking_request(_payload(notes="hi <script>alert(1)</script>"))

    def test_missing_field(self):
        payload = _payload()
        del payload["username"]

        with pytest.raises(BookingRequestError) as excinfo:
            parse_booking_request(payload)

        assert excinfo.value.errors[0].startswith("username:")

    def test_is_an_input_error(self):
        with pytest.raises(ValueError):
            parse_booking_request(_payload(attendee_email=""))


class TestCheckBookingTiming:
    """Tests for duration, granularity and horizon rules."""

    def test_valid_timing(self):
        assert check_booking_timing(parse_booking_request(_payload()), NOW, CHICAGO) == []

    def test_invalid_duration(self):
        request = parse_booking_request(_payload(end_time="2025-12-08T09:20:00-06:00"))

        errors = check_booking_timing(request, NOW, CHICAGO)

        assert errors == ["Invalid duration: 20 minutes. Valid durations: 15, 30, 45, 60, 90, 120"]

    def test_start_minute_granularity(self):
        request = parse_booking_request(
            _payload(
                start_time="2025-12-08T09:10:00-06:00",
                end_time="2025-12-08T09:40:00-06:00",
            )
        )

        errors = check_booking_timing(request, NOW, CHICAGO)

        assert errors == ["Booking must start on :00, :15, :30, or :45. Got :10"]

    def test_horizon(self):
        request = parse_booking_request(
            _payload(
                start_time="2026-06-01T09:00:00-05:00",
                end_time="2026-06-01T09:30:00-05:00",
            )
        )

        errors = check_booking_timing(request, NOW, CHICAGO)

        assert errors == ["Booking cannot be more than 90 days in the future"]

    def test_end_before_start(self):
        request = parse_booking_request(
            _payload(
                start_time="2025-12-08T10:00:00-06:00",
                end_time="2025-12-08T09:00:00-06:00",
            )
        )

        errors = check_booking_timing(request, NOW, CHICAGO)

        assert errors[0] == "End time must be after start time"


class TestBookingGate:
    """Tests for BookingGate.commit."""

    def test_commits_valid_booking(self):
        gate = _build_gate()
        commit = RecordingCommit()

        outcome = _commit(gate, parse_booking_request(_payload()), commit)

        assert outcome.booked
        assert outcome.booking == {"id": 1, "email": "ada@example.com"}
        assert len(commit.requests) == 1

    def test_conflict_is_not_committed(self):
        busy = [
            TimeRange(
                start=pendulum.parse("2025-12-08T15:15:00Z"),
                end=pendulum.parse("2025-12-08T16:00:00Z"),
            )
        ]
        gate = _build_gate(busy=busy)
        commit = RecordingCommit()

        outcome = _commit(gate, parse_booking_request(_payload()), commit)

        assert not outcome.booked
        assert outcome.booking is None
        assert outcome.verdict.outcome is ValidationOutcome.CONFLICT
        assert commit.requests == []

    def test_timing_errors_raise(self):
        gate = _build_gate()
        commit = RecordingCommit()
        request = parse_booking_request(_payload(end_time="2025-12-08T09:20:00-06:00"))

        with pytest.raises(BookingRequestError):
            _commit(gate, request, commit)

        assert commit.requests == []

    def test_rate_limit(self):
        gate = _build_gate(limit=1)
        commit = RecordingCommit()
        request = parse_booking_request(_payload())

        _commit(gate, request, commit)
        with pytest.raises(RateLimitExceededError) as excinfo:
            _commit(gate, request, commit)

        assert excinfo.value.reset_in == 60
        assert len(commit.requests) == 1

        # Another client has its own budget.
        assert _commit(gate, request, commit, client_id="198.51.100.7").booked
