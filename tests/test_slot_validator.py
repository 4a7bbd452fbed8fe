"""
Tests for commit-time slot validation.
"""

import asyncio
from typing import Dict, List, Union

import pendulum
import pytest

from slotguard.domain.clock import FrozenClock
from slotguard.domain.exceptions import AuthExpiredError, BusyDataUnavailableError, InputError
from slotguard.domain.models import AvailabilityRule, CalendarAccount, TimeRange, ValidationOutcome
from slotguard.services.busy_periods import BusyPeriodCollector
from slotguard.services.slot_validator import (
    REASON_CONFLICT,
    REASON_DAY_UNAVAILABLE,
    REASON_OUTSIDE_HOURS,
    REASON_PAST,
    SlotValidator,
)

CHICAGO = "America/Chicago"
MONDAY_RULE = [AvailabilityRule.from_strings(1, "09:00", "17:00")]
ACCOUNTS = [CalendarAccount(id="work")]


class StubBusySource:
    """Minimal stub matching BusyPeriodSource."""

    def __init__(self, busy: Dict[str, Union[List[TimeRange], Exception]]):
        self._busy = busy
        self.calls = []

    async def fetch(self, account, calendar_id, range_start, range_end):
        self.calls.append((account.id, range_start, range_end))
        result = self._busy.get(account.id, [])
        if isinstance(result, Exception):
            raise result
        return result


def _local(value: str) -> pendulum.DateTime:
    return pendulum.parse(value, tz=CHICAGO).in_timezone("UTC")


def _build_validator(source, now: str = "2025-12-01T12:00:00Z") -> SlotValidator:
    return SlotValidator(
        busy_collector=BusyPeriodCollector(source),
        clock=FrozenClock(pendulum.parse(now)),
    )


def _validate(validator, start: str, end: str, rules=MONDAY_RULE, accounts=ACCOUNTS, **kwargs):
    return asyncio.run(
        validator.validate(_local(start), _local(end), accounts, rules, CHICAGO, **kwargs)
    )


class TestSlotValidator:
    """Tests for SlotValidator.validate."""

    def test_free_slot_is_valid(self):
        validator = _build_validator(StubBusySource({}))

        verdict = _validate(validator, "2025-12-08 09:00", "2025-12-08 09:30")

        assert verdict.valid
        assert verdict.outcome is ValidationOutcome.VALID
        assert verdict.reason is None

    def test_day_without_rule(self):
        """Sunday has no rule, so the day itself is unavailable."""
        source = StubBusySource({})
        validator = _build_validator(source)

        verdict = _validate(validator, "2025-12-07 10:00", "2025-12-07 10:30")

        assert not verdict.valid
        assert verdict.outcome is ValidationOutcome.RULE_INACTIVE
        assert verdict.reason == REASON_DAY_UNAVAILABLE
        assert source.calls == []

    def test_inactive_rule_counts_as_no_rule(self):
        validator = _build_validator(StubBusySource({}))
        rules = [AvailabilityRule.from_strings(1, "09:00", "17:00", active=False)]

        verdict = _validate(validator, "2025-12-08 10:00", "2025-12-08 10:30", rules=rules)

        assert verdict.outcome is ValidationOutcome.RULE_INACTIVE

    def test_slot_ending_at_busy_start_is_valid(self):
        """Boundary contact is not a conflict; one minute later is."""
        source = StubBusySource(
            {"work": [TimeRange(start=_local("2025-12-08 10:00"), end=_local("2025-12-08 11:00"))]}
        )
        validator = _build_validator(source)

        touching = _validate(validator, "2025-12-08 09:30", "2025-12-08 10:00")
        shifted = _validate(validator, "2025-12-08 09:31", "2025-12-08 10:01")

        assert touching.valid
        assert not shifted.valid
        assert shifted.outcome is ValidationOutcome.CONFLICT
        assert shifted.reason == REASON_CONFLICT

    def test_slot_in_the_past(self):
        validator = _build_validator(StubBusySource({}), now="2025-12-08T18:00:00Z")

        verdict = _validate(validator, "2025-12-08 09:00", "2025-12-08 09:30")

        assert verdict.outcome is ValidationOutcome.PAST
        assert verdict.reason == REASON_PAST

    def test_minimum_notice(self):
        validator = _build_validator(StubBusySource({}), now="2025-12-08T13:00:00Z")

        verdict = _validate(
            validator, "2025-12-08 09:00", "2025-12-08 09:30", min_notice_hours=24
        )

        assert verdict.outcome is ValidationOutcome.NOTICE
        assert verdict.reason == "Bookings require at least 24 hour(s) notice"

    def test_notice_is_checked_before_past(self):
        validator = _build_validator(StubBusySource({}), now="2025-12-08T18:00:00Z")

        verdict = _validate(
            validator, "2025-12-08 09:00", "2025-12-08 09:30", min_notice_hours=2
        )

        assert verdict.outcome is ValidationOutcome.NOTICE

    def test_outside_hours(self):
        validator = _build_validator(StubBusySource({}))

        verdict = _validate(validator, "2025-12-08 16:45", "2025-12-08 17:15")

        assert verdict.outcome is ValidationOutcome.OUT_OF_WINDOW
        assert verdict.reason == REASON_OUTSIDE_HOURS

    def test_slot_ending_at_rule_end_is_inside(self):
        validator = _build_validator(StubBusySource({}))

        verdict = _validate(validator, "2025-12-08 16:30", "2025-12-08 17:00")

        assert verdict.valid

    def test_slot_crossing_local_midnight(self):
        """A late rule does not accept a slot that spills into the next day."""
        validator = _build_validator(StubBusySource({}))
        rules = [AvailabilityRule.from_strings(1, "22:00", "23:59")]

        inside = _validate(validator, "2025-12-08 23:00", "2025-12-08 23:30", rules=rules)
        crossing = _validate(validator, "2025-12-08 23:00", "2025-12-09 01:00", rules=rules)

        assert inside.valid
        assert crossing.outcome is ValidationOutcome.OUT_OF_WINDOW
        assert crossing.reason == REASON_OUTSIDE_HOURS

    def test_any_matching_rule_accepts(self):
        validator = _build_validator(StubBusySource({}))
        rules = [
            AvailabilityRule.from_strings(1, "09:00", "12:00"),
            AvailabilityRule.from_strings(1, "13:00", "17:00"),
        ]

        assert _validate(validator, "2025-12-08 13:00", "2025-12-08 13:30", rules=rules).valid
        lunch = _validate(validator, "2025-12-08 12:00", "2025-12-08 12:30", rules=rules)
        across = _validate(validator, "2025-12-08 11:45", "2025-12-08 13:15", rules=rules)

        assert lunch.outcome is ValidationOutcome.OUT_OF_WINDOW
        assert across.outcome is ValidationOutcome.OUT_OF_WINDOW

    def test_busy_data_is_fetched_for_the_slot(self):
        source = StubBusySource({})
        validator = _build_validator(source)

        _validate(validator, "2025-12-08 09:00", "2025-12-08 09:30")

        assert source.calls == [
            ("work", _local("2025-12-08 09:00"), _local("2025-12-08 09:30"))
        ]

    def test_buffers_apply_only_when_requested(self):
        source = StubBusySource(
            {"work": [TimeRange(start=_local("2025-12-08 10:00"), end=_local("2025-12-08 10:30"))]}
        )
        validator = _build_validator(source)

        plain = _validate(validator, "2025-12-08 10:30", "2025-12-08 11:00")
        buffered = _validate(
            validator, "2025-12-08 10:30", "2025-12-08 11:00", buffer_before_minutes=15
        )

        assert plain.valid
        assert buffered.outcome is ValidationOutcome.CONFLICT

    def test_unavailable_busy_data_raises(self):
        """Without fresh data from every account there is no verdict."""
        source = StubBusySource({"work": AuthExpiredError("token revoked", "work")})
        validator = _build_validator(source)

        with pytest.raises(BusyDataUnavailableError) as excinfo:
            _validate(validator, "2025-12-08 09:00", "2025-12-08 09:30")

        assert [f.account_id for f in excinfo.value.failures] == ["work"]
        assert excinfo.value.failures[0].kind.value == "auth_expired"

    def test_excluded_accounts_do_not_conflict(self):
        source = StubBusySource(
            {"personal": [TimeRange(start=_local("2025-12-08 09:00"), end=_local("2025-12-08 17:00"))]}
        )
        validator = _build_validator(source)
        accounts = [CalendarAccount(id="personal", include_in_availability=False)]

        verdict = _validate(validator, "2025-12-08 09:00", "2025-12-08 09:30", accounts=accounts)

        assert verdict.valid
        assert source.calls == []

    def test_unknown_zone(self):
        validator = _build_validator(StubBusySource({}))

        with pytest.raises(InputError):
            asyncio.run(
                validator.validate(
                    _local("2025-12-08 09:00"),
                    _local("2025-12-08 09:30"),
                    ACCOUNTS,
                    MONDAY_RULE,
                    "Atlantis/Capital",
                )
            )

    def test_empty_slot(self):
        validator = _build_validator(StubBusySource({}))

        with pytest.raises(InputError):
            _validate(validator, "2025-12-08 09:30", "2025-12-08 09:30")
