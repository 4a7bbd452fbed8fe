"""
Service layer - orchestrates busy-period sources and domain logic.
"""

from .availability_engine import AvailabilityEngine, AvailabilityQuery, AvailabilityResult
from .booking import BookingGate, BookingOutcome, BookingRequest, parse_booking_request
from .busy_periods import (
    AccountFetchFailure,
    BusyPeriodCollector,
    BusyPeriodReport,
    BusyPeriodSource,
)
from .rate_limit import RATE_LIMITS, InMemoryRateLimitStore, RateLimiter, RateLimitPolicy
from .rule_source import AvailabilityRuleSource, InMemoryRuleSource
from .slot_validator import SlotValidator

__all__ = [
    "AccountFetchFailure",
    "AvailabilityEngine",
    "AvailabilityQuery",
    "AvailabilityResult",
    "AvailabilityRuleSource",
    "BookingGate",
    "BookingOutcome",
    "BookingRequest",
    "BusyPeriodCollector",
    "BusyPeriodReport",
    "BusyPeriodSource",
    "InMemoryRateLimitStore",
    "InMemoryRuleSource",
    "RATE_LIMITS",
    "RateLimitPolicy",
    "RateLimiter",
    "SlotValidator",
    "parse_booking_request",
]
