"""
Domain-specific exception hierarchy for slotguard.

Validation outcomes (notice, past, inactive day, outside hours, conflict) are
not exceptions; they are reported through ``ValidationVerdict``.
"""

from enum import Enum


class SlotguardError(Exception):
    """Base class for all application-level errors."""


class InputError(SlotguardError, ValueError):
    """Raised for malformed input: unknown zones, bad durations, invalid rules."""


class FetchErrorKind(str, Enum):
    AUTH_EXPIRED = "auth_expired"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


class BusyFetchError(SlotguardError):
    """Raised when busy data cannot be fetched from a calendar account."""

    kind = FetchErrorKind.UNKNOWN

    def __init__(self, message: str, account_id: str | None = None):
        super().__init__(message)
        self.account_id = account_id


class AuthExpiredError(BusyFetchError):
    """The account's token was rejected even after one refresh."""

    kind = FetchErrorKind.AUTH_EXPIRED


class RateLimitedError(BusyFetchError):
    """The calendar provider throttled the request."""

    kind = FetchErrorKind.RATE_LIMITED


class UpstreamUnavailableError(BusyFetchError):
    """The provider was unreachable, timed out or answered with garbage."""

    kind = FetchErrorKind.UNKNOWN


class BusyDataUnavailableError(SlotguardError):
    """
    Raised by the slot validator when fresh busy data is missing for at least
    one account, so no authoritative verdict can be given.
    """

    def __init__(self, failures):
        self.failures = list(failures)
        accounts = ", ".join(failure.account_id for failure in self.failures)
        super().__init__(f"Busy data unavailable for account(s): {accounts}")


class AuthenticationError(SlotguardError):
    """Raised when an access token cannot be obtained or refreshed."""


class RateLimitExceededError(SlotguardError):
    """Raised by the booking gate when a client exceeds its request budget."""

    def __init__(self, key: str, reset_in: int):
        super().__init__(f"Rate limit exceeded for {key}; retry in {reset_in}s")
        self.key = key
        self.reset_in = reset_in


class BookingRequestError(InputError):
    """Raised when a booking request is malformed; carries every problem found."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))
