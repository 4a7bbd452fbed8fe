"""
Fixed-window rate limiting behind an injectable store.

Counters live in whatever ``RateLimitStore`` the limiter is given; the
in-memory store is a plain per-instance dict, so two limiters never share
state unless they share a store.
"""

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Protocol

from pendulum import DateTime

from ..domain.clock import Clock, SystemClock


@dataclass(frozen=True)
class RateLimitPolicy:
    limit: int
    window_seconds: int


RATE_LIMITS: Dict[str, RateLimitPolicy] = {
    "booking": RateLimitPolicy(limit=10, window_seconds=60),
    "api": RateLimitPolicy(limit=100, window_seconds=60),
    "auth": RateLimitPolicy(limit=5, window_seconds=60),
    "slots": RateLimitPolicy(limit=30, window_seconds=60),
}


@dataclass
class RateLimitEntry:
    count: int
    reset_at: DateTime


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_in: int  # seconds


class RateLimitStore(Protocol):
    def get(self, key: str) -> Optional[RateLimitEntry]:
        ...

    def set(self, key: str, entry: RateLimitEntry) -> None:
        ...

    def purge_expired(self, now: DateTime) -> int:
        """Drop entries whose window has ended; return how many were removed."""


class InMemoryRateLimitStore:
    """Dict-backed store for a single process."""

    def __init__(self) -> None:
        self._entries: Dict[str, RateLimitEntry] = {}

    def get(self, key: str) -> Optional[RateLimitEntry]:
        return self._entries.get(key)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        self._entries[key] = entry

    def purge_expired(self, now: DateTime) -> int:
        expired = [key for key, entry in self._entries.items() if entry.reset_at < now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class RateLimiter:
    """
    Counts requests per key within fixed windows.

    Expired entries are purged from the store by ``check`` itself, at most
    once per window of the policy being checked.
    """

    def __init__(self, store: RateLimitStore | None = None, clock: Clock | None = None):
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock or SystemClock()
        self._next_purge_at: Optional[DateTime] = None

    def check(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """Record one request for ``key`` and decide whether it may proceed."""
        now = self._clock.now()

        if self._next_purge_at is None or now >= self._next_purge_at:
            self._store.purge_expired(now)
            self._next_purge_at = now.add(seconds=policy.window_seconds)

        entry = self._store.get(key)

        if entry is None or entry.reset_at < now:
            self._store.set(
                key, RateLimitEntry(count=1, reset_at=now.add(seconds=policy.window_seconds))
            )
            return RateLimitDecision(
                allowed=True, remaining=policy.limit - 1, reset_in=policy.window_seconds
            )

        entry.count += 1
        self._store.set(key, entry)
        reset_in = math.ceil((entry.reset_at - now).total_seconds())

        if entry.count > policy.limit:
            return RateLimitDecision(allowed=False, remaining=0, reset_in=reset_in)

        return RateLimitDecision(
            allowed=True, remaining=max(0, policy.limit - entry.count), reset_in=reset_in
        )

    def purge_expired(self) -> int:
        return self._store.purge_expired(self._clock.now())


def client_id_from_headers(headers: Mapping[str, str]) -> str:
    """
    Identify a client by the first X-Forwarded-For hop, then X-Real-IP.
    """
    lowered = {name.lower(): value for name, value in headers.items()}

    forwarded = lowered.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = lowered.get("x-real-ip")
    if real_ip:
        return real_ip

    return "unknown-client"
