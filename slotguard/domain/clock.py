"""
Injectable sources of "now".
"""

from typing import Protocol

import pendulum
from pendulum import DateTime


class Clock(Protocol):
    def now(self) -> DateTime:
        """Return the current instant in UTC."""


class SystemClock:
    """Reads the wall clock of the host."""

    def now(self) -> DateTime:
        return pendulum.now("UTC")


class FrozenClock:
    """Always returns the same instant; handy for deterministic runs."""

    def __init__(self, instant: DateTime):
        self._instant = instant.in_timezone("UTC")

    def now(self) -> DateTime:
        return self._instant

    def advance(self, **kwargs) -> None:
        """Move the frozen instant forward, e.g. ``advance(minutes=5)``."""
        self._instant = self._instant.add(**kwargs)
