"""
Concurrent collection of busy periods across calendar accounts.

Every qualifying account is queried once, in parallel, with its own timeout.
A failing account never aborts the whole collection; it is reported as an
``AccountFetchFailure`` so callers can tell "free" apart from "unknown".
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Protocol, Sequence

from pendulum import DateTime

from ..domain.exceptions import BusyFetchError, FetchErrorKind
from ..domain.intervals import merge_intervals
from ..domain.models import CalendarAccount, TimeRange

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0


class BusyPeriodSource(Protocol):
    """Protocol describing the calendar behaviour needed by the engine."""

    async def fetch(
        self,
        account: CalendarAccount,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[TimeRange]:
        """
        Return busy ranges of one calendar, or raise a ``BusyFetchError``
        subclass (auth expired, rate limited, unknown).
        """


@dataclass(frozen=True)
class AccountFetchFailure:
    """Busy data of one account could not be obtained."""
    account_id: str
    kind: FetchErrorKind
    message: str


@dataclass
class BusyPeriodReport:
    """Merged busy ranges plus the accounts whose data is missing."""
    intervals: List[TimeRange] = field(default_factory=list)
    failures: List[AccountFetchFailure] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


class BusyPeriodCollector:
    """Fans out one fetch per qualifying account and merges the results."""

    def __init__(
        self,
        source: BusyPeriodSource,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self._source = source
        self._timeout_seconds = timeout_seconds

    @staticmethod
    def qualifying_accounts(accounts: Sequence[CalendarAccount]) -> List[CalendarAccount]:
        """Accounts flagged to take part in availability checks."""
        return [account for account in accounts if account.include_in_availability]

    async def collect(
        self,
        accounts: Sequence[CalendarAccount],
        range_start: DateTime,
        range_end: DateTime,
        timeout_seconds: float | None = None,
    ) -> BusyPeriodReport:
        """
        Fetch busy ranges for ``[range_start, range_end)`` from every
        qualifying account and merge them into one disjoint list.
        """
        qualifying = self.qualifying_accounts(accounts)
        if not qualifying:
            return BusyPeriodReport()

        timeout = timeout_seconds if timeout_seconds is not None else self._timeout_seconds

        results = await asyncio.gather(
            *(
                self._fetch_account(account, range_start, range_end, timeout)
                for account in qualifying
            )
        )

        busy: List[TimeRange] = []
        failures: List[AccountFetchFailure] = []

        for result in results:
            if isinstance(result, AccountFetchFailure):
                failures.append(result)
            else:
                busy.extend(result)

        return BusyPeriodReport(intervals=merge_intervals(busy), failures=failures)

    async def _fetch_account(
        self,
        account: CalendarAccount,
        range_start: DateTime,
        range_end: DateTime,
        timeout: float,
    ) -> List[TimeRange] | AccountFetchFailure:
        calendar_id = account.calendar_id or "primary"

        try:
            return await asyncio.wait_for(
                self._source.fetch(account, calendar_id, range_start, range_end),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Busy fetch for account %s timed out after %.1fs", account.id, timeout
            )
            return AccountFetchFailure(
                account_id=account.id,
                kind=FetchErrorKind.UNKNOWN,
                message=f"timed out after {timeout:.1f}s",
            )
        except BusyFetchError as exc:
            logger.warning(
                "Busy fetch for account %s failed (%s): %s", account.id, exc.kind.value, exc
            )
            return AccountFetchFailure(account_id=account.id, kind=exc.kind, message=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error fetching busy data for account %s", account.id)
            return AccountFetchFailure(
                account_id=account.id,
                kind=FetchErrorKind.UNKNOWN,
                message=f"{type(exc).__name__}: {exc}",
            )
