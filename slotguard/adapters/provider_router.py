"""
Dispatches busy queries to the adapter of each account's provider.
"""

from typing import Dict, List

from pendulum import DateTime

from ..domain.exceptions import UpstreamUnavailableError
from ..domain.models import CalendarAccount, TimeRange
from ..services.busy_periods import BusyPeriodSource


class ProviderRouter:
    """A ``BusyPeriodSource`` that picks the adapter by ``account.provider``."""

    def __init__(self, sources: Dict[str, BusyPeriodSource]):
        self._sources = {name.lower(): source for name, source in sources.items()}

    async def fetch(
        self,
        account: CalendarAccount,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[TimeRange]:
        source = self._sources.get(account.provider.lower())
        if source is None:
            raise UpstreamUnavailableError(
                f"No busy-period adapter for provider '{account.provider}'", account.id
            )
        return await source.fetch(account, calendar_id, range_start, range_end)
