"""
Google Calendar free/busy adapter.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import requests
from pendulum import DateTime

from ..domain.exceptions import UpstreamUnavailableError
from ..domain.models import CalendarAccount, TimeRange
from .base import OAuthCalendarClient

logger = logging.getLogger(__name__)

RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}


class GoogleFreeBusyClient(OAuthCalendarClient):
    """
    Client for the Google Calendar ``freeBusy`` endpoint.

    One request covers the whole queried range of one calendar.
    """

    provider_name = "Google Calendar"
    GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"

    def _request(
        self,
        token: str,
        account: CalendarAccount,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> requests.Response:
        payload = {
            "timeMin": range_start.in_timezone("UTC").to_iso8601_string(),
            "timeMax": range_end.in_timezone("UTC").to_iso8601_string(),
            "items": [{"id": calendar_id}],
        }
        return self.session.post(
            f"{self.GOOGLE_CALENDAR_API}/freeBusy",
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=self.request_timeout,
        )

    def _is_rate_limited(self, response: requests.Response) -> bool:
        if response.status_code != 403:
            return False
        try:
            errors = response.json().get("error", {}).get("errors", [])
        except ValueError:
            return False
        return any(error.get("reason") in RATE_LIMIT_REASONS for error in errors)

    def _parse(
        self,
        data: Dict[str, Any],
        account: CalendarAccount,
        calendar_id: str,
    ) -> List[TimeRange]:
        """
        Parse the freeBusy response.

        Response format:
        {
            "calendars": {
                "primary": {
                    "busy": [{"start": "...Z", "end": "...Z"}],
                    "errors": [{"domain": "global", "reason": "notFound"}]
                }
            }
        }
        """
        calendars = data.get("calendars") or {}
        if not isinstance(calendars, dict):
            raise UpstreamUnavailableError("Malformed free/busy response", account.id)
        calendar = calendars.get(calendar_id)
        if calendar is None and len(calendars) == 1:
            # "primary" comes back keyed by the account's address.
            calendar = next(iter(calendars.values()))
        if calendar is None:
            raise UpstreamUnavailableError(
                f"Calendar {calendar_id} missing from free/busy response", account.id
            )

        if not isinstance(calendar, dict):
            raise UpstreamUnavailableError(
                f"Malformed free/busy entry for calendar {calendar_id}", account.id
            )

        errors = calendar.get("errors") or []
        if errors:
            reasons = ", ".join(error.get("reason", "unknown") for error in errors)
            raise UpstreamUnavailableError(
                f"Free/busy for calendar {calendar_id} failed: {reasons}", account.id
            )

        busy_ranges: List[TimeRange] = []
        for item in calendar.get("busy") or []:
            busy = self._busy_range(item.get("start", ""), item.get("end", ""))
            if busy is not None:
                busy_ranges.append(busy)

        logger.debug(
            "Account %s calendar %s: %d busy ranges", account.id, calendar_id, len(busy_ranges)
        )
        return busy_ranges
