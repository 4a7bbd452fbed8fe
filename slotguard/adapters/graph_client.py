"""
Microsoft Graph API adapter for Outlook calendar busy times.
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

# We consider these statuses as "busy"
BUSY_STATUSES = {"busy", "tentative", "oof", "workingelsewhere"}


class GraphScheduleClient(OAuthCalendarClient):
    """
    Client for Microsoft Graph API calendar operations.

    Uses the /calendar/getSchedule endpoint to fetch free/busy information.
    """

    provider_name = "Microsoft Graph"
    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    def _request(
        self,
        token: str,
        account: CalendarAccount,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> requests.Response:
        payload = {
            "schedules": [self._schedule_id(account, calendar_id)],
            "startTime": {
                "dateTime": range_start.in_timezone("UTC").strftime("%Y-%m-%dT%H:%M:%S"),
                "timeZone": "UTC",
            },
            "endTime": {
                "dateTime": range_end.in_timezone("UTC").strftime("%Y-%m-%dT%H:%M:%S"),
                "timeZone": "UTC",
            },
            "availabilityViewInterval": 15,
        }
        return self.session.post(
            f"{self.GRAPH_API_ENDPOINT}/me/calendar/getSchedule",
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Prefer": 'outlook.timezone="UTC"',
            },
            json=payload,
            timeout=self.request_timeout,
        )

    @staticmethod
    def _schedule_id(account: CalendarAccount, calendar_id: str) -> str:
        if calendar_id and calendar_id != "primary":
            return calendar_id
        return account.account_email

    def _parse(
        self,
        data: Dict[str, Any],
        account: CalendarAccount,
        calendar_id: str,
    ) -> List[TimeRange]:
        """
        Parse the getSchedule API response.

        Response format:
        {
            "value": [
                {
                    "scheduleId": "user@example.com",
                    "scheduleItems": [
                        {
                            "status": "busy",
                            "start": {"dateTime": "...", "timeZone": "UTC"},
                            "end": {"dateTime": "...", "timeZone": "UTC"}
                        }
                    ]
                }
            ]
        }
        """
        busy_ranges: List[TimeRange] = []

        for schedule in data.get("value") or []:
            error = schedule.get("error")
            if error:
                raise UpstreamUnavailableError(
                    f"Schedule {schedule.get('scheduleId', '?')} failed: "
                    f"{error.get('message', 'unknown error')}",
                    account.id,
                )

            for item in schedule.get("scheduleItems") or []:
                if item.get("status", "").lower() not in BUSY_STATUSES:
                    continue

                try:
                    start = item["start"]["dateTime"]
                    end = item["end"]["dateTime"]
                except KeyError as exc:
                    logger.warning("Could not parse schedule item: missing %s", exc)
                    continue

                busy = self._busy_range(
                    start, end, timezone=item["start"].get("timeZone", "UTC")
                )
                if busy is not None:
                    busy_ranges.append(busy)

        return busy_ranges
