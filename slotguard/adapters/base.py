"""
Common plumbing for HTTP calendar providers.

Requests are blocking, so ``fetch`` runs them in a worker thread. On a 401
the token is refreshed once and the request retried once; a second 401
becomes ``AuthExpiredError``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import (
    AuthenticationError,
    AuthExpiredError,
    RateLimitedError,
    UpstreamUnavailableError,
)
from ..domain.models import CalendarAccount, TimeRange
from .token_providers import TokenProvider

logger = logging.getLogger(__name__)


class OAuthCalendarClient:
    """Base class for providers that answer busy queries over HTTPS."""

    provider_name = "calendar"

    def __init__(
        self,
        token_provider: TokenProvider,
        session: requests.Session | None = None,
        request_timeout: int = 30,
    ):
        self.token_provider = token_provider
        self.session = session or requests.Session()
        self.request_timeout = request_timeout

    async def fetch(
        self,
        account: CalendarAccount,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[TimeRange]:
        return await asyncio.to_thread(
            self.fetch_sync, account, calendar_id, range_start, range_end
        )

    def fetch_sync(
        self,
        account: CalendarAccount,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[TimeRange]:
        """Blocking variant of ``fetch``."""

        def send(token: str) -> requests.Response:
            return self._request(token, account, calendar_id, range_start, range_end)

        response = self._send_with_refresh(account, send)
        self._raise_for_status(response, account)

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamUnavailableError(
                f"{self.provider_name} returned a non-JSON body", account.id
            ) from exc

        if not isinstance(data, dict):
            raise UpstreamUnavailableError(
                f"{self.provider_name} returned {type(data).__name__} instead of an object",
                account.id,
            )

        return self._parse(data, account, calendar_id)

    def _send_with_refresh(
        self,
        account: CalendarAccount,
        send: Callable[[str], requests.Response],
    ) -> requests.Response:
        response = self._send(account, send, self._token(account, force_refresh=False))

        if response.status_code == 401:
            logger.info("Token for account %s rejected, refreshing once", account.id)
            response = self._send(account, send, self._token(account, force_refresh=True))
            if response.status_code == 401:
                raise AuthExpiredError(
                    f"{self.provider_name} rejected the refreshed token", account.id
                )

        return response

    def _send(
        self,
        account: CalendarAccount,
        send: Callable[[str], requests.Response],
        token: str,
    ) -> requests.Response:
        try:
            return send(token)
        except requests.exceptions.RequestException as exc:
            raise UpstreamUnavailableError(
                f"Failed to reach {self.provider_name}: {exc}", account.id
            ) from exc

    def _token(self, account: CalendarAccount, force_refresh: bool) -> str:
        try:
            return self.token_provider.get_access_token(account, force_refresh=force_refresh)
        except AuthenticationError as exc:
            raise AuthExpiredError(str(exc), account.id) from exc

    def _raise_for_status(self, response: requests.Response, account: CalendarAccount) -> None:
        if response.ok:
            return
        if response.status_code == 429 or self._is_rate_limited(response):
            raise RateLimitedError(
                f"{self.provider_name} rate limited account {account.id}", account.id
            )
        raise UpstreamUnavailableError(
            f"{self.provider_name} answered HTTP {response.status_code}", account.id
        )

    def _is_rate_limited(self, response: requests.Response) -> bool:
        return False

    def _request(
        self,
        token: str,
        account: CalendarAccount,
        calendar_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> requests.Response:
        raise NotImplementedError

    def _parse(
        self,
        data: Dict[str, Any],
        account: CalendarAccount,
        calendar_id: str,
    ) -> List[TimeRange]:
        raise NotImplementedError

    @staticmethod
    def _busy_range(start: str, end: str, timezone: str = "UTC") -> TimeRange | None:
        """
        Parse one busy item; malformed or empty items are logged and skipped.
        """
        try:
            busy_start = pendulum.parse(_trim_fraction(start), tz=timezone)
            busy_end = pendulum.parse(_trim_fraction(end), tz=timezone)
        except (ValueError, TypeError) as exc:
            logger.warning("Could not parse busy item %s - %s: %s", start, end, exc)
            return None

        if not isinstance(busy_start, DateTime) or not isinstance(busy_end, DateTime):
            logger.warning("Busy item %s - %s is not a timestamp pair", start, end)
            return None

        if busy_start >= busy_end:
            logger.warning("Skipping empty busy item %s - %s", start, end)
            return None

        return TimeRange(start=busy_start.in_timezone("UTC"), end=busy_end.in_timezone("UTC"))


def _trim_fraction(value: str) -> str:
    """Graph sends seven fractional digits; keep at most six."""
    if "." not in value:
        return value
    head, _, tail = value.partition(".")
    digits = ""
    for char in tail:
        if not char.isdigit():
            break
        digits += char
    return f"{head}.{digits[:6]}{tail[len(digits):]}"
