"""
OAuth access-token providers for connected calendar accounts.

Tokens are kept on the ``CalendarAccount`` itself; a provider only refreshes
them (refresh-token grant) when they are expired or when the caller forces it
after a 401.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import msal
import requests

from ..domain.clock import Clock, SystemClock
from ..domain.exceptions import AuthenticationError
from ..domain.models import CalendarAccount

logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    def get_access_token(self, account: CalendarAccount, force_refresh: bool = False) -> str:
        """Return a usable access token for ``account``."""


class RefreshingTokenProvider:
    """
    Shared expiry handling; subclasses implement ``_refresh``.
    """

    def __init__(self, clock: Clock | None = None, expiry_margin_seconds: int = 60):
        self._clock = clock or SystemClock()
        self._expiry_margin_seconds = expiry_margin_seconds

    def get_access_token(self, account: CalendarAccount, force_refresh: bool = False) -> str:
        """
        Get a valid access token, refreshing it when needed.

        Args:
            account: Account whose token is wanted; updated in place on refresh
            force_refresh: Refresh even if the stored token looks valid

        Returns:
            Access token string

        Raises:
            AuthenticationError: If no token can be obtained
        """
        if not force_refresh and account.access_token and not self._is_expired(account):
            return account.access_token

        if not account.refresh_token:
            raise AuthenticationError(f"Account {account.id} has no refresh token")

        result = self._refresh(account)

        if "access_token" not in result:
            error = result.get("error_description") or result.get("error") or "Unknown error"
            raise AuthenticationError(f"Token refresh failed for account {account.id}: {error}")

        account.access_token = result["access_token"]
        if result.get("refresh_token"):
            account.refresh_token = result["refresh_token"]
        if result.get("expires_in"):
            account.expires_at = self._clock.now().int_timestamp + int(result["expires_in"])

        logger.info("Refreshed access token for account %s", account.id)
        return account.access_token

    def _is_expired(self, account: CalendarAccount) -> bool:
        if account.expires_at is None:
            return False
        return self._clock.now().int_timestamp >= account.expires_at - self._expiry_margin_seconds

    def _refresh(self, account: CalendarAccount) -> Dict[str, Any]:
        raise NotImplementedError


class GoogleTokenProvider(RefreshingTokenProvider):
    """Refreshes Google OAuth tokens against the token endpoint."""

    TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        session: requests.Session | None = None,
        clock: Clock | None = None,
        timeout: int = 30,
    ):
        super().__init__(clock=clock)
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session or requests.Session()
        self.timeout = timeout

    def _refresh(self, account: CalendarAccount) -> Dict[str, Any]:
        try:
            response = self.session.post(
                self.TOKEN_ENDPOINT,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": account.refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(f"Token refresh request failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise AuthenticationError(
                f"Token endpoint answered {response.status_code} without JSON"
            ) from exc


class MsalTokenProvider(RefreshingTokenProvider):
    """
    Refreshes Microsoft tokens through MSAL's refresh-token grant.
    """

    # Required scopes for calendar access
    SCOPES = ["Calendars.Read.Shared", "Calendars.Read"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        client_secret: str,
        authority_url: str | None = None,
        app: Optional[msal.ClientApplication] = None,
        clock: Clock | None = None,
    ):
        super().__init__(clock=clock)
        self.client_id = client_id
        self.client_secret = client_secret
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"
        self._app = app

    @property
    def app(self) -> msal.ClientApplication:
        # MSAL resolves the authority on construction, so build it lazily.
        if self._app is None:
            self._app = msal.ConfidentialClientApplication(
                client_id=self.client_id,
                client_credential=self.client_secret,
                authority=self.authority,
            )
        return self._app

    def _refresh(self, account: CalendarAccount) -> Dict[str, Any]:
        scopes: List[str] = list(self.SCOPES)
        try:
            return self.app.acquire_token_by_refresh_token(account.refresh_token, scopes=scopes)
        except ValueError as exc:
            raise AuthenticationError(f"MSAL rejected the refresh request: {exc}") from exc
