"""
Adapters layer - External integrations (Google Calendar, Microsoft Graph).
"""

from .google_calendar import GoogleFreeBusyClient
from .graph_client import GraphScheduleClient
from .mock_busy_source import JsonBusyPeriodSource
from .provider_router import ProviderRouter
from .token_providers import GoogleTokenProvider, MsalTokenProvider, TokenProvider

__all__ = [
    "GoogleFreeBusyClient",
    "GoogleTokenProvider",
    "GraphScheduleClient",
    "JsonBusyPeriodSource",
    "MsalTokenProvider",
    "ProviderRouter",
    "TokenProvider",
]
