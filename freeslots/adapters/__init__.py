"""
Adapters layer - External calendar sources (Microsoft Graph, local files).
"""

from .file_calendar_client import FileCalendarClient
from .graph_authenticator import GraphAuthenticator, TokenCacheStore
from .graph_client import GraphCalendarClient

__all__ = ["FileCalendarClient", "GraphAuthenticator", "GraphCalendarClient", "TokenCacheStore"]
