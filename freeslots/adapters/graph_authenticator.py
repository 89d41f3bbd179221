"""
Microsoft Graph authentication using MSAL (Device Code Flow).

Tokens are cached in the OS keyring. When no usable keyring backend exists,
the cache falls back to a file readable only by the current user.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import keyring
import msal
from keyring.errors import KeyringError
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

KEYRING_SERVICE_NAME = "freeslots"

DEFAULT_CACHE_FILE = Path.home() / ".freeslots_token_cache.json"


class TokenCacheStore:
    """
    Persists a serialized MSAL token cache.

    The keyring is tried first; any keyring failure permanently switches this
    store to the file backend for the rest of the process.
    """

    def __init__(self, key: str, cache_file: Path | None = None):
        self.key = key
        self.cache_file = cache_file or DEFAULT_CACHE_FILE
        self.backend = "keyring"

    def load(self) -> Optional[str]:
        if self.backend == "keyring":
            try:
                serialized = keyring.get_password(KEYRING_SERVICE_NAME, self.key)
            except KeyringError as exc:
                self._fall_back(f"reading credentials failed: {exc}")
            else:
                if serialized is not None:
                    return serialized

        if not self.cache_file.exists():
            return None

        try:
            return self.cache_file.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not load token cache file %s: %s", self.cache_file, exc)
            return None

    def save(self, serialized: str) -> None:
        if self.backend == "keyring":
            try:
                keyring.set_password(KEYRING_SERVICE_NAME, self.key, serialized)
                return
            except KeyringError as exc:
                self._fall_back(f"writing credentials failed: {exc}")

        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(serialized, encoding="utf-8")
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save token cache to %s: %s", self.cache_file, exc)

    def clear(self) -> None:
        if self.backend == "keyring":
            try:
                keyring.delete_password(KEYRING_SERVICE_NAME, self.key)
            except KeyringError as exc:
                # Nothing stored, or no backend; either way nothing to delete.
                logger.debug("Keyring entry not removed: %s", exc)

        if self.cache_file.exists():
            self.cache_file.unlink()

    def _fall_back(self, reason: str) -> None:
        logger.warning(
            "Secure credential storage unavailable (%s). Falling back to plaintext cache at %s.",
            reason,
            self.cache_file,
        )
        self.backend = "file"


class GraphAuthenticator:
    """
    Handles authentication with Microsoft Graph using Device Code Flow.

    This flow is ideal for CLI applications:
    1. App displays a code and URL
    2. User visits URL in browser and enters code
    3. User grants read access to their calendars
    4. App receives access token
    """

    # Required scopes for reading calendars and their events
    SCOPES = ["Calendars.Read"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        authority_url: str | None = None,
        cache_file: Path | None = None,
        console: Console | None = None,
    ):
        if not client_id:
            raise AuthenticationError(
                "No client_id configured. Add your Azure AD application id to config.yaml."
            )

        self.client_id = client_id
        self.tenant_id = tenant_id
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"
        self.console = console or Console(stderr=True)

        self.store = TokenCacheStore(key=f"{client_id}:{tenant_id}", cache_file=cache_file)
        self.cache = msal.SerializableTokenCache()
        serialized = self.store.load()
        if serialized:
            try:
                self.cache.deserialize(serialized)
            except ValueError as exc:
                logger.warning("Could not deserialize token cache: %s", exc)

        self.app = msal.PublicClientApplication(
            client_id=self.client_id,
            authority=self.authority,
            token_cache=self.cache,
        )

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, using the cache or requesting a new one.

        Raises:
            AuthenticationError: If authentication fails
        """
        if not force_refresh:
            accounts = self.app.get_accounts()
            if accounts:
                result = self.app.acquire_token_silent(scopes=self.SCOPES, account=accounts[0])
                if result and "access_token" in result:
                    self._persist()
                    return result["access_token"]
                logger.debug("Silent token acquisition failed, starting device flow")

        return self._authenticate_device_code_flow()

    def _authenticate_device_code_flow(self) -> str:
        flow = self.app.initiate_device_flow(scopes=self.SCOPES)

        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to initiate device flow: {flow.get('error_description', 'Unknown error')}"
            )

        self.console.print("\n[bold cyan]Microsoft sign-in required[/bold cyan]")
        self.console.print(f"1. Open [bold cyan]{flow['verification_uri']}[/bold cyan]")
        self.console.print(f"2. Enter the code [bold yellow]{flow['user_code']}[/bold yellow]")
        self.console.print("[dim]Waiting for authentication...[/dim]\n")

        result = self.app.acquire_token_by_device_flow(flow)

        if "access_token" not in result:
            raise AuthenticationError(
                f"Authentication failed: {result.get('error_description', 'Unknown error')}"
            )

        self._persist()
        return result["access_token"]

    def _persist(self) -> None:
        if self.cache.has_state_changed:
            self.store.save(self.cache.serialize())

    def clear_cache(self) -> None:
        """Forget cached tokens so the next call signs in again."""
        self.store.clear()
        self.cache = msal.SerializableTokenCache()
