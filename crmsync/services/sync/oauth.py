"""
HubSpot OAuth credential management
Owns the access token and its expiry for one account
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import httpx

from crmsync.core.config import settings
from crmsync.core.exceptions import CredentialError
from crmsync.models.schemas import Account, utc_now
from crmsync.services.sync.database import SupabaseAccountStore

logger = logging.getLogger(__name__)


class CredentialManager:
    """
    Holds the current access token and expiry for one HubSpot account.

    The search and association clients read the token through this object
    rather than from module state, and ask it whether a failed request
    happened past expiry.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        account: Account,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        api_base: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
        store: Optional[SupabaseAccountStore] = None
    ):
        self.http_client = http_client
        self.account = account
        self.store = store
        self.client_id = client_id if client_id is not None else settings.hubspot_client_id
        self.client_secret = client_secret if client_secret is not None else settings.hubspot_client_secret
        self.api_base = (api_base or settings.hubspot_api_base).rstrip("/")
        self.clock = clock

        self.expires_at: Optional[datetime] = None
        self.refresh_count = 0
        self._lock = asyncio.Lock()
        self._generation = 0
        self._last_refresh_ok = False

    # ========================================================================
    # STATE
    # ========================================================================

    @property
    def access_token(self) -> Optional[str]:
        return self.account.access_token

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.account.access_token or ''}"}

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True when no expiry is tracked yet or `now` is past it."""
        if self.expires_at is None:
            return True
        return (now or self.clock()) > self.expires_at

    def is_valid(self) -> bool:
        return bool(self.account.access_token) and not self.is_expired()

    # ========================================================================
    # REFRESH
    # ========================================================================

    async def ensure_valid(self, force: bool = False) -> bool:
        """
        Make sure the current token is usable.

        Args:
            force: Refresh even if the tracked token still looks valid

        Returns:
            True if a usable token is held afterwards
        """
        if not force and self.is_valid():
            return True
        return await self.refresh()

    async def refresh(self) -> bool:
        """
        Exchange the stored refresh token for a new access token.

        Concurrent callers share one exchange: a caller that waited on the
        lock while another refresh succeeded returns that result.

        Returns:
            True on success. On failure prior credentials are left untouched.
        """
        seen_generation = self._generation
        async with self._lock:
            if self._generation != seen_generation and self._last_refresh_ok:
                return True

            try:
                await self._exchange()
                ok = True
            except CredentialError as e:
                logger.error(f"Error refreshing access token for account {e.account_id}: {e}")
                ok = False

            self._generation += 1
            self._last_refresh_ok = ok
            return ok

    async def _stored_refresh_token(self) -> Optional[str]:
        """Refresh token for this account, confirmed against the store when one is attached."""
        account = self.account
        if self.store is None:
            return account.refresh_token

        try:
            stored = await self.store.find(account.external_id)
        except Exception as e:
            raise CredentialError(f"Account lookup failed: {e}", account_id=account.external_id) from e

        if stored is None:
            return None
        return account.refresh_token or stored.refresh_token

    async def _exchange(self) -> None:
        account = self.account
        refresh_token = await self._stored_refresh_token() if account else None
        if not refresh_token:
            raise CredentialError("No account found to refresh token.", account_id=getattr(account, "external_id", None))

        url = f"{self.api_base}/oauth/v1/token"
        data = {
            "grant_type": "refresh_token",
            "client_id": self.client_id or "",
            "client_secret": self.client_secret or "",
            "refresh_token": refresh_token,
        }

        try:
            response = await self.http_client.post(url, data=data)
            response.raise_for_status()
            body = response.json()
            new_access_token = body["access_token"]
            expires_in = int(body["expires_in"])
        except httpx.HTTPStatusError as e:
            raise CredentialError(
                f"Grant rejected: {e.response.status_code} - {e.response.text[:200]}",
                account_id=account.external_id
            ) from e
        except (httpx.HTTPError, KeyError, ValueError, TypeError) as e:
            raise CredentialError(f"Token exchange failed: {e}", account_id=account.external_id) from e

        self.expires_at = self.clock() + timedelta(seconds=expires_in)
        self.refresh_count += 1

        if new_access_token != account.access_token:
            account.access_token = new_access_token
        rotated_refresh_token = body.get("refresh_token")
        if rotated_refresh_token and rotated_refresh_token != account.refresh_token:
            account.refresh_token = rotated_refresh_token

        logger.info(f"🔑 Refreshed HubSpot token for account {account.external_id} (expires in {expires_in}s)")
