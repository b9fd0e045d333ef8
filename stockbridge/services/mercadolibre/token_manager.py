"""
MercadoLibre OAuth token cache with single-flight refresh.

MercadoLibre refresh tokens are single-use: each refresh returns a new
refresh token and invalidates the old one. Two concurrent refreshes would
invalidate each other, so at most one refresh call is ever in flight and
every caller that needs a new token awaits that same call.

Tokens live in memory only. A rotated refresh token is logged so it can be
copied back into ML_REFRESH_TOKEN; it is never written to disk.
"""

import asyncio
import logging
from typing import Optional

import httpx

from stockbridge.core.exceptions import MercadoLibreAuthError

logger = logging.getLogger(__name__)


class MercadoLibreTokenManager:
    """
    Owns the current access token and refresh token for one seller account.

    Constructed once at startup and shared by reference with every
    `MercadoLibreClient`.
    """

    TOKEN_URL = "https://api.mercadolibre.com/oauth/token"

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        token_url: str = TOKEN_URL,
        refresh_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.refresh_timeout = refresh_timeout
        self._transport = transport
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._refresh_task: Optional[asyncio.Task] = None
        self.refresh_count = 0

        if refresh_timeout is None:
            # TODO: decide on a bound for the refresh call; until then a hung
            # refresh stalls every request waiting on it
            logger.warning("MercadoLibre token refresh has no timeout configured (ML_TOKEN_REFRESH_TIMEOUT)")

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        return cls(
            client_id=settings.ML_CLIENT_ID,
            client_secret=settings.ML_CLIENT_SECRET,
            access_token=settings.ML_ACCESS_TOKEN,
            refresh_token=settings.ML_REFRESH_TOKEN,
            token_url=f"{settings.ML_API_BASE_URL.rstrip('/')}/oauth/token",
            refresh_timeout=settings.ML_TOKEN_REFRESH_TIMEOUT,
            transport=transport,
        )

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._refresh_token

    @property
    def can_refresh(self) -> bool:
        return bool(self.client_id and self.client_secret and self._refresh_token)

    @property
    def refresh_in_progress(self) -> bool:
        return self._refresh_task is not None

    async def get_access_token(self) -> str:
        """Cached access token, refreshing only if none has been obtained yet"""
        if self._access_token:
            return self._access_token
        if self.can_refresh:
            return await self.refresh()
        raise MercadoLibreAuthError("MercadoLibre access token not configured")

    async def refresh(self, stale_token: Optional[str] = None) -> str:
        """
        Obtain a new access token, sharing any refresh already in flight.

        Args:
            stale_token: the token the caller saw rejected. If the cache already
                holds a different token, a newer one was obtained after the
                caller's request went out and it is returned without a new
                refresh call.

        Raises:
            MercadoLibreAuthError: the refresh call failed or is not configured
        """
        if self._refresh_task is None:
            if stale_token is not None and self._access_token and self._access_token != stale_token:
                logger.debug("Access token already replaced by a newer refresh")
                return self._access_token
            if not self.can_refresh:
                raise MercadoLibreAuthError("MercadoLibre refresh token not configured")
            self._refresh_task = asyncio.create_task(self._run_refresh())
        else:
            logger.debug("Joining MercadoLibre token refresh already in flight")

        # A cancelled waiter must not cancel the refresh other callers share
        return await asyncio.shield(self._refresh_task)

    async def _run_refresh(self) -> str:
        try:
            self.refresh_count += 1
            logger.info("Refreshing MercadoLibre access token")

            refresh_data = {
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self._refresh_token,
            }

            try:
                async with httpx.AsyncClient(transport=self._transport, timeout=self.refresh_timeout) as client:
                    response = await client.post(
                        self.token_url,
                        data=refresh_data,
                        headers={"Accept": "application/json"},
                    )
            except httpx.RequestError as e:
                logger.error(f"Network error refreshing MercadoLibre token: {str(e)}")
                raise MercadoLibreAuthError(f"Network error refreshing access token: {str(e)}")

            if response.status_code != 200:
                error_text = response.text
                logger.error(f"MercadoLibre token refresh failed ({response.status_code}): {error_text}")
                if "invalid_grant" in error_text:
                    raise MercadoLibreAuthError(
                        "Invalid refresh token. Re-authorize the MercadoLibre application."
                    )
                raise MercadoLibreAuthError(f"Failed to refresh access token: {error_text}")

            try:
                token_data = response.json()
            except ValueError:
                logger.error(f"MercadoLibre token refresh returned a non-JSON body: {response.text[:200]}")
                raise MercadoLibreAuthError("MercadoLibre token response is not JSON")
            if not isinstance(token_data, dict):
                logger.error(f"MercadoLibre token refresh returned unexpected JSON: {token_data!r}")
                raise MercadoLibreAuthError("MercadoLibre token response is not an object")

            access_token = token_data.get("access_token")
            if not access_token:
                raise MercadoLibreAuthError("MercadoLibre did not return an access_token")

            self._access_token = access_token
            new_refresh_token = token_data.get("refresh_token")
            if new_refresh_token and new_refresh_token != self._refresh_token:
                self._refresh_token = new_refresh_token
                logger.warning("MercadoLibre refresh token rotated. Save the new value as ML_REFRESH_TOKEN.")

            logger.info("MercadoLibre access token renewed")
            return access_token
        finally:
            self._refresh_task = None
