"""
TiendaNube app installation (authorization code grant).

The merchant is sent to the store's authorize page; TiendaNube redirects back
with a `code`, which is exchanged once for a permanent access token and the
store id (`user_id`). Neither is persisted here: the callback page shows them
so they can be copied into TN_ACCESS_TOKEN and TN_STORE_ID.
"""

import logging
from typing import Dict, Optional

import httpx

from stockbridge.core.exceptions import TiendaNubeAuthError

logger = logging.getLogger(__name__)


class TiendaNubeAuthManager:
    AUTH_BASE_URL = "https://www.tiendanube.com/apps"

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        redirect_uri: Optional[str],
        auth_base_url: str = AUTH_BASE_URL,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.auth_base_url = auth_base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        return cls(
            client_id=settings.TN_CLIENT_ID,
            client_secret=settings.TN_CLIENT_SECRET,
            redirect_uri=settings.TN_REDIRECT_URI,
            auth_base_url=settings.TN_AUTH_BASE_URL,
            timeout=settings.TN_REQUEST_TIMEOUT,
            transport=transport,
        )

    @property
    def missing_settings(self) -> list[str]:
        values = {
            "TN_CLIENT_ID": self.client_id,
            "TN_CLIENT_SECRET": self.client_secret,
            "TN_REDIRECT_URI": self.redirect_uri,
        }
        return [name for name, value in values.items() if not value]

    @property
    def configured(self) -> bool:
        return not self.missing_settings

    @property
    def token_url(self) -> str:
        return f"{self.auth_base_url}/authorize/token"

    def authorization_url(self) -> str:
        if not self.configured:
            raise TiendaNubeAuthError(f"Missing settings: {', '.join(self.missing_settings)}")
        return f"{self.auth_base_url}/{self.client_id}/authorize"

    async def exchange_code(self, code: str) -> Dict[str, str]:
        """
        Exchange an authorization code for the store credentials.

        Returns:
            {"access_token": ..., "store_id": ...}

        Raises:
            TiendaNubeAuthError: not configured, the exchange failed or the
                response carries no token
        """
        if not self.configured:
            raise TiendaNubeAuthError(f"Missing settings: {', '.join(self.missing_settings)}")

        token_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }

        logger.info("Exchanging TiendaNube authorization code for an access token")
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(self.token_url, data=token_data)
        except httpx.RequestError as e:
            logger.error(f"Network error exchanging TiendaNube code: {str(e)}")
            raise TiendaNubeAuthError(f"Network error: {str(e)}")

        if response.status_code != 200:
            logger.error(f"TiendaNube code exchange failed ({response.status_code}): {response.text}")
            raise TiendaNubeAuthError(f"Code exchange failed with status {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            raise TiendaNubeAuthError("TiendaNube token response is not JSON")

        # Errors such as an expired code come back as 200 with an `error` field
        if not isinstance(payload, dict):
            payload = {"unexpected": payload}
        if not payload.get("access_token"):
            error = payload.get("error_description") or payload.get("error")
            logger.error(f"TiendaNube code exchange returned no token: {payload!r}")
            raise TiendaNubeAuthError(f"No access token returned: {error or 'unexpected response'}")

        logger.info(f"TiendaNube app authorized for store {payload.get('user_id')}")
        return {"access_token": payload["access_token"], "store_id": str(payload.get("user_id", ""))}
