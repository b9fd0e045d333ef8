import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from stockbridge.core.exceptions import MercadoLibreAPIError, MercadoLibreAuthError
from stockbridge.services.mercadolibre.token_manager import MercadoLibreTokenManager

logger = logging.getLogger(__name__)


class MercadoLibreClient:
    """
    Async client for the MercadoLibre REST API.

    Every request carries the bearer token from the shared
    `MercadoLibreTokenManager`. When MercadoLibre answers that the token is
    no longer valid, the client triggers (or joins) one refresh and retries
    the original request exactly once with the new token. If the refresh
    fails, the original API error is raised unchanged.

    Documentation: https://developers.mercadolibre.com.ar/
    """

    BASE_URL = "https://api.mercadolibre.com"
    SCAN_PAGE_SIZE = 100  # maximum allowed with search_type=scan
    PARTIAL_PAGE_LIMIT = 50

    def __init__(
        self,
        token_manager: MercadoLibreTokenManager,
        base_url: str = BASE_URL,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_manager = token_manager
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._user_id: Optional[int] = None

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    @staticmethod
    def _get_headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError):
            return response.text

    @classmethod
    def _is_unauthorized(cls, response: httpx.Response) -> bool:
        """401, or one of the unauthorized shapes MercadoLibre returns with other statuses"""
        if response.status_code == 401:
            return True
        if response.status_code < 400:
            return False
        body = cls._body(response)
        if isinstance(body, dict):
            return body.get("code") == "unauthorized" or body.get("message") == "invalid access token"
        return False

    @classmethod
    def _api_error(cls, method: str, url: str, response: httpx.Response) -> MercadoLibreAPIError:
        body = cls._body(response)
        message = body.get("message") if isinstance(body, dict) else None
        return MercadoLibreAPIError(
            f"{method} {url} failed with {response.status_code}: {message or body}",
            status_code=response.status_code,
            detail=body,
        )

    async def _send(self, method: str, url: str, token: str,
                    data: Optional[Dict] = None, params: Optional[Dict] = None) -> httpx.Response:
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            return await client.request(
                method=method,
                url=url,
                headers=self._get_headers(token),
                json=data,
                params=params,
            )

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
    ) -> Any:
        """
        Make a request to the MercadoLibre API

        Raises:
            MercadoLibreAPIError: If the API request fails
            MercadoLibreAuthError: If no access token is available at all
        """
        url = self._url(endpoint)
        token = await self.token_manager.get_access_token()

        logger.debug(f"Making {method} request to {url}")
        if params:
            logger.debug(f"Params: {params}")
        if data:
            logger.debug(f"Data: {json.dumps(data)[:500]}")

        try:
            response = await self._send(method, url, token, data, params)

            if self._is_unauthorized(response):
                original_error = self._api_error(method, url, response)
                logger.info(f"MercadoLibre rejected the access token for {method} {url}, refreshing")
                try:
                    token = await self.token_manager.refresh(stale_token=token)
                except MercadoLibreAuthError as refresh_error:
                    logger.error(f"Token refresh failed, giving up on {method} {url}: {refresh_error}")
                    raise original_error
                response = await self._send(method, url, token, data, params)

        except httpx.TimeoutException as e:
            logger.error(f"Timeout error: {str(e)}")
            raise MercadoLibreAPIError(f"Request timed out: {str(e)}")
        except httpx.RequestError as e:
            logger.error(f"Network error: {str(e)}")
            raise MercadoLibreAPIError(f"Network error: {str(e)}")

        if response.status_code not in (200, 201, 202, 204):
            logger.error(f"MercadoLibre API error: {response.text}")
            raise self._api_error(method, url, response)

        if response.status_code == 204:
            return {}
        return response.json()

    # Account

    async def get_my_user_id(self) -> int:
        if self._user_id:
            return self._user_id
        data = await self._make_request("GET", "/users/me")
        if not isinstance(data, dict) or not data.get("id"):
            raise MercadoLibreAPIError("Could not read user id from /users/me", detail=data)
        self._user_id = data["id"]
        return self._user_id

    # Items

    async def search_my_items(self, limit: int = 20) -> List[str]:
        """First page of the seller's item ids (at most 50)"""
        user_id = await self.get_my_user_id()
        safe_limit = max(1, min(int(limit or 20), self.PARTIAL_PAGE_LIMIT))
        data = await self._make_request(
            "GET", f"/users/{user_id}/items/search", params={"limit": safe_limit, "offset": 0}
        )
        return list(data.get("results") or [])

    async def search_all_my_items(self) -> List[str]:
        """Every item id of the seller, paging with search_type=scan"""
        user_id = await self.get_my_user_id()
        results: List[str] = []
        scroll_id = None

        while True:
            params = {"search_type": "scan", "limit": self.SCAN_PAGE_SIZE}
            if scroll_id:
                params["scroll_id"] = scroll_id

            data = await self._make_request("GET", f"/users/{user_id}/items/search", params=params)
            batch = data.get("results") or []
            if not batch:
                break

            results.extend(batch)
            logger.info(f"Fetched {len(results)} MercadoLibre item ids so far")

            scroll_id = data.get("scroll_id")
            if not scroll_id:
                break

        return results

    async def get_item(self, item_id: str) -> Dict:
        return await self._make_request("GET", f"/items/{item_id}")

    async def update_item_stock(self, item_id: str, stock: int) -> Dict:
        """Set available_quantity on an item"""
        return await self._make_request("PUT", f"/items/{item_id}", data={"available_quantity": stock})

    # Orders

    async def get_order(self, resource: str) -> Dict:
        """Fetch an order by the resource path sent in a webhook (e.g. /orders/123)"""
        return await self._make_request("GET", resource)
