import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from stockbridge.core.exceptions import TiendaNubeAPIError

logger = logging.getLogger(__name__)


class TiendaNubeClient:
    """
    Async client for the TiendaNube (Nuvemshop) REST API of one store.

    TiendaNube uses the non-standard `Authentication: bearer <token>` header
    and rejects requests without a User-Agent identifying the app.

    Documentation: https://tiendanube.github.io/api-documentation/
    """

    BASE_URL = "https://api.tiendanube.com/v1"
    PAGE_SIZE = 200

    def __init__(
        self,
        store_id: Optional[str],
        access_token: Optional[str],
        user_agent: str = "StockBridge",
        base_url: str = BASE_URL,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store_id = store_id
        self.access_token = access_token
        self.user_agent = user_agent
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.store_id and self.access_token)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authentication": f"bearer {self.access_token}",
            "User-Agent": self.user_agent,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError):
            return response.text

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
    ) -> Any:
        """
        Make a request to the store API

        Raises:
            TiendaNubeAPIError: If the request fails or the client is not configured
        """
        if not self.configured:
            raise TiendaNubeAPIError("TiendaNube store id or access token not configured")

        url = f"{self.base_url}/{self.store_id}/{endpoint.lstrip('/')}"
        logger.debug(f"Making {method} request to {url}")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    json=data,
                    params=params,
                )
        except httpx.TimeoutException as e:
            logger.error(f"Timeout error: {str(e)}")
            raise TiendaNubeAPIError(f"Request timed out: {str(e)}")
        except httpx.RequestError as e:
            logger.error(f"Network error: {str(e)}")
            raise TiendaNubeAPIError(f"Network error: {str(e)}")

        if response.status_code not in (200, 201, 202, 204):
            body = self._body(response)
            logger.error(f"TiendaNube API error ({response.status_code}): {response.text}")
            raise TiendaNubeAPIError(
                f"{method} {url} failed with {response.status_code}",
                status_code=response.status_code,
                detail=body,
            )

        if response.status_code == 204:
            return {}
        return response.json()

    async def update_variant_stock(self, product_id: int, variant_id: int, stock: int) -> Dict:
        return await self._make_request(
            "PUT", f"/products/{product_id}/variants/{variant_id}", data={"stock": stock}
        )

    async def get_products_page(self, page: int, per_page: int = PAGE_SIZE) -> List[Dict]:
        return await self._make_request("GET", "/products", params={"page": page, "per_page": per_page})

    async def get_all_products(self) -> List[Dict]:
        """
        Every product in the store.

        Paging stops at the first empty page, or at the 404 TiendaNube sends
        once `page` runs past the end ("Last page is N").
        """
        products: List[Dict] = []
        page = 1

        while True:
            try:
                batch = await self.get_products_page(page)
            except TiendaNubeAPIError as e:
                if e.status_code == 404 and "Last page is" in json.dumps(e.detail):
                    break
                raise

            if not batch:
                break

            products.extend(batch)
            logger.info(f"Fetched TiendaNube products page {page} ({len(products)} total)")
            page += 1

        return products
