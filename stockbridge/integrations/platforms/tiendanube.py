"""
TiendaNube adapter: resolves a SKU to its `(product_id, variant_id)` pairs
and sets the variant stock through `TiendaNubeClient`.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from stockbridge.core.enums import PlatformName
from stockbridge.core.exceptions import TiendaNubeAPIError
from stockbridge.integrations.base import ListingRef, PlatformInterface, PushOutcome, TnListingRef
from stockbridge.models import TnItem
from stockbridge.services.tiendanube.client import TiendaNubeClient

logger = logging.getLogger(__name__)


class TiendaNubePlatform(PlatformInterface):
    name = PlatformName.TIENDANUBE.value

    def __init__(self, client: TiendaNubeClient, session_factory: async_sessionmaker):
        self.client = client
        self.session_factory = session_factory

    async def resolve_links(self, sku: str) -> List[ListingRef]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TnItem.product_id, TnItem.variant_id)
                .where(TnItem.sku == sku)
                .order_by(TnItem.product_id, TnItem.variant_id)
            )
            return [
                TnListingRef(platform=self.name, product_id=product_id, variant_id=variant_id)
                for product_id, variant_id in result.all()
            ]

    async def push_stock(self, link: ListingRef, stock: int) -> PushOutcome:
        if not isinstance(link, TnListingRef):
            return self.failure(link.external_id, stock, "Not a TiendaNube variant reference")

        try:
            await self.client.update_variant_stock(link.product_id, link.variant_id, stock)
        except TiendaNubeAPIError as e:
            return self.failure(link.external_id, stock, str(e), status_code=e.status_code, detail=e.detail)
        except Exception as e:
            logger.exception(f"Unexpected error pushing stock to TiendaNube variant {link.external_id}")
            return self.failure(link.external_id, stock, f"Unexpected error: {e}")

        logger.info(f"TiendaNube variant {link.external_id} set to {stock}")
        return PushOutcome(platform=self.name, external_id=link.external_id, stock=stock, success=True)
