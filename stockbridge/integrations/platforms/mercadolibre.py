"""
MercadoLibre adapter: resolves a SKU to its `ml_items` listings and sets
`available_quantity` on each through `MercadoLibreClient`.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from stockbridge.core.enums import PlatformName
from stockbridge.core.exceptions import MercadoLibreAPIError, MercadoLibreServiceError
from stockbridge.integrations.base import ListingRef, MlListingRef, PlatformInterface, PushOutcome
from stockbridge.models import MlItem
from stockbridge.services.mercadolibre.client import MercadoLibreClient

logger = logging.getLogger(__name__)


class MercadoLibrePlatform(PlatformInterface):
    name = PlatformName.MERCADOLIBRE.value

    def __init__(self, client: MercadoLibreClient, session_factory: async_sessionmaker):
        self.client = client
        self.session_factory = session_factory

    async def resolve_links(self, sku: str) -> List[ListingRef]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MlItem.item_id).where(MlItem.sku == sku).order_by(MlItem.item_id)
            )
            return [MlListingRef(platform=self.name, item_id=item_id) for item_id in result.scalars().all()]

    async def push_stock(self, link: ListingRef, stock: int) -> PushOutcome:
        try:
            await self.client.update_item_stock(link.external_id, stock)
        except MercadoLibreAPIError as e:
            return self.failure(link.external_id, stock, str(e), status_code=e.status_code, detail=e.detail)
        except MercadoLibreServiceError as e:
            return self.failure(link.external_id, stock, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error pushing stock to MercadoLibre item {link.external_id}")
            return self.failure(link.external_id, stock, f"Unexpected error: {e}")

        logger.info(f"MercadoLibre item {link.external_id} set to {stock}")
        return PushOutcome(platform=self.name, external_id=link.external_id, stock=stock, success=True)
