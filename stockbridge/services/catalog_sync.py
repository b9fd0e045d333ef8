"""
Catalog sync: pulls every listing from a marketplace and upserts the SKU
master rows and the platform link tables.

Title and image on `skus` are last-writer-wins between platforms. The master
stock is never overwritten, except for the first sync of a SKU: when its
stock is 0 and it has no ledger history, the platform stock seeds it through
an `initial_sync` ledger entry so the ledger still explains every change.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockbridge.core.enums import MovementReason, PlatformName
from stockbridge.models import MlItem, Sku, StockLedgerEntry, TnItem
from stockbridge.services.mercadolibre.client import MercadoLibreClient
from stockbridge.services.payloads import normalize_ml_item, normalize_tn_product
from stockbridge.services.tiendanube.client import TiendaNubeClient

logger = logging.getLogger(__name__)


class CatalogSyncService:
    ITEM_BATCH_SIZE = 10
    PARTIAL_LIMIT = 50
    PREVIEW_LIMIT = 20

    def __init__(
        self,
        session_factory: async_sessionmaker,
        ml_client: Optional[MercadoLibreClient] = None,
        tn_client: Optional[TiendaNubeClient] = None,
    ):
        self.session_factory = session_factory
        self.ml_client = ml_client
        self.tn_client = tn_client

    # MercadoLibre

    async def sync_ml_items_to_db(self, mode: str = "all", limit: int = PARTIAL_LIMIT) -> Dict:
        """
        Import MercadoLibre listings.

        Args:
            mode: "all" scans every item; "partial" takes the first page only
            limit: page size for partial mode, clamped to 1..50
        """
        if self.ml_client is None:
            raise ValueError("MercadoLibre client not configured")
        if mode not in ("all", "partial"):
            raise ValueError(f"Unknown sync mode: {mode}")

        if mode == "partial":
            safe_limit = max(1, min(int(limit or self.PARTIAL_LIMIT), self.PARTIAL_LIMIT))
            item_ids = await self.ml_client.search_my_items(safe_limit)
        else:
            item_ids = await self.ml_client.search_all_my_items()

        normalized = await self._fetch_ml_items(item_ids)
        with_sku = [row for row in normalized if row["sku"]]

        async with self.session_factory() as session:
            async with session.begin():
                seeded = 0
                for row in with_sku:
                    await self._upsert_sku(session, row["sku"], row["title"], row["image_url"])
                    await self._upsert_ml_item(session, row)
                    if await self._seed_initial_stock(
                        session, row["sku"], row["stock_ml"], f"{PlatformName.MERCADOLIBRE.value}:{row['item_id']}"
                    ):
                        seeded += 1

        summary = {
            "mode": mode,
            "total_item_ids": len(item_ids),
            "fetched_items": len(normalized),
            "with_sku": len(with_sku),
            "seeded": seeded,
        }
        logger.info(f"MercadoLibre catalog sync finished: {summary}")
        return summary

    async def preview_ml_items(self, limit: int = PREVIEW_LIMIT) -> Dict:
        """First page of listings, normalized, without touching the database."""
        if self.ml_client is None:
            raise ValueError("MercadoLibre client not configured")

        safe_limit = max(1, min(int(limit or self.PREVIEW_LIMIT), self.PARTIAL_LIMIT))
        normalized = await self._fetch_ml_items(await self.ml_client.search_my_items(safe_limit))
        with_sku = [row for row in normalized if row["sku"]]
        return {"total": len(normalized), "with_sku": len(with_sku), "items": with_sku}

    async def _fetch_ml_items(self, item_ids: List[str]) -> List[Dict]:
        logger.info(f"Fetching {len(item_ids)} MercadoLibre item(s) in batches of {self.ITEM_BATCH_SIZE}")
        items = []
        for start in range(0, len(item_ids), self.ITEM_BATCH_SIZE):
            batch = item_ids[start:start + self.ITEM_BATCH_SIZE]
            items.extend(await asyncio.gather(*(self.ml_client.get_item(item_id) for item_id in batch)))
        return [normalize_ml_item(item) for item in items]

    # TiendaNube

    async def sync_tn_items_to_db(self) -> Dict:
        """Import every TiendaNube variant that carries a SKU."""
        if self.tn_client is None:
            raise ValueError("TiendaNube client not configured")

        products = await self.tn_client.get_all_products()
        variants: List[Dict] = [row for product in products for row in normalize_tn_product(product)]

        async with self.session_factory() as session:
            async with session.begin():
                seeded = 0
                for row in variants:
                    await self._upsert_sku(session, row["sku"], row["title"], row["image_url"])
                    await self._upsert_tn_item(session, row)
                    ref = f"{PlatformName.TIENDANUBE.value}:{row['product_id']}/{row['variant_id']}"
                    if await self._seed_initial_stock(session, row["sku"], row["stock_tn"], ref):
                        seeded += 1

        summary = {
            "total_products": len(products),
            "total_variants": len(variants),
            "with_sku": len(variants),
            "seeded": seeded,
        }
        logger.info(f"TiendaNube catalog sync finished: {summary}")
        return summary

    # Upserts

    async def _upsert_sku(self, session: AsyncSession, sku: str, title: Optional[str], image_url: Optional[str]):
        record = await session.get(Sku, sku)
        if record is None:
            record = Sku(sku=sku, stock=0)
            session.add(record)
        record.title = title
        record.image_url = image_url
        record.updated_at = datetime.now(timezone.utc)
        await session.flush()

    async def _upsert_ml_item(self, session: AsyncSession, row: Dict):
        item = await session.get(MlItem, row["item_id"])
        if item is None:
            item = MlItem(item_id=row["item_id"])
            session.add(item)
        item.sku = row["sku"]
        item.title = row["title"]
        item.stock_ml = row["stock_ml"]
        item.image_url = row["image_url"]
        item.permalink = row["permalink"]
        item.sku_source = row["sku_source"]
        item.updated_at = datetime.now(timezone.utc)
        await session.flush()

    async def _upsert_tn_item(self, session: AsyncSession, row: Dict):
        item = await session.get(TnItem, (row["product_id"], row["variant_id"]))
        if item is None:
            item = TnItem(product_id=row["product_id"], variant_id=row["variant_id"])
            session.add(item)
        item.sku = row["sku"]
        item.title = row["title"]
        item.stock_tn = row["stock_tn"]
        item.image_url = row["image_url"]
        item.price = row["price"]
        item.updated_at = datetime.now(timezone.utc)
        await session.flush()

    async def _seed_initial_stock(self, session: AsyncSession, sku: str, platform_stock: int, ref: str) -> bool:
        """Seed master stock from a platform the first time a SKU is seen."""
        if platform_stock <= 0:
            return False

        result = await session.execute(select(Sku).where(Sku.sku == sku).with_for_update())
        record = result.scalar_one()
        if record.stock != 0:
            return False

        has_history = await session.scalar(select(exists().where(StockLedgerEntry.sku == sku)))
        if has_history:
            return False

        record.stock = platform_stock
        record.updated_at = datetime.now(timezone.utc)
        session.add(StockLedgerEntry(
            sku=sku,
            delta=platform_stock,
            reason=MovementReason.INITIAL_SYNC.value,
            ref=ref,
        ))
        await session.flush()
        logger.info(f"Seeded {sku} with stock {platform_stock} from {ref}")
        return True
