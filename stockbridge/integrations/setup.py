"""
Wiring of the long-lived services.

`build_services` constructs everything once from settings: the MercadoLibre
token manager is created here and shared by reference with the client, so
every push and order fetch goes through the same single-flight refresh.
The result is stored on `app.state.services` by the application lifespan.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from stockbridge.core.config import Settings
from stockbridge.core.enums import PlatformName
from stockbridge.integrations.platforms.mercadolibre import MercadoLibrePlatform
from stockbridge.integrations.platforms.tiendanube import TiendaNubePlatform
from stockbridge.integrations.stock_manager import StockManager
from stockbridge.integrations.worker_pool import WorkerPool
from stockbridge.services.catalog_sync import CatalogSyncService
from stockbridge.services.ledger import LedgerStore
from stockbridge.services.mercadolibre.client import MercadoLibreClient
from stockbridge.services.mercadolibre.token_manager import MercadoLibreTokenManager
from stockbridge.services.tiendanube.auth import TiendaNubeAuthManager
from stockbridge.services.tiendanube.client import TiendaNubeClient
from stockbridge.services.webhook_processor import MercadoLibreWebhookProcessor, TiendaNubeWebhookProcessor

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    settings: Settings
    session_factory: async_sessionmaker
    ledger: LedgerStore
    token_manager: MercadoLibreTokenManager
    ml_client: MercadoLibreClient
    tn_client: TiendaNubeClient
    tn_auth: TiendaNubeAuthManager
    stock_manager: StockManager
    pool: WorkerPool
    ml_webhooks: MercadoLibreWebhookProcessor
    tn_webhooks: TiendaNubeWebhookProcessor
    catalog_sync: CatalogSyncService


def setup_stock_manager(
    ledger: LedgerStore,
    session_factory: async_sessionmaker,
    ml_client: MercadoLibreClient,
    tn_client: TiendaNubeClient,
    push_concurrency: Optional[int] = None,
) -> StockManager:
    """
    Create the stock manager with both marketplace adapters registered.

    Adapters are registered even when credentials are missing; their pushes
    then fail into outcomes instead of silently dropping the platform.
    """
    manager = StockManager(ledger, push_concurrency=push_concurrency)
    manager.register_platform(PlatformName.MERCADOLIBRE.value, MercadoLibrePlatform(ml_client, session_factory))
    logger.info("Registered MercadoLibre Platform Integration")
    manager.register_platform(PlatformName.TIENDANUBE.value, TiendaNubePlatform(tn_client, session_factory))
    logger.info("Registered TiendaNube Platform Integration")
    return manager


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppServices:
    missing = settings.missing_platform_credentials()
    if missing:
        logger.warning(f"Missing platform credentials: {', '.join(missing)}")

    ledger = LedgerStore(session_factory)
    token_manager = MercadoLibreTokenManager.from_settings(settings, transport=transport)
    ml_client = MercadoLibreClient(
        token_manager,
        base_url=settings.ML_API_BASE_URL,
        timeout=settings.ML_REQUEST_TIMEOUT,
        transport=transport,
    )
    tn_client = TiendaNubeClient(
        store_id=settings.TN_STORE_ID,
        access_token=settings.TN_ACCESS_TOKEN,
        user_agent=settings.TN_USER_AGENT,
        base_url=settings.TN_API_BASE_URL,
        timeout=settings.TN_REQUEST_TIMEOUT,
        transport=transport,
    )
    stock_manager = setup_stock_manager(
        ledger, session_factory, ml_client, tn_client, push_concurrency=settings.PUSH_CONCURRENCY
    )
    pool = WorkerPool(
        name="webhook-pool",
        workers=settings.WEBHOOK_WORKERS,
        queue_size=settings.WEBHOOK_QUEUE_SIZE,
        failure_history=settings.WEBHOOK_FAILURE_HISTORY,
    )

    return AppServices(
        settings=settings,
        session_factory=session_factory,
        ledger=ledger,
        token_manager=token_manager,
        ml_client=ml_client,
        tn_client=tn_client,
        tn_auth=TiendaNubeAuthManager.from_settings(settings, transport=transport),
        stock_manager=stock_manager,
        pool=pool,
        ml_webhooks=MercadoLibreWebhookProcessor(stock_manager, pool, ml_client),
        tn_webhooks=TiendaNubeWebhookProcessor(
            stock_manager, pool, settings.TN_WEBHOOK_SECRET or settings.TN_CLIENT_SECRET
        ),
        catalog_sync=CatalogSyncService(session_factory, ml_client=ml_client, tn_client=tn_client),
    )


def get_services(request: Request) -> AppServices:
    """FastAPI dependency returning the services built at startup"""
    return request.app.state.services
