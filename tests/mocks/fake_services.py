from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx

from stockbridge.integrations.worker_pool import WorkerPool
from stockbridge.services.tiendanube.auth import TiendaNubeAuthManager
from stockbridge.services.webhook_processor import MercadoLibreWebhookProcessor, TiendaNubeWebhookProcessor

WEBHOOK_SECRET = "tn-webhook-secret"
TN_AUTH_BASE_URL = "https://tn.test/apps"


def sku_row(sku="ABC-1", stock=10, **extra):
    return {
        "sku": sku,
        "title": f"Product {sku}",
        "stock": stock,
        "image_url": None,
        "updated_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        **extra,
    }


def tn_token_endpoint(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/apps/authorize/token":
        return httpx.Response(200, json={"access_token": "tn-token", "token_type": "bearer", "user_id": 4242})
    return httpx.Response(404)


def build_fake_services(tn_transport=None):
    """Services with mocked storage and platforms; the webhook pool is real but not started"""
    ledger = MagicMock()
    ledger.get_sku = AsyncMock(return_value=SimpleNamespace(**sku_row()))
    ledger.list_skus = AsyncMock(return_value=[sku_row()])
    ledger.list_skus_with_sources = AsyncMock(return_value=[sku_row(has_ml=True, has_tn=False)])
    ledger.list_linked_skus = AsyncMock(return_value=[])
    ledger.list_movements = AsyncMock(return_value=[])

    stock_manager = MagicMock()
    stock_manager.update_stock = AsyncMock()

    pool = WorkerPool(name="route-tests", workers=1, queue_size=2)
    ml_client = MagicMock(get_order=AsyncMock())

    session = AsyncMock()
    session_factory = MagicMock()
    session_factory.return_value.__aenter__.return_value = session

    return SimpleNamespace(
        ledger=ledger,
        stock_manager=stock_manager,
        pool=pool,
        session_factory=session_factory,
        ml_webhooks=MercadoLibreWebhookProcessor(stock_manager, pool, ml_client),
        tn_webhooks=TiendaNubeWebhookProcessor(stock_manager, pool, WEBHOOK_SECRET),
        tn_auth=TiendaNubeAuthManager(
            client_id="1234",
            client_secret="tn-secret",
            redirect_uri="http://testserver/auth/tiendanube/callback",
            auth_base_url=TN_AUTH_BASE_URL,
            transport=tn_transport or httpx.MockTransport(tn_token_endpoint),
        ),
        catalog_sync=MagicMock(
            sync_ml_items_to_db=AsyncMock(return_value={"mode": "partial", "with_sku": 1}),
            sync_tn_items_to_db=AsyncMock(return_value={"with_sku": 2}),
            preview_ml_items=AsyncMock(return_value={"total": 1, "with_sku": 1, "items": [{"item_id": "MLA1"}]}),
        ),
    )
