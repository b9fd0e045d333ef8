"""
Processing of marketplace sale notifications.

Both marketplaces are acknowledged as soon as the notification is accepted;
the actual work runs as a job on the shared `WorkerPool`. Each usable sale
line becomes a `StockManager.apply_sale` call with the order id as the
ledger ref, so a replayed notification is a no-op.
"""

import base64
import hashlib
import hmac
import logging
from typing import Dict, List, Optional

from stockbridge.core.enums import MovementReason, PlatformName
from stockbridge.core.exceptions import InvalidStockError, SkuNotFoundError, WebhookSignatureError
from stockbridge.integrations.stock_manager import StockManager
from stockbridge.integrations.worker_pool import WorkerPool
from stockbridge.services.mercadolibre.client import MercadoLibreClient
from stockbridge.services.payloads import SaleLine, extract_sale_lines

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-linkedstore-hmac-sha256"
EVENT_HEADER = "x-tiendanube-event"


class SaleProcessor:
    platform: PlatformName
    reason: MovementReason

    def __init__(self, stock_manager: StockManager, pool: WorkerPool):
        self.stock_manager = stock_manager
        self.pool = pool

    @property
    def tag(self) -> str:
        return f"[{self.platform.value.upper()} Webhook]"

    async def process_order(self, order: Dict) -> Dict[str, int]:
        """
        Apply every usable line of a paid order.

        Bad lines (no SKU, no quantity, unknown SKU, stock would go negative)
        are logged and skipped. Storage errors propagate so the pool records
        the failure.
        """
        summary = {"applied": 0, "duplicate": 0, "skipped": 0}
        lines = extract_sale_lines(self.platform, order)
        logger.info(f"{self.tag} Processing order {order.get('id')} with {len(lines)} line(s)")

        for line in lines:
            outcome = await self._apply_line(line)
            summary[outcome] += 1

        logger.info(f"{self.tag} Order {order.get('id')} done: {summary}")
        return summary

    async def _apply_line(self, line: SaleLine) -> str:
        if not line.sku:
            logger.warning(f"{self.tag} Line {line.external_id} in order {line.order_id} has no SKU, skipping")
            return "skipped"
        if line.quantity is None:
            logger.warning(
                f"{self.tag} Line {line.external_id} in order {line.order_id} has no valid quantity, skipping"
            )
            return "skipped"

        logger.info(f"{self.tag} Sale of {line.quantity}x {line.sku} (order {line.order_id})")

        try:
            result = await self.stock_manager.apply_sale(line.sku, line.quantity, self.reason, line.ref)
        except (InvalidStockError, SkuNotFoundError) as e:
            logger.error(f"{self.tag} Could not apply sale of {line.sku} from order {line.order_id}: {e}")
            return "skipped"

        if result.duplicate:
            return "duplicate"
        previous = result.sku.stock - result.delta
        logger.info(f"{self.tag} Stock for {line.sku} updated from {previous} to {result.sku.stock}")
        return "applied"


class MercadoLibreWebhookProcessor(SaleProcessor):
    platform = PlatformName.MERCADOLIBRE
    reason = MovementReason.SALE_ML

    def __init__(self, stock_manager: StockManager, pool: WorkerPool, client: MercadoLibreClient):
        super().__init__(stock_manager, pool)
        self.client = client

    def handle_notification(self, body: Dict) -> Dict[str, str]:
        """Acknowledge a notification, queueing order processing when relevant."""
        topic = body.get("topic")

        if topic == "test_topic":
            logger.info(f"{self.tag} Test ping received")
            return {"status": "ok"}

        if topic != "orders_v2":
            logger.info(f"{self.tag} Ignoring topic '{topic}'")
            return {"status": "ignored", "topic": str(topic)}

        resource = body.get("resource")
        if not resource:
            logger.warning(f"{self.tag} orders_v2 notification without resource, ignoring")
            return {"status": "ignored", "topic": topic}

        self.pool.submit(f"ml-order {resource}", lambda: self.process_resource(resource))
        return {"status": "queued"}

    async def process_resource(self, resource: str) -> Optional[Dict[str, int]]:
        order = await self.client.get_order(resource)
        if order.get("status") != "paid":
            logger.info(f"{self.tag} Ignoring order {order.get('id')} with status '{order.get('status')}'")
            return None
        return await self.process_order(order)


class TiendaNubeWebhookProcessor(SaleProcessor):
    platform = PlatformName.TIENDANUBE
    reason = MovementReason.SALE_TN

    def __init__(self, stock_manager: StockManager, pool: WorkerPool, secret: Optional[str]):
        super().__init__(stock_manager, pool)
        self.secret = secret
        if not secret:
            logger.warning("No TiendaNube webhook secret configured; TiendaNube webhooks will be rejected")

    @staticmethod
    def expected_signatures(secret: str, raw_body: bytes) -> List[str]:
        digest = hmac.new(secret.encode(), raw_body, hashlib.sha256).digest()
        return [base64.b64encode(digest).decode(), digest.hex()]

    def verify_signature(self, raw_body: bytes, signature: Optional[str]):
        """
        Check the HMAC-SHA256 of the raw body, as base64 or hex.

        Raises:
            WebhookSignatureError: no secret configured, signature missing or wrong
        """
        if not self.secret:
            raise WebhookSignatureError("Webhook secret not configured")
        if not signature:
            raise WebhookSignatureError("No signature provided")

        provided = signature.strip().encode()
        if not any(hmac.compare_digest(provided, expected.encode())
                   for expected in self.expected_signatures(self.secret, raw_body)):
            raise WebhookSignatureError("Invalid signature")

    def handle_notification(self, event: Optional[str], order: Dict) -> Dict[str, str]:
        """Acknowledge a verified notification, queueing paid orders."""
        if event != "order/paid":
            logger.info(f"{self.tag} Ignoring event '{event}'")
            return {"status": "ignored", "event": str(event)}

        self.pool.submit(f"tn-order {order.get('id')}", lambda: self.process_order(order))
        return {"status": "queued"}
