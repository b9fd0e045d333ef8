"""
Marketplace webhooks. Both endpoints answer as soon as the notification is
accepted; sale processing runs on the worker pool.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from stockbridge.core.exceptions import WebhookSignatureError, WorkerPoolFullError
from stockbridge.core.security import require_auth
from stockbridge.integrations.setup import AppServices, get_services
from stockbridge.services.webhook_processor import EVENT_HEADER, SIGNATURE_HEADER

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

logger = logging.getLogger(__name__)


async def _json_body(request: Request, raw_body: bytes = None) -> dict:
    try:
        body = json.loads(raw_body if raw_body is not None else await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Body must be JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    return body


@router.post("/ml")
async def mercadolibre_webhook(request: Request, services: AppServices = Depends(get_services)):
    """Endpoint to receive MercadoLibre notifications"""
    body = await _json_body(request)
    logger.info(f"[ML Webhook] Notification received: topic={body.get('topic')} resource={body.get('resource')}")
    try:
        return services.ml_webhooks.handle_notification(body)
    except WorkerPoolFullError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/tn")
async def tiendanube_webhook(request: Request, services: AppServices = Depends(get_services)):
    """Endpoint to receive TiendaNube notifications (signature checked on the raw body)"""
    raw_body = await request.body()
    try:
        services.tn_webhooks.verify_signature(raw_body, request.headers.get(SIGNATURE_HEADER))
    except WebhookSignatureError as e:
        logger.warning(f"[TN Webhook] Rejected notification: {e}")
        raise HTTPException(status_code=401, detail=str(e))

    event = request.headers.get(EVENT_HEADER)
    order = await _json_body(request, raw_body)
    logger.info(f"[TN Webhook] Notification received: event='{event}' order={order.get('id')}")
    try:
        return services.tn_webhooks.handle_notification(event, order)
    except WorkerPoolFullError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/failures", dependencies=[require_auth()])
async def webhook_failures(services: AppServices = Depends(get_services)):
    """Recent webhook jobs that failed after being acknowledged"""
    return {
        "processed": services.pool.processed,
        "queued": services.pool.queue.qsize(),
        "failures": services.pool.recent_failures(),
    }
