"""
TiendaNube catalog import routes. A full import pages through the whole
store, so it runs on the worker pool and the request returns immediately.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from stockbridge.core.exceptions import WorkerPoolFullError
from stockbridge.integrations.setup import AppServices, get_services

router = APIRouter(prefix="/tn", tags=["tiendanube"])

logger = logging.getLogger(__name__)


@router.post("/sync-to-db", status_code=202)
async def sync_to_db(services: AppServices = Depends(get_services)):
    """Start a TiendaNube catalog import"""
    try:
        services.pool.submit("tn-catalog-sync", services.catalog_sync.sync_tn_items_to_db)
    except WorkerPoolFullError as e:
        raise HTTPException(status_code=503, detail=str(e))
    logger.info("TiendaNube catalog sync queued")
    return {"status": "accepted", "message": "TiendaNube sync started"}
