"""
MercadoLibre catalog import routes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from stockbridge.core.exceptions import MercadoLibreServiceError
from stockbridge.integrations.setup import AppServices, get_services

router = APIRouter(prefix="/ml", tags=["mercadolibre"])

logger = logging.getLogger(__name__)


async def _run_sync(services: AppServices, mode: str, limit: int):
    try:
        return await services.catalog_sync.sync_ml_items_to_db(mode=mode, limit=limit)
    except MercadoLibreServiceError as e:
        logger.error(f"MercadoLibre sync failed: {e}")
        raise HTTPException(status_code=502, detail=f"MercadoLibre error: {str(e)}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/sync-to-db")
async def sync_first_page(
    limit: int = Query(50, ge=1, le=50),
    services: AppServices = Depends(get_services),
):
    """Import the first page of the seller's listings"""
    return await _run_sync(services, "partial", limit)


@router.post("/sync-all-to-db")
async def sync_all(services: AppServices = Depends(get_services)):
    """Import every listing of the seller"""
    return await _run_sync(services, "all", 50)


@router.get("/ping")
async def ping():
    return {"ok": True, "service": "ml"}


@router.get("/items")
async def preview_items(
    limit: int = Query(20, ge=1, le=50),
    services: AppServices = Depends(get_services),
):
    """First page of listings that carry a SKU, normalized, nothing written"""
    try:
        return await services.catalog_sync.preview_ml_items(limit=limit)
    except MercadoLibreServiceError as e:
        logger.error(f"MercadoLibre item preview failed: {e}")
        raise HTTPException(status_code=502, detail=f"MercadoLibre error: {str(e)}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
