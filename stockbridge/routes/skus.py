"""
SKU master routes: read the master table and the ledger, and set a SKU's
stock by hand (reason `manual_update`, propagated to both marketplaces).
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from stockbridge.core.enums import MovementReason
from stockbridge.core.exceptions import InvalidStockError, SkuNotFoundError, StockStorageError
from stockbridge.integrations.setup import AppServices, get_services
from stockbridge.schemas.stock import (
    SkuRead,
    SkuWithSources,
    StockMovementRead,
    StockUpdateRequest,
    StockUpdateResponse,
)

router = APIRouter(prefix="/skus", tags=["skus"])

logger = logging.getLogger(__name__)


@router.get("", response_model=List[SkuRead])
async def list_skus(services: AppServices = Depends(get_services)):
    return await services.ledger.list_skus()


@router.get("/with-sources", response_model=List[SkuWithSources])
async def list_skus_with_sources(services: AppServices = Depends(get_services)):
    """Every SKU with flags for the marketplaces it is listed on"""
    return await services.ledger.list_skus_with_sources()


@router.get("/linked", response_model=List[SkuWithSources])
async def list_linked_skus(services: AppServices = Depends(get_services)):
    """SKUs listed on both marketplaces"""
    return await services.ledger.list_linked_skus()


@router.get("/{sku}", response_model=SkuRead)
async def get_sku(sku: str, services: AppServices = Depends(get_services)):
    record = await services.ledger.get_sku(sku)
    if record is None:
        raise HTTPException(status_code=404, detail=f"SKU '{sku}' not found")
    return record


@router.get("/{sku}/movements", response_model=List[StockMovementRead])
async def list_movements(
    sku: str,
    limit: int = Query(100, ge=1, le=1000),
    services: AppServices = Depends(get_services),
):
    if await services.ledger.get_sku(sku) is None:
        raise HTTPException(status_code=404, detail=f"SKU '{sku}' not found")
    return await services.ledger.list_movements(sku, limit=limit)


@router.put("/{sku}/stock", response_model=StockUpdateResponse)
async def update_stock(
    sku: str,
    payload: StockUpdateRequest,
    services: AppServices = Depends(get_services),
):
    """Set the master stock of a SKU and push it to every linked listing"""
    try:
        result = await services.stock_manager.update_stock(sku, payload.stock, MovementReason.MANUAL_UPDATE)
    except InvalidStockError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SkuNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StockStorageError as e:
        logger.error(f"Error updating stock for {sku}: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")
    return result.to_response()
