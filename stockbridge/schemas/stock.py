"""
Schemas for SKU / stock ledger API endpoints.
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt


class SkuRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sku: str
    title: Optional[str] = None
    stock: int
    image_url: Optional[str] = None
    updated_at: Optional[datetime] = None


class SkuWithSources(SkuRead):
    has_ml: bool = False
    has_tn: bool = False


class StockMovementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: str
    delta: int
    reason: str
    ref: Optional[str] = None
    created_at: Optional[datetime] = None


class StockUpdateRequest(BaseModel):
    # Integral floats are accepted; the ledger rejects anything else
    stock: Union[StrictInt, StrictFloat]


class PushOutcomeRead(BaseModel):
    platform: str
    external_id: str
    stock: int
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class StockUpdateResponse(SkuRead):
    applied: bool
    duplicate: bool
    delta: int = 0
    propagation: List[PushOutcomeRead] = []
