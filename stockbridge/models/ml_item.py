# stockbridge/models/ml_item.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from stockbridge.database import Base


class MlItem(Base):
    """MercadoLibre listing linked to a SKU. Written by the catalog sync only."""
    __tablename__ = "ml_items"

    item_id = Column(String, primary_key=True)
    sku = Column(String, ForeignKey("skus.sku"), nullable=False, index=True)
    title = Column(String)
    stock_ml = Column(Integer, nullable=False, default=0)
    image_url = Column(String)
    permalink = Column(String)
    sku_source = Column(String)  # seller_custom_field | attributes
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
