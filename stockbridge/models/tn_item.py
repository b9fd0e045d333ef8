# stockbridge/models/tn_item.py
from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from stockbridge.database import Base


class TnItem(Base):
    """TiendaNube product variant linked to a SKU. Written by the catalog sync only."""
    __tablename__ = "tn_items"

    product_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    variant_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    sku = Column(String, ForeignKey("skus.sku"), nullable=False, index=True)
    title = Column(String)
    stock_tn = Column(Integer, nullable=False, default=0)
    image_url = Column(String)
    price = Column(Numeric(12, 2))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
