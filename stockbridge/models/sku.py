"""
Master stock table.

One row per SKU. `stock` is the authoritative count that every platform
listing is pushed towards; `title` and `image_url` are a display cache that
the catalog sync jobs overwrite (last writer wins).
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, text
from sqlalchemy.sql import func

from stockbridge.database import Base


class Sku(Base):
    __tablename__ = "skus"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_skus_stock_non_negative"),
    )

    sku = Column(String, primary_key=True)
    title = Column(String, nullable=True)
    stock = Column(Integer, nullable=False, default=0, server_default=text("0"))
    image_url = Column(String, nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self):
        return f"<Sku(sku='{self.sku}', stock={self.stock})>"
