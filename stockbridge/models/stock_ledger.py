# stockbridge/models/stock_ledger.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from stockbridge.database import Base


class StockLedgerEntry(Base):
    """
    Append-only record of one change to a SKU's master stock.

    `(sku, reason, ref)` is the idempotency key: a sale event carries its
    order id in `ref` and can only ever be applied once. Rows without a ref
    (manual edits) are never deduplicated because NULLs compare as distinct.
    """
    __tablename__ = "stock_ledger"
    __table_args__ = (
        UniqueConstraint("sku", "reason", "ref", name="uq_stock_ledger_movement"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String, ForeignKey("skus.sku"), nullable=False, index=True)
    delta = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)  # MovementReason value
    ref = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return (f"<StockLedgerEntry(id={self.id}, sku='{self.sku}', delta={self.delta}, "
                f"reason='{self.reason}', ref={self.ref!r})>")
