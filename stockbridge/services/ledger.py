"""
Ledger store: transactional access to the master stock table and the
append-only stock ledger.

`apply_movement` is the only write path for stock changes made by the
orchestrator. It locks the SKU row, writes the new value and appends the
ledger entry inside a single transaction. A unique violation on the ledger
insert means another request already applied the same `(sku, reason, ref)`;
that is reported as a duplicate result, not raised.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from stockbridge.core.enums import MovementReason
from stockbridge.core.exceptions import SkuNotFoundError, StockStorageError
from stockbridge.models import MlItem, Sku, StockLedgerEntry, TnItem

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
MOVEMENT_CONSTRAINT = "uq_stock_ledger_movement"


@dataclass
class MovementResult:
    """Outcome of one `apply_movement` call."""
    sku: Sku
    delta: int
    duplicate: bool = False


def is_duplicate_movement(error: IntegrityError) -> bool:
    """True when the integrity error is the ledger idempotency key firing."""
    orig = getattr(error, "orig", None)
    if getattr(orig, "sqlstate", None) == UNIQUE_VIOLATION or getattr(orig, "pgcode", None) == UNIQUE_VIOLATION:
        return True
    message = str(orig if orig is not None else error)
    # SQLite reports the columns rather than the constraint name
    return MOVEMENT_CONSTRAINT in message or "UNIQUE constraint failed: stock_ledger" in message


class LedgerStore:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_sku(self, sku: str) -> Optional[Sku]:
        async with self.session_factory() as session:
            return await session.get(Sku, sku)

    async def has_movement(self, sku: str, reason: Union[MovementReason, str], ref: Optional[str]) -> bool:
        """
        Fast-path idempotency check.

        Movements without a ref are never considered duplicates. A failed
        lookup returns False so the unique constraint decides instead.
        """
        if not ref:
            return False
        try:
            async with self.session_factory() as session:
                stmt = select(
                    exists().where(
                        StockLedgerEntry.sku == sku,
                        StockLedgerEntry.reason == MovementReason(reason).value,
                        StockLedgerEntry.ref == ref,
                    )
                )
                return bool(await session.scalar(stmt))
        except SQLAlchemyError as e:
            logger.warning(f"Error checking stock ledger for {sku} ({reason}, {ref}): {e}")
            return False

    async def apply_movement(
        self,
        sku: str,
        new_stock: int,
        reason: Union[MovementReason, str],
        ref: Optional[str] = None,
    ) -> MovementResult:
        """
        Set the SKU's stock to `new_stock` and append the matching ledger entry.

        Raises:
            SkuNotFoundError: the SKU row does not exist (nothing written)
            StockStorageError: any other database failure (nothing written)
        """
        reason_value = MovementReason(reason).value

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(Sku).where(Sku.sku == sku).with_for_update()
                    )
                    record = result.scalar_one_or_none()
                    if record is None:
                        raise SkuNotFoundError(f"SKU '{sku}' does not exist")

                    previous = record.stock
                    delta = new_stock - previous

                    record.stock = new_stock
                    record.updated_at = datetime.now(timezone.utc)
                    session.add(StockLedgerEntry(sku=sku, delta=delta, reason=reason_value, ref=ref))
                    await session.flush()

        except IntegrityError as e:
            if is_duplicate_movement(e):
                logger.warning(f"Duplicate stock movement detected for {sku} ({reason_value}, {ref}), skipping")
                current = await self.get_sku(sku)
                if current is None:
                    raise SkuNotFoundError(f"SKU '{sku}' does not exist")
                return MovementResult(sku=current, delta=0, duplicate=True)
            logger.error(f"Integrity error updating stock for {sku}: {e}")
            raise StockStorageError(f"Could not update stock for {sku}: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error(f"Database error updating stock for {sku}: {e}")
            raise StockStorageError(f"Could not update stock for {sku}: {e}") from e

        logger.info(f"Ledger updated for {sku}: {previous} -> {new_stock} (delta {delta}, {reason_value}, ref={ref})")
        return MovementResult(sku=record, delta=delta)

    # Reads

    async def list_skus(self) -> List[Sku]:
        async with self.session_factory() as session:
            result = await session.execute(select(Sku).order_by(Sku.updated_at.desc(), Sku.sku))
            return list(result.scalars().all())

    def _sources_query(self):
        has_ml = exists().where(MlItem.sku == Sku.sku)
        has_tn = exists().where(TnItem.sku == Sku.sku)
        return has_ml, has_tn, select(Sku, has_ml.label("has_ml"), has_tn.label("has_tn"))

    async def list_skus_with_sources(self) -> List[dict]:
        """Every SKU with flags telling which platforms list it."""
        _, _, stmt = self._sources_query()
        async with self.session_factory() as session:
            result = await session.execute(stmt.order_by(Sku.updated_at.desc(), Sku.sku))
            return [self._with_sources(row) for row in result.all()]

    async def list_linked_skus(self) -> List[dict]:
        """SKUs listed on both platforms."""
        has_ml, has_tn, stmt = self._sources_query()
        async with self.session_factory() as session:
            result = await session.execute(
                stmt.where(has_ml, has_tn).order_by(Sku.updated_at.desc(), Sku.sku)
            )
            return [self._with_sources(row) for row in result.all()]

    @staticmethod
    def _with_sources(row) -> dict:
        record, has_ml, has_tn = row
        return {
            "sku": record.sku,
            "title": record.title,
            "stock": record.stock,
            "image_url": record.image_url,
            "updated_at": record.updated_at,
            "has_ml": bool(has_ml),
            "has_tn": bool(has_tn),
        }

    async def list_movements(self, sku: str, limit: int = 100) -> List[StockLedgerEntry]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(StockLedgerEntry)
                .where(StockLedgerEntry.sku == sku)
                .order_by(StockLedgerEntry.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
