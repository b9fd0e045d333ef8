import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from stockbridge.core.enums import MovementReason
from stockbridge.core.exceptions import InvalidStockError, SkuNotFoundError
from stockbridge.integrations.base import ListingRef, PlatformInterface, PropagationResult, PushOutcome
from stockbridge.schemas.stock import PushOutcomeRead, SkuRead, StockUpdateResponse
from stockbridge.services.ledger import LedgerStore

logger = logging.getLogger(__name__)


@dataclass
class StockUpdateResult:
    sku: SkuRead
    applied: bool
    duplicate: bool = False
    delta: int = 0
    propagation: Optional[PropagationResult] = None

    def to_response(self) -> StockUpdateResponse:
        outcomes = self.propagation.outcomes if self.propagation else []
        return StockUpdateResponse(
            **self.sku.model_dump(),
            applied=self.applied,
            duplicate=self.duplicate,
            delta=self.delta,
            propagation=[
                PushOutcomeRead(
                    platform=o.platform,
                    external_id=o.external_id,
                    stock=o.stock,
                    success=o.success,
                    status_code=o.status_code,
                    error=o.error,
                )
                for o in outcomes
            ],
        )


class StockManager:
    """
    Single entry point for changing a SKU's master stock.

    Validates the request, applies it to the ledger (idempotent on
    `(sku, reason, ref)`), and only after the commit pushes the new value to
    every linked listing on every registered platform. Updates to the same
    SKU are serialized in-process, push included, so a sale always subtracts
    from the last committed stock and pushes land in commit order.

    Pushes are best-effort: failures are reported in the returned
    `PropagationResult` and never undo or retry the committed ledger entry.
    Drift is healed by the scheduled catalog sync.
    """

    def __init__(self, ledger: LedgerStore, push_concurrency: Optional[int] = None):
        self.ledger = ledger
        self.platforms: Dict[str, PlatformInterface] = {}
        self.push_concurrency = push_concurrency
        self._push_slots = asyncio.Semaphore(push_concurrency) if push_concurrency else None
        self._sku_locks: Dict[str, asyncio.Lock] = {}
        if not push_concurrency:
            logger.warning("Platform push concurrency is unbounded; SKUs with many listings fan out without limit")

    def register_platform(self, name: str, platform: PlatformInterface):
        self.platforms[name] = platform

    def sku_lock(self, sku: str) -> asyncio.Lock:
        lock = self._sku_locks.get(sku)
        if lock is None:
            lock = self._sku_locks[sku] = asyncio.Lock()
        return lock

    @staticmethod
    def validate_stock(stock) -> int:
        if isinstance(stock, bool) or not isinstance(stock, (int, float)):
            raise InvalidStockError(f"Stock must be a number, got {stock!r}")
        if isinstance(stock, float):
            if not math.isfinite(stock) or not stock.is_integer():
                raise InvalidStockError(f"Stock must be a whole number, got {stock!r}")
            stock = int(stock)
        if stock < 0:
            raise InvalidStockError(f"Stock must be a non-negative integer, got {stock}")
        return stock

    @staticmethod
    def validate_reason(reason: Union[MovementReason, str]) -> MovementReason:
        try:
            return MovementReason(reason)
        except ValueError:
            raise InvalidStockError(f"Unknown stock movement reason: {reason!r}")

    async def update_stock(
        self,
        sku: str,
        stock,
        reason: Union[MovementReason, str],
        ref: Optional[str] = None,
    ) -> StockUpdateResult:
        """
        Set `sku` to `stock`, record the movement and propagate it.

        Raises:
            InvalidStockError: malformed or negative stock, unknown reason
            SkuNotFoundError: the SKU does not exist
            StockStorageError: the ledger transaction failed
        """
        new_stock = self.validate_stock(stock)
        reason = self.validate_reason(reason)

        async with self.sku_lock(sku):
            duplicate = await self._recorded(sku, reason, ref)
            if duplicate:
                return duplicate
            return await self._commit_and_propagate(sku, new_stock, reason, ref)

    async def apply_sale(
        self,
        sku: str,
        quantity,
        reason: Union[MovementReason, str],
        ref: Optional[str] = None,
    ) -> StockUpdateResult:
        """
        Take `quantity` units off the current stock of `sku`.

        The current stock is read under the SKU lock, so concurrent sales of
        the same SKU each subtract from the value the previous one committed.

        Raises:
            InvalidStockError: bad quantity, or the sale would leave negative stock
            SkuNotFoundError: the SKU does not exist
            StockStorageError: the ledger transaction failed
        """
        reason = self.validate_reason(reason)
        if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or not math.isfinite(quantity):
            raise InvalidStockError(f"Sale quantity must be a number, got {quantity!r}")

        async with self.sku_lock(sku):
            record = await self.ledger.get_sku(sku)
            if record is None:
                raise SkuNotFoundError(f"SKU '{sku}' does not exist")
            duplicate = await self._recorded(sku, reason, ref)
            if duplicate:
                return duplicate
            new_stock = self.validate_stock(record.stock - quantity)
            return await self._commit_and_propagate(sku, new_stock, reason, ref)

    async def _recorded(self, sku: str, reason: MovementReason, ref: Optional[str]) -> Optional[StockUpdateResult]:
        if not ref or not await self.ledger.has_movement(sku, reason, ref):
            return None
        logger.info(f"Movement already recorded for {sku} ({reason.value}, {ref}), skipping")
        current = await self.ledger.get_sku(sku)
        if current is None:
            raise SkuNotFoundError(f"SKU '{sku}' does not exist")
        return StockUpdateResult(sku=SkuRead.model_validate(current), applied=False, duplicate=True)

    async def _commit_and_propagate(
        self, sku: str, new_stock: int, reason: MovementReason, ref: Optional[str]
    ) -> StockUpdateResult:
        movement = await self.ledger.apply_movement(sku, new_stock, reason, ref)
        record = SkuRead.model_validate(movement.sku)
        if movement.duplicate:
            return StockUpdateResult(sku=record, applied=False, duplicate=True)

        propagation = await self.propagate(sku, new_stock)
        return StockUpdateResult(
            sku=record,
            applied=True,
            delta=movement.delta,
            propagation=propagation,
        )

    async def propagate(self, sku: str, stock: int) -> PropagationResult:
        """Push `stock` to every linked listing on every platform, in parallel."""
        logger.info(f"Propagating stock {stock} for {sku} to {len(self.platforms)} platform(s)")

        per_platform = await asyncio.gather(
            *(self._propagate_platform(platform, sku, stock) for platform in self.platforms.values())
        )
        result = PropagationResult(
            sku=sku,
            stock=stock,
            outcomes=[outcome for outcomes in per_platform for outcome in outcomes],
        )

        for outcome in result.failed:
            logger.error(
                f"Stock push failed for {sku} on {outcome.platform} listing {outcome.external_id}: {outcome.error}"
            )
        logger.info(
            f"Propagation for {sku} finished: {len(result.succeeded)} ok, {len(result.failed)} failed"
        )
        return result

    async def _propagate_platform(self, platform: PlatformInterface, sku: str, stock: int) -> List[PushOutcome]:
        try:
            links = await platform.resolve_links(sku)
        except Exception as e:
            logger.error(f"Could not resolve {platform.name} listings for {sku}: {e}")
            return [platform.failure("*", stock, f"Could not resolve listings: {e}")]

        if not links:
            logger.info(f"No {platform.name} listings found for {sku}")
            return []

        logger.info(f"Found {len(links)} {platform.name} listing(s) for {sku}, pushing stock {stock}")
        results = await asyncio.gather(
            *(self._push(platform, link, stock) for link in links),
            return_exceptions=True,
        )

        outcomes = []
        for link, result in zip(links, results):
            if isinstance(result, BaseException):
                # Adapters are not supposed to raise; keep the failure visible anyway
                outcomes.append(platform.failure(link.external_id, stock, f"Unexpected error: {result}"))
            else:
                outcomes.append(result)
        return outcomes

    async def _push(self, platform: PlatformInterface, link: ListingRef, stock: int) -> PushOutcome:
        if self._push_slots is None:
            return await platform.push_stock(link, stock)
        async with self._push_slots:
            return await platform.push_stock(link, stock)
