import asyncio
from typing import Dict, List, Optional, Set

from stockbridge.integrations.base import ListingRef, MlListingRef, PlatformInterface, PushOutcome


class MockPlatform(PlatformInterface):
    def __init__(self, name: str = "mock", links: Optional[Dict[str, List[str]]] = None, delay: float = 0):
        self.name = name
        self.links: Dict[str, List[str]] = links or {}  # sku -> external ids
        self.stock_levels: Dict[str, int] = {}  # external id -> stock
        self.update_calls: list = []  # Track calls for testing
        self.fail_on: Set[str] = set()  # external ids whose push fails
        self.resolve_error: Optional[Exception] = None
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.on_push = None  # optional async callback(link, stock), runs before the push is recorded

    async def resolve_links(self, sku: str) -> List[ListingRef]:
        if self.resolve_error:
            raise self.resolve_error
        return [MlListingRef(platform=self.name, item_id=external_id) for external_id in self.links.get(sku, [])]

    async def push_stock(self, link: ListingRef, stock: int) -> PushOutcome:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.on_push:
                await self.on_push(link, stock)
            if self.delay:
                await asyncio.sleep(self.delay)

            self.update_calls.append({"external_id": link.external_id, "stock": stock})
            if link.external_id in self.fail_on:
                return self.failure(link.external_id, stock, "Simulated push failure", status_code=500)

            self.stock_levels[link.external_id] = stock
            return PushOutcome(platform=self.name, external_id=link.external_id, stock=stock, success=True)
        finally:
            self.in_flight -= 1

    def clear_history(self):
        """Clear test history"""
        self.update_calls = []
        self.stock_levels = {}
