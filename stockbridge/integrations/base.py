"""
Platform adapter contract and the value types that flow through propagation.

Adapters never raise out of `push_stock`: every failure mode (auth, rate
limit, 4xx/5xx, timeout, unexpected exceptions) is captured into a
`PushOutcome` so the caller can log and report exactly which listings are
out of sync.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass(frozen=True)
class ListingRef:
    """External listing that mirrors a SKU on one platform."""
    platform: str

    @property
    def external_id(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class MlListingRef(ListingRef):
    item_id: str = ""

    @property
    def external_id(self) -> str:
        return self.item_id


@dataclass(frozen=True)
class TnListingRef(ListingRef):
    product_id: int = 0
    variant_id: int = 0

    @property
    def external_id(self) -> str:
        return f"{self.product_id}/{self.variant_id}"


@dataclass
class PushOutcome:
    """Result of pushing one stock value to one external listing."""
    platform: str
    external_id: str
    stock: int
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    detail: Any = None


@dataclass
class PropagationResult:
    """Aggregate of every push attempted for one committed stock change."""
    sku: str
    stock: int
    outcomes: List[PushOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[PushOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> List[PushOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


class PlatformInterface(ABC):
    name: str = "base"

    @abstractmethod
    async def resolve_links(self, sku: str) -> List[ListingRef]:
        """Listings on this platform linked to the SKU (read only)"""
        pass

    @abstractmethod
    async def push_stock(self, link: ListingRef, stock: int) -> PushOutcome:
        """Set the listing's stock. Must not raise."""
        pass

    def failure(self, external_id: str, stock: int, error: str,
                status_code: Optional[int] = None, detail: Any = None) -> PushOutcome:
        return PushOutcome(
            platform=self.name,
            external_id=external_id,
            stock=stock,
            success=False,
            status_code=status_code,
            error=error,
            detail=detail,
        )
