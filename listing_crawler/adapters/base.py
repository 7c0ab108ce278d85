from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Protocol


@dataclass(frozen=True)
class CrawlRequest:
    """One listing page waiting in (or dispatched from) the crawl queue."""

    url: str
    page_number: int = 1

    def __post_init__(self) -> None:
        if self.page_number < 1:
            raise ValueError("page_number must be >= 1")


@dataclass
class RawProductRecord:
    """A listing item as read from the page state, before normalization."""

    id: str
    brand: Optional[str] = None
    title: Optional[str] = None
    current_price: Optional[float] = None
    list_price: Optional[float] = None
    currency_code: Optional[str] = None
    product_url: Optional[str] = None
    image_url: Optional[str] = None
    stock_level: Optional[Any] = None
    in_stock_flag: Optional[bool] = None
    brand_id: Optional[Any] = None


@dataclass(frozen=True)
class CanonicalProductRecord:
    """Structured product record as pushed to the result sink."""

    product_id: str
    brand: Optional[str]
    title: Optional[str]
    price: Optional[float]
    original_price: Optional[float]
    currency: Optional[str]
    discount: str
    product_url: str
    image_url: Optional[str]
    stock_level: Optional[Any]
    in_stock: bool
    designer_id: Optional[Any]
    scraped_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SiteAdapter(Protocol):
    """
    Interface for site-specific listing knowledge.
    Keep this small and stable so adapters rarely break across upgrades.
    """

    name: str
    domains: List[str]  # e.g. ["farfetch.com", "www.farfetch.com"]
    origin: str  # scheme + host used to absolutize relative product links
    probe_script: str  # read-only page function returning {"items": [...], "error": ..., "retry": ...}

    def matches(self, url: str) -> bool:
        """Return True if this adapter should handle the given URL."""
        ...

    def build_url(self, base_url: str, page: int = 1, filters: Optional[Dict[str, Any]] = None) -> str:
        """
        Merge listing filters into ``base_url`` (only where absent) and
        add the page number for pages after the first.
        """
        ...

    def parse_item(self, item: Dict[str, Any]) -> RawProductRecord:
        """Map one item of the page's listing state to a raw record."""
        ...
