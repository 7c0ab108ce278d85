from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from ..adapters.base import CrawlRequest, SiteAdapter
from .extraction import ExtractionOutcome, Success
from .state import CrawlState

PaginationPolicy = Callable[[CrawlRequest, ExtractionOutcome, CrawlState], Optional[CrawlRequest]]


class NextPagePolicy:
    """
    "A page with items probably has a successor."

    The listing state carries no reliable total-page count, so any page that
    produced items queues ``page_number + 1`` and the first empty or failed
    page ends pagination. This costs one trailing fetch past the last real
    page, and a page that comes back empty for a transient reason stops the
    crawl early.
    """

    def __init__(self, adapter: SiteAdapter, base_url: str, filters: Optional[Dict[str, Any]] = None) -> None:
        self.adapter = adapter
        self.base_url = base_url
        self.filters = dict(filters or {})

    def __call__(
        self,
        current: CrawlRequest,
        outcome: ExtractionOutcome,
        state: CrawlState,
    ) -> Optional[CrawlRequest]:
        if state.satisfied:
            return None
        if not isinstance(outcome, Success) or not outcome.records:
            return None
        next_page = current.page_number + 1
        return CrawlRequest(
            url=self.adapter.build_url(self.base_url, next_page, self.filters),
            page_number=next_page,
        )
