from __future__ import annotations

import asyncio
import enum
from typing import Set

from ..adapters.base import CanonicalProductRecord


class AcceptResult(enum.Enum):
    ACCEPTED = "accepted"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    QUOTA_REACHED = "quota_reached"


class CrawlState:
    """
    Dedup and quota bookkeeping for one crawl run.

    Shared by every worker; ``accept`` is the only mutator and runs under a
    single lock, so ``accepted_count`` never exceeds ``quota``.
    """

    def __init__(self, quota: int) -> None:
        if quota < 1:
            raise ValueError("quota must be >= 1")
        self.quota = quota
        self._seen_ids: Set[str] = set()
        self._accepted_count = 0
        self._lock = asyncio.Lock()

    @property
    def accepted_count(self) -> int:
        return self._accepted_count

    @property
    def seen_ids(self) -> frozenset[str]:
        return frozenset(self._seen_ids)

    @property
    def satisfied(self) -> bool:
        return self._accepted_count >= self.quota

    async def accept(self, record: CanonicalProductRecord) -> AcceptResult:
        async with self._lock:
            if self._accepted_count >= self.quota:
                return AcceptResult.QUOTA_REACHED
            if record.product_id in self._seen_ids:
                return AcceptResult.DUPLICATE_SKIPPED
            self._seen_ids.add(record.product_id)
            self._accepted_count += 1
            return AcceptResult.ACCEPTED
