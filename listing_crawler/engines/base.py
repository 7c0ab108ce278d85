from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List
from abc import ABC, abstractmethod


class RequestStatus(enum.Enum):
    QUEUED = "queued"
    IN_FLIGHT = "in_flight"
    RETRYING = "retrying"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


@dataclass
class CrawlReport:
    accepted_count: int = 0
    quota: int = 0
    statuses: Dict[str, RequestStatus] = field(default_factory=dict)  # url -> last known state

    @property
    def quota_reached(self) -> bool:
        return self.accepted_count >= self.quota

    @property
    def completed(self) -> List[str]:
        return [u for u, s in self.statuses.items() if s is RequestStatus.COMPLETED]

    @property
    def abandoned(self) -> List[str]:
        return [u for u, s in self.statuses.items() if s is RequestStatus.ABANDONED]


class CrawlEngine(ABC):
    """
    Abstract engine interface. Implementations own the crawl lifecycle.
    """
    @abstractmethod
    async def crawl(self) -> CrawlReport:  # pragma: no cover - interface
        ...
