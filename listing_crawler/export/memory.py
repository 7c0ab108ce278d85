from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..adapters.base import CanonicalProductRecord


class MemorySink:
    """Keeps accepted records in memory; used by the API and for embedding."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.records: List[CanonicalProductRecord] = []

    def push(self, record: CanonicalProductRecord) -> None:
        self.records.append(record)

    def close(self) -> None:
        pass

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.records]
