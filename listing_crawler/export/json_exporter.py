from __future__ import annotations

import json
from typing import List
from pathlib import Path

from ..adapters.base import CanonicalProductRecord


class JSONExporter:
    """Buffers records and writes them as one JSON array on close."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._records: List[CanonicalProductRecord] = []

    def push(self, record: CanonicalProductRecord) -> None:
        self._records.append(record)

    def close(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in self._records], f, indent=2, ensure_ascii=False)
