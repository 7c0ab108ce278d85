from __future__ import annotations

from typing import Protocol

from ..adapters.base import CanonicalProductRecord


class ResultSink(Protocol):
    """Receives accepted records one at a time, in acceptance order per worker."""

    def push(self, record: CanonicalProductRecord) -> None:
        ...

    def close(self) -> None:
        ...
