from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Union

from ..adapters.base import RawProductRecord, SiteAdapter
from .fetcher import PageHandle

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Success:
    records: List[RawProductRecord] = field(default_factory=list)


@dataclass(frozen=True)
class Empty:
    reason: str


@dataclass(frozen=True)
class TransientFailure:
    reason: str


@dataclass(frozen=True)
class FatalFailure:
    reason: str


ExtractionOutcome = Union[Success, Empty, TransientFailure, FatalFailure]


class ExtractionEngine:
    """
    Polls a rendered page until its hydrated listing state shows up.

    There is no readiness signal from the page, so after load we wait
    ``settle_delay`` and then probe up to ``max_attempts`` times,
    ``poll_interval`` apart. The first non-empty item list wins. A probe that
    raises ends this call with ``TransientFailure``; a probe that reports a
    non-retryable script error ends it with ``FatalFailure``. Total wait is
    bounded by ``settle_delay + max_attempts * poll_interval``.
    """

    def __init__(
        self,
        adapter: SiteAdapter,
        *,
        settle_delay: float = 1.5,
        poll_interval: float = 0.5,
        max_attempts: int = 8,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.adapter = adapter
        self.settle_delay = settle_delay
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def extract(self, page: PageHandle) -> ExtractionOutcome:
        await page.wait_for_load_state("domcontentloaded")
        await self._sleep(self.settle_delay)

        last_reason = "listing state never appeared"
        for attempt in range(1, self.max_attempts + 1):
            await self._sleep(self.poll_interval)
            try:
                result = await page.probe(self.adapter.probe_script)
            except Exception as exc:
                logger.debug("Attempt %s/%s: probe raised %r", attempt, self.max_attempts, exc)
                return TransientFailure(f"probe raised: {exc!r}")

            items, error, retry = _unpack(result)
            if items:
                records = []
                for item in items:
                    if not isinstance(item, dict):
                        continue
                    records.append(self.adapter.parse_item(item))
                if records:
                    return Success(records)
                error, retry = "listing items were not objects", True

            if error:
                logger.debug("Attempt %s/%s: %s", attempt, self.max_attempts, error)
                last_reason = error
            if not retry:
                return FatalFailure(error or "probe gave up")

        return Empty(f"{last_reason} after {self.max_attempts} attempts")


def _unpack(result: Any) -> tuple[list, str, bool]:
    # Probe scripts may also return a bare list of items.
    if isinstance(result, list):
        return result, "" if result else "No items in listing", True
    if not isinstance(result, dict):
        return [], "probe returned no data", True
    items = result.get("items") or []
    if not isinstance(items, list):
        items = []
    return items, result.get("error") or "", bool(result.get("retry", not items))
