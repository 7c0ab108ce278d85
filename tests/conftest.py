from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from listing_crawler.config import CrawlConfig
from listing_crawler.errors import NavigationError

START_URL = "https://www.farfetch.com/uk/shopping/women/jewellery-1/items.aspx"


def page_url(n: int) -> str:
    return START_URL if n == 1 else f"{START_URL}?page={n}"


def item(pid: Any, price: float = 100.0, sale: Optional[float] = None, **extra: Any) -> Dict[str, Any]:
    data = {
        "id": pid,
        "designerName": "Maison",
        "name": f"Ring {pid}",
        "unitPrice": price,
        "unitSalePrice": sale,
        "currencyCode": "GBP",
        "url": f"/uk/shopping/women/ring-item-{pid}.aspx",
        "imageUrl": f"//cdn-images.farfetch-contents.com/{pid}.jpg?c=2",
        "stock": 3,
        "hasStock": True,
        "designerId": 42,
    }
    data.update(extra)
    return data


async def no_sleep(seconds: float) -> None:
    return None


class FakeClock:
    """Records requested sleeps instead of waiting."""

    def __init__(self) -> None:
        self.sleeps: List[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.sleeps)


class FakePage:
    """Replays one probe result per call; the last one repeats."""

    def __init__(self, results: List[Any], url: str = START_URL) -> None:
        self.results = list(results)
        self.url = url
        self.probes = 0
        self.load_states: List[str] = []
        self.closed = False

    async def wait_for_load_state(self, state: str = "domcontentloaded") -> None:
        self.load_states.append(state)

    async def probe(self, script: str) -> Any:
        self.probes += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True


class FakeFetcher:
    """
    Serves listing items per URL. ``failures`` makes the first N navigations
    of a URL raise; ``hang`` makes navigations of a URL never finish.
    """

    def __init__(
        self,
        pages: Dict[str, List[Dict[str, Any]]],
        failures: Optional[Dict[str, int]] = None,
        hang: Optional[set] = None,
    ) -> None:
        self.pages = pages
        self.failures = dict(failures or {})
        self.hang = set(hang or ())
        self.navigated: List[str] = []
        self.sessions_used: List[str] = []
        self.discarded: List[str] = []
        self.opened: List[FakePage] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def navigate(self, url: str, session, *, timeout: float) -> FakePage:
        self.navigated.append(url)
        self.sessions_used.append(session.id)
        if url in self.hang:
            await asyncio.sleep(3600)
        if self.failures.get(url, 0) > 0:
            self.failures[url] -= 1
            raise NavigationError("connection reset", url=url)
        items = self.pages.get(url, [])
        if items:
            result = {"items": items, "retry": False}
        else:
            result = {"items": [], "error": "No items in listing", "retry": True}
        page = FakePage([result], url=url)
        self.opened.append(page)
        return page

    async def discard_session(self, session) -> None:
        self.discarded.append(session.id)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def config(tmp_path) -> CrawlConfig:
    return CrawlConfig(
        start_url=START_URL,
        results_wanted=20,
        max_concurrency=3,
        settle_delay=0,
        poll_interval=0,
        max_poll_attempts=3,
        output_path=str(tmp_path / "out" / "products.json"),
    )
