from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Protocol

from playwright.async_api import Error as PlaywrightError, async_playwright

from ..config import CrawlConfig
from ..errors import NavigationError
from .sessions import Session

logger = logging.getLogger(__name__)


class PageHandle(Protocol):
    """A rendered page. Only read access is needed by the crawler."""

    async def wait_for_load_state(self, state: str = "domcontentloaded") -> None:
        ...

    async def probe(self, script: str) -> Any:
        """Evaluate ``script`` in the page and return its JSON-able result. May raise."""
        ...

    async def close(self) -> None:
        ...


class Fetcher(Protocol):
    """
    Renders listing pages. Navigation failures surface as
    :class:`NavigationError` (or ``asyncio.TimeoutError``; a raw Playwright
    ``Error`` is tolerated too) so the engine can retry them.
    """

    async def start(self) -> None:
        ...

    async def navigate(self, url: str, session: Session, *, timeout: float) -> PageHandle:
        ...

    async def discard_session(self, session: Session) -> None:
        """Drop any browser state tied to a retired session."""
        ...

    async def close(self) -> None:
        ...


def app_data_dir() -> Path:
    base = os.getenv("LOCALAPPDATA") or str(Path.home() / ".listing-crawler")
    p = Path(base) / "listing-crawler"
    p.mkdir(parents=True, exist_ok=True)
    return p


def is_blocked(url: str, patterns: List[str]) -> bool:
    return any(p in url for p in patterns)


class PlaywrightPage:
    def __init__(self, page: Any) -> None:
        self._page = page

    async def wait_for_load_state(self, state: str = "domcontentloaded") -> None:
        try:
            await self._page.wait_for_load_state(state)
        except PlaywrightError as exc:
            raise NavigationError(f"page never reached {state}", url=self._page.url) from exc

    async def probe(self, script: str) -> Any:
        return await self._page.evaluate(script)

    async def close(self) -> None:
        try:
            await self._page.close()
        except PlaywrightError as exc:
            raise NavigationError("page could not be closed", url=self._page.url) from exc


class PlaywrightFetcher:
    """
    Headless-browser fetcher. One browser per run, one browser context per
    session so cookies and proxy stay with the session that earned them.
    Analytics and tracking requests are aborted at the context level.
    """

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config
        self._playwright: Any = None
        self._browser: Any = None
        self._contexts: Dict[str, Any] = {}

    async def start(self) -> None:
        os.environ.setdefault("PLAYWRIGHT_BROWSERS_PATH", str(app_data_dir() / "ms-playwright"))

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"],
            )
        except BaseException:
            await self._playwright.stop()
            self._playwright = None
            raise
        logger.info("Browser started (headless=%s)", self.config.headless)

    async def navigate(self, url: str, session: Session, *, timeout: float) -> PageHandle:
        if self._browser is None:
            raise RuntimeError("fetcher not started")
        try:
            context = await self._context_for(session)
            page = await context.new_page()
        except PlaywrightError as exc:
            raise NavigationError(_first_line(exc, "could not open a page"), url=url) from exc
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout * 1000)
        except PlaywrightError as exc:
            await page.close()
            raise NavigationError(_first_line(exc, "navigation failed"), url=url) from exc
        return PlaywrightPage(page)

    async def discard_session(self, session: Session) -> None:
        context = self._contexts.pop(session.id, None)
        if context is not None:
            await context.close()

    async def close(self) -> None:
        for context in list(self._contexts.values()):
            await context.close()
        self._contexts.clear()
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def _context_for(self, session: Session) -> Any:
        context = self._contexts.get(session.id)
        if context is not None:
            return context
        kwargs: Dict[str, Any] = {"locale": "en-GB"}
        if session.proxy_url:
            kwargs["proxy"] = {"server": session.proxy_url}
        context = await self._browser.new_context(**kwargs)
        await context.route("**/*", self._route_handler)
        self._contexts[session.id] = context
        return context

    async def _route_handler(self, route) -> None:
        if is_blocked(route.request.url, self.config.block_patterns):
            await route.abort()
            return
        await route.continue_()


def _first_line(exc: BaseException, default: str) -> str:
    text = str(exc)
    return text.splitlines()[0] if text else default
