from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from playwright.async_api import Error as PlaywrightError

from .base import CrawlEngine, CrawlReport, RequestStatus
from .extraction import Empty, ExtractionEngine, ExtractionOutcome, FatalFailure, Sleep, Success, TransientFailure
from .fetcher import Fetcher
from .pagination import NextPagePolicy, PaginationPolicy
from .sessions import ProxyProvider, SessionPool
from .state import AcceptResult, CrawlState
from ..adapters.base import CrawlRequest
from ..adapters.registry import AdapterRegistry
from ..config import CrawlConfig
from ..errors import NavigationError
from ..export.base import ResultSink
from ..export.memory import MemorySink
from ..utils.loader import load_symbol
from ..utils.parsing import normalize_record, page_number_of

logger = logging.getLogger(__name__)

# Failures at the fetch layer; anything else is a bug and is not retried.
RETRYABLE_ERRORS = (NavigationError, PlaywrightError, asyncio.TimeoutError)


class BrowserCrawlEngine(CrawlEngine):
    """
    Crawls a client-rendered listing page by page.
    - Fetcher owns the browser; adapter owns site knowledge.
    - Workers pull from a FIFO queue; concurrency capped by the worker count.
    - Quota is cooperative: once met, queued requests are dropped and
      in-flight ones run to completion.
    """
    def __init__(
        self,
        config: CrawlConfig,
        registry: AdapterRegistry | None = None,
        *,
        fetcher: Optional[Fetcher] = None,
        sink: Optional[ResultSink] = None,
        state: Optional[CrawlState] = None,
        pagination: Optional[PaginationPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config
        self.registry = registry or AdapterRegistry()
        self.adapter = self.registry.match(config.start_url)
        self.fetcher: Fetcher = fetcher or load_symbol(config.fetcher)(config)
        self.sink: ResultSink = sink if sink is not None else MemorySink()
        self.state = state or CrawlState(config.results_wanted)
        self.extractor = ExtractionEngine(
            self.adapter,
            settle_delay=config.settle_delay,
            poll_interval=config.poll_interval,
            max_attempts=config.max_poll_attempts,
            sleep=sleep,
        )
        self.pagination = pagination or NextPagePolicy(self.adapter, config.start_url, config.filters())
        self.statuses: Dict[str, RequestStatus] = {}
        self._stop = asyncio.Event()

    def seed_request(self) -> CrawlRequest:
        # A start URL may already point past the first page.
        page = page_number_of(self.config.start_url)
        url = self.adapter.build_url(self.config.start_url, page, self.config.filters())
        return CrawlRequest(url=url, page_number=page)

    async def crawl(self) -> CrawlReport:
        return await self.run(self.seed_request())

    async def run(self, seed: CrawlRequest) -> CrawlReport:
        cfg = self.config
        logger.info("Starting crawl of %s, results wanted: %s", seed.url, self.state.quota)

        q: asyncio.Queue[CrawlRequest] = asyncio.Queue()
        self._enqueue(q, seed)

        pool = SessionPool(
            size=cfg.session_pool_size,
            max_usage=cfg.session_max_usage,
            proxy=ProxyProvider(cfg.proxy_configuration),
            on_retire=self.fetcher.discard_session,
        )

        workers = []
        try:
            await self.fetcher.start()

            async def worker() -> None:
                while True:
                    request = await q.get()
                    try:
                        if self._stop.is_set():
                            logger.debug("Not dispatching %s; crawl is stopping", request.url)
                            continue
                        await self._handle(request, pool, q)
                    finally:
                        q.task_done()

            workers = [asyncio.create_task(worker()) for _ in range(cfg.max_concurrency)]
            # Drains once every queued request is handled or skipped and no worker is busy.
            await q.join()
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            await pool.close()
            await self.fetcher.close()

        report = CrawlReport(
            accepted_count=self.state.accepted_count,
            quota=self.state.quota,
            statuses=dict(self.statuses),
        )
        logger.info(
            "Crawl finished. Total products saved: %s (pages completed: %s, abandoned: %s)",
            report.accepted_count,
            len(report.completed),
            len(report.abandoned),
        )
        return report

    # ---- Per-request lifecycle ----------------------------------------------

    async def _handle(self, request: CrawlRequest, pool: SessionPool, q: asyncio.Queue) -> None:
        cfg = self.config
        attempts = cfg.max_request_retries + 1
        last_exc: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            self.statuses[request.url] = RequestStatus.IN_FLIGHT
            try:
                await asyncio.wait_for(self._process(request, pool, q), timeout=cfg.request_handler_timeout)
            except RETRYABLE_ERRORS as exc:
                last_exc = exc
                if attempt == attempts:
                    break
                if self._stop.is_set():
                    self.statuses[request.url] = RequestStatus.ABANDONED
                    logger.info("Not retrying %s; crawl is stopping", request.url)
                    return
                self.statuses[request.url] = RequestStatus.RETRYING
                logger.warning("Attempt %s/%s failed for %s: %r", attempt, attempts, request.url, exc)
                continue
            except Exception as exc:
                last_exc = exc
                logger.exception("Unexpected error while handling %s", request.url)
                break
            self.statuses[request.url] = RequestStatus.COMPLETED
            return

        self.statuses[request.url] = RequestStatus.ABANDONED
        logger.error("Request failed after retries: %s", request.url)
        if last_exc is not None:
            logger.error("%s", str(last_exc) or type(last_exc).__name__)

    async def _process(self, request: CrawlRequest, pool: SessionPool, q: asyncio.Queue) -> None:
        logger.info("Processing page %s: %s", request.page_number, request.url)
        session = await pool.acquire()
        failed = False
        try:
            try:
                page = await asyncio.wait_for(
                    self.fetcher.navigate(request.url, session, timeout=self.config.navigation_timeout),
                    timeout=self.config.navigation_timeout,
                )
                try:
                    outcome = await self.extractor.extract(page)
                finally:
                    await page.close()
            except BaseException:
                # Includes the cancellation from a handler timeout; the session is suspect either way.
                failed = True
                raise
        finally:
            await pool.release(session, failed=failed)

        await self._consume(request, outcome, q)

    async def _consume(self, request: CrawlRequest, outcome: ExtractionOutcome, q: asyncio.Queue) -> None:
        if isinstance(outcome, Success):
            logger.info("Extracted %s products from page %s", len(outcome.records), request.page_number)
            await self._accept_all(outcome)
        elif isinstance(outcome, TransientFailure):
            logger.debug("Extraction on %s stopped early: %s", request.url, outcome.reason)
        elif isinstance(outcome, (Empty, FatalFailure)):
            logger.warning("No products extracted from %s: %s", request.url, outcome.reason)

        if self.state.satisfied:
            self._signal_quota()
            return

        next_request = self.pagination(request, outcome, self.state)
        if next_request is None:
            logger.info("No more pages available after page %s", request.page_number)
            return
        if self._stop.is_set():
            return
        self._enqueue(q, next_request)
        logger.info("Queued page %s", next_request.page_number)

    async def _accept_all(self, outcome: Success) -> None:
        for raw in outcome.records:
            record = normalize_record(raw, self.adapter.origin)
            result = await self.state.accept(record)
            if result is AcceptResult.QUOTA_REACHED:
                break
            if result is AcceptResult.DUPLICATE_SKIPPED:
                logger.debug("Skipping duplicate product %s", record.product_id)
                continue
            self.sink.push(record)
            logger.debug(
                "Saved product %s/%s: %s - %s",
                self.state.accepted_count,
                self.state.quota,
                record.brand,
                record.title,
            )

    def _enqueue(self, q: asyncio.Queue, request: CrawlRequest) -> None:
        self.statuses[request.url] = RequestStatus.QUEUED
        q.put_nowait(request)

    def _signal_quota(self) -> None:
        if not self._stop.is_set():
            logger.info("Reached target of %s results; no new pages will be dispatched", self.state.quota)
            self._stop.set()
