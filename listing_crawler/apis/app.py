from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from ..config import CrawlConfig
from ..engines.base import CrawlReport
from ..engines.browser_engine import BrowserCrawlEngine
from ..errors import ConfigError
from ..export.memory import MemorySink
from ..ui.cli import build_registry
from ..version import __version__

logger = logging.getLogger(__name__)

app = FastAPI(title="listing_crawler API", version=__version__)


class CrawlInput(BaseModel):
    startUrl: Optional[str] = None
    minPrice: Optional[float] = None
    maxPrice: Optional[float] = None
    sortBy: Optional[str] = None
    # Coerced like CLI input; junk falls back to the default.
    results_wanted: Optional[Any] = None
    proxyConfiguration: Optional[Dict[str, Any]] = None
    max_concurrency: Optional[int] = Field(default=None, gt=0)


class CrawlResult(BaseModel):
    accepted: int
    quota: int
    pages: int
    abandoned: List[str]
    items: List[Dict[str, Any]]


def build_engine(cfg: CrawlConfig, sink: MemorySink) -> BrowserCrawlEngine:
    return BrowserCrawlEngine(cfg, registry=build_registry(cfg), sink=sink)


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/crawl", response_model=CrawlResult)
async def crawl(req: CrawlInput) -> CrawlResult:
    cfg = CrawlConfig.from_input(req.model_dump(exclude_none=True), base=CrawlConfig.from_env())
    if req.max_concurrency is not None:
        cfg.max_concurrency = req.max_concurrency
    try:
        cfg.validate()
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    sink = MemorySink()
    engine = build_engine(cfg, sink)
    report: CrawlReport = await engine.crawl()
    return CrawlResult(
        accepted=report.accepted_count,
        quota=report.quota,
        pages=len(report.completed),
        abandoned=report.abandoned,
        items=sink.to_dicts(),
    )
