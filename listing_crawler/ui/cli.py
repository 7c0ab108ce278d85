from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any, Dict, List

from ..config import CrawlConfig, coerce_results_wanted
from ..utils.logging import setup_logging
from ..utils.loader import load_symbol
from ..adapters.registry import AdapterRegistry
from ..engines.base import CrawlReport
from ..engines.browser_engine import BrowserCrawlEngine

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Paginated listing crawler CLI")
    p.add_argument("start_url", nargs="?", default=None, help="Listing URL to start from")
    p.add_argument("--config", type=str, help="Path to config JSON", default=None)
    p.add_argument("--input", type=str, default=None,
                   help="Path to an input JSON (startUrl, minPrice, maxPrice, sortBy, results_wanted, proxyConfiguration)")
    p.add_argument("--min-price", type=float, default=None, help="Minimum price filter")
    p.add_argument("--max-price", type=float, default=None, help="Maximum price filter")
    p.add_argument("--sort-by", type=str, default=None, help="default, price_asc, price_desc, new, or a raw site token")
    p.add_argument("--results-wanted", type=str, default=None, help="Stop after this many unique products")
    p.add_argument("--proxy-url", action="append", default=None, help="Proxy URL (repeat to rotate)")
    p.add_argument("--max-concurrency", type=int, default=None, help="Parallel pages (default from config)")
    p.add_argument("--headful", action="store_true", help="Show the browser window")
    p.add_argument("--exporter", type=str, default=None, help="Exporter dotted path (module:ClassName)")
    p.add_argument("--extra-adapters", type=str, default=None,
                   help="Comma-separated dotted paths for additional adapters")
    p.add_argument("--output", type=str, default=None, help="Output file path")
    p.add_argument("--log-level", type=str, default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--serve", action="store_true", help="Run REST API server instead of CLI crawl")
    p.add_argument("--host", type=str, default="127.0.0.1", help="API host (when --serve)")
    p.add_argument("--port", type=int, default=8000, help="API port (when --serve)")
    return p


def _load_input(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise SystemExit(f"Input file {path} must contain a JSON object")
    return data


def load_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config:
        cfg = CrawlConfig.from_file(args.config)
    else:
        cfg = CrawlConfig.from_env()

    if args.input:
        cfg = CrawlConfig.from_input(_load_input(args.input), base=cfg)

    if args.start_url:
        cfg.start_url = args.start_url
    if args.min_price is not None:
        cfg.min_price = args.min_price
    if args.max_price is not None:
        cfg.max_price = args.max_price
    if args.sort_by:
        cfg.sort_by = args.sort_by
    if args.results_wanted is not None:
        cfg.results_wanted = coerce_results_wanted(args.results_wanted)
    if args.proxy_url:
        cfg.proxy_configuration = {"proxyUrls": list(args.proxy_url)}
    if args.max_concurrency is not None:
        cfg.max_concurrency = args.max_concurrency
    if args.headful:
        cfg.headless = False
    if args.exporter:
        cfg.exporter = args.exporter
    if args.extra_adapters:
        cfg.extra_adapters = [a.strip() for a in args.extra_adapters.split(",") if a.strip()]
    if args.output:
        cfg.output_path = args.output

    cfg.validate()
    return cfg


def build_registry(cfg: CrawlConfig) -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.discover_entry_points()
    # Allow runtime registration of additional adapters
    for dotted in cfg.extra_adapters:
        try:
            adapter_cls = load_symbol(dotted)
            registry.register(adapter_cls())
        except Exception as exc:
            logger.warning("Failed to load adapter %s: %r", dotted, exc)
    return registry


def run_server(host: str, port: int) -> None:
    try:
        import uvicorn  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dep
        raise SystemExit("To run the API, install dependencies: pip install fastapi uvicorn pydantic") from exc
    uvicorn.run("listing_crawler.apis.app:app", host=host, port=port)


def run_cli(argv: List[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.serve:
        run_server(args.host, args.port)
        return 0

    cfg = load_config(args)

    # Dynamic exporter loading so upgrades don't require code edits.
    exporter_cls = load_symbol(cfg.exporter)
    sink = exporter_cls(cfg.output_path)
    engine = BrowserCrawlEngine(cfg, registry=build_registry(cfg), sink=sink)

    try:
        report: CrawlReport = asyncio.run(engine.crawl())
    finally:
        sink.close()

    logger.info("Products: %s/%s | Pages: %s | Abandoned: %s | Output: %s",
                report.accepted_count,
                report.quota,
                len(report.completed),
                len(report.abandoned),
                cfg.output_path)
    return 0
