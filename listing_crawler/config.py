from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any
from pathlib import Path
import os
import json

from .errors import ConfigError
from .version import CONFIG_SCHEMA_VERSION

DEFAULT_START_URL = "https://www.farfetch.com/uk/shopping/women/jewellery-1/items.aspx"
DEFAULT_RESULTS_WANTED = 20

# Request URLs containing any of these fragments are aborted before they leave the browser.
DEFAULT_BLOCK_PATTERNS = [
    "google-analytics",
    "googletagmanager",
    "hotjar",
    "facebook",
    "doubleclick",
    "tiktok",
    "analytics",
]


@dataclass
class CrawlConfig:
    """
    Canonical configuration object passed throughout the system.
    Keep it dataclass-only (no heavy deps) to stay upgrade-friendly.
    """
    schema_version: int = CONFIG_SCHEMA_VERSION
    start_url: str = DEFAULT_START_URL
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    sort_by: str = "default"
    results_wanted: int = DEFAULT_RESULTS_WANTED
    # Opaque; only the session pool interprets it.
    proxy_configuration: Optional[Dict[str, Any]] = None

    # Scheduling
    max_concurrency: int = 3
    max_request_retries: int = 3
    request_handler_timeout: float = 90.0
    navigation_timeout: float = 45.0

    # Session pool
    session_pool_size: int = 3
    session_max_usage: int = 5

    # Extraction polling
    settle_delay: float = 1.5
    poll_interval: float = 0.5
    max_poll_attempts: int = 8

    headless: bool = True
    block_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_BLOCK_PATTERNS))

    # Dotted paths for fetcher/exporter to allow runtime swapping without code changes.
    fetcher: str = "listing_crawler.engines.fetcher:PlaywrightFetcher"
    exporter: str = "listing_crawler.export.json_exporter:JSONExporter"
    # Extra adapters (dotted class paths) to register at startup
    extra_adapters: List[str] = field(default_factory=list)
    # Where to write results
    output_path: str = "output/products.json"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def filters(self) -> Dict[str, Any]:
        """Listing filters merged into every page URL."""
        return {"min_price": self.min_price, "max_price": self.max_price, "sort_by": self.sort_by}

    # ---------- Loaders ----------

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """
        Build config from environment variables (all optional).
        """
        def _get(name: str, default: str) -> str:
            return os.getenv(name, default)

        def _price(name: str) -> Optional[float]:
            raw = os.getenv(name, "").strip()
            return float(raw) if raw else None

        return cls(
            start_url=_get("CRAWLER_START_URL", DEFAULT_START_URL),
            min_price=_price("CRAWLER_MIN_PRICE"),
            max_price=_price("CRAWLER_MAX_PRICE"),
            sort_by=_get("CRAWLER_SORT_BY", "default"),
            results_wanted=coerce_results_wanted(_get("CRAWLER_RESULTS_WANTED", str(DEFAULT_RESULTS_WANTED))),
            max_concurrency=int(_get("CRAWLER_MAX_CONCURRENCY", "3")),
            max_request_retries=int(_get("CRAWLER_MAX_REQUEST_RETRIES", "3")),
            request_handler_timeout=float(_get("CRAWLER_HANDLER_TIMEOUT", "90")),
            navigation_timeout=float(_get("CRAWLER_NAVIGATION_TIMEOUT", "45")),
            headless=_get("CRAWLER_HEADLESS", "1").lower() not in ("0", "false", "no"),
            fetcher=_get("CRAWLER_FETCHER", "listing_crawler.engines.fetcher:PlaywrightFetcher"),
            exporter=_get("CRAWLER_EXPORTER", "listing_crawler.export.json_exporter:JSONExporter"),
            extra_adapters=[a.strip() for a in _get("CRAWLER_EXTRA_ADAPTERS", "").split(",") if a.strip()],
            output_path=_get("CRAWLER_OUTPUT_PATH", "output/products.json"),
        )

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "CrawlConfig":
        """
        Load configuration from a JSON file. Supports schema migration for future versions.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        data = migrate_config(data)
        return cls(**data)

    @classmethod
    def from_input(cls, data: Dict[str, Any], base: Optional["CrawlConfig"] = None) -> "CrawlConfig":
        """
        Apply actor-style input (startUrl, minPrice, maxPrice, sortBy,
        results_wanted, proxyConfiguration) on top of ``base``.
        """
        cfg = base or cls()
        if data.get("startUrl"):
            cfg.start_url = str(data["startUrl"])
        if data.get("minPrice") not in (None, ""):
            cfg.min_price = data["minPrice"]
        if data.get("maxPrice") not in (None, ""):
            cfg.max_price = data["maxPrice"]
        if data.get("sortBy"):
            cfg.sort_by = str(data["sortBy"])
        if "results_wanted" in data:
            cfg.results_wanted = coerce_results_wanted(data["results_wanted"])
        if data.get("proxyConfiguration") is not None:
            cfg.proxy_configuration = data["proxyConfiguration"]
        return cfg

    # ---------- Validation ----------

    def validate(self) -> None:
        if not self.start_url:
            raise ConfigError("start_url cannot be empty.")
        if self.results_wanted < 1:
            raise ConfigError("results_wanted must be >= 1")
        if self.max_concurrency <= 0:
            raise ConfigError("max_concurrency must be > 0")
        if self.max_request_retries < 0:
            raise ConfigError("max_request_retries must be >= 0")
        if self.session_pool_size <= 0 or self.session_max_usage <= 0:
            raise ConfigError("session pool size and usage ceiling must be > 0")
        if self.max_poll_attempts <= 0:
            raise ConfigError("max_poll_attempts must be > 0")
        if self.request_handler_timeout <= 0 or self.navigation_timeout <= 0:
            raise ConfigError("timeouts must be > 0")
        # Validate output path parent exists or is creatable
        parent = Path(self.output_path).parent
        parent.mkdir(parents=True, exist_ok=True)


def coerce_results_wanted(value: Any) -> int:
    """Numeric input is clamped to at least 1; anything else falls back to the default."""
    if isinstance(value, bool):
        return DEFAULT_RESULTS_WANTED
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_RESULTS_WANTED
    if number != number or number in (float("inf"), float("-inf")):
        return DEFAULT_RESULTS_WANTED
    return max(1, int(number))


def migrate_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate config dict to the latest schema version.
    Keep this pure and additive. Add migrations here as you bump schema.
    """
    schema = raw.get("schema_version", 1)

    if schema < 2:
        # v1 configs described multi-domain crawls; keep the first start URL only.
        urls = raw.pop("start_urls", None) or []
        if urls and "start_url" not in raw:
            raw["start_url"] = urls[0]
        for obsolete in ("allowed_domains", "max_depth", "retries", "request_timeout", "user_agent", "engine"):
            raw.pop(obsolete, None)
        raw["schema_version"] = 2

    # Ensure a schema_version is present
    raw.setdefault("schema_version", CONFIG_SCHEMA_VERSION)
    return raw
