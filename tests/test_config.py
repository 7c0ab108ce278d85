import json

import pytest

from listing_crawler.config import (
    DEFAULT_START_URL,
    CrawlConfig,
    coerce_results_wanted,
    migrate_config,
)
from listing_crawler.errors import ConfigError


@pytest.mark.parametrize(
    "raw, expected",
    [(5, 5), ("12", 12), (0, 1), (-3, 1), ("abc", 20), (None, 20), (float("nan"), 20), (True, 20)],
)
def test_coerce_results_wanted(raw, expected):
    assert coerce_results_wanted(raw) == expected


def test_from_input_applies_actor_keys():
    cfg = CrawlConfig.from_input({
        "startUrl": "https://www.farfetch.com/uk/shopping/men/items.aspx",
        "minPrice": 10,
        "maxPrice": 200,
        "sortBy": "price_desc",
        "results_wanted": "nope",
        "proxyConfiguration": {"proxyUrls": ["http://p:1"]},
    })
    assert cfg.start_url.endswith("/men/items.aspx")
    assert cfg.filters() == {"min_price": 10, "max_price": 200, "sort_by": "price_desc"}
    assert cfg.results_wanted == 20
    assert cfg.proxy_configuration == {"proxyUrls": ["http://p:1"]}


def test_from_input_keeps_defaults():
    cfg = CrawlConfig.from_input({})
    assert cfg.start_url == DEFAULT_START_URL
    assert cfg.results_wanted == 20
    assert cfg.sort_by == "default"


def test_from_env(monkeypatch):
    monkeypatch.setenv("CRAWLER_RESULTS_WANTED", "7")
    monkeypatch.setenv("CRAWLER_MIN_PRICE", "25")
    monkeypatch.setenv("CRAWLER_HEADLESS", "false")
    cfg = CrawlConfig.from_env()
    assert cfg.results_wanted == 7
    assert cfg.min_price == 25.0
    assert cfg.headless is False


def test_from_file_migrates_v1(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({
        "start_urls": ["https://www.farfetch.com/uk/shopping/kids/items.aspx", "https://ignored"],
        "max_depth": 3,
        "max_concurrency": 2,
    }))
    cfg = CrawlConfig.from_file(path)
    assert cfg.start_url.endswith("/kids/items.aspx")
    assert cfg.max_concurrency == 2
    assert cfg.schema_version == 2


def test_migrate_current_schema_untouched():
    raw = {"schema_version": 2, "start_url": "https://x.test"}
    assert migrate_config(dict(raw)) == raw


def test_validate_rejects_bad_values(tmp_path):
    cfg = CrawlConfig(output_path=str(tmp_path / "a" / "b.json"), max_concurrency=0)
    with pytest.raises(ConfigError):
        cfg.validate()
    cfg.max_concurrency = 1
    cfg.validate()
    assert (tmp_path / "a").is_dir()
