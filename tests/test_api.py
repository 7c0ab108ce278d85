from fastapi.testclient import TestClient

from listing_crawler.apis import app as app_module
from listing_crawler.engines.browser_engine import BrowserCrawlEngine

from conftest import FakeFetcher, item, no_sleep, page_url


def test_health():
    client = TestClient(app_module.app)
    assert client.get("/health").json() == {"status": "ok"}


def test_crawl_returns_accepted_items(monkeypatch, tmp_path):
    monkeypatch.setenv("CRAWLER_OUTPUT_PATH", str(tmp_path / "products.json"))
    fetcher = FakeFetcher({page_url(1): [item(1), item(2), item(3)]})

    def build_engine(cfg, sink):
        cfg.settle_delay = 0
        cfg.poll_interval = 0
        return BrowserCrawlEngine(cfg, fetcher=fetcher, sink=sink, sleep=no_sleep)

    monkeypatch.setattr(app_module, "build_engine", build_engine)
    client = TestClient(app_module.app)
    resp = client.post("/crawl", json={"startUrl": page_url(1), "results_wanted": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["accepted"] == 2
    assert body["quota"] == 2
    assert [i["product_id"] for i in body["items"]] == ["1", "2"]
    assert body["abandoned"] == []


def test_crawl_rejects_bad_concurrency():
    client = TestClient(app_module.app)
    resp = client.post("/crawl", json={"max_concurrency": 0})
    assert resp.status_code == 422
