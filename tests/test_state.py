import asyncio
from dataclasses import replace

import pytest

from listing_crawler.adapters.base import RawProductRecord
from listing_crawler.engines.state import AcceptResult, CrawlState
from listing_crawler.utils.parsing import normalize_record

BASE = normalize_record(RawProductRecord(id="0", list_price=10), "https://www.farfetch.com")


def rec(pid):
    return replace(BASE, product_id=str(pid))


def test_accept_then_duplicate():
    state = CrawlState(quota=5)

    async def go():
        return [await state.accept(rec("a")), await state.accept(rec("a"))]

    assert asyncio.run(go()) == [AcceptResult.ACCEPTED, AcceptResult.DUPLICATE_SKIPPED]
    assert state.accepted_count == 1
    assert state.seen_ids == frozenset({"a"})


def test_quota_short_circuits_before_dedup():
    state = CrawlState(quota=1)

    async def go():
        return [await state.accept(rec("a")), await state.accept(rec("a")), await state.accept(rec("b"))]

    assert asyncio.run(go()) == [
        AcceptResult.ACCEPTED,
        AcceptResult.QUOTA_REACHED,
        AcceptResult.QUOTA_REACHED,
    ]
    assert state.satisfied


def test_concurrent_accepts_never_exceed_quota():
    state = CrawlState(quota=7)

    async def go():
        return await asyncio.gather(*(state.accept(rec(i % 30)) for i in range(100)))

    results = asyncio.run(go())
    assert results.count(AcceptResult.ACCEPTED) == 7
    assert state.accepted_count == 7
    assert len(state.seen_ids) == 7


def test_quota_must_be_positive():
    with pytest.raises(ValueError):
        CrawlState(quota=0)
