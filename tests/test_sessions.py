import asyncio

from listing_crawler.engines.sessions import ProxyProvider, SessionPool


def test_session_retired_after_usage_ceiling():
    retired = []

    async def on_retire(session):
        retired.append(session.id)

    async def go():
        pool = SessionPool(size=1, max_usage=2, on_retire=on_retire)
        first = await pool.acquire()
        await pool.release(first)
        again = await pool.acquire()
        await pool.release(again)
        fresh = await pool.acquire()
        await pool.release(fresh)
        return pool, first, again, fresh

    pool, first, again, fresh = asyncio.run(go())
    assert first is again
    assert fresh is not first
    assert retired == [first.id]
    assert pool.created == 2


def test_failed_session_is_retired_early():
    async def go():
        pool = SessionPool(size=2, max_usage=5)
        session = await pool.acquire()
        await pool.release(session, failed=True)
        return session, await pool.acquire()

    failed, replacement = asyncio.run(go())
    assert failed.retired
    assert replacement.id != failed.id


def test_pool_size_bounds_leases():
    async def go():
        pool = SessionPool(size=2, max_usage=5)
        a = await pool.acquire()
        await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0)
        blocked = not waiter.done()
        await pool.release(a)
        third = await asyncio.wait_for(waiter, timeout=1)
        return blocked, a, third

    blocked, a, third = asyncio.run(go())
    assert blocked
    assert third is a


def test_close_retires_everything():
    retired = []

    async def on_retire(session):
        retired.append(session.id)

    async def go():
        pool = SessionPool(size=2, max_usage=5, on_retire=on_retire)
        held = await pool.acquire()
        idle = await pool.acquire()
        await pool.release(idle)
        await pool.close()
        return held, idle

    held, idle = asyncio.run(go())
    assert sorted(retired) == sorted([held.id, idle.id])


def test_proxy_url_is_stable_per_session():
    urls = ["http://p1:8000", "http://p2:8000"]
    provider = ProxyProvider({"proxyUrls": urls, "useApifyProxy": True})
    picked = {sid: provider.get_proxy_url(sid) for sid in (f"s{i}" for i in range(50))}
    assert all(provider.get_proxy_url(sid) == url for sid, url in picked.items())
    assert set(picked.values()) == set(urls)


def test_session_placeholder_in_proxy_url():
    provider = ProxyProvider({"proxyUrls": ["http://user-session-{session}:pw@gate.test:7000"]})
    assert provider.get_proxy_url("abc123") == "http://user-session-abc123:pw@gate.test:7000"
    assert ProxyProvider(None).get_proxy_url("x") is None
