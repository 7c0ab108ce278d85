from __future__ import annotations

import asyncio
import logging
import uuid
import zlib
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class ProxyProvider:
    """
    Hands out proxy URLs for new sessions.

    ``configuration`` is the caller's opaque proxy settings. Only
    ``proxyUrls`` is interpreted here; anything else belongs to the hosting
    platform and is ignored. A session id always maps to the same URL, and a
    ``{session}`` placeholder in the URL is replaced by the id so providers
    with sticky sessions keep one exit IP per session.
    """

    def __init__(self, configuration: Optional[Dict[str, Any]] = None) -> None:
        self.configuration = dict(configuration or {})
        urls = self.configuration.get("proxyUrls") or []
        self._urls: List[str] = [str(u) for u in urls if u]
        unknown = set(self.configuration) - {"proxyUrls"}
        if unknown:
            logger.debug("Proxy options not handled locally: %s", ", ".join(sorted(unknown)))

    def get_proxy_url(self, session_id: str) -> Optional[str]:
        if not self._urls:
            return None
        url = self._urls[zlib.crc32(session_id.encode("utf-8")) % len(self._urls)]
        return url.replace("{session}", session_id)


@dataclass
class Session:
    id: str
    proxy_url: Optional[str]
    max_usage: int
    usage_count: int = 0
    retired: bool = False

    @property
    def exhausted(self) -> bool:
        return self.usage_count >= self.max_usage


RetireHook = Callable[[Session], Awaitable[None]]


class SessionPool:
    """
    Fixed-size pool of fetch sessions.

    At most ``size`` sessions are leased at once; ``acquire`` waits for a free
    slot. Each lease counts as one use and a session is retired on release once
    it reaches ``max_usage`` uses or when the request it served failed at the
    fetch layer. Retired sessions are replaced lazily on the next acquire.
    """

    def __init__(
        self,
        size: int = 3,
        max_usage: int = 5,
        proxy: Optional[ProxyProvider] = None,
        on_retire: Optional[RetireHook] = None,
    ) -> None:
        if size < 1 or max_usage < 1:
            raise ValueError("size and max_usage must be >= 1")
        self.size = size
        self.max_usage = max_usage
        self.proxy = proxy or ProxyProvider()
        self._on_retire = on_retire
        self._slots = asyncio.Semaphore(size)
        self._idle: List[Session] = []
        self._leased: Dict[str, Session] = {}
        self.created = 0
        self.retired = 0

    async def acquire(self) -> Session:
        await self._slots.acquire()
        session = self._idle.pop(0) if self._idle else self._new_session()
        session.usage_count += 1
        self._leased[session.id] = session
        return session

    async def release(self, session: Session, *, failed: bool = False) -> None:
        self._leased.pop(session.id, None)
        try:
            if failed or session.exhausted:
                await self._retire(session, "fetch failure" if failed else "usage ceiling")
            else:
                self._idle.append(session)
        finally:
            self._slots.release()

    async def close(self) -> None:
        sessions = self._idle + list(self._leased.values())
        self._idle.clear()
        self._leased.clear()
        for session in sessions:
            await self._retire(session, "pool closed")

    def _new_session(self) -> Session:
        session_id = uuid.uuid4().hex[:12]
        self.created += 1
        return Session(id=session_id, proxy_url=self.proxy.get_proxy_url(session_id), max_usage=self.max_usage)

    async def _retire(self, session: Session, why: str) -> None:
        if session.retired:
            return
        session.retired = True
        self.retired += 1
        logger.debug("Retiring session %s after %s uses (%s)", session.id, session.usage_count, why)
        if self._on_retire is not None:
            await self._on_retire(session)
