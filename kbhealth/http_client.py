"""
HTTP client - aiohttp transport with failure classification and per-host limits.

Handles:
- Per-request timeouts
- Mapping transport failures to TransientFetchError / PermanentFetchError
- Conditional requests (304 Not Modified is returned, not raised)
- Capping outstanding requests and request rate per external host
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping

import aiohttp

from .config import config
from .exceptions import PermanentFetchError, TransientFetchError
from .interfaces import HttpResponse
from .urls import host_of

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = {408, 425, 429}


def classify_status(url: str, status: int) -> None:
    """Raise the matching fetch error for a non-success HTTP status."""
    if status < 400 or status == 304:
        return
    if status >= 500 or status in TRANSIENT_STATUSES:
        raise TransientFetchError(f"HTTP {status}", url=url, status=status)
    raise PermanentFetchError(f"HTTP {status}", url=url, status=status)


class HostRateLimiter:
    """
    Caps outstanding requests and enforces a minimum interval per host.

    Each host gets its own semaphore; the interval is tracked from the start
    of the previous request to that host.
    """

    def __init__(
        self,
        max_per_host: int | None = None,
        min_interval: float | None = None,
    ):
        self.max_per_host = max_per_host or config.PER_HOST_CONCURRENCY
        self.min_interval = config.PER_HOST_MIN_INTERVAL_SECONDS if min_interval is None else min_interval
        self._semaphores: dict[str, asyncio.Semaphore] = {}
        self._host_last_fetch: dict[str, float] = {}
        self._interval_locks: dict[str, asyncio.Lock] = {}
        self._in_flight: dict[str, int] = {}
        self.peak_in_flight: dict[str, int] = {}

    def in_flight(self, host: str) -> int:
        return self._in_flight.get(host, 0)

    @asynccontextmanager
    async def slot(self, url: str) -> AsyncIterator[None]:
        host = host_of(url)
        semaphore = self._semaphores.setdefault(host, asyncio.Semaphore(self.max_per_host))
        async with semaphore:
            await self._rate_limit(host)
            self._in_flight[host] = self._in_flight.get(host, 0) + 1
            self.peak_in_flight[host] = max(self.peak_in_flight.get(host, 0), self._in_flight[host])
            try:
                yield
            finally:
                self._in_flight[host] -= 1

    async def _rate_limit(self, host: str) -> None:
        """Ensure minimum interval between requests to same host."""
        if self.min_interval <= 0:
            return
        lock = self._interval_locks.setdefault(host, asyncio.Lock())
        async with lock:
            last = self._host_last_fetch.get(host)
            if last is not None:
                elapsed = time.monotonic() - last
                if elapsed < self.min_interval:
                    await asyncio.sleep(self.min_interval - elapsed)
            self._host_last_fetch[host] = time.monotonic()


class AiohttpClient:
    """HttpClient implementation on a shared aiohttp session."""

    def __init__(self, timeout: float | None = None, user_agent: str | None = None):
        self.timeout = timeout or config.REQUEST_TIMEOUT_SECONDS
        self.user_agent = user_agent or config.USER_AGENT
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AiohttpClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def get(self, url: str, headers: Mapping[str, str] | None = None) -> HttpResponse:
        session = await self._get_session()
        try:
            async with session.get(url, headers=dict(headers or {}), allow_redirects=True) as resp:
                classify_status(url, resp.status)
                text = "" if resp.status == 304 else await resp.text(errors="replace")
                return HttpResponse(
                    status=resp.status,
                    url=str(resp.url),
                    text=text,
                    headers={k: v for k, v in resp.headers.items()},
                )
        except asyncio.TimeoutError as e:
            raise TransientFetchError(f"Timed out after {self.timeout}s", url=url) from e
        except aiohttp.ClientResponseError as e:
            classify_status(url, e.status)
            raise PermanentFetchError(str(e), url=url, status=e.status) from e
        except aiohttp.InvalidURL as e:
            raise PermanentFetchError(f"Invalid URL: {e}", url=url) from e
        except aiohttp.ClientError as e:
            raise TransientFetchError(f"{type(e).__name__}: {e}", url=url) from e
