"""Metadata Fetcher - outbound HTTP GET for product pages.

The fetcher owns no connection of its own: it uses the shared
``httpx.AsyncClient`` built once by the ServiceManager (see
``build_http_client``), which carries the browser-like headers, the per-phase timeout
and the redirect limit. The fetcher itself caps the whole exchange, body
included, at the same number of seconds.

Flow Diagram: fetch()
======================
::
    ┌─────────────┐
    │ GET url      │──► timeout ─────────────┐
    │ (≤5 redirects│──► too many redirects ──┤
    │  10s budget) │──► transport error ─────┤
    └──────┬──────┘                         ▼
           ▼                         ┌──────────────┐
    ┌─────────────┐   non-2xx       │ FetchFailed   │
    │ status 2xx?  ├────────────────►│ (reason)      │
    └──────┬──────┘                 └──────────────┘
           ▼
    ┌─────────────┐
    │ response.text│
    └─────────────┘
"""

import asyncio
import logging
import time

import httpx
from prometheus_client import Counter, Histogram

from app.config import Settings
from app.enums import FetchStatus
from app.exceptions import FetchFailed

__all__ = ["MetadataFetcher", "build_http_client", "browser_headers"]

SCRAPE_FETCHES_TOTAL = Counter(
    "url_shortener_scrape_fetches_total",
    "Outbound product page fetches",
    ["status"],
)
SCRAPE_FETCH_DURATION = Histogram(
    "url_shortener_scrape_fetch_duration_seconds",
    "Time taken to fetch product pages",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


def browser_headers(user_agent: str) -> dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
    }


def build_http_client(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers=browser_headers(settings.SCRAPE_USER_AGENT),
        timeout=settings.SCRAPE_TIMEOUT_SECONDS,
        follow_redirects=True,
        max_redirects=settings.SCRAPE_MAX_REDIRECTS,
        transport=transport,
    )


class MetadataFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        logger: logging.Logger | logging.LoggerAdapter,
        timeout: float,
    ):
        self._client = client
        self._logger = logger
        self._timeout = timeout

    async def fetch(self, url: str) -> str:
        """Return the page markup or raise FetchFailed."""
        start_time = time.perf_counter()
        try:
            # the client timeout is per phase; this bounds the whole exchange
            async with asyncio.timeout(self._timeout):
                response = await self._client.get(url)
        except (httpx.TimeoutException, TimeoutError) as exc:
            SCRAPE_FETCHES_TOTAL.labels(status=FetchStatus.TIMEOUT).inc()
            self._logger.warning(f"Timed out fetching {url}: {exc!r}")
            raise FetchFailed(f"timeout fetching {url}") from exc
        except httpx.TooManyRedirects as exc:
            SCRAPE_FETCHES_TOTAL.labels(status=FetchStatus.HTTP_ERROR).inc()
            self._logger.warning(f"Too many redirects fetching {url}")
            raise FetchFailed(f"too many redirects fetching {url}") from exc
        except httpx.HTTPError as exc:
            SCRAPE_FETCHES_TOTAL.labels(status=FetchStatus.NETWORK_ERROR).inc()
            self._logger.warning(f"Network error fetching {url}: {exc!r}")
            raise FetchFailed(f"network error fetching {url}: {exc}") from exc
        finally:
            SCRAPE_FETCH_DURATION.observe(time.perf_counter() - start_time)

        if not response.is_success:
            SCRAPE_FETCHES_TOTAL.labels(status=FetchStatus.HTTP_ERROR).inc()
            self._logger.warning(f"Fetching {url} returned HTTP {response.status_code}")
            raise FetchFailed(f"HTTP {response.status_code} fetching {url}")

        SCRAPE_FETCHES_TOTAL.labels(status=FetchStatus.SUCCESS).inc()
        self._logger.debug(f"Fetched {url} ({len(response.content)} bytes)")
        return response.text
