"""
Job page fetchers.

Two interchangeable backends behind PageFetcher:
- BrowserPageFetcher: Playwright headless Chromium, for JS-rendered pages
- DirectPageFetcher: plain HTTP GET via httpx

Both bound concurrency with one shared asyncio.Semaphore (a headless
browser is memory-hungry) and reject error pages instead of handing them to
extraction. The backend is chosen statically at start-up; there is no
fallback to mock data on failure.
"""

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from jobref.common.config import Config
from jobref.common.error_handling import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# Chromium flags that keep a single headless instance small
BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--no-zygote",
    "--js-flags=--max-old-space-size=256",
]

CONTENT_SELECTOR = ".job-container, main, h1, article"
CONTENT_WAIT_MS = 5000

_ERROR_TITLE = re.compile(r"404|not found|page not found", re.IGNORECASE)
_TITLE_TAG = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)


def detect_error_page(html: str) -> Optional[str]:
    """
    Return the page title when it marks an error page, else None.
    """
    match = _TITLE_TAG.search(html or "")
    if not match:
        return None
    title = " ".join(match.group(1).split())
    return title if _ERROR_TITLE.search(title) else None


class PageFetcher(ABC):
    """Fetches the rendered HTML of a job page."""

    def __init__(self, max_concurrency: Optional[int] = None, semaphore: Optional[asyncio.Semaphore] = None):
        """
        Args:
            max_concurrency: Concurrent fetch limit (defaults to FETCH_MAX_CONCURRENCY)
            semaphore: Shared semaphore, overrides max_concurrency
        """
        limit = max_concurrency if max_concurrency is not None else Config.FETCH_MAX_CONCURRENCY
        self.semaphore = semaphore or asyncio.Semaphore(max(1, limit))

    async def fetch(self, url: str) -> str:
        """
        Fetch a job page.

        Returns:
            Page HTML

        Raises:
            FetchError: navigation/network failure, non-2xx status or error page
        """
        async with self.semaphore:
            started = time.monotonic()
            html = await self._fetch(url)
            logger.info(f"Fetched {url} ({len(html)} bytes in {time.monotonic() - started:.1f}s)")

        error_title = detect_error_page(html)
        if error_title:
            raise FetchError(f"Job page not found (page title: {error_title!r})", url=url, status_code=404)
        if not html.strip():
            raise FetchError("Job page returned no content", url=url)
        return html

    @abstractmethod
    async def _fetch(self, url: str) -> str:
        pass

    async def aclose(self) -> None:
        """Release backend resources."""
        return None


class DirectPageFetcher(PageFetcher):
    """Plain HTTP GET; fine for server-rendered pages."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.timeout = timeout if timeout is not None else Config.NAVIGATION_TIMEOUT_SECONDS
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=HEADERS,
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def _fetch(self, url: str) -> str:
        try:
            response = await self._get_client().get(url)
        except httpx.TimeoutException as e:
            raise FetchError(f"Request timed out after {self.timeout}s", url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Network error: {e}", url=url) from e

        if response.status_code == 404:
            raise FetchError("Job page not found", url=url, status_code=404)
        if not 200 <= response.status_code < 300:
            raise FetchError(
                f"Job page returned status {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        return response.text

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class BrowserPageFetcher(PageFetcher):
    """
    Headless Chromium via Playwright.

    One browser per fetch: the semaphore keeps at most max_concurrency
    alive, and nothing leaks between fetches.
    """

    def __init__(
        self,
        headless: Optional[bool] = None,
        navigation_timeout: Optional[float] = None,
        settle_delay: Optional[float] = None,
        screenshot_dir: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.headless = headless if headless is not None else Config.PLAYWRIGHT_HEADLESS
        self.navigation_timeout = (
            navigation_timeout if navigation_timeout is not None else Config.NAVIGATION_TIMEOUT_SECONDS
        )
        self.settle_delay = settle_delay if settle_delay is not None else Config.SETTLE_DELAY_SECONDS
        directory = screenshot_dir if screenshot_dir is not None else Config.DEBUG_SCREENSHOT_DIR
        self.screenshot_dir = Path(directory) if directory else None

    async def _fetch(self, url: str) -> str:
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
                try:
                    context = await browser.new_context(user_agent=USER_AGENT)
                    page = await context.new_page()
                    response = await page.goto(
                        url,
                        wait_until="domcontentloaded",
                        timeout=self.navigation_timeout * 1000,
                    )
                    if response is not None and response.status >= 400:
                        raise FetchError(
                            f"Job page returned status {response.status}",
                            url=url,
                            status_code=response.status,
                        )

                    try:
                        await page.wait_for_selector(CONTENT_SELECTOR, timeout=CONTENT_WAIT_MS)
                    except PlaywrightTimeoutError:
                        logger.warning(f"Content selector not found on {url}; continuing with current DOM")

                    if self.settle_delay > 0:
                        await asyncio.sleep(self.settle_delay)

                    if self.screenshot_dir is not None:
                        await self._screenshot(page, url)

                    return await page.content()
                finally:
                    await browser.close()
        except PlaywrightTimeoutError as e:
            raise FetchError(f"Navigation timed out after {self.navigation_timeout}s", url=url) from e
        except PlaywrightError as e:
            raise FetchError(f"Browser navigation failed: {e}", url=url) from e

    async def _screenshot(self, page, url: str) -> None:
        self.screenshot_dir.mkdir(parents=True, exist_ok=True)
        slug = re.sub(r"[^A-Za-z0-9]+", "_", url)[-80:]
        path = self.screenshot_dir / f"{int(time.time())}_{slug}.png"
        await page.screenshot(path=str(path), full_page=True)
        logger.debug(f"Saved debug screenshot {path}")


def create_page_fetcher(backend: Optional[str] = None, **kwargs) -> PageFetcher:
    """
    Build the configured fetcher.

    Args:
        backend: "browser" or "direct" (defaults to FETCHER_BACKEND)
        **kwargs: Passed to the fetcher constructor

    Raises:
        ValueError: unknown backend
    """
    backend = (backend or Config.FETCHER_BACKEND).lower()
    if backend == "browser":
        return BrowserPageFetcher(**kwargs)
    if backend == "direct":
        return DirectPageFetcher(**kwargs)
    raise ValueError(f"Unknown fetcher backend: {backend}")
