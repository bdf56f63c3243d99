"""Browser-rendered page fetching with block-page detection."""
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncContextManager, AsyncIterator, Callable, Iterable, Optional

from bs4 import BeautifulSoup
from playwright.async_api import Browser, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from scentbase.core.config import Settings, settings as default_settings
from scentbase.scraper.base import RateLimiter, UserAgentRotator
from scentbase.scraper.errors import FetchError, FetchErrorKind

logger = logging.getLogger(__name__)

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]
BODY_PREFIX_CHARS = 500
RATE_LIMIT_STATUSES = {403, 429}

BrowserFactory = Callable[[], AsyncContextManager[Browser]]


@dataclass(frozen=True)
class FetchedPage:
    url: str
    html: str
    status: Optional[int] = None


@asynccontextmanager
async def launch_chromium() -> AsyncIterator[Browser]:
    """Launch a headless Chromium and close it on exit, whatever happened."""
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=True, args=BROWSER_ARGS)
        try:
            yield browser
        finally:
            await browser.close()


def detect_block(
    title: str,
    heading: str,
    body_prefix: str,
    phrases: Iterable[str],
) -> Optional[str]:
    """Return the first block/rate-limit phrase found in the page, if any."""
    haystack = " ".join((title, heading, body_prefix)).lower()
    for phrase in phrases:
        if phrase and phrase.lower() in haystack:
            return phrase
    return None


def page_signature(html: str) -> tuple[str, str, str]:
    """Title, first heading and body-text prefix of a rendered page."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    h1 = soup.find("h1")
    heading = h1.get_text(" ", strip=True) if h1 else ""
    body = soup.body or soup
    return title, heading, body.get_text(" ", strip=True)[:BODY_PREFIX_CHARS]


class PageFetcher:
    """Fetches fully rendered HTML through a real browser.

    Every call waits on the rate limiter first, so consecutive fetches start
    at least ``SCRAPER_MIN_DELAY`` seconds apart. The browser is launched per
    fetch and torn down before returning or raising.
    """

    def __init__(
        self,
        config: Settings = default_settings,
        rate_limiter: Optional[RateLimiter] = None,
        user_agents: Optional[UserAgentRotator] = None,
        browser_factory: Optional[BrowserFactory] = None,
    ):
        self._config = config
        self._rate_limiter = rate_limiter or RateLimiter(config.SCRAPER_MIN_DELAY)
        self._user_agents = user_agents or UserAgentRotator(config.SCRAPER_USER_AGENTS)
        self._browser_factory = browser_factory or launch_chromium
        self._phrases = list(config.SCRAPER_RATE_LIMIT_PHRASES)

    async def fetch(self, url: str, content_selector: Optional[str] = None) -> FetchedPage:
        """Render ``url`` and return its HTML.

        Args:
            url: Page to load.
            content_selector: Element to wait for before reading the DOM.
                None means the configured default; an empty string skips the wait.

        Raises:
            FetchError: RATE_LIMITED when the source serves a block page or a
                403/429, NETWORK_FAILURE for anything else that prevents loading.
        """
        await self._rate_limiter.wait()
        selector = self._config.SCRAPER_CONTENT_SELECTOR if content_selector is None else content_selector

        logger.info(f"Fetching {url}")
        async with AsyncExitStack() as stack:
            try:
                browser = await stack.enter_async_context(self._browser_factory())
            except Exception as e:
                logger.error(f"Browser launch failed while fetching {url}: {e}")
                raise FetchError(
                    FetchErrorKind.NETWORK_FAILURE, f"browser launch failed: {e}"
                ) from e
            try:
                status, html = await self._render(browser, url, selector)
            except PlaywrightError as e:
                raise FetchError(FetchErrorKind.NETWORK_FAILURE, f"Browser error for {url}: {e}") from e

        if status in RATE_LIMIT_STATUSES:
            logger.warning(f"Rate limited by source (HTTP {status}): {url}")
            raise FetchError(FetchErrorKind.RATE_LIMITED, f"HTTP {status} for {url}")
        if status is not None and status >= 400:
            raise FetchError(FetchErrorKind.NETWORK_FAILURE, f"HTTP {status} for {url}")

        phrase = detect_block(*page_signature(html), self._phrases)
        if phrase:
            logger.warning(f"Block page detected ('{phrase}'): {url}")
            raise FetchError(
                FetchErrorKind.RATE_LIMITED, f"Too Many Requests or blocked ('{phrase}') for {url}"
            )

        return FetchedPage(url=url, html=html, status=status)

    async def _render(self, browser: Browser, url: str, selector: str) -> tuple[Optional[int], str]:
        context = await browser.new_context(
            user_agent=self._user_agents.get(),
            viewport={
                "width": self._config.SCRAPER_VIEWPORT_WIDTH,
                "height": self._config.SCRAPER_VIEWPORT_HEIGHT,
            },
            locale="en-US",
        )
        try:
            page = await context.new_page()
            try:
                response = await page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=self._config.SCRAPER_FETCH_TIMEOUT * 1000,
                )
            except PlaywrightTimeoutError as e:
                raise FetchError(FetchErrorKind.NETWORK_FAILURE, f"Timeout loading {url}: {e}") from e
            except PlaywrightError as e:
                raise FetchError(FetchErrorKind.NETWORK_FAILURE, f"Navigation failed for {url}: {e}") from e

            if selector:
                try:
                    await page.wait_for_selector(
                        selector, timeout=self._config.SCRAPER_CONTENT_TIMEOUT * 1000
                    )
                except PlaywrightTimeoutError:
                    # Block pages often lack the element; detection decides below
                    logger.warning(f"Content element '{selector}' did not appear for {url}")

            html = await page.content()
            return (response.status if response is not None else None), html
        finally:
            await context.close()
