"""
Pytest configuration and fixtures.

No test touches the network or a real browser: Playwright is replaced by
``FakeBrowserFactory`` and every sleep by a ``SleepRecorder``.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Dict, List, Optional, Union

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from scentbase.core.config import Settings
from scentbase.schemas.perfume import ScrapedRecord
from scentbase.scraper.base import RateLimiter, UserAgentRotator
from scentbase.scraper.fetcher import PageFetcher
from scentbase.scraper.perfume_scraper import PerfumeScraper
from scentbase.scraper.utils.cache import RecordCache
from scentbase.services.catalog_store import InMemoryCatalogStore


PRODUCT_HTML = """
<html>
<head><title>Sauvage Dior cologne - a fragrance for men 2015</title></head>
<body>
  <div id="toptop"><h1 itemprop="name">Sauvage Dior for men</h1></div>
  <p itemprop="brand"><a href="/designers/Dior.html"><span itemprop="name">Dior</span></a></p>
  <span class="concentration">Eau de Toilette</span>
  <div class="cell accord-box">
    <div class="accord-bar" style="background: rgb(204, 224, 0); width: 100%;">fresh spicy</div>
    <div class="accord-bar" style="background-color: #7a4b2d; width: 62.5%;">amber</div>
  </div>
  <div itemprop="description">
    <p>Sauvage by Dior is a Aromatic Fougere fragrance for men. Sauvage was launched in 2015.
    The nose behind this fragrance is Francois Demachy.</p>
  </div>
  <a href="/noses/Francois-Demachy.html">Francois Demachy</a>
  <div id="pyramid">
    <div class="notes-box top-notes">
      <a href="/notes/Calabrian-bergamot-75.html">Calabrian bergamot</a>
      <a href="/notes/Pepper-152.html">Pepper</a>
    </div>
    <div class="notes-box middle-notes">
      <a href="/notes/Sichuan-Pepper-1131.html">Sichuan Pepper</a>
      <a href="/notes/Lavender-2.html"><img alt="Lavender" src="/img/lavender.jpg"></a>
    </div>
    <div class="notes-box base-notes">
      <a href="/notes/Ambroxan-1.html">Ambroxan</a>
      <a href="/notes/Cedar-9.html" title="Cedar"></a>
    </div>
  </div>
  <img itemprop="image" src="//fimgs.net/mdimg/perfume/375x500.31861.jpg" alt="Sauvage">
  <span itemprop="ratingValue">4.21</span>
</body>
</html>
"""

BLOCK_HTML = """
<html>
<head><title>Just a moment...</title></head>
<body><h1>Checking your browser before accessing fragrantica.com</h1></body>
</html>
"""

NO_BRAND_HTML = """
<html><head><title>Mystery Scent</title></head>
<body><h1>Mystery Scent</h1><p>Nothing else here.</p></body></html>
"""


@dataclass
class FakeRoute:
    """What the fake browser serves for one URL."""
    html: str = ""
    status: Optional[int] = 200
    missing_selector: bool = False


RouteSpec = Union[FakeRoute, BaseException]


class FakeResponse:
    def __init__(self, status: Optional[int]):
        self.status = status


class FakePage:
    def __init__(self, factory: "FakeBrowserFactory"):
        self._factory = factory
        self._route: Optional[FakeRoute] = None

    async def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[float] = None):
        self._factory.visited.append(url)
        route = self._factory.routes.get(url, FakeRoute(html="", status=404))
        if isinstance(route, BaseException):
            raise route
        self._route = route
        return FakeResponse(route.status)

    async def wait_for_selector(self, selector: str, timeout: Optional[float] = None):
        self._factory.selectors.append(selector)
        if self._route is not None and self._route.missing_selector:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def content(self) -> str:
        return self._route.html if self._route else ""


class FakeContext:
    def __init__(self, factory: "FakeBrowserFactory", options: dict):
        self._factory = factory
        self.options = options
        self.closed = False

    async def new_page(self) -> FakePage:
        return FakePage(self._factory)

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, factory: "FakeBrowserFactory"):
        self._factory = factory

    async def new_context(self, **options) -> FakeContext:
        context = FakeContext(self._factory, options)
        self._factory.contexts.append(context)
        return context


class FakeBrowserFactory:
    """Stands in for ``launch_chromium``; serves canned pages by URL."""

    def __init__(self, routes: Optional[Dict[str, RouteSpec]] = None, launch_error: Optional[Exception] = None):
        self.routes: Dict[str, RouteSpec] = dict(routes or {})
        self.launch_error = launch_error
        self.launches = 0
        self.closes = 0
        self.visited: List[str] = []
        self.selectors: List[str] = []
        self.contexts: List[FakeContext] = []

    def serve(self, url: str, html: str, status: Optional[int] = 200, missing_selector: bool = False) -> None:
        self.routes[url] = FakeRoute(html=html, status=status, missing_selector=missing_selector)

    def fail(self, url: str, error: BaseException) -> None:
        self.routes[url] = error

    @asynccontextmanager
    async def __call__(self):
        if self.launch_error is not None:
            raise self.launch_error
        self.launches += 1
        try:
            yield FakeBrowser(self)
        finally:
            self.closes += 1


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self, clock: Optional["FakeClock"] = None):
        self.calls: List[float] = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)
        await asyncio.sleep(0)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_record(url: str, name: str = "Sauvage", brand: str = "Dior", **extra) -> ScrapedRecord:
    return ScrapedRecord(name=name, brand=brand, source_url=url, **extra)


@pytest.fixture
def make_record():
    return _make_record


@pytest.fixture
def product_html() -> str:
    return PRODUCT_HTML


@pytest.fixture
def block_html() -> str:
    return BLOCK_HTML


@pytest.fixture
def no_brand_html() -> str:
    return NO_BRAND_HTML


@pytest.fixture
def fake_clock() -> "FakeClock":
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment, with every delay at zero."""
    return Settings(
        _env_file=None,
        API_KEY="test-key",
        DATABASE_URL="",
        SCRAPER_MIN_DELAY=0,
        QUEUE_ITEM_DELAY=0,
        QUEUE_RATE_LIMIT_PAUSE=0,
        SCRAPER_LOG_DIR="",
    )


@pytest.fixture
def browser_factory() -> FakeBrowserFactory:
    return FakeBrowserFactory()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def queue_sleep() -> SleepRecorder:
    """Separate recorder for queue delays, so fetch-spacing sleeps do not mix in."""
    return SleepRecorder()


@pytest.fixture
def clocked_sleep(fake_clock) -> SleepRecorder:
    """Sleep recorder that advances ``fake_clock`` by each requested delay."""
    return SleepRecorder(fake_clock)


@pytest.fixture
def fetcher(test_settings, browser_factory, sleep_recorder) -> PageFetcher:
    return PageFetcher(
        test_settings,
        rate_limiter=RateLimiter(min_delay=0, sleep=sleep_recorder),
        user_agents=UserAgentRotator(["TestAgent/1.0"]),
        browser_factory=browser_factory,
    )


@pytest.fixture
def cache() -> RecordCache:
    return RecordCache(default_ttl=60)


@pytest.fixture
def scraper(fetcher, cache, test_settings) -> PerfumeScraper:
    return PerfumeScraper(fetcher, cache, test_settings)


@pytest.fixture
def store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore()


@pytest.fixture
def api_app(test_settings, browser_factory):
    """FastAPI app with components wired to the fake browser (lifespan not run)."""
    from main import create_app, init_components

    app = create_app(test_settings)
    init_components(app, test_settings, browser_factory=browser_factory)
    return app


@pytest_asyncio.fixture
async def client(api_app) -> AsyncGenerator[AsyncClient, None]:
    """Async test HTTP client for the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def api_headers() -> Dict[str, str]:
    return {"x-api-key": "test-key"}
