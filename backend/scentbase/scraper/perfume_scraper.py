"""Single-URL scrape: cache, fetch, extract, validate."""
import logging
from typing import Iterable, Optional

from scentbase.core.config import Settings, settings as default_settings
from scentbase.schemas.perfume import ScrapedRecord
from scentbase.scraper.errors import ScrapeValidationError
from scentbase.scraper.extractor import extract, parse_html
from scentbase.scraper.fetcher import PageFetcher
from scentbase.scraper.utils.cache import RecordCache

logger = logging.getLogger(__name__)


def validate(record: ScrapedRecord, rate_limit_phrases: Iterable[str] = ()) -> ScrapedRecord:
    """Reject records that must never reach the catalog.

    Raises:
        ScrapeValidationError: name missing or looking like a block page,
            or brand missing.
    """
    name = (record.name or "").strip()
    if not name:
        raise ScrapeValidationError(f"No perfume name found at {record.source_url}")
    lowered = name.lower()
    for phrase in rate_limit_phrases:
        if phrase and phrase.lower() in lowered:
            raise ScrapeValidationError(
                f"Name '{name}' looks like a block page ('{phrase}') at {record.source_url}"
            )
    if not (record.brand or "").strip():
        raise ScrapeValidationError(f"No brand found for '{name}' at {record.source_url}")
    return record


class PerfumeScraper:
    """Turns a product page URL into a validated record.

    Errors from the fetcher or from validation propagate unchanged; retry
    policy belongs to the queue.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        cache: RecordCache,
        config: Settings = default_settings,
    ):
        self._fetcher = fetcher
        self._cache = cache
        self._config = config

    @property
    def cache(self) -> RecordCache:
        return self._cache

    async def scrape(self, url: str, force_refresh: bool = False) -> ScrapedRecord:
        if not force_refresh:
            cached: Optional[ScrapedRecord] = self._cache.get(url)
            if cached is not None:
                logger.info(f"Cache hit: {url}")
                return cached

        logger.info(f"Scraping: {url}")
        page = await self._fetcher.fetch(url)
        record = extract(
            parse_html(page.html),
            url,
            site_origin=self._config.SCRAPER_SITE_ORIGIN,
        )
        validate(record, self._config.SCRAPER_RATE_LIMIT_PHRASES)

        self._cache.set(url, record, ttl=self._config.SCRAPER_CACHE_TTL)
        logger.info(f"Scraped '{record.name}' by {record.brand}")
        return record
