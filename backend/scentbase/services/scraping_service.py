"""Direct, request-scoped scraping: single URLs, small batches and re-scrapes."""
import logging
from typing import Any, Dict, List, Optional

from scentbase.schemas.perfume import SCRAPED_FIELDS, ScrapedRecord
from scentbase.schemas.scraper import BatchItemResult, BatchResult, CacheStats
from scentbase.scraper.errors import ScraperError
from scentbase.scraper.perfume_scraper import PerfumeScraper
from scentbase.services.catalog_store import CatalogStore, PerfumeId

logger = logging.getLogger(__name__)


class ScrapingService:
    def __init__(self, scraper: PerfumeScraper, store: CatalogStore, max_batch: int = 10):
        self._scraper = scraper
        self._store = store
        self.max_batch = max_batch

    async def scrape_one(self, url: str, save: bool = False) -> ScrapedRecord:
        """Scrape ``url`` and optionally persist it. Scraper errors propagate."""
        record = await self._scraper.scrape(url)
        if save:
            record = await self._store.add(record)
            logger.info(f"Saved scraped perfume {record.id}: {record.name}")
        return record

    async def scrape_batch(self, urls: List[str], save: bool = False) -> BatchResult:
        """Scrape URLs one after another, collecting per-URL outcomes.

        Raises:
            ValueError: ``urls`` is empty or longer than ``max_batch``.
        """
        if not urls:
            raise ValueError("A non-empty list of URLs is required")
        if len(urls) > self.max_batch:
            raise ValueError(f"At most {self.max_batch} URLs per batch")

        results = []
        for url in urls:
            try:
                record = await self.scrape_one(url, save=save)
                results.append(BatchItemResult(url=url, success=True, data=record))
            except ScraperError as e:
                logger.warning(f"Batch item failed: {url} - {e}")
                results.append(BatchItemResult(url=url, success=False, error=str(e)))
            except Exception as e:
                logger.warning(f"Batch item failed: {url} - {e}", exc_info=True)
                results.append(BatchItemResult(url=url, success=False, error=str(e)))

        failed = sum(1 for r in results if not r.success)
        logger.info(f"Batch complete: {len(results) - failed} ok, {failed} failed")
        return BatchResult(processed=len(results) - failed, failed=failed, results=results)

    async def rescrape(self, perfume_id: PerfumeId) -> Optional[ScrapedRecord]:
        """Refresh a stored perfume from its source page.

        Returns None when the perfume does not exist.

        Raises:
            ValueError: The stored perfume has no source URL.
            ScraperError: The fresh scrape failed; the stored record is untouched.
        """
        existing = await self._store.get_by_id(perfume_id)
        if existing is None:
            return None
        if not existing.source_url:
            raise ValueError(f"Perfume {perfume_id} has no source URL to re-scrape")

        logger.info(f"Re-scraping {existing.name} from {existing.source_url}")
        fresh = await self._scraper.scrape(existing.source_url, force_refresh=True)
        changes: Dict[str, Any] = fresh.model_dump(include=set(SCRAPED_FIELDS))
        return await self._store.update(existing.id, changes)

    def cache_stats(self) -> CacheStats:
        return self._scraper.cache.stats()

    def cache_clear(self) -> None:
        self._scraper.cache.clear()
        logger.info("Scrape cache cleared")
