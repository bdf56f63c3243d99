"""Scraper admin API endpoints."""
import uuid
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query

from scentbase.api.dependencies import (
    get_queue_manager,
    get_scraping_service,
    get_url_discovery,
    limit_scrape_requests,
    require_api_key,
)
from scentbase.schemas.perfume import ScrapedRecord
from scentbase.schemas.scraper import (
    BatchRequest,
    BatchResult,
    CacheStats,
    DiscoveryResult,
    EnqueueResult,
    QueueStatus,
    SitemapRequest,
    StartResult,
    StopResult,
    UrlCheckResult,
    UrlListRequest,
)
from scentbase.scraper.discovery import UrlDiscovery
from scentbase.scraper.errors import FetchError, ScraperError, ScrapeValidationError
from scentbase.scraper.queue import ScrapeQueueManager
from scentbase.scraper.utils.urls import is_valid_url
from scentbase.services.scraping_service import ScrapingService

logger = logging.getLogger(__name__)

# Note: Prefix is handled in main.py
router = APIRouter(tags=["scraper"], dependencies=[Depends(require_api_key)])


def _raise_http(error: ScraperError) -> NoReturn:
    if isinstance(error, FetchError):
        code = 429 if error.rate_limited else 502
    elif isinstance(error, ScrapeValidationError):
        code = 422
    else:
        code = 500
    raise HTTPException(status_code=code, detail=str(error)) from error


def _require_urls(urls: list) -> None:
    if not urls:
        raise HTTPException(status_code=400, detail="A non-empty list of URLs is required")


@router.get("/perfume", response_model=ScrapedRecord, dependencies=[Depends(limit_scrape_requests)])
async def scrape_perfume(
    url: str = Query(..., min_length=1),
    save: bool = False,
    service: ScrapingService = Depends(get_scraping_service),
):
    """Scrape one product page, optionally saving it to the catalog."""
    if not is_valid_url(url):
        raise HTTPException(status_code=400, detail=f"Invalid URL: {url}")
    logger.info(f"Scrape request: {url}")
    try:
        return await service.scrape_one(url, save=save)
    except ScraperError as e:
        _raise_http(e)


@router.post("/batch", response_model=BatchResult)
async def scrape_batch(
    request: BatchRequest,
    service: ScrapingService = Depends(get_scraping_service),
):
    """Scrape a handful of URLs sequentially and report each outcome."""
    _require_urls(request.urls)
    invalid = [u for u in request.urls if not is_valid_url(u)]
    if invalid:
        raise HTTPException(status_code=400, detail=f"Invalid URL: {invalid[0]}")
    try:
        return await service.scrape_batch(request.urls, save=request.save)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/sitemap", response_model=DiscoveryResult)
async def discover_urls(
    request: SitemapRequest,
    discovery: UrlDiscovery = Depends(get_url_discovery),
):
    """List product URLs for a brand, or from the site's perfume sitemap."""
    try:
        return await discovery.discover(brand=request.brand, limit=request.limit)
    except ScraperError as e:
        _raise_http(e)


@router.post("/queue/check", response_model=UrlCheckResult)
async def check_urls(
    request: UrlListRequest,
    queue: ScrapeQueueManager = Depends(get_queue_manager),
):
    """Report which URLs are already in the catalog."""
    _require_urls(request.urls)
    return await queue.check(request.urls)


@router.post("/queue", response_model=EnqueueResult)
async def enqueue_urls(
    request: UrlListRequest,
    queue: ScrapeQueueManager = Depends(get_queue_manager),
):
    """Add URLs to the background queue without starting it."""
    _require_urls(request.urls)
    return await queue.enqueue(request.urls)


@router.post("/queue/start", response_model=StartResult, status_code=202)
async def start_queue(queue: ScrapeQueueManager = Depends(get_queue_manager)):
    """Start draining the queue in the background."""
    return queue.start()


@router.post("/queue/stop", response_model=StopResult)
async def stop_queue(queue: ScrapeQueueManager = Depends(get_queue_manager)):
    """Stop after the URL currently being scraped."""
    return queue.stop()


@router.get("/queue/status", response_model=QueueStatus)
async def queue_status(queue: ScrapeQueueManager = Depends(get_queue_manager)):
    return queue.status()


@router.delete("/queue")
async def clear_queue(queue: ScrapeQueueManager = Depends(get_queue_manager)):
    queue.clear()
    return {"message": "Queue cleared"}


@router.post("/rescrape/{perfume_id}", response_model=ScrapedRecord)
async def rescrape_perfume(
    perfume_id: uuid.UUID,
    service: ScrapingService = Depends(get_scraping_service),
):
    """Refresh a stored perfume from its source page, bypassing the cache."""
    try:
        updated = await service.rescrape(perfume_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ScraperError as e:
        _raise_http(e)
    if updated is None:
        raise HTTPException(status_code=404, detail="Perfume not found")
    return updated


@router.get("/cache/stats", response_model=CacheStats)
async def cache_stats(service: ScrapingService = Depends(get_scraping_service)):
    return service.cache_stats()


@router.delete("/cache")
async def clear_cache(service: ScrapingService = Depends(get_scraping_service)):
    service.cache_clear()
    return {"message": "Cache cleared"}
