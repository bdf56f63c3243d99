"""FastAPI dependencies: API-key guard and accessors for app-scoped components."""
import logging
import math
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from scentbase.core.config import Settings
from scentbase.scraper.base import WindowRateLimiter
from scentbase.scraper.discovery import UrlDiscovery
from scentbase.scraper.queue import ScrapeQueueManager
from scentbase.services.scraping_service import ScrapingService

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_scraping_service(request: Request) -> ScrapingService:
    return request.app.state.scraping_service


def get_queue_manager(request: Request) -> ScrapeQueueManager:
    return request.app.state.queue_manager


def get_url_discovery(request: Request) -> UrlDiscovery:
    return request.app.state.url_discovery


async def require_api_key(
    x_api_key: Optional[str] = Header(default=None, alias="x-api-key"),
    config: Settings = Depends(get_settings),
) -> None:
    """Reject the request unless ``x-api-key`` matches the configured key."""
    if not config.API_KEY:
        logger.warning("API_KEY not configured, rejecting scraper request")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server not configured correctly - API_KEY missing",
        )
    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key is required in x-api-key header",
        )
    if not secrets.compare_digest(x_api_key, config.API_KEY):
        logger.warning("Invalid API key provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def limit_scrape_requests(request: Request) -> None:
    """Cap direct single-URL scrapes per rolling minute."""
    limiter: WindowRateLimiter = request.app.state.scrape_request_limiter
    if not limiter.try_acquire():
        retry_after = math.ceil(limiter.retry_after())
        logger.warning(f"Scrape request limit reached, retry in {retry_after}s")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Scrape limit reached, wait a moment",
            headers={"Retry-After": str(retry_after)},
        )
