"""Scraper package - fetching, extraction and queueing of perfume pages."""
from .base import RateLimiter, UserAgentRotator
from .discovery import UrlDiscovery
from .errors import FetchError, FetchErrorKind, ScrapeValidationError, ScraperError
from .fetcher import PageFetcher
from .perfume_scraper import PerfumeScraper
from .queue import ScrapeQueueManager
from .utils.cache import RecordCache

__all__ = [
    "RateLimiter",
    "UserAgentRotator",
    "UrlDiscovery",
    "FetchError",
    "FetchErrorKind",
    "ScrapeValidationError",
    "ScraperError",
    "PageFetcher",
    "PerfumeScraper",
    "ScrapeQueueManager",
    "RecordCache",
]
