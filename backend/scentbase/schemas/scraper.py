"""Request and response schemas for the scraping API and queue."""
from datetime import datetime
from typing import Optional, List

from pydantic import Field

from scentbase.schemas.base import CamelModel
from scentbase.schemas.perfume import ScrapedRecord


class UrlListRequest(CamelModel):
    urls: List[str] = Field(default_factory=list)


class BatchRequest(CamelModel):
    urls: List[str] = Field(default_factory=list)
    save: bool = False


class SitemapRequest(CamelModel):
    brand: Optional[str] = None
    limit: int = Field(default=100, ge=1, le=5000)


class EnqueueResult(CamelModel):
    added: int
    skipped: int
    queue_size: int


class StartResult(CamelModel):
    started: bool
    message: str
    queue_size: int


class StopResult(CamelModel):
    message: str
    processed: int
    remaining: int


class QueueError(CamelModel):
    url: str
    error: str
    time: datetime


class QueueStatus(CamelModel):
    """Snapshot of the scrape queue."""
    processing: bool
    current: Optional[str] = None
    processed: int = 0
    failed: int = 0
    remaining: int = 0
    total: int = 0
    started_at: Optional[datetime] = None
    errors: List[QueueError] = Field(default_factory=list)


class UrlCheckResult(CamelModel):
    total: int
    existing_count: int
    new_count: int
    existing: List[str] = Field(default_factory=list)
    new_urls: List[str] = Field(default_factory=list)


class BatchItemResult(CamelModel):
    url: str
    success: bool
    data: Optional[ScrapedRecord] = None
    error: Optional[str] = None


class BatchResult(CamelModel):
    processed: int
    failed: int
    results: List[BatchItemResult] = Field(default_factory=list)


class CacheStats(CamelModel):
    hits: int = 0
    misses: int = 0
    keys: int = 0


class DiscoveryResult(CamelModel):
    urls: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    count: int = 0
