import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scentbase.api.admin.scraper import router as scraper_router
from scentbase.core.config import Settings, settings
from scentbase.db.database import create_engine, create_session_maker, create_tables
from scentbase.scraper import (
    PageFetcher,
    PerfumeScraper,
    RecordCache,
    ScrapeQueueManager,
    UrlDiscovery,
)
from scentbase.scraper.base import WindowRateLimiter
from scentbase.scraper.fetcher import BrowserFactory
from scentbase.services.catalog_store import create_catalog_store
from scentbase.services.scraping_service import ScrapingService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


def init_components(
    app: FastAPI,
    config: Settings,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    browser_factory: Optional[BrowserFactory] = None,
) -> None:
    """Build one instance of each scraping component and attach it to app.state."""
    store = create_catalog_store(session_maker)
    fetcher = PageFetcher(config, browser_factory=browser_factory)
    scraper = PerfumeScraper(fetcher, RecordCache(default_ttl=config.SCRAPER_CACHE_TTL), config)

    app.state.settings = config
    app.state.catalog_store = store
    app.state.scraping_service = ScrapingService(scraper, store, max_batch=config.SCRAPER_MAX_BATCH)
    app.state.queue_manager = ScrapeQueueManager.from_settings(scraper, store, config)
    app.state.url_discovery = UrlDiscovery(fetcher, config)
    app.state.scrape_request_limiter = WindowRateLimiter(config.SCRAPER_REQUESTS_PER_MINUTE, window=60.0)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config: Settings = app.state.settings
    engine = None
    session_maker = None
    if config.DATABASE_URL:
        engine = create_engine(config.DATABASE_URL, echo=config.DEBUG)
        await create_tables(engine)
        session_maker = create_session_maker(engine)

    init_components(app, config, session_maker)
    logger.info(f"{config.PROJECT_NAME} API started")
    try:
        yield
    finally:
        await app.state.queue_manager.shutdown()
        if engine is not None:
            await engine.dispose()
        logger.info(f"{config.PROJECT_NAME} API stopped")


def create_app(config: Settings = settings) -> FastAPI:
    app = FastAPI(
        title=f"{config.PROJECT_NAME} API",
        description="Perfume catalog API and scraping pipeline",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = config

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(scraper_router, prefix="/api/scrape")

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "status": "ok",
            "message": f"{config.PROJECT_NAME} API",
            "version": "0.1.0",
        }

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "healthy"}

    return app


app = create_app()
