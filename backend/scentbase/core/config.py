from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Any
import json


def _split_list(v: Any) -> Any:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, str) and v.startswith("["):
        return json.loads(v)
    elif isinstance(v, list):
        # If it's already a list, ensure it's not a nested list like [['a', 'b']]
        if len(v) == 1 and isinstance(v[0], list):
            return v[0]
        return v
    return v


class Settings(BaseSettings):
    """Application settings"""

    # Application
    PROJECT_NAME: str = "Scentbase"
    DEBUG: bool = False
    API_KEY: str = ""

    # Database (empty = in-memory catalog store)
    DATABASE_URL: str = ""

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    # Scraper settings
    SCRAPER_SITE_ORIGIN: str = "https://www.fragrantica.com"
    SCRAPER_MIN_DELAY: float = 3.0  # seconds between fetch starts
    SCRAPER_FETCH_TIMEOUT: float = 60.0
    SCRAPER_CONTENT_TIMEOUT: float = 10.0
    SCRAPER_CONTENT_SELECTOR: str = "h1"
    SCRAPER_USER_AGENTS: List[str] = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    ]
    SCRAPER_VIEWPORT_WIDTH: int = 1366
    SCRAPER_VIEWPORT_HEIGHT: int = 768
    SCRAPER_RATE_LIMIT_PHRASES: List[str] = [
        "too many requests",
        "rate limit",
        "blocked",
        "access denied",
        "403 forbidden",
        "error 429",
        "just a moment",
        "checking your browser",
        "verify you are human",
        "attention required",
        "error 1015",
    ]
    SCRAPER_CACHE_TTL: int = 86400  # 24h
    SCRAPER_MAX_BATCH: int = 10
    SCRAPER_REQUESTS_PER_MINUTE: int = 5  # single-URL scrape endpoint
    SCRAPER_LOG_DIR: str = ""

    # Queue settings
    QUEUE_ITEM_DELAY: float = 15.0
    QUEUE_RATE_LIMIT_PAUSE: float = 120.0
    QUEUE_MAX_RATE_LIMITS: int = 3
    QUEUE_RECENT_ERRORS: int = 50
    QUEUE_STATUS_ERRORS: int = 10

    @field_validator("CORS_ORIGINS", "SCRAPER_USER_AGENTS", mode="before")
    @classmethod
    def assemble_list(cls, v: Any) -> List[str]:
        return _split_list(v)

    @field_validator("SCRAPER_RATE_LIMIT_PHRASES", mode="before")
    @classmethod
    def assemble_phrases(cls, v: Any) -> List[str]:
        v = _split_list(v)
        if isinstance(v, list):
            return [str(p).lower() for p in v]
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


settings = Settings()
