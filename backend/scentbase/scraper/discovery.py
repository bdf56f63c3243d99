"""Discovery of product page URLs from designer pages and the sitemap."""
import logging
import re
from typing import List, Optional
from urllib.parse import quote, urljoin

from bs4 import BeautifulSoup

from scentbase.core.config import Settings, settings as default_settings
from scentbase.schemas.scraper import DiscoveryResult
from scentbase.scraper.errors import FetchError
from scentbase.scraper.fetcher import PageFetcher

logger = logging.getLogger(__name__)

PERFUME_LINK_SELECTOR = 'a[href*="/perfume/"]'
PERFUME_DETAIL_RE = re.compile(r"/perfume/[^/]+/[^/]+\.html$")
PERFUME_SITEMAP_RE = re.compile(r"sitemap_perfumes_\d+\.xml")


def brand_slug(brand: str) -> str:
    """'Tom Ford' -> 'Tom-Ford', "L'Artisan" -> 'LArtisan', 'D&G' -> 'DandG'."""
    slug = re.sub(r"\s+", "-", brand.strip())
    slug = re.sub(r"['’]", "", slug)
    return slug.replace("&", "and")


def _dedupe(urls: List[str]) -> List[str]:
    return list(dict.fromkeys(urls))


def parse_designer_links(html: str, base_url: str, strict: bool = True) -> List[str]:
    """Absolute product links found on a designer or search page.

    With ``strict`` only ``/perfume/<brand>/<name>.html`` links without a
    fragment or query are kept; otherwise any ``/perfume/...html`` link is.
    """
    soup = BeautifulSoup(html, "html.parser")
    urls = []
    for link in soup.select(PERFUME_LINK_SELECTOR):
        href = urljoin(base_url, link.get("href", "").strip())
        if strict:
            if "#" in href or "?" in href or not PERFUME_DETAIL_RE.search(href):
                continue
        elif "/perfume/" not in href or not href.endswith(".html"):
            continue
        urls.append(href)
    return _dedupe(urls)


def parse_sitemap_index(content: str) -> List[str]:
    """Perfume sitemap file names referenced by the sitemap index, in order."""
    return _dedupe(PERFUME_SITEMAP_RE.findall(content))


def parse_sitemap_locs(content: str) -> List[str]:
    """Product URLs listed in a perfume sitemap's ``<loc>`` entries."""
    soup = BeautifulSoup(content, "html.parser")
    locs = (loc.get_text(strip=True) for loc in soup.find_all("loc"))
    return _dedupe([url for url in locs if url and "/perfume/" in url])


class UrlDiscovery:
    """Finds product URLs to feed the scrape queue."""

    def __init__(self, fetcher: PageFetcher, config: Settings = default_settings):
        self._fetcher = fetcher
        self._origin = config.SCRAPER_SITE_ORIGIN.rstrip("/")

    async def discover(self, brand: Optional[str] = None, limit: int = 100) -> DiscoveryResult:
        brand = (brand or "").strip() or None
        logger.info(f"Discovering URLs for brand: {brand or 'all'}, limit: {limit}")

        if brand:
            urls = await self._from_brand(brand)
        else:
            urls = await self._from_sitemap()

        urls = urls[:limit]
        logger.info(f"Returning {len(urls)} perfume URLs")
        return DiscoveryResult(urls=urls, brand=brand, count=len(urls))

    async def _from_brand(self, brand: str) -> List[str]:
        brand_url = f"{self._origin}/designers/{brand_slug(brand)}.html"
        try:
            page = await self._fetcher.fetch(brand_url, content_selector=PERFUME_LINK_SELECTOR)
        except FetchError:
            logger.error(
                f"Could not load brand page for '{brand}' ({brand_url}). "
                "The name must match the designer page, e.g. 'Dior' or 'Tom Ford'."
            )
            raise
        urls = parse_designer_links(page.html, brand_url)
        logger.info(f"Found {len(urls)} perfume URLs for brand {brand}")
        if urls:
            return urls

        logger.info("No URLs found on brand page, trying search...")
        search_url = f"{self._origin}/search/?query={quote(brand)}"
        page = await self._fetcher.fetch(search_url, content_selector=PERFUME_LINK_SELECTOR)
        urls = parse_designer_links(page.html, search_url, strict=False)
        logger.info(f"Found {len(urls)} perfume URLs via search")
        return urls

    async def _from_sitemap(self) -> List[str]:
        try:
            index = await self._fetcher.fetch(f"{self._origin}/sitemap.xml", content_selector="")
            sitemaps = parse_sitemap_index(index.html)
            logger.info(f"Found {len(sitemaps)} perfume sitemaps")
            if not sitemaps:
                return []

            sitemap_url = f"{self._origin}/{sitemaps[0]}"
            logger.info(f"Fetching: {sitemap_url}")
            page = await self._fetcher.fetch(sitemap_url, content_selector="")
        except FetchError as e:
            logger.error(f"Sitemap error: {e}")
            return []

        urls = parse_sitemap_locs(page.html)
        logger.info(f"Found {len(urls)} URLs in sitemap")
        return urls
