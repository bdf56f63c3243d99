"""Field extraction for perfume product pages.

Markup differs between product page templates, so every field has an
ordered list of strategies. Each strategy is a pure function of the parsed
page returning a value or None; ``first_match`` keeps the first present one.
Nothing here performs I/O.
"""
import math
import re
from datetime import datetime
from functools import cached_property
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from scentbase.db.base import utc_now
from scentbase.schemas.perfume import Accord, Gender, Notes, ScrapedRecord

T = TypeVar("T")

DEFAULT_SITE_ORIGIN = "https://www.fragrantica.com"
NOTE_LINK = 'a[href*="/notes/"]'
MIN_YEAR = 1900


class PageDocument:
    """Parsed product page plus the text views strategies keep asking for."""

    def __init__(self, soup: BeautifulSoup):
        self.soup = soup

    @cached_property
    def body_text(self) -> str:
        body = self.soup.body or self.soup
        return body.get_text(" ", strip=True)

    @cached_property
    def heading_text(self) -> str:
        h1 = self.soup.select_one('h1[itemprop="name"]') or self.soup.find("h1")
        return h1.get_text(" ", strip=True) if h1 else ""

    @cached_property
    def title_text(self) -> str:
        return self.soup.title.get_text(" ", strip=True) if self.soup.title else ""


Strategy = Callable[[PageDocument], Optional[T]]


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _present(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    if isinstance(value, Notes):
        return not value.is_empty()
    return True


def first_match(strategies: Iterable[Strategy], page: PageDocument) -> Optional[T]:
    """Run strategies in order and return the first present result."""
    for strategy in strategies:
        value = strategy(page)
        if _present(value):
            return value
    return None


def _text(el: Optional[Tag]) -> Optional[str]:
    if el is None:
        return None
    text = el.get("content") if el.name == "meta" else el.get_text(" ", strip=True)
    return text.strip() if text else None


def _select_text(*selectors: str) -> Strategy[str]:
    def strategy(page: PageDocument) -> Optional[str]:
        for selector in selectors:
            text = _text(page.soup.select_one(selector))
            if text:
                return text
        return None
    return strategy


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


# --- brand -----------------------------------------------------------------

BRAND_STRATEGIES: Sequence[Strategy[str]] = (
    _select_text('[itemprop="brand"] [itemprop="name"]', '[itemprop="brand"]'),
    _select_text('a[href*="/designers/"]'),
)


# --- name ------------------------------------------------------------------

_GENDER_SUFFIX = re.compile(
    r"\s+for\s+(?:women\s+and\s+men|men\s+and\s+women|women|men)\s*$", re.IGNORECASE
)
_TITLE_SEPARATORS = re.compile(r"\s+[|\-–—]\s+|\s*\|\s*")
_TITLE_KIND_SUFFIX = re.compile(r"\s+(?:perfume|cologne|fragrance)\s*$", re.IGNORECASE)


def clean_name(raw: str, brand: Optional[str]) -> str:
    """Strip a trailing gender qualifier, then a trailing brand name."""
    name = _GENDER_SUFFIX.sub("", raw.strip()).strip()
    if brand:
        brand = brand.strip()
        if len(name) > len(brand) and name.lower().endswith(brand.lower()):
            name = name[: -len(brand)].rstrip(" -–|,")
    return name


def _name_from_heading(page: PageDocument) -> Optional[str]:
    return page.heading_text or None


def _name_from_title(page: PageDocument) -> Optional[str]:
    if not page.title_text:
        return None
    prefix = _TITLE_SEPARATORS.split(page.title_text, maxsplit=1)[0]
    return _TITLE_KIND_SUFFIX.sub("", prefix).strip() or None


NAME_STRATEGIES: Sequence[Strategy[str]] = (_name_from_heading, _name_from_title)


# --- year ------------------------------------------------------------------

YEAR_PATTERNS = (
    re.compile(r"launched in (\d{4})", re.IGNORECASE),
    re.compile(r"was launched in (\d{4})", re.IGNORECASE),
    re.compile(r"\bfrom (\d{4})\b", re.IGNORECASE),
    re.compile(r"\((\d{4})\)"),
)


def extract_year(text: str, current_year: Optional[int] = None) -> Optional[int]:
    current_year = current_year or utc_now().year
    for pattern in YEAR_PATTERNS:
        for match in pattern.finditer(text):
            year = int(match.group(1))
            if MIN_YEAR <= year <= current_year:
                return year
    return None


# --- perfumer --------------------------------------------------------------

_NAME_WORDS = r"[A-Z][\w'’-]*(?:\s+[A-Z][\w'’-]*)*"
_PERFUMER_TEXT = re.compile(
    r"(?i:created by|noses?\s*:)\s*(" + _NAME_WORDS + r"(?:\s*(?:,|\band\b)\s*" + _NAME_WORDS + r")*)"
)


def _perfumer_from_links(page: PageDocument) -> Optional[str]:
    names = _dedupe(a.get_text(" ", strip=True) for a in page.soup.select('a[href*="/noses/"]'))
    return ", ".join(names) or None


def _perfumer_from_text(page: PageDocument) -> Optional[str]:
    match = _PERFUMER_TEXT.search(page.body_text)
    if not match:
        return None
    parts = re.split(r"\s*,\s*|\s+and\s+", match.group(1))
    return ", ".join(_dedupe(p.strip() for p in parts)) or None


PERFUMER_STRATEGIES: Sequence[Strategy[str]] = (_perfumer_from_links, _perfumer_from_text)


# --- gender ----------------------------------------------------------------

GENDER_RULES = (
    (Gender.UNISEX, re.compile(r"\bfor women and men\b|\bfor men and women\b|\bunisex\b", re.IGNORECASE)),
    (Gender.FEMININE, re.compile(r"\bfor women\b", re.IGNORECASE)),
    (Gender.MASCULINE, re.compile(r"\bfor men\b", re.IGNORECASE)),
)


def classify_gender(text: str) -> Optional[Gender]:
    for gender, pattern in GENDER_RULES:
        if pattern.search(text):
            return gender
    return None


GENDER_STRATEGIES: Sequence[Strategy[Gender]] = (
    lambda page: classify_gender(page.heading_text),
    lambda page: classify_gender(page.body_text),
)


# --- concentration ---------------------------------------------------------

# Most specific first: "parfum" is contained in "eau de parfum"
CONCENTRATION_PATTERNS = (
    ("Extrait de Parfum", re.compile(r"\bextrait(?: de parfum)?\b", re.IGNORECASE)),
    ("Eau de Parfum", re.compile(r"\beau de parfum\b", re.IGNORECASE)),
    ("Eau de Toilette", re.compile(r"\beau de toilette\b", re.IGNORECASE)),
    ("Eau de Cologne", re.compile(r"\beau de cologne\b", re.IGNORECASE)),
    ("Eau Fraiche", re.compile(r"\beau fra[iî]che\b", re.IGNORECASE)),
    ("Parfum", re.compile(r"\bparfum\b", re.IGNORECASE)),
)


def match_concentration(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    for label, pattern in CONCENTRATION_PATTERNS:
        if pattern.search(text):
            return label
    return None


CONCENTRATION_STRATEGIES: Sequence[Strategy[str]] = (
    lambda page: match_concentration(_select_text(".concentration", "[data-concentration]")(page)),
    lambda page: match_concentration(page.body_text),
)


# --- notes -----------------------------------------------------------------

_LEVEL_CLASSES = (
    ("top", re.compile(r"(?<![a-z])top")),
    ("heart", re.compile(r"(?<![a-z])(?:heart|middle)")),
    ("base", re.compile(r"(?<![a-z])base")),
)
_SECTION_LABELS = (
    ("top", re.compile(r"^top\s+notes?$", re.IGNORECASE)),
    ("heart", re.compile(r"^(?:heart|middle)\s+notes?$", re.IGNORECASE)),
    ("base", re.compile(r"^base\s+notes?$", re.IGNORECASE)),
)


def _note_name(link: Tag) -> Optional[str]:
    text = link.get_text(" ", strip=True)
    if not text:
        img = link.find("img")
        text = (img.get("alt") or "").strip() if img else ""
    if not text:
        text = (link.get("title") or "").strip()
    return text or None


def _notes_from_lists(levels: dict) -> Notes:
    return Notes(**{level: _dedupe(names) for level, names in levels.items()})


def _notes_from_pyramid(page: PageDocument) -> Optional[Notes]:
    container = page.soup.select_one('#pyramid, [class*="pyramid"]')
    if container is None:
        return None
    levels = {"top": [], "heart": [], "base": []}
    for link in container.select(NOTE_LINK):
        name = _note_name(link)
        if not name:
            continue
        for node in [link, *link.parents]:
            if node is container:
                break
            classes = " ".join(node.get("class") or []).lower()
            level = next((lvl for lvl, pattern in _LEVEL_CLASSES if pattern.search(classes)), None)
            if level:
                levels[level].append(name)
                break
    return _notes_from_lists(levels)


def _notes_from_sections(page: PageDocument) -> Optional[Notes]:
    labels = []
    for el in page.soup.find_all(["h2", "h3", "h4", "h5", "b", "strong", "span", "div", "p"]):
        text = el.get_text(" ", strip=True)
        for level, pattern in _SECTION_LABELS:
            if pattern.match(text):
                labels.append((level, el))
                break
    if not labels:
        return None

    label_ids = {id(el) for _, el in labels}
    levels = {"top": [], "heart": [], "base": []}
    for level, label in labels:
        for node in label.find_all_next(True):
            if id(node) in label_ids:
                break
            if node.name == "a" and "/notes/" in (node.get("href") or ""):
                name = _note_name(node)
                if name:
                    levels[level].append(name)
    return _notes_from_lists(levels)


def split_in_thirds(items: Sequence[str]) -> Notes:
    """Last-resort split of unclassified notes: consecutive chunks of ceil(n/3)."""
    size = math.ceil(len(items) / 3)
    return Notes(
        top=list(items[:size]),
        heart=list(items[size:2 * size]),
        base=list(items[2 * size:]),
    )


def _notes_from_all_links(page: PageDocument) -> Optional[Notes]:
    # Approximation: page order is assumed to follow the pyramid
    names = _dedupe(_note_name(a) for a in page.soup.select(NOTE_LINK))
    return split_in_thirds(names) if names else None


NOTES_STRATEGIES: Sequence[Strategy[Notes]] = (
    _notes_from_pyramid,
    _notes_from_sections,
    _notes_from_all_links,
)


# --- accords ---------------------------------------------------------------

ACCORD_SELECTOR = '.accord-bar, [class*="accord-bar"]'
_WIDTH = re.compile(r"width\s*:\s*([\d.]+)\s*%", re.IGNORECASE)
_BACKGROUND = re.compile(
    r"background(?:-color)?\s*:\s*(rgba?\([^)]*\)|#[0-9a-f]{3,8}\b)", re.IGNORECASE
)


def parse_accord(el: Tag) -> Optional[Accord]:
    name = el.get_text(" ", strip=True)
    if not name or "%" in name:
        return None
    style = el.get("style") or ""
    width = _WIDTH.search(style)
    percentage = 0.0
    if width:
        try:
            percentage = min(max(float(width.group(1)), 0.0), 100.0)
        except ValueError:
            percentage = 0.0
    background = _BACKGROUND.search(style)
    return Accord(
        name=name,
        percentage=percentage,
        color=background.group(1) if background else None,
    )


def extract_accords(page: PageDocument) -> List[Accord]:
    accords = []
    for el in page.soup.select(ACCORD_SELECTOR):
        if el.select_one(ACCORD_SELECTOR):
            continue  # wrapper around other bars
        accord = parse_accord(el)
        if accord is not None:
            accords.append(accord)
    return accords


# --- description -----------------------------------------------------------

_BOILERPLATE_MARKERS = ("Login", "Register", "©")


def _description_from_containers(page: PageDocument) -> Optional[str]:
    for selector in (
        '[itemprop="description"]',
        ".fragrantica-blockquote",
        "blockquote",
        ".product-description",
        ".fragrance-description",
    ):
        for el in page.soup.select(selector):
            text = _text(el)
            if text and len(text) > 50:
                return text
    return None


def _description_from_paragraphs(page: PageDocument) -> Optional[str]:
    best = None
    for p in page.soup.find_all("p"):
        text = p.get_text(" ", strip=True)
        if not 100 < len(text) < 2000:
            continue
        if any(marker in text for marker in _BOILERPLATE_MARKERS):
            continue
        if best is None or len(text) > len(best):
            best = text
    return best


DESCRIPTION_STRATEGIES: Sequence[Strategy[str]] = (
    _description_from_containers,
    _description_from_paragraphs,
)


# --- image -----------------------------------------------------------------

IMAGE_SELECTORS = (
    'img[itemprop="image"]',
    'meta[itemprop="image"]',
    "picture source",
    "picture img",
    ".perfume-image img",
    "img.perfume-img",
    ".product-image img",
    ".main-image img",
)


def _image_source(el: Tag) -> Optional[str]:
    for attr in ("src", "srcset", "data-src", "content"):
        value = (el.get(attr) or "").strip()
        if not value or value.startswith("data:"):
            continue
        if attr == "srcset":
            # "url 1x, url 2x" -> first candidate's URL
            value = value.split(",")[0].strip().split()[0]
        return value
    return None


def _image_from_selectors(page: PageDocument) -> Optional[str]:
    for selector in IMAGE_SELECTORS:
        for el in page.soup.select(selector):
            src = _image_source(el)
            if src:
                return src
    return None


IMAGE_STRATEGIES: Sequence[Strategy[str]] = (_image_from_selectors,)


def normalize_image_url(src: Optional[str], site_origin: str = DEFAULT_SITE_ORIGIN) -> Optional[str]:
    if not src:
        return None
    if src.startswith("//"):
        return f"https:{src}"
    if src.startswith("/"):
        return urljoin(site_origin.rstrip("/") + "/", src)
    return src


# --- rating ----------------------------------------------------------------

RATING_SELECTORS = (
    '[itemprop="ratingValue"]',
    ".rating-value",
    ".score",
    "[data-rating]",
)
_NUMBER = re.compile(r"\d+(?:[.,]\d+)?")


def normalize_rating(value: float) -> float:
    """Ratings above 5 are taken to be out of 10."""
    if value > 5:
        value = value / 2
    return round(value, 1)


def _rating_from_selectors(page: PageDocument) -> Optional[float]:
    for selector in RATING_SELECTORS:
        el = page.soup.select_one(selector)
        if el is None:
            continue
        raw = el.get("content") or el.get("data-rating") or el.get_text(" ", strip=True)
        match = _NUMBER.search(raw or "")
        if not match:
            continue
        value = float(match.group(0).replace(",", "."))
        if 0 <= value <= 10:
            return normalize_rating(value)
    return None


RATING_STRATEGIES: Sequence[Strategy[float]] = (_rating_from_selectors,)


# --- record ----------------------------------------------------------------

def extract(
    soup: BeautifulSoup,
    source_url: str,
    *,
    site_origin: str = DEFAULT_SITE_ORIGIN,
    now: Optional[datetime] = None,
) -> ScrapedRecord:
    """Build a record from one product page.

    Missing fields come back empty rather than raising; deciding whether the
    record is usable is the caller's job.
    """
    page = PageDocument(soup)
    now = now or utc_now()

    brand = first_match(BRAND_STRATEGIES, page) or ""
    raw_name = first_match(NAME_STRATEGIES, page)
    name = clean_name(raw_name, brand) if raw_name else ""

    return ScrapedRecord(
        name=name,
        brand=brand,
        year=extract_year(page.body_text, current_year=now.year),
        perfumer=first_match(PERFUMER_STRATEGIES, page),
        gender=first_match(GENDER_STRATEGIES, page) or Gender.UNISEX,
        concentration=first_match(CONCENTRATION_STRATEGIES, page),
        notes=first_match(NOTES_STRATEGIES, page) or Notes(),
        accords=extract_accords(page),
        description=first_match(DESCRIPTION_STRATEGIES, page),
        image_url=normalize_image_url(first_match(IMAGE_STRATEGIES, page), site_origin),
        rating=first_match(RATING_STRATEGIES, page),
        source_url=source_url,
        scraped_at=now,
        created_at=now,
        updated_at=now,
    )
