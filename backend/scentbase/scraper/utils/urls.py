from typing import Iterable, List
from urllib.parse import urlparse


def is_valid_url(value: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not isinstance(value, str):
        return False
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def unique_valid_urls(urls: Iterable[str]) -> List[str]:
    """Valid URLs from ``urls``, stripped and deduplicated in input order."""
    seen = set()
    result = []
    for url in urls:
        if not is_valid_url(url):
            continue
        url = url.strip()
        if url not in seen:
            seen.add(url)
            result.append(url)
    return result
