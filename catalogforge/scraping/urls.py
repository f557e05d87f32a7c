"""URL helpers shared by extractors, the cache and the orchestrator."""

from __future__ import annotations

from typing import List, Optional
from urllib.parse import parse_qsl, quote_plus, urlencode, urljoin, urlparse, urlunparse

from catalogforge.scraping.models import ContentType

MAX_URL_LENGTH = 2048


def normalize_url(url: str) -> str:
    """Canonical form used for cache keys and visited-set checks.

    Lowercases scheme and host, drops the fragment and default ports,
    strips a trailing slash (except on the root path) and sorts the query.
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    if (scheme, netloc.rsplit(":", 1)[-1]) in (("http", "80"), ("https", "443")):
        netloc = netloc.rsplit(":", 1)[0]

    path = parsed.path or "/"
    if len(path) > 1:
        path = path.rstrip("/")

    query = urlencode(sorted(parse_qsl(parsed.query, keep_blank_values=True)))
    return urlunparse((scheme, netloc, path, "", query, ""))


def absolutize(href: Optional[str], base_url: str) -> Optional[str]:
    """Resolve a possibly relative href against the page URL.

    Returns None for empty hrefs and non-navigational schemes.
    """
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith(("#", "javascript:", "mailto:", "tel:", "data:")):
        return None
    if href.startswith("//"):
        href = f"{urlparse(base_url).scheme or 'https'}:{href}"
    resolved = urljoin(base_url, href)
    if len(resolved) > MAX_URL_LENGTH:
        return None
    return resolved


def is_absolute_http(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def alternate_urls(
    content_type: ContentType,
    base_url: str,
    url: str,
    label: Optional[str] = None,
    slug: Optional[str] = None,
) -> List[str]:
    """Ordered fallback URLs tried after the primary target.

    Products: the catalog path derived from the category slug, then a
    search query for the category name. Categories: the home page, then
    the books landing page. Product detail pages have no alternates.
    The primary URL itself is never repeated.
    """
    base = base_url.rstrip("/")
    candidates: List[str] = []

    if content_type == ContentType.PRODUCTS:
        if slug:
            candidates.append(f"{base}/category/{slug}")
        if label:
            candidates.append(f"{base}/search?q={quote_plus(label)}")
    elif content_type == ContentType.CATEGORIES:
        candidates.extend([f"{base}/", f"{base}/books"])

    seen = {normalize_url(url)}
    result: List[str] = []
    for candidate in candidates:
        key = normalize_url(candidate)
        if key not in seen:
            seen.add(key)
            result.append(candidate)
    return result
