"""Extractors: one interface, a browser implementation and a static one.

Both implementations turn a URL into RawRecord values by running the
shared strategy set over a parsed HTML tree. The browser extractor
renders the page with Playwright first; the static extractor fetches
the raw markup with requests. Which one is available is decided once,
by build_extractor_factories(), from configuration and an import probe.
"""

from __future__ import annotations

import asyncio
import importlib.util
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from catalogforge.core.config.scraping import ScrapingConfig
from catalogforge.core.exceptions import ExtractorUnavailableError, ScrapeError
from catalogforge.core.logging import get_logger
from catalogforge.core.retry import RetryError, retry
from catalogforge.scraping.browser import BrowserConfig, BrowserManager
from catalogforge.scraping.guard import OriginGuard
from catalogforge.scraping.models import ContentType, RawRecord
from catalogforge.scraping.strategies import StrategyContext, parse_html, run_strategies
from catalogforge.scraping.urls import absolutize, normalize_url

logger = get_logger(__name__)

NEXT_PAGE_SELECTORS = (
    "a[rel=next]",
    "link[rel=next]",
    "a[aria-label*=Next]",
    "a[class*=next]",
    "[class*=pagination] a",
)
NEXT_PAGE_LABELS = ("next", "next page", "›", "»", ">")


def browser_headers(user_agent: str) -> dict:
    """Request headers resembling a desktop browser."""
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-GB,en;q=0.9",
        "Cache-Control": "no-cache",
    }


def next_page_url(soup: BeautifulSoup, page_url: str) -> Optional[str]:
    """Find a same-host "next page" link, or None."""
    host = urlparse(page_url).netloc.lower()
    for css in NEXT_PAGE_SELECTORS:
        for link in soup.select(css):
            if css.startswith("[class*=pagination]"):
                label = link.get_text(" ", strip=True).lower()
                if label not in NEXT_PAGE_LABELS:
                    continue
            url = absolutize(link.get("href"), page_url)
            if url and urlparse(url).netloc.lower() == host:
                if normalize_url(url) != normalize_url(page_url):
                    return url
    return None


class Extractor(ABC):
    """Turns a page URL into raw records for one content type."""

    name: str = "extractor"

    def __init__(self, config: Optional[ScrapingConfig] = None) -> None:
        self.config = config or ScrapingConfig()

    @abstractmethod
    async def extract(self, content_type: ContentType, url: str) -> List[RawRecord]:
        """Extract raw records from the page at url.

        Returns an empty list when the page holds nothing usable. Raises
        ScrapeError subclasses for fetch or runtime failures.
        """

    def _apply_strategies(
        self, content_type: ContentType, soup: BeautifulSoup, page_url: str
    ) -> List[RawRecord]:
        context = StrategyContext(
            page_url=page_url,
            max_candidates=self.config.max_candidates,
            max_list_items=self.config.max_list_items,
            allowed_hosts=self._site_hosts(page_url),
        )
        return run_strategies(content_type, soup, context)

    def _site_hosts(self, page_url: str) -> Tuple[str, ...]:
        """Origin, mirror and current page hosts."""
        hosts = OriginGuard(self.config.base_url, self.config.mirror_domains).domains
        hosts.add((urlparse(page_url).hostname or "").lower())
        return tuple(sorted(hosts))


class BrowserExtractor(Extractor):
    """Renders pages in a headless browser before reading them.

    One browser session per extract() call. Product listings follow
    "next page" links while below both max_navigations and
    product_limit.
    """

    name = "browser"

    def __init__(
        self,
        config: Optional[ScrapingConfig] = None,
        manager_factory: Optional[Callable[[BrowserConfig], BrowserManager]] = None,
    ) -> None:
        super().__init__(config)
        self._manager_factory = manager_factory or BrowserManager

    def _browser_config(self) -> BrowserConfig:
        return BrowserConfig(
            headless=self.config.headless,
            timeout_ms=int(self.config.browser_timeout_sec * 1000),
            settle_delay_ms=self.config.settle_delay_ms,
            user_agent=self.config.user_agent,
        )

    async def extract(self, content_type: ContentType, url: str) -> List[RawRecord]:
        content_type = ContentType.parse(content_type)
        manager = self._manager_factory(self._browser_config())
        records: List[RawRecord] = []

        async with manager.session():
            if not manager.is_active:
                raise ExtractorUnavailableError("Headless browser could not be started")

            visited = set()
            target: Optional[str] = url
            while target and manager.navigations < self.config.max_navigations:
                visited.add(normalize_url(target))
                page = await manager.fetch_page(target)
                if not page.success:
                    if not records:
                        raise ScrapeError(
                            f"Browser could not load {target}: {page.error or page.status.value}"
                        )
                    logger.debug("Stopping pagination", url=target, status=page.status.value)
                    break

                page_url = page.final_url or target
                soup = parse_html(page.html)
                page_records = self._apply_strategies(content_type, soup, page_url)
                records.extend(page_records)

                if content_type != ContentType.PRODUCTS or not page_records:
                    break
                if len(records) >= self.config.product_limit:
                    break
                target = next_page_url(soup, page_url)
                if target and normalize_url(target) in visited:
                    break

        if content_type == ContentType.PRODUCTS:
            return records[: self.config.product_limit]
        return records


class StaticHTMLExtractor(Extractor):
    """Fetches raw markup over HTTP; no script execution.

    The blocking requests call runs in a worker thread so the event loop
    stays free. Connection errors and timeouts are retried with backoff;
    HTTP error statuses are not.
    """

    name = "static"

    def __init__(
        self,
        config: Optional[ScrapingConfig] = None,
        session_factory: Optional[Callable[[], requests.Session]] = None,
    ) -> None:
        super().__init__(config)
        self._session_factory = session_factory or requests.Session

    async def extract(self, content_type: ContentType, url: str) -> List[RawRecord]:
        content_type = ContentType.parse(content_type)
        html, final_url = await asyncio.to_thread(self.fetch, url)
        soup = parse_html(html)
        return self._apply_strategies(content_type, soup, final_url or url)

    def fetch(self, url: str) -> Tuple[str, str]:
        """Fetch url and return (html, final_url).

        Raises:
            ScrapeError: If the request fails or the origin answers with an
                error status
        """
        session = self._session_factory()
        session.headers.update(browser_headers(self.config.user_agent))
        fetch_with_retry = retry(
            max_attempts=self.config.http_retries + 1,
            base_delay=0.5,
            max_delay=5.0,
            retryable_exceptions=(requests.ConnectionError, requests.Timeout),
        )(self._get)

        try:
            return fetch_with_retry(session, url)
        except RetryError as e:
            raise ScrapeError(f"Could not fetch {url}: {e.last_exception}") from e
        except requests.RequestException as e:
            raise ScrapeError(f"Could not fetch {url}: {e}") from e
        finally:
            session.close()

    def _get(self, session: requests.Session, url: str) -> Tuple[str, str]:
        response = session.get(
            url, timeout=self.config.static_timeout_sec, allow_redirects=True
        )
        response.raise_for_status()
        return response.text, response.url


ExtractorFactory = Callable[[], Extractor]


@dataclass
class ExtractorFactories:
    """Factories the orchestrator calls once per scrape.

    `browser` is None when the automation runtime is disabled or absent.
    """

    static: ExtractorFactory
    browser: Optional[ExtractorFactory] = None


def browser_available() -> bool:
    """True when the Playwright package can be imported."""
    return importlib.util.find_spec("playwright") is not None


def build_extractor_factories(config: ScrapingConfig) -> ExtractorFactories:
    """Choose extractors from configuration and runtime availability."""
    browser_factory: Optional[ExtractorFactory] = None
    if not config.browser_enabled:
        logger.info("Browser extractor disabled by configuration")
    elif not browser_available():
        logger.warning(
            "Playwright not installed; using static HTML extractor only",
            fix="pip install playwright && playwright install chromium",
        )
    else:
        browser_factory = lambda: BrowserExtractor(config)  # noqa: E731

    return ExtractorFactories(
        static=lambda: StaticHTMLExtractor(config),
        browser=browser_factory,
    )
