"""
Shared pytest fixtures for CatalogForge tests.

Fixture Organization
--------------------
- **HTML pages**: category, listing and detail markup modelled on the
  origin site, served to extractors through fake sessions
- **Configs**: scraping/cache configs with zero settle delay
- **Repositories**: in-memory and SQLite-in-memory catalog storage
- **Stubs**: scripted extractors and a controllable clock

Nothing here touches the network or launches a browser.
"""

from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

import pytest
import requests

from catalogforge.core.config import CacheConfig, Config, ScrapingConfig
from catalogforge.scraping.extractors import Extractor, ExtractorFactories
from catalogforge.scraping.models import ContentType, RawRecord
from catalogforge.storage.memory import MemoryCatalogRepository
from catalogforge.storage.sql import SqlCatalogRepository

BASE_URL = "https://www.worldofbooks.com"
CATEGORY_URL = f"{BASE_URL}/en-gb/category/fiction"
PRODUCT_URL = f"{BASE_URL}/en-gb/products/the-hobbit"


CATEGORY_HTML = """
<html><head><title>World of Books</title></head><body>
<header>
  <nav class="main-nav">
    <a href="/login">Login</a>
    <a href="/en-gb/category/fiction">Fiction</a>
    <a href="/en-gb/category/science-fiction-fantasy">Science Fiction &amp; Fantasy</a>
    <a href="/en-gb/category/childrens-books">Children's Books (1,204)</a>
    <a href="/basket">Basket</a>
  </nav>
</header>
<main><p>Cheap second-hand books.</p></main>
</body></html>
"""

LISTING_HTML = """
<html><head><title>Fiction</title></head><body>
<header><nav><a href="/login">Login</a></nav></header>
<div class="product-grid">
  <div class="product-card" data-product-id="1">
    <a href="/en-gb/products/the-hobbit"><img src="/img/hobbit.jpg" alt="cover"></a>
    <h3 class="product-title">The Hobbit</h3>
    <p class="author">by J.R.R. Tolkien</p>
    <span class="price">£4.99</span>
    <span class="condition">Very Good</span>
  </div>
  <div class="product-card" data-product-id="2">
    <a href="/en-gb/products/dune"><img src="/img/dune.jpg" alt="cover"></a>
    <h3 class="product-title">Dune</h3>
    <p class="author">By Frank Herbert</p>
    <span class="price">£6.50</span>
  </div>
  <div class="product-card" data-product-id="3">
    <a href="/en-gb/products/emma"><img src="/img/emma.jpg" alt="cover"></a>
    <h3 class="product-title">Emma</h3>
    <p class="author">Jane Austen</p>
    <span class="price">£3.49</span>
  </div>
  <div class="product-card" data-product-id="4">
    <span class="price">£2.00</span>
  </div>
</div>
</body></html>
"""

DETAIL_HTML = """
<html><head>
<link rel="canonical" href="https://www.worldofbooks.com/en-gb/products/the-hobbit">
</head><body>
<h1 itemprop="name">The Hobbit</h1>
<p class="author">By: J.R.R. Tolkien</p>
<span class="price">£4.99</span>
<dl class="details">
  <dt>ISBN-13</dt><dd>978-0-261-10221-7</dd>
  <dt>Publisher</dt><dd>HarperCollins</dd>
  <dt>Pages</dt><dd>320</dd>
  <dt>Language</dt><dd>English</dd>
</dl>
<table>
  <tr><th>Format</th><td>Paperback</td></tr>
  <tr><th>Dimensions</th><td>198 x 129 mm</td></tr>
</table>
<div class="synopsis">A great modern classic.</div>
<section class="reviews">
  <div class="review-item">
    <span class="rating" aria-label="5 out of 5 stars"></span>
    <span class="reviewer">Alice</span>
    <h4 class="review-title">Wonderful</h4>
    <p class="review-body">Loved it.</p>
    <time datetime="2024-03-01">1 March 2024</time>
    <span class="verified">Verified purchase</span>
  </div>
  <div class="review-item">
    <span class="rating">n/a</span>
    <span class="reviewer">Bob</span>
    <p class="review-body">Fine read.</p>
  </div>
</section>
<div class="related-products">
  <a href="/en-gb/products/lotr" title="The Lord of the Rings">LOTR</a>
  <a href="/en-gb/products/silmarillion">The Silmarillion</a>
</div>
</body></html>
"""


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def scraping_config() -> ScrapingConfig:
    """Scraping config with no settle delay and short timeouts."""
    return ScrapingConfig(
        base_url=BASE_URL,
        settle_delay_ms=0,
        browser_timeout_sec=2.0,
        static_timeout_sec=2.0,
        http_retries=0,
    )


@pytest.fixture
def config(scraping_config: ScrapingConfig) -> Config:
    """Full config using the memory storage backend."""
    config = Config(scraping=scraping_config, cache=CacheConfig())
    config.storage.backend = "memory"
    return config


# ============================================================================
# Repository Fixtures
# ============================================================================


@pytest.fixture
def memory_repository() -> MemoryCatalogRepository:
    return MemoryCatalogRepository()


@pytest.fixture
def sql_repository():
    """SQLite in-memory repository, disposed after the test."""
    repository = SqlCatalogRepository("sqlite://")
    yield repository
    repository.close()


@pytest.fixture(params=["memory", "sql"])
def repository(request, memory_repository, sql_repository):
    """Each backend in turn, for contract tests."""
    return memory_repository if request.param == "memory" else sql_repository


# ============================================================================
# Fakes
# ============================================================================


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, text: str, url: str, status_code: int = 200) -> None:
        self.text = text
        self.url = url
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}")


class FakeSession:
    """Serves canned pages by URL; unknown URLs answer 404."""

    def __init__(self, pages: Dict[str, Union[str, Exception]]) -> None:
        self.pages = pages
        self.headers: Dict[str, str] = {}
        self.requested: List[str] = []
        self.closed = False

    def get(self, url: str, timeout: float = 0, allow_redirects: bool = True):
        self.requested.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return FakeResponse("", url, status_code=404)
        return FakeResponse(page, url)

    def close(self) -> None:
        self.closed = True


ScriptedResult = Union[List[RawRecord], Exception]


class ScriptedExtractor(Extractor):
    """Extractor returning canned results per URL and recording calls."""

    def __init__(
        self,
        name: str,
        results: Dict[str, ScriptedResult],
        calls: List[Tuple[str, str]],
        delay: float = 0.0,
    ) -> None:
        super().__init__()
        self.name = name
        self.results = results
        self.calls = calls
        self.delay = delay

    async def extract(self, content_type: ContentType, url: str) -> List[RawRecord]:
        import asyncio

        self.calls.append((self.name, url))
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.results.get(url, [])
        if isinstance(result, Exception):
            raise result
        return list(result)


def scripted_factories(
    calls: List[Tuple[str, str]],
    browser: Optional[Dict[str, ScriptedResult]] = None,
    static: Optional[Dict[str, ScriptedResult]] = None,
    browser_delay: float = 0.0,
    with_browser: bool = True,
) -> ExtractorFactories:
    """Extractor factories backed by ScriptedExtractor instances."""
    browser_factory: Optional[Callable[[], Extractor]] = None
    if with_browser:
        browser_factory = lambda: ScriptedExtractor(  # noqa: E731
            "browser", browser or {}, calls, delay=browser_delay
        )
    return ExtractorFactories(
        static=lambda: ScriptedExtractor("static", static or {}, calls),
        browser=browser_factory,
    )


def product_raw(title: str, price: str = "£5.00", url: str = "") -> RawRecord:
    fields = {"title": title, "price": price}
    if url:
        fields["url"] = url
    return RawRecord(fields=fields, source_url=CATEGORY_URL, strategy="product-cards")


def category_raw(name: str, url: str) -> RawRecord:
    return RawRecord(
        fields={"name": name, "url": url}, source_url=BASE_URL, strategy="navigation-links"
    )


def raws(titles: Iterable[str]) -> List[RawRecord]:
    return [product_raw(title) for title in titles]
