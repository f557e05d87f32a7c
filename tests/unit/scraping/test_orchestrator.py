"""Tests for the crawl orchestrator's fallback chain.

Extractors are scripted per URL and record every call, so the order of
attempts can be asserted exactly.
"""

from __future__ import annotations

from typing import List, Tuple

import pytest
from conftest import BASE_URL, CATEGORY_URL, FakeClock, raws, scripted_factories

from catalogforge.core.config import CacheConfig, ScrapingConfig
from catalogforge.core.exceptions import InvalidTargetError, ScrapeError, ScrapeFailedError
from catalogforge.scraping.cache import ResultCache, make_key
from catalogforge.scraping.models import ContentType
from catalogforge.scraping.orchestrator import CrawlOrchestrator

SEARCH_URL = f"{BASE_URL}/search?q=Fiction"
SLUG_URL = f"{BASE_URL}/category/fiction"


def orchestrator(config: ScrapingConfig, factories, cache=None) -> CrawlOrchestrator:
    return CrawlOrchestrator(
        config,
        cache=cache if cache is not None else ResultCache(CacheConfig()),
        factories=factories,
    )


# Fallback order


class TestFallbackOrder:
    """Tests for the strictly sequential stage order."""

    @pytest.mark.asyncio
    async def test_browser_result_wins(self, scraping_config: ScrapingConfig) -> None:
        """Test a non-empty browser result stops the chain."""
        calls: List[Tuple[str, str]] = []
        factories = scripted_factories(calls, browser={CATEGORY_URL: raws(["The Hobbit"])})

        products = await orchestrator(scraping_config, factories).scrape(
            ContentType.PRODUCTS, CATEGORY_URL
        )

        assert [p.title for p in products] == ["The Hobbit"]
        assert calls == [("browser", CATEGORY_URL)]

    @pytest.mark.asyncio
    async def test_static_same_url_before_alternates(
        self, scraping_config: ScrapingConfig
    ) -> None:
        """Test static runs once on the target before any alternate URL."""
        calls: List[Tuple[str, str]] = []
        factories = scripted_factories(calls, static={SLUG_URL: raws(["Dune"])})

        products = await orchestrator(scraping_config, factories).scrape(
            ContentType.PRODUCTS, CATEGORY_URL, label="Fiction", slug="fiction"
        )

        assert [p.title for p in products] == ["Dune"]
        assert calls == [
            ("browser", CATEGORY_URL),
            ("static", CATEGORY_URL),
            ("static", SLUG_URL),
        ]

    @pytest.mark.asyncio
    async def test_explicit_alternates_before_derived(
        self, scraping_config: ScrapingConfig
    ) -> None:
        """Test caller-supplied alternates precede derived ones; off-origin ones are skipped."""
        calls: List[Tuple[str, str]] = []
        explicit = f"{BASE_URL}/en-gb/collections/fiction"
        factories = scripted_factories(calls, static={SEARCH_URL: raws(["Emma"])})

        await orchestrator(scraping_config, factories).scrape(
            ContentType.PRODUCTS,
            CATEGORY_URL,
            label="Fiction",
            slug="fiction",
            alternates=["https://elsewhere.example.com/fiction", explicit],
        )

        assert [url for _, url in calls] == [
            CATEGORY_URL,
            CATEGORY_URL,
            explicit,
            SLUG_URL,
            SEARCH_URL,
        ]

    @pytest.mark.asyncio
    async def test_no_browser_factory(self, scraping_config: ScrapingConfig) -> None:
        """Test the chain starts at static when no browser is available."""
        calls: List[Tuple[str, str]] = []
        factories = scripted_factories(
            calls, static={CATEGORY_URL: raws(["Dune"])}, with_browser=False
        )

        await orchestrator(scraping_config, factories).scrape(
            ContentType.PRODUCTS, CATEGORY_URL
        )

        assert calls == [("static", CATEGORY_URL)]


# Failure isolation


class TestFailureIsolation:
    """Tests for errors and timeouts inside a stage."""

    @pytest.mark.asyncio
    async def test_browser_error_falls_back(self, scraping_config: ScrapingConfig) -> None:
        """Test an extractor exception counts as zero records."""
        calls: List[Tuple[str, str]] = []
        factories = scripted_factories(
            calls,
            browser={CATEGORY_URL: ScrapeError("renderer crashed")},
            static={CATEGORY_URL: raws(["Dune"])},
        )

        products = await orchestrator(scraping_config, factories).scrape(
            ContentType.PRODUCTS, CATEGORY_URL
        )

        assert [p.title for p in products] == ["Dune"]

    @pytest.mark.asyncio
    async def test_browser_timeout_falls_back(self) -> None:
        """Test a stage that exceeds its timeout counts as zero records."""
        config = ScrapingConfig(settle_delay_ms=0, browser_timeout_sec=0.05)
        calls: List[Tuple[str, str]] = []
        factories = scripted_factories(
            calls,
            browser={CATEGORY_URL: raws(["Too Late"])},
            static={CATEGORY_URL: raws(["On Time"])},
            browser_delay=1.0,
        )

        products = await orchestrator(config, factories).scrape(
            ContentType.PRODUCTS, CATEGORY_URL
        )

        assert [p.title for p in products] == ["On Time"]

    @pytest.mark.asyncio
    async def test_records_without_titles_count_as_empty(
        self, scraping_config: ScrapingConfig
    ) -> None:
        """Test a stage whose records all normalize away is empty."""
        calls: List[Tuple[str, str]] = []
        factories = scripted_factories(
            calls,
            browser={CATEGORY_URL: raws(["Hi"])},
            static={CATEGORY_URL: raws(["Real Title"])},
        )

        products = await orchestrator(scraping_config, factories).scrape(
            ContentType.PRODUCTS, CATEGORY_URL
        )

        assert [p.title for p in products] == ["Real Title"]


# Terminal failure


class TestTerminalFailure:
    """Tests for the all-stages-empty outcome."""

    @pytest.mark.asyncio
    async def test_raises_with_attempt_count(self, scraping_config: ScrapingConfig) -> None:
        """Test ScrapeFailedError reports every attempt and URL."""
        calls: List[Tuple[str, str]] = []
        factories = scripted_factories(calls)

        with pytest.raises(ScrapeFailedError) as exc_info:
            await orchestrator(scraping_config, factories).scrape(
                ContentType.PRODUCTS, CATEGORY_URL, label="Fiction", slug="fiction"
            )

        assert exc_info.value.attempts == 4
        assert exc_info.value.urls_tried == (CATEGORY_URL, SLUG_URL, SEARCH_URL)
        assert exc_info.value.content_type == "products"

    @pytest.mark.asyncio
    async def test_failure_not_cached(self, scraping_config: ScrapingConfig) -> None:
        """Test a terminal failure writes no cache entry."""
        cache = ResultCache(CacheConfig())
        factories = scripted_factories([])

        with pytest.raises(ScrapeFailedError):
            await orchestrator(scraping_config, factories, cache).scrape(
                ContentType.CATEGORIES, BASE_URL
            )

        assert len(cache) == 0
        assert make_key(ContentType.CATEGORIES, BASE_URL) not in cache


# Cache interaction


class TestCaching:
    """Tests for the result cache in front of the chain."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_extraction(self, scraping_config: ScrapingConfig) -> None:
        """Test a second call inside the TTL performs no extraction."""
        calls: List[Tuple[str, str]] = []
        factories = scripted_factories(calls, browser={CATEGORY_URL: raws(["Dune"])})
        orch = orchestrator(scraping_config, factories)

        first = await orch.scrape(ContentType.PRODUCTS, CATEGORY_URL)
        second = await orch.scrape(ContentType.PRODUCTS, CATEGORY_URL + "/")

        assert len(calls) == 1
        assert [p.title for p in second] == [p.title for p in first]

    @pytest.mark.asyncio
    async def test_expired_entry_rescrapes(
        self, scraping_config: ScrapingConfig, clock: FakeClock
    ) -> None:
        """Test an entry past its TTL triggers a fresh scrape."""
        calls: List[Tuple[str, str]] = []
        cache = ResultCache(CacheConfig(products_ttl_sec=300), clock=clock)
        factories = scripted_factories(calls, browser={CATEGORY_URL: raws(["Dune"])})
        orch = orchestrator(scraping_config, factories, cache)

        await orch.scrape(ContentType.PRODUCTS, CATEGORY_URL)
        clock.advance(300)
        await orch.scrape(ContentType.PRODUCTS, CATEGORY_URL)

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_alternate_result_cached_under_target(
        self, scraping_config: ScrapingConfig
    ) -> None:
        """Test results from an alternate URL are keyed by the original target."""
        cache = ResultCache(CacheConfig())
        factories = scripted_factories([], static={SLUG_URL: raws(["Dune"])})

        await orchestrator(scraping_config, factories, cache).scrape(
            ContentType.PRODUCTS, CATEGORY_URL, slug="fiction"
        )

        assert make_key(ContentType.PRODUCTS, CATEGORY_URL) in cache
        assert make_key(ContentType.PRODUCTS, SLUG_URL) not in cache


# Input validation


class TestValidation:
    """Tests for target validation before any extraction."""

    @pytest.mark.asyncio
    async def test_off_origin_target(self, scraping_config: ScrapingConfig) -> None:
        """Test a foreign host is rejected without extracting."""
        calls: List[Tuple[str, str]] = []

        with pytest.raises(InvalidTargetError):
            await orchestrator(scraping_config, scripted_factories(calls)).scrape(
                ContentType.PRODUCTS, "https://example.org/books"
            )
        assert calls == []

    @pytest.mark.asyncio
    async def test_unknown_content_type(self, scraping_config: ScrapingConfig) -> None:
        """Test an unknown content type is rejected."""
        with pytest.raises(InvalidTargetError):
            await orchestrator(scraping_config, scripted_factories([])).scrape(
                "authors", CATEGORY_URL
            )

    def test_static_timeout_covers_retries(self) -> None:
        """Test the static stage budget includes every retry."""
        config = ScrapingConfig(static_timeout_sec=10, http_retries=2)

        assert orchestrator(config, scripted_factories([])).static_call_timeout == 30
