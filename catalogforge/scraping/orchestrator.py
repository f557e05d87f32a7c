"""Crawl orchestration: cache, extractor fallback chain, terminal failure.

Fallback order for one scrape() call, strictly sequential:

    1. Result cache (content type + normalized URL)
    2. Browser extractor on the target URL (when available)
    3. Static HTML extractor on the target URL, exactly once
    4. Static HTML extractor on each alternate URL, in order

The first stage that yields at least one normalized record wins and is
cached under the target URL. Errors and timeouts inside a stage count
as zero records. If every stage comes back empty, ScrapeFailedError is
raised and nothing is cached.
"""

from __future__ import annotations

import asyncio
import time
from typing import List, Optional, Sequence

from catalogforge.core.config.scraping import ScrapingConfig
from catalogforge.core.exceptions import InvalidTargetError, ScrapeFailedError
from catalogforge.core.logging import ScrapeLogger, get_logger
from catalogforge.scraping.cache import ResultCache, make_key
from catalogforge.scraping.extractors import (
    ExtractorFactories,
    ExtractorFactory,
    build_extractor_factories,
)
from catalogforge.scraping.guard import OriginGuard
from catalogforge.scraping.models import ContentType, ScrapedRecord
from catalogforge.scraping.normalizer import FieldNormalizer, SyntheticFiller
from catalogforge.scraping.urls import alternate_urls, normalize_url

logger = get_logger(__name__)


class CrawlOrchestrator:
    """First-non-empty-wins reducer over extractors and URLs.

    Holds no per-call state: every scrape() builds fresh extractor
    instances through the factories, so concurrent calls only share the
    injected cache.
    """

    def __init__(
        self,
        config: Optional[ScrapingConfig] = None,
        cache: Optional[ResultCache] = None,
        guard: Optional[OriginGuard] = None,
        factories: Optional[ExtractorFactories] = None,
        normalizer: Optional[FieldNormalizer] = None,
    ) -> None:
        self.config = config or ScrapingConfig()
        self.cache = cache if cache is not None else ResultCache()
        self.guard = guard or OriginGuard(
            self.config.base_url, self.config.mirror_domains
        )
        self.factories = factories or build_extractor_factories(self.config)
        if normalizer is None:
            filler = SyntheticFiller() if self.config.fill_missing else None
            normalizer = FieldNormalizer(currency=self.config.currency, filler=filler)
        self.normalizer = normalizer

    @property
    def static_call_timeout(self) -> float:
        """Wall-clock budget for one static fetch including its retries."""
        return self.config.static_timeout_sec * (self.config.http_retries + 1)

    async def scrape(
        self,
        content_type: ContentType,
        url: str,
        label: Optional[str] = None,
        slug: Optional[str] = None,
        alternates: Optional[Sequence[str]] = None,
    ) -> List[ScrapedRecord]:
        """Scrape one target, falling back through extractors and URLs.

        Args:
            content_type: categories, products or productDetail
            url: Absolute URL on the origin (or a mirror)
            label: Display name used to derive a search fallback URL
            slug: Category slug used to derive a catalog-path fallback URL
            alternates: Extra fallback URLs tried before derived ones

        Returns:
            Normalized records from the first non-empty stage

        Raises:
            InvalidTargetError: If the content type or URL is not acceptable
            ScrapeFailedError: If every stage produced zero records
        """
        try:
            content_type = ContentType.parse(content_type)
        except ValueError as e:
            raise InvalidTargetError(str(e)) from e
        self.guard.require(url)

        key = make_key(content_type, url)
        slog = ScrapeLogger(content_type.value, url)

        cached = self.cache.get(key)
        if cached is not None:
            slog.cache_hit()
            return cached

        urls_tried: List[str] = []

        if self.factories.browser is not None:
            urls_tried.append(url)
            records = await self._attempt(
                slog,
                "browser",
                self.factories.browser,
                content_type,
                url,
                self.config.browser_timeout_sec,
            )
            if records:
                return self._accept(slog, key, records)

        for target in self._static_targets(content_type, url, label, slug, alternates):
            if target not in urls_tried:
                urls_tried.append(target)
            records = await self._attempt(
                slog,
                "static",
                self.factories.static,
                content_type,
                target,
                self.static_call_timeout,
            )
            if records:
                return self._accept(slog, key, records)

        slog.finish(success=False)
        raise ScrapeFailedError(
            f"No {content_type.value} extracted from {url} "
            f"after {slog.attempts} attempts",
            content_type=content_type.value,
            url=url,
            attempts=slog.attempts,
            urls_tried=urls_tried,
        )

    def _static_targets(
        self,
        content_type: ContentType,
        url: str,
        label: Optional[str],
        slug: Optional[str],
        alternates: Optional[Sequence[str]],
    ) -> List[str]:
        """Target URL first, then valid explicit alternates, then derived ones."""
        targets = [url]
        seen = {normalize_url(url)}
        derived = alternate_urls(content_type, self.config.base_url, url, label, slug)
        for candidate in list(alternates or ()) + derived:
            key = normalize_url(candidate)
            if key in seen:
                continue
            if not self.guard.is_allowed(candidate):
                logger.warning("Skipping off-origin alternate URL", url=candidate)
                continue
            seen.add(key)
            targets.append(candidate)
        return targets

    async def _attempt(
        self,
        slog: ScrapeLogger,
        stage: str,
        factory: ExtractorFactory,
        content_type: ContentType,
        url: str,
        timeout: float,
    ) -> List[ScrapedRecord]:
        """Run one extractor against one URL; any failure yields []."""
        started = time.monotonic()
        strategy: Optional[str] = None
        error: Optional[str] = None
        records: List[ScrapedRecord] = []

        try:
            extractor = factory()
            raw = await asyncio.wait_for(extractor.extract(content_type, url), timeout)
            if raw:
                strategy = raw[0].strategy
            records = self.normalizer.normalize(content_type, raw, url)
        except asyncio.TimeoutError:
            error = f"timed out after {timeout:.0f}s"
        except Exception as e:
            error = f"{type(e).__name__}: {e}"

        slog.attempt(
            stage,
            url,
            records=len(records),
            duration_ms=(time.monotonic() - started) * 1000,
            error=error,
            strategy=strategy,
        )
        return records

    def _accept(
        self, slog: ScrapeLogger, key: tuple, records: List[ScrapedRecord]
    ) -> List[ScrapedRecord]:
        self.cache.put(key, records)
        slog.finish(success=True, records=len(records))
        return records
