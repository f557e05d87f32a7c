"""
Catalog extraction pipeline.

    extractors (browser / static) → strategies → normalizer → cache
                         ↑
                    orchestrator

Typical use goes through CrawlOrchestrator:

    from catalogforge.scraping import ContentType, CrawlOrchestrator

    orchestrator = CrawlOrchestrator(config.scraping, cache=ResultCache(config.cache))
    categories = await orchestrator.scrape(ContentType.CATEGORIES, config.scraping.base_url)
"""

from catalogforge.scraping.cache import ResultCache, make_key
from catalogforge.scraping.extractors import (
    BrowserExtractor,
    Extractor,
    ExtractorFactories,
    StaticHTMLExtractor,
    build_extractor_factories,
)
from catalogforge.scraping.guard import OriginGuard
from catalogforge.scraping.models import (
    ContentType,
    RawRecord,
    ScrapedCategory,
    ScrapedProduct,
    ScrapedRecord,
    ScrapedReview,
)
from catalogforge.scraping.normalizer import FieldNormalizer, SyntheticFiller
from catalogforge.scraping.orchestrator import CrawlOrchestrator

__all__ = [
    "BrowserExtractor",
    "ContentType",
    "CrawlOrchestrator",
    "Extractor",
    "ExtractorFactories",
    "FieldNormalizer",
    "OriginGuard",
    "RawRecord",
    "ResultCache",
    "ScrapedCategory",
    "ScrapedProduct",
    "ScrapedRecord",
    "ScrapedReview",
    "StaticHTMLExtractor",
    "SyntheticFiller",
    "build_extractor_factories",
    "make_key",
]
